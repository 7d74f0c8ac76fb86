"""Integration tests for the CLI."""

import json
import subprocess
import sys
import threading
from http.server import BaseHTTPRequestHandler, ThreadingHTTPServer

import pytest


def _cli(*args):
    return subprocess.run(
        [sys.executable, "-m", "session_sync.cli", *args],
        capture_output=True,
        text=True,
    )


@pytest.fixture
def tracker_url():
    """Serve a task list and accept activity posts on a local port."""
    posted = []

    class Handler(BaseHTTPRequestHandler):
        def _reply(self, status, body):
            data = json.dumps(body).encode()
            self.send_response(status)
            self.send_header("Content-Type", "application/json")
            self.send_header("Content-Length", str(len(data)))
            self.end_headers()
            self.wfile.write(data)

        def do_GET(self):
            self._reply(200, [{"id": 123, "name": "Test Task", "column": "doing"}])

        def do_POST(self):
            length = int(self.headers.get("Content-Length", 0))
            posted.append(json.loads(self.rfile.read(length)))
            self._reply(201, {"ok": True})

        def log_message(self, *args):
            pass

    server = ThreadingHTTPServer(("127.0.0.1", 0), Handler)
    thread = threading.Thread(target=server.serve_forever, daemon=True)
    thread.start()
    yield f"http://127.0.0.1:{server.server_port}", posted
    server.shutdown()
    server.server_close()


def test_cli_help():
    """Test that --help works."""
    result = _cli("--help")
    assert result.returncode == 0
    assert "sync" in result.stdout
    assert "status" in result.stdout


def test_cli_version():
    """Test that --version works."""
    result = _cli("--version")
    assert result.returncode == 0
    assert "session-sync" in result.stdout


def test_cli_status_without_state(temp_dir):
    result = _cli("status", "--state-file", str(temp_dir / "state.json"))
    assert result.returncode == 0
    assert "State path:" in result.stdout
    assert "No sync state found" in result.stdout


def test_cli_status_with_state(temp_dir):
    state_file = temp_dir / "state.json"
    state_file.write_text(json.dumps({"version": 1, "synced": {"1": {"s:a": True, "s:b": True}}}))

    result = _cli("status", "--state-file", str(state_file))

    assert result.returncode == 0
    assert "Tasks tracked: 1" in result.stdout
    assert "Tool calls synced: 2" in result.stdout


def test_cli_sync_unreachable_api(temp_dir):
    """Test that a failed task fetch exits non-zero with an error."""
    result = _cli(
        "sync",
        "--api-base",
        "http://127.0.0.1:9",
        "--agents-dir",
        str(temp_dir / "agents"),
        "--state-file",
        str(temp_dir / "state.json"),
    )
    assert result.returncode == 1
    assert "sync-session-logs failed" in result.stderr
    assert not (temp_dir / "state.json").exists()


def test_cli_rejects_bad_now(temp_dir):
    result = _cli("sync", "--now", "not-a-date", "--state-file", str(temp_dir / "state.json"))
    assert result.returncode != 0


def _sync_args(url, agents_dir, state_file, now):
    return (
        "sync",
        "--api-base",
        url,
        "--agents-dir",
        str(agents_dir),
        "--state-file",
        str(state_file),
        "--now",
        now.isoformat(),
    )


def test_cli_dry_run_summary(tracker_url, agents_dir, temp_dir, now):
    url, posted = tracker_url
    state_file = temp_dir / "state.json"

    result = _cli(*_sync_args(url, agents_dir, state_file, now), "--dry-run")

    assert result.returncode == 0, result.stderr
    assert "DRY RUN: 2 tool calls (0 skipped) across 1 tasks / 1 sessions." in result.stdout
    assert posted == []
    assert not state_file.exists()


def test_cli_sync_summary(tracker_url, agents_dir, temp_dir, now):
    url, posted = tracker_url
    state_file = temp_dir / "state.json"

    first = _cli(*_sync_args(url, agents_dir, state_file, now))
    second = _cli(*_sync_args(url, agents_dir, state_file, now))

    assert first.returncode == 0, first.stderr
    assert "SYNCED: 2 tool calls (0 skipped) across 1 tasks / 1 sessions." in first.stdout
    assert "SYNCED: 0 tool calls (2 skipped)" in second.stdout
    assert [p["details"] for p in posted] == ["bash: ls -la\n-> ok", 'read: {"path":"/tmp/foo"}\n-> file contents']
