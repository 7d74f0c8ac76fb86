"""Pytest fixtures for session-sync tests."""

import json
import tempfile
from datetime import datetime
from pathlib import Path

import httpx
import pytest

from session_sync.client import TaskClient

# Midday keeps every fixture timestamp inside the same local day
NOW = datetime(2024, 6, 15, 12, 0, 0).astimezone()


@pytest.fixture
def temp_dir():
    """Create a temporary directory for test files."""
    with tempfile.TemporaryDirectory() as tmpdir:
        yield Path(tmpdir)


@pytest.fixture
def now():
    return NOW


@pytest.fixture
def sample_lines():
    """Transcript lines with two correlated tool calls and a task mention."""
    iso = NOW.isoformat()
    records = [
        {"type": "session", "id": "s1", "timestamp": iso},
        {
            "type": "message",
            "timestamp": iso,
            "message": {
                "role": "assistant",
                "function_calls": [{"id": "call-1", "name": "bash", "arguments": "ls -la"}],
            },
        },
        {
            "type": "message",
            "timestamp": iso,
            "message": {
                "role": "toolResult",
                "toolCallId": "call-1",
                "toolName": "bash",
                "content": [{"type": "text", "text": "ok"}],
            },
        },
        {
            "type": "message",
            "timestamp": iso,
            "message": {
                "role": "assistant",
                "content": [
                    {"type": "toolCall", "id": "call-2", "name": "read", "arguments": {"path": "/tmp/foo"}}
                ],
            },
        },
        {
            "type": "message",
            "timestamp": iso,
            "message": {
                "role": "toolResult",
                "toolCallId": "call-2",
                "toolName": "read",
                "content": "file contents",
            },
        },
        {
            "type": "message",
            "timestamp": iso,
            "message": {
                "role": "user",
                "content": [{"type": "text", "text": "Working on task #123: Test Task"}],
            },
        },
    ]
    return [json.dumps(record) for record in records]


@pytest.fixture
def agents_dir(temp_dir, sample_lines):
    """An agents root with one session transcript for agent 'main'."""
    root = temp_dir / "agents"
    sessions_dir = root / "main" / "sessions"
    sessions_dir.mkdir(parents=True)
    (sessions_dir / "s1.jsonl").write_text("\n".join(sample_lines) + "\n", encoding="utf-8")
    return root


class FakeTracker:
    """In-memory task tracker served through httpx.MockTransport."""

    def __init__(self, tasks, fail_posts=False):
        self.tasks = tasks
        self.fail_posts = fail_posts
        self.activity: list[tuple[str, dict]] = []

    def handler(self, request: httpx.Request) -> httpx.Response:
        if request.method == "GET" and request.url.path == "/api/tasks":
            return httpx.Response(200, json=self.tasks)
        if request.method == "POST" and request.url.path.endswith("/activity"):
            if self.fail_posts:
                return httpx.Response(500, text="boom")
            task_id = request.url.path.split("/")[3]
            self.activity.append((task_id, json.loads(request.content)))
            return httpx.Response(201, json={"ok": True})
        return httpx.Response(404)

    def client(self) -> TaskClient:
        transport = httpx.MockTransport(self.handler)
        return TaskClient("http://test", client=httpx.Client(transport=transport, base_url="http://test"))


@pytest.fixture
def tracker():
    return FakeTracker(
        [
            {"id": 123, "name": "Test Task", "column": "Doing"},
            {"id": 7, "name": "Unrelated", "column": "doing"},
            {"id": 9, "name": "Test Task", "column": "done"},
        ]
    )
