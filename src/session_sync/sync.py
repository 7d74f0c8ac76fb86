"""Forward tool calls from today's agent sessions to matching tasks."""

import logging
from datetime import datetime, timedelta
from pathlib import Path
from typing import Any

from session_sync.client import TaskClient
from session_sync.config import MAX_ARGS_CHARS, MAX_RESULT_CHARS
from session_sync.matcher import build_task_matcher
from session_sync.models import SessionExtraction, SessionFile, SyncResult, ToolCall
from session_sync.state import load_state, save_state
from session_sync.transcript import parse_session_lines, to_json

logger = logging.getLogger(__name__)

DOING_COLUMN = "doing"


def get_today_range(now: datetime | None = None) -> tuple[datetime, datetime]:
    """Get the local calendar day [start, end) containing now."""
    if now is None:
        now = datetime.now()
    elif now.tzinfo is not None:
        now = now.astimezone().replace(tzinfo=None)
    # Naive local midnights; astimezone() attaches the local offset for each
    day = now.replace(hour=0, minute=0, second=0, microsecond=0)
    return day.astimezone(), (day + timedelta(days=1)).astimezone()


def list_session_files(agents_dir: Path, start: datetime) -> list[SessionFile]:
    """Find transcript files modified since start.

    Path format: <agents_dir>/<agent>/sessions/<session_id>.jsonl
    """
    if not agents_dir.is_dir():
        return []

    files: list[SessionFile] = []
    for agent_dir in sorted(agents_dir.iterdir()):
        if agent_dir.name.startswith("."):
            continue
        sessions_dir = agent_dir / "sessions"
        if not sessions_dir.is_dir():
            continue

        for path in sorted(sessions_dir.iterdir()):
            if not path.name.endswith(".jsonl") or ".deleted." in path.name:
                continue
            try:
                mtime = datetime.fromtimestamp(path.stat().st_mtime).astimezone()
            except FileNotFoundError:
                # Removed between listing and stat
                continue
            if mtime < start:
                continue
            files.append(
                SessionFile(
                    agent=agent_dir.name,
                    session_id=path.name.removesuffix(".jsonl"),
                    path=path,
                )
            )

    return files


def read_session(session_file: SessionFile, start: datetime, end: datetime) -> SessionExtraction:
    """Parse one transcript file restricted to [start, end)."""
    text = session_file.path.read_text(encoding="utf-8", errors="replace")
    lines = [line for line in text.split("\n") if line]
    extraction = parse_session_lines(lines, start, end, session_id=session_file.session_id)
    if extraction.ambiguous_results:
        logger.info(
            "Session %s: %d results matched by position with several calls open",
            session_file.session_id,
            extraction.ambiguous_results,
        )
    return extraction


def call_key(session_id: str, tool_call: ToolCall) -> str:
    """Deduplication key for a tool call within a session."""
    return f"{session_id}:{tool_call.id or f'i{tool_call.index}'}"


def normalize_args(args: Any) -> str:
    if args is None:
        return ""
    if isinstance(args, str):
        return args
    return to_json(args)


def summarize_tool_call(tool_call: ToolCall) -> str:
    """Format a tool call as activity details.

    "<tool>: <args>" with the result excerpt on its own line after "-> ".
    """
    args_summary = normalize_args(tool_call.args)[:MAX_ARGS_CHARS]
    result_summary = tool_call.result[:MAX_RESULT_CHARS] if tool_call.result else ""
    base = f"{tool_call.tool}: {args_summary}" if args_summary else tool_call.tool
    return f"{base}\n-> {result_summary}" if result_summary else base


def sync_session_logs(
    client: TaskClient,
    agents_dir: Path,
    state_file: Path,
    user: str,
    dry_run: bool = False,
    now: datetime | None = None,
) -> SyncResult:
    """Post today's tool calls to every "doing" task whose sessions mention it.

    State is saved once, after all deliveries succeed. A failure part way
    through leaves earlier deliveries unrecorded, so they repeat next run.

    Args:
        client: Task tracker client.
        agents_dir: Root holding <agent>/sessions/*.jsonl.
        state_file: Path of the sync state JSON.
        user: Identity recorded on each activity entry.
        dry_run: Count what would be posted without posting or saving state.
        now: Reference time used to pick the day window.
    """
    start, end = get_today_range(now)

    tasks = client.fetch_tasks()
    doing_tasks = [task for task in tasks if task.column.lower() == DOING_COLUMN]
    logger.info("%d of %d tasks in %r", len(doing_tasks), len(tasks), DOING_COLUMN)

    sessions: list[SessionExtraction] = []
    for session_file in list_session_files(agents_dir, start):
        extraction = read_session(session_file, start, end)
        if extraction.is_empty():
            continue
        sessions.append(extraction)
    logger.info("%d sessions with activity since %s", len(sessions), start.isoformat())

    state = load_state(state_file)
    result = SyncResult(
        task_count=len(doing_tasks),
        session_count=len(sessions),
        dry_run=dry_run,
    )

    for task in doing_tasks:
        matches = build_task_matcher(task)
        # Keys counted as posted in a dry run, so repeats skip as in a real run
        dry_posted: set[str] = set()
        for session in sessions:
            if not matches(session.text):
                continue
            for tool_call in session.tool_calls:
                key = call_key(session.session_id, tool_call)
                if state.is_synced(task.id, key) or key in dry_posted:
                    result.skipped += 1
                    continue

                details = summarize_tool_call(tool_call)
                if not dry_run:
                    client.post_activity(
                        task.id,
                        {
                            "action": "tool_call",
                            "user": user,
                            "details": details,
                            "type": "technical",
                        },
                    )
                    state.mark_synced(task.id, key)
                else:
                    dry_posted.add(key)
                logger.debug("Task %s <- %s", task.id, key)
                result.posted += 1

    if not dry_run:
        save_state(state_file, state)

    return result
