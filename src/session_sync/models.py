"""Data models for session-sync."""

from dataclasses import dataclass, field
from datetime import datetime
from pathlib import Path
from typing import Any

STATE_VERSION = 1


@dataclass
class ToolCall:
    """A tool invocation made by an assistant message."""

    id: str | None
    tool: str
    args: Any
    timestamp: datetime
    index: int  # position within the session, across messages
    result: str | None = None


@dataclass
class ToolResult:
    """The outcome reported for a tool call."""

    tool_call_id: str | None
    tool_name: str | None
    content: Any


@dataclass
class Task:
    """A task snapshot from the tracker API."""

    id: int | str
    name: str
    column: str
    assignee: str | None = None

    @classmethod
    def from_api(cls, data: dict[str, Any]) -> "Task":
        return cls(
            id=data["id"],
            name=str(data.get("name") or ""),
            column=str(data.get("column") or ""),
            assignee=data.get("assignee"),
        )


@dataclass
class SessionFile:
    """A transcript file on disk (<agents_dir>/<agent>/sessions/<id>.jsonl)."""

    agent: str
    session_id: str
    path: Path


@dataclass
class SessionExtraction:
    """Text and tool calls pulled from one session for one day."""

    session_id: str
    text: str
    tool_calls: list[ToolCall] = field(default_factory=list)
    ambiguous_results: int = 0

    def is_empty(self) -> bool:
        return not self.text and not self.tool_calls


@dataclass
class SyncState:
    """Persisted record of which call keys were delivered to which task."""

    version: int = STATE_VERSION
    synced: dict[str, dict[str, bool]] = field(default_factory=dict)

    def is_synced(self, task_id: int | str, call_key: str) -> bool:
        return bool(self.synced.get(str(task_id), {}).get(call_key))

    def mark_synced(self, task_id: int | str, call_key: str) -> None:
        self.synced.setdefault(str(task_id), {})[call_key] = True

    def to_dict(self) -> dict[str, Any]:
        return {"version": self.version, "synced": self.synced}


@dataclass
class SyncResult:
    """Counters reported at the end of a run."""

    posted: int = 0
    skipped: int = 0
    task_count: int = 0
    session_count: int = 0
    dry_run: bool = False

    def summary_line(self) -> str:
        mode = "DRY RUN" if self.dry_run else "SYNCED"
        return (
            f"{mode}: {self.posted} tool calls ({self.skipped} skipped) "
            f"across {self.task_count} tasks / {self.session_count} sessions."
        )
