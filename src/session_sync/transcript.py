"""JSONL transcript parsing: records, text, tool calls and their results."""

import json
import logging
import re
from collections.abc import Iterable
from datetime import datetime, timezone
from email.utils import parsedate_to_datetime
from typing import Any

from session_sync.models import SessionExtraction, ToolCall, ToolResult

logger = logging.getLogger(__name__)

TOOL_CALL_BLOCK_TYPES = ("toolCall", "tool_call")
TOOL_RESULT_BLOCK_TYPES = ("toolResult", "tool_result")
TOOL_RESULT_ROLES = ("toolResult", "tool")

DATE_ONLY = re.compile(r"^\d{4}-\d{2}-\d{2}$")


def _first(*values: Any) -> Any:
    """Return the first truthy value, or None."""
    for value in values:
        if value:
            return value
    return None


def _call_id(*values: Any) -> str | None:
    """First usable correlation id, as a string."""
    for value in values:
        if isinstance(value, bool) or not isinstance(value, (str, int)):
            continue
        if value:
            return str(value)
    return None


def to_json(value: Any) -> str:
    """Compact JSON for display, falling back to str()."""
    try:
        return json.dumps(value, separators=(",", ":"), ensure_ascii=False)
    except (TypeError, ValueError):
        return str(value)


def _parse_date_string(value: str) -> datetime | None:
    try:
        ts = datetime.fromisoformat(value.replace("Z", "+00:00"))
    except ValueError:
        pass
    else:
        # Date-only ISO strings are midnight UTC
        if DATE_ONLY.match(value):
            ts = ts.replace(tzinfo=timezone.utc)
        return ts
    # RFC 2822, e.g. "Mon, 15 Jan 2024 10:00:00 GMT"
    try:
        return parsedate_to_datetime(value)
    except (TypeError, ValueError, IndexError):
        return None


def parse_timestamp(value: Any) -> datetime | None:
    """Parse an epoch-milliseconds number or a date string into an aware datetime.

    Strings may be ISO-8601 or RFC 2822. Values without a zone are local
    time, except date-only ISO strings, which are UTC.
    """
    if not value or isinstance(value, bool):
        return None

    if isinstance(value, (int, float)):
        try:
            return datetime.fromtimestamp(value / 1000, tz=timezone.utc)
        except (OverflowError, OSError, ValueError):
            return None

    if isinstance(value, str):
        ts = _parse_date_string(value.strip())
        if ts is None:
            return None
        if ts.tzinfo is None:
            ts = ts.astimezone()
        return ts

    return None


def decode_line(line: str) -> dict[str, Any] | None:
    """Decode one transcript line, or None if it is not a JSON object."""
    try:
        record = json.loads(line)
    except json.JSONDecodeError:
        # Partial trailing lines are expected in live transcripts
        return None
    if not isinstance(record, dict):
        return None
    return record


def record_timestamp(record: dict[str, Any]) -> datetime | None:
    """Timestamp of a record: top-level first, then message.timestamp."""
    ts = parse_timestamp(record.get("timestamp"))
    if ts is not None:
        return ts
    message = record.get("message")
    if isinstance(message, dict):
        return parse_timestamp(message.get("timestamp"))
    return None


def _content_blocks(message: dict[str, Any]) -> list[dict[str, Any]]:
    content = message.get("content")
    if not isinstance(content, list):
        return []
    return [block for block in content if isinstance(block, dict)]


def extract_text_parts(message: dict[str, Any]) -> list[str]:
    """Collect the free-text fragments of a message in block order."""
    content = message.get("content")
    if isinstance(content, str):
        return [content]

    parts: list[str] = []
    for block in _content_blocks(message):
        for key in ("text", "thinking", "content"):
            value = block.get(key)
            if isinstance(value, str):
                parts.append(value)
    return parts


# One normalizer per historical tool-call shape. Each yields (id, tool, args).


def _from_function_call(message: dict[str, Any]) -> list[tuple[Any, Any, Any]]:
    call = message.get("function_call")
    if not isinstance(call, dict) or not call:
        return []
    return [(_call_id(call.get("id")), call.get("name"), call.get("arguments"))]


def _from_function_calls(message: dict[str, Any]) -> list[tuple[Any, Any, Any]]:
    calls = message.get("function_calls")
    if not isinstance(calls, list):
        return []
    return [
        (_call_id(call.get("id"), call.get("tool_call_id")), call.get("name"), call.get("arguments"))
        for call in calls
        if isinstance(call, dict)
    ]


def _from_tool_calls(message: dict[str, Any]) -> list[tuple[Any, Any, Any]]:
    calls = message.get("tool_calls")
    if not isinstance(calls, list):
        return []
    normalized = []
    for call in calls:
        if not isinstance(call, dict):
            continue
        fn = call.get("function")
        if not isinstance(fn, dict):
            fn = {}
        normalized.append(
            (
                _call_id(call.get("id"), call.get("tool_call_id")),
                _first(fn.get("name"), call.get("name")),
                _first(fn.get("arguments"), call.get("arguments")),
            )
        )
    return normalized


def _from_content_blocks(message: dict[str, Any]) -> list[tuple[Any, Any, Any]]:
    return [
        (
            _call_id(block.get("id"), block.get("toolCallId"), block.get("tool_call_id")),
            block.get("name"),
            block.get("arguments"),
        )
        for block in _content_blocks(message)
        if block.get("type") in TOOL_CALL_BLOCK_TYPES
    ]


TOOL_CALL_SHAPES = (
    _from_function_call,
    _from_function_calls,
    _from_tool_calls,
    _from_content_blocks,
)


def extract_tool_calls(message: dict[str, Any]) -> list[tuple[str | None, str, Any]]:
    """Normalize every tool-call shape in a message to (id, tool, args).

    Entries without a tool name are dropped.
    """
    calls = []
    for shape in TOOL_CALL_SHAPES:
        for call_id, tool, args in shape(message):
            if tool:
                calls.append((call_id, str(tool), args))
    return calls


def extract_tool_results(message: dict[str, Any]) -> list[ToolResult]:
    """Tool results carried by a message itself and by its content blocks."""
    results: list[ToolResult] = []

    if message.get("role") in TOOL_RESULT_ROLES:
        results.append(
            ToolResult(
                tool_call_id=_call_id(
                    message.get("toolCallId"), message.get("tool_call_id"), message.get("id")
                ),
                tool_name=_first(message.get("toolName"), message.get("name")),
                content=message.get("content"),
            )
        )

    for block in _content_blocks(message):
        if block.get("type") in TOOL_RESULT_BLOCK_TYPES:
            results.append(
                ToolResult(
                    tool_call_id=_call_id(
                        block.get("toolCallId"), block.get("tool_call_id"), block.get("id")
                    ),
                    tool_name=_first(block.get("toolName"), block.get("name")),
                    content=block.get("content"),
                )
            )

    return results


def normalize_tool_content(content: Any) -> str:
    """Flatten a tool result payload to a display string."""
    if content is None:
        return ""
    if isinstance(content, str):
        return content
    if isinstance(content, list):
        parts = []
        for block in content:
            if not isinstance(block, dict):
                continue
            if isinstance(block.get("text"), str):
                parts.append(block["text"])
            elif isinstance(block.get("content"), str):
                parts.append(block["content"])
            else:
                parts.append(to_json(block))
        return "".join(parts)
    return to_json(content)


class SessionParser:
    """Accumulates text and correlated tool calls for one session.

    Results are matched to calls by id when possible. Otherwise they go to
    the most recent call that is still open, which assumes results arrive
    in call order with at most one call in flight.
    """

    def __init__(self, session_id: str, start: datetime, end: datetime) -> None:
        self.session_id = session_id
        self.start = start
        self.end = end
        self.tool_calls: list[ToolCall] = []
        self._calls_by_id: dict[str, ToolCall] = {}
        self._text_parts: list[str] = []
        self._ambiguous = 0
        self._open_calls = 0

    def feed(self, line: str) -> None:
        record = decode_line(line)
        if record is None:
            logger.debug("Skipping unparseable line in %s", self.session_id)
            return

        ts = record_timestamp(record)
        if ts is None or ts < self.start or ts >= self.end:
            return

        if record.get("type") != "message" and record.get("message") is None:
            return

        message = record.get("message")
        if not isinstance(message, dict):
            message = {}

        self._text_parts.extend(extract_text_parts(message))

        if message.get("role") == "assistant":
            for call_id, tool, args in extract_tool_calls(message):
                self._add_call(call_id, tool, args, ts)

        for result in extract_tool_results(message):
            self._attach_result(result)

    def _add_call(self, call_id: str | None, tool: str, args: Any, ts: datetime) -> None:
        call = ToolCall(
            id=call_id,
            tool=tool,
            args=args,
            timestamp=ts,
            index=len(self.tool_calls),
        )
        self.tool_calls.append(call)
        self._open_calls += 1
        if call_id:
            self._calls_by_id[call_id] = call

    def _attach_result(self, result: ToolResult) -> None:
        target = self._calls_by_id.get(result.tool_call_id) if result.tool_call_id else None
        if target is None:
            target = self._latest_open_call()
            if target is None:
                return
            if self._open_calls > 1:
                self._ambiguous += 1
                logger.debug(
                    "Result for %r in %s matched by position with %d calls open",
                    target.tool,
                    self.session_id,
                    self._open_calls,
                )

        # An empty result leaves the call open for a later one
        if not target.result:
            target.result = normalize_tool_content(result.content)
            if target.result:
                self._open_calls -= 1

    def _latest_open_call(self) -> ToolCall | None:
        for call in reversed(self.tool_calls):
            if not call.result:
                return call
        return None

    def extraction(self) -> SessionExtraction:
        return SessionExtraction(
            session_id=self.session_id,
            text=" ".join(self._text_parts),
            tool_calls=self.tool_calls,
            ambiguous_results=self._ambiguous,
        )


def parse_session_lines(
    lines: Iterable[str],
    start: datetime,
    end: datetime,
    session_id: str = "",
) -> SessionExtraction:
    """Extract session text and tool calls from records in [start, end)."""
    parser = SessionParser(session_id, start, end)
    for line in lines:
        if line:
            parser.feed(line)
    return parser.extraction()
