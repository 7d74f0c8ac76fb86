"""Decide whether session text refers to a task."""

import re
from collections.abc import Callable

from session_sync.models import Task


def build_task_matcher(task: Task) -> Callable[[str], bool]:
    """Build a case-insensitive predicate for text mentioning a task.

    Matches "task #<id>" (space and "#" optional), "#<id>" and "tasks/<id>",
    or the task name when it has one.
    """
    task_id = re.escape(str(task.id))
    name = (task.name or "").strip()

    id_pattern = re.compile(
        rf"(?:\btask\s*#?{task_id}|#{task_id}|\btasks/{task_id})\b",
        re.IGNORECASE,
    )
    # Lookarounds instead of \b so names that start or end with punctuation still match
    name_pattern = (
        re.compile(rf"(?<!\w){re.escape(name)}(?!\w)", re.IGNORECASE) if name else None
    )

    def matches(text: str) -> bool:
        if not text:
            return False
        if id_pattern.search(text):
            return True
        return bool(name_pattern and name_pattern.search(text))

    return matches
