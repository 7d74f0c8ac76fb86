"""HTTP client for the task tracker API."""

from __future__ import annotations

from typing import Any

import httpx

from session_sync.models import Task


class TaskApiError(RuntimeError):
    """The task tracker rejected a request or could not be reached."""


class TaskClient:
    """Minimal client for listing tasks and posting task activity."""

    def __init__(self, base_url: str, client: httpx.Client | None = None) -> None:
        self._base_url = base_url.rstrip("/")
        self._client = client or httpx.Client(base_url=self._base_url, timeout=30.0)

    def close(self) -> None:
        """Close the underlying HTTP client."""
        self._client.close()

    def __enter__(self) -> TaskClient:
        return self

    def __exit__(self, *exc_info: object) -> None:
        self.close()

    def fetch_tasks(self) -> list[Task]:
        """Get all tasks."""
        try:
            response = self._client.get("/api/tasks")
        except httpx.HTTPError as e:
            raise TaskApiError(f"Failed to load tasks: {e}") from e
        if not response.is_success:
            raise TaskApiError(
                f"Failed to load tasks: {response.status_code} {response.reason_phrase}"
            )
        try:
            data = response.json()
        except ValueError as e:
            raise TaskApiError(f"Failed to load tasks: invalid JSON ({e})") from e
        if not isinstance(data, list):
            raise TaskApiError("Failed to load tasks: expected a JSON list")
        return [Task.from_api(item) for item in data if isinstance(item, dict) and "id" in item]

    def post_activity(self, task_id: int | str, payload: dict[str, Any]) -> None:
        """Add an activity entry to a task."""
        try:
            response = self._client.post(f"/api/tasks/{task_id}/activity", json=payload)
        except httpx.HTTPError as e:
            raise TaskApiError(f"Failed to post activity for task {task_id}: {e}") from e
        if not response.is_success:
            raise TaskApiError(
                f"Failed to post activity for task {task_id}: "
                f"{response.status_code} {response.reason_phrase} {response.text}"
            )
