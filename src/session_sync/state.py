"""JSON file storage for sync state."""

import json
import logging
from pathlib import Path
from typing import Any

from session_sync.models import STATE_VERSION, SyncState

logger = logging.getLogger(__name__)


def load_state(path: Path) -> SyncState:
    """Load sync state, or an empty state if the file is missing or invalid.

    A missing file just means nothing has been synced yet.
    """
    if not path.exists():
        return SyncState()

    try:
        data = json.loads(path.read_text(encoding="utf-8"))
    except (OSError, ValueError) as e:
        logger.warning("Ignoring unreadable state file %s: %s", path, e)
        return SyncState()

    if not isinstance(data, dict):
        return SyncState()

    synced = data.get("synced")
    if not isinstance(synced, dict):
        synced = {}

    return SyncState(
        version=data.get("version", STATE_VERSION),
        synced={str(task_id): keys for task_id, keys in synced.items() if isinstance(keys, dict)},
    )


def save_state(path: Path, state: SyncState) -> None:
    """Write the full state, replacing any previous contents."""
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(json.dumps(state.to_dict(), indent=2), encoding="utf-8")


def summarize_state(state: SyncState) -> dict[str, Any]:
    """Get state statistics."""
    return {
        "version": state.version,
        "task_count": len(state.synced),
        "call_count": sum(len(keys) for keys in state.synced.values()),
    }
