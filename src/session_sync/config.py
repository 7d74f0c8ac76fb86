"""Defaults and environment variables for session-sync."""

from pathlib import Path

# Task tracker
DEFAULT_API_BASE = "http://localhost:3000"
DEFAULT_USER = "Ada"

# Agent transcripts live at <agents_dir>/<agent>/sessions/*.jsonl
DEFAULT_AGENTS_DIR = Path.home() / ".clawdbot" / "agents"

# Sync state location
STATE_DIR = Path.home() / ".local" / "share" / "session-sync"
DEFAULT_STATE_FILE = STATE_DIR / "state.json"

ENV_API_BASE = "SESSION_SYNC_API_BASE"
ENV_AGENTS_DIR = "SESSION_SYNC_AGENTS_DIR"
ENV_STATE_FILE = "SESSION_SYNC_STATE_FILE"
ENV_USER = "SESSION_SYNC_USER"

# Activity detail limits
MAX_ARGS_CHARS = 250
MAX_RESULT_CHARS = 500
