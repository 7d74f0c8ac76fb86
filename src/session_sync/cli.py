"""CLI for session-sync."""

import logging
from datetime import datetime
from pathlib import Path
from typing import Annotated

import typer
from rich.console import Console
from rich.logging import RichHandler
from rich.markup import escape

from session_sync import __version__
from session_sync.config import (
    DEFAULT_AGENTS_DIR,
    DEFAULT_API_BASE,
    DEFAULT_STATE_FILE,
    DEFAULT_USER,
    ENV_AGENTS_DIR,
    ENV_API_BASE,
    ENV_STATE_FILE,
    ENV_USER,
)

app = typer.Typer(
    name="session-sync",
    help="Forward agent session tool calls to the tasks they work on.",
    no_args_is_help=True,
)
console = Console()
err_console = Console(stderr=True)

StateFileOption = Annotated[
    Path,
    typer.Option("--state-file", envvar=ENV_STATE_FILE, help="Sync state JSON file"),
]


def version_callback(value: bool) -> None:
    if value:
        console.print(f"session-sync {__version__}")
        raise typer.Exit()


def configure_logging(verbose: bool) -> None:
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.WARNING,
        format="%(message)s",
        handlers=[RichHandler(console=err_console, show_path=False)],
        force=True,
    )


def parse_now(value: str | None) -> datetime | None:
    if value is None:
        return None
    try:
        return datetime.fromisoformat(value.strip().replace("Z", "+00:00"))
    except ValueError:
        raise typer.BadParameter(f"Invalid date format: {value}") from None


@app.callback()
def main(
    version: Annotated[
        bool | None,
        typer.Option("--version", "-v", callback=version_callback, is_eager=True),
    ] = None,
) -> None:
    """Forward agent session tool calls to the tasks they work on."""
    pass


@app.command()
def sync(
    api_base: Annotated[
        str, typer.Option("--api-base", envvar=ENV_API_BASE, help="Task tracker base URL")
    ] = DEFAULT_API_BASE,
    agents_dir: Annotated[
        Path,
        typer.Option("--agents-dir", envvar=ENV_AGENTS_DIR, help="Root of <agent>/sessions/*.jsonl"),
    ] = DEFAULT_AGENTS_DIR,
    state_file: StateFileOption = DEFAULT_STATE_FILE,
    user: Annotated[
        str, typer.Option("--user", envvar=ENV_USER, help="User recorded on activity entries")
    ] = DEFAULT_USER,
    dry_run: Annotated[
        bool, typer.Option("--dry-run", "-d", help="Show what would be posted")
    ] = False,
    now: Annotated[
        str | None,
        typer.Option("--now", help="Reference time (e.g., 2024-06-15T12:00:00)"),
    ] = None,
    verbose: Annotated[bool, typer.Option("--verbose", "-V", help="Debug logging")] = False,
) -> None:
    """Post today's tool calls to every task in the doing column."""
    configure_logging(verbose)
    reference_time = parse_now(now)

    from session_sync.client import TaskApiError, TaskClient
    from session_sync.sync import sync_session_logs

    try:
        with TaskClient(api_base) as client:
            result = sync_session_logs(
                client,
                agents_dir=agents_dir,
                state_file=state_file,
                user=user,
                dry_run=dry_run,
                now=reference_time,
            )
    except (TaskApiError, OSError) as e:
        err_console.print(f"[red]sync-session-logs failed: {escape(str(e))}[/red]")
        raise typer.Exit(1) from None

    console.print(result.summary_line())


@app.command()
def status(state_file: StateFileOption = DEFAULT_STATE_FILE) -> None:
    """Show sync state statistics."""
    from session_sync.state import load_state, summarize_state

    console.print(f"State path: {state_file}")
    if not state_file.exists():
        console.print("[yellow]No sync state found. Run 'session-sync sync' first.[/yellow]")
        return

    stats = summarize_state(load_state(state_file))
    console.print(f"Tasks tracked: {stats['task_count']}")
    console.print(f"Tool calls synced: {stats['call_count']}")


if __name__ == "__main__":
    app()
