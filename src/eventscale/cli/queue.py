"""
CLI: ``eventscale queue``: inspect the Work Queue and redrive dead letters.
"""

from __future__ import annotations

import typer

from eventscale.cli import utils
from eventscale.queue.work_queue import WorkQueue

app = typer.Typer(no_args_is_help=True)

_COLUMNS = ["id", "status", "receive_count", "enqueued_at", "visible_at", "last_error"]


def _queue(database: str | None) -> WorkQueue:
    settings = utils.load_settings(database)
    return WorkQueue(utils.get_connection(database), settings.queue_config())


@app.command("list")
def list_ready(
    limit: int = typer.Option(100, "--limit", "-n"),
    database: str | None = typer.Option(None, "--database", "-d"),  # noqa: UP007
    json_out: bool = typer.Option(False, "--json"),
) -> None:
    """List messages waiting for dispatch."""
    utils.output_items(_queue(database).list_ready(limit), as_json=json_out, title="Queue", columns=_COLUMNS)


@app.command("dead")
def list_dead(
    limit: int = typer.Option(100, "--limit", "-n"),
    database: str | None = typer.Option(None, "--database", "-d"),  # noqa: UP007
    json_out: bool = typer.Option(False, "--json"),
) -> None:
    """List dead-lettered messages."""
    utils.output_items(_queue(database).list_dead(limit), as_json=json_out, title="Dead letters", columns=_COLUMNS)


@app.command("redrive")
def redrive(
    message_id: str | None = typer.Argument(None, help="Message id (default: all dead letters)"),  # noqa: UP007
    database: str | None = typer.Option(None, "--database", "-d"),  # noqa: UP007
) -> None:
    """Move dead-lettered messages back to the queue."""
    count = _queue(database).redrive(message_id)
    utils.console.print(f"[green]Redriven[/green] {count} message(s)")
