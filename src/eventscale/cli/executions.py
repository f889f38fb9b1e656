"""
CLI: ``eventscale executions``: inspect workflow executions.
"""

from __future__ import annotations

import typer

from eventscale.cli import utils
from eventscale.workflow.ledger import ExecutionLedger
from eventscale.workflow.models import WorkflowStatus

app = typer.Typer(no_args_is_help=True)

_LIST_COLUMNS = ["name", "workflow", "status", "wake_at", "started_at", "completed_at"]


@app.command("list")
def list_executions(
    status: WorkflowStatus | None = typer.Option(None, "--status", "-s"),  # noqa: UP007
    limit: int = typer.Option(100, "--limit", "-n"),
    database: str | None = typer.Option(None, "--database", "-d"),  # noqa: UP007
    json_out: bool = typer.Option(False, "--json"),
) -> None:
    """List executions, most recently started first."""
    ledger = ExecutionLedger(utils.get_connection(database))
    utils.output_items(
        ledger.list_executions(status=status, limit=limit),
        as_json=json_out,
        title="Executions",
        columns=_LIST_COLUMNS,
    )


@app.command("show")
def show(
    name: str = typer.Argument(..., help="Execution name (the Event id)"),
    database: str | None = typer.Option(None, "--database", "-d"),  # noqa: UP007
    json_out: bool = typer.Option(False, "--json"),
) -> None:
    """Show one execution's state, including its suspension point."""
    execution = ExecutionLedger(utils.get_connection(database)).get(name)
    if execution is None:
        utils.err_console.print(f"[bold red]Error[/bold red]: execution not found: {name}")
        raise typer.Exit(code=1)
    utils.output_item(execution, as_json=json_out, title=name)


@app.command("history")
def history(
    name: str = typer.Argument(..., help="Execution name (the Event id)"),
    database: str | None = typer.Option(None, "--database", "-d"),  # noqa: UP007
    json_out: bool = typer.Option(False, "--json"),
) -> None:
    """Show the append-only history of one execution."""
    events = ExecutionLedger(utils.get_connection(database)).get_events(name)
    utils.output_items(events, as_json=json_out, title=f"History: {name}")
