"""
Root Typer application for the eventscale CLI.

Top-level commands drive the worker; sub-commands inspect and manage
Events, executions, the Work Queue and backend resources.
"""

from __future__ import annotations

import json

import typer
from typer import Typer

from eventscale import __version__
from eventscale.cli import utils
from eventscale.core.errors import EventScaleError
from eventscale.core.logging import configure_logging

app = Typer(
    name="eventscale",
    help="eventscale: scheduled, time-bounded infrastructure actions.",
    no_args_is_help=True,
    rich_markup_mode="rich",
)


def _version_callback(value: bool) -> None:
    if value:
        typer.echo(f"eventscale {__version__}")
        raise typer.Exit()


@app.callback()
def main(
    version: bool | None = typer.Option(  # noqa: UP007
        None,
        "--version",
        "-V",
        help="Show version and exit.",
        callback=_version_callback,
        is_eager=True,
    ),
    log_level: str | None = typer.Option(None, "--log-level", help="Override EVENTSCALE_LOG_LEVEL."),  # noqa: UP007
) -> None:
    """eventscale CLI: run the worker, manage Events and executions."""
    settings = utils.load_settings()
    configure_logging(level=log_level or settings.log_level, json_format=settings.json_logs)


# ── Worker commands ──────────────────────────────────────────────────────


@app.command("worker")
def worker(
    database: str | None = typer.Option(None, "--database", "-d"),  # noqa: UP007
    interval: float | None = typer.Option(None, "--interval", help="Seconds between ticks"),  # noqa: UP007
) -> None:
    """Run scheduler, dispatcher and engine until interrupted."""
    from eventscale.scheduling import ThreadSchedulerBackend

    orchestration = utils.build_worker(database)
    seconds = interval or orchestration.settings.tick_interval_seconds
    backend = ThreadSchedulerBackend()
    utils.console.print(f"[bold green]Starting eventscale worker[/bold green] (tick={seconds}s)")

    backend.start(orchestration.tick, seconds)
    try:
        backend.wait()
    except KeyboardInterrupt:
        utils.console.print("\n[yellow]Worker stopped by user[/yellow]")
    finally:
        backend.stop()


@app.command("tick")
def tick(
    database: str | None = typer.Option(None, "--database", "-d"),  # noqa: UP007
    json_out: bool = typer.Option(False, "--json"),
) -> None:
    """Run one scheduler check, dispatcher drain and engine pass."""
    try:
        report = utils.build_worker(database).tick_once()
    except EventScaleError as e:
        raise utils.fail(e) from e
    if json_out:
        utils.console.print_json(json.dumps(report.to_dict(), default=str))
        return
    utils.output_item(report.to_dict(), title="Tick")


@app.command("scan")
def scan(
    database: str | None = typer.Option(None, "--database", "-d"),  # noqa: UP007
) -> None:
    """Run the periodic scheduler path now."""
    from eventscale.queue.work_queue import WorkQueue
    from eventscale.scheduling import Scheduler
    from eventscale.store import EventStore

    settings = utils.load_settings(database)
    conn = utils.get_connection(database)
    scheduler = Scheduler(EventStore(conn), WorkQueue(conn, settings.queue_config()), settings.scheduler_config())
    run = scheduler.run_periodic()
    if run.error:
        utils.err_console.print(f"[bold red]Error[/bold red]: {run.error}")
        raise typer.Exit(code=1)
    utils.console.print(f"Enqueued {len(run.enqueued)} event(s), {len(run.failed)} failed")
    if run.failed:
        raise typer.Exit(code=1)


@app.command("dispatch")
def dispatch(
    database: str | None = typer.Option(None, "--database", "-d"),  # noqa: UP007
    limit: int | None = typer.Option(None, "--limit", "-n"),  # noqa: UP007
) -> None:
    """Start executions for queued messages."""
    try:
        result = utils.build_worker(database).dispatcher.drain(limit)
    except EventScaleError as e:
        raise utils.fail(e) from e
    utils.console.print(
        f"Started {result.started}, duplicate {result.duplicate}, rejected {result.rejected}, "
        f"invalid {result.invalid}, failed {result.failed}"
    )


@app.command("advance")
def advance(
    name: str = typer.Argument(..., help="Execution name (the Event id)"),
    database: str | None = typer.Option(None, "--database", "-d"),  # noqa: UP007
    json_out: bool = typer.Option(False, "--json"),
) -> None:
    """Advance one execution now, if it is due."""
    try:
        execution = utils.build_worker(database).engine.advance(name)
    except EventScaleError as e:
        raise utils.fail(e) from e
    if execution is None:
        utils.err_console.print(f"[bold red]Error[/bold red]: execution not found: {name}")
        raise typer.Exit(code=1)
    utils.output_item(execution, as_json=json_out, title=name)


# ── Sub-command registration ─────────────────────────────────────────────

from eventscale.cli.discover import app as discover_app  # noqa: E402
from eventscale.cli.events import app as events_app  # noqa: E402
from eventscale.cli.executions import app as executions_app  # noqa: E402
from eventscale.cli.queue import app as queue_app  # noqa: E402
from eventscale.cli.targets import app as targets_app  # noqa: E402

app.add_typer(events_app, name="events", help="Create, list, show and delete Events.")
app.add_typer(executions_app, name="executions", help="Inspect workflow executions.")
app.add_typer(queue_app, name="queue", help="Work Queue and dead letters.")
app.add_typer(discover_app, name="discover", help="Tag-filtered resource discovery.")
app.add_typer(targets_app, name="targets", help="Document and product lookups.")
