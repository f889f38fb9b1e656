"""
CLI: ``eventscale events``: create, list, show and delete Events.

Creating an Event runs the scheduler's change-notification path, so an
Event starting within the lookahead window is enqueued right away.
"""

from __future__ import annotations

from datetime import datetime

import typer

from eventscale.cli import utils
from eventscale.core.errors import EventScaleError
from eventscale.core.timestamps import from_iso8601
from eventscale.domain.models import Event, EventStatus, OrchestrationType, ProvisioningParameter
from eventscale.queue.work_queue import WorkQueue
from eventscale.scheduling.scheduler import Scheduler
from eventscale.store.event_store import EventStore

app = typer.Typer(no_args_is_help=True)

_LIST_COLUMNS = ["id", "name", "event_status", "orchestration_type", "event_starts_ts", "event_ends_ts"]


def _parse_timestamp(value: str, option: str) -> datetime:
    try:
        return from_iso8601(value)
    except ValueError:
        raise typer.BadParameter(f"{value!r} is not an ISO-8601 timestamp", param_hint=option) from None


def _parse_param(value: str) -> ProvisioningParameter:
    key, sep, default = value.partition("=")
    if not sep or not key:
        raise typer.BadParameter(f"{value!r} must look like KEY=VALUE", param_hint="--param")
    return ProvisioningParameter(key=key, default_value=default)


@app.command("create")
def create(
    name: str = typer.Argument(..., help="Event name"),
    starts: str = typer.Option(..., "--starts", help="Start timestamp (ISO-8601, UTC if no offset)"),
    ends: str = typer.Option(..., "--ends", help="End timestamp (ISO-8601)"),
    orchestration_type: OrchestrationType = typer.Option(..., "--type", "-t", help="Automation or Catalog"),
    target: str = typer.Option(..., "--target", help="Automation document or Catalog product id"),
    version: str | None = typer.Option(None, "--version", help="Document version / artifact id (default: latest)"),  # noqa: UP007
    params: list[str] = typer.Option([], "--param", "-p", help="Provisioning parameter KEY=VALUE"),
    notes: str | None = typer.Option(None, "--notes", help="Additional notes"),  # noqa: UP007
    database: str | None = typer.Option(None, "--database", "-d"),  # noqa: UP007
    json_out: bool = typer.Option(False, "--json"),
) -> None:
    """Register a new Event."""
    event = Event.create(
        name=name,
        event_starts_ts=_parse_timestamp(starts, "--starts"),
        event_ends_ts=_parse_timestamp(ends, "--ends"),
        orchestration_type=orchestration_type,
        document_or_product_reference=target,
        version_or_artifact_id=version,
        provisioning_parameters=[_parse_param(p) for p in params],
        additional_notes=notes,
    )

    settings = utils.load_settings(database)
    conn = utils.get_connection(database)
    store = EventStore(conn)
    scheduler = Scheduler(store, WorkQueue(conn, settings.queue_config()), settings.scheduler_config())
    store.add_insert_listener(scheduler.on_event_inserted)
    try:
        created = store.create_event(event)
    except EventScaleError as e:
        raise utils.fail(e) from e
    utils.output_item(created, as_json=json_out, title="Event created")


@app.command("list")
def list_events(
    status: EventStatus | None = typer.Option(None, "--status", "-s"),  # noqa: UP007
    limit: int = typer.Option(100, "--limit", "-n"),
    database: str | None = typer.Option(None, "--database", "-d"),  # noqa: UP007
    json_out: bool = typer.Option(False, "--json"),
) -> None:
    """List Events, soonest start first."""
    store = EventStore(utils.get_connection(database))
    utils.output_items(store.list_events(status=status, limit=limit), as_json=json_out, title="Events", columns=_LIST_COLUMNS)


@app.command("show")
def show(
    event_id: str = typer.Argument(..., help="Event id"),
    database: str | None = typer.Option(None, "--database", "-d"),  # noqa: UP007
    json_out: bool = typer.Option(False, "--json"),
) -> None:
    """Show one Event."""
    store = EventStore(utils.get_connection(database))
    try:
        event = store.get_event(event_id)
    except EventScaleError as e:
        raise utils.fail(e) from e
    utils.output_item(event, as_json=json_out, title=event.name)


@app.command("delete")
def delete(
    event_id: str = typer.Argument(..., help="Event id"),
    database: str | None = typer.Option(None, "--database", "-d"),  # noqa: UP007
) -> None:
    """Delete an Event (only when registered, ended or failed)."""
    store = EventStore(utils.get_connection(database))
    try:
        store.delete_event(event_id)
    except EventScaleError as e:
        raise utils.fail(e) from e
    utils.console.print(f"[green]Deleted[/green] {event_id}")
