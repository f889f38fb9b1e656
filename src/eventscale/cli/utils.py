"""
CLI utility helpers: settings, connections and output formatting.
"""

from __future__ import annotations

import json
from dataclasses import asdict
from typing import Any

import typer
from rich.console import Console
from rich.table import Table

from eventscale.core.errors import EventScaleError
from eventscale.core.settings import EventScaleSettings
from eventscale.core.sqlite_conn import SqliteConnection, connect

console = Console()
err_console = Console(stderr=True)


# ── Settings / connection helpers ────────────────────────────────────────


def load_settings(database: str | None = None) -> EventScaleSettings:
    """Environment settings, with ``--database`` taking precedence."""
    if database:
        return EventScaleSettings(database_path=database)
    return EventScaleSettings()


def get_connection(database: str | None = None) -> SqliteConnection:
    """Open (and initialize) the configured sqlite database."""
    return connect(load_settings(database).database_path)


def build_worker(database: str | None = None):
    """Fully wired worker, including AWS clients."""
    from eventscale.runtime import OrchestrationWorker

    return OrchestrationWorker.from_settings(load_settings(database))


def fail(error: EventScaleError) -> typer.Exit:
    """Print *error* and return the exit to raise."""
    err_console.print(f"[bold red]Error[/bold red] ({type(error).__name__}): {error.message}")
    return typer.Exit(code=1)


# ── Output helpers ───────────────────────────────────────────────────────


def _to_dict(obj: Any) -> dict[str, Any]:
    """Convert a model / dataclass / dict to a plain dict."""
    if hasattr(obj, "to_dict"):
        return obj.to_dict()
    if hasattr(obj, "__dataclass_fields__"):
        return asdict(obj)
    if isinstance(obj, dict):
        return obj
    return {"value": str(obj)}


def output_items(
    items: list,
    *,
    as_json: bool = False,
    title: str = "",
    columns: list[str] | None = None,
) -> None:
    """Render a list as a Rich table (or JSON)."""
    rows = [_to_dict(item) for item in items]
    if as_json:
        console.print_json(json.dumps(rows, default=str))
        return
    if not rows:
        console.print("[dim]No items.[/dim]")
        return

    columns = columns or list(rows[0])
    table = Table(title=title or None, show_lines=False, pad_edge=False)
    for col in columns:
        table.add_column(col, overflow="fold")
    for row in rows:
        table.add_row(*("" if row.get(col) is None else str(row.get(col)) for col in columns))
    console.print(table)


def output_item(item: Any, *, as_json: bool = False, title: str = "") -> None:
    """Render a single object as key-value pairs (or JSON)."""
    data = _to_dict(item)
    if as_json:
        console.print_json(json.dumps(data, default=str))
        return
    if title:
        console.print(f"[bold]{title}[/bold]")
    for k, v in data.items():
        console.print(f"  [cyan]{k}[/cyan]: {v}")
