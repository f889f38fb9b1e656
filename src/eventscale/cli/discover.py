"""
CLI: ``eventscale discover``: list tagged documents or products.
"""

from __future__ import annotations

import typer

from eventscale.cli import utils
from eventscale.core.errors import EventScaleError
from eventscale.domain.models import OrchestrationType

app = typer.Typer(no_args_is_help=True)


def _discover(orchestration_type: OrchestrationType, tag_key: str | None, tag_value: str | None, json_out: bool) -> None:
    from eventscale.discovery import build_discovery

    settings = utils.load_settings()
    tag_key = tag_key or settings.tag_key
    tag_value = tag_value or settings.tag_value
    if not tag_key or not tag_value:
        utils.err_console.print("[bold red]Error[/bold red]: --tag-key and --tag-value are required")
        raise typer.Exit(code=2)

    try:
        resources = build_discovery(orchestration_type, settings).discover(tag_key, tag_value)
    except EventScaleError as e:
        raise utils.fail(e) from e

    if json_out:
        utils.console.print_json(data=resources)
        return
    if not resources:
        utils.console.print("[dim]No tagged resources.[/dim]")
    for resource in resources:
        utils.console.print(resource)


@app.command("automation")
def automation(
    tag_key: str | None = typer.Option(None, "--tag-key"),  # noqa: UP007
    tag_value: str | None = typer.Option(None, "--tag-value"),  # noqa: UP007
    json_out: bool = typer.Option(False, "--json"),
) -> None:
    """Automation documents carrying the tag."""
    _discover(OrchestrationType.AUTOMATION, tag_key, tag_value, json_out)


@app.command("catalog")
def catalog(
    tag_key: str | None = typer.Option(None, "--tag-key"),  # noqa: UP007
    tag_value: str | None = typer.Option(None, "--tag-value"),  # noqa: UP007
    json_out: bool = typer.Option(False, "--json"),
) -> None:
    """Catalog products carrying the tag."""
    _discover(OrchestrationType.CATALOG, tag_key, tag_value, json_out)
