"""
CLI: ``eventscale targets``: look up documents and products before creating an Event.
"""

from __future__ import annotations

import typer

from eventscale.cli import utils
from eventscale.core.errors import EventScaleError
from eventscale.domain.models import OrchestrationType

app = typer.Typer(no_args_is_help=True)


def _backend(orchestration_type: OrchestrationType):
    from eventscale.backends import build_backends

    return build_backends(utils.load_settings())[orchestration_type]


@app.command("describe")
def describe(
    orchestration_type: OrchestrationType = typer.Argument(..., help="Automation or Catalog"),
    target: str = typer.Argument(..., help="Document name or product id"),
    json_out: bool = typer.Option(False, "--json"),
) -> None:
    """Describe a document or product."""
    try:
        details = _backend(orchestration_type).describe_target(target)
    except EventScaleError as e:
        raise utils.fail(e) from e
    utils.output_item(details, as_json=json_out, title=target)


@app.command("versions")
def versions(
    orchestration_type: OrchestrationType = typer.Argument(..., help="Automation or Catalog"),
    target: str = typer.Argument(..., help="Document name or product id"),
    json_out: bool = typer.Option(False, "--json"),
) -> None:
    """List document versions or provisioning artifacts."""
    try:
        items = _backend(orchestration_type).list_versions(target)
    except EventScaleError as e:
        raise utils.fail(e) from e
    utils.output_items(items, as_json=json_out, title=f"Versions: {target}")


@app.command("parameters")
def parameters(
    orchestration_type: OrchestrationType = typer.Argument(..., help="Automation or Catalog"),
    target: str = typer.Argument(..., help="Document name or product id"),
    version: str | None = typer.Option(None, "--version"),  # noqa: UP007
    json_out: bool = typer.Option(False, "--json"),
) -> None:
    """List the provisioning parameters a target accepts."""
    try:
        items = _backend(orchestration_type).list_parameters(target, version)
    except EventScaleError as e:
        raise utils.fail(e) from e
    utils.output_items(items, as_json=json_out, title=f"Parameters: {target}")
