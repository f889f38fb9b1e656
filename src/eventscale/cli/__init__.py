"""
CLI layer for eventscale.

Typer application whose commands delegate to the store, queue, scheduler
and worker.  This package handles only terminal transport: argument
parsing, coloured output and table formatting.

Entry point::

    eventscale --help
"""

from eventscale.cli.app import app

__all__ = ["app"]
