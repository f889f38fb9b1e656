"""Work queue message format.

A message is a JSON snapshot of the Event at enqueue time, with
``provisioning_parameters`` already rendered in the shape its backend
expects::

    {
      "id": "4f0c…", "name": "game-day",
      "event_starts_ts": "2026-05-01T10:00:00.000000+00:00",
      "event_ends_ts":   "2026-05-01T12:00:00.000000+00:00",
      "orchestration_type": "Automation",
      "document_or_product_reference": "ScaleOutWebTier",
      "version_or_artifact_id": null,
      "provisioning_parameters": {"InstanceCount": ["4"]},
      ...
    }

Both scheduler paths build messages through :func:`build_message`.
"""

from __future__ import annotations

import json
from typing import Any

from eventscale.backends.formatting import format_parameters
from eventscale.core.errors import MessageFormatError
from eventscale.domain.models import Event, OrchestrationType

REQUIRED_FIELDS = (
    "id",
    "orchestration_type",
    "document_or_product_reference",
    "event_starts_ts",
    "event_ends_ts",
)


def build_message(event: Event) -> dict[str, Any]:
    """Snapshot *event* as a queue message body."""
    message = event.to_dict()
    message["provisioning_parameters"] = format_parameters(
        event.orchestration_type, event.provisioning_parameters
    )
    return message


def encode_message(message: dict[str, Any]) -> str:
    return json.dumps(message, sort_keys=True)


def parse_message(body: str | bytes) -> dict[str, Any]:
    """Decode and validate a message body.

    Raises:
        MessageFormatError: body is not JSON or lacks a required field
    """
    try:
        message = json.loads(body)
    except (TypeError, ValueError) as e:
        raise MessageFormatError(f"Message body is not valid JSON: {e}", cause=e) from e
    if not isinstance(message, dict):
        raise MessageFormatError("Message body must be a JSON object")

    missing = [f for f in REQUIRED_FIELDS if not message.get(f)]
    if missing:
        raise MessageFormatError(f"Message is missing fields: {', '.join(missing)}")
    try:
        OrchestrationType(message["orchestration_type"])
    except ValueError as e:
        raise MessageFormatError(
            f"Unknown orchestration_type: {message['orchestration_type']!r}", cause=e
        ) from e
    return message
