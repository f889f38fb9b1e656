"""EventBridge subscriber for the Status Bus.

Forwards each :class:`StatusMessage` as one ``put_events`` entry so chat
and paging collaborators can route on ``detail.status``.
"""

from __future__ import annotations

import json
from typing import Any

from botocore.exceptions import BotoCoreError, ClientError

from eventscale.bus.status_bus import StatusMessage
from eventscale.core.errors import BackendUnavailableError
from eventscale.core.logging import get_logger

logger = get_logger(__name__)

EVENT_SOURCE = "custom.eventscale"
DETAIL_TYPE = "Status Notification"


class EventBridgePublisher:
    """Callable Status Bus subscriber backed by an ``events`` boto3 client."""

    def __init__(self, client: Any, event_bus_name: str, *, source: str = EVENT_SOURCE):
        self._client = client
        self.event_bus_name = event_bus_name
        self.source = source

    def build_entry(self, message: StatusMessage) -> dict[str, str]:
        return {
            "Source": self.source,
            "DetailType": DETAIL_TYPE,
            "Detail": json.dumps(message.to_dict(), default=str),
            "EventBusName": self.event_bus_name,
        }

    def __call__(self, message: StatusMessage) -> None:
        try:
            response = self._client.put_events(Entries=[self.build_entry(message)])
        except (ClientError, BotoCoreError) as e:
            raise BackendUnavailableError(f"put_events failed: {e}", cause=e).with_context(
                event_id=message.pk, backend="eventbridge"
            ) from e

        if response.get("FailedEntryCount"):
            entry = (response.get("Entries") or [{}])[0]
            raise BackendUnavailableError(
                f"EventBridge rejected status notification: {entry.get('ErrorMessage', 'unknown')}"
            ).with_context(event_id=message.pk, backend="eventbridge", code=entry.get("ErrorCode"))

        logger.debug(
            "status_notification_published",
            event_id=message.pk,
            status=message.status,
            event_bus=self.event_bus_name,
        )
