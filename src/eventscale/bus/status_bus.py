"""
Status Bus: fan-out of lifecycle and error notifications.

Every Event status transition made by the workflow engine produces exactly
one :class:`StatusMessage`.  Subscribers (the EventBridge publisher, a log
sink, tests) receive messages synchronously and in transition order.  A
failing subscriber is logged and never blocks delivery to the others, nor
the transition that produced the message.

Message shape::

    {"status": "scaled", "pk": "<event id>", "sk": "Event",
     "outputs": {...}, "error": null,
     "title": "Event scaled", "description": "...", "source": "mark-scaled"}

Consumers must treat ``status`` as authoritative, not arrival order.
"""

from __future__ import annotations

import uuid
from collections.abc import Callable
from dataclasses import dataclass
from typing import Any

from eventscale.core.logging import get_logger
from eventscale.domain.models import EVENT_SORT_KEY, EventStatus

logger = get_logger(__name__)

__all__ = ["StatusBus", "StatusHandler", "StatusMessage", "log_subscriber"]


_TITLES = {
    EventStatus.DEPLOY: "Event deploying",
    EventStatus.SCALED: "Event scaled",
    EventStatus.DESTROY: "Event tearing down",
    EventStatus.ENDED: "Event ended",
    EventStatus.FAILED: "Event failed",
}


@dataclass(frozen=True)
class StatusMessage:
    """One lifecycle notification."""

    status: str
    pk: str
    sk: str = EVENT_SORT_KEY
    outputs: Any | None = None
    error: dict[str, Any] | None = None
    title: str = ""
    description: str = ""
    source: str = ""

    @classmethod
    def for_transition(
        cls,
        event_id: str,
        status: EventStatus,
        *,
        event_name: str | None = None,
        outputs: Any | None = None,
        error: dict[str, Any] | None = None,
        source: str = "",
    ) -> StatusMessage:
        status = EventStatus(status)
        label = event_name or event_id
        if error:
            description = f"{label}: {error.get('message', 'unknown error')}"
        else:
            description = f"{label} is now {status.value}"
        return cls(
            status=status.value,
            pk=event_id,
            outputs=outputs,
            error=error,
            title=_TITLES.get(status, f"Event {status.value}"),
            description=description,
            source=source,
        )

    @property
    def is_error(self) -> bool:
        return self.status == EventStatus.FAILED.value

    def to_dict(self) -> dict[str, Any]:
        result: dict[str, Any] = {"status": self.status, "pk": self.pk, "sk": self.sk}
        if self.outputs is not None:
            result["outputs"] = self.outputs
        if self.error is not None:
            result["error"] = self.error
        if self.title:
            result["title"] = self.title
        if self.description:
            result["description"] = self.description
        if self.source:
            result["source"] = self.source
        return result


StatusHandler = Callable[[StatusMessage], None]


@dataclass
class _Subscription:
    id: str
    status: str
    handler: StatusHandler

    def matches(self, message: StatusMessage) -> bool:
        return self.status == "*" or self.status == message.status


class StatusBus:
    """In-process fan-out of :class:`StatusMessage`.

    Example::

        bus = StatusBus()
        bus.subscribe("*", log_subscriber)
        bus.subscribe("failed", page_on_call)
        bus.publish(StatusMessage.for_transition(event.id, EventStatus.FAILED, error=...))
    """

    def __init__(self) -> None:
        self._subscriptions: dict[str, _Subscription] = {}

    def subscribe(self, status: str, handler: StatusHandler) -> str:
        """Subscribe *handler* to one status value, or ``"*"`` for all.

        Returns:
            Subscription ID
        """
        sub_id = f"sub_{uuid.uuid4().hex[:12]}"
        self._subscriptions[sub_id] = _Subscription(id=sub_id, status=status, handler=handler)
        return sub_id

    def unsubscribe(self, subscription_id: str) -> None:
        self._subscriptions.pop(subscription_id, None)

    def publish(self, message: StatusMessage) -> int:
        """Deliver *message* to every matching subscriber.

        Returns:
            Number of subscribers that handled it without error
        """
        delivered = 0
        for sub in list(self._subscriptions.values()):
            if not sub.matches(message):
                continue
            try:
                sub.handler(message)
                delivered += 1
            except Exception as e:
                logger.warning(
                    "status_handler_error",
                    subscription_id=sub.id,
                    event_id=message.pk,
                    status=message.status,
                    error=str(e),
                )
        return delivered

    @property
    def subscription_count(self) -> int:
        return len(self._subscriptions)


def log_subscriber(message: StatusMessage) -> None:
    """Write every status notification to the structured log."""
    if message.is_error:
        logger.error("event_status_notification", event_id=message.pk, status=message.status, error=message.error)
    else:
        logger.info("event_status_notification", event_id=message.pk, status=message.status)
