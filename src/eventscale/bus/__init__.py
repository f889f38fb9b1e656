"""Status Bus and its subscribers."""

from eventscale.bus.eventbridge import DETAIL_TYPE, EVENT_SOURCE, EventBridgePublisher
from eventscale.bus.status_bus import StatusBus, StatusHandler, StatusMessage, log_subscriber

__all__ = [
    "DETAIL_TYPE",
    "EVENT_SOURCE",
    "EventBridgePublisher",
    "StatusBus",
    "StatusHandler",
    "StatusMessage",
    "log_subscriber",
]
