"""Work Queue, message format and Dispatcher."""

from eventscale.queue.dispatcher import DispatchOutcome, Dispatcher, DispatchResult
from eventscale.queue.messages import build_message, encode_message, parse_message
from eventscale.queue.work_queue import STATUS_DEAD, STATUS_READY, QueueMessage, WorkQueue

__all__ = [
    "STATUS_DEAD",
    "STATUS_READY",
    "DispatchOutcome",
    "DispatchResult",
    "Dispatcher",
    "QueueMessage",
    "WorkQueue",
    "build_message",
    "encode_message",
    "parse_message",
]
