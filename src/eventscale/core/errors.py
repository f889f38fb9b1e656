"""
Structured error types for eventscale.

Every failure the orchestration engine can observe is an
:class:`EventScaleError` carrying a category, a retry flag and structured
context.  The workflow engine consults ``retryable`` to decide whether a
step is retried (store writes) or the lifecycle is failed (backend errors).

Architecture:
    ::

        ┌─────────────────────────────────────────────────────────────────┐
        │                      EventScaleError                            │
        │  (category, retryable, retry_after, context, cause)            │
        ├─────────────────────────────────────────────────────────────────┤
        │  ConfigError        StoreError (retryable)    DiscoveryError    │
        │                        │                                        │
        │                     EventNotFoundError                          │
        │                     EventStateError                             │
        │                     InvalidEventError                           │
        │                     InvalidTransitionError                      │
        │                                                                 │
        │  BackendError                       QueueError                  │
        │     │                                  │                        │
        │  InvalidTargetError                 MessageFormatError          │
        │  InvalidParametersError                                         │
        │  QuotaExceededError                 WorkflowError               │
        │  ExecutionNotFoundError                │                        │
        │  BackendUnavailableError (retryable)  ExecutionAlreadyExists   │
        │  AlreadyTerminatedError               WorkflowNotFoundError     │
        │  BackendTimeoutError                  WorkflowDefinitionError   │
        └─────────────────────────────────────────────────────────────────┘

Examples:
    >>> error = QuotaExceededError("Automation execution limit reached")
    >>> error.retryable
    False
    >>> error.with_context(event_id="abc", backend="automation").to_dict()["context"]
    {'event_id': 'abc', 'backend': 'automation'}

Tags:
    error-handling, exception-hierarchy, retry-logic, eventscale
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Any


class ErrorCategory(str, Enum):
    """Standard error categories for classification and routing."""

    CONFIG = "CONFIG"
    DATABASE = "DATABASE"
    VALIDATION = "VALIDATION"
    PROVISIONING = "PROVISIONING"
    SOURCE = "SOURCE"
    QUEUE = "QUEUE"
    ORCHESTRATION = "ORCHESTRATION"
    INTERNAL = "INTERNAL"


@dataclass
class ErrorContext:
    """Structured metadata attached to an error for logging and notifications."""

    event_id: str | None = None
    execution: str | None = None
    step: str | None = None
    backend: str | None = None
    metadata: dict[str, Any] = field(default_factory=dict)

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary for logging."""
        result = {}
        for key in ["event_id", "execution", "step", "backend"]:
            value = getattr(self, key)
            if value is not None:
                result[key] = value
        if self.metadata:
            result.update(self.metadata)
        return result


class EventScaleError(Exception):
    """Base exception for all eventscale errors.

    Subclasses set ``default_category`` and ``default_retryable`` so that
    callers rarely pass them explicitly.
    """

    default_category: ErrorCategory = ErrorCategory.INTERNAL
    default_retryable: bool = False

    def __init__(
        self,
        message: str,
        *,
        category: ErrorCategory | None = None,
        retryable: bool | None = None,
        retry_after: int | None = None,
        context: ErrorContext | None = None,
        cause: Exception | None = None,
    ):
        super().__init__(message)
        self.message = message
        self.category = category or self.default_category
        self.retryable = retryable if retryable is not None else self.default_retryable
        self.retry_after = retry_after
        self.context = context or ErrorContext()
        self.cause = cause

        if cause is not None:
            self.__cause__ = cause

    def with_context(self, **kwargs: Any) -> EventScaleError:
        """Add context to this error (fluent API)."""
        for key, value in kwargs.items():
            if key != "metadata" and hasattr(self.context, key):
                setattr(self.context, key, value)
            else:
                self.context.metadata[key] = value
        return self

    def to_dict(self) -> dict[str, Any]:
        """Convert error to dictionary for logging/serialization."""
        result: dict[str, Any] = {
            "error_type": self.__class__.__name__,
            "message": self.message,
            "category": self.category.value,
            "retryable": self.retryable,
        }
        if self.retry_after is not None:
            result["retry_after"] = self.retry_after
        context_dict = self.context.to_dict()
        if context_dict:
            result["context"] = context_dict
        if self.cause is not None:
            result["cause"] = str(self.cause)
        return result

    def __repr__(self) -> str:
        return f"{self.__class__.__name__}({self.message!r}, category={self.category.value})"


# =============================================================================
# CONFIGURATION
# =============================================================================


class ConfigError(EventScaleError):
    """Missing or invalid configuration. Never retryable."""

    default_category = ErrorCategory.CONFIG


# =============================================================================
# EVENT STORE
# =============================================================================


class StoreError(EventScaleError):
    """Event Store read/write failure.

    Retryable: a lost status write desynchronizes the visible state from
    the provisioning state, so the engine retries it before proceeding.
    """

    default_category = ErrorCategory.DATABASE
    default_retryable = True


class EventNotFoundError(EventScaleError):
    """No Event exists for the given id."""

    default_category = ErrorCategory.DATABASE

    def __init__(self, event_id: str, **kwargs: Any):
        self.event_id = event_id
        super().__init__(f"Event not found: {event_id}", **kwargs)


class EventStateError(EventScaleError):
    """Operation not permitted in the Event's current status."""

    default_category = ErrorCategory.VALIDATION


class InvalidEventError(EventScaleError):
    """Event attributes are missing or inconsistent (e.g. starts >= ends)."""

    default_category = ErrorCategory.VALIDATION


class InvalidTransitionError(EventStateError):
    """Raised when an illegal status transition is attempted."""

    def __init__(self, current: str, target: str, **kwargs: Any) -> None:
        self.current = current
        self.target = target
        super().__init__(f"Invalid event_status transition: {current} -> {target}", **kwargs)


# =============================================================================
# PROVISIONING BACKENDS
# =============================================================================


class BackendError(EventScaleError):
    """Failure reported by a provisioning backend."""

    default_category = ErrorCategory.PROVISIONING


class InvalidTargetError(BackendError):
    """Document/product (or its version, launch path) does not exist."""


class InvalidParametersError(BackendError):
    """Provisioning parameters were rejected by the backend."""


class QuotaExceededError(BackendError):
    """Backend refused the call because a service quota is exhausted."""


class ExecutionNotFoundError(BackendError):
    """Execution handle (or provisioned resource) not known to the backend."""


class BackendUnavailableError(BackendError):
    """Backend could not be reached or kept throttling after SDK retries."""

    default_retryable = True


class AlreadyTerminatedError(BackendError):
    """Teardown requested for a resource that is already terminated."""


class BackendTimeoutError(BackendError):
    """A polled backend operation did not finish within the polling timeout."""


# =============================================================================
# DISCOVERY
# =============================================================================


class DiscoveryError(EventScaleError):
    """Non-throttling failure while enumerating backend resources."""

    default_category = ErrorCategory.SOURCE


# =============================================================================
# WORK QUEUE
# =============================================================================


class QueueError(EventScaleError):
    """Work Queue failure."""

    default_category = ErrorCategory.QUEUE


class MessageFormatError(QueueError):
    """Queue message body is not a valid Event snapshot."""


# =============================================================================
# WORKFLOW ENGINE
# =============================================================================


class WorkflowError(EventScaleError):
    """Workflow engine failure."""

    default_category = ErrorCategory.ORCHESTRATION


class ExecutionAlreadyExistsError(WorkflowError):
    """A workflow execution with this name was already started."""

    def __init__(self, name: str, **kwargs: Any) -> None:
        self.name = name
        super().__init__(f"Execution already exists: {name}", **kwargs)


class ExecutionClaimLostError(WorkflowError):
    """Another engine took over the lease on an execution mid-advance."""

    def __init__(self, name: str, owner: str, **kwargs: Any) -> None:
        self.name = name
        self.owner = owner
        super().__init__(f"Lease on execution {name} is no longer held by {owner}", **kwargs)


class WorkflowNotFoundError(WorkflowError):
    """Workflow name is not present in the registry."""

    def __init__(self, name: str, available: list[str] | None = None, **kwargs: Any) -> None:
        self.workflow_name = name
        listed = ", ".join(sorted(available)) if available else "(none)"
        super().__init__(f"Workflow '{name}' not found. Available: {listed}", **kwargs)


class WorkflowDefinitionError(WorkflowError):
    """Workflow graph is malformed (dangling reference, cycle, duplicate name)."""


__all__ = [
    "ErrorCategory",
    "ErrorContext",
    "EventScaleError",
    "ConfigError",
    "StoreError",
    "EventNotFoundError",
    "EventStateError",
    "InvalidEventError",
    "InvalidTransitionError",
    "BackendError",
    "InvalidTargetError",
    "InvalidParametersError",
    "QuotaExceededError",
    "ExecutionNotFoundError",
    "BackendUnavailableError",
    "AlreadyTerminatedError",
    "BackendTimeoutError",
    "DiscoveryError",
    "QueueError",
    "MessageFormatError",
    "WorkflowError",
    "ExecutionAlreadyExistsError",
    "ExecutionClaimLostError",
    "WorkflowNotFoundError",
    "WorkflowDefinitionError",
]
