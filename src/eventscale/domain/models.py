"""Event domain models.

Defines the core data structures shared by the store, scheduler, queue and
workflow engine:

- Event: a scheduled unit of work with a start/end window and a
  provisioning action
- EventStatus: the lifecycle state machine, enforced by
  ``EVENT_VALID_TRANSITIONS``
- ProvisioningParameter: one key/default-value/type/description/secret tuple
- ExecutionHandle / PollResult: what a provisioning backend hands back

Valid transition graph::

    registered → deploy | failed
    deploy     → scaled | failed
    scaled     → destroy | failed
    destroy    → ended | failed
    ended      → (terminal)
    failed     → (terminal)
"""

from __future__ import annotations

import uuid
from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Any

from eventscale.core.errors import InvalidTransitionError
from eventscale.core.timestamps import from_iso8601, to_iso8601, utc_now

EVENT_SORT_KEY = "Event"


class EventStatus(str, Enum):
    """Lifecycle status of an Event.

    ``scheduled`` is presentation-only: an event in the lookahead window
    that has not been dispatched yet.  It is never stored.
    """

    REGISTERED = "registered"
    SCHEDULED = "scheduled"
    DEPLOY = "deploy"
    SCALED = "scaled"
    DESTROY = "destroy"
    ENDED = "ended"
    FAILED = "failed"

    @property
    def is_terminal(self) -> bool:
        return self in TERMINAL_STATUSES


TERMINAL_STATUSES = frozenset({EventStatus.ENDED, EventStatus.FAILED})

DELETABLE_STATUSES = frozenset({EventStatus.REGISTERED, EventStatus.ENDED, EventStatus.FAILED})


EVENT_VALID_TRANSITIONS: dict[EventStatus, frozenset[EventStatus]] = {
    EventStatus.REGISTERED: frozenset({
        EventStatus.DEPLOY,
        EventStatus.FAILED,
    }),
    EventStatus.DEPLOY: frozenset({
        EventStatus.SCALED,
        EventStatus.FAILED,
    }),
    EventStatus.SCALED: frozenset({
        EventStatus.DESTROY,
        EventStatus.FAILED,
    }),
    EventStatus.DESTROY: frozenset({
        EventStatus.ENDED,
        EventStatus.FAILED,
    }),
    EventStatus.ENDED: frozenset(),  # terminal
    EventStatus.FAILED: frozenset(),  # terminal
}


def validate_event_transition(current: EventStatus, target: EventStatus) -> None:
    """Raise :class:`InvalidTransitionError` if *current → target* is illegal.

    Example:
        >>> validate_event_transition(EventStatus.DEPLOY, EventStatus.SCALED)
        >>> validate_event_transition(EventStatus.ENDED, EventStatus.DEPLOY)
        InvalidTransitionError: Invalid event_status transition: ended -> deploy
    """
    allowed = EVENT_VALID_TRANSITIONS.get(current, frozenset())
    if target not in allowed:
        raise InvalidTransitionError(current.value, target.value)


class OrchestrationType(str, Enum):
    """Which provisioning backend drives the Event."""

    AUTOMATION = "Automation"
    CATALOG = "Catalog"


class ExecutionStatus(str, Enum):
    """Status of a backend operation behind an :class:`ExecutionHandle`."""

    IN_PROGRESS = "IN_PROGRESS"
    SUCCEEDED = "SUCCEEDED"
    FAILED = "FAILED"


@dataclass(frozen=True)
class ProvisioningParameter:
    """One provisioning parameter as chosen when the Event was created."""

    key: str
    default_value: str | None = None
    type: str = "String"
    description: str | None = None
    is_secret: bool = False

    def to_dict(self) -> dict[str, Any]:
        return {
            "key": self.key,
            "default_value": self.default_value,
            "type": self.type,
            "description": self.description,
            "is_secret": self.is_secret,
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> ProvisioningParameter:
        return cls(
            key=data["key"],
            default_value=data.get("default_value"),
            type=data.get("type") or "String",
            description=data.get("description"),
            is_secret=bool(data.get("is_secret", False)),
        )


@dataclass
class Event:
    """A scheduled infrastructure action.

    Stored under ``(pk=id, sk="Event")``.  Only ``event_status``,
    ``updated`` and ``outputs`` change after creation.

    Example:
        >>> event = Event.create(
        ...     name="game-day",
        ...     event_starts_ts=start,
        ...     event_ends_ts=end,
        ...     orchestration_type=OrchestrationType.AUTOMATION,
        ...     document_or_product_reference="ScaleOutWebTier",
        ... )
        >>> event.event_status
        <EventStatus.REGISTERED: 'registered'>
    """

    id: str
    name: str
    event_starts_ts: datetime | None
    event_ends_ts: datetime | None
    orchestration_type: OrchestrationType
    document_or_product_reference: str
    version_or_artifact_id: str | None = None
    provisioning_parameters: list[ProvisioningParameter] = field(default_factory=list)
    event_status: EventStatus = EventStatus.REGISTERED
    additional_notes: str | None = None
    outputs: Any | None = None
    created: datetime = field(default_factory=utc_now)
    updated: datetime = field(default_factory=utc_now)

    @classmethod
    def create(
        cls,
        name: str,
        event_starts_ts: datetime,
        event_ends_ts: datetime,
        orchestration_type: OrchestrationType | str,
        document_or_product_reference: str,
        version_or_artifact_id: str | None = None,
        provisioning_parameters: list[ProvisioningParameter] | None = None,
        additional_notes: str | None = None,
    ) -> Event:
        """Create a new ``registered`` Event with a generated id."""
        now = utc_now()
        return cls(
            id=str(uuid.uuid4()),
            name=name,
            event_starts_ts=event_starts_ts,
            event_ends_ts=event_ends_ts,
            orchestration_type=OrchestrationType(orchestration_type),
            document_or_product_reference=document_or_product_reference,
            version_or_artifact_id=version_or_artifact_id or None,
            provisioning_parameters=list(provisioning_parameters or []),
            additional_notes=additional_notes,
            created=now,
            updated=now,
        )

    @property
    def pk(self) -> str:
        return self.id

    @property
    def sk(self) -> str:
        return EVENT_SORT_KEY

    def to_dict(self) -> dict[str, Any]:
        """Convert to a JSON-serializable dictionary."""
        return {
            "id": self.id,
            "name": self.name,
            "additional_notes": self.additional_notes,
            "event_starts_ts": to_iso8601(self.event_starts_ts),
            "event_ends_ts": to_iso8601(self.event_ends_ts),
            "orchestration_type": self.orchestration_type.value,
            "document_or_product_reference": self.document_or_product_reference,
            "version_or_artifact_id": self.version_or_artifact_id,
            "provisioning_parameters": [p.to_dict() for p in self.provisioning_parameters],
            "event_status": self.event_status.value,
            "outputs": self.outputs,
            "created": to_iso8601(self.created),
            "updated": to_iso8601(self.updated),
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> Event:
        return cls(
            id=data["id"],
            name=data["name"],
            additional_notes=data.get("additional_notes"),
            event_starts_ts=from_iso8601(data.get("event_starts_ts")),
            event_ends_ts=from_iso8601(data.get("event_ends_ts")),
            orchestration_type=OrchestrationType(data["orchestration_type"]),
            document_or_product_reference=data["document_or_product_reference"],
            version_or_artifact_id=data.get("version_or_artifact_id"),
            provisioning_parameters=[
                ProvisioningParameter.from_dict(p) for p in data.get("provisioning_parameters") or []
            ],
            event_status=EventStatus(data.get("event_status", EventStatus.REGISTERED.value)),
            outputs=data.get("outputs"),
            created=from_iso8601(data.get("created")) or utc_now(),
            updated=from_iso8601(data.get("updated")) or utc_now(),
        )


@dataclass(frozen=True)
class ExecutionHandle:
    """Opaque token identifying an in-flight backend operation."""

    backend: OrchestrationType
    value: str

    def to_dict(self) -> dict[str, str]:
        return {"backend": self.backend.value, "value": self.value}

    @classmethod
    def from_dict(cls, data: dict[str, str]) -> ExecutionHandle:
        return cls(backend=OrchestrationType(data["backend"]), value=data["value"])

    def __str__(self) -> str:
        return self.value


@dataclass(frozen=True)
class PollResult:
    """Status of a backend operation; ``outputs`` is set on success."""

    status: ExecutionStatus
    outputs: Any | None = None
    reason: str | None = None

    @property
    def is_terminal(self) -> bool:
        return self.status != ExecutionStatus.IN_PROGRESS


__all__ = [
    "DELETABLE_STATUSES",
    "EVENT_SORT_KEY",
    "EVENT_VALID_TRANSITIONS",
    "TERMINAL_STATUSES",
    "Event",
    "EventStatus",
    "ExecutionHandle",
    "ExecutionStatus",
    "OrchestrationType",
    "PollResult",
    "ProvisioningParameter",
    "validate_event_transition",
]
