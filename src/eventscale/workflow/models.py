"""Workflow execution models.

- WorkflowExecution: durable state of one execution (name = idempotency key)
- Frame: one level of the sub-workflow stack
- ExecutionEventType: append-only history entries
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Any

from eventscale.core.timestamps import from_iso8601, to_iso8601


class WorkflowStatus(str, Enum):
    """Status of a workflow execution."""

    RUNNING = "running"
    SUCCEEDED = "succeeded"
    FAILED = "failed"

    @property
    def is_terminal(self) -> bool:
        return self != WorkflowStatus.RUNNING


class ExecutionEventType(str, Enum):
    """Canonical history entries for an execution."""

    STARTED = "started"
    WORKFLOW_ENTERED = "workflow_entered"
    WORKFLOW_EXITED = "workflow_exited"
    STEP_COMPLETED = "step_completed"
    STEP_FAILED = "step_failed"
    RETRY_SCHEDULED = "retry_scheduled"
    SUSPENDED = "suspended"
    CATCH_ENTERED = "catch_entered"
    SUCCEEDED = "succeeded"
    FAILED = "failed"


@dataclass
class Frame:
    """Position inside one workflow of the stack.

    ``attempt`` counts retries of the current task step; ``deadline`` bounds
    the current poll step.  Both reset when the step completes.
    """

    workflow: str
    index: int = 0
    attempt: int = 0
    deadline: str | None = None
    handler: bool = False

    def to_dict(self) -> dict[str, Any]:
        return {
            "workflow": self.workflow,
            "index": self.index,
            "attempt": self.attempt,
            "deadline": self.deadline,
            "handler": self.handler,
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> Frame:
        return cls(
            workflow=data["workflow"],
            index=data.get("index", 0),
            attempt=data.get("attempt", 0),
            deadline=data.get("deadline"),
            handler=data.get("handler", False),
        )

    def advance(self) -> None:
        self.index += 1
        self.attempt = 0
        self.deadline = None


@dataclass
class WorkflowExecution:
    """Durable state of one workflow execution.

    The engine persists this after every step, so an execution resumes
    exactly where it stopped after a process restart.
    """

    name: str
    workflow: str
    status: WorkflowStatus
    input: dict[str, Any]
    context: dict[str, Any] = field(default_factory=dict)
    stack: list[Frame] = field(default_factory=list)
    wake_at: datetime | None = None
    error: dict[str, Any] | None = None
    started_at: datetime | None = None
    updated_at: datetime | None = None
    completed_at: datetime | None = None

    @property
    def current_step(self) -> str | None:
        """``workflow/step`` of the innermost frame, for display."""
        if not self.stack:
            return None
        frame = self.stack[-1]
        return f"{frame.workflow}#{frame.index}"

    def to_dict(self) -> dict[str, Any]:
        return {
            "name": self.name,
            "workflow": self.workflow,
            "status": self.status.value,
            "input": self.input,
            "context": self.context,
            "stack": [f.to_dict() for f in self.stack],
            "wake_at": to_iso8601(self.wake_at),
            "error": self.error,
            "started_at": to_iso8601(self.started_at),
            "updated_at": to_iso8601(self.updated_at),
            "completed_at": to_iso8601(self.completed_at),
        }


@dataclass(frozen=True)
class ExecutionEvent:
    """One history entry."""

    id: int
    execution_name: str
    event_type: str
    timestamp: datetime
    data: dict[str, Any]

    @classmethod
    def from_row(cls, row, data: dict[str, Any]) -> ExecutionEvent:
        return cls(
            id=row["id"],
            execution_name=row["execution_name"],
            event_type=row["event_type"],
            timestamp=from_iso8601(row["timestamp"]),
            data=data,
        )


@dataclass(frozen=True)
class StartResult:
    """Outcome of ``start_execution``: ``started`` is False for a duplicate name."""

    execution: WorkflowExecution
    started: bool
