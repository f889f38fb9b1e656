"""Durable workflow engine and the Event lifecycle workflows."""

from eventscale.workflow.engine import WorkflowEngine
from eventscale.workflow.ledger import ExecutionLedger
from eventscale.workflow.lifecycle import (
    MAIN_WORKFLOW,
    LifecycleServices,
    build_lifecycle_registry,
    build_lifecycle_workflows,
)
from eventscale.workflow.models import (
    ExecutionEvent,
    ExecutionEventType,
    Frame,
    StartResult,
    WorkflowExecution,
    WorkflowStatus,
)
from eventscale.workflow.registry import WorkflowRegistry
from eventscale.workflow.retry import ExponentialBackoff, RetryStrategy
from eventscale.workflow.steps import Step, StepContext, StepType, Workflow

__all__ = [
    "MAIN_WORKFLOW",
    "ExecutionEvent",
    "ExecutionEventType",
    "ExecutionLedger",
    "ExponentialBackoff",
    "Frame",
    "LifecycleServices",
    "RetryStrategy",
    "StartResult",
    "Step",
    "StepContext",
    "StepType",
    "Workflow",
    "WorkflowEngine",
    "WorkflowExecution",
    "WorkflowRegistry",
    "WorkflowStatus",
    "build_lifecycle_registry",
    "build_lifecycle_workflows",
]
