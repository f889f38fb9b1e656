"""
Workflow step types.

A workflow is an ordered list of steps.  Four step types cover the event
lifecycle; each can suspend the execution durably (the engine persists a
``wake_at`` instead of sleeping):

Architecture:
    ::

        StepType
        ├── TASK          handler(ctx) -> dict | None, merged into the context
        │                 optional retry: failed attempts suspend for next_delay
        ├── POLL          handler(ctx) -> PollResult
        │                 IN_PROGRESS suspends for interval, bounded by timeout
        ├── WAIT_UNTIL    suspends until the timestamp at ctx[timestamp_field]
        └── SUB_WORKFLOW  runs a named workflow (static, or chosen by selector
                          from a declared set of choices)

Example:
    >>> Step.task("mark-deploy", mark_deploy, retry=ExponentialBackoff(max_retries=5))
    >>> Step.poll("wait-provisioning", poll_deploy, interval_seconds=30, timeout_seconds=7200)
    >>> Step.wait_until("wait-for-end", "event_ends_ts")
    >>> Step.sub_workflow("deploy", selector=by_type, choices=("deploy-automation", "deploy-catalog"))

Tags:
    workflow, step, durable, suspension, eventscale
"""

from __future__ import annotations

from collections.abc import Callable
from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Any

from eventscale.domain.models import PollResult
from eventscale.workflow.retry import RetryStrategy


class StepType(str, Enum):
    """Type of workflow step."""

    TASK = "task"
    POLL = "poll"
    WAIT_UNTIL = "wait_until"
    SUB_WORKFLOW = "sub_workflow"


@dataclass
class StepContext:
    """What a step handler sees.

    ``input`` is the immutable start payload (the queue message);
    ``context`` accumulates values returned by earlier task steps.
    """

    execution: str
    workflow: str
    step: str
    input: dict[str, Any]
    context: dict[str, Any]
    now: datetime
    attempt: int = 0

    def get(self, key: str, default: Any = None) -> Any:
        """Look a key up in the context first, then in the input."""
        if key in self.context:
            return self.context[key]
        return self.input.get(key, default)

    @property
    def event_id(self) -> str:
        return self.input["id"]


TaskHandler = Callable[[StepContext], "dict[str, Any] | None"]
PollHandler = Callable[[StepContext], PollResult]
Selector = Callable[[StepContext], str]


@dataclass
class Step:
    """A single step within a workflow. Build with the factory methods."""

    name: str
    step_type: StepType
    handler: Callable[[StepContext], Any] | None = None
    retry: RetryStrategy | None = None

    # POLL
    output_key: str | None = None
    interval_seconds: float = 30.0
    timeout_seconds: float = 7200.0

    # WAIT_UNTIL
    timestamp_field: str | None = None

    # SUB_WORKFLOW
    workflow: str | None = None
    selector: Selector | None = None
    choices: tuple[str, ...] = ()

    # =========================================================================
    # Factory Methods
    # =========================================================================

    @classmethod
    def task(cls, name: str, handler: TaskHandler, retry: RetryStrategy | None = None) -> Step:
        """Run *handler*; its returned dict is merged into the context."""
        return cls(name=name, step_type=StepType.TASK, handler=handler, retry=retry)

    @classmethod
    def poll(
        cls,
        name: str,
        handler: PollHandler,
        *,
        output_key: str | None = None,
        interval_seconds: float = 30.0,
        timeout_seconds: float = 7200.0,
    ) -> Step:
        """Call *handler* until it reports a terminal status.

        On success the result's outputs are stored under *output_key*.
        """
        return cls(
            name=name,
            step_type=StepType.POLL,
            handler=handler,
            output_key=output_key,
            interval_seconds=interval_seconds,
            timeout_seconds=timeout_seconds,
        )

    @classmethod
    def wait_until(cls, name: str, timestamp_field: str) -> Step:
        """Suspend until the ISO timestamp found at ``ctx.get(timestamp_field)``."""
        return cls(name=name, step_type=StepType.WAIT_UNTIL, timestamp_field=timestamp_field)

    @classmethod
    def sub_workflow(
        cls,
        name: str,
        workflow: str | None = None,
        *,
        selector: Selector | None = None,
        choices: tuple[str, ...] | list[str] = (),
    ) -> Step:
        """Run another workflow, named statically or chosen by *selector*.

        A selector must declare every workflow it can return in *choices*
        so the registry can check the graph before anything runs.
        """
        if (workflow is None) == (selector is None):
            raise ValueError(f"Sub-workflow step '{name}' needs exactly one of workflow or selector")
        if selector is not None and not choices:
            raise ValueError(f"Sub-workflow step '{name}' uses a selector but declares no choices")
        return cls(
            name=name,
            step_type=StepType.SUB_WORKFLOW,
            workflow=workflow,
            selector=selector,
            choices=tuple(choices),
        )

    @property
    def referenced_workflows(self) -> tuple[str, ...]:
        """Workflows this step can enter."""
        if self.step_type != StepType.SUB_WORKFLOW:
            return ()
        if self.workflow is not None:
            return (self.workflow,)
        return self.choices

    def __repr__(self) -> str:
        return f"Step({self.name!r}, {self.step_type.value})"


@dataclass
class Workflow:
    """
    A named, ordered list of steps.

    Attributes:
        name: Unique workflow name (e.g., "deploy-catalog")
        steps: Ordered list of steps to execute
        catch: Workflow run when a step fails (the execution still ends FAILED)
        description: Human-readable description
    """

    name: str
    steps: list[Step]
    catch: str | None = None
    description: str = ""
    tags: list[str] = field(default_factory=list)

    def __post_init__(self):
        step_names = set()
        for step in self.steps:
            if step.name in step_names:
                raise ValueError(f"Duplicate step name in workflow '{self.name}': {step.name}")
            step_names.add(step.name)

    @property
    def references(self) -> set[str]:
        """Every workflow this one can enter (sub-workflows and catch)."""
        refs = {ref for step in self.steps for ref in step.referenced_workflows}
        if self.catch:
            refs.add(self.catch)
        return refs

    def step_names(self) -> list[str]:
        return [s.name for s in self.steps]

    def __repr__(self) -> str:
        return f"Workflow({self.name!r}, steps={self.step_names()})"
