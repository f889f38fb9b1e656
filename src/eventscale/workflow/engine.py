"""
Durable workflow engine.

Executions are advanced step by step and persisted after every step, so a
process can stop at any point (mid-poll, or days into a wait) and a later
``run_due()`` resumes each execution exactly where it stopped.  Nothing in
the engine sleeps: every wait is a ``wake_at`` timestamp in the ledger.

Architecture:
    ::

        start_execution(name, workflow, input)
            │  INSERT OR IGNORE  (name = idempotency key)
            ▼
        ┌──────────────────────────────────────────────────────────────┐
        │ advance(name)   claim lease (skip if held elsewhere)         │
        │   while running and not suspended:                           │
        │     frame = stack[-1]                                        │
        │     ├── index past last step → pop frame, parent continues   │
        │     ├── TASK          → merge result / schedule retry        │
        │     ├── POLL          → suspend interval / timeout / outputs │
        │     ├── WAIT_UNTIL    → suspend until timestamp              │
        │     └── SUB_WORKFLOW  → push child frame                     │
        │     save()                                                   │
        │   on step failure → nearest catch workflow (ends FAILED)     │
        │   release lease                                              │
        └──────────────────────────────────────────────────────────────┘
            ▲
        run_due(now): advance every running execution whose wake_at <= now

Example:
    >>> engine = WorkflowEngine(ExecutionLedger(conn), registry)
    >>> engine.start_execution(event_id, "main", message)
    >>> engine.run_due()

Tags:
    workflow, engine, durable, state-machine, eventscale
"""

from __future__ import annotations

import uuid
from collections.abc import Callable
from datetime import datetime, timedelta
from typing import Any

from eventscale.core.errors import (
    BackendError,
    BackendTimeoutError,
    EventScaleError,
    ExecutionAlreadyExistsError,
    ExecutionClaimLostError,
    WorkflowDefinitionError,
    WorkflowError,
)
from eventscale.core.logging import LogContext, get_logger
from eventscale.core.timestamps import ensure_utc, from_iso8601, to_iso8601, utc_now
from eventscale.domain.models import ExecutionStatus, PollResult
from eventscale.workflow.ledger import ExecutionLedger
from eventscale.workflow.models import (
    ExecutionEvent,
    ExecutionEventType,
    Frame,
    StartResult,
    WorkflowExecution,
    WorkflowStatus,
)
from eventscale.workflow.registry import WorkflowRegistry
from eventscale.workflow.steps import Step, StepContext, StepType

logger = get_logger(__name__)


class WorkflowEngine:
    """Starts, advances and inspects durable workflow executions.

    Several engines may share one ledger (a long-running worker next to an
    ad-hoc ``eventscale tick``).  Each advance runs under a lease named by
    ``owner``, so a step is never executed by two engines at once.  A lease
    left behind by a crashed process expires after ``claim_ttl_seconds``.
    """

    def __init__(
        self,
        ledger: ExecutionLedger,
        registry: WorkflowRegistry,
        *,
        clock: Callable[[], datetime] = utc_now,
        owner: str | None = None,
        claim_ttl_seconds: float = 300.0,
    ):
        self.ledger = ledger
        self.registry = registry
        self._clock = clock
        self.owner = owner or f"engine-{uuid.uuid4().hex[:8]}"
        self.claim_ttl_seconds = claim_ttl_seconds

    # =========================================================================
    # START
    # =========================================================================

    def start_execution(
        self,
        name: str,
        workflow: str,
        input: dict[str, Any],
        *,
        raise_on_duplicate: bool = False,
    ) -> StartResult:
        """Create an execution named *name* running *workflow*.

        A second start with the same name does not create anything: the
        existing execution is returned with ``started=False``.

        Raises:
            WorkflowNotFoundError: *workflow* is not registered
            ExecutionAlreadyExistsError: duplicate name and *raise_on_duplicate*
        """
        self.registry.get(workflow)
        now = self._clock()
        execution = WorkflowExecution(
            name=name,
            workflow=workflow,
            status=WorkflowStatus.RUNNING,
            input=input,
            stack=[Frame(workflow)],
            started_at=now,
            updated_at=now,
        )
        if self.ledger.create(execution):
            logger.info("execution_started", execution=name, workflow=workflow)
            return StartResult(execution=execution, started=True)

        if raise_on_duplicate:
            raise ExecutionAlreadyExistsError(name)
        logger.info("execution_already_exists", execution=name, workflow=workflow)
        return StartResult(execution=self.ledger.get(name) or execution, started=False)

    # =========================================================================
    # ADVANCE
    # =========================================================================

    def run_due(self, now: datetime | None = None, limit: int = 100) -> int:
        """Advance every running execution that is not suspended past *now*.

        Returns:
            Number of executions advanced
        """
        now = now or self._clock()
        advanced = 0
        for name in self.ledger.list_due(now, limit=limit):
            try:
                _, ran = self._advance(name, now)
                if ran:
                    advanced += 1
            except EventScaleError as e:
                # State is saved after every step; the next tick picks it up again.
                logger.error("execution_advance_failed", execution=name, **e.to_dict())
        return advanced

    def advance(self, name: str, now: datetime | None = None) -> WorkflowExecution | None:
        """Run *name* until it suspends or finishes. Returns None if unknown.

        An execution whose lease is held by another engine is returned as
        stored, without running any step.
        """
        execution, _ = self._advance(name, now or self._clock())
        return execution

    def _advance(self, name: str, now: datetime) -> tuple[WorkflowExecution | None, bool]:
        until = now + timedelta(seconds=self.claim_ttl_seconds)
        if not self.ledger.claim(name, self.owner, now, until):
            execution = self.ledger.get(name)
            if execution is None:
                logger.warning("execution_not_found", execution=name)
            elif not execution.status.is_terminal:
                logger.info("execution_claimed_elsewhere", execution=name, owner=self.owner)
            return execution, False

        try:
            # Read under the lease so steps completed by a previous holder are not repeated.
            execution = self.ledger.get(name)
            if execution.wake_at is not None and execution.wake_at > now:
                return execution, False
            execution.wake_at = None

            with LogContext(event_id=execution.input.get("id"), execution=name):
                while execution.status == WorkflowStatus.RUNNING and execution.wake_at is None:
                    self._step(execution, now)
                    execution.updated_at = now
                    self.ledger.save(execution, owner=self.owner)
        except ExecutionClaimLostError:
            logger.error("execution_claim_lost", execution=name, owner=self.owner)
            raise
        finally:
            self.ledger.release(name, self.owner)
        return execution, True

    def _step(self, execution: WorkflowExecution, now: datetime) -> None:
        frame = execution.stack[-1]
        workflow = self.registry.get(frame.workflow)
        if frame.index >= len(workflow.steps):
            self._exit_frame(execution, now)
            return

        step = workflow.steps[frame.index]
        ctx = StepContext(
            execution=execution.name,
            workflow=workflow.name,
            step=step.name,
            input=execution.input,
            context=execution.context,
            now=now,
            attempt=frame.attempt,
        )
        try:
            if step.step_type == StepType.TASK:
                self._run_task(execution, frame, step, ctx, now)
            elif step.step_type == StepType.POLL:
                self._run_poll(execution, frame, step, ctx, now)
            elif step.step_type == StepType.WAIT_UNTIL:
                self._run_wait(execution, frame, step, ctx)
            elif step.step_type == StepType.SUB_WORKFLOW:
                self._enter_sub_workflow(execution, step, ctx)
            else:
                raise WorkflowDefinitionError(f"Unknown step type: {step.step_type}")
        except Exception as e:
            self._fail(execution, frame, step, e, now)

    # -- step types ------------------------------------------------------------

    def _run_task(
        self,
        execution: WorkflowExecution,
        frame: Frame,
        step: Step,
        ctx: StepContext,
        now: datetime,
    ) -> None:
        try:
            result = step.handler(ctx)
        except Exception as e:
            if step.retry is not None and step.retry.should_retry(frame.attempt, e):
                delay = step.retry.next_delay(frame.attempt)
                frame.attempt += 1
                execution.wake_at = now + timedelta(seconds=delay)
                self.ledger.record_event(
                    execution.name,
                    ExecutionEventType.RETRY_SCHEDULED,
                    {"step": step.name, "attempt": frame.attempt, "delay": delay, "error": str(e)},
                )
                logger.warning(
                    "step_retry_scheduled",
                    step=step.name,
                    attempt=frame.attempt,
                    delay_seconds=round(delay, 3),
                    error=str(e),
                )
                return
            raise

        if result:
            execution.context.update(result)
        self._complete_step(execution, frame, step)

    def _run_poll(
        self,
        execution: WorkflowExecution,
        frame: Frame,
        step: Step,
        ctx: StepContext,
        now: datetime,
    ) -> None:
        if frame.deadline is None:
            frame.deadline = to_iso8601(now + timedelta(seconds=step.timeout_seconds))
        deadline = from_iso8601(frame.deadline)

        result: PollResult | None
        try:
            result = step.handler(ctx)
        except EventScaleError as e:
            if not e.retryable:
                raise
            logger.warning("poll_error_retrying", step=step.name, error=e.message)
            result = None

        if result is None or not result.is_terminal:
            if now >= deadline:
                raise BackendTimeoutError(
                    f"Step '{step.name}' did not finish within {step.timeout_seconds:.0f}s"
                )
            execution.wake_at = now + timedelta(seconds=step.interval_seconds)
            self.ledger.record_event(
                execution.name,
                ExecutionEventType.SUSPENDED,
                {"step": step.name, "wake_at": to_iso8601(execution.wake_at)},
            )
            return

        if result.status == ExecutionStatus.FAILED:
            raise BackendError(result.reason or f"Backend operation failed in step '{step.name}'")
        if step.output_key:
            execution.context[step.output_key] = result.outputs
        self._complete_step(execution, frame, step)

    def _run_wait(
        self,
        execution: WorkflowExecution,
        frame: Frame,
        step: Step,
        ctx: StepContext,
    ) -> None:
        value = ctx.get(step.timestamp_field)
        wake_at = from_iso8601(value) if isinstance(value, str) else value
        if wake_at is None:
            raise WorkflowError(f"Step '{step.name}' has no timestamp at '{step.timestamp_field}'")
        wake_at = ensure_utc(wake_at)

        if wake_at > ctx.now:
            execution.wake_at = wake_at
            self.ledger.record_event(
                execution.name,
                ExecutionEventType.SUSPENDED,
                {"step": step.name, "wake_at": to_iso8601(wake_at)},
            )
            logger.info("execution_suspended", step=step.name, wake_at=to_iso8601(wake_at))
            return
        self._complete_step(execution, frame, step)

    def _enter_sub_workflow(self, execution: WorkflowExecution, step: Step, ctx: StepContext) -> None:
        target = step.workflow or step.selector(ctx)
        if target not in step.referenced_workflows:
            raise WorkflowDefinitionError(
                f"Step '{step.name}' selected '{target}', expected one of {list(step.choices)}"
            )
        execution.stack.append(Frame(target))
        self.ledger.record_event(
            execution.name, ExecutionEventType.WORKFLOW_ENTERED, {"workflow": target, "step": step.name}
        )
        logger.debug("workflow_entered", workflow=target)

    # -- transitions -----------------------------------------------------------

    def _complete_step(self, execution: WorkflowExecution, frame: Frame, step: Step) -> None:
        self.ledger.record_event(
            execution.name,
            ExecutionEventType.STEP_COMPLETED,
            {"workflow": frame.workflow, "step": step.name},
        )
        frame.advance()

    def _exit_frame(self, execution: WorkflowExecution, now: datetime) -> None:
        frame = execution.stack.pop()
        self.ledger.record_event(
            execution.name, ExecutionEventType.WORKFLOW_EXITED, {"workflow": frame.workflow}
        )
        if execution.stack:
            execution.stack[-1].advance()
            return
        self._finish(execution, WorkflowStatus.FAILED if frame.handler else WorkflowStatus.SUCCEEDED, now)

    def _fail(
        self,
        execution: WorkflowExecution,
        frame: Frame,
        step: Step,
        error: Exception,
        now: datetime,
    ) -> None:
        if isinstance(error, EventScaleError):
            detail = error.to_dict()
        else:
            detail = {"error_type": type(error).__name__, "message": str(error)}
        detail.update(workflow=frame.workflow, step=step.name)

        execution.error = detail
        self.ledger.record_event(execution.name, ExecutionEventType.STEP_FAILED, detail)
        logger.error("step_failed", workflow=frame.workflow, step=step.name, error=detail["message"])

        catch = self._find_catch(execution)
        if catch is None:
            self._finish(execution, WorkflowStatus.FAILED, now)
            return

        execution.context["error"] = detail
        execution.stack = [Frame(catch, handler=True)]
        self.ledger.record_event(execution.name, ExecutionEventType.CATCH_ENTERED, {"workflow": catch})
        logger.warning("workflow_catch_entered", workflow=catch)

    def _find_catch(self, execution: WorkflowExecution) -> str | None:
        """Catch workflow of the innermost frame that declares one.

        A failure while a catch workflow is already running is final.
        """
        if any(f.handler for f in execution.stack):
            return None
        for frame in reversed(execution.stack):
            catch = self.registry.get(frame.workflow).catch
            if catch:
                return catch
        return None

    def _finish(self, execution: WorkflowExecution, status: WorkflowStatus, now: datetime) -> None:
        execution.status = status
        execution.stack = []
        execution.wake_at = None
        execution.completed_at = now
        event_type = (
            ExecutionEventType.SUCCEEDED if status == WorkflowStatus.SUCCEEDED else ExecutionEventType.FAILED
        )
        self.ledger.record_event(execution.name, event_type, {"error": execution.error} if execution.error else {})
        logger.info("execution_finished", status=status.value)

    # =========================================================================
    # INSPECTION
    # =========================================================================

    def describe_execution(self, name: str) -> WorkflowExecution | None:
        return self.ledger.get(name)

    def list_executions(
        self,
        status: WorkflowStatus | None = None,
        limit: int = 100,
    ) -> list[WorkflowExecution]:
        return self.ledger.list_executions(status=status, limit=limit)

    def get_history(self, name: str) -> list[ExecutionEvent]:
        return self.ledger.get_events(name)
