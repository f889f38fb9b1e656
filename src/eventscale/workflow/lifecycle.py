"""
Event lifecycle workflows.

The Main workflow is a thin sequencer over named sub-workflows; the only
decision it makes is which backend family to enter, chosen once by the
Event's ``orchestration_type``.

Architecture:
    ::

        main  (catch → failure)
        ├── preroll             check-event, mark-deploy
        ├── deploy  ──selector──┬── deploy-automation   start-automation, wait-automation
        │                       └── deploy-catalog      resolve-artifact, resolve-launch-path,
        │                                               provision-product, wait-provisioning
        ├── mark-scaled         persists deploy outputs
        ├── wait-for-end        durable wait until event_ends_ts
        ├── mark-destroy
        ├── destroy ──selector──┬── destroy-automation  terminate-automation, wait-automation-teardown
        │                       └── destroy-catalog     terminate-product, wait-termination
        └── postroll            mark-ended

        failure                 mark-failed (with error detail)

    Each ``mark-*`` step writes the Event Store (retried on StoreError)
    and then publishes one Status Bus message.  Backend calls that fail
    with a retryable error (throttling past the SDK budget, unavailable)
    are retried by their own step; any other failure enters ``failure``.

Tags:
    workflow, lifecycle, orchestration, eventscale
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any

from eventscale.backends import BackendMap, select_backend
from eventscale.backends.base import StartRequest
from eventscale.backends.catalog import CatalogBackend
from eventscale.bus.status_bus import StatusBus, StatusMessage
from eventscale.core.errors import EventNotFoundError, EventStateError, StoreError, WorkflowError
from eventscale.core.logging import get_logger
from eventscale.core.settings import PollingConfig
from eventscale.domain.models import EventStatus, ExecutionHandle, OrchestrationType, PollResult
from eventscale.store.event_store import EventStore
from eventscale.workflow.registry import WorkflowRegistry
from eventscale.workflow.retry import ExponentialBackoff
from eventscale.workflow.steps import Step, StepContext, Workflow

logger = get_logger(__name__)

MAIN_WORKFLOW = "main"
FAILURE_WORKFLOW = "failure"

DEPLOY_WORKFLOWS = {
    OrchestrationType.AUTOMATION: "deploy-automation",
    OrchestrationType.CATALOG: "deploy-catalog",
}
DESTROY_WORKFLOWS = {
    OrchestrationType.AUTOMATION: "destroy-automation",
    OrchestrationType.CATALOG: "destroy-catalog",
}

# Event statuses from which the preroll may (re)start.
_STARTABLE = frozenset({EventStatus.REGISTERED, EventStatus.DEPLOY})


@dataclass
class LifecycleServices:
    """Collaborators the lifecycle steps call."""

    store: EventStore
    backends: BackendMap
    bus: StatusBus
    polling: PollingConfig = field(default_factory=PollingConfig)


class LifecycleSteps:
    """Step handlers bound to one set of services."""

    def __init__(self, services: LifecycleServices):
        self.services = services

    # -- selection -------------------------------------------------------------

    @staticmethod
    def orchestration_type(ctx: StepContext) -> OrchestrationType:
        return OrchestrationType(ctx.input["orchestration_type"])

    def select_deploy(self, ctx: StepContext) -> str:
        return DEPLOY_WORKFLOWS[self.orchestration_type(ctx)]

    def select_destroy(self, ctx: StepContext) -> str:
        return DESTROY_WORKFLOWS[self.orchestration_type(ctx)]

    def _backend(self, ctx: StepContext):
        return select_backend(self.services.backends, ctx.input["orchestration_type"])

    # -- status transitions ------------------------------------------------------

    def _transition(
        self,
        ctx: StepContext,
        status: EventStatus,
        *,
        outputs: Any | None = None,
        error: dict[str, Any] | None = None,
    ) -> None:
        event = self.services.store.update_event_status(ctx.event_id, status, outputs=outputs)
        self.services.bus.publish(
            StatusMessage.for_transition(
                event.id,
                status,
                event_name=event.name,
                outputs=outputs,
                error=error,
                source=ctx.step,
            )
        )

    def check_event(self, ctx: StepContext) -> dict[str, Any]:
        """Refuse to run for an Event that was deleted or already moved on."""
        event = self.services.store.get_event(ctx.event_id)
        if event.event_status not in _STARTABLE:
            raise EventStateError(
                f"Event {event.id} is {event.event_status.value}; lifecycle cannot start"
            ).with_context(event_id=event.id)
        return {"event_name": event.name}

    def mark_deploy(self, ctx: StepContext) -> None:
        self._transition(ctx, EventStatus.DEPLOY)

    def mark_scaled(self, ctx: StepContext) -> None:
        self._transition(ctx, EventStatus.SCALED, outputs=ctx.get("deploy_outputs"))

    def mark_destroy(self, ctx: StepContext) -> None:
        self._transition(ctx, EventStatus.DESTROY)

    def mark_ended(self, ctx: StepContext) -> None:
        self._transition(ctx, EventStatus.ENDED)

    def mark_failed(self, ctx: StepContext) -> None:
        """Move the Event to ``failed``; its last outputs are kept."""
        error = ctx.get("error") or {}
        try:
            event = self.services.store.get_event(ctx.event_id)
        except EventNotFoundError:
            logger.warning("failed_event_missing", event_id=ctx.event_id, error=error.get("message"))
            return
        if event.event_status.is_terminal:
            logger.warning(
                "failed_event_already_terminal",
                event_id=event.id,
                status=event.event_status.value,
                error=error.get("message"),
            )
            return
        self._transition(ctx, EventStatus.FAILED, error=error)

    # -- automation --------------------------------------------------------------

    def start_automation(self, ctx: StepContext) -> dict[str, Any]:
        handle = self._backend(ctx).start(
            StartRequest(
                target=ctx.input["document_or_product_reference"],
                version=ctx.input.get("version_or_artifact_id"),
                parameters=ctx.input.get("provisioning_parameters") or {},
                idempotency_token=ctx.event_id,
            )
        )
        return {"deploy_handle": handle.to_dict()}

    # -- catalog -----------------------------------------------------------------

    def _catalog(self, ctx: StepContext) -> CatalogBackend:
        backend = self._backend(ctx)
        if not isinstance(backend, CatalogBackend):
            raise WorkflowError(f"Backend for {ctx.input['orchestration_type']} is not a catalog backend")
        return backend

    def resolve_artifact(self, ctx: StepContext) -> dict[str, Any]:
        artifact_id = ctx.input.get("version_or_artifact_id")
        if not artifact_id:
            artifact_id = self._catalog(ctx).resolve_latest_artifact(ctx.input["document_or_product_reference"])
        return {"artifact_id": artifact_id}

    def resolve_launch_path(self, ctx: StepContext) -> dict[str, Any]:
        path_id = self._catalog(ctx).resolve_launch_path(ctx.input["document_or_product_reference"])
        return {"launch_path": path_id}

    def provision_product(self, ctx: StepContext) -> dict[str, Any]:
        handle = self._catalog(ctx).start(
            StartRequest(
                target=ctx.input["document_or_product_reference"],
                version=ctx.get("artifact_id"),
                parameters=ctx.input.get("provisioning_parameters") or [],
                idempotency_token=ctx.event_id,
                launch_path=ctx.get("launch_path"),
            )
        )
        return {"deploy_handle": handle.to_dict()}

    # -- shared ------------------------------------------------------------------

    def poll_deploy(self, ctx: StepContext) -> PollResult:
        return self._backend(ctx).poll(self._handle(ctx, "deploy_handle"))

    def terminate(self, ctx: StepContext) -> dict[str, Any]:
        handle = self._backend(ctx).terminate(
            ctx.input["document_or_product_reference"],
            self._handle(ctx, "deploy_handle"),
        )
        return {"destroy_handle": handle.to_dict()}

    def poll_destroy(self, ctx: StepContext) -> PollResult:
        return self._backend(ctx).poll(self._handle(ctx, "destroy_handle"))

    @staticmethod
    def _handle(ctx: StepContext, key: str) -> ExecutionHandle:
        data = ctx.get(key)
        if not data:
            raise WorkflowError(f"No execution handle at '{key}'")
        return ExecutionHandle.from_dict(data)


def build_lifecycle_workflows(services: LifecycleServices) -> list[Workflow]:
    """Main workflow, its sub-workflows and the failure handler."""
    steps = LifecycleSteps(services)
    polling = services.polling

    store_retry = ExponentialBackoff(
        max_retries=polling.store_write_max_retries,
        base_delay=polling.store_write_base_delay_seconds,
        retryable_errors=(StoreError,),
    )
    backend_retry = ExponentialBackoff(max_retries=3, base_delay=polling.poll_interval_seconds)

    def poll(name: str, handler, output_key: str) -> Step:
        return Step.poll(
            name,
            handler,
            output_key=output_key,
            interval_seconds=polling.poll_interval_seconds,
            timeout_seconds=polling.poll_timeout_seconds,
        )

    return [
        Workflow(
            name=MAIN_WORKFLOW,
            description="Event lifecycle: preroll, deploy, live, destroy, postroll",
            catch=FAILURE_WORKFLOW,
            steps=[
                Step.sub_workflow("preroll", "preroll"),
                Step.sub_workflow("deploy", selector=steps.select_deploy, choices=tuple(DEPLOY_WORKFLOWS.values())),
                Step.task("mark-scaled", steps.mark_scaled, retry=store_retry),
                Step.wait_until("wait-for-end", "event_ends_ts"),
                Step.task("mark-destroy", steps.mark_destroy, retry=store_retry),
                Step.sub_workflow("destroy", selector=steps.select_destroy, choices=tuple(DESTROY_WORKFLOWS.values())),
                Step.sub_workflow("postroll", "postroll"),
            ],
        ),
        Workflow(
            name="preroll",
            steps=[
                Step.task("check-event", steps.check_event, retry=store_retry),
                Step.task("mark-deploy", steps.mark_deploy, retry=store_retry),
            ],
        ),
        Workflow(
            name="deploy-automation",
            steps=[
                Step.task("start-automation", steps.start_automation, retry=backend_retry),
                poll("wait-automation", steps.poll_deploy, "deploy_outputs"),
            ],
        ),
        Workflow(
            name="deploy-catalog",
            steps=[
                Step.task("resolve-artifact", steps.resolve_artifact, retry=backend_retry),
                Step.task("resolve-launch-path", steps.resolve_launch_path, retry=backend_retry),
                Step.task("provision-product", steps.provision_product, retry=backend_retry),
                poll("wait-provisioning", steps.poll_deploy, "deploy_outputs"),
            ],
        ),
        Workflow(
            name="destroy-automation",
            steps=[
                Step.task("terminate-automation", steps.terminate, retry=backend_retry),
                poll("wait-automation-teardown", steps.poll_destroy, "destroy_outputs"),
            ],
        ),
        Workflow(
            name="destroy-catalog",
            steps=[
                Step.task("terminate-product", steps.terminate, retry=backend_retry),
                poll("wait-termination", steps.poll_destroy, "destroy_outputs"),
            ],
        ),
        Workflow(
            name="postroll",
            steps=[Step.task("mark-ended", steps.mark_ended, retry=store_retry)],
        ),
        Workflow(
            name=FAILURE_WORKFLOW,
            steps=[Step.task("mark-failed", steps.mark_failed, retry=store_retry)],
        ),
    ]


def build_lifecycle_registry(services: LifecycleServices) -> WorkflowRegistry:
    return WorkflowRegistry(build_lifecycle_workflows(services))
