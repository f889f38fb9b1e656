"""End-to-end lifecycle tests: store → scheduler → queue → dispatcher → engine."""

from datetime import timedelta

import pytest

from eventscale.core.errors import StoreError
from eventscale.core.settings import SchedulerConfig
from eventscale.domain.models import EventStatus, OrchestrationType
from eventscale.queue.dispatcher import Dispatcher
from eventscale.scheduling.scheduler import Scheduler
from eventscale.workflow.engine import WorkflowEngine
from eventscale.workflow.lifecycle import (
    DEPLOY_WORKFLOWS,
    DESTROY_WORKFLOWS,
    FAILURE_WORKFLOW,
    MAIN_WORKFLOW,
    LifecycleServices,
    build_lifecycle_workflows,
)
from eventscale.workflow.models import WorkflowStatus

LIFECYCLE_ORDER = ["deploy", "scaled", "destroy", "ended"]


@pytest.fixture
def scheduler(store, queue, clock):
    scheduler = Scheduler(store, queue, SchedulerConfig(lookahead_hours=24), clock=clock)
    store.add_insert_listener(scheduler.on_event_inserted)
    return scheduler


@pytest.fixture
def dispatcher(queue, engine, store):
    return Dispatcher(queue, engine, store)


def _launch(store, dispatcher, engine, event):
    """Create the Event (enqueued by the insert listener) and dispatch it."""
    created = store.create_event(event)
    assert dispatcher.drain().started == 1
    engine.run_due()
    return created


def _statuses(published):
    return [m.status for m in published]


class TestAutomationLifecycle:
    def test_scaled_then_ended_at_end_time(
        self, scheduler, store, dispatcher, engine, clock, published, ssm_client, make_event
    ):
        event = _launch(store, dispatcher, engine, make_event(starts_in=timedelta(hours=2)))

        scaled = store.get_event(event.id)
        assert scaled.event_status == EventStatus.SCALED
        assert scaled.outputs == {"Endpoint": ["https://example.test"]}
        execution = engine.describe_execution(event.id)
        assert execution.status == WorkflowStatus.RUNNING
        assert execution.wake_at == event.event_ends_ts

        clock.advance(hours=3, minutes=59)
        engine.run_due()
        assert store.get_event(event.id).event_status == EventStatus.SCALED

        clock.advance(minutes=1)
        engine.run_due()
        assert store.get_event(event.id).event_status == EventStatus.ENDED
        assert engine.describe_execution(event.id).status == WorkflowStatus.SUCCEEDED
        assert _statuses(published) == LIFECYCLE_ORDER

        teardown = ssm_client.start_automation_execution.call_args_list[1].kwargs
        assert teardown["Parameters"]["Action"] == ["Destroy"]
        assert teardown["DocumentName"] == "ScaleOutWebTier"

    def test_quota_exceeded_goes_straight_to_failed(
        self, scheduler, store, dispatcher, engine, published, ssm_client, client_error, make_event
    ):
        ssm_client.start_automation_execution.side_effect = client_error("AutomationExecutionLimitExceededException")
        event = _launch(store, dispatcher, engine, make_event())

        failed = store.get_event(event.id)
        assert failed.event_status == EventStatus.FAILED
        assert failed.outputs is None
        assert engine.describe_execution(event.id).status == WorkflowStatus.FAILED
        assert _statuses(published) == ["deploy", "failed"]
        assert published[-1].error["error_type"] == "QuotaExceededError"
        assert published[-1].is_error

    def test_throttled_start_retried_by_step(
        self, scheduler, store, dispatcher, engine, clock, ssm_client, client_error, make_event
    ):
        ssm_client.start_automation_execution.side_effect = [
            client_error("ThrottlingException", retry_attempts=39),
            {"AutomationExecutionId": "exec-1"},
        ]
        event = _launch(store, dispatcher, engine, make_event())
        assert store.get_event(event.id).event_status == EventStatus.DEPLOY

        clock.advance(seconds=40)
        engine.run_due()
        assert store.get_event(event.id).event_status == EventStatus.SCALED

    def test_poll_timeout_fails_event(
        self, scheduler, store, dispatcher, engine, clock, ssm_client, make_event
    ):
        ssm_client.get_automation_execution.return_value = {
            "AutomationExecution": {"AutomationExecutionStatus": "InProgress"}
        }
        event = _launch(store, dispatcher, engine, make_event())
        for _ in range(21):
            clock.advance(seconds=30)
            engine.run_due()

        assert store.get_event(event.id).event_status == EventStatus.FAILED
        error = engine.describe_execution(event.id).context["error"]
        assert error["error_type"] == "BackendTimeoutError"

    def test_lost_status_write_is_retried(
        self, scheduler, store, dispatcher, engine, clock, monkeypatch, make_event
    ):
        real_update = store.update_event_status
        failures = [StoreError("database is locked")]

        def flaky_update(event_id, status, outputs=None):
            if failures:
                raise failures.pop()
            return real_update(event_id, status, outputs=outputs)

        monkeypatch.setattr(store, "update_event_status", flaky_update)
        event = _launch(store, dispatcher, engine, make_event())
        assert store.get_event(event.id).event_status == EventStatus.REGISTERED

        clock.advance(seconds=2)
        engine.run_due()
        assert store.get_event(event.id).event_status == EventStatus.SCALED

    def test_event_deleted_before_preroll(self, store, queue, dispatcher, engine, scheduler, make_event):
        event = store.create_event(make_event())
        dispatcher.drain()
        store.delete_event(event.id)

        engine.run_due()
        execution = engine.describe_execution(event.id)
        assert execution.status == WorkflowStatus.FAILED
        assert execution.error["error_type"] == "EventNotFoundError"

    def test_redelivered_message_does_not_redeploy(
        self, scheduler, store, queue, dispatcher, engine, ssm_client, make_event
    ):
        event = _launch(store, dispatcher, engine, make_event())
        scheduler.run_periodic()
        assert dispatcher.drain().duplicate == 1
        engine.run_due()
        assert ssm_client.start_automation_execution.call_count == 1
        assert store.get_event(event.id).event_status == EventStatus.SCALED

    def test_second_engine_does_not_repeat_running_step(
        self, scheduler, store, dispatcher, engine, ledger, clock, published, ssm_client, make_event
    ):
        other = WorkflowEngine(ledger, engine.registry, clock=clock, owner="worker-b")
        concurrent_ticks = []

        def start_while_other_ticks(**kwargs):
            concurrent_ticks.append(other.run_due())
            return {"AutomationExecutionId": "exec-1"}

        ssm_client.start_automation_execution.side_effect = start_while_other_ticks
        event = _launch(store, dispatcher, engine, make_event())

        assert concurrent_ticks == [0]
        assert ssm_client.start_automation_execution.call_count == 1
        assert _statuses(published) == ["deploy", "scaled"]
        assert store.get_event(event.id).event_status == EventStatus.SCALED


class TestCatalogLifecycle:
    def test_full_lifecycle(self, scheduler, store, dispatcher, engine, clock, published, sc_client, make_event):
        event = _launch(
            store,
            dispatcher,
            engine,
            make_event(orchestration_type=OrchestrationType.CATALOG, target="prod-1"),
        )
        assert store.get_event(event.id).outputs == {"Url": "https://shop.test"}
        provision = sc_client.provision_product.call_args.kwargs
        assert provision["ProvisioningArtifactId"] == "pa-new"
        assert provision["PathId"] == "lp-1"
        assert provision["ProvisioningParameters"] == [{"Key": "InstanceCount", "Value": "4"}]

        clock.set(event.event_ends_ts)
        engine.run_due()
        assert store.get_event(event.id).event_status == EventStatus.ENDED
        sc_client.terminate_provisioned_product.assert_called_once()
        assert _statuses(published) == LIFECYCLE_ORDER

    def test_pinned_artifact_skips_resolution(self, scheduler, store, dispatcher, engine, sc_client, make_event):
        _launch(
            store,
            dispatcher,
            engine,
            make_event(orchestration_type=OrchestrationType.CATALOG, target="prod-1", version="pa-old"),
        )
        sc_client.describe_product.assert_not_called()
        assert sc_client.provision_product.call_args.kwargs["ProvisioningArtifactId"] == "pa-old"

    def test_provisioning_failure(self, scheduler, store, dispatcher, engine, sc_client, make_event):
        sc_client.describe_record.return_value = {
            "RecordDetail": {"Status": "FAILED", "RecordErrors": [{"Description": "CREATE_FAILED"}]}
        }
        event = _launch(
            store, dispatcher, engine, make_event(orchestration_type=OrchestrationType.CATALOG, target="prod-1")
        )
        assert store.get_event(event.id).event_status == EventStatus.FAILED
        assert engine.describe_execution(event.id).error["message"] == "CREATE_FAILED"


def test_status_moves_forward_only(scheduler, store, dispatcher, engine, clock, published, make_event):
    event = _launch(store, dispatcher, engine, make_event())
    clock.set(event.event_ends_ts + timedelta(minutes=1))
    engine.run_due()
    positions = [LIFECYCLE_ORDER.index(s) for s in _statuses(published)]
    assert positions == sorted(positions)


def test_workflow_graph(store, backends, bus):
    workflows = {w.name: w for w in build_lifecycle_workflows(LifecycleServices(store, backends, bus))}
    assert set(workflows) == {
        MAIN_WORKFLOW,
        FAILURE_WORKFLOW,
        "preroll",
        "postroll",
        *DEPLOY_WORKFLOWS.values(),
        *DESTROY_WORKFLOWS.values(),
    }
    assert workflows[MAIN_WORKFLOW].catch == FAILURE_WORKFLOW


class TestTeardownFailure:
    def test_failed_teardown_keeps_deploy_outputs(
        self, scheduler, store, dispatcher, engine, clock, published, ssm_client, make_event
    ):
        event = _launch(store, dispatcher, engine, make_event())
        deployed = ssm_client.get_automation_execution.return_value
        ssm_client.get_automation_execution.side_effect = [
            deployed,
            {"AutomationExecution": {"AutomationExecutionStatus": "Failed", "FailureMessage": "DeleteStack failed"}},
        ]

        clock.set(event.event_ends_ts)
        engine.run_due()

        failed = store.get_event(event.id)
        assert failed.event_status == EventStatus.FAILED
        assert failed.outputs == {"Endpoint": ["https://example.test"]}
        assert _statuses(published) == ["deploy", "scaled", "destroy", "failed"]
        assert published[-1].error["message"] == "DeleteStack failed"
        assert engine.describe_execution(event.id).status == WorkflowStatus.FAILED

    def test_already_terminated_resource_fails_event(
        self, scheduler, store, dispatcher, engine, clock, published, sc_client, client_error, make_event
    ):
        event = _launch(
            store, dispatcher, engine, make_event(orchestration_type=OrchestrationType.CATALOG, target="prod-1")
        )
        sc_client.terminate_provisioned_product.side_effect = client_error("InvalidStateException")

        clock.set(event.event_ends_ts)
        engine.run_due()

        failed = store.get_event(event.id)
        assert failed.event_status == EventStatus.FAILED
        assert failed.outputs == {"Url": "https://shop.test"}
        assert _statuses(published) == ["deploy", "scaled", "destroy", "failed"]
        assert published[-1].error["error_type"] == "AlreadyTerminatedError"
        sc_client.terminate_provisioned_product.assert_called_once()
