"""Tests for Event models and the status transition table."""

import pytest

from eventscale.core.errors import InvalidTransitionError
from eventscale.domain.models import (
    DELETABLE_STATUSES,
    EVENT_VALID_TRANSITIONS,
    Event,
    EventStatus,
    ExecutionHandle,
    OrchestrationType,
    ProvisioningParameter,
    validate_event_transition,
)


class TestTransitions:
    @pytest.mark.parametrize(
        "current,target",
        [
            (EventStatus.REGISTERED, EventStatus.DEPLOY),
            (EventStatus.DEPLOY, EventStatus.SCALED),
            (EventStatus.SCALED, EventStatus.DESTROY),
            (EventStatus.DESTROY, EventStatus.ENDED),
            (EventStatus.DEPLOY, EventStatus.FAILED),
        ],
    )
    def test_forward_moves_allowed(self, current, target):
        validate_event_transition(current, target)

    @pytest.mark.parametrize(
        "current,target",
        [
            (EventStatus.SCALED, EventStatus.DEPLOY),
            (EventStatus.REGISTERED, EventStatus.SCALED),
            (EventStatus.ENDED, EventStatus.FAILED),
            (EventStatus.FAILED, EventStatus.DEPLOY),
        ],
    )
    def test_backward_or_skipping_moves_rejected(self, current, target):
        with pytest.raises(InvalidTransitionError):
            validate_event_transition(current, target)

    def test_every_non_terminal_status_can_fail(self):
        for status, allowed in EVENT_VALID_TRANSITIONS.items():
            if not status.is_terminal:
                assert EventStatus.FAILED in allowed

    def test_deletable_statuses(self):
        assert DELETABLE_STATUSES == {EventStatus.REGISTERED, EventStatus.ENDED, EventStatus.FAILED}


class TestEvent:
    def test_create_defaults(self, make_event):
        event = make_event()
        assert event.event_status == EventStatus.REGISTERED
        assert event.pk == event.id
        assert event.sk == "Event"
        assert event.outputs is None

    def test_dict_round_trip_keeps_parameters(self, make_event):
        event = make_event(parameters=[ProvisioningParameter("Size", "large", is_secret=True)])
        restored = Event.from_dict(event.to_dict())
        assert restored.provisioning_parameters == event.provisioning_parameters
        assert restored.event_starts_ts == event.event_starts_ts
        assert restored.orchestration_type == OrchestrationType.AUTOMATION

    def test_empty_version_means_latest(self, make_event):
        assert make_event(version="").version_or_artifact_id is None


class TestExecutionHandle:
    def test_dict_round_trip(self):
        handle = ExecutionHandle(OrchestrationType.CATALOG, "rec-1")
        assert ExecutionHandle.from_dict(handle.to_dict()) == handle
        assert str(handle) == "rec-1"
