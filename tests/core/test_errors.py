"""Tests for the eventscale error hierarchy."""

from eventscale.core.errors import (
    BackendError,
    BackendUnavailableError,
    ErrorCategory,
    EventNotFoundError,
    EventScaleError,
    InvalidTransitionError,
    QuotaExceededError,
    StoreError,
    WorkflowNotFoundError,
)


class TestDefaults:
    def test_store_errors_are_retryable(self):
        error = StoreError("disk full")
        assert error.retryable is True
        assert error.category == ErrorCategory.DATABASE

    def test_quota_is_terminal_provisioning_error(self):
        error = QuotaExceededError("limit reached")
        assert isinstance(error, BackendError)
        assert error.retryable is False
        assert error.category == ErrorCategory.PROVISIONING

    def test_unavailable_is_retryable(self):
        assert BackendUnavailableError("throttled").retryable is True

    def test_explicit_overrides_win(self):
        error = EventScaleError("x", category=ErrorCategory.QUEUE, retryable=True)
        assert error.category == ErrorCategory.QUEUE
        assert error.retryable is True


class TestContext:
    def test_with_context_sets_known_fields_and_metadata(self):
        error = QuotaExceededError("limit").with_context(event_id="abc", backend="automation", code="X")
        data = error.to_dict()
        assert data["error_type"] == "QuotaExceededError"
        assert data["context"] == {"event_id": "abc", "backend": "automation", "code": "X"}

    def test_cause_is_chained(self):
        cause = ValueError("inner")
        error = StoreError("outer", cause=cause)
        assert error.__cause__ is cause
        assert error.to_dict()["cause"] == "inner"


class TestMessages:
    def test_not_found_message(self):
        error = EventNotFoundError("evt-1")
        assert error.event_id == "evt-1"
        assert "evt-1" in str(error)

    def test_transition_message(self):
        error = InvalidTransitionError("ended", "deploy")
        assert str(error) == "Invalid event_status transition: ended -> deploy"

    def test_workflow_not_found_lists_available(self):
        error = WorkflowNotFoundError("missing", ["main", "preroll"])
        assert "main, preroll" in error.message
