"""Tests for the EventBridge Status Bus subscriber."""

import json
from unittest.mock import MagicMock

import pytest

from eventscale.bus.eventbridge import EventBridgePublisher
from eventscale.bus.status_bus import StatusBus, StatusMessage
from eventscale.core.errors import BackendUnavailableError

MESSAGE = StatusMessage(status="scaled", pk="evt-1", outputs={"Url": "https://shop.test"}, title="Event scaled")


@pytest.fixture
def events_client():
    client = MagicMock()
    client.put_events.return_value = {"FailedEntryCount": 0, "Entries": [{"EventId": "1"}]}
    return client


def test_publishes_one_entry(events_client):
    EventBridgePublisher(events_client, "ops-bus")(MESSAGE)

    (entry,) = events_client.put_events.call_args.kwargs["Entries"]
    assert entry["Source"] == "custom.eventscale"
    assert entry["DetailType"] == "Status Notification"
    assert entry["EventBusName"] == "ops-bus"
    assert json.loads(entry["Detail"])["outputs"] == {"Url": "https://shop.test"}


def test_client_error_translated(events_client, client_error):
    events_client.put_events.side_effect = client_error("InternalException", status=500)
    with pytest.raises(BackendUnavailableError):
        EventBridgePublisher(events_client, "ops-bus")(MESSAGE)


def test_rejected_entry(events_client):
    events_client.put_events.return_value = {
        "FailedEntryCount": 1,
        "Entries": [{"ErrorCode": "AccessDenied", "ErrorMessage": "nope"}],
    }
    with pytest.raises(BackendUnavailableError, match="nope"):
        EventBridgePublisher(events_client, "ops-bus")(MESSAGE)


def test_bus_survives_publisher_failure(events_client, client_error):
    events_client.put_events.side_effect = client_error("InternalException", status=500)
    bus = StatusBus()
    bus.subscribe("*", EventBridgePublisher(events_client, "ops-bus"))
    assert bus.publish(MESSAGE) == 0
