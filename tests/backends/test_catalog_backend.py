"""Tests for the Service Catalog backend against a fake client."""

import pytest

from eventscale.backends.base import StartRequest, teardown_token
from eventscale.backends.catalog import CatalogBackend
from eventscale.core.errors import ExecutionNotFoundError, InvalidTargetError
from eventscale.domain.models import ExecutionHandle, ExecutionStatus, OrchestrationType

HANDLE = ExecutionHandle(OrchestrationType.CATALOG, "rec-provision")


@pytest.fixture
def backend(sc_client):
    return CatalogBackend(sc_client)


def _request(**overrides):
    values = {
        "target": "prod-1",
        "version": None,
        "parameters": [{"Key": "InstanceCount", "Value": "4"}],
        "idempotency_token": "evt-1",
    }
    values.update(overrides)
    return StartRequest(**values)


class TestResolution:
    def test_latest_artifact_by_created_time(self, backend):
        assert backend.resolve_latest_artifact("prod-1") == "pa-new"

    def test_first_launch_path(self, backend):
        assert backend.resolve_launch_path("prod-1") == "lp-1"

    def test_no_artifacts(self, backend, sc_client):
        sc_client.describe_product.return_value = {"ProvisioningArtifacts": []}
        with pytest.raises(InvalidTargetError):
            backend.resolve_latest_artifact("prod-1")


class TestStart:
    def test_provision_with_resolved_artifact_and_path(self, backend, sc_client):
        handle = backend.start(_request())
        assert handle == HANDLE
        sc_client.provision_product.assert_called_once_with(
            ProductId="prod-1",
            ProvisioningArtifactId="pa-new",
            PathId="lp-1",
            ProvisionedProductName="eventscale-evt-1",
            ProvisioningParameters=[{"Key": "InstanceCount", "Value": "4"}],
            ProvisionToken="evt-1",
        )

    def test_explicit_artifact_and_path_skip_lookups(self, backend, sc_client):
        backend.start(_request(version="pa-old", launch_path="lp-2"))
        sc_client.describe_product.assert_not_called()
        sc_client.list_launch_paths.assert_not_called()
        assert sc_client.provision_product.call_args.kwargs["PathId"] == "lp-2"


class TestPoll:
    def test_success_maps_record_outputs(self, backend):
        result = backend.poll(HANDLE)
        assert result.status == ExecutionStatus.SUCCEEDED
        assert result.outputs == {"Url": "https://shop.test"}

    def test_failure_joins_record_errors(self, backend, sc_client):
        sc_client.describe_record.return_value = {
            "RecordDetail": {
                "Status": "FAILED",
                "RecordErrors": [{"Code": "E1", "Description": "stack failed"}],
            }
        }
        result = backend.poll(HANDLE)
        assert result.status == ExecutionStatus.FAILED
        assert result.reason == "stack failed"

    @pytest.mark.parametrize("status", ["CREATED", "IN_PROGRESS", "IN_PROGRESS_IN_ERROR"])
    def test_in_progress(self, backend, sc_client, status):
        sc_client.describe_record.return_value = {"RecordDetail": {"Status": status}}
        assert backend.poll(HANDLE).status == ExecutionStatus.IN_PROGRESS


class TestTerminate:
    def test_terminates_provisioned_product(self, backend, sc_client):
        handle = backend.terminate("prod-1", HANDLE)
        assert handle.value == "rec-terminate"
        sc_client.terminate_provisioned_product.assert_called_once_with(
            ProvisionedProductId="pp-1",
            TerminateToken=teardown_token("rec-provision"),
        )

    def test_record_without_product(self, backend, sc_client):
        sc_client.describe_record.return_value = {"RecordDetail": {"Status": "FAILED"}}
        with pytest.raises(ExecutionNotFoundError):
            backend.terminate("prod-1", HANDLE)


class TestLookups:
    def test_list_parameters_marks_no_echo_secret(self, backend, sc_client):
        sc_client.describe_provisioning_parameters.return_value = {
            "ProvisioningArtifactParameters": [
                {"ParameterKey": "DbPassword", "ParameterType": "String", "IsNoEcho": True},
                {"ParameterKey": "InstanceCount", "DefaultValue": "2"},
            ]
        }
        params = backend.list_parameters("prod-1")
        assert [p.key for p in params] == ["DbPassword", "InstanceCount"]
        assert params[0].is_secret
        assert sc_client.describe_provisioning_parameters.call_args.kwargs == {
            "ProductId": "prod-1",
            "ProvisioningArtifactId": "pa-new",
            "PathId": "lp-1",
        }
