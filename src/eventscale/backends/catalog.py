"""Catalog backend: Service Catalog products.

Provisioning launches the product's provisioning artifact through a launch
path; teardown terminates the provisioned product created by that record.
When an Event names no artifact the most recently created one is used, and
the first launch path returned by the service is always used.
"""

from __future__ import annotations

from datetime import UTC, datetime
from typing import Any

from eventscale.backends.base import (
    ProvisioningBackend,
    StartRequest,
    TargetVersion,
    teardown_token,
)
from eventscale.backends.formatting import format_catalog_parameters
from eventscale.core.errors import ExecutionNotFoundError, InvalidTargetError
from eventscale.core.logging import get_logger
from eventscale.core.timestamps import to_iso8601
from eventscale.domain.models import (
    ExecutionHandle,
    ExecutionStatus,
    OrchestrationType,
    PollResult,
    ProvisioningParameter,
)

logger = get_logger(__name__)

_EPOCH = datetime.min


class CatalogBackend(ProvisioningBackend):
    """Provisions Service Catalog products through a boto3 ``servicecatalog`` client."""

    orchestration_type = OrchestrationType.CATALOG
    name = "catalog"

    def __init__(self, client: Any, *, provisioned_product_prefix: str = "eventscale"):
        self._client = client
        self._prefix = provisioned_product_prefix

    def format_parameters(self, parameters: list[ProvisioningParameter]) -> list[dict[str, str]]:
        return format_catalog_parameters(parameters)

    def provisioned_product_name(self, token: str) -> str:
        return f"{self._prefix}-{token}"

    # -- resolution --------------------------------------------------------

    def resolve_latest_artifact(self, product_id: str) -> str:
        """Id of the most recently created provisioning artifact."""
        response = self._call(
            "describe_product",
            self._client.describe_product,
            not_found=InvalidTargetError,
            Id=product_id,
        )
        artifacts = response.get("ProvisioningArtifacts") or []
        if not artifacts:
            raise InvalidTargetError(
                f"No provisioning artifacts found for product {product_id}"
            ).with_context(backend=self.name)
        latest = sorted(
            artifacts,
            key=lambda a: _naive(a.get("CreatedTime")),
            reverse=True,
        )[0]
        logger.debug("catalog_artifact_resolved", product_id=product_id, artifact_id=latest["Id"])
        return latest["Id"]

    def resolve_launch_path(self, product_id: str) -> str:
        """Id of the first launch path available for the product."""
        response = self._call(
            "list_launch_paths",
            self._client.list_launch_paths,
            not_found=InvalidTargetError,
            ProductId=product_id,
        )
        paths = response.get("LaunchPathSummaries") or []
        if not paths:
            raise InvalidTargetError(
                f"No launch paths found for product {product_id}"
            ).with_context(backend=self.name)
        return paths[0]["Id"]

    # -- lifecycle ---------------------------------------------------------

    def start(self, request: StartRequest) -> ExecutionHandle:
        artifact_id = request.version or self.resolve_latest_artifact(request.target)
        path_id = request.launch_path or self.resolve_launch_path(request.target)
        response = self._call(
            "provision_product",
            self._client.provision_product,
            not_found=InvalidTargetError,
            ProductId=request.target,
            ProvisioningArtifactId=artifact_id,
            PathId=path_id,
            ProvisionedProductName=self.provisioned_product_name(request.idempotency_token),
            ProvisioningParameters=request.parameters,
            ProvisionToken=request.idempotency_token,
        )
        record_id = response["RecordDetail"]["RecordId"]
        logger.info(
            "catalog_provision_started",
            product_id=request.target,
            artifact_id=artifact_id,
            path_id=path_id,
            record_id=record_id,
        )
        return ExecutionHandle(OrchestrationType.CATALOG, record_id)

    def poll(self, handle: ExecutionHandle) -> PollResult:
        response = self._call("describe_record", self._client.describe_record, Id=handle.value)
        record = response.get("RecordDetail") or {}
        status = record.get("Status", "")
        if status == "SUCCEEDED":
            outputs = {
                o["OutputKey"]: o.get("OutputValue")
                for o in response.get("RecordOutputs") or []
                if "OutputKey" in o
            }
            return PollResult(ExecutionStatus.SUCCEEDED, outputs=outputs)
        if status == "FAILED":
            errors = record.get("RecordErrors") or []
            reason = "; ".join(e.get("Description", e.get("Code", "")) for e in errors) or status
            return PollResult(ExecutionStatus.FAILED, reason=reason)
        return PollResult(ExecutionStatus.IN_PROGRESS)

    def terminate(self, target: str, handle: ExecutionHandle) -> ExecutionHandle:
        response = self._call("describe_record", self._client.describe_record, Id=handle.value)
        provisioned_product_id = (response.get("RecordDetail") or {}).get("ProvisionedProductId")
        if not provisioned_product_id:
            raise ExecutionNotFoundError(
                f"Record {handle.value} has no provisioned product"
            ).with_context(backend=self.name)

        response = self._call(
            "terminate_provisioned_product",
            self._client.terminate_provisioned_product,
            ProvisionedProductId=provisioned_product_id,
            TerminateToken=teardown_token(handle.value),
        )
        record_id = response["RecordDetail"]["RecordId"]
        logger.info(
            "catalog_terminate_started",
            product_id=target,
            provisioned_product_id=provisioned_product_id,
            record_id=record_id,
        )
        return ExecutionHandle(OrchestrationType.CATALOG, record_id)

    # -- lookups -----------------------------------------------------------

    def describe_target(self, target: str) -> dict[str, Any]:
        response = self._call(
            "describe_product_as_admin",
            self._client.describe_product_as_admin,
            not_found=InvalidTargetError,
            Id=target,
        )
        summary = (response.get("ProductViewDetail") or {}).get("ProductViewSummary") or {}
        return {
            "id": target,
            "name": summary.get("Name"),
            "owner": summary.get("Owner"),
            "short_description": summary.get("ShortDescription"),
            "distributor": summary.get("Distributor"),
            "support_description": summary.get("SupportDescription"),
            "support_email": summary.get("SupportEmail"),
            "support_url": summary.get("SupportUrl"),
            "tags": {t["Key"]: t["Value"] for t in response.get("Tags") or []},
        }

    def list_versions(self, target: str) -> list[TargetVersion]:
        response = self._call(
            "list_provisioning_artifacts",
            self._client.list_provisioning_artifacts,
            not_found=InvalidTargetError,
            ProductId=target,
        )
        return [
            TargetVersion(
                id=item["Id"],
                name=item.get("Name"),
                description=item.get("Description"),
                created=to_iso8601(item["CreatedTime"]) if item.get("CreatedTime") else None,
                active=bool(item.get("Active", True)),
            )
            for item in response.get("ProvisioningArtifactDetails") or []
        ]

    def list_parameters(self, target: str, version: str | None = None) -> list[ProvisioningParameter]:
        artifact_id = version or self.resolve_latest_artifact(target)
        path_id = self.resolve_launch_path(target)
        response = self._call(
            "describe_provisioning_parameters",
            self._client.describe_provisioning_parameters,
            not_found=InvalidTargetError,
            ProductId=target,
            ProvisioningArtifactId=artifact_id,
            PathId=path_id,
        )
        return [
            ProvisioningParameter(
                key=param.get("ParameterKey", ""),
                type=param.get("ParameterType") or "String",
                default_value=param.get("DefaultValue"),
                description=param.get("Description"),
                is_secret=bool(param.get("IsNoEcho", False)),
            )
            for param in response.get("ProvisioningArtifactParameters") or []
        ]


def _naive(value: datetime | None) -> datetime:
    if value is None:
        return _EPOCH
    return value.astimezone(UTC).replace(tzinfo=None) if value.tzinfo else value
