"""Automation backend: SSM Automation documents.

Provisioning runs the Event's document; teardown runs the same document
version again with the original parameters plus a teardown flag
(``Action=["Destroy"]`` by default).
"""

from __future__ import annotations

from typing import Any

from eventscale.backends.base import (
    ProvisioningBackend,
    StartRequest,
    TargetVersion,
    teardown_token,
)
from eventscale.backends.formatting import format_automation_parameters
from eventscale.core.errors import (
    AlreadyTerminatedError,
    ExecutionNotFoundError,
    InvalidTargetError,
)
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

LATEST_VERSION = "$LATEST"

_SUCCEEDED = frozenset({"Success", "CompletedWithSuccess"})
_FAILED = frozenset({
    "Failed",
    "TimedOut",
    "Cancelled",
    "Rejected",
    "CompletedWithFailure",
    "ChangeCalendarOverrideRejected",
    "Exited",
})


class AutomationBackend(ProvisioningBackend):
    """Runs SSM Automation documents through a boto3 ``ssm`` client."""

    orchestration_type = OrchestrationType.AUTOMATION
    name = "automation"

    def __init__(
        self,
        client: Any,
        *,
        teardown_parameter: str = "Action",
        teardown_value: str = "Destroy",
    ):
        self._client = client
        self._teardown_parameter = teardown_parameter
        self._teardown_value = teardown_value

    def format_parameters(self, parameters: list[ProvisioningParameter]) -> dict[str, list[str]]:
        return format_automation_parameters(parameters)

    # -- lifecycle ---------------------------------------------------------

    def start(self, request: StartRequest) -> ExecutionHandle:
        version = request.version or LATEST_VERSION
        response = self._call(
            "start_automation_execution",
            self._client.start_automation_execution,
            not_found=InvalidTargetError,
            DocumentName=request.target,
            DocumentVersion=version,
            Parameters=request.parameters,
            ClientToken=request.idempotency_token,
        )
        execution_id = response["AutomationExecutionId"]
        logger.info(
            "automation_started",
            document=request.target,
            version=version,
            execution_id=execution_id,
        )
        return ExecutionHandle(OrchestrationType.AUTOMATION, execution_id)

    def poll(self, handle: ExecutionHandle) -> PollResult:
        execution = self._get_execution(handle)
        status = execution.get("AutomationExecutionStatus", "")
        if status in _SUCCEEDED:
            return PollResult(ExecutionStatus.SUCCEEDED, outputs=execution.get("Outputs") or {})
        if status in _FAILED:
            return PollResult(
                ExecutionStatus.FAILED,
                reason=execution.get("FailureMessage") or status,
            )
        return PollResult(ExecutionStatus.IN_PROGRESS)

    def terminate(self, target: str, handle: ExecutionHandle) -> ExecutionHandle:
        execution = self._get_execution(handle)
        if execution.get("AutomationExecutionStatus") == "Cancelled":
            raise AlreadyTerminatedError(
                f"Automation execution {handle.value} was cancelled"
            ).with_context(backend=self.name)

        parameters = dict(execution.get("Parameters") or {})
        parameters[self._teardown_parameter] = [self._teardown_value]
        response = self._call(
            "start_automation_execution",
            self._client.start_automation_execution,
            not_found=InvalidTargetError,
            DocumentName=target,
            DocumentVersion=execution.get("DocumentVersion") or LATEST_VERSION,
            Parameters=parameters,
            ClientToken=teardown_token(handle.value),
        )
        execution_id = response["AutomationExecutionId"]
        logger.info(
            "automation_teardown_started",
            document=target,
            provision_execution_id=handle.value,
            execution_id=execution_id,
        )
        return ExecutionHandle(OrchestrationType.AUTOMATION, execution_id)

    def _get_execution(self, handle: ExecutionHandle) -> dict[str, Any]:
        response = self._call(
            "get_automation_execution",
            self._client.get_automation_execution,
            AutomationExecutionId=handle.value,
        )
        execution = response.get("AutomationExecution")
        if not execution:
            raise ExecutionNotFoundError(f"Automation execution not found: {handle.value}")
        return execution

    # -- lookups -----------------------------------------------------------

    def describe_target(self, target: str) -> dict[str, Any]:
        response = self._call(
            "describe_document",
            self._client.describe_document,
            not_found=InvalidTargetError,
            Name=target,
        )
        document = response.get("Document", {})
        return {
            "name": document.get("Name", target),
            "description": document.get("Description"),
            "document_version": document.get("DocumentVersion"),
            "default_version": document.get("DefaultVersion"),
            "latest_version": document.get("LatestVersion"),
            "owner": document.get("Owner"),
            "status": document.get("Status"),
            "parameters": [p.to_dict() for p in self._to_parameters(document)],
        }

    def list_versions(self, target: str) -> list[TargetVersion]:
        versions: list[TargetVersion] = []
        kwargs: dict[str, Any] = {"Name": target}
        while True:
            response = self._call(
                "list_document_versions",
                self._client.list_document_versions,
                not_found=InvalidTargetError,
                **kwargs,
            )
            for item in response.get("DocumentVersions", []):
                created = item.get("CreatedDate")
                versions.append(
                    TargetVersion(
                        id=item["DocumentVersion"],
                        name=item.get("Name"),
                        created=to_iso8601(created) if created else None,
                        is_default=bool(item.get("IsDefaultVersion")),
                    )
                )
            next_token = response.get("NextToken")
            if not next_token:
                return versions
            kwargs["NextToken"] = next_token

    def list_parameters(self, target: str, version: str | None = None) -> list[ProvisioningParameter]:
        kwargs: dict[str, Any] = {"Name": target}
        if version:
            kwargs["DocumentVersion"] = version
        response = self._call(
            "describe_document",
            self._client.describe_document,
            not_found=InvalidTargetError,
            **kwargs,
        )
        return self._to_parameters(response.get("Document", {}))

    @staticmethod
    def _to_parameters(document: dict[str, Any]) -> list[ProvisioningParameter]:
        return [
            ProvisioningParameter(
                key=param.get("Name", ""),
                type=param.get("Type") or "String",
                description=param.get("Description"),
                default_value=param.get("DefaultValue"),
            )
            for param in document.get("Parameters") or []
        ]
