"""
Provisioning backend contract.

Automation and Catalog are two variants of one capability interface.  The
workflow engine selects a variant once, by ``orchestration_type``, and then
drives it through ``start`` / ``poll`` / ``terminate`` without knowing which
AWS service sits behind it.

Architecture:
    ::

        ProvisioningBackend (ABC)
        ├── start(StartRequest)        → ExecutionHandle
        │     InvalidTarget | InvalidParameters | QuotaExceeded
        ├── poll(handle)               → PollResult {status, outputs?}
        │     NotFound | BackendUnavailable
        ├── terminate(target, handle)  → ExecutionHandle
        │     NotFound | AlreadyTerminated
        ├── format_parameters(params)  → backend-native shape
        └── lookups: describe_target / list_versions / list_parameters

        Variants:
        ┌────────────────────────────────────────────────────────────┐
        │ AutomationBackend → SSM Automation documents               │
        │ CatalogBackend    → Service Catalog products               │
        └────────────────────────────────────────────────────────────┘

Tags:
    backend, provisioning, protocol, ssm, service-catalog, eventscale
"""

from __future__ import annotations

import uuid
from abc import ABC, abstractmethod
from collections.abc import Callable
from dataclasses import dataclass
from typing import Any, TypeVar

from botocore.exceptions import BotoCoreError, ClientError

from eventscale.backends.errors import translate_client_error
from eventscale.core.errors import BackendError, ExecutionNotFoundError
from eventscale.core.logging import get_logger
from eventscale.domain.models import (
    ExecutionHandle,
    OrchestrationType,
    PollResult,
    ProvisioningParameter,
)

logger = get_logger(__name__)

T = TypeVar("T")


def teardown_token(token: str) -> str:
    """Deterministic idempotency token for the teardown of the operation *token*."""
    return str(uuid.uuid5(uuid.NAMESPACE_URL, f"eventscale:teardown:{token}"))


@dataclass(frozen=True)
class StartRequest:
    """Everything a backend needs to start provisioning for one Event.

    ``parameters`` are already in the backend-native shape (see
    :mod:`eventscale.backends.formatting`).  ``idempotency_token`` is the
    Event id, so a repeated start after a crash returns the original
    operation instead of launching a second one.
    """

    target: str
    version: str | None
    parameters: Any
    idempotency_token: str
    launch_path: str | None = None


@dataclass(frozen=True)
class TargetVersion:
    """One version of a document (Automation) or artifact (Catalog)."""

    id: str
    name: str | None = None
    created: str | None = None
    is_default: bool = False
    active: bool = True
    description: str | None = None

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "name": self.name,
            "created": self.created,
            "is_default": self.is_default,
            "active": self.active,
            "description": self.description,
        }


class ProvisioningBackend(ABC):
    """Shared contract implemented once per variant."""

    orchestration_type: OrchestrationType
    name: str

    @abstractmethod
    def start(self, request: StartRequest) -> ExecutionHandle:
        """Start provisioning and return a handle to poll."""
        ...

    @abstractmethod
    def poll(self, handle: ExecutionHandle) -> PollResult:
        """Report the status of the operation behind *handle*."""
        ...

    @abstractmethod
    def terminate(self, target: str, handle: ExecutionHandle) -> ExecutionHandle:
        """Tear down what *handle* provisioned and return a handle to poll."""
        ...

    @abstractmethod
    def format_parameters(self, parameters: list[ProvisioningParameter]) -> Any:
        """Render parameters in the backend-native shape."""
        ...

    @abstractmethod
    def describe_target(self, target: str) -> dict[str, Any]:
        """Describe a document/product for the event creation form."""
        ...

    @abstractmethod
    def list_versions(self, target: str) -> list[TargetVersion]:
        """List document versions / provisioning artifacts."""
        ...

    @abstractmethod
    def list_parameters(self, target: str, version: str | None = None) -> list[ProvisioningParameter]:
        """List the parameters the target accepts, with defaults."""
        ...

    def _call(
        self,
        operation: str,
        fn: Callable[..., T],
        *,
        not_found: type[BackendError] = ExecutionNotFoundError,
        **kwargs: Any,
    ) -> T:
        """Invoke one SDK operation, translating botocore failures."""
        try:
            return fn(**kwargs)
        except (ClientError, BotoCoreError) as e:
            translated = translate_client_error(
                e, backend=self.name, operation=operation, not_found=not_found
            )
            logger.warning(
                "backend_call_failed",
                backend=self.name,
                operation=operation,
                error_type=type(translated).__name__,
                error=translated.message,
            )
            raise translated from e
