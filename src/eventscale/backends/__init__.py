"""Provisioning backends (Automation via SSM, Catalog via Service Catalog)."""

from __future__ import annotations

from collections.abc import Mapping

from eventscale.backends.automation import AutomationBackend
from eventscale.backends.base import ProvisioningBackend, StartRequest, TargetVersion
from eventscale.backends.catalog import CatalogBackend
from eventscale.backends.clients import make_client
from eventscale.backends.formatting import format_parameters
from eventscale.core.errors import ConfigError
from eventscale.core.settings import EventScaleSettings
from eventscale.domain.models import OrchestrationType

BackendMap = Mapping[OrchestrationType, ProvisioningBackend]


def build_backends(settings: EventScaleSettings | None = None) -> dict[OrchestrationType, ProvisioningBackend]:
    """Create both backend variants with boto3 clients from *settings*."""
    settings = settings or EventScaleSettings()
    return {
        OrchestrationType.AUTOMATION: AutomationBackend(
            make_client("ssm", settings),
            teardown_parameter=settings.automation_teardown_parameter,
            teardown_value=settings.automation_teardown_value,
        ),
        OrchestrationType.CATALOG: CatalogBackend(
            make_client("servicecatalog", settings),
            provisioned_product_prefix=settings.provisioned_product_prefix,
        ),
    }


def select_backend(backends: BackendMap, orchestration_type: OrchestrationType | str) -> ProvisioningBackend:
    """Pick the variant for an Event's ``orchestration_type``."""
    try:
        return backends[OrchestrationType(orchestration_type)]
    except (KeyError, ValueError) as e:
        raise ConfigError(f"No provisioning backend for orchestration type {orchestration_type!r}") from e


__all__ = [
    "AutomationBackend",
    "BackendMap",
    "CatalogBackend",
    "ProvisioningBackend",
    "StartRequest",
    "TargetVersion",
    "build_backends",
    "format_parameters",
    "make_client",
    "select_backend",
]
