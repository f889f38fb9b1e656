"""Resource discovery: tag-filtered, paginated, rate-limited enumeration."""

from __future__ import annotations

from eventscale.backends.clients import make_client
from eventscale.core.settings import EventScaleSettings
from eventscale.discovery.automation import AutomationDiscovery
from eventscale.discovery.base import Discovery
from eventscale.discovery.catalog import CatalogDiscovery
from eventscale.domain.models import OrchestrationType


def build_discovery(
    orchestration_type: OrchestrationType | str,
    settings: EventScaleSettings | None = None,
) -> Discovery:
    """Discovery variant for *orchestration_type* with a configured boto3 client."""
    settings = settings or EventScaleSettings()
    if OrchestrationType(orchestration_type) == OrchestrationType.AUTOMATION:
        return AutomationDiscovery(make_client("ssm", settings), settings.discovery_config())
    return CatalogDiscovery(make_client("servicecatalog", settings), settings.discovery_config())


__all__ = [
    "AutomationDiscovery",
    "CatalogDiscovery",
    "Discovery",
    "build_discovery",
]
