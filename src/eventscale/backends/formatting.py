"""Backend-specific provisioning parameter shapes.

The same ordered list of :class:`ProvisioningParameter` is rendered
differently per backend:

- Automation: ``{"InstanceCount": ["4"], "Size": ["large"]}``
- Catalog:    ``[{"Key": "InstanceCount", "Value": "4"}, {"Key": "Size", "Value": "large"}]``

Parameters without a value are omitted so the backend applies its own
default.
"""

from __future__ import annotations

from typing import Any

from eventscale.domain.models import OrchestrationType, ProvisioningParameter


def format_automation_parameters(parameters: list[ProvisioningParameter]) -> dict[str, list[str]]:
    """Wrap each value as a single-element list keyed by parameter name."""
    return {p.key: [p.default_value] for p in parameters if p.default_value is not None}


def format_catalog_parameters(parameters: list[ProvisioningParameter]) -> list[dict[str, str]]:
    """Ordered ``{Key, Value}`` pairs."""
    return [
        {"Key": p.key, "Value": p.default_value}
        for p in parameters
        if p.default_value is not None
    ]


def format_parameters(
    orchestration_type: OrchestrationType | str,
    parameters: list[ProvisioningParameter],
) -> Any:
    """Render *parameters* in the shape the given backend expects."""
    if OrchestrationType(orchestration_type) == OrchestrationType.AUTOMATION:
        return format_automation_parameters(parameters)
    return format_catalog_parameters(parameters)
