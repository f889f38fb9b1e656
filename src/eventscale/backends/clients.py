"""boto3 client construction.

Every AWS client carries the same botocore retry configuration, so a
throttled call is retried by the SDK (bounded attempts with backoff)
before the error ever reaches eventscale code.
"""

from __future__ import annotations

from typing import Any

import boto3
import structlog
from botocore.config import Config

from eventscale.core.settings import EventScaleSettings

logger = structlog.get_logger()


def build_client_config(max_attempts: int = 40, retry_mode: str = "standard") -> Config:
    """botocore config with the retry budget applied."""
    return Config(retries={"max_attempts": max_attempts, "mode": retry_mode})


def make_client(service_name: str, settings: EventScaleSettings | None = None) -> Any:
    """Create a boto3 client for *service_name* using the configured retry budget."""
    settings = settings or EventScaleSettings()

    client_kwargs: dict[str, Any] = {
        "service_name": service_name,
        "config": build_client_config(settings.sdk_max_attempts, settings.sdk_retry_mode),
    }
    if settings.aws_region:
        client_kwargs["region_name"] = settings.aws_region

    client = boto3.client(**client_kwargs)
    logger.debug(
        "aws_client_created",
        service=service_name,
        region=settings.aws_region,
        max_attempts=settings.sdk_max_attempts,
        retry_mode=settings.sdk_retry_mode,
    )
    return client
