"""Shared pacing and throttle handling for discovery.

Discovery calls are made one at a time with a fixed pause between them so
that a single enumeration stays under the backend's request quota.  The
pause is injected (``sleep``) so tests run instantly.
"""

from __future__ import annotations

import time
from collections.abc import Callable

from botocore.exceptions import BotoCoreError, ClientError

from eventscale.backends.errors import attempts_made, error_code, is_throttling
from eventscale.core.errors import DiscoveryError
from eventscale.core.logging import get_logger
from eventscale.core.settings import DiscoveryConfig

logger = get_logger(__name__)


class Discovery:
    """Base for the two discovery variants."""

    name: str = "discovery"

    def __init__(
        self,
        client,
        config: DiscoveryConfig | None = None,
        *,
        sleep: Callable[[float], None] = time.sleep,
    ):
        self._client = client
        self.config = config or DiscoveryConfig()
        self._sleep = sleep

    def discover(self, tag_key: str, tag_value: str) -> list[str]:
        """Identifiers of resources tagged exactly ``tag_key=tag_value``.

        Returns a deduplicated list.  Throttling ends the enumeration early
        with whatever was collected; any other failure raises
        :class:`DiscoveryError`.
        """
        found: list[str] = []
        try:
            self._collect(tag_key, tag_value, found)
        except ClientError as e:
            if is_throttling(e, self.config.throttle_max_attempts):
                logger.warning(
                    "discovery_stopped_early",
                    variant=self.name,
                    code=error_code(e),
                    attempts=attempts_made(e),
                    collected=len(found),
                )
            else:
                logger.error("discovery_failed", variant=self.name, code=error_code(e), error=str(e))
                raise DiscoveryError(
                    f"{self.name} discovery failed: {e}", cause=e
                ).with_context(tag_key=tag_key, tag_value=tag_value) from e
        except BotoCoreError as e:
            logger.error("discovery_failed", variant=self.name, error=str(e))
            raise DiscoveryError(f"{self.name} discovery failed: {e}", cause=e) from e

        resources = list(dict.fromkeys(found))
        logger.info(
            "discovery_completed",
            variant=self.name,
            tag_key=tag_key,
            tag_value=tag_value,
            count=len(resources),
        )
        return resources

    def _collect(self, tag_key: str, tag_value: str, found: list[str]) -> None:
        """Append matching identifiers to *found* as they are confirmed."""
        raise NotImplementedError

    def _pause(self) -> None:
        if self.config.api_call_delay_seconds > 0:
            self._sleep(self.config.api_call_delay_seconds)
