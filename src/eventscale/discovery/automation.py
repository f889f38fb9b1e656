"""Automation document discovery (SSM ``list_documents``).

The tag filter is applied server-side, so one paginated call is enough.
"""

from __future__ import annotations

from typing import Any

from eventscale.core.logging import get_logger
from eventscale.discovery.base import Discovery

logger = get_logger(__name__)


class AutomationDiscovery(Discovery):
    """Lists Automation documents carrying a tag."""

    name = "automation"

    def _collect(self, tag_key: str, tag_value: str, found: list[str]) -> None:
        kwargs: dict[str, Any] = {
            "MaxResults": min(self.config.automation_page_size, 50),
            "Filters": [
                {"Key": "DocumentType", "Values": ["Automation"]},
                {"Key": f"tag:{tag_key}", "Values": [tag_value]},
            ],
        }
        page = 0
        while True:
            response = self._client.list_documents(**kwargs)
            page += 1
            names = [d["Name"] for d in response.get("DocumentIdentifiers") or [] if d.get("Name")]
            found.extend(names)
            logger.debug("automation_page_listed", page=page, count=len(names))

            next_token = response.get("NextToken")
            if not next_token:
                return
            kwargs["NextToken"] = next_token
            self._pause()
