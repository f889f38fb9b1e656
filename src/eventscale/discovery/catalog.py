"""Catalog product discovery (Service Catalog).

``search_products_as_admin`` has no tag filter, so every candidate costs two
more calls: its portfolio associations (products outside any portfolio
cannot be launched) and ``describe_product_as_admin`` to read its tags.
A pause precedes every one of those calls.
"""

from __future__ import annotations

from typing import Any

from eventscale.core.logging import get_logger
from eventscale.discovery.base import Discovery

logger = get_logger(__name__)


class CatalogDiscovery(Discovery):
    """Finds Service Catalog products carrying a tag."""

    name = "catalog"

    def _collect(self, tag_key: str, tag_value: str, found: list[str]) -> None:
        kwargs: dict[str, Any] = {"PageSize": self.config.catalog_page_size}
        page = 0
        while True:
            self._pause()
            response = self._client.search_products_as_admin(**kwargs)
            page += 1

            for detail in response.get("ProductViewDetails") or []:
                product_id = (detail.get("ProductViewSummary") or {}).get("ProductId")
                if not product_id:
                    continue
                if self._is_tagged(product_id, tag_key, tag_value):
                    found.append(product_id)

            logger.debug("catalog_page_searched", page=page, matched=len(found))
            next_token = response.get("NextPageToken")
            if not next_token:
                return
            kwargs["PageToken"] = next_token

    def _is_tagged(self, product_id: str, tag_key: str, tag_value: str) -> bool:
        self._pause()
        portfolios = self._client.list_portfolios_for_product(ProductId=product_id)
        if not portfolios.get("PortfolioDetails"):
            return False

        self._pause()
        described = self._client.describe_product_as_admin(Id=product_id)
        return any(
            tag.get("Key") == tag_key and tag.get("Value") == tag_value
            for tag in described.get("Tags") or []
        )
