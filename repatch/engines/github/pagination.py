"""Page-number pagination over list endpoints."""

from __future__ import annotations

from collections.abc import Mapping
from typing import Any

import structlog

from repatch.engines.github.gateway import HttpGateway
from repatch.engines.github.result import Result, capture

log = structlog.get_logger("repatch.github")

DEFAULT_MAX_PAGES = 10
DEFAULT_MAX_ITEMS = 1000


class Paginator:
    """Exhausts or caps a paged listing endpoint.

    Pages are fetched strictly one after another so quota usage stays
    predictable and the remote ordering is preserved.  A short page ends the
    walk.  Any page failure propagates and already-fetched items are dropped;
    use :meth:`safe_paginate` when the caller wants to choose a fallback.
    """

    def __init__(self, gateway: HttpGateway) -> None:
        self._gateway = gateway

    async def paginate(
        self,
        endpoint: str,
        params: Mapping[str, Any] | None = None,
        *,
        per_page: int | None = None,
        max_pages: int = DEFAULT_MAX_PAGES,
        max_items: int = DEFAULT_MAX_ITEMS,
        cache_ttl: float | None = None,
        items_key: str | None = None,
    ) -> list[Any]:
        """Return up to *max_items* items from at most *max_pages* pages.

        *cache_ttl* reads each page through the response cache.  *items_key*
        selects the list inside an object payload (e.g. ``"commits"``).
        """
        per_page = per_page or self._gateway.settings.per_page
        items: list[Any] = []
        if max_items <= 0:
            return items

        for page in range(1, max_pages + 1):
            query = dict(params or {})
            query["per_page"] = per_page
            query["page"] = page
            data = await self._gateway.get(endpoint, query, cache_ttl=cache_ttl)
            if items_key and isinstance(data, dict):
                data = data.get(items_key)
            if not isinstance(data, list) or not data:
                break

            items.extend(data)
            if len(items) >= max_items or len(data) < per_page:
                break
        else:
            log.debug("github.pagination_capped", endpoint=endpoint, max_pages=max_pages)

        return items[:max_items]

    async def safe_paginate(self, endpoint: str, params=None, **kwargs: Any) -> Result[list[Any]]:
        """Like :meth:`paginate` but returns ``Ok(items)`` or ``Err(error)``."""
        return await capture(self.paginate(endpoint, params, **kwargs))

