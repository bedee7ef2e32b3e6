from __future__ import annotations

import time
from dataclasses import replace
from datetime import datetime, timedelta, timezone
from typing import Callable, List, Optional

from crossroute.configuration.config import settings
from crossroute.core.structures.structures import RouteQuote, RouteRequest
from crossroute.core.utils.chain_utils import normalize_chain_name
from crossroute.core.utils.ttl_cache import TtlCache


def route_cache_key(request: RouteRequest) -> str:
    """Key quotes by `source|destination|token|amount`; the user address is not part of it."""
    return "|".join((
        normalize_chain_name(request.source_chain),
        normalize_chain_name(request.destination_chain),
        request.token.strip().upper(),
        format(request.amount.normalize(), "f"),
    ))


class RouteCache:
    """Quote lists per route request, stamped with their wall-clock expiry."""

    def __init__(
            self,
            ttl_seconds: Optional[float] = None,
            clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self._cache: TtlCache[List[RouteQuote]] = TtlCache(
            ttl_seconds if ttl_seconds is not None else settings.ROUTE_CACHE_TTL_SECONDS,
            clock=clock,
        )

    @property
    def ttl_seconds(self) -> float:
        return self._cache.ttl_seconds

    def get(self, request: RouteRequest) -> Optional[List[RouteQuote]]:
        quotes = self._cache.get(route_cache_key(request))
        return None if quotes is None else list(quotes)

    def put(self, request: RouteRequest, quotes: List[RouteQuote]) -> List[RouteQuote]:
        expires_at = datetime.now(timezone.utc) + timedelta(seconds=self._cache.ttl_seconds)
        stamped = [replace(quote, expires_at=expires_at) for quote in quotes]
        self._cache.set(route_cache_key(request), stamped)
        return list(stamped)

    def clear(self) -> None:
        self._cache.clear()
