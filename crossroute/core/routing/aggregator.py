from __future__ import annotations

import asyncio
from dataclasses import dataclass
from typing import Dict, List, Optional, Sequence, Union

from crossroute.core.errors import InvalidRequest, NoSupportedProvider, NoValidRoute
from crossroute.core.routing.route_cache import RouteCache
from crossroute.core.structures.structures import RouteQuote, RouteRequest
from crossroute.integrations.protocols.base import BridgeAdapter
from crossroute.logging.logger import get_logger

log = get_logger(__name__)


@dataclass(frozen=True)
class QuoteSuccess:
    provider: str
    quote: RouteQuote


@dataclass(frozen=True)
class QuoteFailure:
    provider: str
    error: BaseException


QuoteOutcome = Union[QuoteSuccess, QuoteFailure]


class RouteAggregator:
    """
    Fan a route request out to every supporting adapter and collect the surviving quotes.

    One adapter failing never fails the request; only "nobody supports it" and
    "everybody failed" surface as errors.
    """

    def __init__(self, adapters: Sequence[BridgeAdapter], cache: Optional[RouteCache] = None) -> None:
        self.adapters: List[BridgeAdapter] = list(adapters)
        self.cache = cache if cache is not None else RouteCache()

    def adapter_for(self, provider: str) -> Optional[BridgeAdapter]:
        for adapter in self.adapters:
            if adapter.name == provider:
                return adapter
        return None

    async def _quote_one(self, adapter: BridgeAdapter, request: RouteRequest) -> QuoteOutcome:
        try:
            return QuoteSuccess(adapter.name, await adapter.get_route(request))
        except Exception as exc:
            log.warning("[ROUTE][AGGREGATE][PROVIDER_FAIL] provider=%s route=%s error=%s", adapter.name, request, exc)
            return QuoteFailure(adapter.name, exc)

    async def aggregate(self, request: RouteRequest) -> List[RouteQuote]:
        if request.amount <= 0:
            raise InvalidRequest(f"Amount must be positive, got {request.amount}")

        cached = self.cache.get(request)
        if cached is not None:
            log.debug("[ROUTE][AGGREGATE][CACHE_HIT] route=%s quotes=%d", request, len(cached))
            return cached

        supporting = [
            adapter for adapter in self.adapters
            if adapter.supports_route(request.source_chain, request.destination_chain, request.token)
        ]
        if not supporting:
            raise NoSupportedProvider(request.source_chain, request.destination_chain, request.token)

        outcomes = await asyncio.gather(*(self._quote_one(adapter, request) for adapter in supporting))

        quotes: List[RouteQuote] = []
        failures: Dict[str, str] = {}
        for adapter, outcome in zip(supporting, outcomes):
            if isinstance(outcome, QuoteFailure):
                failures[outcome.provider] = str(outcome.error) or type(outcome.error).__name__
                continue
            quote = outcome.quote
            if not adapter.supports_route(quote.source_chain, quote.destination_chain, quote.token):
                log.warning("[ROUTE][AGGREGATE][DISCARD] provider=%s quote=%s unsupported triple", adapter.name, quote)
                continue
            quotes.append(quote)

        if not quotes:
            raise NoValidRoute(failures)

        log.info("[ROUTE][AGGREGATE] route=%s quotes=%d failures=%d", request, len(quotes), len(failures))
        return self.cache.put(request, quotes)
