from __future__ import annotations

from decimal import Decimal
from typing import Any, List, Optional, Sequence

from crossroute.configuration.config import settings
from crossroute.core.errors import InvalidRequest
from crossroute.core.execution.execution_engine import ExecutionEngine
from crossroute.core.monitoring.tracker import TransactionTracker
from crossroute.core.onchain.evm_signer import build_default_evm_signer
from crossroute.core.onchain.chain_gateway import ChainGatewayPool
from crossroute.core.routing.aggregator import RouteAggregator
from crossroute.core.routing.route_cache import RouteCache
from crossroute.core.routing.scoring import RouteScorer
from crossroute.core.structures.structures import (
    BridgeExecutionRequest,
    BridgeIntent,
    BridgeTransactionRecord,
    FeeMode,
    RouteRequest,
    ScoredRoute,
)
from crossroute.core.utils.chain_utils import normalize_chain_name
from crossroute.integrations.protocols.across import AcrossAdapter
from crossroute.integrations.protocols.base import BridgeAdapter
from crossroute.integrations.protocols.hop import HopAdapter
from crossroute.integrations.protocols.stargate import StargateAdapter
from crossroute.integrations.relay.relay_client import GaslessRelay
from crossroute.integrations.socket.socket_adapter import SocketAdapter
from crossroute.integrations.socket.socket_client import SocketClient
from crossroute.logging.logger import get_logger

log = get_logger(__name__)


def build_default_adapters(gateways: ChainGatewayPool, socket_client: Optional[SocketClient] = None) -> List[BridgeAdapter]:
    """Contract bridges always; the aggregator only when a client is available."""
    adapters: List[BridgeAdapter] = [StargateAdapter(gateways), HopAdapter(gateways), AcrossAdapter(gateways)]
    if socket_client is not None:
        adapters.append(SocketAdapter(gateways, socket_client))
    return adapters


def route_request_from_intent(intent: BridgeIntent) -> RouteRequest:
    if not intent.user_address:
        raise InvalidRequest("A user address is required to quote a transfer")
    return RouteRequest(
        source_chain=normalize_chain_name(intent.source_chain),
        destination_chain=normalize_chain_name(intent.destination_chain),
        token=intent.token.strip().upper(),
        amount=Decimal(intent.amount),
        user_address=intent.user_address,
        slippage_percent=intent.slippage_percent,
    )


class BridgeService:
    """
    Facade wiring aggregation, scoring, execution and tracking together.

    Consumes `BridgeIntent` objects produced by the conversational layer.
    """

    def __init__(
            self,
            adapters: Optional[Sequence[BridgeAdapter]] = None,
            gateways: Optional[ChainGatewayPool] = None,
            socket_client: Optional[SocketClient] = None,
            relay: Optional[GaslessRelay] = None,
            tracker: Optional[TransactionTracker] = None,
            route_cache: Optional[RouteCache] = None,
            signer: Optional[Any] = None,
    ) -> None:
        self.gateways = gateways or ChainGatewayPool()
        self.socket_client = socket_client
        self.relay = relay
        self.signer = signer
        self.adapters: List[BridgeAdapter] = (
            list(adapters) if adapters is not None else build_default_adapters(self.gateways, socket_client)
        )
        self.aggregator = RouteAggregator(self.adapters, route_cache)
        self.scorer = RouteScorer()
        self.tracker = tracker or TransactionTracker(self.gateways)
        self.engine = ExecutionEngine(self.adapters, self.gateways, relay=relay, listener=self.tracker)

    @classmethod
    def from_settings(cls) -> "BridgeService":
        gateways = ChainGatewayPool()
        socket_client = SocketClient() if settings.SOCKET_API_KEY else None
        relay = GaslessRelay() if settings.RELAY_ENABLED else None
        return cls(gateways=gateways, socket_client=socket_client, relay=relay, signer=build_default_evm_signer())

    async def quote(self, intent: BridgeIntent) -> List[ScoredRoute]:
        request = route_request_from_intent(intent)
        quotes = await self.aggregator.aggregate(request)
        return self.scorer.score(quotes)

    async def execute(
            self,
            route: ScoredRoute,
            signer: Optional[Any] = None,
            intent: Optional[BridgeIntent] = None,
            recipient: Optional[str] = None,
    ) -> BridgeTransactionRecord:
        """
        Execute a scored route; the intent supplies gas preference and slippage when given.

        Falls back to the service signer (built from EVM_* settings) when `signer` is omitted.
        """
        signer = signer if signer is not None else self.signer
        if signer is None:
            raise InvalidRequest("No signer given and none configured (EVM_PRIVATE_KEY or EVM_MNEMONIC)")
        slippage = Decimal(settings.DEFAULT_SLIPPAGE_PERCENT)
        request = BridgeExecutionRequest(
            quote=route.quote,
            signer=signer,
            slippage_percent=intent.slippage_percent if intent and intent.slippage_percent is not None else slippage,
            fee_mode=intent.gas_preference if intent is not None else FeeMode.NATIVE,
            recipient=recipient,
        )
        return await self.engine.execute(request)

    async def quote_and_execute(self, intent: BridgeIntent, signer: Optional[Any] = None) -> BridgeTransactionRecord:
        """Quote, pick the top-ranked route and execute it."""
        routes = await self.quote(intent)
        best = routes[0]
        log.info("[SERVICE][EXECUTE][BEST] provider=%s score=%.2f", best.provider, best.total_score)
        return await self.execute(best, signer, intent)

    async def aclose(self) -> None:
        self.tracker.shutdown()
        if self.socket_client is not None:
            await self.socket_client.aclose()
        if self.relay is not None:
            await self.relay.aclose()
