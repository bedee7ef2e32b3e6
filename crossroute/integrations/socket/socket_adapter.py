from __future__ import annotations

import math
from decimal import Decimal
from typing import Any, Mapping

import httpx

from crossroute.core.errors import BridgeError, ProviderError
from crossroute.core.onchain.chain_gateway import ChainGatewayPool
from crossroute.core.structures.structures import RouteDetails, RouteQuote, RouteRequest, TransferCall
from crossroute.core.utils.amount_utils import from_base_units, to_base_units
from crossroute.core.utils.chain_utils import normalize_chain_name
from crossroute.integrations.protocols.base import BridgeAdapter
from crossroute.integrations.protocols.descriptors import SOCKET, token_decimals
from crossroute.integrations.socket.socket_client import SocketClient
from crossroute.logging.logger import get_logger

log = get_logger(__name__)


class SocketAdapter(BridgeAdapter):
    """
    Bridge-aggregator provider backed by the Socket REST API.

    The aggregator folds its messaging fee into the built transaction value, so the live
    fee read returns zero and the real value comes from `/build-tx`. Transfers routed
    this way have no completion event to watch.
    """

    def __init__(self, gateways: ChainGatewayPool, client: SocketClient) -> None:
        super().__init__(SOCKET, gateways)
        self.client = client

    async def _read_messaging_fee(
            self,
            source_chain: str,
            destination_chain: str,
            token: str,
            recipient: str,
            amount_units: int,
    ) -> int:
        return 0

    async def get_route(self, request: RouteRequest) -> RouteQuote:
        source_token, destination_token = self.resolve_token_addresses(
            request.source_chain, request.destination_chain, request.token
        )
        source_chain = normalize_chain_name(request.source_chain)
        destination_chain = normalize_chain_name(request.destination_chain)
        token = request.token.strip().upper()
        try:
            routes = await self.client.fetch_quote(
                from_chain_id=self.descriptor.protocol_chain_id(source_chain),
                to_chain_id=self.descriptor.protocol_chain_id(destination_chain),
                from_token_address=source_token,
                to_token_address=destination_token,
                from_amount=to_base_units(request.amount, token_decimals(token, source_chain)),
                user_address=request.user_address,
            )
            if not routes:
                raise ValueError(f"Socket returned no route for {source_chain}->{destination_chain} {token}")
        except BridgeError:
            raise
        except (httpx.HTTPError, ValueError) as exc:
            log.warning("[SOCKET][QUOTE][FAIL] route=%s error=%s", request, exc)
            raise ProviderError(self.name, exc) from exc

        best = routes[0]
        received = from_base_units(best.to_amount, token_decimals(token, destination_chain))
        if best.service_time_seconds:
            minutes = max(1, math.ceil(best.service_time_seconds / 60))
        else:
            minutes = self.get_estimated_time(source_chain, destination_chain)
        quote = RouteQuote(
            provider=self.name,
            source_chain=source_chain,
            destination_chain=destination_chain,
            token=token,
            amount=request.amount,
            estimated_gas_fee=from_base_units(best.gas_fee_wei, 18),
            protocol_fee=max(request.amount - received, Decimal(0)),
            estimated_minutes=minutes,
            details=RouteDetails(
                source_token_address=source_token,
                destination_token_address=destination_token,
                source_protocol_chain_id=self.descriptor.protocol_chain_id(source_chain),
                destination_protocol_chain_id=self.descriptor.protocol_chain_id(destination_chain),
                payload={
                    "route": best.raw,
                    "bridgeNames": list(best.used_bridge_names),
                    "toAmount": str(best.to_amount),
                },
            ),
        )
        log.debug("[SOCKET][QUOTE][BEST] %s bridges=%s", quote, ",".join(best.used_bridge_names))
        return quote

    async def build_transfer_call(
            self,
            quote: RouteQuote,
            sender: str,
            recipient: str,
            amount_units: int,
            min_amount_out: int,
            messaging_fee: int,
    ) -> TransferCall:
        route: Any = quote.details.payload.get("route")
        if not isinstance(route, Mapping):
            raise ValueError("Socket quote carries no raw route to build from.")
        slippage_percent = Decimal(0)
        if amount_units > 0:
            slippage_percent = Decimal(amount_units - min_amount_out) * 100 / Decimal(amount_units)
        transaction = await self.client.build_transaction(route, sender, slippage_percent)
        spender = None
        if not self.is_native(quote.token, quote.source_chain):
            spender = transaction.approval_target or transaction.to
        return TransferCall(
            to=transaction.to,
            data=transaction.data,
            value=transaction.value,
            spender=spender,
            gas_limit=transaction.gas_limit,
        )
