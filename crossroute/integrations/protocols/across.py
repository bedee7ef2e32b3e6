from __future__ import annotations

import time
from decimal import Decimal
from typing import Any, Callable, Dict, Tuple

from web3 import AsyncWeb3

from crossroute.configuration.config import settings
from crossroute.core.errors import UnsupportedChain
from crossroute.core.onchain.chain_gateway import ChainGatewayPool
from crossroute.core.structures.structures import RouteQuote, RouteRequest, TransferCall
from crossroute.core.utils.amount_utils import from_base_units, protocol_fee
from crossroute.integrations.protocols.abis import ACROSS_SPOKE_POOL_ABI
from crossroute.integrations.protocols.base import BridgeAdapter
from crossroute.integrations.protocols.descriptors import ACROSS, token_decimals
from crossroute.logging.logger import get_logger

log = get_logger(__name__)

_PCT_SCALE = 10 ** 18


def relayer_fee_pct(relayer_fee: int, amount_units: int) -> int:
    """
    Relayer fee as an 18-decimal fraction of the deposit.

    Falls back to the configured fraction when the quoted fee cannot be expressed
    against the amount.
    """
    if relayer_fee > 0 and amount_units > 0:
        return relayer_fee * _PCT_SCALE // amount_units
    return int(Decimal(settings.ACROSS_RELAYER_FEE_PCT) * _PCT_SCALE)


class AcrossAdapter(BridgeAdapter):
    """
    Across relayer bridge through the chain's spoke pool.

    The relayer fee is charged in the bridged token and deducted from the deposit, so it
    is reported as part of the protocol fee and never sent as native value.
    """

    def __init__(self, gateways: ChainGatewayPool, clock: Callable[[], float] = time.time) -> None:
        super().__init__(ACROSS, gateways)
        self._clock = clock

    def _spoke_pool(self, chain: str) -> str:
        spoke_pool = self.descriptor.contract_addresses.get(chain)
        if not spoke_pool:
            raise UnsupportedChain(chain, self.name)
        return spoke_pool

    async def _read_messaging_fee(
            self,
            source_chain: str,
            destination_chain: str,
            token: str,
            recipient: str,
            amount_units: int,
    ) -> int:
        gateway = self.gateways.get(source_chain)
        destination_id = self.descriptor.protocol_chain_id(destination_chain)
        origin_token = self.descriptor.token_address(token, source_chain)
        log.debug("[ACROSS][FEE][REQUEST] %s->%s token=%s amount=%s", source_chain, destination_chain, token,
                  amount_units)
        fee = await gateway.call(
            self._spoke_pool(source_chain),
            ACROSS_SPOKE_POOL_ABI,
            "quoteRelayerFee",
            AsyncWeb3.to_checksum_address(origin_token),
            amount_units,
            destination_id,
        )
        return int(fee)

    def _quote_fees(self, request: RouteRequest, messaging_fee: int) -> Tuple[Decimal, Decimal]:
        relayer_fee = from_base_units(messaging_fee, token_decimals(request.token, request.source_chain))
        return Decimal(0), protocol_fee(request.amount, self.descriptor.fee_bps) + relayer_fee

    def _route_payload(self, request: RouteRequest, messaging_fee: int) -> Dict[str, Any]:
        return {"relayerFee": str(messaging_fee)}

    async def build_transfer_call(
            self,
            quote: RouteQuote,
            sender: str,
            recipient: str,
            amount_units: int,
            min_amount_out: int,
            messaging_fee: int,
    ) -> TransferCall:
        gateway = self.gateways.get(quote.source_chain)
        spoke_pool = self._spoke_pool(quote.source_chain)
        quote_timestamp = int(self._clock())
        data = gateway.encode(
            spoke_pool,
            ACROSS_SPOKE_POOL_ABI,
            "deposit",
            AsyncWeb3.to_checksum_address(recipient),
            AsyncWeb3.to_checksum_address(quote.details.source_token_address),
            amount_units,
            quote.details.destination_protocol_chain_id,
            relayer_fee_pct(messaging_fee, amount_units),
            quote_timestamp,
            b"",
        )
        if self.is_native(quote.token, quote.source_chain):
            return TransferCall(to=spoke_pool, data=data, value=amount_units)
        return TransferCall(to=spoke_pool, data=data, value=0, spender=spoke_pool)
