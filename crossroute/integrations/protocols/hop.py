from __future__ import annotations

import time
from typing import Callable

from web3 import AsyncWeb3

from crossroute.configuration.config import settings
from crossroute.core.errors import UnsupportedChain
from crossroute.core.onchain.chain_gateway import ChainGatewayPool
from crossroute.core.structures.structures import RouteQuote, TransferCall
from crossroute.integrations.protocols.abis import HOP_BRIDGE_ABI, ZERO_ADDRESS
from crossroute.integrations.protocols.base import BridgeAdapter
from crossroute.integrations.protocols.descriptors import HOP
from crossroute.logging.logger import get_logger

log = get_logger(__name__)

# sendToL2 lives on the L1 bridge, swapAndSend on the L2 AMM wrappers
_L1_CHAIN = "ethereum"


class HopAdapter(BridgeAdapter):
    """Hop AMM bridge; one bridge contract per token and chain."""

    def __init__(self, gateways: ChainGatewayPool, clock: Callable[[], float] = time.time) -> None:
        super().__init__(HOP, gateways)
        self._clock = clock

    def _bridge(self, token: str, chain: str) -> str:
        bridge = self.descriptor.contract_for(token, chain)
        if not bridge:
            raise UnsupportedChain(chain, self.name)
        return bridge

    def _deadline(self) -> int:
        return int(self._clock()) + settings.HOP_DEADLINE_SECONDS

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
        log.debug("[HOP][FEE][REQUEST] %s->%s token=%s amount=%s", source_chain, destination_chain, token, amount_units)
        fee = await gateway.call(
            self._bridge(token, source_chain),
            HOP_BRIDGE_ABI,
            "estimateSendFee",
            destination_id,
            AsyncWeb3.to_checksum_address(recipient),
            amount_units,
        )
        return int(fee)

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
        bridge = self._bridge(quote.token, quote.source_chain)
        destination_id = quote.details.destination_protocol_chain_id
        checksum_recipient = AsyncWeb3.to_checksum_address(recipient)
        deadline = self._deadline()

        if quote.source_chain == _L1_CHAIN:
            data = gateway.encode(
                bridge,
                HOP_BRIDGE_ABI,
                "sendToL2",
                destination_id,
                checksum_recipient,
                amount_units,
                min_amount_out,
                deadline,
                ZERO_ADDRESS,
                0,
            )
        else:
            # bonder fee 0; destination bounds mirror the source ones
            data = gateway.encode(
                bridge,
                HOP_BRIDGE_ABI,
                "swapAndSend",
                destination_id,
                checksum_recipient,
                amount_units,
                0,
                min_amount_out,
                deadline,
                min_amount_out,
                deadline,
            )

        if self.is_native(quote.token, quote.source_chain):
            return TransferCall(to=bridge, data=data, value=amount_units + messaging_fee)
        return TransferCall(to=bridge, data=data, value=messaging_fee, spender=bridge)
