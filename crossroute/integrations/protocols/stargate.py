from __future__ import annotations

from typing import Any, Dict, Tuple

from web3 import AsyncWeb3

from crossroute.core.errors import UnsupportedAsset, UnsupportedChain
from crossroute.core.onchain.chain_gateway import ChainGatewayPool
from crossroute.core.structures.structures import RouteQuote, RouteRequest, TransferCall
from crossroute.integrations.protocols.abis import (
    STARGATE_ROUTER_ABI,
    STARGATE_ROUTER_ETH_ABI,
    STARGATE_TYPE_SWAP_REMOTE,
)
from crossroute.integrations.protocols.base import BridgeAdapter, address_bytes
from crossroute.integrations.protocols.descriptors import STARGATE, STARGATE_POOL_IDS
from crossroute.logging.logger import get_logger

log = get_logger(__name__)

# plain transfers carry no destination call and no airdrop
_EMPTY_LZ_TX_PARAMS: Tuple[int, int, bytes] = (0, 0, b"")


class StargateAdapter(BridgeAdapter):
    """Stargate liquidity-pool bridge over LayerZero."""

    def __init__(self, gateways: ChainGatewayPool) -> None:
        super().__init__(STARGATE, gateways)

    def _router(self, chain: str) -> str:
        router = self.descriptor.contract_addresses.get(chain)
        if not router:
            raise UnsupportedChain(chain, self.name)
        return router

    def _pool_id(self, token: str, chain: str) -> int:
        pool_id = STARGATE_POOL_IDS.get(token.strip().upper())
        if pool_id is None:
            raise UnsupportedAsset(token, chain, self.name)
        return pool_id

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
        log.debug("[STARGATE][FEE][REQUEST] %s->%s lz_dst=%s", source_chain, destination_chain, destination_id)
        native_fee, _zro_fee = await gateway.call(
            self._router(source_chain),
            STARGATE_ROUTER_ABI,
            "quoteLayerZeroFee",
            destination_id,
            STARGATE_TYPE_SWAP_REMOTE,
            address_bytes(recipient),
            b"",
            _EMPTY_LZ_TX_PARAMS,
        )
        return int(native_fee)

    def _route_payload(self, request: RouteRequest, messaging_fee: int) -> Dict[str, Any]:
        pool_id = self._pool_id(request.token, request.source_chain)
        return {"messagingFee": str(messaging_fee), "srcPoolId": pool_id, "dstPoolId": pool_id}

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
        destination_id = quote.details.destination_protocol_chain_id

        if self.is_native(quote.token, quote.source_chain):
            router_eth = self.descriptor.native_contract_for(quote.source_chain)
            if not router_eth:
                raise UnsupportedChain(quote.source_chain, self.name)
            data = gateway.encode(
                router_eth,
                STARGATE_ROUTER_ETH_ABI,
                "swapETH",
                destination_id,
                AsyncWeb3.to_checksum_address(sender),
                address_bytes(recipient),
                amount_units,
                min_amount_out,
            )
            return TransferCall(to=router_eth, data=data, value=amount_units + messaging_fee)

        router = self._router(quote.source_chain)
        source_pool = self._pool_id(quote.token, quote.source_chain)
        destination_pool = self._pool_id(quote.token, quote.destination_chain)
        data = gateway.encode(
            router,
            STARGATE_ROUTER_ABI,
            "swap",
            destination_id,
            source_pool,
            destination_pool,
            AsyncWeb3.to_checksum_address(sender),
            amount_units,
            min_amount_out,
            _EMPTY_LZ_TX_PARAMS,
            address_bytes(recipient),
            b"",
        )
        return TransferCall(to=router, data=data, value=messaging_fee, spender=router)
