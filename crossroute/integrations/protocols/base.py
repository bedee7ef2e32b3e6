from __future__ import annotations

from abc import ABC, abstractmethod
from dataclasses import dataclass
from decimal import Decimal
from typing import Any, Awaitable, Callable, Dict, Optional, Tuple

from web3 import AsyncWeb3

from crossroute.configuration.config import settings
from crossroute.core.errors import AllowanceFailure, BridgeError, FeeQuoteFailure, ProviderError
from crossroute.core.onchain.chain_gateway import ChainGateway, ChainGatewayPool
from crossroute.core.structures.structures import (
    BridgeExecutionRequest,
    BridgeTransactionRecord,
    RouteDetails,
    RouteQuote,
    RouteRequest,
    TransferCall,
)
from crossroute.core.utils.amount_utils import compute_min_amount_out, from_base_units, protocol_fee, to_base_units
from crossroute.core.utils.chain_utils import normalize_chain_name
from crossroute.integrations.protocols.abis import ERC20_ABI, MAX_UINT256
from crossroute.integrations.protocols.descriptors import CompletionEventSpec, ProviderDescriptor, token_decimals
from crossroute.logging.logger import get_logger

log = get_logger(__name__)

# (to, data[, value]) -> tx hash; lets approval and transfer go through the gasless relay instead of the signer
Submitter = Callable[..., Awaitable[str]]
# (transfer call, messaging fee) -> None; last chance to abort before anything is signed
BeforeSubmit = Callable[[TransferCall, int], Awaitable[None]]


@dataclass(frozen=True)
class CompletionTarget:
    """Where and what to look for on the destination chain once the source transaction is mined."""
    contract: str
    event: CompletionEventSpec
    expected_source_chain_id: int
    recipient: str


def address_bytes(address: str) -> bytes:
    """Packed 20-byte form of an address (abi.encodePacked)."""
    return bytes.fromhex(AsyncWeb3.to_checksum_address(address)[2:])


async def ensure_allowance(
        gateway: ChainGateway,
        signer: Any,
        token_address: str,
        spender: str,
        amount_units: int,
        submit: Optional[Submitter] = None,
) -> Optional[str]:
    """
    Make sure `spender` may pull `amount_units` of the token from the signer.

    Approves MAX_UINT256 only when the current allowance is short, then waits for the
    approval receipt so the transfer never races it.

    Returns:
        The approval tx hash, or None when the allowance already sufficed.
    """
    try:
        current = await gateway.allowance(token_address, signer.address, spender)
    except Exception as exc:
        raise AllowanceFailure(token_address, spender, f"allowance read failed: {exc}") from exc
    if current >= amount_units:
        log.debug("[EXEC][APPROVE][SKIP] chain=%s token=%s allowance=%s", gateway.chain, token_address, current)
        return None

    data = gateway.encode(token_address, ERC20_ABI, "approve", AsyncWeb3.to_checksum_address(spender), MAX_UINT256)
    try:
        if submit is not None:
            approval_hash = await submit(token_address, data)
        else:
            approval_hash = await signer.send_transaction(
                gateway, token_address, data, 0, settings.APPROVAL_GAS_LIMIT
            )
        receipt = await gateway.wait_for_receipt(approval_hash, settings.APPROVAL_RECEIPT_TIMEOUT_SECONDS)
    except Exception as exc:
        raise AllowanceFailure(token_address, spender, str(exc) or type(exc).__name__) from exc
    if int(receipt.get("status", 0)) != 1:
        raise AllowanceFailure(token_address, spender, f"approval {approval_hash} reverted")
    log.info("[EXEC][APPROVE][DONE] chain=%s token=%s spender=%s tx=%s", gateway.chain, token_address, spender,
             approval_hash)
    return approval_hash


class BridgeAdapter(ABC):
    """
    One bridge protocol behind a uniform capability interface.

    Protocol differences live in the descriptor table and in the three hooks subclasses
    implement: reading the live messaging fee, mapping it onto quote fees, and building
    the transfer call.
    """

    def __init__(self, descriptor: ProviderDescriptor, gateways: ChainGatewayPool) -> None:
        self.descriptor = descriptor
        self.gateways = gateways

    @property
    def name(self) -> str:
        return self.descriptor.name

    def supports_route(self, source_chain: str, destination_chain: str, token: str) -> bool:
        return self.descriptor.supports(source_chain, destination_chain, token)

    def get_estimated_time(self, source_chain: str, destination_chain: str) -> int:
        return self.descriptor.estimated_minutes(source_chain, destination_chain)

    def resolve_token_addresses(self, source_chain: str, destination_chain: str, token: str) -> Tuple[str, str]:
        """Raise UnsupportedChain for unknown chains, then UnsupportedAsset for missing tokens."""
        self.descriptor.chain_identity(source_chain)
        self.descriptor.chain_identity(destination_chain)
        return (
            self.descriptor.token_address(token, source_chain),
            self.descriptor.token_address(token, destination_chain),
        )

    def is_native(self, token: str, chain: str) -> bool:
        return self.descriptor.is_native(token, chain)

    @abstractmethod
    async def _read_messaging_fee(
            self,
            source_chain: str,
            destination_chain: str,
            token: str,
            recipient: str,
            amount_units: int,
    ) -> int:
        """Live fee read from the source chain, in the unit the protocol charges it."""

    @abstractmethod
    async def build_transfer_call(
            self,
            quote: RouteQuote,
            sender: str,
            recipient: str,
            amount_units: int,
            min_amount_out: int,
            messaging_fee: int,
    ) -> TransferCall:
        """Encode the transfer call; `spender` on the result names the contract needing allowance."""

    def _quote_fees(self, request: RouteRequest, messaging_fee: int) -> Tuple[Decimal, Decimal]:
        """Map the live fee onto (native gas fee, protocol fee). Default: fee paid in native wei."""
        return from_base_units(messaging_fee, 18), protocol_fee(request.amount, self.descriptor.fee_bps)

    def _route_payload(self, request: RouteRequest, messaging_fee: int) -> Dict[str, Any]:
        return {"messagingFee": str(messaging_fee)}

    async def get_route(self, request: RouteRequest) -> RouteQuote:
        source_token, destination_token = self.resolve_token_addresses(
            request.source_chain, request.destination_chain, request.token
        )
        amount_units = to_base_units(request.amount, token_decimals(request.token, request.source_chain))
        try:
            messaging_fee = await self._read_messaging_fee(
                normalize_chain_name(request.source_chain),
                normalize_chain_name(request.destination_chain),
                request.token.strip().upper(),
                request.user_address,
                amount_units,
            )
        except BridgeError:
            raise
        except Exception as exc:
            log.warning("[%s][QUOTE][FAIL] route=%s error=%s", self.name.upper(), request, exc)
            raise ProviderError(self.name, exc) from exc

        gas_fee, fee = self._quote_fees(request, messaging_fee)
        quote = RouteQuote(
            provider=self.name,
            source_chain=normalize_chain_name(request.source_chain),
            destination_chain=normalize_chain_name(request.destination_chain),
            token=request.token.strip().upper(),
            amount=request.amount,
            estimated_gas_fee=gas_fee,
            protocol_fee=fee,
            estimated_minutes=self.get_estimated_time(request.source_chain, request.destination_chain),
            details=RouteDetails(
                source_token_address=source_token,
                destination_token_address=destination_token,
                source_protocol_chain_id=self.descriptor.protocol_chain_id(request.source_chain),
                destination_protocol_chain_id=self.descriptor.protocol_chain_id(request.destination_chain),
                payload=self._route_payload(request, messaging_fee),
            ),
        )
        log.debug("[%s][QUOTE][RECEIVE] %s", self.name.upper(), quote)
        return quote

    async def quote_messaging_fee(self, quote: RouteQuote, recipient: str) -> int:
        amount_units = to_base_units(quote.amount, token_decimals(quote.token, quote.source_chain))
        return await self._read_messaging_fee(
            quote.source_chain, quote.destination_chain, quote.token, recipient, amount_units
        )

    def completion_target(self, record: BridgeTransactionRecord) -> Optional[CompletionTarget]:
        event = self.descriptor.completion_event
        contract = self.descriptor.completion_contract_for(record.token, record.source_chain, record.destination_chain)
        if event is None or not contract:
            return None
        return CompletionTarget(
            contract=contract,
            event=event,
            expected_source_chain_id=self.descriptor.protocol_chain_id(record.source_chain),
            recipient=record.recipient,
        )

    async def execute_bridge(
            self,
            request: BridgeExecutionRequest,
            before_submit: Optional[BeforeSubmit] = None,
            submit: Optional[Submitter] = None,
    ) -> BridgeTransactionRecord:
        """
        Submit the transfer: live fee, transfer call, allowance if short, then the transfer.

        Args:
            request: Chosen quote, signer and slippage.
            before_submit: Awaited with the built call and the messaging fee before anything is
                signed; raising aborts the transfer.
            submit: Sends `(to, data[, value])` instead of the signer, for both the approval
                and the transfer.

        Raises:
            FeeQuoteFailure: The live fee read failed.
            ProviderError: Any unclassified failure while building or sending.
        """
        quote = request.quote
        signer = request.signer
        recipient = request.recipient or signer.address
        amount_units = to_base_units(quote.amount, token_decimals(quote.token, quote.source_chain))
        min_amount_out = compute_min_amount_out(amount_units, request.slippage_percent)
        gateway = self.gateways.get(quote.source_chain)

        try:
            messaging_fee = await self.quote_messaging_fee(quote, recipient)
        except BridgeError:
            raise
        except Exception as exc:
            raise FeeQuoteFailure(self.name, str(exc) or type(exc).__name__) from exc

        try:
            call = await self.build_transfer_call(
                quote, signer.address, recipient, amount_units, min_amount_out, messaging_fee
            )
            if before_submit is not None:
                await before_submit(call, messaging_fee)
            if call.spender is not None and not self.is_native(quote.token, quote.source_chain):
                await ensure_allowance(
                    gateway, signer, quote.details.source_token_address, call.spender, amount_units, submit
                )
            if submit is not None:
                tx_hash = await submit(call.to, call.data, call.value)
            else:
                tx_hash = await signer.send_transaction(gateway, call.to, call.data, call.value, call.gas_limit)
        except BridgeError:
            raise
        except Exception as exc:
            log.error("[%s][EXECUTE][FAIL] quote=%s error=%s", self.name.upper(), quote, exc)
            raise ProviderError(self.name, exc) from exc

        log.info("[%s][EXECUTE][SUBMITTED] quote=%s tx=%s", self.name.upper(), quote, tx_hash)
        return BridgeTransactionRecord(
            tx_hash=tx_hash,
            source_chain=quote.source_chain,
            destination_chain=quote.destination_chain,
            token=quote.token,
            amount=quote.amount,
            provider=self.name,
            sender=signer.address,
            recipient=recipient,
            min_amount_out=min_amount_out,
            messaging_fee=messaging_fee,
            relayed=submit is not None,
            status_message="Submitted on source chain",
        )
