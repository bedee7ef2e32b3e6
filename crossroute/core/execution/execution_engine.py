from __future__ import annotations

from datetime import datetime, timezone
from functools import partial
from typing import Mapping, Optional, Protocol, Sequence

from crossroute.configuration.config import settings
from crossroute.core.errors import (
    InsufficientBalance,
    InsufficientGas,
    InvalidRequest,
    UnsupportedAsset,
    UnsupportedChain,
    classify_error,
)
from crossroute.core.onchain.chain_gateway import ChainGatewayPool
from crossroute.core.structures.structures import (
    BridgeExecutionRequest,
    BridgeTransactionRecord,
    FeeMode,
    RouteQuote,
    TransferCall,
)
from crossroute.core.utils.amount_utils import from_base_units, to_base_units, validate_slippage_percent
from crossroute.core.utils.chain_utils import normalize_chain_name
from crossroute.integrations.protocols.base import BridgeAdapter
from crossroute.integrations.protocols.descriptors import token_decimals
from crossroute.integrations.relay.relay_client import GaslessRelay
from crossroute.logging.logger import get_logger

log = get_logger(__name__)


class SubmissionListener(Protocol):
    def track(self, record: BridgeTransactionRecord, adapter: BridgeAdapter) -> object:
        ...


class ExecutionEngine:
    """
    Turn a chosen quote into a submitted source-chain transaction.

    Steps run in a fixed order: validation, token balance, then the adapter's execute path
    (minimum output, live fee, native balance check, allowance, transfer). Every failure
    leaves as a classified `BridgeError`.
    """

    def __init__(
            self,
            adapters: Sequence[BridgeAdapter],
            gateways: ChainGatewayPool,
            relay: Optional[GaslessRelay] = None,
            listener: Optional[SubmissionListener] = None,
    ) -> None:
        self._adapters: Mapping[str, BridgeAdapter] = {adapter.name: adapter for adapter in adapters}
        self.gateways = gateways
        self.relay = relay
        self.listener = listener

    def _adapter(self, provider: str) -> BridgeAdapter:
        adapter = self._adapters.get(provider)
        if adapter is None:
            raise InvalidRequest(f"Unknown bridge provider '{provider}'")
        return adapter

    @staticmethod
    def _validate(request: BridgeExecutionRequest, adapter: BridgeAdapter) -> None:
        quote = request.quote
        if quote.amount <= 0:
            raise InvalidRequest(f"Amount must be positive, got {quote.amount}")
        if normalize_chain_name(quote.source_chain) == normalize_chain_name(quote.destination_chain):
            raise InvalidRequest("Source and destination chains must differ")
        if quote.expires_at is not None and quote.expires_at <= datetime.now(timezone.utc):
            raise InvalidRequest("Quote expired; request fresh routes")
        try:
            adapter.resolve_token_addresses(quote.source_chain, quote.destination_chain, quote.token)
        except (UnsupportedChain, UnsupportedAsset) as exc:
            raise InvalidRequest(exc.message) from exc
        validate_slippage_percent(request.slippage_percent)

    def _is_gasless(self, request: BridgeExecutionRequest, native: bool) -> bool:
        quote = request.quote
        return (
                request.fee_mode == FeeMode.TOKEN
                and not native
                and self.relay is not None
                and self.relay.is_supported(quote.provider, quote.source_chain, quote.token)
        )

    async def execute(self, request: BridgeExecutionRequest) -> BridgeTransactionRecord:
        quote = request.quote
        try:
            adapter = self._adapter(quote.provider)
            return await self._execute(request, adapter)
        except Exception as exc:
            error = classify_error(exc, quote.provider)
            log.warning("[EXEC][FAIL] quote=%s kind=%s error=%s", quote, error.kind, error.message)
            if error is exc:
                raise
            raise error from exc

    async def _execute(self, request: BridgeExecutionRequest, adapter: BridgeAdapter) -> BridgeTransactionRecord:
        quote = request.quote
        signer = request.signer
        self._validate(request, adapter)

        decimals = token_decimals(quote.token, quote.source_chain)
        amount_units = to_base_units(quote.amount, decimals)
        native = adapter.is_native(quote.token, quote.source_chain)
        relay = self.relay if self._is_gasless(request, native) else None
        relay_fee = relay.token_fee(amount_units) if relay is not None else 0
        gateway = self.gateways.get(quote.source_chain)

        if native:
            token_balance = await gateway.native_balance(signer.address)
        else:
            token_balance = await gateway.token_balance(quote.details.source_token_address, signer.address)
        required_units = amount_units + relay_fee
        if token_balance < required_units:
            raise InsufficientBalance(
                quote.token,
                from_base_units(required_units, decimals),
                from_base_units(token_balance, decimals),
            )
        log.debug("[EXEC][BALANCE][OK] quote=%s balance=%s required=%s", quote, token_balance, required_units)

        relay_fee_tx_hash: Optional[str] = None

        async def before_submit(call: TransferCall, messaging_fee: int) -> None:
            nonlocal relay_fee_tx_hash
            fee_portion = call.value - amount_units if native else call.value
            gas_portion = 0 if relay is not None else settings.EXTRA_GAS_LIMIT * await gateway.gas_price()
            native_balance = token_balance if native else await gateway.native_balance(signer.address)
            required_native = call.value + gas_portion
            if native_balance < required_native:
                raise InsufficientGas(
                    required=required_native,
                    available=native_balance,
                    fee_portion=fee_portion,
                    gas_portion=gas_portion,
                )
            if relay is not None:
                relay_fee_tx_hash = await relay.pay_token_fee(
                    gateway, signer, quote.details.source_token_address, relay_fee
                )

        submit = partial(relay.submit, gateway, signer) if relay is not None else None
        record = await adapter.execute_bridge(request, before_submit=before_submit, submit=submit)
        record.relay_fee_tx_hash = relay_fee_tx_hash

        log.info("[EXEC][SUBMITTED] %s min_out=%s fee=%s relayed=%s", record, record.min_amount_out,
                 record.messaging_fee, record.relayed)
        if self.listener is not None:
            self.listener.track(record, adapter)
        return record
