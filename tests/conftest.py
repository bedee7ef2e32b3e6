"""Pytest configuration and shared fakes."""

from dataclasses import dataclass, field
from decimal import Decimal
from typing import Any, Callable, Dict, List, Mapping, Optional, Tuple

import pytest

from crossroute.core.onchain.chain_gateway import ChainGatewayPool
from crossroute.core.structures.structures import RouteDetails, RouteQuote, RouteRequest
from crossroute.integrations.protocols.descriptors import ProviderDescriptor

SENDER = "0x1111111111111111111111111111111111111111"
RECIPIENT = "0x2222222222222222222222222222222222222222"


class FakeGateway:
    """In-memory stand-in for a ChainGateway; records every contract call and encoding."""

    def __init__(self, chain: str) -> None:
        self.chain = chain
        self.native_balances: Dict[str, int] = {}
        self.token_balances: Dict[Tuple[str, str], int] = {}
        self.allowances: Dict[Tuple[str, str, str], int] = {}
        self.gas_price_wei = 1_000_000_000
        self.responses: Dict[str, Any] = {}
        self.receipts: Dict[str, Optional[Mapping[str, Any]]] = {}
        self.receipt_error: Optional[Exception] = None
        self.logs: List[Mapping[str, Any]] = []
        self.logs_error: Optional[Exception] = None
        self.latest_block = 5_000
        self.calls: List[Tuple[str, str, Tuple[Any, ...]]] = []
        self.encoded: List[Tuple[str, str, Tuple[Any, ...]]] = []
        self.log_queries = 0

    async def call(self, address: str, abi: Any, function_name: str, *args: Any) -> Any:
        self.calls.append((address, function_name, args))
        response = self.responses[function_name]
        if isinstance(response, Exception):
            raise response
        if callable(response):
            return response(*args)
        return response

    def encode(self, address: str, abi: Any, function_name: str, *args: Any) -> str:
        self.encoded.append((address, function_name, args))
        return f"0x{function_name}"

    def called(self, function_name: str) -> List[Tuple[Any, ...]]:
        return [args for _, name, args in self.calls if name == function_name]

    async def native_balance(self, owner: str) -> int:
        return self.native_balances.get(owner.lower(), 0)

    async def token_balance(self, token_address: str, owner: str) -> int:
        return self.token_balances.get((token_address.lower(), owner.lower()), 0)

    async def allowance(self, token_address: str, owner: str, spender: str) -> int:
        return self.allowances.get((token_address.lower(), owner.lower(), spender.lower()), 0)

    async def gas_price(self) -> int:
        return self.gas_price_wei

    async def block_number(self) -> int:
        return self.latest_block

    async def get_receipt(self, tx_hash: str) -> Optional[Mapping[str, Any]]:
        if self.receipt_error is not None:
            raise self.receipt_error
        return self.receipts.get(tx_hash)

    async def wait_for_receipt(self, tx_hash: str, timeout_seconds: float) -> Mapping[str, Any]:
        return self.receipts.get(tx_hash) or {"status": 1, "transactionHash": tx_hash}

    async def get_logs(self, address: str, topics: List[Optional[str]], from_block: int, to_block: int) -> List[Mapping[str, Any]]:
        self.log_queries += 1
        if self.logs_error is not None:
            raise self.logs_error
        return list(self.logs)


@dataclass
class SentTransaction:
    chain: str
    to: str
    data: str
    value: int
    gas_limit: Optional[int]


@dataclass
class FakeSigner:
    address: str = SENDER
    sent: List[SentTransaction] = field(default_factory=list)
    signed_messages: List[Mapping[str, Any]] = field(default_factory=list)

    async def send_transaction(self, gateway: Any, to: str, data: str, value_wei: int = 0,
                               gas_limit: Optional[int] = None) -> str:
        self.sent.append(SentTransaction(gateway.chain, to, data, value_wei, gas_limit))
        return f"0x{len(self.sent):064x}"

    def sign_typed_data(self, full_message: Mapping[str, Any]) -> str:
        self.signed_messages.append(full_message)
        return "0x" + "ab" * 65


class FakeAdapter:
    """Minimal aggregator-facing adapter with a scripted outcome."""

    def __init__(self, name: str, supported: bool = True, quote: Optional[RouteQuote] = None,
                 error: Optional[Exception] = None) -> None:
        self.name = name
        self.supported = supported
        self.quote = quote
        self.error = error
        self.route_calls = 0

    def supports_route(self, source_chain: str, destination_chain: str, token: str) -> bool:
        return self.supported

    async def get_route(self, request: RouteRequest) -> RouteQuote:
        self.route_calls += 1
        if self.error is not None:
            raise self.error
        return self.quote or make_quote(self.name)


def make_quote(
        provider: str = "Stargate",
        source_chain: str = "arbitrum",
        destination_chain: str = "optimism",
        token: str = "USDC",
        amount: Decimal = Decimal("100"),
        gas_fee: Decimal = Decimal("0.001"),
        protocol_fee: Decimal = Decimal("0.06"),
        minutes: int = 15,
        descriptor: Optional[ProviderDescriptor] = None,
        payload: Optional[Mapping[str, Any]] = None,
) -> RouteQuote:
    if descriptor is not None:
        details = RouteDetails(
            source_token_address=descriptor.token_address(token, source_chain),
            destination_token_address=descriptor.token_address(token, destination_chain),
            source_protocol_chain_id=descriptor.protocol_chain_id(source_chain),
            destination_protocol_chain_id=descriptor.protocol_chain_id(destination_chain),
            payload=payload or {},
        )
    else:
        details = RouteDetails("0xsrc", "0xdst", 1, 2, payload or {})
    return RouteQuote(
        provider=provider,
        source_chain=source_chain,
        destination_chain=destination_chain,
        token=token,
        amount=amount,
        estimated_gas_fee=gas_fee,
        protocol_fee=protocol_fee,
        estimated_minutes=minutes,
        details=details,
    )


def make_request(amount: Decimal = Decimal("100"), source: str = "arbitrum", destination: str = "optimism",
                 token: str = "USDC") -> RouteRequest:
    return RouteRequest(source, destination, token, amount, SENDER)


@pytest.fixture
def gateway_factory() -> Callable[[ChainGatewayPool, str], FakeGateway]:
    def _register(pool: ChainGatewayPool, chain: str) -> FakeGateway:
        gateway = FakeGateway(chain)
        pool.register(chain, gateway)  # type: ignore[arg-type]
        return gateway

    return _register


@pytest.fixture
def pool() -> ChainGatewayPool:
    """Gateway pool with no RPC endpoints; tests register fakes explicitly."""
    return ChainGatewayPool(rpc_urls={})


@pytest.fixture
def signer() -> FakeSigner:
    return FakeSigner()
