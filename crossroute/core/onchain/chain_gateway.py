from __future__ import annotations

from typing import Any, Callable, Dict, List, Mapping, Optional, Sequence

from web3 import AsyncWeb3
from web3.contract import AsyncContract
from web3.exceptions import TransactionNotFound

from crossroute.configuration.config import settings
from crossroute.core.errors import UnsupportedChain
from crossroute.core.utils.chain_utils import normalize_chain_name
from crossroute.integrations.protocols.abis import ERC20_ABI
from crossroute.logging.logger import get_logger

log = get_logger(__name__)


def to_hex(value: Any) -> str:
    """Render bytes-like or string values as a 0x-prefixed lowercase hex string."""
    if isinstance(value, (bytes, bytearray)):
        return "0x" + bytes(value).hex()
    text = str(value)
    return text.lower() if text.startswith("0x") else "0x" + text.lower()


class ChainGateway:
    """
    Async JSON-RPC access to one EVM chain.

    Every contract read, calldata encoding and raw submission in the engine goes through
    this class, so adapters and monitors stay independent from provider wiring.
    """

    def __init__(self, chain: str, rpc_url: str, web3: Optional[AsyncWeb3] = None) -> None:
        self.chain = chain
        self.rpc_url = rpc_url
        self.web3: AsyncWeb3 = web3 or AsyncWeb3(
            AsyncWeb3.AsyncHTTPProvider(rpc_url, request_kwargs={"timeout": settings.RPC_TIMEOUT_SECONDS})
        )

    def contract(self, address: str, abi: Sequence[Any]) -> AsyncContract:
        return self.web3.eth.contract(address=AsyncWeb3.to_checksum_address(address), abi=list(abi))

    async def call(self, address: str, abi: Sequence[Any], function_name: str, *args: Any) -> Any:
        contract_function = getattr(self.contract(address, abi).functions, function_name)
        return await contract_function(*args).call()

    def encode(self, address: str, abi: Sequence[Any], function_name: str, *args: Any) -> str:
        """ABI-encode a call locally; no RPC round-trip."""
        return self.contract(address, abi).encode_abi(function_name, args=list(args))

    async def native_balance(self, owner: str) -> int:
        return int(await self.web3.eth.get_balance(AsyncWeb3.to_checksum_address(owner)))

    async def token_balance(self, token_address: str, owner: str) -> int:
        return int(await self.call(token_address, ERC20_ABI, "balanceOf", AsyncWeb3.to_checksum_address(owner)))

    async def allowance(self, token_address: str, owner: str, spender: str) -> int:
        return int(await self.call(
            token_address,
            ERC20_ABI,
            "allowance",
            AsyncWeb3.to_checksum_address(owner),
            AsyncWeb3.to_checksum_address(spender),
        ))

    async def gas_price(self) -> int:
        return int(await self.web3.eth.gas_price)

    async def max_priority_fee(self) -> int:
        return int(await self.web3.eth.max_priority_fee)

    async def latest_base_fee(self) -> Optional[int]:
        latest = await self.web3.eth.get_block("latest")
        base_fee = latest.get("baseFeePerGas")
        return None if base_fee is None else int(base_fee)

    async def chain_id(self) -> int:
        return int(await self.web3.eth.chain_id)

    async def block_number(self) -> int:
        return int(await self.web3.eth.block_number)

    async def nonce(self, address: str) -> int:
        return int(await self.web3.eth.get_transaction_count(AsyncWeb3.to_checksum_address(address), "pending"))

    async def estimate_gas(self, transaction: Mapping[str, Any]) -> int:
        return int(await self.web3.eth.estimate_gas(dict(transaction)))

    async def get_transaction(self, tx_hash: str) -> Mapping[str, Any]:
        return await self.web3.eth.get_transaction(tx_hash)

    async def get_receipt(self, tx_hash: str) -> Optional[Mapping[str, Any]]:
        """Return the receipt, or None while the transaction is not mined yet."""
        try:
            return await self.web3.eth.get_transaction_receipt(tx_hash)
        except TransactionNotFound:
            return None

    async def wait_for_receipt(self, tx_hash: str, timeout_seconds: float) -> Mapping[str, Any]:
        return await self.web3.eth.wait_for_transaction_receipt(tx_hash, timeout=timeout_seconds)

    async def get_logs(
            self,
            address: str,
            topics: List[Optional[str]],
            from_block: int,
            to_block: int,
    ) -> List[Mapping[str, Any]]:
        logs = await self.web3.eth.get_logs({
            "address": AsyncWeb3.to_checksum_address(address),
            "topics": topics,
            "fromBlock": from_block,
            "toBlock": to_block,
        })
        return list(logs)

    async def send_raw_transaction(self, raw_transaction: bytes) -> str:
        tx_hash = await self.web3.eth.send_raw_transaction(raw_transaction)
        return to_hex(tx_hash)


class ChainGatewayPool:
    """Lazily built gateways, one per configured chain."""

    def __init__(
            self,
            rpc_urls: Optional[Mapping[str, str]] = None,
            factory: Callable[[str, str], ChainGateway] = ChainGateway,
    ) -> None:
        self._rpc_urls: Dict[str, str] = dict(settings.RPC_URLS if rpc_urls is None else rpc_urls)
        self._factory = factory
        self._gateways: Dict[str, ChainGateway] = {}

    def has(self, chain: str) -> bool:
        normalized = normalize_chain_name(chain)
        return normalized in self._gateways or normalized in self._rpc_urls

    def register(self, chain: str, gateway: ChainGateway) -> None:
        self._gateways[normalize_chain_name(chain)] = gateway

    def get(self, chain: str) -> ChainGateway:
        normalized = normalize_chain_name(chain)
        gateway = self._gateways.get(normalized)
        if gateway is not None:
            return gateway
        rpc_url = self._rpc_urls.get(normalized)
        if not rpc_url:
            raise UnsupportedChain(chain, reason="no RPC endpoint configured")
        gateway = self._factory(normalized, rpc_url)
        self._gateways[normalized] = gateway
        log.debug("[RPC][GATEWAY] chain=%s endpoint=%s", normalized, rpc_url)
        return gateway
