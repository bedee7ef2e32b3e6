from __future__ import annotations

from types import MappingProxyType
from typing import Any, Dict, FrozenSet, Mapping, Optional

import httpx
from web3 import AsyncWeb3

from crossroute.configuration.config import settings
from crossroute.core.onchain.chain_gateway import ChainGateway
from crossroute.core.utils.amount_utils import bps_of
from crossroute.core.utils.chain_utils import normalize_chain_name, resolve_evm_chain_id
from crossroute.core.utils.dict_utils import _read_path
from crossroute.core.utils.format_utils import _tail
from crossroute.integrations.protocols.abis import BICONOMY_FORWARDER_ABI, ERC20_ABI
from crossroute.logging.logger import get_logger

log = get_logger(__name__)

RELAY_FORWARDERS: Mapping[str, str] = MappingProxyType({
    "ethereum": "0x84a0856b038eaAd1cC7E297cF34A7e72685A8693",
    "base": "0x84a0856b038eaAd1cC7E297cF34A7e72685A8693",
    "arbitrum": "0xfe0fa3C06d03bDC7fb49c892BbB39113B534Cb4A",
    "optimism": "0xfe0fa3C06d03bDC7fb49c892BbB39113B534Cb4A",
    "polygon": "0x86C80a8aa58e0A4fa09A69624c31Ab2a6CAD56b8",
    "avalanche": "0xe41626f2889e6ee382ea19bc20d981012007cb4e",
})

GASLESS_TOKENS: Mapping[str, FrozenSet[str]] = MappingProxyType({
    "base": frozenset({"USDC", "DAI"}),
    "arbitrum": frozenset({"USDC", "USDT", "DAI"}),
    "optimism": frozenset({"USDC", "DAI"}),
    "polygon": frozenset({"USDC", "USDT", "DAI"}),
    "ethereum": frozenset({"USDC", "USDT", "DAI"}),
    "avalanche": frozenset({"USDC", "USDT", "DAI"}),
})

# contract bridges only; aggregator transactions are not forwardable
GASLESS_PROVIDERS: FrozenSet[str] = frozenset({"Stargate", "Hop", "Across"})

_META_TRANSACTION_TYPES: Mapping[str, Any] = {
    "EIP712Domain": [
        {"name": "name", "type": "string"},
        {"name": "version", "type": "string"},
        {"name": "chainId", "type": "uint256"},
        {"name": "verifyingContract", "type": "address"},
    ],
    "MetaTransaction": [
        {"name": "from", "type": "address"},
        {"name": "to", "type": "address"},
        {"name": "data", "type": "bytes"},
        {"name": "nonce", "type": "uint256"},
        {"name": "value", "type": "uint256"},
    ],
}


def build_meta_transaction(
        *,
        sender: str,
        to: str,
        data: str,
        nonce: int,
        value: int,
        chain_id: int,
        forwarder: str,
) -> Dict[str, Any]:
    """Full EIP-712 message for the forwarder's `MetaTransaction(from,to,data,nonce,value)`."""
    return {
        "types": _META_TRANSACTION_TYPES,
        "primaryType": "MetaTransaction",
        "domain": {
            "name": "Biconomy Forwarder",
            "version": "1",
            "chainId": chain_id,
            "verifyingContract": AsyncWeb3.to_checksum_address(forwarder),
        },
        "message": {
            "from": AsyncWeb3.to_checksum_address(sender),
            "to": AsyncWeb3.to_checksum_address(to),
            "data": data,
            "nonce": nonce,
            "value": value,
        },
    }


class GaslessRelay:
    """Submit signed meta transactions to a gas-abstraction relayer that pays execution gas."""

    def __init__(
            self,
            base_url: Optional[str] = None,
            api_key: Optional[str] = None,
            http_client: Optional[httpx.AsyncClient] = None,
            enabled: Optional[bool] = None,
            fee_collector: Optional[str] = None,
    ) -> None:
        self.base_url = str(base_url or settings.RELAY_BASE_URL).rstrip("/")
        self.enabled = settings.RELAY_ENABLED if enabled is None else enabled
        self.fee_collector = (settings.RELAY_FEE_COLLECTOR if fee_collector is None else fee_collector) or None
        headers = {"Content-Type": "application/json"}
        key = api_key if api_key is not None else settings.RELAY_API_KEY
        if key:
            headers["x-api-key"] = key
        self._http_client = http_client or httpx.AsyncClient(
            timeout=httpx.Timeout(settings.HTTP_TIMEOUT_SECONDS, connect=6.0),
            headers=headers,
        )

    def is_supported(self, provider: str, chain: str, token: str) -> bool:
        normalized_chain = normalize_chain_name(chain)
        return (
                self.enabled
                and provider in GASLESS_PROVIDERS
                and normalized_chain in RELAY_FORWARDERS
                and token.strip().upper() in GASLESS_TOKENS.get(normalized_chain, frozenset())
        )

    @staticmethod
    def token_fee(amount_units: int) -> int:
        """Fee the relayer charges in the bridged token, in base units."""
        return bps_of(amount_units, settings.RELAY_TOKEN_FEE_BPS)

    async def submit(self, gateway: ChainGateway, signer: Any, to: str, data: str, value: int = 0) -> str:
        """
        Sign `(from, to, data, nonce, value)` with the user's key and hand it to the relayer.

        Returns:
            The transaction hash reported by the relayer.
        """
        chain = normalize_chain_name(gateway.chain)
        forwarder = RELAY_FORWARDERS.get(chain)
        if forwarder is None:
            raise ValueError(f"No relay forwarder configured for chain '{chain}'")
        chain_id = resolve_evm_chain_id(chain)
        nonce = int(await gateway.call(
            forwarder, BICONOMY_FORWARDER_ABI, "getNonce", AsyncWeb3.to_checksum_address(signer.address), 0
        ))
        typed_message = build_meta_transaction(
            sender=signer.address, to=to, data=data, nonce=nonce, value=value, chain_id=chain_id, forwarder=forwarder,
        )
        signature = signer.sign_typed_data(typed_message)
        body = {
            "chainId": chain_id,
            "forwarder": forwarder,
            "request": {
                "from": signer.address,
                "to": to,
                "data": data,
                "nonce": str(nonce),
                "value": str(value),
            },
            "signature": signature,
            "signatureType": "EIP712_SIGN",
        }
        url = f"{self.base_url}/meta-tx/native"
        log.debug("[RELAY][SUBMIT][REQUEST] chain=%s to=%s nonce=%s from=…%s", chain, to, nonce,
                  _tail(signer.address))
        try:
            response = await self._http_client.post(url, json=body)
            response.raise_for_status()
            payload = response.json()
        except httpx.HTTPStatusError as exc:
            log.warning("[RELAY][SUBMIT][FAIL] url=%s status=%s body=%s", url, exc.response.status_code,
                        exc.response.text)
            raise
        except httpx.RequestError as exc:
            log.warning("[RELAY][SUBMIT][ERROR] url=%s error=%s", url, str(exc))
            raise

        tx_hash = _read_path(payload, ["txHash"]) or _read_path(payload, ["result", "txHash"])
        if not isinstance(tx_hash, str) or not tx_hash:
            raise ValueError(f"Relay response carries no transaction hash: {payload}")
        log.info("[RELAY][SUBMIT][ACCEPTED] chain=%s tx=%s", chain, tx_hash)
        return tx_hash

    async def pay_token_fee(self, gateway: ChainGateway, signer: Any, token_address: str, fee_units: int) -> Optional[str]:
        """
        Transfer the relay fee in the bridged token to the fee collector, through the relay.

        Returns None without sending anything when no collector is configured or the fee is zero;
        the fee then stays a balance reserve the relayer bills on its own.
        """
        if not self.fee_collector or fee_units <= 0:
            return None
        data = gateway.encode(
            token_address, ERC20_ABI, "transfer", AsyncWeb3.to_checksum_address(self.fee_collector), fee_units
        )
        tx_hash = await self.submit(gateway, signer, token_address, data)
        log.info("[RELAY][FEE][PAID] chain=%s token=%s fee=%s tx=%s", gateway.chain, token_address, fee_units, tx_hash)
        return tx_hash

    async def aclose(self) -> None:
        await self._http_client.aclose()
