from __future__ import annotations

"""
EVM signer using eth-account.

- Derive the account from a mnemonic at m/44'/60'/0'/0/{index}, or load a raw private key.
- Build and sign EIP-1559 transactions (legacy gas price on chains without a base fee).
- Sign EIP-712 payloads for the gasless relay.
- Replace stuck transactions: speed up with bumped fees, or cancel with a self-transfer.
- Never log secrets or raw calldata.
"""

from dataclasses import dataclass
from decimal import Decimal
from typing import Any, Dict, Mapping, Optional

from eth_account import Account
from eth_account.messages import encode_typed_data
from eth_account.signers.local import LocalAccount
from web3 import AsyncWeb3

from crossroute.configuration.config import settings
from crossroute.core.onchain.chain_gateway import ChainGateway, to_hex
from crossroute.logging.logger import get_logger

log = get_logger(__name__)

_FALLBACK_GAS_LIMIT = 400000
_ONE_GWEI = 10 ** 9


@dataclass(frozen=True)
class EvmSignerConfig:
    mnemonic: str = ""
    derivation_index: int = 0
    private_key: str = ""


def _bump(value: int, multiplier: Decimal) -> int:
    return int(Decimal(int(value)) * multiplier) + 1


class EvmSigner:
    """Sign and broadcast EVM transactions for one account, on any chain reached through a gateway."""

    def __init__(self, config: EvmSignerConfig) -> None:
        if config.private_key:
            self.account: LocalAccount = Account.from_key(config.private_key)
        elif config.mnemonic:
            Account.enable_unaudited_hdwallet_features()
            account_path = f"m/44'/60'/0'/0/{config.derivation_index}"
            self.account = Account.from_mnemonic(config.mnemonic, account_path=account_path)
        else:
            raise ValueError("EVM signer requires a private key or a mnemonic (set via environment variables).")
        self.address: str = self.account.address
        log.info("[SIGNER][INIT] address=%s", self.address)

    async def _fee_fields(self, gateway: ChainGateway) -> Dict[str, int]:
        base_fee = await gateway.latest_base_fee()
        if base_fee is None:
            return {"gasPrice": await gateway.gas_price()}
        try:
            max_priority = await gateway.max_priority_fee()
        except ValueError:
            max_priority = _ONE_GWEI
        return {"type": 2, "maxPriorityFeePerGas": max_priority, "maxFeePerGas": base_fee * 2 + max_priority}

    async def _build_transaction(
            self,
            gateway: ChainGateway,
            to: str,
            data: str,
            value_wei: int,
            gas_limit: Optional[int],
            nonce: Optional[int] = None,
    ) -> Dict[str, Any]:
        tx: Dict[str, Any] = {
            "chainId": await gateway.chain_id(),
            "nonce": nonce if nonce is not None else await gateway.nonce(self.address),
            "to": AsyncWeb3.to_checksum_address(to),
            "data": data,
            "value": int(value_wei or 0),
        }
        tx.update(await self._fee_fields(gateway))
        if gas_limit is not None:
            tx["gas"] = int(gas_limit)
        else:
            tx["gas"] = await gateway.estimate_gas(
                {"from": self.address, "to": tx["to"], "data": tx["data"], "value": tx["value"]}
            )
        log.debug("[SIGNER][BUILD] chain=%s nonce=%s gas=%s", gateway.chain, tx["nonce"], tx["gas"])
        return tx

    async def _sign_and_send(self, gateway: ChainGateway, tx: Mapping[str, Any]) -> str:
        signed = self.account.sign_transaction(dict(tx))
        tx_hash = await gateway.send_raw_transaction(bytes(signed.raw_transaction))
        log.info("[SIGNER][BROADCAST] chain=%s tx=%s", gateway.chain, tx_hash)
        return tx_hash

    async def send_transaction(
            self,
            gateway: ChainGateway,
            to: str,
            data: str,
            value_wei: int = 0,
            gas_limit: Optional[int] = None,
    ) -> str:
        """Sign and broadcast a transaction. Returns the hex transaction hash."""
        log.info("[SIGNER][SEND] chain=%s to=%s value_wei=%s", gateway.chain, to, value_wei)
        tx = await self._build_transaction(gateway, to, data, value_wei, gas_limit)
        return await self._sign_and_send(gateway, tx)

    def sign_typed_data(self, full_message: Mapping[str, Any]) -> str:
        """Sign an EIP-712 message (domain, types, primaryType, message) and return the hex signature."""
        signable = encode_typed_data(full_message=dict(full_message))
        signed = self.account.sign_message(signable)
        return to_hex(signed.signature)

    async def _replacement(
            self,
            gateway: ChainGateway,
            original: Mapping[str, Any],
            to: str,
            data: str,
            value_wei: int,
            multiplier: Decimal,
    ) -> str:
        tx: Dict[str, Any] = {
            "chainId": await gateway.chain_id(),
            "nonce": int(original["nonce"]),
            "to": AsyncWeb3.to_checksum_address(to),
            "data": data,
            "value": int(value_wei),
            "gas": int(original["gas"]),
        }
        if original.get("maxFeePerGas") is not None:
            tx["type"] = 2
            tx["maxFeePerGas"] = _bump(original["maxFeePerGas"], multiplier)
            tx["maxPriorityFeePerGas"] = _bump(original["maxPriorityFeePerGas"], multiplier)
        else:
            tx["gasPrice"] = _bump(original["gasPrice"], multiplier)
        return await self._sign_and_send(gateway, tx)

    async def speed_up(self, gateway: ChainGateway, tx_hash: str, multiplier: Optional[Decimal] = None) -> str:
        """Resubmit a pending transaction at the same nonce with fees bumped by `multiplier` (1.2 by default)."""
        bump = multiplier if multiplier is not None else Decimal(settings.SPEED_UP_FEE_MULTIPLIER)
        original = await gateway.get_transaction(tx_hash)
        log.info("[SIGNER][SPEED_UP] chain=%s tx=%s multiplier=%s", gateway.chain, tx_hash, bump)
        return await self._replacement(
            gateway, original, original["to"], to_hex(original["input"]), int(original["value"]), bump
        )

    async def cancel(self, gateway: ChainGateway, tx_hash: str, multiplier: Optional[Decimal] = None) -> str:
        """Replace a pending transaction by a zero-value self-transfer at the same nonce."""
        bump = multiplier if multiplier is not None else Decimal(settings.SPEED_UP_FEE_MULTIPLIER)
        original = await gateway.get_transaction(tx_hash)
        log.info("[SIGNER][CANCEL] chain=%s tx=%s", gateway.chain, tx_hash)
        return await self._replacement(gateway, original, self.address, "0x", 0, bump)


def build_default_evm_signer() -> Optional[EvmSigner]:
    """Signer from the EVM_* settings, or None when no key material is configured."""
    if not settings.EVM_PRIVATE_KEY and not settings.EVM_MNEMONIC:
        return None
    cfg = EvmSignerConfig(
        mnemonic=settings.EVM_MNEMONIC,
        derivation_index=settings.EVM_DERIVATION_INDEX,
        private_key=settings.EVM_PRIVATE_KEY,
    )
    return EvmSigner(cfg)
