from __future__ import annotations

from typing import Dict, Mapping, Optional

from crossroute.core.errors import UnsupportedChain

EVM_CHAIN_IDS: Mapping[str, int] = {
    "ethereum": 1,
    "optimism": 10,
    "bsc": 56,
    "polygon": 137,
    "fantom": 250,
    "zksync": 324,
    "base": 8453,
    "arbitrum": 42161,
    "avalanche": 43114,
    "linea": 59144,
    "scroll": 534352,
}

_CHAIN_ALIASES: Dict[str, str] = {
    "eth": "ethereum",
    "mainnet": "ethereum",
    "ethereum-mainnet": "ethereum",
    "arb": "arbitrum",
    "arbitrum-one": "arbitrum",
    "op": "optimism",
    "optimism-mainnet": "optimism",
    "poly": "polygon",
    "matic": "polygon",
    "polygon-pos": "polygon",
    "avax": "avalanche",
    "avalanche-c": "avalanche",
    "bnb": "bsc",
    "bnbchain": "bsc",
    "binance": "bsc",
    "binance-smart-chain": "bsc",
    "zk": "zksync",
    "zksync-era": "zksync",
    "ftm": "fantom",
}


def normalize_chain_name(raw_chain: Optional[str]) -> str:
    """
    Normalize user-facing chain names for registry lookups.

    Returns:
        A lowercase canonical chain name, or an empty string if input is falsy.
    """
    if not raw_chain:
        return ""
    lowered = raw_chain.strip().lower().replace(" ", "-")
    return _CHAIN_ALIASES.get(lowered, lowered)


def resolve_evm_chain_id(chain: str) -> int:
    normalized = normalize_chain_name(chain)
    if normalized not in EVM_CHAIN_IDS:
        raise UnsupportedChain(chain)
    return EVM_CHAIN_IDS[normalized]


def is_known_chain(chain: str) -> bool:
    return normalize_chain_name(chain) in EVM_CHAIN_IDS
