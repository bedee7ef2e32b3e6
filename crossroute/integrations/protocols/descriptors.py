"""
Static provider descriptor tables.

Each bridge protocol is described as data: which chains it serves (and under which chain
identifier), which token contracts it accepts per chain, which contract to call, its fee
basis points and its pairwise time estimates. Tables are read-only after import.
"""
from __future__ import annotations

from dataclasses import dataclass, field
from types import MappingProxyType
from typing import Dict, FrozenSet, Mapping, Optional, Tuple

from eth_utils import keccak

from crossroute.core.errors import UnsupportedAsset, UnsupportedChain
from crossroute.core.structures.structures import ChainIdentity
from crossroute.core.utils.chain_utils import EVM_CHAIN_IDS, normalize_chain_name
from crossroute.integrations.protocols.abis import (
    ACROSS_FILLED_RELAY_EVENT,
    HOP_TRANSFER_FROM_L1_COMPLETED_EVENT,
    STARGATE_SWAP_REMOTE_EVENT,
    ZERO_ADDRESS,
)

AGGREGATOR_NATIVE_ADDRESS: str = "0xEeeeeEeeeEeEeeEeEeEeeEEEeeeeEeeeeeeeEEeE"

_TOKEN_DECIMALS: Mapping[str, int] = MappingProxyType({
    "ETH": 18,
    "USDC": 6,
    "USDT": 6,
    "DAI": 18,
    "BUSD": 18,
})

# Binance-peg stablecoins carry 18 decimals
_TOKEN_DECIMALS_OVERRIDES: Mapping[Tuple[str, str], int] = MappingProxyType({
    ("USDC", "bsc"): 18,
    ("USDT", "bsc"): 18,
})


def token_decimals(symbol: str, chain: str) -> int:
    normalized_symbol = symbol.strip().upper()
    override = _TOKEN_DECIMALS_OVERRIDES.get((normalized_symbol, normalize_chain_name(chain)))
    if override is not None:
        return override
    if normalized_symbol not in _TOKEN_DECIMALS:
        raise UnsupportedAsset(symbol, chain)
    return _TOKEN_DECIMALS[normalized_symbol]


def _freeze(table: Mapping) -> Mapping:
    return MappingProxyType({
        key: _freeze(value) if isinstance(value, Mapping) else value
        for key, value in table.items()
    })


@dataclass(frozen=True)
class CompletionEventSpec:
    """
    Receive-side event that signals a transfer landed on the destination chain.

    `source_chain_topic` and `recipient_topic` name the indexed topics that carry the
    source protocol chain id and the recipient address, when the event exposes them.
    """
    signature: str
    source_chain_topic: Optional[int] = None
    recipient_topic: Optional[int] = None

    @property
    def topic0(self) -> str:
        return "0x" + keccak(text=self.signature).hex()


@dataclass(frozen=True)
class ProviderDescriptor:
    name: str
    chain_ids: Mapping[str, int]
    token_addresses: Mapping[str, Mapping[str, str]]
    contract_addresses: Mapping[str, str]
    fee_bps: int
    default_minutes: int
    time_table: Mapping[Tuple[str, str], int] = field(default_factory=dict)
    symmetric_times: bool = False
    native_address: str = ZERO_ADDRESS
    # per-token contracts override `contract_addresses` (Hop deploys one bridge per token)
    token_contracts: Mapping[str, Mapping[str, str]] = field(default_factory=dict)
    native_contract_addresses: Mapping[str, str] = field(default_factory=dict)
    completion_event: Optional[CompletionEventSpec] = None
    # chains whose transfers emit the completion event; None means every source chain
    completion_source_chains: Optional[FrozenSet[str]] = None
    # per-token emitters of the completion event, when they differ from the transfer contracts
    completion_contracts: Mapping[str, Mapping[str, str]] = field(default_factory=dict)

    def chain_identity(self, chain: str) -> ChainIdentity:
        normalized = normalize_chain_name(chain)
        if normalized not in self.chain_ids:
            raise UnsupportedChain(chain, self.name)
        return ChainIdentity(name=normalized, protocol_chain_id=self.chain_ids[normalized])

    def protocol_chain_id(self, chain: str) -> int:
        return self.chain_identity(chain).protocol_chain_id

    def token_address(self, symbol: str, chain: str) -> str:
        per_chain = self.token_addresses.get(symbol.strip().upper())
        normalized = normalize_chain_name(chain)
        if per_chain is None or normalized not in per_chain:
            raise UnsupportedAsset(symbol, chain, self.name)
        return per_chain[normalized]

    def has_token(self, symbol: str, chain: str) -> bool:
        per_chain = self.token_addresses.get(symbol.strip().upper())
        return per_chain is not None and normalize_chain_name(chain) in per_chain

    def supports(self, source_chain: str, destination_chain: str, symbol: str) -> bool:
        source = normalize_chain_name(source_chain)
        destination = normalize_chain_name(destination_chain)
        return (
                source in self.chain_ids
                and destination in self.chain_ids
                and self.has_token(symbol, source)
                and self.has_token(symbol, destination)
        )

    def is_native(self, symbol: str, chain: str) -> bool:
        return self.token_address(symbol, chain).lower() == self.native_address.lower()

    def contract_for(self, symbol: str, chain: str) -> Optional[str]:
        """Contract receiving the transfer call on `chain`."""
        normalized = normalize_chain_name(chain)
        per_token = self.token_contracts.get(symbol.strip().upper())
        if per_token is not None:
            return per_token.get(normalized)
        return self.contract_addresses.get(normalized)

    def completion_contract_for(self, symbol: str, source_chain: str, destination_chain: str) -> Optional[str]:
        """Contract emitting the completion event on `destination_chain`, or None when untrackable."""
        if self.completion_event is None:
            return None
        source = normalize_chain_name(source_chain)
        if self.completion_source_chains is not None and source not in self.completion_source_chains:
            return None
        per_token = self.completion_contracts.get(symbol.strip().upper())
        if per_token is not None:
            return per_token.get(normalize_chain_name(destination_chain))
        if self.completion_contracts:
            return None
        return self.contract_for(symbol, destination_chain)

    def native_contract_for(self, chain: str) -> Optional[str]:
        normalized = normalize_chain_name(chain)
        return self.native_contract_addresses.get(normalized) or self.contract_addresses.get(normalized)

    def estimated_minutes(self, source_chain: str, destination_chain: str) -> int:
        source = normalize_chain_name(source_chain)
        destination = normalize_chain_name(destination_chain)
        minutes = self.time_table.get((source, destination))
        if minutes is None and self.symmetric_times:
            minutes = self.time_table.get((destination, source))
        return self.default_minutes if minutes is None else minutes


_STABLE_USDC: Dict[str, str] = {
    "ethereum": "0xA0b86991c6218b36c1d19D4a2e9Eb0cE3606eB48",
    "base": "0xd9aAEc86B65D86f6A7B5B1b0c42FFA531710b6CA",
    "arbitrum": "0xFF970A61A04b1cA14834A43f5dE4533eBDDB5CC8",
    "optimism": "0x7F5c764cBc14f9669B88837ca1490cCa17c31607",
    "polygon": "0x2791Bca1f2de4661ED88A30C99A7a9449Aa84174",
    "avalanche": "0xB97EF9Ef8734C71904D8002F8b6Bc66Dd9c48a6E",
    "bsc": "0x8AC76a51cc950d9822D68b83fE1Ad97B32Cd580d",
    "zksync": "0x3355df6D4c9C3035724Fd0e3914dE96A5a83aaf4",
    "linea": "0x176211869cA2b568f2A7D4EE941E073a821EE1ff",
    "scroll": "0x06eFdBFf2a14a7c8E15944D1F4A48F9F95F663A4",
}

_STABLE_USDT: Dict[str, str] = {
    "ethereum": "0xdAC17F958D2ee523a2206206994597C13D831ec7",
    "base": "0x50c5725949A6F0c72E6C4a641F24049A917DB0Cb",
    "arbitrum": "0xFd086bC7CD5C481DCC9C85ebE478A1C0b69FCbb9",
    "optimism": "0x94b008aA00579c1307B0EF2c499aD98a8ce58e58",
    "polygon": "0xc2132D05D31c914a87C6611C10748AEb04B58e8F",
    "avalanche": "0x9702230A8Ea53601f5cD2dc00fDBc13d4dF4A8c7",
    "bsc": "0x55d398326f99059fF775485246999027B3197955",
    "zksync": "0x493257fD37EDB34451f62EDf8D2a0C418852bA4C",
    "linea": "0xA219439258ca9da29E9Cc4cE5596924745e12B93",
    "scroll": "0xf55BEC9cafDbE8730f096Aa55dad6D22d44099Df",
}


def _subset(table: Mapping[str, str], chains: Tuple[str, ...]) -> Dict[str, str]:
    return {chain: table[chain] for chain in chains if chain in table}


def _native_on(chains: Tuple[str, ...], address: str = ZERO_ADDRESS) -> Dict[str, str]:
    return {chain: address for chain in chains}


STARGATE_POOL_IDS: Mapping[str, int] = MappingProxyType({"USDC": 1, "USDT": 2, "ETH": 13})

STARGATE = ProviderDescriptor(
    name="Stargate",
    chain_ids=_freeze({
        "ethereum": 101,
        "bsc": 102,
        "avalanche": 106,
        "polygon": 109,
        "arbitrum": 110,
        "optimism": 111,
        "fantom": 112,
        "linea": 183,
        "base": 184,
    }),
    token_addresses=_freeze({
        "USDC": {
            **_subset(_STABLE_USDC, ("ethereum", "base", "arbitrum", "optimism", "polygon", "avalanche")),
            "fantom": "0x28a92dde19D9989F39A49905d7C9C2FAc7799bDf",
        },
        "USDT": _subset(_STABLE_USDT, ("ethereum", "arbitrum", "optimism", "polygon", "avalanche", "bsc")),
        "ETH": _native_on(("ethereum", "arbitrum", "optimism", "base", "linea")),
    }),
    contract_addresses=_freeze({
        "ethereum": "0x8731d54E9D02c286767d56ac03e8037C07e01e98",
        "bsc": "0x4a364f8c717cAAD9A442737Eb7b8A55cc6cf18D8",
        "avalanche": "0x45A01E4e04F14f7A4a6702c74187c5F6222033cd",
        "polygon": "0x45A01E4e04F14f7A4a6702c74187c5F6222033cd",
        "arbitrum": "0x53Bf833A5d6c4ddA888F69c22C88C9f356a41614",
        "optimism": "0xB0D502E938ed5f4df2E681fE6E419ff29631d62b",
        "fantom": "0xAf5191B0De278C7286d6C7CC6ab6BB8A73bA2Cd6",
        "linea": "0x2F6F07CDcf3588944Bf4C42aC74ff24bF56e7590",
        "base": "0x45f1A95A4D3f3836523F5c83673c797f4d4d263B",
    }),
    native_contract_addresses=_freeze({
        "ethereum": "0x150f94B44927F078737562f0fcF3C95c01Cc2376",
        "arbitrum": "0xbf22f0f184bCcbeA268dF387a49fF5238dD23E40",
        "optimism": "0xB49c4e680174E331CB0A7fF3Ab58afC9738d5F8b",
        "base": "0x50B6EbC2103BFEc165949CC946d739d5650d7ae4",
        "linea": "0x8731d54E9D02c286767d56ac03e8037C07e01e98",
    }),
    fee_bps=6,
    default_minutes=20,
    time_table=_freeze({
        ("ethereum", "arbitrum"): 10,
        ("ethereum", "optimism"): 10,
        ("ethereum", "base"): 15,
        ("base", "ethereum"): 15,
        ("arbitrum", "ethereum"): 10,
        ("optimism", "ethereum"): 10,
    }),
    completion_event=CompletionEventSpec(STARGATE_SWAP_REMOTE_EVENT, source_chain_topic=1),
)

_HOP_CHAINS: Tuple[str, ...] = ("ethereum", "base", "arbitrum", "optimism", "polygon", "zksync", "linea", "scroll")
# stablecoin bridges exist on these chains only; the ETH bridge skips polygon
_HOP_STABLE_CHAINS: Tuple[str, ...] = ("ethereum", "base", "arbitrum", "optimism", "polygon")
_HOP_ETH_CHAINS: Tuple[str, ...] = ("ethereum", "base", "arbitrum", "optimism", "zksync", "linea", "scroll")

HOP = ProviderDescriptor(
    name="Hop",
    chain_ids=_freeze({chain: EVM_CHAIN_IDS[chain] for chain in _HOP_CHAINS}),
    token_addresses=_freeze({
        "USDC": _subset(_STABLE_USDC, _HOP_STABLE_CHAINS),
        "USDT": _subset(_STABLE_USDT, _HOP_STABLE_CHAINS),
        "ETH": _native_on(_HOP_ETH_CHAINS),
    }),
    contract_addresses=_freeze({}),
    token_contracts=_freeze({
        "USDC": {
            **{chain: "0x10b3a1aA4b7d56F7469A68eF5eB596B431c7cDB7" for chain in _HOP_STABLE_CHAINS if chain != "ethereum"},
            "ethereum": "0x3666f603Cc164936C1b87e207F36BEBa4AC5f18a",
        },
        "USDT": {
            **{chain: "0x2057d7007D1f1d93a327C3214447Dd7868FA0C30" for chain in _HOP_STABLE_CHAINS if chain != "ethereum"},
            "ethereum": "0x3E4a3a4796d16c0Cd582C382691998f7c06420B6",
        },
        "ETH": {chain: "0xb8901acB165ed027E32754E0FFe830802919727f" for chain in _HOP_ETH_CHAINS},
    }),
    fee_bps=40,
    default_minutes=25,
    time_table=_freeze({
        ("ethereum", "arbitrum"): 12,
        ("ethereum", "optimism"): 12,
        ("ethereum", "base"): 18,
        ("base", "ethereum"): 18,
        ("arbitrum", "ethereum"): 12,
        ("optimism", "ethereum"): 12,
    }),
    completion_event=CompletionEventSpec(HOP_TRANSFER_FROM_L1_COMPLETED_EVENT, recipient_topic=1),
    # TransferFromL1Completed is emitted by the destination L2_Bridge, and only for L1-origin transfers
    completion_source_chains=frozenset({"ethereum"}),
    completion_contracts=_freeze({
        "USDC": {
            "arbitrum": "0x0e0E3d2C5c292161999474247956EF542caBF8dd",
            "optimism": "0xa81D244A1814468C734E5b4101F7b9c0c577a8fC",
            "polygon": "0x25D8039bB044dC227f741a9e381CA4cEAE2E6aE8",
        },
        "USDT": {
            "arbitrum": "0x72209Fe68386b37A40d6bCA04f78356fd342491f",
            "optimism": "0x46ae9BaB8CEA96610807a275EBD36f8e916b5C61",
            "polygon": "0x6c9a1ACF73bd85463A46B0AFc076FBdf602b690B",
        },
        "ETH": {
            "arbitrum": "0x3749C4f034022c39ecafFaBA182555d4508caCCC",
            "optimism": "0x83f6244Bd87662118d96D9a6D44f09dffF14b30E",
        },
    }),
)


_ACROSS_CHAINS: Tuple[str, ...] = ("ethereum", "base", "arbitrum", "optimism", "polygon", "zksync", "linea")

ACROSS = ProviderDescriptor(
    name="Across",
    chain_ids=_freeze({chain: EVM_CHAIN_IDS[chain] for chain in _ACROSS_CHAINS}),
    token_addresses=_freeze({
        "USDC": _subset(_STABLE_USDC, _ACROSS_CHAINS),
        "USDT": _subset(_STABLE_USDT, _ACROSS_CHAINS),
        "ETH": _native_on(("ethereum", "base", "arbitrum", "optimism", "zksync", "linea")),
    }),
    contract_addresses=_freeze({
        "base": "0xe35e9842fceaCA96570B734083f4a58e8F7C5f2A",
        "ethereum": "0x5c7BCd6E7De5423a257D81B442095A1a6ced35C5",
        "arbitrum": "0xB88690461dDbaB6f04Dfad7df66B7725942FEb9C",
        "optimism": "0x6f26Bf09B1C792e3228e5467807a900A503c0281",
        "polygon": "0x69B5c72837769eF1e7C164Abc6515DcFf217F920",
        "zksync": "0xE0B015E54d54fc84a6cB9B666099c46adE9335FF",
        "linea": "0x7E63A5f1a8F0B4d0934B2f2327DAED3F6bb2ee75",
    }),
    fee_bps=30,
    default_minutes=30,
    time_table=_freeze({
        ("ethereum", "arbitrum"): 15,
        ("ethereum", "optimism"): 15,
        ("ethereum", "polygon"): 30,
        ("ethereum", "base"): 20,
    }),
    symmetric_times=True,
    completion_event=CompletionEventSpec(ACROSS_FILLED_RELAY_EVENT, source_chain_topic=1),
)

_SOCKET_CHAINS: Tuple[str, ...] = ("ethereum", "base", "arbitrum", "optimism", "polygon", "avalanche", "bsc")

SOCKET = ProviderDescriptor(
    name="Socket",
    chain_ids=_freeze({chain: EVM_CHAIN_IDS[chain] for chain in _SOCKET_CHAINS}),
    token_addresses=_freeze({
        "USDC": {
            **_subset(_STABLE_USDC, _SOCKET_CHAINS),
            "base": "0x833589fCD6eDb6E08f4c7C32D4f71b54bdA02913",
        },
        "USDT": _subset(_STABLE_USDT, _SOCKET_CHAINS),
        "ETH": _native_on(("ethereum", "base", "arbitrum", "optimism"), AGGREGATOR_NATIVE_ADDRESS),
    }),
    contract_addresses=_freeze({}),
    fee_bps=0,
    default_minutes=20,
    native_address=AGGREGATOR_NATIVE_ADDRESS,
)

DESCRIPTORS: Mapping[str, ProviderDescriptor] = MappingProxyType({
    descriptor.name: descriptor for descriptor in (STARGATE, HOP, ACROSS, SOCKET)
})
