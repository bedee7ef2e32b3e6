from __future__ import annotations

import os
from typing import Dict


def _as_bool(value: str | None, default: bool = False) -> bool:
    """Parse a truthy/falsey string into a boolean."""
    if value is None:
        return default
    return value.strip().lower() in {"1", "true", "yes", "y", "on"}


_DEFAULT_RPC_URLS: Dict[str, str] = {
    "ethereum": "https://eth-mainnet.g.alchemy.com/v2/demo",
    "base": "https://mainnet.base.org",
    "arbitrum": "https://arb1.arbitrum.io/rpc",
    "optimism": "https://mainnet.optimism.io",
    "polygon": "https://polygon-rpc.com",
    "avalanche": "https://api.avax.network/ext/bc/C/rpc",
    "bsc": "https://bsc-dataseed.binance.org",
    "fantom": "https://rpc.ftm.tools",
    "zksync": "https://mainnet.era.zksync.io",
    "linea": "https://rpc.linea.build",
    "scroll": "https://rpc.scroll.io",
}


def _rpc_urls_from_env() -> Dict[str, str]:
    """Resolve one RPC endpoint per chain; RPC_URL_<CHAIN> overrides the public default."""
    urls: Dict[str, str] = {}
    for chain, default_url in _DEFAULT_RPC_URLS.items():
        url = os.getenv(f"RPC_URL_{chain.upper()}", default_url).strip()
        if url:
            urls[chain] = url
    return urls


class Settings:
    # API
    API_HOST: str = os.getenv("API_HOST", "0.0.0.0")
    API_PORT: int = int(os.getenv("API_PORT", "8000"))
    CORS_ORIGINS: str = os.getenv("CORS_ORIGINS", "http://localhost:3000,http://127.0.0.1:3000")

    # Debug / logging
    LOG_LEVEL: str = os.getenv("LOG_LEVEL", "WARNING").upper()
    LOG_LEVEL_CROSSROUTE: str = os.getenv("LOG_LEVEL_CROSSROUTE", "DEBUG").upper()
    LOG_LEVEL_LIB_URLLIB3: str = os.getenv("LOG_LEVEL_LIB_URLLIB3", "WARNING").upper()
    LOG_LEVEL_LIB_HTTPX: str = os.getenv("LOG_LEVEL_LIB_HTTPX", "WARNING").upper()
    LOG_LEVEL_LIB_HTTPCORE: str = os.getenv("LOG_LEVEL_LIB_HTTPCORE", "WARNING").upper()
    LOG_LEVEL_LIB_WEB3: str = os.getenv("LOG_LEVEL_LIB_WEB3", "WARNING").upper()
    LOG_LEVEL_LIB_ASYNCIO: str = os.getenv("LOG_LEVEL_LIB_ASYNCIO", "WARNING").upper()
    LOG_LEVEL_LIB_ANYIO: str = os.getenv("LOG_LEVEL_LIB_ANYIO", "WARNING").upper()
    NO_COLOR: bool = _as_bool(os.getenv("NO_COLOR"), False)

    # Infra / chain
    RPC_URLS: Dict[str, str] = _rpc_urls_from_env()
    RPC_TIMEOUT_SECONDS: float = float(os.getenv("RPC_TIMEOUT_SECONDS", "30"))

    # Routing
    ROUTE_CACHE_TTL_SECONDS: float = float(os.getenv("ROUTE_CACHE_TTL_SECONDS", "300"))
    DEFAULT_SLIPPAGE_PERCENT: str = os.getenv("DEFAULT_SLIPPAGE_PERCENT", "0.5")

    # Execution
    EXTRA_GAS_LIMIT: int = int(os.getenv("EXTRA_GAS_LIMIT", "300000"))
    APPROVAL_GAS_LIMIT: int = int(os.getenv("APPROVAL_GAS_LIMIT", "100000"))
    APPROVAL_RECEIPT_TIMEOUT_SECONDS: float = float(os.getenv("APPROVAL_RECEIPT_TIMEOUT_SECONDS", "180"))
    HOP_DEADLINE_SECONDS: int = int(os.getenv("HOP_DEADLINE_SECONDS", "1200"))
    ACROSS_RELAYER_FEE_PCT: str = os.getenv("ACROSS_RELAYER_FEE_PCT", "0.001")
    SPEED_UP_FEE_MULTIPLIER: str = os.getenv("SPEED_UP_FEE_MULTIPLIER", "1.2")

    # Settlement monitoring
    MONITOR_POLL_INTERVAL_SECONDS: float = float(os.getenv("MONITOR_POLL_INTERVAL_SECONDS", "15"))
    MONITOR_LOOKBACK_BLOCKS: int = int(os.getenv("MONITOR_LOOKBACK_BLOCKS", "1000"))
    MONITOR_MAX_RPC_FAILURES: int = int(os.getenv("MONITOR_MAX_RPC_FAILURES", "3"))
    COMPLETION_EVENT_CACHE_TTL_SECONDS: float = float(os.getenv("COMPLETION_EVENT_CACHE_TTL_SECONDS", "15"))

    # Socket aggregator API
    SOCKET_BASE_URL: str = os.getenv("SOCKET_BASE_URL", "https://api.socket.tech/v2")
    SOCKET_API_KEY: str = os.getenv("SOCKET_API_KEY", "")
    HTTP_TIMEOUT_SECONDS: float = float(os.getenv("HTTP_TIMEOUT_SECONDS", "12"))

    # Gasless relay
    RELAY_ENABLED: bool = _as_bool(os.getenv("RELAY_ENABLED"), True)
    RELAY_BASE_URL: str = os.getenv("RELAY_BASE_URL", "https://api.biconomy.io/api/v2")
    RELAY_API_KEY: str = os.getenv("RELAY_API_KEY", "")
    RELAY_TOKEN_FEE_BPS: int = int(os.getenv("RELAY_TOKEN_FEE_BPS", "50"))
    # empty: the relay token fee is only reserved against the balance, never transferred
    RELAY_FEE_COLLECTOR: str = os.getenv("RELAY_FEE_COLLECTOR", "")

    # EVM signer
    EVM_MNEMONIC: str = os.getenv("EVM_MNEMONIC", "")
    EVM_DERIVATION_INDEX: int = int(os.getenv("EVM_DERIVATION_INDEX", "0"))
    EVM_PRIVATE_KEY: str = os.getenv("EVM_PRIVATE_KEY", "")


settings = Settings()
