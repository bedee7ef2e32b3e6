from __future__ import annotations

from decimal import Decimal
from typing import Dict, List, Mapping, Optional

import httpx

from crossroute.configuration.config import settings
from crossroute.core.utils.format_utils import _tail
from crossroute.integrations.socket.socket_helpers import (
    _build_socket_headers,
    _build_timeout,
    _http_get_json,
    _http_post_json,
)
from crossroute.integrations.socket.socket_structures import SocketRoute, SocketTransaction
from crossroute.logging.logger import get_logger

log = get_logger(__name__)


class SocketClient:
    """
    Thin async client for the Socket bridge-aggregator REST API.

    Notes:
        - `/quote` lists candidate routes sorted by output amount.
        - `/build-tx` turns one of those routes into a transaction to sign.
        - The underlying `httpx.AsyncClient` can be injected (tests use `httpx.MockTransport`).
    """

    def __init__(
            self,
            base_url: Optional[str] = None,
            api_key: Optional[str] = None,
            http_client: Optional[httpx.AsyncClient] = None,
    ) -> None:
        self.base_url = str(base_url or settings.SOCKET_BASE_URL).rstrip("/")
        if not self.base_url:
            raise ValueError("settings.SOCKET_BASE_URL must be configured.")
        self._http_client = http_client or httpx.AsyncClient(
            timeout=_build_timeout(),
            headers=_build_socket_headers(api_key),
        )

    async def fetch_quote(
            self,
            *,
            from_chain_id: int,
            to_chain_id: int,
            from_token_address: str,
            to_token_address: str,
            from_amount: int,
            user_address: str,
            sort: str = "output",
    ) -> List[SocketRoute]:
        if from_amount <= 0:
            raise ValueError("from_amount must be greater than zero.")
        query_params: Dict[str, object] = {
            "fromChainId": from_chain_id,
            "toChainId": to_chain_id,
            "fromTokenAddress": from_token_address,
            "toTokenAddress": to_token_address,
            "fromAmount": str(from_amount),
            "userAddress": user_address,
            "sort": sort,
        }
        log.debug(
            "[SOCKET][QUOTE][REQUEST] from_chain=%s to_chain=%s token=%s amount=%s user=…%s",
            from_chain_id,
            to_chain_id,
            _tail(from_token_address),
            from_amount,
            _tail(user_address),
        )
        result = await _http_get_json(self._http_client, f"{self.base_url}/quote", query_params)
        routes_node = result.get("routes")
        routes = [
            SocketRoute.from_json(node)
            for node in (routes_node if isinstance(routes_node, list) else [])
            if isinstance(node, Mapping)
        ]
        log.info("[SOCKET][QUOTE][RECEIVE] from_chain=%s to_chain=%s routes=%d", from_chain_id, to_chain_id,
                 len(routes))
        return routes

    async def build_transaction(
            self,
            route: Mapping[str, object],
            user_address: str,
            slippage_percent: Decimal,
    ) -> SocketTransaction:
        body: Dict[str, object] = {
            "route": dict(route),
            "userAddress": user_address,
            "slippage": float(slippage_percent),
        }
        log.debug("[SOCKET][BUILD_TX][REQUEST] user=…%s slippage=%s", _tail(user_address), slippage_percent)
        result = await _http_post_json(self._http_client, f"{self.base_url}/build-tx", body)
        transaction = SocketTransaction.from_json(result)
        log.info("[SOCKET][BUILD_TX][RECEIVE] to=%s value=%s chain_id=%s", transaction.to, transaction.value,
                 transaction.chain_id)
        return transaction

    async def aclose(self) -> None:
        await self._http_client.aclose()
