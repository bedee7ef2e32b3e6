"""Tests for the aggregator REST client and the gasless relay, using httpx.MockTransport."""

import json
from decimal import Decimal

import httpx
import pytest

from crossroute.core.errors import ProviderError
from crossroute.core.structures.structures import BridgeTransactionRecord
from crossroute.integrations.relay.relay_client import GaslessRelay, build_meta_transaction
from crossroute.integrations.socket.socket_adapter import SocketAdapter
from crossroute.integrations.socket.socket_client import SocketClient
from crossroute.integrations.socket.socket_structures import SocketRoute, SocketTransaction
from tests.conftest import RECIPIENT, SENDER, make_request

BASE_URL = "https://socket.test/v2"
RELAY_URL = "https://relay.test/api/v2"
SOCKET_TARGET = "0x3a23F943181408EAC424116Af7b7790c94Cb97a5"
APPROVAL_TARGET = "0x4444444444444444444444444444444444444444"


def quote_payload(to_amount: str = "99500000", service_time: int = 120):
    return {
        "success": True,
        "result": {
            "routes": [
                {
                    "usedBridgeNames": ["hop"],
                    "fromAmount": "100000000",
                    "toAmount": to_amount,
                    "serviceTime": service_time,
                    "totalGasFeesInUsd": 1.25,
                    "userTxs": [
                        {"gasFees": {"gasAmount": "1500000000000000"}},
                        {"gasFees": {"gasAmount": "500000000000000"}},
                    ],
                }
            ]
        },
    }


def build_tx_payload():
    return {
        "success": True,
        "result": {
            "txData": {"to": SOCKET_TARGET, "data": "0xdeadbeef", "value": "0x0", "gasLimit": 350000,
                       "chainId": 1},
            "approvalData": {"allowanceTarget": APPROVAL_TARGET,
                             "approvalTokenAddress": "0xA0b86991c6218b36c1d19D4a2e9Eb0cE3606eB48"},
        },
    }


def socket_client(handler) -> SocketClient:
    return SocketClient(base_url=BASE_URL, api_key="key",
                        http_client=httpx.AsyncClient(transport=httpx.MockTransport(handler)))


class TestSocketStructures:
    def test_route_sums_gas_over_user_transactions(self):
        route = SocketRoute.from_json(quote_payload()["result"]["routes"][0])
        assert route.gas_fee_wei == 2 * 10 ** 15
        assert route.to_amount == 99_500_000
        assert route.total_gas_fees_usd == Decimal("1.25")

    def test_transaction_requires_target_and_calldata(self):
        with pytest.raises(ValueError):
            SocketTransaction.from_json({"txData": {"value": "0"}})

    def test_transaction_parses_approval(self):
        transaction = SocketTransaction.from_json(build_tx_payload()["result"])
        assert transaction.value == 0
        assert transaction.gas_limit == 350_000
        assert transaction.approval_target == APPROVAL_TARGET


class TestSocketAdapter:
    async def test_best_route_becomes_quote(self, pool):
        seen = {}

        def handler(request: httpx.Request) -> httpx.Response:
            seen["path"] = request.url.path
            seen["params"] = dict(request.url.params)
            return httpx.Response(200, json=quote_payload())

        adapter = SocketAdapter(pool, socket_client(handler))
        quote = await adapter.get_route(make_request(source="ethereum", destination="arbitrum"))

        assert seen["path"] == "/v2/quote"
        assert seen["params"]["fromChainId"] == "1"
        assert seen["params"]["fromAmount"] == "100000000"
        assert quote.provider == "Socket"
        assert quote.estimated_gas_fee == Decimal("0.002")
        assert quote.protocol_fee == Decimal("0.5")
        assert quote.estimated_minutes == 2
        assert quote.details.payload["bridgeNames"] == ["hop"]

    async def test_http_error_becomes_provider_error(self, pool):
        adapter = SocketAdapter(pool, socket_client(lambda request: httpx.Response(500, text="down")))
        with pytest.raises(ProviderError):
            await adapter.get_route(make_request(source="ethereum", destination="arbitrum"))

    async def test_empty_route_list_is_a_provider_failure(self, pool):
        adapter = SocketAdapter(
            pool, socket_client(lambda request: httpx.Response(200, json={"success": True, "result": {"routes": []}}))
        )
        with pytest.raises(ProviderError):
            await adapter.get_route(make_request(source="ethereum", destination="arbitrum"))

    async def test_build_transfer_call_posts_route(self, pool):
        bodies = []

        def handler(request: httpx.Request) -> httpx.Response:
            if request.url.path.endswith("/quote"):
                return httpx.Response(200, json=quote_payload())
            bodies.append(json.loads(request.content))
            return httpx.Response(200, json=build_tx_payload())

        adapter = SocketAdapter(pool, socket_client(handler))
        quote = await adapter.get_route(make_request(source="ethereum", destination="arbitrum"))
        call = await adapter.build_transfer_call(quote, SENDER, RECIPIENT, 100_000_000, 99_500_000, 0)

        assert bodies[0]["userAddress"] == SENDER
        assert bodies[0]["slippage"] == pytest.approx(0.5)
        assert call.to == SOCKET_TARGET
        assert call.spender == APPROVAL_TARGET
        assert call.gas_limit == 350_000

    def test_no_completion_target(self, pool):
        adapter = SocketAdapter(pool, socket_client(lambda request: httpx.Response(200)))
        record = BridgeTransactionRecord("0xabc", "ethereum", "arbitrum", "USDC", Decimal("1"), "Socket", SENDER,
                                         RECIPIENT)
        assert adapter.completion_target(record) is None


class TestGaslessRelay:
    def relay(self, handler=None, enabled=True) -> GaslessRelay:
        handler = handler or (lambda request: httpx.Response(200, json={"txHash": "0xfeed"}))
        return GaslessRelay(base_url=RELAY_URL, api_key="relay-key", enabled=enabled,
                            http_client=httpx.AsyncClient(transport=httpx.MockTransport(handler)))

    def test_support_matrix(self):
        relay = self.relay()
        assert relay.is_supported("Stargate", "arbitrum", "USDC")
        assert relay.is_supported("Hop", "arb", "usdt")
        assert not relay.is_supported("Socket", "arbitrum", "USDC")
        assert not relay.is_supported("Stargate", "bsc", "USDC")
        assert not relay.is_supported("Stargate", "base", "USDT")

    def test_disabled_relay_supports_nothing(self):
        assert not self.relay(enabled=False).is_supported("Stargate", "arbitrum", "USDC")

    def test_token_fee_is_fifty_bps(self):
        assert GaslessRelay.token_fee(100_000_000) == 500_000

    def test_meta_transaction_message(self):
        message = build_meta_transaction(sender=SENDER, to=RECIPIENT, data="0x", nonce=3, value=0, chain_id=42161,
                                         forwarder="0xfe0fa3C06d03bDC7fb49c892BbB39113B534Cb4A")
        assert message["primaryType"] == "MetaTransaction"
        assert message["domain"]["chainId"] == 42161
        assert message["message"]["nonce"] == 3

    async def test_submit_signs_and_posts(self, pool, gateway_factory, signer):
        gateway = gateway_factory(pool, "arbitrum")
        gateway.responses["getNonce"] = 7
        posted = []

        def handler(request: httpx.Request) -> httpx.Response:
            posted.append((request.url.path, json.loads(request.content)))
            return httpx.Response(200, json={"result": {"txHash": "0xfeed"}})

        tx_hash = await self.relay(handler).submit(gateway, signer, RECIPIENT, "0xabcd", 0)

        assert tx_hash == "0xfeed"
        path, body = posted[0]
        assert path == "/api/v2/meta-tx/native"
        assert body["chainId"] == 42161
        assert body["request"]["nonce"] == "7"
        assert body["signatureType"] == "EIP712_SIGN"
        assert signer.signed_messages[0]["message"]["data"] == "0xabcd"

    async def test_submit_without_hash_fails(self, pool, gateway_factory, signer):
        gateway = gateway_factory(pool, "arbitrum")
        gateway.responses["getNonce"] = 0
        relay = self.relay(lambda request: httpx.Response(200, json={"status": "queued"}))
        with pytest.raises(ValueError):
            await relay.submit(gateway, signer, RECIPIENT, "0x", 0)
