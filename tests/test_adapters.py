"""Tests for the contract bridge adapters and the provider descriptor tables."""

from decimal import Decimal

import pytest

from crossroute.core.errors import (
    AllowanceFailure,
    FeeQuoteFailure,
    InsufficientGas,
    ProviderError,
    UnsupportedAsset,
    UnsupportedChain,
)
from crossroute.core.structures.structures import BridgeExecutionRequest, BridgeTransactionRecord
from crossroute.integrations.protocols.abis import MAX_UINT256
from crossroute.integrations.protocols.across import AcrossAdapter, relayer_fee_pct
from crossroute.integrations.protocols.base import ensure_allowance
from crossroute.integrations.protocols.descriptors import ACROSS, HOP, SOCKET, STARGATE, token_decimals
from crossroute.integrations.protocols.hop import HopAdapter
from crossroute.integrations.protocols.stargate import StargateAdapter
from tests.conftest import RECIPIENT, SENDER, FakeSigner, make_quote, make_request

STARGATE_ARBITRUM_ROUTER = "0x53Bf833A5d6c4ddA888F69c22C88C9f356a41614"
STARGATE_ETHEREUM_ROUTER_ETH = "0x150f94B44927F078737562f0fcF3C95c01Cc2376"
HOP_USDC_L1_BRIDGE = "0x3666f603Cc164936C1b87e207F36BEBa4AC5f18a"
HOP_USDC_L2_AMM = "0x10b3a1aA4b7d56F7469A68eF5eB596B431c7cDB7"
HOP_USDC_ARBITRUM_L2_BRIDGE = "0x0e0E3d2C5c292161999474247956EF542caBF8dd"
ACROSS_ETHEREUM_SPOKE_POOL = "0x5c7BCd6E7De5423a257D81B442095A1a6ced35C5"


class TestDescriptors:
    """Static capability tables."""

    def test_supports_requires_token_on_both_chains(self):
        assert STARGATE.supports("arbitrum", "optimism", "USDC")
        assert not STARGATE.supports("bsc", "arbitrum", "USDC")
        assert not STARGATE.supports("zksync", "arbitrum", "USDC")

    def test_aliases_accepted(self):
        assert HOP.supports("eth", "arb", "usdc")

    def test_hop_stablecoins_limited_to_deployed_bridges(self):
        for chain in ("zksync", "linea", "scroll"):
            assert not HOP.supports("arbitrum", chain, "USDC")
            assert not HOP.supports("ethereum", chain, "USDT")
            assert HOP.contract_for("USDC", chain) is None
        assert HOP.supports("ethereum", "zksync", "ETH")
        assert not HOP.supports("ethereum", "polygon", "ETH")

    def test_estimated_time_uses_table_then_default(self):
        assert STARGATE.estimated_minutes("ethereum", "arbitrum") == 10
        assert STARGATE.estimated_minutes("polygon", "avalanche") == 20

    def test_symmetric_time_lookup(self):
        assert ACROSS.estimated_minutes("polygon", "ethereum") == 30
        assert HOP.estimated_minutes("polygon", "ethereum") == 25

    def test_token_address_errors(self):
        with pytest.raises(UnsupportedAsset):
            STARGATE.token_address("DAI", "ethereum")
        with pytest.raises(UnsupportedChain):
            STARGATE.chain_identity("scroll")

    def test_native_detection(self):
        assert HOP.is_native("ETH", "arbitrum")
        assert SOCKET.is_native("ETH", "base")
        assert not ACROSS.is_native("USDC", "ethereum")

    def test_token_decimals(self):
        assert token_decimals("usdc", "arbitrum") == 6
        assert token_decimals("USDC", "bsc") == 18
        assert token_decimals("ETH", "base") == 18
        with pytest.raises(UnsupportedAsset):
            token_decimals("PEPE", "ethereum")

    def test_completion_topic_is_keccak_of_signature(self):
        topic = STARGATE.completion_event.topic0
        assert topic.startswith("0x") and len(topic) == 66
        assert SOCKET.completion_event is None


class TestStargateAdapter:
    async def test_quote_reports_layerzero_fee_as_gas(self, pool, gateway_factory):
        gateway = gateway_factory(pool, "arbitrum")
        gateway.responses["quoteLayerZeroFee"] = (2 * 10 ** 15, 0)

        quote = await StargateAdapter(pool).get_route(make_request(Decimal("100")))

        assert quote.provider == "Stargate"
        assert quote.estimated_gas_fee == Decimal("0.002")
        assert quote.protocol_fee == Decimal("0.06")
        assert quote.estimated_minutes == 20
        assert quote.details.destination_protocol_chain_id == 111
        assert quote.details.payload["srcPoolId"] == 1
        destination_id, function_type, *_ = gateway.called("quoteLayerZeroFee")[0]
        assert (destination_id, function_type) == (111, 1)

    async def test_fee_read_failure_is_wrapped(self, pool, gateway_factory):
        gateway = gateway_factory(pool, "arbitrum")
        gateway.responses["quoteLayerZeroFee"] = RuntimeError("execution timeout")

        with pytest.raises(ProviderError) as excinfo:
            await StargateAdapter(pool).get_route(make_request())

        assert excinfo.value.provider == "Stargate"

    async def test_unsupported_chain_is_not_wrapped(self, pool):
        with pytest.raises(UnsupportedChain):
            await StargateAdapter(pool).get_route(make_request(source="zksync"))

    async def test_token_transfer_pays_fee_and_needs_allowance(self, pool, gateway_factory):
        gateway = gateway_factory(pool, "arbitrum")
        quote = make_quote("Stargate", descriptor=STARGATE)

        call = await StargateAdapter(pool).build_transfer_call(
            quote, SENDER, RECIPIENT, 100_000_000, 99_500_000, 10 ** 15
        )

        assert call.to == STARGATE_ARBITRUM_ROUTER
        assert call.value == 10 ** 15
        assert call.spender == STARGATE_ARBITRUM_ROUTER
        address, function_name, args = gateway.encoded[0]
        assert function_name == "swap"
        assert args[:3] == (111, 1, 1)
        assert args[4:6] == (100_000_000, 99_500_000)

    async def test_native_transfer_goes_through_router_eth(self, pool, gateway_factory):
        gateway = gateway_factory(pool, "ethereum")
        quote = make_quote("Stargate", source_chain="ethereum", destination_chain="arbitrum", token="ETH",
                           amount=Decimal("1"), descriptor=STARGATE)

        call = await StargateAdapter(pool).build_transfer_call(quote, SENDER, RECIPIENT, 10 ** 18, 995 * 10 ** 15,
                                                               10 ** 15)

        assert call.to == STARGATE_ETHEREUM_ROUTER_ETH
        assert call.value == 10 ** 18 + 10 ** 15
        assert call.spender is None
        assert gateway.encoded[0][1] == "swapETH"


class TestHopAdapter:
    async def test_l1_source_uses_send_to_l2(self, pool, gateway_factory):
        gateway = gateway_factory(pool, "ethereum")
        quote = make_quote("Hop", source_chain="ethereum", destination_chain="arbitrum", descriptor=HOP)

        call = await HopAdapter(pool, clock=lambda: 1_000).build_transfer_call(
            quote, SENDER, RECIPIENT, 100_000_000, 99_500_000, 0
        )

        assert call.to == HOP_USDC_L1_BRIDGE
        assert call.spender == HOP_USDC_L1_BRIDGE
        _, function_name, args = gateway.encoded[0]
        assert function_name == "sendToL2"
        assert args[0] == 42161
        assert args[4] == 1_000 + 1_200

    async def test_l2_source_uses_swap_and_send(self, pool, gateway_factory):
        gateway = gateway_factory(pool, "arbitrum")
        quote = make_quote("Hop", descriptor=HOP)

        call = await HopAdapter(pool).build_transfer_call(quote, SENDER, RECIPIENT, 100_000_000, 99_000_000, 5)

        assert call.to == HOP_USDC_L2_AMM
        assert call.value == 5
        assert gateway.encoded[0][1] == "swapAndSend"

    async def test_quote_reads_send_fee(self, pool, gateway_factory):
        gateway = gateway_factory(pool, "ethereum")
        gateway.responses["estimateSendFee"] = 3 * 10 ** 14

        quote = await HopAdapter(pool).get_route(make_request(source="ethereum", destination="optimism"))

        assert quote.estimated_gas_fee == Decimal("0.0003")
        assert quote.protocol_fee == Decimal("0.4")
        assert quote.estimated_minutes == 12

    def test_completion_target_matches_recipient(self, pool):
        record = BridgeTransactionRecord("0xabc", "ethereum", "arbitrum", "USDC", Decimal("1"), "Hop", SENDER,
                                         RECIPIENT)
        target = HopAdapter(pool).completion_target(record)
        assert target.contract == HOP_USDC_ARBITRUM_L2_BRIDGE
        assert target.event.recipient_topic == 1
        assert target.recipient == RECIPIENT

    @pytest.mark.parametrize("source, destination", [("arbitrum", "optimism"), ("optimism", "ethereum")])
    def test_completion_untrackable_outside_l1_origin(self, pool, source, destination):
        record = BridgeTransactionRecord("0xabc", source, destination, "USDC", Decimal("1"), "Hop", SENDER, RECIPIENT)
        assert HopAdapter(pool).completion_target(record) is None

    def test_completion_untrackable_without_known_l2_bridge(self, pool):
        record = BridgeTransactionRecord("0xabc", "ethereum", "base", "USDC", Decimal("1"), "Hop", SENDER, RECIPIENT)
        assert HopAdapter(pool).completion_target(record) is None


class TestAcrossAdapter:
    async def test_relayer_fee_lands_in_protocol_fee(self, pool, gateway_factory):
        gateway = gateway_factory(pool, "ethereum")
        gateway.responses["quoteRelayerFee"] = 1_000_000

        quote = await AcrossAdapter(pool).get_route(
            make_request(Decimal("1000"), source="ethereum", destination="arbitrum")
        )

        assert quote.estimated_gas_fee == Decimal(0)
        assert quote.protocol_fee == Decimal("4")
        assert quote.estimated_minutes == 15

    async def test_deposit_has_no_native_value_for_tokens(self, pool, gateway_factory):
        gateway = gateway_factory(pool, "ethereum")
        quote = make_quote("Across", source_chain="ethereum", destination_chain="arbitrum", amount=Decimal("1000"),
                           descriptor=ACROSS)

        call = await AcrossAdapter(pool, clock=lambda: 1_700_000_000).build_transfer_call(
            quote, SENDER, RECIPIENT, 1_000_000_000, 995_000_000, 1_000_000
        )

        assert call.to == ACROSS_ETHEREUM_SPOKE_POOL
        assert call.value == 0
        assert call.spender == ACROSS_ETHEREUM_SPOKE_POOL
        _, function_name, args = gateway.encoded[0]
        assert function_name == "deposit"
        assert args[3] == 42161
        assert args[4] == 10 ** 15
        assert args[5] == 1_700_000_000

    async def test_native_deposit_sends_amount(self, pool, gateway_factory):
        gateway_factory(pool, "ethereum")
        quote = make_quote("Across", source_chain="ethereum", destination_chain="base", token="ETH",
                           amount=Decimal("1"), descriptor=ACROSS)

        call = await AcrossAdapter(pool).build_transfer_call(quote, SENDER, RECIPIENT, 10 ** 18, 10 ** 18, 10 ** 15)

        assert call.value == 10 ** 18
        assert call.spender is None

    def test_relayer_fee_pct_fallback(self):
        assert relayer_fee_pct(0, 1_000) == 10 ** 15
        assert relayer_fee_pct(5, 1_000) == 5 * 10 ** 15


class BrokenSigner(FakeSigner):
    async def send_transaction(self, gateway, to, data, value_wei=0, gas_limit=None):
        raise RuntimeError("nonce too low")


def stargate_request(signer, quote=None, slippage="0.5"):
    return BridgeExecutionRequest(
        quote=quote or make_quote("Stargate", descriptor=STARGATE),
        signer=signer,
        slippage_percent=Decimal(slippage),
    )


class TestExecuteBridge:
    """Direct submission through an adapter: fee, call, allowance, transfer."""

    LZ_FEE = 10 ** 15

    @pytest.fixture
    def arbitrum(self, pool, gateway_factory):
        gateway = gateway_factory(pool, "arbitrum")
        gateway.responses["quoteLayerZeroFee"] = (self.LZ_FEE, 0)
        return gateway

    async def test_token_transfer_approves_before_sending(self, pool, arbitrum, signer):
        record = await StargateAdapter(pool).execute_bridge(stargate_request(signer))

        usdc = STARGATE.token_address("USDC", "arbitrum")
        assert [sent.to for sent in signer.sent] == [usdc, STARGATE_ARBITRUM_ROUTER]
        approve_args = next(args for _, name, args in arbitrum.encoded if name == "approve")
        assert approve_args[1] == MAX_UINT256
        assert signer.sent[1].value == self.LZ_FEE
        assert record.tx_hash == f"0x{2:064x}"
        assert record.min_amount_out == 99_500_000
        assert record.messaging_fee == self.LZ_FEE
        assert not record.relayed

    async def test_native_transfer_sends_amount_plus_fee(self, pool, gateway_factory, signer):
        gateway = gateway_factory(pool, "ethereum")
        gateway.responses["quoteLayerZeroFee"] = (self.LZ_FEE, 0)
        quote = make_quote("Stargate", source_chain="ethereum", destination_chain="arbitrum", token="ETH",
                           amount=Decimal("1"), descriptor=STARGATE)

        await StargateAdapter(pool).execute_bridge(stargate_request(signer, quote))

        assert [sent.to for sent in signer.sent] == [STARGATE_ETHEREUM_ROUTER_ETH]
        assert signer.sent[0].value == 10 ** 18 + self.LZ_FEE
        assert all(name != "approve" for _, name, _ in gateway.encoded)

    async def test_send_failure_is_wrapped(self, pool, arbitrum):
        usdc = STARGATE.token_address("USDC", "arbitrum")
        arbitrum.allowances[(usdc.lower(), SENDER.lower(), STARGATE_ARBITRUM_ROUTER.lower())] = MAX_UINT256

        with pytest.raises(ProviderError) as excinfo:
            await StargateAdapter(pool).execute_bridge(stargate_request(BrokenSigner()))

        assert excinfo.value.provider == "Stargate"
        assert str(excinfo.value.cause) == "nonce too low"

    async def test_fee_read_failure_is_retryable(self, pool, arbitrum, signer):
        arbitrum.responses["quoteLayerZeroFee"] = RuntimeError("header not found")

        with pytest.raises(FeeQuoteFailure):
            await StargateAdapter(pool).execute_bridge(stargate_request(signer))

        assert signer.sent == []

    async def test_before_submit_can_abort(self, pool, arbitrum, signer):
        seen = []

        async def refuse(call, messaging_fee):
            seen.append((call.to, messaging_fee))
            raise InsufficientGas(required=2, available=1)

        with pytest.raises(InsufficientGas):
            await StargateAdapter(pool).execute_bridge(stargate_request(signer), before_submit=refuse)

        assert seen == [(STARGATE_ARBITRUM_ROUTER, self.LZ_FEE)]
        assert signer.sent == []

    async def test_submitter_replaces_signer(self, pool, arbitrum, signer):
        submitted = []

        async def submit(to, data, value=0):
            submitted.append((to, value))
            return f"0xrelayed{len(submitted)}"

        record = await StargateAdapter(pool).execute_bridge(stargate_request(signer), submit=submit)

        usdc = STARGATE.token_address("USDC", "arbitrum")
        assert submitted == [(usdc, 0), (STARGATE_ARBITRUM_ROUTER, self.LZ_FEE)]
        assert signer.sent == []
        assert record.tx_hash == "0xrelayed2"
        assert record.relayed


class TestEnsureAllowance:
    USDC = STARGATE.token_address("USDC", "arbitrum")

    async def test_sufficient_allowance_sends_nothing(self, pool, gateway_factory, signer):
        gateway = gateway_factory(pool, "arbitrum")
        gateway.allowances[(self.USDC.lower(), SENDER.lower(), STARGATE_ARBITRUM_ROUTER.lower())] = 100

        assert await ensure_allowance(gateway, signer, self.USDC, STARGATE_ARBITRUM_ROUTER, 100) is None
        assert signer.sent == []

    async def test_reverted_approval_raises_allowance_failure(self, pool, gateway_factory, signer):
        gateway = gateway_factory(pool, "arbitrum")
        gateway.receipts[f"0x{1:064x}"] = {"status": 0}

        with pytest.raises(AllowanceFailure) as excinfo:
            await ensure_allowance(gateway, signer, self.USDC, STARGATE_ARBITRUM_ROUTER, 100)

        assert excinfo.value.retryable
        assert "reverted" in excinfo.value.message

    async def test_failed_approval_send_raises_allowance_failure(self, pool, gateway_factory):
        gateway = gateway_factory(pool, "arbitrum")

        with pytest.raises(AllowanceFailure) as excinfo:
            await ensure_allowance(gateway, BrokenSigner(), self.USDC, STARGATE_ARBITRUM_ROUTER, 100)

        assert "nonce too low" in excinfo.value.message

    async def test_reverted_approval_stops_the_transfer(self, pool, gateway_factory, signer):
        gateway = gateway_factory(pool, "arbitrum")
        gateway.responses["quoteLayerZeroFee"] = (10 ** 15, 0)
        gateway.receipts[f"0x{1:064x}"] = {"status": 0}

        with pytest.raises(AllowanceFailure):
            await StargateAdapter(pool).execute_bridge(stargate_request(signer))

        assert [sent.to for sent in signer.sent] == [self.USDC]
