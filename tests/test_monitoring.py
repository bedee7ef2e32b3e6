"""Tests for settlement monitoring and the transaction tracker."""

from datetime import datetime, timedelta, timezone
from decimal import Decimal

import httpx
import pytest

from crossroute.core.monitoring.settlement_monitor import SettlementMonitor, matches_completion
from crossroute.core.monitoring.tracker import TransactionTracker
from crossroute.core.structures.structures import BridgeTransactionRecord, SettlementStatus
from crossroute.integrations.protocols.descriptors import STARGATE
from crossroute.integrations.protocols.hop import HopAdapter
from crossroute.integrations.protocols.stargate import StargateAdapter
from crossroute.integrations.socket.socket_adapter import SocketAdapter
from crossroute.integrations.socket.socket_client import SocketClient
from tests.conftest import RECIPIENT, SENDER

TX_HASH = "0x" + "aa" * 32
STARGATE_OPTIMISM_ROUTER = STARGATE.contract_addresses["optimism"]
ARBITRUM_LZ_ID = 110


def topic_for(value: int) -> str:
    return "0x" + format(value, "064x")


def stargate_completion_log(source_lz_id: int = ARBITRUM_LZ_ID, emitter: str = STARGATE_OPTIMISM_ROUTER):
    return {
        "address": emitter,
        "topics": [STARGATE.completion_event.topic0, topic_for(source_lz_id)],
        "transactionHash": bytes.fromhex("bb" * 32),
    }


def make_record(provider: str = "Stargate", source: str = "arbitrum", destination: str = "optimism",
                sender: str = SENDER, tx_hash: str = TX_HASH) -> BridgeTransactionRecord:
    return BridgeTransactionRecord(tx_hash, source, destination, "USDC", Decimal("100"), provider, sender, RECIPIENT)


@pytest.fixture
def chains(pool, gateway_factory):
    return gateway_factory(pool, "arbitrum"), gateway_factory(pool, "optimism")


def monitor_for(record, adapter, pool, **kwargs) -> SettlementMonitor:
    return SettlementMonitor(record, adapter, pool, poll_interval_seconds=0, **kwargs)


class TestSettlementMonitor:
    """Forward-only status lifecycle."""

    async def test_pending_while_receipt_missing(self, pool, chains):
        monitor = monitor_for(make_record(), StargateAdapter(pool), pool)
        assert await monitor.tick() == SettlementStatus.PENDING

    async def test_reverted_source_fails_without_confirming(self, pool, chains):
        source, _ = chains
        source.receipts[TX_HASH] = {"status": 0, "blockNumber": 10}
        record = make_record()

        status = await monitor_for(record, StargateAdapter(pool), pool).tick()

        assert status == SettlementStatus.FAILED
        assert SettlementStatus.SOURCE_CONFIRMED not in record.history
        assert record.history == [SettlementStatus.PENDING, SettlementStatus.FAILED]

    async def test_matching_destination_event_completes(self, pool, chains):
        source, destination = chains
        source.receipts[TX_HASH] = {"status": 1, "blockNumber": 10}
        destination.logs = [stargate_completion_log()]
        record = make_record()

        status = await monitor_for(record, StargateAdapter(pool), pool).tick()

        assert status == SettlementStatus.COMPLETED
        assert record.history == [
            SettlementStatus.PENDING,
            SettlementStatus.SOURCE_CONFIRMED,
            SettlementStatus.DESTINATION_PENDING,
            SettlementStatus.COMPLETED,
        ]
        assert record.destination_tx_hash == "0x" + "bb" * 32
        assert record.source_block_number == 10

    async def test_event_from_other_source_chain_keeps_waiting(self, pool, chains):
        source, destination = chains
        source.receipts[TX_HASH] = {"status": 1, "blockNumber": 10}
        destination.logs = [stargate_completion_log(source_lz_id=101)]
        record = make_record()

        status = await monitor_for(record, StargateAdapter(pool), pool).tick()

        assert status == SettlementStatus.DESTINATION_PENDING
        assert "minutes" in record.status_message

    async def test_untrackable_provider_resolves_unknown(self, pool, chains):
        source, _ = chains
        source.receipts[TX_HASH] = {"status": 1, "blockNumber": 10}
        client = SocketClient(base_url="https://socket.test",
                              http_client=httpx.AsyncClient(transport=httpx.MockTransport(
                                  lambda request: httpx.Response(200))))
        record = make_record(provider="Socket", source="arbitrum", destination="optimism")

        status = await monitor_for(record, SocketAdapter(pool, client), pool).tick()

        assert status == SettlementStatus.UNKNOWN
        assert "cannot be tracked automatically" in record.status_message

    async def test_hop_transfer_between_l2s_resolves_unknown(self, pool, chains):
        source, _ = chains
        source.receipts[TX_HASH] = {"status": 1, "blockNumber": 10}
        record = make_record(provider="Hop", source="arbitrum", destination="optimism")

        status = await monitor_for(record, HopAdapter(pool), pool).tick()

        assert status == SettlementStatus.UNKNOWN
        assert SettlementStatus.SOURCE_CONFIRMED in record.history

    async def test_terminal_status_never_changes(self, pool, chains):
        source, destination = chains
        source.receipts[TX_HASH] = {"status": 1, "blockNumber": 10}
        destination.logs = [stargate_completion_log()]
        record = make_record()
        monitor = monitor_for(record, StargateAdapter(pool), pool)
        await monitor.tick()
        history = list(record.history)

        source.receipts[TX_HASH] = {"status": 0}
        destination.logs = []
        assert await monitor.tick() == SettlementStatus.COMPLETED
        assert record.history == history

    async def test_repeated_rpc_failures_resolve_unknown(self, pool, chains):
        source, _ = chains
        source.receipt_error = ConnectionError("connection refused")
        record = make_record()
        monitor = monitor_for(record, StargateAdapter(pool), pool, max_rpc_failures=3)

        assert await monitor.tick() == SettlementStatus.PENDING
        assert await monitor.tick() == SettlementStatus.PENDING
        assert await monitor.tick() == SettlementStatus.UNKNOWN

    async def test_missing_destination_endpoint_resolves_unknown(self, pool, gateway_factory):
        source = gateway_factory(pool, "arbitrum")
        source.receipts[TX_HASH] = {"status": 1, "blockNumber": 10}
        record = make_record()

        status = await monitor_for(record, StargateAdapter(pool), pool).tick()

        assert status == SettlementStatus.UNKNOWN

    async def test_destination_logs_are_cached_between_monitors(self, pool, chains):
        source, destination = chains
        source.receipts[TX_HASH] = {"status": 1, "blockNumber": 10}
        adapter = StargateAdapter(pool)
        first = monitor_for(make_record(), adapter, pool)
        second = monitor_for(make_record(tx_hash="0x" + "cc" * 32), adapter, pool, event_cache=first.event_cache)
        source.receipts["0x" + "cc" * 32] = {"status": 1, "blockNumber": 11}

        await first.tick()
        await second.tick()

        assert destination.log_queries == 1

    async def test_run_stops_on_terminal_status(self, pool, chains):
        source, destination = chains
        source.receipts[TX_HASH] = {"status": 1, "blockNumber": 10}
        destination.logs = [stargate_completion_log()]

        status = await monitor_for(make_record(), StargateAdapter(pool), pool).run()

        assert status == SettlementStatus.COMPLETED


class TestMatchesCompletion:
    def test_recipient_topic_match(self, pool):
        record = make_record(provider="Hop", source="ethereum", destination="arbitrum")
        target = HopAdapter(pool).completion_target(record)
        entry = {
            "address": target.contract,
            "topics": [target.event.topic0, "0x" + "0" * 24 + RECIPIENT[2:].upper()],
        }
        assert matches_completion(entry, target)

    def test_wrong_emitter_rejected(self, pool):
        target = StargateAdapter(pool).completion_target(make_record())
        entry = stargate_completion_log(emitter="0x9999999999999999999999999999999999999999")
        assert not matches_completion(entry, target)


class TestTransactionTracker:
    def test_pending_for_lists_non_terminal_newest_first(self, pool):
        tracker = TransactionTracker(pool, autostart=False)
        adapter = StargateAdapter(pool)
        older = make_record(tx_hash="0x01")
        newer = make_record(tx_hash="0x02")
        newer.submitted_at = older.submitted_at + timedelta(minutes=1)
        done = make_record(tx_hash="0x03")
        done.status = SettlementStatus.COMPLETED
        other_wallet = make_record(tx_hash="0x04", sender="0x3333333333333333333333333333333333333333")
        for record in (older, newer, done, other_wallet):
            tracker.track(record, adapter)

        pending = tracker.pending_for(SENDER.upper().replace("0X", "0x"))

        assert [record.tx_hash for record in pending] == ["0x02", "0x01"]

    def test_lookup_is_case_insensitive(self, pool):
        tracker = TransactionTracker(pool, autostart=False)
        tracker.track(make_record(tx_hash="0xABCDEF"), StargateAdapter(pool))
        assert tracker.get("0xabcdef") is not None
        assert tracker.monitor("0xAbCdEf") is not None
        assert tracker.get("0x123") is None

    async def test_cancel_keeps_last_status(self, pool, chains):
        tracker = TransactionTracker(pool, poll_interval_seconds=60)
        record = make_record()
        monitor = tracker.track(record, StargateAdapter(pool))
        assert monitor.is_running

        assert tracker.cancel(record.tx_hash)
        assert record.status == SettlementStatus.PENDING
        assert not tracker.cancel("0xmissing")
        tracker.shutdown()

    def test_records_expose_submission_time(self):
        record = make_record()
        assert record.submitted_at <= datetime.now(timezone.utc)
