from __future__ import annotations

from typing import Dict, List, Optional

from crossroute.configuration.config import settings
from crossroute.core.monitoring.settlement_monitor import CompletionEventCache, SettlementMonitor
from crossroute.core.onchain.chain_gateway import ChainGatewayPool
from crossroute.core.structures.structures import BridgeTransactionRecord
from crossroute.core.utils.ttl_cache import TtlCache
from crossroute.integrations.protocols.base import BridgeAdapter
from crossroute.logging.logger import get_logger

log = get_logger(__name__)


class TransactionTracker:
    """In-memory registry of submitted transfers and the monitors driving them."""

    def __init__(
            self,
            gateways: ChainGatewayPool,
            poll_interval_seconds: Optional[float] = None,
            autostart: bool = True,
    ) -> None:
        self.gateways = gateways
        self.poll_interval_seconds = poll_interval_seconds
        self.autostart = autostart
        self.event_cache: CompletionEventCache = TtlCache(settings.COMPLETION_EVENT_CACHE_TTL_SECONDS)
        self._records: Dict[str, BridgeTransactionRecord] = {}
        self._monitors: Dict[str, SettlementMonitor] = {}

    @staticmethod
    def _key(tx_hash: str) -> str:
        return tx_hash.lower()

    def track(self, record: BridgeTransactionRecord, adapter: BridgeAdapter) -> SettlementMonitor:
        monitor = SettlementMonitor(
            record,
            adapter,
            self.gateways,
            poll_interval_seconds=self.poll_interval_seconds,
            event_cache=self.event_cache,
        )
        key = self._key(record.tx_hash)
        previous = self._monitors.get(key)
        if previous is not None:
            previous.cancel()
        self._records[key] = record
        self._monitors[key] = monitor
        if self.autostart:
            monitor.start()
        log.info("[TRACKER][TRACK] %s", record)
        return monitor

    def get(self, tx_hash: str) -> Optional[BridgeTransactionRecord]:
        return self._records.get(self._key(tx_hash))

    def monitor(self, tx_hash: str) -> Optional[SettlementMonitor]:
        return self._monitors.get(self._key(tx_hash))

    def cancel(self, tx_hash: str) -> bool:
        monitor = self._monitors.get(self._key(tx_hash))
        if monitor is None:
            return False
        monitor.cancel()
        return True

    def pending_for(self, wallet_address: str) -> List[BridgeTransactionRecord]:
        """Non-terminal records sent from `wallet_address`, newest first."""
        wallet = wallet_address.lower()
        pending = [
            record for record in self._records.values()
            if record.sender.lower() == wallet and not record.status.is_terminal
        ]
        return sorted(pending, key=lambda record: record.submitted_at, reverse=True)

    def all_records(self) -> List[BridgeTransactionRecord]:
        return list(self._records.values())

    def shutdown(self) -> None:
        for monitor in self._monitors.values():
            monitor.cancel()
