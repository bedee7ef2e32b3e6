from __future__ import annotations

import asyncio
from datetime import datetime, timezone
from typing import Any, List, Mapping, Optional

from crossroute.configuration.config import settings
from crossroute.core.errors import UnsupportedChain
from crossroute.core.onchain.chain_gateway import ChainGateway, ChainGatewayPool, to_hex
from crossroute.core.structures.structures import BridgeTransactionRecord, SettlementStatus
from crossroute.core.utils.ttl_cache import TtlCache
from crossroute.integrations.protocols.base import BridgeAdapter, CompletionTarget
from crossroute.logging.logger import get_logger

log = get_logger(__name__)

CompletionEventCache = TtlCache[List[Mapping[str, Any]]]


def _topic_hex(topic: Any) -> str:
    return to_hex(topic)


def _topic_int(topic: Any) -> int:
    return int(_topic_hex(topic), 16)


def matches_completion(entry: Mapping[str, Any], target: CompletionTarget) -> bool:
    """
    Decide whether a destination log is the completion of the tracked transfer.

    The check is heuristic: emitter, event topic, and whichever of source chain id and
    recipient the event indexes. Two concurrent transfers on the same lane and recipient
    cannot be told apart.
    """
    emitter = entry.get("address")
    if emitter is not None and str(emitter).lower() != target.contract.lower():
        return False
    topics = list(entry.get("topics") or [])
    if not topics or _topic_hex(topics[0]) != target.event.topic0.lower():
        return False
    source_topic = target.event.source_chain_topic
    if source_topic is not None:
        if len(topics) <= source_topic or _topic_int(topics[source_topic]) != target.expected_source_chain_id:
            return False
    recipient_topic = target.event.recipient_topic
    if recipient_topic is not None:
        if len(topics) <= recipient_topic:
            return False
        if _topic_hex(topics[recipient_topic])[-40:] != target.recipient.lower()[-40:]:
            return False
    return True


class SettlementMonitor:
    """
    Poll both chains until one transfer reaches a terminal status.

    Lifecycle: PENDING -> SOURCE_CONFIRMED -> DESTINATION_PENDING -> COMPLETED, with
    FAILED and UNKNOWN as the other terminal states. The status never moves backwards.
    """

    def __init__(
            self,
            record: BridgeTransactionRecord,
            adapter: BridgeAdapter,
            gateways: ChainGatewayPool,
            poll_interval_seconds: Optional[float] = None,
            lookback_blocks: Optional[int] = None,
            max_rpc_failures: Optional[int] = None,
            event_cache: Optional[CompletionEventCache] = None,
    ) -> None:
        self.record = record
        self.adapter = adapter
        self.gateways = gateways
        self.poll_interval_seconds = (
            settings.MONITOR_POLL_INTERVAL_SECONDS if poll_interval_seconds is None else poll_interval_seconds
        )
        self.lookback_blocks = settings.MONITOR_LOOKBACK_BLOCKS if lookback_blocks is None else lookback_blocks
        self.max_rpc_failures = settings.MONITOR_MAX_RPC_FAILURES if max_rpc_failures is None else max_rpc_failures
        self.event_cache: CompletionEventCache = event_cache if event_cache is not None else TtlCache(
            settings.COMPLETION_EVENT_CACHE_TTL_SECONDS
        )
        self._consecutive_failures = 0
        self._task: Optional[asyncio.Task] = None

    @property
    def status(self) -> SettlementStatus:
        return self.record.status

    @property
    def is_running(self) -> bool:
        return self._task is not None and not self._task.done()

    def _transition(self, status: SettlementStatus, message: str) -> None:
        current = self.record.status
        if current.is_terminal or status == current:
            return
        if status.rank < current.rank:
            log.warning("[MONITOR][TRANSITION][REJECTED] %s %s -> %s", self.record, current.value, status.value)
            return
        self.record.status = status
        self.record.status_message = message
        self.record.updated_at = datetime.now(timezone.utc)
        self.record.history.append(status)
        log.info("[MONITOR][TRANSITION] tx=%s %s -> %s (%s)", self.record.tx_hash, current.value, status.value,
                 message)

    def _gateway(self, chain: str) -> Optional[ChainGateway]:
        try:
            return self.gateways.get(chain)
        except UnsupportedChain:
            self._transition(SettlementStatus.UNKNOWN, f"No RPC endpoint configured for {chain}; cannot track")
            return None

    def _rpc_failure(self, side: str, exc: Exception) -> None:
        self._consecutive_failures += 1
        log.warning("[MONITOR][RPC][FAIL] tx=%s side=%s attempt=%d/%d error=%s", self.record.tx_hash, side,
                    self._consecutive_failures, self.max_rpc_failures, exc)
        if self._consecutive_failures >= self.max_rpc_failures:
            self._transition(SettlementStatus.UNKNOWN, f"{side.capitalize()} chain RPC unreachable: {exc}")

    async def _check_source(self) -> None:
        gateway = self._gateway(self.record.source_chain)
        if gateway is None:
            return
        try:
            receipt = await gateway.get_receipt(self.record.tx_hash)
        except Exception as exc:
            self._rpc_failure("source", exc)
            return
        self._consecutive_failures = 0
        if receipt is None:
            log.debug("[MONITOR][SOURCE][PENDING] tx=%s", self.record.tx_hash)
            return
        if int(receipt.get("status", 1)) == 0:
            self._transition(SettlementStatus.FAILED, "Transaction reverted on source chain")
            return
        block_number = receipt.get("blockNumber")
        self.record.source_block_number = None if block_number is None else int(block_number)
        self._transition(SettlementStatus.SOURCE_CONFIRMED, "Transaction confirmed on source chain")
        minutes = self.adapter.get_estimated_time(self.record.source_chain, self.record.destination_chain)
        self._transition(
            SettlementStatus.DESTINATION_PENDING,
            f"Confirmed on source chain, pending on destination chain. Typically takes {minutes} minutes.",
        )

    async def _fetch_logs(
            self,
            gateway: ChainGateway,
            target: CompletionTarget,
            from_block: int,
            to_block: int,
    ) -> List[Mapping[str, Any]]:
        key = f"{gateway.chain}|{target.contract.lower()}|{target.event.topic0}|{from_block}|{to_block}"
        cached = self.event_cache.get(key)
        if cached is not None:
            return cached
        logs = await gateway.get_logs(target.contract, [target.event.topic0], from_block, to_block)
        self.event_cache.set(key, logs)
        return logs

    async def _search_destination(self) -> None:
        target = self.adapter.completion_target(self.record)
        if target is None:
            self._transition(
                SettlementStatus.UNKNOWN,
                f"Destination settlement for {self.record.provider} cannot be tracked automatically",
            )
            return
        gateway = self._gateway(self.record.destination_chain)
        if gateway is None:
            return
        try:
            latest = await gateway.block_number()
            from_block = max(latest - self.lookback_blocks, 0)
            logs = await self._fetch_logs(gateway, target, from_block, latest)
        except Exception as exc:
            self._rpc_failure("destination", exc)
            return
        self._consecutive_failures = 0

        for entry in logs:
            if matches_completion(entry, target):
                tx_hash = entry.get("transactionHash")
                self.record.destination_tx_hash = None if tx_hash is None else to_hex(tx_hash)
                self._transition(SettlementStatus.COMPLETED, "Transfer completed on destination chain")
                return
        log.debug("[MONITOR][DESTINATION][WAIT] tx=%s scanned=%d blocks=%d..%d", self.record.tx_hash, len(logs),
                  from_block, latest)

    async def tick(self) -> SettlementStatus:
        """One polling step: a source receipt check while PENDING, then a destination search once confirmed."""
        if self.record.status.is_terminal:
            return self.record.status
        if self.record.status == SettlementStatus.PENDING:
            await self._check_source()
        if self.record.status in (SettlementStatus.SOURCE_CONFIRMED, SettlementStatus.DESTINATION_PENDING):
            await self._search_destination()
        return self.record.status

    async def run(self) -> SettlementStatus:
        while not self.record.status.is_terminal:
            try:
                await self.tick()
            except asyncio.CancelledError:
                raise
            except Exception as exc:
                log.error("[MONITOR][TICK][ERROR] tx=%s error=%s", self.record.tx_hash, exc)
            if self.record.status.is_terminal:
                break
            await asyncio.sleep(self.poll_interval_seconds)
        log.info("[MONITOR][STOP] %s", self.record)
        return self.record.status

    def start(self) -> asyncio.Task:
        if self._task is None or self._task.done():
            self._task = asyncio.get_running_loop().create_task(self.run())
        return self._task

    def cancel(self) -> None:
        """Stop polling; the record keeps its last observed status."""
        if self._task is not None and not self._task.done():
            self._task.cancel()
            log.info("[MONITOR][CANCEL] %s", self.record)
