from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime, timezone
from decimal import Decimal
from enum import Enum
from typing import Any, List, Mapping, Optional

from crossroute.core.utils.format_utils import _tail


def _utc_now() -> datetime:
    return datetime.now(timezone.utc)


class FeeMode(str, Enum):
    """How the user pays for execution gas."""
    NATIVE = "native"
    TOKEN = "token"


class SettlementStatus(str, Enum):
    PENDING = "pending"
    SOURCE_CONFIRMED = "source_confirmed"
    DESTINATION_PENDING = "destination_pending"
    COMPLETED = "completed"
    FAILED = "failed"
    UNKNOWN = "unknown"

    @property
    def is_terminal(self) -> bool:
        return self in _TERMINAL_STATUSES

    @property
    def rank(self) -> int:
        """Position along the forward-only lifecycle; terminal states share the highest rank."""
        return _STATUS_RANK[self]


_TERMINAL_STATUSES = frozenset({SettlementStatus.COMPLETED, SettlementStatus.FAILED, SettlementStatus.UNKNOWN})

_STATUS_RANK = {
    SettlementStatus.PENDING: 0,
    SettlementStatus.SOURCE_CONFIRMED: 1,
    SettlementStatus.DESTINATION_PENDING: 2,
    SettlementStatus.COMPLETED: 3,
    SettlementStatus.FAILED: 3,
    SettlementStatus.UNKNOWN: 3,
}


@dataclass(frozen=True)
class ChainIdentity:
    """A chain name paired with the identifier one protocol uses for it."""
    name: str
    protocol_chain_id: int


@dataclass(frozen=True)
class BridgeIntent:
    """Structured transfer intent handed over by the conversational layer."""
    source_chain: str
    destination_chain: str
    token: str
    amount: Decimal
    gas_preference: FeeMode = FeeMode.NATIVE
    user_address: str = ""
    slippage_percent: Optional[Decimal] = None


@dataclass(frozen=True)
class RouteRequest:
    source_chain: str
    destination_chain: str
    token: str
    amount: Decimal
    user_address: str
    slippage_percent: Optional[Decimal] = None

    def __str__(self) -> str:
        return (f"[{self.source_chain}->{self.destination_chain} "
                f"token={self.token} amount={self.amount} user=…{_tail(self.user_address)}]")


@dataclass(frozen=True)
class RouteDetails:
    """Protocol metadata attached to a quote; `payload` keeps raw provider data."""
    source_token_address: str
    destination_token_address: str
    source_protocol_chain_id: int
    destination_protocol_chain_id: int
    payload: Mapping[str, Any] = field(default_factory=dict)


@dataclass(frozen=True)
class RouteQuote:
    provider: str
    source_chain: str
    destination_chain: str
    token: str
    amount: Decimal
    estimated_gas_fee: Decimal
    protocol_fee: Decimal
    estimated_minutes: int
    details: RouteDetails
    expires_at: Optional[datetime] = None

    @property
    def total_fee(self) -> Decimal:
        """Native gas fee plus protocol fee, summed as plain numbers."""
        return self.estimated_gas_fee + self.protocol_fee

    def __str__(self) -> str:
        return (f"[{self.provider} {self.source_chain}->{self.destination_chain} {self.token} "
                f"amount={self.amount} gas={self.estimated_gas_fee} fee={self.protocol_fee} "
                f"minutes={self.estimated_minutes}]")


@dataclass(frozen=True)
class ScoredRoute:
    quote: RouteQuote
    fee_score: float
    time_score: float
    reliability_score: float
    liquidity_score: float
    total_score: float

    @property
    def provider(self) -> str:
        return self.quote.provider


@dataclass(frozen=True)
class TransferCall:
    """Calldata ready to be signed; `spender` is set when an ERC-20 allowance must cover the call."""
    to: str
    data: str
    value: int
    spender: Optional[str] = None
    gas_limit: Optional[int] = None


@dataclass(frozen=True)
class BridgeExecutionRequest:
    quote: RouteQuote
    signer: Any
    slippage_percent: Decimal
    fee_mode: FeeMode = FeeMode.NATIVE
    recipient: Optional[str] = None


@dataclass
class BridgeTransactionRecord:
    """
    Tracked state of one submitted transfer.

    Only the settlement monitor mutates `status`; it moves forward and never leaves a
    terminal state.
    """
    tx_hash: str
    source_chain: str
    destination_chain: str
    token: str
    amount: Decimal
    provider: str
    sender: str
    recipient: str
    status: SettlementStatus = SettlementStatus.PENDING
    submitted_at: datetime = field(default_factory=_utc_now)
    status_message: str = ""
    min_amount_out: Optional[int] = None
    messaging_fee: Optional[int] = None
    relayed: bool = False
    relay_fee_tx_hash: Optional[str] = None
    source_block_number: Optional[int] = None
    destination_tx_hash: Optional[str] = None
    updated_at: datetime = field(default_factory=_utc_now)
    history: List[SettlementStatus] = field(default_factory=list)

    def __post_init__(self) -> None:
        if not self.history:
            self.history.append(self.status)

    def to_plain_dict(self) -> dict:
        return {
            "tx_hash": self.tx_hash,
            "source_chain": self.source_chain,
            "destination_chain": self.destination_chain,
            "token": self.token,
            "amount": str(self.amount),
            "provider": self.provider,
            "sender": self.sender,
            "recipient": self.recipient,
            "status": self.status.value,
            "status_message": self.status_message,
            "submitted_at": self.submitted_at.isoformat(),
            "updated_at": self.updated_at.isoformat(),
            "min_amount_out": None if self.min_amount_out is None else str(self.min_amount_out),
            "messaging_fee": None if self.messaging_fee is None else str(self.messaging_fee),
            "relayed": self.relayed,
            "relay_fee_tx_hash": self.relay_fee_tx_hash,
            "destination_tx_hash": self.destination_tx_hash,
        }

    def __str__(self) -> str:
        return (f"[{self.provider} tx=…{_tail(self.tx_hash, 10)} "
                f"{self.source_chain}->{self.destination_chain} {self.amount} {self.token} "
                f"status={self.status.value}]")
