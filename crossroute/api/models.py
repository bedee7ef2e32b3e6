from datetime import datetime
from decimal import Decimal
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, Field

from crossroute.core.routing.scoring import explain
from crossroute.core.structures.structures import (
    BridgeIntent,
    BridgeTransactionRecord,
    FeeMode,
    RouteQuote,
    ScoredRoute,
)


class BridgeIntentModel(BaseModel):
    """Structured transfer intent, as produced by the conversational layer."""
    source_chain: str = Field(..., description="Source chain name or alias (e.g. 'eth', 'arbitrum').")
    destination_chain: str = Field(..., description="Destination chain name or alias.")
    token: str = Field(..., description="Token symbol, e.g. USDC.")
    amount: Decimal = Field(..., gt=0, description="Human amount to bridge.")
    user_address: str = Field(..., description="Sender wallet address.")
    gas_preference: FeeMode = Field(FeeMode.NATIVE, description="Pay gas in the native asset or in the token.")
    slippage_percent: Optional[Decimal] = Field(None, ge=0, le=100, description="Max slippage, percent.")

    def to_intent(self) -> BridgeIntent:
        return BridgeIntent(
            source_chain=self.source_chain,
            destination_chain=self.destination_chain,
            token=self.token,
            amount=self.amount,
            gas_preference=self.gas_preference,
            user_address=self.user_address,
            slippage_percent=self.slippage_percent,
        )


class RouteQuoteModel(BaseModel):
    provider: str
    source_chain: str
    destination_chain: str
    token: str
    amount: str
    estimated_gas_fee: str
    protocol_fee: str
    estimated_minutes: int
    expires_at: Optional[datetime] = None

    @classmethod
    def from_quote(cls, quote: RouteQuote) -> "RouteQuoteModel":
        return cls(
            provider=quote.provider,
            source_chain=quote.source_chain,
            destination_chain=quote.destination_chain,
            token=quote.token,
            amount=str(quote.amount),
            estimated_gas_fee=str(quote.estimated_gas_fee),
            protocol_fee=str(quote.protocol_fee),
            estimated_minutes=quote.estimated_minutes,
            expires_at=quote.expires_at,
        )


class ScoredRouteModel(BaseModel):
    quote: RouteQuoteModel
    fee_score: float
    time_score: float
    reliability_score: float
    liquidity_score: float
    total_score: float
    explanation: str

    @classmethod
    def from_scored(cls, route: ScoredRoute) -> "ScoredRouteModel":
        return cls(
            quote=RouteQuoteModel.from_quote(route.quote),
            fee_score=round(route.fee_score, 4),
            time_score=round(route.time_score, 4),
            reliability_score=route.reliability_score,
            liquidity_score=route.liquidity_score,
            total_score=round(route.total_score, 4),
            explanation=explain(route),
        )


class RoutesResponse(BaseModel):
    """Scored routes, best first."""
    routes: List[ScoredRouteModel] = Field(default_factory=list)


class TransactionRecordModel(BaseModel):
    tx_hash: str
    source_chain: str
    destination_chain: str
    token: str
    amount: str
    provider: str
    sender: str
    recipient: str
    status: str
    status_message: str
    submitted_at: str
    updated_at: str
    min_amount_out: Optional[str] = None
    messaging_fee: Optional[str] = None
    relayed: bool = False
    relay_fee_tx_hash: Optional[str] = None
    destination_tx_hash: Optional[str] = None

    @classmethod
    def from_record(cls, record: BridgeTransactionRecord) -> "TransactionRecordModel":
        return cls(**record.to_plain_dict())


class ErrorResponse(BaseModel):
    kind: str
    message: str
    retryable: bool = False
    details: Dict[str, Any] = Field(default_factory=dict)
