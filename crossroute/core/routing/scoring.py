from __future__ import annotations

from dataclasses import dataclass
from types import MappingProxyType
from typing import List, Mapping, Sequence, Tuple

from crossroute.core.structures.structures import RouteQuote, ScoredRoute
from crossroute.core.utils.format_utils import format_minutes
from crossroute.logging.logger import get_logger

log = get_logger(__name__)


@dataclass(frozen=True)
class ScoreWeights:
    fee: float = 0.35
    time: float = 0.25
    reliability: float = 0.25
    liquidity: float = 0.15


# (reliability, liquidity) on a 0..10 scale
PROVIDER_PROFILES: Mapping[str, Tuple[float, float]] = MappingProxyType({
    "Stargate": (9.2, 9.5),
    "Hop": (8.7, 8.0),
    "Across": (8.5, 7.8),
    "Socket": (8.0, 8.5),
})
DEFAULT_PROFILE: Tuple[float, float] = (7.0, 7.0)


def _inverse_normalize(values: Sequence[float]) -> List[float]:
    """Map the lowest value to 10 and the highest to 1, linearly; all equal -> 10."""
    low = min(values)
    high = max(values)
    if low == high:
        return [10.0 for _ in values]
    return [10.0 - 9.0 * (value - low) / (high - low) for value in values]


class RouteScorer:
    """
    Rank quotes by a weighted blend of cost, speed and static provider profiles.

    Fee and time scores are relative to the quote set being scored, so the same quote
    can score differently against different competitors.
    """

    def __init__(
            self,
            weights: ScoreWeights = ScoreWeights(),
            profiles: Mapping[str, Tuple[float, float]] = PROVIDER_PROFILES,
    ) -> None:
        self.weights = weights
        self.profiles = profiles

    def profile(self, provider: str) -> Tuple[float, float]:
        return self.profiles.get(provider, DEFAULT_PROFILE)

    def score(self, quotes: Sequence[RouteQuote]) -> List[ScoredRoute]:
        if not quotes:
            return []
        fee_scores = _inverse_normalize([float(quote.total_fee) for quote in quotes])
        time_scores = _inverse_normalize([float(quote.estimated_minutes) for quote in quotes])

        scored: List[ScoredRoute] = []
        for quote, fee_score, time_score in zip(quotes, fee_scores, time_scores):
            reliability, liquidity = self.profile(quote.provider)
            total = (
                    self.weights.fee * fee_score
                    + self.weights.time * time_score
                    + self.weights.reliability * reliability
                    + self.weights.liquidity * liquidity
            )
            scored.append(ScoredRoute(
                quote=quote,
                fee_score=fee_score,
                time_score=time_score,
                reliability_score=reliability,
                liquidity_score=liquidity,
                total_score=total,
            ))

        scored.sort(key=lambda route: (-route.total_score, route.provider))
        log.debug("[ROUTE][SCORE] ranking=%s",
                  ", ".join(f"{route.provider}={route.total_score:.2f}" for route in scored))
        return scored


def explain(route: ScoredRoute) -> str:
    """Human-readable breakdown of one scored route."""
    quote = route.quote
    lines = [
        f"{quote.provider} received a total score of {route.total_score:.1f} out of 10:",
        f"- Fees: {route.fee_score:.1f}/10 ({quote.protocol_fee} {quote.token} + {quote.estimated_gas_fee} gas)",
        f"- Speed: {route.time_score:.1f}/10 (estimated {format_minutes(quote.estimated_minutes)})",
        f"- Reliability: {route.reliability_score:.1f}/10",
        f"- Liquidity: {route.liquidity_score:.1f}/10",
    ]
    return "\n".join(lines)
