"""Signal aggregation — weighted UP/DOWN scores, alignment and regime bonus."""

from dataclasses import dataclass

from tradelens.strategy.models import (
    DOWN,
    MARKET_REGIMES,
    RANGING,
    STRONG_TRENDING,
    TRENDING,
    UP,
    WeightedSignal,
)


@dataclass(frozen=True)
class AggregationResult:
    """Scores derived from one run's signal list."""

    up_score: float
    down_score: float
    signal_alignment: float  # 0–100
    volume_bonus: float
    regime_multiplier: float
    up_count: int
    down_count: int
    neutral_count: int

    @property
    def total_signals(self) -> int:
        return self.up_count + self.down_count + self.neutral_count


def volume_bonus_for(volume_indicator: float) -> float:
    """25 above +20% volume, 15 above +10%, else 0."""
    if volume_indicator > 20:
        return 25.0
    if volume_indicator > 10:
        return 15.0
    return 0.0


def regime_multiplier_for(market_regime: str) -> float:
    """1.15 for a strong trend, 1.05 for a trend, 0.9 when ranging."""
    if market_regime not in MARKET_REGIMES:
        raise ValueError(f"Unknown market regime '{market_regime}'")
    if market_regime == STRONG_TRENDING:
        return 1.15
    if market_regime == TRENDING:
        return 1.05
    return 0.9


def aggregate(
    signals: list[WeightedSignal],
    volume_indicator: float = 0.0,
    market_regime: str = RANGING,
) -> AggregationResult:
    """Sum weighted strengths per direction and measure agreement.

    ``signal_alignment`` is the share of *all* evaluated signals (neutral
    ones included) that vote with the larger camp, in percent; an empty
    signal list has zero alignment.
    """
    up = [s for s in signals if s.direction == UP]
    down = [s for s in signals if s.direction == DOWN]
    total = len(signals)

    alignment = max(len(up), len(down)) / total * 100.0 if total else 0.0

    return AggregationResult(
        up_score=sum(s.strength * s.weight for s in up),
        down_score=sum(s.strength * s.weight for s in down),
        signal_alignment=alignment,
        volume_bonus=volume_bonus_for(volume_indicator),
        regime_multiplier=regime_multiplier_for(market_regime),
        up_count=len(up),
        down_count=len(down),
        neutral_count=total - len(up) - len(down),
    )


def resolve_direction(result: AggregationResult, tie_break: str = DOWN) -> str:
    """Internal direction call from the score comparison.

    Equal scores resolve to *tie_break* (``"DOWN"`` by default).

    Raises ``ValueError`` if *tie_break* is not ``"UP"`` or ``"DOWN"``.
    """
    if tie_break not in (UP, DOWN):
        raise ValueError(f"tie_break must be 'UP' or 'DOWN', got '{tie_break}'")
    if result.up_score > result.down_score:
        return UP
    if result.down_score > result.up_score:
        return DOWN
    return tie_break


def internal_confidence(signal_alignment: float, trend_strength: float) -> int:
    """Confidence used when no external judgment is available.

    Blend of 80% alignment and 20% trend strength, capped at 95.
    """
    return round(min(95.0, signal_alignment * 0.8 + trend_strength * 0.2))
