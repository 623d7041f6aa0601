"""Trade validation — supporting checks and the ordered rule chain.

The chain is evaluated top to bottom and the first failing rule decides the
rejection.  Rules 1–5 can be overridden by a high enough confidence; the
ranging-market rule (ADX < 15) cannot.
"""

from dataclasses import dataclass
from enum import Enum
from typing import Optional, Union

from tradelens.market.models import Candle
from tradelens.strategy.models import BEARISH, BULLISH, DOWN, NEUTRAL, TREND_BIASES, UP

VOLUME_CONFIRMATION_RATIO = 1.1
RSI_NEUTRAL_LOW = 48.0
RSI_NEUTRAL_HIGH = 52.0
DIVERGENCE_WINDOW = 5
MAX_CONFIDENCE = 98


# ── Supporting checks ────────────────────────────────────────────────────


@dataclass(frozen=True)
class VolumeConfirmation:
    passes: bool
    reason: str
    ratio: float


@dataclass(frozen=True)
class VolumeDivergence:
    has_divergence: bool
    reason: str
    details: Optional[str] = None


@dataclass(frozen=True)
class RSINeutralCheck:
    is_neutral: bool
    reason: str


@dataclass(frozen=True)
class TrendAlignment:
    aligned: bool
    reason: str


NO_ANCHOR_CHECK = TrendAlignment(aligned=True, reason="No anchor check performed")


def check_volume_confirmation(current_volume: float, volume_ma: float) -> VolumeConfirmation:
    """Current volume must be at least 1.1× its moving average.

    A zero moving average gives a neutral ratio of 1.
    """
    ratio = current_volume / volume_ma if volume_ma > 0 else 1.0
    passes = ratio >= VOLUME_CONFIRMATION_RATIO
    return VolumeConfirmation(
        passes=passes,
        reason=(
            f"Volume confirmed: {ratio:.2f}x MA (≥1.1x threshold)" if passes
            else f"Volume low: {ratio:.2f}x MA (<1.1x threshold)"
        ),
        ratio=ratio,
    )


def check_volume_divergence(candles: list[Candle], direction: str) -> VolumeDivergence:
    """Detect price moving in the call's direction on shrinking volume.

    Compares the last two of the most recent five candles.  Fewer than five
    candles is reported as insufficient data, not as divergence.
    """
    if len(candles) < DIVERGENCE_WINDOW:
        return VolumeDivergence(False, "Not enough data for divergence check")

    recent = candles[-DIVERGENCE_WINDOW:]
    current, prev = recent[-1], recent[-2]
    volume_decreasing = current.volume < prev.volume

    if direction == UP and current.close > prev.close and volume_decreasing:
        return VolumeDivergence(
            True,
            "Weak Breakout: Price rising on declining volume",
            f"Price: {current.close:.2f} (↑) | Volume: {current.volume:.0f} (↓)",
        )
    if direction == DOWN and current.close < prev.close and volume_decreasing:
        return VolumeDivergence(
            True,
            "Weak Breakdown: Price falling on declining volume",
            f"Price: {current.close:.2f} (↓) | Volume: {current.volume:.0f} (↓)",
        )
    return VolumeDivergence(False, "No volume divergence detected")


def check_rsi_neutral_zone(rsi: float) -> RSINeutralCheck:
    """RSI between 48 and 52 (inclusive) carries no momentum edge."""
    if RSI_NEUTRAL_LOW <= rsi <= RSI_NEUTRAL_HIGH:
        return RSINeutralCheck(True, f"RSI in tight neutral zone ({rsi:.1f})")
    return RSINeutralCheck(False, f"RSI {rsi:.1f} - directional momentum")


def direction_to_bias(direction: str) -> str:
    if direction == UP:
        return BULLISH
    if direction == DOWN:
        return BEARISH
    return NEUTRAL


def check_trend_alignment(anchor_trend_bias: str, direction: str) -> TrendAlignment:
    """Compare the call's direction with the anchor timeframe's trend bias.

    A neutral anchor or a neutral call is trivially aligned.

    Raises ``ValueError`` if *anchor_trend_bias* is not a known bias.
    """
    if anchor_trend_bias not in TREND_BIASES:
        raise ValueError(f"Unknown trend bias '{anchor_trend_bias}'")
    entry_bias = direction_to_bias(direction)

    if anchor_trend_bias == NEUTRAL:
        return TrendAlignment(True, "Anchor trend neutral - proceeding with caution")
    if entry_bias == NEUTRAL:
        return TrendAlignment(True, "Entry direction neutral - proceeding")
    if entry_bias == anchor_trend_bias:
        return TrendAlignment(
            True,
            f"Trend aligned: Entry ({entry_bias}) matches Anchor ({anchor_trend_bias})",
        )
    return TrendAlignment(
        False,
        f"Trend Conflict: Entry ({entry_bias}) conflicts with Anchor "
        f"({anchor_trend_bias}) - Entry rejected",
    )


# ── Rule chain ───────────────────────────────────────────────────────────


class RejectionRule(str, Enum):
    """The rule that stopped a trade, in evaluation order."""

    MIN_CONFIDENCE = "min_confidence"
    COUNTER_TREND = "counter_trend"
    LOW_VOLUME = "low_volume"
    VOLUME_DIVERGENCE = "volume_divergence"
    RSI_NEUTRAL = "rsi_neutral"
    RANGING_MARKET = "ranging_market"


@dataclass(frozen=True)
class Proceed:
    """All rules passed; *confidence* is already capped at 98."""

    confidence: float
    should_proceed = True
    rejection_reason = None
    rule = None


@dataclass(frozen=True)
class Rejected:
    """A rule failed; *confidence* is the unmodified input confidence."""

    confidence: float
    reason: str
    rule: RejectionRule
    should_proceed = False

    @property
    def rejection_reason(self) -> str:
        return self.reason


ValidationOutcome = Union[Proceed, Rejected]


def validate_confidence(
    base_confidence: float,
    volume_ratio: float,
    adx_value: float,
    trend_aligned: bool,
    rsi_neutral: bool,
    has_volume_divergence: bool,
) -> ValidationOutcome:
    """Run the six validation rules in order; the first failure wins.

    1. confidence < 80                        → minimum threshold
    2. not trend_aligned and confidence < 82   → counter-trend
    3. volume_ratio < 1.1 and confidence < 85  → low volume
    4. divergence and confidence < 85          → volume divergence
    5. rsi_neutral and confidence < 80         → RSI neutral zone
    6. adx < 15                                → ranging market (no override)
    """
    if base_confidence < 80:
        return Rejected(
            base_confidence,
            f"Confidence below minimum threshold ({base_confidence}% < 80%)",
            RejectionRule.MIN_CONFIDENCE,
        )

    if not trend_aligned and base_confidence < 82:
        return Rejected(
            base_confidence,
            "Trend Conflict: Counter-trend setups require higher confidence (>82%)",
            RejectionRule.COUNTER_TREND,
        )

    if volume_ratio < VOLUME_CONFIRMATION_RATIO and base_confidence < 85:
        return Rejected(
            base_confidence,
            f"Low volume ({volume_ratio:.2f}x) requires higher baseline confidence",
            RejectionRule.LOW_VOLUME,
        )

    if has_volume_divergence and base_confidence < 85:
        return Rejected(
            base_confidence,
            "Volume divergence detected - weak breakout/breakdown",
            RejectionRule.VOLUME_DIVERGENCE,
        )

    # Shadowed by rule 1 while both thresholds are 80
    if rsi_neutral and base_confidence < 80:
        return Rejected(
            base_confidence,
            "RSI in neutral zone - low momentum setup",
            RejectionRule.RSI_NEUTRAL,
        )

    if adx_value < 15:
        return Rejected(
            base_confidence,
            "ADX < 15 - Extremely ranging market, no edge detected",
            RejectionRule.RANGING_MARKET,
        )

    return Proceed(min(MAX_CONFIDENCE, base_confidence))
