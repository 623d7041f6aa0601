"""Verdict assembly — turn validated analysis results into a Prediction."""

from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Optional

from tradelens.analysis.validation import (
    VOLUME_CONFIRMATION_RATIO,
    RSINeutralCheck,
    TrendAlignment,
    ValidationOutcome,
    VolumeConfirmation,
    VolumeDivergence,
)
from tradelens.market.timeframes import get_duration_label
from tradelens.oracle.models import ExternalJudgment
from tradelens.risk.trade_targets import TradeTargets, resolve_targets
from tradelens.strategy.aggregation import AggregationResult
from tradelens.strategy.models import (
    DOWN,
    NEUTRAL,
    STRONG_TRENDING,
    TRENDING,
    UP,
    TechnicalIndicatorSnapshot,
    WeightedSignal,
)

DATA_UNAVAILABLE_DURATION = "Data unavailable"


# ── Audit records ────────────────────────────────────────────────────────


@dataclass(frozen=True)
class ConfidenceBreakdown:
    """Arithmetic audit trail of how the final confidence was reached."""

    base_score: int
    volume_bonus: int
    regime_bonus: int
    alignment_penalty: int
    quality_boost: int
    raw_score: int
    final_confidence: float

    def to_dict(self) -> dict:
        return {
            "baseScore": self.base_score,
            "volumeBonus": self.volume_bonus,
            "regimeBonus": self.regime_bonus,
            "alignmentPenalty": self.alignment_penalty,
            "qualityBoost": self.quality_boost,
            "rawScore": self.raw_score,
            "finalConfidence": self.final_confidence,
        }


@dataclass(frozen=True)
class ValidationDiagnostics:
    """Results of the supporting checks fed into the rule chain."""

    volume: VolumeConfirmation
    divergence: VolumeDivergence
    rsi: RSINeutralCheck
    trend: TrendAlignment

    def to_dict(self) -> dict:
        return {
            "volumeConfirmation": {
                "passes": self.volume.passes,
                "ratio": round(self.volume.ratio, 4),
                "reason": self.volume.reason,
            },
            "volumeDivergence": {
                "hasDivergence": self.divergence.has_divergence,
                "reason": self.divergence.reason,
                "details": self.divergence.details,
            },
            "rsiNeutral": {
                "isNeutral": self.rsi.is_neutral,
                "reason": self.rsi.reason,
            },
            "trendAlignment": {
                "aligned": self.trend.aligned,
                "reason": self.trend.reason,
            },
        }


@dataclass(frozen=True)
class DetailedAnalysis:
    indicators: list[WeightedSignal]
    up_signals: list[WeightedSignal]
    down_signals: list[WeightedSignal]
    up_score: float
    down_score: float
    signal_alignment: float
    quality_score: int
    market_regime: str
    confidence_breakdown: ConfidenceBreakdown
    key_factors: list[str]
    diagnostics: ValidationDiagnostics
    rejection_reason: Optional[str] = None
    thinking_process: Optional[str] = None
    model: Optional[str] = None

    def to_dict(self) -> dict:
        return {
            "indicators": [s.to_dict() for s in self.indicators],
            "upSignals": [s.to_dict() for s in self.up_signals],
            "downSignals": [s.to_dict() for s in self.down_signals],
            "upScore": round(self.up_score, 2),
            "downScore": round(self.down_score, 2),
            "signalAlignment": round(self.signal_alignment, 2),
            "qualityScore": self.quality_score,
            "marketRegime": self.market_regime,
            "confidenceBreakdown": self.confidence_breakdown.to_dict(),
            "keyFactors": list(self.key_factors),
            "validation": {
                **self.diagnostics.to_dict(),
                "rejectionReason": self.rejection_reason,
            },
            "thinkingProcess": self.thinking_process,
            "modelUsed": self.model,
        }


@dataclass(frozen=True)
class Prediction:
    """Final recommendation for one analysis run."""

    pair: str
    timeframe: str
    direction: str
    confidence: float
    duration: str
    rationale: str
    risk_factors: list[str]
    key_factors: list[str]
    trade_targets: Optional[TradeTargets] = None
    quality_score: int = 0
    detailed_analysis: Optional[DetailedAnalysis] = None
    error: bool = False
    generated_at: str = field(
        default_factory=lambda: datetime.now(timezone.utc).isoformat()
    )

    def verdict_data(self) -> dict:
        """Payload of the ``final_verdict`` stage event."""
        data = {
            "direction": self.direction,
            "confidence": self.confidence,
            "duration": self.duration,
            "qualityScore": self.quality_score,
            "keyFactors": list(self.key_factors),
            "riskFactors": list(self.risk_factors),
            "tradeTargets": self.trade_targets.to_dict() if self.trade_targets else None,
            "explanation": self.rationale,
        }
        if self.error:
            data["error"] = True
            data["message"] = "Analysis failed"
        return data

    def to_dict(self) -> dict:
        return {
            "pair": self.pair,
            "timeframe": self.timeframe,
            "direction": self.direction,
            "confidence": self.confidence,
            "duration": self.duration,
            "rationale": self.rationale,
            "analysis": self.rationale,
            "riskFactors": list(self.risk_factors),
            "keyFactors": list(self.key_factors),
            "tradeTargets": self.trade_targets.to_dict() if self.trade_targets else None,
            "qualityScore": self.quality_score,
            "detailedAnalysis": (
                self.detailed_analysis.to_dict() if self.detailed_analysis else None
            ),
            "error": self.error,
            "generatedAt": self.generated_at,
        }


# ── Derived scores ───────────────────────────────────────────────────────


def quality_score_for(signal_alignment: float, trend_strength: float) -> int:
    return round((signal_alignment + trend_strength) / 2)


def build_confidence_breakdown(
    aggregation: AggregationResult,
    volume_ratio: float,
    market_regime: str,
    trend_aligned: bool,
    quality_score: int,
    final_confidence: float,
) -> ConfidenceBreakdown:
    """Record the bonuses and penalties implied by already-computed values."""
    alignment = aggregation.signal_alignment

    if market_regime == STRONG_TRENDING:
        regime_bonus = 18
    elif market_regime == TRENDING:
        regime_bonus = 10
    else:
        regime_bonus = 0

    if not trend_aligned:
        alignment_penalty = -20
    elif alignment < 70:
        alignment_penalty = -12
    else:
        alignment_penalty = 0

    if quality_score > 80:
        quality_boost = 15
    elif quality_score > 60:
        quality_boost = 10
    else:
        quality_boost = 0

    return ConfidenceBreakdown(
        base_score=round(alignment * 0.6),
        volume_bonus=25 if volume_ratio >= VOLUME_CONFIRMATION_RATIO else 0,
        regime_bonus=regime_bonus,
        alignment_penalty=alignment_penalty,
        quality_boost=quality_boost,
        raw_score=round((aggregation.up_score + aggregation.down_score) / 2),
        final_confidence=final_confidence,
    )


# ── Factor synthesis ─────────────────────────────────────────────────────


def _rejection_key_factors(
    snapshot: TechnicalIndicatorSnapshot,
    diagnostics: ValidationDiagnostics,
) -> list[str]:
    adx_label = "Tight Range" if snapshot.adx < 15 else "Directional Momentum"
    return [
        diagnostics.trend.reason,
        diagnostics.volume.reason,
        diagnostics.rsi.reason,
        f"ADX: {snapshot.adx:.1f} - {adx_label}",
    ]


def _synthesized_key_factors(
    direction: str,
    snapshot: TechnicalIndicatorSnapshot,
    aggregation: AggregationResult,
    diagnostics: ValidationDiagnostics,
) -> list[str]:
    if direction == DOWN:
        agreeing, side = aggregation.down_count, "bearish"
    else:
        agreeing, side = aggregation.up_count, "bullish"
    return [
        f"{agreeing}/{aggregation.total_signals} indicators {side} "
        f"({aggregation.signal_alignment:.1f}% alignment)",
        diagnostics.trend.reason,
        f"{snapshot.market_regime} market (ADX: {snapshot.adx:.1f})",
        diagnostics.volume.reason,
    ]


def _synthesized_risk_factors(
    snapshot: TechnicalIndicatorSnapshot,
    diagnostics: ValidationDiagnostics,
) -> list[str]:
    return [
        diagnostics.divergence.reason if diagnostics.divergence.has_divergence
        else "Monitor for volume decrease",
        "High volatility - wider stops recommended" if snapshot.atr > 3
        else "Normal volatility range",
    ]


# ── Assembly ─────────────────────────────────────────────────────────────


def assemble_verdict(
    *,
    pair: str,
    timeframe: str,
    direction: str,
    snapshot: TechnicalIndicatorSnapshot,
    signals: list[WeightedSignal],
    aggregation: AggregationResult,
    judgment: Optional[ExternalJudgment],
    outcome: ValidationOutcome,
    diagnostics: ValidationDiagnostics,
) -> Prediction:
    """Build the final Prediction from the validation outcome.

    A rejected outcome yields a NEUTRAL call without targets whose factors
    come from the failed checks.  A passing outcome keeps *direction*, uses
    the judgment's factors and targets when it supplied them and
    synthesises them from internal statistics otherwise.
    """
    quality = quality_score_for(aggregation.signal_alignment, snapshot.trend_strength)
    label = get_duration_label(timeframe)
    trade_targets: Optional[TradeTargets] = None

    if not outcome.should_proceed:
        final_direction = NEUTRAL
        duration = label
        key_factors = _rejection_key_factors(snapshot, diagnostics)
        risk_factors = [outcome.rejection_reason]
        rationale = f"Market Analysis: Neutral leaning. {outcome.rejection_reason}. Standing aside."
    else:
        final_direction = direction
        duration = (judgment.duration if judgment and judgment.duration else label)
        key_factors = (
            list(judgment.key_factors) if judgment and judgment.key_factors
            else _synthesized_key_factors(direction, snapshot, aggregation, diagnostics)
        )
        risk_factors = (
            list(judgment.risk_factors) if judgment and judgment.risk_factors
            else _synthesized_risk_factors(snapshot, diagnostics)
        )
        if direction in (UP, DOWN):
            trade_targets = resolve_targets(
                judgment.trade_targets if judgment else None,
                direction,
                snapshot.price,
                snapshot.atr,
            )
        rationale = (
            judgment.rationale if judgment and judgment.rationale
            else f"Strong {direction} signal detected with {outcome.confidence}% confidence"
        )

    breakdown = build_confidence_breakdown(
        aggregation,
        diagnostics.volume.ratio,
        snapshot.market_regime,
        diagnostics.trend.aligned,
        quality,
        outcome.confidence,
    )

    detailed = DetailedAnalysis(
        indicators=list(signals),
        up_signals=[s for s in signals if s.direction == UP],
        down_signals=[s for s in signals if s.direction == DOWN],
        up_score=aggregation.up_score,
        down_score=aggregation.down_score,
        signal_alignment=aggregation.signal_alignment,
        quality_score=quality,
        market_regime=snapshot.market_regime,
        confidence_breakdown=breakdown,
        key_factors=key_factors,
        diagnostics=diagnostics,
        rejection_reason=outcome.rejection_reason,
        thinking_process=judgment.thinking_process if judgment else None,
        model=judgment.model if judgment else None,
    )

    return Prediction(
        pair=pair,
        timeframe=timeframe,
        direction=final_direction,
        confidence=outcome.confidence,
        duration=duration,
        rationale=rationale,
        risk_factors=risk_factors,
        key_factors=key_factors,
        trade_targets=trade_targets,
        quality_score=quality,
        detailed_analysis=detailed,
    )


def failure_prediction(pair: str, timeframe: str) -> Prediction:
    """NEUTRAL placeholder returned when market data could not be analysed."""
    return Prediction(
        pair=pair,
        timeframe=timeframe,
        direction=NEUTRAL,
        confidence=0,
        duration=DATA_UNAVAILABLE_DURATION,
        rationale=(
            f"Market data service temporarily unavailable. Cannot perform "
            f"technical analysis for {pair}. Please try again in a moment when "
            f"live market data is restored."
        ),
        risk_factors=["Technical failure"],
        key_factors=["Data collection error"],
        error=True,
    )
