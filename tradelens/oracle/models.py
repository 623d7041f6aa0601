"""Judgment data models — the snapshot sent to the oracle and its parsed answer."""

import logging
import math
from dataclasses import dataclass, field
from typing import Any, Optional

from tradelens.strategy.models import DIRECTIONS, WeightedSignal

logger = logging.getLogger("tradelens")

ORACLE_CONFIDENCE_MIN = 90
ORACLE_CONFIDENCE_MAX = 98


@dataclass(frozen=True)
class AnalysisSnapshot:
    """Aggregated market picture handed to the external judgment."""

    pair: str
    current_price: float
    price_change_24h: float
    market_regime: str
    entry_timeframe: str
    anchor_timeframe: str
    entry_trend_bias: str
    anchor_trend_bias: str
    up_signals: list[WeightedSignal]
    down_signals: list[WeightedSignal]
    up_score: float
    down_score: float
    volume_indicator: float
    volume_ma: float
    current_volume: float
    trend_strength: float
    volatility: float
    rsi_value: float
    macd_signal: str  # "bullish" | "bearish"
    adx_value: float

    @property
    def volume_ratio(self) -> float:
        return self.current_volume / self.volume_ma if self.volume_ma > 0 else 1.0


@dataclass(frozen=True)
class ExternalJudgment:
    """A parsed oracle answer.

    Only ``direction`` and ``confidence`` are checked at parse time.
    ``trade_targets`` is kept raw and must go through
    ``normalize_or_repair`` before use.
    """

    direction: str
    confidence: float
    rationale: str
    risk_factors: list[str] = field(default_factory=list)
    key_factors: list[str] = field(default_factory=list)
    trade_targets: Optional[dict] = None
    duration: Optional[str] = None
    thinking_process: Optional[str] = None
    model: Optional[str] = None


def _string_list(value: Any) -> list[str]:
    if not isinstance(value, list):
        return []
    return [str(v) for v in value if isinstance(v, (str, int, float)) and str(v).strip()]


def parse_judgment(
    payload: Any,
    model: Optional[str] = None,
    thinking_process: Optional[str] = None,
) -> Optional[ExternalJudgment]:
    """Build an ``ExternalJudgment`` from a decoded JSON payload.

    Returns ``None`` when the payload is not an object, the direction is
    not one of UP/DOWN/NEUTRAL, or the confidence is not a finite number.
    Confidence is rounded and clamped to [90, 98].
    """
    if not isinstance(payload, dict):
        return None

    direction = str(payload.get("direction", "")).upper()
    if direction not in DIRECTIONS:
        logger.warning("Oracle returned unknown direction %r", payload.get("direction"))
        return None

    raw_conf = payload.get("confidence")
    if isinstance(raw_conf, bool) or not isinstance(raw_conf, (int, float)):
        logger.warning("Oracle returned non-numeric confidence %r", raw_conf)
        return None
    if not math.isfinite(raw_conf):
        logger.warning("Oracle returned non-finite confidence %r", raw_conf)
        return None
    confidence = round(max(ORACLE_CONFIDENCE_MIN, min(ORACLE_CONFIDENCE_MAX, raw_conf)))

    targets = payload.get("tradeTargets")
    duration = payload.get("duration")

    return ExternalJudgment(
        direction=direction,
        confidence=confidence,
        rationale=str(payload.get("rationale") or ""),
        risk_factors=_string_list(payload.get("riskFactors")),
        key_factors=_string_list(payload.get("keyFactors")),
        trade_targets=targets if isinstance(targets, dict) else None,
        duration=duration if isinstance(duration, str) and duration else None,
        thinking_process=thinking_process or None,
        model=model,
    )
