"""TradeLens — analysis pipeline (orchestration).

Connects market data, indicators, signal aggregation, the external
judgment and the validation chain into one staged run per request.
Progress is published as ``StageUpdate`` events; the run itself always
ends in a ``Prediction``.
"""

import asyncio
import logging
import time
from typing import Optional

from tradelens.analysis.events import (
    AI_THINKING,
    COMPLETE,
    DATA_COLLECTION,
    FINAL_VERDICT,
    IN_PROGRESS,
    SIGNAL_AGGREGATION,
    TECHNICAL_CALCULATION,
    StageEmitter,
    StageUpdate,
    safe_emit,
)
from tradelens.analysis.validation import (
    NO_ANCHOR_CHECK,
    check_rsi_neutral_zone,
    check_trend_alignment,
    check_volume_confirmation,
    check_volume_divergence,
    validate_confidence,
)
from tradelens.analysis.verdict import (
    Prediction,
    ValidationDiagnostics,
    assemble_verdict,
    failure_prediction,
)
from tradelens.config import Config
from tradelens.market.binance_client import MarketDataError, MarketDataProvider
from tradelens.market.models import MarketData
from tradelens.market.timeframes import get_anchor_timeframe, validate_timeframe
from tradelens.oracle.base import JudgmentOracle, ThoughtObserver
from tradelens.oracle.models import (
    ORACLE_CONFIDENCE_MAX,
    ORACLE_CONFIDENCE_MIN,
    AnalysisSnapshot,
    ExternalJudgment,
)
from tradelens.strategy.aggregation import (
    AggregationResult,
    aggregate,
    internal_confidence,
    resolve_direction,
)
from tradelens.strategy.indicators import analyze_market
from tradelens.strategy.models import DOWN, UP, TechnicalIndicatorSnapshot
from tradelens.strategy.signals import map_indicators_to_signals

logger = logging.getLogger("tradelens")

THINKING_MODEL_LABEL = "Gemini 3 Pro (Thinking Mode)"
DEFAULT_THINKING_TEXT = (
    "AI deep analysis complete. Evaluating all technical indicators and "
    "market conditions to generate high-confidence prediction."
)


def _elapsed_ms(started: float) -> int:
    return int((time.monotonic() - started) * 1000)


class AnalysisPipeline:
    """Runs one staged analysis per ``run_analysis`` call.

    Args:
        config: Application configuration.
        provider: A ``MarketDataProvider`` (``BinanceClient`` or a fake).
        oracle: Optional ``JudgmentOracle``; without one the internal
            direction and confidence are always used.
        emitter: Default stage-event sink, overridable per run.
    """

    def __init__(
        self,
        config: Config,
        provider: MarketDataProvider,
        oracle: Optional[JudgmentOracle] = None,
        emitter: Optional[StageEmitter] = None,
    ) -> None:
        self._config = config
        self._provider = provider
        self._oracle = oracle
        self._emitter = emitter

    # ── Public API ───────────────────────────────────────────────────────

    async def run_analysis(
        self,
        pair: str,
        timeframe: Optional[str] = None,
        emitter: Optional[StageEmitter] = None,
        on_thought: Optional[ThoughtObserver] = None,
    ) -> Prediction:
        """Analyse *pair* on *timeframe* and return the verdict.

        Never raises: data or indicator failures produce a NEUTRAL
        placeholder with ``error=True``.
        """
        timeframe = timeframe or self._config.default_timeframe
        emit = emitter or self._emitter

        try:
            return await self._run(pair, timeframe, emit, on_thought)
        except MarketDataError as exc:
            logger.error("Analysis for %s %s failed — market data: %s", pair, timeframe, exc)
        except ValueError as exc:
            logger.error("Analysis for %s %s failed: %s", pair, timeframe, exc)
        except Exception:
            logger.exception("Unexpected error analysing %s %s", pair, timeframe)

        prediction = failure_prediction(pair, timeframe)
        await safe_emit(
            emit,
            StageUpdate(FINAL_VERDICT, 100, COMPLETE, data=prediction.verdict_data()),
        )
        return prediction

    # ── Stages ───────────────────────────────────────────────────────────

    async def _run(
        self,
        pair: str,
        timeframe: str,
        emit: Optional[StageEmitter],
        on_thought: Optional[ThoughtObserver],
    ) -> Prediction:
        validate_timeframe(timeframe)
        anchor_tf = get_anchor_timeframe(timeframe)

        # Stage 1: data collection
        started = time.monotonic()
        await safe_emit(emit, StageUpdate(DATA_COLLECTION, 0, IN_PROGRESS))
        market, anchor_market = await self._fetch(pair, timeframe, anchor_tf)
        await safe_emit(emit, StageUpdate(
            DATA_COLLECTION, 100, COMPLETE,
            duration_ms=_elapsed_ms(started),
            data={
                "candlesRetrieved": len(market.candles),
                "currentPrice": market.current_price,
                "priceChange24h": market.price_change_24h,
                "volumeChange24h": market.volume_change_24h,
                "anchorTimeframe": anchor_tf,
            },
        ))
        await self._pause()

        # Stage 2: technical calculation
        started = time.monotonic()
        await safe_emit(emit, StageUpdate(TECHNICAL_CALCULATION, 0, IN_PROGRESS))
        snapshot = analyze_market(market.candles, market.current_price)
        anchor_bias = self._anchor_trend_bias(pair, anchor_tf, anchor_market)
        signals = map_indicators_to_signals(snapshot)
        await safe_emit(emit, StageUpdate(
            TECHNICAL_CALCULATION, 100, COMPLETE,
            duration_ms=_elapsed_ms(started),
            data={
                "indicators": [s.to_dict() for s in signals],
                "marketRegime": snapshot.market_regime,
                "trendStrength": round(snapshot.trend_strength, 1),
                "trendBias": snapshot.trend_bias,
                "anchorTrendBias": anchor_bias,
            },
        ))
        await self._pause()

        # Stage 3: signal aggregation
        started = time.monotonic()
        await safe_emit(emit, StageUpdate(SIGNAL_AGGREGATION, 0, IN_PROGRESS))
        aggregation = aggregate(signals, snapshot.volume_indicator, snapshot.market_regime)
        await safe_emit(emit, StageUpdate(
            SIGNAL_AGGREGATION, 100, COMPLETE,
            duration_ms=_elapsed_ms(started),
            data={
                "upSignalsCount": aggregation.up_count,
                "downSignalsCount": aggregation.down_count,
                "neutralSignalsCount": aggregation.neutral_count,
                "upScore": round(aggregation.up_score, 2),
                "downScore": round(aggregation.down_score, 2),
                "signalAlignment": round(aggregation.signal_alignment, 2),
                "marketRegime": snapshot.market_regime,
                "volumeBonus": aggregation.volume_bonus,
                "regimeMultiplier": aggregation.regime_multiplier,
            },
        ))
        await self._pause()

        # Stage 4: external judgment
        started = time.monotonic()
        await safe_emit(emit, StageUpdate(
            AI_THINKING, 0, IN_PROGRESS,
            data={"thinkingProcess": "", "analysisTime": 0, "modelUsed": THINKING_MODEL_LABEL},
        ))
        oracle_snapshot = self._build_oracle_snapshot(
            pair, timeframe, anchor_tf, market, snapshot, anchor_bias, signals, aggregation,
        )
        judgment = await self._consult_oracle(oracle_snapshot, on_thought)
        await safe_emit(emit, StageUpdate(
            AI_THINKING, 100, COMPLETE,
            duration_ms=_elapsed_ms(started),
            data={
                "thinkingProcess": (
                    judgment.thinking_process if judgment and judgment.thinking_process
                    else DEFAULT_THINKING_TEXT
                ),
                "analysisTime": _elapsed_ms(started),
                "modelUsed": judgment.model if judgment and judgment.model else THINKING_MODEL_LABEL,
            },
        ))
        await self._pause()

        # Stage 5: validation and verdict
        started = time.monotonic()
        await safe_emit(emit, StageUpdate(FINAL_VERDICT, 0, IN_PROGRESS))

        direction, confidence = self._decide(judgment, aggregation, snapshot)
        diagnostics = ValidationDiagnostics(
            volume=check_volume_confirmation(market.current_volume, snapshot.volume_ma),
            divergence=check_volume_divergence(market.candles, direction),
            rsi=check_rsi_neutral_zone(snapshot.rsi),
            trend=(
                check_trend_alignment(anchor_bias, direction)
                if anchor_bias is not None else NO_ANCHOR_CHECK
            ),
        )
        outcome = validate_confidence(
            confidence,
            diagnostics.volume.ratio,
            snapshot.adx,
            diagnostics.trend.aligned,
            diagnostics.rsi.is_neutral,
            diagnostics.divergence.has_divergence,
        )
        if not outcome.should_proceed:
            logger.info(
                "%s %s standing aside (%s): %s",
                pair, timeframe, outcome.rule.value, outcome.rejection_reason,
            )

        prediction = assemble_verdict(
            pair=pair,
            timeframe=timeframe,
            direction=direction,
            snapshot=snapshot,
            signals=signals,
            aggregation=aggregation,
            judgment=judgment,
            outcome=outcome,
            diagnostics=diagnostics,
        )
        await safe_emit(emit, StageUpdate(
            FINAL_VERDICT, 100, COMPLETE,
            duration_ms=_elapsed_ms(started),
            data=prediction.verdict_data(),
        ))

        logger.info(
            "%s %s verdict: %s | %s%% | quality %d",
            pair, timeframe, prediction.direction, prediction.confidence,
            prediction.quality_score,
        )
        return prediction

    # ── Helpers ──────────────────────────────────────────────────────────

    async def _fetch(
        self, pair: str, timeframe: str, anchor_tf: str,
    ) -> tuple[MarketData, Optional[MarketData]]:
        """Fetch primary and anchor data concurrently.

        A primary failure propagates; an anchor failure is logged and
        yields ``None``.
        """
        primary, anchor = await asyncio.gather(
            self._provider.fetch_market_data(pair, timeframe),
            self._provider.fetch_market_data(pair, anchor_tf),
            return_exceptions=True,
        )
        if isinstance(primary, BaseException):
            raise primary
        if isinstance(anchor, BaseException):
            logger.warning(
                "Anchor timeframe %s unavailable for %s: %s", anchor_tf, pair, anchor,
            )
            anchor = None
        return primary, anchor

    def _anchor_trend_bias(
        self, pair: str, anchor_tf: str, anchor_market: Optional[MarketData],
    ) -> Optional[str]:
        if anchor_market is None:
            return None
        try:
            return analyze_market(anchor_market.candles).trend_bias
        except ValueError as exc:
            logger.warning("Anchor analysis %s for %s skipped: %s", anchor_tf, pair, exc)
            return None

    def _build_oracle_snapshot(
        self,
        pair: str,
        timeframe: str,
        anchor_tf: str,
        market: MarketData,
        snapshot: TechnicalIndicatorSnapshot,
        anchor_bias: Optional[str],
        signals: list,
        aggregation: AggregationResult,
    ) -> AnalysisSnapshot:
        return AnalysisSnapshot(
            pair=pair,
            current_price=market.current_price,
            price_change_24h=market.price_change_24h,
            market_regime=snapshot.market_regime,
            entry_timeframe=timeframe,
            anchor_timeframe=anchor_tf,
            entry_trend_bias=snapshot.trend_bias,
            anchor_trend_bias=anchor_bias or "NEUTRAL",
            up_signals=[s for s in signals if s.direction == UP],
            down_signals=[s for s in signals if s.direction == DOWN],
            up_score=aggregation.up_score,
            down_score=aggregation.down_score,
            volume_indicator=snapshot.volume_indicator,
            volume_ma=snapshot.volume_ma,
            current_volume=market.current_volume,
            trend_strength=snapshot.trend_strength,
            volatility=snapshot.atr,
            rsi_value=snapshot.rsi,
            macd_signal="bullish" if snapshot.macd_histogram > 0 else "bearish",
            adx_value=snapshot.adx,
        )

    async def _consult_oracle(
        self,
        oracle_snapshot: AnalysisSnapshot,
        on_thought: Optional[ThoughtObserver],
    ) -> Optional[ExternalJudgment]:
        if self._oracle is None:
            return None
        try:
            return await self._oracle.judge(oracle_snapshot, on_thought=on_thought)
        except Exception as exc:
            logger.warning(
                "Judgment oracle raised for %s, using internal scores: %s",
                oracle_snapshot.pair, exc,
            )
            return None

    def _decide(
        self,
        judgment: Optional[ExternalJudgment],
        aggregation: AggregationResult,
        snapshot: TechnicalIndicatorSnapshot,
    ) -> tuple[str, float]:
        """Direction and base confidence: the judgment's, else the internal blend."""
        if judgment is not None:
            confidence = max(
                ORACLE_CONFIDENCE_MIN, min(ORACLE_CONFIDENCE_MAX, round(judgment.confidence)),
            )
            return judgment.direction, confidence

        direction = resolve_direction(aggregation, self._config.tie_break_direction)
        confidence = internal_confidence(aggregation.signal_alignment, snapshot.trend_strength)
        logger.info(
            "No external judgment, internal call: %s | %d%% (up %.1f / down %.1f)",
            direction, confidence, aggregation.up_score, aggregation.down_score,
        )
        return direction, confidence

    async def _pause(self) -> None:
        """Optional pacing between stages so clients can animate progress."""
        if self._config.stage_delay_seconds > 0:
            await asyncio.sleep(self._config.stage_delay_seconds)
