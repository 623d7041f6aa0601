"""Indicator signal mapping — pure functions, no I/O.

Turns one ``TechnicalIndicatorSnapshot`` into a fixed, ordered list of
``WeightedSignal`` votes.  Each mapper applies a single threshold rule and
records the rationale of the branch that fired, so the final verdict can
show *why* every indicator leaned the way it did.
"""

from tradelens.strategy.models import (
    DOWN,
    MOMENTUM,
    NEUTRAL,
    PRICE_ACTION,
    TREND,
    UP,
    VOLATILITY,
    TechnicalIndicatorSnapshot,
    WeightedSignal,
)


def bollinger_position(price: float, lower: float, upper: float) -> float:
    """Position of *price* inside the bands: 0 at the lower band, 1 at the upper.

    A collapsed band (``upper == lower``) has no defined position; it is
    reported as mid-band (0.5).
    """
    width = upper - lower
    if width == 0:
        return 0.5
    return (price - lower) / width


def rsi_signal(snap: TechnicalIndicatorSnapshot) -> WeightedSignal:
    rsi = snap.rsi
    if rsi < 30:
        direction, strength, reason = UP, 85, "Oversold - Strong bullish signal"
    elif rsi > 70:
        direction, strength, reason = DOWN, 85, "Overbought - Strong bearish signal"
    else:
        direction, strength, reason = NEUTRAL, 50, "Neutral range"
    return WeightedSignal(
        name="RSI", value=f"{rsi:.1f}", direction=direction, strength=strength,
        weight=1.2, category=MOMENTUM, reason=reason,
    )


def stochastic_signal(snap: TechnicalIndicatorSnapshot) -> WeightedSignal:
    k, d = snap.stoch_k, snap.stoch_d
    if k < 20 and d < 20:
        direction, strength, reason = UP, 90, "Oversold conditions"
    elif k > 80 and d > 80:
        direction, strength, reason = DOWN, 90, "Overbought conditions"
    else:
        direction, strength, reason = NEUTRAL, 50, "Stochastic neutral"
    return WeightedSignal(
        name="Stochastic K/D", value=f"K:{k:.0f} D:{d:.0f}", direction=direction,
        strength=strength, weight=1.2, category=MOMENTUM, reason=reason,
    )


def macd_signal(snap: TechnicalIndicatorSnapshot) -> WeightedSignal:
    hist = snap.macd_histogram
    # MACD never abstains: a zero histogram counts as bearish
    direction = UP if hist > 0 else DOWN
    return WeightedSignal(
        name="MACD",
        value=f"{hist:.4f}",
        direction=direction,
        strength=75 if abs(hist) > 0.001 else 50,
        weight=1.4,
        category=TREND,
        reason=(
            "MACD strong bullish momentum" if direction == UP
            else "MACD strong bearish momentum"
        ),
    )


def sma_signal(snap: TechnicalIndicatorSnapshot) -> WeightedSignal:
    above = snap.price > snap.sma50
    return WeightedSignal(
        name="SMA 20/50/200",
        value=f"{snap.sma50:.2f}",
        direction=UP if above else DOWN,
        strength=65,
        weight=1.3,
        category=TREND,
        reason="Price above SMA50 - bullish" if above else "Price below SMA50 - bearish",
    )


def bollinger_signal(snap: TechnicalIndicatorSnapshot) -> WeightedSignal:
    position = bollinger_position(snap.price, snap.bb_lower, snap.bb_upper)
    if position < 0.1:
        direction, strength, reason = UP, 75, "Price near lower Bollinger Band"
    elif position > 0.9:
        direction, strength, reason = DOWN, 75, "Price near upper Bollinger Band"
    else:
        direction, strength, reason = NEUTRAL, 50, "Price at BB middle"
    return WeightedSignal(
        name="Bollinger Bands", value=f"Position: {position * 100:.0f}%",
        direction=direction, strength=strength, weight=1.1,
        category=VOLATILITY, reason=reason,
    )


def adx_signal(snap: TechnicalIndicatorSnapshot) -> WeightedSignal:
    adx = snap.adx
    if adx > 50 and snap.plus_di > snap.minus_di:
        direction, reason = UP, "Very strong uptrend"
    elif adx > 50 and snap.minus_di > snap.plus_di:
        direction, reason = DOWN, "Very strong downtrend"
    else:
        direction, reason = NEUTRAL, "Weak trend, ranging market"

    if adx > 50:
        strength = 80
    elif adx > 30:
        strength = 60
    else:
        strength = 30
    return WeightedSignal(
        name="ADX", value=f"{adx:.1f}", direction=direction, strength=strength,
        weight=1.4, category=TREND, reason=reason,
    )


def momentum_signal(snap: TechnicalIndicatorSnapshot) -> WeightedSignal:
    mom, roc = snap.momentum, snap.roc
    if mom > 3 and roc > 3:
        direction, strength, reason = UP, 85, "Strong bullish momentum"
    elif mom < -3 and roc < -3:
        direction, strength, reason = DOWN, 85, "Strong bearish momentum"
    else:
        direction, strength, reason = NEUTRAL, 50, "Momentum neutral"
    return WeightedSignal(
        name="Momentum/ROC", value=f"{mom:.2f}% / {roc:.2f}%", direction=direction,
        strength=strength, weight=1.2, category=MOMENTUM, reason=reason,
    )


def support_resistance_signal(snap: TechnicalIndicatorSnapshot) -> WeightedSignal:
    # Support is checked first: when price sits within 1.5% of both, it leans UP
    if snap.distance_to_support < 1.5:
        direction, strength, reason = UP, 65, "Price near support level"
    elif snap.distance_to_resistance < 1.5:
        direction, strength, reason = DOWN, 65, "Price near resistance level"
    else:
        direction, strength, reason = NEUTRAL, 50, "Price between support and resistance"
    return WeightedSignal(
        name="Support/Resistance",
        value=f"S:{snap.nearest_support:.2f} R:{snap.nearest_resistance:.2f}",
        direction=direction, strength=strength, weight=1.1,
        category=PRICE_ACTION, reason=reason,
    )


_MAPPERS = (
    rsi_signal,
    stochastic_signal,
    macd_signal,
    sma_signal,
    bollinger_signal,
    adx_signal,
    momentum_signal,
    support_resistance_signal,
)


def map_indicators_to_signals(
    snapshot: TechnicalIndicatorSnapshot,
) -> list[WeightedSignal]:
    """Map an indicator snapshot to the eight weighted directional signals.

    Order is fixed (RSI, Stochastic, MACD, SMA, Bollinger, ADX, Momentum,
    Support/Resistance) and only matters for display.
    """
    return [mapper(snapshot) for mapper in _MAPPERS]
