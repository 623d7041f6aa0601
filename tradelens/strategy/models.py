"""Strategy data models — indicator snapshot and weighted signals."""

from dataclasses import dataclass


# ── Enumerations (plain string constants) ────────────────────────────────

UP = "UP"
DOWN = "DOWN"
NEUTRAL = "NEUTRAL"
DIRECTIONS = (UP, DOWN, NEUTRAL)

BULLISH = "BULLISH"
BEARISH = "BEARISH"
TREND_BIASES = (BULLISH, BEARISH, NEUTRAL)

STRONG_TRENDING = "STRONG_TRENDING"
TRENDING = "TRENDING"
RANGING = "RANGING"
MARKET_REGIMES = (STRONG_TRENDING, TRENDING, RANGING)

MOMENTUM = "MOMENTUM"
TREND = "TREND"
VOLATILITY = "VOLATILITY"
PRICE_ACTION = "PRICE_ACTION"


@dataclass(frozen=True)
class TechnicalIndicatorSnapshot:
    """All indicator readings for one candle series, taken at the last bar.

    Percent-valued fields (``momentum``, ``roc``, ``volume_indicator``,
    ``distance_to_*``, ``bb_bandwidth``) are expressed in percent, not
    fractions.
    """

    price: float
    rsi: float
    stoch_k: float
    stoch_d: float
    macd_histogram: float
    adx: float
    plus_di: float
    minus_di: float
    sma20: float
    sma50: float
    sma200: float
    bb_upper: float
    bb_middle: float
    bb_lower: float
    bb_bandwidth: float
    atr: float
    momentum: float
    roc: float
    volume_ma: float
    volume_indicator: float
    nearest_support: float
    nearest_resistance: float
    distance_to_support: float
    distance_to_resistance: float
    trend_strength: float  # 0–100
    market_regime: str  # STRONG_TRENDING | TRENDING | RANGING
    trend_bias: str  # BULLISH | BEARISH | NEUTRAL


@dataclass(frozen=True)
class WeightedSignal:
    """One directional vote produced from a single technical dimension."""

    name: str
    value: str  # display reading, e.g. "28.4" or "K:15 D:12"
    direction: str  # UP | DOWN | NEUTRAL
    strength: float  # 0–100
    weight: float
    category: str
    reason: str

    def to_dict(self) -> dict:
        return {
            "name": self.name,
            "value": self.value,
            "direction": self.direction,
            "strength": self.strength,
            "weight": self.weight,
            "category": self.category,
            "reason": self.reason,
        }
