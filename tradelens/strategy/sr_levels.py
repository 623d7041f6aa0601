"""Support/Resistance level detection from swing points — pure functions."""

from tradelens.market.models import Candle


def _find_swing_highs(candles: list[Candle], window: int = 3) -> list[float]:
    """Identify swing high prices.

    A swing high is a candle whose high is higher than the highs of the
    *window* candles on each side.
    """
    highs: list[float] = []
    for i in range(window, len(candles) - window):
        high = candles[i].high
        is_swing = True
        for j in range(1, window + 1):
            if candles[i - j].high >= high or candles[i + j].high >= high:
                is_swing = False
                break
        if is_swing:
            highs.append(high)
    return highs


def _find_swing_lows(candles: list[Candle], window: int = 3) -> list[float]:
    """Identify swing low prices.

    A swing low is a candle whose low is lower than the lows of the
    *window* candles on each side.
    """
    lows: list[float] = []
    for i in range(window, len(candles) - window):
        low = candles[i].low
        is_swing = True
        for j in range(1, window + 1):
            if candles[i - j].low <= low or candles[i + j].low <= low:
                is_swing = False
                break
        if is_swing:
            lows.append(low)
    return lows


def _cluster_levels(
    levels: list[float], tolerance_pct: float = 0.5
) -> list[tuple[float, int]]:
    """Cluster nearby price levels into zones.

    Groups levels within *tolerance_pct* percent of the previous level in the
    cluster.  Returns a list of (average_price, touch_count) tuples sorted by
    price.
    """
    if not levels:
        return []

    sorted_levels = sorted(levels)
    clusters: list[list[float]] = []
    current_cluster: list[float] = [sorted_levels[0]]

    for level in sorted_levels[1:]:
        prev = current_cluster[-1]
        if prev and abs(level - prev) / abs(prev) * 100.0 <= tolerance_pct:
            current_cluster.append(level)
        else:
            clusters.append(current_cluster)
            current_cluster = [level]
    clusters.append(current_cluster)

    return [
        (sum(c) / len(c), len(c))
        for c in clusters
    ]


def nearest_levels(
    candles: list[Candle],
    price: float,
    lookback: int = 50,
    swing_window: int = 3,
    tolerance_pct: float = 0.5,
) -> tuple[float, float]:
    """Return ``(nearest_support, nearest_resistance)`` around *price*.

    Support is the highest clustered swing low at or below *price*;
    resistance the lowest clustered swing high at or above it.  When no
    swing level exists on a side, the lookback window's extreme low/high
    is used instead.
    """
    recent = candles[-lookback:] if len(candles) > lookback else candles

    supports = [
        level for level, _ in _cluster_levels(
            _find_swing_lows(recent, window=swing_window), tolerance_pct,
        )
        if level <= price
    ]
    resistances = [
        level for level, _ in _cluster_levels(
            _find_swing_highs(recent, window=swing_window), tolerance_pct,
        )
        if level >= price
    ]

    support = max(supports) if supports else min(c.low for c in recent)
    resistance = min(resistances) if resistances else max(c.high for c in recent)
    return support, resistance
