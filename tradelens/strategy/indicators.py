"""Technical indicators — ATR, SMA/EMA, RSI, Stochastic, MACD, ADX/DMI, Bollinger
Bands, momentum. Pure functions, no I/O.

``analyze_market`` folds the individual series into one
``TechnicalIndicatorSnapshot`` taken at the last candle.
"""

import math
from typing import Optional

from tradelens.market.models import Candle
from tradelens.strategy.models import (
    BEARISH,
    BULLISH,
    NEUTRAL,
    RANGING,
    STRONG_TRENDING,
    TRENDING,
    TechnicalIndicatorSnapshot,
)
from tradelens.strategy.sr_levels import nearest_levels

# Fewest candles for which every indicator in the snapshot is defined
# (MACD 26 + signal 9 − 1).
MIN_CANDLES = 34


def calculate_atr(candles: list[Candle], period: int = 14) -> float:
    """Calculate the Average True Range over *period* candles.

    Uses the standard True Range definition:
        TR = max(high - low, |high - prev_close|, |low - prev_close|)

    Requires at least ``period + 1`` candles (need a previous close for TR).
    Returns the simple average of the last *period* true ranges.

    Raises ``ValueError`` if insufficient data.
    """
    if len(candles) < period + 1:
        raise ValueError(
            f"Need at least {period + 1} candles for ATR({period}), "
            f"got {len(candles)}"
        )

    true_ranges: list[float] = []
    for i in range(1, len(candles)):
        high = candles[i].high
        low = candles[i].low
        prev_close = candles[i - 1].close
        tr = max(
            high - low,
            abs(high - prev_close),
            abs(low - prev_close),
        )
        true_ranges.append(tr)

    recent = true_ranges[-period:]
    return sum(recent) / len(recent)


def calculate_sma(values: list[float], period: int) -> float:
    """Simple average of the last *period* values.

    Falls back to the average of all values when fewer than *period* are
    available, so long averages (SMA200) degrade on short histories
    instead of failing.
    """
    if not values:
        raise ValueError("Need at least 1 value for SMA")
    window = values[-period:]
    return sum(window) / len(window)


def _ema_series(values: list[float], period: int) -> list[float]:
    """EMA of a raw value series, seeded with the SMA of the first *period* values."""
    if len(values) < period:
        raise ValueError(
            f"Need at least {period} values for EMA({period}), "
            f"got {len(values)}"
        )

    k = 2.0 / (period + 1)
    ema: list[float] = [float("nan")] * len(values)

    seed = sum(values[:period]) / period
    ema[period - 1] = seed

    for i in range(period, len(values)):
        ema[i] = values[i] * k + ema[i - 1] * (1 - k)

    return ema


def calculate_ema(candles: list[Candle], period: int) -> list[float]:
    """Calculate an Exponential Moving Average series of closes.

    Uses the standard EMA formula:
        ``EMA_today = close × k + EMA_yesterday × (1 - k)``
    where ``k = 2 / (period + 1)``.

    Returns the full EMA series (same length as *candles*). Entries
    before the seed period are set to ``float('nan')``.

    Raises ``ValueError`` if fewer than *period* candles are provided.
    """
    if len(candles) < period:
        raise ValueError(
            f"Need at least {period} candles for EMA({period}), "
            f"got {len(candles)}"
        )
    return _ema_series([c.close for c in candles], period)


# ── RSI ──────────────────────────────────────────────────────────────────


def calculate_rsi(candles: list[Candle], period: int = 14) -> list[float]:
    """Calculate Wilder's Relative Strength Index.

    Algorithm (Wilder-smoothed):
        1. delta = close[i] - close[i-1]
        2. Separate gains (positive) and losses (|negative|).
        3. Seed average gain/loss = SMA of first *period* deltas.
        4. Subsequent: avg = (prev_avg × (period-1) + current) / period
        5. RS = avg_gain / avg_loss
        6. RSI = 100 - 100 / (1 + RS)

    Requires at least ``period + 1`` candles.

    Returns a list the same length as *candles*.  Entries before the
    seed period are ``float('nan')``.
    """
    if len(candles) < period + 1:
        raise ValueError(
            f"Need at least {period + 1} candles for RSI({period}), "
            f"got {len(candles)}"
        )

    closes = [c.close for c in candles]
    deltas = [closes[i] - closes[i - 1] for i in range(1, len(closes))]

    gains = [max(d, 0.0) for d in deltas]
    losses = [abs(min(d, 0.0)) for d in deltas]

    rsi: list[float] = [float("nan")] * len(candles)

    avg_gain = sum(gains[:period]) / period
    avg_loss = sum(losses[:period]) / period

    def _rsi_from_avgs(ag: float, al: float) -> float:
        if al == 0:
            return 100.0 if ag > 0 else 50.0
        rs = ag / al
        return 100.0 - 100.0 / (1.0 + rs)

    rsi[period] = _rsi_from_avgs(avg_gain, avg_loss)

    for i in range(period, len(deltas)):
        avg_gain = (avg_gain * (period - 1) + gains[i]) / period
        avg_loss = (avg_loss * (period - 1) + losses[i]) / period
        # Index in rsi is i+1 because deltas are offset by 1
        rsi[i + 1] = _rsi_from_avgs(avg_gain, avg_loss)

    return rsi


# ── Stochastic ───────────────────────────────────────────────────────────


def calculate_stochastic(
    candles: list[Candle],
    k_period: int = 14,
    d_period: int = 3,
) -> tuple[float, float]:
    """Return the latest ``(%K, %D)`` of the slow stochastic oscillator.

    %K = 100 × (close − lowest low) / (highest high − lowest low) over
    *k_period* bars (50 when the range is flat); %D = SMA(%K, *d_period*).

    Requires at least ``k_period + d_period - 1`` candles.
    """
    needed = k_period + d_period - 1
    if len(candles) < needed:
        raise ValueError(
            f"Need at least {needed} candles for Stochastic({k_period},{d_period}), "
            f"got {len(candles)}"
        )

    k_values: list[float] = []
    for end in range(len(candles) - d_period + 1, len(candles) + 1):
        window = candles[end - k_period:end]
        lowest = min(c.low for c in window)
        highest = max(c.high for c in window)
        if highest == lowest:
            k_values.append(50.0)
        else:
            k_values.append(100.0 * (window[-1].close - lowest) / (highest - lowest))

    return k_values[-1], sum(k_values) / len(k_values)


# ── MACD ─────────────────────────────────────────────────────────────────


def calculate_macd(
    candles: list[Candle],
    fast: int = 12,
    slow: int = 26,
    signal: int = 9,
) -> tuple[float, float, float]:
    """Return the latest ``(macd, signal, histogram)``.

    MACD line = EMA(fast) − EMA(slow); signal = EMA(signal) of the MACD
    line; histogram = MACD − signal.

    Requires at least ``slow + signal - 1`` candles.
    """
    needed = slow + signal - 1
    if len(candles) < needed:
        raise ValueError(
            f"Need at least {needed} candles for MACD({fast},{slow},{signal}), "
            f"got {len(candles)}"
        )

    ema_fast = calculate_ema(candles, fast)
    ema_slow = calculate_ema(candles, slow)
    macd_line = [ema_fast[i] - ema_slow[i] for i in range(slow - 1, len(candles))]
    signal_line = _ema_series(macd_line, signal)

    macd_value = macd_line[-1]
    signal_value = signal_line[-1]
    return macd_value, signal_value, macd_value - signal_value


# ── ADX / DMI ────────────────────────────────────────────────────────────


def calculate_dmi(
    candles: list[Candle], period: int = 14
) -> tuple[list[float], list[float], list[float]]:
    """Calculate the Directional Movement Index: ``(adx, plus_di, minus_di)``.

    Algorithm:
        1. +DM / -DM directional movement per bar.
        2. Wilder-smooth +DM, -DM, and TR over *period*.
        3. +DI = 100 × smoothed_+DM / smoothed_TR
        4. -DI = 100 × smoothed_-DM / smoothed_TR
        5. DX = 100 × |+DI − −DI| / (+DI + −DI)
        6. ADX = Wilder-smoothed DX over *period*.

    Requires at least ``2 × period + 1`` candles.

    Each returned list has the same length as *candles*; entries before a
    value is defined are ``float('nan')``.
    """
    min_candles = 2 * period + 1
    if len(candles) < min_candles:
        raise ValueError(
            f"Need at least {min_candles} candles for ADX({period}), "
            f"got {len(candles)}"
        )

    n = len(candles)

    # Step 1: raw +DM, -DM, TR per bar (index 0 is unused)
    plus_dm_raw: list[float] = [0.0]
    minus_dm_raw: list[float] = [0.0]
    tr_raw: list[float] = [0.0]

    for i in range(1, n):
        high = candles[i].high
        low = candles[i].low
        prev_high = candles[i - 1].high
        prev_low = candles[i - 1].low
        prev_close = candles[i - 1].close

        up_move = high - prev_high
        down_move = prev_low - low

        pdm = up_move if (up_move > down_move and up_move > 0) else 0.0
        mdm = down_move if (down_move > up_move and down_move > 0) else 0.0

        tr = max(high - low, abs(high - prev_close), abs(low - prev_close))

        plus_dm_raw.append(pdm)
        minus_dm_raw.append(mdm)
        tr_raw.append(tr)

    # Step 2: Wilder-smooth — seed with the sum of the first period
    smoothed_plus_dm = sum(plus_dm_raw[1 : period + 1])
    smoothed_minus_dm = sum(minus_dm_raw[1 : period + 1])
    smoothed_tr = sum(tr_raw[1 : period + 1])

    plus_di: list[float] = [float("nan")] * n
    minus_di: list[float] = [float("nan")] * n
    dx_values: list[float] = []

    def _di_and_dx(idx: int, s_pdm: float, s_mdm: float, s_tr: float) -> float:
        if s_tr == 0:
            plus_di[idx] = 0.0
            minus_di[idx] = 0.0
            return 0.0
        p = 100.0 * s_pdm / s_tr
        m = 100.0 * s_mdm / s_tr
        plus_di[idx] = p
        minus_di[idx] = m
        di_sum = p + m
        if di_sum == 0:
            return 0.0
        return 100.0 * abs(p - m) / di_sum

    dx_values.append(
        _di_and_dx(period, smoothed_plus_dm, smoothed_minus_dm, smoothed_tr)
    )

    for i in range(period + 1, n):
        smoothed_plus_dm = smoothed_plus_dm - smoothed_plus_dm / period + plus_dm_raw[i]
        smoothed_minus_dm = smoothed_minus_dm - smoothed_minus_dm / period + minus_dm_raw[i]
        smoothed_tr = smoothed_tr - smoothed_tr / period + tr_raw[i]
        dx_values.append(
            _di_and_dx(i, smoothed_plus_dm, smoothed_minus_dm, smoothed_tr)
        )

    # Step 6: dx_values[0] corresponds to candle index *period*; the ADX
    # seed uses the first *period* DX values and lands on 2*period - 1.
    adx_result: list[float] = [float("nan")] * n

    adx_seed = sum(dx_values[:period]) / period
    adx_result[2 * period - 1] = adx_seed

    adx_prev = adx_seed
    for j in range(period, len(dx_values)):
        adx_val = (adx_prev * (period - 1) + dx_values[j]) / period
        adx_result[period + j] = adx_val
        adx_prev = adx_val

    return adx_result, plus_di, minus_di


def calculate_adx(candles: list[Candle], period: int = 14) -> list[float]:
    """Average Directional Index series (see ``calculate_dmi``)."""
    return calculate_dmi(candles, period)[0]


# ── Bollinger Bands ──────────────────────────────────────────────────────


def calculate_bollinger(
    candles: list[Candle],
    period: int = 20,
    std_dev: float = 2.0,
) -> tuple[list[float], list[float], list[float]]:
    """Calculate Bollinger Bands.

    Middle = SMA(close, *period*)
    Upper  = middle + *std_dev* × σ
    Lower  = middle − *std_dev* × σ

    Requires at least *period* candles.

    Returns ``(upper, middle, lower)`` — each list has the same length
    as *candles*.  Entries before the seed period are ``float('nan')``.
    """
    if len(candles) < period:
        raise ValueError(
            f"Need at least {period} candles for Bollinger({period}), "
            f"got {len(candles)}"
        )

    closes = [c.close for c in candles]
    n = len(closes)

    upper: list[float] = [float("nan")] * n
    middle: list[float] = [float("nan")] * n
    lower: list[float] = [float("nan")] * n

    for i in range(period - 1, n):
        window = closes[i - period + 1 : i + 1]
        sma = sum(window) / period
        variance = sum((x - sma) ** 2 for x in window) / period
        sigma = math.sqrt(variance)

        middle[i] = sma
        upper[i] = sma + std_dev * sigma
        lower[i] = sma - std_dev * sigma

    return upper, middle, lower


# ── Momentum ─────────────────────────────────────────────────────────────


def calculate_pct_change(candles: list[Candle], lookback: int) -> float:
    """Percent change of the last close versus the close *lookback* bars earlier."""
    if len(candles) < lookback + 1:
        raise ValueError(
            f"Need at least {lookback + 1} candles for a {lookback}-bar change, "
            f"got {len(candles)}"
        )
    base = candles[-lookback - 1].close
    if base == 0:
        return 0.0
    return (candles[-1].close - base) / base * 100.0


# ── Classification ───────────────────────────────────────────────────────


def classify_regime(adx: float) -> str:
    """ADX > 40 → strong trend, > 25 → trend, otherwise ranging."""
    if adx > 40:
        return STRONG_TRENDING
    if adx > 25:
        return TRENDING
    return RANGING


def classify_trend_bias(price: float, sma20: float, sma50: float) -> str:
    """Bullish when price > SMA20 > SMA50, bearish when stacked the other way."""
    if price > sma20 > sma50:
        return BULLISH
    if price < sma20 < sma50:
        return BEARISH
    return NEUTRAL


def analyze_market(
    candles: list[Candle],
    current_price: Optional[float] = None,
) -> TechnicalIndicatorSnapshot:
    """Compute every indicator reading at the last candle.

    Args:
        candles: Oldest-first candle series (at least ``MIN_CANDLES``).
        current_price: Live price; defaults to the last close.

    Raises ``ValueError`` if fewer than ``MIN_CANDLES`` candles are given.
    """
    if len(candles) < MIN_CANDLES:
        raise ValueError(
            f"Need at least {MIN_CANDLES} candles for market analysis, "
            f"got {len(candles)}"
        )

    price = current_price if current_price is not None else candles[-1].close
    closes = [c.close for c in candles]
    volumes = [c.volume for c in candles]

    sma20 = calculate_sma(closes, 20)
    sma50 = calculate_sma(closes, 50)
    sma200 = calculate_sma(closes, 200)

    stoch_k, stoch_d = calculate_stochastic(candles)
    _, _, histogram = calculate_macd(candles)
    adx_series, plus_di_series, minus_di_series = calculate_dmi(candles)
    adx = adx_series[-1]

    upper, middle, lower = calculate_bollinger(candles)
    bb_upper, bb_middle, bb_lower = upper[-1], middle[-1], lower[-1]
    bandwidth = (bb_upper - bb_lower) / bb_middle * 100.0 if bb_middle else 0.0

    volume_ma = calculate_sma(volumes, 20)
    recent_volume = calculate_sma(volumes, 5)
    volume_indicator = (recent_volume / volume_ma - 1.0) * 100.0 if volume_ma > 0 else 0.0

    support, resistance = nearest_levels(candles, price)
    distance_to_support = (price - support) / price * 100.0 if price else 0.0
    distance_to_resistance = (resistance - price) / price * 100.0 if price else 0.0

    return TechnicalIndicatorSnapshot(
        price=price,
        rsi=calculate_rsi(candles)[-1],
        stoch_k=stoch_k,
        stoch_d=stoch_d,
        macd_histogram=histogram,
        adx=adx,
        plus_di=plus_di_series[-1],
        minus_di=minus_di_series[-1],
        sma20=sma20,
        sma50=sma50,
        sma200=sma200,
        bb_upper=bb_upper,
        bb_middle=bb_middle,
        bb_lower=bb_lower,
        bb_bandwidth=bandwidth,
        atr=calculate_atr(candles),
        momentum=calculate_pct_change(candles, 10),
        roc=calculate_pct_change(candles, 12),
        volume_ma=volume_ma,
        volume_indicator=volume_indicator,
        nearest_support=support,
        nearest_resistance=resistance,
        distance_to_support=distance_to_support,
        distance_to_resistance=distance_to_resistance,
        trend_strength=min(100.0, adx * 2.0),
        market_regime=classify_regime(adx),
        trend_bias=classify_trend_bias(price, sma20, sma50),
    )
