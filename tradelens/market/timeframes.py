"""Timeframe metadata — exchange intervals, anchor timeframes, duration labels."""

# Timeframe → Binance kline interval
BINANCE_INTERVALS: dict[str, str] = {
    "M1": "1m",
    "M3": "3m",
    "M5": "5m",
    "M15": "15m",
    "M30": "30m",
    "H1": "1h",
    "H2": "2h",
    "H4": "4h",
    "D1": "1d",
    "W1": "1w",
}

# Timeframe → the next higher "big picture" timeframe used for trend alignment
ANCHOR_TIMEFRAMES: dict[str, str] = {
    "M1": "M15",
    "M3": "M15",
    "M5": "M30",
    "M15": "H1",
    "M30": "H4",
    "H1": "H4",
    "H2": "D1",
    "H4": "D1",
    "D1": "W1",
    "W1": "W1",
}

# Typical holding duration shown alongside a verdict
DURATION_LABELS: dict[str, str] = {
    "M1": "1-2 minutes",
    "M3": "3-5 minutes",
    "M5": "5-8 minutes",
    "M15": "15-20 minutes",
    "M30": "30-45 minutes",
    "H1": "1-2 hours",
    "H2": "2-4 hours",
    "H4": "4-6 hours",
    "D1": "1-2 days",
    "W1": "1-2 weeks",
}


def validate_timeframe(timeframe: str) -> str:
    """Return *timeframe* unchanged if supported.

    Raises ``ValueError`` for unknown timeframes.
    """
    if timeframe not in BINANCE_INTERVALS:
        raise ValueError(
            f"Unsupported timeframe '{timeframe}'. "
            f"Available: {', '.join(BINANCE_INTERVALS.keys())}"
        )
    return timeframe


def get_anchor_timeframe(timeframe: str) -> str:
    """Return the anchor timeframe one level above *timeframe*."""
    return ANCHOR_TIMEFRAMES[validate_timeframe(timeframe)]


def get_binance_interval(timeframe: str) -> str:
    """Translate a timeframe label (``"H4"``) to a kline interval (``"4h"``)."""
    return BINANCE_INTERVALS[validate_timeframe(timeframe)]


def get_duration_label(timeframe: str) -> str:
    """Holding-duration label for *timeframe*; unknown timeframes get the M1 label."""
    return DURATION_LABELS.get(timeframe, DURATION_LABELS["M1"])
