"""Market data models — typed representations of exchange kline/ticker data."""

from dataclasses import dataclass, field


@dataclass(frozen=True)
class Candle:
    """A single candlestick bar."""

    time: int  # open time, epoch milliseconds
    open: float
    high: float
    low: float
    close: float
    volume: float


@dataclass(frozen=True)
class MarketData:
    """Everything the analysis needs from one (pair, timeframe) fetch.

    ``candles`` are ordered oldest-first.
    """

    pair: str
    timeframe: str
    current_price: float
    price_change_24h: float  # percent
    volume_change_24h: float  # percent
    candles: list[Candle] = field(default_factory=list)

    @property
    def current_volume(self) -> float:
        """Volume of the most recent candle (0 when no candles)."""
        return self.candles[-1].volume if self.candles else 0.0
