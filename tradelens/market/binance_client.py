"""Binance public REST API async client.

Read-only market data: klines and 24h ticker statistics. No account or
order endpoints.
"""

import asyncio
import logging
from typing import Optional, Protocol

import httpx

from tradelens.config import Config
from tradelens.market.models import Candle, MarketData
from tradelens.market.timeframes import get_binance_interval

logger = logging.getLogger("tradelens")

# Retry settings
_MAX_RETRIES = 3
_RETRY_BASE_DELAY = 2.0  # seconds; doubles each attempt
_RETRYABLE_STATUS_CODES = {502, 503, 504, 429}

# Candles compared on each side when estimating the volume change
_VOLUME_WINDOW = 20


class MarketDataError(Exception):
    """Raised when market data cannot be retrieved or is unusable."""


class MarketDataProvider(Protocol):
    """Interface the analysis pipeline uses to obtain candles."""

    async def fetch_market_data(self, pair: str, timeframe: str) -> MarketData:
        """Return price, 24h stats and oldest-first candles for *pair*."""
        ...


def to_symbol(pair: str) -> str:
    """Normalise ``"BTC/USDT"`` / ``"btc-usdt"`` to the exchange symbol ``"BTCUSDT"``."""
    return pair.replace("/", "").replace("-", "").replace("_", "").upper()


def _volume_change_pct(candles: list[Candle], window: int = _VOLUME_WINDOW) -> float:
    """Percent change of mean volume over the last *window* candles vs the *window* before."""
    if len(candles) < 2 * window:
        return 0.0
    recent = sum(c.volume for c in candles[-window:]) / window
    prior = sum(c.volume for c in candles[-2 * window:-window]) / window
    if prior == 0:
        return 0.0
    return (recent - prior) / prior * 100.0


class BinanceClient:
    """Async client wrapping the Binance spot market-data endpoints."""

    def __init__(self, config: Config, retry_base_delay: float = _RETRY_BASE_DELAY) -> None:
        self._config = config
        self._base_url = config.market_data_base_url.rstrip("/")
        self._candle_limit = config.candle_limit
        self._retry_base_delay = retry_base_delay
        self._headers = {"Accept": "application/json"}

    # ── Retry helper ─────────────────────────────────────────────────────

    async def _request_with_retry(
        self,
        method: str,
        url: str,
        **kwargs,
    ) -> httpx.Response:
        """Execute an HTTP request with exponential-backoff retry.

        Retries on transient server errors (502, 503, 504) and rate-limits
        (429).  Non-retryable errors are raised immediately.
        """
        last_exc: Optional[Exception] = None

        for attempt in range(_MAX_RETRIES):
            try:
                async with httpx.AsyncClient() as client:
                    resp = await getattr(client, method)(
                        url,
                        headers=self._headers,
                        timeout=30.0,
                        **kwargs,
                    )

                if resp.status_code in _RETRYABLE_STATUS_CODES:
                    delay = self._retry_base_delay * (2 ** attempt)
                    logger.warning(
                        "Binance %s %s returned %d — retry %d/%d in %.1fs",
                        method.upper(), url, resp.status_code,
                        attempt + 1, _MAX_RETRIES, delay,
                    )
                    await asyncio.sleep(delay)
                    last_exc = httpx.HTTPStatusError(
                        f"Server error '{resp.status_code}'",
                        request=resp.request,
                        response=resp,
                    )
                    continue

                resp.raise_for_status()
                return resp

            except httpx.TransportError as exc:
                delay = self._retry_base_delay * (2 ** attempt)
                logger.warning(
                    "Binance %s %s transport error (%s) — retry %d/%d in %.1fs",
                    method.upper(), url, exc,
                    attempt + 1, _MAX_RETRIES, delay,
                )
                last_exc = exc
                await asyncio.sleep(delay)

        # All retries exhausted — raise the last error
        raise last_exc  # type: ignore[misc]

    # ── Candle data ──────────────────────────────────────────────────────

    async def fetch_candles(
        self,
        pair: str,
        timeframe: str,
        limit: int | None = None,
    ) -> list[Candle]:
        """Fetch kline data from Binance.

        Args:
            pair: e.g. ``"BTC/USDT"``
            timeframe: e.g. ``"M1"``, ``"H4"``
            limit: number of candles to request (max 1000); defaults to
                   the configured candle limit.

        Returns:
            List of ``Candle`` objects ordered oldest-first.
        """
        url = f"{self._base_url}/api/v3/klines"
        params = {
            "symbol": to_symbol(pair),
            "interval": get_binance_interval(timeframe),
            "limit": limit or self._candle_limit,
        }

        resp = await self._request_with_retry("get", url, params=params)

        candles: list[Candle] = []
        for k in resp.json():
            # [open_time, open, high, low, close, volume, close_time, ...]
            candles.append(
                Candle(
                    time=int(k[0]),
                    open=float(k[1]),
                    high=float(k[2]),
                    low=float(k[3]),
                    close=float(k[4]),
                    volume=float(k[5]),
                )
            )
        return candles

    # ── 24h ticker ───────────────────────────────────────────────────────

    async def fetch_ticker_24h(self, pair: str) -> dict:
        """Return ``lastPrice`` and ``priceChangePercent`` as floats."""
        url = f"{self._base_url}/api/v3/ticker/24hr"

        resp = await self._request_with_retry(
            "get", url, params={"symbol": to_symbol(pair)},
        )

        data = resp.json()
        return {
            "last_price": float(data["lastPrice"]),
            "price_change_pct": float(data["priceChangePercent"]),
        }

    # ── Combined fetch ───────────────────────────────────────────────────

    async def fetch_market_data(self, pair: str, timeframe: str) -> MarketData:
        """Fetch candles and 24h stats for one (pair, timeframe).

        Raises ``MarketDataError`` if the exchange is unreachable after
        retries, returns an error status, or returns no candles.
        """
        try:
            candles, ticker = await asyncio.gather(
                self.fetch_candles(pair, timeframe),
                self.fetch_ticker_24h(pair),
            )
        except (httpx.HTTPError, KeyError, ValueError, TypeError) as exc:
            raise MarketDataError(
                f"Failed to fetch {pair} {timeframe} market data: {exc}"
            ) from exc

        if not candles:
            raise MarketDataError(f"No candles returned for {pair} {timeframe}")

        return MarketData(
            pair=pair,
            timeframe=timeframe,
            current_price=ticker["last_price"],
            price_change_24h=ticker["price_change_pct"],
            volume_change_24h=_volume_change_pct(candles),
            candles=candles,
        )
