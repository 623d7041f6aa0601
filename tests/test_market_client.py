"""Tests for tradelens.market — Binance client with mocked HTTP responses."""

import pytest
import httpx

from tradelens.config import Config
from tradelens.market.binance_client import (
    BinanceClient,
    MarketDataError,
    _volume_change_pct,
    to_symbol,
)
from tradelens.market.models import Candle, MarketData
from tradelens.market.timeframes import (
    get_anchor_timeframe,
    get_binance_interval,
    get_duration_label,
    validate_timeframe,
)


def _make_config() -> Config:
    return Config(
        gemini_api_key="test-key",
        gemini_models=("gemini-2.5-pro",),
        oracle_timeout_seconds=5.0,
        market_data_base_url="https://api.binance.test",
        candle_limit=100,
        default_timeframe="M1",
        tie_break_direction="DOWN",
        stage_delay_seconds=0.0,
        log_level="INFO",
        api_port=8080,
    )


# ── Mock Binance responses ──────────────────────────────────────────────

MOCK_KLINES_RESPONSE = [
    [1700000000000, "100.0", "101.5", "99.5", "101.0", "12.5", 1700000059999, "0", 10, "0", "0", "0"],
    [1700000060000, "101.0", "102.0", "100.5", "101.8", "8.25", 1700000119999, "0", 8, "0", "0", "0"],
]

MOCK_TICKER_RESPONSE = {
    "symbol": "BTCUSDT",
    "lastPrice": "101.80000000",
    "priceChangePercent": "-1.250",
}


def _dispatch(url: str, klines=MOCK_KLINES_RESPONSE) -> httpx.Response:
    body = klines if url.endswith("/klines") else MOCK_TICKER_RESPONSE
    return httpx.Response(200, json=body, request=httpx.Request("GET", url))


# ── Timeframes ──────────────────────────────────────────────────────────


class TestTimeframes:
    """Anchor map, kline intervals and duration labels."""

    @pytest.mark.parametrize(
        "entry, anchor",
        [("M1", "M15"), ("M5", "M30"), ("M15", "H1"), ("M30", "H4"), ("H1", "H4"), ("H4", "D1"), ("D1", "W1")],
    )
    def test_anchor_map(self, entry, anchor):
        assert get_anchor_timeframe(entry) == anchor

    def test_intervals(self):
        assert get_binance_interval("M15") == "15m"
        assert get_binance_interval("D1") == "1d"

    def test_duration_label(self):
        assert get_duration_label("M15") == "15-20 minutes"

    @pytest.mark.parametrize("tf", ["M45", "H3", "m15", ""])
    def test_unsupported_timeframe(self, tf):
        with pytest.raises(ValueError, match="timeframe"):
            validate_timeframe(tf)


# ── Symbols and volume change ───────────────────────────────────────────


@pytest.mark.parametrize("pair", ["BTC/USDT", "btc-usdt", "BTC_USDT", "BTCUSDT"])
def test_to_symbol(pair):
    assert to_symbol(pair) == "BTCUSDT"


def test_volume_change_pct():
    candles = [Candle(time=i, open=1, high=1, low=1, close=1, volume=100.0 if i < 20 else 150.0) for i in range(40)]
    assert _volume_change_pct(candles) == pytest.approx(50.0)


def test_volume_change_needs_two_windows():
    candles = [Candle(time=i, open=1, high=1, low=1, close=1, volume=10.0) for i in range(10)]
    assert _volume_change_pct(candles) == 0.0


# ── Client ──────────────────────────────────────────────────────────────


@pytest.mark.asyncio
async def test_parse_candles(monkeypatch):
    """Kline arrays are parsed into oldest-first Candle objects."""
    client = BinanceClient(_make_config())
    captured = {}

    async def _mock_get(self, url, *, headers=None, params=None, timeout=None):
        captured.update(params)
        return _dispatch(url)

    monkeypatch.setattr(httpx.AsyncClient, "get", _mock_get)

    candles = await client.fetch_candles("BTC/USDT", "M15")
    assert captured == {"symbol": "BTCUSDT", "interval": "15m", "limit": 100}
    assert len(candles) == 2
    c = candles[0]
    assert isinstance(c, Candle)
    assert c.time == 1700000000000
    assert c.open == pytest.approx(100.0)
    assert c.high == pytest.approx(101.5)
    assert c.low == pytest.approx(99.5)
    assert c.close == pytest.approx(101.0)
    assert c.volume == pytest.approx(12.5)


@pytest.mark.asyncio
async def test_fetch_market_data(monkeypatch):
    """Candles and 24h ticker are combined into one MarketData."""
    client = BinanceClient(_make_config())

    async def _mock_get(self, url, *, headers=None, params=None, timeout=None):
        return _dispatch(url)

    monkeypatch.setattr(httpx.AsyncClient, "get", _mock_get)

    data = await client.fetch_market_data("BTC/USDT", "M1")
    assert isinstance(data, MarketData)
    assert data.pair == "BTC/USDT"
    assert data.timeframe == "M1"
    assert data.current_price == pytest.approx(101.8)
    assert data.price_change_24h == pytest.approx(-1.25)
    assert data.current_volume == pytest.approx(8.25)
    assert len(data.candles) == 2


@pytest.mark.asyncio
async def test_retries_on_503(monkeypatch):
    """A transient 503 is retried and the next success is returned."""
    client = BinanceClient(_make_config(), retry_base_delay=0)
    calls = {"n": 0}

    async def _mock_get(self, url, *, headers=None, params=None, timeout=None):
        calls["n"] += 1
        if calls["n"] == 1:
            return httpx.Response(503, request=httpx.Request("GET", url))
        return _dispatch(url)

    monkeypatch.setattr(httpx.AsyncClient, "get", _mock_get)

    candles = await client.fetch_candles("BTC/USDT", "M1")
    assert len(candles) == 2
    assert calls["n"] == 2


@pytest.mark.asyncio
async def test_transport_failure_raises_market_data_error(monkeypatch):
    """Exhausted retries surface as MarketDataError."""
    client = BinanceClient(_make_config(), retry_base_delay=0)
    calls = {"n": 0}

    async def _mock_get(self, url, *, headers=None, params=None, timeout=None):
        calls["n"] += 1
        raise httpx.ConnectError("connection refused", request=httpx.Request("GET", url))

    monkeypatch.setattr(httpx.AsyncClient, "get", _mock_get)

    with pytest.raises(MarketDataError, match="BTC/USDT"):
        await client.fetch_market_data("BTC/USDT", "M1")
    # both concurrent requests exhaust their retries
    assert calls["n"] == 6


@pytest.mark.asyncio
async def test_client_error_not_retried(monkeypatch):
    """A 400 (e.g. unknown symbol) fails immediately."""
    client = BinanceClient(_make_config(), retry_base_delay=0)
    calls = {"n": 0}

    async def _mock_get(self, url, *, headers=None, params=None, timeout=None):
        calls["n"] += 1
        return httpx.Response(400, json={"code": -1121, "msg": "Invalid symbol."}, request=httpx.Request("GET", url))

    monkeypatch.setattr(httpx.AsyncClient, "get", _mock_get)

    with pytest.raises(httpx.HTTPStatusError):
        await client.fetch_candles("NOPE/USDT", "M1")
    assert calls["n"] == 1


@pytest.mark.asyncio
async def test_empty_candles_raise(monkeypatch):
    client = BinanceClient(_make_config())

    async def _mock_get(self, url, *, headers=None, params=None, timeout=None):
        return _dispatch(url, klines=[])

    monkeypatch.setattr(httpx.AsyncClient, "get", _mock_get)

    with pytest.raises(MarketDataError, match="No candles"):
        await client.fetch_market_data("BTC/USDT", "M1")
