"""Tests for tradelens.config — environment variable loading and validation."""

import pytest

from tradelens.config import DEFAULT_GEMINI_MODELS, load_config


@pytest.fixture(autouse=True)
def _clean_env(monkeypatch):
    """Ensure TradeLens env vars are cleared between tests."""
    for var in [
        "GEMINI_API_KEY",
        "GEMINI_MODELS",
        "ORACLE_TIMEOUT_SECONDS",
        "MARKET_DATA_BASE_URL",
        "CANDLE_LIMIT",
        "DEFAULT_TIMEFRAME",
        "TIE_BREAK_DIRECTION",
        "STAGE_DELAY_SECONDS",
        "LOG_LEVEL",
        "API_PORT",
    ]:
        monkeypatch.delenv(var, raising=False)


def _set_required(monkeypatch):
    """Set the minimum required environment variables."""
    monkeypatch.setenv("GEMINI_API_KEY", "test-key-abc123")


class TestLoadConfig:
    """Unit tests for load_config()."""

    def test_loads_required_vars(self, monkeypatch, tmp_path):
        _set_required(monkeypatch)
        cfg = load_config(env_path=str(tmp_path / "nonexistent.env"))
        assert cfg.gemini_api_key == "test-key-abc123"

    def test_defaults(self, monkeypatch, tmp_path):
        _set_required(monkeypatch)
        cfg = load_config(env_path=str(tmp_path / "nonexistent.env"))
        assert cfg.gemini_models == DEFAULT_GEMINI_MODELS
        assert cfg.oracle_timeout_seconds == 90.0
        assert cfg.market_data_base_url == "https://api.binance.com"
        assert cfg.candle_limit == 200
        assert cfg.default_timeframe == "M1"
        assert cfg.tie_break_direction == "DOWN"
        assert cfg.stage_delay_seconds == 0.0
        assert cfg.log_level == "INFO"
        assert cfg.api_port == 8080

    def test_config_missing_var(self, tmp_path):
        # Non-existent env_path so load_dotenv doesn't re-populate from a real .env
        with pytest.raises(ValueError, match="GEMINI_API_KEY"):
            load_config(env_path=str(tmp_path / "nonexistent.env"))

    def test_model_chain_parsed_in_order(self, monkeypatch, tmp_path):
        _set_required(monkeypatch)
        monkeypatch.setenv("GEMINI_MODELS", "gemini-2.5-pro, gemini-flash-latest ,")
        cfg = load_config(env_path=str(tmp_path / "nonexistent.env"))
        assert cfg.gemini_models == ("gemini-2.5-pro", "gemini-flash-latest")

    def test_tie_break_override(self, monkeypatch, tmp_path):
        _set_required(monkeypatch)
        monkeypatch.setenv("TIE_BREAK_DIRECTION", "up")
        cfg = load_config(env_path=str(tmp_path / "nonexistent.env"))
        assert cfg.tie_break_direction == "UP"

    def test_invalid_tie_break_rejected(self, monkeypatch, tmp_path):
        _set_required(monkeypatch)
        monkeypatch.setenv("TIE_BREAK_DIRECTION", "NEUTRAL")
        with pytest.raises(ValueError, match="TIE_BREAK_DIRECTION"):
            load_config(env_path=str(tmp_path / "nonexistent.env"))

    def test_gemini_base_url(self, monkeypatch, tmp_path):
        _set_required(monkeypatch)
        cfg = load_config(env_path=str(tmp_path / "nonexistent.env"))
        assert cfg.gemini_base_url == "https://generativelanguage.googleapis.com/v1beta"

    def test_numeric_overrides(self, monkeypatch, tmp_path):
        _set_required(monkeypatch)
        monkeypatch.setenv("ORACLE_TIMEOUT_SECONDS", "12.5")
        monkeypatch.setenv("CANDLE_LIMIT", "500")
        monkeypatch.setenv("STAGE_DELAY_SECONDS", "0.25")
        monkeypatch.setenv("API_PORT", "9000")
        cfg = load_config(env_path=str(tmp_path / "nonexistent.env"))
        assert cfg.oracle_timeout_seconds == 12.5
        assert cfg.candle_limit == 500
        assert cfg.stage_delay_seconds == 0.25
        assert cfg.api_port == 9000
