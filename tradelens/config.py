"""TradeLens — application configuration.

Loads .env variables into a typed config object.
Validates required variables on startup.
"""

import os
from dataclasses import dataclass

from dotenv import load_dotenv


_REQUIRED_VARS = [
    "GEMINI_API_KEY",
]

DEFAULT_GEMINI_MODELS = (
    "gemini-3-pro-preview",
    "gemini-2.5-pro",
    "gemini-flash-latest",
)


@dataclass(frozen=True)
class Config:
    """Typed configuration loaded from environment variables."""

    gemini_api_key: str
    gemini_models: tuple[str, ...]  # fallback chain, tried in order
    oracle_timeout_seconds: float
    market_data_base_url: str
    candle_limit: int
    default_timeframe: str
    tie_break_direction: str  # "UP" or "DOWN" when up_score == down_score
    stage_delay_seconds: float
    log_level: str
    api_port: int

    @property
    def gemini_base_url(self) -> str:
        """Return the Generative Language API base URL."""
        return "https://generativelanguage.googleapis.com/v1beta"


def _parse_models(raw: str | None) -> tuple[str, ...]:
    if not raw:
        return DEFAULT_GEMINI_MODELS
    models = tuple(m.strip() for m in raw.split(",") if m.strip())
    return models or DEFAULT_GEMINI_MODELS


def load_config(env_path: str | None = None) -> Config:
    """Load configuration from environment variables.

    Raises ``ValueError`` with a message naming the missing variable when a
    required variable is absent, or when ``TIE_BREAK_DIRECTION`` is not
    ``UP``/``DOWN``.
    """
    load_dotenv(dotenv_path=env_path)

    missing = [v for v in _REQUIRED_VARS if not os.environ.get(v)]
    if missing:
        raise ValueError(
            f"Missing required environment variable(s): {', '.join(missing)}"
        )

    tie_break = os.environ.get("TIE_BREAK_DIRECTION", "DOWN").upper()
    if tie_break not in ("UP", "DOWN"):
        raise ValueError(
            f"TIE_BREAK_DIRECTION must be 'UP' or 'DOWN', got '{tie_break}'"
        )

    return Config(
        gemini_api_key=os.environ["GEMINI_API_KEY"],
        gemini_models=_parse_models(os.environ.get("GEMINI_MODELS")),
        oracle_timeout_seconds=float(os.environ.get("ORACLE_TIMEOUT_SECONDS", "90")),
        market_data_base_url=os.environ.get(
            "MARKET_DATA_BASE_URL", "https://api.binance.com"
        ),
        candle_limit=int(os.environ.get("CANDLE_LIMIT", "200")),
        default_timeframe=os.environ.get("DEFAULT_TIMEFRAME", "M1"),
        tie_break_direction=tie_break,
        stage_delay_seconds=float(os.environ.get("STAGE_DELAY_SECONDS", "0")),
        log_level=os.environ.get("LOG_LEVEL", "INFO"),
        api_port=int(os.environ.get("API_PORT", "8080")),
    )
