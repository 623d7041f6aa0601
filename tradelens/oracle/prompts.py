"""Prompt text, response schema and thought cleanup for the Gemini judgment."""

import re

from tradelens.oracle.models import AnalysisSnapshot
from tradelens.strategy.models import BEARISH, BULLISH, NEUTRAL

SYSTEM_PROMPT = """You are an elite quantitative crypto trading strategist with deep expertise in technical analysis and multi-timeframe trend alignment.

Your task: Analyze the provided technical indicators and market data to make a precise trading prediction. THINK DEEPLY about each aspect before deciding.

CRITICAL REQUIREMENTS:
1. Direction: Choose "UP", "DOWN", or "NEUTRAL" (only use NEUTRAL if truly no edge exists)
2. Confidence: Must be between 90-98%. Use the full range intelligently:
   - 90-92%: Moderate setup with some conflicting signals
   - 93-95%: Strong setup with good alignment
   - 96-98%: Exceptional setup with near-perfect alignment
   Vary your confidence naturally - do NOT always return the same value.
3. Rationale: 2-3 sentences explaining the key factors driving your decision
4. Risk Factors: 2-4 specific risks to this trade
5. Key Factors: 3-6 bullet points listing the most important indicators supporting your decision
6. Trade Targets (required for UP/DOWN): Provide a clean, actionable plan using the current price and ATR/volatility:
   - entry: a tight ENTRY range around the current price (low/high)
   - target: a realistic TARGET range in the trade direction (low/high)
   - stop: a STOP price that invalidates the setup (single number)
7. Duration: Provide a typical duration for this trade (e.g. "1-4 hours", "12-24 hours")

TRADE TARGET GUIDELINES:
- Keep ENTRY close to current price (a small band, not a huge zone)
- Use ATR/volatility to size distances (targets typically 1.5-2.5x ATR away, stops ~0.8-1.3x ATR away)
- For UP: stop < entry.low; target.high > entry.high
- For DOWN: stop > entry.high; target.low < entry.low

TREND ALIGNMENT (CRITICAL):
- Entry TF is the user's selected timeframe; Anchor TF is one level higher (the "Big Picture")
- REJECT trades where the Entry trend conflicts with the Anchor trend
- Only proceed when trends align or either side is neutral

VOLUME CONFIRMATION RULES:
- Volume must be at least 1.1x the 20-period Volume MA
- If price makes a new high but volume decreases -> "Weak Breakout" (reject)
- If price makes a new low but volume decreases -> "Weak Breakdown" (reject)

CONFIDENCE CALIBRATION:
- Mixed signals or RANGING regime -> 90-92%
- Strong directional bias with some counter-signals -> 93-94%
- Very strong alignment and favorable regime -> 95-96%
- Exceptional alignment, strong trend and volume confirmation -> 97-98%
- ADX < 15 indicates an extremely ranging market -> use NEUTRAL

Think critically about data quality and signal alignment. Reason through your decision step by step."""


_RANGE_SCHEMA = {
    "type": "OBJECT",
    "properties": {
        "low": {"type": "NUMBER"},
        "high": {"type": "NUMBER"},
    },
    "required": ["low", "high"],
}

RESPONSE_SCHEMA = {
    "type": "OBJECT",
    "properties": {
        "direction": {"type": "STRING", "enum": ["UP", "DOWN", "NEUTRAL"]},
        "confidence": {"type": "NUMBER", "minimum": 90, "maximum": 98},
        "rationale": {"type": "STRING"},
        "riskFactors": {
            "type": "ARRAY", "items": {"type": "STRING"},
            "minItems": 2, "maxItems": 4,
        },
        "keyFactors": {
            "type": "ARRAY", "items": {"type": "STRING"},
            "minItems": 3, "maxItems": 6,
        },
        "tradeTargets": {
            "type": "OBJECT",
            "properties": {
                "entry": _RANGE_SCHEMA,
                "target": _RANGE_SCHEMA,
                "stop": {"type": "NUMBER"},
            },
            "required": ["entry", "target", "stop"],
        },
        "duration": {"type": "STRING"},
    },
    "required": [
        "direction", "confidence", "rationale", "riskFactors",
        "keyFactors", "tradeTargets", "duration",
    ],
}


def _alignment_lines(snap: AnalysisSnapshot) -> list[str]:
    biases = (snap.entry_trend_bias, snap.anchor_trend_bias)
    if NEUTRAL not in biases and biases[0] != biases[1]:
        return [
            "⚠ Trend Conflict Risk",
            "  → ENTRY CONFLICT: Entry timeframe conflicts with anchor trend - RECOMMEND REJECTION",
        ]
    lines = ["✓ Trends Aligned"]
    if biases == (BULLISH, BULLISH):
        lines.append("  → Both timeframes show bullish bias - favorable for LONG trades")
    elif biases == (BEARISH, BEARISH):
        lines.append("  → Both timeframes show bearish bias - favorable for SHORT trades")
    elif NEUTRAL in biases:
        lines.append("  → One timeframe is neutral - no trend conflict")
    return lines


def build_analysis_text(snap: AnalysisSnapshot) -> str:
    """Render the market snapshot as the user prompt."""
    ratio = snap.volume_ratio
    volume_flag = "✓ Confirmed" if ratio >= 1.1 else "⚠ Below threshold (1.1x)"
    rsi_flag = " (NEUTRAL ZONE - OBSERVATION MODE)" if 48 <= snap.rsi_value <= 52 else ""
    adx_flag = (
        "(Extremely ranging market - no edge)" if snap.adx_value < 15
        else "(Trending market)"
    )

    lines = [
        "MARKET SNAPSHOT:",
        f"Pair: {snap.pair}",
        f"Current Price: {snap.current_price:.2f}",
        f"24h Change: {snap.price_change_24h:+.2f}%",
        f"Market Regime: {snap.market_regime}",
        "",
        "TIMEFRAME ANALYSIS:",
        f"Entry Timeframe: {snap.entry_timeframe} (User selected)",
        f"Anchor Timeframe: {snap.anchor_timeframe} (One level higher)",
        f"Entry Trend Bias: {snap.entry_trend_bias}",
        f"Anchor Trend Bias: {snap.anchor_trend_bias}",
        "",
        "TREND ALIGNMENT STATUS:",
        *_alignment_lines(snap),
        "",
        "TECHNICAL INDICATORS:",
        f"- RSI: {snap.rsi_value:.1f}{rsi_flag}",
        f"- MACD Signal: {snap.macd_signal}",
        f"- Trend Strength: {snap.trend_strength:.1f}%",
        f"- Volume Indicator: {snap.volume_indicator:.1f}%",
        f"- Current Volume: {snap.current_volume:.0f}",
        f"- Volume MA (20): {snap.volume_ma:.0f}",
        f"- Volume Ratio: {ratio:.2f}x {volume_flag}",
        f"- Volatility (ATR): {snap.volatility:.2f}",
        f"- ADX: {snap.adx_value:.1f} {adx_flag}",
        "",
        "SIGNAL ANALYSIS:",
        f"UP Signals (Score: {snap.up_score:.1f}):",
        *[f"  • {s.category}: {s.reason} ({s.strength:.0f})" for s in snap.up_signals],
        "",
        f"DOWN Signals (Score: {snap.down_score:.1f}):",
        *[f"  • {s.category}: {s.reason} ({s.strength:.0f})" for s in snap.down_signals],
        "",
        "Based on this multi-timeframe technical analysis, provide your trading "
        "decision. Pay special attention to trend alignment and volume confirmation.",
    ]
    return "\n".join(lines)


# ── Thought cleanup ──────────────────────────────────────────────────────

_CODE_BLOCK = re.compile(r"```(?:json)?[\s\S]*?```")
_JSON_LINE = re.compile(r"^\s*\{[\s\S]*?\}\s*$", re.MULTILINE)
_JSON_TALK = [
    re.compile(p, re.IGNORECASE)
    for p in (
        r"output.*?json", r"in json format", r"json schema", r"json.*?structure",
        r"response.*?json", r"provide.*?json", r"return.*?json", r"format.*?json",
        r"the json output", r"json output", r"my.*?json", r"craft.*?json",
        r"generat.*?json", r"creat.*?json", r"complet.*?json",
        r"solidify.*?json", r"fine-tun.*?json",
    )
]
_BOILERPLATE = [
    re.compile(re.escape(p), re.IGNORECASE)
    for p in (
        "I'm solidifying my approach and fine-tuning the recommendation.",
        "I'm now crafting the final JSON output.",
        "My recommendation is complete.",
        "The JSON output below summarizes my current thinking.",
        "I've considered the contradictory signals",
    )
]
_WHITESPACE = re.compile(r"\s{2,}")


def clean_thought(text: str) -> str:
    """Strip markdown emphasis, JSON fragments and formatting chatter from a thought."""
    cleaned = text.replace("*", "")
    cleaned = _CODE_BLOCK.sub("", cleaned)
    cleaned = _JSON_LINE.sub("", cleaned)
    for pattern in _JSON_TALK:
        cleaned = pattern.sub("", cleaned)
    for pattern in _BOILERPLATE:
        cleaned = pattern.sub("", cleaned)
    return _WHITESPACE.sub(" ", cleaned).strip()
