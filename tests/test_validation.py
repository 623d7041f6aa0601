"""Tests for the validation checks and the ordered rule chain."""

import pytest

from tradelens.analysis.validation import (
    NO_ANCHOR_CHECK,
    Proceed,
    Rejected,
    RejectionRule,
    check_rsi_neutral_zone,
    check_trend_alignment,
    check_volume_confirmation,
    check_volume_divergence,
    validate_confidence,
)
from tradelens.market.models import Candle


def _candles(closes, volumes) -> list[Candle]:
    return [
        Candle(time=i, open=c, high=c + 0.5, low=c - 0.5, close=c, volume=v)
        for i, (c, v) in enumerate(zip(closes, volumes))
    ]


def _passing(**overrides):
    """Keyword args for validate_confidence where every rule passes."""
    kwargs = dict(
        base_confidence=90,
        volume_ratio=1.5,
        adx_value=30.0,
        trend_aligned=True,
        rsi_neutral=False,
        has_volume_divergence=False,
    )
    kwargs.update(overrides)
    return kwargs


# ── Supporting checks ────────────────────────────────────────────────────


class TestVolumeConfirmation:
    """Unit tests for check_volume_confirmation()."""

    def test_passes_at_threshold(self):
        result = check_volume_confirmation(1100.0, 1000.0)
        assert result.passes
        assert result.ratio == pytest.approx(1.1)
        assert result.reason.startswith("Volume confirmed: 1.10x MA")

    def test_low_volume(self):
        result = check_volume_confirmation(900.0, 1000.0)
        assert not result.passes
        assert "Volume low: 0.90x MA" in result.reason

    def test_zero_ma_is_neutral_ratio(self):
        result = check_volume_confirmation(500.0, 0.0)
        assert result.ratio == 1.0
        assert not result.passes


class TestVolumeDivergence:
    """Unit tests for check_volume_divergence()."""

    def test_weak_breakout(self):
        candles = _candles([10, 11, 12, 13, 14], [100, 100, 100, 100, 80])
        result = check_volume_divergence(candles, "UP")
        assert result.has_divergence
        assert "Weak Breakout" in result.reason

    def test_weak_breakdown(self):
        candles = _candles([14, 13, 12, 11, 10], [100, 100, 100, 100, 80])
        result = check_volume_divergence(candles, "DOWN")
        assert result.has_divergence
        assert "Weak Breakdown" in result.reason

    def test_rising_volume_is_healthy(self):
        candles = _candles([10, 11, 12, 13, 14], [100, 100, 100, 100, 120])
        assert not check_volume_divergence(candles, "UP").has_divergence

    def test_direction_mismatch_is_not_divergence(self):
        candles = _candles([10, 11, 12, 13, 14], [100, 100, 100, 100, 80])
        assert not check_volume_divergence(candles, "DOWN").has_divergence
        assert not check_volume_divergence(candles, "NEUTRAL").has_divergence

    def test_insufficient_data(self):
        result = check_volume_divergence(_candles([10, 11], [100, 80]), "UP")
        assert not result.has_divergence
        assert result.reason == "Not enough data for divergence check"


class TestRSINeutral:
    """Unit tests for check_rsi_neutral_zone()."""

    @pytest.mark.parametrize("rsi", [48.0, 50.0, 52.0])
    def test_inside_zone(self, rsi):
        assert check_rsi_neutral_zone(rsi).is_neutral

    @pytest.mark.parametrize("rsi", [47.9, 52.1, 25.0])
    def test_outside_zone(self, rsi):
        assert not check_rsi_neutral_zone(rsi).is_neutral


class TestTrendAlignment:
    """Unit tests for check_trend_alignment()."""

    def test_aligned(self):
        result = check_trend_alignment("BULLISH", "UP")
        assert result.aligned
        assert "matches Anchor (BULLISH)" in result.reason

    def test_conflict_names_both_biases(self):
        result = check_trend_alignment("BEARISH", "UP")
        assert not result.aligned
        assert result.reason == (
            "Trend Conflict: Entry (BULLISH) conflicts with Anchor (BEARISH) - Entry rejected"
        )

    def test_neutral_anchor_aligns(self):
        assert check_trend_alignment("NEUTRAL", "DOWN").aligned

    def test_neutral_direction_aligns(self):
        assert check_trend_alignment("BEARISH", "NEUTRAL").aligned

    def test_unknown_anchor_bias_rejected(self):
        with pytest.raises(ValueError, match="trend bias"):
            check_trend_alignment("UP", "UP")

    def test_no_anchor_sentinel(self):
        assert NO_ANCHOR_CHECK.aligned
        assert NO_ANCHOR_CHECK.reason == "No anchor check performed"


# ── Rule chain ───────────────────────────────────────────────────────────


class TestValidateConfidence:
    """Rule order and thresholds of validate_confidence()."""

    def test_all_pass(self):
        outcome = validate_confidence(**_passing())
        assert isinstance(outcome, Proceed)
        assert outcome.should_proceed
        assert outcome.confidence == 90
        assert outcome.rejection_reason is None

    def test_proceed_caps_at_98(self):
        assert validate_confidence(**_passing(base_confidence=99)).confidence == 98

    def test_minimum_threshold(self):
        outcome = validate_confidence(**_passing(base_confidence=79))
        assert isinstance(outcome, Rejected)
        assert outcome.rule is RejectionRule.MIN_CONFIDENCE
        assert outcome.rejection_reason == "Confidence below minimum threshold (79% < 80%)"
        assert outcome.confidence == 79

    def test_rule_order_counter_trend_at_81(self):
        outcome = validate_confidence(**_passing(base_confidence=81, trend_aligned=False))
        assert not outcome.should_proceed
        assert outcome.rule is RejectionRule.COUNTER_TREND
        assert outcome.rejection_reason == (
            "Trend Conflict: Counter-trend setups require higher confidence (>82%)"
        )
        assert outcome.confidence == 81

    def test_counter_trend_overridden_at_82(self):
        assert validate_confidence(**_passing(base_confidence=82, trend_aligned=False)).should_proceed

    def test_low_volume(self):
        outcome = validate_confidence(**_passing(base_confidence=84, volume_ratio=0.95))
        assert outcome.rule is RejectionRule.LOW_VOLUME
        assert outcome.rejection_reason == "Low volume (0.95x) requires higher baseline confidence"

    def test_low_volume_overridden_at_85(self):
        assert validate_confidence(**_passing(base_confidence=85, volume_ratio=0.5)).should_proceed

    def test_divergence(self):
        outcome = validate_confidence(**_passing(base_confidence=84, has_volume_divergence=True))
        assert outcome.rule is RejectionRule.VOLUME_DIVERGENCE

    def test_low_volume_checked_before_divergence(self):
        outcome = validate_confidence(
            **_passing(base_confidence=83, volume_ratio=0.5, has_volume_divergence=True)
        )
        assert outcome.rule is RejectionRule.LOW_VOLUME

    def test_rsi_neutral_does_not_block_above_80(self):
        assert validate_confidence(**_passing(rsi_neutral=True)).should_proceed

    def test_adx_rejects_regardless_of_confidence(self):
        outcome = validate_confidence(**_passing(base_confidence=98, adx_value=10.0))
        assert not outcome.should_proceed
        assert outcome.rule is RejectionRule.RANGING_MARKET
        assert outcome.rejection_reason == "ADX < 15 - Extremely ranging market, no edge detected"
        assert outcome.confidence == 98

    def test_adx_at_15_passes(self):
        assert validate_confidence(**_passing(adx_value=15.0)).should_proceed
