"""Tests for trade target calculation — fallback math and candidate repair."""

import math

import pytest

from tradelens.risk.trade_targets import (
    PriceRange,
    TradeTargets,
    compute_fallback_targets,
    normalize_or_repair,
    resolve_targets,
)


def _candidate(entry=(100.0, 101.0), target=(104.0, 106.0), stop=98.0) -> dict:
    return {
        "entry": {"low": entry[0], "high": entry[1]},
        "target": {"low": target[0], "high": target[1]},
        "stop": stop,
    }


# ── Fallback ─────────────────────────────────────────────────────────────


class TestFallbackTargets:
    """Unit tests for compute_fallback_targets()."""

    def test_up_geometry(self):
        t = compute_fallback_targets("UP", 100.0, 2.0)
        # band = 0.5 → entry [99.5, 100.25]
        assert t.entry.low == pytest.approx(99.5)
        assert t.entry.high == pytest.approx(100.25)
        assert t.target.low == pytest.approx(103.0)
        assert t.target.high == pytest.approx(104.8)
        assert t.stop == pytest.approx(99.5 - 2.1)

    def test_down_geometry(self):
        t = compute_fallback_targets("DOWN", 100.0, 2.0)
        assert t.entry.low == pytest.approx(99.75)
        assert t.entry.high == pytest.approx(100.5)
        assert t.target.low == pytest.approx(95.2)
        assert t.target.high == pytest.approx(97.0)
        assert t.stop == pytest.approx(100.5 + 2.1)

    def test_zero_volatility_uses_floor(self):
        t = compute_fallback_targets("UP", 50_000.0, 0.0)
        # floor = 0.2% of price = 100
        assert t.entry.high - t.entry.low == pytest.approx(100 * 0.25 * 1.5)
        assert t.entry.low < t.entry.high

    @pytest.mark.parametrize("direction", ["UP", "DOWN"])
    @pytest.mark.parametrize("price", [0.0001, 0.5, 1.0, 100.0, 65_000.0])
    @pytest.mark.parametrize("volatility", [0.0, 1e-9, 0.3, 5.0, 10_000.0, -2.0, math.nan, math.inf, -math.inf])
    def test_invariants_hold(self, direction, price, volatility):
        t = compute_fallback_targets(direction, price, volatility)
        assert t.satisfies(direction)
        assert t.entry.low <= t.entry.high
        assert t.target.low <= t.target.high

    def test_neutral_rejected(self):
        with pytest.raises(ValueError, match="direction"):
            compute_fallback_targets("NEUTRAL", 100.0, 1.0)


# ── Normalise / repair ───────────────────────────────────────────────────


class TestNormalizeOrRepair:
    """Unit tests for normalize_or_repair()."""

    def test_valid_candidate_passes_through(self):
        t = normalize_or_repair(_candidate(), "UP", 100.5, 1.0)
        assert t == TradeTargets(PriceRange(100.0, 101.0), PriceRange(104.0, 106.0), 98.0)

    def test_swapped_bounds_are_normalised(self):
        t = normalize_or_repair(_candidate(entry=(101.0, 100.0), target=(106.0, 104.0)), "UP", 100.5, 1.0)
        assert t.entry == PriceRange(100.0, 101.0)
        assert t.target == PriceRange(104.0, 106.0)

    def test_wrong_side_stop_is_repaired(self):
        t = normalize_or_repair(_candidate(entry=(99.8, 100.2), stop=102.0), "UP", 100.0, 1.0)
        fallback = compute_fallback_targets("UP", 100.0, 1.0)
        assert t.stop == fallback.stop
        assert t.entry == PriceRange(99.8, 100.2)
        assert t.satisfies("UP")

    def test_target_violation_replaces_everything(self):
        # entry 100–101 with target high 95: target does not clear entry for UP
        bad = _candidate(entry=(100.0, 101.0), target=(90.0, 95.0), stop=99.0)
        t = normalize_or_repair(bad, "UP", 100.5, 1.0)
        assert t == compute_fallback_targets("UP", 100.5, 1.0)

    def test_down_candidate(self):
        cand = _candidate(entry=(100.0, 101.0), target=(95.0, 97.0), stop=103.0)
        t = normalize_or_repair(cand, "DOWN", 100.5, 1.0)
        assert t.satisfies("DOWN")
        assert t.stop == 103.0

    @pytest.mark.parametrize(
        "candidate",
        [
            None,
            "not a mapping",
            {},
            {"entry": {"low": 1, "high": 2}, "target": {"low": 3, "high": 4}},
            _candidate(stop=math.nan),
            _candidate(stop=math.inf),
            _candidate(entry=(None, 101.0)),
            {"entry": [100, 101], "target": {"low": 104, "high": 106}, "stop": 98},
            {**_candidate(), "stop": "98"},
            {**_candidate(), "stop": True},
        ],
    )
    def test_unusable_candidate_returns_none(self, candidate):
        assert normalize_or_repair(candidate, "UP", 100.0, 1.0) is None

    @pytest.mark.parametrize(
        "candidate, direction",
        [
            (_candidate(entry=(105.0, 100.0), target=(90.0, 120.0), stop=110.0), "UP"),
            (_candidate(entry=(100.0, 120.0), target=(110.0, 130.0), stop=50.0), "UP"),
            (_candidate(entry=(100.0, 101.0), target=(99.0, 130.0), stop=90.0), "DOWN"),
            (_candidate(entry=(80.0, 90.0), target=(70.0, 75.0), stop=85.0), "DOWN"),
            # entry far below price: the repaired stop still sits above entry
            (_candidate(entry=(50.0, 60.0), target=(70.0, 80.0), stop=70.0), "UP"),
        ],
    )
    def test_never_returns_violation(self, candidate, direction):
        t = normalize_or_repair(candidate, direction, 100.0, 1.0)
        assert t is not None
        assert t.satisfies(direction)


class TestResolveTargets:
    """Unit tests for resolve_targets()."""

    def test_scenario_target_below_entry_falls_back(self):
        """UP call whose target range sits below the entry range."""
        cand = {"entry": {"low": 100, "high": 101}, "target": {"low": 90, "high": 95}, "stop": 99}
        t = resolve_targets(cand, "UP", 100.5, 1.0)
        assert t == compute_fallback_targets("UP", 100.5, 1.0)

    def test_missing_candidate_uses_fallback(self):
        assert resolve_targets(None, "DOWN", 100.0, 1.0) == compute_fallback_targets("DOWN", 100.0, 1.0)

    @pytest.mark.parametrize("volatility", [math.nan, math.inf])
    def test_non_finite_volatility_yields_finite_fallback(self, volatility):
        cand = {"entry": {"low": 100, "high": 101}, "target": {"low": 90, "high": 95}, "stop": 99}
        t = resolve_targets(cand, "UP", 100.0, volatility)
        assert t == compute_fallback_targets("UP", 100.0, 0.0)
        assert all(math.isfinite(v) for v in (t.entry.low, t.entry.high, t.target.low, t.target.high, t.stop))
        assert t.satisfies("UP")

    def test_to_dict(self):
        t = TradeTargets(PriceRange(1.0, 2.0), PriceRange(3.0, 4.0), 0.5)
        assert t.to_dict() == {
            "entry": {"low": 1.0, "high": 2.0},
            "target": {"low": 3.0, "high": 4.0},
            "stop": 0.5,
        }
