"""Entry / target / stop calculation — pure math, no I/O.

Volatility-based fallback:
    Entry is a narrow band around the current price, biased toward the
    side a fill is expected from.  Targets sit 1.5–2.4 × volatility away
    in the trade direction; the stop sits 1.05 × volatility beyond the
    far edge of the entry band.

Externally supplied targets:
    Normalised (low ≤ high), the stop is repaired in place when it sits on
    the wrong side of entry, and the whole set is replaced by the fallback
    when the target range does not clear the entry range.
"""

import math
from dataclasses import dataclass
from typing import Any, Mapping, Optional

from tradelens.strategy.models import DOWN, UP


@dataclass(frozen=True)
class PriceRange:
    """A closed price interval with ``low <= high``."""

    low: float
    high: float

    @classmethod
    def of(cls, a: float, b: float) -> "PriceRange":
        """Build a range from two bounds in either order."""
        return cls(low=min(a, b), high=max(a, b))

    def to_dict(self) -> dict:
        return {"low": self.low, "high": self.high}


@dataclass(frozen=True)
class TradeTargets:
    """Entry band, target band and stop price for one trade."""

    entry: PriceRange
    target: PriceRange
    stop: float

    def satisfies(self, direction: str) -> bool:
        """Check the directional invariants.

        UP:   ``stop < entry.low``  and ``target.high > entry.high``
        DOWN: ``stop > entry.high`` and ``target.low < entry.low``
        """
        if direction == UP:
            return self.stop < self.entry.low and self.target.high > self.entry.high
        if direction == DOWN:
            return self.stop > self.entry.high and self.target.low < self.entry.low
        raise ValueError(f"direction must be 'UP' or 'DOWN', got '{direction}'")

    def to_dict(self) -> dict:
        return {
            "entry": self.entry.to_dict(),
            "target": self.target.to_dict(),
            "stop": self.stop,
        }


def _check_direction(direction: str) -> None:
    if direction not in (UP, DOWN):
        raise ValueError(f"direction must be 'UP' or 'DOWN', got '{direction}'")


def compute_fallback_targets(
    direction: str,
    current_price: float,
    volatility: float,
) -> TradeTargets:
    """Calculate trade targets from price and volatility alone.

    Non-finite volatility counts as zero.  Volatility is floored at 0.2% of
    price so a flat market still yields non-degenerate bands:

        safe_vol   = max(|volatility|, |price| × 0.002)
        entry_band = safe_vol × 0.25

    - **UP**:   entry [price − band, price + band/2],
                target [price + 1.5·v, price + 2.4·v],
                stop = entry_low − 1.05·v
    - **DOWN**: entry [price − band/2, price + band],
                target [price − 2.4·v, price − 1.5·v],
                stop = entry_high + 1.05·v

    Raises:
        ValueError: If *direction* is not ``"UP"`` or ``"DOWN"``.
    """
    _check_direction(direction)

    vol = abs(volatility) if math.isfinite(volatility) else 0.0
    safe_vol = max(vol, abs(current_price) * 0.002)
    entry_band = safe_vol * 0.25

    if direction == UP:
        entry_low = current_price - entry_band
        entry_high = current_price + entry_band * 0.5
        return TradeTargets(
            entry=PriceRange.of(entry_low, entry_high),
            target=PriceRange(
                low=current_price + safe_vol * 1.5,
                high=current_price + safe_vol * 2.4,
            ),
            stop=entry_low - safe_vol * 1.05,
        )

    entry_low = current_price - entry_band * 0.5
    entry_high = current_price + entry_band
    return TradeTargets(
        entry=PriceRange.of(entry_low, entry_high),
        target=PriceRange(
            low=current_price - safe_vol * 2.4,
            high=current_price - safe_vol * 1.5,
        ),
        stop=entry_high + safe_vol * 1.05,
    )


def _finite(value: Any) -> Optional[float]:
    """Return *value* as a float if it is a finite real number, else None."""
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        return None
    value = float(value)
    return value if math.isfinite(value) else None


def _range_bounds(candidate: Mapping, key: str) -> Optional[tuple[float, float]]:
    section = candidate.get(key)
    if not isinstance(section, Mapping):
        return None
    low, high = _finite(section.get("low")), _finite(section.get("high"))
    if low is None or high is None:
        return None
    return low, high


def normalize_or_repair(
    candidate: Any,
    direction: str,
    current_price: float,
    volatility: float,
) -> Optional[TradeTargets]:
    """Validate externally supplied targets.

    Args:
        candidate: Untrusted mapping shaped like
            ``{"entry": {"low", "high"}, "target": {"low", "high"}, "stop"}``.
        direction: ``"UP"`` or ``"DOWN"``.
        current_price: Price used for the fallback computation.
        volatility: ATR used for the fallback computation.

    Returns:
        ``None`` if any field is missing or non-finite (caller substitutes
        the fallback).  Otherwise normalised targets where:

        * a stop on the wrong side of entry is replaced by the fallback stop;
        * a target range that does not clear the entry range causes the
          whole candidate to be replaced by the fallback.
    """
    _check_direction(direction)

    if not isinstance(candidate, Mapping):
        return None

    entry = _range_bounds(candidate, "entry")
    target = _range_bounds(candidate, "target")
    stop = _finite(candidate.get("stop"))
    if entry is None or target is None or stop is None:
        return None

    entry_range = PriceRange.of(*entry)
    target_range = PriceRange.of(*target)
    fallback = compute_fallback_targets(direction, current_price, volatility)

    if direction == UP:
        if not stop < entry_range.low:
            stop = fallback.stop
        if not target_range.high > entry_range.high:
            return fallback
    else:
        if not stop > entry_range.high:
            stop = fallback.stop
        if not target_range.low < entry_range.low:
            return fallback

    repaired = TradeTargets(entry=entry_range, target=target_range, stop=stop)
    # The fallback stop is anchored to the fallback entry band; if the
    # candidate's entry sits elsewhere it can still be on the wrong side.
    if not repaired.satisfies(direction):
        return fallback
    return repaired


def resolve_targets(
    candidate: Any,
    direction: str,
    current_price: float,
    volatility: float,
) -> TradeTargets:
    """Validated candidate targets, or the fallback when there are none."""
    return (
        normalize_or_repair(candidate, direction, current_price, volatility)
        or compute_fallback_targets(direction, current_price, volatility)
    )
