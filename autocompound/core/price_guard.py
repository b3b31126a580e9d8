"""Manipulation guard: spot price must stay close to the time-weighted average."""

from __future__ import annotations

from autocompound.core.errors import PriceDeviation
from autocompound.core.oracle import PriceSnapshot


def price_deviation(spot_tick: int, twap_tick: int) -> int:
    """Absolute tick distance. Ticks are bounded, so this never overflows."""
    diff = spot_tick - twap_tick
    return diff if diff >= 0 else -diff


def within_deviation(spot_tick: int, twap_tick: int, max_price_deviation: int) -> bool:
    return price_deviation(spot_tick, twap_tick) < max_price_deviation


def check_price_deviation(spot_tick: int, twap_tick: int, max_price_deviation: int) -> None:
    """Raise ``PriceDeviation`` unless ``|spot - twap| < max_price_deviation``."""
    if not isinstance(max_price_deviation, int) or isinstance(max_price_deviation, bool):
        raise TypeError("max_price_deviation must be an int")
    if max_price_deviation < 0:
        raise ValueError(f"max_price_deviation must be non-negative: {max_price_deviation}")
    if not within_deviation(spot_tick, twap_tick, max_price_deviation):
        raise PriceDeviation(spot_tick, twap_tick, max_price_deviation)


def check_snapshot(snapshot: PriceSnapshot, max_price_deviation: int) -> None:
    check_price_deviation(snapshot.tick, snapshot.twap_tick, max_price_deviation)
