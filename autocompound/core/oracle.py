"""
Oracle price kernel.

This module is intentionally small and pure:
- The functional core reduces raw oracle reads (cumulative ticks, sqrt price)
  into a deterministic ``PriceSnapshot``.
- The imperative shell (``integration/price_oracle.py``) fetches the raw reads
  from the venue.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Sequence

from autocompound.core.fixed_point import price_x96_from_sqrt
from autocompound.core.tick_math import MAX_SQRT_RATIO, MIN_SQRT_RATIO, require_tick


# Length of the time-weighted-average window, in seconds.
TWAP_SECONDS: int = 300


@dataclass(frozen=True)
class PoolKey:
    """Identity of a pool: its (ordered) token pair and fee tier."""

    token0: str
    token1: str
    fee: int

    def __post_init__(self) -> None:
        if not isinstance(self.token0, str) or not self.token0:
            raise ValueError("token0 must be a non-empty string")
        if not isinstance(self.token1, str) or not self.token1:
            raise ValueError("token1 must be a non-empty string")
        if not isinstance(self.fee, int) or isinstance(self.fee, bool) or self.fee < 0:
            raise ValueError(f"fee must be a non-negative int: {self.fee!r}")


@dataclass(frozen=True)
class PriceSnapshot:
    """Spot and average price of one pool, read once per operation."""

    sqrt_price_x96: int
    price_x96: int
    tick: int
    twap_tick: int

    def __post_init__(self) -> None:
        if not (MIN_SQRT_RATIO <= self.sqrt_price_x96 < MAX_SQRT_RATIO):
            raise ValueError(f"sqrt_price_x96 out of range: {self.sqrt_price_x96}")
        if self.price_x96 <= 0:
            raise ValueError(f"price_x96 must be positive: {self.price_x96}")
        require_tick("tick", self.tick)
        require_tick("twap_tick", self.twap_tick)


def twap_tick_from_cumulatives(tick_cumulatives: Sequence[int], window_seconds: int = TWAP_SECONDS) -> int:
    """Average tick over ``window_seconds`` from two cumulative-tick samples.

    ``tick_cumulatives`` holds the samples at ``window_seconds`` ago and now, in
    that order. ``//`` floors, which rounds negative averages toward -inf as
    the oracle itself does.
    """
    if window_seconds <= 0:
        raise ValueError(f"window_seconds must be positive: {window_seconds}")
    if len(tick_cumulatives) != 2:
        raise ValueError(f"expected 2 cumulative samples, got {len(tick_cumulatives)}")
    start, end = tick_cumulatives
    return (end - start) // window_seconds


def make_snapshot(sqrt_price_x96: int, tick: int, twap_tick: int) -> PriceSnapshot:
    return PriceSnapshot(
        sqrt_price_x96=sqrt_price_x96,
        price_x96=price_x96_from_sqrt(sqrt_price_x96),
        tick=tick,
        twap_tick=twap_tick,
    )
