"""
Ratio-matching planner (functional core).

Given two token amounts and a position's price range, decide how much token0
has to change hands so the pair matches the range's ideal liquidity ratio at
the current price.

Conventions:
- ``price_x96`` is token1 per token0 scaled by ``Q96``.
- ``delta0`` is always measured in token0 units; ``sell0`` gives the direction.
- Every function is pure; swap execution lives in the imperative shell.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Tuple

from autocompound.core.fixed_point import Q64, Q96, mul_div, token0_value
from autocompound.core.liquidity_amounts import get_amounts_for_liquidity
from autocompound.core.tick_math import sqrt_ratios_for_range


@dataclass(frozen=True)
class SwapPlan:
    """Everything decided and observed while rebalancing one pair of amounts."""

    amount0_in: int
    amount1_in: int
    ideal0: int
    ideal1: int
    delta0: int
    sell0: bool
    swapped: bool
    amount0: int
    amount1: int
    price_x96: int
    reserved0: int
    reserved1: int
    addable0: int
    addable1: int

    def __post_init__(self) -> None:
        for name in (
            "amount0_in",
            "amount1_in",
            "ideal0",
            "ideal1",
            "delta0",
            "amount0",
            "amount1",
            "price_x96",
            "reserved0",
            "reserved1",
            "addable0",
            "addable1",
        ):
            v = getattr(self, name)
            if not isinstance(v, int) or isinstance(v, bool):
                raise TypeError(f"{name} must be an int")
            if v < 0:
                raise ValueError(f"{name} must be non-negative: {v}")
        if self.addable0 > self.amount0 or self.addable1 > self.amount1:
            raise ValueError("addable amounts must not exceed post-swap amounts")

    @property
    def one_sided(self) -> bool:
        return self.ideal0 == 0 or self.ideal1 == 0


def ideal_amounts(sqrt_price_x96: int, tick_lower: int, tick_upper: int) -> Tuple[int, int]:
    """Token amounts backing one unit (``Q96``) of liquidity in the range.

    Only the ratio matters. A range entirely below the current price gives
    ``(0, x)``; entirely above gives ``(x, 0)``.
    """
    sqrt_lower, sqrt_upper = sqrt_ratios_for_range(tick_lower, tick_upper)
    return get_amounts_for_liquidity(sqrt_price_x96, sqrt_lower, sqrt_upper, Q96)


def compute_swap_delta(
    amount0: int,
    amount1: int,
    price_x96: int,
    ideal0: int,
    ideal1: int,
) -> Tuple[int, bool]:
    """Return ``(delta0, sell0)`` bringing ``(amount0, amount1)`` to the ideal ratio.

    Two-sided ranges solve ``(a0 - d) / (a1 + d * p) = r`` in closed form:
        d = (a0 - r * a1) / (1 + r * p)
    with ``r = ideal0 / ideal1``. The mirrored direction uses the same
    denominator with the numerator's sign flipped.
    """
    if ideal0 == 0 and ideal1 == 0:
        raise ValueError("ideal amounts must not both be zero")

    if ideal0 == 0:
        return amount0, True
    if ideal1 == 0:
        return mul_div(amount1, Q96, price_x96), False

    # Intermediates may exceed 256 bits; only delta0 has to fit.
    ratio_x96 = ideal0 * Q96 // ideal1
    have1 = ratio_x96 * amount1
    have0 = amount0 * Q96
    sell0 = have1 < have0
    denominator = ratio_x96 * price_x96 // Q96 + Q96
    if sell0:
        return (have0 - have1) // denominator, True
    return (have1 - have0) // denominator, False


def below_swap_floor(
    delta0: int,
    amount0: int,
    amount1: int,
    price_x96: int,
    min_swap_ratio_x64: int,
) -> bool:
    """True when ``delta0`` is too small a share of the total value to swap."""
    value0 = token0_value(amount0, amount1, price_x96)
    return delta0 * Q64 < value0 * min_swap_ratio_x64


def swap_input(delta0: int, sell0: bool, price_x96: int) -> int:
    """Amount of the sold token sent to the venue for ``delta0``."""
    if sell0:
        return delta0
    return mul_div(delta0, price_x96, Q96)


def quoted_output(amount_in: int, sell0: bool, price_x96: int) -> int:
    """Output of ``amount_in`` at ``price_x96`` before venue fees."""
    if sell0:
        return mul_div(amount_in, price_x96, Q96)
    return mul_div(amount_in, Q96, price_x96)


def zero_degenerate_one_sided(addable0: int, addable1: int, ideal0: int, ideal1: int) -> Tuple[int, int]:
    """Zero both addable amounts when a one-sided range would get <= 1 unit.

    The side the range requires is token1 when ``ideal0 == 0`` and token0 when
    ``ideal1 == 0``. Two-sided ranges pass through unchanged.
    """
    if ideal0 == 0 and addable1 <= 1:
        return 0, 0
    if ideal1 == 0 and addable0 <= 1:
        return 0, 0
    return addable0, addable1
