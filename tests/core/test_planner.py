from __future__ import annotations

import pytest

from autocompound.core.fixed_point import Q96, bps_to_x64, mul_div, price_x96_from_sqrt
from autocompound.core.planner import (
    SwapPlan,
    below_swap_floor,
    compute_swap_delta,
    ideal_amounts,
    quoted_output,
    swap_input,
    zero_degenerate_one_sided,
)
from autocompound.core.tick_math import get_sqrt_ratio_at_tick


# ---------------------------------------------------------------------------
# Ideal amounts
# ---------------------------------------------------------------------------


class TestIdealAmounts:
    def test_in_range_needs_both(self) -> None:
        ideal0, ideal1 = ideal_amounts(Q96, -600, 600)
        assert ideal0 > 0
        assert ideal1 > 0

    def test_range_below_price_needs_token1_only(self) -> None:
        assert ideal_amounts(Q96, -1200, -600)[0] == 0

    def test_range_above_price_needs_token0_only(self) -> None:
        assert ideal_amounts(Q96, 600, 1200)[1] == 0

    def test_skewed_price_shifts_ratio(self) -> None:
        low0, low1 = ideal_amounts(get_sqrt_ratio_at_tick(-300), -600, 600)
        high0, high1 = ideal_amounts(get_sqrt_ratio_at_tick(300), -600, 600)
        assert low0 * high1 > high0 * low1


# ---------------------------------------------------------------------------
# Swap delta
# ---------------------------------------------------------------------------


class TestComputeSwapDelta:
    def test_sells_half_for_even_ratio(self) -> None:
        assert compute_swap_delta(1000, 0, Q96, 1, 1) == (500, True)

    def test_buys_token0_when_holding_token1(self) -> None:
        assert compute_swap_delta(0, 1000, Q96, 1, 1) == (500, False)

    def test_price_enters_denominator(self) -> None:
        # Token0 worth 2 token1; ideal holds equal value on both sides.
        delta0, sell0 = compute_swap_delta(1000, 0, 2 * Q96, 1, 2)
        assert (delta0, sell0) == (500, True)

    def test_one_sided_token1_range_sells_all_token0(self) -> None:
        assert compute_swap_delta(1000, 500, Q96, 0, 7) == (1000, True)

    def test_one_sided_token0_range_buys_with_all_token1(self) -> None:
        assert compute_swap_delta(1000, 1000, 2 * Q96, 7, 0) == (500, False)

    def test_matching_ratio_needs_no_swap(self) -> None:
        ideal0, ideal1 = ideal_amounts(Q96, -600, 600)
        delta0, _sell0 = compute_swap_delta(ideal0, ideal1, Q96, ideal0, ideal1)
        assert delta0 == 0

    def test_both_ideals_zero_rejected(self) -> None:
        with pytest.raises(ValueError):
            compute_swap_delta(1, 1, Q96, 0, 0)

    def test_wide_ratio_does_not_overflow(self) -> None:
        assert compute_swap_delta(10**18, 10**18, Q96, 2**200, 1) == (10**18 - 1, False)

    def test_deep_negative_tick_buys_within_token1_budget(self) -> None:
        sqrt_price = get_sqrt_ratio_at_tick(-600_000)
        price_x96 = price_x96_from_sqrt(sqrt_price)
        ideal0, ideal1 = ideal_amounts(sqrt_price, -600_200, -599_000)
        amount1 = 10**30

        delta0, sell0 = compute_swap_delta(10**18, amount1, price_x96, ideal0, ideal1)

        assert not sell0
        assert 0 < delta0 <= mul_div(amount1, Q96, price_x96)


# ---------------------------------------------------------------------------
# Floor, quote and degenerate ranges
# ---------------------------------------------------------------------------


def test_swap_floor_compares_against_total_value() -> None:
    one_percent = bps_to_x64(100)
    assert below_swap_floor(9, 1000, 0, Q96, one_percent)
    assert not below_swap_floor(11, 1000, 0, Q96, one_percent)
    assert not below_swap_floor(1, 1000, 0, Q96, 0)


def test_swap_input_and_quote() -> None:
    price = 2 * Q96
    assert swap_input(100, True, price) == 100
    assert swap_input(100, False, price) == 200
    assert quoted_output(100, True, price) == 200
    assert quoted_output(200, False, price) == 100
    assert quoted_output(1, False, price) == 0


def test_zero_degenerate_one_sided() -> None:
    assert zero_degenerate_one_sided(0, 1, 0, 5) == (0, 0)
    assert zero_degenerate_one_sided(9, 1, 0, 5) == (0, 0)
    assert zero_degenerate_one_sided(1, 0, 5, 0) == (0, 0)
    assert zero_degenerate_one_sided(0, 2, 0, 5) == (0, 2)
    assert zero_degenerate_one_sided(1, 1, 5, 5) == (1, 1)


def test_swap_plan_validation() -> None:
    fields = dict(
        amount0_in=10,
        amount1_in=0,
        ideal0=1,
        ideal1=1,
        delta0=5,
        sell0=True,
        swapped=True,
        amount0=5,
        amount1=5,
        price_x96=Q96,
        reserved0=0,
        reserved1=0,
        addable0=5,
        addable1=5,
    )
    plan = SwapPlan(**fields)
    assert not plan.one_sided

    with pytest.raises(ValueError):
        SwapPlan(**{**fields, "addable0": 6})
    with pytest.raises(ValueError):
        SwapPlan(**{**fields, "amount1": -1})
