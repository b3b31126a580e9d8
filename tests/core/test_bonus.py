from __future__ import annotations

from autocompound.core.bonus import (
    BonusMode,
    CallerRole,
    addable_amounts,
    adjust_delta_for_bonus,
    caller_role,
    compute_fees,
    distribute_fees,
    reserve_single_token_bonus,
)
from autocompound.core.fixed_point import Q64, Q96, bps_to_x64


SIXTEENTH = Q64 // 16  # 6.25%, exact in Q64


class TestCallerRole:
    def test_owner_takes_precedence_over_operator(self) -> None:
        assert caller_role("op", "op", "op") is CallerRole.OWNER

    def test_operator(self) -> None:
        assert caller_role("op", "alice", "op") is CallerRole.OPERATOR

    def test_third_party(self) -> None:
        assert caller_role("bob", "alice", "op") is CallerRole.THIRD_PARTY


class TestReserve:
    def test_token0_mode_reserves_from_total_value(self) -> None:
        assert reserve_single_token_bonus(BonusMode.TOKEN_0, 1000, 1000, Q96, SIXTEENTH) == (125, 0)

    def test_token1_mode(self) -> None:
        assert reserve_single_token_bonus(BonusMode.TOKEN_1, 1000, 1000, Q96, SIXTEENTH) == (0, 125)

    def test_split_mode_reserves_nothing(self) -> None:
        assert reserve_single_token_bonus(BonusMode.NONE, 1000, 1000, Q96, SIXTEENTH) == (0, 0)


class TestAdjustDelta:
    def test_keep_token0_reduces_token0_sale(self) -> None:
        assert adjust_delta_for_bonus(500, True, BonusMode.TOKEN_0, 100, 0, 1000, 1000, Q96) == (400, True)

    def test_keep_token0_flips_small_sale(self) -> None:
        assert adjust_delta_for_bonus(100, True, BonusMode.TOKEN_0, 300, 0, 1000, 1000, Q96) == (200, False)

    def test_keep_token0_grows_token0_purchase(self) -> None:
        assert adjust_delta_for_bonus(100, False, BonusMode.TOKEN_0, 300, 0, 1000, 1000, Q96) == (400, False)

    def test_keep_token1_reduces_token1_sale(self) -> None:
        # reserved1 = 200 token1 is 100 token0 at price 2.
        result = adjust_delta_for_bonus(300, False, BonusMode.TOKEN_1, 0, 200, 1000, 1000, 2 * Q96)
        assert result == (200, False)

    def test_keep_token1_grows_token0_sale(self) -> None:
        result = adjust_delta_for_bonus(300, True, BonusMode.TOKEN_1, 0, 200, 1000, 1000, 2 * Q96)
        assert result == (400, True)

    def test_capped_by_balance_of_sold_token(self) -> None:
        assert adjust_delta_for_bonus(900, True, BonusMode.TOKEN_1, 0, 400, 1000, 0, Q96) == (1000, True)
        assert adjust_delta_for_bonus(100, True, BonusMode.TOKEN_0, 300, 0, 1000, 50, Q96) == (50, False)

    def test_split_mode_unchanged(self) -> None:
        assert adjust_delta_for_bonus(7, True, BonusMode.NONE, 0, 0, 10, 10, Q96) == (7, True)


class TestAddable:
    def test_owner_adds_everything(self) -> None:
        assert addable_amounts(1700, 1700, True, BonusMode.NONE, SIXTEENTH, 0, 0) == (1700, 1700)

    def test_split_mode_leaves_room_for_bonus(self) -> None:
        assert addable_amounts(1700, 340, False, BonusMode.NONE, SIXTEENTH, 0, 0) == (1600, 320)

    def test_single_token_mode_subtracts_reservation(self) -> None:
        assert addable_amounts(1000, 1000, False, BonusMode.TOKEN_0, SIXTEENTH, 125, 0) == (875, 1000)
        assert addable_amounts(1000, 1000, False, BonusMode.TOKEN_1, SIXTEENTH, 0, 125) == (1000, 875)

    def test_reservation_larger_than_balance(self) -> None:
        assert addable_amounts(100, 1000, False, BonusMode.TOKEN_0, SIXTEENTH, 125, 0) == (0, 1000)


class TestFees:
    def test_split_mode_example(self) -> None:
        total = bps_to_x64(500)
        fees0, fees1 = compute_fees(1000, 0, Q96, BonusMode.NONE, total, 10**6, 10**6)
        assert (fees0, fees1) == (50, 0)
        split = distribute_fees(fees0, fees1, CallerRole.THIRD_PARTY, total, bps_to_x64(100))
        assert (split.caller0, split.operator0) == (10, 40)

    def test_single_token_fee_on_total_value(self) -> None:
        assert compute_fees(1000, 1000, Q96, BonusMode.TOKEN_0, SIXTEENTH, 10**6, 10**6) == (125, 0)
        assert compute_fees(1000, 1000, Q96, BonusMode.TOKEN_1, SIXTEENTH, 10**6, 10**6) == (0, 125)

    def test_fees_capped_by_leftover(self) -> None:
        assert compute_fees(1000, 1000, Q96, BonusMode.TOKEN_0, SIXTEENTH, 100, 0) == (100, 0)


class TestDistribute:
    def test_owner_pays_nothing(self) -> None:
        split = distribute_fees(100, 100, CallerRole.OWNER, SIXTEENTH, SIXTEENTH // 2)
        assert (split.caller0, split.caller1, split.operator0, split.operator1) == (0, 0, 0, 0)

    def test_operator_takes_everything(self) -> None:
        split = distribute_fees(100, 60, CallerRole.OPERATOR, SIXTEENTH, SIXTEENTH // 2)
        assert (split.caller0, split.caller1, split.operator0, split.operator1) == (0, 0, 100, 60)

    def test_third_party_share(self) -> None:
        split = distribute_fees(100, 60, CallerRole.THIRD_PARTY, SIXTEENTH, SIXTEENTH // 2)
        assert (split.caller0, split.caller1, split.operator0, split.operator1) == (50, 30, 50, 30)

    def test_zero_total_bonus(self) -> None:
        split = distribute_fees(3, 0, CallerRole.THIRD_PARTY, 0, 0)
        assert (split.caller0, split.operator0) == (0, 3)
