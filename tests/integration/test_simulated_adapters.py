from __future__ import annotations

import pytest

from autocompound.core.errors import (
    CustodyError,
    DeadlineExpired,
    InsufficientOutput,
    OracleUnavailable,
    SwapFailed,
    TransferFailed,
)
from autocompound.core.fixed_point import MAX_UINT256
from autocompound.core.oracle import PoolKey
from autocompound.integration.interfaces import SwapPath
from autocompound.integration.simulated import (
    InMemoryPositionManager,
    ManualClock,
    SimulatedVenue,
    TokenBank,
)


TOKEN0 = "0x" + "11" * 20
TOKEN1 = "0x" + "22" * 20
ALICE = "0x" + "aa" * 20
BOB = "0x" + "bb" * 20


class TestTokenBank:
    def test_transfer_moves_balance(self) -> None:
        bank = TokenBank()
        bank.mint(TOKEN0, ALICE, 10)
        bank.transfer(TOKEN0, ALICE, BOB, 4)
        assert bank.balance_of(TOKEN0, ALICE) == 6
        assert bank.balance_of(TOKEN0, BOB) == 4
        assert bank.total_supply(TOKEN0) == 10

    def test_transfer_without_funds(self) -> None:
        bank = TokenBank()
        with pytest.raises(TransferFailed):
            bank.transfer(TOKEN0, ALICE, BOB, 1)

    def test_transfer_from_spends_allowance(self) -> None:
        bank = TokenBank()
        bank.mint(TOKEN0, ALICE, 10)
        bank.approve(TOKEN0, ALICE, BOB, 6)
        bank.transfer_from(TOKEN0, BOB, ALICE, BOB, 4)
        assert bank.allowance(TOKEN0, ALICE, BOB) == 2
        with pytest.raises(TransferFailed):
            bank.transfer_from(TOKEN0, BOB, ALICE, BOB, 3)

    def test_unlimited_allowance_is_not_spent(self) -> None:
        bank = TokenBank()
        bank.mint(TOKEN0, ALICE, 10)
        bank.approve(TOKEN0, ALICE, BOB, MAX_UINT256)
        bank.transfer_from(TOKEN0, BOB, ALICE, BOB, 10)
        assert bank.allowance(TOKEN0, ALICE, BOB) == MAX_UINT256


def _venue(fee: int = 3000) -> tuple[ManualClock, TokenBank, SimulatedVenue, PoolKey]:
    clock = ManualClock()
    bank = TokenBank()
    venue = SimulatedVenue(bank, clock)
    pool = PoolKey(token0=TOKEN0, token1=TOKEN1, fee=fee)
    venue.add_pool(pool, 0, at=clock() - 300)
    bank.mint(TOKEN0, venue.address, 10**12)
    bank.mint(TOKEN1, venue.address, 10**12)
    return clock, bank, venue, pool


class TestSimulatedVenue:
    def test_cumulative_ticks_follow_history(self) -> None:
        clock, _bank, venue, pool = _venue()
        venue.set_tick(pool, -3)
        clock.advance(100)
        venue.set_tick(pool, -2)
        clock.advance(200)
        start, end = venue.get_cumulative_ticks(pool, [300, 0])
        assert end - start == -3 * 100 + -2 * 200
        assert venue.get_spot_tick(pool) == -2

    def test_history_too_short(self) -> None:
        clock, _bank, venue, pool = _venue()
        with pytest.raises(OracleUnavailable):
            venue.get_cumulative_ticks(pool, [301, 0])

    def test_unknown_pool(self) -> None:
        _clock, _bank, venue, _pool = _venue()
        with pytest.raises(OracleUnavailable):
            venue.get_spot_tick(PoolKey(TOKEN0, TOKEN1, 500))

    def test_swap_charges_pool_fee(self) -> None:
        clock, bank, venue, _pool = _venue(fee=3000)
        bank.mint(TOKEN0, ALICE, 1_000_000)
        bank.approve(TOKEN0, ALICE, venue.address, MAX_UINT256)

        out = venue.swap_exact_in(SwapPath(TOKEN0, 3000, TOKEN1), ALICE, BOB, clock() + 1, 1_000_000, 0)

        assert out == 997_000
        assert bank.balance_of(TOKEN1, BOB) == 997_000
        assert bank.balance_of(TOKEN0, ALICE) == 0

    def test_swap_reverse_direction(self) -> None:
        clock, bank, venue, _pool = _venue(fee=0)
        bank.mint(TOKEN1, ALICE, 500)
        bank.approve(TOKEN1, ALICE, venue.address, 500)
        assert venue.swap_exact_in(SwapPath(TOKEN1, 0, TOKEN0), ALICE, ALICE, clock(), 500, 500) == 500

    def test_swap_checks(self) -> None:
        clock, bank, venue, _pool = _venue(fee=3000)
        bank.mint(TOKEN0, ALICE, 100)
        bank.approve(TOKEN0, ALICE, venue.address, 100)
        path = SwapPath(TOKEN0, 3000, TOKEN1)
        with pytest.raises(InsufficientOutput):
            venue.swap_exact_in(path, ALICE, ALICE, clock(), 100, 100)
        with pytest.raises(DeadlineExpired):
            venue.swap_exact_in(path, ALICE, ALICE, clock() - 1, 100, 0)
        with pytest.raises(SwapFailed):
            venue.swap_exact_in(SwapPath(TOKEN0, 500, TOKEN1), ALICE, ALICE, clock(), 100, 0)


class TestInMemoryPositionManager:
    def _manager(self) -> tuple[ManualClock, TokenBank, InMemoryPositionManager]:
        clock, bank, venue, _pool = _venue(fee=3000)
        return clock, bank, InMemoryPositionManager(bank, venue, clock)

    def test_fees_accrue_and_collect(self) -> None:
        _clock, bank, manager = self._manager()
        pid = manager.mint(ALICE, TOKEN0, TOKEN1, 3000, -600, 600)
        manager.accrue_fees(pid, 5, 7)

        assert manager.collect_all(pid, BOB) == (5, 7)
        assert manager.collect_all(pid, BOB) == (0, 0)
        assert bank.balance_of(TOKEN1, BOB) == 7

    def test_increase_and_decrease(self) -> None:
        clock, bank, manager = self._manager()
        pid = manager.mint(ALICE, TOKEN0, TOKEN1, 3000, -600, 600)
        bank.mint(TOKEN0, ALICE, 1000)
        bank.mint(TOKEN1, ALICE, 1000)
        bank.approve(TOKEN0, ALICE, manager.address, MAX_UINT256)
        bank.approve(TOKEN1, ALICE, manager.address, MAX_UINT256)

        liquidity, used0, used1 = manager.increase_liquidity(pid, ALICE, 1000, 1000, 0, 0, clock())

        assert liquidity > 0
        assert 0 < used0 <= 1000 and 0 < used1 <= 1000
        assert bank.balance_of(TOKEN0, ALICE) == 1000 - used0

        amount0, amount1 = manager.decrease_liquidity(pid, liquidity, 0, 0, clock())
        assert amount0 <= used0 and amount1 <= used1
        assert manager.position_info(pid).liquidity == 0
        assert manager.collect_all(pid, ALICE) == (amount0, amount1)

    def test_zero_liquidity_rejected(self) -> None:
        clock, _bank, manager = self._manager()
        pid = manager.mint(ALICE, TOKEN0, TOKEN1, 3000, -600, 600)
        with pytest.raises(CustodyError):
            manager.increase_liquidity(pid, ALICE, 0, 0, 0, 0, clock())

    def test_decrease_more_than_held(self) -> None:
        clock, _bank, manager = self._manager()
        pid = manager.mint(ALICE, TOKEN0, TOKEN1, 3000, -600, 600)
        with pytest.raises(CustodyError):
            manager.decrease_liquidity(pid, 1, 0, 0, clock())

    def test_transfer_requires_holder(self) -> None:
        _clock, _bank, manager = self._manager()
        pid = manager.mint(ALICE, TOKEN0, TOKEN1, 3000, -600, 600)
        with pytest.raises(CustodyError):
            manager.transfer_position(BOB, BOB, pid)
        manager.transfer_position(ALICE, BOB, pid)
        assert manager.owner_of(pid) == BOB
