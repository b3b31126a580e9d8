"""
In-memory collaborators.

Deterministic stand-ins for the three external systems, used by the test suite
and for local simulation:
- ``TokenBank``: balances and allowances for any number of tokens
- ``SimulatedVenue``: constant-price pools with a tick history for TWAP reads
- ``InMemoryPositionManager``: concentrated-liquidity positions backed by the
  same tick and liquidity math the engine uses

Swaps execute at the pool's current price less the pool fee, with no price
impact. Nothing here is meant to model a real market.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Dict, List, Optional, Sequence, Tuple

from autocompound.core.errors import (
    CustodyError,
    DeadlineExpired,
    InsufficientBalance,
    InsufficientOutput,
    OracleUnavailable,
    SwapFailed,
    TransferFailed,
)
from autocompound.core.fixed_point import MAX_UINT256, Q96, mul_div, price_x96_from_sqrt
from autocompound.core.liquidity_amounts import get_amounts_for_liquidity, get_liquidity_for_amounts
from autocompound.core.oracle import PoolKey
from autocompound.core.tick_math import get_sqrt_ratio_at_tick, require_tick, sqrt_ratios_for_range
from autocompound.state.ledger import BalanceLedger
from autocompound.integration.interfaces import PositionCustody, PositionInfo, PriceVenue, SwapPath, TokenTransfer


logger = logging.getLogger(__name__)

# Pool fees are expressed in hundredths of a basis point.
FEE_DENOMINATOR: int = 1_000_000


class ManualClock:
    """Callable clock that only moves when told to."""

    def __init__(self, now: int = 1_700_000_000) -> None:
        self.now = now

    def __call__(self) -> int:
        return self.now

    def advance(self, seconds: int) -> None:
        if seconds < 0:
            raise ValueError("clock cannot move backwards")
        self.now += seconds


class TokenBank(TokenTransfer):
    """Token balances and allowances; ``MAX_UINT256`` allowances never decrease."""

    def __init__(self) -> None:
        self._balances = BalanceLedger()
        self._allowances: Dict[Tuple[str, str, str], int] = {}

    def mint(self, token: str, account: str, amount: int) -> None:
        self._balances.credit(account, token, amount)

    def balance_of(self, token: str, account: str) -> int:
        return self._balances.balance(account, token)

    def total_supply(self, token: str) -> int:
        return self._balances.total_of(token)

    def allowance(self, token: str, owner: str, spender: str) -> int:
        return self._allowances.get((token, owner, spender), 0)

    def approve(self, token: str, owner: str, spender: str, amount: int) -> None:
        self._allowances[(token, owner, spender)] = amount

    def _move(self, token: str, sender: str, recipient: str, amount: int) -> None:
        try:
            self._balances.debit(sender, token, amount)
        except InsufficientBalance as exc:
            raise TransferFailed(f"{sender} cannot send {amount} {token}: holds {exc.balance}") from exc
        self._balances.credit(recipient, token, amount)

    def transfer(self, token: str, sender: str, recipient: str, amount: int) -> None:
        self._move(token, sender, recipient, amount)

    def transfer_from(self, token: str, spender: str, owner: str, recipient: str, amount: int) -> None:
        allowed = self.allowance(token, owner, spender)
        if amount > allowed:
            raise TransferFailed(f"{spender} may move {allowed} {token} of {owner}, not {amount}")
        self._move(token, owner, recipient, amount)
        if allowed != MAX_UINT256:
            self._allowances[(token, owner, spender)] = allowed - amount


@dataclass
class _PoolState:
    # (since, tick) in ascending time order; the last entry is the current tick.
    history: List[Tuple[int, int]] = field(default_factory=list)

    @property
    def tick(self) -> int:
        return self.history[-1][1]

    def record(self, at: int, tick: int) -> None:
        if self.history and at < self.history[-1][0]:
            raise ValueError("tick history must move forward in time")
        if self.history and self.history[-1][0] == at:
            self.history[-1] = (at, tick)
        else:
            self.history.append((at, tick))

    def cumulative_at(self, t: int) -> int:
        if t < self.history[0][0]:
            raise OracleUnavailable(f"no observation at or before {t}")
        total = 0
        for i, (since, tick) in enumerate(self.history):
            if since >= t:
                break
            until = self.history[i + 1][0] if i + 1 < len(self.history) else t
            total += tick * (min(until, t) - since)
        return total


class SimulatedVenue(PriceVenue):
    def __init__(self, tokens: TokenBank, clock: ManualClock, address: str = "venue") -> None:
        self.address = address
        self._tokens = tokens
        self._clock = clock
        self._pools: Dict[PoolKey, _PoolState] = {}

    def add_pool(self, pool: PoolKey, tick: int, at: Optional[int] = None) -> None:
        require_tick("tick", tick)
        if pool in self._pools:
            raise ValueError(f"pool already exists: {pool}")
        state = _PoolState()
        state.record(self._clock() if at is None else at, tick)
        self._pools[pool] = state

    def set_tick(self, pool: PoolKey, tick: int) -> None:
        require_tick("tick", tick)
        self._pool(pool).record(self._clock(), tick)

    def _pool(self, pool: PoolKey) -> _PoolState:
        try:
            return self._pools[pool]
        except KeyError:
            raise OracleUnavailable(f"unknown pool: {pool}") from None

    def get_spot_tick(self, pool: PoolKey) -> int:
        return self._pool(pool).tick

    def get_sqrt_price_x96(self, pool: PoolKey) -> int:
        return get_sqrt_ratio_at_tick(self._pool(pool).tick)

    def get_cumulative_ticks(self, pool: PoolKey, seconds_agos: Sequence[int]) -> List[int]:
        state = self._pool(pool)
        now = self._clock()
        return [state.cumulative_at(now - ago) for ago in seconds_agos]

    def _route(self, path: SwapPath) -> Tuple[PoolKey, bool]:
        for pool in self._pools:
            if pool.fee != path.fee:
                continue
            if (pool.token0, pool.token1) == (path.token_in, path.token_out):
                return pool, True
            if (pool.token1, pool.token0) == (path.token_in, path.token_out):
                return pool, False
        raise SwapFailed(f"no pool for {path.token_in}->{path.token_out} at fee {path.fee}")

    def quote(self, pool: PoolKey, zero_for_one: bool, amount_in: int) -> int:
        """Output for ``amount_in`` at the current price, net of the pool fee."""
        price_x96 = price_x96_from_sqrt(self.get_sqrt_price_x96(pool))
        if zero_for_one:
            gross = mul_div(amount_in, price_x96, Q96)
        else:
            gross = mul_div(amount_in, Q96, price_x96)
        return mul_div(gross, FEE_DENOMINATOR - pool.fee, FEE_DENOMINATOR)

    def swap_exact_in(
        self,
        path: SwapPath,
        payer: str,
        recipient: str,
        deadline: int,
        amount_in: int,
        min_out: int,
    ) -> int:
        now = self._clock()
        if now > deadline:
            raise DeadlineExpired(deadline, now)
        if amount_in <= 0:
            raise SwapFailed("amount_in must be positive")
        pool, zero_for_one = self._route(path)
        amount_out = self.quote(pool, zero_for_one, amount_in)
        if amount_out < min_out:
            raise InsufficientOutput(amount_out, min_out)
        self._tokens.transfer_from(path.token_in, self.address, payer, self.address, amount_in)
        self._tokens.transfer(path.token_out, self.address, recipient, amount_out)
        logger.debug("swap %d %s -> %d %s", amount_in, path.token_in, amount_out, path.token_out)
        return amount_out


@dataclass
class _Position:
    owner: str
    token0: str
    token1: str
    fee: int
    tick_lower: int
    tick_upper: int
    liquidity: int = 0
    owed0: int = 0
    owed1: int = 0


class InMemoryPositionManager(PositionCustody):
    def __init__(
        self,
        tokens: TokenBank,
        venue: SimulatedVenue,
        clock: ManualClock,
        address: str = "positions",
    ) -> None:
        self.address = address
        self._tokens = tokens
        self._venue = venue
        self._clock = clock
        self._positions: Dict[int, _Position] = {}
        self._next_id = 1

    def mint(self, owner: str, token0: str, token1: str, fee: int, tick_lower: int, tick_upper: int) -> int:
        """Create an empty position for ``owner`` and return its id."""
        sqrt_ratios_for_range(tick_lower, tick_upper)
        position_id = self._next_id
        self._next_id += 1
        self._positions[position_id] = _Position(owner, token0, token1, fee, tick_lower, tick_upper)
        return position_id

    def accrue_fees(self, position_id: int, owed0: int, owed1: int) -> None:
        """Credit trading fees to a position, minting the backing tokens."""
        pos = self._position(position_id)
        self._tokens.mint(pos.token0, self.address, owed0)
        self._tokens.mint(pos.token1, self.address, owed1)
        pos.owed0 += owed0
        pos.owed1 += owed1

    def owner_of(self, position_id: int) -> str:
        return self._position(position_id).owner

    def _position(self, position_id: int) -> _Position:
        pos = self._positions.get(position_id)
        if pos is None:
            raise CustodyError(f"no such position: {position_id}")
        return pos

    def _check_deadline(self, deadline: int) -> None:
        now = self._clock()
        if now > deadline:
            raise DeadlineExpired(deadline, now)

    def _range(self, pos: _Position) -> Tuple[int, int, int]:
        sqrt_price = self._venue.get_sqrt_price_x96(PoolKey(pos.token0, pos.token1, pos.fee))
        sqrt_lower, sqrt_upper = sqrt_ratios_for_range(pos.tick_lower, pos.tick_upper)
        return sqrt_price, sqrt_lower, sqrt_upper

    def position_info(self, position_id: int) -> PositionInfo:
        pos = self._position(position_id)
        return PositionInfo(
            token0=pos.token0,
            token1=pos.token1,
            fee=pos.fee,
            tick_lower=pos.tick_lower,
            tick_upper=pos.tick_upper,
            liquidity=pos.liquidity,
            tokens_owed0=pos.owed0,
            tokens_owed1=pos.owed1,
        )

    def collect_all(self, position_id: int, recipient: str) -> Tuple[int, int]:
        pos = self._position(position_id)
        amount0, amount1 = pos.owed0, pos.owed1
        pos.owed0 = pos.owed1 = 0
        if amount0:
            self._tokens.transfer(pos.token0, self.address, recipient, amount0)
        if amount1:
            self._tokens.transfer(pos.token1, self.address, recipient, amount1)
        return amount0, amount1

    def increase_liquidity(
        self,
        position_id: int,
        payer: str,
        amount0: int,
        amount1: int,
        amount0_min: int,
        amount1_min: int,
        deadline: int,
    ) -> Tuple[int, int, int]:
        self._check_deadline(deadline)
        pos = self._position(position_id)
        sqrt_price, sqrt_lower, sqrt_upper = self._range(pos)
        liquidity = get_liquidity_for_amounts(sqrt_price, sqrt_lower, sqrt_upper, amount0, amount1)
        if liquidity == 0:
            raise CustodyError(f"amounts ({amount0}, {amount1}) mint no liquidity")
        used0, used1 = get_amounts_for_liquidity(sqrt_price, sqrt_lower, sqrt_upper, liquidity, round_up=True)
        used0, used1 = min(used0, amount0), min(used1, amount1)
        if used0 < amount0_min or used1 < amount1_min:
            raise CustodyError("increase_liquidity slippage check failed")
        if used0:
            self._tokens.transfer_from(pos.token0, self.address, payer, self.address, used0)
        if used1:
            self._tokens.transfer_from(pos.token1, self.address, payer, self.address, used1)
        pos.liquidity += liquidity
        return liquidity, used0, used1

    def decrease_liquidity(
        self,
        position_id: int,
        liquidity: int,
        amount0_min: int,
        amount1_min: int,
        deadline: int,
    ) -> Tuple[int, int]:
        self._check_deadline(deadline)
        pos = self._position(position_id)
        if liquidity <= 0 or liquidity > pos.liquidity:
            raise CustodyError(f"cannot remove {liquidity} of {pos.liquidity} liquidity")
        sqrt_price, sqrt_lower, sqrt_upper = self._range(pos)
        amount0, amount1 = get_amounts_for_liquidity(sqrt_price, sqrt_lower, sqrt_upper, liquidity)
        if amount0 < amount0_min or amount1 < amount1_min:
            raise CustodyError("decrease_liquidity slippage check failed")
        pos.liquidity -= liquidity
        pos.owed0 += amount0
        pos.owed1 += amount1
        return amount0, amount1

    def transfer_position(self, sender: str, recipient: str, position_id: int) -> None:
        pos = self._position(position_id)
        if pos.owner != sender:
            raise CustodyError(f"{sender} does not hold position {position_id}")
        pos.owner = recipient
