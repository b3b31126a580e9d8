"""
Compounding engine (imperative shell).

This wires the pure kernels in ``core/`` to the external collaborators:
- reads and guards the pool price (``PriceOracle`` + ``price_guard``)
- plans the rebalancing swap (``planner`` + ``bonus``) and executes it on the venue
- redeposits through the position custody and books leftovers and bonuses in
  the ``BalanceLedger``
- tracks custodied positions in the ``PositionRegistry``

Every public mutating operation runs as one serialized transaction:
- a nested entry (e.g. the venue calling back into the engine) is rejected
  with ``ReentrantCall``
- on any error, the ledger, the registry and the parameters are restored to
  their state at entry before the error propagates
"""

from __future__ import annotations

import logging
import time
from contextlib import contextmanager
from dataclasses import dataclass
from typing import Callable, Dict, Iterator, Optional, Set, Tuple

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
from autocompound.core.errors import (
    DeadlineExpired,
    DeadlineTooFar,
    IdenticalTokens,
    NotOperator,
    NotPositionOwner,
    PriceDeviation,
    ReentrantCall,
    ZeroAmount,
)
from autocompound.core.fixed_point import MAX_UINT256, checked_add, checked_sub
from autocompound.core.oracle import PoolKey, PriceSnapshot
from autocompound.core.params import CompounderParams, EngineConfig
from autocompound.core.planner import (
    SwapPlan,
    below_swap_floor,
    compute_swap_delta,
    ideal_amounts,
    quoted_output,
    swap_input,
    zero_degenerate_one_sided,
)
from autocompound.core.price_guard import check_snapshot
from autocompound.state.ledger import BalanceLedger
from autocompound.state.registry import PositionRegistry
from autocompound.integration.interfaces import PositionCustody, PositionInfo, PriceVenue, SwapPath, TokenTransfer
from autocompound.integration.price_oracle import PriceOracle


logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class CompoundResult:
    bonus0: int
    bonus1: int
    compounded0: int
    compounded1: int
    fees0: int
    fees1: int
    liquidity: int
    plan: SwapPlan


@dataclass(frozen=True)
class IncreaseResult:
    liquidity: int
    added0: int
    added1: int
    refund0: int
    refund1: int


class Compounder:
    """Auto-compounding engine for custodied concentrated-liquidity positions."""

    def __init__(
        self,
        venue: PriceVenue,
        custody: PositionCustody,
        tokens: TokenTransfer,
        params: Optional[CompounderParams] = None,
        config: Optional[EngineConfig] = None,
        clock: Optional[Callable[[], float]] = None,
    ) -> None:
        self.config = config if config is not None else EngineConfig()
        self._params = params if params is not None else CompounderParams()
        self._venue = venue
        self._custody = custody
        self._tokens = tokens
        self._oracle = PriceOracle(venue)
        self._clock = clock if clock is not None else time.time
        self.ledger = BalanceLedger()
        self.registry = PositionRegistry(max_positions=self.config.max_positions_per_account)
        self._entered = False
        self._approved: Set[Tuple[str, str]] = set()

    # -- Read helpers ---------------------------------------------------------

    @property
    def address(self) -> str:
        return self.config.address

    @property
    def operator(self) -> str:
        return self.config.operator

    @property
    def params(self) -> CompounderParams:
        return self._params

    def balance_of(self, account: str, token: str) -> int:
        return self.ledger.balance(account, token)

    def balances_of(self, account: str) -> Dict[str, int]:
        return self.ledger.balances_of(account)

    def positions_of(self, account: str) -> Tuple[int, ...]:
        return self.registry.positions_of(account)

    def owner_of(self, position_id: int) -> Optional[str]:
        return self.registry.owner_of(position_id)

    # -- Transaction scope ----------------------------------------------------

    @contextmanager
    def _transaction(self, name: str) -> Iterator[None]:
        if self._entered:
            raise ReentrantCall(f"{name} entered while another operation is running")
        self._entered = True
        ledger_snapshot = self.ledger.snapshot()
        registry_snapshot = self.registry.snapshot()
        params = self._params
        try:
            yield
        except Exception:
            self.ledger.restore(ledger_snapshot)
            self.registry.restore(registry_snapshot)
            self._params = params
            logger.debug("%s aborted; state restored", name)
            raise
        finally:
            self._entered = False

    # -- Validation helpers ---------------------------------------------------

    def _now(self) -> int:
        return int(self._clock())

    def _check_deadline(self, deadline: int) -> None:
        now = self._now()
        if deadline < now:
            raise DeadlineExpired(deadline, now)
        latest = now + self.config.max_deadline_delay_seconds
        if deadline > latest:
            raise DeadlineTooFar(deadline, latest)

    def _require_operator(self, caller: str) -> None:
        if caller != self.operator:
            raise NotOperator(f"{caller} is not the operator")

    def _require_position_owner(self, caller: str, position_id: int) -> str:
        owner = self.registry.require_owner(position_id)
        if caller != owner:
            raise NotPositionOwner(position_id, caller)
        return owner

    @staticmethod
    def _pool_key(token0: str, token1: str, fee: int) -> PoolKey:
        if token0 == token1:
            raise IdenticalTokens(f"token0 and token1 are both {token0}")
        return PoolKey(token0=token0, token1=token1, fee=fee)

    def _pool_of(self, info: PositionInfo) -> PoolKey:
        if info.token0 == info.token1:
            raise IdenticalTokens(f"position pairs {info.token0} with itself")
        return info.pool

    def _read_price(self, pool: PoolKey) -> PriceSnapshot:
        snapshot = self._oracle.snapshot(pool)
        try:
            check_snapshot(snapshot, self._params.max_price_deviation)
        except PriceDeviation as exc:
            logger.warning("price check failed for %s/%s: %s", pool.token0, pool.token1, exc)
            raise
        return snapshot

    # -- Token plumbing -------------------------------------------------------

    def _ensure_approval(self, token: str, spender: str) -> None:
        key = (token, spender)
        if key in self._approved:
            return
        self._tokens.approve(token, self.address, spender, MAX_UINT256)
        self._approved.add(key)

    def _pay(self, token: str, recipient: str, amount: int) -> None:
        self._tokens.transfer(token, self.address, recipient, amount)

    def _swap(self, token_in: str, fee: int, token_out: str, amount_in: int, deadline: int) -> int:
        self._ensure_approval(token_in, self._venue.address)
        return self._venue.swap_exact_in(
            SwapPath(token_in=token_in, fee=fee, token_out=token_out),
            self.address,
            self.address,
            deadline,
            amount_in,
            0,
        )

    def _increase(self, position_id: int, info: PositionInfo, addable0: int, addable1: int, deadline: int) -> Tuple[int, int, int]:
        if addable0 == 0 and addable1 == 0:
            return 0, 0, 0
        self._ensure_approval(info.token0, self._custody.address)
        self._ensure_approval(info.token1, self._custody.address)
        return self._custody.increase_liquidity(position_id, self.address, addable0, addable1, 0, 0, deadline)

    # -- Planner --------------------------------------------------------------

    def _plan_and_swap(
        self,
        pool: PoolKey,
        tick_lower: int,
        tick_upper: int,
        amount0: int,
        amount1: int,
        deadline: int,
        bonus_mode: BonusMode,
        is_owner: bool,
        ignore_swap_floor: bool,
        snapshot: PriceSnapshot,
    ) -> SwapPlan:
        params = self._params
        price_x96 = snapshot.price_x96

        ideal0, ideal1 = ideal_amounts(snapshot.sqrt_price_x96, tick_lower, tick_upper)
        delta0, sell0 = compute_swap_delta(amount0, amount1, price_x96, ideal0, ideal1)

        reserved0 = reserved1 = 0
        if not is_owner:
            reserved0, reserved1 = reserve_single_token_bonus(
                bonus_mode, amount0, amount1, price_x96, params.total_bonus_x64
            )
            delta0, sell0 = adjust_delta_for_bonus(
                delta0, sell0, bonus_mode, reserved0, reserved1, amount0, amount1, price_x96
            )

        out0, out1 = amount0, amount1
        swapped = False
        if delta0 > 0 and not (
            not ignore_swap_floor
            and below_swap_floor(delta0, amount0, amount1, price_x96, params.min_swap_ratio_x64)
        ):
            amount_in = swap_input(delta0, sell0, price_x96)
            if amount_in > 0 and quoted_output(amount_in, sell0, price_x96) > 0:
                if sell0:
                    amount_out = self._swap(pool.token0, pool.fee, pool.token1, amount_in, deadline)
                    out0 = checked_sub(amount0, amount_in)
                    out1 = checked_add(amount1, amount_out)
                else:
                    amount_out = self._swap(pool.token1, pool.fee, pool.token0, amount_in, deadline)
                    out0 = checked_add(amount0, amount_out)
                    out1 = checked_sub(amount1, amount_in)
                swapped = True
            else:
                logger.debug("swap of delta0=%d rounds to zero; skipped", delta0)
        elif delta0 > 0:
            logger.debug("delta0=%d below swap floor; skipped", delta0)

        addable0, addable1 = addable_amounts(
            out0, out1, is_owner, bonus_mode, params.total_bonus_x64, reserved0, reserved1
        )
        addable0, addable1 = zero_degenerate_one_sided(addable0, addable1, ideal0, ideal1)

        plan = SwapPlan(
            amount0_in=amount0,
            amount1_in=amount1,
            ideal0=ideal0,
            ideal1=ideal1,
            delta0=delta0,
            sell0=sell0,
            swapped=swapped,
            amount0=out0,
            amount1=out1,
            price_x96=price_x96,
            reserved0=reserved0,
            reserved1=reserved1,
            addable0=addable0,
            addable1=addable1,
        )
        logger.debug("swap plan: %s", plan)
        return plan

    def plan_and_swap(
        self,
        token0: str,
        token1: str,
        fee: int,
        tick_lower: int,
        tick_upper: int,
        amount0: int,
        amount1: int,
        deadline: int,
        bonus_mode: BonusMode = BonusMode.NONE,
        is_owner: bool = True,
        ignore_swap_floor: bool = False,
    ) -> SwapPlan:
        """Rebalance engine-held ``(amount0, amount1)`` toward a range's ideal ratio."""
        with self._transaction("plan_and_swap"):
            pool = self._pool_key(token0, token1, fee)
            self._check_deadline(deadline)
            snapshot = self._read_price(pool)
            return self._plan_and_swap(
                pool, tick_lower, tick_upper, amount0, amount1, deadline,
                bonus_mode, is_owner, ignore_swap_floor, snapshot,
            )

    # -- Compounding ----------------------------------------------------------

    def compound(
        self,
        caller: str,
        position_id: int,
        deadline: int,
        bonus_mode: BonusMode = BonusMode.NONE,
        withdraw_bonus: bool = False,
    ) -> CompoundResult:
        """
        Reinvest a position's collected fees plus the owner's carried balance.

        The price is checked before anything is collected. Bonuses are paid only
        when ``caller`` is not the owner and are credited to the ledger (or paid
        out at once when ``withdraw_bonus`` is set).
        """
        with self._transaction("compound"):
            owner = self.registry.require_owner(position_id)
            self._check_deadline(deadline)
            info = self._custody.position_info(position_id)
            pool = self._pool_of(info)
            snapshot = self._read_price(pool)
            params = self._params

            collected0, collected1 = self._custody.collect_all(position_id, self.address)
            carried0 = self.ledger.balance(owner, info.token0)
            carried1 = self.ledger.balance(owner, info.token1)
            self.ledger.debit(owner, info.token0, carried0)
            self.ledger.debit(owner, info.token1, carried1)
            amount0 = checked_add(carried0, collected0)
            amount1 = checked_add(carried1, collected1)

            role = caller_role(caller, owner, self.operator)
            is_owner = role is CallerRole.OWNER

            plan = self._plan_and_swap(
                pool, info.tick_lower, info.tick_upper, amount0, amount1, deadline,
                bonus_mode, is_owner, False, snapshot,
            )
            liquidity, compounded0, compounded1 = self._increase(
                position_id, info, plan.addable0, plan.addable1, deadline
            )

            left0 = checked_sub(plan.amount0, compounded0)
            left1 = checked_sub(plan.amount1, compounded1)
            fees0 = fees1 = 0
            if not is_owner:
                fees0, fees1 = compute_fees(
                    compounded0, compounded1, plan.price_x96, bonus_mode,
                    params.total_bonus_x64, left0, left1,
                )
            self.ledger.credit(owner, info.token0, checked_sub(left0, fees0))
            self.ledger.credit(owner, info.token1, checked_sub(left1, fees1))

            split = distribute_fees(
                fees0, fees1, role, params.total_bonus_x64, params.compounder_bonus_x64
            )
            self.ledger.credit(caller, info.token0, split.caller0)
            self.ledger.credit(caller, info.token1, split.caller1)
            self.ledger.credit(self.operator, info.token0, split.operator0)
            self.ledger.credit(self.operator, info.token1, split.operator1)

            if role is CallerRole.OPERATOR:
                bonus0, bonus1 = split.operator0, split.operator1
            else:
                bonus0, bonus1 = split.caller0, split.caller1

            if withdraw_bonus:
                self.ledger.sweep_both(caller, info.token0, info.token1, caller, self._pay)

            logger.info(
                "compounded position %d for %s by %s: added=(%d, %d) fees=(%d, %d) bonus=(%d, %d)",
                position_id, owner, caller, compounded0, compounded1, fees0, fees1, bonus0, bonus1,
            )
            return CompoundResult(
                bonus0=bonus0,
                bonus1=bonus1,
                compounded0=compounded0,
                compounded1=compounded1,
                fees0=fees0,
                fees1=fees1,
                liquidity=liquidity,
                plan=plan,
            )

    # -- Balances -------------------------------------------------------------

    def withdraw_balance(self, caller: str, token: str, recipient: str, amount: int) -> None:
        """Pay ``amount`` of ``caller``'s ledger balance of ``token`` to ``recipient``."""
        with self._transaction("withdraw_balance"):
            if amount == 0:
                raise ZeroAmount("withdrawal amount must be positive")
            self.ledger.debit(caller, token, amount)
            self._pay(token, recipient, amount)
            logger.info("withdrew %d %s for %s to %s", amount, token, caller, recipient)

    # -- Custody flows --------------------------------------------------------

    def deposit_position(self, caller: str, position_id: int) -> None:
        """Take custody of ``caller``'s position and register it to them."""
        with self._transaction("deposit_position"):
            self.registry.register(position_id, caller)
            self._custody.transfer_position(caller, self.address, position_id)
            logger.info("deposited position %d for %s", position_id, caller)

    def withdraw_position(
        self,
        caller: str,
        position_id: int,
        recipient: str,
        withdraw_balances: bool = False,
    ) -> Tuple[int, int]:
        """Release a position to ``recipient``; optionally sweep the owner's balances of its tokens."""
        with self._transaction("withdraw_position"):
            owner = self._require_position_owner(caller, position_id)
            info = self._custody.position_info(position_id)
            self.registry.deregister(owner, position_id)
            self._custody.transfer_position(self.address, recipient, position_id)
            swept = (0, 0)
            if withdraw_balances:
                swept = self.ledger.sweep_both(owner, info.token0, info.token1, recipient, self._pay)
            logger.info("withdrew position %d of %s to %s", position_id, owner, recipient)
            return swept

    def decrease_liquidity_and_collect(
        self,
        caller: str,
        position_id: int,
        liquidity: int,
        amount0_min: int,
        amount1_min: int,
        deadline: int,
        recipient: str,
    ) -> Tuple[int, int]:
        """Remove liquidity from a custodied position and collect everything to ``recipient``."""
        with self._transaction("decrease_liquidity_and_collect"):
            self._require_position_owner(caller, position_id)
            self._check_deadline(deadline)
            self._custody.decrease_liquidity(position_id, liquidity, amount0_min, amount1_min, deadline)
            return self._custody.collect_all(position_id, recipient)

    def swap_and_increase_liquidity(
        self,
        caller: str,
        position_id: int,
        amount0: int,
        amount1: int,
        deadline: int,
    ) -> IncreaseResult:
        """
        Add owner-supplied tokens to a position, swapping to the range ratio first.

        The swap floor is waived so as little as possible is left over;
        leftovers are refunded to ``caller``.
        """
        with self._transaction("swap_and_increase_liquidity"):
            self._require_position_owner(caller, position_id)
            self._check_deadline(deadline)
            info = self._custody.position_info(position_id)
            pool = self._pool_of(info)
            snapshot = self._read_price(pool)

            if amount0 > 0:
                self._tokens.transfer_from(info.token0, self.address, caller, self.address, amount0)
            if amount1 > 0:
                self._tokens.transfer_from(info.token1, self.address, caller, self.address, amount1)

            plan = self._plan_and_swap(
                pool, info.tick_lower, info.tick_upper, amount0, amount1, deadline,
                BonusMode.NONE, True, True, snapshot,
            )
            liquidity, added0, added1 = self._increase(
                position_id, info, plan.addable0, plan.addable1, deadline
            )
            refund0 = checked_sub(plan.amount0, added0)
            refund1 = checked_sub(plan.amount1, added1)
            if refund0 > 0:
                self._pay(info.token0, caller, refund0)
            if refund1 > 0:
                self._pay(info.token1, caller, refund1)
            return IncreaseResult(
                liquidity=liquidity, added0=added0, added1=added1, refund0=refund0, refund1=refund1
            )

    # -- Governance -----------------------------------------------------------

    def _update_params(self, caller: str, name: str, update: Callable[[CompounderParams], CompounderParams]) -> None:
        with self._transaction(name):
            self._require_operator(caller)
            self._params = update(self._params)
            logger.info("%s: %s", name, self._params)

    def set_total_bonus(self, caller: str, total_bonus_x64: int) -> None:
        self._update_params(caller, "set_total_bonus", lambda p: p.with_total_bonus(total_bonus_x64))

    def set_compounder_bonus(self, caller: str, compounder_bonus_x64: int) -> None:
        self._update_params(caller, "set_compounder_bonus", lambda p: p.with_compounder_bonus(compounder_bonus_x64))

    def set_min_swap_ratio(self, caller: str, min_swap_ratio_x64: int) -> None:
        self._update_params(caller, "set_min_swap_ratio", lambda p: p.with_min_swap_ratio(min_swap_ratio_x64))

    def set_max_price_deviation(self, caller: str, max_price_deviation: int) -> None:
        self._update_params(caller, "set_max_price_deviation", lambda p: p.with_max_price_deviation(max_price_deviation))
