"""
Collaborator interfaces (imperative shell).

The engine talks to three external systems through these narrow contracts:
- ``PriceVenue``: pool prices, cumulative ticks and exact-in swaps.
- ``PositionCustody``: the non-fungible position registry.
- ``TokenTransfer``: token balances, transfers and allowances.

Each has one concrete adapter in ``simulated.py``. The core never depends on an
adapter's internal representation.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Sequence, Tuple

from autocompound.core.oracle import PoolKey


@dataclass(frozen=True)
class SwapPath:
    token_in: str
    fee: int
    token_out: str

    def __post_init__(self) -> None:
        if self.token_in == self.token_out:
            raise ValueError("swap path must connect two distinct tokens")


@dataclass(frozen=True)
class PositionInfo:
    token0: str
    token1: str
    fee: int
    tick_lower: int
    tick_upper: int
    liquidity: int
    tokens_owed0: int = 0
    tokens_owed1: int = 0

    @property
    def pool(self) -> PoolKey:
        return PoolKey(token0=self.token0, token1=self.token1, fee=self.fee)


class PriceVenue:
    """Interface for the pool/swap venue."""

    address: str

    def get_sqrt_price_x96(self, pool: PoolKey) -> int:
        raise NotImplementedError

    def get_spot_tick(self, pool: PoolKey) -> int:
        raise NotImplementedError

    def get_cumulative_ticks(self, pool: PoolKey, seconds_agos: Sequence[int]) -> Sequence[int]:
        """Cumulative tick at each ``seconds_ago`` before now, in the order given."""
        raise NotImplementedError

    def swap_exact_in(
        self,
        path: SwapPath,
        payer: str,
        recipient: str,
        deadline: int,
        amount_in: int,
        min_out: int,
    ) -> int:
        """Swap exactly ``amount_in`` pulled from ``payer``; returns the output sent to ``recipient``."""
        raise NotImplementedError


class PositionCustody:
    """Interface for the position registry primitives."""

    address: str

    def position_info(self, position_id: int) -> PositionInfo:
        raise NotImplementedError

    def collect_all(self, position_id: int, recipient: str) -> Tuple[int, int]:
        raise NotImplementedError

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
        """Returns ``(liquidity, added0, added1)``."""
        raise NotImplementedError

    def decrease_liquidity(
        self,
        position_id: int,
        liquidity: int,
        amount0_min: int,
        amount1_min: int,
        deadline: int,
    ) -> Tuple[int, int]:
        raise NotImplementedError

    def transfer_position(self, sender: str, recipient: str, position_id: int) -> None:
        raise NotImplementedError


class TokenTransfer:
    """Interface for token custody."""

    def balance_of(self, token: str, account: str) -> int:
        raise NotImplementedError

    def transfer(self, token: str, sender: str, recipient: str, amount: int) -> None:
        raise NotImplementedError

    def transfer_from(self, token: str, spender: str, owner: str, recipient: str, amount: int) -> None:
        raise NotImplementedError

    def approve(self, token: str, owner: str, spender: str, amount: int) -> None:
        raise NotImplementedError
