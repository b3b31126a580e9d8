"""
Bonus / fee kernels (deterministic, integer-only).

The bonus is a ``total_bonus_x64`` fraction (Q64) of the value a compounding
adds to a position. It is paid only when the caller is not the position owner,
and is split between the caller (``compounder_bonus_x64`` out of
``total_bonus_x64``) and the protocol operator.

Two collection modes:
- ``BonusMode.NONE`` takes the fraction from each token independently.
- ``BonusMode.TOKEN_0`` / ``TOKEN_1`` take the whole bonus in one token; the
  planner's swap is shifted beforehand so enough of that token is left over.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum, unique
from typing import Tuple

from autocompound.core.fixed_point import Q64, Q96, checked_add, checked_sub, mul_div, token0_value, token1_value


@unique
class BonusMode(Enum):
    NONE = "none"
    TOKEN_0 = "token0"
    TOKEN_1 = "token1"


@unique
class CallerRole(Enum):
    OWNER = "owner"
    OPERATOR = "operator"
    THIRD_PARTY = "third_party"


@dataclass(frozen=True)
class FeeDistribution:
    caller0: int
    caller1: int
    operator0: int
    operator1: int

    def __post_init__(self) -> None:
        for name, v in (
            ("caller0", self.caller0),
            ("caller1", self.caller1),
            ("operator0", self.operator0),
            ("operator1", self.operator1),
        ):
            if not isinstance(v, int) or isinstance(v, bool):
                raise TypeError(f"{name} must be an int")
            if v < 0:
                raise ValueError(f"{name} must be non-negative: {v}")


def caller_role(caller: str, owner: str, operator: str) -> CallerRole:
    """Owner takes precedence, so an operator compounding its own position pays nothing."""
    if caller == owner:
        return CallerRole.OWNER
    if caller == operator:
        return CallerRole.OPERATOR
    return CallerRole.THIRD_PARTY


def reserve_single_token_bonus(
    mode: BonusMode,
    amount0: int,
    amount1: int,
    price_x96: int,
    total_bonus_x64: int,
) -> Tuple[int, int]:
    """Bonus to set aside in the requested token before swapping."""
    if mode is BonusMode.TOKEN_0:
        return mul_div(token0_value(amount0, amount1, price_x96), total_bonus_x64, Q64), 0
    if mode is BonusMode.TOKEN_1:
        return 0, mul_div(token1_value(amount0, amount1, price_x96), total_bonus_x64, Q64)
    return 0, 0


def adjust_delta_for_bonus(
    delta0: int,
    sell0: bool,
    mode: BonusMode,
    reserved0: int,
    reserved1: int,
    amount0: int,
    amount1: int,
    price_x96: int,
) -> Tuple[int, bool]:
    """Shift the planned swap so the reserved bonus stays in the requested token.

    Keeping extra token0 means selling less token0 (or buying more); keeping
    token1 is the mirror. When the offset is larger than the planned delta the
    direction flips and the excess becomes the new delta. The result never
    sells more of a token than is on hand.
    """
    if mode is BonusMode.TOKEN_0:
        offset, flip_when_selling0 = reserved0, True
    elif mode is BonusMode.TOKEN_1:
        offset, flip_when_selling0 = mul_div(reserved1, Q96, price_x96), False
    else:
        return delta0, sell0

    if sell0 == flip_when_selling0:
        if delta0 >= offset:
            delta0 = delta0 - offset
        else:
            delta0 = offset - delta0
            sell0 = not sell0
    else:
        delta0 = checked_add(delta0, offset)

    if sell0:
        cap = amount0
    else:
        cap = mul_div(amount1, Q96, price_x96)
    return min(delta0, cap), sell0


def addable_amounts(
    amount0: int,
    amount1: int,
    is_owner: bool,
    mode: BonusMode,
    total_bonus_x64: int,
    reserved0: int,
    reserved1: int,
) -> Tuple[int, int]:
    """Amounts cleared to flow into the position after the swap."""
    if is_owner:
        return amount0, amount1
    if mode is BonusMode.TOKEN_0:
        return (amount0 - reserved0 if amount0 > reserved0 else 0), amount1
    if mode is BonusMode.TOKEN_1:
        return amount0, (amount1 - reserved1 if amount1 > reserved1 else 0)
    # Solve for the base that leaves room for the bonus on top of it.
    scale = checked_add(Q64, total_bonus_x64)
    return mul_div(amount0, Q64, scale), mul_div(amount1, Q64, scale)


def compute_fees(
    added0: int,
    added1: int,
    price_x96: int,
    mode: BonusMode,
    total_bonus_x64: int,
    available0: int,
    available1: int,
) -> Tuple[int, int]:
    """Bonus owed on the amounts actually added, capped by what is left over.

    ``available*`` are the post-swap amounts minus what was added.
    """
    if mode is BonusMode.TOKEN_0:
        fees0 = mul_div(token0_value(added0, added1, price_x96), total_bonus_x64, Q64)
        fees1 = 0
    elif mode is BonusMode.TOKEN_1:
        fees0 = 0
        fees1 = mul_div(token1_value(added0, added1, price_x96), total_bonus_x64, Q64)
    else:
        fees0 = mul_div(added0, total_bonus_x64, Q64)
        fees1 = mul_div(added1, total_bonus_x64, Q64)
    return min(fees0, available0), min(fees1, available1)


def distribute_fees(
    fees0: int,
    fees1: int,
    role: CallerRole,
    total_bonus_x64: int,
    compounder_bonus_x64: int,
) -> FeeDistribution:
    """Split collected fees between caller and operator."""
    if role is CallerRole.OWNER:
        return FeeDistribution(caller0=0, caller1=0, operator0=0, operator1=0)
    if role is CallerRole.OPERATOR:
        return FeeDistribution(caller0=0, caller1=0, operator0=fees0, operator1=fees1)
    if total_bonus_x64 == 0:
        return FeeDistribution(caller0=0, caller1=0, operator0=fees0, operator1=fees1)

    caller0 = mul_div(fees0, compounder_bonus_x64, total_bonus_x64)
    caller1 = mul_div(fees1, compounder_bonus_x64, total_bonus_x64)
    return FeeDistribution(
        caller0=caller0,
        caller1=caller1,
        operator0=checked_sub(fees0, caller0),
        operator1=checked_sub(fees1, caller1),
    )
