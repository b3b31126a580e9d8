"""Scaled-integer arithmetic for ratios and prices.

Every function is stateless and operates on plain Python ints, bounded to the
uint256 domain the amounts live in. Python ints never wrap, so the bounds are
checked explicitly and reported as errors instead of being clamped.

Two fixed-point bases are used throughout:
- ``Q64`` represents 1.0 for fractions (bonuses, swap floor).
- ``Q96`` represents 1.0 for prices (``sqrtPriceX96`` and ``priceX96``).

Multiplications always happen before divisions; ``//`` floors.
"""

from __future__ import annotations

from autocompound.core.errors import ArithmeticOverflow, ArithmeticUnderflow, ZeroDenominator


Q64: int = 1 << 64
Q96: int = 1 << 96
MAX_UINT256: int = (1 << 256) - 1
BPS_SCALE: int = 10_000


def _require_uint(name: str, value: int) -> None:
    if not isinstance(value, int) or isinstance(value, bool):
        raise TypeError(f"{name} must be an int")
    if value < 0:
        raise ArithmeticUnderflow(f"{name} must be non-negative: {value}")
    if value > MAX_UINT256:
        raise ArithmeticOverflow(f"{name} exceeds uint256: {value}")


def checked_add(a: int, b: int) -> int:
    """``a + b``; raises ``ArithmeticOverflow`` past uint256."""
    _require_uint("a", a)
    _require_uint("b", b)
    out = a + b
    if out > MAX_UINT256:
        raise ArithmeticOverflow(f"addition overflow: {a} + {b}")
    return out


def checked_sub(a: int, b: int) -> int:
    """``a - b``; raises ``ArithmeticUnderflow`` when ``b > a``."""
    _require_uint("a", a)
    _require_uint("b", b)
    if b > a:
        raise ArithmeticUnderflow(f"subtraction underflow: {a} - {b}")
    return a - b


def checked_mul(a: int, b: int) -> int:
    _require_uint("a", a)
    _require_uint("b", b)
    out = a * b
    if out > MAX_UINT256:
        raise ArithmeticOverflow(f"multiplication overflow: {a} * {b}")
    return out


def mul_div(a: int, b: int, denominator: int) -> int:
    """``floor(a * b / denominator)`` with a full-precision intermediate.

    The intermediate product may exceed 256 bits (as with a 512-bit mulDiv);
    only the result has to fit.
    """
    _require_uint("a", a)
    _require_uint("b", b)
    _require_uint("denominator", denominator)
    if denominator == 0:
        raise ZeroDenominator("mul_div by zero")
    out = (a * b) // denominator
    if out > MAX_UINT256:
        raise ArithmeticOverflow(f"mul_div overflow: {a} * {b} / {denominator}")
    return out


def mul_div_rounding_up(a: int, b: int, denominator: int) -> int:
    out = mul_div(a, b, denominator)
    if (a * b) % denominator:
        out = checked_add(out, 1)
    return out


def div_rounding_up(a: int, denominator: int) -> int:
    _require_uint("a", a)
    _require_uint("denominator", denominator)
    if denominator == 0:
        raise ZeroDenominator("div_rounding_up by zero")
    return -(-a // denominator)


def price_x96_from_sqrt(sqrt_price_x96: int) -> int:
    """token1-per-token0 price in Q96 from a Q96 square-root price."""
    return mul_div(sqrt_price_x96, sqrt_price_x96, Q96)


def bps_to_x64(bps: int) -> int:
    """Convert basis points to a Q64 fraction, rounding up.

    ``bps_to_x64(500)`` is the smallest Q64 value that is not below 5%.
    """
    if not isinstance(bps, int) or isinstance(bps, bool):
        raise TypeError("bps must be an int")
    if not (0 <= bps <= BPS_SCALE):
        raise ValueError(f"bps must be in [0, {BPS_SCALE}]: {bps}")
    return div_rounding_up(bps * Q64, BPS_SCALE)


def token0_value(amount0: int, amount1: int, price_x96: int) -> int:
    """Total value of ``(amount0, amount1)`` expressed in token0 units."""
    return checked_add(amount0, mul_div(amount1, Q96, price_x96))


def token1_value(amount0: int, amount1: int, price_x96: int) -> int:
    """Total value of ``(amount0, amount1)`` expressed in token1 units."""
    return checked_add(amount1, mul_div(amount0, price_x96, Q96))
