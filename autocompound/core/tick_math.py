"""
Tick -> square-root price conversion.

Integer-only and bit-exact with the on-chain tick table:
    price(tick) = 1.0001 ** tick
    sqrtPriceX96(tick) = sqrt(price(tick)) * 2**96, rounded up from Q128.128
"""

from __future__ import annotations

from typing import Tuple


MIN_TICK: int = -887272
MAX_TICK: int = 887272

MIN_SQRT_RATIO: int = 4295128739
MAX_SQRT_RATIO: int = 1461446703485210103287273052203988822378723970342

_MAX_UINT256 = (1 << 256) - 1

# sqrt(1.0001 ** -bit) in Q128.128 for each bit of |tick| above the lowest.
_TICK_BIT_FACTORS: Tuple[Tuple[int, int], ...] = (
    (0x2, 0xfff97272373d413259a46990580e213a),
    (0x4, 0xfff2e50f5f656932ef12357cf3c7fdcc),
    (0x8, 0xffe5caca7e10e4e61c3624eaa0941cd0),
    (0x10, 0xffcb9843d60f6159c9db58835c926644),
    (0x20, 0xff973b41fa98c081472e6896dfb254c0),
    (0x40, 0xff2ea16466c96a3843ec78b326b52861),
    (0x80, 0xfe5dee046a99a2a811c461f1969c3053),
    (0x100, 0xfcbe86c7900a88aedcffc83b479aa3a4),
    (0x200, 0xf987a7253ac413176f2b074cf7815e54),
    (0x400, 0xf3392b0822b70005940c7a398e4b70f3),
    (0x800, 0xe7159475a2c29b7443b29c7fa6e889d9),
    (0x1000, 0xd097f3bdfd2022b8845ad8f792aa5825),
    (0x2000, 0xa9f746462d870fdf8a65dc1f90e061e5),
    (0x4000, 0x70d869a156d2a1b890bb3df62baf32f7),
    (0x8000, 0x31be135f97d08fd981231505542fcfa6),
    (0x10000, 0x9aa508b5b7a84e1c677de54f3e99bc9),
    (0x20000, 0x5d6af8dedb81196699c329225ee604),
    (0x40000, 0x2216e584f5fa1ea926041bedfe98),
    (0x80000, 0x48a170391f7dc42444e8fa2),
)


def require_tick(name: str, tick: int) -> None:
    if not isinstance(tick, int) or isinstance(tick, bool):
        raise TypeError(f"{name} must be an int")
    if tick < MIN_TICK or tick > MAX_TICK:
        raise ValueError(f"{name} out of range [{MIN_TICK}, {MAX_TICK}]: {tick}")


def get_sqrt_ratio_at_tick(tick: int) -> int:
    """Return ``sqrtPriceX96`` for ``tick``.

    Raises:
        ValueError: if ``tick`` is outside ``[MIN_TICK, MAX_TICK]``.
    """
    require_tick("tick", tick)
    abs_tick = -tick if tick < 0 else tick

    if abs_tick & 0x1:
        ratio = 0xfffcb933bd6fad37aa2d162d1a594001
    else:
        ratio = 1 << 128
    for bit, factor in _TICK_BIT_FACTORS:
        if abs_tick & bit:
            ratio = (ratio * factor) >> 128

    if tick > 0:
        ratio = _MAX_UINT256 // ratio

    # Q128.128 -> Q64.96, rounding up.
    return (ratio >> 32) + (1 if ratio % (1 << 32) else 0)


def sqrt_ratios_for_range(tick_lower: int, tick_upper: int) -> Tuple[int, int]:
    """Square-root prices at both ends of ``[tick_lower, tick_upper]``."""
    require_tick("tick_lower", tick_lower)
    require_tick("tick_upper", tick_upper)
    if tick_lower >= tick_upper:
        raise ValueError(f"tick_lower must be below tick_upper: {tick_lower} >= {tick_upper}")
    return get_sqrt_ratio_at_tick(tick_lower), get_sqrt_ratio_at_tick(tick_upper)
