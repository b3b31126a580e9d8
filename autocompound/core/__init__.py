"""
Core compounding algorithms
"""

from .bonus import (
    BonusMode,
    CallerRole,
    FeeDistribution,
    addable_amounts,
    adjust_delta_for_bonus,
    caller_role,
    compute_fees,
    distribute_fees,
    reserve_single_token_bonus,
)
from .fixed_point import Q64, Q96, MAX_UINT256, bps_to_x64, mul_div, price_x96_from_sqrt
from .oracle import TWAP_SECONDS, PoolKey, PriceSnapshot, twap_tick_from_cumulatives
from .params import CompounderParams, EngineConfig, load_params, params_from_mapping
from .planner import (
    SwapPlan,
    below_swap_floor,
    compute_swap_delta,
    ideal_amounts,
    zero_degenerate_one_sided,
)
from .price_guard import check_price_deviation
from .tick_math import MAX_TICK, MIN_TICK, get_sqrt_ratio_at_tick

__all__ = [
    "BonusMode",
    "CallerRole",
    "FeeDistribution",
    "addable_amounts",
    "adjust_delta_for_bonus",
    "caller_role",
    "compute_fees",
    "distribute_fees",
    "reserve_single_token_bonus",
    "Q64",
    "Q96",
    "MAX_UINT256",
    "bps_to_x64",
    "mul_div",
    "price_x96_from_sqrt",
    "TWAP_SECONDS",
    "PoolKey",
    "PriceSnapshot",
    "twap_tick_from_cumulatives",
    "CompounderParams",
    "EngineConfig",
    "load_params",
    "params_from_mapping",
    "SwapPlan",
    "below_swap_floor",
    "compute_swap_delta",
    "ideal_amounts",
    "zero_degenerate_one_sided",
    "check_price_deviation",
    "MAX_TICK",
    "MIN_TICK",
    "get_sqrt_ratio_at_tick",
]
