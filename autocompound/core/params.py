"""
Governed parameters and engine configuration.

``CompounderParams`` holds the four owner-governed values read by the core;
``EngineConfig`` holds deployment constants of one engine instance. Both are
frozen dataclasses: updates produce a new object through the validated
``with_*`` helpers, never by mutation.

Parameters can be loaded from YAML, either in raw Q64 units or in basis points:

    total_bonus_bps: 200
    compounder_bonus_bps: 100
    min_swap_ratio_bps: 100
    max_price_deviation: 100
"""

from __future__ import annotations

from dataclasses import dataclass, replace
from pathlib import Path
from typing import Any, Mapping, Union

import yaml

from autocompound.core.errors import InvalidParameter
from autocompound.core.fixed_point import Q64, bps_to_x64
from autocompound.core.tick_math import MAX_TICK, MIN_TICK


MAX_TOTAL_BONUS_X64: int = bps_to_x64(500)  # 5%
MAX_PRICE_DEVIATION: int = MAX_TICK - MIN_TICK
MAX_POSITIONS_PER_ACCOUNT: int = 100

DEFAULT_TOTAL_BONUS_X64: int = bps_to_x64(200)  # 2%
DEFAULT_COMPOUNDER_BONUS_X64: int = bps_to_x64(100)  # 1%
DEFAULT_MIN_SWAP_RATIO_X64: int = bps_to_x64(100)  # 1%
DEFAULT_MAX_PRICE_DEVIATION: int = 100


def _require_int(name: str, value: Any) -> int:
    if not isinstance(value, int) or isinstance(value, bool):
        raise InvalidParameter(f"{name} must be an int, got {value!r}")
    return value


@dataclass(frozen=True)
class CompounderParams:
    total_bonus_x64: int = DEFAULT_TOTAL_BONUS_X64
    compounder_bonus_x64: int = DEFAULT_COMPOUNDER_BONUS_X64
    min_swap_ratio_x64: int = DEFAULT_MIN_SWAP_RATIO_X64
    max_price_deviation: int = DEFAULT_MAX_PRICE_DEVIATION

    def __post_init__(self) -> None:
        total = _require_int("total_bonus_x64", self.total_bonus_x64)
        compounder = _require_int("compounder_bonus_x64", self.compounder_bonus_x64)
        min_swap = _require_int("min_swap_ratio_x64", self.min_swap_ratio_x64)
        max_dev = _require_int("max_price_deviation", self.max_price_deviation)

        if not (0 <= total <= MAX_TOTAL_BONUS_X64):
            raise InvalidParameter(f"total_bonus_x64 must be in [0, {MAX_TOTAL_BONUS_X64}]: {total}")
        if not (0 <= compounder <= total):
            raise InvalidParameter(
                f"compounder_bonus_x64 must be in [0, total_bonus_x64={total}]: {compounder}"
            )
        if not (0 <= min_swap <= Q64):
            raise InvalidParameter(f"min_swap_ratio_x64 must be in [0, {Q64}]: {min_swap}")
        if not (0 <= max_dev <= MAX_PRICE_DEVIATION):
            raise InvalidParameter(
                f"max_price_deviation must be in [0, {MAX_PRICE_DEVIATION}]: {max_dev}"
            )

    def with_total_bonus(self, total_bonus_x64: int) -> "CompounderParams":
        """The total bonus may only ever decrease."""
        _require_int("total_bonus_x64", total_bonus_x64)
        if total_bonus_x64 > self.total_bonus_x64:
            raise InvalidParameter(
                f"total_bonus_x64 may not increase: {total_bonus_x64} > {self.total_bonus_x64}"
            )
        return replace(self, total_bonus_x64=total_bonus_x64)

    def with_compounder_bonus(self, compounder_bonus_x64: int) -> "CompounderParams":
        return replace(self, compounder_bonus_x64=compounder_bonus_x64)

    def with_min_swap_ratio(self, min_swap_ratio_x64: int) -> "CompounderParams":
        return replace(self, min_swap_ratio_x64=min_swap_ratio_x64)

    def with_max_price_deviation(self, max_price_deviation: int) -> "CompounderParams":
        return replace(self, max_price_deviation=max_price_deviation)


@dataclass(frozen=True)
class EngineConfig:
    # Account the engine holds tokens and positions under.
    address: str = "compounder"
    # Protocol operator: governs parameters and receives the protocol share of bonuses.
    operator: str = "operator"
    max_positions_per_account: int = MAX_POSITIONS_PER_ACCOUNT
    # Deadlines further than this past the current time are rejected.
    max_deadline_delay_seconds: int = 3600

    def __post_init__(self) -> None:
        if not isinstance(self.address, str) or not self.address:
            raise ValueError("address must be a non-empty string")
        if not isinstance(self.operator, str) or not self.operator:
            raise ValueError("operator must be a non-empty string")
        if self.address == self.operator:
            raise ValueError("operator must differ from the engine address")
        for name, v in (
            ("max_positions_per_account", self.max_positions_per_account),
            ("max_deadline_delay_seconds", self.max_deadline_delay_seconds),
        ):
            if not isinstance(v, int) or isinstance(v, bool) or v <= 0:
                raise ValueError(f"{name} must be a positive int: {v!r}")


_BPS_KEYS = {
    "total_bonus_bps": "total_bonus_x64",
    "compounder_bonus_bps": "compounder_bonus_x64",
    "min_swap_ratio_bps": "min_swap_ratio_x64",
}
_RAW_KEYS = frozenset(
    ("total_bonus_x64", "compounder_bonus_x64", "min_swap_ratio_x64", "max_price_deviation")
)


def params_from_mapping(obj: Mapping[str, Any]) -> CompounderParams:
    """Build ``CompounderParams`` from a mapping of raw or basis-point keys."""
    if not isinstance(obj, Mapping):
        raise InvalidParameter("params must be a mapping")

    unknown = sorted(set(obj) - _RAW_KEYS - set(_BPS_KEYS))
    if unknown:
        raise InvalidParameter(f"unknown params keys: {', '.join(unknown)}")

    kwargs: dict[str, int] = {}
    for key, value in obj.items():
        if key in _BPS_KEYS:
            target = _BPS_KEYS[key]
            if target in obj:
                raise InvalidParameter(f"{key} and {target} are mutually exclusive")
            try:
                kwargs[target] = bps_to_x64(value)
            except (TypeError, ValueError) as exc:
                raise InvalidParameter(f"invalid {key}: {exc}") from exc
        else:
            kwargs[key] = _require_int(key, value)
    return CompounderParams(**kwargs)


def load_params(path: Union[str, Path]) -> CompounderParams:
    """Load ``CompounderParams`` from a YAML file."""
    obj = yaml.safe_load(Path(path).read_text(encoding="utf-8"))
    if obj is None:
        return CompounderParams()
    if not isinstance(obj, Mapping):
        raise InvalidParameter("params YAML must be a mapping")
    return params_from_mapping(obj)
