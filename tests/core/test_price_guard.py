from __future__ import annotations

import pytest

from autocompound.core.errors import ExternalDependencyError, PriceDeviation
from autocompound.core.fixed_point import Q96
from autocompound.core.oracle import make_snapshot
from autocompound.core.price_guard import (
    check_price_deviation,
    check_snapshot,
    price_deviation,
    within_deviation,
)


def test_deviation_is_symmetric() -> None:
    assert price_deviation(1000, 800) == 200
    assert price_deviation(800, 1000) == 200
    assert price_deviation(-5, 5) == 10


def test_bound_is_strict() -> None:
    assert within_deviation(99, 0, 100)
    assert not within_deviation(100, 0, 100)
    assert not within_deviation(-100, 0, 100)


def test_zero_max_deviation_rejects_everything() -> None:
    with pytest.raises(PriceDeviation):
        check_price_deviation(0, 0, 0)


def test_rejection_carries_ticks() -> None:
    with pytest.raises(PriceDeviation) as excinfo:
        check_price_deviation(1000, 800, 100)
    assert excinfo.value.spot_tick == 1000
    assert excinfo.value.twap_tick == 800
    assert excinfo.value.max_deviation == 100
    assert isinstance(excinfo.value, ExternalDependencyError)


def test_check_snapshot() -> None:
    check_snapshot(make_snapshot(Q96, 0, 10), 11)
    with pytest.raises(PriceDeviation):
        check_snapshot(make_snapshot(Q96, 0, 10), 10)


def test_negative_max_rejected() -> None:
    with pytest.raises(ValueError):
        check_price_deviation(0, 0, -1)
