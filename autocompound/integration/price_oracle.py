"""
Oracle adapter (imperative shell).

Reads spot and time-weighted-average ticks from a ``PriceVenue`` and hands them
to the pure reducers in ``core/oracle.py``. Reads only; the venue's own
accounting is never touched.
"""

from __future__ import annotations

import logging

from autocompound.core.oracle import TWAP_SECONDS, PoolKey, PriceSnapshot, make_snapshot, twap_tick_from_cumulatives
from autocompound.integration.interfaces import PriceVenue


logger = logging.getLogger(__name__)


class PriceOracle:
    def __init__(self, venue: PriceVenue, window_seconds: int = TWAP_SECONDS) -> None:
        if window_seconds <= 0:
            raise ValueError("window_seconds must be positive")
        self._venue = venue
        self._window = int(window_seconds)

    @property
    def window_seconds(self) -> int:
        return self._window

    def spot_tick(self, pool: PoolKey) -> int:
        return self._venue.get_spot_tick(pool)

    def twap_tick(self, pool: PoolKey) -> int:
        cumulatives = self._venue.get_cumulative_ticks(pool, [self._window, 0])
        return twap_tick_from_cumulatives(list(cumulatives), self._window)

    def snapshot(self, pool: PoolKey) -> PriceSnapshot:
        snap = make_snapshot(
            sqrt_price_x96=self._venue.get_sqrt_price_x96(pool),
            tick=self.spot_tick(pool),
            twap_tick=self.twap_tick(pool),
        )
        logger.debug(
            "price snapshot %s/%s fee=%d: tick=%d twap_tick=%d",
            pool.token0, pool.token1, pool.fee, snap.tick, snap.twap_tick,
        )
        return snap
