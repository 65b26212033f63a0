"""
Single-slot strike-grid cache and strike interpolation.

Calibration prices the same quote many times while only the Heston
parameters move, so one cached grid is enough. Keys are compared field by
field with an absolute tolerance; the transform size is compared exactly.
"""

from __future__ import annotations

import logging
from dataclasses import astuple, dataclass

import numpy as np

from .carr_madan import StrikeGrid
from .errors import CacheCorruptError
from .fft_config import FftConfig
from .heston import HestonParams

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class GridKey:
    """Everything a strike grid depends on."""

    spot: float
    rate: float
    dividend_yield: float
    maturity: float
    v0: float
    kappa: float
    theta: float
    sigma: float
    rho: float
    n: int
    log_strike_range: float
    alpha: float
    eta: float

    def matches(self, other: GridKey, tolerance: float) -> bool:
        if self.n != other.n:
            return False
        mine, theirs = astuple(self), astuple(other)
        return all(abs(a - b) <= tolerance for a, b in zip(mine, theirs))


def grid_key(
    spot: float,
    maturity: float,
    rate: float,
    dividend_yield: float,
    params: HestonParams,
    config: FftConfig,
) -> GridKey:
    return GridKey(
        spot,
        rate,
        dividend_yield,
        maturity,
        *params.as_tuple(),
        config.n,
        config.log_strike_range,
        config.alpha,
        config.eta,
    )


class StrikeGridCache:
    """
    Holds at most one strike grid together with its key.

    Examples
    --------
    >>> cache = StrikeGridCache()
    >>> cache.valid
    False
    """

    def __init__(self) -> None:
        self._key: GridKey | None = None
        self._grid: StrikeGrid | None = None

    @property
    def valid(self) -> bool:
        return self._grid is not None

    @property
    def key(self) -> GridKey | None:
        return self._key

    def lookup(self, key: GridKey, tolerance: float) -> StrikeGrid | None:
        """Return the cached grid if ``key`` matches within ``tolerance``."""
        if self._grid is None or self._key is None:
            return None
        if not self._key.matches(key, tolerance):
            return None
        return self._grid

    def store(self, key: GridKey, grid: StrikeGrid) -> None:
        self._key = key
        self._grid = grid

    def clear(self) -> None:
        self._key = None
        self._grid = None


def interpolate_price(grid: StrikeGrid, strike: float) -> float:
    """
    Call price at ``strike`` from a strike grid.

    Strikes outside the grid take the price at the nearest end; inside, the
    bracketing pair is found by binary search and interpolated linearly in
    ``K``.

    Parameters
    ----------
    grid : StrikeGrid
        Grid with ascending strikes.
    strike : float
        Query strike.

    Returns
    -------
    float

    Raises
    ------
    CacheCorruptError
        If the prices used for the answer are non-finite.
    """

    strikes, prices = grid.strikes, grid.prices
    if strike <= strikes[0]:
        value = float(prices[0])
    elif strike >= strikes[-1]:
        value = float(prices[-1])
    else:
        i = int(np.searchsorted(strikes, strike, side="right")) - 1
        k_lo, k_hi = strikes[i], strikes[i + 1]
        c_lo, c_hi = prices[i], prices[i + 1]
        if not (np.isfinite(c_lo) and np.isfinite(c_hi)):
            raise CacheCorruptError(f"non-finite prices bracketing strike {strike:.6f}")
        weight = (strike - k_lo) / (k_hi - k_lo)
        return float(c_lo + weight * (c_hi - c_lo))

    if not np.isfinite(value):
        raise CacheCorruptError(f"non-finite boundary price for strike {strike:.6f}")
    return value
