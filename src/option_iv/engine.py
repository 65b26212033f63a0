"""
Pricing engine owning the transform caches.

A :class:`PricingEngine` keeps the strike-grid cache, the per-quote
precomputation and the chirp-z plan together, so independent engines can
price independent quotes without sharing state.
"""

from __future__ import annotations

import logging
import math
from dataclasses import dataclass, fields

import numpy as np
from numpy.typing import NDArray
from scipy.signal import CZT

from .carr_madan import Precomputation, StrikeGrid, build_strike_grid, make_transform_plan
from .errors import CacheCorruptError, NumericalError
from .fft_cache import StrikeGridCache, grid_key, interpolate_price
from .fft_config import FftConfig, adapt_fft_config, retry_configs
from .heston import HestonParams
from .pricing import bs_call, call_lower_bound, validate_option

logger = logging.getLogger(__name__)

# Failures that send a pricing attempt down the retry ladder.
RECOVERABLE_ERRORS = (NumericalError, FloatingPointError, OverflowError, ZeroDivisionError)

# Absolute price slack, per unit of spot, when checking call bounds.
BOUND_SLACK = 1e-4


@dataclass
class EngineStats:
    """Counters describing cache behaviour."""

    grid_builds: int = 0
    grid_hits: int = 0
    precomputation_builds: int = 0
    plan_builds: int = 0
    failed_builds: int = 0

    def reset(self) -> None:
        for field in fields(self):
            setattr(self, field.name, 0)


class PricingEngine:
    """
    Heston call pricer backed by a single-slot strike-grid cache.

    Parameters
    ----------
    config : FftConfig, optional
        Base transform settings. Defaults to ``FftConfig()``.

    Examples
    --------
    >>> engine = PricingEngine()
    >>> params = HestonParams(v0=0.04, kappa=1.5, theta=0.04, sigma=0.3, rho=-0.7)
    >>> price = engine.heston_call(100.0, 100.0, 1.0, 0.05, 0.0, params)
    >>> engine.stats.grid_builds
    1
    """

    def __init__(self, config: FftConfig | None = None) -> None:
        self.config = config or FftConfig()
        self.stats = EngineStats()
        self._grid_cache = StrikeGridCache()
        self._precomputation: Precomputation | None = None
        self._plan: CZT | None = None
        self._plan_key: tuple[int, float, float] | None = None

    def reset(self) -> None:
        """Drop the cached grid, the precomputation and the plan."""
        self._grid_cache.clear()
        self._precomputation = None
        self._plan = None
        self._plan_key = None
        self.stats.reset()

    def _precomputation_for(self, config: FftConfig, spot: float) -> Precomputation:
        if self._precomputation is None or not self._precomputation.matches(config, spot):
            self._precomputation = Precomputation.build(config, spot)
            self.stats.precomputation_builds += 1
        return self._precomputation

    def _plan_for(self, config: FftConfig) -> CZT:
        key = (config.n, config.eta, config.strike_spacing)
        if self._plan is None or self._plan_key != key:
            self._plan = make_transform_plan(config)
            self._plan_key = key
            self.stats.plan_builds += 1
        return self._plan

    def strike_grid(
        self,
        spot: float,
        maturity: float,
        rate: float,
        dividend_yield: float,
        params: HestonParams,
        config: FftConfig,
    ) -> StrikeGrid:
        """
        Return the strike grid for the given state, building it on a miss.

        ``config`` is used exactly as given. A failed build invalidates the
        cache and the error propagates.
        """

        key = grid_key(spot, maturity, rate, dividend_yield, params, config)
        cached = self._grid_cache.lookup(key, config.cache_tolerance)
        if cached is not None:
            self.stats.grid_hits += 1
            return cached

        logger.debug("Building FFT strike grid (%s)", config.describe())
        try:
            grid = build_strike_grid(
                spot,
                maturity,
                rate,
                dividend_yield,
                params,
                config,
                precomputation=self._precomputation_for(config, spot),
                plan=self._plan_for(config),
            )
        except RECOVERABLE_ERRORS:
            self._grid_cache.clear()
            self.stats.failed_builds += 1
            raise
        self._grid_cache.store(key, grid)
        self.stats.grid_builds += 1
        return grid

    def price(
        self,
        spot: float,
        strike: float,
        maturity: float,
        rate: float,
        dividend_yield: float,
        params: HestonParams,
        config: FftConfig,
    ) -> float:
        """
        Heston call price under one configuration, without fallbacks.

        A price outside ``[max(0, S e^{-qT} - K e^{-rT}), S e^{-qT}]`` (with a
        slack of ``BOUND_SLACK * spot``) invalidates the cached grid and
        raises :class:`CacheCorruptError`. This happens when the damping
        moment of order ``alpha + 1`` does not exist, for example long
        maturities with the Feller condition violated.
        """

        grid = self.strike_grid(spot, maturity, rate, dividend_yield, params, config)
        price = interpolate_price(grid, strike)
        lower = call_lower_bound(spot, strike, maturity, rate, dividend_yield)
        upper = spot * math.exp(-dividend_yield * maturity)
        slack = BOUND_SLACK * spot
        if not lower - slack <= price <= upper + slack:
            self._grid_cache.clear()
            raise CacheCorruptError(
                f"price {price:.6g} outside no-arbitrage bounds [{lower:.6g}, {upper:.6g}]"
            )
        return price

    def heston_call(
        self,
        spot: float,
        strike: float,
        maturity: float,
        rate: float,
        dividend_yield: float,
        params: HestonParams,
        config: FftConfig | None = None,
    ) -> float:
        """
        Price a European call under Heston.

        The base configuration (``config`` or the engine default) is adapted
        to the option profile and tried first, then each retry-ladder
        configuration. If every configuration fails the Black-Scholes price
        at volatility ``sqrt(v0)`` is returned.

        Parameters
        ----------
        spot, strike, maturity, rate, dividend_yield : float
            Option state.
        params : HestonParams
            Model parameters.
        config : FftConfig, optional
            Base transform settings for this call.

        Returns
        -------
        float
            Non-negative call price.
        """

        s, k, t, r, q = validate_option(spot, strike, maturity, rate, dividend_yield)
        adapted = adapt_fft_config(config or self.config, s, k, t)
        for attempt in retry_configs(adapted):
            try:
                return self.price(s, k, t, r, q, params, attempt)
            except RECOVERABLE_ERRORS as exc:
                logger.debug("FFT pricing failed (%s): %s", attempt.describe(), exc)

        logger.warning("All FFT configurations failed; using Black-Scholes with sqrt(v0)")
        return bs_call(s, k, t, r, q, math.sqrt(params.v0))

    def price_grid(
        self,
        spot: float,
        maturity: float,
        rate: float,
        dividend_yield: float,
        params: HestonParams,
        config: FftConfig | None = None,
    ) -> tuple[NDArray[np.float64], NDArray[np.float64]]:
        """
        Strikes and call prices of the grid for the given state.

        Returns copies, so callers cannot disturb the cache.
        """

        s, _, t, r, q = validate_option(spot, spot, maturity, rate, dividend_yield)
        grid = self.strike_grid(s, t, r, q, params, config or self.config)
        return grid.strikes.copy(), grid.prices.copy()
