"""
Heston implied volatility by per-quote calibration.

The pipeline for one quote:

1. Black-Scholes anchor volatility (with an ATM approximation and a fixed
   default when the bisection fails);
2. Heston seed parameters derived from the anchor, moneyness and maturity;
3. a bounded grid search around the seed, long-run variance tied to ``v0``;
4. ``sqrt(v0)`` of the best fit plus strike and term skew adjustments;
5. blending with the anchor when the best fit is poor.

Steps 2 to 5 run once per FFT configuration of the retry ladder until one
completes.
"""

from __future__ import annotations

import itertools
import logging
import math
from dataclasses import dataclass
from typing import Iterator

import numpy as np

from .bs_iv import bs_implied_vol
from .engine import RECOVERABLE_ERRORS, PricingEngine
from .errors import ArbitrageViolationError, InvalidInputError, NoBracketError
from .fft_config import FftConfig, adapt_fft_config, retry_configs
from .heston import HestonParams
from .pricing import validate_option

logger = logging.getLogger(__name__)

IV_SENTINEL = -1.0


@dataclass(frozen=True)
class CalibrationSettings:
    """
    Tunable knobs of the calibration.

    Parameters
    ----------
    max_evaluations : int, default=50
        Cap on model prices computed by the grid search.
    early_exit_ratio : float, default=0.005
        Stop once the residual falls below this fraction of the market price.
    poor_fit_ratio : float, default=0.1
        Blend with the anchor when the residual exceeds this fraction.
    min_vol, max_vol : float
        Result clamp, ``[0.05, 1.5]``.
    atm_band : tuple of float
        Acceptable range for the ATM approximation, ``[0.05, 1.0]``.
    anchor_default : float, default=0.30
        Returned when neither the bisection nor the ATM approximation works.
    last_resort : float, default=0.25
        Returned when the Black-Scholes anchor itself faults.
    """

    max_evaluations: int = 50
    early_exit_ratio: float = 0.005
    poor_fit_ratio: float = 0.1
    min_vol: float = 0.05
    max_vol: float = 1.5
    atm_band: tuple[float, float] = (0.05, 1.0)
    anchor_default: float = 0.30
    last_resort: float = 0.25
    v0_factors: tuple[float, ...] = (0.7, 0.85, 1.0, 1.15, 1.3)
    kappa_factors: tuple[float, ...] = (0.5, 1.0, 1.5)
    sigma_factors: tuple[float, ...] = (0.8, 1.0, 1.2)
    rho_offsets: tuple[float, ...] = (-0.2, -0.1, 0.0, 0.1, 0.2)
    rho_bounds: tuple[float, float] = (-0.9, 0.0)

    def clamp(self, vol: float) -> float:
        return min(max(vol, self.min_vol), self.max_vol)


@dataclass(frozen=True)
class Anchor:
    """Black-Scholes reference volatility; ``solved`` is False for defaults."""

    volatility: float
    solved: bool


@dataclass(frozen=True)
class GridSearchResult:
    params: HestonParams
    residual: float
    evaluations: int


@dataclass(frozen=True)
class CalibrationResult:
    """Outcome of one successful calibration run."""

    implied_vol: float
    anchor_vol: float
    params: HestonParams
    residual: float
    evaluations: int
    adjustment: float
    blended: bool
    config: FftConfig


def anchor_volatility(
    market_price: float,
    spot: float,
    strike: float,
    maturity: float,
    rate: float,
    dividend_yield: float,
    settings: CalibrationSettings | None = None,
) -> Anchor:
    """
    Black-Scholes anchor for a quote.

    When the bisection cannot bracket the price, or the price violates the
    no-arbitrage bound, the ATM approximation ``sqrt(2 pi / T) m / S`` is
    used if it lies in ``settings.atm_band``, otherwise
    ``settings.anchor_default``. Both fallbacks are reported with
    ``solved=False``.
    """

    settings = settings or CalibrationSettings()
    try:
        vol = bs_implied_vol(market_price, spot, strike, maturity, rate, dividend_yield)
        return Anchor(vol, True)
    except ArbitrageViolationError as exc:
        logger.warning("Market price violates no-arbitrage bound: %s", exc)
    except NoBracketError as exc:
        logger.debug("Black-Scholes bisection failed: %s", exc)

    atm = math.sqrt(2.0 * math.pi / maturity) * market_price / spot
    low, high = settings.atm_band
    if low <= atm <= high:
        logger.debug("Using ATM approximation %.6f as anchor", atm)
        return Anchor(atm, False)
    logger.debug("ATM approximation %.6f out of range; using default %.2f", atm, settings.anchor_default)
    return Anchor(settings.anchor_default, False)


def seed_parameters(anchor_vol: float, spot: float, strike: float, maturity: float) -> HestonParams:
    """
    Initial Heston parameters around a Black-Scholes anchor.

    Examples
    --------
    >>> seed_parameters(0.2, 100.0, 100.0, 0.5)
    HestonParams(v0=0.04000000000000001, kappa=1.0, theta=0.04000000000000001, sigma=0.5, rho=-0.6)
    """

    moneyness = strike / spot
    variance = anchor_vol * anchor_vol
    v0 = variance
    if moneyness > 1.05:
        v0 *= 1.1
        sigma, rho = 0.6, -0.75
    elif moneyness < 0.95:
        v0 *= 1.05
        sigma, rho = 0.4, -0.5
    else:
        sigma, rho = 0.5, -0.6

    kappa = 1.0
    if maturity < 0.1:
        kappa = 3.0
        sigma *= 1.3
    elif maturity > 1.0:
        kappa = 0.5
        sigma *= 0.8

    return HestonParams(v0=v0, kappa=kappa, theta=variance, sigma=sigma, rho=rho)


def parameter_grid(
    seed: HestonParams, settings: CalibrationSettings | None = None
) -> Iterator[HestonParams]:
    """
    Candidate parameter sets in search order.

    ``v0`` varies slowest, then ``kappa``, ``sigma`` and ``rho``. ``theta``
    is set equal to ``v0`` and ``rho`` is clipped to ``settings.rho_bounds``.
    """

    settings = settings or CalibrationSettings()
    rho_low, rho_high = settings.rho_bounds
    for fv, fk, fs, dr in itertools.product(
        settings.v0_factors, settings.kappa_factors, settings.sigma_factors, settings.rho_offsets
    ):
        v0 = seed.v0 * fv
        yield HestonParams(
            v0=v0,
            kappa=seed.kappa * fk,
            theta=v0,
            sigma=seed.sigma * fs,
            rho=float(np.clip(seed.rho + dr, rho_low, rho_high)),
        )


def grid_search(
    market_price: float,
    spot: float,
    strike: float,
    maturity: float,
    rate: float,
    dividend_yield: float,
    seed: HestonParams,
    engine: PricingEngine,
    config: FftConfig,
    settings: CalibrationSettings | None = None,
) -> GridSearchResult:
    """
    Search the parameter grid for the closest model price.

    Parameters
    ----------
    market_price, spot, strike, maturity, rate, dividend_yield : float
        Quote being calibrated.
    seed : HestonParams
        Centre of the grid.
    engine : PricingEngine
        Engine whose caches serve the repeated pricings.
    config : FftConfig
        Transform settings, used as given.
    settings : CalibrationSettings, optional

    Returns
    -------
    GridSearchResult
        First parameter set reaching the minimum residual.

    Raises
    ------
    NumericalError
        Propagated from the engine when a grid build fails.
    """

    settings = settings or CalibrationSettings()
    best_params = seed
    best_residual = math.inf
    evaluations = 0
    threshold = settings.early_exit_ratio * market_price

    for params in parameter_grid(seed, settings):
        if evaluations >= settings.max_evaluations:
            break
        model_price = engine.price(spot, strike, maturity, rate, dividend_yield, params, config)
        evaluations += 1
        residual = abs(model_price - market_price)
        if residual < best_residual:
            best_params, best_residual = params, residual
            logger.debug(
                "Found better parameter set - v0: %.4f, kappa: %.2f, sigma: %.2f, rho: %.2f, diff: %.4f",
                params.v0,
                params.kappa,
                params.sigma,
                params.rho,
                residual,
            )
            if residual < threshold:
                break

    logger.debug("Completed calibration after %d evaluations", evaluations)
    return GridSearchResult(best_params, best_residual, evaluations)


def skew_adjustment(spot: float, strike: float, maturity: float) -> float:
    """Heuristic strike and term adjustment added to ``sqrt(v0)``."""

    moneyness = strike / spot
    strike_adjust = 0.0
    if moneyness > 1.2:
        strike_adjust = 0.05 * (moneyness - 1.2)
    elif moneyness < 0.8:
        strike_adjust = 0.03 * (0.8 - moneyness)

    time_adjust = 0.0
    if maturity < 0.1:
        time_adjust = 0.02 * (0.1 - maturity) / 0.1
    elif maturity > 1.0:
        time_adjust = -0.01 * (maturity - 1.0)

    return strike_adjust + time_adjust


def finalize_volatility(
    v0: float,
    anchor_vol: float,
    residual: float,
    market_price: float,
    adjustment: float,
    settings: CalibrationSettings | None = None,
) -> tuple[float, bool]:
    """
    Turn the best fit into a volatility.

    Returns the adjusted and clamped ``sqrt(v0)``. When the residual exceeds
    ``poor_fit_ratio * market_price`` the value is instead blended with the
    anchor, ``w sv + (1 - w) anchor + adjustment / 2`` with
    ``w = 1 - min(1, residual / market_price)``; a blend outside the clamp
    range gives the clamped anchor.

    Returns
    -------
    tuple
        ``(volatility, blended)``.
    """

    settings = settings or CalibrationSettings()
    sv_vol = settings.clamp(math.sqrt(v0) + adjustment)
    if not residual > settings.poor_fit_ratio * market_price:
        return sv_vol, False

    weight = 1.0 - min(1.0, residual / market_price)
    blended = weight * sv_vol + (1.0 - weight) * anchor_vol + 0.5 * adjustment
    logger.debug(
        "Large calibration error (%.2f%% of price). Blending with BS IV (weight: %.2f)",
        100.0 * residual / market_price,
        weight,
    )
    if not settings.min_vol <= blended <= settings.max_vol:
        logger.debug("Blended IV %.6f out of range; using BS IV %.6f", blended, anchor_vol)
        return settings.clamp(anchor_vol), True
    return blended, True


def calibrate(
    market_price: float,
    spot: float,
    strike: float,
    maturity: float,
    rate: float,
    dividend_yield: float,
    anchor_vol: float,
    engine: PricingEngine,
    config: FftConfig,
    settings: CalibrationSettings | None = None,
) -> CalibrationResult:
    """Seed, search and post-process one quote under one FFT configuration."""

    settings = settings or CalibrationSettings()
    seed = seed_parameters(anchor_vol, spot, strike, maturity)
    search = grid_search(
        market_price, spot, strike, maturity, rate, dividend_yield, seed, engine, config, settings
    )
    adjustment = skew_adjustment(spot, strike, maturity)
    vol, blended = finalize_volatility(
        search.params.v0, anchor_vol, search.residual, market_price, adjustment, settings
    )
    logger.debug(
        "Final SV: %.2f%% (BS IV: %.2f%%), price difference %.4f",
        100.0 * vol,
        100.0 * anchor_vol,
        search.residual,
    )
    return CalibrationResult(
        implied_vol=vol,
        anchor_vol=anchor_vol,
        params=search.params,
        residual=search.residual,
        evaluations=search.evaluations,
        adjustment=adjustment,
        blended=blended,
        config=config,
    )


def _checked(vol: float) -> float:
    if not math.isfinite(vol) or vol <= 0.0:
        logger.error("Calibration produced an unusable volatility %r", vol)
        return IV_SENTINEL
    return vol


def heston_implied_vol(
    market_price: float,
    spot: float,
    strike: float,
    maturity: float,
    rate: float,
    dividend_yield: float = 0.0,
    *,
    engine: PricingEngine | None = None,
    config: FftConfig | None = None,
    settings: CalibrationSettings | None = None,
) -> float:
    """
    Heston-equivalent spot volatility implied by a market call price.

    Parameters
    ----------
    market_price : float
        Observed call price. Must be strictly positive.
    spot, strike, maturity, rate, dividend_yield : float
        Option state.
    engine : PricingEngine, optional
        Engine providing the caches; a fresh one is used when omitted.
    config : FftConfig, optional
        Base transform settings; defaults to the engine's configuration.
        It is adapted to the option profile before the first build.
    settings : CalibrationSettings, optional

    Returns
    -------
    float
        A volatility in ``[settings.min_vol, settings.max_vol]`` or
        :data:`IV_SENTINEL` when the result is unusable.

    Raises
    ------
    InvalidInputError
        If the market price or the option state fails validation.
    """

    settings = settings or CalibrationSettings()
    price = float(market_price)
    if not (math.isfinite(price) and price > 0.0):
        raise InvalidInputError("market price must be positive.")
    s, k, t, r, q = validate_option(spot, strike, maturity, rate, dividend_yield)
    engine = engine or PricingEngine()

    try:
        anchor = anchor_volatility(price, s, k, t, r, q, settings)
    except ArithmeticError as exc:
        logger.warning("Black-Scholes IV failed (%s); using default %.2f", exc, settings.last_resort)
        return _checked(settings.last_resort)
    logger.debug("Black-Scholes IV: %.2f%%", 100.0 * anchor.volatility)
    if not anchor.solved:
        return _checked(anchor.volatility)

    for attempt in retry_configs(adapt_fft_config(config or engine.config, s, k, t)):
        try:
            result = calibrate(price, s, k, t, r, q, anchor.volatility, engine, attempt, settings)
            return _checked(result.implied_vol)
        except RECOVERABLE_ERRORS as exc:
            logger.debug("Calibration failed with %s: %s", attempt.describe(), exc)

    logger.warning("All FFT configurations failed; falling back to Black-Scholes IV")
    return _checked(settings.clamp(anchor.volatility))
