"""
Flat consumer interface.

``bs_call``, ``bs_implied_vol`` and ``heston_implied_vol`` live in their own
modules; this module adds a scalar-argument ``heston_call`` backed by a
shared default engine.
"""

from __future__ import annotations

from .engine import PricingEngine
from .fft_config import FftConfig
from .heston import HestonParams

_DEFAULT_ENGINE: PricingEngine | None = None


def default_engine() -> PricingEngine:
    """
    The engine used by :func:`heston_call` when none is given.

    Created on first use. Like every :class:`PricingEngine` it is not
    thread-safe; concurrent callers should pass their own engine.
    """
    global _DEFAULT_ENGINE
    if _DEFAULT_ENGINE is None:
        _DEFAULT_ENGINE = PricingEngine()
    return _DEFAULT_ENGINE


def heston_call(
    spot: float,
    strike: float,
    maturity: float,
    rate: float,
    dividend_yield: float,
    v0: float,
    kappa: float,
    theta: float,
    sigma: float,
    rho: float,
    *,
    engine: PricingEngine | None = None,
    config: FftConfig | None = None,
) -> float:
    """Price a European call under Heston.

    Parameters
    ----------
    spot : float
        Spot price of the underlying.
    strike : float
        Strike price.
    maturity : float
        Time to expiry in years.
    rate : float
        Continuously compounded risk-free rate.
    dividend_yield : float
        Continuous dividend yield.
    v0, kappa, theta, sigma, rho : float
        Heston parameters; see :class:`~option_iv.heston.HestonParams`.
    engine : PricingEngine, optional
        Engine holding the caches. Defaults to :func:`default_engine`.
    config : FftConfig, optional
        Base transform settings, adapted to the option profile.

    Returns
    -------
    float
        Call price.

    Examples
    --------
    >>> price = heston_call(100.0, 100.0, 1.0, 0.05, 0.0, 0.04, 1.5, 0.04, 0.3, -0.7)
    >>> 9.0 < price < 11.0
    True
    """

    params = HestonParams(v0=v0, kappa=kappa, theta=theta, sigma=sigma, rho=rho)
    engine = engine or default_engine()
    return engine.heston_call(spot, strike, maturity, rate, dividend_yield, params, config)
