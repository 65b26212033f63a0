"""
Closed-form Black-Scholes-Merton call pricing with continuous dividend yield.

The module exposes the standard normal CDF used throughout the
package and a scalar call pricer hardened for use inside root finders:
degenerate volatility collapses to the discounted intrinsic value and
overflowing ``d1``/``d2`` map to the corresponding boundary price.
"""

from __future__ import annotations

import math

import numpy as np
from numpy.typing import ArrayLike, NDArray
from scipy.special import erf

from .errors import InvalidInputError

_SQRT_2 = math.sqrt(2.0)
_EPS = np.finfo(np.float64).eps
_MAX_EXP = math.log(np.finfo(np.float64).max)


def standard_normal_cdf(x: ArrayLike) -> NDArray[np.float64]:
    """
    Evaluate the cumulative distribution function of a standard normal variable.

    Implemented through the error function, ``0.5 * (1 + erf(x / sqrt(2)))``.

    Parameters
    ----------
    x : ArrayLike
        Scalar or array of evaluation points.

    Returns
    -------
    numpy.ndarray
        Array of CDF values with ``float64`` dtype.
    """

    values = np.asarray(x, dtype=np.float64)
    return 0.5 * (1.0 + erf(values / _SQRT_2))


def _validate_scalar(value: float, name: str, *, strictly_positive: bool = True) -> float:
    numeric = float(value)
    if not math.isfinite(numeric):
        raise InvalidInputError(f"{name} must be finite.")
    if strictly_positive and numeric <= 0:
        raise InvalidInputError(f"{name} must be positive.")
    if not strictly_positive and numeric < 0:
        raise InvalidInputError(f"{name} cannot be negative.")
    return numeric


def _validate_rate(value: float, name: str) -> float:
    numeric = float(value)
    if not math.isfinite(numeric):
        raise InvalidInputError(f"{name} must be finite.")
    return numeric


def _validate_discounting(maturity: float, rate: float, dividend_yield: float) -> None:
    # exp(-r T) and exp(-q T) must be representable.
    for value, name in ((rate, "rate"), (dividend_yield, "dividend_yield")):
        if -value * maturity > _MAX_EXP:
            raise InvalidInputError(f"{name} and maturity overflow the discount factor.")


def validate_option(
    spot: float,
    strike: float,
    maturity: float,
    rate: float,
    dividend_yield: float,
) -> tuple[float, float, float, float, float]:
    """Validate an option state and return it as plain floats."""

    s = _validate_scalar(spot, "spot")
    k = _validate_scalar(strike, "strike")
    t = _validate_scalar(maturity, "maturity")
    r = _validate_rate(rate, "rate")
    q = _validate_scalar(dividend_yield, "dividend_yield", strictly_positive=False)
    _validate_discounting(t, r, q)
    return s, k, t, r, q


def call_lower_bound(
    spot: float,
    strike: float,
    maturity: float,
    rate: float,
    dividend_yield: float = 0.0,
) -> float:
    """
    No-arbitrage lower bound of a European call, ``max(0, S e^{-qT} - K e^{-rT})``.

    Parameters
    ----------
    spot, strike, maturity, rate, dividend_yield : float
        Option state; see :func:`bs_call`.

    Returns
    -------
    float
        Discounted forward intrinsic value.
    """

    discounted_spot = spot * math.exp(-dividend_yield * maturity)
    discounted_strike = strike * math.exp(-rate * maturity)
    return max(0.0, discounted_spot - discounted_strike)


def bs_call(
    spot: float,
    strike: float,
    maturity: float,
    rate: float,
    dividend_yield: float,
    volatility: float,
) -> float:
    """
    Price a European call under Black-Scholes-Merton.

    ``C = S e^{-qT} N(d1) - K e^{-rT} N(d2)`` with
    ``d1 = [ln(S/K) + (r - q + sigma^2/2) T] / (sigma sqrt(T))`` and
    ``d2 = d1 - sigma sqrt(T)``.

    Parameters
    ----------
    spot : float
        Spot price of the underlying. Must be strictly positive.
    strike : float
        Strike price. Must be strictly positive.
    maturity : float
        Time to expiry in years. Must be strictly positive.
    rate : float
        Continuously compounded risk-free rate.
    dividend_yield : float
        Continuous dividend yield.
    volatility : float
        Annualized volatility. Must be strictly positive.

    Returns
    -------
    float
        Non-negative call value.

    Raises
    ------
    InvalidInputError
        If ``volatility``, ``maturity``, ``spot`` or ``strike`` is not positive.

    Examples
    --------
    >>> round(bs_call(100.0, 100.0, 1.0, 0.05, 0.0, 0.2), 6)
    10.450584
    """

    sigma = _validate_scalar(volatility, "volatility")
    t = _validate_scalar(maturity, "maturity")
    s = _validate_scalar(spot, "spot")
    k = _validate_scalar(strike, "strike")
    r = _validate_rate(rate, "rate")
    q = _validate_rate(dividend_yield, "dividend_yield")
    _validate_discounting(t, r, q)

    discounted_spot = s * math.exp(-q * t)
    discounted_strike = k * math.exp(-r * t)

    sig_sqrt_t = sigma * math.sqrt(t)
    if sig_sqrt_t < _EPS:
        return max(0.0, discounted_spot - discounted_strike)

    d1 = (math.log(s) - math.log(k) + (r - q + 0.5 * sigma * sigma) * t) / sig_sqrt_t
    d2 = d1 - sig_sqrt_t

    if not (math.isfinite(d1) and math.isfinite(d2)):
        # Overflowing d terms only happen at the extremes of moneyness.
        if d1 > 0 or (math.isnan(d1) and discounted_spot >= discounted_strike):
            return discounted_spot
        return 0.0

    price = discounted_spot * float(standard_normal_cdf(d1)) - discounted_strike * float(
        standard_normal_cdf(d2)
    )
    return max(price, 0.0)
