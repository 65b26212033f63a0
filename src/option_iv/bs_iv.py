"""
Black-Scholes implied volatility by bisection.

The solver brackets the volatility on ``[0.001, 2.0]`` and relies on the
strict monotonicity of the call price in volatility; no Newton or secant
acceleration is attempted. It is used on its own and as the anchor for the
Heston calibration in :mod:`option_iv.calibration`.
"""

from __future__ import annotations

import logging

from .errors import ArbitrageViolationError, InvalidInputError, NoBracketError
from .pricing import bs_call, call_lower_bound, validate_option

logger = logging.getLogger(__name__)

VOL_LOW = 0.001
VOL_HIGH = 2.0
PRICE_TOLERANCE = 1e-6
MAX_ITERATIONS = 100


def bs_implied_vol(
    market_price: float,
    spot: float,
    strike: float,
    maturity: float,
    rate: float,
    dividend_yield: float = 0.0,
    *,
    lo: float = VOL_LOW,
    hi: float = VOL_HIGH,
    tol: float = PRICE_TOLERANCE,
    max_iter: int = MAX_ITERATIONS,
) -> float:
    """
    Implied volatility of a European call via bisection.

    Solves ``bs_call(S, K, T, r, q, sigma) = market_price`` for ``sigma`` on
    ``[lo, hi]``.

    Behavior:
        • Inputs are validated before any pricing; a non-positive market price
          is rejected outright.
        • A price below ``max(0, S e^{-qT} - K e^{-rT})`` is an arbitrage
          violation and is reported as such.
        • If ``market_price`` lies outside ``[C(lo), C(hi)]`` the interval does
          not bracket a root and :class:`NoBracketError` is raised.
        • Up to ``max_iter`` bisection steps, terminating as soon as the model
          price is within ``tol`` of the market price. When the iteration cap
          is hit the last midpoint is returned.

    Args:
        market_price: Observed call price.
        spot, strike, maturity, rate, dividend_yield: Option state.
        lo, hi: Volatility bracket.
        tol: Absolute tolerance on the price residual.
        max_iter: Iteration cap.

    Returns:
        Implied volatility (float, e.g. 0.2 for 20% annualized vol).

    Raises:
        InvalidInputError: A scalar input fails its positivity check.
        ArbitrageViolationError: Price below the no-arbitrage lower bound.
        NoBracketError: Price not bracketed by ``[C(lo), C(hi)]``.
    """

    price = float(market_price)
    if not price > 0.0:
        raise InvalidInputError("market price must be positive.")
    s, k, t, r, q = validate_option(spot, strike, maturity, rate, dividend_yield)

    lower_bound = call_lower_bound(s, k, t, r, q)
    if price < lower_bound:
        logger.debug("Market price %.6f is below intrinsic value %.6f", price, lower_bound)
        raise ArbitrageViolationError(price, lower_bound)

    price_low = bs_call(s, k, t, r, q, lo)
    price_high = bs_call(s, k, t, r, q, hi)
    if price < price_low or price > price_high:
        logger.debug(
            "Market price %.6f is outside the bounds [%.6f, %.6f]", price, price_low, price_high
        )
        raise NoBracketError(price, price_low, price_high)

    mid = 0.5 * (lo + hi)
    for _ in range(max_iter):
        mid = 0.5 * (lo + hi)
        price_mid = bs_call(s, k, t, r, q, mid)
        if abs(price_mid - price) < tol:
            return mid
        if price_mid < price:
            lo = mid
        else:
            hi = mid
    return mid
