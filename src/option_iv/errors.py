"""
Exception hierarchy for the implied volatility engine.

Input validation problems derive from :class:`ValueError` so callers that
already guard numeric inputs with ``except ValueError`` keep working.
Numerical failures inside the transform pipeline derive from
:class:`NumericalError`; the Heston calibration boundary catches those
(together with Python's arithmetic faults) and walks the retry ladder.
"""

from __future__ import annotations


class PricingError(Exception):
    """Base class for every error raised by :mod:`option_iv`."""


class InvalidInputError(PricingError, ValueError):
    """A scalar input failed a positivity, finiteness or bound check."""


class ArbitrageViolationError(InvalidInputError):
    """Market price lies below the no-arbitrage lower bound of a call.

    Attributes
    ----------
    market_price : float
        Observed call price.
    lower_bound : float
        ``max(0, S e^{-qT} - K e^{-rT})``.
    """

    def __init__(self, market_price: float, lower_bound: float) -> None:
        self.market_price = float(market_price)
        self.lower_bound = float(lower_bound)
        super().__init__(
            f"market price {self.market_price:.6f} is below the no-arbitrage "
            f"lower bound {self.lower_bound:.6f}"
        )


class NoBracketError(PricingError):
    """The volatility interval does not bracket the market price.

    Attributes
    ----------
    market_price : float
        Observed call price.
    price_low, price_high : float
        Model prices at the lower and upper ends of the volatility interval.
    """

    def __init__(self, market_price: float, price_low: float, price_high: float) -> None:
        self.market_price = float(market_price)
        self.price_low = float(price_low)
        self.price_high = float(price_high)
        super().__init__(
            f"market price {self.market_price:.6f} is outside the bounds "
            f"[{self.price_low:.6f}, {self.price_high:.6f}]"
        )


class NumericalError(PricingError):
    """An intermediate quantity became non-finite and could not be absorbed."""


class NonFiniteGridError(NumericalError):
    """The Carr-Madan transform produced a pervasively non-finite grid."""


class CacheCorruptError(NumericalError):
    """Strike-grid prices are non-finite or violate the call price bounds."""


class ConfigurationError(PricingError, ValueError):
    """An FFT configuration value is invalid."""
