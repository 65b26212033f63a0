"""
Heston stochastic volatility model: parameters and characteristic function.

The characteristic function of ``ln S_T`` uses the "little Heston trap"
parametrisation (Albrecher et al., 2007), which keeps the complex logarithm
on its principal branch for the grids used by the Carr-Madan transform:

    d = sqrt((rho sigma u i - kappa)^2 + sigma^2 (u^2 + i u))
    g = (kappa - rho sigma u i - d) / (kappa - rho sigma u i + d)
    A = (r - q) u i T + (kappa theta / sigma^2)
        [(kappa - rho sigma u i - d) T - 2 ln((1 - g e^{-dT}) / (1 - g))]
    B = (kappa - rho sigma u i - d) (1 - e^{-dT}) / (sigma^2 (1 - g e^{-dT}))
    phi(u) = exp(A + B v0 + i u ln S)

Entries whose ``g``, ``A`` or ``B`` are non-finite are replaced by the
neutral value ``1 + 0i``.
"""

from __future__ import annotations

import dataclasses
import logging
import math
from dataclasses import dataclass

import numpy as np
from numpy.typing import ArrayLike, NDArray

from .errors import InvalidInputError

logger = logging.getLogger(__name__)
guard_logger = logging.getLogger("option_iv.guards")


@dataclass(frozen=True)
class HestonParams:
    """
    Heston parameter vector.

    Parameters
    ----------
    v0 : float
        Initial variance. Must be strictly positive.
    kappa : float
        Mean reversion speed. Must be strictly positive.
    theta : float
        Long-run variance. Must be strictly positive.
    sigma : float
        Volatility of variance. Must be strictly positive.
    rho : float
        Spot/variance correlation in ``(-1, 1)``.

    Notes
    -----
    The Feller condition ``2 kappa theta >= sigma^2`` is reported by
    :attr:`feller_satisfied` but never enforced.
    """

    v0: float
    kappa: float
    theta: float
    sigma: float
    rho: float

    def __post_init__(self) -> None:
        for name in ("v0", "kappa", "theta", "sigma"):
            value = getattr(self, name)
            if not (math.isfinite(value) and value > 0):
                raise InvalidInputError(f"{name} must be positive, got {value}")
        if not (math.isfinite(self.rho) and -1.0 < self.rho < 1.0):
            raise InvalidInputError(f"rho must lie in (-1, 1), got {self.rho}")

    @property
    def feller_satisfied(self) -> bool:
        return 2.0 * self.kappa * self.theta >= self.sigma**2

    def replace(self, **changes: float) -> HestonParams:
        """Return a copy with the given fields replaced."""
        return dataclasses.replace(self, **changes)

    def as_tuple(self) -> tuple[float, float, float, float, float]:
        return (self.v0, self.kappa, self.theta, self.sigma, self.rho)


def heston_characteristic_function(
    u: ArrayLike,
    spot: float,
    maturity: float,
    rate: float,
    dividend_yield: float,
    params: HestonParams,
) -> NDArray[np.complex128]:
    """
    Evaluate the Heston characteristic function of ``ln S_T``.

    Parameters
    ----------
    u : ArrayLike
        Complex (or real) argument(s). The Carr-Madan pipeline passes the
        damped argument ``v - (alpha + 1) i``.
    spot : float
        Spot price of the underlying.
    maturity : float
        Time to expiry in years.
    rate : float
        Continuously compounded risk-free rate.
    dividend_yield : float
        Continuous dividend yield.
    params : HestonParams
        Model parameters.

    Returns
    -------
    numpy.ndarray
        ``complex128`` array with the shape of ``u``.

    Examples
    --------
    >>> p = HestonParams(v0=0.04, kappa=1.5, theta=0.04, sigma=0.3, rho=-0.7)
    >>> complex(heston_characteristic_function(0.0, 100.0, 1.0, 0.05, 0.0, p))
    (1+0j)
    """

    v0, kappa, theta, sigma, rho = params.as_tuple()
    ui = 1j * np.asarray(u, dtype=np.complex128)
    sigma2 = sigma * sigma

    with np.errstate(all="ignore"):
        beta = kappa - rho * sigma * ui
        d = np.sqrt(beta * beta - sigma2 * ui * (ui - 1.0))
        g = (beta - d) / (beta + d)
        exp_dt = np.exp(-d * maturity)
        A = (rate - dividend_yield) * ui * maturity + (kappa * theta / sigma2) * (
            (beta - d) * maturity - 2.0 * np.log((1.0 - g * exp_dt) / (1.0 - g))
        )
        B = (beta - d) * (1.0 - exp_dt) / (sigma2 * (1.0 - g * exp_dt))
        bad = ~(np.isfinite(g) & np.isfinite(A) & np.isfinite(B))
        phi = np.exp(A + B * v0 + ui * math.log(spot))

    if np.any(bad):
        guard_logger.debug(
            "Non-finite g, A or B at %d of %d points; substituting 1+0i",
            int(np.count_nonzero(bad)),
            bad.size,
        )
        phi = np.where(bad, 1.0 + 0.0j, phi)
    return phi
