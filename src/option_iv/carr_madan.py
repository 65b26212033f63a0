"""
Carr-Madan transform pricing of European calls under Heston.

A single transform produces call prices on the whole log-strike grid
``k_i = ln S - R + (2R/N) i``:

    psi_j = e^{-rT} phi(v_j - (alpha + 1) i) / (alpha^2 + alpha - v_j^2 + i (2 alpha + 1) v_j)
    Y_i   = sum_j psi_j w_j eta e^{-i v_j k_i}
    C_i   = Re(Y_i) e^{-alpha k_i} / pi

with ``v_j = j eta`` and Simpson weights ``w_j``. The sum is a forward DFT
evaluated at the grid spacing ``2R/N`` rather than the native spacing
``2 pi / (N eta)``, so it is carried out with a chirp-z transform
(:class:`scipy.signal.CZT`), which is reused as a plan across builds.
"""

from __future__ import annotations

import logging
import math
from dataclasses import dataclass

import numpy as np
from numpy.typing import NDArray
from scipy.signal import CZT

from .errors import NonFiniteGridError
from .fft_config import FftConfig
from .heston import HestonParams, heston_characteristic_function

logger = logging.getLogger(__name__)
guard_logger = logging.getLogger("option_iv.guards")

# Stand-in for v_0 = 0, where the Carr-Madan integrand has a removable pole.
ZERO_FREQUENCY = 1e-10


def simpson_weights(n: int) -> NDArray[np.float64]:
    """
    Simpson quadrature weights ``1/3, 4/3, 2/3, 4/3, ..., 4/3, 1/3``.

    Parameters
    ----------
    n : int
        Number of nodes.

    Returns
    -------
    numpy.ndarray
        Length ``n`` weight vector (without the ``eta`` factor).
    """

    weights = np.where(np.arange(n) % 2 == 1, 4.0 / 3.0, 2.0 / 3.0)
    weights[0] = 1.0 / 3.0
    weights[-1] = 1.0 / 3.0
    return weights


def frequency_grid(n: int, eta: float) -> NDArray[np.float64]:
    """Integration nodes ``v_j = j eta`` with ``v_0`` moved off the pole."""
    frequencies = eta * np.arange(n, dtype=np.float64)
    frequencies[0] = ZERO_FREQUENCY
    return frequencies


def log_strike_grid(spot: float, config: FftConfig) -> NDArray[np.float64]:
    """Log-strike grid ``ln S - R + (2R/N) i`` for ``i`` in ``[0, N)``."""
    return math.log(spot) - config.log_strike_range + config.strike_spacing * np.arange(config.n)


@dataclass(frozen=True)
class Precomputation:
    """
    Per-quote transform inputs that do not depend on the Heston parameters.

    Built once per ``(N, eta, alpha, S)`` and shared by every grid build of a
    calibration run.
    """

    n: int
    eta: float
    alpha: float
    spot: float
    frequencies: NDArray[np.float64]
    weights: NDArray[np.float64]
    spot_phase: NDArray[np.complex128]

    @classmethod
    def build(cls, config: FftConfig, spot: float) -> Precomputation:
        frequencies = frequency_grid(config.n, config.eta)
        spot_phase = np.exp(-1j * frequencies * math.log(spot))
        if not np.all(np.isfinite(spot_phase)):
            raise NonFiniteGridError("non-finite spot phase in precomputation")
        return cls(
            n=config.n,
            eta=config.eta,
            alpha=config.alpha,
            spot=float(spot),
            frequencies=frequencies,
            weights=simpson_weights(config.n),
            spot_phase=spot_phase,
        )

    def matches(self, config: FftConfig, spot: float) -> bool:
        return (
            self.n == config.n
            and self.eta == config.eta
            and self.alpha == config.alpha
            and abs(self.spot - spot) <= config.cache_tolerance
        )


@dataclass(frozen=True)
class StrikeGrid:
    """Call prices on the log-strike grid, strikes ascending."""

    log_strikes: NDArray[np.float64]
    strikes: NDArray[np.float64]
    prices: NDArray[np.float64]

    def __len__(self) -> int:
        return len(self.strikes)


def make_transform_plan(config: FftConfig) -> CZT:
    """Chirp-z plan mapping ``N`` frequency nodes onto ``N`` log strikes."""
    return CZT(config.n, m=config.n, w=np.exp(-1j * config.eta * config.strike_spacing), a=1.0)


def damped_integrand(
    spot: float,
    maturity: float,
    rate: float,
    dividend_yield: float,
    params: HestonParams,
    frequencies: NDArray[np.float64],
    alpha: float,
) -> NDArray[np.complex128]:
    """Modified characteristic function ``psi(v)`` of the damped call price."""

    phi = heston_characteristic_function(
        frequencies - (alpha + 1.0) * 1j, spot, maturity, rate, dividend_yield, params
    )
    denominator = alpha * alpha + alpha - frequencies**2 + 1j * (2.0 * alpha + 1.0) * frequencies
    return math.exp(-rate * maturity) * phi / denominator


def build_strike_grid(
    spot: float,
    maturity: float,
    rate: float,
    dividend_yield: float,
    params: HestonParams,
    config: FftConfig,
    *,
    precomputation: Precomputation | None = None,
    plan: CZT | None = None,
) -> StrikeGrid:
    """
    Price calls on the full log-strike grid with one transform.

    Parameters
    ----------
    spot, maturity, rate, dividend_yield : float
        Option state shared by every strike on the grid.
    params : HestonParams
        Model parameters.
    config : FftConfig
        Transform settings.
    precomputation : Precomputation, optional
        Reused weights and spot phase; built on the fly when omitted or
        stale.
    plan : scipy.signal.CZT, optional
        Reused transform plan; must have been made for ``config``.

    Returns
    -------
    StrikeGrid
        Strikes ``e^{k_i}`` and non-negative call prices.

    Raises
    ------
    NonFiniteGridError
        If more than half of the transform output is non-finite.
    """

    if precomputation is None or not precomputation.matches(config, spot):
        precomputation = Precomputation.build(config, spot)
    if plan is None:
        plan = make_transform_plan(config)

    v = precomputation.frequencies
    with np.errstate(all="ignore"):
        psi = damped_integrand(spot, maturity, rate, dividend_yield, params, v, config.alpha)
        x = psi * precomputation.weights * config.eta * precomputation.spot_phase
        # Shift the origin of the strike axis to ln S - R.
        x *= np.exp(1j * v * config.log_strike_range)
        transformed = plan(x)

    bad = ~np.isfinite(transformed)
    n_bad = int(np.count_nonzero(bad))
    if n_bad:
        if 2 * n_bad > config.n:
            raise NonFiniteGridError(
                f"{n_bad} of {config.n} transform outputs are non-finite ({config.describe()})"
            )
        guard_logger.debug("Zeroing %d non-finite transform outputs", n_bad)

    log_strikes = log_strike_grid(spot, config)
    with np.errstate(all="ignore"):
        real_part = np.where(bad, 0.0, transformed.real)
        prices = real_part * np.exp(-config.alpha * log_strikes) / math.pi
    prices = np.where(np.isfinite(prices), prices, 0.0)
    prices = np.maximum(prices, 0.0)
    return StrikeGrid(log_strikes=log_strikes, strikes=np.exp(log_strikes), prices=prices)
