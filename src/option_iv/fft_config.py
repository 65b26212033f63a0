"""
FFT configuration for the Carr-Madan pricer.

Holds the transform settings, the adaptive selector that tunes them to an
option profile, the retry ladder used when a grid build fails, and the
loader that merges environment variables and command-line overrides.
"""

from __future__ import annotations

import dataclasses
import logging
import math
import os
from dataclasses import dataclass
from typing import Mapping

from .errors import ConfigurationError

logger = logging.getLogger(__name__)

DEFAULT_FFT_N = 4096
DEFAULT_ETA = 0.05
DEFAULT_ALPHA = 1.5
DEFAULT_LOG_STRIKE_RANGE = 3.0
DEFAULT_CACHE_TOLERANCE = 1e-5

# (N, alpha, eta) tried in order after the primary configuration fails.
RETRY_LADDER: tuple[tuple[int, float, float], ...] = (
    (8192, 1.0, 0.1),
    (2048, 1.25, 0.075),
)

ENV_VARIABLES = {
    "n": "FFT_N",
    "log_strike_range": "FFT_LOG_STRIKE_RANGE",
    "alpha": "FFT_ALPHA",
    "eta": "FFT_ETA",
    "cache_tolerance": "FFT_CACHE_TOLERANCE",
}


def is_power_of_two(n: int) -> bool:
    return n > 0 and (n & (n - 1)) == 0


@dataclass(frozen=True)
class FftConfig:
    """
    Carr-Madan transform settings.

    Parameters
    ----------
    n : int, default=4096
        Number of transform points. Must be a power of two.
    eta : float, default=0.05
        Integration step in the frequency domain.
    alpha : float, default=1.5
        Damping exponent. Any positive value keeps the Carr-Madan
        denominator ``alpha^2 + alpha - v^2 + i (2 alpha + 1) v`` away from zero
        on the real frequency grid.
    log_strike_range : float, default=3.0
        Half-width ``R`` of the log-strike grid around ``ln S``.
    cache_tolerance : float, default=1e-5
        Absolute tolerance used when comparing cache keys.
    """

    n: int = DEFAULT_FFT_N
    eta: float = DEFAULT_ETA
    alpha: float = DEFAULT_ALPHA
    log_strike_range: float = DEFAULT_LOG_STRIKE_RANGE
    cache_tolerance: float = DEFAULT_CACHE_TOLERANCE

    def __post_init__(self) -> None:
        if isinstance(self.n, bool) or not isinstance(self.n, int) or not is_power_of_two(self.n):
            raise ConfigurationError(f"FFT size must be a power of 2, got {self.n!r}")
        for name in ("eta", "alpha", "log_strike_range", "cache_tolerance"):
            value = getattr(self, name)
            if not (math.isfinite(value) and value > 0):
                raise ConfigurationError(f"{name} must be positive, got {value!r}")

    @property
    def strike_spacing(self) -> float:
        """Log-strike spacing of the cached grid, ``2R / N``."""
        return 2.0 * self.log_strike_range / self.n

    @property
    def native_spacing(self) -> float:
        """Log-strike spacing of a plain length-``N`` DFT, ``2 pi / (N eta)``."""
        return 2.0 * math.pi / (self.n * self.eta)

    def replace(self, **changes) -> FftConfig:
        """Return a validated copy with the given fields replaced."""
        return dataclasses.replace(self, **changes)

    def describe(self) -> str:
        return (
            f"N: {self.n}, Range: {self.log_strike_range:.1f}, "
            f"Alpha: {self.alpha:.2f}, Eta: {self.eta:.4f}, "
            f"Tolerance: {self.cache_tolerance:.1e}"
        )


def adapt_fft_config(config: FftConfig, spot: float, strike: float, maturity: float) -> FftConfig:
    """
    Tune a configuration to an option profile.

    Rules (each applies independently, so the result does not depend on
    the order of evaluation):

    * moneyness ``K/S > 1.5`` or ``< 0.7``: ``N`` promoted to at least 8192
      and ``R`` to at least 4.0;
    * ``T < 0.1``: ``eta = 0.025`` and ``alpha = 1.25``;
    * ``T > 2.0``: ``eta = 0.1``.

    Parameters
    ----------
    config : FftConfig
        Base configuration.
    spot, strike, maturity : float
        Option profile.

    Returns
    -------
    FftConfig
        The adapted configuration (``config`` itself when nothing changes).
    """

    changes: dict[str, float] = {}
    moneyness = strike / spot
    if moneyness > 1.5 or moneyness < 0.7:
        changes["n"] = max(config.n, 8192)
        changes["log_strike_range"] = max(config.log_strike_range, 4.0)
    if maturity < 0.1:
        changes["eta"] = 0.025
        changes["alpha"] = 1.25
    elif maturity > 2.0:
        changes["eta"] = 0.1

    adapted = config.replace(**changes) if changes else config
    if adapted != config:
        logger.debug(
            "Adapted FFT parameters for option characteristics: N %d -> %d, "
            "Range %.2f -> %.2f, alpha %.2f -> %.2f, eta %.4f -> %.4f",
            config.n,
            adapted.n,
            config.log_strike_range,
            adapted.log_strike_range,
            config.alpha,
            adapted.alpha,
            config.eta,
            adapted.eta,
        )
    return adapted


def retry_configs(config: FftConfig) -> list[FftConfig]:
    """The primary configuration followed by the retry-ladder alternatives."""
    ladder = [config]
    for n, alpha, eta in RETRY_LADDER:
        ladder.append(config.replace(n=n, alpha=alpha, eta=eta))
    return ladder


def _parse_override(name: str, raw: str) -> float | int:
    if name == "n":
        value = int(raw)
        if not is_power_of_two(value):
            raise ValueError("FFT size must be a power of 2")
        return value
    value = float(raw)
    if not (math.isfinite(value) and value > 0):
        raise ValueError(f"{name} must be positive")
    return value


def load_fft_config(
    overrides: Mapping[str, str | None] | None = None,
    environ: Mapping[str, str] | None = None,
    base: FftConfig | None = None,
) -> FftConfig:
    """
    Build an :class:`FftConfig` from environment variables and overrides.

    Precedence, lowest first: ``base`` (the defaults), the ``FFT_*``
    environment variables, then ``overrides`` (command-line flags keyed by
    field name). A rejected value logs a warning and leaves the previous
    value in place.

    Parameters
    ----------
    overrides : mapping, optional
        Raw string values keyed by ``n``, ``eta``, ``alpha``,
        ``log_strike_range`` or ``cache_tolerance``. ``None`` entries are
        ignored.
    environ : mapping, optional
        Environment to read; defaults to :data:`os.environ`.
    base : FftConfig, optional
        Starting configuration; defaults to ``FftConfig()``.

    Returns
    -------
    FftConfig
    """

    config = base or FftConfig()
    environ = os.environ if environ is None else environ

    sources: list[tuple[str, Mapping[str, str | None]]] = [
        ("environment variable", {name: environ.get(var) for name, var in ENV_VARIABLES.items()}),
        ("option", dict(overrides or {})),
    ]
    for label, values in sources:
        for name, raw in values.items():
            if raw is None:
                continue
            if name not in ENV_VARIABLES:
                raise ConfigurationError(f"unknown FFT setting {name!r}")
            try:
                value = _parse_override(name, raw)
            except ValueError as exc:
                logger.warning(
                    "Rejected %s %s=%r (%s). Using %s",
                    label,
                    ENV_VARIABLES[name] if label.startswith("env") else name,
                    raw,
                    exc,
                    getattr(config, name),
                )
                continue
            config = config.replace(**{name: value})
    return config
