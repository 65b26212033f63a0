"""
Public API for the option_iv package.
"""

from .pricing import (
    bs_call,
    call_lower_bound,
    standard_normal_cdf,
)
from .bs_iv import bs_implied_vol

from .heston import HestonParams, heston_characteristic_function
from .fft_config import FftConfig, adapt_fft_config, load_fft_config, retry_configs
from .carr_madan import build_strike_grid, simpson_weights
from .fft_cache import StrikeGridCache, interpolate_price
from .engine import PricingEngine
from .api import default_engine, heston_call
from .calibration import (
    IV_SENTINEL,
    CalibrationResult,
    CalibrationSettings,
    calibrate,
    heston_implied_vol,
)

from .errors import (
    ArbitrageViolationError,
    CacheCorruptError,
    ConfigurationError,
    InvalidInputError,
    NoBracketError,
    NonFiniteGridError,
    NumericalError,
    PricingError,
)

from .smile import plot_smile, volatility_smile
from .convergence import fft_parameter_study, plot_parameter_study

__version__ = "0.1.0"

__all__ = [
    # Black-Scholes
    "bs_call",
    "bs_implied_vol",
    "call_lower_bound",
    "standard_normal_cdf",
    # Heston - Model
    "HestonParams",
    "heston_characteristic_function",
    # Heston - FFT pricing
    "FftConfig",
    "adapt_fft_config",
    "load_fft_config",
    "retry_configs",
    "build_strike_grid",
    "simpson_weights",
    "StrikeGridCache",
    "interpolate_price",
    "PricingEngine",
    "default_engine",
    "heston_call",
    # Heston - Implied volatility
    "IV_SENTINEL",
    "CalibrationResult",
    "CalibrationSettings",
    "calibrate",
    "heston_implied_vol",
    # Errors
    "ArbitrageViolationError",
    "CacheCorruptError",
    "ConfigurationError",
    "InvalidInputError",
    "NoBracketError",
    "NonFiniteGridError",
    "NumericalError",
    "PricingError",
    # Analysis tools
    "fft_parameter_study",
    "plot_parameter_study",
    "plot_smile",
    "volatility_smile",
]
