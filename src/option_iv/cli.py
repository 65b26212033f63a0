"""
Command-line entry points.

``calculate-iv``
    Black-Scholes implied volatility, or with ``--calc-price`` the
    Black-Scholes call price.
``calculate-sv``
    Heston implied volatility with FFT tuning flags and ``FFT_*``
    environment variables.

Both print a single ``%.6f`` line on success and exit with status 0; any
validation or calculation failure is reported on stderr and exits with 1.
"""

from __future__ import annotations

import argparse
import logging
import math
import os
import sys
from typing import Sequence, TextIO

from .bs_iv import bs_implied_vol
from .calibration import IV_SENTINEL, heston_implied_vol
from .engine import PricingEngine
from .errors import PricingError
from .fft_config import load_fft_config
from .pricing import bs_call

logger = logging.getLogger(__name__)

QUOTE_HELP = "OptionPrice StockPrice Strike Time RiskFreeRate DividendYield"
PRICE_HELP = "StockPrice Strike Time RiskFreeRate DividendYield Volatility"


class PrefixFormatter(logging.Formatter):
    """Render records as ``Debug: ...``, ``Warning: ...`` or ``Error: ...``."""

    PREFIXES = {
        logging.DEBUG: "Debug:",
        logging.INFO: "Info:",
        logging.WARNING: "Warning:",
        logging.ERROR: "Error:",
        logging.CRITICAL: "Error:",
    }

    def format(self, record: logging.LogRecord) -> str:
        prefix = self.PREFIXES.get(record.levelno, "Error:")
        return f"{prefix} {super().format(record)}"


def configure_logging(
    debug: bool = False, verbose: bool = False, stream: TextIO | None = None
) -> logging.Handler:
    """
    Attach a stderr handler to the ``option_iv`` logger.

    Parameters
    ----------
    debug : bool, default=False
        Log at DEBUG instead of WARNING.
    verbose : bool, default=False
        Also emit per-element numerical guard messages.
    stream : file-like, optional
        Destination; defaults to the current ``sys.stderr``.

    Returns
    -------
    logging.Handler
        The installed handler. A handler installed by a previous call is
        replaced.
    """

    package_logger = logging.getLogger("option_iv")
    for handler in list(package_logger.handlers):
        if getattr(handler, "option_iv_cli", False):
            package_logger.removeHandler(handler)

    handler = logging.StreamHandler(stream if stream is not None else sys.stderr)
    handler.setFormatter(PrefixFormatter("%(message)s"))
    handler.option_iv_cli = True
    package_logger.addHandler(handler)
    package_logger.setLevel(logging.DEBUG if debug or verbose else logging.WARNING)
    logging.getLogger("option_iv.guards").setLevel(logging.DEBUG if verbose else logging.WARNING)
    return handler


def parse_number(text: str) -> float:
    """
    Strict float parsing for positional arguments.

    Examples
    --------
    >>> parse_number("0.05")
    0.05
    """

    try:
        value = float(text)
    except ValueError:
        raise argparse.ArgumentTypeError(f"Not a valid number: {text}") from None
    if math.isnan(value):
        raise argparse.ArgumentTypeError(f"Not a valid number: {text}")
    if math.isinf(value):
        raise argparse.ArgumentTypeError(f"Number out of range: {text}")
    return value


class CliParser(argparse.ArgumentParser):
    """Argument parser whose usage errors exit with status 1."""

    def error(self, message: str) -> None:
        self.exit(1, f"Error: {message} (see --help)\n")


def _parse(parser: argparse.ArgumentParser, argv: Sequence[str] | None) -> argparse.Namespace | int:
    try:
        return parser.parse_args(argv)
    except SystemExit as exc:
        return exc.code if isinstance(exc.code, int) else 1


def build_iv_parser() -> CliParser:
    parser = CliParser(
        prog="calculate-iv",
        description="Black-Scholes implied volatility of a European call.",
        formatter_class=argparse.ArgumentDefaultsHelpFormatter,
    )
    parser.add_argument(
        "--calc-price",
        action="store_true",
        help=f"Price a call instead; arguments are {PRICE_HELP}",
    )
    parser.add_argument("--debug", action="store_true", help="Enable debug output")
    parser.add_argument(
        "values",
        nargs=6,
        type=parse_number,
        metavar="VALUE",
        help=f"{QUOTE_HELP}; with --calc-price: {PRICE_HELP}",
    )
    return parser


def build_sv_parser() -> CliParser:
    parser = CliParser(
        prog="calculate-sv",
        description="Heston implied volatility of a European call via Carr-Madan FFT pricing.",
        epilog="FFT settings may also be given through FFT_N, FFT_LOG_STRIKE_RANGE, FFT_ALPHA, "
        "FFT_ETA and FFT_CACHE_TOLERANCE; flags take precedence. Parameters are adapted to the "
        "option characteristics.",
        formatter_class=argparse.ArgumentDefaultsHelpFormatter,
    )
    parser.add_argument("--debug", action="store_true", help="Enable debug output")
    parser.add_argument(
        "--verbose-debug", action="store_true", help="Enable verbose debug output, including numerical guards"
    )
    parser.add_argument("--fft-n", dest="n", metavar="VALUE", help="FFT points (power of 2, default: 4096)")
    parser.add_argument(
        "--log-strike-range", dest="log_strike_range", metavar="X", help="Log strike range (default: 3.0)"
    )
    parser.add_argument("--alpha", metavar="X", help="Carr-Madan damping parameter (default: 1.5)")
    parser.add_argument("--eta", metavar="X", help="Frequency grid spacing (default: 0.05)")
    parser.add_argument(
        "--cache-tolerance",
        dest="cache_tolerance",
        metavar="X",
        help="Parameter tolerance for cache reuse (default: 1e-5)",
    )
    parser.add_argument("values", nargs=6, type=parse_number, metavar="VALUE", help=QUOTE_HELP)
    return parser


def calculate_iv_main(argv: Sequence[str] | None = None) -> int:
    """Entry point of ``calculate-iv``."""

    args = _parse(build_iv_parser(), argv)
    if isinstance(args, int):
        return args
    configure_logging(debug=args.debug)

    try:
        if args.calc_price:
            spot, strike, maturity, rate, dividend_yield, volatility = args.values
            result = bs_call(spot, strike, maturity, rate, dividend_yield, volatility)
        else:
            result = bs_implied_vol(*args.values)
    except (PricingError, ArithmeticError) as exc:
        logger.error("%s", exc)
        return 1

    print(f"{result:.6f}")
    return 0


def calculate_sv_main(argv: Sequence[str] | None = None) -> int:
    """Entry point of ``calculate-sv``."""

    args = _parse(build_sv_parser(), argv)
    if isinstance(args, int):
        return args
    configure_logging(debug=args.debug, verbose=args.verbose_debug)

    overrides = {
        name: getattr(args, name) for name in ("n", "log_strike_range", "alpha", "eta", "cache_tolerance")
    }
    config = load_fft_config(overrides, os.environ)
    logger.debug("FFT Configuration - %s", config.describe())

    try:
        iv = heston_implied_vol(*args.values, engine=PricingEngine(config))
    except PricingError as exc:
        logger.error("%s", exc)
        return 1

    if iv == IV_SENTINEL or iv < 0.0:
        logger.error("Failed to calculate implied volatility")
        return 1
    print(f"{iv:.6f}")
    return 0


if __name__ == "__main__":
    sys.exit(calculate_sv_main())
