#!/usr/bin/env python3
"""
FFT Sensitivity Example
=======================

Varies one Carr-Madan setting at a time and shows how the Heston price, the
calibrated implied volatility and the run time respond.

To run this example:
    python examples/fft_sensitivity_example.py

Study another parameter:
    python examples/fft_sensitivity_example.py --parameter eta --values 0.2 0.1 0.05 0.025

The script will:
1. Evaluate the quote for every parameter value
2. Print the errors relative to the most refined value
3. Plot price, implied volatility and timing
"""

import argparse

import matplotlib.pyplot as plt

from option_iv import fft_parameter_study, plot_parameter_study
from option_iv.convergence import STUDY_PARAMETERS


def parse_args():
    parser = argparse.ArgumentParser(
        description="FFT parameter sensitivity example for option_iv package.",
        formatter_class=argparse.ArgumentDefaultsHelpFormatter,
    )
    parser.add_argument("--price", type=float, default=5.0, help="Market price of the call")
    parser.add_argument("--spot", type=float, default=100.0, help="Current stock price")
    parser.add_argument("--strike", type=float, default=100.0, help="Strike price")
    parser.add_argument("--days", type=float, default=90.0, help="Days to expiry")
    parser.add_argument("--rate", type=float, default=0.05, help="Risk-free interest rate")
    parser.add_argument("--dividend-yield", type=float, default=0.02, help="Continuous dividend yield")
    parser.add_argument("--parameter", choices=STUDY_PARAMETERS, default="n", help="FFT setting to vary")
    parser.add_argument(
        "--values",
        type=float,
        nargs="+",
        default=[1024, 2048, 4096, 8192],
        help="Values to try, coarsest first",
    )
    parser.add_argument("--output", type=str, default="examples/fft_sensitivity.png", help="Output file for plot")
    parser.add_argument("--no-plot", action="store_true", help="Skip displaying the plot (still saves to file)")
    return parser.parse_args()


def main():
    args = parse_args()

    print("=" * 60)
    print(f"FFT Sensitivity: {args.parameter}")
    print("=" * 60)

    df = fft_parameter_study(
        args.price,
        args.spot,
        args.strike,
        args.days / 365.0,
        args.rate,
        args.dividend_yield,
        args.parameter,
        args.values,
    )
    print(df.to_string(index=False, float_format=lambda x: f"{x:.6f}"))

    fig, _ = plot_parameter_study(df, args.parameter)
    fig.savefig(args.output, dpi=150)
    print()
    print(f"Plot saved to: {args.output}")

    if not args.no_plot:
        plt.show()


if __name__ == "__main__":
    main()
