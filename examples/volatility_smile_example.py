#!/usr/bin/env python3
"""
Volatility Smile Example
========================

Prices a strip of calls at a flat Black-Scholes volatility and recovers the
Black-Scholes and Heston implied volatilities for every strike.

To run this example:
    python examples/volatility_smile_example.py

With custom parameters:
    python examples/volatility_smile_example.py --spot 100 --days 90 --rate 0.05 \
        --dividend-yield 0.01 --base-vol 0.2 --strike-min 80 --strike-max 120 --strike-step 5

The script will:
1. Generate Black-Scholes prices for each strike
2. Invert them under Black-Scholes and under Heston
3. Print the table and plot both curves
"""

import argparse

import matplotlib.pyplot as plt
import numpy as np

from option_iv import PricingEngine, plot_smile, volatility_smile


def parse_args():
    parser = argparse.ArgumentParser(
        description="Implied volatility smile example for option_iv package.",
        formatter_class=argparse.ArgumentDefaultsHelpFormatter,
    )
    parser.add_argument("--spot", type=float, default=100.0, help="Current stock price")
    parser.add_argument("--days", type=float, default=90.0, help="Days to expiry")
    parser.add_argument("--rate", type=float, default=0.05, help="Risk-free interest rate")
    parser.add_argument("--dividend-yield", type=float, default=0.01, help="Continuous dividend yield")
    parser.add_argument("--base-vol", type=float, default=0.2, help="Volatility used to generate prices")
    parser.add_argument("--strike-min", type=float, default=80.0, help="Lowest strike")
    parser.add_argument("--strike-max", type=float, default=120.0, help="Highest strike")
    parser.add_argument("--strike-step", type=float, default=5.0, help="Strike increment")
    parser.add_argument("--output", type=str, default="examples/volatility_smile.png", help="Output file for plot")
    parser.add_argument("--no-plot", action="store_true", help="Skip displaying the plot (still saves to file)")
    return parser.parse_args()


def main():
    args = parse_args()

    maturity = args.days / 365.0
    strikes = np.arange(args.strike_min, args.strike_max + 0.5 * args.strike_step, args.strike_step)

    print("=" * 60)
    print("Implied Volatility Smile")
    print("=" * 60)
    print(f"Spot:       {args.spot:.2f}")
    print(f"Expiry:     {args.days:.0f} days")
    print(f"Rate:       {args.rate:.2%}")
    print(f"Yield:      {args.dividend_yield:.2%}")
    print(f"Base vol:   {args.base_vol:.2%}")
    print()

    engine = PricingEngine()
    df = volatility_smile(
        args.spot, maturity, args.rate, args.dividend_yield, args.base_vol, strikes, engine=engine
    )

    print("Strike,BS_IV,SV_IV")
    for row in df.itertuples():
        print(f"{row.strike:.0f},{100 * row.bs_iv:.2f},{100 * row.sv_iv:.2f}")
    print()
    print(f"Grid builds: {engine.stats.grid_builds}, cache hits: {engine.stats.grid_hits}")

    fig, _ = plot_smile(df, title=f"Implied Volatility Smile (S={args.spot}, T={args.days:.0f} days)")
    fig.savefig(args.output, dpi=150)
    print(f"Plot saved to: {args.output}")

    if not args.no_plot:
        plt.show()


if __name__ == "__main__":
    main()
