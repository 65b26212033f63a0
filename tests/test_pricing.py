import math
import unittest

import numpy as np
import numpy.testing as npt
import pytest

from option_iv import (
    InvalidInputError,
    bs_call,
    call_lower_bound,
    standard_normal_cdf,
)
from option_iv.pricing import validate_option


class PricingTests(unittest.TestCase):
    def test_standard_normal_cdf_matches_reference_values(self) -> None:
        x = np.array([-1.0, 0.0, 1.0])
        result = standard_normal_cdf(x)
        reference = np.array([0.15865525393145707, 0.5, 0.8413447460685429], dtype=np.float64)
        npt.assert_allclose(result, reference, rtol=0.0, atol=1e-12)

    def test_bs_call_matches_published_value(self) -> None:
        call = bs_call(100.0, 100.0, 1.0, 0.05, 0.0, 0.2)
        npt.assert_allclose(call, 10.450583572185565, rtol=0.0, atol=1e-10)

    def test_dividend_yield_acts_on_discounted_spot(self) -> None:
        with_yield = bs_call(100.0, 110.0, 0.5, 0.03, 0.01, 0.3)
        discounted = bs_call(100.0 * math.exp(-0.01 * 0.5), 110.0, 0.5, 0.03, 0.0, 0.3)
        npt.assert_allclose(with_yield, discounted, rtol=1e-12)

    def test_invalid_inputs_raise(self) -> None:
        bad_inputs = [
            (100.0, 100.0, 1.0, 0.05, 0.0, 0.0),
            (100.0, 100.0, 0.0, 0.05, 0.0, 0.2),
            (-100.0, 100.0, 1.0, 0.05, 0.0, 0.2),
            (100.0, 0.0, 1.0, 0.05, 0.0, 0.2),
            (100.0, 100.0, 1.0, float("nan"), 0.0, 0.2),
        ]
        for args in bad_inputs:
            with self.assertRaises(InvalidInputError):
                bs_call(*args)

    def test_invalid_input_is_value_error(self) -> None:
        with self.assertRaises(ValueError):
            bs_call(100.0, 100.0, 1.0, 0.05, 0.0, -0.2)

    def test_overflowing_discount_factor_is_invalid_input(self) -> None:
        with self.assertRaises(InvalidInputError):
            bs_call(100.0, 100.0, 1000.0, -1.0, 0.0, 0.2)
        with self.assertRaises(InvalidInputError):
            validate_option(100.0, 100.0, 1000.0, -1.0, 0.0)
        self.assertEqual(validate_option(100.0, 100.0, 700.0, -1.0, 0.0)[2], 700.0)

    def test_degenerate_volatility_returns_intrinsic(self) -> None:
        itm = bs_call(100.0, 90.0, 1.0, 0.05, 0.0, 1e-20)
        otm = bs_call(100.0, 110.0, 1.0, 0.05, 0.0, 1e-20)
        self.assertAlmostEqual(itm, 100.0 - 90.0 * math.exp(-0.05), places=12)
        self.assertEqual(otm, 0.0)

    def test_extreme_moneyness_stays_finite(self) -> None:
        deep_itm = bs_call(1e300, 1e-300, 1.0, 0.05, 0.0, 0.2)
        deep_otm = bs_call(1e-300, 1e300, 1.0, 0.05, 0.0, 0.2)
        self.assertAlmostEqual(deep_itm / 1e300, 1.0, places=12)
        self.assertEqual(deep_otm, 0.0)

    def test_lower_bound(self) -> None:
        self.assertAlmostEqual(
            call_lower_bound(100.0, 90.0, 1.0, 0.05, 0.02),
            100.0 * math.exp(-0.02) - 90.0 * math.exp(-0.05),
            places=12,
        )
        self.assertEqual(call_lower_bound(100.0, 120.0, 1.0, 0.05), 0.0)


class TestBlackScholesProperties:
    """Test structural properties of the Black-Scholes call."""

    def test_price_strictly_increasing_in_volatility(self):
        """Test that the call price rises with volatility on (0, 2]."""
        vols = np.linspace(0.01, 2.0, 60)
        prices = np.array([bs_call(100.0, 105.0, 1.0, 0.03, 0.01, v) for v in vols])
        assert np.all(np.diff(prices) > 0)

    @pytest.mark.parametrize(
        "S,K,T,r,q,sigma",
        [
            (100.0, 100.0, 1.0, 0.05, 0.0, 0.2),
            (120.0, 100.0, 0.5, 0.03, 0.01, 0.4),
            (80.0, 100.0, 2.0, 0.01, 0.0, 1.5),
            (100.0, 60.0, 0.1, 0.2, 0.05, 0.05),
        ],
    )
    def test_price_within_no_arbitrage_bounds(self, S, K, T, r, q, sigma):
        """Test lower bound max(0, S e^{-qT} - K e^{-rT}) and upper bound S e^{-qT}."""
        price = bs_call(S, K, T, r, q, sigma)
        assert price >= call_lower_bound(S, K, T, r, q) - 1e-12
        assert price <= S * math.exp(-q * T) + 1e-12

    @pytest.mark.parametrize("strike", [80.0, 100.0, 120.0])
    def test_small_volatility_limit_is_intrinsic(self, strike):
        """Test convergence to the discounted intrinsic value as sigma -> 0."""
        price = bs_call(100.0, strike, 1.0, 0.05, 0.0, 1e-8)
        assert abs(price - call_lower_bound(100.0, strike, 1.0, 0.05)) < 1e-6
