import logging
import math
import unittest

import numpy as np
import numpy.testing as npt
import pytest

from option_iv import HestonParams, InvalidInputError, heston_characteristic_function

PARAMS = HestonParams(v0=0.04, kappa=1.5, theta=0.04, sigma=0.3, rho=-0.7)


class HestonParamsTests(unittest.TestCase):
    def test_rejects_non_positive_values(self) -> None:
        for field in ("v0", "kappa", "theta", "sigma"):
            with self.assertRaises(InvalidInputError):
                PARAMS.replace(**{field: 0.0})

    def test_rejects_correlation_outside_open_interval(self) -> None:
        for rho in (-1.0, 1.0, 1.5, float("nan")):
            with self.assertRaises(InvalidInputError):
                PARAMS.replace(rho=rho)

    def test_feller_condition_is_reported_not_enforced(self) -> None:
        self.assertTrue(PARAMS.feller_satisfied)
        violating = PARAMS.replace(sigma=1.0)
        self.assertFalse(violating.feller_satisfied)

    def test_as_tuple_order(self) -> None:
        self.assertEqual(PARAMS.as_tuple(), (0.04, 1.5, 0.04, 0.3, -0.7))


class CharacteristicFunctionTests(unittest.TestCase):
    def test_value_at_zero_is_one(self) -> None:
        phi = heston_characteristic_function(0.0, 100.0, 1.0, 0.05, 0.0, PARAMS)
        npt.assert_allclose(phi, 1.0 + 0.0j, atol=1e-14)

    def test_martingale_condition(self) -> None:
        # phi(-i) = E[S_T] = S e^{(r - q) T}
        phi = heston_characteristic_function(-1j, 100.0, 0.75, 0.05, 0.02, PARAMS)
        npt.assert_allclose(phi, 100.0 * math.exp(0.03 * 0.75), rtol=1e-12)

    def test_real_arguments_have_modulus_at_most_one(self) -> None:
        u = np.linspace(0.0, 100.0, 401)
        phi = heston_characteristic_function(u, 100.0, 1.0, 0.05, 0.0, PARAMS)
        self.assertEqual(phi.shape, u.shape)
        self.assertTrue(np.all(np.abs(phi) <= 1.0 + 1e-12))

    def test_stable_when_feller_condition_fails(self) -> None:
        params = PARAMS.replace(sigma=1.2, kappa=0.5)
        u = np.linspace(0.0, 200.0, 801) - 2.5j
        phi = heston_characteristic_function(u, 100.0, 2.0, 0.05, 0.0, params)
        self.assertTrue(np.all(np.isfinite(phi)))


class TestGuards:
    """Test the neutral-value substitution for non-finite intermediates."""

    def test_overflowing_argument_yields_neutral_value(self):
        """Test that non-finite g, A or B produce 1 + 0i."""
        phi = heston_characteristic_function(np.array([0.0, 1e200]), 100.0, 1.0, 0.05, 0.0, PARAMS)
        npt.assert_allclose(phi, [1.0 + 0.0j, 1.0 + 0.0j])

    def test_guard_is_logged_on_guard_logger(self, caplog):
        """Test that substitutions are reported at DEBUG on option_iv.guards."""
        with caplog.at_level(logging.DEBUG, logger="option_iv.guards"):
            heston_characteristic_function(np.array([1e200]), 100.0, 1.0, 0.05, 0.0, PARAMS)
        assert "substituting 1+0i" in caplog.text

    @pytest.mark.parametrize("sigma", [0.001, 0.3, 2.0])
    def test_damped_argument_is_finite(self, sigma):
        """Test the Carr-Madan damped argument across vol-of-vol values."""
        u = np.linspace(0.0, 50.0, 201) - 2.5j
        phi = heston_characteristic_function(u, 100.0, 1.0, 0.05, 0.0, PARAMS.replace(sigma=sigma))
        assert np.all(np.isfinite(phi))
