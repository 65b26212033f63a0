import matplotlib

matplotlib.use("Agg")

import matplotlib.pyplot as plt
import numpy as np
import pytest

from option_iv import FftConfig, fft_parameter_study, plot_parameter_study
from option_iv import convergence

QUOTE = (10.45, 100.0, 100.0, 1.0, 0.05, 0.0)


class TestParameterStudy:
    """Test FFT parameter sensitivity tables."""

    def test_grid_size_study_columns_and_reference_row(self):
        """Test the table layout and zero error on the reference row."""
        df = fft_parameter_study(*QUOTE, "n", [1024, 2048])
        assert list(df.columns) == ["value", "price", "implied_vol", "seconds", "price_error", "vol_error"]
        assert df["value"].tolist() == [1024, 2048]
        assert df["price_error"].iloc[-1] == 0.0
        assert df["vol_error"].iloc[-1] == 0.0
        assert np.all(df["seconds"] >= 0.0)
        assert np.all((df["implied_vol"] >= 0.05) & (df["implied_vol"] <= 1.5))

    def test_refining_eta_changes_little(self):
        """Test that both eta settings price the reference model consistently."""
        df = fft_parameter_study(*QUOTE, "eta", [0.1, 0.05], base_config=FftConfig(n=2048))
        assert df["price_error"].iloc[0] < 0.05

    @pytest.mark.parametrize(
        "parameter,values",
        [("beta", [1, 2]), ("n", [1024])],
    )
    def test_invalid_arguments(self, parameter, values):
        """Test rejection of unknown parameters and short value lists."""
        with pytest.raises(ValueError):
            fft_parameter_study(*QUOTE, parameter, values)

    def test_failed_values_are_skipped(self, caplog):
        """Test that invalid configurations are logged and dropped."""
        df = fft_parameter_study(*QUOTE, "n", [1000, 1024, 2048])
        assert df["value"].tolist() == [1024, 2048]
        assert "Failed to evaluate n=1000" in caplog.text

    def test_too_few_successes_raise(self, monkeypatch):
        """Test the error raised when fewer than two values succeed."""
        monkeypatch.setattr(convergence, "heston_implied_vol", lambda *args, **kwargs: 1 / 0)
        with pytest.raises(RuntimeError):
            fft_parameter_study(*QUOTE, "n", [1024, 2048])

    def test_plot_parameter_study(self):
        """Test that the study plot draws three panels."""
        df = fft_parameter_study(*QUOTE, "n", [1024, 2048])
        fig, axes = plot_parameter_study(df, "n")
        assert len(axes) == 3
        assert axes[0].get_xscale() == "log"
        plt.close(fig)
