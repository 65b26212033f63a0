import logging
import math

import pytest

from option_iv.cli import (
    PrefixFormatter,
    build_iv_parser,
    calculate_iv_main,
    calculate_sv_main,
    configure_logging,
    parse_number,
)


@pytest.fixture(autouse=True)
def isolated_cli(monkeypatch):
    for name in ("FFT_N", "FFT_LOG_STRIKE_RANGE", "FFT_ALPHA", "FFT_ETA", "FFT_CACHE_TOLERANCE"):
        monkeypatch.delenv(name, raising=False)
    yield
    package_logger = logging.getLogger("option_iv")
    for handler in list(package_logger.handlers):
        if getattr(handler, "option_iv_cli", False):
            package_logger.removeHandler(handler)
    package_logger.setLevel(logging.NOTSET)
    logging.getLogger("option_iv.guards").setLevel(logging.NOTSET)


class TestCalculateIv:
    """Test the Black-Scholes command."""

    def test_prints_implied_volatility(self, capsys):
        """Test a single %.6f line on stdout and exit status 0."""
        code = calculate_iv_main(["10.45", "100", "100", "1.0", "0.05", "0.0"])
        out, err = capsys.readouterr()
        assert code == 0
        assert out.endswith("\n") and out.count("\n") == 1
        assert abs(float(out) - 0.2) < 1e-4
        assert len(out.strip().split(".")[1]) == 6
        assert err == ""

    def test_calc_price_mode(self, capsys):
        """Test pricing with --calc-price."""
        code = calculate_iv_main(["--calc-price", "100", "100", "1", "0.05", "0", "0.2"])
        out, _ = capsys.readouterr()
        assert code == 0
        assert out == "10.450584\n"

    def test_negative_price_is_rejected(self, capsys):
        """Test exit status 1 and an Error: line for a negative price."""
        code = calculate_iv_main(["-1", "100", "100", "1", "0.05", "0"])
        out, err = capsys.readouterr()
        assert code == 1
        assert out == ""
        assert err.startswith("Error:")

    def test_no_bracket_fails(self, capsys):
        """Test that an unbracketed price exits with status 1."""
        code = calculate_iv_main(["80", "100", "100", "1", "0.05", "0"])
        _, err = capsys.readouterr()
        assert code == 1
        assert "Error:" in err

    @pytest.mark.parametrize("bad", ["abc", "1e999", "nan"])
    def test_non_numeric_arguments(self, bad, capsys):
        """Test strict numeric parsing of positional arguments."""
        code = calculate_iv_main([bad, "100", "100", "1", "0.05", "0"])
        _, err = capsys.readouterr()
        assert code == 1
        assert "Error:" in err

    def test_wrong_argument_count(self, capsys):
        """Test usage errors exit with status 1 and a single Error: line."""
        code = calculate_iv_main(["10.45", "100"])
        _, err = capsys.readouterr()
        assert code == 1
        assert err.startswith("Error:")
        assert err.count("\n") == 1

    def test_overflowing_discount_factor_is_reported(self, capsys):
        """Test that finite inputs overflowing exp(-rT) fail with one Error: line."""
        code = calculate_iv_main(["1", "100", "100", "1000", "-1", "0"])
        out, err = capsys.readouterr()
        assert code == 1
        assert out == ""
        assert err.startswith("Error:")
        assert err.count("\n") == 1
        assert "Traceback" not in err

    def test_help_exits_zero(self, capsys):
        """Test that --help documents both argument layouts."""
        assert calculate_iv_main(["--help"]) == 0
        out = capsys.readouterr().out
        assert "OptionPrice" in out
        values = next(a for a in build_iv_parser()._actions if a.dest == "values")
        assert "with --calc-price: StockPrice Strike Time RiskFreeRate DividendYield Volatility" in values.help


class TestCalculateSv:
    """Test the Heston command."""

    def test_prints_heston_implied_volatility(self, capsys):
        """Test the happy path output format."""
        code = calculate_sv_main(["10.45", "100", "100", "1.0", "0.05", "0.0"])
        out, _ = capsys.readouterr()
        assert code == 0
        value = float(out)
        assert 0.18 <= value <= 0.24
        assert out == f"{value:.6f}\n"

    def test_debug_output_goes_to_stderr(self, capsys):
        """Test Debug: lines on stderr and the result alone on stdout."""
        code = calculate_sv_main(["--debug", "--fft-n=2048", "10.45", "100", "100", "1", "0.05", "0"])
        out, err = capsys.readouterr()
        assert code == 0
        assert out.count("\n") == 1
        assert "Debug: FFT Configuration - N: 2048" in err

    def test_invalid_flag_value_warns_and_keeps_default(self, capsys):
        """Test that a rejected override is a warning, not a failure."""
        code = calculate_sv_main(["--fft-n=1000", "10.45", "100", "100", "1", "0.05", "0"])
        out, err = capsys.readouterr()
        assert code == 0
        assert "Warning:" in err
        assert float(out) > 0

    def test_environment_overrides_are_read(self, capsys, monkeypatch):
        """Test FFT_* variables with flags taking precedence."""
        monkeypatch.setenv("FFT_N", "1024")
        monkeypatch.setenv("FFT_ETA", "0.1")
        code = calculate_sv_main(["--debug", "--eta=0.05", "10.45", "100", "100", "1", "0.05", "0"])
        _, err = capsys.readouterr()
        assert code == 0
        assert "N: 1024" in err
        assert "Eta: 0.0500" in err

    def test_invalid_input_exits_one(self, capsys):
        """Test exit status 1 for a non-positive spot."""
        code = calculate_sv_main(["10.45", "0", "100", "1", "0.05", "0"])
        out, err = capsys.readouterr()
        assert code == 1
        assert out == ""
        assert err.startswith("Error:")

    def test_unknown_option_exits_one(self, capsys):
        """Test that unrecognised options are usage errors."""
        assert calculate_sv_main(["--bogus", "10.45", "100", "100", "1", "0.05", "0"]) == 1

    def test_overflowing_discount_factor_is_reported(self, capsys):
        """Test that the Heston command rejects an overflowing discount factor."""
        code = calculate_sv_main(["1", "100", "100", "1000", "-1", "0"])
        out, err = capsys.readouterr()
        assert code == 1
        assert out == ""
        assert err.startswith("Error:")


class TestHelpers:
    """Test logging and parsing helpers."""

    @pytest.mark.parametrize(
        "level,prefix",
        [(logging.DEBUG, "Debug:"), (logging.WARNING, "Warning:"), (logging.ERROR, "Error:")],
    )
    def test_prefix_formatter(self, level, prefix):
        """Test the stderr prefixes."""
        record = logging.LogRecord("option_iv", level, __file__, 1, "message %d", (1,), None)
        assert PrefixFormatter("%(message)s").format(record) == f"{prefix} message 1"

    def test_verbose_enables_guard_logger(self):
        """Test that --verbose-debug opens the numerical guard logger."""
        configure_logging(verbose=True)
        assert logging.getLogger("option_iv.guards").getEffectiveLevel() == logging.DEBUG
        configure_logging(debug=True)
        assert logging.getLogger("option_iv.guards").level == logging.WARNING

    def test_handler_replaced_not_duplicated(self):
        """Test repeated configuration keeps a single CLI handler."""
        configure_logging()
        configure_logging()
        handlers = [h for h in logging.getLogger("option_iv").handlers if getattr(h, "option_iv_cli", False)]
        assert len(handlers) == 1

    def test_parse_number(self):
        """Test strict float parsing."""
        assert parse_number("-0.5") == -0.5
        assert math.isclose(parse_number("1e-3"), 0.001)
