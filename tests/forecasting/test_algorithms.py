"""Tests for the forecasting algorithms - exact values, edge cases, dispatch."""

from __future__ import annotations

import math

import pytest

from backend.common.schemas import ForecastAlgorithm, ForecastConfig
from backend.forecasting.algorithms import (
    exponential_weighted_moving_average,
    linear_regression_forecast,
    minimum_length,
    run_algorithm,
    seasonal_decomposition,
    simple_moving_average,
    validate_config,
)
from backend.forecasting.exceptions import (
    ComputationError,
    InsufficientDataError,
    InvalidConfigError,
)
from tests.factories import ewma, linear, seasonal, seasonal_values, sine_values, sma

# ─── Simple Moving Average ───


class TestSimpleMovingAverage:
    def test_recursive_window(self):
        """Later steps average over earlier forecast steps."""
        out = simple_moving_average([100, 110, 120, 130, 140], window_size=3, horizon=2)
        assert out[0] == pytest.approx(130.0)
        assert out[1] == pytest.approx(400.0 / 3)

    def test_constant_series_stays_constant(self):
        out = simple_moving_average([42.0] * 10, window_size=4, horizon=5)
        assert out == pytest.approx([42.0] * 5)

    def test_window_equal_to_length(self):
        out = simple_moving_average([1.0, 2.0, 3.0], window_size=3, horizon=1)
        assert out == pytest.approx([2.0])

    def test_output_length_matches_horizon(self):
        assert len(simple_moving_average(list(range(20)), window_size=5, horizon=9)) == 9

    def test_too_short_raises(self):
        with pytest.raises(InsufficientDataError):
            simple_moving_average([1.0, 2.0], window_size=3, horizon=1)

    @pytest.mark.parametrize("window_size", [0, -1, None])
    def test_bad_window_raises(self, window_size):
        with pytest.raises(InvalidConfigError):
            simple_moving_average([1.0, 2.0, 3.0], window_size=window_size, horizon=1)

    def test_input_not_mutated(self):
        values = [1.0, 2.0, 3.0, 4.0]
        simple_moving_average(values, window_size=2, horizon=3)
        assert values == [1.0, 2.0, 3.0, 4.0]


# ─── Exponential Weighted Moving Average ───


class TestExponentialWeightedMovingAverage:
    def test_flat_line_at_final_level(self):
        out = exponential_weighted_moving_average([10.0, 20.0], alpha=0.5, horizon=3)
        assert out == pytest.approx([15.0, 15.0, 15.0])

    def test_single_value(self):
        assert exponential_weighted_moving_average([7.0], alpha=0.3, horizon=2) == [7.0, 7.0]

    def test_level_recursion(self):
        # 100 -> 0.2*200 + 0.8*100 = 120 -> 0.2*50 + 0.8*120 = 106
        out = exponential_weighted_moving_average([100.0, 200.0, 50.0], alpha=0.2, horizon=1)
        assert out == pytest.approx([106.0])

    @pytest.mark.parametrize("alpha", [0.0, 1.0, -0.5, 1.5, None, math.nan])
    def test_alpha_out_of_range_raises(self, alpha):
        with pytest.raises(InvalidConfigError):
            exponential_weighted_moving_average([1.0, 2.0], alpha=alpha, horizon=1)

    def test_empty_raises(self):
        with pytest.raises(InsufficientDataError):
            exponential_weighted_moving_average([], alpha=0.5, horizon=1)


# ─── Linear Regression ───


class TestLinearRegression:
    def test_extends_exact_line(self):
        out = linear_regression_forecast([10.0, 12.0, 14.0, 16.0], horizon=3)
        assert out == pytest.approx([18.0, 20.0, 22.0])

    def test_recovers_arbitrary_line(self):
        values = [3.5 - 0.25 * i for i in range(30)]
        out = linear_regression_forecast(values, horizon=4)
        expected = [3.5 - 0.25 * i for i in range(30, 34)]
        assert all(abs(a - b) < 1e-9 for a, b in zip(out, expected))

    def test_two_points(self):
        assert linear_regression_forecast([0.0, 1.0], horizon=2) == pytest.approx([2.0, 3.0])

    def test_one_point_raises(self):
        with pytest.raises(InsufficientDataError):
            linear_regression_forecast([5.0], horizon=1)

    def test_overflowing_slope_raises_computation_error(self):
        with pytest.raises(ComputationError):
            linear_regression_forecast([-1e308, 1e308], horizon=3)


# ─── Seasonal Decomposition ───


class TestSeasonalDecomposition:
    def test_repeats_pure_pattern(self):
        values = seasonal_values([10.0, 20.0, 30.0, 40.0], cycles=3)
        out = seasonal_decomposition(values, season_length=4, horizon=4)
        assert out == pytest.approx([10.0, 20.0, 30.0, 40.0])

    def test_pattern_with_trend(self):
        values = seasonal_values([10.0, 20.0, 30.0, 40.0], cycles=4, slope=2.0)
        n = len(values)
        out = seasonal_decomposition(values, season_length=4, horizon=6)
        expected = [[10.0, 20.0, 30.0, 40.0][(n + i) % 4] + 2.0 * (n + i) for i in range(6)]
        assert out == pytest.approx(expected)

    def test_odd_season_length(self):
        values = seasonal_values([5.0, 10.0, 15.0], cycles=4)
        out = seasonal_decomposition(values, season_length=3, horizon=3)
        assert out == pytest.approx([5.0, 10.0, 15.0])

    def test_sine_wave(self):
        values = sine_values(48, period=12)
        out = seasonal_decomposition(values, season_length=12, horizon=12)
        expected = sine_values(60, period=12)[48:]
        assert out == pytest.approx(expected, abs=1e-6)

    def test_season_of_one_matches_linear_regression(self):
        values = [3.0, 7.0, 4.0, 9.0, 12.0, 10.0]
        assert seasonal_decomposition(values, season_length=1, horizon=3) == pytest.approx(
            linear_regression_forecast(values, horizon=3)
        )

    def test_fewer_than_two_seasons_raises(self):
        with pytest.raises(InsufficientDataError):
            seasonal_decomposition([1.0] * 13, season_length=7, horizon=1)

    def test_exactly_two_seasons(self):
        out = seasonal_decomposition([1.0, 2.0] * 2, season_length=2, horizon=2)
        assert len(out) == 2
        assert all(math.isfinite(v) for v in out)


# ─── Shared Edge Cases ───


class TestSharedEdgeCases:
    @pytest.mark.parametrize("horizon", [0, -3, True, 1.5])
    def test_bad_horizon_raises(self, horizon):
        with pytest.raises(InvalidConfigError):
            linear_regression_forecast([1.0, 2.0, 3.0], horizon=horizon)

    @pytest.mark.parametrize("bad", [math.nan, math.inf, -math.inf])
    def test_non_finite_input_raises(self, bad):
        with pytest.raises(ComputationError):
            simple_moving_average([1.0, bad, 3.0], window_size=2, horizon=1)

    def test_fsum_overflow_becomes_computation_error(self):
        with pytest.raises(ComputationError) as exc_info:
            simple_moving_average([1e308, 1e308], window_size=2, horizon=1)
        assert exc_info.value.context["algorithm"] == "SMA"


# ─── Config Validation & Dispatch ───


class TestValidateConfig:
    def test_valid_configs_pass(self):
        for config in (sma(3), ewma(0.4), linear(), seasonal(7)):
            validate_config(config, horizon=5)

    def test_missing_window_raises(self):
        with pytest.raises(InvalidConfigError):
            validate_config(ForecastConfig(algorithm=ForecastAlgorithm.SMA), horizon=5)

    def test_missing_season_raises(self):
        config = ForecastConfig(algorithm=ForecastAlgorithm.SEASONAL_DECOMPOSITION)
        with pytest.raises(InvalidConfigError):
            validate_config(config, horizon=5)

    def test_unused_fields_ignored(self):
        config = ForecastConfig(
            algorithm=ForecastAlgorithm.LINEAR_REGRESSION, window_size=-4, alpha=9.0
        )
        validate_config(config, horizon=1)

    def test_bad_horizon_raises(self):
        with pytest.raises(InvalidConfigError):
            validate_config(linear(), horizon=0)


class TestMinimumLength:
    @pytest.mark.parametrize(
        ("config", "expected"),
        [(sma(5), 5), (ewma(0.5), 1), (linear(), 2), (seasonal(7), 14)],
    )
    def test_minimum_length(self, config, expected):
        assert minimum_length(config) == expected


class TestRunAlgorithm:
    def test_dispatches_to_each_algorithm(self):
        values = seasonal_values([1.0, 5.0, 3.0], cycles=4, slope=0.5)
        assert run_algorithm(sma(3), values, 2) == simple_moving_average(values, 3, 2)
        assert run_algorithm(ewma(0.3), values, 2) == exponential_weighted_moving_average(
            values, 0.3, 2
        )
        assert run_algorithm(linear(), values, 2) == linear_regression_forecast(values, 2)
        assert run_algorithm(seasonal(3), values, 2) == seasonal_decomposition(values, 3, 2)
