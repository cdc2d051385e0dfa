"""Forecasting algorithms - pure functions from history to forecast.

Every algorithm shares the same contract:

    forecast(values, ..., horizon) -> list[float] with len == horizon

No state and no I/O. Each function validates its own parameters so it can
be called directly; ``run_algorithm`` dispatches a ForecastConfig to the
matching function.

Usage:
    from backend.forecasting.algorithms import run_algorithm, simple_moving_average

    simple_moving_average([100, 110, 120, 130, 140], window_size=3, horizon=2)
    # [130.0, 133.33...]
"""

from __future__ import annotations

import functools
import math
from collections import deque
from collections.abc import Callable, Sequence
from math import fsum

from backend.common.schemas import ForecastAlgorithm, ForecastConfig
from backend.forecasting.exceptions import (
    ComputationError,
    InsufficientDataError,
    InvalidConfigError,
)

# ─── Parameter Checks ───


def _check_horizon(horizon: int) -> None:
    if isinstance(horizon, bool) or not isinstance(horizon, int) or horizon <= 0:
        raise InvalidConfigError("horizon must be a positive integer", context={"horizon": horizon})


def _check_positive_int(name: str, value: int | None) -> None:
    if isinstance(value, bool) or not isinstance(value, int) or value <= 0:
        raise InvalidConfigError(f"{name} must be a positive integer", context={name: value})


def _check_alpha(alpha: float | None) -> None:
    if alpha is None or not math.isfinite(alpha) or not 0.0 < alpha < 1.0:
        raise InvalidConfigError("alpha must lie strictly between 0 and 1", context={"alpha": alpha})


def _prepare(values: Sequence[float], minimum: int, algorithm: ForecastAlgorithm) -> list[float]:
    """Copy the input, enforcing the minimum length and finiteness."""
    data = [float(v) for v in values]
    if len(data) < max(minimum, 1):
        raise InsufficientDataError(
            f"{algorithm.value} needs at least {max(minimum, 1)} values",
            context={"algorithm": algorithm.value, "available": len(data), "required": minimum},
        )
    if not all(math.isfinite(v) for v in data):
        raise ComputationError(
            "Input series contains non-finite values",
            context={"algorithm": algorithm.value},
        )
    return data


def _ensure_finite(out: list[float], algorithm: ForecastAlgorithm) -> list[float]:
    if not all(math.isfinite(v) for v in out):
        raise ComputationError(
            "Forecast produced non-finite values",
            context={"algorithm": algorithm.value},
        )
    return out


def _fit_line(ys: Sequence[float], xs: Sequence[float] | None = None) -> tuple[float, float]:
    """Ordinary least squares fit of ys against xs (default 0..n-1).

    Returns:
        (slope, intercept). A single distinct x yields slope 0 through the mean.
    """
    n = len(ys)
    if xs is None:
        xs = range(n)
    x_mean = fsum(xs) / n
    y_mean = fsum(ys) / n
    sxx = fsum((x - x_mean) ** 2 for x in xs)
    if sxx == 0:
        return 0.0, y_mean
    sxy = fsum((x - x_mean) * (y - y_mean) for x, y in zip(xs, ys))
    slope = sxy / sxx
    return slope, y_mean - slope * x_mean


def _numeric(algorithm: ForecastAlgorithm):
    """Re-raise float overflow and friends as ComputationError."""

    def decorator(func):
        @functools.wraps(func)
        def wrapper(*args, **kwargs):
            try:
                return func(*args, **kwargs)
            except ArithmeticError as exc:
                raise ComputationError(
                    f"Numeric failure in {algorithm.value}: {exc}",
                    context={"algorithm": algorithm.value},
                ) from exc

        return wrapper

    return decorator


# ─── Algorithms ───


@_numeric(ForecastAlgorithm.SMA)
def simple_moving_average(values: Sequence[float], window_size: int, horizon: int) -> list[float]:
    """Recursive simple moving average.

    Each step is the mean of the trailing ``window_size`` values, where
    earlier forecast steps are appended to the tail of the real series.
    Later steps therefore converge toward the mean of the last window.

    Raises:
        InvalidConfigError: window_size or horizon not positive.
        InsufficientDataError: fewer than window_size values.
    """
    _check_positive_int("window_size", window_size)
    _check_horizon(horizon)
    data = _prepare(values, window_size, ForecastAlgorithm.SMA)

    window: deque[float] = deque(data[-window_size:], maxlen=window_size)
    out: list[float] = []
    for _ in range(horizon):
        nxt = fsum(window) / window_size
        out.append(nxt)
        window.append(nxt)
    return _ensure_finite(out, ForecastAlgorithm.SMA)


@_numeric(ForecastAlgorithm.EWMA)
def exponential_weighted_moving_average(
    values: Sequence[float], alpha: float, horizon: int
) -> list[float]:
    """Flat-line forecast at the final exponentially smoothed level."""
    _check_alpha(alpha)
    _check_horizon(horizon)
    data = _prepare(values, 1, ForecastAlgorithm.EWMA)

    level = data[0]
    for v in data[1:]:
        level = alpha * v + (1 - alpha) * level
    return _ensure_finite([level] * horizon, ForecastAlgorithm.EWMA)


@_numeric(ForecastAlgorithm.LINEAR_REGRESSION)
def linear_regression_forecast(values: Sequence[float], horizon: int) -> list[float]:
    """Extrapolate the least-squares line fitted over indices 0..n-1.

    Step i (1-based) is ``slope * (n - 1 + i) + intercept``.
    """
    _check_horizon(horizon)
    data = _prepare(values, 2, ForecastAlgorithm.LINEAR_REGRESSION)

    n = len(data)
    slope, intercept = _fit_line(data)
    out = [slope * (n - 1 + i) + intercept for i in range(1, horizon + 1)]
    return _ensure_finite(out, ForecastAlgorithm.LINEAR_REGRESSION)


def _centered_moving_average(values: list[float], period: int) -> list[tuple[int, float]]:
    """(time index, trend) pairs where a full centered window fits.

    Even periods use the 2xL average: the two end points get half weight.
    """
    n = len(values)
    half = period // 2
    trend: list[tuple[int, float]] = []
    for t in range(half, n - half):
        window = values[t - half : t + half + 1]
        if period % 2:
            total = fsum(window)
        else:
            total = fsum(window[1:-1]) + 0.5 * (window[0] + window[-1])
        trend.append((t, total / period))
    return trend


@_numeric(ForecastAlgorithm.SEASONAL_DECOMPOSITION)
def seasonal_decomposition(
    values: Sequence[float], season_length: int, horizon: int
) -> list[float]:
    """Additive decomposition: linear trend plus a repeating seasonal index.

    1. Trend = centered moving average of width season_length.
    2. Residual = value - trend, averaged per position within the season
       and normalized to sum to zero.
    3. The trend is extrapolated with a least-squares line over its own
       time indices and the seasonal index for time n + i is added.

    Raises:
        InsufficientDataError: fewer than two full seasons.
    """
    _check_positive_int("season_length", season_length)
    _check_horizon(horizon)
    data = _prepare(values, 2 * season_length, ForecastAlgorithm.SEASONAL_DECOMPOSITION)

    n = len(data)
    trend = _centered_moving_average(data, season_length)

    buckets: list[list[float]] = [[] for _ in range(season_length)]
    for t, level in trend:
        buckets[t % season_length].append(data[t] - level)
    index = [fsum(b) / len(b) for b in buckets]
    shift = fsum(index) / season_length
    index = [s - shift for s in index]

    times = [float(t) for t, _ in trend]
    levels = [level for _, level in trend]
    slope, intercept = _fit_line(levels, times)

    out = [
        slope * (n + i) + intercept + index[(n + i) % season_length] for i in range(horizon)
    ]
    return _ensure_finite(out, ForecastAlgorithm.SEASONAL_DECOMPOSITION)


# ─── Dispatch ───

_DISPATCH: dict[ForecastAlgorithm, Callable[[ForecastConfig, Sequence[float], int], list[float]]] = {
    ForecastAlgorithm.SMA: lambda c, v, h: simple_moving_average(v, c.window_size, h),
    ForecastAlgorithm.EWMA: lambda c, v, h: exponential_weighted_moving_average(v, c.alpha, h),
    ForecastAlgorithm.LINEAR_REGRESSION: lambda c, v, h: linear_regression_forecast(v, h),
    ForecastAlgorithm.SEASONAL_DECOMPOSITION: lambda c, v, h: seasonal_decomposition(
        v, c.season_length, h
    ),
}


def validate_config(config: ForecastConfig, horizon: int) -> None:
    """Check the parameters the selected algorithm needs, without any data.

    Raises:
        InvalidConfigError: If a required parameter or the horizon is invalid.
    """
    _check_horizon(horizon)
    if config.algorithm is ForecastAlgorithm.SMA:
        _check_positive_int("window_size", config.window_size)
    elif config.algorithm is ForecastAlgorithm.EWMA:
        _check_alpha(config.alpha)
    elif config.algorithm is ForecastAlgorithm.SEASONAL_DECOMPOSITION:
        _check_positive_int("season_length", config.season_length)


def minimum_length(config: ForecastConfig) -> int:
    """Smallest series length the configured algorithm accepts.

    The config must already be valid (see validate_config).
    """
    if config.algorithm is ForecastAlgorithm.SMA:
        return config.window_size
    if config.algorithm is ForecastAlgorithm.EWMA:
        return 1
    if config.algorithm is ForecastAlgorithm.LINEAR_REGRESSION:
        return 2
    return 2 * config.season_length


def run_algorithm(config: ForecastConfig, values: Sequence[float], horizon: int) -> list[float]:
    """Run the algorithm selected by ``config`` over ``values``."""
    return _DISPATCH[config.algorithm](config, values, horizon)
