"""Test data factories for series, configs, and stores.

Usage:
    from tests.factories import make_series, make_transaction_store

    series = make_series([100, 110, 120])
    store = make_transaction_store(series)
"""

from __future__ import annotations

import math
from datetime import date, timedelta
from unittest.mock import AsyncMock

from backend.common.schemas import ForecastAlgorithm, ForecastConfig, TimeSeriesPoint


def make_series(
    values: list[float],
    start: date = date(2026, 1, 1),
    step_days: int = 1,
) -> list[TimeSeriesPoint]:
    """Points starting at ``start``, ``step_days`` apart, one per value."""
    return [
        TimeSeriesPoint(date=start + timedelta(days=i * step_days), value=v)
        for i, v in enumerate(values)
    ]


def make_daily_series_until(end: date, days: int, value_fn=lambda i: 100.0) -> list[TimeSeriesPoint]:
    """``days`` consecutive daily points ending the day before ``end``."""
    start = end - timedelta(days=days)
    return [
        TimeSeriesPoint(date=start + timedelta(days=i), value=value_fn(i)) for i in range(days)
    ]


def seasonal_values(pattern: list[float], cycles: int, slope: float = 0.0) -> list[float]:
    """``pattern`` repeated ``cycles`` times with an optional linear trend."""
    n = len(pattern) * cycles
    return [pattern[i % len(pattern)] + slope * i for i in range(n)]


def sine_values(n: int, period: int, amplitude: float = 50.0, level: float = 500.0) -> list[float]:
    return [level + amplitude * math.sin(2 * math.pi * i / period) for i in range(n)]


def sma(window_size: int = 3) -> ForecastConfig:
    return ForecastConfig(algorithm=ForecastAlgorithm.SMA, window_size=window_size)


def ewma(alpha: float = 0.3) -> ForecastConfig:
    return ForecastConfig(algorithm=ForecastAlgorithm.EWMA, alpha=alpha)


def linear() -> ForecastConfig:
    return ForecastConfig(algorithm=ForecastAlgorithm.LINEAR_REGRESSION)


def seasonal(season_length: int = 7) -> ForecastConfig:
    return ForecastConfig(
        algorithm=ForecastAlgorithm.SEASONAL_DECOMPOSITION, season_length=season_length
    )


def make_transaction_store(series: list[TimeSeriesPoint]) -> AsyncMock:
    """Mock TransactionStore honouring the [start, end) date filter."""
    store = AsyncMock()

    async def fetch_series(user_id: int, start: date, end: date) -> list[TimeSeriesPoint]:
        return [p for p in series if start <= p.date < end]

    store.fetch_series.side_effect = fetch_series
    return store


def make_result_store() -> AsyncMock:
    store = AsyncMock()
    store.store_forecast_results.return_value = None
    store.store_accuracy_records.return_value = None
    store.latest_confidence.return_value = None
    store.get_active_forecasts.return_value = []
    return store
