"""Forecasting engine - statistical cash-flow projection from transaction history.

Orchestrates: history fetch → algorithm (SMA / EWMA / linear regression /
seasonal decomposition) → dated, confidence-annotated results.
"""

from __future__ import annotations

from backend.forecasting.algorithms import (
    exponential_weighted_moving_average,
    linear_regression_forecast,
    seasonal_decomposition,
    simple_moving_average,
)
from backend.forecasting.orchestrator import ForecastOrchestrator

__all__ = [
    "ForecastOrchestrator",
    "exponential_weighted_moving_average",
    "linear_regression_forecast",
    "seasonal_decomposition",
    "simple_moving_average",
]
