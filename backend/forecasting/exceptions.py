"""Forecasting-specific exceptions.

The orchestrator and the API layer can catch ForecastError to handle any
failure of a single algorithm run.
"""

from __future__ import annotations

from backend.common.exceptions import CashflowBaseException


class ForecastError(CashflowBaseException):
    """Base exception for forecasting and backtesting errors."""


class InsufficientDataError(ForecastError):
    """The series is shorter than the algorithm's minimum length."""


class InvalidConfigError(ForecastError):
    """Algorithm parameters or the horizon are out of domain."""


class InvalidSeriesError(ForecastError):
    """The input series has duplicate or out-of-order dates."""


class ComputationError(ForecastError):
    """A numeric edge case produced a non-finite or unusable value."""


class ForecastCancelledError(ForecastError):
    """The request was cancelled while work was in flight."""
