"""Pydantic schemas - the interface contracts between all modules.

Defines the data shapes that flow between the transaction store, the
forecasting algorithms, the orchestrator, the backtest engine, and the
result store. All cross-module communication uses these types.

RULES:
- Use these types, never ad-hoc dicts or custom classes.
- Amounts are plain floats in the account currency; rounding for display
  is the caller's concern.
"""

from __future__ import annotations

from datetime import date
from enum import Enum
from typing import Literal

from pydantic import BaseModel, ConfigDict, Field, model_validator

PeriodUnit = Literal["daily", "weekly", "monthly"]
ForecastStage = Literal["validate", "fetch", "compute", "assemble", "persist"]


class ForecastAlgorithm(str, Enum):
    """Closed set of supported forecasting algorithms."""

    SMA = "SMA"
    EWMA = "EWMA"
    LINEAR_REGRESSION = "LINEAR_REGRESSION"
    SEASONAL_DECOMPOSITION = "SEASONAL_DECOMPOSITION"


# ─── Input Series ───


class TimeSeriesPoint(BaseModel):
    """One observation of a user's (daily net) cash-flow."""

    model_config = ConfigDict(frozen=True)

    date: date
    value: float


# ─── Configuration ───


class ForecastConfig(BaseModel):
    """Algorithm selection plus its parameters.

    Only the fields used by ``algorithm`` matter; the rest are ignored.
    Ranges are deliberately not enforced here so that a malformed config
    surfaces as InvalidConfigError from the engine rather than a
    validation error at construction time.
    """

    model_config = ConfigDict(frozen=True)

    algorithm: ForecastAlgorithm
    window_size: int | None = None  # SMA
    alpha: float | None = None  # EWMA
    season_length: int | None = None  # SEASONAL_DECOMPOSITION

    def describe(self) -> dict:
        """Compact dict of the fields relevant to the selected algorithm."""
        relevant = {
            ForecastAlgorithm.SMA: {"window_size": self.window_size},
            ForecastAlgorithm.EWMA: {"alpha": self.alpha},
            ForecastAlgorithm.LINEAR_REGRESSION: {},
            ForecastAlgorithm.SEASONAL_DECOMPOSITION: {"season_length": self.season_length},
        }[self.algorithm]
        return {"algorithm": self.algorithm.value, **relevant}


# ─── Results ───


class ForecastResult(BaseModel):
    """One future step of a forecast."""

    model_config = ConfigDict(frozen=True)

    date: date
    predicted_amount: float
    confidence_score: float = Field(ge=0.0, le=1.0)
    algorithm: ForecastAlgorithm
    horizon_index: int = Field(ge=0)


class BacktestAccuracyRecord(BaseModel):
    """Outcome of one simulated forecast in a backtest."""

    model_config = ConfigDict(frozen=True)

    algorithm: ForecastAlgorithm
    anchor_date: date
    target_date: date
    horizon_days: int = Field(ge=1)
    predicted_amount: float
    actual_amount: float
    absolute_error: float = Field(ge=0.0)
    percentage_error: float | None = None  # None when actual_amount == 0
    confidence_score: float = Field(ge=0.0, le=1.0)


# ─── Batch Results ───


class ForecastErrorDetail(BaseModel):
    """Explicit description of a failed config inside a batch."""

    error: str  # exception class name, e.g. "InvalidConfigError"
    message: str
    stage: ForecastStage = "compute"


class BatchForecastEntry(BaseModel):
    """Outcome for one config of a batch: either results or an error."""

    config: ForecastConfig
    results: list[ForecastResult] | None = None
    error: ForecastErrorDetail | None = None

    @model_validator(mode="after")
    def validate_outcome(self) -> BatchForecastEntry:
        """Exactly one of results / error must be set."""
        if (self.results is None) == (self.error is None):
            msg = "BatchForecastEntry needs exactly one of results or error"
            raise ValueError(msg)
        return self

    @property
    def ok(self) -> bool:
        return self.error is None
