"""Pydantic schemas for backtest results."""

from __future__ import annotations

from pydantic import BaseModel, Field

from backend.common.schemas import BacktestAccuracyRecord, ForecastAlgorithm, PeriodUnit


class BacktestSummary(BaseModel):
    """Complete result of replaying one config over a lookback window."""

    algorithm: ForecastAlgorithm
    horizon_days: int = Field(ge=1)
    lookback_days: int = Field(ge=1)
    period_unit: PeriodUnit = "daily"
    records: list[BacktestAccuracyRecord] = []
    anchors_total: int = 0
    anchors_evaluated: int = 0
    skipped_insufficient_data: int = 0
    skipped_missing_actual: int = 0
    mae: float | None = None
    mape: float | None = None  # over anchors whose actual is non-zero
    confidence_score: float = Field(ge=0.0, le=1.0)
