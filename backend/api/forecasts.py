"""Forecast API endpoints.

GET  /api/forecasts/{user_id}   - single forecast (default: linear regression)
GET  /api/forecasts/{user_id}/active - stored ACTIVE forecasts
POST /api/forecasts/generate    - batch of configs, per-config errors inline
GET  /api/forecasts/accuracy    - SMA backtest + live forecast with its confidence

The forecast starts tomorrow; defaults for horizon, lookback, period and
SMA window come from Settings.
"""

from __future__ import annotations

from datetime import date, timedelta

from fastapi import APIRouter, Depends, Query

from backend.api.deps import get_backtest_engine, get_orchestrator, get_result_store
from backend.backtesting.engine import BacktestEngine
from backend.common.config import Settings, get_settings
from backend.common.logging import get_logger
from backend.common.schemas import (
    BatchForecastEntry,
    ForecastAlgorithm,
    ForecastConfig,
    ForecastResult,
    PeriodUnit,
)
from backend.forecasting.orchestrator import ForecastOrchestrator
from backend.forecasting.store import SqlResultStore, historical_confidence

router = APIRouter()
logger = get_logger("API")


def _tomorrow() -> date:
    return date.today() + timedelta(days=1)


@router.get("/accuracy", response_model=list[ForecastResult])
async def forecast_accuracy(
    user_id: int,
    horizon_days: int | None = Query(default=None, ge=1),
    lookback_days: int | None = Query(default=None, ge=1),
    period: PeriodUnit | None = None,
    engine: BacktestEngine = Depends(get_backtest_engine),
    settings: Settings = Depends(get_settings),
) -> list[ForecastResult]:
    """Backtest the default SMA config and return its confidence-annotated forecast."""
    config = ForecastConfig(algorithm=ForecastAlgorithm.SMA, window_size=settings.default_sma_window)
    return await engine.backtest_and_store_accuracy(
        user_id,
        config,
        _tomorrow(),
        horizon_days or settings.default_horizon_days,
        lookback_days or settings.default_lookback_days,
        period_unit=period or settings.default_period_unit,
    )


@router.post("/generate", response_model=dict[int, list[BatchForecastEntry]])
async def batch_generate(
    user_id: int,
    configs: list[ForecastConfig],
    horizon_days: int | None = Query(default=None, ge=1),
    period: PeriodUnit | None = None,
    orchestrator: ForecastOrchestrator = Depends(get_orchestrator),
    settings: Settings = Depends(get_settings),
) -> dict[int, list[BatchForecastEntry]]:
    """Run every config in the body; failed configs come back with ``error`` set."""
    return await orchestrator.batch_generate_forecasts(
        user_id,
        configs,
        _tomorrow(),
        horizon_days or settings.default_horizon_days,
        period_unit=period or settings.default_period_unit,
    )


@router.get("/{user_id}", response_model=list[ForecastResult])
async def get_forecast(
    user_id: int,
    period: PeriodUnit | None = None,
    horizon_days: int | None = Query(default=None, ge=1),
    algorithm: ForecastAlgorithm = ForecastAlgorithm.LINEAR_REGRESSION,
    window_size: int | None = None,
    alpha: float | None = None,
    season_length: int | None = None,
    orchestrator: ForecastOrchestrator = Depends(get_orchestrator),
    result_store: SqlResultStore = Depends(get_result_store),
    settings: Settings = Depends(get_settings),
) -> list[ForecastResult]:
    """Forecast one user's cash-flow with a single algorithm.

    Confidence is the score of the user's latest stored backtest for the
    algorithm, or the configured default when there is none.
    """
    config = ForecastConfig(
        algorithm=algorithm,
        window_size=window_size if window_size is not None else settings.default_sma_window,
        alpha=alpha,
        season_length=season_length,
    )
    confidence_fn = await historical_confidence(
        result_store, user_id, algorithm, settings.default_confidence_score
    )
    return await orchestrator.generate_forecast(
        user_id,
        config,
        _tomorrow(),
        horizon_days or settings.default_horizon_days,
        period_unit=period or settings.default_period_unit,
        confidence_fn=confidence_fn,
    )


@router.get("/{user_id}/active", response_model=list[ForecastResult])
async def get_active_forecasts(
    user_id: int,
    result_store: SqlResultStore = Depends(get_result_store),
) -> list[ForecastResult]:
    """Latest stored forecast of every algorithm for the user."""
    results = await result_store.get_active_forecasts(user_id)
    logger.info(
        "Active forecasts served",
        extra={"data": {"user_id": user_id, "rows": len(results)}},
    )
    return results
