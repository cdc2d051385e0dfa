"""FastAPI dependencies for the forecasting services.

Services are built per request from the shared session factory, the
shared worker pool, and Settings. Tests override these dependencies
with services backed by mock stores.
"""

from __future__ import annotations

from concurrent.futures import ThreadPoolExecutor

from fastapi import Depends

from backend.backtesting.engine import BacktestEngine
from backend.common.config import Settings, get_settings
from backend.common.database import get_session_factory
from backend.forecasting.orchestrator import ForecastOrchestrator
from backend.forecasting.store import SqlResultStore, SqlTransactionStore

_executor: ThreadPoolExecutor | None = None


def get_executor(settings: Settings = Depends(get_settings)) -> ThreadPoolExecutor:
    """Shared worker pool for algorithm runs (lazy singleton)."""
    global _executor
    if _executor is None:
        _executor = ThreadPoolExecutor(
            max_workers=settings.forecast_worker_threads,
            thread_name_prefix="forecast",
        )
    return _executor


def shutdown_executor() -> None:
    """Stop the worker pool. Called on application shutdown."""
    global _executor
    if _executor is not None:
        _executor.shutdown(wait=False, cancel_futures=True)
        _executor = None


def get_result_store(settings: Settings = Depends(get_settings)) -> SqlResultStore:
    return SqlResultStore(get_session_factory(), model_version=settings.model_version)


def get_orchestrator(
    settings: Settings = Depends(get_settings),
    executor: ThreadPoolExecutor = Depends(get_executor),
    result_store: SqlResultStore = Depends(get_result_store),
) -> ForecastOrchestrator:
    return ForecastOrchestrator(
        SqlTransactionStore(get_session_factory()),
        result_store,
        history_days=settings.history_days,
        default_confidence=settings.default_confidence_score,
        executor=executor,
    )


def get_backtest_engine(
    settings: Settings = Depends(get_settings),
    executor: ThreadPoolExecutor = Depends(get_executor),
    result_store: SqlResultStore = Depends(get_result_store),
) -> BacktestEngine:
    return BacktestEngine(
        SqlTransactionStore(get_session_factory()),
        result_store,
        default_confidence=settings.default_confidence_score,
        executor=executor,
    )
