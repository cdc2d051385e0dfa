"""Forecast orchestrator - fetch history, run algorithms, assemble results.

Ties together the store, the algorithms, and the assembler:
    1. Validate the config(s) and horizon
    2. Fetch the user's history ending strictly before start_date (one fetch,
       even for a batch) and sum it into periods of the requested unit
    3. Run each algorithm on the worker pool
    4. Assemble dated ForecastResults and hand them to the result store

Usage:
    from backend.forecasting.orchestrator import ForecastOrchestrator

    orchestrator = ForecastOrchestrator(transaction_store, result_store)
    results = await orchestrator.generate_forecast(
        user_id=7,
        config=ForecastConfig(algorithm=ForecastAlgorithm.LINEAR_REGRESSION),
        start_date=date(2026, 3, 1),
        horizon_days=14,
    )
"""

from __future__ import annotations

import asyncio
import functools
import time
from collections.abc import Callable, Sequence
from concurrent.futures import Executor
from datetime import date, timedelta
from typing import TypeVar

from backend.common.exceptions import CashflowBaseException
from backend.common.logging import get_logger
from backend.common.metrics import (
    FORECAST_BATCH_SIZE,
    FORECAST_DURATION_SECONDS,
    FORECAST_RUNS_TOTAL,
)
from backend.common.schemas import (
    BatchForecastEntry,
    ForecastConfig,
    ForecastErrorDetail,
    ForecastResult,
    PeriodUnit,
    TimeSeriesPoint,
)
from backend.forecasting.algorithms import run_algorithm, validate_config
from backend.forecasting.assembler import (
    DEFAULT_CONFIDENCE,
    ConfidenceFn,
    assemble_results,
)
from backend.forecasting.cancellation import CancellationToken
from backend.forecasting.exceptions import (
    ComputationError,
    ForecastCancelledError,
    ForecastError,
)
from backend.forecasting.series import aggregate_by_period, ensure_chronological, values_of
from backend.forecasting.store import ResultStore, TransactionStore, persist_or_report

logger = get_logger("FORECAST")

T = TypeVar("T")


def compute_forecast(
    config: ForecastConfig,
    values: Sequence[float],
    start_date: date,
    horizon: int,
    period_unit: PeriodUnit,
    confidence_fn: ConfidenceFn | None = None,
    default_confidence: float = DEFAULT_CONFIDENCE,
    token: CancellationToken | None = None,
) -> list[ForecastResult]:
    """Run one algorithm and assemble its output. Synchronous, CPU only.

    Meant to run on the worker pool; records run metrics.
    """
    if token is not None:
        token.raise_if_cancelled()

    algorithm = config.algorithm.value
    started = time.perf_counter()
    try:
        raw = run_algorithm(config, values, horizon)
    except ForecastError:
        FORECAST_RUNS_TOTAL.labels(algorithm=algorithm, status="error").inc()
        raise
    FORECAST_DURATION_SECONDS.labels(algorithm=algorithm).observe(time.perf_counter() - started)
    FORECAST_RUNS_TOTAL.labels(algorithm=algorithm, status="success").inc()

    if token is not None:
        token.raise_if_cancelled("assemble")
    return assemble_results(
        raw,
        start_date,
        period_unit,
        config.algorithm,
        confidence_fn=confidence_fn,
        default_confidence=default_confidence,
    )


async def run_in_pool(
    executor: Executor | None,
    token: CancellationToken,
    func: Callable[..., T],
    *args,
    **kwargs,
) -> T:
    """Run ``func`` on the worker pool; cancelling the await sets ``token``."""
    loop = asyncio.get_running_loop()
    try:
        return await loop.run_in_executor(executor, functools.partial(func, *args, **kwargs))
    except asyncio.CancelledError:
        token.cancel()
        raise


class ForecastOrchestrator:
    """Runs forecasting algorithms over a user's transaction history.

    Args:
        transaction_store: Source of the historical series.
        result_store: Optional sink for produced results. None disables
            persistence.
        history_days: How far back before start_date the history is fetched.
        default_confidence: Confidence used when no ConfidenceFn is supplied.
        executor: Worker pool for algorithm runs. None uses the event
            loop's default executor.
    """

    def __init__(
        self,
        transaction_store: TransactionStore,
        result_store: ResultStore | None = None,
        *,
        history_days: int = 365,
        default_confidence: float = DEFAULT_CONFIDENCE,
        executor: Executor | None = None,
    ) -> None:
        self._transactions = transaction_store
        self._results = result_store
        self._history_days = history_days
        self._default_confidence = default_confidence
        self._executor = executor

    async def _fetch_history(
        self, user_id: int, start_date: date, period_unit: PeriodUnit
    ) -> list[TimeSeriesPoint]:
        """Daily history before start_date, summed into ``period_unit`` buckets."""
        points = await self._transactions.fetch_series(
            user_id, start_date - timedelta(days=self._history_days), start_date
        )
        return aggregate_by_period(ensure_chronological(points), start_date, period_unit)

    async def _persist(self, user_id: int, results: list[ForecastResult]) -> None:
        if self._results is None or not results:
            return
        await persist_or_report(
            self._results.store_forecast_results(user_id, results),
            kind="forecast",
            user_id=user_id,
            rows=len(results),
        )

    async def generate_forecast(
        self,
        user_id: int,
        config: ForecastConfig,
        start_date: date,
        horizon_days: int,
        *,
        period_unit: PeriodUnit = "daily",
        confidence_fn: ConfidenceFn | None = None,
        persist: bool = True,
    ) -> list[ForecastResult]:
        """Forecast ``horizon_days`` periods starting at ``start_date``.

        Raises:
            InvalidConfigError: Bad algorithm parameters or horizon.
            UserNotFoundError: Unknown user (from the transaction store).
            InvalidSeriesError: Store returned duplicate/unordered dates.
            InsufficientDataError: Not enough history for the algorithm.
            ComputationError: Non-finite input or output.
        """
        validate_config(config, horizon_days)
        series = await self._fetch_history(user_id, start_date, period_unit)

        token = CancellationToken()
        results = await run_in_pool(
            self._executor,
            token,
            compute_forecast,
            config,
            values_of(series),
            start_date,
            horizon_days,
            period_unit,
            confidence_fn,
            self._default_confidence,
            token,
        )

        if persist:
            await self._persist(user_id, results)

        logger.info(
            "Forecast generated",
            extra={
                "data": {
                    "user_id": user_id,
                    "config": config.describe(),
                    "start_date": str(start_date),
                    "horizon": horizon_days,
                    "history_points": len(series),
                }
            },
        )
        return results

    async def _run_batch_entry(
        self,
        user_id: int,
        config: ForecastConfig,
        values: tuple[float, ...],
        start_date: date,
        horizon_days: int,
        period_unit: PeriodUnit,
        confidence_fn: ConfidenceFn | None,
        token: CancellationToken,
    ) -> BatchForecastEntry:
        """Compute one config of a batch, turning its failure into an error entry."""
        stage = "validate"
        try:
            validate_config(config, horizon_days)
            stage = "compute"
            results = await run_in_pool(
                self._executor,
                token,
                compute_forecast,
                config,
                values,
                start_date,
                horizon_days,
                period_unit,
                confidence_fn,
                self._default_confidence,
                token,
            )
        except ForecastCancelledError:
            raise
        except CashflowBaseException as exc:
            logger.warning(
                "Batch config failed",
                extra={
                    "data": {
                        "user_id": user_id,
                        "config": config.describe(),
                        "stage": stage,
                        "error": type(exc).__name__,
                        "context": exc.context,
                    }
                },
            )
            return BatchForecastEntry(
                config=config,
                error=ForecastErrorDetail(
                    error=type(exc).__name__, message=str(exc), stage=stage
                ),
            )
        except Exception as exc:
            logger.error(
                "Unexpected failure in batch config",
                extra={"data": {"user_id": user_id, "config": config.describe(), "stage": stage}},
                exc_info=True,
            )
            wrapped = ComputationError(
                f"Unexpected {type(exc).__name__}: {exc}",
                context={"algorithm": config.algorithm.value},
            )
            return BatchForecastEntry(
                config=config,
                error=ForecastErrorDetail(
                    error=type(wrapped).__name__, message=str(wrapped), stage=stage
                ),
            )
        return BatchForecastEntry(config=config, results=results)

    async def batch_generate_forecasts(
        self,
        user_id: int,
        configs: Sequence[ForecastConfig],
        start_date: date,
        horizon_days: int,
        *,
        period_unit: PeriodUnit = "daily",
        confidence_fn: ConfidenceFn | None = None,
        persist: bool = True,
    ) -> dict[int, list[BatchForecastEntry]]:
        """Run several configs over one shared fetch of the user's history.

        Each config runs as its own task; a failing config yields an entry
        with ``error`` set and never aborts the others. Entries keep the
        order of ``configs``.

        Returns:
            ``{user_id: [BatchForecastEntry, ...]}``

        Raises:
            UserNotFoundError / InvalidSeriesError: The shared fetch failed,
                which is terminal for the whole batch.
        """
        configs = list(configs)
        FORECAST_BATCH_SIZE.observe(len(configs))
        series = await self._fetch_history(user_id, start_date, period_unit)
        values = tuple(values_of(series))

        token = CancellationToken()
        tasks = [
            asyncio.create_task(
                self._run_batch_entry(
                    user_id,
                    config,
                    values,
                    start_date,
                    horizon_days,
                    period_unit,
                    confidence_fn,
                    token,
                )
            )
            for config in configs
        ]
        try:
            entries = await asyncio.gather(*tasks)
        except asyncio.CancelledError:
            token.cancel()
            for task in tasks:
                task.cancel()
            raise

        succeeded = [r for entry in entries if entry.results for r in entry.results]
        if persist:
            await self._persist(user_id, succeeded)

        logger.info(
            "Batch forecast generated",
            extra={
                "data": {
                    "user_id": user_id,
                    "configs": len(configs),
                    "failed": sum(1 for e in entries if not e.ok),
                    "history_points": len(series),
                }
            },
        )
        return {user_id: list(entries)}
