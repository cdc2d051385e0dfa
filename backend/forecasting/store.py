"""Collaborator interfaces for the forecasting core, plus SQL implementations.

The orchestrator and the backtest engine only depend on the two protocols:

    TransactionStore.fetch_series(user_id, start, end)   # end exclusive
    ResultStore.store_forecast_results(user_id, results)
    ResultStore.store_accuracy_records(user_id, records)

SqlTransactionStore / SqlResultStore implement them on top of the async
SQLAlchemy models. Each call opens its own short-lived session so the
stores can be shared by concurrent requests.

Usage:
    from backend.common.database import get_session_factory
    from backend.forecasting.store import SqlResultStore, SqlTransactionStore

    factory = get_session_factory()
    series = await SqlTransactionStore(factory).fetch_series(7, start, end)
"""

from __future__ import annotations

from collections.abc import Awaitable, Sequence
from datetime import date, timedelta
from typing import Protocol

from sqlalchemy import case, func, select, update
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from backend.common.exceptions import PersistenceError, UserNotFoundError
from backend.common.logging import get_logger
from backend.common.metrics import PERSISTENCE_FAILURES_TOTAL
from backend.common.models import (
    BacktestAccuracy,
    Forecast,
    ForecastStatus,
    Transaction,
    TransactionType,
    User,
)
from backend.common.schemas import (
    BacktestAccuracyRecord,
    ForecastAlgorithm,
    ForecastResult,
    TimeSeriesPoint,
)
from backend.forecasting.assembler import ConfidenceFn, constant_confidence

logger = get_logger("STORE")


class TransactionStore(Protocol):
    async def fetch_series(self, user_id: int, start: date, end: date) -> list[TimeSeriesPoint]:
        """Points with start <= date < end, ascending; UserNotFoundError if unknown."""
        ...


class ResultStore(Protocol):
    async def store_forecast_results(
        self, user_id: int, results: Sequence[ForecastResult]
    ) -> None: ...

    async def store_accuracy_records(
        self, user_id: int, records: Sequence[BacktestAccuracyRecord]
    ) -> None: ...


# ─── SQL Implementations ───


class SqlTransactionStore:
    """Daily net cash-flow series built from the transactions table.

    Income counts positive, expenses negative; all entries of one day are
    summed into a single point. Every day of the requested range is present;
    a day without transactions has a net cash-flow of 0.0.
    """

    def __init__(self, session_factory: async_sessionmaker[AsyncSession]) -> None:
        self._session_factory = session_factory

    async def fetch_series(self, user_id: int, start: date, end: date) -> list[TimeSeriesPoint]:
        signed_amount = case(
            (Transaction.type == TransactionType.EXPENSE, -Transaction.amount),
            else_=Transaction.amount,
        )
        stmt = (
            select(
                Transaction.transaction_date.label("day"),
                func.sum(signed_amount).label("net"),
            )
            .where(
                Transaction.user_id == user_id,
                Transaction.transaction_date >= start,
                Transaction.transaction_date < end,
            )
            .group_by(Transaction.transaction_date)
            .order_by(Transaction.transaction_date.asc())
        )

        async with self._session_factory() as session:
            if await session.get(User, user_id) is None:
                raise UserNotFoundError("User not found", context={"user_id": user_id})
            rows = (await session.execute(stmt)).all()

        net_by_day = {row.day: float(row.net) for row in rows}
        points = [
            TimeSeriesPoint(date=day, value=net_by_day.get(day, 0.0))
            for day in (start + timedelta(days=i) for i in range((end - start).days))
        ]
        logger.debug(
            "Series fetched",
            extra={
                "data": {
                    "user_id": user_id,
                    "start": str(start),
                    "end": str(end),
                    "points": len(points),
                    "active_days": len(net_by_day),
                }
            },
        )
        return points


class SqlResultStore:
    """Persists forecasts and backtest accuracy records.

    Storing a new forecast archives the user's ACTIVE forecasts of the same
    model, so each (user, model) pair has at most one active forecast run.
    """

    def __init__(
        self,
        session_factory: async_sessionmaker[AsyncSession],
        model_version: str = "1.0",
    ) -> None:
        self._session_factory = session_factory
        self._model_version = model_version

    async def store_forecast_results(
        self, user_id: int, results: Sequence[ForecastResult]
    ) -> None:
        if not results:
            return
        model_names = sorted({r.algorithm.value for r in results})
        try:
            async with self._session_factory() as session, session.begin():
                await session.execute(
                    update(Forecast)
                    .where(
                        Forecast.user_id == user_id,
                        Forecast.model_name.in_(model_names),
                        Forecast.status == ForecastStatus.ACTIVE,
                    )
                    .values(status=ForecastStatus.ARCHIVED)
                )
                session.add_all(
                    Forecast(
                        user_id=user_id,
                        forecast_date=r.date,
                        predicted_amount=r.predicted_amount,
                        confidence_score=r.confidence_score,
                        model_name=r.algorithm.value,
                        model_version=self._model_version,
                        horizon_index=r.horizon_index,
                        status=ForecastStatus.ACTIVE,
                    )
                    for r in results
                )
        except SQLAlchemyError as exc:
            raise PersistenceError(
                "Failed to store forecast results",
                context={"user_id": user_id, "models": model_names, "rows": len(results)},
            ) from exc

        logger.info(
            "Forecast results stored",
            extra={"data": {"user_id": user_id, "models": model_names, "rows": len(results)}},
        )

    async def store_accuracy_records(
        self, user_id: int, records: Sequence[BacktestAccuracyRecord]
    ) -> None:
        if not records:
            return
        try:
            async with self._session_factory() as session, session.begin():
                session.add_all(
                    BacktestAccuracy(
                        user_id=user_id,
                        model_name=r.algorithm.value,
                        anchor_date=r.anchor_date,
                        target_date=r.target_date,
                        horizon_days=r.horizon_days,
                        predicted_amount=r.predicted_amount,
                        actual_amount=r.actual_amount,
                        absolute_error=r.absolute_error,
                        percentage_error=r.percentage_error,
                        confidence_score=r.confidence_score,
                    )
                    for r in records
                )
        except SQLAlchemyError as exc:
            raise PersistenceError(
                "Failed to store accuracy records",
                context={"user_id": user_id, "rows": len(records)},
            ) from exc

        logger.info(
            "Accuracy records stored",
            extra={"data": {"user_id": user_id, "rows": len(records)}},
        )

    async def get_active_forecasts(self, user_id: int) -> list[ForecastResult]:
        """ACTIVE forecasts for a user, grouped by model and ordered by horizon."""
        stmt = (
            select(Forecast)
            .where(Forecast.user_id == user_id, Forecast.status == ForecastStatus.ACTIVE)
            .order_by(Forecast.model_name, Forecast.horizon_index)
        )
        async with self._session_factory() as session:
            rows = (await session.execute(stmt)).scalars().all()
        return [
            ForecastResult(
                date=row.forecast_date,
                predicted_amount=row.predicted_amount,
                confidence_score=row.confidence_score,
                algorithm=ForecastAlgorithm(row.model_name),
                horizon_index=row.horizon_index,
            )
            for row in rows
        ]

    async def latest_confidence(self, user_id: int, algorithm: ForecastAlgorithm) -> float | None:
        """Confidence of the most recent backtest run for one user/model.

        Every record of a run carries the run's score, so the newest row
        decides. None without history.
        """
        stmt = (
            select(BacktestAccuracy.confidence_score)
            .where(
                BacktestAccuracy.user_id == user_id,
                BacktestAccuracy.model_name == algorithm.value,
            )
            .order_by(BacktestAccuracy.id.desc())
            .limit(1)
        )
        async with self._session_factory() as session:
            value = (await session.execute(stmt)).scalar_one_or_none()
        return float(value) if value is not None else None


async def persist_or_report(
    store_call: Awaitable[None],
    kind: str,
    user_id: int,
    rows: int,
) -> bool:
    """Await a store call; log and count a failure instead of raising.

    Results already computed stay valid when storage fails, so callers
    return them regardless.

    Returns:
        True if the records were stored.
    """
    try:
        await store_call
    except Exception:
        PERSISTENCE_FAILURES_TOTAL.labels(kind=kind).inc()
        logger.error(
            "Failed to persist records",
            extra={"data": {"kind": kind, "user_id": user_id, "rows": rows}},
            exc_info=True,
        )
        return False
    return True


async def historical_confidence(
    store: SqlResultStore,
    user_id: int,
    algorithm: ForecastAlgorithm,
    default: float,
) -> ConfidenceFn:
    """Constant ConfidenceFn from the latest backtest, or ``default`` without history."""
    score = await store.latest_confidence(user_id, algorithm)
    return constant_confidence(default if score is None else score)
