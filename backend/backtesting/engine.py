"""Backtesting engine - score an algorithm by replaying it on past data.

For every anchor date in the lookback window the algorithm is run on the
history strictly before the anchor, and its last forecast step is compared
with the total actually observed over that step's period. The mean absolute
percentage error becomes the confidence attached to the live forecast.

run_backtest() is the synchronous core (all data pre-loaded, no I/O);
BacktestEngine wraps it with the store fetch, the worker pool, and
persistence.

Usage:
    from backend.backtesting.engine import BacktestEngine

    engine = BacktestEngine(transaction_store, result_store)
    results = await engine.backtest_and_store_accuracy(
        user_id=7, config=config, start_date=date(2026, 3, 1),
        horizon_days=7, lookback_days=60,
    )
"""

from __future__ import annotations

from collections.abc import Sequence
from concurrent.futures import Executor
from datetime import date, timedelta

from backend.backtesting.metrics import (
    absolute_error,
    confidence_from_mape,
    mean_absolute_error,
    mean_percentage_error,
    percentage_error,
)
from backend.backtesting.schemas import BacktestSummary
from backend.common.logging import get_logger
from backend.common.metrics import BACKTEST_ANCHORS_TOTAL, BACKTEST_CONFIDENCE
from backend.common.schemas import (
    BacktestAccuracyRecord,
    ForecastConfig,
    ForecastResult,
    PeriodUnit,
    TimeSeriesPoint,
)
from backend.forecasting.algorithms import minimum_length, run_algorithm, validate_config
from backend.forecasting.assembler import DEFAULT_CONFIDENCE, constant_confidence, step_date
from backend.forecasting.cancellation import CancellationToken
from backend.forecasting.exceptions import InvalidConfigError
from backend.forecasting.orchestrator import compute_forecast, run_in_pool
from backend.forecasting.series import (
    aggregate_by_period,
    ensure_chronological,
    period_total,
    values_of,
)
from backend.forecasting.store import ResultStore, TransactionStore, persist_or_report

logger = get_logger("BACKTEST")


def _check_lookback(lookback_days: int) -> None:
    if isinstance(lookback_days, bool) or not isinstance(lookback_days, int) or lookback_days <= 0:
        raise InvalidConfigError(
            "lookback_days must be a positive integer",
            context={"lookback_days": lookback_days},
        )


def backtest_anchors(start_date: date, lookback_days: int, period_unit: PeriodUnit) -> list[date]:
    """Anchor dates from ``start_date - lookback_days`` up to (excluding) start_date."""
    first = start_date - timedelta(days=lookback_days)
    anchors: list[date] = []
    step = 0
    while (anchor := step_date(first, step, period_unit)) < start_date:
        anchors.append(anchor)
        step += 1
    return anchors


def run_backtest(
    series: Sequence[TimeSeriesPoint],
    config: ForecastConfig,
    start_date: date,
    horizon_days: int,
    lookback_days: int,
    period_unit: PeriodUnit = "daily",
    default_confidence: float = DEFAULT_CONFIDENCE,
    token: CancellationToken | None = None,
) -> BacktestSummary:
    """Replay ``config`` over the lookback window of ``series``.

    ``series`` holds daily points. For weekly and monthly units the history
    before each anchor is summed into periods ending at the anchor (see
    aggregate_by_period) and the actual is the total of the target period.

    The scored step is horizon index ``horizon_days - 1``, dated
    ``step_date(anchor, horizon_days - 1)``, the same date the assembler gives
    that step in a live forecast starting at the anchor. Index 0 is the
    anchor period itself, so the last step of an h-period forecast lies
    h - 1 periods after the anchor.

    Anchors without enough training history, or whose target period has no
    observed value or does not end by start_date, are skipped rather than
    failing.

    Args:
        series: Observations (ascending, unique dates) before start_date.
        config: Algorithm to score.
        start_date: First date of the live forecast; nothing at or after
            it is used as an actual.
        horizon_days: Forecast length per anchor; the last step is scored.
        lookback_days: Size of the anchor window before start_date.
        period_unit: Spacing of anchors and forecast steps.
        default_confidence: Confidence when no anchor could be scored.
        token: Checked before every anchor.

    Returns:
        BacktestSummary with one record per scored anchor.

    Raises:
        InvalidConfigError: Bad config, horizon, or lookback.
        InvalidSeriesError: Duplicate or unordered dates.
        ComputationError: An anchor run produced non-finite values.
    """
    validate_config(config, horizon_days)
    _check_lookback(lookback_days)
    series = ensure_chronological(series)

    algorithm = config.algorithm
    required = minimum_length(config)
    anchors = backtest_anchors(start_date, lookback_days, period_unit)

    samples: list[tuple[date, date, float, float]] = []
    skipped_insufficient = 0
    skipped_missing = 0

    for anchor in anchors:
        if token is not None:
            token.raise_if_cancelled("backtest")

        training = values_of(aggregate_by_period(series, anchor, period_unit))
        if len(training) < required:
            skipped_insufficient += 1
            continue

        target = step_date(anchor, horizon_days - 1, period_unit)
        target_end = step_date(anchor, horizon_days, period_unit)
        actual = period_total(series, target, target_end) if target_end <= start_date else None
        if actual is None:
            skipped_missing += 1
            continue

        predicted = run_algorithm(config, training, horizon_days)[-1]
        samples.append((anchor, target, predicted, actual))

    abs_errors = [absolute_error(p, a) for _, _, p, a in samples]
    pct_errors = [percentage_error(p, a) for _, _, p, a in samples]
    mape = mean_percentage_error(pct_errors)
    confidence = confidence_from_mape(mape, default_confidence)

    records = [
        BacktestAccuracyRecord(
            algorithm=algorithm,
            anchor_date=anchor,
            target_date=target,
            horizon_days=horizon_days,
            predicted_amount=predicted,
            actual_amount=actual,
            absolute_error=abs_err,
            percentage_error=pct_err,
            confidence_score=confidence,
        )
        for (anchor, target, predicted, actual), abs_err, pct_err in zip(
            samples, abs_errors, pct_errors
        )
    ]

    BACKTEST_ANCHORS_TOTAL.labels(algorithm=algorithm.value, outcome="evaluated").inc(len(samples))
    BACKTEST_ANCHORS_TOTAL.labels(algorithm=algorithm.value, outcome="insufficient_data").inc(
        skipped_insufficient
    )
    BACKTEST_ANCHORS_TOTAL.labels(algorithm=algorithm.value, outcome="missing_actual").inc(
        skipped_missing
    )
    BACKTEST_CONFIDENCE.labels(algorithm=algorithm.value).observe(confidence)

    return BacktestSummary(
        algorithm=algorithm,
        horizon_days=horizon_days,
        lookback_days=lookback_days,
        period_unit=period_unit,
        records=records,
        anchors_total=len(anchors),
        anchors_evaluated=len(samples),
        skipped_insufficient_data=skipped_insufficient,
        skipped_missing_actual=skipped_missing,
        mae=mean_absolute_error(abs_errors),
        mape=mape,
        confidence_score=confidence,
    )


class BacktestEngine:
    """Async front end for run_backtest with fetch and persistence.

    Args:
        transaction_store: Source of the historical series.
        result_store: Optional sink for accuracy records and the live forecast.
        default_confidence: Confidence when the backtest scores no anchor.
        executor: Worker pool; None uses the event loop's default executor.
    """

    def __init__(
        self,
        transaction_store: TransactionStore,
        result_store: ResultStore | None = None,
        *,
        default_confidence: float = DEFAULT_CONFIDENCE,
        executor: Executor | None = None,
    ) -> None:
        self._transactions = transaction_store
        self._results = result_store
        self._default_confidence = default_confidence
        self._executor = executor

    async def backtest(
        self,
        user_id: int,
        config: ForecastConfig,
        start_date: date,
        horizon_days: int,
        lookback_days: int,
        *,
        period_unit: PeriodUnit = "daily",
        token: CancellationToken | None = None,
    ) -> tuple[tuple[TimeSeriesPoint, ...], BacktestSummary]:
        """Fetch the window and score ``config``; nothing is persisted.

        The window reaches ``horizon_days`` periods before the first anchor.

        Returns:
            (series used, summary)
        """
        validate_config(config, horizon_days)
        _check_lookback(lookback_days)

        window_start = step_date(
            start_date - timedelta(days=lookback_days), -horizon_days, period_unit
        )
        points = await self._transactions.fetch_series(user_id, window_start, start_date)
        series = ensure_chronological(points)

        token = token or CancellationToken()
        summary = await run_in_pool(
            self._executor,
            token,
            run_backtest,
            series,
            config,
            start_date,
            horizon_days,
            lookback_days,
            period_unit,
            self._default_confidence,
            token,
        )
        return series, summary

    async def backtest_and_store_accuracy(
        self,
        user_id: int,
        config: ForecastConfig,
        start_date: date,
        horizon_days: int,
        lookback_days: int,
        *,
        period_unit: PeriodUnit = "daily",
    ) -> list[ForecastResult]:
        """Backtest ``config``, store the accuracy records, return the live forecast.

        The live forecast runs on the whole fetched window and every result
        carries the backtest-derived confidence score.

        Raises:
            InvalidConfigError: Bad config, horizon, or lookback.
            UserNotFoundError: Unknown user.
            InsufficientDataError: Not enough data for the live forecast.
        """
        token = CancellationToken()
        series, summary = await self.backtest(
            user_id,
            config,
            start_date,
            horizon_days,
            lookback_days,
            period_unit=period_unit,
            token=token,
        )

        if self._results is not None and summary.records:
            await persist_or_report(
                self._results.store_accuracy_records(user_id, summary.records),
                kind="accuracy",
                user_id=user_id,
                rows=len(summary.records),
            )

        results = await run_in_pool(
            self._executor,
            token,
            compute_forecast,
            config,
            values_of(aggregate_by_period(series, start_date, period_unit)),
            start_date,
            horizon_days,
            period_unit,
            constant_confidence(summary.confidence_score),
            self._default_confidence,
            token,
        )

        if self._results is not None:
            await persist_or_report(
                self._results.store_forecast_results(user_id, results),
                kind="forecast",
                user_id=user_id,
                rows=len(results),
            )

        logger.info(
            "Backtest completed",
            extra={
                "data": {
                    "user_id": user_id,
                    "config": config.describe(),
                    "anchors_total": summary.anchors_total,
                    "anchors_evaluated": summary.anchors_evaluated,
                    "mape": summary.mape,
                    "confidence": summary.confidence_score,
                }
            },
        )
        return results
