"""Turn raw algorithm output into dated, confidence-annotated ForecastResults.

Usage:
    from backend.forecasting.assembler import assemble_results

    results = assemble_results([130.0, 133.3], date(2026, 3, 1), "daily", ForecastAlgorithm.SMA)
"""

from __future__ import annotations

import calendar
import math
from collections.abc import Callable, Sequence
from datetime import date, timedelta

from backend.common.schemas import ForecastAlgorithm, ForecastResult, PeriodUnit

# Maps a horizon index to a confidence score (clamped to [0, 1] by the assembler).
ConfidenceFn = Callable[[int], float]

DEFAULT_CONFIDENCE = 0.5


def _add_months(start: date, months: int) -> date:
    month_index = start.month - 1 + months
    year = start.year + month_index // 12
    month = month_index % 12 + 1
    day = min(start.day, calendar.monthrange(year, month)[1])
    return date(year, month, day)


def step_date(start: date, steps: int, period_unit: PeriodUnit) -> date:
    """Date that lies ``steps`` periods after ``start``.

    Monthly steps are calendar months counted from ``start``; the day is
    clamped to the end of shorter months (Jan 31 + 1 month = Feb 28/29).
    """
    if period_unit == "daily":
        return start + timedelta(days=steps)
    if period_unit == "weekly":
        return start + timedelta(weeks=steps)
    if period_unit == "monthly":
        return _add_months(start, steps)
    msg = f"Unknown period unit: {period_unit!r}"
    raise ValueError(msg)


def clamp_confidence(score: float) -> float:
    """Clamp to [0, 1]; NaN counts as no confidence."""
    if math.isnan(score):
        return 0.0
    return max(0.0, min(1.0, score))


def constant_confidence(score: float) -> ConfidenceFn:
    return lambda _index: score


def decaying_confidence(base: float, decay: float = 0.05) -> ConfidenceFn:
    """Confidence that shrinks by ``decay`` for every step further out."""
    return lambda index: base - decay * index


def assemble_results(
    raw_forecast: Sequence[float],
    start_date: date,
    period_unit: PeriodUnit,
    algorithm: ForecastAlgorithm,
    confidence_fn: ConfidenceFn | None = None,
    default_confidence: float = DEFAULT_CONFIDENCE,
) -> list[ForecastResult]:
    """Build one ForecastResult per raw value, ordered by horizon index.

    Args:
        raw_forecast: Algorithm output, step 0 first.
        start_date: Date of horizon index 0.
        period_unit: Spacing between consecutive results.
        algorithm: Algorithm that produced the values.
        confidence_fn: Optional per-index confidence. Falls back to
            ``default_confidence`` for every step.
        default_confidence: Constant used when no confidence_fn is given.

    Returns:
        List of ForecastResult with horizon_index 0..len(raw_forecast)-1.
    """
    confidence_fn = confidence_fn or constant_confidence(default_confidence)
    return [
        ForecastResult(
            date=step_date(start_date, i, period_unit),
            predicted_amount=value,
            confidence_score=clamp_confidence(confidence_fn(i)),
            algorithm=algorithm,
            horizon_index=i,
        )
        for i, value in enumerate(raw_forecast)
    ]
