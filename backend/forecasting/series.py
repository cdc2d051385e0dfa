"""Helpers for the (date, value) series handed over by the transaction store."""

from __future__ import annotations

import bisect
import math
from collections.abc import Sequence
from datetime import date

from backend.common.schemas import PeriodUnit, TimeSeriesPoint
from backend.forecasting.assembler import step_date
from backend.forecasting.exceptions import InvalidSeriesError


def ensure_chronological(points: Sequence[TimeSeriesPoint]) -> tuple[TimeSeriesPoint, ...]:
    """Return the points as an immutable tuple after checking their order.

    Raises:
        InvalidSeriesError: If two points share a date or a date goes backwards.
    """
    for prev, cur in zip(points, points[1:]):
        if cur.date == prev.date:
            raise InvalidSeriesError(
                "Series contains duplicate dates",
                context={"date": str(cur.date)},
            )
        if cur.date < prev.date:
            raise InvalidSeriesError(
                "Series is not sorted ascending by date",
                context={"previous": str(prev.date), "current": str(cur.date)},
            )
    return tuple(points)


def values_of(points: Sequence[TimeSeriesPoint]) -> list[float]:
    return [p.value for p in points]


def period_total(points: Sequence[TimeSeriesPoint], start: date, end: date) -> float | None:
    """Sum of the points with start <= date < end; None if there are none."""
    observed = [p.value for p in points if start <= p.date < end]
    return math.fsum(observed) if observed else None


def aggregate_by_period(
    points: Sequence[TimeSeriesPoint], end: date, period_unit: PeriodUnit
) -> list[TimeSeriesPoint]:
    """Sum daily points into ``period_unit`` buckets laid out backwards from ``end``.

    Bucket ``k`` covers ``[step_date(end, -k), step_date(end, -k + 1))``, the
    same calendar the assembler uses to date forecast steps from ``end``. A
    bucket is kept only if it starts on or after the first point, so a
    partially covered oldest period never enters the history. Points on or
    after ``end`` are ignored. Each bucket is dated by its first day.

    Daily buckets are the points themselves.
    """
    points = [p for p in points if p.date < end]
    if period_unit == "daily" or not points:
        return points

    first = points[0].date
    starts: list[date] = []
    k = 1
    while (bucket_start := step_date(end, -k, period_unit)) >= first:
        starts.append(bucket_start)
        k += 1
    starts.reverse()

    buckets: list[list[float]] = [[] for _ in starts]
    for p in points:
        index = bisect.bisect_right(starts, p.date) - 1
        if index >= 0:
            buckets[index].append(p.value)

    return [
        TimeSeriesPoint(date=bucket_start, value=math.fsum(values))
        for bucket_start, values in zip(starts, buckets)
    ]
