"""Error metrics for backtest samples.

Usage:
    from backend.backtesting.metrics import confidence_from_mape, mean_percentage_error

    mape = mean_percentage_error([0.1, None, 0.3])  # 0.2
    confidence = confidence_from_mape(mape, default=0.5)  # 0.8
"""

from __future__ import annotations

from collections.abc import Iterable
from math import fsum

from backend.forecasting.assembler import clamp_confidence


def absolute_error(predicted: float, actual: float) -> float:
    return abs(predicted - actual)


def percentage_error(predicted: float, actual: float) -> float | None:
    """Absolute error relative to |actual|; None when actual is zero."""
    if actual == 0:
        return None
    return abs(predicted - actual) / abs(actual)


def mean_absolute_error(errors: Iterable[float]) -> float | None:
    values = list(errors)
    if not values:
        return None
    return fsum(values) / len(values)


def mean_percentage_error(errors: Iterable[float | None]) -> float | None:
    """MAPE over the defined percentage errors (None entries are excluded)."""
    values = [e for e in errors if e is not None]
    if not values:
        return None
    return fsum(values) / len(values)


def confidence_from_mape(mape: float | None, default: float) -> float:
    """``clamp(1 - MAPE, 0, 1)``, or ``default`` when there is no sample.

    Args:
        mape: Mean absolute percentage error as a fraction (0.25 = 25%).
        default: Confidence reported when nothing could be scored.

    Returns:
        Confidence score in [0, 1].
    """
    if mape is None:
        return clamp_confidence(default)
    return clamp_confidence(1.0 - mape)
