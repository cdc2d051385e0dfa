"""Cooperative cancellation for work running on the forecast worker pool.

Threads cannot be interrupted, so worker loops poll a token that the
awaiting coroutine sets when it is cancelled.
"""

from __future__ import annotations

import threading

from backend.forecasting.exceptions import ForecastCancelledError


class CancellationToken:
    """Thread-safe flag shared by every task of one request."""

    def __init__(self) -> None:
        self._event = threading.Event()

    def cancel(self) -> None:
        self._event.set()

    @property
    def cancelled(self) -> bool:
        return self._event.is_set()

    def raise_if_cancelled(self, stage: str = "compute") -> None:
        """Raise ForecastCancelledError if cancel() has been called."""
        if self._event.is_set():
            raise ForecastCancelledError("Forecast request was cancelled", context={"stage": stage})
