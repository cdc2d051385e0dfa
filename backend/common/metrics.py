"""Prometheus metrics definitions for the Cash-Flow Forecaster.

All metric objects are centralized here as module-level singletons.
Import what you need from anywhere in the codebase:

    from backend.common.metrics import FORECAST_RUNS_TOTAL

The /metrics endpoint is mounted in backend/main.py via
prometheus_client.make_asgi_app().
"""

from __future__ import annotations

from prometheus_client import Counter, Histogram, Info

# ─── App Info ───

APP_INFO = Info("app", "Application metadata")

# ─── HTTP Metrics ───

HTTP_REQUESTS_TOTAL = Counter(
    "http_requests_total",
    "API requests by route template and status",
    labelnames=["method", "route", "status_code"],
)

HTTP_REQUEST_DURATION_SECONDS = Histogram(
    "http_request_duration_seconds",
    "API request latency",
    labelnames=["method", "route"],
    buckets=(0.005, 0.01, 0.025, 0.05, 0.1, 0.25, 0.5, 1.0, 2.5, 5.0),
)

# ─── Forecast Metrics ───

FORECAST_RUNS_TOTAL = Counter(
    "forecast_runs_total",
    "Algorithm runs by outcome",
    labelnames=["algorithm", "status"],
)

FORECAST_DURATION_SECONDS = Histogram(
    "forecast_duration_seconds",
    "Wall time of a single algorithm run (worker pool)",
    labelnames=["algorithm"],
    buckets=(0.0005, 0.001, 0.005, 0.01, 0.05, 0.1, 0.5, 1.0),
)

FORECAST_BATCH_SIZE = Histogram(
    "forecast_batch_size",
    "Number of configs per batch request",
    buckets=(1, 2, 4, 8, 16, 32),
)

# ─── Backtest Metrics ───

BACKTEST_ANCHORS_TOTAL = Counter(
    "backtest_anchors_total",
    "Backtest anchors by outcome",
    labelnames=["algorithm", "outcome"],
)

BACKTEST_CONFIDENCE = Histogram(
    "backtest_confidence_score",
    "Confidence score derived by backtests",
    labelnames=["algorithm"],
    buckets=(0.1, 0.2, 0.3, 0.4, 0.5, 0.6, 0.7, 0.8, 0.9, 1.0),
)

# ─── Persistence Metrics ───

PERSISTENCE_FAILURES_TOTAL = Counter(
    "persistence_failures_total",
    "Failed attempts to store forecast or accuracy records",
    labelnames=["kind"],
)


def set_app_info(version: str, environment: str) -> None:
    """Set the app_info metric values. Called once at startup."""
    APP_INFO.info({"version": version, "environment": environment})
