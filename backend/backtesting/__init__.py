"""Backtesting module - retrospective accuracy scoring of forecast algorithms.

Replays an algorithm over truncated history to simulate past forecasts,
compares them with what actually happened, and derives a confidence score.
"""

from __future__ import annotations

from backend.backtesting.engine import BacktestEngine, run_backtest

__all__ = ["BacktestEngine", "run_backtest"]
