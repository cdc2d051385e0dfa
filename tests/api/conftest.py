"""API test fixtures - httpx.AsyncClient with service dependencies overridden.

The forecasting services are rebuilt on top of mock stores so endpoint
tests never touch a database; the worker pool is the event loop default.
"""

from __future__ import annotations

from datetime import date, timedelta

import pytest
from httpx import ASGITransport, AsyncClient

from backend.api.deps import get_backtest_engine, get_orchestrator, get_result_store
from backend.backtesting.engine import BacktestEngine
from backend.forecasting.orchestrator import ForecastOrchestrator
from backend.main import app
from tests.factories import make_daily_series_until, make_result_store, make_transaction_store


@pytest.fixture
def tomorrow() -> date:
    return date.today() + timedelta(days=1)


@pytest.fixture
def history(tomorrow):
    """120 days of constant 200.0 net cash-flow ending today."""
    return make_daily_series_until(tomorrow, 120, lambda i: 200.0)


@pytest.fixture
def transaction_store(history):
    return make_transaction_store(history)


@pytest.fixture
def result_store():
    return make_result_store()


@pytest.fixture
async def client(transaction_store, result_store):
    """Async client whose orchestrator and backtest engine use mock stores."""
    app.dependency_overrides[get_orchestrator] = lambda: ForecastOrchestrator(
        transaction_store, result_store
    )
    app.dependency_overrides[get_result_store] = lambda: result_store
    app.dependency_overrides[get_backtest_engine] = lambda: BacktestEngine(
        transaction_store, result_store
    )
    transport = ASGITransport(app=app, raise_app_exceptions=False)
    async with AsyncClient(transport=transport, base_url="http://test") as ac:
        yield ac
    app.dependency_overrides.clear()
