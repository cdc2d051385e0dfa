"""Tests for the exception hierarchy.

Verifies context storage, string formatting, secret filtering, and the
inheritance the API error mapping relies on.
"""

from __future__ import annotations

from backend.common.exceptions import (
    CashflowBaseException,
    PersistenceError,
    UserNotFoundError,
    mask_secrets,
)
from backend.forecasting.exceptions import (
    ComputationError,
    ForecastCancelledError,
    ForecastError,
    InsufficientDataError,
    InvalidConfigError,
    InvalidSeriesError,
)


class TestCashflowBaseException:
    def test_stores_context_dict(self) -> None:
        err = CashflowBaseException("Something went wrong", context={"user_id": 7})
        assert err.context == {"user_id": 7}

    def test_context_defaults_to_empty(self) -> None:
        err = CashflowBaseException("No context")
        assert err.context == {}
        assert str(err) == "No context"

    def test_str_includes_context(self) -> None:
        err = InsufficientDataError("SMA needs at least 7 values", context={"available": 3})
        result = str(err)
        assert "SMA needs at least 7 values" in result
        assert "context=" in result
        assert "'available': 3" in result

    def test_filters_secret_keys(self) -> None:
        err = PersistenceError(
            "Failed to connect",
            context={"db_password": "hunter2", "api_token": "abc", "rows": 3},
        )
        result = str(err)
        assert "hunter2" not in result
        assert "abc" not in result
        assert "[REDACTED]" in result
        assert "'rows': 3" in result


class TestHierarchy:
    def test_forecast_errors_share_base(self) -> None:
        for cls in (
            InsufficientDataError,
            InvalidConfigError,
            InvalidSeriesError,
            ComputationError,
            ForecastCancelledError,
        ):
            assert issubclass(cls, ForecastError)
            assert issubclass(cls, CashflowBaseException)

    def test_store_errors_are_not_forecast_errors(self) -> None:
        assert issubclass(UserNotFoundError, CashflowBaseException)
        assert not issubclass(UserNotFoundError, ForecastError)
        assert not issubclass(PersistenceError, ForecastError)


class TestPayload:
    def test_payload_names_the_error(self) -> None:
        err = InvalidConfigError("alpha must lie strictly between 0 and 1", context={"alpha": 2})
        payload = err.to_payload()
        assert payload["error"] == "InvalidConfigError"
        assert payload["message"].startswith("alpha must lie strictly between 0 and 1")

    def test_mask_secrets_leaves_original_untouched(self) -> None:
        context = {"password": "hunter2", "user_id": 7}
        assert mask_secrets(context) == {"password": "[REDACTED]", "user_id": 7}
        assert context["password"] == "hunter2"
