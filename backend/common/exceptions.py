"""Exception base for the Cash-Flow Forecaster.

Every domain failure derives from CashflowBaseException and carries a
``context`` dict of structured data. The same context is logged by the
services and rendered (secrets masked) by the API error handlers.

Usage:
    from backend.common.exceptions import UserNotFoundError

    raise UserNotFoundError("User not found", context={"user_id": 7})
"""

from __future__ import annotations

# Context keys containing any of these words are masked in str() and logs
SECRET_WORDS = frozenset({"key", "secret", "password", "token", "private", "credential"})

REDACTED = "[REDACTED]"


def is_secret_key(name: str) -> bool:
    lowered = name.lower()
    return any(word in lowered for word in SECRET_WORDS)


def mask_secrets(context: dict) -> dict:
    """Copy of ``context`` with secret-looking values replaced."""
    return {k: REDACTED if is_secret_key(str(k)) else v for k, v in context.items()}


class CashflowBaseException(Exception):
    """Root of all Cash-Flow Forecaster errors.

    Args:
        message: Human-readable error description.
        context: Optional structured data (user_id, algorithm, dates, ...).
    """

    def __init__(self, message: str, context: dict | None = None) -> None:
        super().__init__(message)
        self.message = message
        self.context = dict(context or {})

    @property
    def error_name(self) -> str:
        return type(self).__name__

    def to_payload(self) -> dict:
        """JSON body returned by the API for this error."""
        return {"error": self.error_name, "message": str(self)}

    def __str__(self) -> str:
        if not self.context:
            return self.message
        return f"{self.message} | context={mask_secrets(self.context)}"


class UserNotFoundError(CashflowBaseException):
    """The requested user does not exist in the transaction store."""


class PersistenceError(CashflowBaseException):
    """Storing forecast or accuracy records failed."""
