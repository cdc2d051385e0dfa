"""Structured logging for the Cash-Flow Forecaster.

All tagged loggers are children of the ``cashflow`` logger, which owns the
single stdout handler. A line looks like:

    2026-10-17T10:30:00Z | INFO | rid=1f3a9c2e | FORECAST | Forecast generated | {"user_id": 7}

``rid`` appears only while an HTTP request is being served. Values of
secret-looking keys in the structured data are masked.

Usage:
    from backend.common.logging import get_logger

    logger = get_logger("FORECAST")
    logger.info("Forecast generated", extra={"data": {"user_id": 7, "horizon": 14}})
"""

from __future__ import annotations

import json
import logging
import re
import sys
from datetime import UTC, datetime

from backend.common.exceptions import REDACTED, SECRET_WORDS

ROOT_LOGGER_NAME = "cashflow"

MODULE_TAGS = frozenset({"FORECAST", "BACKTEST", "STORE", "API", "SYSTEM", "TEST"})

_SECRET_VALUE_PATTERN = re.compile(
    r'"([^"]*(?:' + "|".join(sorted(SECRET_WORDS)) + r')[^"]*)":\s*"[^"]*"',
    re.IGNORECASE,
)


def _redact_secrets(text: str) -> str:
    """Mask the JSON string value of every secret-looking key in ``text``."""
    return _SECRET_VALUE_PATTERN.sub(rf'"\1": "{REDACTED}"', text)


def _current_request_id() -> str:
    # Imported here: middleware imports this module at load time
    from backend.common.middleware import request_id_var

    return request_id_var.get("")


class StructuredFormatter(logging.Formatter):
    """``timestamp | LEVEL | [rid=..] | TAG | message | {data} | traceback``."""

    def formatTime(self, record: logging.LogRecord, datefmt: str | None = None) -> str:  # noqa: N802
        return datetime.fromtimestamp(record.created, UTC).strftime("%Y-%m-%dT%H:%M:%SZ")

    @staticmethod
    def _render_data(data: object) -> str:
        try:
            rendered = json.dumps(data, default=str)
        except (TypeError, ValueError):
            rendered = str(data)
        return _redact_secrets(rendered)

    def format(self, record: logging.LogRecord) -> str:
        parts = [self.formatTime(record), record.levelname]

        rid = _current_request_id()
        if rid:
            parts.append(f"rid={rid[:8]}")

        parts.append(getattr(record, "module_tag", "SYSTEM"))
        parts.append(_redact_secrets(record.getMessage()))

        data = getattr(record, "data", None)
        if data is not None:
            parts.append(self._render_data(data))
        if record.exc_info:
            parts.append(self.formatException(record.exc_info))
        return " | ".join(parts)


class ModuleTagLogger(logging.LoggerAdapter):
    """Adapter stamping ``module_tag`` on every record it emits."""

    def process(self, msg: str, kwargs: dict) -> tuple[str, dict]:
        kwargs["extra"] = {**kwargs.get("extra", {}), "module_tag": self.extra["module_tag"]}
        return msg, kwargs


def _root_logger() -> logging.Logger:
    root = logging.getLogger(ROOT_LOGGER_NAME)
    if not root.handlers:
        handler = logging.StreamHandler(sys.stdout)
        handler.setFormatter(StructuredFormatter())
        root.addHandler(handler)
        root.setLevel(logging.DEBUG)
        root.propagate = False
    return root


def configure_logging(level: str) -> None:
    """Set the threshold for every tagged logger (e.g. from Settings.log_level)."""
    _root_logger().setLevel(level.upper())


_adapters: dict[str, ModuleTagLogger] = {}


def get_logger(module_tag: str) -> ModuleTagLogger:
    """Logger for one module tag (FORECAST, BACKTEST, STORE, API, SYSTEM, TEST).

    Adapters are cached, so repeated calls return the same instance.
    """
    adapter = _adapters.get(module_tag)
    if adapter is None:
        _root_logger()
        logger = logging.getLogger(f"{ROOT_LOGGER_NAME}.{module_tag.lower()}")
        adapter = ModuleTagLogger(logger, {"module_tag": module_tag})
        _adapters[module_tag] = adapter
    return adapter
