"""FastAPI application factory for the Cash-Flow Forecaster.

Run with: uvicorn backend.main:app --reload
"""

from __future__ import annotations

from collections.abc import AsyncGenerator
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse
from prometheus_client import make_asgi_app as make_metrics_app

from backend.api.deps import shutdown_executor
from backend.api.forecasts import router as forecasts_router
from backend.common.config import get_settings
from backend.common.database import init_models, reset_engine
from backend.common.exceptions import CashflowBaseException, UserNotFoundError, mask_secrets
from backend.common.logging import configure_logging, get_logger
from backend.common.metrics import set_app_info
from backend.common.middleware import RequestIdMiddleware, RequestLoggingMiddleware
from backend.forecasting.exceptions import (
    InsufficientDataError,
    InvalidConfigError,
    InvalidSeriesError,
)

logger = get_logger("SYSTEM")

# Exception type → HTTP status. Checked in order, first match wins.
_STATUS_BY_EXCEPTION: tuple[tuple[type[CashflowBaseException], int], ...] = (
    (UserNotFoundError, 404),
    (InvalidConfigError, 400),
    (InsufficientDataError, 422),
    (InvalidSeriesError, 422),
)


@asynccontextmanager
async def lifespan(application: FastAPI) -> AsyncGenerator[None, None]:
    """Create tables on startup; release the worker pool and engine on shutdown."""
    await init_models()
    logger.info("Database ready")

    yield

    shutdown_executor()
    await reset_engine()
    logger.info("Worker pool and database engine released")


def create_app() -> FastAPI:
    """Create and configure the FastAPI application."""
    settings = get_settings()
    configure_logging(settings.log_level)
    app = FastAPI(
        title="Cash-Flow Forecaster",
        version=settings.app_version,
        description="Cash-flow forecasting and backtesting for personal finance data",
        lifespan=lifespan,
    )

    # Last added = outermost = runs first on request
    app.add_middleware(RequestLoggingMiddleware)
    app.add_middleware(RequestIdMiddleware)

    # ─── Exception Handlers ───

    @app.exception_handler(CashflowBaseException)
    async def cashflow_exception_handler(
        request: Request, exc: CashflowBaseException
    ) -> JSONResponse:
        """Map domain exceptions to structured JSON responses."""
        status_code = next(
            (code for exc_type, code in _STATUS_BY_EXCEPTION if isinstance(exc, exc_type)),
            500,
        )
        log = logger.warning if status_code < 500 else logger.error
        log(
            f"{exc.error_name} -> {status_code}",
            extra={
                "data": {
                    "path": request.url.path,
                    "message": exc.message,
                    "context": mask_secrets(exc.context),
                }
            },
        )
        return JSONResponse(status_code=status_code, content=exc.to_payload())

    @app.exception_handler(Exception)
    async def unhandled_exception_handler(request: Request, exc: Exception) -> JSONResponse:
        """Anything that escaped the domain handlers: log with traceback, return 500."""
        # request_id_var is reset by now; RequestIdMiddleware mirrors the ID on state
        rid = getattr(request.state, "request_id", "")
        logger.error(
            f"Unhandled {type(exc).__name__} on {request.method} {request.url.path}",
            extra={"data": {"request_id": rid, "detail": str(exc)}},
            exc_info=exc,
        )
        content = {"error": "InternalServerError", "message": "An unexpected error occurred"}
        if rid:
            content["request_id"] = rid
        return JSONResponse(status_code=500, content=content)

    # ─── Health ───

    @app.get("/health")
    async def health_check() -> dict:
        """Liveness probe - confirms the process is running."""
        return {"status": "ok", "version": settings.app_version}

    # ─── Prometheus Metrics ───

    app.mount("/metrics", make_metrics_app())
    set_app_info(version=settings.app_version, environment=settings.environment)

    # ─── Router Mounting ───

    app.include_router(forecasts_router, prefix="/api/forecasts", tags=["forecasts"])

    logger.info("App created", extra={"data": {"version": settings.app_version}})

    return app


app = create_app()
