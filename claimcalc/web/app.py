"""FastAPI application for ClaimCalc."""

from __future__ import annotations

from uuid import uuid4

import structlog
from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse
from starlette.middleware.base import BaseHTTPMiddleware

from claimcalc.core.logging import configure_logging
from claimcalc.errors import (
    BackendError,
    InvalidStateError,
    RecordNotFoundError,
    ReservingError,
    ValidationError,
)
from claimcalc.web.routes import assessments, budget, catalog, reserves

logger = structlog.get_logger()

# Most specific first; ConcurrentUpdateError is an InvalidStateError.
ERROR_STATUS: list[tuple[type[ReservingError], int]] = [
    (ValidationError, 422),
    (InvalidStateError, 409),
    (RecordNotFoundError, 404),
    (BackendError, 502),
]


def status_for(exc: ReservingError) -> int:
    for error_type, status_code in ERROR_STATUS:
        if isinstance(exc, error_type):
            return status_code
    return 500


async def reserving_error_handler(request: Request, exc: ReservingError) -> JSONResponse:
    status_code = status_for(exc)
    logger.warning(
        "request_rejected",
        error=type(exc).__name__,
        detail=str(exc),
        status_code=status_code,
    )
    body = {"detail": str(exc), "error": type(exc).__name__}
    field = getattr(exc, "field", None)
    if field:
        body["field"] = field
    return JSONResponse(status_code=status_code, content=body)


class RequestLoggingMiddleware(BaseHTTPMiddleware):
    async def dispatch(self, request: Request, call_next):
        structlog.contextvars.clear_contextvars()

        request_id = request.headers.get("X-Request-ID", str(uuid4()))
        structlog.contextvars.bind_contextvars(request_id=request_id)

        logger.info(
            "request_started",
            method=request.method,
            path=request.url.path,
            actor_id=request.headers.get("X-Actor-Id"),
        )

        try:
            response = await call_next(request)
        except Exception as exc:
            logger.error("request_failed", error=str(exc))
            raise

        logger.info("request_completed", status_code=response.status_code)
        response.headers["X-Request-ID"] = request_id
        return response


def register_error_handlers(app: FastAPI) -> None:
    app.add_exception_handler(ReservingError, reserving_error_handler)


def create_app() -> FastAPI:
    configure_logging()

    app = FastAPI(
        title="ClaimCalc",
        description="Reserving and damage assessment API for property insurance claims",
        version="0.1.0",
        docs_url="/docs",
        redoc_url="/redoc",
    )
    app.add_middleware(RequestLoggingMiddleware)
    register_error_handlers(app)

    app.include_router(reserves.router)
    app.include_router(catalog.router)
    app.include_router(budget.router)
    app.include_router(assessments.router)

    @app.get("/health")
    async def health() -> dict[str, str]:
        return {"status": "ok"}

    return app


app = create_app()
