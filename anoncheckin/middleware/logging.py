"""Logging middleware for request tracking."""
import time
import uuid
from typing import Callable

import structlog
from fastapi import Request, Response
from starlette.middleware.base import BaseHTTPMiddleware
from starlette.types import ASGIApp

logger = structlog.get_logger(__name__)

# Requests that reach the ledger; anything else is bookkeeping
LEDGER_PATH_PREFIX = "/api/v1/meetings"


class LoggingMiddleware(BaseHTTPMiddleware):
    """Log every request with a request id and how long the ledger took."""

    def __init__(self, app: ASGIApp):
        super().__init__(app)

    async def dispatch(self, request: Request, call_next: Callable) -> Response:
        request_id = request.headers.get("X-Request-ID") or str(uuid.uuid4())
        request.state.request_id = request_id

        # Service-layer events logged during this request inherit these
        structlog.contextvars.clear_contextvars()
        structlog.contextvars.bind_contextvars(
            request_id=request_id,
            method=request.method,
            path=request.url.path,
        )

        ledger_call = request.url.path.startswith(LEDGER_PATH_PREFIX)
        start = time.perf_counter()
        logger.info("request_started", ledger_call=ledger_call)

        try:
            response = await call_next(request)
        except Exception as exc:
            logger.error(
                "request_failed",
                exception=str(exc),
                exception_type=type(exc).__name__,
                duration_ms=round((time.perf_counter() - start) * 1000, 2),
            )
            raise

        response.headers["X-Request-ID"] = request_id
        logger.info(
            "request_completed",
            status_code=response.status_code,
            ledger_call=ledger_call,
            duration_ms=round((time.perf_counter() - start) * 1000, 2),
        )
        return response
