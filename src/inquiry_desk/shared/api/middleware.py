"""
Shared API Middleware
=====================

Correlation ids, request logging and the mapping from the application
exception hierarchy onto HTTP responses.
"""

import time
import uuid
from datetime import datetime, timezone
from typing import Any, Callable, Dict

from fastapi import Request, Response
from fastapi.responses import JSONResponse
from starlette.middleware.base import BaseHTTPMiddleware

from inquiry_desk.core import (
    ApplicationException,
    DomainException,
    RepositoryException,
    ResourceNotFoundException,
    ValidationException,
)
from inquiry_desk.shared.infrastructure.logging import get_logger

logger = get_logger(__name__)

CORRELATION_HEADER = "X-Correlation-ID"


def _correlation_id(request: Request) -> str:
    return getattr(request.state, "correlation_id", "unknown")


def _request_fields(request: Request) -> Dict[str, Any]:
    return {
        "correlation_id": _correlation_id(request),
        "method": request.method,
        "path": request.url.path,
    }


class CorrelationIDMiddleware(BaseHTTPMiddleware):
    """
    Reuses the caller's correlation id or mints one, and echoes it back.

    The scraper and the dashboard pass their own ids so a batch ingest can be
    followed from their logs into ours.
    """

    async def dispatch(self, request: Request, call_next: Callable) -> Response:
        correlation_id = request.headers.get(CORRELATION_HEADER) or str(uuid.uuid4())
        request.state.correlation_id = correlation_id

        response = await call_next(request)
        response.headers[CORRELATION_HEADER] = correlation_id
        return response


class LoggingMiddleware(BaseHTTPMiddleware):
    """One log line when a request arrives and one when it leaves."""

    async def dispatch(self, request: Request, call_next: Callable) -> Response:
        fields = _request_fields(request)
        started = time.perf_counter()
        logger.info(
            "Request started",
            extra={**fields, "client": request.client.host if request.client else None}
        )

        try:
            response = await call_next(request)
        except Exception as e:
            elapsed_ms = int((time.perf_counter() - started) * 1000)
            logger.error("Request failed", extra={**fields, "error": str(e), "response_time_ms": elapsed_ms})
            raise

        elapsed_ms = int((time.perf_counter() - started) * 1000)
        logger.info(
            "Request completed",
            extra={**fields, "status_code": response.status_code, "response_time_ms": elapsed_ms}
        )
        return response


def _status_for(exc: ApplicationException) -> int:
    if isinstance(exc, ResourceNotFoundException):
        return 404
    if isinstance(exc, ValidationException):
        return 422
    if isinstance(exc, DomainException):
        # Invalid transitions, lost races, empty operator pool
        return 409
    if isinstance(exc, RepositoryException):
        return 503
    return 500


async def application_exception_handler(request: Request, exc: ApplicationException) -> JSONResponse:
    """Map the application exception hierarchy onto HTTP status codes."""
    status_code = _status_for(exc)
    error_type = type(exc).__name__

    log = logger.warning if status_code < 500 else logger.error
    log(
        "Application error",
        extra={
            **_request_fields(request),
            "error_type": error_type,
            "error_message": exc.message,
            "status_code": status_code,
        }
    )

    return JSONResponse(
        status_code=status_code,
        content={
            "detail": exc.message,
            "error_type": error_type,
            "details": exc.details,
            "correlation_id": _correlation_id(request),
        }
    )


async def global_exception_handler(request: Request, exc: Exception) -> JSONResponse:
    """Anything outside the application hierarchy is a 500."""
    logger.error(
        "Unhandled exception",
        extra={**_request_fields(request), "error_type": type(exc).__name__, "error_message": str(exc)}
    )

    settings = getattr(request.app.state, "settings", None)
    is_dev = getattr(settings, "environment", None) == "development"

    return JSONResponse(
        status_code=500,
        content={
            "detail": "Internal server error",
            "correlation_id": _correlation_id(request),
            "timestamp": datetime.now(timezone.utc).isoformat(),
            "debug_info": str(exc) if is_dev else None
        }
    )
