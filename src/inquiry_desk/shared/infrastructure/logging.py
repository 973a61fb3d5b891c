"""
Structured Logging
==================

JSON log lines on stdout, one object per event.

Every line carries a UTC timestamp and the environment; request-scoped lines
also carry the correlation id set by `CorrelationIDMiddleware`. Operator
emails and webhook URLs are masked before they reach the log stream.

Usage:
    from inquiry_desk.shared.infrastructure.logging import get_logger

    logger = get_logger(__name__)
    logger.info("Inquiry escalated", extra={"inquiry_id": "..."})
"""

import logging
import sys
import time
from contextlib import contextmanager
from datetime import datetime, timezone
from typing import Any

from pythonjsonlogger import jsonlogger

_REDACTED = "***REDACTED***"
_SENSITIVE_KEY_PARTS = ("password", "token", "api_key", "webhook_url", "email")

# Third-party loggers that are too chatty at INFO
_QUIET_LOGGERS = ("uvicorn.access", "sqlalchemy.engine", "apscheduler", "httpx", "watchdog")


class CustomJsonFormatter(jsonlogger.JsonFormatter):
    """JSON formatter adding timestamp, correlation id and environment."""

    def __init__(self, *args: Any, environment: str = "unknown", **kwargs: Any):
        self._environment = environment
        super().__init__(*args, **kwargs)

    def add_fields(
        self,
        log_record: dict[str, Any],
        record: logging.LogRecord,
        message_dict: dict[str, Any],
    ) -> None:
        super().add_fields(log_record, record, message_dict)

        log_record.setdefault("timestamp", datetime.now(timezone.utc).isoformat())
        log_record["environment"] = getattr(record, "environment", self._environment)

        correlation_id = getattr(record, "correlation_id", None) or message_dict.get("correlation_id")
        if correlation_id:
            log_record["correlation_id"] = correlation_id

        for key, value in list(log_record.items()):
            if isinstance(value, str) and any(part in key.lower() for part in _SENSITIVE_KEY_PARTS):
                log_record[key] = _REDACTED


def setup_logging(
    level: str = "INFO",
    environment: str = "development",
) -> None:
    """
    Install the JSON handler on the root logger.

    Args:
        level: Logging level (DEBUG, INFO, WARNING, ERROR)
        environment: Environment name stamped on every line
    """
    numeric_level = getattr(logging, level.upper())

    handler = logging.StreamHandler(sys.stdout)
    handler.setLevel(numeric_level)
    handler.setFormatter(CustomJsonFormatter(
        fmt="%(asctime)s %(name)s %(levelname)s %(message)s",
        datefmt="%Y-%m-%dT%H:%M:%S",
        environment=environment,
    ))

    root_logger = logging.getLogger()
    root_logger.handlers.clear()
    root_logger.setLevel(numeric_level)
    root_logger.addHandler(handler)

    for name in _QUIET_LOGGERS:
        logging.getLogger(name).setLevel(logging.WARNING)


def get_logger(name: str) -> logging.Logger:
    return logging.getLogger(name)


@contextmanager
def log_latency(logger: logging.Logger, operation: str, **extra_context: Any):
    """
    Log how long the wrapped block took, even when it raises.

    Usage:
        with log_latency(logger, "escalation_sweep", batch_size=100):
            report = await sweeper.sweep()
    """
    start = time.perf_counter()
    try:
        yield
    finally:
        logger.info(
            f"{operation} completed",
            extra={
                "operation": operation,
                "latency_ms": round((time.perf_counter() - start) * 1000, 2),
                **extra_context,
            },
        )
