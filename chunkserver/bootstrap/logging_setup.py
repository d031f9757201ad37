"""Logging configuration for the chunk server: one project logger, JSON lines."""

import json
import logging
import re
import sys
from logging.handlers import RotatingFileHandler
from pathlib import Path
from typing import Any, Optional

from chunkserver.domain.correlation_id import NO_REQUEST, CorrelationLoggerAdapter

LOGGER_NAME = "chunk_server"
LOG_FORMAT = "%(asctime)s %(levelname)s [%(correlation_id)s] %(name)s :: %(message)s"
DATE_FORMAT = "%Y-%m-%d %H:%M:%S"
MAX_BYTES = 10 * 1024 * 1024
BACKUP_COUNT = 5
REDACTED = "[REDACTED]"

# Auth tokens are UUID4 strings and keys travel as base64.
SENSITIVE_PATTERNS = (
    re.compile(r"(?i)(authorization|token|key|password|secret)"),
    re.compile(r"\b[0-9a-f]{8}-[0-9a-f]{4}-[0-9a-f]{4}-[0-9a-f]{4}-[0-9a-f]{12}\b"),
    re.compile(r"\b[A-Fa-f0-9]{32,}\b"),
    re.compile(r"\b[A-Za-z0-9+/]{32,}={0,2}"),
)

STRUCTURED_FIELDS = (
    "client",
    "method",
    "path",
    "status_code",
    "offset",
    "length",
    "bytes_in",
    "bytes_out",
    "content_length",
    "error_kind",
    "error_type",
    "host",
    "port",
    "attempt",
    "retries",
    "chunk_size",
    "encryption",
    "ready",
    "log_destination",
    "log_level",
    "socket_timeout",
    "shutdown_grace_seconds",
    "signal",
    "workers",
)


def redact_sensitive(value: Optional[str]) -> Optional[str]:
    """Replace the whole value when it looks like a credential or key material."""
    if value and any(pattern.search(value) for pattern in SENSITIVE_PATTERNS):
        return REDACTED
    return value


class CorrelationIdFilter(logging.Filter):  # pylint: disable=too-few-public-methods
    """Give records from foreign loggers the placeholder request id."""

    def filter(self, record: logging.LogRecord) -> bool:
        if not hasattr(record, "correlation_id"):
            record.correlation_id = NO_REQUEST
        return True


class JsonFormatter(logging.Formatter):
    """One JSON object per record, keys sorted, string extras redacted."""

    def format(self, record: logging.LogRecord) -> str:
        payload: dict[str, Any] = {
            "timestamp": self.formatTime(record, self.datefmt),
            "level": record.levelname,
            "correlation_id": getattr(record, "correlation_id", NO_REQUEST),
            "component": getattr(record, "component", "unknown"),
            "message": record.getMessage(),
        }
        if hasattr(record, "event"):
            payload["event"] = record.event
        for name in STRUCTURED_FIELDS:
            if not hasattr(record, name):
                continue
            value = getattr(record, name)
            payload[name] = redact_sensitive(value) if isinstance(value, str) else value
        if record.exc_info:
            payload["exception"] = self.formatException(record.exc_info)
        return json.dumps(payload, sort_keys=True)


def _resolve_level(level_name: str) -> int:
    level = logging.getLevelName(level_name.upper())
    return level if isinstance(level, int) else logging.INFO


def _build_handler(destination: Optional[str], use_json: bool) -> logging.Handler:
    """Stdout handler, or a rotating file handler for any other destination."""
    handler: logging.Handler
    if destination and destination.lower() != "stdout":
        log_path = Path(destination)
        log_path.parent.mkdir(parents=True, exist_ok=True)
        handler = RotatingFileHandler(
            log_path, maxBytes=MAX_BYTES, backupCount=BACKUP_COUNT
        )
    else:
        handler = logging.StreamHandler(sys.stdout)

    if use_json:
        handler.setFormatter(JsonFormatter(datefmt=DATE_FORMAT))
    else:
        handler.setFormatter(logging.Formatter(LOG_FORMAT, DATE_FORMAT))
    handler.addFilter(CorrelationIdFilter())
    return handler


def configure_logging(
    level: str = "INFO", destination: Optional[str] = None, use_json: bool = True
) -> CorrelationLoggerAdapter:
    """Route every ``chunk_server.*`` logger to a single handler.

    Calling it again replaces the previous handler.
    """
    logger = logging.getLogger(LOGGER_NAME)
    numeric_level = _resolve_level(level)
    logger.setLevel(numeric_level)
    logger.propagate = False

    for old_handler in list(logger.handlers):
        logger.removeHandler(old_handler)
        old_handler.close()
    handler = _build_handler(destination, use_json)
    handler.setLevel(numeric_level)
    logger.addHandler(handler)

    adapter = CorrelationLoggerAdapter(logger, {})
    adapter.debug(
        "Logging configured",
        extra={"event": "logging_configured", "log_destination": destination or "stdout"},
    )
    return adapter
