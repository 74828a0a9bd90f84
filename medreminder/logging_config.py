"""Structured logging configuration.

JSON (production) or plain-text (development) output, with a correlation
id carried through each HTTP request and WebSocket connection.
"""

import json
import logging
import sys
from contextvars import ContextVar
from datetime import UTC, datetime
from typing import Any

# Correlation ID for the request or push connection currently being handled
correlation_id_ctx: ContextVar[str | None] = ContextVar("correlation_id", default=None)

_DEFAULT_SERVICE = "medreminder-api"


def mask_token(token: str | None, visible: int = 6) -> str:
    """Shorten a credential for log output so it is never written in full."""
    if not token:
        return "-"
    if len(token) <= visible:
        return "*" * len(token)
    return f"{token[:visible]}..."


class JsonFormatter(logging.Formatter):
    """Render each record as one JSON object per line.

    Keys: timestamp, level, service, message, logger, plus correlation_id
    when set, any structured extra fields, the formatted exception, and
    the source location for ERROR and above.
    """

    def __init__(self, service_name: str = _DEFAULT_SERVICE):
        super().__init__()
        self.service_name = service_name

    def format(self, record: logging.LogRecord) -> str:
        log_data: dict[str, Any] = {
            "timestamp": datetime.now(UTC).isoformat(),
            "level": record.levelname,
            "service": self.service_name,
            "message": record.getMessage(),
            "logger": record.name,
        }

        correlation_id = correlation_id_ctx.get()
        if correlation_id:
            log_data["correlation_id"] = correlation_id

        if hasattr(record, "extra_fields"):
            log_data.update(record.extra_fields)

        if record.exc_info:
            log_data["exception"] = self.formatException(record.exc_info)

        if record.levelno >= logging.ERROR:
            log_data["location"] = {
                "file": record.pathname,
                "line": record.lineno,
                "function": record.funcName,
            }

        return json.dumps(log_data, default=str)


class TextFormatter(logging.Formatter):
    """Human-readable formatter for local development.

    Format: timestamp - service - level - [correlation_id] - message key=value...
    """

    def __init__(self, service_name: str = _DEFAULT_SERVICE):
        super().__init__()
        self.service_name = service_name

    def format(self, record: logging.LogRecord) -> str:
        timestamp = datetime.now(UTC).strftime("%Y-%m-%d %H:%M:%S")
        correlation_id = correlation_id_ctx.get() or "-"

        base_msg = (
            f"{timestamp} - {self.service_name} - {record.levelname} - "
            f"[{correlation_id}] - {record.getMessage()}"
        )

        extra_fields = getattr(record, "extra_fields", None)
        if extra_fields:
            pairs = " ".join(f"{key}={value}" for key, value in extra_fields.items())
            base_msg = f"{base_msg} {pairs}"

        if record.exc_info:
            base_msg += f"\n{self.formatException(record.exc_info)}"

        return base_msg


def setup_logging(
    log_format: str = "json",
    log_level: str = "INFO",
    service_name: str = _DEFAULT_SERVICE,
) -> None:
    """Configure the root logger.

    Args:
        log_format: 'json' for structured logging, 'text' for human-readable
        log_level: Logging level name (DEBUG, INFO, WARNING, ERROR, CRITICAL)
        service_name: Service name stamped on every record
    """
    level = getattr(logging, log_level.upper(), logging.INFO)

    root_logger = logging.getLogger()
    root_logger.setLevel(level)
    root_logger.handlers.clear()

    handler = logging.StreamHandler(sys.stdout)
    handler.setLevel(level)

    if log_format.lower() == "json":
        handler.setFormatter(JsonFormatter(service_name=service_name))
    else:
        handler.setFormatter(TextFormatter(service_name=service_name))

    root_logger.addHandler(handler)

    # Reduce noise from third-party libraries
    logging.getLogger("uvicorn.access").setLevel(logging.WARNING)
    logging.getLogger("sqlalchemy.engine").setLevel(logging.WARNING)
    logging.getLogger("apscheduler").setLevel(logging.WARNING)


class StructuredLogger:
    """Logger wrapper that accepts structured fields as keyword arguments.

    ``bind()`` returns a child logger that stamps the given fields on every
    record, which the push gateway uses to tag a connection's lifetime.
    """

    def __init__(self, name: str, bound: dict[str, Any] | None = None):
        self._logger = logging.getLogger(name)
        self._bound = bound or {}

    def bind(self, **fields: Any) -> "StructuredLogger":
        return StructuredLogger(self._logger.name, {**self._bound, **fields})

    def _fields(self, extra_fields: dict[str, Any]) -> dict[str, Any]:
        merged = {**self._bound, **extra_fields}
        return {"extra_fields": merged} if merged else {}

    def debug(self, msg: str, **extra_fields: Any) -> None:
        self._logger.log(logging.DEBUG, msg, extra=self._fields(extra_fields))

    def info(self, msg: str, **extra_fields: Any) -> None:
        self._logger.log(logging.INFO, msg, extra=self._fields(extra_fields))

    def warning(self, msg: str, **extra_fields: Any) -> None:
        self._logger.log(logging.WARNING, msg, extra=self._fields(extra_fields))

    def error(self, msg: str, **extra_fields: Any) -> None:
        self._logger.log(logging.ERROR, msg, extra=self._fields(extra_fields))

    def exception(self, msg: str, **extra_fields: Any) -> None:
        """Log at ERROR with the active exception's traceback."""
        self._logger.exception(msg, extra=self._fields(extra_fields))


def get_logger(name: str) -> StructuredLogger:
    """Get a structured logger instance.

    Args:
        name: Logger name (typically __name__)
    """
    return StructuredLogger(name)
