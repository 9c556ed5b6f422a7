"""Structured JSON logging for the native ingester."""

from __future__ import annotations

import json
import logging
import os
import re
from datetime import datetime, timezone
from typing import Any, Dict, Set

from .. import __version__
from .context import get_transaction_id

_DEFAULT_SERVICE = os.getenv("SERVICE_NAME", "native-ingester")

# Patterns for sensitive values that should never be logged
_SENSITIVE_PATTERNS: Set[re.Pattern[str]] = {
    re.compile(r"Basic\s+[a-zA-Z0-9+/=]+", re.I),  # Basic auth headers
    re.compile(r"Bearer\s+[a-zA-Z0-9._~+/=-]+", re.I),  # Bearer tokens
}

# Field names that indicate sensitive content
_SENSITIVE_FIELD_NAMES = frozenset(
    {
        "password",
        "secret",
        "token",
        "api_key",
        "apikey",
        "authorization",
        "credential",
    }
)

# Standard LogRecord attributes never copied into the JSON line
_STANDARD_ATTRS = frozenset(
    {
        "name",
        "msg",
        "args",
        "created",
        "filename",
        "funcName",
        "levelname",
        "levelno",
        "lineno",
        "module",
        "msecs",
        "pathname",
        "process",
        "processName",
        "relativeCreated",
        "stack_info",
        "exc_info",
        "exc_text",
        "thread",
        "threadName",
        "taskName",
        "message",
        "transaction_id",
    }
)


def _redact_sensitive(value: Any) -> Any:
    """Redact sensitive patterns from a string value."""
    if not isinstance(value, str):
        return value
    result = value
    for pattern in _SENSITIVE_PATTERNS:
        result = pattern.sub("[REDACTED]", result)
    return result


def _is_sensitive_key(key: str) -> bool:
    key_lower = key.lower()
    return any(s in key_lower for s in _SENSITIVE_FIELD_NAMES)


class JSONFormatter(logging.Formatter):
    """Format log records as JSON lines carrying the current transaction id."""

    def __init__(self, service_name: str | None = None) -> None:
        super().__init__()
        self.service_name = service_name or _DEFAULT_SERVICE

    def format(self, record: logging.LogRecord) -> str:  # noqa: D401 - inherited docstring
        transaction_id = get_transaction_id() or getattr(record, "transaction_id", None)

        log_record: Dict[str, Any] = {
            "ts": datetime.now(timezone.utc).isoformat(timespec="milliseconds"),
            "level": record.levelname,
            "logger": record.name,
            "service": self.service_name,
            "version": __version__,
            "msg": _redact_sensitive(record.getMessage()),
        }

        # Consumer-loop lines carry no transaction
        if transaction_id:
            log_record["transaction_id"] = transaction_id

        for key, value in record.__dict__.items():
            if key in _STANDARD_ATTRS or key.startswith("_"):
                continue
            if _is_sensitive_key(key):
                log_record[key] = "[REDACTED]"
            else:
                log_record[key] = _redact_sensitive(value)

        if record.exc_info:
            error_type = record.exc_info[0].__name__ if record.exc_info[0] else "Exception"
            log_record["error_type"] = error_type
            log_record["error_msg"] = _redact_sensitive(str(record.exc_info[1]))
            log_record["stack"] = self.formatException(record.exc_info)

        return json.dumps(log_record, default=str, ensure_ascii=False)


def _resolve_level(level_name: str) -> int:
    return getattr(logging, level_name.upper(), logging.INFO)


def setup_logging(service_name: str | None = None, level: str | int | None = None) -> None:
    """
    Configure root logging with JSON output.

    Args:
        service_name: Service identifier for logs (default: native-ingester)
        level: Level name or number (default: LOG_LEVEL env var, then INFO)
    """
    if level is None:
        level = os.getenv("LOG_LEVEL", "INFO")
    if isinstance(level, str):
        level = _resolve_level(level)

    handler = logging.StreamHandler()
    handler.setFormatter(JSONFormatter(service_name=service_name))

    root_logger = logging.getLogger()
    root_logger.handlers.clear()
    root_logger.setLevel(level)
    root_logger.addHandler(handler)

    for noisy_logger in ("httpx", "httpcore", "uvicorn.access"):
        logging.getLogger(noisy_logger).setLevel(logging.WARNING)
