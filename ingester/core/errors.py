"""
Native Ingester - Error Taxonomy

Every failure the pipeline can produce maps to one exception class with a
stable error code. Codes are emitted on every failed-outcome log line so they
can be aggregated and alerted on.

Error Code Format: NI-{CATEGORY}-{NUMBER}
- NI = Native Ingester prefix
- CATEGORY = PARSE, VALIDATION, ROUTING, WRITE, CONN, QUEUE, INTERNAL

Propagation rules:
- Core operations (body parsing, enrichment, routing, writing) raise.
- The message handler catches IngesterError per message, logs it with the
  transaction id and moves on. Nothing here is ever retried in-process.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Any


# =============================================================================
# ERROR CODES
# =============================================================================


class ErrorCategory(str, Enum):
    """Error category for classification."""

    PARSE = "PARSE"
    VALIDATION = "VALIDATION"
    ROUTING = "ROUTING"
    WRITE = "WRITE"
    CONN = "CONN"
    QUEUE = "QUEUE"
    INTERNAL = "INTERNAL"


@dataclass(frozen=True)
class ErrorCode:
    """Immutable error code definition."""

    code: str
    category: ErrorCategory
    message: str

    def __str__(self) -> str:
        return self.code


ERR_PARSE_BODY = ErrorCode(
    code="NI-PARSE-001",
    category=ErrorCategory.PARSE,
    message="Message body could not be parsed",
)
ERR_VALIDATION_EVENT = ErrorCode(
    code="NI-VALIDATION-001",
    category=ErrorCategory.VALIDATION,
    message="Publication event is missing a required field",
)
ERR_ROUTING_COLLECTION = ErrorCode(
    code="NI-ROUTING-001",
    category=ErrorCategory.ROUTING,
    message="No collection is mapped to the origin system",
)
ERR_WRITE_NATIVE = ErrorCode(
    code="NI-WRITE-001",
    category=ErrorCategory.WRITE,
    message="Native store write failed",
)
ERR_CONN_PROBE = ErrorCode(
    code="NI-CONN-001",
    category=ErrorCategory.CONN,
    message="Connectivity check failed",
)
ERR_QUEUE_CONSUME = ErrorCode(
    code="NI-QUEUE-001",
    category=ErrorCategory.QUEUE,
    message="Queue proxy request failed",
)
ERR_QUEUE_PRODUCE = ErrorCode(
    code="NI-QUEUE-002",
    category=ErrorCategory.QUEUE,
    message="Forwarding to the destination topic failed",
)
ERR_INTERNAL_UNKNOWN = ErrorCode(
    code="NI-INTERNAL-900",
    category=ErrorCategory.INTERNAL,
    message="Unexpected internal error",
)


# =============================================================================
# EXCEPTIONS
# =============================================================================


class IngesterError(Exception):
    """Base class for every error raised by the ingester."""

    error_code: ErrorCode = ERR_INTERNAL_UNKNOWN

    @property
    def code(self) -> str:
        return self.error_code.code

    def to_log_dict(self) -> dict[str, Any]:
        """Fields suitable for a structured log record."""
        return {
            "error_code": self.code,
            "error_category": self.error_code.category.value,
            "error_msg": str(self),
        }


class ParseError(IngesterError):
    """Raised when a body is not JSON, not an object, or lacks a content UUID."""

    error_code = ERR_PARSE_BODY


class ValidationError(IngesterError):
    """Raised when a publication event lacks a required header."""

    error_code = ERR_VALIDATION_EVENT


class NotFoundError(IngesterError):
    """Raised when an origin system has no collection mapped to it."""

    error_code = ERR_ROUTING_COLLECTION

    def __init__(self, message: str, origin_system_id: str = "") -> None:
        super().__init__(message)
        self.origin_system_id = origin_system_id


class WriteError(IngesterError):
    """Raised on a non-2xx response or a transport failure from the native store."""

    error_code = ERR_WRITE_NATIVE

    def __init__(
        self,
        message: str,
        status_code: int | None = None,
        content_uuid: str | None = None,
    ) -> None:
        super().__init__(message)
        self.status_code = status_code
        self.content_uuid = content_uuid

    def to_log_dict(self) -> dict[str, Any]:
        fields = super().to_log_dict()
        if self.status_code is not None:
            fields["response_status_code"] = self.status_code
        return fields


class ConnectivityError(IngesterError):
    """Raised when a good-to-go probe fails."""

    error_code = ERR_CONN_PROBE


class QueueError(IngesterError):
    """Raised when a call to the queue proxy fails."""

    error_code = ERR_QUEUE_CONSUME

    def __init__(self, message: str, status_code: int | None = None) -> None:
        super().__init__(message)
        self.status_code = status_code


class ProduceError(QueueError):
    """Raised when a message cannot be forwarded to the destination topic."""

    error_code = ERR_QUEUE_PRODUCE


__all__ = [
    "ConnectivityError",
    "ErrorCategory",
    "ErrorCode",
    "IngesterError",
    "NotFoundError",
    "ParseError",
    "ProduceError",
    "QueueError",
    "ValidationError",
    "WriteError",
]
