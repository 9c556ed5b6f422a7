"""Core infrastructure shared by the native writer and the queue pipeline."""

from .context import get_transaction_id, transaction_id_context
from .errors import (
    ConnectivityError,
    IngesterError,
    NotFoundError,
    ParseError,
    ProduceError,
    QueueError,
    ValidationError,
    WriteError,
)

__all__ = [
    "ConnectivityError",
    "IngesterError",
    "NotFoundError",
    "ParseError",
    "ProduceError",
    "QueueError",
    "ValidationError",
    "WriteError",
    "get_transaction_id",
    "transaction_id_context",
]
