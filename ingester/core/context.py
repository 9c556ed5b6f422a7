"""Transaction id of the message being processed, for log correlation."""

from __future__ import annotations

from contextlib import contextmanager
from contextvars import ContextVar
from typing import Iterator, Optional

_transaction_id: ContextVar[Optional[str]] = ContextVar("transaction_id", default=None)


def get_transaction_id() -> Optional[str]:
    return _transaction_id.get()


@contextmanager
def transaction_id_context(transaction_id: Optional[str]) -> Iterator[None]:
    """Bind ``transaction_id`` (blank means none) until the block exits."""
    token = _transaction_id.set(transaction_id or None)
    try:
        yield
    finally:
        _transaction_id.reset(token)
