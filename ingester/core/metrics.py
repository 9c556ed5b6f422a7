"""
In-memory counters for pipeline outcomes.

Tracks how many messages were written, forwarded or dropped (per failed
stage) since the process started. Exposed on /__health.

Thread-safe: the consumer thread increments while request handlers read.
"""

from __future__ import annotations

import threading
import time
from collections import Counter
from typing import TypedDict


class MetricCounts(TypedDict):
    """Type for metric counts dictionary."""

    received: int
    written: int
    forwarded: int
    failed: int
    failed_by_stage: dict[str, int]


_START_TIME: float = time.time()
_received = 0
_written = 0
_forwarded = 0
_failed_by_stage: Counter[str] = Counter()
_lock = threading.Lock()


def increment_received() -> None:
    global _received
    with _lock:
        _received += 1


def increment_written() -> None:
    global _written
    with _lock:
        _written += 1


def increment_forwarded() -> None:
    global _forwarded
    with _lock:
        _forwarded += 1


def increment_failed(stage: str) -> None:
    """Count a dropped message against the stage it failed at."""
    with _lock:
        _failed_by_stage[stage] += 1


def get_uptime() -> int:
    """Return uptime in seconds since module import."""
    return int(time.time() - _START_TIME)


def get_counts() -> MetricCounts:
    with _lock:
        return MetricCounts(
            received=_received,
            written=_written,
            forwarded=_forwarded,
            failed=sum(_failed_by_stage.values()),
            failed_by_stage=dict(_failed_by_stage),
        )


def reset() -> None:
    """Zero every counter (tests only)."""
    global _received, _written, _forwarded
    with _lock:
        _received = 0
        _written = 0
        _forwarded = 0
        _failed_by_stage.clear()
