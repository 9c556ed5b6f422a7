"""
tests/conftest.py

Shared fixtures for the native ingester test suite.

No test talks to a real queue proxy or native store: HTTP is served by
httpx.MockTransport handlers defined in each test.
"""

from __future__ import annotations

from typing import Callable

import httpx
import pytest

from ingester.config import reset_settings
from ingester.core import metrics
from ingester.native import CollectionResolver, FieldPathBodyParser, NativeWriter
from ingester.queue import RawQueueMessage

EXPECTED_TID = "tid_test"
EXPECTED_ORIGIN_SYSTEM_ID = "http://cmdb.ft.com/systems/methode-web-pub"
EXPECTED_TIMESTAMP = "2017-02-16T12:56:16Z"
NATIVE_ADDRESS = "http://native-store.test"

SOME_MSG_HEADERS = {
    "X-Request-Id": EXPECTED_TID,
    "Origin-System-Id": EXPECTED_ORIGIN_SYSTEM_ID,
    "Message-Timestamp": EXPECTED_TIMESTAMP,
}

COLLECTIONS_BY_ORIGINS = {
    EXPECTED_ORIGIN_SYSTEM_ID: "methode",
    "http://cmdb.ft.com/systems/wordpress": "wordpress",
}


@pytest.fixture(autouse=True)
def _isolate_global_state():
    metrics.reset()
    reset_settings()
    yield
    reset_settings()


@pytest.fixture
def a_msg() -> RawQueueMessage:
    return RawQueueMessage(headers=SOME_MSG_HEADERS, body='{"foo":"bar"}')


@pytest.fixture
def a_msg_with_bad_body() -> RawQueueMessage:
    return RawQueueMessage(headers=SOME_MSG_HEADERS, body="I'm not JSON")


@pytest.fixture
def a_msg_without_timestamp() -> RawQueueMessage:
    return RawQueueMessage(headers={}, body='{"foo":"bar"}')


@pytest.fixture
def resolver() -> CollectionResolver:
    return CollectionResolver(COLLECTIONS_BY_ORIGINS)


@pytest.fixture
def make_writer(resolver: CollectionResolver) -> Callable[..., NativeWriter]:
    """Build a NativeWriter whose HTTP calls go to ``handler``."""

    def _make(
        handler: Callable[[httpx.Request], httpx.Response],
        host_header: str = "",
        field_path: str = "uuid",
    ) -> NativeWriter:
        client = httpx.Client(transport=httpx.MockTransport(handler), timeout=5.0)
        return NativeWriter(
            address=NATIVE_ADDRESS,
            resolver=resolver,
            body_parser=FieldPathBodyParser(field_path),
            host_header=host_header,
            client=client,
        )

    return _make


class RecordingObserver:
    """Keeps every emitted outcome for assertions."""

    def __init__(self) -> None:
        self.outcomes = []

    def on_outcome(self, outcome) -> None:
        self.outcomes.append(outcome)


@pytest.fixture
def recorder() -> RecordingObserver:
    return RecordingObserver()
