"""
Tests for ingester.queue.handler.MessageHandler.

Verifies the per-message pipeline:
- every stage failure is terminal for that message only
- a batch keeps going past failed messages
- the enriched body, transaction id and hash reach the native store
- forwarding happens only after a successful write
"""

from __future__ import annotations

import json
import logging

import httpx
import pytest
from conftest import EXPECTED_ORIGIN_SYSTEM_ID, EXPECTED_TID, EXPECTED_TIMESTAMP

from ingester.core import metrics
from ingester.core.errors import ProduceError, WriteError
from ingester.native import compute_native_hash
from ingester.queue import LoggingObserver, MessageHandler, MetricsObserver, RawQueueMessage, Stage


def publish(body='{"uuid":"abc-123","foo":"bar"}', **headers) -> RawQueueMessage:
    base = {
        "X-Request-Id": EXPECTED_TID,
        "Origin-System-Id": EXPECTED_ORIGIN_SYSTEM_ID,
        "Message-Timestamp": EXPECTED_TIMESTAMP,
    }
    base.update(headers)
    return RawQueueMessage(headers={k: v for k, v in base.items() if v is not None}, body=body)


class FakeProducer:
    def __init__(self, fail: bool = False) -> None:
        self.sent = []
        self.fail = fail

    def send(self, message):
        if self.fail:
            raise ProduceError("proxy down", status_code=503)
        self.sent.append(message)


@pytest.fixture
def store():
    """Native store double recording each request."""
    requests = []
    state = {"status": 200}

    def handler(request: httpx.Request) -> httpx.Response:
        requests.append(request)
        return httpx.Response(state["status"])

    return requests, state, handler


def test_successful_message_is_written(make_writer, store, recorder):
    requests, _, handler = store
    pipeline = MessageHandler(make_writer(handler), observers=[recorder])

    outcome = pipeline.handle_message(publish())

    assert outcome.ok
    assert outcome.stage is Stage.WRITTEN
    assert outcome.collection == "methode"
    assert outcome.content_uuid == "abc-123"
    assert recorder.outcomes == [outcome]

    (request,) = requests
    expected_body = {
        "uuid": "abc-123",
        "foo": "bar",
        "lastModified": EXPECTED_TIMESTAMP,
        "publishReference": EXPECTED_TID,
    }
    assert str(request.url) == "http://native-store.test/methode/abc-123"
    assert json.loads(request.content) == expected_body
    assert request.headers["X-Request-Id"] == EXPECTED_TID
    assert request.headers["X-Native-Hash"] == compute_native_hash(expected_body)


def test_upstream_native_hash_is_forwarded(make_writer, store, recorder):
    requests, _, handler = store
    pipeline = MessageHandler(make_writer(handler), observers=[recorder])

    outcome = pipeline.handle_message(publish(**{"Native-Hash": "27f6c5"}))

    assert outcome.native_hash == "27f6c5"
    assert requests[0].headers["X-Native-Hash"] == "27f6c5"


def test_unmapped_origin_is_dropped(make_writer, store, recorder):
    requests, _, handler = store
    pipeline = MessageHandler(make_writer(handler), observers=[recorder])

    outcome = pipeline.handle_message(publish(**{"Origin-System-Id": "http://cmdb.ft.com/systems/x"}))

    assert not outcome.ok
    assert outcome.stage is Stage.COLLECTION_RESOLVED
    assert outcome.error_code == "NI-ROUTING-001"
    assert requests == []


def test_missing_timestamp_is_dropped(make_writer, store, recorder):
    requests, _, handler = store
    pipeline = MessageHandler(make_writer(handler), observers=[recorder])

    outcome = pipeline.handle_message(publish(**{"Message-Timestamp": None}))

    assert not outcome.ok
    assert outcome.stage is Stage.BODY_ENRICHED
    assert outcome.error_code == "NI-VALIDATION-001"
    assert requests == []


def test_bad_json_is_dropped(make_writer, store, recorder):
    requests, _, handler = store
    pipeline = MessageHandler(make_writer(handler), observers=[recorder])

    outcome = pipeline.handle_message(publish(body="I'm not JSON"))

    assert outcome.stage is Stage.BODY_ENRICHED
    assert outcome.error_code == "NI-PARSE-001"
    assert requests == []


def test_body_without_uuid_fails_at_write_without_request(make_writer, store, recorder):
    requests, _, handler = store
    pipeline = MessageHandler(make_writer(handler), observers=[recorder])

    outcome = pipeline.handle_message(publish(body='{"foo":"bar"}'))

    assert outcome.stage is Stage.WRITTEN
    assert outcome.error_code == "NI-PARSE-001"
    assert requests == []


def test_store_error_is_dropped(make_writer, store, recorder):
    requests, state, handler = store
    state["status"] = 503
    pipeline = MessageHandler(make_writer(handler), observers=[recorder])

    outcome = pipeline.handle_message(publish())

    assert not outcome.ok
    assert outcome.stage is Stage.WRITTEN
    assert isinstance(outcome.error, WriteError)
    assert outcome.error.status_code == 503
    assert outcome.content_uuid == "abc-123"
    assert len(requests) == 1


@pytest.mark.parametrize("content_uuid", ["../other/abc", "abc?x=1#f"])
def test_uuid_cannot_leave_the_mapped_collection(make_writer, store, recorder, content_uuid):
    requests, _, handler = store
    pipeline = MessageHandler(make_writer(handler), observers=[recorder])

    outcome = pipeline.handle_message(publish(body=json.dumps({"uuid": content_uuid})))

    assert outcome.ok
    (request,) = requests
    assert request.url.raw_path.startswith(b"/methode/")
    assert request.url.raw_path.count(b"/") == 2
    assert request.url.query == b""


def test_nan_body_is_dropped_before_write(make_writer, store, recorder):
    requests, _, handler = store
    pipeline = MessageHandler(make_writer(handler), observers=[recorder])

    outcome = pipeline.handle_message(publish(body='{"uuid":"abc-123","x":NaN}'))

    assert not outcome.ok
    assert outcome.stage is Stage.BODY_ENRICHED
    assert outcome.error_code == "NI-PARSE-001"
    assert requests == []


def test_lone_surrogate_body_fails_with_taxonomy_error(make_writer, store, recorder):
    requests, _, handler = store
    pipeline = MessageHandler(make_writer(handler), observers=[recorder])

    outcome = pipeline.handle_message(publish(body='{"uuid":"abc-123","x":"\\ud800"}'))

    assert not outcome.ok
    assert outcome.stage is Stage.WRITTEN
    assert outcome.error_code == "NI-WRITE-001"
    assert outcome.native_hash
    assert outcome.content_uuid == "abc-123"
    assert requests == []


def test_batch_failures_do_not_block_siblings(make_writer, store, recorder):
    requests, _, handler = store
    pipeline = MessageHandler(make_writer(handler), observers=[recorder])
    batch = [
        publish(body='{"uuid":"one"}'),
        publish(body="I'm not JSON"),
        publish(**{"Origin-System-Id": ""}),
        publish(body='{"uuid":"two"}'),
    ]

    outcomes = pipeline(batch)

    assert [o.ok for o in outcomes] == [True, False, False, True]
    assert [str(r.url).rsplit("/", 1)[-1] for r in requests] == ["one", "two"]
    assert recorder.outcomes == outcomes


def test_same_message_twice_is_written_twice(make_writer, store, recorder):
    requests, _, handler = store
    pipeline = MessageHandler(make_writer(handler), observers=[recorder])

    first, second = pipeline.handle_batch([publish(), publish()])

    assert first.ok and second.ok
    assert requests[0].content == requests[1].content
    assert requests[0].headers["X-Native-Hash"] == requests[1].headers["X-Native-Hash"]


def test_written_message_is_forwarded(make_writer, store, recorder):
    _, _, handler = store
    producer = FakeProducer()
    pipeline = MessageHandler(make_writer(handler), producer=producer, observers=[recorder])
    message = publish()

    outcome = pipeline.handle_message(message)

    assert outcome.ok
    assert outcome.stage is Stage.FORWARDED
    (forwarded,) = producer.sent
    assert forwarded.body == message.body
    assert dict(forwarded.headers) == dict(message.headers)


def test_failed_write_is_not_forwarded(make_writer, store, recorder):
    _, state, handler = store
    state["status"] = 500
    producer = FakeProducer()
    pipeline = MessageHandler(make_writer(handler), producer=producer, observers=[recorder])

    pipeline.handle_message(publish())

    assert producer.sent == []


def test_forward_failure_is_reported(make_writer, store, recorder):
    _, _, handler = store
    pipeline = MessageHandler(
        make_writer(handler), producer=FakeProducer(fail=True), observers=[recorder]
    )

    outcome = pipeline.handle_message(publish())

    assert not outcome.ok
    assert outcome.stage is Stage.FORWARDED
    assert outcome.content_uuid == "abc-123"
    assert outcome.error_code == "NI-QUEUE-002"


def test_unexpected_error_does_not_escape(recorder, caplog):
    class ExplodingWriter:
        def resolve_collection(self, origin_system_id):
            return "methode"

        def write(self, message, collection):
            raise RuntimeError("boom")

    pipeline = MessageHandler(ExplodingWriter(), observers=[recorder])

    with caplog.at_level(logging.ERROR):
        outcomes = pipeline.handle_batch([publish(), publish()])

    assert [o.ok for o in outcomes] == [False, False]
    assert outcomes[0].error_code == "NI-INTERNAL-900"
    assert "Unexpected error at stage written" in caplog.text


def test_broken_observer_does_not_stop_pipeline(make_writer, store, recorder):
    _, _, handler = store

    class BrokenObserver:
        def on_outcome(self, outcome):
            raise RuntimeError("observer down")

    pipeline = MessageHandler(make_writer(handler), observers=[BrokenObserver(), recorder])

    outcome = pipeline.handle_message(publish())

    assert outcome.ok
    assert recorder.outcomes == [outcome]


def test_logging_observer_reports_failures_with_context(make_writer, store, caplog):
    _, state, handler = store
    state["status"] = 500
    pipeline = MessageHandler(make_writer(handler), observers=[LoggingObserver()])

    with caplog.at_level(logging.INFO):
        pipeline.handle_message(publish())

    failure = [r for r in caplog.records if r.levelno == logging.ERROR][-1]
    assert "Failed at stage written" in failure.getMessage()
    assert failure.transaction_id == EXPECTED_TID
    assert failure.error_code == "NI-WRITE-001"
    assert failure.response_status_code == 500
    assert failure.collection == "methode"
    assert failure.uuid == "abc-123"


def test_metrics_observer_counts_outcomes(make_writer, store):
    _, _, handler = store
    pipeline = MessageHandler(make_writer(handler), observers=[MetricsObserver()])

    pipeline.handle_batch([publish(), publish(body="I'm not JSON"), publish()])

    counts = metrics.get_counts()
    assert counts["received"] == 3
    assert counts["written"] == 2
    assert counts["failed"] == 1
    assert counts["failed_by_stage"] == {"body_enriched": 1}
