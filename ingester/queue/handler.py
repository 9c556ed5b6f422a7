"""
Native Ingester - Message Handler

Runs each queue message through the publish pipeline:

    RECEIVED -> PARSED -> COLLECTION_RESOLVED -> BODY_ENRICHED
             -> HASH_COMPUTED -> WRITTEN [-> FORWARDED]

The first failing stage ends processing of that message: the failure is
reported to the observers and the message is dropped. Failures never
propagate to the caller, so one bad message cannot stop a batch. There is no
in-process retry.
"""

from __future__ import annotations

import logging
from typing import Iterable, Protocol, Sequence

from ..core.context import transaction_id_context
from ..core.errors import IngesterError, WriteError
from ..native.message import NativeMessage, compute_native_hash
from .event import PublicationEvent
from .message import RawQueueMessage
from .observers import LoggingObserver, MetricsObserver, PipelineObserver, PipelineOutcome, Stage

logger = logging.getLogger(__name__)


class Writer(Protocol):
    def resolve_collection(self, origin_system_id: str) -> str: ...

    def write(self, message: NativeMessage, collection: str) -> str: ...


class Producer(Protocol):
    def send(self, message: RawQueueMessage) -> None: ...


class MessageHandler:
    """Per-message pipeline orchestrator; callable with a batch of messages."""

    def __init__(
        self,
        writer: Writer,
        producer: Producer | None = None,
        observers: Iterable[PipelineObserver] | None = None,
    ) -> None:
        self._writer = writer
        self._producer = producer
        self._observers: list[PipelineObserver] = (
            list(observers) if observers is not None else [LoggingObserver(), MetricsObserver()]
        )

    def __call__(self, messages: Sequence[RawQueueMessage]) -> list[PipelineOutcome]:
        return self.handle_batch(messages)

    def handle_batch(self, messages: Sequence[RawQueueMessage]) -> list[PipelineOutcome]:
        """Process each message independently, in order."""
        return [self.handle_message(message) for message in messages]

    def handle_message(self, message: RawQueueMessage) -> PipelineOutcome:
        event = PublicationEvent(message)
        with transaction_id_context(event.transaction_id):
            outcome = self._process(event)
            self._emit(outcome)
        return outcome

    def _process(self, event: PublicationEvent) -> PipelineOutcome:
        transaction_id = event.transaction_id
        origin_system_id = event.origin_system_id
        stage = Stage.COLLECTION_RESOLVED
        collection: str | None = None
        content_uuid: str | None = None
        native_hash: str | None = None

        try:
            collection = self._writer.resolve_collection(origin_system_id)

            stage = Stage.BODY_ENRICHED
            body = event.content_body()

            stage = Stage.HASH_COMPUTED
            native_hash = event.native_hash or compute_native_hash(body)
            message = NativeMessage.create(body, transaction_id).with_hash(native_hash)

            stage = Stage.WRITTEN
            content_uuid = self._writer.write(message, collection)

            if self._producer is not None:
                stage = Stage.FORWARDED
                self._producer.send(event.producer_message())
        except IngesterError as exc:
            if isinstance(exc, WriteError) and content_uuid is None:
                content_uuid = exc.content_uuid
            error: BaseException = exc
        except Exception as exc:
            logger.exception("Unexpected error at stage %s", stage.value)
            error = exc
        else:
            return PipelineOutcome(
                stage=stage,
                ok=True,
                transaction_id=transaction_id,
                origin_system_id=origin_system_id,
                collection=collection,
                content_uuid=content_uuid,
                native_hash=native_hash,
            )

        return PipelineOutcome(
            stage=stage,
            ok=False,
            transaction_id=transaction_id,
            origin_system_id=origin_system_id,
            collection=collection,
            content_uuid=content_uuid,
            native_hash=native_hash,
            error=error,
        )

    def _emit(self, outcome: PipelineOutcome) -> None:
        for observer in self._observers:
            try:
                observer.on_outcome(outcome)
            except Exception:
                logger.exception("Observer %s failed", type(observer).__name__)
