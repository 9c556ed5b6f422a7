"""
Native Ingester - Service Entry Point

Wires settings, the native writer, the message handler and the queue adapters
together, and serves the health endpoints while the consumer runs in a
background thread.

Usage:
    # Run the service (consumer + health endpoints)
    python -m ingester.main

    # Consume a single batch and exit (for debugging)
    python -m ingester.main --once
"""

from __future__ import annotations

import argparse
import logging
import threading
from contextlib import asynccontextmanager
from dataclasses import dataclass, field
from typing import AsyncGenerator

import uvicorn
from fastapi import FastAPI

from . import __version__
from .config import Settings, get_settings, log_startup_diagnostics
from .core.logging import setup_logging
from .native import CollectionResolver, FieldPathBodyParser, NativeWriter
from .queue import BatchedQueueConsumer, MessageHandler, QueueConfig, QueueProducer
from .routers.health import router as health_router

logger = logging.getLogger(__name__)

SHUTDOWN_TIMEOUT_SECONDS = 30.0


@dataclass
class Service:
    """The long-lived components of one ingester process."""

    writer: NativeWriter
    handler: MessageHandler
    consumer: BatchedQueueConsumer
    producer: QueueProducer | None = None
    stop_event: threading.Event = field(default_factory=threading.Event)
    thread: threading.Thread | None = None

    def health_checks(self) -> list:
        checks = [
            ("native-writer", self.writer.connectivity_check),
            ("queue-consumer", self.consumer.connectivity_check),
        ]
        if self.producer is not None:
            checks.append(("queue-producer", self.producer.connectivity_check))
        return checks

    def start(self) -> None:
        self.thread = threading.Thread(
            target=self.consumer.run,
            args=(self.stop_event,),
            name="queue-consumer",
            daemon=True,
        )
        self.thread.start()

    def stop(self) -> None:
        self.stop_event.set()
        if self.thread is not None:
            self.thread.join(timeout=SHUTDOWN_TIMEOUT_SECONDS)
            if self.thread.is_alive():
                logger.warning("Consumer thread did not stop within %.0fs", SHUTDOWN_TIMEOUT_SECONDS)
        else:
            self.consumer.shutdown()
        if self.producer is not None:
            self.producer.close()
        self.writer.close()


def build_service(settings: Settings) -> Service:
    resolver = CollectionResolver(settings.collections_by_origins)
    writer = NativeWriter(
        address=settings.native_address,
        resolver=resolver,
        body_parser=FieldPathBodyParser(settings.CONTENT_UUID_FIELD),
        host_header=settings.NATIVE_RW_HOST_HEADER,
        timeout=settings.NATIVE_RW_TIMEOUT_SECONDS,
    )

    producer = None
    if settings.forwarding_enabled:
        producer = QueueProducer(
            QueueConfig.from_settings(
                settings, topic=settings.Q_WRITE_TOPIC, queue=settings.Q_WRITE_QUEUE
            )
        )

    handler = MessageHandler(writer, producer=producer)
    consumer = BatchedQueueConsumer(QueueConfig.from_settings(settings), handler)
    return Service(writer=writer, handler=handler, consumer=consumer, producer=producer)


def create_app(settings: Settings | None = None, service: Service | None = None) -> FastAPI:
    """
    Build the FastAPI app.

    When ``service`` is given it is used as-is and the consumer thread is
    started by the lifespan; otherwise one is built from ``settings``.
    """
    settings = settings or get_settings()

    @asynccontextmanager
    async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
        svc = service or build_service(settings)
        app.state.health_checks = svc.health_checks()
        log_startup_diagnostics(settings)
        svc.start()
        logger.info("Native ingester v%s started", __version__)

        yield

        logger.info("Shutting down native ingester...")
        svc.stop()
        logger.info("Shutdown complete")

    app = FastAPI(
        title="Native Ingester",
        description="Writes native publication events to the native store",
        version=__version__,
        lifespan=lifespan,
    )
    app.state.service_name = settings.SERVICE_NAME
    app.state.health_checks = []
    app.include_router(health_router)
    return app


def main() -> None:
    parser = argparse.ArgumentParser(description="Native ingester")
    parser.add_argument("--once", action="store_true", help="Consume one batch and exit")
    args = parser.parse_args()

    settings = get_settings()
    setup_logging(service_name=settings.SERVICE_NAME, level=settings.LOG_LEVEL)

    if args.once:
        service = build_service(settings)
        try:
            consumed = service.consumer.consume_once()
            logger.info("Processed %d messages", consumed)
        finally:
            service.stop()
        return

    uvicorn.run(
        create_app(settings),
        host=settings.HOST,
        port=settings.PORT,
        log_level=settings.LOG_LEVEL.lower(),
        log_config=None,
    )


if __name__ == "__main__":
    main()
