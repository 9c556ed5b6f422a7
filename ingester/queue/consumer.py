"""
Batched queue consumer over the Kafka REST proxy (v1 API).

Lifecycle:
    1. POST {addr}/consumers/{group}           create a consumer instance
    2. GET  {addr}{instance}/topics/{topic}    read a batch of records
    3. POST {addr}{instance}/offsets           commit (only when auto-commit is off)
    4. DELETE {addr}{instance}                 on shutdown

Each non-empty batch is decoded and handed to the handler in one call.
Offsets are committed after the handler returns, so a crash mid-batch means
redelivery (at-least-once), never loss.
"""

from __future__ import annotations

import base64
import binascii
import logging
import threading
from dataclasses import dataclass
from typing import Any, Callable, Sequence
from urllib.parse import urlparse

import httpx

from ..core.errors import ConnectivityError, QueueError
from .message import RawQueueMessage, decode_message

logger = logging.getLogger(__name__)

KAFKA_V1_JSON = "application/vnd.kafka.v1+json"
KAFKA_BINARY_V1_JSON = "application/vnd.kafka.binary.v1+json"
DEFAULT_OFFSET = "largest"

BatchHandler = Callable[[Sequence[RawQueueMessage]], Any]


@dataclass(frozen=True)
class QueueConfig:
    addrs: tuple[str, ...]
    group: str
    topic: str
    queue: str = ""
    offset: str = DEFAULT_OFFSET
    auto_commit_enable: bool = True
    authorization_key: str = ""
    poll_interval: float = 1.0
    timeout: float = 10.0

    @classmethod
    def from_settings(cls, settings: Any, *, topic: str | None = None, queue: str | None = None) -> "QueueConfig":
        return cls(
            addrs=tuple(settings.queue_addresses),
            group=settings.Q_GROUP,
            topic=topic if topic is not None else settings.Q_READ_TOPIC,
            queue=queue if queue is not None else settings.Q_READ_QUEUE,
            offset=settings.Q_OFFSET or DEFAULT_OFFSET,
            auto_commit_enable=settings.Q_AUTO_COMMIT,
            authorization_key=settings.Q_AUTHORIZATION,
            poll_interval=settings.Q_POLL_INTERVAL_SECONDS,
        )


def proxy_headers(config: QueueConfig, content_type: str | None = None) -> dict[str, str]:
    """Routing and auth headers sent on every proxy call."""
    headers: dict[str, str] = {}
    if config.queue.strip():
        headers["Host"] = config.queue.strip()
    if config.authorization_key:
        headers["Authorization"] = config.authorization_key
    if content_type:
        headers["Content-Type"] = content_type
    return headers


def check_proxy(client: httpx.Client, addr: str, config: QueueConfig) -> str:
    """GET {addr}/topics; raises ConnectivityError unless it answers 200."""
    try:
        response = client.get(f"{addr}/topics", headers=proxy_headers(config))
    except httpx.HTTPError as exc:
        raise ConnectivityError(f"Queue proxy at {addr} is unreachable: {exc}") from exc
    if response.status_code != httpx.codes.OK:
        raise ConnectivityError(
            f"Queue proxy at {addr} returned status {response.status_code}"
        )
    return f"Queue proxy at {addr} is good to go."


class BatchedQueueConsumer:
    """Reads record batches from the proxy and passes them to ``handler``."""

    def __init__(
        self,
        config: QueueConfig,
        handler: BatchHandler,
        client: httpx.Client | None = None,
    ) -> None:
        if not config.addrs:
            raise ValueError("At least one queue address is required")
        self._config = config
        self._handler = handler
        self._owns_client = client is None
        self._client = client or httpx.Client(timeout=config.timeout)
        self._addr_index = 0
        self._instance_path: str | None = None

    @property
    def config(self) -> QueueConfig:
        return self._config

    @property
    def addr(self) -> str:
        return self._config.addrs[self._addr_index]

    @property
    def instance_path(self) -> str | None:
        return self._instance_path

    def _request(self, method: str, url: str, **kwargs: Any) -> httpx.Response:
        try:
            response = self._client.request(method, url, **kwargs)
        except httpx.HTTPError as exc:
            raise QueueError(f"{method} {url} failed: {exc}") from exc
        if not 200 <= response.status_code < 300:
            raise QueueError(
                f"{method} {url} returned status {response.status_code}",
                status_code=response.status_code,
            )
        return response

    def _create_instance(self) -> str:
        body = {
            "auto.offset.reset": self._config.offset,
            "auto.commit.enable": "true" if self._config.auto_commit_enable else "false",
        }
        response = self._request(
            "POST",
            f"{self.addr}/consumers/{self._config.group}",
            json=body,
            headers=proxy_headers(self._config, KAFKA_V1_JSON),
        )
        base_uri = response.json().get("base_uri", "")
        # The proxy reports its own hostname; only the path is reusable behind a router
        path = urlparse(base_uri).path
        if not path:
            raise QueueError(f"Consumer instance response has no base_uri: {response.text!r}")
        logger.info("Created consumer instance %s on %s", path, self.addr)
        return path

    def _ensure_instance(self) -> str:
        if self._instance_path is None:
            self._instance_path = self._create_instance()
        return self._instance_path

    def _fetch(self, instance_path: str) -> list[RawQueueMessage]:
        headers = proxy_headers(self._config)
        headers["Accept"] = KAFKA_BINARY_V1_JSON
        response = self._request(
            "GET",
            f"{self.addr}{instance_path}/topics/{self._config.topic}",
            headers=headers,
        )
        records = response.json() or []
        messages = []
        for record in records:
            value = record.get("value")
            if not value:
                continue
            try:
                raw = base64.b64decode(value).decode("utf-8")
            except (binascii.Error, UnicodeDecodeError) as exc:
                logger.warning(
                    "Skipping undecodable record at offset %s: %s",
                    record.get("offset"),
                    exc,
                )
                continue
            messages.append(decode_message(raw))
        return messages

    def _commit(self, instance_path: str) -> None:
        self._request(
            "POST",
            f"{self.addr}{instance_path}/offsets",
            headers=proxy_headers(self._config, KAFKA_V1_JSON),
        )

    def consume_once(self) -> int:
        """Read one batch, hand it to the handler, commit if needed. Returns the batch size."""
        instance_path = self._ensure_instance()
        try:
            messages = self._fetch(instance_path)
        except QueueError as exc:
            if exc.status_code == httpx.codes.NOT_FOUND:
                # Instance expired on the proxy side
                self._instance_path = None
            raise

        if messages:
            logger.debug("Consumed %d messages from %s", len(messages), self._config.topic)
            self._handler(messages)
            if not self._config.auto_commit_enable:
                self._commit(instance_path)
        return len(messages)

    def run(self, stop_event: threading.Event) -> None:
        """Consume until ``stop_event`` is set, then destroy the consumer instance."""
        logger.info(
            "Starting consumer group=%s topic=%s offset=%s",
            self._config.group,
            self._config.topic,
            self._config.offset,
        )
        try:
            while not stop_event.is_set():
                try:
                    consumed = self.consume_once()
                except QueueError as exc:
                    logger.error("Queue error, backing off: %s", exc, extra=exc.to_log_dict())
                    self._rotate_addr()
                    stop_event.wait(self._config.poll_interval)
                    continue
                except Exception:
                    logger.exception("Batch handler failed; batch will be redelivered")
                    stop_event.wait(self._config.poll_interval)
                    continue
                if consumed == 0:
                    stop_event.wait(self._config.poll_interval)
        finally:
            self.shutdown()

    def _rotate_addr(self) -> None:
        if len(self._config.addrs) > 1:
            self._addr_index = (self._addr_index + 1) % len(self._config.addrs)
            self._instance_path = None

    def shutdown(self) -> None:
        """Delete the consumer instance (best effort) and release the client."""
        if self._instance_path is not None:
            try:
                self._request(
                    "DELETE",
                    f"{self.addr}{self._instance_path}",
                    headers=proxy_headers(self._config, KAFKA_V1_JSON),
                )
                logger.info("Deleted consumer instance %s", self._instance_path)
            except QueueError as exc:
                logger.warning("Couldn't delete consumer instance: %s", exc)
            self._instance_path = None
        if self._owns_client:
            self._client.close()

    def connectivity_check(self) -> str:
        return check_proxy(self._client, self.addr, self._config)
