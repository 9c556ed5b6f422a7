"""Forwards written messages to a destination topic through the queue proxy."""

from __future__ import annotations

import base64
import logging

import httpx

from ..core.errors import ProduceError
from .consumer import KAFKA_BINARY_V1_JSON, QueueConfig, check_proxy, proxy_headers
from .message import RawQueueMessage, encode_message

logger = logging.getLogger(__name__)


class QueueProducer:
    def __init__(self, config: QueueConfig, client: httpx.Client | None = None) -> None:
        if not config.addrs:
            raise ValueError("At least one queue address is required")
        self._config = config
        self._owns_client = client is None
        self._client = client or httpx.Client(timeout=config.timeout)

    @property
    def topic(self) -> str:
        return self._config.topic

    def send(self, message: RawQueueMessage) -> None:
        value = base64.b64encode(encode_message(message).encode("utf-8")).decode("ascii")
        url = f"{self._config.addrs[0]}/topics/{self._config.topic}"
        try:
            response = self._client.post(
                url,
                json={"records": [{"value": value}]},
                headers=proxy_headers(self._config, KAFKA_BINARY_V1_JSON),
            )
        except httpx.HTTPError as exc:
            raise ProduceError(f"Error forwarding message to {self._config.topic}: {exc}") from exc

        if not 200 <= response.status_code < 300:
            raise ProduceError(
                f"Forwarding to {self._config.topic} returned status {response.status_code}",
                status_code=response.status_code,
            )
        logger.debug("Forwarded message to %s", self._config.topic)

    def connectivity_check(self) -> str:
        return check_proxy(self._client, self._config.addrs[0], self._config)

    def close(self) -> None:
        if self._owns_client:
            self._client.close()
