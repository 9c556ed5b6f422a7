"""
Native Writer - single-attempt HTTP writes to the native store.

Each write is one PUT to ``{address}/{collection}/{uuid}``. Nothing is
retried here: a failed write raises, and redelivery (if any) is left to the
queue. Every response is drained and closed before the call returns, on the
success path and on every failure path.
"""

from __future__ import annotations

import logging
from urllib.parse import quote

import httpx

from ..core.errors import ConnectivityError, WriteError
from .body_parser import ContentBodyParser, FieldPathBodyParser
from .collections import CollectionResolver
from .message import NativeMessage

logger = logging.getLogger(__name__)

GTG_PATH = "/__gtg"
DEFAULT_TIMEOUT_SECONDS = 5.0


def is_2xx(status_code: int) -> bool:
    return 200 <= status_code < 300


def _drain_and_close(response: httpx.Response) -> None:
    try:
        response.read()
    except httpx.HTTPError as exc:
        logger.warning("Couldn't read response body: %s", exc)
    finally:
        response.close()


class NativeWriter:
    """Writes native messages to collections in the native store."""

    def __init__(
        self,
        address: str,
        resolver: CollectionResolver,
        body_parser: ContentBodyParser | None = None,
        host_header: str = "",
        timeout: float = DEFAULT_TIMEOUT_SECONDS,
        client: httpx.Client | None = None,
    ) -> None:
        self._address = address.rstrip("/")
        self._resolver = resolver
        self._body_parser = body_parser or FieldPathBodyParser()
        self._host_header = host_header.strip()
        self._owns_client = client is None
        self._client = client or httpx.Client(timeout=timeout)

    def __enter__(self) -> "NativeWriter":
        return self

    def __exit__(self, exc_type, exc, tb) -> None:  # pragma: no cover - context helper
        self.close()

    def close(self) -> None:
        if self._owns_client:
            self._client.close()

    @property
    def address(self) -> str:
        return self._address

    def _base_headers(self) -> dict[str, str]:
        if self._host_header:
            return {"Host": self._host_header}
        return {}

    def resolve_collection(self, origin_system_id: str) -> str:
        return self._resolver.resolve(origin_system_id)

    def write(self, message: NativeMessage, collection: str) -> str:
        """
        PUT ``message`` into ``collection``.

        Returns:
            The content UUID that was written.

        Raises:
            ParseError: The body carries no usable content UUID (no request is made).
            WriteError: Serialisation failed, the store answered non-2xx, or
                the request could not be completed.
        """
        transaction_id = message.transaction_id
        content_uuid = self._body_parser.get_uuid(message.body)
        log_fields = {"transaction_id": transaction_id, "uuid": content_uuid}
        logger.info("Start processing native publish event", extra=log_fields)

        try:
            payload = message.to_json()
        except (TypeError, ValueError) as exc:
            raise WriteError(
                f"Error marshalling message body: {exc}", content_uuid=content_uuid
            ) from exc

        # Each value is exactly one path segment
        segments = (quote(collection, safe=""), quote(content_uuid, safe=""))
        request_url = f"{self._address}/{segments[0]}/{segments[1]}"
        logger.info(
            "Built request URL for native writer",
            extra={**log_fields, "request_url": request_url},
        )

        headers = {
            **message.headers,
            "Content-Type": "application/json",
            **self._base_headers(),
        }

        try:
            request = self._client.build_request("PUT", request_url, content=payload, headers=headers)
            response = self._client.send(request, stream=True)
        except httpx.HTTPError as exc:
            raise WriteError(
                f"Error calling native writer at {request_url}: {exc}", content_uuid=content_uuid
            ) from exc

        try:
            if not is_2xx(response.status_code):
                raise WriteError(
                    f"Native writer returned non-2xx code {response.status_code}",
                    status_code=response.status_code,
                    content_uuid=content_uuid,
                )
        finally:
            _drain_and_close(response)

        logger.info("Successfully finished processing native publish event", extra=log_fields)
        return content_uuid

    def connectivity_check(self) -> str:
        """Probe the native store's good-to-go endpoint."""
        try:
            response = self._client.get(self._address + GTG_PATH, headers=self._base_headers())
        except httpx.HTTPError as exc:
            raise ConnectivityError(f"Native writer is not good to go. {exc}") from exc

        if response.status_code != httpx.codes.OK:
            raise ConnectivityError(
                f"Native writer is not good to go. GTG HTTP status code is {response.status_code}"
            )
        return "Native writer is good to go."
