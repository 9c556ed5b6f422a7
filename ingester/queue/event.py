from __future__ import annotations

import json
from dataclasses import dataclass
from typing import Any

from ..core.errors import ParseError, ValidationError
from .message import RawQueueMessage

TRANSACTION_ID_HEADER = "X-Request-Id"
ORIGIN_SYSTEM_ID_HEADER = "Origin-System-Id"
TIMESTAMP_HEADER = "Message-Timestamp"
NATIVE_HASH_HEADER = "Native-Hash"

LAST_MODIFIED_FIELD = "lastModified"
PUBLISH_REFERENCE_FIELD = "publishReference"


def _reject_constant(name: str) -> Any:
    raise ValueError(f"{name} is not a valid JSON value")


@dataclass(frozen=True)
class PublicationEvent:
    """Read-only view over a raw queue message carrying a native publish."""

    message: RawQueueMessage

    @property
    def transaction_id(self) -> str:
        return self.message.header(TRANSACTION_ID_HEADER)

    @property
    def origin_system_id(self) -> str:
        return self.message.header(ORIGIN_SYSTEM_ID_HEADER)

    @property
    def timestamp(self) -> str:
        return self.message.header(TIMESTAMP_HEADER)

    @property
    def native_hash(self) -> str:
        """Hash supplied by the publisher, if any."""
        return self.message.header(NATIVE_HASH_HEADER).strip()

    def content_body(self) -> dict[str, Any]:
        """
        Parse the body and add the audit fields.

        Returns a new dict on every call: the parsed body plus
        ``lastModified`` (message timestamp) and ``publishReference``
        (transaction id).

        Raises:
            ValidationError: The Message-Timestamp header is missing or blank.
            ParseError: The body is not JSON, or not a JSON object.
        """
        timestamp = self.timestamp
        if not timestamp.strip():
            raise ValidationError("Publish event is missing required timestamp")

        try:
            body = json.loads(self.message.body, parse_constant=_reject_constant)
        except ValueError as exc:
            raise ParseError(f"Publish event body is not valid JSON: {exc}") from exc

        if not isinstance(body, dict):
            raise ParseError(
                f"Publish event body is a JSON {type(body).__name__}, expected an object"
            )

        body[LAST_MODIFIED_FIELD] = timestamp
        body[PUBLISH_REFERENCE_FIELD] = self.transaction_id
        return body

    def producer_message(self) -> RawQueueMessage:
        """The message to forward once the content is written: same headers and body."""
        return RawQueueMessage(headers=dict(self.message.headers), body=self.message.body)
