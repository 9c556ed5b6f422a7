"""
Raw queue messages and their wire framing.

Messages on the queue are plain text framed as:

    FTMSG/1.0\\r\\n
    Message-Id: ...\\r\\n
    X-Request-Id: tid_...\\r\\n
    \\r\\n
    {"uuid": "...", ...}

``decode_message`` turns a record value into a RawQueueMessage and
``encode_message`` does the inverse for forwarding.
"""

from __future__ import annotations

import re
from types import MappingProxyType
from typing import Any, Mapping

from pydantic import BaseModel, Field, field_validator

MESSAGE_PREAMBLE = "FTMSG/1.0"

_HEADER_LINE = re.compile(r"^([\w-]+):\s*(.*)$")


class RawQueueMessage(BaseModel):
    """Immutable header mapping plus an opaque (expected JSON) body."""

    headers: Mapping[str, str] = Field(default_factory=dict)
    body: str = ""

    model_config = {
        "frozen": True,
        "extra": "forbid",
    }

    @field_validator("headers", mode="after")
    @classmethod
    def _freeze_headers(cls, v: Mapping[str, str]) -> Mapping[str, str]:
        return MappingProxyType(dict(v))

    def header(self, name: str) -> str:
        return self.headers.get(name, "")

    @property
    def log_context(self) -> dict[str, Any]:
        return {
            "transaction_id": self.header("X-Request-Id"),
            "message_id": self.header("Message-Id"),
            "origin_system_id": self.header("Origin-System-Id"),
        }


def decode_message(raw: str) -> RawQueueMessage:
    """Parse a framed record. Records without the preamble are treated as body-only."""
    if not raw.startswith(MESSAGE_PREAMBLE):
        return RawQueueMessage(headers={}, body=raw)

    # Header block ends at the first blank line, whichever line ending is used
    candidates = [(raw.find(sep), sep) for sep in ("\r\n\r\n", "\n\n") if sep in raw]
    if candidates:
        _, separator = min(candidates)
        head, _, body = raw.partition(separator)
    else:
        head, body = raw, ""

    headers: dict[str, str] = {}
    for line in head.splitlines()[1:]:
        match = _HEADER_LINE.match(line.strip())
        if match:
            headers[match.group(1)] = match.group(2).strip()
    return RawQueueMessage(headers=headers, body=body)


def encode_message(message: RawQueueMessage) -> str:
    lines = [MESSAGE_PREAMBLE]
    lines.extend(f"{name}: {value}" for name, value in message.headers.items())
    return "\r\n".join(lines) + "\r\n\r\n" + message.body
