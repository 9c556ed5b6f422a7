"""
Native Ingester - Native Message Envelope

The outbound envelope handed to the native writer: the enriched content body
plus the headers the native store requires.

Headers:
- X-Request-Id:  transaction id of the publish event (always present)
- X-Native-Hash: content fingerprint used by the store for deduplication
                 (present once computed)

Usage:
    from ingester.native.message import NativeMessage, compute_native_hash

    message = NativeMessage.create(body, transaction_id)
    message = message.with_hash(compute_native_hash(body))
"""

from __future__ import annotations

import hashlib
import json
from typing import Any

from pydantic import BaseModel, Field

TRANSACTION_ID_HEADER = "X-Request-Id"
NATIVE_HASH_HEADER = "X-Native-Hash"


def canonical_json(body: dict[str, Any]) -> bytes:
    """Serialise a body deterministically: sorted keys, compact separators, UTF-8."""
    text = json.dumps(body, sort_keys=True, separators=(",", ":"), ensure_ascii=False, allow_nan=False)
    # Lone surrogates from \u escapes are valid JSON but not encodable UTF-8
    return text.encode("utf-8", errors="surrogatepass")


def compute_native_hash(body: dict[str, Any]) -> str:
    """SHA-256 hex digest of the canonical JSON form of ``body``."""
    return hashlib.sha256(canonical_json(body)).hexdigest()


class NativeMessage(BaseModel):
    """Body and headers for a single native store write."""

    body: dict[str, Any] = Field(
        ...,
        description="Enriched content body, serialised as the PUT payload",
    )
    headers: dict[str, str] = Field(
        default_factory=dict,
        description="HTTP headers sent with the write",
    )

    model_config = {
        "strict": False,
        "extra": "forbid",
        "frozen": False,
    }

    @classmethod
    def create(cls, body: dict[str, Any], transaction_id: str) -> "NativeMessage":
        return cls(body=body, headers={TRANSACTION_ID_HEADER: transaction_id})

    def with_hash(self, native_hash: str) -> "NativeMessage":
        """Return a copy carrying the X-Native-Hash header."""
        headers = dict(self.headers)
        if native_hash:
            headers[NATIVE_HASH_HEADER] = native_hash
        return self.model_copy(update={"headers": headers})

    @property
    def transaction_id(self) -> str:
        return self.headers.get(TRANSACTION_ID_HEADER, "")

    @property
    def native_hash(self) -> str:
        return self.headers.get(NATIVE_HASH_HEADER, "")

    def to_json(self) -> bytes:
        """Serialise the body; raises TypeError/ValueError for unserialisable values."""
        return json.dumps(self.body, ensure_ascii=False, allow_nan=False).encode("utf-8")
