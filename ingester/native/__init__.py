"""Native store client: content UUID parsing, collection routing and writes."""

from .body_parser import ContentBodyParser, FieldPathBodyParser
from .collections import CollectionResolver
from .message import NATIVE_HASH_HEADER, TRANSACTION_ID_HEADER, NativeMessage, compute_native_hash
from .writer import GTG_PATH, NativeWriter

__all__ = [
    "GTG_PATH",
    "NATIVE_HASH_HEADER",
    "TRANSACTION_ID_HEADER",
    "CollectionResolver",
    "ContentBodyParser",
    "FieldPathBodyParser",
    "NativeMessage",
    "NativeWriter",
    "compute_native_hash",
]
