from __future__ import annotations

from typing import Any, Mapping, Protocol

from ..core.errors import ParseError


class ContentBodyParser(Protocol):
    def get_uuid(self, body: Any) -> str:
        """Return the content UUID of a parsed body or raise ParseError."""
        ...


class FieldPathBodyParser:
    """Reads the content UUID from a (possibly nested) field, e.g. ``uuid`` or ``content.uuid``."""

    def __init__(self, field_path: str = "uuid") -> None:
        if not field_path.strip():
            raise ValueError("field_path must not be empty")
        self._field_path = field_path
        self._keys = tuple(field_path.split("."))

    @property
    def field_path(self) -> str:
        return self._field_path

    def get_uuid(self, body: Any) -> str:
        if not isinstance(body, Mapping):
            raise ParseError("Content body is not a JSON object")

        value: Any = body
        for key in self._keys:
            if not isinstance(value, Mapping) or key not in value:
                raise ParseError(f"Content body has no {self._field_path!r} field")
            value = value[key]

        if not isinstance(value, str):
            raise ParseError(f"Content body field {self._field_path!r} is not a string")
        if not value.strip():
            raise ParseError(f"Content body field {self._field_path!r} is empty")
        if value.strip() in (".", ".."):
            raise ParseError(f"Content body field {self._field_path!r} is not a usable id: {value!r}")
        return value
