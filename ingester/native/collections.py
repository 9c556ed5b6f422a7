"""Origin system to native collection routing."""

from __future__ import annotations

from types import MappingProxyType
from typing import Mapping

from ..core.errors import NotFoundError


class CollectionResolver:
    """
    Immutable lookup from origin system ID to collection name.

    The mapping is copied on construction and exposed read-only, so a single
    resolver can be shared by every worker without locking.
    """

    def __init__(self, collections_by_origins: Mapping[str, str]) -> None:
        self._collections = MappingProxyType(
            {origin: collection for origin, collection in collections_by_origins.items() if collection}
        )

    @property
    def collections(self) -> Mapping[str, str]:
        return self._collections

    def resolve(self, origin_system_id: str) -> str:
        if not origin_system_id:
            raise NotFoundError("Origin system ID is empty", origin_system_id)
        collection = self._collections.get(origin_system_id)
        if not collection:
            raise NotFoundError(
                f"Collection not found for origin system {origin_system_id!r}",
                origin_system_id,
            )
        return collection

    def __len__(self) -> int:
        return len(self._collections)
