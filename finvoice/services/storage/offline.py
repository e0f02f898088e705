"""
Remote store used when no backend is configured.

Every call fails with ConnectionError, so logins fall back to a
local-only session the same way they do when the backend is down.
"""

from typing import Optional

from finvoice.services.storage.interface import (
    ConnectionError,
    Filters,
    Record,
    RemoteStore,
)


class OfflineRemoteStore(RemoteStore):
    """A RemoteStore with no backend behind it."""

    def __init__(self, reason: str = "Remote store is not configured"):
        self._reason = reason

    async def insert(self, collection: str, payload: Record) -> Record:
        raise ConnectionError(self._reason)

    async def select_one(self, collection: str, filters: Filters) -> Record:
        raise ConnectionError(self._reason)

    async def select(
        self,
        collection: str,
        filters: Optional[Filters] = None,
        order_by: Optional[str] = None,
        descending: bool = False,
    ) -> list[Record]:
        raise ConnectionError(self._reason)

    async def update(self, collection: str, filters: Filters, payload: Record) -> Record:
        raise ConnectionError(self._reason)

    async def delete(self, collection: str, filters: Filters) -> Record:
        raise ConnectionError(self._reason)
