"""
Abstract Storage Interface

DESIGN DECISION: We define an abstract interface for storage operations.
This allows us to:
1. Swap Google Sheets for a real database later
2. Use in-memory storage for testing
3. Keep session and sync logic decoupled from the storage engine

The remote store is a thin table client: records are plain dicts,
addressed by collection name and equality filters. The interface is
intentionally simple - we're not building a full ORM.

Failures carry a machine-readable code. Callers treat two of them
specially:
- duplicate_key: a unique constraint was hit (budget upsert-by-month)
- not_found: a lookup or mutation matched nothing (absent, not broken)
"""

from abc import ABC, abstractmethod
from typing import Any, Optional
from uuid import UUID

from finvoice.models.audit import AuditEvent


Record = dict[str, Any]
Filters = dict[str, Any]


class RemoteStore(ABC):
    """
    Abstract interface for the remote record store.

    Any storage implementation (Google Sheets, PostgreSQL, etc.)
    must implement these methods. The store assigns id, created_at
    and updated_at on insert.
    """

    @abstractmethod
    async def insert(self, collection: str, payload: Record) -> Record:
        """
        Insert a record.

        Returns:
            The stored record, including server-assigned fields

        Raises:
            DuplicateError: If a unique key of the collection is taken
            StorageError: If the insert fails
        """
        pass

    @abstractmethod
    async def select_one(self, collection: str, filters: Filters) -> Record:
        """
        Fetch exactly one record matching all filters.

        Raises:
            NotFoundError: If nothing matches
            StorageError: If the read fails
        """
        pass

    @abstractmethod
    async def select(
        self,
        collection: str,
        filters: Optional[Filters] = None,
        order_by: Optional[str] = None,
        descending: bool = False,
    ) -> list[Record]:
        """
        Fetch every record matching all filters.

        Returns:
            Matching records, possibly empty
        """
        pass

    @abstractmethod
    async def update(
        self,
        collection: str,
        filters: Filters,
        payload: Record,
    ) -> Record:
        """
        Apply payload to the single record matching filters.

        Returns:
            The record after the update

        Raises:
            NotFoundError: If nothing matches
            DuplicateError: If the update would violate a unique key
            StorageError: If the update fails
        """
        pass

    async def upsert(
        self,
        collection: str,
        keys: tuple[str, ...],
        payload: Record,
        on_conflict: Record,
    ) -> tuple[Record, bool]:
        """
        Insert payload, or apply on_conflict to the record sharing its keys.

        The default is an insert followed, on DuplicateError, by one update
        keyed by `keys`. Stores that can hold a lock across both should
        override it.

        Returns:
            (record, created)
        """
        try:
            return await self.insert(collection, payload), True
        except DuplicateError:
            pass
        filters = {key: payload[key] for key in keys}
        return await self.update(collection, filters, on_conflict), False

    @abstractmethod
    async def delete(self, collection: str, filters: Filters) -> Record:
        """
        Delete the single record matching filters.

        Returns:
            The deleted record

        Raises:
            NotFoundError: If nothing matches
        """
        pass


class AuditStorageInterface(ABC):
    """
    Abstract interface for audit log storage.

    Audit logs are append-only - we never delete or modify them.
    """

    @abstractmethod
    async def append_event(self, event: AuditEvent) -> bool:
        """
        Append an audit event to the log.

        Returns:
            True if logged successfully
        """
        pass

    @abstractmethod
    async def get_events_by_correlation_id(
        self,
        correlation_id: UUID,
    ) -> list[AuditEvent]:
        """Get all events for a correlation ID, oldest first."""
        pass

    @abstractmethod
    async def get_recent_events(
        self,
        limit: int = 100,
    ) -> list[AuditEvent]:
        """Get the most recent audit events, newest first."""
        pass


class StorageError(Exception):
    """Base exception for storage operations."""

    code = "storage_error"

    def __init__(self, message: str, code: Optional[str] = None):
        super().__init__(message)
        if code is not None:
            self.code = code


class NotFoundError(StorageError):
    """Entity not found in storage."""

    code = "not_found"


class DuplicateError(StorageError):
    """Attempted to insert a duplicate entity."""

    code = "duplicate_key"


class ConnectionError(StorageError):
    """Could not connect to storage backend."""

    code = "connection_error"
