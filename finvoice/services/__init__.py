"""Services package."""

from finvoice.services.storage import (
    AuditStorageInterface,
    ConnectionError,
    DuplicateError,
    GoogleSheetsAuditStorage,
    GoogleSheetsClient,
    GoogleSheetsRemoteStore,
    NotFoundError,
    OfflineRemoteStore,
    RemoteStore,
    StorageError,
)

__all__ = [
    # Storage services
    "AuditStorageInterface",
    "ConnectionError",
    "DuplicateError",
    "GoogleSheetsAuditStorage",
    "GoogleSheetsClient",
    "GoogleSheetsRemoteStore",
    "NotFoundError",
    "OfflineRemoteStore",
    "RemoteStore",
    "StorageError",
]
