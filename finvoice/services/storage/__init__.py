"""
Storage Services Package

Provides abstract interfaces and concrete implementations for data storage.
Currently implements Google Sheets as the backend, but designed to be swappable.
"""

from finvoice.services.storage.interface import (
    AuditStorageInterface,
    ConnectionError,
    DuplicateError,
    Filters,
    NotFoundError,
    Record,
    RemoteStore,
    StorageError,
)
from finvoice.services.storage.offline import OfflineRemoteStore
from finvoice.services.storage.google_sheets import (
    GoogleSheetsAuditStorage,
    GoogleSheetsClient,
    GoogleSheetsRemoteStore,
)

__all__ = [
    # Interfaces
    "AuditStorageInterface",
    "Filters",
    "Record",
    "RemoteStore",
    # Exceptions
    "ConnectionError",
    "DuplicateError",
    "NotFoundError",
    "StorageError",
    # Google Sheets implementation
    "GoogleSheetsAuditStorage",
    "GoogleSheetsClient",
    "GoogleSheetsRemoteStore",
    # No backend
    "OfflineRemoteStore",
]
