"""
Storage Services Package

Provides abstract interfaces and concrete implementations for record storage.
The in-memory backend needs no configuration; the Google Sheets backend
is configured through GOOGLE_SHEETS_* settings.
"""

from expense_records.services.storage.interface import (
    AuditStorageInterface,
    ConcurrentModificationError,
    DuplicateError,
    NotFoundError,
    RecordStorageInterface,
    StorageConnectionError,
    StorageError,
)
from expense_records.services.storage.memory import (
    InMemoryAuditStorage,
    InMemoryRecordStorage,
)
from expense_records.services.storage.google_sheets import (
    GoogleSheetsAuditStorage,
    GoogleSheetsClient,
    GoogleSheetsRecordStorage,
)

__all__ = [
    # Interfaces
    "AuditStorageInterface",
    "RecordStorageInterface",
    # Exceptions
    "ConcurrentModificationError",
    "DuplicateError",
    "NotFoundError",
    "StorageConnectionError",
    "StorageError",
    # In-memory implementation
    "InMemoryAuditStorage",
    "InMemoryRecordStorage",
    # Google Sheets implementation
    "GoogleSheetsAuditStorage",
    "GoogleSheetsClient",
    "GoogleSheetsRecordStorage",
]
