"""Services package."""

from expense_records.services.backup import (
    BACKUP_FORMAT_VERSION,
    BackupDocument,
    BackupFormatError,
    export_backup,
    import_backup,
)
from expense_records.services.storage import (
    AuditStorageInterface,
    ConcurrentModificationError,
    DuplicateError,
    GoogleSheetsAuditStorage,
    GoogleSheetsClient,
    GoogleSheetsRecordStorage,
    InMemoryAuditStorage,
    InMemoryRecordStorage,
    NotFoundError,
    RecordStorageInterface,
    StorageConnectionError,
    StorageError,
)

__all__ = [
    # Backup
    "BACKUP_FORMAT_VERSION",
    "BackupDocument",
    "BackupFormatError",
    "export_backup",
    "import_backup",
    # Storage services
    "AuditStorageInterface",
    "ConcurrentModificationError",
    "DuplicateError",
    "GoogleSheetsAuditStorage",
    "GoogleSheetsClient",
    "GoogleSheetsRecordStorage",
    "InMemoryAuditStorage",
    "InMemoryRecordStorage",
    "NotFoundError",
    "RecordStorageInterface",
    "StorageConnectionError",
    "StorageError",
]
