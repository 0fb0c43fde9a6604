"""
Backup / Restore

Serializes records to a single JSON document and back.

The document is lossless for everything the engine relies on:
source_item_id, categories (in order) and image references survive
exactly, and a missing list (None) stays distinct from an empty one.
"""

from datetime import datetime, timezone
from typing import Iterable

from pydantic import BaseModel, Field, ValidationError

from expense_records.models.record import Record
from expense_records.services.storage.interface import RecordStorageInterface


BACKUP_FORMAT_VERSION = 1


class BackupFormatError(ValueError):
    """The backup document is not valid."""
    pass


class BackupDocument(BaseModel):
    """Top-level backup document."""

    format_version: int = Field(default=BACKUP_FORMAT_VERSION, ge=1)
    exported_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))
    records: list[Record] = Field(default_factory=list)


def export_backup(records: Iterable[Record], indent: int = 2) -> str:
    """Render records as a JSON backup document."""
    document = BackupDocument(records=list(records))
    return document.model_dump_json(indent=indent)


def import_backup(text: str) -> list[Record]:
    """
    Parse a JSON backup document.

    Raises:
        BackupFormatError: If the text is not a valid backup document
            or was written by a newer format version
    """
    try:
        document = BackupDocument.model_validate_json(text)
    except ValidationError as e:
        raise BackupFormatError(f"Invalid backup document: {e}") from e

    if document.format_version > BACKUP_FORMAT_VERSION:
        raise BackupFormatError(
            f"Unsupported backup format version {document.format_version} "
            f"(newest supported: {BACKUP_FORMAT_VERSION})"
        )
    return document.records


async def export_from(storage: RecordStorageInterface) -> str:
    """Back up every record in storage."""
    return export_backup(await storage.list_all_records())


async def restore_into(storage: RecordStorageInterface, text: str) -> int:
    """
    Replace storage content with the records in a backup document.

    The document is fully parsed before storage is touched.

    Returns:
        Number of records restored
    """
    records = import_backup(text)
    return await storage.replace_all(records)
