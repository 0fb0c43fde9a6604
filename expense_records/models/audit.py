"""
Audit Models for Expense Records

Every write the save flow performs (or deliberately skips) is logged.
This provides:
1. Traceability of how a master record evolved over a day
2. Debugging information when a merge matches the wrong item
3. Visibility into skipped duplicate saves

DESIGN DECISION: Audit logs are append-only. We never delete or modify them.
"""

import json
from datetime import date, datetime, timezone
from enum import Enum
from typing import Any, Optional
from uuid import UUID, uuid4

from pydantic import BaseModel, Field


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class AuditEventType(str, Enum):
    """
    Types of events we audit.
    """
    # Snapshot records
    SNAPSHOT_CREATED = "snapshot_created"
    SNAPSHOT_SKIPPED_DUPLICATE = "snapshot_skipped_duplicate"

    # Master records
    MASTER_CREATED = "master_created"
    MASTER_UPDATED = "master_updated"
    MASTER_UNCHANGED = "master_unchanged"
    MERGE_CONFLICT = "merge_conflict"

    # Editing
    RECORD_EDITED = "record_edited"
    RECORD_DELETED = "record_deleted"

    # Batch / backup
    BATCH_SAVE_COMPLETED = "batch_save_completed"
    BACKUP_RESTORED = "backup_restored"

    # Data quality
    UNPARSABLE_PRICE = "unparsable_price"

    # System events
    SYSTEM_ERROR = "system_error"


class AuditSeverity(str, Enum):
    """Severity level for audit events."""
    DEBUG = "debug"
    INFO = "info"
    WARNING = "warning"
    ERROR = "error"
    CRITICAL = "critical"


class AuditEvent(BaseModel):
    """
    A single audit event.
    """

    # Identity
    event_id: UUID = Field(
        default_factory=uuid4,
        description="Unique event identifier"
    )
    timestamp: datetime = Field(
        default_factory=_utcnow,
        description="When the event occurred (UTC)"
    )

    # Event classification
    event_type: AuditEventType = Field(
        ...,
        description="Type of event"
    )
    severity: AuditSeverity = Field(
        default=AuditSeverity.INFO,
        description="Event severity"
    )

    # Context - what record is this about?
    record_id: Optional[int] = Field(
        default=None,
        description="ID of the record this event relates to"
    )
    record_day: Optional[date] = Field(
        default=None,
        description="Calendar day of the record"
    )

    # Correlation - for tracking related events
    correlation_id: Optional[UUID] = Field(
        default=None,
        description="ID to correlate related events (e.g. one save of a working list)"
    )

    description: str = Field(
        ...,
        max_length=500,
        description="Human-readable description of what happened"
    )

    details: dict[str, Any] = Field(
        default_factory=dict,
        description="Additional event-specific data"
    )

    error_message: Optional[str] = None

    def to_log_dict(self) -> dict:
        """
        Convert to a dictionary suitable for structured logging.
        """
        return {
            "event_id": str(self.event_id),
            "timestamp": self.timestamp.isoformat(),
            "event_type": self.event_type.value,
            "severity": self.severity.value,
            "record_id": self.record_id,
            "record_day": self.record_day.isoformat() if self.record_day else None,
            "correlation_id": str(self.correlation_id) if self.correlation_id else None,
            "description": self.description,
            "details": self.details,
            "error_message": self.error_message,
        }

    def to_sheets_row(self) -> list:
        """
        Convert to a row suitable for Google Sheets storage.

        Returns columns in order:
        [event_id, timestamp, event_type, severity, record_id, record_day,
         correlation_id, description, details_json, error_message]
        """
        return [
            str(self.event_id),
            self.timestamp.isoformat(),
            self.event_type.value,
            self.severity.value,
            str(self.record_id) if self.record_id is not None else "",
            self.record_day.isoformat() if self.record_day else "",
            str(self.correlation_id) if self.correlation_id else "",
            self.description,
            json.dumps(self.details) if self.details else "",
            self.error_message or "",
        ]


class AuditEventBuilder:
    """
    Helper class to build audit events with common patterns.

    Usage:
        event = AuditEventBuilder.snapshot_created(record, correlation_id)
        event = AuditEventBuilder.master_updated(record, 3, correlation_id)
    """

    @staticmethod
    def snapshot_created(
        record_id: Optional[int],
        day: date,
        item_count: int,
        correlation_id: Optional[UUID],
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.SNAPSHOT_CREATED,
            record_id=record_id,
            record_day=day,
            correlation_id=correlation_id,
            description=f"Snapshot record created with {item_count} items",
            details={"item_count": item_count},
        )

    @staticmethod
    def snapshot_skipped_duplicate(
        duplicate_of: Optional[int],
        day: date,
        correlation_id: Optional[UUID],
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.SNAPSHOT_SKIPPED_DUPLICATE,
            record_id=duplicate_of,
            record_day=day,
            correlation_id=correlation_id,
            description="Identical snapshot already exists, skipped creation",
        )

    @staticmethod
    def master_created(
        record_id: Optional[int],
        day: date,
        item_count: int,
        correlation_id: Optional[UUID],
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.MASTER_CREATED,
            record_id=record_id,
            record_day=day,
            correlation_id=correlation_id,
            description=f"Master record created with {item_count} items",
            details={"item_count": item_count},
        )

    @staticmethod
    def master_updated(
        record_id: Optional[int],
        day: date,
        tier_counts: dict[str, int],
        appended: int,
        carried_over: int,
        correlation_id: Optional[UUID],
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.MASTER_UPDATED,
            record_id=record_id,
            record_day=day,
            correlation_id=correlation_id,
            description="Master record updated from working list",
            details={
                "matches": tier_counts,
                "appended": appended,
                "carried_over": carried_over,
            },
        )

    @staticmethod
    def master_unchanged(
        record_id: Optional[int],
        day: date,
        correlation_id: Optional[UUID],
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.MASTER_UNCHANGED,
            severity=AuditSeverity.DEBUG,
            record_id=record_id,
            record_day=day,
            correlation_id=correlation_id,
            description="Merge produced no change, master not rewritten",
        )

    @staticmethod
    def merge_conflict(
        record_id: Optional[int],
        day: date,
        attempt: int,
        correlation_id: Optional[UUID],
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.MERGE_CONFLICT,
            severity=AuditSeverity.WARNING,
            record_id=record_id,
            record_day=day,
            correlation_id=correlation_id,
            description=f"Master changed during merge (attempt {attempt}), retrying",
            details={"attempt": attempt},
        )

    @staticmethod
    def record_edited(
        record_id: Optional[int],
        day: date,
        operation: str,
        index: Optional[int],
        correlation_id: Optional[UUID],
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.RECORD_EDITED,
            record_id=record_id,
            record_day=day,
            correlation_id=correlation_id,
            description=f"Record edited: {operation}",
            details={"operation": operation, "index": index},
        )

    @staticmethod
    def record_deleted(
        record_id: int,
        correlation_id: Optional[UUID],
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.RECORD_DELETED,
            record_id=record_id,
            correlation_id=correlation_id,
            description=f"Record {record_id} deleted",
        )

    @staticmethod
    def batch_save_completed(
        start: date,
        end: date,
        days_processed: int,
        masters_written: int,
        failed_days: list[date],
        correlation_id: Optional[UUID],
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.BATCH_SAVE_COMPLETED,
            severity=AuditSeverity.WARNING if failed_days else AuditSeverity.INFO,
            correlation_id=correlation_id,
            description=(
                f"Batch save wrote {masters_written} master records "
                f"across {days_processed} days"
            ),
            details={
                "start": start.isoformat(),
                "end": end.isoformat(),
                "failed_days": [d.isoformat() for d in failed_days],
            },
        )

    @staticmethod
    def backup_restored(
        record_count: int,
        correlation_id: Optional[UUID],
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.BACKUP_RESTORED,
            correlation_id=correlation_id,
            description=f"Restored {record_count} records from backup",
            details={"record_count": record_count},
        )

    @staticmethod
    def unparsable_price(
        description: str,
        price: str,
        day: date,
        correlation_id: Optional[UUID],
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.UNPARSABLE_PRICE,
            severity=AuditSeverity.WARNING,
            record_day=day,
            correlation_id=correlation_id,
            description=f"Price '{price[:50]}' of '{description[:100]}' is not a number, counted as 0",
            details={"item": description, "price": price},
        )

    @staticmethod
    def system_error(
        error_type: str,
        error_message: str,
        details: Optional[dict] = None,
        correlation_id: Optional[UUID] = None,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.SYSTEM_ERROR,
            severity=AuditSeverity.ERROR,
            correlation_id=correlation_id,
            description=f"System error: {error_type}",
            details=details or {},
            error_message=error_message,
        )
