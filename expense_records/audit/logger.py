"""
Audit Logger

DESIGN DECISION: Every write the save flow performs, and every write it
deliberately skips, is logged. This provides:
1. Traceability of how a day's master record evolved
2. Debugging capability when a merge matched the wrong item
3. Visibility into dirty data (unparsable prices)

The audit logger:
- Is async to not block main flow
- Gracefully handles failures (doesn't crash the app if logging fails)
- Supports correlation IDs to trace related events
"""

import logging
from datetime import date
from typing import Optional
from uuid import UUID, uuid4

import structlog

from expense_records.config import get_settings
from expense_records.models.audit import AuditEvent, AuditEventBuilder
from expense_records.services.storage import AuditStorageInterface


def configure_logging(level: Optional[str] = None, json_output: Optional[bool] = None) -> None:
    """
    Configure structlog for local logging.

    Defaults come from LOG_LEVEL / LOG_JSON_OUTPUT.
    """
    settings = get_settings().logging
    level = level or settings.level
    json_output = settings.json_output if json_output is None else json_output

    logging.basicConfig(format="%(message)s", level=getattr(logging, level))
    logging.getLogger("expense_records").setLevel(getattr(logging, level))

    renderer = (
        structlog.processors.JSONRenderer()
        if json_output
        else structlog.dev.ConsoleRenderer()
    )
    structlog.configure(
        processors=[
            structlog.stdlib.filter_by_level,
            structlog.stdlib.add_logger_name,
            structlog.stdlib.add_log_level,
            structlog.stdlib.PositionalArgumentsFormatter(),
            structlog.processors.TimeStamper(fmt="iso"),
            structlog.processors.StackInfoRenderer(),
            structlog.processors.format_exc_info,
            structlog.processors.UnicodeDecoder(),
            renderer,
        ],
        wrapper_class=structlog.stdlib.BoundLogger,
        context_class=dict,
        logger_factory=structlog.stdlib.LoggerFactory(),
        cache_logger_on_first_use=True,
    )


configure_logging()


class AuditLogger:
    """
    Central audit logging service.

    Logs events both to:
    1. Structured local log (for debugging)
    2. An audit storage backend (for persistence), when configured
    """

    def __init__(
        self,
        storage: Optional[AuditStorageInterface] = None,
    ):
        """
        Initialize audit logger.

        Args:
            storage: Storage backend for persistence.
                    If None, only logs locally.
        """
        self._storage = storage
        self._logger = structlog.get_logger("expense_records.audit")

    async def log(self, event: AuditEvent) -> bool:
        """
        Log an audit event.

        Always logs locally. Persists to storage if available.

        Returns True if storage write succeeded (or no storage configured).
        """
        log_dict = event.to_log_dict()

        if event.severity.value in ("error", "critical"):
            self._logger.error("audit_event", **log_dict)
        elif event.severity.value == "warning":
            self._logger.warning("audit_event", **log_dict)
        elif event.severity.value == "debug":
            self._logger.debug("audit_event", **log_dict)
        else:
            self._logger.info("audit_event", **log_dict)

        if self._storage:
            try:
                return await self._storage.append_event(event)
            except Exception as e:
                # Log failure but don't raise
                self._logger.error(
                    "audit_storage_failed",
                    error=str(e),
                    event_id=str(event.event_id),
                )
                return False

        return True

    async def log_snapshot_created(
        self,
        record_id: Optional[int],
        day: date,
        item_count: int,
        correlation_id: Optional[UUID],
    ) -> None:
        await self.log(AuditEventBuilder.snapshot_created(
            record_id=record_id,
            day=day,
            item_count=item_count,
            correlation_id=correlation_id,
        ))

    async def log_snapshot_skipped(
        self,
        duplicate_of: Optional[int],
        day: date,
        correlation_id: Optional[UUID],
    ) -> None:
        await self.log(AuditEventBuilder.snapshot_skipped_duplicate(
            duplicate_of=duplicate_of,
            day=day,
            correlation_id=correlation_id,
        ))

    async def log_master_created(
        self,
        record_id: Optional[int],
        day: date,
        item_count: int,
        correlation_id: Optional[UUID],
    ) -> None:
        await self.log(AuditEventBuilder.master_created(
            record_id=record_id,
            day=day,
            item_count=item_count,
            correlation_id=correlation_id,
        ))

    async def log_master_updated(
        self,
        record_id: Optional[int],
        day: date,
        tier_counts: dict[str, int],
        appended: int,
        carried_over: int,
        correlation_id: Optional[UUID],
    ) -> None:
        await self.log(AuditEventBuilder.master_updated(
            record_id=record_id,
            day=day,
            tier_counts=tier_counts,
            appended=appended,
            carried_over=carried_over,
            correlation_id=correlation_id,
        ))

    async def log_master_unchanged(
        self,
        record_id: Optional[int],
        day: date,
        correlation_id: Optional[UUID],
    ) -> None:
        await self.log(AuditEventBuilder.master_unchanged(
            record_id=record_id,
            day=day,
            correlation_id=correlation_id,
        ))

    async def log_merge_conflict(
        self,
        record_id: Optional[int],
        day: date,
        attempt: int,
        correlation_id: Optional[UUID],
    ) -> None:
        await self.log(AuditEventBuilder.merge_conflict(
            record_id=record_id,
            day=day,
            attempt=attempt,
            correlation_id=correlation_id,
        ))

    async def log_record_edited(
        self,
        record_id: Optional[int],
        day: date,
        operation: str,
        index: Optional[int],
        correlation_id: Optional[UUID],
    ) -> None:
        await self.log(AuditEventBuilder.record_edited(
            record_id=record_id,
            day=day,
            operation=operation,
            index=index,
            correlation_id=correlation_id,
        ))

    async def log_record_deleted(
        self,
        record_id: int,
        correlation_id: Optional[UUID],
    ) -> None:
        await self.log(AuditEventBuilder.record_deleted(
            record_id=record_id,
            correlation_id=correlation_id,
        ))

    async def log_batch_save_completed(
        self,
        start: date,
        end: date,
        days_processed: int,
        masters_written: int,
        failed_days: list[date],
        correlation_id: Optional[UUID],
    ) -> None:
        await self.log(AuditEventBuilder.batch_save_completed(
            start=start,
            end=end,
            days_processed=days_processed,
            masters_written=masters_written,
            failed_days=failed_days,
            correlation_id=correlation_id,
        ))

    async def log_backup_restored(
        self,
        record_count: int,
        correlation_id: Optional[UUID],
    ) -> None:
        await self.log(AuditEventBuilder.backup_restored(
            record_count=record_count,
            correlation_id=correlation_id,
        ))

    async def log_unparsable_price(
        self,
        description: str,
        price: str,
        day: date,
        correlation_id: Optional[UUID],
    ) -> None:
        await self.log(AuditEventBuilder.unparsable_price(
            description=description,
            price=price,
            day=day,
            correlation_id=correlation_id,
        ))

    async def log_error(
        self,
        error_type: str,
        error_message: str,
        details: Optional[dict] = None,
        correlation_id: Optional[UUID] = None,
    ) -> None:
        await self.log(AuditEventBuilder.system_error(
            error_type=error_type,
            error_message=error_message,
            details=details,
            correlation_id=correlation_id,
        ))


def create_correlation_id() -> UUID:
    """
    Create a new correlation ID for tracking related events.

    Use this at the start of a new user action (e.g., saving the day).
    Pass it through all subsequent operations.
    """
    return uuid4()
