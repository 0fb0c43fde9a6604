"""
Data Models Package

This package contains all Pydantic models used by the expense records engine.
All data flowing through the engine must conform to these schemas.
"""

from expense_records.models.record import (
    Aggregates,
    LineItem,
    Record,
    now_millis,
)
from expense_records.models.results import (
    BatchSaveSummary,
    MatchTier,
    MergeResult,
    SaveOutcome,
)
from expense_records.models.audit import (
    AuditEvent,
    AuditEventBuilder,
    AuditEventType,
    AuditSeverity,
)

__all__ = [
    # Record models
    "Aggregates",
    "LineItem",
    "Record",
    "now_millis",
    # Results
    "BatchSaveSummary",
    "MatchTier",
    "MergeResult",
    "SaveOutcome",
    # Audit models
    "AuditEvent",
    "AuditEventBuilder",
    "AuditEventType",
    "AuditSeverity",
]
