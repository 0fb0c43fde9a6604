"""
Result Models

Values returned by the master merge engine and the save flow.
They carry enough detail for the caller to decide what to persist
and for the audit log to describe what happened.
"""

from datetime import date
from enum import Enum
from typing import Optional

from pydantic import BaseModel, Field

from expense_records.models.record import Record


class MatchTier(str, Enum):
    """
    Precedence levels of the master merge matching algorithm.

    Tiers are tried in this order; the first tier that finds an
    unconsumed existing item wins.
    """
    IDENTITY = "identity"  # same source_item_id
    NAME = "name"          # same normalized description
    FUZZY = "fuzzy"        # same price, one description contains the other


class MergeResult(BaseModel):
    """
    Outcome of folding a working list into a day's master record.

    If changed is False the caller should skip persisting: the merged
    item list is identical (by fingerprint) to the existing master.
    """

    record: Record = Field(
        ...,
        description="Master record to persist (or the unchanged existing master)"
    )
    created: bool = Field(
        default=False,
        description="True when no master existed and a new one was built"
    )
    changed: bool = Field(
        default=True,
        description="False when the merge was a no-op"
    )

    # Matching statistics (for logging/audit)
    tier_counts: dict[str, int] = Field(default_factory=dict)
    appended_count: int = Field(default=0, ge=0)
    carried_over_count: int = Field(default=0, ge=0)

    @property
    def should_persist(self) -> bool:
        return self.created or self.changed


class SaveOutcome(BaseModel):
    """What a single save of a day's working list did."""

    day: date
    snapshot_created: bool = False
    snapshot: Optional[Record] = None
    duplicate_of: Optional[int] = Field(
        default=None,
        description="ID of the existing snapshot that made this save a duplicate"
    )
    master_created_or_updated: bool = False
    master: Optional[Record] = None
    merge_attempts: int = Field(default=0, ge=0)


class BatchSaveSummary(BaseModel):
    """Summary of a batch save over a date range."""

    start: date
    end: date
    days_processed: int = 0
    snapshots_written: int = 0
    masters_written: int = 0
    empty_days: int = 0
    failed_days: list[date] = Field(default_factory=list)
