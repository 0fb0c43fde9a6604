"""
Core Data Models for Expense Records

These models define the value objects the reconciliation engine operates on:

- LineItem: one expense entry inside a saved record
- Record: a saved list of line items with its aggregates
- Aggregates: the three totals derived from a list of items

DESIGN DECISION: Prices are kept as text, exactly as the user typed them.
Parsing happens only when aggregates are computed, and a price that cannot
be parsed contributes zero instead of failing. The engine's input is
free-form user text, so it must tolerate dirty data.

DESIGN DECISION: Unlike the other models in the codebase we do NOT strip
whitespace on assignment. Fingerprints trim fields themselves; the stored
value must round-trip unchanged.
"""

import time
from datetime import datetime
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field


def now_millis() -> int:
    """Current instant as epoch milliseconds."""
    return int(time.time() * 1000)


class LineItem(BaseModel):
    """
    Individual expense entry in a record.

    Immutable: edits produce a new LineItem via model_copy().

    source_item_id is a weak back-reference to the working-list entry the
    item was copied from. It is a lookup key, not ownership: nothing
    cascades when the working-list entry disappears.
    """
    model_config = ConfigDict(frozen=True)

    description: str = Field(
        ...,
        description="What the money was spent on"
    )
    price: str = Field(
        ...,
        description="Price as entered (decimal text, not parsed)"
    )
    quantity: Optional[str] = Field(
        default=None,
        description="Free-form quantity (e.g. '2', '500g')"
    )
    is_checked: bool = Field(
        default=False,
        description="Whether the user ticked this item"
    )
    categories: Optional[list[str]] = Field(
        default=None,
        description="Category names in the order the user assigned them"
    )
    image_refs: Optional[list[str]] = Field(
        default=None,
        description="References to attached images"
    )
    source_item_id: Optional[int] = Field(
        default=None,
        description="Identifier of the originating working-list item"
    )


class Aggregates(BaseModel):
    """Totals derived from a list of line items."""
    model_config = ConfigDict(frozen=True)

    total_sum: float = 0.0
    checked_count: int = Field(default=0, ge=0)
    checked_sum: float = 0.0


class Record(BaseModel):
    """
    A saved list of line items.

    Two kinds exist per calendar day:
    - snapshot records (is_master_save=False): point-in-time copies,
      zero or more per day
    - the master record (is_master_save=True): the running ledger for
      the day, at most one, updated in place

    CRITICAL: total_sum, checked_items_count and checked_items_sum are
    derived from items. They are only ever set together with the items
    (see reconciliation.aggregates.build_record / with_items).
    """

    # Identity (assigned by storage on insert)
    id: Optional[int] = Field(
        default=None,
        description="Storage identifier, None until persisted"
    )

    items: list[LineItem] = Field(default_factory=list)

    # Aggregates
    total_sum: float = 0.0
    checked_items_count: int = Field(default=0, ge=0)
    checked_items_sum: float = 0.0

    # Day granularity, local midnight
    record_date: datetime = Field(
        ...,
        description="Day this record belongs to (local midnight)"
    )
    timestamp: int = Field(
        default_factory=now_millis,
        description="Creation/update instant in epoch milliseconds"
    )
    is_master_save: bool = False

    # Optimistic concurrency
    version: int = Field(
        default=0,
        ge=0,
        description="Write counter maintained by storage (0 = never stored)"
    )

    @property
    def aggregates(self) -> Aggregates:
        """Aggregates as currently stored on the record."""
        return Aggregates(
            total_sum=self.total_sum,
            checked_count=self.checked_items_count,
            checked_sum=self.checked_items_sum,
        )

    @property
    def day(self):
        """Calendar day of record_date."""
        return self.record_date.date()

    @property
    def is_persisted(self) -> bool:
        return self.id is not None
