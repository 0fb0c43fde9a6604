"""
Duplicate Detector

Decides whether a working list about to be saved as a snapshot has the same
content as a snapshot already saved for that day. Pure: it only reads the
records it is given.
"""

from datetime import tzinfo
from typing import Iterable, Optional, Sequence

import structlog

from expense_records.models.record import LineItem, Record
from expense_records.reconciliation.canonical import record_fingerprint
from expense_records.reconciliation.days import DayLike, local_zone, same_day


logger = structlog.get_logger(__name__)


def snapshots_for_day(
    records: Iterable[Record],
    day: DayLike,
    tz: Optional[tzinfo] = None,
) -> list[Record]:
    """Non-master records whose record_date falls on day."""
    tz = tz or local_zone()
    return [
        record for record in records
        if not record.is_master_save and same_day(record.record_date, day, tz)
    ]


def find_duplicate(
    candidate: Sequence[LineItem],
    existing_records: Iterable[Record],
) -> Optional[Record]:
    """
    Return the first existing snapshot with identical content, if any.

    existing_records is expected to be scoped to the candidate's day already
    (see snapshots_for_day). Master records are never considered.
    """
    candidate_fingerprint = record_fingerprint(candidate)

    for record in existing_records:
        if record.is_master_save:
            continue
        existing_fingerprint = record_fingerprint(record)
        if (
            len(existing_fingerprint) == len(candidate_fingerprint)
            and existing_fingerprint == candidate_fingerprint
        ):
            logger.debug(
                "duplicate_snapshot_found",
                record_id=record.id,
                item_count=len(candidate_fingerprint),
            )
            return record

    return None


def is_duplicate(
    candidate: Sequence[LineItem],
    existing_records: Iterable[Record],
) -> bool:
    """True if candidate matches any existing snapshot by content."""
    return find_duplicate(candidate, existing_records) is not None
