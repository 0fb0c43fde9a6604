"""
Master Merge Engine

Folds a day's working list into that day's master record.

The master record is a cumulative ledger, not a mirror of the working list:
- items matched to an existing entry update it in place (position of the
  new item, content of the new item, identity preserved)
- items with no match are appended
- existing entries the working list no longer contains are KEPT

Matching is done per new item by the tiers in reconciliation.matching.
Every existing item can be matched at most once per merge pass; consumed
items are tracked by index.

The engine is pure. Persisting the result, and serializing merges for the
same day, is the caller's job (see orchestrator.RecordSaveFlow).
"""

from datetime import tzinfo
from typing import Optional, Sequence

import structlog

from expense_records.models.record import LineItem, Record
from expense_records.models.results import MatchTier, MergeResult
from expense_records.reconciliation.aggregates import build_record, with_items
from expense_records.reconciliation.canonical import same_contents
from expense_records.reconciliation.days import DayLike, start_of_day
from expense_records.reconciliation.matching import (
    ItemMatcher,
    default_matchers,
    find_match,
)


logger = structlog.get_logger(__name__)


class MasterMergeEngine:
    """
    Three-tier merge of new items into an existing master record.

    Matchers can be replaced or reordered by passing a different list;
    the default is identity, name, fuzzy.
    """

    def __init__(self, matchers: Optional[Sequence[ItemMatcher]] = None):
        self._matchers = list(matchers) if matchers is not None else default_matchers()

    def merge_items(
        self,
        existing_items: Sequence[LineItem],
        new_items: Sequence[LineItem],
    ) -> tuple[list[LineItem], dict[str, int], int, int]:
        """
        Merge two item lists.

        Returns:
            (merged_items, tier_counts, appended_count, carried_over_count)
        """
        merged: list[LineItem] = []
        consumed: set[int] = set()
        tier_counts = {tier.value: 0 for tier in MatchTier}
        appended = 0

        for new_item in new_items:
            pool = [
                (index, existing)
                for index, existing in enumerate(existing_items)
                if index not in consumed
            ]
            match = find_match(new_item, pool, self._matchers)

            if match is None:
                logger.debug("merge_item_appended", description=new_item.description)
                merged.append(new_item.model_copy(deep=True))
                appended += 1
                continue

            matched = existing_items[match.index]
            consumed.add(match.index)
            tier_counts[match.tier.value] += 1

            source_item_id = (
                new_item.source_item_id
                if new_item.source_item_id is not None
                else matched.source_item_id
            )
            logger.debug(
                "merge_item_matched",
                tier=match.tier.value,
                previous=matched.description,
                current=new_item.description,
                previous_price=matched.price,
                current_price=new_item.price,
            )
            merged.append(
                new_item.model_copy(
                    update={"source_item_id": source_item_id},
                    deep=True,
                )
            )

        carried_over = [
            existing.model_copy(deep=True)
            for index, existing in enumerate(existing_items)
            if index not in consumed
        ]
        if carried_over:
            logger.debug("merge_items_carried_over", count=len(carried_over))
        merged.extend(carried_over)

        return merged, tier_counts, appended, len(carried_over)

    def merge_into_master(
        self,
        day: DayLike,
        new_items: Sequence[LineItem],
        existing_master: Optional[Record],
        tz: Optional[tzinfo] = None,
    ) -> MergeResult:
        """
        Produce the master record to persist for day.

        Args:
            day: Calendar day being saved
            new_items: The day's current working list
            existing_master: Current master for the day, or None
            tz: Zone used to normalize a new master's record_date

        Returns:
            MergeResult. If changed is False the merge was a no-op and
            record is the unmodified existing master.
        """
        if existing_master is None:
            record = build_record(
                new_items,
                record_date=start_of_day(day, tz),
                is_master_save=True,
            )
            logger.debug("master_built", item_count=len(record.items))
            return MergeResult(
                record=record,
                created=True,
                changed=True,
                appended_count=len(record.items),
            )

        merged, tier_counts, appended, carried_over = self.merge_items(
            existing_master.items,
            new_items,
        )

        if same_contents(existing_master.items, merged):
            logger.debug("master_unchanged", record_id=existing_master.id)
            return MergeResult(
                record=existing_master,
                created=False,
                changed=False,
                tier_counts=tier_counts,
                appended_count=appended,
                carried_over_count=carried_over,
            )

        return MergeResult(
            record=with_items(existing_master, merged),
            created=False,
            changed=True,
            tier_counts=tier_counts,
            appended_count=appended,
            carried_over_count=carried_over,
        )


def merge_into_master(
    day: DayLike,
    new_items: Sequence[LineItem],
    existing_master: Optional[Record],
    tz: Optional[tzinfo] = None,
) -> MergeResult:
    """Merge with the default matcher tiers."""
    return MasterMergeEngine().merge_into_master(day, new_items, existing_master, tz)
