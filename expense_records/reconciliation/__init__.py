"""
Record reconciliation engine.

Turns a day's working list into snapshot records and a running master
record, and keeps record aggregates consistent under edits.
"""

from expense_records.reconciliation.aggregates import (
    aggregates_consistent,
    build_record,
    compute_aggregates,
    parse_price,
    price_value,
    unparsable_items,
    with_items,
)
from expense_records.reconciliation.canonical import (
    item_fingerprint,
    normalize_description,
    record_fingerprint,
    same_contents,
)
from expense_records.reconciliation.days import (
    day_bounds,
    iter_days,
    local_zone,
    same_day,
    start_of_day,
    to_day,
)
from expense_records.reconciliation.duplicates import (
    find_duplicate,
    is_duplicate,
    snapshots_for_day,
)
from expense_records.reconciliation.editor import (
    add_item,
    remove_item,
    set_checked,
    update_item,
)
from expense_records.reconciliation.matching import (
    FuzzyMatcher,
    IdentityMatcher,
    ItemMatcher,
    Match,
    NameMatcher,
    default_matchers,
)
from expense_records.reconciliation.merge import MasterMergeEngine, merge_into_master

__all__ = [
    # Aggregates
    "aggregates_consistent",
    "build_record",
    "compute_aggregates",
    "parse_price",
    "price_value",
    "unparsable_items",
    "with_items",
    # Fingerprints
    "item_fingerprint",
    "normalize_description",
    "record_fingerprint",
    "same_contents",
    # Days
    "day_bounds",
    "iter_days",
    "local_zone",
    "same_day",
    "start_of_day",
    "to_day",
    # Duplicates
    "find_duplicate",
    "is_duplicate",
    "snapshots_for_day",
    # Editor
    "add_item",
    "remove_item",
    "set_checked",
    "update_item",
    # Matching
    "FuzzyMatcher",
    "IdentityMatcher",
    "ItemMatcher",
    "Match",
    "NameMatcher",
    "default_matchers",
    # Merge
    "MasterMergeEngine",
    "merge_into_master",
]
