"""
Record Editor

Structural edits of a saved record: remove, add, or replace one item.

Every operation returns a new Record and leaves the input untouched.
Aggregates are recomputed on each edit. An index outside the item list
is not an error: the original record is returned as-is.
"""

from typing import Optional

import structlog

from expense_records.models.record import LineItem, Record
from expense_records.reconciliation.aggregates import with_items


logger = structlog.get_logger(__name__)


def _in_bounds(record: Record, index: int) -> bool:
    return 0 <= index < len(record.items)


def remove_item(record: Record, index: int) -> Record:
    """Drop the item at index."""
    if not _in_bounds(record, index):
        logger.debug("remove_item_out_of_bounds", record_id=record.id, index=index)
        return record
    items = list(record.items)
    del items[index]
    return with_items(record, items)


def add_item(
    record: Record,
    description: str,
    price: str,
    quantity: Optional[str] = None,
    categories: Optional[list[str]] = None,
    source_item_id: Optional[int] = None,
) -> Record:
    """Append a new, unchecked item."""
    item = LineItem(
        description=description,
        price=price,
        quantity=quantity,
        is_checked=False,
        categories=list(categories) if categories is not None else None,
        source_item_id=source_item_id,
    )
    return with_items(record, [*record.items, item])


def update_item(
    record: Record,
    index: int,
    description: str,
    price: str,
    quantity: Optional[str] = None,
    categories: Optional[list[str]] = None,
    *,
    is_checked: Optional[bool] = None,
    image_refs: Optional[list[str]] = None,
    source_item_id: Optional[int] = None,
) -> Record:
    """
    Replace the item at index.

    description, price and quantity always take the new values.
    categories, is_checked, image_refs and source_item_id keep the previous
    item's values unless passed explicitly.
    """
    if not _in_bounds(record, index):
        logger.debug("update_item_out_of_bounds", record_id=record.id, index=index)
        return record

    previous = record.items[index]
    replacement = LineItem(
        description=description,
        price=price,
        quantity=quantity,
        is_checked=previous.is_checked if is_checked is None else is_checked,
        categories=list(categories) if categories is not None else previous.categories,
        image_refs=list(image_refs) if image_refs is not None else previous.image_refs,
        source_item_id=(
            previous.source_item_id if source_item_id is None else source_item_id
        ),
    )
    items = list(record.items)
    items[index] = replacement
    return with_items(record, items)


def set_checked(record: Record, index: int, is_checked: bool) -> Record:
    """Tick or untick the item at index."""
    if not _in_bounds(record, index):
        return record
    items = list(record.items)
    items[index] = items[index].model_copy(update={"is_checked": is_checked})
    return with_items(record, items)
