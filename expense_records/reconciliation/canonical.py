"""
Canonical fingerprints of line items and records.

A fingerprint is a plain string built from the user-visible content of an
item: description, price, quantity, categories and image references.
Record fingerprints are the sorted list of item fingerprints, so two records
compare equal regardless of item order.

Category order is significant while image references are sorted. Duplicate
detection on stored data depends on this asymmetry; keep it.
"""

from typing import Iterable, Union

from expense_records.models.record import LineItem, Record


FIELD_DELIMITER = "|"
LIST_DELIMITER = ","


def normalize_description(description: str) -> str:
    """Description as compared by the merge matchers."""
    return description.strip().lower()


def item_fingerprint(item: LineItem) -> str:
    categories = LIST_DELIMITER.join(item.categories) if item.categories is not None else ""
    images = LIST_DELIMITER.join(sorted(item.image_refs)) if item.image_refs is not None else ""
    quantity = item.quantity.strip() if item.quantity is not None else ""
    return FIELD_DELIMITER.join([
        item.description.strip(),
        item.price.strip(),
        quantity,
        categories,
        images,
    ])


def record_fingerprint(source: Union[Record, Iterable[LineItem]]) -> list[str]:
    """Sorted item fingerprints of a record or an item list."""
    items = source.items if isinstance(source, Record) else source
    return sorted(item_fingerprint(item) for item in items)


def same_contents(
    a: Union[Record, Iterable[LineItem]],
    b: Union[Record, Iterable[LineItem]],
) -> bool:
    """Order-independent content equality of two records or item lists."""
    fingerprints_a = record_fingerprint(a)
    fingerprints_b = record_fingerprint(b)
    return len(fingerprints_a) == len(fingerprints_b) and fingerprints_a == fingerprints_b
