"""
Working-list item text codec.

The working list stores each expense as a single line of text:

    Milk (2 L) - ₹55.00|CATS:Grocery,Home

i.e. a name, an optional parenthesised quantity, the price after the
" - ₹" separator, and optional category metadata after "|CATS:".
This module converts between that text and engine LineItems.
"""

import re
from typing import Optional

from pydantic import BaseModel, Field

from expense_records.models.record import LineItem, now_millis
from expense_records.reconciliation.aggregates import parse_price


PRICE_SEPARATOR = " - ₹"
CATEGORY_MARKER = "|CATS:"

_QUANTITY_RE = re.compile(r"\((.*?)\)")
_QUANTITY_GROUP_RE = re.compile(r"\s*\(.*?\)")
_TRAILING_NON_NUMERIC_RE = re.compile(r"[^\d.]+$")


class WorkingItem(BaseModel):
    """An entry of the live working list, as the working-list store keeps it."""

    id: Optional[int] = None
    text: str
    is_done: bool = False
    timestamp: int = Field(default_factory=now_millis)
    categories: Optional[list[str]] = None
    image_refs: Optional[list[str]] = None


def parse_item_text(text: str) -> tuple[str, Optional[str], str]:
    """
    Split item text into (name, quantity, price).

    Text without a price separator is all name, with price "0.0".
    """
    cleaned = text.split(CATEGORY_MARKER)[0]

    parts = cleaned.split(PRICE_SEPARATOR)
    if len(parts) < 2:
        return cleaned, None, "0.0"

    name_and_quantity = parts[0].strip()
    price = parts[1].strip()

    match = _QUANTITY_RE.search(name_and_quantity)
    quantity = match.group(1) if match else None
    name = _QUANTITY_GROUP_RE.sub("", name_and_quantity).strip()

    price = _TRAILING_NON_NUMERIC_RE.sub("", price).strip()

    return name, quantity, price


def parse_categories(text: str) -> tuple[str, list[str]]:
    """Split item text into (display_text, categories)."""
    if CATEGORY_MARKER not in text:
        return text, []
    display_text, _, raw = text.partition(CATEGORY_MARKER)
    categories = [name.strip() for name in raw.split(",") if name.strip()]
    return display_text, categories


def format_item_text(item: LineItem) -> str:
    """Render a LineItem as working-list text."""
    value = parse_price(item.price)
    price = f"{value if value is not None else 0.0:.2f}"

    if item.quantity is not None and item.quantity.strip():
        text = f"{item.description} ({item.quantity}){PRICE_SEPARATOR}{price}"
    else:
        text = f"{item.description}{PRICE_SEPARATOR}{price}"

    if item.categories:
        text = f"{text}{CATEGORY_MARKER}{','.join(item.categories)}"
    return text


def to_line_item(working_item: WorkingItem) -> LineItem:
    """
    Convert a working-list entry to engine input.

    source_item_id is the entry's own id, so identity matching in the
    master merge can follow the entry across renames.
    """
    name, quantity, price = parse_item_text(working_item.text)
    return LineItem(
        description=name,
        price=price,
        quantity=quantity,
        is_checked=working_item.is_done,
        categories=list(working_item.categories) if working_item.categories is not None else None,
        image_refs=list(working_item.image_refs) if working_item.image_refs is not None else None,
        source_item_id=working_item.id,
    )


def to_working_item(item: LineItem, timestamp: Optional[int] = None) -> WorkingItem:
    """Load a saved LineItem back into the working list as a new entry."""
    return WorkingItem(
        text=format_item_text(item),
        is_done=item.is_checked,
        timestamp=timestamp if timestamp is not None else now_millis(),
        categories=list(item.categories) if item.categories is not None else None,
        image_refs=list(item.image_refs) if item.image_refs is not None else None,
    )
