"""Working-list collaborator helpers."""

from expense_records.working_list.text_format import (
    WorkingItem,
    format_item_text,
    parse_categories,
    parse_item_text,
    to_line_item,
    to_working_item,
)
from expense_records.working_list.undo import DeletionUndoStack

__all__ = [
    "DeletionUndoStack",
    "WorkingItem",
    "format_item_text",
    "parse_categories",
    "parse_item_text",
    "to_line_item",
    "to_working_item",
]
