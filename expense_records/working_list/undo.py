"""
Undo stack for working-list deletions.

Deleted entries are kept per day, most recently deleted first, so that
"undo" restores them one at a time in reverse order of deletion. Each
day's stack is bounded; the oldest entries fall off when it is full.
"""

from datetime import date
from typing import Optional, Sequence

from expense_records.config import get_settings
from expense_records.working_list.text_format import WorkingItem


class DeletionUndoStack:
    """Bounded LIFO of deleted working items, keyed by day."""

    def __init__(self, capacity: Optional[int] = None):
        self._capacity = (
            capacity if capacity is not None else get_settings().engine.undo_stack_capacity
        )
        self._stacks: dict[date, list[WorkingItem]] = {}

    @property
    def capacity(self) -> int:
        return self._capacity

    def push(self, day: date, items: Sequence[WorkingItem]) -> None:
        """
        Remember deleted items.

        Items deleted together are pushed in order, so the last of them
        is the first to come back.
        """
        if not items:
            return
        stack = (list(reversed(items)) + self._stacks.get(day, []))[: self._capacity]
        if stack:
            self._stacks[day] = stack
        else:
            self._stacks.pop(day, None)

    def pop(self, day: date) -> Optional[WorkingItem]:
        """Take the most recently deleted item for day, if any."""
        stack = self._stacks.get(day)
        if not stack:
            return None
        item = stack.pop(0)
        if not stack:
            del self._stacks[day]
        return item

    def peek(self, day: date) -> Optional[WorkingItem]:
        stack = self._stacks.get(day)
        return stack[0] if stack else None

    def clear(self, day: date) -> None:
        self._stacks.pop(day, None)

    def size(self, day: date) -> int:
        return len(self._stacks.get(day, []))

    def __len__(self) -> int:
        return sum(len(stack) for stack in self._stacks.values())
