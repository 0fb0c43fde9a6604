"""
Expense Records - Source Package

Reconciliation engine for daily expense lists. Each save of a day's
working list produces an immutable snapshot record (skipped when an
identical one already exists) and is folded into the day's cumulative
master record without losing items.

DESIGN PRINCIPLES:
1. The master record never loses an item
2. Saving the same list twice changes nothing
3. No silent corrections: unparsable prices are kept and reported
4. Every write is auditable
5. Storage layer is swappable
"""

__version__ = "1.0.0"
__author__ = "Expense Records Team"
