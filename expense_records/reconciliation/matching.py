"""
Matcher strategies for the master merge.

Each strategy looks for an existing master item that a newly saved item
should replace. The merge engine tries them in order and the first hit wins:

1. IdentityMatcher - same source_item_id
2. NameMatcher     - same description after trim + lowercase
3. FuzzyMatcher    - same trimmed price, and one normalized description
                     contains the other

Strategies only see the pool of existing items not consumed yet in the
current merge pass, as (index, item) pairs in their original order. They
return the index of the match, never the item: value-equal items must not
be confused with each other.
"""

from abc import ABC, abstractmethod
from typing import NamedTuple, Optional, Sequence

from expense_records.models.record import LineItem
from expense_records.models.results import MatchTier
from expense_records.reconciliation.canonical import normalize_description


Pool = Sequence[tuple[int, LineItem]]


class Match(NamedTuple):
    index: int
    tier: MatchTier


class ItemMatcher(ABC):
    """One tier of the matching algorithm."""

    tier: MatchTier

    @abstractmethod
    def try_match(self, candidate: LineItem, pool: Pool) -> Optional[int]:
        """
        Find the existing item candidate should replace.

        Args:
            candidate: Newly saved item
            pool: Unconsumed existing items as (index, item)

        Returns:
            Index of the matched existing item, or None
        """
        pass


class IdentityMatcher(ItemMatcher):
    tier = MatchTier.IDENTITY

    def try_match(self, candidate: LineItem, pool: Pool) -> Optional[int]:
        if candidate.source_item_id is None:
            return None
        for index, existing in pool:
            if existing.source_item_id == candidate.source_item_id:
                return index
        return None


class NameMatcher(ItemMatcher):
    tier = MatchTier.NAME

    def try_match(self, candidate: LineItem, pool: Pool) -> Optional[int]:
        name = normalize_description(candidate.description)
        for index, existing in pool:
            if normalize_description(existing.description) == name:
                return index
        return None


class FuzzyMatcher(ItemMatcher):
    tier = MatchTier.FUZZY

    def try_match(self, candidate: LineItem, pool: Pool) -> Optional[int]:
        price = candidate.price.strip()
        name = normalize_description(candidate.description)
        for index, existing in pool:
            if existing.price.strip() != price:
                continue
            existing_name = normalize_description(existing.description)
            if existing_name in name or name in existing_name:
                return index
        return None


def default_matchers() -> list[ItemMatcher]:
    """The three tiers in precedence order."""
    return [IdentityMatcher(), NameMatcher(), FuzzyMatcher()]


def find_match(
    candidate: LineItem,
    pool: Pool,
    matchers: Sequence[ItemMatcher],
) -> Optional[Match]:
    """Run matchers in order; first hit wins."""
    for matcher in matchers:
        index = matcher.try_match(candidate, pool)
        if index is not None:
            return Match(index=index, tier=matcher.tier)
    return None
