"""
Dedup and Diff
==============

Selects the items of a freshly fetched document that are not yet stored
for their source. Persisted canonical ids are loaded once per sync; the
diff itself is pure and performs no writes.
"""

from dataclasses import dataclass
from typing import Iterable, List, Set, Tuple

from ..database.models import Item, Source
from ..storage.item_repository import ItemRepository
from ..utils.logging import get_logger_for_component


@dataclass
class DeduplicationStats:
    """Statistics from one diff."""
    total_items: int
    new_items: int
    already_stored: int
    repeated_in_document: int

    @property
    def deduplication_rate(self) -> float:
        """Percentage of items that were duplicates."""
        if self.total_items == 0:
            return 0.0
        return ((self.already_stored + self.repeated_in_document) / self.total_items) * 100


def diff_new_items(
    items: Iterable[Item], persisted_ids: Set[str]
) -> Tuple[List[Item], DeduplicationStats]:
    """Return items whose canonical id is not persisted, keeping first occurrences.

    Args:
        items: Normalized items in document order
        persisted_ids: Canonical ids already stored for the source

    Returns:
        New items and diff statistics
    """
    seen: Set[str] = set()
    new_items: List[Item] = []
    total = already_stored = repeated = 0

    for item in items:
        total += 1
        if item.canonical_id in persisted_ids:
            already_stored += 1
            continue
        if item.canonical_id in seen:
            repeated += 1
            continue
        seen.add(item.canonical_id)
        new_items.append(item)

    return new_items, DeduplicationStats(
        total_items=total,
        new_items=len(new_items),
        already_stored=already_stored,
        repeated_in_document=repeated,
    )


class DedupEngine:
    """Loads persisted ids for a source and diffs a document against them."""

    def __init__(self, item_repository: ItemRepository, logger=None):
        self.items = item_repository
        self.logger = logger or get_logger_for_component("dedup")

    def find_new_items(
        self, items: List[Item], source: Source
    ) -> Tuple[List[Item], DeduplicationStats]:
        """Diff ``items`` against what is stored for ``source`` (one query)."""
        persisted = self.items.get_canonical_ids(source.id, source.kind)
        new_items, stats = diff_new_items(items, persisted)

        self.logger.debug(
            f"{stats.new_items} new of {stats.total_items} items "
            f"({stats.deduplication_rate:.1f}% duplicates)",
            extra={"source_id": source.id},
        )
        return new_items, stats
