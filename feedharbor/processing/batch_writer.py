"""
Batch Persistence Writer
========================

Writes new items in fixed-size batches. Each batch goes through an ordered
list of whole-batch write tiers; when every tier fails the batch is retried
item by item so one bad row cannot sink its neighbours. Failures are
collected, never raised, and never stop later batches.
"""

from dataclasses import dataclass
from typing import Callable, List, Optional

from ..database.connection import DatabaseConnection
from ..database.models import Item, SourceKind, WriteFailure, WriteResult
from ..storage.item_repository import ItemRepository
from ..utils.exceptions import DatabaseError, ErrorCode
from ..utils.logging import get_logger_for_component


@dataclass(frozen=True)
class WriteTier:
    """One whole-batch write strategy."""
    name: str
    write: Callable[[List[Item], SourceKind], int]
    is_available: Callable[[], bool] = lambda: True


def _failure_kind(error: Exception, default: str) -> str:
    if isinstance(error, DatabaseError) and error.error_code == ErrorCode.WRITE_PERMISSION_DENIED:
        return "permission-denied"
    return default


class BatchWriter:
    """Layered, failure-tolerant item writer."""

    def __init__(
        self,
        item_repository: ItemRepository,
        db_connection: Optional[DatabaseConnection] = None,
        batch_size: int = 20,
        tiers: Optional[List[WriteTier]] = None,
        logger=None,
    ):
        """Initialize batch writer.

        Args:
            item_repository: Repository performing the inserts
            db_connection: Connection used to check privileged-write capability;
                defaults to the repository's connection
            batch_size: Items per batch
            tiers: Override of the default privileged-then-standard tiers
            logger: Logger adapter
        """
        if batch_size < 1:
            raise ValueError("batch_size must be at least 1")
        self.items = item_repository
        self.db = db_connection or item_repository.db
        self.batch_size = batch_size
        self.logger = logger or get_logger_for_component("batch_writer")
        self.tiers = tiers if tiers is not None else self._default_tiers()

    def _default_tiers(self) -> List[WriteTier]:
        # Fallback order for whole-batch writes
        return [
            WriteTier(
                name="privileged",
                write=lambda batch, kind: self.items.insert_items(batch, kind, mode="EXCLUSIVE"),
                is_available=self.db.supports_privileged_writes,
            ),
            WriteTier(
                name="standard",
                write=lambda batch, kind: self.items.insert_items(batch, kind, mode="IMMEDIATE"),
            ),
        ]

    def _write_single(self, item: Item, kind: SourceKind) -> int:
        return self.items.insert_items([item], kind, mode="IMMEDIATE")

    def write(self, items: List[Item], kind: SourceKind) -> WriteResult:
        """Persist ``items`` in sequential batches.

        Args:
            items: New items, all from sources of ``kind``
            kind: Source kind selecting the item table

        Returns:
            Inserted count and every recorded failure
        """
        result = WriteResult()
        if not items:
            return result

        self.logger.debug(
            f"Writing {len(items)} items in batches of {self.batch_size}"
        )

        for start in range(0, len(items), self.batch_size):
            batch_number = start // self.batch_size + 1
            batch = items[start:start + self.batch_size]
            inserted = self._write_batch(batch, batch_number, kind, result)
            result.inserted_count += inserted

        if result.errors:
            self.logger.warning(
                f"Inserted {result.inserted_count}/{len(items)} items with "
                f"{len(result.errors)} recorded failures"
            )
        else:
            self.logger.info(f"Inserted {result.inserted_count} items")
        return result

    def _write_batch(
        self,
        batch: List[Item],
        batch_number: int,
        kind: SourceKind,
        result: WriteResult,
    ) -> int:
        # Capability is re-checked per batch
        tiers = [tier for tier in self.tiers if tier.is_available()]
        tier_errors = []
        for tier in tiers:
            try:
                return tier.write(batch, kind)
            except Exception as e:
                self.logger.warning(f"Batch {batch_number} {tier.name} write failed: {e}")
                tier_errors.append(f"{tier.name}: {e}")

        result.errors.append(
            WriteFailure(
                kind="batch-failed",
                batch_number=batch_number,
                reason="; ".join(tier_errors) or "no write tier available",
            )
        )

        inserted = 0
        for item in batch:
            try:
                inserted += self._write_single(item, kind)
            except Exception as e:
                self.logger.warning(
                    f"Item {item.canonical_id} in batch {batch_number} failed: {e}"
                )
                result.errors.append(
                    WriteFailure(
                        kind=_failure_kind(e, "item-failed"),
                        batch_number=batch_number,
                        canonical_id=item.canonical_id,
                        tier="single",
                        reason=str(e),
                    )
                )
        return inserted
