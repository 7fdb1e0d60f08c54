"""
Retention Cleanup Service
=========================

Deletes an owner's stale items under a retention policy. Three sub-sweeps
(syndication items, video items, orphaned interactions) run concurrently;
each captures its own failure so one category failing never hides the
counts of the others.
"""

import asyncio
from datetime import datetime, timedelta, timezone
from typing import Any, Dict, List, Optional, Set

from ..database.connection import DatabaseConnection
from ..database.models import CleanupDetails, CleanupRequest, CleanupResult, SourceKind
from ..storage.interaction_repository import InteractionRepository
from ..storage.item_repository import ItemRepository
from ..utils.exceptions import DatabaseError, SweepError
from ..utils.logging import get_logger_for_component, PerformanceLogger

SYNDICATION_ITEMS = "syndication_items"
VIDEO_ITEMS = "video_items"
ORPHANED_INTERACTIONS = "orphaned_interactions"

ITEM_CATEGORIES = {
    SYNDICATION_ITEMS: SourceKind.SYNDICATION,
    VIDEO_ITEMS: SourceKind.VIDEO_CHANNEL,
}


def _error_record(error: SweepError) -> Dict[str, Any]:
    return {
        "category": error.category,
        "kind": error.kind,
        "error_code": error.error_code.value if error.error_code else None,
        "message": str(error),
    }


class CleanupService:
    """Retention sweeper for one owner's items and interactions."""

    def __init__(self, db_connection: DatabaseConnection, logger=None):
        """Initialize cleanup service.

        Args:
            db_connection: Database connection manager
            logger: Logger adapter
        """
        self.db = db_connection
        self.items = ItemRepository(db_connection)
        self.interactions = InteractionRepository(db_connection)
        self.logger = logger or get_logger_for_component("cleanup")

    async def cleanup(
        self, request: CleanupRequest, now: Optional[datetime] = None
    ) -> CleanupResult:
        """Run the retention sweep described by ``request``.

        Args:
            request: Owner and retention policy
            now: Reference time for the cutoff (current time when omitted)

        Returns:
            CleanupResult; ``success`` is False only when the store is unreachable
        """
        now = now or datetime.now(timezone.utc)
        cutoff = now - timedelta(days=request.older_than_days)
        result = CleanupResult(cutoff_date=cutoff, dry_run=request.dry_run)
        logger = self.logger.bind(owner_id=request.owner_id)

        try:
            await asyncio.to_thread(self.db.execute_one, "SELECT 1")
        except Exception as e:
            logger.error(f"Cleanup aborted, store unreachable: {e}")
            result.success = False
            result.errors.append(
                {"category": "store", "kind": "query-failed", "error_code": None, "message": str(e)}
            )
            return result

        logger.info(
            f"Starting cleanup: older_than_days={request.older_than_days} "
            f"keep_favorites={request.keep_favorites} keep_read_later={request.keep_read_later} "
            f"dry_run={request.dry_run}"
        )

        errors: List[SweepError] = []
        protected: Optional[Set[str]] = None
        try:
            protected = await asyncio.to_thread(
                self.interactions.get_protected_item_ids,
                request.owner_id,
                request.keep_favorites,
                request.keep_read_later,
            )
        except DatabaseError as e:
            # Without the exclusion set no item may be deleted safely
            for category in ITEM_CATEGORIES:
                errors.append(
                    SweepError(
                        f"Could not load protected items: {e}",
                        category=category,
                        kind="query-failed",
                    )
                )

        categories = []
        tasks = []
        if protected is not None:
            for category, kind in ITEM_CATEGORIES.items():
                categories.append(category)
                tasks.append(
                    asyncio.to_thread(
                        self._sweep_items, category, kind, request, cutoff, protected
                    )
                )
        categories.append(ORPHANED_INTERACTIONS)
        tasks.append(asyncio.to_thread(self._sweep_orphans, request))

        with PerformanceLogger(logger, "retention sweep", dry_run=request.dry_run):
            outcomes = await asyncio.gather(*tasks, return_exceptions=True)

        counts = {category: 0 for category in (*ITEM_CATEGORIES, ORPHANED_INTERACTIONS)}
        for category, outcome in zip(categories, outcomes):
            if isinstance(outcome, SweepError):
                errors.append(outcome)
            elif isinstance(outcome, Exception):
                errors.append(SweepError(str(outcome), category=category))
            else:
                counts[category] = outcome

        for error in errors:
            logger.error(f"Cleanup of {error.category} failed: {error}")

        result.details = CleanupDetails(**counts)
        result.total_deleted = counts[SYNDICATION_ITEMS] + counts[VIDEO_ITEMS]
        result.errors = [_error_record(error) for error in errors]

        verb = "would be deleted" if request.dry_run else "deleted"
        logger.info(
            f"Cleanup completed: {result.total_deleted} items {verb}, "
            f"{counts[ORPHANED_INTERACTIONS]} orphaned interactions, {len(errors)} errors"
        )
        return result

    def _sweep_items(
        self,
        category: str,
        kind: SourceKind,
        request: CleanupRequest,
        cutoff: datetime,
        protected: Set[str],
    ) -> int:
        try:
            candidates = self.items.find_expired_item_ids(request.owner_id, kind, cutoff)
        except DatabaseError as e:
            raise SweepError(str(e), category=category, kind="query-failed") from e

        doomed = [item_id for item_id in candidates if item_id not in protected]
        if request.dry_run:
            return len(doomed)

        try:
            return self.items.delete_items(doomed, kind)
        except DatabaseError as e:
            raise SweepError(str(e), category=category, kind="delete-failed") from e

    def _sweep_orphans(self, request: CleanupRequest) -> int:
        try:
            orphan_ids = self.interactions.find_orphaned_ids(request.owner_id)
        except DatabaseError as e:
            raise SweepError(str(e), category=ORPHANED_INTERACTIONS, kind="query-failed") from e

        if request.dry_run:
            return len(orphan_ids)

        try:
            return self.interactions.delete_interactions(orphan_ids)
        except DatabaseError as e:
            raise SweepError(str(e), category=ORPHANED_INTERACTIONS, kind="delete-failed") from e
