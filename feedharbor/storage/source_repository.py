"""
Source Repository
=================

Repository pattern implementation for per-owner feed sources. Sources are
soft-deleted and never removed from the table.
"""

from datetime import datetime
from typing import List, Optional

from ..database.connection import DatabaseConnection
from ..database.models import Source, SourceKind, to_db_timestamp, utc_now
from ..utils.logging import get_logger_for_component
from ..utils.exceptions import DatabaseError, ErrorCode


class SourceRepository:
    """Repository for managing feed sources in the database."""

    def __init__(self, db_connection: DatabaseConnection):
        """Initialize source repository.

        Args:
            db_connection: Database connection manager
        """
        self.db = db_connection
        self.logger = get_logger_for_component("source_repository")

    def create_source(self, source: Source) -> str:
        """Create a new source.

        Args:
            source: Source model to create

        Returns:
            Created source ID

        Raises:
            DatabaseError: If creation fails (including a duplicate feed URL)
        """
        try:
            with self.db.transaction() as conn:
                conn.execute(
                    """
                    INSERT INTO sources (
                        id, owner_id, kind, feed_url, title,
                        last_synced_at, deleted_at, created_at
                    ) VALUES (?, ?, ?, ?, ?, ?, ?, ?)
                    """,
                    (
                        source.id,
                        source.owner_id,
                        source.kind.value,
                        source.feed_url,
                        source.title,
                        to_db_timestamp(source.last_synced_at),
                        to_db_timestamp(source.deleted_at),
                        to_db_timestamp(source.created_at),
                    ),
                )

            self.logger.info(
                f"Created {source.kind.value} source {source.id} for owner "
                f"{source.owner_id}: {source.feed_url}"
            )
            return source.id

        except Exception as e:
            raise DatabaseError(
                f"Failed to create source: {e}",
                error_code=ErrorCode.DATABASE_ERROR,
            ) from e

    def get_source(self, source_id: str) -> Optional[Source]:
        """Get source by ID, including soft-deleted sources."""
        try:
            row = self.db.execute_one("SELECT * FROM sources WHERE id = ?", (source_id,))
            return Source(**dict(row)) if row else None
        except Exception as e:
            raise DatabaseError(
                f"Failed to get source {source_id}: {e}",
                error_code=ErrorCode.DATABASE_ERROR,
            ) from e

    def get_owned_source(self, source_id: str, owner_id: str) -> Optional[Source]:
        """Get an active source only if it belongs to ``owner_id``."""
        source = self.get_source(source_id)
        if source is None or source.owner_id != owner_id or source.is_deleted:
            return None
        return source

    def find_by_feed_url(self, owner_id: str, feed_url: str) -> Optional[Source]:
        try:
            row = self.db.execute_one(
                "SELECT * FROM sources WHERE owner_id = ? AND feed_url = ?",
                (owner_id, feed_url),
            )
            return Source(**dict(row)) if row else None
        except Exception as e:
            raise DatabaseError(
                f"Failed to look up source by URL: {e}",
                error_code=ErrorCode.DATABASE_ERROR,
            ) from e

    def list_sources(
        self,
        owner_id: str,
        kind: Optional[SourceKind] = None,
        include_deleted: bool = False,
    ) -> List[Source]:
        """List an owner's sources.

        Args:
            owner_id: Owner to list sources for
            kind: Restrict to one source kind
            include_deleted: Include soft-deleted sources

        Returns:
            Sources ordered by creation time
        """
        query = "SELECT * FROM sources WHERE owner_id = ?"
        params: list = [owner_id]
        if kind is not None:
            query += " AND kind = ?"
            params.append(kind.value)
        if not include_deleted:
            query += " AND deleted_at IS NULL"
        query += " ORDER BY created_at"

        try:
            rows = self.db.execute_query(query, tuple(params))
            return [Source(**dict(row)) for row in rows]
        except Exception as e:
            raise DatabaseError(
                f"Failed to list sources for owner {owner_id}: {e}",
                query=query,
                error_code=ErrorCode.DATABASE_ERROR,
            ) from e

    def mark_synced(self, source_id: str, synced_at: Optional[datetime] = None) -> bool:
        """Record the time of the last completed sync."""
        try:
            updated = self.db.execute_update(
                "UPDATE sources SET last_synced_at = ? WHERE id = ?",
                (to_db_timestamp(synced_at or utc_now()), source_id),
            )
            return updated > 0
        except Exception as e:
            raise DatabaseError(
                f"Failed to update sync time for source {source_id}: {e}",
                error_code=ErrorCode.DATABASE_ERROR,
            ) from e

    def soft_delete(self, source_id: str) -> bool:
        """Mark a source deleted. Its items remain until swept."""
        try:
            updated = self.db.execute_update(
                "UPDATE sources SET deleted_at = ? WHERE id = ? AND deleted_at IS NULL",
                (to_db_timestamp(utc_now()), source_id),
            )
            if updated:
                self.logger.info(f"Soft-deleted source {source_id}")
            return updated > 0
        except Exception as e:
            raise DatabaseError(
                f"Failed to delete source {source_id}: {e}",
                error_code=ErrorCode.DATABASE_ERROR,
            ) from e
