"""
Interaction Repository
======================

Repository for per-owner item interactions (read, favorite, read-later).
Interactions are not tied to their item by a foreign key, so they can outlive
it; ``find_orphaned_ids`` locates those.
"""

from typing import List, Optional, Set

from ..database.connection import DatabaseConnection
from ..database.models import Interaction, to_db_timestamp, utc_now
from ..utils.logging import get_logger_for_component
from ..utils.exceptions import DatabaseError, ErrorCode


class InteractionRepository:
    """Repository for interaction upserts, exclusion lookups and orphan cleanup."""

    def __init__(self, db_connection: DatabaseConnection):
        self.db = db_connection
        self.logger = get_logger_for_component("interaction_repository")

    def upsert_interaction(self, interaction: Interaction) -> None:
        """Create or update the single interaction for (owner, item)."""
        try:
            with self.db.transaction() as conn:
                conn.execute(
                    """
                    INSERT INTO interactions (
                        owner_id, item_id, item_kind, is_read,
                        is_favorite, is_read_later, updated_at
                    ) VALUES (?, ?, ?, ?, ?, ?, ?)
                    ON CONFLICT(owner_id, item_id) DO UPDATE SET
                        is_read = excluded.is_read,
                        is_favorite = excluded.is_favorite,
                        is_read_later = excluded.is_read_later,
                        updated_at = excluded.updated_at
                    """,
                    (
                        interaction.owner_id,
                        interaction.item_id,
                        interaction.item_kind.value,
                        interaction.is_read,
                        interaction.is_favorite,
                        interaction.is_read_later,
                        to_db_timestamp(interaction.updated_at or utc_now()),
                    ),
                )
        except Exception as e:
            raise DatabaseError(
                f"Failed to save interaction for item {interaction.item_id}: {e}",
                error_code=ErrorCode.DATABASE_ERROR,
            ) from e

    def get_interaction(self, owner_id: str, item_id: str) -> Optional[Interaction]:
        row = self.db.execute_one(
            "SELECT * FROM interactions WHERE owner_id = ? AND item_id = ?",
            (owner_id, item_id),
        )
        return Interaction(**dict(row)) if row else None

    def count_for_owner(self, owner_id: str) -> int:
        row = self.db.execute_one(
            "SELECT COUNT(*) FROM interactions WHERE owner_id = ?", (owner_id,)
        )
        return row[0] if row else 0

    def get_protected_item_ids(
        self, owner_id: str, keep_favorites: bool, keep_read_later: bool
    ) -> Set[str]:
        """Item ids the retention policy must keep, fetched in one query.

        Args:
            owner_id: Owner whose flags are consulted
            keep_favorites: Protect favorited items
            keep_read_later: Protect items saved for later

        Returns:
            Union of the enabled protected sets
        """
        conditions = []
        if keep_favorites:
            conditions.append("is_favorite = 1")
        if keep_read_later:
            conditions.append("is_read_later = 1")
        if not conditions:
            return set()

        query = (
            "SELECT item_id FROM interactions WHERE owner_id = ? AND ("
            + " OR ".join(conditions)
            + ")"
        )
        try:
            rows = self.db.execute_query(query, (owner_id,))
            return {row["item_id"] for row in rows}
        except Exception as e:
            raise DatabaseError(
                f"Failed to load protected items for owner {owner_id}: {e}",
                query=query,
                error_code=ErrorCode.DATABASE_ERROR,
            ) from e

    def find_orphaned_ids(self, owner_id: str) -> List[int]:
        """Interaction ids whose item is not among the owner's current items."""
        query = """
            SELECT x.id FROM interactions x
            WHERE x.owner_id = ?
            AND NOT EXISTS (
                SELECT 1 FROM syndication_items i
                JOIN sources s ON s.id = i.source_id
                WHERE i.id = x.item_id AND s.owner_id = x.owner_id
            )
            AND NOT EXISTS (
                SELECT 1 FROM video_items i
                JOIN sources s ON s.id = i.source_id
                WHERE i.id = x.item_id AND s.owner_id = x.owner_id
            )
        """
        try:
            rows = self.db.execute_query(query, (owner_id,))
            return [row["id"] for row in rows]
        except Exception as e:
            raise DatabaseError(
                f"Failed to query orphaned interactions: {e}",
                query=query,
                error_code=ErrorCode.DATABASE_ERROR,
            ) from e

    def delete_interactions(self, interaction_ids: List[int]) -> int:
        if not interaction_ids:
            return 0

        try:
            deleted = 0
            with self.db.transaction() as conn:
                for start in range(0, len(interaction_ids), 500):
                    chunk = interaction_ids[start:start + 500]
                    placeholders = ", ".join("?" for _ in chunk)
                    cursor = conn.execute(
                        f"DELETE FROM interactions WHERE id IN ({placeholders})",
                        tuple(chunk),
                    )
                    deleted += cursor.rowcount
            return deleted
        except Exception as e:
            raise DatabaseError(
                f"Failed to delete interactions: {e}",
                error_code=ErrorCode.DATABASE_TRANSACTION,
            ) from e
