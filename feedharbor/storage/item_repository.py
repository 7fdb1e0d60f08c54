"""
Item Repository
===============

Repository pattern implementation for ingested items. Syndication and video
items live in separate tables; every method takes the source kind to pick one.
"""

import sqlite3
from datetime import datetime
from typing import Iterable, List, Optional, Set

from ..database.connection import DatabaseConnection
from ..database.models import Item, ITEM_COLUMNS, SourceKind, to_db_timestamp
from ..utils.logging import get_logger_for_component
from ..utils.exceptions import DatabaseError, ErrorCode

# Stay well below SQLITE_MAX_VARIABLE_NUMBER on older builds
_DELETE_CHUNK = 500


def _is_permission_error(exc: BaseException) -> bool:
    """True for SQLite read-only and authorization failures."""
    if isinstance(exc, sqlite3.DatabaseError):
        message = str(exc).lower()
        return "readonly" in message or "not authorized" in message
    return False


def _chunks(values: List[str], size: int) -> Iterable[List[str]]:
    for start in range(0, len(values), size):
        yield values[start:start + size]


class ItemRepository:
    """Repository for item writes, dedup lookups and retention deletes."""

    def __init__(self, db_connection: DatabaseConnection):
        """Initialize item repository.

        Args:
            db_connection: Database connection manager
        """
        self.db = db_connection
        self.logger = get_logger_for_component("item_repository")

    def get_canonical_ids(self, source_id: str, kind: SourceKind) -> Set[str]:
        """Return every persisted canonical id for a source in one query."""
        try:
            rows = self.db.execute_query(
                f"SELECT canonical_id FROM {kind.item_table} WHERE source_id = ?",
                (source_id,),
            )
            return {row["canonical_id"] for row in rows}
        except Exception as e:
            raise DatabaseError(
                f"Failed to load canonical ids for source {source_id}: {e}",
                error_code=ErrorCode.DATABASE_ERROR,
            ) from e

    def insert_items(self, items: List[Item], kind: SourceKind, mode: str = "IMMEDIATE") -> int:
        """Insert items in a single transaction.

        Args:
            items: Items to insert; all must belong to sources of ``kind``
            kind: Source kind selecting the item table
            mode: SQLite transaction mode used for the write

        Returns:
            Number of items inserted

        Raises:
            DatabaseError: If any row fails; nothing from the call is kept.
                Read-only and authorization failures carry
                ``ErrorCode.WRITE_PERMISSION_DENIED``.
        """
        if not items:
            return 0

        columns = ", ".join(ITEM_COLUMNS)
        placeholders = ", ".join("?" for _ in ITEM_COLUMNS)
        query = f"INSERT INTO {kind.item_table} ({columns}) VALUES ({placeholders})"

        try:
            with self.db.transaction(mode) as conn:
                conn.executemany(query, [item.to_db_params() for item in items])

            self.logger.debug(f"Inserted {len(items)} rows into {kind.item_table}")
            return len(items)

        except Exception as e:
            if _is_permission_error(e):
                code = ErrorCode.WRITE_PERMISSION_DENIED
            elif isinstance(e, sqlite3.IntegrityError):
                code = ErrorCode.DATABASE_CONSTRAINT
            else:
                code = ErrorCode.DATABASE_TRANSACTION
            raise DatabaseError(
                f"Failed to insert {len(items)} items into {kind.item_table}: {e}",
                error_code=code,
                recoverable=code != ErrorCode.WRITE_PERMISSION_DENIED,
            ) from e

    def get_items(
        self, source_id: str, kind: SourceKind, limit: Optional[int] = None
    ) -> List[Item]:
        """Get a source's items, newest first."""
        query = (
            f"SELECT * FROM {kind.item_table} WHERE source_id = ? "
            "ORDER BY published_at DESC"
        )
        params: tuple = (source_id,)
        if limit is not None:
            query += " LIMIT ?"
            params = (source_id, limit)

        try:
            rows = self.db.execute_query(query, params)
            return [Item(kind=kind, **dict(row)) for row in rows]
        except Exception as e:
            raise DatabaseError(
                f"Failed to get items for source {source_id}: {e}",
                query=query,
                error_code=ErrorCode.DATABASE_ERROR,
            ) from e

    def count_items(self, source_id: str, kind: SourceKind) -> int:
        row = self.db.execute_one(
            f"SELECT COUNT(*) FROM {kind.item_table} WHERE source_id = ?",
            (source_id,),
        )
        return row[0] if row else 0

    def find_expired_item_ids(
        self, owner_id: str, kind: SourceKind, cutoff: datetime
    ) -> List[str]:
        """Items of an owner's sources of ``kind`` published before ``cutoff``.

        Soft-deleted sources are included.
        """
        query = f"""
            SELECT i.id FROM {kind.item_table} i
            JOIN sources s ON s.id = i.source_id
            WHERE s.owner_id = ? AND s.kind = ? AND i.published_at < ?
        """
        try:
            rows = self.db.execute_query(
                query, (owner_id, kind.value, to_db_timestamp(cutoff))
            )
            return [row["id"] for row in rows]
        except Exception as e:
            raise DatabaseError(
                f"Failed to query expired {kind.value} items: {e}",
                query=query,
                error_code=ErrorCode.DATABASE_ERROR,
            ) from e

    def delete_items(self, item_ids: List[str], kind: SourceKind) -> int:
        """Delete items and their interactions in one transaction.

        Returns:
            Number of items deleted
        """
        if not item_ids:
            return 0

        deleted = 0
        try:
            with self.db.transaction() as conn:
                for chunk in _chunks(list(item_ids), _DELETE_CHUNK):
                    placeholders = ", ".join("?" for _ in chunk)
                    conn.execute(
                        f"DELETE FROM interactions WHERE item_id IN ({placeholders})",
                        tuple(chunk),
                    )
                    cursor = conn.execute(
                        f"DELETE FROM {kind.item_table} WHERE id IN ({placeholders})",
                        tuple(chunk),
                    )
                    deleted += cursor.rowcount

            self.logger.info(f"Deleted {deleted} rows from {kind.item_table}")
            return deleted

        except Exception as e:
            raise DatabaseError(
                f"Failed to delete {kind.value} items: {e}",
                error_code=ErrorCode.DATABASE_TRANSACTION,
            ) from e
