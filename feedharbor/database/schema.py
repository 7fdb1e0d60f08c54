"""
FeedHarbor Database Schema
==========================

SQLite database schema with uniqueness constraints and indexes.

Tables:
- sources: Per-owner syndication and video-channel feeds (soft-deleted, never removed)
- syndication_items: Items ingested from syndication sources
- video_items: Items ingested from video-channel sources
- interactions: Per-owner read/favorite/read-later flags for items
"""

import sqlite3
import logging
from pathlib import Path

logger = logging.getLogger(__name__)

ITEM_TABLES = ("syndication_items", "video_items")


class DatabaseSchema:
    """Database schema manager for the FeedHarbor SQLite database."""

    EXPECTED_TABLES = {"sources", "syndication_items", "video_items", "interactions"}

    def __init__(self, db_path: str = "data/feedharbor.db"):
        """Initialize database schema manager.

        Args:
            db_path: Path to SQLite database file
        """
        self.db_path = Path(db_path)
        self.db_path.parent.mkdir(parents=True, exist_ok=True)

    def create_tables(self) -> None:
        """Create all database tables."""
        with sqlite3.connect(self.db_path) as conn:
            conn.execute("PRAGMA foreign_keys = ON")

            self._create_sources_table(conn)
            for table in ITEM_TABLES:
                self._create_item_table(conn, table)
            self._create_interactions_table(conn)

            self._create_indexes(conn)

            conn.commit()
            logger.info("Database schema created successfully")

    def _create_sources_table(self, conn: sqlite3.Connection) -> None:
        """Create sources table for owner feed subscriptions."""
        conn.execute(
            """
            CREATE TABLE IF NOT EXISTS sources (
                id TEXT PRIMARY KEY,
                owner_id TEXT NOT NULL,
                kind TEXT NOT NULL CHECK (kind IN ('syndication', 'video-channel')),
                feed_url TEXT NOT NULL,
                title TEXT,
                last_synced_at TIMESTAMP,
                deleted_at TIMESTAMP,
                created_at TIMESTAMP NOT NULL,
                UNIQUE(owner_id, feed_url)
            )
        """
        )

    def _create_item_table(self, conn: sqlite3.Connection, table: str) -> None:
        """Create an item table; canonical ids are unique per source."""
        conn.execute(
            f"""
            CREATE TABLE IF NOT EXISTS {table} (
                id TEXT PRIMARY KEY,
                source_id TEXT NOT NULL,
                canonical_id TEXT NOT NULL,
                title TEXT NOT NULL,
                description TEXT,
                url TEXT,
                thumbnail_url TEXT,
                author TEXT,
                is_short BOOLEAN DEFAULT FALSE,
                published_at TIMESTAMP NOT NULL,
                ingested_at TIMESTAMP NOT NULL,
                FOREIGN KEY (source_id) REFERENCES sources(id),
                UNIQUE(source_id, canonical_id)
            )
        """
        )

    def _create_interactions_table(self, conn: sqlite3.Connection) -> None:
        """Create interactions table.

        ``item_id`` carries no foreign key: an interaction may outlive its item.
        """
        conn.execute(
            """
            CREATE TABLE IF NOT EXISTS interactions (
                id INTEGER PRIMARY KEY AUTOINCREMENT,
                owner_id TEXT NOT NULL,
                item_id TEXT NOT NULL,
                item_kind TEXT NOT NULL CHECK (item_kind IN ('syndication', 'video-channel')),
                is_read BOOLEAN DEFAULT FALSE,
                is_favorite BOOLEAN DEFAULT FALSE,
                is_read_later BOOLEAN DEFAULT FALSE,
                updated_at TIMESTAMP NOT NULL,
                UNIQUE(owner_id, item_id)
            )
        """
        )

    def _create_indexes(self, conn: sqlite3.Connection) -> None:
        """Create database indexes for the ingestion and sweep queries."""
        indexes = [
            "CREATE INDEX IF NOT EXISTS idx_sources_owner_kind ON sources(owner_id, kind)",
            "CREATE INDEX IF NOT EXISTS idx_sources_deleted ON sources(deleted_at)",
            "CREATE INDEX IF NOT EXISTS idx_syndication_items_published ON syndication_items(published_at)",
            "CREATE INDEX IF NOT EXISTS idx_video_items_published ON video_items(published_at)",
            "CREATE INDEX IF NOT EXISTS idx_interactions_owner_flags ON interactions(owner_id, is_favorite, is_read_later)",
            "CREATE INDEX IF NOT EXISTS idx_interactions_item ON interactions(item_id)",
        ]

        for index_sql in indexes:
            conn.execute(index_sql)

    def drop_tables(self) -> None:
        """Drop all tables (for testing/reset purposes)."""
        with sqlite3.connect(self.db_path) as conn:
            for table in ("interactions", "video_items", "syndication_items", "sources"):
                conn.execute(f"DROP TABLE IF EXISTS {table}")

            conn.commit()
            logger.info("All database tables dropped")

    def get_connection(self) -> sqlite3.Connection:
        """Get database connection with foreign keys enabled."""
        conn = sqlite3.connect(self.db_path)
        conn.execute("PRAGMA foreign_keys = ON")
        conn.row_factory = sqlite3.Row
        return conn

    def verify_schema(self) -> bool:
        """Verify database schema is correctly created."""
        try:
            with self.get_connection() as conn:
                cursor = conn.execute(
                    """
                    SELECT name FROM sqlite_master
                    WHERE type='table' AND name NOT LIKE 'sqlite_%'
                    ORDER BY name
                """
                )

                tables = {row[0] for row in cursor.fetchall()}
                missing = self.EXPECTED_TABLES - tables
                if missing:
                    logger.error(f"Missing tables: {sorted(missing)}")
                    return False

                conn.execute("PRAGMA foreign_key_check")

                logger.info("Database schema verification passed")
                return True

        except sqlite3.Error as e:
            logger.error(f"Schema verification failed: {e}")
            return False


def create_tables(db_path: str = "data/feedharbor.db") -> None:
    """Convenience function to create database tables."""
    schema = DatabaseSchema(db_path)
    schema.create_tables()
