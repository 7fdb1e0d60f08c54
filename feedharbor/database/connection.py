"""
FeedHarbor Database Connection Management
=========================================

Database connection pool and transaction management for SQLite with
error handling, connection pooling, and write-capability probing.
"""

import sqlite3
import threading
import logging
import time
from contextlib import contextmanager
from pathlib import Path
from typing import Optional, Generator, Any, List, Dict
from queue import Queue, Empty

logger = logging.getLogger(__name__)

_TRANSACTION_MODES = ("DEFERRED", "IMMEDIATE", "EXCLUSIVE")


class DatabaseConnection:
    """Thread-safe SQLite database connection manager with pooling."""

    def __init__(
        self,
        db_path: str = "data/feedharbor.db",
        pool_size: int = 5,
        privileged_writes: bool = True,
    ):
        """Initialize database connection manager.

        Args:
            db_path: Path to SQLite database file
            pool_size: Maximum number of connections in pool
            privileged_writes: Whether the exclusive-lock write path may be used
        """
        self.db_path = Path(db_path)
        self.pool_size = pool_size
        self.privileged_writes = privileged_writes
        self.pool: Queue = Queue(maxsize=pool_size)
        self.lock = threading.Lock()
        self._total_connections = 0

        self.db_path.parent.mkdir(parents=True, exist_ok=True)

        self._initialize_pool()

    def _initialize_pool(self) -> None:
        """Initialize the connection pool."""
        for _ in range(self.pool_size):
            conn = self._create_connection()
            self.pool.put(conn)

    def _create_connection(self) -> sqlite3.Connection:
        """Create a new SQLite connection."""
        conn = sqlite3.connect(
            self.db_path,
            check_same_thread=False,  # Shared across worker threads
            timeout=30.0
        )

        conn.execute("PRAGMA foreign_keys = ON")
        conn.execute("PRAGMA journal_mode = WAL")
        conn.execute("PRAGMA synchronous = NORMAL")
        conn.execute("PRAGMA temp_store = MEMORY")

        conn.row_factory = sqlite3.Row

        with self.lock:
            self._total_connections += 1

        logger.debug(f"Created database connection #{self._total_connections}")
        return conn

    @contextmanager
    def get_connection(self) -> Generator[sqlite3.Connection, None, None]:
        """Get a connection from the pool with automatic return.

        Usage:
            with db.get_connection() as conn:
                rows = conn.execute("SELECT * FROM sources").fetchall()
        """
        start_time = time.time()
        conn = None

        try:
            try:
                conn = self.pool.get(timeout=10.0)
            except Empty:
                logger.warning("Connection pool exhausted, creating new connection")
                conn = self._create_connection()

            conn.execute("SELECT 1").fetchone()

            acquisition_time = time.time() - start_time
            if acquisition_time > 1.0:
                logger.warning(f"Database connection acquisition took {acquisition_time:.2f}s")

            yield conn

        except sqlite3.Error as e:
            logger.error(f"Database connection error: {e}")
            if conn:
                try:
                    conn.rollback()
                except sqlite3.Error:
                    logger.debug("Rollback after connection error failed")
            raise
        finally:
            if conn:
                if self.pool.qsize() < self.pool_size:
                    self.pool.put(conn)
                else:
                    conn.close()
                    with self.lock:
                        self._total_connections -= 1

    @contextmanager
    def transaction(self, mode: str = "IMMEDIATE") -> Generator[sqlite3.Connection, None, None]:
        """Execute operations within a database transaction.

        Args:
            mode: SQLite transaction mode (DEFERRED, IMMEDIATE or EXCLUSIVE)

        Usage:
            with db.transaction() as conn:
                conn.execute("INSERT INTO sources ...")
                # Commit on success, rollback on exception
        """
        mode = mode.upper()
        if mode not in _TRANSACTION_MODES:
            raise ValueError(f"Unsupported transaction mode: {mode}")

        with self.get_connection() as conn:
            try:
                conn.execute(f"BEGIN {mode}")
                yield conn
                conn.commit()
            except Exception as e:
                conn.rollback()
                logger.error(f"Transaction rolled back due to error: {e}")
                raise

    def supports_privileged_writes(self) -> bool:
        """Report whether the exclusive-lock write path is usable.

        The path is available when enabled in configuration and the pooled
        connection is not restricted to reads (``PRAGMA query_only``).
        """
        if not self.privileged_writes:
            return False
        try:
            with self.get_connection() as conn:
                row = conn.execute("PRAGMA query_only").fetchone()
                return not bool(row[0])
        except sqlite3.Error as e:
            logger.warning(f"Write capability check failed: {e}")
            return False

    def set_query_only(self, enabled: bool) -> None:
        """Toggle read-only mode on every pooled connection."""
        value = "ON" if enabled else "OFF"
        held = []
        while not self.pool.empty():
            try:
                held.append(self.pool.get_nowait())
            except Empty:
                break
        for conn in held:
            conn.execute(f"PRAGMA query_only = {value}")
            self.pool.put(conn)

    def execute_query(self, query: str, params: tuple = ()) -> List[sqlite3.Row]:
        """Execute a SELECT query and return results.

        Args:
            query: SQL SELECT statement
            params: Query parameters

        Returns:
            List of result rows
        """
        with self.get_connection() as conn:
            cursor = conn.execute(query, params)
            return cursor.fetchall()

    def execute_one(self, query: str, params: tuple = ()) -> Optional[sqlite3.Row]:
        """Execute a query and return single result."""
        with self.get_connection() as conn:
            cursor = conn.execute(query, params)
            return cursor.fetchone()

    def execute_update(self, query: str, params: tuple = ()) -> int:
        """Execute an INSERT/UPDATE/DELETE query.

        Returns:
            Number of affected rows
        """
        with self.get_connection() as conn:
            cursor = conn.execute(query, params)
            conn.commit()
            return cursor.rowcount

    def get_database_info(self) -> Dict[str, Any]:
        """Get database information and statistics."""
        with self.get_connection() as conn:
            page_count = conn.execute("PRAGMA page_count").fetchone()[0]
            page_size = conn.execute("PRAGMA page_size").fetchone()[0]

            table_counts = {}
            tables = ['sources', 'syndication_items', 'video_items', 'interactions']

            for table in tables:
                try:
                    cursor = conn.execute(f"SELECT COUNT(*) FROM {table}")
                    table_counts[table] = cursor.fetchone()[0]
                except sqlite3.Error:
                    table_counts[table] = 0

            return {
                'database_size_mb': (page_count * page_size) / (1024 * 1024),
                'page_count': page_count,
                'page_size': page_size,
                'table_counts': table_counts,
                'connection_pool_size': self.pool.qsize(),
                'total_connections': self._total_connections
            }

    def close_all_connections(self) -> None:
        """Close all connections in the pool."""
        logger.info("Closing all database connections")

        while not self.pool.empty():
            try:
                conn = self.pool.get_nowait()
                conn.close()
            except (Empty, sqlite3.Error):
                break

        with self.lock:
            self._total_connections = 0


# Global database manager instance
_db_manager: Optional[DatabaseConnection] = None


def get_db_manager(
    db_path: str = "data/feedharbor.db",
    pool_size: int = 5,
    privileged_writes: bool = True,
) -> DatabaseConnection:
    """Get global database manager instance (singleton pattern)."""
    global _db_manager

    if _db_manager is None:
        _db_manager = DatabaseConnection(db_path, pool_size, privileged_writes)

    return _db_manager
