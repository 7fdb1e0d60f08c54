"""
FeedHarbor - Feed Aggregation Core
==================================

Aggregates syndication and video-channel feeds into a per-owner item store
and retires stale items under a retention policy.

Main Components:
- Database: SQLite with connection pooling and schema management
- Configuration: Environment variables with Pydantic validation
- Ingestion: Source resolution, cached two-tier fetching, entry normalization
- Processing: Dedup against stored items, batched writes with fallback
- Services: Retention cleanup
"""

__version__ = "1.0.0"
__author__ = "FeedHarbor Development Team"
__description__ = "Feed ingestion and retention pipeline"

from .config.settings import get_settings
from .database.connection import get_db_manager
from .database.schema import DatabaseSchema
from .utils.logging import configure_application_logging, get_logger_for_component
from .utils.exceptions import FeedHarborError

__all__ = [
    "get_settings",
    "get_db_manager",
    "DatabaseSchema",
    "configure_application_logging",
    "get_logger_for_component",
    "FeedHarborError",
]
