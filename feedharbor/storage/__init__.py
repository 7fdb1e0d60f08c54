"""
FeedHarbor Storage Layer
========================

Repository pattern implementations for data access abstraction.

This module provides:
- Source repository for per-owner feed subscriptions
- Item repository for ingestion writes and retention deletes
- Interaction repository for read/favorite/read-later flags
"""

from .source_repository import SourceRepository
from .item_repository import ItemRepository
from .interaction_repository import InteractionRepository

__all__ = [
    "SourceRepository",
    "ItemRepository",
    "InteractionRepository",
]
