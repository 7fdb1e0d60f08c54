"""
FeedHarbor Processing Module
============================

Ingestion pipeline components: dedup against stored items, batched
persistence with fallback, and the per-source sync orchestrator.
"""

from .dedup import DedupEngine, DeduplicationStats
from .batch_writer import BatchWriter, WriteTier
from .pipeline import IngestionPipeline

__all__ = [
    'DedupEngine',
    'DeduplicationStats',
    'BatchWriter',
    'WriteTier',
    'IngestionPipeline',
]
