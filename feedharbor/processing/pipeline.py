"""
Ingestion Pipeline
==================

Orchestrates one source sync: fetch the feed document, normalize its
entries, diff them against stored items and write the new ones. Expected
failures end up in the returned ``IngestionResult``; only store faults
propagate.
"""

import asyncio
from datetime import datetime, timezone
from typing import List, Optional

from ..config.settings import FeedHarborSettings, get_settings
from ..database.connection import DatabaseConnection
from ..database.models import IngestionResult, Source, SourceDescriptor
from ..ingestion.feed_fetcher import FeedFetcher
from ..ingestion.normalizer import ItemNormalizer
from ..ingestion.source_resolver import SourceResolver
from ..storage.item_repository import ItemRepository
from ..storage.source_repository import SourceRepository
from ..utils.exceptions import (
    ErrorCode,
    FeedHarborError,
    FetchError,
    PersistenceError,
    ValidationError,
)
from ..utils.logging import get_logger_for_component, PerformanceLogger
from ..utils.validators import validate_owner_id
from .batch_writer import BatchWriter
from .dedup import DedupEngine


class IngestionPipeline:
    """Source sync orchestrator."""

    def __init__(
        self,
        db_connection: DatabaseConnection,
        settings: Optional[FeedHarborSettings] = None,
        fetcher: Optional[FeedFetcher] = None,
        normalizer: Optional[ItemNormalizer] = None,
        writer: Optional[BatchWriter] = None,
        logger=None,
    ):
        """Initialize ingestion pipeline.

        Args:
            db_connection: Database connection manager
            settings: Application settings (global settings when omitted)
            fetcher: Feed fetcher; shares one cache across syncs
            normalizer: Entry normalizer
            writer: Batch writer
            logger: Logger adapter
        """
        self.db = db_connection
        self.settings = settings or get_settings()
        self.logger = logger or get_logger_for_component("pipeline")

        self.sources = SourceRepository(db_connection)
        self.items = ItemRepository(db_connection)
        self.fetcher = fetcher or FeedFetcher(self.settings.fetch)
        self.normalizer = normalizer or ItemNormalizer(
            self.settings.ingestion.max_description_length
        )
        self.dedup = DedupEngine(self.items)
        self.writer = writer or BatchWriter(
            self.items, db_connection, batch_size=self.settings.ingestion.batch_size
        )

    async def sync_source(
        self, source_id: str, owner_id: str, skip_cache: bool = False
    ) -> IngestionResult:
        """Sync one source owned by ``owner_id``.

        Args:
            source_id: Source to sync
            owner_id: Requesting owner; must own the source
            skip_cache: Bypass the feed document cache

        Returns:
            IngestionResult with counts and recorded errors
        """
        result = IngestionResult(source_id=source_id)
        logger = self.logger.bind(owner_id=owner_id, source_id=source_id)

        source = await asyncio.to_thread(self.sources.get_owned_source, source_id, owner_id)
        if source is None:
            error = ValidationError(
                f"Source {source_id} not found for owner",
                field_name="source_id",
                error_code=ErrorCode.SOURCE_NOT_FOUND,
            )
            logger.warning(str(error))
            result.errors.append(error.to_dict())
            return result

        try:
            document = await self.fetcher.fetch(source.feed_url, skip_cache=skip_cache)
        except FetchError as e:
            logger.error(f"Fetch failed for {source.feed_url}: {e}")
            result.errors.append(e.to_dict())
            return result

        result.total_fetched = len(document.entries)

        with PerformanceLogger(logger, "source sync", feed_url=source.feed_url):
            now = datetime.now(timezone.utc)
            items, drops = self.normalizer.normalize_entries(list(document.entries), source, now)
            result.dropped_count = len(drops)

            new_items, _ = await asyncio.to_thread(self.dedup.find_new_items, items, source)

            write_result = await asyncio.to_thread(self.writer.write, new_items, source.kind)
            result.inserted_count = write_result.inserted_count
            for failure in write_result.errors:
                result.errors.append(
                    PersistenceError(
                        failure.reason, kind=failure.kind, context=failure.to_dict()
                    ).to_dict()
                )

            await asyncio.to_thread(self.sources.mark_synced, source.id, now)

        logger.info(
            f"Synced {source}: {result.inserted_count} new of {result.total_fetched} fetched, "
            f"{result.dropped_count} dropped, {len(result.errors)} errors"
        )
        return result

    async def sync_owner_sources(
        self, owner_id: str, skip_cache: bool = False
    ) -> List[IngestionResult]:
        """Sync every active source of an owner, one after another.

        A failing source never stops the others.
        """
        owner_id = validate_owner_id(owner_id)
        sources = await asyncio.to_thread(self.sources.list_sources, owner_id)
        results = []

        for source in sources:
            try:
                results.append(await self.sync_source(source.id, owner_id, skip_cache))
            except FeedHarborError as e:
                self.logger.error(f"Sync of source {source.id} failed: {e}")
                failed = IngestionResult(source_id=source.id)
                failed.errors.append(e.to_dict())
                results.append(failed)

        total = sum(r.inserted_count for r in results)
        self.logger.info(
            f"Synced {len(results)} sources for owner {owner_id}: {total} new items"
        )
        return results

    async def add_source(
        self, owner_id: str, raw: str, resolver: SourceResolver, title: Optional[str] = None
    ) -> Source:
        """Resolve ``raw`` and register it for ``owner_id``.

        An existing source with the same feed URL is returned as-is.
        """
        owner_id = validate_owner_id(owner_id)
        descriptor: SourceDescriptor = await resolver.resolve(raw)

        existing = await asyncio.to_thread(
            self.sources.find_by_feed_url, owner_id, descriptor.canonical_url
        )
        if existing is not None:
            return existing

        source = Source(
            owner_id=owner_id,
            kind=descriptor.kind,
            feed_url=descriptor.canonical_url,
            title=title or descriptor.title,
        )
        await asyncio.to_thread(self.sources.create_source, source)
        return source
