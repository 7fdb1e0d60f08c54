"""
Item Normalizer
===============

Converts raw feedparser entries into ``Item`` records. Entries without a
usable canonical id, or whose values fail item validation, are dropped and
reported as ``NormalizationDrop`` records rather than raised.
"""

from datetime import datetime, timezone
from typing import List, Mapping, Optional, Tuple, Union

from pydantic import ValidationError as ModelValidationError

from ..database.models import Item, NormalizationDrop, Source, SourceKind
from ..utils.logging import get_logger_for_component
from ..utils.validators import ContentValidator, URLValidator
from .content_cleaner import extract_plain_text
from .extractors import (
    EntryContext,
    entry_body_html,
    entry_permalink,
    extract_canonical_id,
    extract_published_at,
    extract_thumbnail,
    is_short_permalink,
    video_watch_url,
)

DEFAULT_TITLES = {
    SourceKind.SYNDICATION: "Untitled",
    SourceKind.VIDEO_CHANNEL: "Untitled Video",
}


class ItemNormalizer:
    """Builds canonical items from raw entries of one source kind at a time."""

    def __init__(self, max_description_length: int = 2000, logger=None):
        """Initialize normalizer.

        Args:
            max_description_length: Stored description length limit
            logger: Logger adapter; defaults to the component logger
        """
        self.max_description_length = max_description_length
        self.logger = logger or get_logger_for_component("normalizer")

    def normalize(
        self, entry: Mapping, source: Source, now: Optional[datetime] = None
    ) -> Union[Item, NormalizationDrop]:
        """Normalize one entry.

        Args:
            entry: Raw feed entry
            source: Source the entry was fetched for
            now: Ingestion time, used when the entry carries no date

        Returns:
            The item, or a drop record when no canonical id could be found or
            the extracted values do not form a valid item
        """
        now = now or datetime.now(timezone.utc)
        raw_title = entry.get("title")

        canonical_id = extract_canonical_id(entry, source.kind)
        if canonical_id is None:
            return NormalizationDrop(
                reason=f"no valid {source.kind.value} identifier",
                source_id=source.id,
                title=raw_title if isinstance(raw_title, str) else None,
            )

        permalink = entry_permalink(entry)
        url = self._canonical_url(permalink, canonical_id, source.kind)
        ctx = EntryContext(kind=source.kind, canonical_id=canonical_id, permalink=url)

        description = ContentValidator.truncate(
            extract_plain_text(entry_body_html(entry)) or None,
            self.max_description_length,
        )

        author = entry.get("author")
        if isinstance(author, str):
            author = ContentValidator.truncate(author.strip(), ContentValidator.MAX_AUTHOR_LENGTH)
        else:
            author = None

        try:
            return Item(
                source_id=source.id,
                kind=source.kind,
                canonical_id=canonical_id,
                title=ContentValidator.validate_item_title(raw_title, DEFAULT_TITLES[source.kind]),
                description=description,
                url=url,
                thumbnail_url=extract_thumbnail(entry, ctx),
                author=author,
                is_short=source.kind is SourceKind.VIDEO_CHANNEL and is_short_permalink(permalink),
                published_at=extract_published_at(entry, now),
                ingested_at=now,
            )
        except ModelValidationError as e:
            return NormalizationDrop(
                reason=f"invalid field values: {e.error_count()} errors",
                source_id=source.id,
                title=raw_title if isinstance(raw_title, str) else None,
            )

    def normalize_entries(
        self, entries: List[Mapping], source: Source, now: Optional[datetime] = None
    ) -> Tuple[List[Item], List[NormalizationDrop]]:
        """Normalize a document's entries, keeping document order."""
        now = now or datetime.now(timezone.utc)
        items: List[Item] = []
        drops: List[NormalizationDrop] = []

        for entry in entries:
            result = self.normalize(entry, source, now)
            if isinstance(result, NormalizationDrop):
                drops.append(result)
                self.logger.info(
                    f"Dropped entry '{result.title or 'untitled'}': {result.reason}",
                    extra={"source_id": source.id},
                )
            else:
                items.append(result)

        return items, drops

    @staticmethod
    def _canonical_url(
        permalink: Optional[str], canonical_id: str, kind: SourceKind
    ) -> Optional[str]:
        if permalink and URLValidator.is_http_url(permalink):
            return permalink
        if kind is SourceKind.VIDEO_CHANNEL:
            return video_watch_url(canonical_id)
        if URLValidator.is_http_url(canonical_id):
            return canonical_id
        return None
