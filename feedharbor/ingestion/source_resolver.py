"""
Source Resolver
===============

Turns a user-supplied string (feed URL, channel URL, handle or free text)
into a canonical ``SourceDescriptor``. The only network access is the
channel-search collaborator, used for handles, usernames and free text.
"""

import re
from typing import Optional
from urllib.parse import parse_qs, urlparse

from ..database.models import SourceDescriptor, SourceKind
from ..utils.exceptions import ResolutionError, ValidationError
from ..utils.logging import get_logger_for_component
from ..utils.validators import URLValidator
from .channel_search import ChannelSearchClient
from .extractors import CHANNEL_ID_PATTERN, is_valid_channel_id, video_feed_url

CHANNEL_SEGMENT = re.compile(r"/channel/(UC[A-Za-z0-9_-]{22})(?:[/?#]|$)")
HANDLE_SEGMENT = re.compile(r"^/@([^/?#]+)")
NAMED_SEGMENT = re.compile(r"^/(?:user|c)/([^/?#]+)")
SCHEMELESS_URL = re.compile(r"^[\w-]+(\.[\w-]+)+(/\S*)?$")


class SourceResolver:
    """Classifies raw source references and produces canonical feed URLs."""

    def __init__(
        self,
        search_client: Optional[ChannelSearchClient] = None,
        max_alternates: int = 5,
        logger=None,
    ):
        """Initialize resolver.

        Args:
            search_client: Channel lookup used for handles and free text
            max_alternates: Upper bound on alternates returned with a match
            logger: Logger adapter
        """
        self.search_client = search_client
        self.max_alternates = max_alternates
        self.logger = logger or get_logger_for_component("source_resolver")

    async def resolve(self, raw: str) -> SourceDescriptor:
        """Resolve ``raw`` into a source descriptor.

        Raises:
            ResolutionError: If no pattern matches and search finds nothing
        """
        value = (raw or "").strip()
        if not value:
            raise ResolutionError("Source reference is empty", raw_input=raw)

        if CHANNEL_ID_PATTERN.match(value):
            return self._video_descriptor(value, raw)

        url = value
        if not URLValidator.is_http_url(url) and SCHEMELESS_URL.match(value):
            url = f"https://{value}"

        if URLValidator.is_http_url(url):
            if URLValidator.is_video_host(url):
                return await self._resolve_video_url(url, raw)
            return self._syndication_descriptor(url, raw)

        return await self._search(value, raw)

    async def _resolve_video_url(self, url: str, raw: str) -> SourceDescriptor:
        parsed = urlparse(url)

        # Already a channel feed URL
        if parsed.path.rstrip("/") == "/feeds/videos.xml":
            channel_id = (parse_qs(parsed.query).get("channel_id") or [None])[0]
            if is_valid_channel_id(channel_id):
                return self._video_descriptor(channel_id, raw)
            raise ResolutionError("Feed URL carries no valid channel id", raw_input=raw)

        match = CHANNEL_SEGMENT.search(parsed.path)
        if match:
            return self._video_descriptor(match.group(1), raw)

        for pattern, prefix in ((HANDLE_SEGMENT, "@"), (NAMED_SEGMENT, "")):
            match = pattern.match(parsed.path)
            if match:
                return await self._search(f"{prefix}{match.group(1)}", raw)

        raise ResolutionError(
            "Video URL does not identify a channel", raw_input=raw
        )

    async def _search(self, query: str, raw: str) -> SourceDescriptor:
        if self.search_client is None:
            raise ResolutionError(
                f"Cannot resolve '{query}' without channel search", raw_input=raw
            )

        result = await self.search_client.search_channels(
            query, limit=self.max_alternates + 1
        )
        if not result.found:
            raise ResolutionError(f"No channel found for '{query}'", raw_input=raw)

        best = result.best_match
        self.logger.info(f"Resolved '{query}' to channel {best.channel_id}")
        return SourceDescriptor(
            kind=SourceKind.VIDEO_CHANNEL,
            canonical_url=best.feed_url,
            raw_identifier=raw,
            title=best.title or None,
            alternates=result.alternates[: self.max_alternates],
        )

    @staticmethod
    def _video_descriptor(channel_id: str, raw: str) -> SourceDescriptor:
        return SourceDescriptor(
            kind=SourceKind.VIDEO_CHANNEL,
            canonical_url=video_feed_url(channel_id),
            raw_identifier=raw,
        )

    @staticmethod
    def _syndication_descriptor(url: str, raw: str) -> SourceDescriptor:
        try:
            canonical = URLValidator.validate_feed_url(url)
        except ValidationError as e:
            raise ResolutionError(f"Invalid feed URL: {e}", raw_input=raw) from e
        return SourceDescriptor(
            kind=SourceKind.SYNDICATION,
            canonical_url=canonical,
            raw_identifier=raw,
        )
