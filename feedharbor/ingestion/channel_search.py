"""
Channel Search
==============

Looks up video channels by handle, username or free text. The resolver
only depends on ``ChannelSearchClient``; ``YouTubeChannelSearchClient``
implements it against the YouTube Data API v3 search endpoint.
"""

import asyncio
import ssl
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional

import aiohttp
import certifi

from ..database.models import ChannelCandidate
from ..utils.exceptions import ResolutionError, ErrorCode
from ..utils.logging import get_logger_for_component
from .extractors import is_valid_channel_id, video_feed_url


@dataclass
class ChannelSearchResult:
    """Best match plus a bounded list of alternates."""
    best_match: Optional[ChannelCandidate] = None
    alternates: List[ChannelCandidate] = field(default_factory=list)

    @property
    def found(self) -> bool:
        return self.best_match is not None


class ChannelSearchClient(ABC):
    """Interface for channel lookups."""

    @abstractmethod
    async def search_channels(self, query: str, limit: int = 5) -> ChannelSearchResult:
        """Best match and alternates for ``query``, at most ``limit`` candidates."""


class YouTubeChannelSearchClient(ChannelSearchClient):
    """Channel search backed by the YouTube Data API."""

    def __init__(
        self,
        api_key: Optional[str],
        endpoint: str = "https://www.googleapis.com/youtube/v3/search",
        timeout: float = 10.0,
        logger=None,
    ):
        self.api_key = api_key
        self.endpoint = endpoint
        self.timeout = timeout
        self.logger = logger or get_logger_for_component("channel_search")
        self.ssl_context = ssl.create_default_context(cafile=certifi.where())

    async def search_channels(
        self, query: str, limit: int = 5, session: Optional[aiohttp.ClientSession] = None
    ) -> ChannelSearchResult:
        """Search channels matching ``query``.

        Returns an empty result when no API key is configured.

        Raises:
            ResolutionError: If the search request fails
        """
        if not self.api_key:
            self.logger.warning("Channel search skipped: no API key configured")
            return ChannelSearchResult()

        params = {
            "part": "snippet",
            "type": "channel",
            "q": query,
            "maxResults": str(max(1, limit)),
            "key": self.api_key,
        }

        try:
            if session is None:
                timeout = aiohttp.ClientTimeout(total=self.timeout)
                connector = aiohttp.TCPConnector(ssl=self.ssl_context)
                async with aiohttp.ClientSession(connector=connector, timeout=timeout) as own:
                    payload = await asyncio.wait_for(
                        self._request(own, params), timeout=self.timeout
                    )
            else:
                payload = await asyncio.wait_for(
                    self._request(session, params), timeout=self.timeout
                )
        except asyncio.TimeoutError as e:
            raise ResolutionError(
                f"Channel search timed out after {self.timeout}s",
                raw_input=query,
                error_code=ErrorCode.SOURCE_SEARCH_FAILED,
                recoverable=True,
            ) from e
        except (aiohttp.ClientError, ValueError) as e:
            raise ResolutionError(
                f"Channel search failed: {e}",
                raw_input=query,
                error_code=ErrorCode.SOURCE_SEARCH_FAILED,
                recoverable=True,
            ) from e

        candidates = self.parse_candidates(payload)
        self.logger.info(f"Channel search for '{query}' returned {len(candidates)} channels")

        if not candidates:
            return ChannelSearchResult()
        return ChannelSearchResult(best_match=candidates[0], alternates=candidates[1:limit])

    async def _request(self, session: aiohttp.ClientSession, params: Dict[str, str]) -> Dict[str, Any]:
        async with session.get(self.endpoint, params=params) as response:
            if response.status != 200:
                raise aiohttp.ClientResponseError(
                    response.request_info,
                    response.history,
                    status=response.status,
                    message=f"search returned HTTP {response.status}",
                )
            return await response.json()

    @staticmethod
    def parse_candidates(payload: Dict[str, Any]) -> List[ChannelCandidate]:
        """Turn a search response body into channel candidates."""
        candidates = []
        for item in payload.get("items") or []:
            snippet = item.get("snippet") or {}
            item_id = item.get("id") or {}
            channel_id = item_id.get("channelId") if isinstance(item_id, dict) else None
            channel_id = channel_id or snippet.get("channelId")
            if not is_valid_channel_id(channel_id):
                continue

            thumbnails = snippet.get("thumbnails") or {}
            thumbnail = None
            for size in ("high", "medium", "default"):
                if thumbnails.get(size, {}).get("url"):
                    thumbnail = thumbnails[size]["url"]
                    break

            candidates.append(
                ChannelCandidate(
                    channel_id=channel_id,
                    title=snippet.get("title") or snippet.get("channelTitle") or "",
                    description=snippet.get("description") or "",
                    thumbnail_url=thumbnail,
                    feed_url=video_feed_url(channel_id),
                )
            )
        return candidates
