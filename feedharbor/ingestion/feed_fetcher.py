"""
Feed Fetcher
============

Retrieves and parses feed documents with a short-lived cache and a two-tier
network strategy: a direct request first, then the feed proxy. Every
request carries an explicit timeout.
"""

import asyncio
import ssl
from abc import ABC, abstractmethod
from contextlib import asynccontextmanager
from typing import List, Optional, Tuple

import aiohttp
import certifi
import feedparser

from ..config.settings import FetchSettings
from ..utils.exceptions import FetchError
from ..utils.logging import get_logger_for_component, PerformanceLogger
from .feed_cache import FeedCache, FeedDocument

ACCEPT_HEADER = "application/rss+xml, application/atom+xml, application/xml, text/xml, */*"


class HttpDocumentClient(ABC):
    """Base for clients that return a raw feed document as bytes."""

    name = "http"

    def __init__(
        self,
        timeout: float = 8.0,
        max_bytes: int = 5 * 1024 * 1024,
        user_agent: str = "FeedHarbor/1.0",
        logger=None,
    ):
        self.timeout = timeout
        self.max_bytes = max_bytes
        self.user_agent = user_agent
        self.logger = logger or get_logger_for_component("feed_fetcher")
        self.ssl_context = ssl.create_default_context(cafile=certifi.where())

    @asynccontextmanager
    async def get_session(self):
        """Get configured aiohttp session."""
        connector = aiohttp.TCPConnector(
            ssl=self.ssl_context,
            limit_per_host=5,
            enable_cleanup_closed=True,
        )

        timeout = aiohttp.ClientTimeout(total=self.timeout)

        headers = {
            "User-Agent": self.user_agent,
            "Accept": ACCEPT_HEADER,
            "Accept-Encoding": "gzip, deflate",
        }

        async with aiohttp.ClientSession(
            connector=connector, timeout=timeout, headers=headers
        ) as session:
            yield session

    async def fetch(self, url: str, session: Optional[aiohttp.ClientSession] = None) -> bytes:
        """Fetch the raw document for ``url``.

        Raises:
            FetchError: kind ``timeout``, ``network`` or ``size-exceeded``
        """
        if session is None:
            async with self.get_session() as own_session:
                return await self._fetch_with_errors(url, own_session)
        return await self._fetch_with_errors(url, session)

    async def _fetch_with_errors(self, url: str, session: aiohttp.ClientSession) -> bytes:
        try:
            return await asyncio.wait_for(self._request(url, session), timeout=self.timeout)
        except FetchError:
            raise
        except (asyncio.TimeoutError, TimeoutError) as e:
            raise FetchError(
                f"{self.name} request timed out after {self.timeout}s",
                kind="timeout",
                feed_url=url,
            ) from e
        except (aiohttp.ClientError, OSError) as e:
            raise FetchError(
                f"{self.name} request failed: {e}", kind="network", feed_url=url
            ) from e

    @abstractmethod
    async def _request(self, url: str, session: aiohttp.ClientSession) -> bytes:
        """Issue the tier's request and return the response body."""

    async def _read_response(self, url: str, response) -> bytes:
        if response.status != 200:
            raise FetchError(
                f"{self.name} request returned HTTP {response.status}",
                kind="network",
                feed_url=url,
                context={"status": response.status},
            )

        declared = response.headers.get("Content-Length") if response.headers else None
        if declared and declared.isdigit() and int(declared) > self.max_bytes:
            raise FetchError(
                f"Document declares {declared} bytes, limit is {self.max_bytes}",
                kind="size-exceeded",
                feed_url=url,
            )

        body = await response.read()
        if len(body) > self.max_bytes:
            raise FetchError(
                f"Document is {len(body)} bytes, limit is {self.max_bytes}",
                kind="size-exceeded",
                feed_url=url,
            )
        return body


class DirectDocumentClient(HttpDocumentClient):
    """Fetches the feed straight from its host."""

    name = "direct"

    async def _request(self, url: str, session: aiohttp.ClientSession) -> bytes:
        async with session.get(url, allow_redirects=True) as response:
            return await self._read_response(url, response)


class ProxyDocumentClient(HttpDocumentClient):
    """Fetches the feed through the feed proxy (POST ``{"url": ...}``)."""

    name = "proxy"

    def __init__(self, proxy_url: str, **kwargs):
        super().__init__(**kwargs)
        self.proxy_url = proxy_url

    async def _request(self, url: str, session: aiohttp.ClientSession) -> bytes:
        async with session.post(self.proxy_url, json={"url": url}) as response:
            return await self._read_response(url, response)


def parse_document(
    url: str, body: bytes, max_entries: int, fetched_via: str
) -> FeedDocument:
    """Parse raw bytes with feedparser into a capped snapshot.

    Raises:
        FetchError: kind ``invalid-format`` when the body is not a feed
    """
    parsed = feedparser.parse(body)

    entries = list(getattr(parsed, "entries", None) or [])
    feed_meta = getattr(parsed, "feed", None) or {}

    if getattr(parsed, "bozo", False) and not entries:
        reason = getattr(parsed, "bozo_exception", None) or "invalid XML structure"
        raise FetchError(f"Feed parse error: {reason}", kind="invalid-format", feed_url=url)

    # feedparser leaves version empty for documents it does not recognize
    if not entries and (not feed_meta or not getattr(parsed, "version", "")):
        raise FetchError("Document contains no feed", kind="invalid-format", feed_url=url)

    return FeedDocument.snapshot(
        url=url,
        title=feed_meta.get("title"),
        entries=entries,
        max_entries=max_entries,
        fetched_via=fetched_via,
    )


class FeedFetcher:
    """Cached, two-tier feed document retrieval."""

    def __init__(
        self,
        settings: Optional[FetchSettings] = None,
        cache: Optional[FeedCache] = None,
        direct_client: Optional[HttpDocumentClient] = None,
        proxy_client: Optional[HttpDocumentClient] = None,
        logger=None,
    ):
        """Initialize feed fetcher.

        Args:
            settings: Fetch settings; defaults are used when omitted
            cache: Shared document cache
            direct_client: Client for the direct tier
            proxy_client: Client for the proxy tier; built from
                ``settings.proxy_url`` when omitted, skipped when neither is set
            logger: Logger adapter
        """
        self.settings = settings or FetchSettings()
        self.logger = logger or get_logger_for_component("feed_fetcher")
        self.cache = cache if cache is not None else FeedCache(self.settings.cache_ttl_seconds)

        client_options = dict(
            timeout=self.settings.request_timeout,
            max_bytes=self.settings.max_document_bytes,
            user_agent=self.settings.user_agent,
            logger=self.logger,
        )
        self.direct_client = direct_client or DirectDocumentClient(**client_options)
        if proxy_client is None and self.settings.proxy_url:
            proxy_client = ProxyDocumentClient(self.settings.proxy_url, **client_options)
        self.proxy_client = proxy_client

    def _tiers(self) -> List[Tuple[str, HttpDocumentClient]]:
        tiers = [("direct", self.direct_client)]
        if self.proxy_client is not None:
            tiers.append(("proxy", self.proxy_client))
        return tiers

    async def fetch(self, url: str, skip_cache: bool = False) -> FeedDocument:
        """Return the parsed document for ``url``.

        Args:
            url: Canonical feed URL
            skip_cache: Bypass a fresh cache entry

        Returns:
            Parsed document capped at ``cache_max_entries`` entries

        Raises:
            FetchError: When every tier fails; its kind is the last tier's
        """
        if not skip_cache:
            cached = self.cache.get(url)
            if cached is not None:
                self.logger.debug(f"Cache hit for {url}")
                return cached

        failures: List[FetchError] = []
        for tier_name, client in self._tiers():
            try:
                with PerformanceLogger(self.logger, f"{tier_name} fetch", feed_url=url):
                    body = await client.fetch(url)
                document = parse_document(
                    url, body, self.settings.cache_max_entries, tier_name
                )
            except FetchError as e:
                self.logger.warning(f"{tier_name} fetch failed for {url}: {e}")
                failures.append(e)
                continue

            self.cache.put(url, document)
            self.logger.info(
                f"Fetched {len(document.entries)} entries from {url} via {tier_name}"
            )
            return document

        last = failures[-1]
        raise FetchError(
            f"All fetch attempts failed for {url}: {last}",
            kind=last.kind,
            feed_url=url,
            context={"attempts": [failure.to_dict() for failure in failures]},
        ) from last
