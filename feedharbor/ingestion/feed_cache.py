"""
Feed Document Cache
===================

Short-lived, keyed cache of parsed feed documents. Entries are stored as
read-only snapshots so concurrent readers never observe a mutation;
concurrent writers for the same URL simply overwrite each other.
"""

import time
from dataclasses import dataclass, field
from datetime import datetime, timezone
from types import MappingProxyType
from typing import Callable, Dict, Iterable, Mapping, Optional, Tuple


@dataclass(frozen=True)
class FeedDocument:
    """A parsed, size-capped feed document."""
    url: str
    title: Optional[str]
    entries: Tuple[Mapping, ...]
    fetched_via: str = "direct"
    total_entries: int = 0
    fetched_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))

    @classmethod
    def snapshot(
        cls,
        url: str,
        title: Optional[str],
        entries: Iterable[Mapping],
        max_entries: int,
        fetched_via: str = "direct",
    ) -> "FeedDocument":
        """Build a read-only document holding at most ``max_entries`` entries."""
        entries = list(entries)
        capped = tuple(MappingProxyType(dict(entry)) for entry in entries[:max_entries])
        return cls(
            url=url,
            title=title,
            entries=capped,
            fetched_via=fetched_via,
            total_entries=len(entries),
        )


class FeedCache:
    """TTL cache keyed by feed URL."""

    def __init__(self, ttl_seconds: float = 300, clock: Callable[[], float] = time.monotonic):
        """Initialize cache.

        Args:
            ttl_seconds: Lifetime of a cached document
            clock: Monotonic time source, replaceable in tests
        """
        self.ttl_seconds = ttl_seconds
        self._clock = clock
        self._entries: Dict[str, Tuple[float, FeedDocument]] = {}

    def get(self, url: str) -> Optional[FeedDocument]:
        """Return the cached document for ``url`` if it has not expired."""
        cached = self._entries.get(url)
        if cached is None:
            return None
        expires_at, document = cached
        if self._clock() >= expires_at:
            self._entries.pop(url, None)
            return None
        return document

    def put(self, url: str, document: FeedDocument) -> None:
        self._entries[url] = (self._clock() + self.ttl_seconds, document)

    def invalidate(self, url: str) -> None:
        self._entries.pop(url, None)

    def clear(self) -> None:
        self._entries.clear()

    def __len__(self) -> int:
        return len(self._entries)
