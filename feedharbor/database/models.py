"""
FeedHarbor Data Models
======================

Pydantic data models for sources, items and interactions, plus the result
records returned by the ingestion and cleanup entry points.
"""

from datetime import datetime, timezone
from enum import Enum
from typing import List, Optional, Dict, Any
from dataclasses import dataclass, field
from pydantic import BaseModel, Field, field_validator
import uuid

from ..utils.validators import ContentValidator


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


def to_db_timestamp(value: Optional[datetime]) -> Optional[str]:
    """Render a datetime as a sortable UTC ISO-8601 string for SQLite."""
    if value is None:
        return None
    if value.tzinfo is None:
        value = value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc).isoformat(timespec="seconds")


class SourceKind(str, Enum):
    """Kinds of content source."""
    SYNDICATION = "syndication"
    VIDEO_CHANNEL = "video-channel"

    @property
    def item_table(self) -> str:
        """Table holding items ingested from sources of this kind."""
        if self is SourceKind.VIDEO_CHANNEL:
            return "video_items"
        return "syndication_items"


class Source(BaseModel):
    """A feed subscribed to by exactly one owner."""
    id: str = Field(default_factory=lambda: str(uuid.uuid4()), description="Unique source ID")
    owner_id: str = Field(..., min_length=1, description="Owning user ID")
    kind: SourceKind = Field(..., description="Source kind")
    feed_url: str = Field(..., min_length=1, description="Canonical feed URL")
    title: Optional[str] = Field(default=None, max_length=500, description="Display title")
    last_synced_at: Optional[datetime] = Field(default=None, description="Last completed sync")
    deleted_at: Optional[datetime] = Field(default=None, description="Soft-delete marker")
    created_at: datetime = Field(default_factory=utc_now)

    @property
    def is_deleted(self) -> bool:
        return self.deleted_at is not None

    def __str__(self) -> str:
        return f"Source({self.kind.value}:{self.title or self.feed_url})"


class ChannelCandidate(BaseModel):
    """A channel returned by the channel-search collaborator."""
    channel_id: str
    title: str = ""
    description: str = ""
    thumbnail_url: Optional[str] = None
    feed_url: str


class SourceDescriptor(BaseModel):
    """Canonical description of a user-supplied source reference."""
    kind: SourceKind
    canonical_url: str
    raw_identifier: str
    title: Optional[str] = None
    alternates: List[ChannelCandidate] = Field(default_factory=list)


class Item(BaseModel):
    """Normalized content item ready for persistence."""
    id: str = Field(default_factory=lambda: str(uuid.uuid4()), description="Unique item ID")
    source_id: str = Field(..., description="Owning source ID")
    kind: SourceKind = Field(..., description="Kind of the owning source")
    canonical_id: str = Field(..., min_length=1, description="Dedup key within the source")
    title: str = Field(..., min_length=1, max_length=1000, description="Item title")
    description: Optional[str] = Field(default=None, description="Plain-text body")
    url: Optional[str] = Field(default=None, description="Canonical item URL")
    thumbnail_url: Optional[str] = Field(default=None, description="Thumbnail URL")
    author: Optional[str] = Field(
        default=None, max_length=ContentValidator.MAX_AUTHOR_LENGTH, description="Author name"
    )
    is_short: bool = Field(default=False, description="Short-form video permalink")
    published_at: datetime = Field(..., description="Publication time (UTC)")
    ingested_at: datetime = Field(default_factory=utc_now)

    @field_validator('title')
    @classmethod
    def validate_title(cls, v):
        v = v.strip()
        if not v:
            raise ValueError("Item title cannot be empty")
        return v

    @field_validator('published_at', 'ingested_at')
    @classmethod
    def ensure_utc(cls, v):
        """Store every timestamp as aware UTC."""
        if v.tzinfo is None:
            return v.replace(tzinfo=timezone.utc)
        return v.astimezone(timezone.utc)

    def to_db_params(self) -> tuple:
        """Positional parameters matching ``ITEM_COLUMNS``."""
        return (
            self.id,
            self.source_id,
            self.canonical_id,
            self.title,
            self.description,
            self.url,
            self.thumbnail_url,
            self.author,
            self.is_short,
            to_db_timestamp(self.published_at),
            to_db_timestamp(self.ingested_at),
        )

    def __str__(self) -> str:
        return f"Item({self.canonical_id}:{self.title[:50]})"


ITEM_COLUMNS = (
    "id",
    "source_id",
    "canonical_id",
    "title",
    "description",
    "url",
    "thumbnail_url",
    "author",
    "is_short",
    "published_at",
    "ingested_at",
)


class Interaction(BaseModel):
    """Per-owner flags for one item. The item may no longer exist."""
    id: Optional[int] = Field(default=None, description="Database primary key")
    owner_id: str = Field(..., min_length=1)
    item_id: str = Field(..., min_length=1)
    item_kind: SourceKind
    is_read: bool = False
    is_favorite: bool = False
    is_read_later: bool = False
    updated_at: datetime = Field(default_factory=utc_now)


@dataclass(frozen=True)
class NormalizationDrop:
    """An entry skipped by the normalizer because no canonical id was found."""
    reason: str
    source_id: str
    title: Optional[str] = None


@dataclass(frozen=True)
class WriteFailure:
    """One recorded persistence failure."""
    kind: str  # batch-failed, item-failed or permission-denied
    batch_number: int
    reason: str
    canonical_id: Optional[str] = None
    tier: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "kind": self.kind,
            "batch_number": self.batch_number,
            "canonical_id": self.canonical_id,
            "tier": self.tier,
            "reason": self.reason,
        }


@dataclass
class WriteResult:
    """Outcome of writing a list of new items."""
    inserted_count: int = 0
    errors: List[WriteFailure] = field(default_factory=list)


@dataclass
class IngestionResult:
    """Outcome of one source sync."""
    source_id: str
    inserted_count: int = 0
    total_fetched: int = 0
    dropped_count: int = 0
    errors: List[Dict[str, Any]] = field(default_factory=list)

    @property
    def success(self) -> bool:
        return not self.errors

    def to_dict(self) -> Dict[str, Any]:
        return {
            "source_id": self.source_id,
            "inserted_count": self.inserted_count,
            "total_fetched": self.total_fetched,
            "dropped_count": self.dropped_count,
            "errors": list(self.errors),
        }


class CleanupRequest(BaseModel):
    """Retention sweep parameters."""
    owner_id: str = Field(..., min_length=1)
    older_than_days: int = Field(default=30, ge=1, le=3650)
    keep_favorites: bool = True
    keep_read_later: bool = True
    dry_run: bool = False


class CleanupDetails(BaseModel):
    """Per-category counts from a retention sweep."""
    syndication_items: int = 0
    video_items: int = 0
    orphaned_interactions: int = 0


class CleanupResult(BaseModel):
    """Outcome of a retention sweep."""
    success: bool = True
    total_deleted: int = 0
    details: CleanupDetails = Field(default_factory=CleanupDetails)
    cutoff_date: datetime
    dry_run: bool = False
    errors: List[Dict[str, Any]] = Field(default_factory=list)
