"""
Entry Field Extractors
======================

Pure functions that pull canonical ids, thumbnails and timestamps out of
feedparser entries. Each field is resolved by an ordered chain of
extractors; the first value accepted by the field's validity check wins.

Chains are plain tuples so the order is declared in one place and can be
tested or extended per source kind.
"""

import calendar
import re
from dataclasses import dataclass
from datetime import datetime, timezone
from email.utils import parsedate_to_datetime
from typing import Any, Callable, Iterable, Mapping, Optional, Tuple
from urllib.parse import parse_qs, urljoin, urlparse

from ..database.models import SourceKind
from ..utils.validators import URLValidator
from .content_cleaner import first_image_src

VIDEO_ID_PATTERN = re.compile(r"^[A-Za-z0-9_-]{11}$")
CHANNEL_ID_PATTERN = re.compile(r"^UC[A-Za-z0-9_-]{22}$")

VIDEO_FEED_URL = "https://www.youtube.com/feeds/videos.xml?channel_id={}"
VIDEO_WATCH_URL = "https://www.youtube.com/watch?v={}"
VIDEO_THUMBNAIL_URL = "https://i.ytimg.com/vi/{}/hqdefault.jpg"

_ID = r"([A-Za-z0-9_-]{11})"
_END = r"(?=[?&/#\"'<\s]|$)"

# Patterns that find a video id inside an arbitrary string
VIDEO_REFERENCE_PATTERNS = (
    re.compile(r"youtu\.be/" + _ID + _END),
    re.compile(r"youtube\.com/watch\?(?:[^\s\"'<]*&)?v=" + _ID + r"(?=[&#\"'<\s]|$)"),
    re.compile(r"youtube\.com/embed/" + _ID + _END),
    re.compile(r"youtube\.com/v/" + _ID + _END),
    re.compile(r"youtube\.com/shorts/" + _ID + _END),
    re.compile(r"youtube\.com/live/" + _ID + _END),
    re.compile(r"yt\.be/" + _ID + _END),
    re.compile(r"yt:video:" + _ID + r"(?![A-Za-z0-9_-])"),
)

THUMBNAIL_VIDEO_ID_PATTERN = re.compile(r"/vi(?:_webp)?/" + _ID + r"/")

MAX_SYNDICATION_ID_LENGTH = 2048

Extractor = Callable[..., Optional[Any]]


@dataclass(frozen=True)
class EntryContext:
    """Per-entry facts the thumbnail chain needs beyond the raw entry."""
    kind: SourceKind
    canonical_id: Optional[str] = None
    permalink: Optional[str] = None


def first_valid(
    chain: Iterable[Extractor], is_valid: Callable[[Any], bool], *args
) -> Optional[Any]:
    """Run extractors in order and return the first value ``is_valid`` accepts."""
    for extractor in chain:
        value = extractor(*args)
        if value is not None and is_valid(value):
            return value
    return None


# Validity rules


def is_valid_video_id(value: Any) -> bool:
    return isinstance(value, str) and bool(VIDEO_ID_PATTERN.match(value))


def is_valid_channel_id(value: Any) -> bool:
    return isinstance(value, str) and bool(CHANNEL_ID_PATTERN.match(value))


def is_valid_syndication_id(value: Any) -> bool:
    if not isinstance(value, str) or not value:
        return False
    return len(value) <= MAX_SYNDICATION_ID_LENGTH and not any(
        ch.isspace() for ch in value
    )


def is_valid_thumbnail(value: Any) -> bool:
    return isinstance(value, str) and value.startswith(("http://", "https://", "/"))


def is_valid_timestamp(value: Any) -> bool:
    return isinstance(value, datetime) and value.year >= 1970


# Video URL helpers


def extract_video_id(value: Optional[str]) -> Optional[str]:
    """Find a video id in a URL, ``yt:video:`` token or bare id.

    Returns None unless the id is exactly 11 characters of ``[A-Za-z0-9_-]``.
    """
    if not value or not isinstance(value, str):
        return None
    value = value.strip()
    if is_valid_video_id(value):
        return value
    for pattern in VIDEO_REFERENCE_PATTERNS:
        match = pattern.search(value)
        if match:
            return match.group(1)
    return None


def parse_video_permalink(url: Optional[str]) -> Optional[str]:
    """Read the video id out of a parsed permalink, without validating it."""
    if not url or not URLValidator.is_http_url(url):
        return None
    parsed = urlparse(url.strip())
    host = parsed.netloc.lower().split(":")[0]
    if host not in URLValidator.VIDEO_HOSTS:
        return None

    segments = [segment for segment in parsed.path.split("/") if segment]
    if host in ("youtu.be", "www.youtu.be", "yt.be"):
        return segments[0] if segments else None

    if parsed.path == "/watch" or parsed.path == "/watch/":
        values = parse_qs(parsed.query).get("v")
        return values[0] if values else None

    if len(segments) >= 2 and segments[0] in ("embed", "v", "shorts", "live"):
        return segments[1]

    return None


def is_short_permalink(url: Optional[str]) -> bool:
    return bool(url) and "/shorts/" in url


def video_feed_url(channel_id: str) -> str:
    return VIDEO_FEED_URL.format(channel_id)


def video_watch_url(video_id: str) -> str:
    return VIDEO_WATCH_URL.format(video_id)


def video_thumbnail_url(video_id: str) -> Optional[str]:
    if not is_valid_video_id(video_id):
        return None
    return VIDEO_THUMBNAIL_URL.format(video_id)


# Entry accessors


def entry_permalink(entry: Mapping) -> Optional[str]:
    """The entry's primary link, falling back to its first alternate link."""
    link = entry.get("link")
    if isinstance(link, str) and link.strip():
        return link.strip()
    for candidate in entry.get("links") or ():
        if isinstance(candidate, Mapping) and candidate.get("rel", "alternate") == "alternate":
            href = candidate.get("href")
            if href:
                return href.strip()
    return None


def entry_guid(entry: Mapping) -> Optional[str]:
    value = entry.get("id") or entry.get("guid")
    if isinstance(value, Mapping):
        value = value.get("value") or value.get("_")
    return value if isinstance(value, str) else None


def entry_body_html(entry: Mapping) -> Optional[str]:
    """HTML body: full content first, then summary, then description."""
    content = entry.get("content")
    if isinstance(content, list) and content:
        content = content[0]
    if isinstance(content, Mapping):
        content = content.get("value")
    if isinstance(content, str) and content.strip():
        return content

    for key in ("summary", "description"):
        value = entry.get(key)
        if isinstance(value, str) and value.strip():
            return value
    return None


def _url_from_media(value: Any) -> Optional[str]:
    """Accept a string, a single media object or a list of them."""
    if isinstance(value, list):
        value = value[0] if value else None
    if isinstance(value, str):
        return value.strip() or None
    if isinstance(value, Mapping):
        url = value.get("url") or value.get("href")
        return url.strip() if isinstance(url, str) and url.strip() else None
    return None


def _image_enclosure(entry: Mapping) -> Optional[str]:
    candidates = list(entry.get("enclosures") or ())
    candidates += [
        link for link in entry.get("links") or ()
        if isinstance(link, Mapping) and link.get("rel") == "enclosure"
    ]
    for enclosure in candidates:
        if not isinstance(enclosure, Mapping):
            continue
        mime = (enclosure.get("type") or "").lower()
        if mime.startswith("image/"):
            return enclosure.get("href") or enclosure.get("url")
    return None


# Canonical-id extractors, video-channel kind


def _video_id_field(entry: Mapping) -> Optional[str]:
    value = entry.get("yt_videoid")
    return value.strip() if isinstance(value, str) else None


def _structured_id_tail(entry: Mapping) -> Optional[str]:
    guid = entry_guid(entry)
    if not guid:
        return None
    return guid.rsplit(":", 1)[-1].strip()


def _parsed_permalink(entry: Mapping) -> Optional[str]:
    return parse_video_permalink(entry_permalink(entry))


def _scanned_permalink(entry: Mapping) -> Optional[str]:
    return extract_video_id(entry_permalink(entry))


def _scanned_guid(entry: Mapping) -> Optional[str]:
    return extract_video_id(entry_guid(entry))


def _scanned_free_text(entry: Mapping) -> Optional[str]:
    for key in ("summary", "description", "title"):
        value = entry.get(key)
        if not isinstance(value, str):
            continue
        for pattern in VIDEO_REFERENCE_PATTERNS:
            match = pattern.search(value)
            if match:
                return match.group(1)
    return None


def _thumbnail_embedded_id(entry: Mapping) -> Optional[str]:
    for key in ("media_thumbnail", "thumbnail", "media_content"):
        url = _url_from_media(entry.get(key))
        if url:
            match = THUMBNAIL_VIDEO_ID_PATTERN.search(url)
            if match:
                return match.group(1)
    return None


VIDEO_ID_CHAIN: Tuple[Extractor, ...] = (
    _video_id_field,
    _structured_id_tail,
    _parsed_permalink,
    _scanned_permalink,
    _scanned_guid,
    _scanned_free_text,
    _thumbnail_embedded_id,
)


# Canonical-id extractors, syndication kind


def _guid_as_is(entry: Mapping) -> Optional[str]:
    guid = entry_guid(entry)
    return guid.strip() if guid else None


def _normalized_permalink(entry: Mapping) -> Optional[str]:
    link = entry_permalink(entry)
    if not link or not URLValidator.is_http_url(link):
        return None
    return URLValidator.validate_feed_url(link)


def _first_enclosure(entry: Mapping) -> Optional[str]:
    for enclosure in entry.get("enclosures") or ():
        if isinstance(enclosure, Mapping):
            href = enclosure.get("href") or enclosure.get("url")
            if href:
                return href.strip()
    return None


SYNDICATION_ID_CHAIN: Tuple[Extractor, ...] = (
    _guid_as_is,
    _normalized_permalink,
    _first_enclosure,
)


CANONICAL_ID_CHAINS = {
    SourceKind.VIDEO_CHANNEL: (VIDEO_ID_CHAIN, is_valid_video_id),
    SourceKind.SYNDICATION: (SYNDICATION_ID_CHAIN, is_valid_syndication_id),
}


def extract_canonical_id(entry: Mapping, kind: SourceKind) -> Optional[str]:
    chain, is_valid = CANONICAL_ID_CHAINS[kind]
    return first_valid(chain, is_valid, entry)


# Thumbnail extractors


def _explicit_thumbnail(entry: Mapping, ctx: EntryContext) -> Optional[str]:
    return _url_from_media(entry.get("thumbnail"))


def _is_image_media(value: Any) -> bool:
    if not isinstance(value, Mapping):
        return isinstance(value, str)
    medium = (value.get("medium") or "").lower()
    mime = (value.get("type") or "").lower()
    return medium == "image" or mime.startswith("image/")


def _media_content(entry: Mapping, ctx: EntryContext) -> Optional[str]:
    # Video feeds list the player here; only image media count
    value = entry.get("media_content")
    if isinstance(value, list):
        value = next((media for media in value if _is_image_media(media)), None)
    elif not _is_image_media(value):
        return None
    return _url_from_media(value)


def _media_thumbnail(entry: Mapping, ctx: EntryContext) -> Optional[str]:
    return _url_from_media(entry.get("media_thumbnail"))


def _enclosure_image(entry: Mapping, ctx: EntryContext) -> Optional[str]:
    return _image_enclosure(entry)


def _kind_default(entry: Mapping, ctx: EntryContext) -> Optional[str]:
    if ctx.kind is SourceKind.VIDEO_CHANNEL and ctx.canonical_id:
        return video_thumbnail_url(ctx.canonical_id)
    return None


def _first_body_image(entry: Mapping, ctx: EntryContext) -> Optional[str]:
    return first_image_src(entry_body_html(entry), ctx.permalink)


THUMBNAIL_CHAIN: Tuple[Extractor, ...] = (
    _explicit_thumbnail,
    _media_content,
    _media_thumbnail,
    _enclosure_image,
    _kind_default,
    _first_body_image,
)


def extract_thumbnail(entry: Mapping, ctx: EntryContext) -> Optional[str]:
    """First valid thumbnail URL; root-relative paths resolve against the permalink."""
    url = first_valid(THUMBNAIL_CHAIN, is_valid_thumbnail, entry, ctx)
    if url and url.startswith("/") and ctx.permalink and URLValidator.is_http_url(ctx.permalink):
        url = urljoin(ctx.permalink, url)
    return url


# Timestamp extractors


def _from_struct(field: str) -> Extractor:
    def extractor(entry: Mapping) -> Optional[datetime]:
        value = entry.get(field)
        if not value:
            return None
        try:
            # feedparser normalizes *_parsed fields to UTC
            return datetime.fromtimestamp(calendar.timegm(value), tz=timezone.utc)
        except (TypeError, ValueError, OverflowError):
            return None

    extractor.__name__ = f"_from_{field}"
    return extractor


def parse_timestamp(value: Optional[str]) -> Optional[datetime]:
    """Parse an RFC 2822 or ISO 8601 string into an aware UTC datetime."""
    if not value or not isinstance(value, str):
        return None
    value = value.strip()

    parsed = None
    try:
        parsed = parsedate_to_datetime(value)
    except (TypeError, ValueError, IndexError):
        parsed = None

    if parsed is None:
        try:
            parsed = datetime.fromisoformat(value.replace("Z", "+00:00"))
        except ValueError:
            return None

    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed.astimezone(timezone.utc)


def _from_string(field: str) -> Extractor:
    def extractor(entry: Mapping) -> Optional[datetime]:
        return parse_timestamp(entry.get(field))

    extractor.__name__ = f"_from_{field}"
    return extractor


TIMESTAMP_CHAIN: Tuple[Extractor, ...] = (
    _from_struct("published_parsed"),
    _from_struct("updated_parsed"),
    _from_struct("created_parsed"),
    _from_string("published"),
    _from_string("updated"),
    _from_string("created"),
    _from_string("dc_date"),
)


def extract_published_at(entry: Mapping, now: Optional[datetime] = None) -> datetime:
    """Publication time of the entry; ingestion time when none is usable."""
    value = first_valid(TIMESTAMP_CHAIN, is_valid_timestamp, entry)
    if value is not None:
        return value
    return now or datetime.now(timezone.utc)
