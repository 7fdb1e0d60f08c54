"""
Tests for Item Normalization
============================

Entry to Item conversion, drop reporting and HTML cleanup.
"""

from datetime import datetime, timezone
from unittest.mock import patch

import feedparser
import pytest

from feedharbor.database.models import Item, NormalizationDrop, Source, SourceKind
from feedharbor.ingestion.content_cleaner import ContentCleaner, extract_plain_text
from feedharbor.ingestion.feed_fetcher import parse_document
from feedharbor.ingestion.normalizer import ItemNormalizer

NOW = datetime(2024, 9, 10, 8, 30, tzinfo=timezone.utc)
VIDEO_ID = "dQw4w9WgXcQ"

SAMPLE_VIDEO_FEED = f"""<?xml version="1.0" encoding="UTF-8"?>
<feed xmlns:yt="http://www.youtube.com/xml/schemas/2015"
      xmlns:media="http://search.yahoo.com/mrss/"
      xmlns="http://www.w3.org/2005/Atom">
    <title>Example Channel</title>
    <entry>
        <id>yt:video:{VIDEO_ID}</id>
        <yt:videoId>{VIDEO_ID}</yt:videoId>
        <title>A regular upload</title>
        <link rel="alternate" href="https://www.youtube.com/watch?v={VIDEO_ID}"/>
        <author><name>Example Channel</name></author>
        <published>2024-09-05T12:00:00+00:00</published>
        <media:group>
            <media:description>Video description</media:description>
        </media:group>
    </entry>
    <entry>
        <id>yt:video:Short123456</id>
        <title>A short</title>
        <link rel="alternate" href="https://www.youtube.com/shorts/Short123456"/>
        <published>2024-09-06T12:00:00+00:00</published>
    </entry>
</feed>"""

YOUTUBE_MEDIA_GROUP_FEED = f"""<?xml version="1.0" encoding="UTF-8"?>
<feed xmlns:yt="http://www.youtube.com/xml/schemas/2015"
      xmlns:media="http://search.yahoo.com/mrss/"
      xmlns="http://www.w3.org/2005/Atom">
    <title>Example Channel</title>
    <entry>
        <id>yt:video:{VIDEO_ID}</id>
        <yt:videoId>{VIDEO_ID}</yt:videoId>
        <yt:channelId>UCabcdefghijklmnopqrstuv</yt:channelId>
        <title>A regular upload</title>
        <link rel="alternate" href="https://www.youtube.com/watch?v={VIDEO_ID}"/>
        <author><name>Example Channel</name></author>
        <published>2024-09-05T12:00:00+00:00</published>
        <media:group>
            <media:title>A regular upload</media:title>
            <media:content url="https://www.youtube.com/v/{VIDEO_ID}?version=3" type="application/x-shockwave-flash" width="640" height="390"/>
            <media:thumbnail url="https://i2.ytimg.com/vi/{VIDEO_ID}/hqdefault.jpg" width="480" height="360"/>
            <media:description>Video description</media:description>
        </media:group>
    </entry>
</feed>"""


@pytest.fixture
def normalizer():
    return ItemNormalizer(max_description_length=100)


@pytest.fixture
def syndication():
    return Source(
        owner_id="owner-1", kind=SourceKind.SYNDICATION, feed_url="https://example.com/feed.xml"
    )


@pytest.fixture
def channel():
    return Source(
        owner_id="owner-1",
        kind=SourceKind.VIDEO_CHANNEL,
        feed_url="https://www.youtube.com/feeds/videos.xml?channel_id=UCabcdefghijklmnopqrstuv",
    )


class TestContentCleaner:
    """HTML to plain text."""

    def test_strips_markup_and_scripts(self):
        html = """
        <p>This article has <strong>important information</strong>.</p>
        <script>alert('should be removed')</script>
        <p>More&nbsp;content &amp; a <a href="http://example.com">link</a>.</p>
        """
        text = extract_plain_text(html)

        assert "important information" in text
        assert "alert" not in text
        assert "&amp;" not in text
        assert "  " not in text

    def test_empty_input(self):
        assert ContentCleaner().extract_text_only("   ") == ""
        assert extract_plain_text(None) == ""

    def test_first_image_src_skips_data_urls(self):
        cleaner = ContentCleaner()
        html = '<img src="data:image/gif;base64,R0lG"><img src="pics/a.jpg">'
        assert cleaner.first_image_src(html, "https://example.com/post/") == "https://example.com/post/pics/a.jpg"
        assert cleaner.first_image_src("<p>no images</p>") is None


class TestItemNormalizer:
    """Entry normalization."""

    def test_syndication_entry(self, normalizer, syndication):
        entry = {
            "id": "https://example.com/a",
            "link": "https://example.com/a",
            "title": "  Hello\n world ",
            "summary": "<p>Body <b>text</b></p>",
            "author": "Jane",
            "published": "Thu, 05 Sep 2024 12:00:00 GMT",
        }

        item = normalizer.normalize(entry, syndication, NOW)

        assert isinstance(item, Item)
        assert item.canonical_id == "https://example.com/a"
        assert item.title == "Hello world"
        assert item.description == "Body text"
        assert item.author == "Jane"
        assert item.url == "https://example.com/a"
        assert item.published_at == datetime(2024, 9, 5, 12, 0, tzinfo=timezone.utc)
        assert item.ingested_at == NOW
        assert item.source_id == syndication.id
        assert not item.is_short

    def test_missing_title_and_date_use_defaults(self, normalizer, syndication, channel):
        item = normalizer.normalize({"id": "guid-1"}, syndication, NOW)
        assert item.title == "Untitled"
        assert item.published_at == NOW
        assert item.url is None

        video = normalizer.normalize({"yt_videoid": VIDEO_ID}, channel, NOW)
        assert video.title == "Untitled Video"
        assert video.url == f"https://www.youtube.com/watch?v={VIDEO_ID}"
        assert video.thumbnail_url == f"https://i.ytimg.com/vi/{VIDEO_ID}/hqdefault.jpg"

    def test_description_truncated(self, normalizer, syndication):
        entry = {"id": "guid-1", "summary": "word " * 100}
        item = normalizer.normalize(entry, syndication, NOW)
        assert len(item.description) == 100
        assert item.description.endswith("...")

    def test_entry_without_identifier_dropped(self, normalizer, syndication):
        result = normalizer.normalize({"title": "No id"}, syndication, NOW)

        assert isinstance(result, NormalizationDrop)
        assert result.title == "No id"
        assert result.source_id == syndication.id
        assert "syndication" in result.reason

    def test_video_entry_with_bad_id_dropped(self, normalizer, channel):
        entry = {"title": "Broken", "link": "https://www.youtube.com/watch?v=tooShort"}
        assert isinstance(normalizer.normalize(entry, channel, NOW), NormalizationDrop)

    def test_normalize_entries_keeps_order_and_reports_drops(self, normalizer, syndication):
        entries = [
            {"id": "a", "title": "A"},
            {"title": "dropped"},
            {"id": "b", "title": "B"},
        ]

        items, drops = normalizer.normalize_entries(entries, syndication, NOW)

        assert [item.canonical_id for item in items] == ["a", "b"]
        assert len(drops) == 1

    def test_parsed_video_feed(self, normalizer, channel):
        parsed = feedparser.parse(SAMPLE_VIDEO_FEED.encode("utf-8"))

        items, drops = normalizer.normalize_entries(parsed.entries, channel, NOW)

        assert drops == []
        assert [item.canonical_id for item in items] == [VIDEO_ID, "Short123456"]
        regular, short = items
        assert regular.author == "Example Channel"
        assert regular.published_at == datetime(2024, 9, 5, 12, 0, tzinfo=timezone.utc)
        assert not regular.is_short
        assert short.is_short
        assert short.thumbnail_url == "https://i.ytimg.com/vi/Short123456/hqdefault.jpg"

    def test_long_author_truncated(self, normalizer, syndication):
        entry = {"id": "guid-1", "title": "Long byline", "author": "a" * 600}

        item = normalizer.normalize(entry, syndication, NOW)

        assert isinstance(item, Item)
        assert len(item.author) == 500
        assert item.author.endswith("...")

    def test_invalid_item_values_dropped(self, normalizer, syndication):
        entries = [
            {"id": "a", "title": "A"},
            {"id": "b", "title": "B"},
        ]

        with patch("feedharbor.ingestion.normalizer.extract_thumbnail", side_effect=[None, 12345]):
            items, drops = normalizer.normalize_entries(entries, syndication, NOW)

        assert [item.canonical_id for item in items] == ["a"]
        assert len(drops) == 1
        assert drops[0].title == "B"
        assert "invalid" in drops[0].reason

    def test_youtube_media_group_uses_thumbnail(self, normalizer, channel):
        document = parse_document(
            channel.feed_url, YOUTUBE_MEDIA_GROUP_FEED.encode("utf-8"), 50, "direct"
        )

        item = normalizer.normalize(document.entries[0], channel, NOW)

        assert item.canonical_id == VIDEO_ID
        assert item.thumbnail_url == f"https://i2.ytimg.com/vi/{VIDEO_ID}/hqdefault.jpg"
