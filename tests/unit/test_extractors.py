"""
Tests for Entry Field Extractors
================================

Canonical id, thumbnail and timestamp chains over raw feed entries.
"""

from datetime import datetime, timezone

import pytest

from feedharbor.database.models import SourceKind
from feedharbor.ingestion.extractors import (
    EntryContext,
    extract_canonical_id,
    extract_published_at,
    extract_thumbnail,
    extract_video_id,
    first_valid,
    is_short_permalink,
    is_valid_channel_id,
    parse_timestamp,
    parse_video_permalink,
    video_thumbnail_url,
)

VIDEO_ID = "dQw4w9WgXcQ"
NOW = datetime(2024, 9, 10, 8, 30, tzinfo=timezone.utc)


class TestChannelIdValidity:
    """Channel ids are UC followed by exactly 22 characters of [A-Za-z0-9_-]."""

    def test_accepts_canonical_ids(self):
        assert is_valid_channel_id("UCabcdefghijklmnopqrstuv")
        assert is_valid_channel_id("UC_x5XG1OV2P6uZZ5FSM9Ttw")

    @pytest.mark.parametrize(
        "value",
        ["UC" + "a" * 21, "UC" + "a" * 23, "UC" + "\u00e9" * 22, "UX" + "a" * 22, None],
    )
    def test_rejects_malformed_ids(self, value):
        assert not is_valid_channel_id(value)


class TestVideoIdExtraction:
    """Video ids must be exactly 11 characters of [A-Za-z0-9_-]."""

    @pytest.mark.parametrize(
        "value",
        [
            VIDEO_ID,
            f"https://www.youtube.com/watch?v={VIDEO_ID}",
            f"https://www.youtube.com/watch?feature=share&v={VIDEO_ID}&t=10",
            f"https://youtu.be/{VIDEO_ID}?si=abc",
            f"https://www.youtube.com/embed/{VIDEO_ID}",
            f"https://www.youtube.com/v/{VIDEO_ID}",
            f"https://www.youtube.com/shorts/{VIDEO_ID}",
            f"https://www.youtube.com/live/{VIDEO_ID}",
            f"https://yt.be/{VIDEO_ID}",
            f"yt:video:{VIDEO_ID}",
        ],
    )
    def test_recognized_forms(self, value):
        assert extract_video_id(value) == VIDEO_ID

    @pytest.mark.parametrize(
        "value",
        [
            "dQw4w9WgXc",  # 10 characters
            "dQw4w9WgXcQQ",  # 12 characters
            "https://youtu.be/dQw4w9WgXcQQ",
            "https://www.youtube.com/watch?v=dQw4w9WgXc",
            "yt:video:dQw4w9WgXcQQ",
            "https://example.com/watch?v=dQw4w9WgXcQ",
            "",
            None,
        ],
    )
    def test_rejected_forms(self, value):
        assert extract_video_id(value) is None

    def test_parse_permalink_reads_query_and_path(self):
        assert parse_video_permalink(f"https://www.youtube.com/watch?v={VIDEO_ID}") == VIDEO_ID
        assert parse_video_permalink(f"https://youtu.be/{VIDEO_ID}") == VIDEO_ID
        assert parse_video_permalink("https://example.com/watch?v=x") is None

    def test_short_permalink(self):
        assert is_short_permalink(f"https://www.youtube.com/shorts/{VIDEO_ID}")
        assert not is_short_permalink(f"https://www.youtube.com/watch?v={VIDEO_ID}")
        assert not is_short_permalink(None)


class TestCanonicalIdChains:
    """First valid extractor wins, in declared order."""

    def test_video_id_field_first(self):
        entry = {
            "yt_videoid": VIDEO_ID,
            "id": "yt:video:AAAAAAAAAAA",
            "link": "https://www.youtube.com/watch?v=BBBBBBBBBBB",
        }
        assert extract_canonical_id(entry, SourceKind.VIDEO_CHANNEL) == VIDEO_ID

    def test_structured_id_tail(self):
        entry = {"id": f"yt:video:{VIDEO_ID}"}
        assert extract_canonical_id(entry, SourceKind.VIDEO_CHANNEL) == VIDEO_ID

    def test_invalid_field_falls_through_to_permalink(self):
        entry = {
            "yt_videoid": "tooLongVideoId",
            "link": f"https://www.youtube.com/watch?v={VIDEO_ID}",
        }
        assert extract_canonical_id(entry, SourceKind.VIDEO_CHANNEL) == VIDEO_ID

    def test_free_text_scan(self):
        entry = {
            "title": "New upload",
            "summary": f'Watch it <a href="https://youtu.be/{VIDEO_ID}">here</a>',
        }
        assert extract_canonical_id(entry, SourceKind.VIDEO_CHANNEL) == VIDEO_ID

    def test_thumbnail_embedded_id_last(self):
        entry = {
            "title": "Upload",
            "media_thumbnail": [{"url": f"https://i.ytimg.com/vi/{VIDEO_ID}/hqdefault.jpg"}],
        }
        assert extract_canonical_id(entry, SourceKind.VIDEO_CHANNEL) == VIDEO_ID

    def test_no_video_id(self):
        entry = {"title": "Nothing here", "link": "https://example.com/post"}
        assert extract_canonical_id(entry, SourceKind.VIDEO_CHANNEL) is None

    def test_syndication_guid_as_is(self):
        entry = {"id": "tag:example.com,2024:post-1", "link": "https://example.com/a"}
        assert extract_canonical_id(entry, SourceKind.SYNDICATION) == "tag:example.com,2024:post-1"

    def test_syndication_normalized_permalink(self):
        entry = {"link": "HTTPS://Example.com/a#comments"}
        assert extract_canonical_id(entry, SourceKind.SYNDICATION) == "https://example.com/a"

    def test_syndication_guid_with_whitespace_rejected(self):
        entry = {"id": "not a usable id", "link": "https://example.com/a"}
        assert extract_canonical_id(entry, SourceKind.SYNDICATION) == "https://example.com/a"

    def test_syndication_enclosure(self):
        entry = {"enclosures": [{"href": "https://cdn.example.com/ep1.mp3", "type": "audio/mpeg"}]}
        assert extract_canonical_id(entry, SourceKind.SYNDICATION) == "https://cdn.example.com/ep1.mp3"

    def test_syndication_nothing(self):
        assert extract_canonical_id({"title": "Orphan"}, SourceKind.SYNDICATION) is None

    def test_first_valid_skips_rejected_values(self):
        chain = (lambda: None, lambda: "bad", lambda: "good")
        assert first_valid(chain, lambda v: v == "good") == "good"


class TestThumbnailChain:
    """Thumbnail precedence and URL resolution."""

    def test_explicit_thumbnail_wins(self):
        entry = {
            "thumbnail": "https://img.example.com/explicit.jpg",
            "media_content": [{"url": "https://img.example.com/content.jpg", "medium": "image"}],
            "media_thumbnail": [{"url": "https://img.example.com/thumb.jpg"}],
        }
        ctx = EntryContext(kind=SourceKind.SYNDICATION)
        assert extract_thumbnail(entry, ctx) == "https://img.example.com/explicit.jpg"

    def test_media_content_before_media_thumbnail(self):
        entry = {
            "media_content": [{"url": "https://img.example.com/content.jpg", "medium": "image"}],
            "media_thumbnail": [{"url": "https://img.example.com/thumb.jpg"}],
        }
        ctx = EntryContext(kind=SourceKind.SYNDICATION)
        assert extract_thumbnail(entry, ctx) == "https://img.example.com/content.jpg"

    def test_non_image_media_content_skipped(self):
        entry = {
            "media_content": [
                {
                    "url": f"https://www.youtube.com/v/{VIDEO_ID}?version=3",
                    "type": "application/x-shockwave-flash",
                    "width": "640",
                    "height": "390",
                }
            ],
            "media_thumbnail": [{"url": f"https://i1.ytimg.com/vi/{VIDEO_ID}/hqdefault.jpg"}],
        }
        ctx = EntryContext(kind=SourceKind.VIDEO_CHANNEL, canonical_id=VIDEO_ID)
        assert extract_thumbnail(entry, ctx) == f"https://i1.ytimg.com/vi/{VIDEO_ID}/hqdefault.jpg"

    def test_media_content_picks_image_by_mime_type(self):
        entry = {
            "media_content": [
                {"url": "https://cdn.example.com/clip.mp4", "type": "video/mp4"},
                {"url": "https://cdn.example.com/still.jpg", "type": "image/jpeg"},
            ]
        }
        ctx = EntryContext(kind=SourceKind.SYNDICATION)
        assert extract_thumbnail(entry, ctx) == "https://cdn.example.com/still.jpg"

    def test_invalid_candidate_skipped(self):
        entry = {
            "thumbnail": "javascript:alert(1)",
            "media_thumbnail": [{"url": "https://img.example.com/thumb.jpg"}],
        }
        ctx = EntryContext(kind=SourceKind.SYNDICATION)
        assert extract_thumbnail(entry, ctx) == "https://img.example.com/thumb.jpg"

    def test_image_enclosure(self):
        entry = {
            "enclosures": [
                {"href": "https://cdn.example.com/ep.mp3", "type": "audio/mpeg"},
                {"href": "https://cdn.example.com/cover.png", "type": "image/png"},
            ]
        }
        ctx = EntryContext(kind=SourceKind.SYNDICATION)
        assert extract_thumbnail(entry, ctx) == "https://cdn.example.com/cover.png"

    def test_video_default_thumbnail(self):
        ctx = EntryContext(kind=SourceKind.VIDEO_CHANNEL, canonical_id=VIDEO_ID)
        assert extract_thumbnail({}, ctx) == video_thumbnail_url(VIDEO_ID)
        assert video_thumbnail_url(VIDEO_ID) == f"https://i.ytimg.com/vi/{VIDEO_ID}/hqdefault.jpg"

    def test_video_default_beats_body_image(self):
        entry = {"summary": '<img src="https://img.example.com/body.jpg">'}
        ctx = EntryContext(kind=SourceKind.VIDEO_CHANNEL, canonical_id=VIDEO_ID)
        assert extract_thumbnail(entry, ctx) == video_thumbnail_url(VIDEO_ID)

    def test_first_body_image_resolved_against_permalink(self):
        entry = {"summary": '<p><img src="data:image/png;base64,AAA"><img src="/img/a.png"></p>'}
        ctx = EntryContext(
            kind=SourceKind.SYNDICATION, permalink="https://example.com/posts/1"
        )
        assert extract_thumbnail(entry, ctx) == "https://example.com/img/a.png"

    def test_root_relative_explicit_thumbnail(self):
        entry = {"thumbnail": "/thumbs/1.jpg"}
        ctx = EntryContext(kind=SourceKind.SYNDICATION, permalink="https://example.com/posts/1")
        assert extract_thumbnail(entry, ctx) == "https://example.com/thumbs/1.jpg"

    def test_no_thumbnail(self):
        ctx = EntryContext(kind=SourceKind.SYNDICATION)
        assert extract_thumbnail({"summary": "plain text"}, ctx) is None


class TestTimestampChain:
    """Publication time extraction."""

    def test_parsed_struct_first(self):
        entry = {
            "published_parsed": datetime(2024, 9, 5, 12, 0).timetuple(),
            "updated": "2024-09-06T00:00:00Z",
        }
        assert extract_published_at(entry, NOW) == datetime(2024, 9, 5, 12, 0, tzinfo=timezone.utc)

    def test_rfc2822_string(self):
        entry = {"published": "Thu, 05 Sep 2024 14:00:00 +0200"}
        assert extract_published_at(entry, NOW) == datetime(2024, 9, 5, 12, 0, tzinfo=timezone.utc)

    def test_iso_string_converted_to_utc(self):
        entry = {"updated": "2024-09-05T14:00:00+02:00"}
        result = extract_published_at(entry, NOW)
        assert result == datetime(2024, 9, 5, 12, 0, tzinfo=timezone.utc)
        assert result.tzinfo == timezone.utc

    def test_pre_epoch_rejected(self):
        entry = {
            "published": "Mon, 01 Jan 1900 00:00:00 GMT",
            "dc_date": "2024-09-05T12:00:00Z",
        }
        assert extract_published_at(entry, NOW) == datetime(2024, 9, 5, 12, 0, tzinfo=timezone.utc)

    def test_falls_back_to_now(self):
        assert extract_published_at({"published": "someday"}, NOW) == NOW

    def test_parse_timestamp_naive_iso_is_utc(self):
        assert parse_timestamp("2024-09-05T12:00:00") == datetime(
            2024, 9, 5, 12, 0, tzinfo=timezone.utc
        )
        assert parse_timestamp("garbage") is None
        assert parse_timestamp(None) is None
