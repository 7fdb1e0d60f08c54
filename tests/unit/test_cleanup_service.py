"""
Tests for Retention Cleanup
===========================

Retention policy exclusions, dry runs, orphan removal and isolation of
the three sub-sweeps.
"""

import sqlite3
from datetime import datetime, timedelta, timezone
from unittest.mock import patch

import pytest

from feedharbor.database.models import CleanupRequest, Interaction, Item, Source, SourceKind
from feedharbor.services.cleanup_service import CleanupService
from feedharbor.utils.exceptions import DatabaseError

NOW = datetime(2024, 10, 1, tzinfo=timezone.utc)
OLD = NOW - timedelta(days=45)
RECENT = NOW - timedelta(days=5)


def video_item(source, video_id, published_at):
    return Item(
        source_id=source.id,
        kind=SourceKind.VIDEO_CHANNEL,
        canonical_id=video_id,
        title=f"Video {video_id}",
        url=f"https://www.youtube.com/watch?v={video_id}",
        published_at=published_at,
    )


def flag(repo, item, favorite=False, read_later=False, owner_id="owner-1"):
    repo.upsert_interaction(
        Interaction(
            owner_id=owner_id,
            item_id=item if isinstance(item, str) else item.id,
            item_kind=SourceKind.SYNDICATION if isinstance(item, str) else item.kind,
            is_favorite=favorite,
            is_read_later=read_later,
        )
    )


@pytest.fixture
def populated(db_connection, item_repo, interaction_repo, syndication_source, video_source, make_items):
    """Three old and one recent syndication item, two old and one recent video."""
    old_posts = make_items(syndication_source, 3, published_at=OLD, prefix="old")
    recent_posts = make_items(syndication_source, 1, published_at=RECENT, prefix="recent")
    item_repo.insert_items(old_posts + recent_posts, SourceKind.SYNDICATION)

    old_videos = [
        video_item(video_source, "AAAAAAAAAAA", OLD),
        video_item(video_source, "BBBBBBBBBBB", OLD),
    ]
    recent_videos = [video_item(video_source, "CCCCCCCCCCC", RECENT)]
    item_repo.insert_items(old_videos + recent_videos, SourceKind.VIDEO_CHANNEL)

    flag(interaction_repo, old_posts[0], favorite=True)
    flag(interaction_repo, old_videos[0], read_later=True)
    flag(interaction_repo, "long-gone-item")

    return {
        "old_posts": old_posts,
        "old_videos": old_videos,
        "syndication_source": syndication_source,
        "video_source": video_source,
    }


def counts(item_repo, interaction_repo, data):
    return (
        item_repo.count_items(data["syndication_source"].id, SourceKind.SYNDICATION),
        item_repo.count_items(data["video_source"].id, SourceKind.VIDEO_CHANNEL),
        interaction_repo.count_for_owner("owner-1"),
    )


class TestCleanupService:
    """Retention sweep behaviour."""

    @pytest.mark.asyncio
    async def test_default_policy_keeps_flagged_items(
        self, db_connection, item_repo, interaction_repo, populated
    ):
        result = await CleanupService(db_connection).cleanup(
            CleanupRequest(owner_id="owner-1"), now=NOW
        )

        assert result.success
        assert result.errors == []
        assert result.cutoff_date == NOW - timedelta(days=30)
        assert result.details.syndication_items == 2
        assert result.details.video_items == 1
        assert result.details.orphaned_interactions == 1
        assert result.total_deleted == 3

        assert counts(item_repo, interaction_repo, populated) == (2, 2, 2)
        remaining = item_repo.get_canonical_ids(populated["syndication_source"].id, SourceKind.SYNDICATION)
        assert populated["old_posts"][0].canonical_id in remaining

    @pytest.mark.asyncio
    async def test_dry_run_changes_nothing(self, db_connection, item_repo, interaction_repo, populated):
        before = counts(item_repo, interaction_repo, populated)

        result = await CleanupService(db_connection).cleanup(
            CleanupRequest(owner_id="owner-1", dry_run=True), now=NOW
        )

        assert result.dry_run
        assert result.details.syndication_items == 2
        assert result.details.video_items == 1
        assert result.details.orphaned_interactions == 1
        assert result.total_deleted == 3
        assert counts(item_repo, interaction_repo, populated) == before

    @pytest.mark.asyncio
    async def test_protection_can_be_disabled(self, db_connection, item_repo, interaction_repo, populated):
        request = CleanupRequest(owner_id="owner-1", keep_favorites=False, keep_read_later=False)

        result = await CleanupService(db_connection).cleanup(request, now=NOW)

        assert result.details.syndication_items == 3
        assert result.details.video_items == 2
        assert counts(item_repo, interaction_repo, populated)[:2] == (1, 1)

    @pytest.mark.asyncio
    async def test_older_than_days_moves_cutoff(self, db_connection, populated):
        request = CleanupRequest(owner_id="owner-1", older_than_days=60, dry_run=True)

        result = await CleanupService(db_connection).cleanup(request, now=NOW)

        assert result.total_deleted == 0
        assert result.cutoff_date == NOW - timedelta(days=60)

    @pytest.mark.asyncio
    async def test_other_owner_untouched(self, db_connection, item_repo, interaction_repo, populated):
        result = await CleanupService(db_connection).cleanup(
            CleanupRequest(owner_id="owner-2"), now=NOW
        )

        assert result.success
        assert result.total_deleted == 0
        assert result.details.orphaned_interactions == 0
        assert counts(item_repo, interaction_repo, populated) == (4, 3, 3)

    @pytest.mark.asyncio
    async def test_failing_sub_sweep_does_not_hide_others(self, db_connection, item_repo, populated):
        service = CleanupService(db_connection)
        real_find = service.items.find_expired_item_ids

        def find_expired(owner_id, kind, cutoff):
            if kind is SourceKind.VIDEO_CHANNEL:
                raise DatabaseError("video table unavailable")
            return real_find(owner_id, kind, cutoff)

        with patch.object(service.items, "find_expired_item_ids", side_effect=find_expired):
            result = await service.cleanup(CleanupRequest(owner_id="owner-1"), now=NOW)

        assert result.success
        assert result.details.syndication_items == 2
        assert result.details.video_items == 0
        assert result.details.orphaned_interactions == 1
        assert [(e["category"], e["kind"]) for e in result.errors] == [("video_items", "query-failed")]
        assert item_repo.count_items(populated["video_source"].id, SourceKind.VIDEO_CHANNEL) == 3

    @pytest.mark.asyncio
    async def test_delete_failure_is_reported(self, db_connection, populated):
        service = CleanupService(db_connection)

        with patch.object(service.items, "delete_items", side_effect=DatabaseError("locked")):
            result = await service.cleanup(CleanupRequest(owner_id="owner-1"), now=NOW)

        assert result.success
        assert sorted((e["category"], e["kind"]) for e in result.errors) == [
            ("syndication_items", "delete-failed"),
            ("video_items", "delete-failed"),
        ]
        assert result.details.orphaned_interactions == 1

    @pytest.mark.asyncio
    async def test_exclusion_lookup_failure_skips_item_sweeps(
        self, db_connection, item_repo, interaction_repo, populated
    ):
        service = CleanupService(db_connection)

        with patch.object(
            service.interactions, "get_protected_item_ids", side_effect=DatabaseError("boom")
        ):
            result = await service.cleanup(CleanupRequest(owner_id="owner-1"), now=NOW)

        assert result.success
        assert result.total_deleted == 0
        assert sorted(e["category"] for e in result.errors) == ["syndication_items", "video_items"]
        assert all(e["kind"] == "query-failed" for e in result.errors)
        assert result.details.orphaned_interactions == 1
        assert counts(item_repo, interaction_repo, populated)[:2] == (4, 3)

    @pytest.mark.asyncio
    async def test_unreachable_store(self, db_connection):
        service = CleanupService(db_connection)

        with patch.object(db_connection, "execute_one", side_effect=sqlite3.OperationalError("unable to open database file")):
            result = await service.cleanup(CleanupRequest(owner_id="owner-1"), now=NOW)

        assert not result.success
        assert result.total_deleted == 0
        assert result.errors[0]["category"] == "store"

    def test_request_validation(self):
        with pytest.raises(Exception):
            CleanupRequest(owner_id="owner-1", older_than_days=0)
        request = CleanupRequest(owner_id="owner-1")
        assert request.older_than_days == 30
        assert request.keep_favorites and request.keep_read_later

    @pytest.mark.asyncio
    async def test_interaction_on_other_owners_item_is_orphaned(
        self, db_connection, source_repo, item_repo, interaction_repo, make_items
    ):
        foreign_source = Source(
            owner_id="owner-2", kind=SourceKind.SYNDICATION, feed_url="https://other.example.com/rss"
        )
        source_repo.create_source(foreign_source)
        foreign_items = make_items(foreign_source, 1, published_at=RECENT, prefix="foreign")
        item_repo.insert_items(foreign_items, SourceKind.SYNDICATION)
        flag(interaction_repo, foreign_items[0], favorite=True)
        flag(interaction_repo, foreign_items[0], favorite=True, owner_id="owner-2")
        service = CleanupService(db_connection)

        preview = await service.cleanup(CleanupRequest(owner_id="owner-1", dry_run=True), now=NOW)
        result = await service.cleanup(CleanupRequest(owner_id="owner-1"), now=NOW)

        assert preview.details.orphaned_interactions == 1
        assert result.details.orphaned_interactions == 1
        assert interaction_repo.get_interaction("owner-1", foreign_items[0].id) is None
        assert interaction_repo.get_interaction("owner-2", foreign_items[0].id) is not None
        assert item_repo.count_items(foreign_source.id, SourceKind.SYNDICATION) == 1
