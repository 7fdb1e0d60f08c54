"""
PyTest Configuration and Fixtures
=================================

Shared fixtures and configuration for FeedHarbor tests.

Every database fixture builds its own temporary SQLite file so tests
never share rows.
"""

import pytest
import tempfile
import os
import sys
from datetime import datetime, timezone
from pathlib import Path

# Add project root to Python path
sys.path.insert(0, str(Path(__file__).parent.parent))

# Set test environment variables before any imports
_test_dir = Path(tempfile.gettempdir()) / "feedharbor_tests"
os.environ["FEEDHARBOR_DATABASE__PATH"] = str(_test_dir / "settings.db")
os.environ["FEEDHARBOR_LOGGING__FILE_PATH"] = str(_test_dir / "feedharbor.log")
os.environ["FEEDHARBOR_LOGGING__CONSOLE_LOGGING"] = "false"
os.environ["FEEDHARBOR_DEBUG"] = "true"


OWNER_ID = "owner-1"
OTHER_OWNER_ID = "owner-2"
VIDEO_CHANNEL_ID = "UCabcdefghijklmnopqrstuv"


# ============================================================================
# Database Fixtures
# ============================================================================


@pytest.fixture
def temp_db():
    """Create a temporary database file with the full schema."""
    from feedharbor.database.schema import DatabaseSchema

    with tempfile.NamedTemporaryFile(suffix=".db", delete=False) as f:
        db_path = f.name

    schema = DatabaseSchema(db_path)
    schema.create_tables()

    yield db_path

    # Cleanup, including WAL side files
    for suffix in ("", "-wal", "-shm"):
        try:
            os.unlink(db_path + suffix)
        except FileNotFoundError:
            pass


@pytest.fixture
def db_connection(temp_db):
    """Create a database connection manager for testing."""
    from feedharbor.database.connection import DatabaseConnection

    connection = DatabaseConnection(temp_db, pool_size=2)
    yield connection

    # Cleanup connections
    connection.close_all_connections()


@pytest.fixture
def source_repo(db_connection):
    from feedharbor.storage.source_repository import SourceRepository

    return SourceRepository(db_connection)


@pytest.fixture
def item_repo(db_connection):
    from feedharbor.storage.item_repository import ItemRepository

    return ItemRepository(db_connection)


@pytest.fixture
def interaction_repo(db_connection):
    from feedharbor.storage.interaction_repository import InteractionRepository

    return InteractionRepository(db_connection)


# ============================================================================
# Model Fixtures
# ============================================================================


@pytest.fixture
def syndication_source(source_repo):
    """A persisted syndication source owned by OWNER_ID."""
    from feedharbor.database.models import Source, SourceKind

    source = Source(
        owner_id=OWNER_ID,
        kind=SourceKind.SYNDICATION,
        feed_url="https://example.com/feed.xml",
        title="Example Blog",
    )
    source_repo.create_source(source)
    return source


@pytest.fixture
def video_source(source_repo):
    """A persisted video-channel source owned by OWNER_ID."""
    from feedharbor.database.models import Source, SourceKind

    source = Source(
        owner_id=OWNER_ID,
        kind=SourceKind.VIDEO_CHANNEL,
        feed_url=f"https://www.youtube.com/feeds/videos.xml?channel_id={VIDEO_CHANNEL_ID}",
        title="Example Channel",
    )
    source_repo.create_source(source)
    return source


@pytest.fixture
def make_items():
    """Factory building ``count`` syndication items for a source."""
    from feedharbor.database.models import Item

    def factory(source, count, published_at=None, prefix="post"):
        published_at = published_at or datetime(2024, 9, 5, 12, 0, tzinfo=timezone.utc)
        return [
            Item(
                source_id=source.id,
                kind=source.kind,
                canonical_id=f"https://example.com/{prefix}-{n}",
                title=f"Post {n}",
                url=f"https://example.com/{prefix}-{n}",
                published_at=published_at,
            )
            for n in range(count)
        ]

    return factory


def build_rss(entry_count, invalid_count=0, title="Test RSS Feed"):
    """Render an RSS 2.0 document; the first ``invalid_count`` items lack any id."""
    items = []
    for n in range(entry_count):
        if n < invalid_count:
            items.append(
                f"""
                <item>
                    <title>Entry without identity {n}</title>
                    <description>Nothing to key on</description>
                </item>"""
            )
        else:
            items.append(
                f"""
                <item>
                    <title>Article {n}</title>
                    <link>https://example.com/articles/{n}</link>
                    <guid>https://example.com/articles/{n}</guid>
                    <description>&lt;p&gt;Body of article {n}&lt;/p&gt;</description>
                    <pubDate>Thu, 05 Sep 2024 12:00:00 GMT</pubDate>
                </item>"""
            )

    return f"""<?xml version="1.0" encoding="UTF-8"?>
<rss version="2.0">
    <channel>
        <title>{title}</title>
        <link>https://example.com</link>
        <description>Test feed</description>
        {''.join(items)}
    </channel>
</rss>""".encode("utf-8")


@pytest.fixture
def sample_rss():
    return build_rss(3)


@pytest.fixture
def rss_builder():
    """Expose ``build_rss`` to tests."""
    return build_rss
