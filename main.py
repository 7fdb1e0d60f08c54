#!/usr/bin/env python3
"""
FeedHarbor - Feed Ingestion and Retention
=========================================

Main application entry point with CLI interface for management and testing.

Usage:
    python main.py --help                         # Show all commands
    python main.py check-config                   # Validate configuration
    python main.py init-db                        # Initialize database
    python main.py resolve "@somechannel"         # Resolve a source reference
    python main.py add-source OWNER URL           # Subscribe an owner to a feed
    python main.py sync SOURCE_ID --owner OWNER   # Sync one source
    python main.py sync-all --owner OWNER         # Sync all sources of an owner
    python main.py cleanup --owner OWNER          # Run the retention sweep
"""

import sys
import asyncio
import logging
from pathlib import Path

import click
from rich.console import Console
from rich.table import Table

# Add project root to Python path
sys.path.insert(0, str(Path(__file__).parent))

from feedharbor.config.settings import get_settings
from feedharbor.database.schema import DatabaseSchema
from feedharbor.database.connection import get_db_manager
from feedharbor.database.models import CleanupRequest
from feedharbor.ingestion.channel_search import YouTubeChannelSearchClient
from feedharbor.ingestion.source_resolver import SourceResolver
from feedharbor.processing.pipeline import IngestionPipeline
from feedharbor.services.cleanup_service import CleanupService
from feedharbor.utils.logging import configure_application_logging
from feedharbor.utils.exceptions import FeedHarborError, get_user_friendly_message

console = Console()
logger = logging.getLogger(__name__)


def _setup(ctx):
    """Load settings and configure logging for a command."""
    settings = get_settings()
    configure_application_logging(
        log_level="DEBUG" if ctx.obj.get('debug') else settings.get_effective_log_level(),
        log_file=settings.logging.file_path,
        enable_console=settings.logging.console_logging,
        structured_logging=settings.logging.structured_logging,
        max_file_size=settings.logging.max_file_size_mb * 1024 * 1024,
        backup_count=settings.logging.backup_count,
    )
    return settings


def _db(settings):
    return get_db_manager(
        settings.database.path,
        settings.database.pool_size,
        settings.database.privileged_writes,
    )


def _resolver(settings) -> SourceResolver:
    search = YouTubeChannelSearchClient(
        api_key=settings.resolver.youtube_api_key,
        endpoint=settings.resolver.search_endpoint,
        timeout=settings.resolver.search_timeout,
    )
    return SourceResolver(search, max_alternates=settings.resolver.max_alternates)


def _fail(prefix: str, error: Exception) -> None:
    if isinstance(error, FeedHarborError):
        console.print(f"[bold red]❌ {prefix}: {get_user_friendly_message(error)}[/bold red]")
        console.print(f"[dim]{error}[/dim]")
    else:
        console.print(f"[bold red]❌ {prefix}: {error}[/bold red]")
    sys.exit(1)


@click.group(invoke_without_command=True)
@click.option('--debug', is_flag=True, help='Enable debug mode')
@click.pass_context
def cli(ctx, debug):
    """FeedHarbor - syndication and video-channel feed aggregation."""
    ctx.ensure_object(dict)
    ctx.obj['debug'] = debug

    if ctx.invoked_subcommand is None:
        # Show help if no subcommand provided
        click.echo(ctx.get_help())


@cli.command()
@click.pass_context
def check_config(ctx):
    """Validate configuration and environment variables."""
    console.print("[bold blue]🔧 Checking FeedHarbor Configuration[/bold blue]")

    try:
        settings = get_settings()

        table = Table(title="Configuration Status")
        table.add_column("Component", style="cyan")
        table.add_column("Status", style="green")
        table.add_column("Details")

        checks = [
            ("Database", _check_database_config, settings),
            ("Logging", _check_logging_config, settings),
            ("Fetching", _check_fetch_config, settings),
            ("Channel Search", _check_resolver_config, settings),
            ("Retention", _check_retention_config, settings),
        ]

        all_passed = True
        for name, check_func, config in checks:
            try:
                status, details = check_func(config)
                table.add_row(name, "✅ Valid" if status else "⚠️ Limited", details)
                if not status:
                    all_passed = False
            except Exception as e:
                table.add_row(name, "❌ Error", str(e))
                all_passed = False

        console.print(table)

        if all_passed:
            console.print("[bold green]✅ All configuration checks passed![/bold green]")
            sys.exit(0)
        else:
            console.print("[bold yellow]⚠️ Some components are limited or misconfigured[/bold yellow]")
            sys.exit(1)

    except FeedHarborError as e:
        _fail("Configuration error", e)


@cli.command()
@click.pass_context
def init_db(ctx):
    """Initialize database with schema."""
    console.print("[bold blue]🗄️ Initializing FeedHarbor Database[/bold blue]")

    try:
        settings = _setup(ctx)
        schema = DatabaseSchema(settings.database.path)
        schema.create_tables()

        if not schema.verify_schema():
            console.print("[bold red]❌ Database schema verification failed[/bold red]")
            sys.exit(1)

        console.print("[bold green]✅ Database initialized successfully![/bold green]")

        info = _db(settings).get_database_info()

        info_table = Table(title="Database Information")
        info_table.add_column("Property", style="cyan")
        info_table.add_column("Value", style="green")

        info_table.add_row("Database Path", settings.database.path)
        info_table.add_row("Size", f"{info['database_size_mb']:.2f} MB")
        info_table.add_row("Connection Pool", f"{info['total_connections']} connections")
        for table_name, count in info['table_counts'].items():
            info_table.add_row(f"Rows in {table_name}", str(count))

        console.print(info_table)

    except FeedHarborError as e:
        _fail("Database initialization error", e)


@cli.command()
@click.argument('raw')
@click.pass_context
def resolve(ctx, raw):
    """Resolve a feed URL, channel URL, handle or search text."""
    console.print(f"[bold blue]🔎 Resolving: {raw}[/bold blue]")

    try:
        settings = _setup(ctx)
        descriptor = asyncio.run(_resolver(settings).resolve(raw))
    except FeedHarborError as e:
        _fail("Resolution failed", e)
        return

    table = Table(title="Resolved Source")
    table.add_column("Property", style="cyan")
    table.add_column("Value", style="green")
    table.add_row("Kind", descriptor.kind.value)
    table.add_row("Feed URL", descriptor.canonical_url)
    table.add_row("Title", descriptor.title or "-")
    console.print(table)

    if descriptor.alternates:
        alt_table = Table(title="Other Matches")
        alt_table.add_column("Channel", style="cyan")
        alt_table.add_column("Feed URL")
        for candidate in descriptor.alternates:
            alt_table.add_row(candidate.title or candidate.channel_id, candidate.feed_url)
        console.print(alt_table)


@cli.command()
@click.argument('owner')
@click.argument('raw')
@click.option('--title', help='Display title for the source')
@click.pass_context
def add_source(ctx, owner, raw, title):
    """Resolve RAW and subscribe OWNER to it."""
    console.print(f"[bold blue]➕ Adding source for {owner}[/bold blue]")

    try:
        settings = _setup(ctx)
        pipeline = IngestionPipeline(_db(settings), settings)
        source = asyncio.run(pipeline.add_source(owner, raw, _resolver(settings), title))
    except FeedHarborError as e:
        _fail("Could not add source", e)
        return

    console.print(f"[bold green]✅ Source {source.id}[/bold green]")
    console.print(f"  Kind: {source.kind.value}")
    console.print(f"  Feed: {source.feed_url}")


@cli.command()
@click.argument('source_id')
@click.option('--owner', required=True, help='Owner of the source')
@click.option('--skip-cache', is_flag=True, help='Bypass the feed document cache')
@click.pass_context
def sync(ctx, source_id, owner, skip_cache):
    """Fetch one source and store its new items."""
    console.print(f"[bold blue]📡 Syncing source {source_id}[/bold blue]")

    try:
        settings = _setup(ctx)
        pipeline = IngestionPipeline(_db(settings), settings)
        result = asyncio.run(pipeline.sync_source(source_id, owner, skip_cache))
    except FeedHarborError as e:
        _fail("Sync failed", e)
        return

    _print_ingestion_results([result])
    if not result.success:
        sys.exit(1)


@cli.command()
@click.option('--owner', required=True, help='Owner whose sources are synced')
@click.option('--skip-cache', is_flag=True, help='Bypass the feed document cache')
@click.pass_context
def sync_all(ctx, owner, skip_cache):
    """Sync every active source of an owner."""
    console.print(f"[bold blue]📡 Syncing all sources for {owner}[/bold blue]")

    try:
        settings = _setup(ctx)
        pipeline = IngestionPipeline(_db(settings), settings)
        results = asyncio.run(pipeline.sync_owner_sources(owner, skip_cache))
    except FeedHarborError as e:
        _fail("Sync failed", e)
        return

    if not results:
        console.print("[yellow]No active sources[/yellow]")
        return
    _print_ingestion_results(results)


@cli.command()
@click.option('--owner', required=True, help='Owner whose items are swept')
@click.option('--older-than-days', type=int, default=None, help='Age threshold in days')
@click.option('--keep-favorites/--no-keep-favorites', default=None, help='Protect favorited items')
@click.option('--keep-read-later/--no-keep-read-later', default=None, help='Protect read-later items')
@click.option('--dry-run', is_flag=True, help='Show what would be cleaned without deleting')
@click.pass_context
def cleanup(ctx, owner, older_than_days, keep_favorites, keep_read_later, dry_run):
    """Delete an owner's items older than the retention threshold."""
    console.print("[bold blue]🧹 FeedHarbor Retention Cleanup[/bold blue]")

    try:
        settings = _setup(ctx)
        retention = settings.retention
        request = CleanupRequest(
            owner_id=owner,
            older_than_days=older_than_days if older_than_days is not None else retention.older_than_days,
            keep_favorites=retention.keep_favorites if keep_favorites is None else keep_favorites,
            keep_read_later=retention.keep_read_later if keep_read_later is None else keep_read_later,
            dry_run=dry_run,
        )
        result = asyncio.run(CleanupService(_db(settings)).cleanup(request))
    except FeedHarborError as e:
        _fail("Cleanup error", e)
        return

    if dry_run:
        console.print("[yellow]📋 Dry run mode - no changes were made[/yellow]")

    table = Table(title=f"Cleanup (cutoff {result.cutoff_date:%Y-%m-%d %H:%M} UTC)")
    table.add_column("Category", style="cyan")
    table.add_column("Would delete" if dry_run else "Deleted", style="green")
    table.add_row("Syndication items", str(result.details.syndication_items))
    table.add_row("Video items", str(result.details.video_items))
    table.add_row("Orphaned interactions", str(result.details.orphaned_interactions))
    console.print(table)

    for error in result.errors:
        console.print(f"[red]❌ {error['category']}: {error['message']}[/red]")

    if not result.success:
        sys.exit(1)
    console.print(f"[bold green]✅ {result.total_deleted} items total[/bold green]")


def _print_ingestion_results(results) -> None:
    table = Table(title="Sync Results")
    table.add_column("Source", style="cyan")
    table.add_column("Fetched")
    table.add_column("New", style="green")
    table.add_column("Dropped")
    table.add_column("Errors", style="red")

    for result in results:
        table.add_row(
            result.source_id,
            str(result.total_fetched),
            str(result.inserted_count),
            str(result.dropped_count),
            str(len(result.errors)),
        )
    console.print(table)

    for result in results:
        for error in result.errors:
            console.print(f"[red]  {result.source_id}: {error.get('error_message')}[/red]")


# Helper functions for configuration checks
def _check_database_config(settings) -> tuple[bool, str]:
    """Check database configuration."""
    try:
        db_path = Path(settings.database.path)
        db_path.parent.mkdir(parents=True, exist_ok=True)
        return True, f"Path: {settings.database.path}, Pool: {settings.database.pool_size}"
    except OSError as e:
        return False, str(e)


def _check_logging_config(settings) -> tuple[bool, str]:
    """Check logging configuration."""
    try:
        if settings.logging.file_path:
            log_path = Path(settings.logging.file_path)
            log_path.parent.mkdir(parents=True, exist_ok=True)
        return True, f"Level: {settings.logging.level.value}, Console: {settings.logging.console_logging}"
    except OSError as e:
        return False, str(e)


def _check_fetch_config(settings) -> tuple[bool, str]:
    fetch = settings.fetch
    proxy = fetch.proxy_url or "none"
    return True, f"Timeout: {fetch.request_timeout}s, Cache TTL: {fetch.cache_ttl_seconds}s, Proxy: {proxy}"


def _check_resolver_config(settings) -> tuple[bool, str]:
    if not settings.resolver.youtube_api_key:
        return False, "No API key; handles and free-text search disabled"
    return True, "API key configured"


def _check_retention_config(settings) -> tuple[bool, str]:
    retention = settings.retention
    return True, (
        f"Older than {retention.older_than_days} days, "
        f"keep favorites: {retention.keep_favorites}, keep read-later: {retention.keep_read_later}"
    )


if __name__ == "__main__":
    try:
        cli()
    except KeyboardInterrupt:
        console.print("\n[yellow]👋 FeedHarbor interrupted by user[/yellow]")
        sys.exit(130)
