"""
FeedHarbor Configuration System
===============================

Configuration management with environment variables and Pydantic models.
Environment variables override Field defaults with clear precedence.
"""

import os
from pathlib import Path
from typing import Optional
from enum import Enum

from pydantic import BaseModel, Field, field_validator
from pydantic_settings import BaseSettings

from ..utils.exceptions import ConfigurationError, ErrorCode


class LogLevel(str, Enum):
    """Available log levels."""
    DEBUG = "DEBUG"
    INFO = "INFO"
    WARNING = "WARNING"
    ERROR = "ERROR"
    CRITICAL = "CRITICAL"


class FetchSettings(BaseModel):
    """Feed document retrieval configuration."""
    request_timeout: float = Field(default=8.0, gt=0, le=120, description="Timeout per fetch attempt in seconds")
    cache_ttl_seconds: int = Field(default=300, ge=0, le=3600, description="Parsed feed cache lifetime")
    cache_max_entries: int = Field(default=50, ge=1, le=500, description="Entries kept per cached feed document")
    max_document_bytes: int = Field(default=5 * 1024 * 1024, ge=1024, description="Largest accepted feed document")
    proxy_url: Optional[str] = Field(default=None, description="Feed proxy endpoint used when direct fetch fails")
    user_agent: str = Field(
        default="FeedHarbor/1.0 (+https://github.com/feedharbor/feedharbor)",
        description="User-Agent header for outbound requests",
    )

    @field_validator("proxy_url")
    @classmethod
    def validate_proxy_url(cls, v):
        """Proxy must be an absolute http(s) URL when set."""
        if v in (None, ""):
            return None
        if not v.startswith(("http://", "https://")):
            raise ValueError("proxy_url must start with http:// or https://")
        return v


class ResolverSettings(BaseModel):
    """Source resolution configuration."""
    youtube_api_key: Optional[str] = Field(default=None, description="YouTube Data API key for channel search")
    search_endpoint: str = Field(
        default="https://www.googleapis.com/youtube/v3/search",
        description="Channel search endpoint",
    )
    search_timeout: float = Field(default=10.0, gt=0, le=60, description="Channel search timeout in seconds")
    max_alternates: int = Field(default=5, ge=0, le=25, description="Alternate channels returned with a match")


class IngestionSettings(BaseModel):
    """Normalization and persistence configuration."""
    batch_size: int = Field(default=20, ge=1, le=500, description="Items written per batch")
    max_description_length: int = Field(default=2000, ge=100, le=20000, description="Stored description length")


class RetentionSettings(BaseModel):
    """Default retention policy used when a request leaves a field unset."""
    older_than_days: int = Field(default=30, ge=1, le=3650, description="Age threshold for deletion")
    keep_favorites: bool = Field(default=True, description="Never delete favorited items")
    keep_read_later: bool = Field(default=True, description="Never delete items saved for later")


class DatabaseSettings(BaseModel):
    """Database configuration."""
    path: str = Field(default="data/feedharbor.db", description="SQLite database file path")
    pool_size: int = Field(default=5, ge=1, le=20, description="Connection pool size")
    privileged_writes: bool = Field(default=True, description="Allow the exclusive-lock write path")


class LoggingSettings(BaseModel):
    """Logging configuration."""
    level: LogLevel = Field(default=LogLevel.INFO, description="Global log level")
    file_path: Optional[str] = Field(default="logs/feedharbor.log", description="Log file path")
    max_file_size_mb: int = Field(default=10, ge=1, le=100, description="Max log file size in MB")
    backup_count: int = Field(default=5, ge=1, le=20, description="Number of log backup files")
    structured_logging: bool = Field(default=False, description="Use structured JSON logging")
    console_logging: bool = Field(default=True, description="Enable console logging")


class FeedHarborSettings(BaseSettings):
    """Main application settings."""

    fetch: FetchSettings = Field(default_factory=FetchSettings)
    resolver: ResolverSettings = Field(default_factory=ResolverSettings)
    ingestion: IngestionSettings = Field(default_factory=IngestionSettings)
    retention: RetentionSettings = Field(default_factory=RetentionSettings)
    database: DatabaseSettings = Field(default_factory=DatabaseSettings)
    logging: LoggingSettings = Field(default_factory=LoggingSettings)

    app_name: str = Field(default="FeedHarbor", description="Application name")
    version: str = Field(default="1.0.0", description="Application version")
    debug: bool = Field(default=False, description="Enable debug mode")

    model_config = {
        "env_file": ".env",
        "env_file_encoding": "utf-8",
        "case_sensitive": False,
        "env_nested_delimiter": "__",
        "env_prefix": "FEEDHARBOR_",
        "extra": "ignore",
    }

    def validate_configuration(self) -> None:
        """Validate complete configuration."""
        errors = []

        try:
            db_path = Path(self.database.path)
            db_path.parent.mkdir(parents=True, exist_ok=True)
        except OSError as e:
            errors.append(f"Invalid database path: {e}")

        if self.logging.file_path:
            try:
                log_path = Path(self.logging.file_path)
                log_path.parent.mkdir(parents=True, exist_ok=True)
            except OSError as e:
                errors.append(f"Invalid log file path: {e}")

        if errors:
            raise ConfigurationError(
                f"Configuration validation failed: {'; '.join(errors)}",
                error_code=ErrorCode.CONFIG_INVALID
            )

    def is_production_mode(self) -> bool:
        """Check if running in production mode."""
        return not self.debug and os.getenv("ENV", "development").lower() == "production"

    def get_effective_log_level(self) -> str:
        """Get effective log level considering debug mode."""
        if self.debug:
            return "DEBUG"
        return self.logging.level.value


def load_settings() -> FeedHarborSettings:
    """Load settings from environment variables and defaults.

    Environment variables override Pydantic Field defaults.

    Returns:
        Loaded and validated settings

    Raises:
        ConfigurationError: If configuration is invalid
    """
    from dotenv import load_dotenv
    load_dotenv()

    try:
        settings = FeedHarborSettings()
        settings.validate_configuration()
        return settings

    except ConfigurationError:
        raise
    except Exception as e:
        raise ConfigurationError(
            f"Failed to initialize settings: {e}",
            error_code=ErrorCode.CONFIG_INVALID
        ) from e


# Global settings instance
_settings: Optional[FeedHarborSettings] = None


def get_settings(reload: bool = False) -> FeedHarborSettings:
    """Get global settings instance (singleton pattern).

    Args:
        reload: Force reload of settings

    Returns:
        Global settings instance
    """
    global _settings

    if _settings is None or reload:
        _settings = load_settings()

    return _settings
