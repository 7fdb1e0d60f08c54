"""
FeedHarbor Input Validators
===========================

Validation utilities for feed URLs, item text fields and identifiers.
"""

import re
from urllib.parse import urlparse, urlunparse
from typing import Optional

from .exceptions import ValidationError, ErrorCode


class URLValidator:
    """URL validation and normalization utilities."""

    ALLOWED_SCHEMES = {'http', 'https'}

    VIDEO_HOSTS = {
        'youtube.com',
        'www.youtube.com',
        'm.youtube.com',
        'music.youtube.com',
        'youtu.be',
        'www.youtu.be',
        'yt.be',
    }

    @classmethod
    def validate_feed_url(cls, url: str) -> str:
        """Validate and normalize a feed URL.

        Args:
            url: URL to validate

        Returns:
            Normalized URL (lower-cased scheme and host, fragment removed)

        Raises:
            ValidationError: If URL is invalid
        """
        if not url or not isinstance(url, str):
            raise ValidationError(
                "URL is required and must be a string",
                error_code=ErrorCode.VALIDATION_REQUIRED_FIELD,
                field_name="url"
            )

        url = url.strip()

        try:
            parsed = urlparse(url)
        except ValueError as e:
            raise ValidationError(
                f"Invalid URL format: {str(e)}",
                error_code=ErrorCode.VALIDATION_INVALID_FORMAT,
                field_name="url"
            ) from e

        if parsed.scheme.lower() not in cls.ALLOWED_SCHEMES:
            raise ValidationError(
                f"URL scheme must be {' or '.join(sorted(cls.ALLOWED_SCHEMES))}",
                error_code=ErrorCode.VALIDATION_INVALID_FORMAT,
                field_name="url"
            )

        if not parsed.netloc:
            raise ValidationError(
                "URL must include a hostname",
                error_code=ErrorCode.VALIDATION_INVALID_FORMAT,
                field_name="url"
            )

        return urlunparse(parsed._replace(
            scheme=parsed.scheme.lower(),
            netloc=parsed.netloc.lower(),
            path=parsed.path or '/',
            fragment=''
        ))

    @classmethod
    def is_http_url(cls, value: Optional[str]) -> bool:
        """True when ``value`` looks like an absolute http(s) URL."""
        if not value or not isinstance(value, str):
            return False
        try:
            parsed = urlparse(value.strip())
        except ValueError:
            return False
        return parsed.scheme.lower() in cls.ALLOWED_SCHEMES and bool(parsed.netloc)

    @classmethod
    def is_video_host(cls, url: str) -> bool:
        try:
            host = urlparse(url.strip()).netloc.lower()
        except ValueError:
            return False
        return host.split(':')[0] in cls.VIDEO_HOSTS


class ContentValidator:
    """Item text validation and sanitization utilities."""

    MAX_TITLE_LENGTH = 1000
    MAX_AUTHOR_LENGTH = 500

    @classmethod
    def validate_item_title(cls, title: Optional[str], default: str = "Untitled") -> str:
        """Sanitize an item title, falling back to ``default`` when blank."""
        if not title or not isinstance(title, str):
            return default

        title = cls._sanitize_text(title)
        if not title:
            return default

        if len(title) > cls.MAX_TITLE_LENGTH:
            title = title[:cls.MAX_TITLE_LENGTH - 3].rstrip() + "..."
        return title

    @classmethod
    def truncate(cls, text: Optional[str], max_length: int) -> Optional[str]:
        """Trim text to ``max_length`` characters, ending with an ellipsis."""
        if not text:
            return None
        if len(text) <= max_length:
            return text
        return text[:max_length - 3].rstrip() + "..."

    @classmethod
    def _sanitize_text(cls, text: str) -> str:
        """Sanitize text content."""
        # Remove control characters
        text = re.sub(r'[\x00-\x08\x0b\x0c\x0e-\x1f\x7f]', '', text)

        text = re.sub(r'\s+', ' ', text)

        return text.strip()


def validate_owner_id(owner_id: str) -> str:
    """Validate an owner identifier."""
    if not owner_id or not isinstance(owner_id, str) or not owner_id.strip():
        raise ValidationError(
            "Owner ID is required",
            error_code=ErrorCode.VALIDATION_REQUIRED_FIELD,
            field_name="owner_id"
        )
    return owner_id.strip()
