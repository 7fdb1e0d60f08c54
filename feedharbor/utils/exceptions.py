"""
FeedHarbor Custom Exceptions
============================

Custom exception hierarchy for FeedHarbor with error codes, context
information, and user-friendly error messages.
"""

from typing import Optional, Dict, Any
from enum import Enum


class ErrorCode(str, Enum):
    """Error codes for categorizing exceptions."""

    # Configuration errors (C001-C099)
    CONFIG_INVALID = "C001"
    CONFIG_MISSING = "C002"
    CONFIG_PARSE_ERROR = "C003"

    # Database errors (D001-D099)
    DATABASE_CONNECTION = "D001"
    DATABASE_SCHEMA = "D002"
    DATABASE_CONSTRAINT = "D003"
    DATABASE_TRANSACTION = "D004"
    DATABASE_ERROR = "D006"

    # Source resolution errors (S001-S099)
    SOURCE_UNRESOLVABLE = "S001"
    SOURCE_NOT_FOUND = "S002"
    SOURCE_SEARCH_FAILED = "S003"

    # Feed fetch errors (F001-F099)
    FEED_FETCH_TIMEOUT = "F002"
    FEED_PARSE_ERROR = "F003"
    FEED_NETWORK_ERROR = "F004"
    FEED_TOO_LARGE = "F007"

    # Persistence errors (W001-W099)
    WRITE_BATCH_FAILED = "W001"
    WRITE_ITEM_FAILED = "W002"
    WRITE_PERMISSION_DENIED = "W003"

    # Retention sweep errors (R001-R099)
    SWEEP_QUERY_FAILED = "R001"
    SWEEP_DELETE_FAILED = "R002"

    # Validation errors (V001-V099)
    VALIDATION_REQUIRED_FIELD = "V001"
    VALIDATION_INVALID_FORMAT = "V002"
    VALIDATION_OUT_OF_RANGE = "V003"


class FeedHarborError(Exception):
    """Base exception for all FeedHarbor errors."""

    def __init__(
        self,
        message: str,
        error_code: Optional[ErrorCode] = None,
        context: Optional[Dict[str, Any]] = None,
        user_message: Optional[str] = None,
        recoverable: bool = False,
    ):
        """Initialize FeedHarbor error.

        Args:
            message: Technical error message for logging
            error_code: Categorized error code
            context: Additional context information
            user_message: User-friendly error message
            recoverable: Whether the error is recoverable
        """
        super().__init__(message)
        self.error_code = error_code
        self.context = context or {}
        self.user_message = user_message or message
        self.recoverable = recoverable

    def to_dict(self) -> Dict[str, Any]:
        """Convert exception to dictionary for logging/serialization."""
        return {
            "error_type": self.__class__.__name__,
            "error_code": self.error_code.value if self.error_code else None,
            "error_message": str(self),
            "user_message": self.user_message,
            "context": self.context,
            "recoverable": self.recoverable,
        }

    def __str__(self) -> str:
        """String representation with error code."""
        if self.error_code:
            return f"[{self.error_code.value}] {super().__str__()}"
        return super().__str__()


def _passthrough(kwargs: Dict[str, Any]) -> Dict[str, Any]:
    return {
        k: v
        for k, v in kwargs.items()
        if k not in ["context", "error_code", "user_message", "recoverable"]
    }


class ConfigurationError(FeedHarborError):
    """Configuration-related errors."""

    def __init__(self, message: str, config_key: Optional[str] = None, **kwargs):
        """Initialize configuration error.

        Args:
            message: Error message
            config_key: Configuration key that caused the error
            **kwargs: Additional arguments for FeedHarborError
        """
        context = kwargs.get("context", {})
        if config_key:
            context["config_key"] = config_key

        super().__init__(
            message=message,
            error_code=kwargs.get("error_code", ErrorCode.CONFIG_INVALID),
            context=context,
            user_message=kwargs.get("user_message", f"Configuration error: {message}"),
            recoverable=kwargs.get("recoverable", False),
            **_passthrough(kwargs),
        )


class DatabaseError(FeedHarborError):
    """Database-related errors."""

    def __init__(self, message: str, query: Optional[str] = None, **kwargs):
        """Initialize database error.

        Args:
            message: Error message
            query: SQL query that caused the error
            **kwargs: Additional arguments for FeedHarborError
        """
        context = kwargs.get("context", {})
        if query:
            context["query"] = query

        super().__init__(
            message=message,
            error_code=kwargs.get("error_code", ErrorCode.DATABASE_CONNECTION),
            context=context,
            user_message=kwargs.get("user_message", "Database operation failed"),
            recoverable=kwargs.get("recoverable", True),
            **_passthrough(kwargs),
        )


class ValidationError(FeedHarborError):
    """Data validation errors."""

    def __init__(self, message: str, field_name: Optional[str] = None, **kwargs):
        context = kwargs.get("context", {})
        if field_name:
            context["field_name"] = field_name

        super().__init__(
            message=message,
            error_code=kwargs.get("error_code", ErrorCode.VALIDATION_INVALID_FORMAT),
            context=context,
            user_message=kwargs.get(
                "user_message", f"Invalid {field_name or 'input'}: {message}"
            ),
            recoverable=kwargs.get("recoverable", False),
            **_passthrough(kwargs),
        )


class ResolutionError(FeedHarborError):
    """Raised when a user-supplied source reference cannot be resolved."""

    def __init__(self, message: str, raw_input: Optional[str] = None, **kwargs):
        """Initialize resolution error.

        Args:
            message: Error message
            raw_input: The string that could not be resolved
            **kwargs: Additional arguments for FeedHarborError
        """
        context = kwargs.get("context", {})
        if raw_input is not None:
            context["raw_input"] = raw_input

        super().__init__(
            message=message,
            error_code=kwargs.get("error_code", ErrorCode.SOURCE_UNRESOLVABLE),
            context=context,
            user_message=kwargs.get(
                "user_message", "Could not find a feed for that address"
            ),
            recoverable=kwargs.get("recoverable", False),
            **_passthrough(kwargs),
        )


class FetchError(FeedHarborError):
    """Feed retrieval and parsing errors.

    ``kind`` is one of ``timeout``, ``network``, ``invalid-format`` or
    ``size-exceeded``.
    """

    KINDS = ("timeout", "network", "invalid-format", "size-exceeded")

    _CODES = {
        "timeout": ErrorCode.FEED_FETCH_TIMEOUT,
        "network": ErrorCode.FEED_NETWORK_ERROR,
        "invalid-format": ErrorCode.FEED_PARSE_ERROR,
        "size-exceeded": ErrorCode.FEED_TOO_LARGE,
    }

    def __init__(
        self,
        message: str,
        kind: str = "network",
        feed_url: Optional[str] = None,
        **kwargs,
    ):
        """Initialize fetch error.

        Args:
            message: Error message
            kind: Failure kind
            feed_url: Feed URL that caused the error
            **kwargs: Additional arguments for FeedHarborError
        """
        if kind not in self.KINDS:
            raise ValueError(f"Unknown fetch error kind: {kind}")
        self.kind = kind

        context = kwargs.get("context", {})
        context["kind"] = kind
        if feed_url:
            context["feed_url"] = feed_url

        super().__init__(
            message=message,
            error_code=kwargs.get("error_code", self._CODES[kind]),
            context=context,
            user_message=kwargs.get("user_message", f"Feed could not be loaded: {message}"),
            recoverable=kwargs.get("recoverable", kind in ("timeout", "network")),
            **_passthrough(kwargs),
        )


class PersistenceError(FeedHarborError):
    """Item write errors.

    ``kind`` is one of ``batch-failed``, ``item-failed`` or
    ``permission-denied``.
    """

    KINDS = ("batch-failed", "item-failed", "permission-denied")

    _CODES = {
        "batch-failed": ErrorCode.WRITE_BATCH_FAILED,
        "item-failed": ErrorCode.WRITE_ITEM_FAILED,
        "permission-denied": ErrorCode.WRITE_PERMISSION_DENIED,
    }

    def __init__(self, message: str, kind: str = "batch-failed", **kwargs):
        if kind not in self.KINDS:
            raise ValueError(f"Unknown persistence error kind: {kind}")
        self.kind = kind

        context = kwargs.get("context", {})
        context["kind"] = kind

        super().__init__(
            message=message,
            error_code=kwargs.get("error_code", self._CODES[kind]),
            context=context,
            user_message=kwargs.get("user_message", "Saving feed items failed"),
            recoverable=kwargs.get("recoverable", kind != "permission-denied"),
            **_passthrough(kwargs),
        )


class SweepError(FeedHarborError):
    """Retention sweep errors, scoped to one item category."""

    KINDS = ("query-failed", "delete-failed")

    _CODES = {
        "query-failed": ErrorCode.SWEEP_QUERY_FAILED,
        "delete-failed": ErrorCode.SWEEP_DELETE_FAILED,
    }

    def __init__(
        self, message: str, category: str, kind: str = "delete-failed", **kwargs
    ):
        """Initialize sweep error.

        Args:
            message: Error message
            category: Sub-sweep that failed (syndication_items, video_items,
                orphaned_interactions)
            kind: ``query-failed`` or ``delete-failed``
            **kwargs: Additional arguments for FeedHarborError
        """
        if kind not in self.KINDS:
            raise ValueError(f"Unknown sweep error kind: {kind}")
        self.kind = kind
        self.category = category

        context = kwargs.get("context", {})
        context.update({"category": category, "kind": kind})

        super().__init__(
            message=message,
            error_code=kwargs.get("error_code", self._CODES[kind]),
            context=context,
            user_message=kwargs.get("user_message", f"Cleanup of {category} failed"),
            recoverable=kwargs.get("recoverable", True),
            **_passthrough(kwargs),
        )


# Exception handling utilities


def is_retryable_error(exception: FeedHarborError) -> bool:
    """Check if an error is worth retrying.

    Args:
        exception: FeedHarbor exception to check

    Returns:
        True if the error is potentially retryable
    """
    if not exception.recoverable:
        return False

    retryable_codes = {
        ErrorCode.FEED_NETWORK_ERROR,
        ErrorCode.FEED_FETCH_TIMEOUT,
        ErrorCode.DATABASE_CONNECTION,
        ErrorCode.WRITE_BATCH_FAILED,
    }

    return exception.error_code in retryable_codes


def get_user_friendly_message(exception: Exception) -> str:
    """Get user-friendly error message for any exception."""
    if isinstance(exception, FeedHarborError):
        return exception.user_message

    return "An unexpected error occurred. Please try again later."
