"""
FeedHarbor Services
===================

Service layer entry points shared by the CLI and any scheduler that drives it.
"""

from .cleanup_service import CleanupService

__all__ = [
    'CleanupService',
]
