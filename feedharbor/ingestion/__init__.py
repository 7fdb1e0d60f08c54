"""
FeedHarbor Ingestion Module
===========================

Feed retrieval and normalization components.

This module handles:
- Resolving user-supplied source references into feed URLs
- Fetching feed documents with caching and proxy fallback
- Normalizing raw entries into canonical items
"""
