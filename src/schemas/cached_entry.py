"""Envelope stored under every namespaced cache key."""
from dataclasses import dataclass
from typing import Any


@dataclass
class CachedEntry:
    """
    Snapshot of a previously fetched resource, tagged with its owner.

    IMPORTANT: When adding, removing, or renaming fields in this class, you MUST bump
    CACHE_SCHEMA_VERSION in core/user_cache.py. Old entries then live under the previous
    key prefix, are never read, and are removed by the next orphan cleanup.

    - user_id: ownership marker, compared against the reader's identity on every read
    - data: the JSON payload returned by the backend
    - stored_at: unix timestamp of the write, used for staleness checks
    """

    user_id: str
    data: Any
    stored_at: float
