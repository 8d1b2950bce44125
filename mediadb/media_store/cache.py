"""
Read-through entity cache.

The CacheGateway keeps detached snapshots of media keyed by node id.
Retrieval paths marked cache-eligible consult it before materializing
a row; a miss falls through to storage.

Invariants:
    - Cached values are snapshots, never authoritative state
    - put() and get() both deep-copy, so callers never share an instance
      with the cache
    - DisabledCache never returns an entry

How to change safely:
    - Evict on every write path that changes a cached media item
    - Pass DisabledCache to a repository that must always read from storage
"""

from __future__ import annotations

import copy
import logging
import threading

from cachetools import LRUCache

from .models import Media

logger = logging.getLogger(__name__)


class CacheGateway:
    """LRU cache of media snapshots keyed by node id.

    Thread safety:
        Access to the underlying LRUCache is protected by a lock.

    Example:
        >>> cache = CacheGateway(max_entries=1000)
        >>> cache.put(media)
        >>> cache.get(media.id).name
        'Photo'
    """

    enabled = True

    def __init__(self, max_entries: int = 10000, prefix: str = "media") -> None:
        """Initialize the cache.

        Args:
            max_entries: Maximum number of cached snapshots
            prefix: Key prefix separating entity kinds
        """
        self.prefix = prefix
        self._entries: LRUCache = LRUCache(maxsize=max_entries)
        self._lock = threading.Lock()
        self.hits = 0
        self.misses = 0

    def cache_key(self, entity_id: int) -> str:
        return f"{self.prefix}:{entity_id}"

    def get(self, entity_id: int) -> Media | None:
        """Get a detached copy of the cached media, or None."""
        with self._lock:
            cached = self._entries.get(self.cache_key(entity_id))
            if cached is None:
                self.misses += 1
                return None
            self.hits += 1
            return copy.deepcopy(cached)

    def put(self, entity: Media) -> None:
        if not entity.has_identity:
            return
        snapshot = copy.deepcopy(entity)
        with self._lock:
            self._entries[self.cache_key(entity.id)] = snapshot

    def remove(self, entity_id: int) -> None:
        with self._lock:
            self._entries.pop(self.cache_key(entity_id), None)

    def clear(self) -> None:
        with self._lock:
            self._entries.clear()
        logger.debug("Cleared media cache", extra={"prefix": self.prefix})

    def __len__(self) -> int:
        with self._lock:
            return len(self._entries)


class DisabledCache(CacheGateway):
    """Cache that never holds anything."""

    enabled = False

    def __init__(self) -> None:
        super().__init__(max_entries=1, prefix="disabled")

    def get(self, entity_id: int) -> Media | None:
        return None

    def put(self, entity: Media) -> None:
        return None

    def remove(self, entity_id: int) -> None:
        return None
