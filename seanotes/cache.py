"""
SeaNotes - In-Memory Cache v1.0

Copyright (c) 2025 Brent Lefebure / EhkoLabs
Licensed under AGPLv3 - See LICENSE in repository root

Small TTL cache with least-recently-used eviction. Three process-wide
instances back note listings, user lookups and AI responses.

Entries live only in this process; a restart starts cold.
"""

import hashlib
import logging
import threading
import time
from dataclasses import dataclass, asdict
from typing import Any, Callable, Dict, Optional

logger = logging.getLogger(__name__)


# =============================================================================
# CONFIGURATION
# =============================================================================

DEFAULT_MAX_SIZE = 100
DEFAULT_TTL_SECONDS = 5 * 60

# Key prefixes
PREFIX_NOTES = "notes"
PREFIX_SUMMARY = "summary"
PREFIX_USER = "user"


@dataclass
class CacheEntry:
    """A cached value with access bookkeeping."""
    value: Any
    timestamp: float
    ttl: float
    access_count: int = 0
    last_accessed: float = 0.0

    def is_expired(self, now: float) -> bool:
        return now - self.timestamp > self.ttl


@dataclass
class CacheStats:
    """Cache statistics."""
    size: int
    max_size: int
    total_access: int
    expired_count: int
    hits: int
    misses: int
    hit_rate: float

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


def hash_content(content: str) -> str:
    """SHA-256 of stripped content, used as a cache key suffix."""
    normalized = (content or "").strip()
    return hashlib.sha256(normalized.encode("utf-8")).hexdigest()


class TTLCache:
    """
    Thread-safe in-memory cache.

    Usage:
        cache = TTLCache(max_size=50, default_ttl=600)

        cached = cache.get(key)
        if cached is None:
            cached = load()
            cache.set(key, cached)

    Expired entries are dropped lazily on get() and eagerly on every set().
    When full, the entry with the oldest last access is evicted.
    """

    def __init__(
        self,
        max_size: int = DEFAULT_MAX_SIZE,
        default_ttl: float = DEFAULT_TTL_SECONDS,
        clock: Callable[[], float] = time.time,
    ):
        self.max_size = max_size
        self.default_ttl = default_ttl
        self._clock = clock
        self._entries: Dict[str, CacheEntry] = {}
        self._lock = threading.RLock()
        self._hits = 0
        self._misses = 0

    def __len__(self) -> int:
        return len(self._entries)

    # =========================================================================
    # CACHE OPERATIONS
    # =========================================================================

    def set(self, key: str, value: Any, ttl: Optional[float] = None) -> None:
        """Store a value. A falsy ttl means the default."""
        now = self._clock()
        item_ttl = ttl or self.default_ttl

        with self._lock:
            self._purge_expired(now)

            if key not in self._entries and len(self._entries) >= self.max_size:
                self._evict_lru()

            self._entries[key] = CacheEntry(
                value=value,
                timestamp=now,
                ttl=item_ttl,
                access_count=0,
                last_accessed=now,
            )

    def get(self, key: str) -> Optional[Any]:
        """Value for key, or None when missing or expired."""
        now = self._clock()

        with self._lock:
            entry = self._entries.get(key)
            if entry is None:
                self._misses += 1
                return None

            if entry.is_expired(now):
                del self._entries[key]
                self._misses += 1
                return None

            entry.access_count += 1
            entry.last_accessed = now
            self._hits += 1
            return entry.value

    def has(self, key: str) -> bool:
        return self.get(key) is not None

    def delete(self, key: str) -> bool:
        with self._lock:
            return self._entries.pop(key, None) is not None

    def delete_prefix(self, prefix: str) -> int:
        """Drop every key starting with prefix. Returns the count removed."""
        with self._lock:
            doomed = [key for key in self._entries if key.startswith(prefix)]
            for key in doomed:
                del self._entries[key]
        if doomed:
            logger.debug(f"Cache invalidated {len(doomed)} entries under {prefix!r}")
        return len(doomed)

    def clear(self) -> None:
        with self._lock:
            self._entries.clear()
            self._hits = 0
            self._misses = 0

    def cleanup_expired(self) -> int:
        """Remove expired entries now. Returns the count removed."""
        with self._lock:
            return self._purge_expired(self._clock())

    def _purge_expired(self, now: float) -> int:
        expired = [key for key, entry in self._entries.items() if entry.is_expired(now)]
        for key in expired:
            del self._entries[key]
        return len(expired)

    def _evict_lru(self) -> None:
        if not self._entries:
            return
        lru_key = min(self._entries, key=lambda k: self._entries[k].last_accessed)
        del self._entries[lru_key]
        logger.debug(f"Cache evicted {lru_key!r}")

    # =========================================================================
    # STATISTICS
    # =========================================================================

    def get_stats(self) -> CacheStats:
        now = self._clock()
        with self._lock:
            total_access = sum(e.access_count for e in self._entries.values())
            expired_count = sum(1 for e in self._entries.values() if e.is_expired(now))
            lookups = self._hits + self._misses
            hit_rate = (self._hits / lookups) * 100 if lookups else 0.0

            return CacheStats(
                size=len(self._entries),
                max_size=self.max_size,
                total_access=total_access,
                expired_count=expired_count,
                hits=self._hits,
                misses=self._misses,
                hit_rate=round(hit_rate, 2),
            )


# =============================================================================
# GLOBAL INSTANCES
# =============================================================================

notes_cache = TTLCache(max_size=50, default_ttl=10 * 60)
user_cache = TTLCache(max_size=100, default_ttl=30 * 60)
api_cache = TTLCache(max_size=200, default_ttl=5 * 60)

# Bumped on every listing invalidation; guarded by _notes_lock
_notes_generations: Dict[str, int] = {}
_notes_lock = threading.Lock()

_CACHES = {
    "notes": notes_cache,
    "user": user_cache,
    "api": api_cache,
}


def get_cache(name: str) -> TTLCache:
    """Named global cache ("notes", "user" or "api")."""
    try:
        return _CACHES[name]
    except KeyError:
        raise ValueError(f"Unknown cache: {name}") from None


def get_all_stats() -> Dict[str, Dict[str, Any]]:
    return {name: cache.get_stats().to_dict() for name, cache in _CACHES.items()}


def reset_caches() -> None:
    """Empty every global cache."""
    for cache in _CACHES.values():
        cache.clear()
    with _notes_lock:
        _notes_generations.clear()


def notes_list_key(user_id: str, *parts: Any) -> str:
    return ":".join([PREFIX_NOTES, user_id] + [str(p) for p in parts])


def notes_generation(user_id: str) -> int:
    """Read before loading a listing from the database; see cache_notes_listing."""
    with _notes_lock:
        return _notes_generations.get(user_id, 0)


def cache_notes_listing(user_id: str, key: str, payload: Any, generation: int) -> bool:
    """
    Cache a listing unless the user's notes were invalidated after it was read.

    Returns:
        True when the payload was stored
    """
    with _notes_lock:
        if _notes_generations.get(user_id, 0) != generation:
            return False
        notes_cache.set(key, payload)
        return True


def invalidate_user_notes(user_id: str) -> int:
    """Drop cached note listings for one user."""
    with _notes_lock:
        _notes_generations[user_id] = _notes_generations.get(user_id, 0) + 1
        return notes_cache.delete_prefix(f"{PREFIX_NOTES}:{user_id}:")


__all__ = [
    "TTLCache",
    "CacheEntry",
    "CacheStats",
    "hash_content",
    "notes_cache",
    "user_cache",
    "api_cache",
    "get_cache",
    "get_all_stats",
    "reset_caches",
    "notes_list_key",
    "notes_generation",
    "cache_notes_listing",
    "invalidate_user_notes",
]
