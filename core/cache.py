# core/cache.py

"""
In-process TTL cache for resolved permission and isolation contexts.

Entries are keyed by (user_id, tour_id or "global"). Expiry is checked
lazily on read; a full sweep of expired entries runs at most once per
sweep interval, piggybacked on writes. No per-entry timers are created.
"""

from typing import Optional, Any, Callable
from datetime import datetime, timedelta
from threading import Lock
from core.logging_config import logger

GLOBAL_SCOPE = "global"


def context_key(user_id: str, tour_id: Optional[str] = None) -> tuple[str, str]:
    """
    Build the cache key for a (user, scope) pair.

    Tour scopes are prefixed so that no tour id can collide with the
    global scope.
    """
    if tour_id is None:
        return (user_id, GLOBAL_SCOPE)
    return (user_id, f"tour:{tour_id}")


class CacheEntry:
    """Represents a cached value with expiration time."""

    def __init__(self, value: Any, expires_at: datetime):
        self.value = value
        self.expires_at = expires_at

    def is_expired(self, now: datetime) -> bool:
        """Check if the cache entry has expired."""
        return now >= self.expires_at


class ContextCache:
    """
    TTL cache for derived access contexts.

    Thread-safe for concurrent access. Two readers racing to populate the
    same key both resolve from the store; the last write wins. A value
    resolved while its user was invalidated (or the cache cleared) is
    returned to its caller but never stored.
    """

    def __init__(
        self,
        name: str,
        ttl_seconds: int = 300,
        sweep_interval_seconds: int = 60,
        clock: Callable[[], datetime] = datetime.now,
    ):
        self.name = name
        self.ttl = timedelta(seconds=ttl_seconds)
        self.sweep_interval = timedelta(seconds=sweep_interval_seconds)
        self._clock = clock
        self._cache: dict[tuple[str, str], CacheEntry] = {}
        self._lock = Lock()
        self._last_sweep = clock()
        # bumped by invalidate_user / clear
        self._user_generations: dict[str, int] = {}
        self._epoch = 0

    def _generation(self, user_id: str) -> tuple[int, int]:
        # caller holds the lock
        return (self._epoch, self._user_generations.get(user_id, 0))

    def get(self, key: tuple[str, str]) -> Optional[Any]:
        """
        Get a value from the cache.

        Returns:
            Cached value or None if not found or expired
        """
        now = self._clock()
        with self._lock:
            entry = self._cache.get(key)
            if entry is None:
                return None

            if entry.is_expired(now):
                del self._cache[key]
                return None

            return entry.value

    def set(self, key: tuple[str, str], value: Any):
        """Store a value, stamped with this cache's TTL."""
        now = self._clock()
        with self._lock:
            self._cache[key] = CacheEntry(value, now + self.ttl)
            if now - self._last_sweep >= self.sweep_interval:
                self._sweep(now)

    def get_or_resolve(self, key: tuple[str, str], resolver: Callable[[], Any]) -> Any:
        """
        Return the cached value for `key`, resolving and storing it on a miss.

        The resolver runs outside the lock; exceptions it raises propagate
        and nothing is cached. If the key's user is invalidated (or the
        cache cleared) while the resolver runs, the result is not stored.
        """
        cached = self.get(key)
        if cached is not None:
            logger.debug(f"[{self.name}] cache hit: {key}")
            return cached

        with self._lock:
            generation = self._generation(key[0])

        value = resolver()

        now = self._clock()
        with self._lock:
            if self._generation(key[0]) != generation:
                logger.debug(f"[{self.name}] invalidated during resolve, not stored: {key}")
                return value
            self._cache[key] = CacheEntry(value, now + self.ttl)
            if now - self._last_sweep >= self.sweep_interval:
                self._sweep(now)

        logger.debug(f"[{self.name}] cache miss, stored: {key}")
        return value

    def delete(self, key: tuple[str, str]):
        with self._lock:
            self._cache.pop(key, None)

    def invalidate_user(self, user_id: str) -> int:
        """Drop every scope cached for `user_id`. Returns the number removed."""
        with self._lock:
            self._user_generations[user_id] = self._user_generations.get(user_id, 0) + 1
            keys = [key for key in self._cache if key[0] == user_id]
            for key in keys:
                del self._cache[key]
        if keys:
            logger.debug(f"[{self.name}] invalidated {len(keys)} entries for user {user_id}")
        return len(keys)

    def clear(self):
        """Clear all cache entries."""
        with self._lock:
            self._cache.clear()
            self._epoch += 1
            self._user_generations.clear()

    def cleanup_expired(self) -> int:
        """Remove all expired entries from the cache."""
        now = self._clock()
        with self._lock:
            return self._sweep(now)

    def _sweep(self, now: datetime) -> int:
        # caller holds the lock
        expired_keys = [
            key for key, entry in self._cache.items()
            if entry.is_expired(now)
        ]
        for key in expired_keys:
            del self._cache[key]
        self._last_sweep = now
        return len(expired_keys)

    def size(self) -> int:
        """Get the number of entries in the cache."""
        with self._lock:
            return len(self._cache)
