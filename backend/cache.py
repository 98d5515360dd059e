"""
Startup Dashboard - Cache Layer

Short-TTL lookup cache for frequently reread entities (company, quarter,
user). Three backends behind one interface:
- InMemoryCache: process-local dict with TTL (default)
- RedisCache: Redis-backed cache for multi-process deployments
- NullCache: always misses (CACHE_ENABLED=false)

Cached values are plain dict snapshots, never ORM objects. The cache only
spares the database; every caller falls back to the store on a miss.

Usage:
    from cache import get_cache
    cache = get_cache()
    cache.set("company:1", {"id": 1, "name": "Acme"}, ttl=120)
    result = cache.get("company:1")
"""
import json
import time
import os
import logging
import threading
from typing import Optional

from constants import COMPANY_CACHE_TTL, QUARTER_CACHE_TTL, USER_CACHE_TTL
from metrics import track_cache

logger = logging.getLogger(__name__)


class InMemoryCache:
    """Thread-safe process-local cache."""

    def __init__(self, max_entries: int = 1000):
        self._cache = {}  # key -> (value, expiry_timestamp)
        self._max_entries = max_entries
        self._lock = threading.Lock()

    def get(self, key: str):
        """Get a value by key. Returns None if not found or expired."""
        with self._lock:
            if key in self._cache:
                value, expiry = self._cache[key]
                if expiry and time.time() > expiry:
                    del self._cache[key]
                    return None
                return value
            return None

    def set(self, key: str, value, ttl: int = 300):
        """Set a key-value pair with optional TTL in seconds."""
        with self._lock:
            if len(self._cache) >= self._max_entries:
                self._cleanup()
            expiry = time.time() + ttl if ttl else None
            self._cache[key] = (value, expiry)

    def delete(self, key: str):
        """Delete a key."""
        with self._lock:
            self._cache.pop(key, None)

    def clear(self):
        """Clear all cached entries."""
        with self._lock:
            self._cache.clear()

    def keys(self, pattern: str = None) -> list:
        """List keys, optionally filtered by prefix pattern."""
        with self._lock:
            self._cleanup()
            if pattern and pattern.endswith("*"):
                prefix = pattern[:-1]
                return [k for k in self._cache if k.startswith(prefix)]
            return list(self._cache.keys())

    def _cleanup(self):
        """Remove expired entries and evict soonest-expiring if over capacity. Caller holds the lock."""
        now = time.time()
        expired = [k for k, (v, exp) in self._cache.items() if exp and now > exp]
        for k in expired:
            del self._cache[k]
        if len(self._cache) >= self._max_entries:
            # Remove oldest 25%
            items = sorted(
                self._cache.items(),
                key=lambda x: x[1][1] or float('inf')
            )
            for k, _ in items[:len(items) // 4]:
                del self._cache[k]


class RedisCache:
    """Redis-backed cache."""

    def __init__(self, redis_url: str = "redis://localhost:6379/0"):
        import redis as redis_lib
        self._client = redis_lib.from_url(redis_url, decode_responses=True)
        # Test the connection
        self._client.ping()

    def get(self, key: str):
        """Get a value by key. Returns None if not found."""
        val = self._client.get(key)
        if val:
            try:
                return json.loads(val)
            except (json.JSONDecodeError, TypeError):
                return val
        return None

    def set(self, key: str, value, ttl: int = 300):
        """Set a key-value pair with optional TTL in seconds."""
        serialized = json.dumps(value, default=str)
        if ttl:
            self._client.setex(key, ttl, serialized)
        else:
            self._client.set(key, serialized)

    def delete(self, key: str):
        self._client.delete(key)

    def clear(self):
        """Flush the current database."""
        self._client.flushdb()

    def keys(self, pattern: str = None) -> list:
        """List keys matching a pattern (supports Redis glob patterns)."""
        return self._client.keys(pattern or "*")


class NullCache:
    """Disabled cache: every lookup misses."""

    def get(self, key: str):
        return None

    def set(self, key: str, value, ttl: int = 300):
        pass

    def delete(self, key: str):
        pass

    def clear(self):
        pass

    def keys(self, pattern: str = None) -> list:
        return []


# Singleton
_cache_instance = None
_cache_lock = threading.Lock()


def get_cache():
    """Get the singleton cache instance (disabled, Redis or in-memory)."""
    global _cache_instance
    if _cache_instance is None:
        with _cache_lock:
            if _cache_instance is None:
                _cache_instance = _create_cache()
    return _cache_instance


def _create_cache():
    if os.environ.get("CACHE_ENABLED", "true").lower() != "true":
        logger.info("Cache disabled (CACHE_ENABLED=false)")
        return NullCache()
    if os.environ.get("REDIS_ENABLED", "false").lower() == "true":
        redis_url = os.environ.get("REDIS_URL", "redis://localhost:6379/0")
        try:
            cache = RedisCache(redis_url)
            logger.info("Redis cache initialized: %s", redis_url)
            return cache
        except Exception as e:
            logger.warning("Redis unavailable, falling back to in-memory: %s", e)
    logger.info("Using in-memory cache")
    return InMemoryCache()


def reset_cache():
    """Reset the singleton (used in tests)."""
    global _cache_instance
    _cache_instance = None


# =============================================================================
# NAMESPACED HELPERS
# =============================================================================

def company_key(company_id: int) -> str:
    return f"company:{company_id}"


def quarter_key(company_id: int, label: str, year: int) -> str:
    return f"quarter:{company_id}_{label}_{year}"


def user_key(user_id: int) -> str:
    return f"user:{user_id}"


def _lookup(namespace: str, key: str) -> Optional[dict]:
    value = get_cache().get(key)
    track_cache(namespace, hit=value is not None)
    return value


def get_cached_company(company_id: int) -> Optional[dict]:
    return _lookup("company", company_key(company_id))


def cache_company(snapshot: dict) -> None:
    get_cache().set(company_key(snapshot["id"]), snapshot, ttl=COMPANY_CACHE_TTL)


def invalidate_company(company_id: int) -> None:
    get_cache().delete(company_key(company_id))


def get_cached_quarter(company_id: int, label: str, year: int) -> Optional[dict]:
    return _lookup("quarter", quarter_key(company_id, label, year))


def cache_quarter(snapshot: dict) -> None:
    key = quarter_key(snapshot["company_id"], snapshot["quarter"], snapshot["year"])
    get_cache().set(key, snapshot, ttl=QUARTER_CACHE_TTL)


def invalidate_company_quarters(company_id: int) -> None:
    cache = get_cache()
    for key in cache.keys(f"quarter:{company_id}_*"):
        cache.delete(key)


def get_cached_user(user_id: int) -> Optional[dict]:
    return _lookup("user", user_key(user_id))


def cache_user(snapshot: dict) -> None:
    get_cache().set(user_key(snapshot["id"]), snapshot, ttl=USER_CACHE_TTL)


def invalidate_user(user_id: int) -> None:
    get_cache().delete(user_key(user_id))
