"""Record Cache - short-TTL caching of store records and derived statistics."""
import json
import logging
import threading
import time
from typing import Optional, Dict, Any, Tuple
from datetime import datetime, timezone
from urllib.parse import urlparse

from redis import Redis

logger = logging.getLogger(__name__)

DEFAULT_TTL_SECONDS = 60


def _sanitize_url(url: str) -> str:
    """Remove credentials from URL for safe logging."""
    try:
        parsed = urlparse(url)
        if parsed.password:
            sanitized = parsed._replace(
                netloc=f"{parsed.username or ''}:*@{parsed.hostname}:{parsed.port or 6379}"
            )
            return sanitized.geturl()
        return url
    except ValueError:
        return url


class RecordCache:
    """
    Redis-backed cache for JSON-serializable records.

    Keys are namespaced ("candidate:<id>", "job:<id>", "stats:<scope>").
    When Redis is unreachable every call degrades to a miss, so callers
    fall through to the underlying store.
    """

    def __init__(
        self,
        redis_url: str = "redis://localhost:6379/0",
        password: Optional[str] = None,
        ttl_seconds: int = DEFAULT_TTL_SECONDS
    ):
        self.redis_url = redis_url
        self.ttl_seconds = ttl_seconds
        self._redis: Optional[Redis] = None
        self._available = False

        try:
            self._redis = Redis.from_url(
                redis_url,
                password=password,
                decode_responses=True,
                socket_connect_timeout=5,
                socket_timeout=5
            )
            self._redis.ping()
            self._available = True
            logger.info(f"Record cache connected to Redis at {_sanitize_url(redis_url)}")
        except Exception as e:
            logger.warning(f"Record cache Redis unavailable: {e}")
            self._redis = None
            self._available = False

    @property
    def is_available(self) -> bool:
        if not self._available or not self._redis:
            return False
        try:
            return self._redis.ping()
        except Exception:
            return False

    def get(self, key: str) -> Optional[Any]:
        if not self.is_available:
            return None

        try:
            data = self._redis.get(key)
            if data:
                logger.debug(f"Cache hit for {key}")
                return json.loads(data).get("data")
            logger.debug(f"Cache miss for {key}")
            return None
        except Exception as e:
            logger.warning(f"Error reading from record cache: {e}")
            return None

    def set(self, key: str, value: Any, ttl_seconds: Optional[int] = None) -> bool:
        if not self.is_available:
            return False

        try:
            ttl = ttl_seconds or self.ttl_seconds
            entry = {
                "data": value,
                "cached_at": datetime.now(timezone.utc).isoformat(),
                "ttl_seconds": ttl
            }
            self._redis.setex(key, ttl, json.dumps(entry, default=str))
            return True
        except Exception as e:
            logger.warning(f"Error writing to record cache: {e}")
            return False

    def delete(self, key: str) -> bool:
        if not self.is_available:
            return False
        try:
            self._redis.delete(key)
            return True
        except Exception as e:
            logger.warning(f"Error deleting from record cache: {e}")
            return False

    def invalidate_namespace(self, namespace: str) -> int:
        """Delete every key under "<namespace>:". Returns the number deleted."""
        if not self.is_available:
            return 0

        deleted = 0
        try:
            cursor = 0
            while True:
                cursor, keys = self._redis.scan(cursor=cursor, match=f"{namespace}:*", count=100)
                if keys:
                    self._redis.delete(*keys)
                    deleted += len(keys)
                if cursor == 0:
                    break
            logger.info(f"Invalidated {deleted} cached '{namespace}' entries")
        except Exception as e:
            logger.warning(f"Error invalidating record cache: {e}")
        return deleted

    def get_cache_stats(self) -> Dict[str, Any]:
        if not self.is_available:
            return {"available": False}
        try:
            info = self._redis.info()
            return {
                "available": True,
                "backend": "redis",
                "used_memory_human": info.get("used_memory_human", "unknown"),
                "ttl_seconds": self.ttl_seconds,
            }
        except Exception as e:
            logger.warning(f"Error getting cache stats: {e}")
            return {"available": False, "error": str(e)}


class LocalRecordCache:
    """
    In-process cache with the same interface as RecordCache.

    Used when Redis caching is disabled; entries expire lazily on read.
    """

    def __init__(self, ttl_seconds: int = DEFAULT_TTL_SECONDS):
        self.ttl_seconds = ttl_seconds
        self._entries: Dict[str, Tuple[float, Any]] = {}
        self._lock = threading.Lock()

    @property
    def is_available(self) -> bool:
        return True

    def get(self, key: str) -> Optional[Any]:
        with self._lock:
            entry = self._entries.get(key)
            if entry is None:
                return None
            expires_at, value = entry
            if time.monotonic() >= expires_at:
                del self._entries[key]
                return None
            return value

    def set(self, key: str, value: Any, ttl_seconds: Optional[int] = None) -> bool:
        ttl = ttl_seconds or self.ttl_seconds
        with self._lock:
            self._entries[key] = (time.monotonic() + ttl, value)
        return True

    def delete(self, key: str) -> bool:
        with self._lock:
            self._entries.pop(key, None)
        return True

    def invalidate_namespace(self, namespace: str) -> int:
        prefix = f"{namespace}:"
        with self._lock:
            keys = [k for k in self._entries if k.startswith(prefix)]
            for k in keys:
                del self._entries[k]
        return len(keys)

    def get_cache_stats(self) -> Dict[str, Any]:
        with self._lock:
            size = len(self._entries)
        return {"available": True, "backend": "local", "entries": size, "ttl_seconds": self.ttl_seconds}
