"""Response cache for idempotent POS reads.

Pattern: Instance-scoped in-memory cache with TTL, keyed by
method + path + body digest. Each gateway owns its own cache so tests and
tenants never share entries.

- Use TTL (time-to-live) for automatic expiration
- Writes invalidate every entry of the same logical resource
- Thread-safe for concurrent access
"""
import hashlib
import threading
import time
from typing import Any, Callable, Dict, Optional, Tuple


def resource_of(path: str) -> str:
    """
    Logical resource for a request path: its first segment.

    ``/orders/ABC/line_items`` and ``/orders`` both belong to ``orders``.
    """
    return path.strip("/").split("/", 1)[0].split("?", 1)[0]


def request_key(method: str, path: str, body: Optional[str] = None) -> str:
    """Stable key for a request; identical requests produce identical keys."""
    digest = hashlib.sha256((body or "").encode("utf-8")).hexdigest()[:16]
    return f"{method.upper()}:{path}:{digest}"


class ResponseCache:
    """
    TTL cache for decoded POS responses.

    Entries are stored as (resource, data, timestamp).
    """

    def __init__(
        self,
        ttl: float = 300.0,
        max_size: int = 500,
        clock: Callable[[], float] = time.time
    ):
        """
        Initialize response cache.

        Args:
            ttl: Time-to-live in seconds (default: 5 minutes)
            max_size: Maximum entries before the oldest are evicted
            clock: Time source, injectable for tests
        """
        self.ttl = ttl
        self.max_size = max_size
        self._clock = clock
        self._entries: Dict[str, Tuple[str, Any, float]] = {}
        self._lock = threading.Lock()

    def _is_expired(self, timestamp: float) -> bool:
        return self._clock() - timestamp >= self.ttl

    def get(self, key: str) -> Optional[Any]:
        """Return cached data, or None when missing or expired."""
        with self._lock:
            entry = self._entries.get(key)
            if entry is None:
                return None

            _, data, timestamp = entry
            if self._is_expired(timestamp):
                del self._entries[key]
                return None

            return data

    def set(self, key: str, resource: str, data: Any):
        with self._lock:
            self._entries[key] = (resource, data, self._clock())
            self._evict_if_needed()

    def invalidate_resource(self, resource: str) -> int:
        """
        Drop every entry belonging to a resource.

        Returns:
            Number of entries removed
        """
        with self._lock:
            stale = [key for key, (res, _, _) in self._entries.items() if res == resource]
            for key in stale:
                del self._entries[key]
            return len(stale)

    def clear(self):
        with self._lock:
            self._entries.clear()

    def cleanup_expired(self):
        """Remove all expired entries."""
        with self._lock:
            expired = [
                key for key, (_, _, ts) in self._entries.items()
                if self._is_expired(ts)
            ]
            for key in expired:
                del self._entries[key]

    def __len__(self) -> int:
        return len(self._entries)

    def _evict_if_needed(self):
        # Caller holds the lock
        if len(self._entries) <= self.max_size:
            return

        expired = [key for key, (_, _, ts) in self._entries.items() if self._is_expired(ts)]
        for key in expired:
            del self._entries[key]

        if len(self._entries) > self.max_size:
            oldest = sorted(self._entries.items(), key=lambda item: item[1][2])
            for key, _ in oldest[:len(self._entries) - self.max_size]:
                del self._entries[key]
