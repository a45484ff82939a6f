"""
In-process caches.

Two explicit cache objects, built by the app factory and stored in
``app.extensions`` (never module globals, so tests get fresh instances and
can inject a fake clock):

  - TTLCache:          capacity-bounded TTL map, oldest-inserted eviction.
                       Used as the identity cache (user id -> identity dict).
  - WidgetOriginCache: union of allowed origins across enabled widgets,
                       refreshed every TTL; on loader failure the previous
                       snapshot keeps being served.

Both are guarded by a threading.Lock; a Flask worker may serve requests
from several threads.
"""

import logging
import threading
import time
from collections import OrderedDict
from typing import Callable

from flask import current_app

logger = logging.getLogger(__name__)

IDENTITY_CACHE_KEY = "identity_cache"
WIDGET_ORIGIN_CACHE_KEY = "widget_origin_cache"


class TTLCache:
    """Bounded key -> value cache with per-entry expiry.

    Args:
        ttl_seconds: Lifetime of an entry from insertion.
        max_size: Capacity; inserting past it evicts the oldest-inserted key.
        clock: Callable returning monotonic seconds (injectable for tests).
    """

    def __init__(self, ttl_seconds: float = 300, max_size: int = 1000,
                 clock: Callable[[], float] = time.monotonic) -> None:
        if max_size < 1:
            raise ValueError("max_size must be >= 1")
        self.ttl_seconds = ttl_seconds
        self.max_size = max_size
        self._clock = clock
        self._data: OrderedDict = OrderedDict()  # key -> (expires_at, value)
        self._lock = threading.Lock()

    def get(self, key):
        with self._lock:
            entry = self._data.get(key)
            if entry is None:
                return None
            expires_at, value = entry
            if self._clock() >= expires_at:
                del self._data[key]
                return None
            return value

    def set(self, key, value) -> None:
        with self._lock:
            # Re-inserting moves the key to the newest position
            self._data.pop(key, None)
            self._data[key] = (self._clock() + self.ttl_seconds, value)
            while len(self._data) > self.max_size:
                self._data.popitem(last=False)

    def invalidate(self, key) -> None:
        with self._lock:
            self._data.pop(key, None)

    def clear(self) -> None:
        with self._lock:
            self._data.clear()

    def __len__(self) -> int:
        with self._lock:
            return len(self._data)


class WidgetOriginCache:
    """Cached set of origins any enabled widget allows.

    Only feeds the CORS decision for widget endpoints; the per-request token
    check in widget_service stays authoritative.

    Args:
        loader: Callable returning an iterable of origin strings.
        ttl_seconds: Snapshot lifetime.
        clock: Injectable monotonic clock.
    """

    def __init__(self, loader: Callable[[], object], ttl_seconds: float = 60,
                 clock: Callable[[], float] = time.monotonic) -> None:
        self._loader = loader
        self.ttl_seconds = ttl_seconds
        self._clock = clock
        self._origins: frozenset[str] = frozenset()
        self._loaded_at: float | None = None
        self._lock = threading.Lock()

    def _refresh_locked(self) -> None:
        try:
            origins = frozenset(self._loader())
        except Exception:
            # Keep serving the last good snapshot; retry after another TTL
            logger.exception("Widget origin refresh failed — serving stale snapshot")
            self._loaded_at = self._clock()
            return
        self._origins = origins
        self._loaded_at = self._clock()

    def origins(self) -> frozenset[str]:
        with self._lock:
            if self._loaded_at is None or self._clock() - self._loaded_at >= self.ttl_seconds:
                self._refresh_locked()
            return self._origins

    def is_allowed(self, origin: str | None) -> bool:
        if not origin:
            return False
        allowed = self.origins()
        return "*" in allowed or origin in allowed

    def invalidate(self) -> None:
        """Force a reload on the next lookup."""
        with self._lock:
            self._loaded_at = None


# ── App accessors ────────────────────────────────────────────────────────


def get_identity_cache() -> TTLCache:
    return current_app.extensions[IDENTITY_CACHE_KEY]


def get_widget_origin_cache() -> WidgetOriginCache:
    return current_app.extensions[WIDGET_ORIGIN_CACHE_KEY]


def invalidate_identity(user_id: str) -> None:
    get_identity_cache().invalidate(user_id)


def invalidate_widget_origins() -> None:
    get_widget_origin_cache().invalidate()
