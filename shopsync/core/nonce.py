import threading
import time
from typing import Callable, Dict, Optional, Tuple

from shopsync.core.config import get_settings


class NonceCache:
    """
    Short-lived store for in-flight OAuth nonces, keyed by shop domain.

    Entries expire after ``ttl_seconds`` whether or not they were used, and
    expired entries are evicted on every write so the map stays bounded by
    the number of flows started within one TTL.
    """

    def __init__(self, ttl_seconds: int, clock: Callable[[], float] = time.monotonic):
        self.ttl_seconds = ttl_seconds
        self._clock = clock
        self._lock = threading.Lock()
        self._entries: Dict[str, Tuple[str, float]] = {}

    def _evict_expired(self, now: float) -> None:
        expired = [key for key, (_, expires_at) in self._entries.items() if expires_at <= now]
        for key in expired:
            del self._entries[key]

    def put(self, shop: str, nonce: str) -> None:
        now = self._clock()
        with self._lock:
            self._evict_expired(now)
            self._entries[shop] = (nonce, now + self.ttl_seconds)

    def pop(self, shop: str) -> Optional[str]:
        """Remove and return the nonce for ``shop`` if it has not expired."""
        now = self._clock()
        with self._lock:
            entry = self._entries.pop(shop, None)
        if entry is None:
            return None
        nonce, expires_at = entry
        return nonce if expires_at > now else None

    def __len__(self) -> int:
        with self._lock:
            self._evict_expired(self._clock())
            return len(self._entries)

    def clear(self) -> None:
        with self._lock:
            self._entries.clear()


nonce_cache = NonceCache(ttl_seconds=get_settings().OAUTH_NONCE_TTL_SECONDS)
