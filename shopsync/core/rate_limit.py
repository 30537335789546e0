import threading
import time
from typing import Callable, Dict, Tuple

from fastapi import Request

from shopsync.core.config import get_settings
from shopsync.core.exceptions import RateLimitError

settings = get_settings()


class FixedWindowRateLimiter:
    """Per-key request counter over fixed windows. Counter updates are atomic."""

    def __init__(self, max_requests: int, window_seconds: int, clock: Callable[[], float] = time.time):
        self.max_requests = max_requests
        self.window_seconds = window_seconds
        self._clock = clock
        self._lock = threading.Lock()
        # key -> (window start, count)
        self._windows: Dict[str, Tuple[float, int]] = {}

    def hit(self, key: str) -> Tuple[bool, int]:
        """
        Count one request for ``key``.
        Returns (allowed, retry_after_seconds).
        """
        now = self._clock()
        with self._lock:
            window_start, count = self._windows.get(key, (now, 0))
            if now - window_start >= self.window_seconds:
                window_start, count = now, 0
                self._prune(now)
            if count >= self.max_requests:
                retry_after = max(1, int(round(self.window_seconds - (now - window_start))))
                return False, retry_after
            self._windows[key] = (window_start, count + 1)
        return True, 0

    def _prune(self, now: float) -> None:
        stale = [key for key, (start, _) in self._windows.items() if now - start >= self.window_seconds]
        for key in stale:
            del self._windows[key]

    def reset(self) -> None:
        with self._lock:
            self._windows.clear()


api_limiter = FixedWindowRateLimiter(
    max_requests=settings.RATE_LIMIT_MAX_REQUESTS,
    window_seconds=settings.RATE_LIMIT_WINDOW_SECONDS,
)


def rate_limit_key(request: Request) -> str:
    api_key = request.headers.get("x-api-key")
    if api_key:
        return f"key:{api_key}"
    client_host = request.client.host if request.client else "unknown"
    return f"ip:{client_host}"


async def enforce_rate_limit(request: Request) -> None:
    """FastAPI dependency applied to the proxied API before authentication."""
    allowed, retry_after = api_limiter.hit(rate_limit_key(request))
    if not allowed:
        raise RateLimitError(retry_after=retry_after)
