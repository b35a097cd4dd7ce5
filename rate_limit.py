"""Fixed-window request counter keyed by client address.

Counts live in this process only: they are lost on restart and not shared
between instances.
"""
import os
import threading
import time

from dotenv import load_dotenv
from fastapi import Request, Response

from errors import TooManyRequests

load_dotenv()

RATE_LIMIT_WINDOW_SECONDS = int(os.getenv("RATE_LIMIT_WINDOW_SECONDS", str(15 * 60)))
AUTH_RATE_LIMIT = int(os.getenv("AUTH_RATE_LIMIT", "5"))
API_RATE_LIMIT = int(os.getenv("API_RATE_LIMIT", "100"))


class FixedWindowRateLimiter:
    def __init__(self, max_requests: int, window_seconds: int = RATE_LIMIT_WINDOW_SECONDS, clock=time.time):
        self.max_requests = max_requests
        self.window_seconds = window_seconds
        self._clock = clock
        self._lock = threading.Lock()
        self._windows = {}  # key -> [count, reset_at]

    def hit(self, key: str):
        """Counts one request for ``key``.

        Returns ``(allowed, remaining, reset_at)``; a refused request is not
        counted.
        """
        now = self._clock()
        with self._lock:
            for stale in [k for k, (_, reset_at) in self._windows.items() if reset_at <= now]:
                del self._windows[stale]

            window = self._windows.setdefault(key, [0, now + self.window_seconds])
            if window[0] >= self.max_requests:
                return False, 0, window[1]
            window[0] += 1
            return True, self.max_requests - window[0], window[1]

    def reset(self):
        with self._lock:
            self._windows.clear()

    def __call__(self, request: Request, response: Response):
        """FastAPI dependency enforcing this limiter on a route."""
        key = request.client.host if request.client else "unknown"
        allowed, remaining, reset_at = self.hit(key)
        if not allowed:
            raise TooManyRequests(retry_after=max(1, int(reset_at - self._clock() + 0.999)))
        response.headers["X-RateLimit-Limit"] = str(self.max_requests)
        response.headers["X-RateLimit-Remaining"] = str(remaining)
        response.headers["X-RateLimit-Reset"] = str(int(reset_at))


auth_rate_limit = FixedWindowRateLimiter(AUTH_RATE_LIMIT)
api_rate_limit = FixedWindowRateLimiter(API_RATE_LIMIT)
