"""Basic in-memory rate limiter (per-process sliding window, keyed by client IP)."""

from __future__ import annotations

import threading
import time
from collections import deque
from typing import Callable

from fastapi import Request

from .audit import client_ip
from .errors import RateLimited


class SlidingWindowLimiter:
    """
    Keeps the timestamps of accepted requests per key.

    Any span of `window` seconds holds at most `limit` accepted requests;
    rejected requests are not counted.
    """

    def __init__(self, clock: Callable[[], float] = time.monotonic) -> None:
        self._lock = threading.Lock()
        self._hits: dict[str, deque[float]] = {}
        self._clock = clock

    def allow(self, key: str, *, limit: int, window: float) -> tuple[bool, float]:
        now = self._clock()
        with self._lock:
            hits = self._hits.setdefault(key, deque())
            while hits and hits[0] <= now - window:
                hits.popleft()
            if len(hits) < limit:
                hits.append(now)
                return True, 0.0
            retry_after = hits[0] + window - now
            return False, max(retry_after, 0.1)

    def reset(self) -> None:
        with self._lock:
            self._hits.clear()


class RateLimit:
    """
    Dependency capping one endpoint group to `limit` requests per window per IP.

    The limit is read from settings by attribute name so tests and
    deployments can tune it without code changes.
    """

    def __init__(self, group: str, limit_setting: str, message: str) -> None:
        self.group = group
        self.limit_setting = limit_setting
        self.message = message

    def __call__(self, request: Request) -> None:
        settings = request.app.state.settings
        if not settings.rate_limit_enabled:
            return
        limit = max(1, int(getattr(settings, self.limit_setting)))
        window = max(1, int(settings.rate_limit_window_sec))
        key = f"{client_ip(request) or 'unknown'}:{self.group}"
        limiter: SlidingWindowLimiter = request.app.state.rate_limiter
        allowed, retry_after = limiter.allow(key, limit=limit, window=window)
        if not allowed:
            raise RateLimited(self.message, headers={"Retry-After": str(max(1, int(retry_after + 0.999)))})


login_rate_limit = RateLimit("login", "login_rate_limit", "Too many login attempts. Try again in a minute.")
register_rate_limit = RateLimit(
    "register", "register_rate_limit", "Too many registration attempts. Try again in a minute."
)
