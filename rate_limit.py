from __future__ import annotations

import math
import os
import time
from collections import defaultdict, deque
from threading import Lock

from fastapi import HTTPException


class InMemoryRateLimiter:
    """
    Sliding-window limiter keyed by caller. Per process; a multi-instance
    deployment gets one window per instance.
    """

    def __init__(self) -> None:
        self._lock = Lock()
        # key -> deque[timestamps]
        self._hits: dict[str, deque] = defaultdict(deque)

    def hit(self, key: str, limit: int, window_seconds: float) -> float:
        """
        Records a hit. Returns 0 when allowed, otherwise seconds until the
        oldest hit leaves the window.
        """
        now = time.monotonic()
        with self._lock:
            q = self._hits[key]
            while q and (now - q[0]) >= window_seconds:
                q.popleft()
            if len(q) >= limit:
                return max(0.0, window_seconds - (now - q[0]))
            q.append(now)
            return 0.0

    def reset(self) -> None:
        with self._lock:
            self._hits.clear()


_limiter = InMemoryRateLimiter()


def rate_limit_enabled() -> bool:
    raw = (os.getenv("RATE_LIMIT_ENABLED") or "1").strip().lower()
    return raw not in ("0", "false", "no", "off")


def allow(key: str, limit: int, window_seconds: float) -> bool:
    return _limiter.hit(key, limit, window_seconds) == 0.0


def rate_limit_or_429(*, key: str, limit: int, window_seconds: float, message: str = "RATE_LIMITED") -> None:
    wait = _limiter.hit(key, limit, window_seconds)
    if wait > 0:
        raise HTTPException(
            status_code=429,
            detail=message,
            headers={"Retry-After": str(max(1, math.ceil(wait)))},
        )
