import logging
import threading
import time
from collections import defaultdict, deque
from typing import Any

from fastapi import Depends, HTTPException

from ..auth.deps import get_current_user

logger = logging.getLogger(__name__)


class SlidingWindowLimiter:
    """Per-process request counter. Each key keeps the timestamps of its calls inside the window."""

    def __init__(self) -> None:
        self._calls: dict[str, deque[float]] = defaultdict(deque)
        self._lock = threading.Lock()

    def check(self, key: str, limit: int, window_seconds: int) -> int:
        """Record a call for ``key``; return 0 when allowed, else seconds until a slot frees up."""
        now = time.monotonic()
        with self._lock:
            calls = self._calls[key]
            while calls and calls[0] <= now - window_seconds:
                calls.popleft()
            if len(calls) >= limit:
                return max(1, int(calls[0] + window_seconds - now))
            calls.append(now)
            return 0

    def reset(self) -> None:
        with self._lock:
            self._calls.clear()


limiter = SlidingWindowLimiter()


def rate_limit_dependency(route_key: str, limit: int, window_seconds: int):
    def _dep(current_user: dict[str, Any] = Depends(get_current_user)) -> None:
        retry_after = limiter.check(f"{route_key}:user:{current_user['id']}", limit, window_seconds)
        if retry_after:
            logger.info("[rate_limit] %s refused for user=%s retry_after=%ss", route_key, current_user["id"], retry_after)
            raise HTTPException(
                status_code=429,
                detail=f"Too many requests. Retry in {retry_after}s",
                headers={"Retry-After": str(retry_after)},
            )

    return Depends(_dep)
