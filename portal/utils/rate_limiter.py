from __future__ import annotations

import re
import threading
import time

from portal.utils.errors import ApiError

_LIMIT_RE = re.compile(r"^\s*(\d+)\s*(?:per|/)\s*(second|minute|hour)\s*$", re.IGNORECASE)
_WINDOWS = {"second": 1, "minute": 60, "hour": 3600}
_FALLBACK = (300, 60)


def parse_limit(limit: str) -> tuple[int, int]:
    """'30 per minute' -> (30, 60); unparseable strings fall back to 300 per minute."""
    m = _LIMIT_RE.match(str(limit or ""))
    if not m:
        return _FALLBACK
    return max(1, int(m.group(1))), _WINDOWS[m.group(2).lower()]


class InMemoryRateLimiter:
    """Fixed windows per (key, window length). Counts are per process."""

    def __init__(self, *, max_keys: int = 50_000):
        self._max_keys = max_keys
        self._lock = threading.Lock()
        self._store: dict[tuple[str, int], tuple[int, int]] = {}

    def check(self, key: str, limit: str) -> None:
        allowed, window = parse_limit(limit)
        now = time.time()
        window_id = int(now // window)

        with self._lock:
            if len(self._store) > self._max_keys:
                self._store.clear()
            seen_window, count = self._store.get((key, window), (window_id, 0))
            count = count + 1 if seen_window == window_id else 1
            self._store[(key, window)] = (window_id, count)

        if count > allowed:
            retry_after = max(1, int((window_id + 1) * window - now))
            raise ApiError(
                "RATE_LIMITED",
                "Too many requests, please try again later",
                status=429,
                details={"limit": allowed, "windowSeconds": window, "retryAfter": retry_after},
            )

    def reset(self) -> None:
        with self._lock:
            self._store.clear()
