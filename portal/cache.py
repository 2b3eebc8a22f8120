from __future__ import annotations

import hashlib
import json
import logging
import os
import threading
from typing import Any, Callable

from cachetools import TTLCache

log = logging.getLogger("portal.cache")

REPORTS_PREFIX = "REPORTS:"


def make_cache_key(namespace: str, *, scope: list[str] | None = None, params: dict[str, Any] | None = None) -> str:
    """NAMESPACE:scope...:<16 hex of the sorted params>; dates and ids serialize via str()."""
    blob = json.dumps(params or {}, sort_keys=True, separators=(",", ":"), default=str)
    digest = hashlib.sha256(blob.encode("utf-8")).hexdigest()[:16]
    parts = [str(namespace or "").strip().upper()]
    parts.extend(str(s).strip() for s in (scope or []) if str(s or "").strip())
    parts.append(digest)
    return ":".join(parts)


def _env_bounded(name: str, default: int, lo: int, hi: int) -> int:
    try:
        value = int(str(os.getenv(name, "") or "").strip() or default)
    except ValueError:
        value = default
    return max(lo, min(hi, value))


class ReportCache:
    """Process-local TTL cache for report payloads. Pipeline writes drop the whole REPORTS: namespace."""

    def __init__(self):
        self._store: TTLCache = TTLCache(
            maxsize=_env_bounded("REPORT_CACHE_MAX_ITEMS", 2000, 100, 100_000),
            ttl=_env_bounded("REPORT_CACHE_TTL_SECONDS", 60, 1, 3600),
        )
        self._lock = threading.RLock()
        self.hits = 0
        self.misses = 0

    def get(self, key: str) -> Any:
        with self._lock:
            value = self._store.get(key)
            if value is None:
                self.misses += 1
            else:
                self.hits += 1
            return value

    def set(self, key: str, value: Any) -> None:
        with self._lock:
            self._store[key] = value

    def invalidate_prefix(self, prefix: str) -> int:
        if not prefix:
            return 0
        with self._lock:
            stale = [k for k in list(self._store.keys()) if str(k).startswith(prefix)]
            for k in stale:
                self._store.pop(k, None)
        return len(stale)

    def clear(self) -> None:
        with self._lock:
            self._store.clear()
            self.hits = self.misses = 0

    def stats(self) -> dict[str, int]:
        with self._lock:
            return {"entries": len(self._store), "hits": self.hits, "misses": self.misses}


_reports = ReportCache()


def cached_report(report: str, params: dict[str, Any], build: Callable[[], Any]) -> Any:
    key = make_cache_key("REPORTS", scope=[report], params=params)
    value = _reports.get(key)
    if value is None:
        value = build()
        _reports.set(key, value)
    return value


def invalidate_reports() -> int:
    dropped = _reports.invalidate_prefix(REPORTS_PREFIX)
    if dropped:
        log.debug("report cache invalidated entries=%s", dropped)
    return dropped


def cache_stats() -> dict[str, int]:
    return _reports.stats()


def cache_clear() -> None:
    _reports.clear()
