from __future__ import annotations

import re

from flask import Flask, request

from portal.utils.http import client_ip
from portal.utils.rate_limiter import InMemoryRateLimiter

limiter = InMemoryRateLimiter()

_ID_SEGMENT_RE = re.compile(r"/\d+(?=/|$)")
_EXPORT_PREFIXES = ("/api/v1/pdf/", "/api/v1/reports/export", "/api/v1/audit/export", "/api/v1/attendance/import")


def path_bucket(path: str) -> str:
    """/api/v1/candidates/42/notes -> /api/v1/candidates/:id/notes"""
    return _ID_SEGMENT_RE.sub("/:id", path)


def _is_export(path: str) -> bool:
    if path.startswith(_EXPORT_PREFIXES):
        return True
    return path == "/api/v1/attendance" and str(request.args.get("format") or "").lower() in {"csv", "pdf"}


def init_rate_limiting(app: Flask) -> None:
    cfg = app.config["CFG"]

    @app.before_request
    def _rate_limit():
        path = request.path or ""
        if request.method == "OPTIONS" or not path.startswith("/api/v1/"):
            return None

        ip = client_ip()
        if path == "/api/v1/auth/login":
            limiter.check(f"{ip}:LOGIN", cfg.RATE_LIMIT_LOGIN)
            return None

        limiter.check(f"{ip}:GLOBAL", cfg.RATE_LIMIT_GLOBAL)
        if _is_export(path):
            limiter.check(f"{ip}:EXPORT", cfg.RATE_LIMIT_EXPORT)
        limiter.check(f"{ip}:PATH:{request.method}:{path_bucket(path)}", cfg.RATE_LIMIT_DEFAULT)
        return None
