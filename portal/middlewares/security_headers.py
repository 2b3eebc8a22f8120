from __future__ import annotations

from flask import Flask, request

_BASE_HEADERS = {
    "X-Content-Type-Options": "nosniff",
    "X-Frame-Options": "DENY",
    "Referrer-Policy": "no-referrer",
    "Permissions-Policy": "geolocation=(), microphone=(), camera=()",
}


def _is_https() -> bool:
    return request.is_secure or str(request.headers.get("X-Forwarded-Proto") or "").lower() == "https"


def init_security_headers(app: Flask) -> None:
    @app.after_request
    def _headers(resp):
        for name, value in _BASE_HEADERS.items():
            resp.headers.setdefault(name, value)

        if request.path.startswith("/api/"):
            # Exports (pdf, xlsx, csv) carry candidate and attendance data.
            if "attachment" in str(resp.headers.get("Content-Disposition") or ""):
                resp.headers["Cache-Control"] = "private, no-store"
                resp.headers.setdefault("X-Download-Options", "noopen")
            else:
                resp.headers.setdefault("Cache-Control", "no-store")

        cfg = app.config.get("CFG")
        if getattr(cfg, "IS_PRODUCTION", False) and _is_https():
            resp.headers.setdefault("Strict-Transport-Security", "max-age=31536000; includeSubDomains")
        return resp
