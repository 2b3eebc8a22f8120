from __future__ import annotations

import re
import time
import uuid

from flask import Flask, g, request

_SAFE_ID_RE = re.compile(r"^[A-Za-z0-9._-]{1,64}$")
# The dashboard sends X-Correlation-ID from its fetch wrapper; proxies use X-Request-ID.
_INCOMING_HEADERS = ("X-Request-ID", "X-Correlation-ID")


def _incoming_id() -> str | None:
    for header in _INCOMING_HEADERS:
        value = str(request.headers.get(header) or "").strip()
        if _SAFE_ID_RE.match(value):
            return value
    return None


def init_request_id(app: Flask) -> None:
    @app.before_request
    def _assign():
        g.request_id = _incoming_id() or uuid.uuid4().hex[:16]
        g.start_ts = time.monotonic()

    @app.after_request
    def _echo(resp):
        if getattr(g, "request_id", ""):
            resp.headers["X-Request-ID"] = g.request_id
        return resp
