from __future__ import annotations

import json
import logging
import os
import time
from typing import Any

from flask import Flask, g, request

from portal.utils.http import client_ip

# Health checkers hit these every few seconds.
_QUIET_PATHS = {"/health", "/version"}


def init_request_logging(app: Flask) -> None:
    logger = logging.getLogger("portal.request")
    slow_ms = max(1, int(os.getenv("SLOW_REQUEST_MS", "1500") or "1500"))

    @app.after_request
    def _log(resp):
        start = getattr(g, "start_ts", None)
        latency_ms = int((time.monotonic() - start) * 1000) if start is not None else None

        user = g.get("current_user") or {}
        line: dict[str, Any] = {
            "type": "request",
            "method": request.method,
            "path": request.path,
            "status": resp.status_code,
            "latency_ms": latency_ms,
            "ip": client_ip(),
            "user_id": user.get("id"),
            "role": user.get("role"),
        }
        msg = json.dumps(line, separators=(",", ":"))

        if resp.status_code >= 500:
            logger.error(msg)
        elif latency_ms is not None and latency_ms >= slow_ms:
            logger.warning(msg)
        elif request.path in _QUIET_PATHS:
            logger.debug(msg)
        else:
            logger.info(msg)
        return resp
