from __future__ import annotations

from flask import Blueprint, current_app, jsonify

from portal.cache import cache_stats
from portal.db import ping_db
from portal.services.automation import AUTOMATION_CHECKS, last_runs
from portal.utils.datetime import iso_utc_now

core_bp = Blueprint("core", __name__)


@core_bp.get("/health")
def health():
    """Liveness for the load balancer; 503 only when the database is unreachable."""
    cfg = current_app.config["CFG"]
    db_ok = ping_db()
    runs = last_runs()
    body = {
        "status": "ok" if db_ok else "degraded",
        "time": iso_utc_now(),
        "version": cfg.APP_VERSION,
        "db": "ok" if db_ok else "error",
        "automation": {
            "enabled": bool(cfg.ENABLE_AUTOMATION and not cfg.TESTING),
            "checks": {name: runs.get(name) for name in AUTOMATION_CHECKS},
        },
        "reportCache": cache_stats(),
    }
    return jsonify(body), 200 if db_ok else 503


@core_bp.get("/version")
def version():
    cfg = current_app.config["CFG"]
    return jsonify({"version": cfg.APP_VERSION, "env": cfg.ENV, "apiPrefix": "/api/v1", "time": iso_utc_now()})
