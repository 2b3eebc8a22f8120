from __future__ import annotations

import logging

from flask import Blueprint, request

from portal.utils.auth import get_current_user, require_auth

log = logging.getLogger("portal.analytics")

analytics_bp = Blueprint("analytics", __name__)


@analytics_bp.post("")
@require_auth
def ingest():
    """Client event batches are only logged; nothing is stored."""
    user = get_current_user()
    body = request.get_json(silent=True) or {}
    events = body.get("events") if isinstance(body, dict) else None
    events = events if isinstance(events, list) else []
    sample = [str(e.get("event")) for e in events[:3] if isinstance(e, dict)]
    log.info("analytics batch user=%s count=%s sample=%s", user["id"], len(events), sample)
    return "", 204
