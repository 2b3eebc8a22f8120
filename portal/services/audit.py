from __future__ import annotations

import json
import logging
import os
from datetime import date, datetime, time
from typing import Any

import requests
from flask import current_app, has_app_context, has_request_context
from sqlalchemy import event

from portal.db import SessionLocal
from portal.models import AuditLog
from portal.utils.datetime import iso_utc_now
from portal.utils.http import client_ip, user_agent

log = logging.getLogger("portal.audit")

_REDACTED_KEYS = {"password", "password_hash", "token", "access_token"}
_PENDING_KEY = "audit_pending"


def _json_default(value: Any) -> Any:
    if isinstance(value, (date, datetime, time)):
        return value.isoformat()
    return str(value)


def redact(values: Any) -> Any:
    if isinstance(values, dict):
        return {
            k: ("[REDACTED]" if str(k).lower() in _REDACTED_KEYS else redact(v)) for k, v in values.items()
        }
    if isinstance(values, list):
        return [redact(v) for v in values]
    return values


def _dumps(values: Any) -> str:
    if values is None:
        return ""
    return json.dumps(redact(values), default=_json_default, separators=(",", ":"))


def model_snapshot(obj, *, exclude: tuple[str, ...] = ("password_hash",)) -> dict[str, Any]:
    return {
        c.name: getattr(obj, c.name)
        for c in obj.__table__.columns  # type: ignore[attr-defined]
        if c.name not in exclude
    }


def record_audit(
    db,
    *,
    actor_id: int | None,
    action: str,
    table_name: str,
    record_id: int | None = None,
    old_values: Any = None,
    new_values: Any = None,
) -> AuditLog:
    entry = AuditLog(
        user_id=actor_id,
        action=str(action or "").upper(),
        table_name=str(table_name or ""),
        record_id=record_id,
        old_values=_dumps(old_values),
        new_values=_dumps(new_values),
        ip_address=client_ip() if has_request_context() else "",
        user_agent=user_agent() if has_request_context() else "",
        created_at=iso_utc_now(),
    )
    db.add(entry)
    db.flush()

    cfg = current_app.config.get("CFG") if has_app_context() else None
    if cfg is not None and (cfg.AUDIT_LOG_PATH or cfg.AUDIT_WEBHOOK_URL):
        # Held until the surrounding transaction commits.
        db.info.setdefault(_PENDING_KEY, []).append((cfg, audit_payload(entry)))
    return entry


@event.listens_for(SessionLocal, "after_commit")
def _stream_committed(session) -> None:
    for cfg, payload in session.info.pop(_PENDING_KEY, []):
        stream_audit_event(cfg, payload)


@event.listens_for(SessionLocal, "after_rollback")
def _drop_rolled_back(session) -> None:
    dropped = session.info.pop(_PENDING_KEY, [])
    if dropped:
        log.debug("dropped %s audit events from a rolled back transaction", len(dropped))


def audit_payload(entry: AuditLog) -> dict[str, Any]:
    def _load(raw: str) -> Any:
        if not raw:
            return None
        try:
            return json.loads(raw)
        except ValueError:
            return raw

    return {
        "id": entry.id,
        "userId": entry.user_id,
        "action": entry.action,
        "tableName": entry.table_name,
        "recordId": entry.record_id,
        "oldValues": _load(entry.old_values),
        "newValues": _load(entry.new_values),
        "ipAddress": entry.ip_address or None,
        "userAgent": entry.user_agent or None,
        "createdAt": entry.created_at,
    }


def stream_audit_event(cfg, payload: dict[str, Any]) -> None:
    """Copy an audit entry to the optional file and webhook sinks. Sink failures are logged only."""
    line = json.dumps(payload, default=_json_default, separators=(",", ":"))

    if cfg.AUDIT_LOG_PATH:
        try:
            directory = os.path.dirname(cfg.AUDIT_LOG_PATH)
            if directory:
                os.makedirs(directory, exist_ok=True)
            with open(cfg.AUDIT_LOG_PATH, "a", encoding="utf-8") as f:
                f.write(line + "\n")
        except OSError as e:
            log.warning("Audit file sink failed path=%s: %s", cfg.AUDIT_LOG_PATH, e)

    if cfg.AUDIT_WEBHOOK_URL:
        try:
            resp = requests.post(
                cfg.AUDIT_WEBHOOK_URL,
                data=line,
                headers={"Content-Type": "application/json"},
                timeout=cfg.AUDIT_WEBHOOK_TIMEOUT_SECONDS,
            )
            if resp.status_code >= 400:
                log.warning("Audit webhook rejected event status=%s", resp.status_code)
        except requests.RequestException as e:
            log.warning("Audit webhook failed: %s", e)
