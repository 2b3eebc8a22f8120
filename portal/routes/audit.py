from __future__ import annotations

import csv
import io
import json
from datetime import datetime, timedelta, timezone

from flask import Blueprint, Response, jsonify, request
from sqlalchemy import delete, func, select

from portal.db import get_session
from portal.models import AuditLog, User
from portal.services.audit import audit_payload, record_audit
from portal.utils.auth import ADMIN, get_current_user, require_auth, require_roles
from portal.utils.errors import bad_request
from portal.utils.validators import parse_int, parse_optional_int, parse_pagination, require_json, require_text

audit_bp = Blueprint("audit", __name__)

EXPORT_HEADERS = [
    "id",
    "user_id",
    "action",
    "table_name",
    "record_id",
    "old_values",
    "new_values",
    "ip_address",
    "created_at",
]


def _bound(value: str | None) -> str | None:
    # created_at is an ISO-8601 string, so string comparison orders correctly.
    s = str(value or "").strip()
    return s or None


def _filtered(q, args):
    user_id = parse_optional_int(args.get("userId") or args.get("user_id"), field="userId", minimum=1)
    if user_id is not None:
        q = q.where(AuditLog.user_id == user_id)
    action = str(args.get("action") or "").strip().upper()
    if action:
        q = q.where(AuditLog.action == action)
    table = str(args.get("resourceType") or args.get("table_name") or "").strip()
    if table:
        q = q.where(AuditLog.table_name == table)
    start = _bound(args.get("startDate"))
    if start:
        q = q.where(AuditLog.created_at >= start)
    end = _bound(args.get("endDate"))
    if end:
        # Bare dates include the whole end day.
        q = q.where(AuditLog.created_at <= (f"{end}T23:59:59Z" if len(end) == 10 else end))
    return q


@audit_bp.post("/log")
@require_auth
def client_log():
    user = get_current_user()
    body = require_json()
    db = get_session()
    entry = record_audit(
        db,
        actor_id=user["id"],
        action=require_text(body, "action", max_len=64),
        table_name=str(body.get("tableName") or "").strip(),
        record_id=parse_optional_int(body.get("recordId"), field="recordId"),
        old_values=body.get("oldValues"),
        new_values=body.get("newValues"),
    )
    db.commit()
    return jsonify({"success": True, "data": audit_payload(entry)}), 201


@audit_bp.get("/logs")
@require_roles([ADMIN])
def list_logs():
    db = get_session()
    limit, offset = parse_pagination(request.args, default_limit=50)
    rows = db.execute(
        _filtered(select(AuditLog), request.args)
        .order_by(AuditLog.created_at.desc(), AuditLog.id.desc())
        .limit(limit)
        .offset(offset)
    ).scalars().all()
    total = int(db.execute(_filtered(select(func.count(AuditLog.id)), request.args)).scalar_one() or 0)
    return jsonify(
        {
            "success": True,
            "data": {
                "logs": [audit_payload(r) for r in rows],
                "pagination": {
                    "total": total,
                    "limit": limit,
                    "offset": offset,
                    "pages": (total + limit - 1) // limit,
                },
            },
        }
    )


@audit_bp.get("/user/<int:user_id>/activity")
@require_roles([ADMIN])
def user_activity(user_id: int):
    db = get_session()
    limit = min(parse_optional_int(request.args.get("limit"), field="limit", minimum=1) or 100, 500)
    rows = db.execute(
        select(AuditLog)
        .where(AuditLog.user_id == user_id)
        .order_by(AuditLog.created_at.desc(), AuditLog.id.desc())
        .limit(limit)
    ).scalars().all()
    activities = [audit_payload(r) for r in rows]
    return jsonify({"success": True, "data": {"userId": user_id, "activities": activities, "count": len(rows)}})


@audit_bp.get("/stats")
@require_roles([ADMIN])
def stats():
    db = get_session()

    def _grouped(column, limit: int | None = None):
        q = _filtered(select(column, func.count(AuditLog.id).label("n")), request.args).group_by(column)
        q = q.order_by(func.count(AuditLog.id).desc())
        if limit:
            q = q.limit(limit)
        return db.execute(q).all()

    top_users = _grouped(AuditLog.user_id, limit=10)
    names = {}
    user_ids = [uid for uid, _ in top_users if uid is not None]
    if user_ids:
        names = dict(db.execute(select(User.id, User.name).where(User.id.in_(user_ids))).all())

    return jsonify(
        {
            "success": True,
            "data": {
                "actions": [{"action": a, "count": int(n)} for a, n in _grouped(AuditLog.action)],
                "resourceTypes": [{"tableName": t, "count": int(n)} for t, n in _grouped(AuditLog.table_name)],
                "topUsers": [{"userId": u, "userName": names.get(u), "count": int(n)} for u, n in top_users],
            },
        }
    )


@audit_bp.get("/export")
@require_roles([ADMIN])
def export_logs():
    db = get_session()
    fmt = str(request.args.get("format") or "csv").strip().lower()
    if fmt not in {"csv", "json"}:
        raise bad_request("format must be csv|json")

    rows = db.execute(
        _filtered(select(AuditLog), request.args).order_by(AuditLog.created_at.desc(), AuditLog.id.desc())
    ).scalars().all()

    if fmt == "json":
        return Response(
            json.dumps([audit_payload(r) for r in rows], separators=(",", ":")),
            mimetype="application/json",
            headers={"Content-Disposition": 'attachment; filename="audit-logs.json"'},
        )

    out = io.StringIO()
    writer = csv.writer(out)
    writer.writerow(EXPORT_HEADERS)
    for r in rows:
        writer.writerow(
            [
                r.id,
                r.user_id or "",
                r.action,
                r.table_name,
                r.record_id or "",
                r.old_values,
                r.new_values,
                r.ip_address,
                r.created_at,
            ]
        )
    return Response(
        out.getvalue(),
        mimetype="text/csv",
        headers={"Content-Disposition": 'attachment; filename="audit-logs.csv"'},
    )


@audit_bp.delete("/cleanup")
@require_roles([ADMIN])
def cleanup():
    user = get_current_user()
    body = request.get_json(silent=True) or {}
    raw = body.get("daysToKeep", request.args.get("daysToKeep", 90))
    days_to_keep = parse_int(raw, field="daysToKeep", minimum=1, maximum=3650)

    cutoff = (datetime.now(timezone.utc) - timedelta(days=days_to_keep)).replace(microsecond=0)
    cutoff_s = cutoff.isoformat().replace("+00:00", "Z")

    db = get_session()
    result = db.execute(delete(AuditLog).where(AuditLog.created_at < cutoff_s))
    deleted = int(result.rowcount or 0)
    record_audit(
        db,
        actor_id=user["id"],
        action="CLEANUP",
        table_name="audit_logs",
        new_values={"daysToKeep": days_to_keep, "deletedCount": deleted},
    )
    db.commit()
    return jsonify({"success": True, "data": {"deletedCount": deleted, "cutoff": cutoff_s}})
