from __future__ import annotations

from flask import Blueprint, jsonify, request
from sqlalchemy import select

from portal.db import get_session
from portal.models import ALERT_STATUSES, REMINDER_STATUSES, Alert, Reminder
from portal.services.audit import record_audit
from portal.services.automation import AUTOMATION_CHECKS
from portal.services.serializers import alert_dict, reminder_dict
from portal.utils.auth import ADMIN, get_current_user, is_admin, require_auth, require_roles
from portal.utils.datetime import iso_utc_now, utc_today
from portal.utils.errors import bad_request, forbidden, not_found
from portal.utils.validators import parse_pagination, require_json, validate_choice

alerts_bp = Blueprint("alerts", __name__)
notifications_bp = Blueprint("notifications", __name__)
reminders_bp = Blueprint("reminders", __name__)

OPEN_REMINDER_STATUSES = ("pending", "snoozed")


def _load_alert(db, user: dict, alert_id: int) -> Alert:
    alert = db.get(Alert, alert_id)
    if alert is None:
        raise not_found("Alert")
    if not is_admin(user) and alert.user_id != user["id"]:
        raise forbidden()
    return alert


@alerts_bp.get("")
@require_auth
def list_alerts():
    user = get_current_user()
    db = get_session()
    limit, offset = parse_pagination(request.args, default_limit=50)
    q = select(Alert).where(Alert.user_id == user["id"])
    status = str(request.args.get("status") or "").strip()
    if status:
        q = q.where(Alert.status == validate_choice(status, ALERT_STATUSES, field="status"))
    rows = db.execute(q.order_by(Alert.created_at.desc(), Alert.id.desc()).limit(limit).offset(offset)).scalars().all()
    return jsonify({"success": True, "data": [alert_dict(a) for a in rows]})


@alerts_bp.patch("/<int:alert_id>/acknowledge")
@require_auth
def acknowledge_alert(alert_id: int):
    user = get_current_user()
    db = get_session()
    alert = _load_alert(db, user, alert_id)
    if alert.status == "resolved":
        raise bad_request("Resolved alerts cannot be acknowledged")
    alert.status = "acknowledged"
    alert.acknowledged_at = iso_utc_now()
    record_audit(db, actor_id=user["id"], action="ACKNOWLEDGE", table_name="alerts", record_id=alert.id)
    db.commit()
    return jsonify({"success": True, "data": alert_dict(alert)})


@alerts_bp.patch("/<int:alert_id>/resolve")
@require_auth
def resolve_alert(alert_id: int):
    user = get_current_user()
    db = get_session()
    alert = _load_alert(db, user, alert_id)
    now = iso_utc_now()
    alert.status = "resolved"
    alert.resolved_at = now
    if not alert.acknowledged_at:
        alert.acknowledged_at = now
    record_audit(db, actor_id=user["id"], action="RESOLVE", table_name="alerts", record_id=alert.id)
    db.commit()
    return jsonify({"success": True, "data": alert_dict(alert)})


@alerts_bp.post("/automation/run")
@require_roles([ADMIN])
def run_automation():
    user = get_current_user()
    body = request.get_json(silent=True) or {}
    name = str(body.get("check") or "all").strip()
    if name != "all" and name not in AUTOMATION_CHECKS:
        raise bad_request(f"check must be one of: all, {', '.join(AUTOMATION_CHECKS)}")

    db = get_session()
    names = list(AUTOMATION_CHECKS) if name == "all" else [name]
    created = {n: AUTOMATION_CHECKS[n](db, today=utc_today()) for n in names}
    record_audit(db, actor_id=user["id"], action="AUTOMATION_RUN", table_name="alerts", new_values=created)
    db.commit()
    return jsonify({"success": True, "data": {"created": created}})


@notifications_bp.get("")
@require_auth
def notifications():
    user = get_current_user()
    db = get_session()

    reminders_q = select(Reminder).where(Reminder.reminder_status.in_(OPEN_REMINDER_STATUSES))
    alerts_q = select(Alert).where(Alert.status != "resolved")
    if not is_admin(user):
        reminders_q = reminders_q.where(Reminder.recruiter_id == user["id"])
        alerts_q = alerts_q.where(Alert.user_id == user["id"])

    reminders = db.execute(reminders_q.order_by(Reminder.due_date.asc(), Reminder.id.asc()).limit(100)).scalars().all()
    alerts = (
        db.execute(alerts_q.order_by(Alert.priority.desc(), Alert.created_at.desc()).limit(100)).scalars().all()
    )
    return jsonify(
        {
            "success": True,
            "data": {
                "reminders": [reminder_dict(r) for r in reminders],
                "alerts": [alert_dict(a) for a in alerts],
                "unread": len(reminders) + sum(1 for a in alerts if a.status == "open"),
            },
        }
    )


@reminders_bp.patch("/<int:reminder_id>")
@require_auth
def update_reminder(reminder_id: int):
    user = get_current_user()
    body = require_json()
    db = get_session()
    reminder = db.get(Reminder, reminder_id)
    if reminder is None:
        raise not_found("Reminder")
    if not is_admin(user) and reminder.recruiter_id != user["id"]:
        raise forbidden()

    reminder.reminder_status = validate_choice(body.get("status"), REMINDER_STATUSES, field="status")
    reminder.updated_at = iso_utc_now()
    record_audit(
        db,
        actor_id=user["id"],
        action="UPDATE",
        table_name="reminders",
        record_id=reminder.id,
        new_values={"reminder_status": reminder.reminder_status},
    )
    db.commit()
    return jsonify({"success": True, "data": reminder_dict(reminder)})
