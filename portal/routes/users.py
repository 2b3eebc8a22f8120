from __future__ import annotations

from datetime import datetime, timedelta, timezone

from dateutil import parser as dateutil_parser
from flask import Blueprint, current_app, jsonify, request
from sqlalchemy import delete, func, select, update

from portal.db import get_session
from portal.models import (
    MAX_DAILY_QUOTA,
    ROLES,
    Alert,
    Application,
    Assessment,
    AttendanceEntry,
    Candidate,
    DailyActivity,
    Interview,
    Note,
    RecruiterCandidateActivity,
    Reminder,
    User,
)
from portal.cache import invalidate_reports
from portal.services.audit import model_snapshot, record_audit
from portal.services.profile import fetch_user_profile, parse_window_args
from portal.utils.auth import ADMIN, get_current_user, hash_password, is_admin, require_auth, require_roles, user_payload
from portal.utils.datetime import iso_utc_now, utc_today
from portal.utils.errors import ApiError, bad_request, forbidden, not_found
from portal.utils.validators import (
    parse_int,
    require_json,
    require_text,
    validate_choice,
    validate_email,
    validate_password,
)

users_bp = Blueprint("users", __name__)

ONLINE_WINDOW = timedelta(minutes=5)


def _is_online(last_active_at: str, now: datetime) -> bool:
    if not last_active_at:
        return False
    try:
        seen = dateutil_parser.isoparse(last_active_at)
    except ValueError:
        return False
    if seen.tzinfo is None:
        seen = seen.replace(tzinfo=timezone.utc)
    return now - seen <= ONLINE_WINDOW


@users_bp.get("")
@require_roles([ADMIN])
def list_users():
    db = get_session()
    q = select(User).order_by(User.role.asc(), User.name.asc())
    role = str(request.args.get("role") or "").strip()
    if role:
        q = q.where(User.role == validate_choice(role, ROLES, field="role"))
    users = db.execute(q).scalars().all()
    return jsonify({"success": True, "data": [user_payload(u) for u in users]})


@users_bp.post("")
@require_roles([ADMIN])
def create_user():
    actor = get_current_user()
    body = require_json()
    name = require_text(body, "name")
    email = validate_email(body.get("email"))
    password = validate_password(body.get("password"), allow_short=False)
    role = validate_choice(body.get("role") or "Recruiter", ROLES, field="role")
    quota_raw = body.get("daily_quota")
    daily_quota = (
        parse_int(quota_raw, field="daily_quota", minimum=1, maximum=MAX_DAILY_QUOTA)
        if quota_raw is not None
        else current_app.config["CFG"].DEFAULT_DAILY_QUOTA
    )

    db = get_session()
    if db.execute(select(User.id).where(User.email == email)).first():
        raise ApiError("CONFLICT", "Email already exists", status=409)

    now = iso_utc_now()
    user = User(
        name=name,
        email=email,
        password_hash=hash_password(password),
        role=role,
        daily_quota=daily_quota,
        is_active=True,
        created_at=now,
        updated_at=now,
    )
    db.add(user)
    db.flush()
    record_audit(
        db, actor_id=actor["id"], action="CREATE", table_name="users", record_id=user.id, new_values=model_snapshot(user)
    )
    db.commit()
    invalidate_reports()
    return jsonify({"success": True, "data": user_payload(user)}), 201


@users_bp.put("/<int:user_id>")
@require_roles([ADMIN])
def update_user(user_id: int):
    actor = get_current_user()
    body = require_json()
    db = get_session()
    user = db.get(User, user_id)
    if user is None:
        raise not_found("User")

    before = model_snapshot(user)
    changed = False
    if "name" in body:
        user.name = require_text(body, "name")
        changed = True
    if "email" in body:
        email = validate_email(body.get("email"))
        if db.execute(select(User.id).where(User.email == email).where(User.id != user_id)).first():
            raise ApiError("CONFLICT", "Email already exists", status=409)
        user.email = email
        changed = True
    if body.get("password"):
        user.password_hash = hash_password(validate_password(body.get("password"), allow_short=False))
        changed = True
    if "role" in body:
        user.role = validate_choice(body.get("role"), ROLES, field="role")
        changed = True
    if "daily_quota" in body:
        user.daily_quota = parse_int(
            body.get("daily_quota"), field="daily_quota", minimum=1, maximum=MAX_DAILY_QUOTA
        )
        changed = True
    if "is_active" in body:
        if user_id == actor["id"] and not body.get("is_active"):
            raise bad_request("You cannot deactivate your own account")
        user.is_active = bool(body.get("is_active"))
        changed = True
    if not changed:
        raise bad_request("No fields provided to update")

    user.updated_at = iso_utc_now()
    record_audit(
        db,
        actor_id=actor["id"],
        action="UPDATE",
        table_name="users",
        record_id=user.id,
        old_values=before,
        new_values=model_snapshot(user),
    )
    db.commit()
    invalidate_reports()
    return jsonify({"success": True, "data": user_payload(user)})


@users_bp.delete("/<int:user_id>")
@require_roles([ADMIN])
def delete_user(user_id: int):
    actor = get_current_user()
    if user_id == actor["id"]:
        raise bad_request("You cannot delete your own account")

    db = get_session()
    user = db.get(User, user_id)
    if user is None:
        raise not_found("User")

    before = model_snapshot(user)
    # Keep the pipeline history; only detach ownership.
    db.execute(update(Candidate).where(Candidate.assigned_recruiter_id == user_id).values(assigned_recruiter_id=None))
    for model in (Application, Interview, Assessment):
        db.execute(update(model).where(model.recruiter_id == user_id).values(recruiter_id=None))
    db.execute(update(Note).where(Note.author_id == user_id).values(author_id=None))
    db.execute(delete(Reminder).where(Reminder.recruiter_id == user_id))
    db.execute(delete(RecruiterCandidateActivity).where(RecruiterCandidateActivity.recruiter_id == user_id))
    for model in (Alert, AttendanceEntry, DailyActivity):
        db.execute(delete(model).where(model.user_id == user_id))
    db.delete(user)
    record_audit(db, actor_id=actor["id"], action="DELETE", table_name="users", record_id=user_id, old_values=before)
    db.commit()
    invalidate_reports()
    return "", 204


@users_bp.get("/activity")
@require_roles([ADMIN])
def user_activity():
    db = get_session()
    today = utc_today()
    now = datetime.now(timezone.utc)
    week_ago = (today - timedelta(days=6)).isoformat()

    notes_total = dict(db.execute(select(Note.author_id, func.count(Note.id)).group_by(Note.author_id)).all())
    notes_week = dict(
        db.execute(
            select(Note.author_id, func.count(Note.id)).where(Note.created_at >= week_ago).group_by(Note.author_id)
        ).all()
    )
    today_apps = dict(
        db.execute(
            select(DailyActivity.user_id, DailyActivity.applications_count).where(DailyActivity.activity_date == today)
        ).all()
    )

    users = db.execute(select(User).order_by(User.role.asc(), User.name.asc())).scalars().all()
    data = []
    for u in users:
        item = user_payload(u)
        item.update(
            {
                "isOnline": _is_online(u.last_active_at, now),
                "totalNotes": int(notes_total.get(u.id, 0)),
                "notesLast7Days": int(notes_week.get(u.id, 0)),
                "todayApplications": int(today_apps.get(u.id, 0)),
            }
        )
        data.append(item)
    return jsonify({"success": True, "data": {"users": data, "generatedAt": iso_utc_now()}})


@users_bp.get("/<int:user_id>/profile")
@require_auth
def user_profile(user_id: int):
    actor = get_current_user()
    if not is_admin(actor) and actor["id"] != user_id:
        raise forbidden()

    db = get_session()
    user = db.get(User, user_id)
    if user is None:
        raise not_found("User")
    data = fetch_user_profile(db, user, parse_window_args(request.args), today=utc_today())
    return jsonify({"success": True, "data": data})
