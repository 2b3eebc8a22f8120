from __future__ import annotations

from flask import Blueprint, jsonify
from sqlalchemy import select

from portal.db import get_session
from portal.models import MAX_DAILY_QUOTA, User
from portal.services.audit import model_snapshot, record_audit
from portal.utils.auth import get_current_user, hash_password, is_admin, require_auth, user_payload
from portal.utils.datetime import iso_utc_now
from portal.utils.errors import ApiError, bad_request, not_found
from portal.utils.validators import parse_int, require_json, validate_email, validate_strong_password

profile_bp = Blueprint("profile", __name__)


@profile_bp.get("")
@require_auth
def get_profile():
    user = get_current_user()
    row = get_session().get(User, user["id"])
    if row is None:
        raise not_found("User")
    return jsonify({"success": True, "data": user_payload(row)})


@profile_bp.put("")
@require_auth
def update_profile():
    user = get_current_user()
    body = require_json()
    db = get_session()
    row = db.get(User, user["id"])
    if row is None:
        raise not_found("User")

    before = model_snapshot(row)
    changed = False
    if "name" in body:
        name = str(body.get("name") or "").strip()
        if not name:
            raise bad_request("name cannot be empty")
        row.name = name
        changed = True
    if "email" in body:
        email = validate_email(body.get("email"))
        clash = db.execute(select(User.id).where(User.email == email).where(User.id != row.id)).first()
        if clash:
            raise ApiError("CONFLICT", "Email already in use", status=409)
        row.email = email
        changed = True
    if body.get("password"):
        row.password_hash = hash_password(validate_strong_password(body.get("password")))
        changed = True
    if "daily_quota" in body and is_admin(user):
        row.daily_quota = parse_int(
            body.get("daily_quota"), field="daily_quota", minimum=1, maximum=MAX_DAILY_QUOTA
        )
        changed = True

    if not changed:
        raise bad_request("No profile fields provided to update")

    row.updated_at = iso_utc_now()
    record_audit(
        db,
        actor_id=user["id"],
        action="UPDATE",
        table_name="users",
        record_id=row.id,
        old_values=before,
        new_values=model_snapshot(row),
    )
    db.commit()
    return jsonify({"success": True, "data": user_payload(row)})
