from __future__ import annotations

import logging

from flask import Blueprint, current_app, jsonify
from sqlalchemy import select

from portal.db import get_session
from portal.models import User
from portal.services.audit import record_audit
from portal.utils.auth import create_access_token, get_current_user, require_auth, user_payload, verify_password
from portal.utils.datetime import iso_utc_now
from portal.utils.errors import forbidden, unauthorized
from portal.utils.validators import require_json, validate_email, validate_password

log = logging.getLogger("portal.auth")

auth_bp = Blueprint("auth", __name__)


@auth_bp.post("/login")
def login():
    body = require_json()
    email = validate_email(body.get("email"))
    password = validate_password(body.get("password"), allow_short=True)

    db = get_session()
    user = db.execute(select(User).where(User.email == email)).scalars().first()
    if not user or not verify_password(password, user.password_hash):
        log.info("login failed email=%s", email)
        raise unauthorized("Invalid credentials")
    if not user.is_active:
        raise forbidden("User is disabled")

    token = create_access_token(current_app, user)
    now = iso_utc_now()
    user.last_login_at = now
    user.last_active_at = now
    record_audit(db, actor_id=user.id, action="LOGIN", table_name="users", record_id=user.id)
    db.commit()

    return jsonify(
        {
            "success": True,
            "data": {"access_token": token, "token_type": "bearer", "user": user_payload(user)},
        }
    )


@auth_bp.post("/logout")
@require_auth
def logout():
    # Tokens are stateless; the audit row is the only server-side trace.
    user = get_current_user()
    db = get_session()
    record_audit(db, actor_id=user["id"], action="LOGOUT", table_name="users", record_id=user["id"])
    db.commit()
    return "", 204


@auth_bp.get("/me")
@require_auth
def me():
    user = get_current_user()
    row = get_session().get(User, user["id"])
    return jsonify({"success": True, "data": user_payload(row)})
