from __future__ import annotations

import functools
from datetime import datetime, timedelta, timezone
from typing import Any, Callable, TypeVar

import bcrypt
import jwt
from flask import current_app, g, request

from portal.db import get_session
from portal.models import User
from portal.utils.datetime import iso_utc_now
from portal.utils.errors import ApiError, forbidden, unauthorized


_T = TypeVar("_T", bound=Callable[..., Any])

ADMIN = "Admin"
RECRUITER = "Recruiter"
VIEWER = "Viewer"


def hash_password(password: str) -> str:
    salt = bcrypt.gensalt(rounds=12)
    return bcrypt.hashpw(password.encode("utf-8"), salt).decode("utf-8")


def verify_password(password: str, password_hash: str) -> bool:
    try:
        return bcrypt.checkpw(password.encode("utf-8"), password_hash.encode("utf-8"))
    except Exception:
        return False


def create_access_token(app, user: User) -> str:
    cfg = app.config["CFG"]
    now = datetime.now(timezone.utc)
    payload = {
        "sub": str(user.id),
        "email": str(user.email or ""),
        "role": str(user.role or ""),
        "iat": int(now.timestamp()),
        "exp": int((now + timedelta(minutes=cfg.JWT_EXP_MINUTES)).timestamp()),
    }
    return jwt.encode(payload, cfg.JWT_SECRET, algorithm="HS256")


def _decode_token(token: str) -> dict[str, Any]:
    cfg = current_app.config["CFG"]
    try:
        return jwt.decode(token, cfg.JWT_SECRET, algorithms=["HS256"])
    except jwt.ExpiredSignatureError as e:
        raise unauthorized("Token expired") from e
    except jwt.InvalidTokenError as e:
        raise unauthorized("Invalid token") from e


def _bearer_token() -> str:
    authz = str(request.headers.get("Authorization") or "").strip()
    if authz.lower().startswith("bearer "):
        return authz.split(" ", 1)[1].strip()
    return ""


def user_payload(user: User) -> dict[str, Any]:
    return {
        "id": user.id,
        "name": user.name,
        "email": user.email,
        "role": user.role,
        "dailyQuota": user.daily_quota,
        "isActive": bool(user.is_active),
        "lastLoginAt": user.last_login_at or None,
        "lastActiveAt": user.last_active_at or None,
    }


def get_current_user() -> dict[str, Any]:
    cached = g.get("current_user")
    if cached is not None:
        return cached

    token = _bearer_token()
    if not token:
        raise unauthorized("Missing bearer token")

    payload = _decode_token(token)
    try:
        user_id = int(str(payload.get("sub") or "").strip())
    except ValueError as e:
        raise unauthorized("Invalid token subject") from e

    db = get_session()
    user = db.get(User, user_id)
    if not user:
        raise unauthorized("User not found")
    if not user.is_active:
        raise forbidden("User is disabled")

    user.last_active_at = iso_utc_now()
    db.commit()

    current = {"id": user.id, "name": user.name, "email": user.email, "role": user.role}
    g.current_user = current
    return current


def is_admin(user: dict[str, Any]) -> bool:
    return str(user.get("role") or "") == ADMIN


def require_roles(roles: list[str]) -> Callable[[_T], _T]:
    allowed = {str(r or "").upper().strip() for r in (roles or []) if str(r or "").strip()}

    def _decorator(fn: _T) -> _T:
        @functools.wraps(fn)
        def _wrapped(*args, **kwargs):
            user = get_current_user()
            if allowed and str(user["role"]).upper() not in allowed:
                raise ApiError("FORBIDDEN", "Insufficient role", status=403, details={"required": sorted(allowed)})
            return fn(*args, **kwargs)

        return _wrapped  # type: ignore[return-value]

    return _decorator


def require_auth(fn: _T) -> _T:
    return require_roles([])(fn)
