from __future__ import annotations

from typing import Any

from portal.models import Candidate, User
from portal.utils.auth import ADMIN, RECRUITER, is_admin
from portal.utils.errors import ApiError, forbidden, not_found


def load_candidate_for(db, user: dict[str, Any], candidate_id: int) -> Candidate:
    """Admins and viewers see every candidate; recruiters only those assigned to them."""
    candidate = db.get(Candidate, candidate_id)
    if candidate is None:
        raise not_found("Candidate")
    if user["role"] == RECRUITER and candidate.assigned_recruiter_id != user["id"]:
        raise forbidden("Candidate is not assigned to you")
    return candidate


def require_writer(user: dict[str, Any]) -> None:
    if user["role"] not in (ADMIN, RECRUITER):
        raise forbidden("Read-only role")


def require_owner_or_admin(user: dict[str, Any], owner_id: int | None, *, what: str = "record") -> None:
    if is_admin(user):
        return
    if owner_id != user["id"]:
        raise forbidden(f"You can only modify your own {what}")


def load_recruiter(db, user_id: int) -> User:
    target = db.get(User, user_id)
    if target is None:
        raise not_found("User")
    if target.role != RECRUITER:
        raise ApiError("BAD_REQUEST", "Target user must be a recruiter", status=400)
    return target


def recruiter_scope(user: dict[str, Any], requested: int | None) -> int | None:
    """Recruiter filter to apply: recruiters are pinned to themselves."""
    if user["role"] == RECRUITER:
        return user["id"]
    return requested
