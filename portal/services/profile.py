from __future__ import annotations

from datetime import date, datetime
from typing import Any, Callable

from sqlalchemy import case, func, select

from portal.models import Alert, Application, Assessment, Candidate, Interview, User
from portal.services.serializers import alert_dict, application_dict, assessment_dict, candidate_dict, interview_dict
from portal.utils.auth import user_payload
from portal.utils.validators import INT32_MAX

WINDOW_DEFAULT_LIMIT = 6
WINDOW_MAX_LIMIT = 50

WINDOWS = ("assignedCandidates", "recentApplications", "upcomingInterviews", "pendingAssessments", "openAlerts")


def parse_window_args(args) -> dict[str, tuple[int, int]]:
    """Per-list `<name>Limit` / `<name>Offset` query params; bad values fall back to defaults."""
    out = {}
    for name in WINDOWS:
        try:
            limit = int(args.get(f"{name}Limit", WINDOW_DEFAULT_LIMIT))
        except (TypeError, ValueError, OverflowError):
            limit = WINDOW_DEFAULT_LIMIT
        try:
            offset = int(args.get(f"{name}Offset", 0))
        except (TypeError, ValueError, OverflowError):
            offset = 0
        limit = WINDOW_DEFAULT_LIMIT if limit <= 0 else min(limit, WINDOW_MAX_LIMIT)
        out[name] = (limit, min(max(0, offset), INT32_MAX))
    return out


def _window(db, query, limit: int, offset: int, to_dict: Callable[[Any], dict[str, Any]]) -> dict[str, Any]:
    rows = list(db.execute(query.limit(limit + 1).offset(offset)).scalars().all())
    has_more = len(rows) > limit
    rows = rows[:limit]
    return {
        "items": [to_dict(r) for r in rows],
        "limit": limit,
        "offset": offset,
        "hasMore": has_more,
        "nextOffset": offset + len(rows) if has_more else None,
    }


def _app_metrics(db, user_id: int, day: date | None = None) -> dict[str, int]:
    q = select(
        func.coalesce(func.sum(Application.applications_count), 0),
        func.coalesce(func.sum(case((Application.is_approved.is_(True), Application.applications_count), else_=0)), 0),
    ).where(Application.recruiter_id == user_id)
    if day is not None:
        q = q.where(Application.application_date == day)
    total, approved = db.execute(q).one()
    return {"total": int(total), "approved": int(approved), "pending": int(total) - int(approved)}


def _count_metrics(db, model, user_id: int) -> dict[str, int]:
    total, approved = db.execute(
        select(func.count(model.id), func.coalesce(func.sum(case((model.is_approved.is_(True), 1), else_=0)), 0)).where(
            model.recruiter_id == user_id
        )
    ).one()
    return {"total": int(total), "approved": int(approved), "pending": int(total) - int(approved)}


def fetch_user_profile(db, user: User, windows: dict[str, tuple[int, int]], *, today: date) -> dict[str, Any]:
    now = datetime.combine(today, datetime.min.time())

    lists = {
        "assignedCandidates": _window(
            db,
            select(Candidate).where(Candidate.assigned_recruiter_id == user.id).order_by(Candidate.updated_at.desc()),
            *windows["assignedCandidates"],
            candidate_dict,
        ),
        "recentApplications": _window(
            db,
            select(Application)
            .where(Application.recruiter_id == user.id)
            .order_by(Application.application_date.desc(), Application.id.desc()),
            *windows["recentApplications"],
            application_dict,
        ),
        "upcomingInterviews": _window(
            db,
            select(Interview)
            .where(Interview.recruiter_id == user.id)
            .where(Interview.scheduled_date >= now)
            .order_by(Interview.scheduled_date.asc()),
            *windows["upcomingInterviews"],
            interview_dict,
        ),
        "pendingAssessments": _window(
            db,
            select(Assessment)
            .where(Assessment.recruiter_id == user.id)
            .where(Assessment.status.in_(("assigned", "submitted")))
            .order_by(Assessment.due_date.asc()),
            *windows["pendingAssessments"],
            assessment_dict,
        ),
        "openAlerts": _window(
            db,
            select(Alert)
            .where(Alert.user_id == user.id)
            .where(Alert.status != "resolved")
            .order_by(Alert.priority.desc(), Alert.created_at.desc()),
            *windows["openAlerts"],
            alert_dict,
        ),
    }

    return {
        "user": user_payload(user),
        "metrics": {
            "applications": _app_metrics(db, user.id),
            "applicationsToday": _app_metrics(db, user.id, today),
            "interviews": _count_metrics(db, Interview, user.id),
            "assessments": _count_metrics(db, Assessment, user.id),
        },
        **lists,
    }
