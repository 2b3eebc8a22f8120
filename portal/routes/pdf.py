from __future__ import annotations

from datetime import date, datetime, time, timedelta
from io import BytesIO

from flask import Blueprint, current_app, request, send_file
from sqlalchemy import select

from portal.db import get_session
from portal.models import (
    APPLICATION_STATUSES,
    CANDIDATE_STAGES,
    INTERVIEW_STATUSES,
    INTERVIEW_TYPES,
    Application,
    Candidate,
    Interview,
    User,
)
from portal.reports.queries import performance_report
from portal.services.access import load_recruiter, recruiter_scope
from portal.services.attendance import build_report
from portal.services.attendance_policy import PolicySettings
from portal.services.pdf_export import applications_pdf, attendance_pdf, candidates_pdf, interviews_pdf, performance_pdf
from portal.services.pipeline import pipeline_totals
from portal.services.serializers import application_dict, candidate_dict, interview_dict
from portal.utils.auth import ADMIN, RECRUITER, get_current_user, require_auth, require_roles
from portal.utils.datetime import parse_optional_date, utc_today
from portal.utils.errors import bad_request
from portal.utils.validators import parse_optional_int, validate_choice

pdf_bp = Blueprint("pdf", __name__)


def _body() -> dict:
    body = request.get_json(silent=True)
    return body if isinstance(body, dict) else {}


def _pdf_response(data: bytes, name: str):
    return send_file(
        BytesIO(data),
        as_attachment=True,
        download_name=f"{name}-{utc_today().isoformat()}.pdf",
        mimetype="application/pdf",
    )


def _body_range(body: dict, default_start: date, default_end: date, max_days: int | None = None) -> tuple[date, date]:
    start = parse_optional_date(body.get("dateFrom"), field="dateFrom") or default_start
    end = parse_optional_date(body.get("dateTo"), field="dateTo") or default_end
    if start > end:
        start, end = end, start
    if max_days is not None and (end - start).days + 1 > max_days:
        raise bad_request(f"Date range cannot exceed {max_days} days")
    return start, end


@pdf_bp.post("/attendance")
@require_roles([ADMIN])
def attendance_report_pdf():
    body = _body()
    cfg = current_app.config["CFG"]
    today = utc_today()
    start, end = _body_range(body, today.replace(day=1), today, cfg.ATTENDANCE_MAX_RANGE_DAYS)

    db = get_session()
    user_id = parse_optional_int(body.get("userId"), field="userId", minimum=1)
    if user_id is not None:
        users = [load_recruiter(db, user_id)]
    else:
        users = list(db.execute(select(User).where(User.role == RECRUITER).order_by(User.name.asc())).scalars().all())

    report = build_report(db, users, start, end, settings=PolicySettings.from_config(cfg))
    return _pdf_response(attendance_pdf(report), "attendance-report")


@pdf_bp.post("/candidates")
@require_auth
def candidates_report_pdf():
    user = get_current_user()
    body = _body()
    db = get_session()

    q = select(Candidate, User.name).outerjoin(User, User.id == Candidate.assigned_recruiter_id)
    filters = []
    stage = str(body.get("stage") or "").strip()
    if stage:
        q = q.where(Candidate.current_stage == validate_choice(stage, CANDIDATE_STAGES, field="stage"))
        filters.append(f"Stage: {stage}")
    recruiter_id = recruiter_scope(user, parse_optional_int(body.get("recruiterId"), field="recruiterId", minimum=1))
    if recruiter_id is not None:
        q = q.where(Candidate.assigned_recruiter_id == recruiter_id)
    date_from = parse_optional_date(body.get("dateFrom"), field="dateFrom")
    if date_from is not None:
        q = q.where(Candidate.created_at >= date_from.isoformat())
    date_to = parse_optional_date(body.get("dateTo"), field="dateTo")
    if date_to is not None:
        q = q.where(Candidate.created_at <= f"{date_to.isoformat()}T23:59:59Z")

    rows = db.execute(q.order_by(Candidate.name.asc())).all()
    totals = pipeline_totals(db, [c.id for c, _ in rows])
    items = []
    for candidate, recruiter_name in rows:
        item = candidate_dict(candidate, recruiter_name=recruiter_name)
        item.update(totals[candidate.id])
        items.append(item)
    return _pdf_response(candidates_pdf(items, filters=filters), "candidates-report")


@pdf_bp.post("/performance")
@require_roles([ADMIN])
def performance_report_pdf():
    body = _body()
    today = utc_today()
    period = str(body.get("period") or "monthly").strip().lower()
    if period == "monthly":
        start, end = today - timedelta(days=29), today
    elif period == "weekly":
        start, end = today - timedelta(days=6), today
    elif period == "custom":
        start, end = _body_range(body, today - timedelta(days=6), today)
    else:
        raise bad_request("period must be monthly|weekly|custom")

    items = performance_report(get_session(), start, end)
    return _pdf_response(
        performance_pdf(items, date_from=start.isoformat(), date_to=end.isoformat()), "performance-report"
    )


@pdf_bp.post("/applications")
@require_auth
def applications_report_pdf():
    user = get_current_user()
    body = _body()
    db = get_session()

    q = (
        select(Application, Candidate.name, User.name)
        .outerjoin(Candidate, Candidate.id == Application.candidate_id)
        .outerjoin(User, User.id == Application.recruiter_id)
    )
    status = str(body.get("status") or "").strip()
    if status:
        q = q.where(Application.status == validate_choice(status, APPLICATION_STATUSES, field="status"))
    recruiter_id = recruiter_scope(user, parse_optional_int(body.get("recruiterId"), field="recruiterId", minimum=1))
    if recruiter_id is not None:
        q = q.where(Application.recruiter_id == recruiter_id)
    date_from = parse_optional_date(body.get("dateFrom"), field="dateFrom")
    if date_from is not None:
        q = q.where(Application.application_date >= date_from)
    date_to = parse_optional_date(body.get("dateTo"), field="dateTo")
    if date_to is not None:
        q = q.where(Application.application_date <= date_to)

    rows = db.execute(q.order_by(Application.application_date.desc(), Application.id.desc()).limit(5000)).all()
    items = []
    for app, candidate_name, recruiter_name in rows:
        item = application_dict(app)
        item["candidateName"] = candidate_name
        item["recruiterName"] = recruiter_name
        items.append(item)
    data = applications_pdf(
        items,
        date_from=date_from.isoformat() if date_from else None,
        date_to=date_to.isoformat() if date_to else None,
    )
    return _pdf_response(data, "applications-report")


@pdf_bp.post("/interviews")
@require_auth
def interviews_report_pdf():
    user = get_current_user()
    body = _body()
    db = get_session()

    q = (
        select(Interview, Candidate.name, User.name)
        .join(Candidate, Candidate.id == Interview.candidate_id)
        .outerjoin(User, User.id == Interview.recruiter_id)
    )
    # Recruiters only ever see their own interviews.
    recruiter_id = recruiter_scope(user, parse_optional_int(body.get("recruiterId"), field="recruiterId", minimum=1))
    if recruiter_id is not None:
        q = q.where(Interview.recruiter_id == recruiter_id)
    status = str(body.get("status") or "").strip()
    if status:
        q = q.where(Interview.status == validate_choice(status, INTERVIEW_STATUSES, field="status"))
    interview_type = str(body.get("type") or "").strip()
    if interview_type:
        q = q.where(Interview.interview_type == validate_choice(interview_type, INTERVIEW_TYPES, field="type"))
    date_from = parse_optional_date(body.get("dateFrom"), field="dateFrom")
    if date_from is not None:
        q = q.where(Interview.scheduled_date >= datetime.combine(date_from, time.min))
    date_to = parse_optional_date(body.get("dateTo"), field="dateTo")
    if date_to is not None:
        q = q.where(Interview.scheduled_date < datetime.combine(date_to + timedelta(days=1), time.min))

    rows = db.execute(q.order_by(Interview.scheduled_date.desc(), Interview.id.desc()).limit(5000)).all()
    items = []
    for interview, candidate_name, recruiter_name in rows:
        item = interview_dict(interview)
        item["candidateName"] = candidate_name
        item["recruiterName"] = recruiter_name
        items.append(item)
    data = interviews_pdf(
        items,
        date_from=date_from.isoformat() if date_from else None,
        date_to=date_to.isoformat() if date_to else None,
    )
    return _pdf_response(data, "interviews-report")
