from __future__ import annotations

from datetime import datetime, time

from flask import Blueprint, jsonify, request
from sqlalchemy import select

from portal.cache import invalidate_reports
from portal.db import get_session
from portal.models import (
    INTERVIEW_STATUSES,
    INTERVIEW_TYPES,
    MAX_INTERVIEW_ROUND,
    Application,
    Candidate,
    Interview,
    User,
)
from portal.services.access import load_candidate_for, recruiter_scope, require_owner_or_admin, require_writer
from portal.services.activity import bump_activity
from portal.services.approvals import review_submission
from portal.services.audit import model_snapshot, record_audit
from portal.services.serializers import interview_dict
from portal.utils.auth import ADMIN, RECRUITER, get_current_user, is_admin, require_auth, require_roles
from portal.utils.datetime import iso_utc_now, parse_datetime, parse_optional_date, utc_today
from portal.utils.errors import bad_request, forbidden, not_found
from portal.utils.validators import (
    optional_text,
    parse_int,
    parse_optional_int,
    require_json,
    require_text,
    validate_choice,
)

interviews_bp = Blueprint("interviews", __name__)


@interviews_bp.get("")
@require_auth
def list_interviews():
    user = get_current_user()
    db = get_session()

    q = (
        select(Interview, Candidate.name, User.name)
        .outerjoin(Candidate, Candidate.id == Interview.candidate_id)
        .outerjoin(User, User.id == Interview.recruiter_id)
    )
    candidate_id = parse_optional_int(request.args.get("candidate_id"), field="candidate_id", minimum=1)
    if candidate_id is not None:
        q = q.where(Interview.candidate_id == candidate_id)
    recruiter_id = recruiter_scope(
        user, parse_optional_int(request.args.get("recruiter_id"), field="recruiter_id", minimum=1)
    )
    if recruiter_id is not None:
        q = q.where(Interview.recruiter_id == recruiter_id)
    status = str(request.args.get("status") or "").strip()
    if status:
        q = q.where(Interview.status == validate_choice(status, INTERVIEW_STATUSES, field="status"))
    date_from = parse_optional_date(request.args.get("date_from"), field="date_from")
    if date_from is not None:
        q = q.where(Interview.scheduled_date >= datetime.combine(date_from, time.min))
    date_to = parse_optional_date(request.args.get("date_to"), field="date_to")
    if date_to is not None:
        q = q.where(Interview.scheduled_date <= datetime.combine(date_to, time.max))

    rows = db.execute(q.order_by(Interview.scheduled_date.asc(), Interview.id.asc())).all()
    data = []
    for interview, candidate_name, recruiter_name in rows:
        item = interview_dict(interview)
        item["candidateName"] = candidate_name
        item["recruiterName"] = recruiter_name
        data.append(item)
    return jsonify({"success": True, "data": data})


@interviews_bp.post("")
@require_auth
def create_interview():
    user = get_current_user()
    require_writer(user)
    body = require_json()
    db = get_session()

    candidate = load_candidate_for(db, user, parse_int(body.get("candidate_id"), field="candidate_id", minimum=1))
    application_id = parse_optional_int(body.get("application_id"), field="application_id", minimum=1)
    if application_id is not None:
        application = db.get(Application, application_id)
        if application is None or application.candidate_id != candidate.id:
            raise bad_request("application_id does not belong to this candidate")

    recruiter_id = user["id"] if user["role"] == RECRUITER else candidate.assigned_recruiter_id or user["id"]
    round_raw = body.get("round_number")
    now = iso_utc_now()
    interview = Interview(
        candidate_id=candidate.id,
        application_id=application_id,
        recruiter_id=recruiter_id,
        company_name=require_text(body, "company_name"),
        interview_type=validate_choice(body.get("interview_type") or "phone", INTERVIEW_TYPES, field="interview_type"),
        round_number=(
            parse_int(round_raw, field="round_number", minimum=1, maximum=MAX_INTERVIEW_ROUND)
            if round_raw is not None
            else 1
        ),
        scheduled_date=parse_datetime(body.get("scheduled_date"), field="scheduled_date"),
        timezone=optional_text(body, "timezone") or "UTC",
        status=validate_choice(body.get("status") or "scheduled", INTERVIEW_STATUSES, field="status"),
        notes=optional_text(body, "notes"),
        is_approved=False,
        approved_at="",
        created_at=now,
        updated_at=now,
    )
    db.add(interview)
    db.flush()
    bump_activity(db, recruiter_id, utc_today(), "interviews_count")
    record_audit(
        db,
        actor_id=user["id"],
        action="CREATE",
        table_name="interviews",
        record_id=interview.id,
        new_values=model_snapshot(interview),
    )
    db.commit()
    invalidate_reports()
    return jsonify({"success": True, "data": interview_dict(interview)}), 201


@interviews_bp.put("/<int:interview_id>")
@require_auth
def update_interview(interview_id: int):
    user = get_current_user()
    require_writer(user)
    body = require_json()
    db = get_session()

    interview = db.get(Interview, interview_id)
    if interview is None:
        raise not_found("Interview")
    require_owner_or_admin(user, interview.recruiter_id, what="interviews")
    if not is_admin(user) and interview.is_approved:
        raise forbidden("Approved interviews are locked. Contact an admin for changes.")

    before = model_snapshot(interview)
    changed = False
    if "status" in body:
        interview.status = validate_choice(body.get("status"), INTERVIEW_STATUSES, field="status")
        changed = True
    if "interview_type" in body:
        interview.interview_type = validate_choice(body.get("interview_type"), INTERVIEW_TYPES, field="interview_type")
        changed = True
    if "scheduled_date" in body:
        interview.scheduled_date = parse_datetime(body.get("scheduled_date"), field="scheduled_date")
        changed = True
    if "round_number" in body:
        interview.round_number = parse_int(
            body.get("round_number"), field="round_number", minimum=1, maximum=MAX_INTERVIEW_ROUND
        )
        changed = True
    if "timezone" in body:
        interview.timezone = optional_text(body, "timezone") or "UTC"
        changed = True
    for key in ("notes", "feedback"):
        if key in body:
            setattr(interview, key, optional_text(body, key))
            changed = True
    if not changed:
        raise bad_request("No interview fields provided for update")

    interview.updated_at = iso_utc_now()
    record_audit(
        db,
        actor_id=user["id"],
        action="UPDATE",
        table_name="interviews",
        record_id=interview.id,
        old_values=before,
        new_values=model_snapshot(interview),
    )
    db.commit()
    invalidate_reports()
    return jsonify({"success": True, "data": interview_dict(interview)})


@interviews_bp.post("/<int:interview_id>/approval")
@require_roles([ADMIN])
def toggle_interview_approval(interview_id: int):
    user = get_current_user()
    body = request.get_json(silent=True) or {}
    db = get_session()

    interview = db.get(Interview, interview_id)
    if interview is None:
        raise not_found("Interview")

    approved = body.get("approved")
    review_submission(db, "interviews", interview, approved if isinstance(approved, bool) else True, actor_id=user["id"])
    db.commit()
    invalidate_reports()
    return jsonify({"success": True, "data": interview_dict(interview)})
