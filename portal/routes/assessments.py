from __future__ import annotations

from datetime import timedelta

from flask import Blueprint, jsonify, request
from sqlalchemy import select

from portal.cache import invalidate_reports
from portal.db import get_session
from portal.models import ASSESSMENT_STATUSES, Application, Assessment, Candidate, User
from portal.services.access import load_candidate_for, recruiter_scope, require_owner_or_admin, require_writer
from portal.services.activity import bump_activity
from portal.services.approvals import review_submission
from portal.services.audit import model_snapshot, record_audit
from portal.services.serializers import assessment_dict
from portal.utils.auth import ADMIN, RECRUITER, get_current_user, is_admin, require_auth, require_roles
from portal.utils.datetime import iso_utc_now, parse_optional_date, utc_today
from portal.utils.errors import bad_request, forbidden, not_found
from portal.utils.validators import (
    optional_text,
    parse_bool,
    parse_int,
    parse_optional_int,
    require_json,
    require_text,
    validate_choice,
)

assessments_bp = Blueprint("assessments", __name__)


def _parse_score(value):
    if value is None or str(value).strip() == "":
        return None
    try:
        return float(value)
    except (TypeError, ValueError) as e:
        raise bad_request("score must be a number") from e


@assessments_bp.get("")
@require_auth
def list_assessments():
    user = get_current_user()
    db = get_session()

    q = (
        select(Assessment, Candidate.name, User.name)
        .outerjoin(Candidate, Candidate.id == Assessment.candidate_id)
        .outerjoin(User, User.id == Assessment.recruiter_id)
    )
    candidate_id = parse_optional_int(request.args.get("candidate_id"), field="candidate_id", minimum=1)
    if candidate_id is not None:
        q = q.where(Assessment.candidate_id == candidate_id)
    recruiter_id = recruiter_scope(
        user, parse_optional_int(request.args.get("recruiter_id"), field="recruiter_id", minimum=1)
    )
    if recruiter_id is not None:
        q = q.where(Assessment.recruiter_id == recruiter_id)
    status = str(request.args.get("status") or "").strip()
    if status:
        q = q.where(Assessment.status == validate_choice(status, ASSESSMENT_STATUSES, field="status"))
    if parse_bool(request.args.get("due_soon"), default=False):
        q = q.where(Assessment.status == "assigned").where(Assessment.due_date <= utc_today() + timedelta(days=1))

    rows = db.execute(q.order_by(Assessment.due_date.asc(), Assessment.id.asc())).all()
    data = []
    for assessment, candidate_name, recruiter_name in rows:
        item = assessment_dict(assessment)
        item["candidateName"] = candidate_name
        item["recruiterName"] = recruiter_name
        data.append(item)
    return jsonify({"success": True, "data": data})


@assessments_bp.post("")
@require_auth
def create_assessment():
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
    now = iso_utc_now()
    assessment = Assessment(
        candidate_id=candidate.id,
        application_id=application_id,
        recruiter_id=recruiter_id,
        assessment_platform=require_text(body, "assessment_platform"),
        assessment_type=optional_text(body, "assessment_type"),
        assigned_date=parse_optional_date(body.get("assigned_date"), field="assigned_date") or utc_today(),
        due_date=parse_optional_date(body.get("due_date"), field="due_date"),
        status=validate_choice(body.get("status") or "assigned", ASSESSMENT_STATUSES, field="status"),
        score=_parse_score(body.get("score")),
        notes=optional_text(body, "notes"),
        is_approved=False,
        approved_at="",
        created_at=now,
        updated_at=now,
    )
    db.add(assessment)
    db.flush()
    bump_activity(db, recruiter_id, utc_today(), "assessments_count")
    record_audit(
        db,
        actor_id=user["id"],
        action="CREATE",
        table_name="assessments",
        record_id=assessment.id,
        new_values=model_snapshot(assessment),
    )
    db.commit()
    invalidate_reports()
    return jsonify({"success": True, "data": assessment_dict(assessment)}), 201


@assessments_bp.put("/<int:assessment_id>")
@require_auth
def update_assessment(assessment_id: int):
    user = get_current_user()
    require_writer(user)
    body = require_json()
    db = get_session()

    assessment = db.get(Assessment, assessment_id)
    if assessment is None:
        raise not_found("Assessment")
    require_owner_or_admin(user, assessment.recruiter_id, what="assessments")
    if not is_admin(user) and assessment.is_approved:
        raise forbidden("Approved assessments are locked. Contact an admin for changes.")

    before = model_snapshot(assessment)
    changed = False
    if "status" in body:
        assessment.status = validate_choice(body.get("status"), ASSESSMENT_STATUSES, field="status")
        changed = True
    if "due_date" in body:
        assessment.due_date = parse_optional_date(body.get("due_date"), field="due_date")
        changed = True
    if "score" in body:
        assessment.score = _parse_score(body.get("score"))
        changed = True
    for key in ("notes", "assessment_type"):
        if key in body:
            setattr(assessment, key, optional_text(body, key))
            changed = True
    if not changed:
        raise bad_request("No assessment fields provided for update")

    assessment.updated_at = iso_utc_now()
    record_audit(
        db,
        actor_id=user["id"],
        action="UPDATE",
        table_name="assessments",
        record_id=assessment.id,
        old_values=before,
        new_values=model_snapshot(assessment),
    )
    db.commit()
    invalidate_reports()
    return jsonify({"success": True, "data": assessment_dict(assessment)})


@assessments_bp.post("/<int:assessment_id>/approval")
@require_roles([ADMIN])
def toggle_assessment_approval(assessment_id: int):
    user = get_current_user()
    body = request.get_json(silent=True) or {}
    db = get_session()

    assessment = db.get(Assessment, assessment_id)
    if assessment is None:
        raise not_found("Assessment")

    approved = body.get("approved")
    review_submission(
        db, "assessments", assessment, approved if isinstance(approved, bool) else True, actor_id=user["id"]
    )
    db.commit()
    invalidate_reports()
    return jsonify({"success": True, "data": assessment_dict(assessment)})
