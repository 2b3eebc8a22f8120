from __future__ import annotations

from flask import Blueprint, jsonify, request
from sqlalchemy import select

from portal.cache import invalidate_reports
from portal.db import get_session
from portal.models import APPLICATION_STATUSES, MAX_APPLICATIONS_PER_ENTRY, Application, Candidate, User
from portal.services.access import load_candidate_for, recruiter_scope, require_owner_or_admin, require_writer
from portal.services.activity import refresh_application_activity
from portal.services.approvals import raise_rejection_alert, review_submission
from portal.services.audit import model_snapshot, record_audit
from portal.services.serializers import application_dict
from portal.utils.auth import ADMIN, RECRUITER, get_current_user, is_admin, require_auth, require_roles
from portal.utils.datetime import iso_utc_now, parse_optional_date, utc_today
from portal.utils.errors import bad_request, forbidden, not_found
from portal.utils.validators import (
    optional_text,
    parse_bool,
    parse_int,
    parse_optional_int,
    parse_pagination,
    require_json,
    require_text,
    validate_choice,
)

applications_bp = Blueprint("applications", __name__)


def _row(app: Application, candidate_name: str | None, recruiter_name: str | None) -> dict:
    data = application_dict(app)
    data["candidateName"] = candidate_name
    data["recruiterName"] = recruiter_name
    return data


@applications_bp.get("")
@require_auth
def list_applications():
    user = get_current_user()
    db = get_session()
    limit, offset = parse_pagination(request.args, default_limit=200, max_limit=1000)

    q = (
        select(Application, Candidate.name, User.name)
        .outerjoin(Candidate, Candidate.id == Application.candidate_id)
        .outerjoin(User, User.id == Application.recruiter_id)
    )
    candidate_id = parse_optional_int(request.args.get("candidate_id"), field="candidate_id", minimum=1)
    if candidate_id is not None:
        q = q.where(Application.candidate_id == candidate_id)
    recruiter_id = recruiter_scope(
        user, parse_optional_int(request.args.get("recruiter_id"), field="recruiter_id", minimum=1)
    )
    if recruiter_id is not None:
        q = q.where(Application.recruiter_id == recruiter_id)
    status = str(request.args.get("status") or "").strip()
    if status:
        q = q.where(Application.status == validate_choice(status, APPLICATION_STATUSES, field="status"))
    date_from = parse_optional_date(request.args.get("date_from"), field="date_from")
    if date_from is not None:
        q = q.where(Application.application_date >= date_from)
    date_to = parse_optional_date(request.args.get("date_to"), field="date_to")
    if date_to is not None:
        q = q.where(Application.application_date <= date_to)
    approved = request.args.get("is_approved")
    if approved is not None and str(approved).strip():
        q = q.where(Application.is_approved.is_(parse_bool(approved)))

    rows = db.execute(
        q.order_by(Application.application_date.desc(), Application.id.desc()).limit(limit).offset(offset)
    ).all()
    return jsonify({"success": True, "data": [_row(a, cn, rn) for a, cn, rn in rows]})


@applications_bp.post("")
@require_auth
def create_application():
    user = get_current_user()
    require_writer(user)
    body = require_json()
    db = get_session()

    candidate = load_candidate_for(db, user, parse_int(body.get("candidate_id"), field="candidate_id", minimum=1))
    if user["role"] == RECRUITER:
        recruiter_id = user["id"]
    else:
        recruiter_id = parse_optional_int(body.get("recruiter_id"), field="recruiter_id", minimum=1)
        if recruiter_id is None:
            recruiter_id = candidate.assigned_recruiter_id

    count_raw = body.get("applications_count")
    now = iso_utc_now()
    app = Application(
        candidate_id=candidate.id,
        recruiter_id=recruiter_id,
        company_name=require_text(body, "company_name"),
        job_title=require_text(body, "job_title"),
        job_description=optional_text(body, "job_description"),
        channel=optional_text(body, "channel"),
        status=validate_choice(body.get("status") or "sent", APPLICATION_STATUSES, field="status"),
        application_date=parse_optional_date(body.get("application_date"), field="application_date") or utc_today(),
        applications_count=(
            parse_int(count_raw, field="applications_count", minimum=1, maximum=MAX_APPLICATIONS_PER_ENTRY)
            if count_raw is not None
            else 1
        ),
        is_approved=False,
        approved_at="",
        created_at=now,
        updated_at=now,
    )
    db.add(app)
    db.flush()
    refresh_application_activity(db, recruiter_id, {app.application_date})
    record_audit(
        db,
        actor_id=user["id"],
        action="CREATE",
        table_name="applications",
        record_id=app.id,
        new_values=model_snapshot(app),
    )
    db.commit()
    invalidate_reports()
    return jsonify({"success": True, "data": application_dict(app)}), 201


@applications_bp.put("/<int:application_id>")
@require_auth
def update_application(application_id: int):
    user = get_current_user()
    require_writer(user)
    body = require_json()
    db = get_session()

    app = db.get(Application, application_id)
    if app is None:
        raise not_found("Application")
    require_owner_or_admin(user, app.recruiter_id, what="applications")

    admin = is_admin(user)
    if not admin and app.application_date != utc_today():
        raise bad_request("Applications can only be modified on the day they are logged")

    before = model_snapshot(app)
    old_date = app.application_date
    changed = False

    if body.get("status"):
        app.status = validate_choice(body.get("status"), APPLICATION_STATUSES, field="status")
        changed = True
    if "channel" in body:
        app.channel = optional_text(body, "channel")
        changed = True
    if "company_name" in body:
        app.company_name = require_text(body, "company_name")
        changed = True
    if "job_title" in body:
        app.job_title = require_text(body, "job_title")
        changed = True
    if "job_description" in body:
        app.job_description = optional_text(body, "job_description")
        changed = True
    if body.get("application_date"):
        new_date = parse_optional_date(body.get("application_date"), field="application_date")
        if not admin and new_date != utc_today():
            raise bad_request("Applications can only be dated today")
        app.application_date = new_date
        changed = True
    if "applications_count" in body:
        if not admin and app.is_approved:
            raise forbidden("Approved application totals are locked. Contact an admin for changes.")
        app.applications_count = parse_int(
            body.get("applications_count"), field="applications_count", minimum=0, maximum=MAX_APPLICATIONS_PER_ENTRY
        )
        changed = True

    if not changed:
        raise bad_request("No valid fields provided to update")

    app.updated_at = iso_utc_now()
    refresh_application_activity(db, app.recruiter_id, {old_date, app.application_date})
    record_audit(
        db,
        actor_id=user["id"],
        action="UPDATE",
        table_name="applications",
        record_id=app.id,
        old_values=before,
        new_values=model_snapshot(app),
    )
    db.commit()
    invalidate_reports()
    return jsonify({"success": True, "data": application_dict(app)})


@applications_bp.post("/<int:application_id>/approval")
@require_roles([ADMIN])
def toggle_application_approval(application_id: int):
    user = get_current_user()
    body = request.get_json(silent=True) or {}
    db = get_session()

    app = db.get(Application, application_id)
    if app is None:
        raise not_found("Application")

    approved = body.get("approved")
    review_submission(db, "applications", app, approved if isinstance(approved, bool) else True, actor_id=user["id"])
    db.commit()
    invalidate_reports()
    return jsonify({"success": True, "data": application_dict(app)})


@applications_bp.delete("/<int:application_id>")
@require_roles([ADMIN])
def delete_application(application_id: int):
    user = get_current_user()
    db = get_session()
    app = db.get(Application, application_id)
    if app is None:
        raise not_found("Application")

    before = model_snapshot(app)
    db.delete(app)
    refresh_application_activity(db, before["recruiter_id"], {before["application_date"]})
    raise_rejection_alert(db, recruiter_id=before["recruiter_id"], candidate_id=before["candidate_id"], label="Application")
    record_audit(
        db, actor_id=user["id"], action="DELETE", table_name="applications", record_id=application_id, old_values=before
    )
    db.commit()
    invalidate_reports()
    return "", 204
