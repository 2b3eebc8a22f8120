from __future__ import annotations

from flask import Blueprint, jsonify, request
from sqlalchemy import delete, func, or_, select

from portal.cache import invalidate_reports
from portal.db import get_session
from portal.models import (
    CANDIDATE_STAGES,
    MAX_EXPERIENCE_YEARS,
    Application,
    Assessment,
    Candidate,
    CandidateAssignment,
    Interview,
    Note,
    RecruiterCandidateActivity,
    Reminder,
    User,
)
from portal.services.access import load_candidate_for, load_recruiter, recruiter_scope, require_writer
from portal.services.activity import refresh_application_activity
from portal.services.audit import model_snapshot, record_audit
from portal.services.pipeline import pipeline_totals
from portal.services.serializers import candidate_dict, note_dict, reminder_dict
from portal.utils.auth import ADMIN, RECRUITER, get_current_user, is_admin, require_auth, require_roles
from portal.utils.datetime import iso_utc_now, parse_datetime, parse_optional_date
from portal.utils.errors import bad_request, conflict, forbidden, not_found
from portal.utils.validators import (
    optional_text,
    parse_bool,
    parse_optional_int,
    parse_pagination,
    require_json,
    require_text,
    validate_choice,
    validate_email,
)

candidates_bp = Blueprint("candidates", __name__)


def _open_assignment(db, candidate: Candidate, recruiter_id: int | None, actor_id: int) -> None:
    now = iso_utc_now()
    current = (
        db.execute(
            select(CandidateAssignment)
            .where(CandidateAssignment.candidate_id == candidate.id)
            .where(CandidateAssignment.unassigned_at == "")
        )
        .scalars()
        .all()
    )
    for row in current:
        row.unassigned_at = now
    if recruiter_id is not None:
        db.add(
            CandidateAssignment(
                candidate_id=candidate.id,
                recruiter_id=recruiter_id,
                assigned_by=actor_id,
                assigned_at=now,
                unassigned_at="",
            )
        )


def _check_email_free(db, email: str | None, candidate_id: int | None = None) -> None:
    if not email:
        return
    q = select(Candidate.id).where(Candidate.email == email)
    if candidate_id is not None:
        q = q.where(Candidate.id != candidate_id)
    if db.execute(q).first():
        raise conflict("A candidate with this email already exists")


def _recruiter_name(db, recruiter_id: int | None) -> str | None:
    if recruiter_id is None:
        return None
    return db.execute(select(User.name).where(User.id == recruiter_id)).scalar_one_or_none()


@candidates_bp.get("")
@require_auth
def list_candidates():
    user = get_current_user()
    db = get_session()
    limit, offset = parse_pagination(request.args, default_limit=100, max_limit=500)

    q = select(Candidate, User.name).outerjoin(User, User.id == Candidate.assigned_recruiter_id)
    count_q = select(func.count(Candidate.id))

    filters = []
    stage = str(request.args.get("stage") or "").strip()
    if stage:
        filters.append(Candidate.current_stage == validate_choice(stage, CANDIDATE_STAGES, field="stage"))
    recruiter_id = recruiter_scope(
        user, parse_optional_int(request.args.get("recruiter_id"), field="recruiter_id", minimum=1)
    )
    if recruiter_id is not None:
        filters.append(Candidate.assigned_recruiter_id == recruiter_id)
    search = str(request.args.get("search") or "").strip()
    if search:
        like = f"%{search}%"
        filters.append(or_(Candidate.name.ilike(like), Candidate.email.ilike(like)))

    for f in filters:
        q = q.where(f)
        count_q = count_q.where(f)

    total = int(db.execute(count_q).scalar_one() or 0)
    rows = db.execute(q.order_by(Candidate.name.asc(), Candidate.id.asc()).limit(limit).offset(offset)).all()
    totals = pipeline_totals(db, [c.id for c, _ in rows])

    items = []
    for candidate, recruiter_name in rows:
        item = candidate_dict(candidate, recruiter_name=recruiter_name)
        item.update(totals[candidate.id])
        items.append(item)

    return jsonify(
        {"success": True, "data": {"items": items, "total": total, "limit": limit, "offset": offset}}
    )


@candidates_bp.get("/<int:candidate_id>")
@require_auth
def get_candidate(candidate_id: int):
    user = get_current_user()
    db = get_session()
    candidate = load_candidate_for(db, user, candidate_id)
    data = candidate_dict(candidate, recruiter_name=_recruiter_name(db, candidate.assigned_recruiter_id))
    data.update(pipeline_totals(db, [candidate.id])[candidate.id])
    return jsonify({"success": True, "data": data})


@candidates_bp.post("")
@require_auth
def create_candidate():
    user = get_current_user()
    require_writer(user)
    body = require_json()
    db = get_session()

    email_raw = body.get("email")
    email = validate_email(email_raw) if str(email_raw or "").strip() else None
    _check_email_free(db, email)

    if user["role"] == RECRUITER:
        recruiter_id = user["id"]
    else:
        recruiter_id = parse_optional_int(body.get("assigned_recruiter_id"), field="assigned_recruiter_id", minimum=1)
        if recruiter_id is not None:
            load_recruiter(db, recruiter_id)

    now = iso_utc_now()
    candidate = Candidate(
        name=require_text(body, "name"),
        email=email,
        phone=optional_text(body, "phone"),
        visa_status=optional_text(body, "visa_status"),
        skills=optional_text(body, "skills"),
        experience_years=parse_optional_int(
            body.get("experience_years"), field="experience_years", minimum=0, maximum=MAX_EXPERIENCE_YEARS
        ),
        current_stage=validate_choice(body.get("current_stage") or "onboarding", CANDIDATE_STAGES, field="current_stage"),
        marketing_start_date=parse_optional_date(body.get("marketing_start_date"), field="marketing_start_date"),
        assigned_recruiter_id=recruiter_id,
        created_by=user["id"],
        created_at=now,
        updated_at=now,
    )
    db.add(candidate)
    db.flush()
    _open_assignment(db, candidate, recruiter_id, user["id"])
    record_audit(
        db,
        actor_id=user["id"],
        action="CREATE",
        table_name="candidates",
        record_id=candidate.id,
        new_values=model_snapshot(candidate),
    )
    db.commit()
    invalidate_reports()
    data = candidate_dict(candidate, recruiter_name=_recruiter_name(db, recruiter_id))
    return jsonify({"success": True, "data": data}), 201


@candidates_bp.put("/<int:candidate_id>")
@require_auth
def update_candidate(candidate_id: int):
    user = get_current_user()
    require_writer(user)
    body = require_json()
    db = get_session()
    candidate = load_candidate_for(db, user, candidate_id)
    before = model_snapshot(candidate)

    changed = False
    if "name" in body:
        candidate.name = require_text(body, "name")
        changed = True
    if "email" in body:
        email = validate_email(body.get("email")) if str(body.get("email") or "").strip() else None
        _check_email_free(db, email, candidate.id)
        candidate.email = email
        changed = True
    for key in ("phone", "visa_status", "skills"):
        if key in body:
            setattr(candidate, key, optional_text(body, key))
            changed = True
    if "experience_years" in body:
        candidate.experience_years = parse_optional_int(
            body.get("experience_years"), field="experience_years", minimum=0, maximum=MAX_EXPERIENCE_YEARS
        )
        changed = True
    if "current_stage" in body:
        candidate.current_stage = validate_choice(body.get("current_stage"), CANDIDATE_STAGES, field="current_stage")
        changed = True
    if "marketing_start_date" in body:
        candidate.marketing_start_date = parse_optional_date(body.get("marketing_start_date"), field="marketing_start_date")
        changed = True
    if "assigned_recruiter_id" in body:
        if not is_admin(user):
            raise forbidden("Only admins can reassign candidates")
        recruiter_id = parse_optional_int(body.get("assigned_recruiter_id"), field="assigned_recruiter_id", minimum=1)
        if recruiter_id is not None:
            load_recruiter(db, recruiter_id)
        if recruiter_id != candidate.assigned_recruiter_id:
            candidate.assigned_recruiter_id = recruiter_id
            _open_assignment(db, candidate, recruiter_id, user["id"])
        changed = True

    if not changed:
        raise bad_request("No fields provided to update")

    candidate.updated_at = iso_utc_now()
    record_audit(
        db,
        actor_id=user["id"],
        action="UPDATE",
        table_name="candidates",
        record_id=candidate.id,
        old_values=before,
        new_values=model_snapshot(candidate),
    )
    db.commit()
    invalidate_reports()
    data = candidate_dict(candidate, recruiter_name=_recruiter_name(db, candidate.assigned_recruiter_id))
    return jsonify({"success": True, "data": data})


@candidates_bp.delete("/<int:candidate_id>")
@require_roles([ADMIN])
def delete_candidate(candidate_id: int):
    user = get_current_user()
    db = get_session()
    candidate = db.get(Candidate, candidate_id)
    if candidate is None:
        raise not_found("Candidate")

    before = model_snapshot(candidate)
    touched: dict[int, set] = {}
    for rid, day in db.execute(
        select(Application.recruiter_id, Application.application_date).where(Application.candidate_id == candidate_id)
    ).all():
        if rid is not None:
            touched.setdefault(rid, set()).add(day)
    for model in (Note, CandidateAssignment, Reminder, RecruiterCandidateActivity, Assessment, Interview, Application):
        db.execute(delete(model).where(model.candidate_id == candidate_id))
    db.delete(candidate)
    for rid, days in touched.items():
        refresh_application_activity(db, rid, days)
    record_audit(
        db, actor_id=user["id"], action="DELETE", table_name="candidates", record_id=candidate_id, old_values=before
    )
    db.commit()
    invalidate_reports()
    return "", 204


@candidates_bp.get("/<int:candidate_id>/assignments")
@require_auth
def candidate_assignments(candidate_id: int):
    user = get_current_user()
    db = get_session()
    load_candidate_for(db, user, candidate_id)
    rows = db.execute(
        select(CandidateAssignment, User.name)
        .outerjoin(User, User.id == CandidateAssignment.recruiter_id)
        .where(CandidateAssignment.candidate_id == candidate_id)
        .order_by(CandidateAssignment.assigned_at.desc(), CandidateAssignment.id.desc())
    ).all()
    data = [
        {
            "id": a.id,
            "recruiterId": a.recruiter_id,
            "recruiterName": name,
            "assignedBy": a.assigned_by,
            "assignedAt": a.assigned_at,
            "unassignedAt": a.unassigned_at or None,
            "active": not a.unassigned_at,
        }
        for a, name in rows
    ]
    return jsonify({"success": True, "data": data})


@candidates_bp.get("/<int:candidate_id>/notes")
@require_auth
def list_notes(candidate_id: int):
    user = get_current_user()
    db = get_session()
    load_candidate_for(db, user, candidate_id)

    q = (
        select(Note, User.name)
        .outerjoin(User, User.id == Note.author_id)
        .where(Note.candidate_id == candidate_id)
        .order_by(Note.created_at.desc(), Note.id.desc())
    )
    if not is_admin(user):
        q = q.where(or_(Note.is_private.is_(False), Note.author_id == user["id"]))
    rows = db.execute(q).all()
    return jsonify({"success": True, "data": [note_dict(n, author_name=name) for n, name in rows]})


@candidates_bp.post("/<int:candidate_id>/notes")
@require_auth
def create_note(candidate_id: int):
    user = get_current_user()
    require_writer(user)
    body = require_json()
    db = get_session()
    candidate = load_candidate_for(db, user, candidate_id)

    now = iso_utc_now()
    note = Note(
        candidate_id=candidate.id,
        author_id=user["id"],
        content=require_text(body, "content", max_len=10_000),
        is_private=parse_bool(body.get("is_private"), default=False),
        created_at=now,
        updated_at=now,
    )
    db.add(note)
    db.flush()

    reminder = None
    follow_up = body.get("follow_up_date")
    if follow_up:
        due = parse_datetime(follow_up, field="follow_up_date")
        reminder = Reminder(
            recruiter_id=user["id"],
            candidate_id=candidate.id,
            title=f"Follow up: {candidate.name}",
            description=note.content[:500],
            due_date=due.isoformat(),
            reminder_status="pending",
            priority=2 if parse_bool(body.get("urgent"), default=False) else 1,
            created_at=now,
            updated_at=now,
        )
        db.add(reminder)
        db.flush()

    record_audit(
        db, actor_id=user["id"], action="CREATE", table_name="notes", record_id=note.id, new_values=model_snapshot(note)
    )
    db.commit()
    data = note_dict(note, author_name=user["name"])
    data["reminder"] = reminder_dict(reminder) if reminder is not None else None
    return jsonify({"success": True, "data": data}), 201


@candidates_bp.delete("/<int:candidate_id>/notes/<int:note_id>")
@require_auth
def delete_note(candidate_id: int, note_id: int):
    user = get_current_user()
    db = get_session()
    note = db.get(Note, note_id)
    if note is None or note.candidate_id != candidate_id:
        raise not_found("Note")
    if not is_admin(user) and note.author_id != user["id"]:
        raise forbidden("You can only delete your own notes")

    before = model_snapshot(note)
    db.delete(note)
    record_audit(db, actor_id=user["id"], action="DELETE", table_name="notes", record_id=note_id, old_values=before)
    db.commit()
    return "", 204
