from __future__ import annotations

from flask import Blueprint, jsonify, request
from sqlalchemy import select

from portal.cache import invalidate_reports
from portal.db import get_session
from portal.models import Candidate, User
from portal.services.approvals import bulk_review, parse_bulk_request, pending_submissions
from portal.services.serializers import application_dict, assessment_dict, interview_dict
from portal.utils.auth import ADMIN, get_current_user, require_roles
from portal.utils.validators import parse_optional_int, require_json

approvals_bp = Blueprint("approvals", __name__)

_SERIALIZERS = {
    "applications": application_dict,
    "interviews": interview_dict,
    "assessments": assessment_dict,
}


@approvals_bp.get("")
@require_roles([ADMIN])
def list_pending():
    db = get_session()
    recruiter_id = parse_optional_int(request.args.get("recruiter_id"), field="recruiter_id", minimum=1)
    pending = pending_submissions(db, recruiter_id=recruiter_id)

    candidate_ids = {row.candidate_id for rows in pending.values() for row in rows}
    recruiter_ids = {row.recruiter_id for rows in pending.values() for row in rows if row.recruiter_id}
    candidates = {}
    if candidate_ids:
        candidates = dict(db.execute(select(Candidate.id, Candidate.name).where(Candidate.id.in_(candidate_ids))).all())
    recruiters = {}
    if recruiter_ids:
        recruiters = dict(db.execute(select(User.id, User.name).where(User.id.in_(recruiter_ids))).all())

    data = {}
    for kind, rows in pending.items():
        items = []
        for row in rows:
            item = _SERIALIZERS[kind](row)
            item["candidateName"] = candidates.get(row.candidate_id)
            item["recruiterName"] = recruiters.get(row.recruiter_id)
            items.append(item)
        data[kind] = items
    data["totals"] = {kind: len(rows) for kind, rows in pending.items()}
    return jsonify({"success": True, "data": data})


@approvals_bp.post("/bulk")
@require_roles([ADMIN])
def bulk_pending_approvals():
    user = get_current_user()
    parsed = parse_bulk_request(require_json())
    db = get_session()
    summary = bulk_review(db, parsed, actor_id=user["id"])
    db.commit()
    invalidate_reports()
    return jsonify({"success": True, "data": {"action": parsed["action"], "summary": summary}})
