from __future__ import annotations

import logging
from datetime import date
from typing import Any

from sqlalchemy import select

from portal.models import Alert, Application, Assessment, Candidate, Interview
from portal.services.activity import refresh_application_activity
from portal.services.audit import model_snapshot, record_audit
from portal.services.automation import ALERT_SUBMISSION_REJECTED
from portal.utils.datetime import iso_utc_now
from portal.utils.errors import bad_request
from portal.utils.validators import INT32_MAX

log = logging.getLogger("portal.approvals")

ACTION_APPROVE = "approve"
ACTION_REJECT = "reject"

# Submission kind -> (model, audit table, alert label)
KINDS: dict[str, tuple[Any, str, str]] = {
    "applications": (Application, "applications", "Application"),
    "interviews": (Interview, "interviews", "Interview"),
    "assessments": (Assessment, "assessments", "Assessment"),
}


def set_approval(row, approved: bool, actor_id: int | None) -> None:
    row.is_approved = approved
    row.approved_by = actor_id if approved else None
    row.approved_at = iso_utc_now() if approved else ""
    row.updated_at = iso_utc_now()


def raise_rejection_alert(db, *, recruiter_id: int | None, candidate_id: int | None, label: str) -> Alert | None:
    if recruiter_id is None:
        return None
    candidate_name = None
    if candidate_id is not None:
        candidate_name = db.execute(select(Candidate.name).where(Candidate.id == candidate_id)).scalar_one_or_none()
    alert = Alert(
        user_id=recruiter_id,
        alert_type=ALERT_SUBMISSION_REJECTED,
        title=f"{label} Rejected",
        message=(
            f"An admin rejected the {label.lower()} for {candidate_name or 'their candidate'}. "
            "Please review the details and resubmit."
        ),
        status="open",
        priority=2,
        candidate_id=candidate_id,
        created_at=iso_utc_now(),
    )
    db.add(alert)
    return alert


def _ids(value: Any) -> list[int]:
    if not isinstance(value, list):
        return []
    out: list[int] = []
    for item in value:
        try:
            n = int(item)
        except (TypeError, ValueError, OverflowError):
            continue
        if 0 < n <= INT32_MAX and n not in out:
            out.append(n)
    return out


def parse_bulk_request(body: dict[str, Any]) -> dict[str, Any]:
    action = str(body.get("action") or "").strip().lower()
    if action not in (ACTION_APPROVE, ACTION_REJECT):
        raise bad_request('action must be "approve" or "reject"')

    selection = {
        "applications": _ids(body.get("applicationIds")),
        "interviews": _ids(body.get("interviewIds")),
        "assessments": _ids(body.get("assessmentIds")),
    }
    explicit = any(selection.values())

    if explicit:
        kinds = [k for k, ids in selection.items() if ids]
    else:
        requested = body.get("types")
        if isinstance(requested, list):
            kinds = [k for k in KINDS if k in {str(t).strip().lower() for t in requested}]
        else:
            kinds = list(KINDS)
        if not kinds:
            kinds = list(KINDS)

    recruiter_id = None
    try:
        recruiter_id = int(body.get("recruiterId")) if body.get("recruiterId") is not None else None
    except (TypeError, ValueError, OverflowError):
        recruiter_id = None
    if recruiter_id is not None and not 0 < recruiter_id <= INT32_MAX:
        recruiter_id = None
    if not explicit and recruiter_id is None:
        raise bad_request("recruiterId must be provided when no explicit selection is supplied")

    return {"action": action, "kinds": kinds, "selection": selection, "recruiter_id": recruiter_id, "explicit": explicit}


def pending_submissions(db, *, recruiter_id: int | None = None) -> dict[str, list[Any]]:
    out: dict[str, list[Any]] = {}
    for kind, (model, _, _) in KINDS.items():
        q = select(model).where(model.is_approved.is_(False)).order_by(model.created_at.asc(), model.id.asc())
        if recruiter_id is not None:
            q = q.where(model.recruiter_id == recruiter_id)
        out[kind] = list(db.execute(q).scalars().all())
    return out


def bulk_review(db, request: dict[str, Any], *, actor_id: int) -> dict[str, int]:
    """
    Approve or reject pending submissions, either by explicit id lists or
    everything pending for one recruiter. Rejected applications are removed
    (and the recruiter's daily totals recomputed); rejected interviews and
    assessments stay but are unapproved. Every rejection raises a
    `submission_rejected` alert for the owning recruiter. The caller commits.
    """

    summary = {kind: 0 for kind in KINDS}
    refresh: dict[int, set[date]] = {}
    approve = request["action"] == ACTION_APPROVE

    for kind in request["kinds"]:
        model, table, label = KINDS[kind]
        q = select(model).where(model.is_approved.is_(False))
        ids = request["selection"][kind]
        if ids:
            q = q.where(model.id.in_(ids))
        elif request["recruiter_id"] is not None:
            q = q.where(model.recruiter_id == request["recruiter_id"])
        else:
            continue

        for row in db.execute(q).scalars().all():
            before = model_snapshot(row)
            owner = row.recruiter_id or request["recruiter_id"]
            if approve:
                set_approval(row, True, actor_id)
                record_audit(
                    db,
                    actor_id=actor_id,
                    action="UPDATE",
                    table_name=table,
                    record_id=row.id,
                    old_values=before,
                    new_values=model_snapshot(row),
                )
            elif kind == "applications":
                if owner is not None:
                    refresh.setdefault(owner, set()).add(row.application_date)
                db.delete(row)
                record_audit(
                    db, actor_id=actor_id, action="DELETE", table_name=table, record_id=before["id"], old_values=before
                )
                raise_rejection_alert(db, recruiter_id=owner, candidate_id=before["candidate_id"], label=label)
            else:
                set_approval(row, False, actor_id)
                if kind == "interviews" and row.status != "rejected":
                    row.status = "rejected"
                record_audit(
                    db,
                    actor_id=actor_id,
                    action="UPDATE",
                    table_name=table,
                    record_id=row.id,
                    old_values=before,
                    new_values=model_snapshot(row),
                )
                raise_rejection_alert(db, recruiter_id=owner, candidate_id=row.candidate_id, label=label)
            summary[kind] += 1

    for recruiter_id, days in refresh.items():
        refresh_application_activity(db, recruiter_id, days)

    log.info("bulk %s by user=%s summary=%s", request["action"], actor_id, summary)
    return summary


def review_submission(db, kind: str, row, approved: bool, *, actor_id: int) -> None:
    """Single approval toggle; un-approving an interview or assessment alerts its recruiter."""
    _, table, label = KINDS[kind]
    before = model_snapshot(row)
    set_approval(row, approved, actor_id)
    if not approved and kind != "applications":
        raise_rejection_alert(db, recruiter_id=row.recruiter_id, candidate_id=row.candidate_id, label=label)
    record_audit(
        db,
        actor_id=actor_id,
        action="UPDATE",
        table_name=table,
        record_id=row.id,
        old_values=before,
        new_values=model_snapshot(row),
    )
