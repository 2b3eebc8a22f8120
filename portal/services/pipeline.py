from __future__ import annotations

from typing import Any

from sqlalchemy import case, func, select

from portal.models import Application, Assessment, Interview


def pipeline_totals(db, candidate_ids: list[int]) -> dict[int, dict[str, Any]]:
    """Per-candidate application/interview/assessment totals split by approval."""
    out: dict[int, dict[str, Any]] = {
        cid: {
            "applications": {"total": 0, "approved": 0, "pending": 0},
            "interviews": {"total": 0, "approved": 0, "pending": 0},
            "assessments": {"total": 0, "approved": 0, "pending": 0},
        }
        for cid in candidate_ids
    }
    if not candidate_ids:
        return out

    app_rows = db.execute(
        select(
            Application.candidate_id,
            func.coalesce(func.sum(Application.applications_count), 0),
            func.coalesce(func.sum(case((Application.is_approved.is_(True), Application.applications_count), else_=0)), 0),
        )
        .where(Application.candidate_id.in_(candidate_ids))
        .group_by(Application.candidate_id)
    ).all()
    for cid, total, approved in app_rows:
        out[cid]["applications"] = {"total": int(total), "approved": int(approved), "pending": int(total) - int(approved)}

    for key, model in (("interviews", Interview), ("assessments", Assessment)):
        rows = db.execute(
            select(
                model.candidate_id,
                func.count(model.id),
                func.coalesce(func.sum(case((model.is_approved.is_(True), 1), else_=0)), 0),
            )
            .where(model.candidate_id.in_(candidate_ids))
            .group_by(model.candidate_id)
        ).all()
        for cid, total, approved in rows:
            out[cid][key] = {"total": int(total), "approved": int(approved), "pending": int(total) - int(approved)}
    return out
