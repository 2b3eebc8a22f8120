from __future__ import annotations

from datetime import date

from sqlalchemy import delete, func, select

from portal.models import Application, DailyActivity, RecruiterCandidateActivity
from portal.utils.datetime import iso_utc_now

_COUNTERS = ("applications_count", "interviews_count", "assessments_count")


def _get_or_create(db, user_id: int, day: date) -> DailyActivity:
    row = (
        db.execute(
            select(DailyActivity).where(DailyActivity.user_id == user_id).where(DailyActivity.activity_date == day)
        )
        .scalars()
        .first()
    )
    if row is None:
        row = DailyActivity(
            user_id=user_id,
            activity_date=day,
            applications_count=0,
            interviews_count=0,
            assessments_count=0,
        )
        db.add(row)
    return row


def bump_activity(db, user_id: int | None, day: date, counter: str, amount: int = 1) -> None:
    if user_id is None:
        return
    if counter not in _COUNTERS:
        raise ValueError(f"unknown activity counter: {counter}")
    row = _get_or_create(db, user_id, day)
    setattr(row, counter, int(getattr(row, counter) or 0) + amount)
    row.updated_at = iso_utc_now()
    db.flush()


def _sync_candidate_activity(db, user_id: int, day: date) -> None:
    """Per-candidate application totals for one recruiter-day, mirrored from the applications table."""
    totals = dict(
        db.execute(
            select(Application.candidate_id, func.coalesce(func.sum(Application.applications_count), 0))
            .where(Application.recruiter_id == user_id)
            .where(Application.application_date == day)
            .group_by(Application.candidate_id)
        ).all()
    )
    totals = {cid: int(n) for cid, n in totals.items() if int(n or 0) > 0}

    stale = delete(RecruiterCandidateActivity).where(RecruiterCandidateActivity.recruiter_id == user_id)
    stale = stale.where(RecruiterCandidateActivity.activity_date == day)
    if totals:
        stale = stale.where(RecruiterCandidateActivity.candidate_id.not_in(list(totals)))
    db.execute(stale)

    existing = {
        row.candidate_id: row
        for row in db.execute(
            select(RecruiterCandidateActivity)
            .where(RecruiterCandidateActivity.recruiter_id == user_id)
            .where(RecruiterCandidateActivity.activity_date == day)
        ).scalars()
    }
    now = iso_utc_now()
    for candidate_id, count in totals.items():
        row = existing.get(candidate_id)
        if row is None:
            db.add(
                RecruiterCandidateActivity(
                    recruiter_id=user_id,
                    candidate_id=candidate_id,
                    activity_date=day,
                    applications_count=count,
                    created_at=now,
                    updated_at=now,
                )
            )
        elif row.applications_count != count:
            row.applications_count = count
            row.updated_at = now


def refresh_application_activity(db, user_id: int | None, days: set[date] | list[date]) -> None:
    """Recompute daily and per-candidate application totals for each day from the applications table."""
    if user_id is None:
        return
    db.flush()
    for day in {d for d in days if d is not None}:
        total = db.execute(
            select(func.coalesce(func.sum(Application.applications_count), 0))
            .where(Application.recruiter_id == user_id)
            .where(Application.application_date == day)
        ).scalar_one()
        row = _get_or_create(db, user_id, day)
        row.applications_count = int(total or 0)
        row.updated_at = iso_utc_now()
        if not row.applications_count and not row.interviews_count and not row.assessments_count:
            if row.id is not None:
                db.delete(row)
            else:
                db.expunge(row)
        _sync_candidate_activity(db, user_id, day)
    db.flush()


def applications_total(db, user_id: int, start: date, end: date) -> int:
    total = db.execute(
        select(func.coalesce(func.sum(DailyActivity.applications_count), 0))
        .where(DailyActivity.user_id == user_id)
        .where(DailyActivity.activity_date >= start)
        .where(DailyActivity.activity_date <= end)
    ).scalar_one()
    return int(total or 0)
