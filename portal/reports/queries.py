from __future__ import annotations

from datetime import date, datetime, time, timedelta
from typing import Any

from sqlalchemy import case, func, select

from portal.models import (
    Application,
    Assessment,
    AuditLog,
    Candidate,
    DailyActivity,
    Interview,
    Note,
    RecruiterCandidateActivity,
    Reminder,
    User,
)
from portal.services.audit import audit_payload

_ENTITY_LABELS = {"applications": "Application", "interviews": "Interview", "assessments": "Assessment"}


def _recruiters(db, recruiter_id: int | None = None) -> list[User]:
    q = select(User).where(User.role == "Recruiter").where(User.is_active.is_(True))
    if recruiter_id is not None:
        q = q.where(User.id == recruiter_id)
    return list(db.execute(q.order_by(User.name.asc())).scalars().all())


def _activity_by_user(db, start: date, end: date) -> dict[int, dict[str, int]]:
    rows = db.execute(
        select(
            DailyActivity.user_id,
            func.coalesce(func.sum(DailyActivity.applications_count), 0),
            func.coalesce(func.sum(DailyActivity.interviews_count), 0),
            func.coalesce(func.sum(DailyActivity.assessments_count), 0),
            func.count(DailyActivity.id),
        )
        .where(DailyActivity.activity_date >= start)
        .where(DailyActivity.activity_date <= end)
        .group_by(DailyActivity.user_id)
    ).all()
    return {
        uid: {"applications": int(a), "interviews": int(i), "assessments": int(s), "activeDays": int(n)}
        for uid, a, i, s, n in rows
    }


def _candidate_counts(db) -> dict[int, dict[str, int]]:
    rows = db.execute(
        select(
            Candidate.assigned_recruiter_id,
            func.count(Candidate.id),
            func.sum(case((Candidate.current_stage != "inactive", 1), else_=0)),
        )
        .where(Candidate.assigned_recruiter_id.is_not(None))
        .group_by(Candidate.assigned_recruiter_id)
    ).all()
    return {rid: {"total": int(t or 0), "active": int(a or 0)} for rid, t, a in rows}


def performance_report(db, start: date, end: date, *, recruiter_id: int | None = None) -> list[dict[str, Any]]:
    activity = _activity_by_user(db, start, end)
    candidates = _candidate_counts(db)
    days = (end - start).days + 1

    items = []
    for user in _recruiters(db, recruiter_id):
        act = activity.get(user.id, {})
        apps = act.get("applications", 0)
        active_days = act.get("activeDays", 0)
        items.append(
            {
                "recruiterId": user.id,
                "recruiterName": user.name,
                "dailyQuota": user.daily_quota,
                "totalCandidates": candidates.get(user.id, {}).get("total", 0),
                "appsTotalPeriod": apps,
                "avgAppsPerDay": round(apps / active_days, 2) if active_days else 0.0,
                "interviewsTotalPeriod": act.get("interviews", 0),
                "assessmentsTotalPeriod": act.get("assessments", 0),
                "quotaProgress": round(apps / (user.daily_quota * days) * 100, 1) if user.daily_quota else 0.0,
            }
        )
    items.sort(key=lambda r: (-r["appsTotalPeriod"], r["recruiterName"]))
    return items


def overview_report(db, start: date, end: date, *, today: date) -> dict[str, Any]:
    total, active, marketing = db.execute(
        select(
            func.count(Candidate.id),
            func.sum(case((Candidate.current_stage != "inactive", 1), else_=0)),
            func.sum(case((Candidate.marketing_start_date.is_not(None), 1), else_=0)),
        )
    ).one()
    stages = db.execute(
        select(Candidate.current_stage, func.count(Candidate.id)).group_by(Candidate.current_stage)
    ).all()

    range_activity = _activity_by_user(db, start, end)
    last7 = _activity_by_user(db, today - timedelta(days=6), today)
    last30 = _activity_by_user(db, today - timedelta(days=29), today)
    today_activity = _activity_by_user(db, today, today)

    productivity = []
    for user in _recruiters(db):
        r = range_activity.get(user.id, {})
        today_apps = today_activity.get(user.id, {}).get("applications", 0)
        productivity.append(
            {
                "recruiterId": user.id,
                "name": user.name,
                "dailyQuota": user.daily_quota,
                "applicationsInRange": r.get("applications", 0),
                "interviewsInRange": r.get("interviews", 0),
                "assessmentsInRange": r.get("assessments", 0),
                "avgAppsLast7": round(last7.get(user.id, {}).get("applications", 0) / 7, 2),
                "avgAppsLast30": round(last30.get(user.id, {}).get("applications", 0) / 30, 2),
                "todayApplications": today_apps,
                "quotaProgressToday": round(today_apps / user.daily_quota * 100, 1) if user.daily_quota else 0.0,
            }
        )

    app_total, app_approved = db.execute(
        select(
            func.coalesce(func.sum(Application.applications_count), 0),
            func.coalesce(
                func.sum(case((Application.is_approved.is_(True), Application.applications_count), else_=0)), 0
            ),
        )
        .where(Application.application_date >= start)
        .where(Application.application_date <= end)
    ).one()

    trend_start = max(start, end - timedelta(days=13))
    trend_rows = db.execute(
        select(
            DailyActivity.activity_date,
            func.sum(DailyActivity.applications_count),
            func.sum(DailyActivity.interviews_count),
            func.sum(DailyActivity.assessments_count),
        )
        .where(DailyActivity.activity_date >= trend_start)
        .where(DailyActivity.activity_date <= end)
        .group_by(DailyActivity.activity_date)
        .order_by(DailyActivity.activity_date.asc())
    ).all()

    return {
        "range": {"dateFrom": start.isoformat(), "dateTo": end.isoformat()},
        "candidates": {
            "total": int(total or 0),
            "active": int(active or 0),
            "marketing": int(marketing or 0),
            "byStage": [{"stage": s, "count": int(c)} for s, c in sorted(stages, key=lambda x: x[0])],
        },
        "applications": {
            "total": int(app_total or 0),
            "approved": int(app_approved or 0),
            "pending": int(app_total or 0) - int(app_approved or 0),
        },
        "activity": {
            "applications": sum(v["applications"] for v in range_activity.values()),
            "interviews": sum(v["interviews"] for v in range_activity.values()),
            "assessments": sum(v["assessments"] for v in range_activity.values()),
        },
        "productivity": productivity,
        "trend": [
            {
                "date": d.isoformat(),
                "applications": int(a or 0),
                "interviews": int(i or 0),
                "assessments": int(s or 0),
            }
            for d, a, i, s in trend_rows
        ],
    }


def leaderboard(db, *, today: date) -> list[dict[str, Any]]:
    week_start = today - timedelta(days=6)
    month_start = today - timedelta(days=29)

    app_rows = db.execute(
        select(
            Application.recruiter_id,
            func.sum(Application.applications_count),
            func.sum(case((Application.application_date == today, Application.applications_count), else_=0)),
            func.sum(case((Application.application_date >= week_start, Application.applications_count), else_=0)),
            func.sum(case((Application.application_date >= month_start, Application.applications_count), else_=0)),
        ).group_by(Application.recruiter_id)
    ).all()
    apps = {rid: (int(t or 0), int(d or 0), int(w or 0), int(m or 0)) for rid, t, d, w, m in app_rows}

    note_rows = db.execute(
        select(Note.author_id, func.count(Note.id))
        .where(Note.created_at >= week_start.isoformat())
        .group_by(Note.author_id)
    ).all()
    notes = {aid: int(n) for aid, n in note_rows}
    candidates = _candidate_counts(db)

    board = []
    for user in _recruiters(db):
        total, today_apps, week, month = apps.get(user.id, (0, 0, 0, 0))
        board.append(
            {
                "recruiterId": user.id,
                "name": user.name,
                "dailyQuota": user.daily_quota,
                "todayApplications": today_apps,
                "weekApplications": week,
                "monthApplications": month,
                "totalApplications": total,
                "activeCandidates": candidates.get(user.id, {}).get("active", 0),
                "totalCandidates": candidates.get(user.id, {}).get("total", 0),
                "notesLast7Days": notes.get(user.id, 0),
            }
        )
    board.sort(key=lambda r: (-r["weekApplications"], -r["todayApplications"], r["name"]))
    for rank, row in enumerate(board, start=1):
        row["rank"] = rank
    return board


def application_activity_report(
    db, start: date, end: date, *, recruiter_id: int | None = None, candidate_id: int | None = None
) -> dict[str, Any]:
    """Per (recruiter, candidate, day) application counts with totals by recruiter, candidate and date."""
    q = (
        select(
            RecruiterCandidateActivity.activity_date,
            RecruiterCandidateActivity.recruiter_id,
            User.name,
            RecruiterCandidateActivity.candidate_id,
            Candidate.name,
            RecruiterCandidateActivity.applications_count,
        )
        .join(User, User.id == RecruiterCandidateActivity.recruiter_id)
        .join(Candidate, Candidate.id == RecruiterCandidateActivity.candidate_id)
        .where(RecruiterCandidateActivity.activity_date >= start)
        .where(RecruiterCandidateActivity.activity_date <= end)
    )
    if recruiter_id is not None:
        q = q.where(RecruiterCandidateActivity.recruiter_id == recruiter_id)
    if candidate_id is not None:
        q = q.where(RecruiterCandidateActivity.candidate_id == candidate_id)
    rows = db.execute(q.order_by(RecruiterCandidateActivity.activity_date.desc(), User.name, Candidate.name)).all()

    by_recruiter: dict[int, dict[str, Any]] = {}
    by_candidate: dict[int, dict[str, Any]] = {}
    by_date: dict[str, int] = {}
    records = []
    overall = 0
    for day, rid, rname, cid, cname, count in rows:
        count = int(count or 0)
        overall += count
        by_recruiter.setdefault(rid, {"recruiterId": rid, "recruiterName": rname, "totalApplications": 0})
        by_recruiter[rid]["totalApplications"] += count
        by_candidate.setdefault(cid, {"candidateId": cid, "candidateName": cname, "totalApplications": 0})
        by_candidate[cid]["totalApplications"] += count
        by_date[day.isoformat()] = by_date.get(day.isoformat(), 0) + count
        records.append(
            {
                "activityDate": day.isoformat(),
                "recruiter": {"id": rid, "name": rname},
                "candidate": {"id": cid, "name": cname},
                "applicationsCount": count,
            }
        )

    return {
        "range": {"dateFrom": start.isoformat(), "dateTo": end.isoformat()},
        "filters": {"recruiterId": recruiter_id, "candidateId": candidate_id},
        "totals": {
            "overall": overall,
            "byRecruiter": sorted(by_recruiter.values(), key=lambda r: -r["totalApplications"]),
            "byCandidate": sorted(by_candidate.values(), key=lambda r: -r["totalApplications"]),
            "byDate": [{"date": d, "totalApplications": n} for d, n in sorted(by_date.items(), reverse=True)],
        },
        "records": records,
    }


def _ts_bounds(start: date, end: date) -> tuple[str, str]:
    return start.isoformat(), (end + timedelta(days=1)).isoformat()


def _ref(ident: int | None, names: dict[int, str]) -> dict[str, Any] | None:
    return {"id": ident, "name": names.get(ident)} if ident else None


def _approval_decision(
    table: str, action: str, old_values: dict[str, Any], new_values: dict[str, Any]
) -> str | None:
    """None for audit rows that are not an approval decision (creates and plain edits)."""
    if action == "DELETE":
        return "rejected" if table == "applications" else "deleted"
    if action != "UPDATE" or old_values.get("is_approved") == new_values.get("is_approved"):
        return None
    return "approved" if new_values.get("is_approved") is True else "rejected"


def _note_row(note: Note, users: dict[int, User], candidates: dict[int, str]) -> dict[str, Any]:
    author = users.get(note.author_id)
    return {
        "id": note.id,
        "candidateId": note.candidate_id,
        "candidateName": candidates.get(note.candidate_id),
        "content": note.content,
        "isPrivate": bool(note.is_private),
        "createdAt": note.created_at,
        "author": {
            "id": note.author_id,
            "name": author.name if author else None,
            "role": author.role if author else None,
        },
    }


def activity_report(db, start: date, end: date, *, today: date) -> dict[str, Any]:
    """Admin activity feed: notes, due reminders, unapproved submissions and recent approval decisions."""
    lo, hi = _ts_bounds(start, end)
    users = {u.id: u for u in db.execute(select(User)).scalars().all()}
    user_names = {uid: u.name for uid, u in users.items()}
    candidates = dict(db.execute(select(Candidate.id, Candidate.name)).all())

    in_range = (Note.created_at >= lo, Note.created_at < hi)
    recent_notes = db.execute(select(Note).where(*in_range).order_by(Note.created_at.desc()).limit(15)).scalars().all()
    recruiter_notes = db.execute(
        select(Note)
        .join(User, User.id == Note.author_id)
        .where(User.role == "Recruiter", *in_range)
        .order_by(Note.created_at.desc())
        .limit(100)
    ).scalars().all()

    reminders = db.execute(
        select(Reminder)
        .where(Reminder.reminder_status.in_(("pending", "snoozed")))
        .where(Reminder.due_date >= lo, Reminder.due_date < hi)
        .order_by(Reminder.due_date.asc())
        .limit(15)
    ).scalars().all()

    week_lo = (today - timedelta(days=6)).isoformat()
    stats = {
        aid: (int(total), int(week or 0), last)
        for aid, total, week, last in db.execute(
            select(
                Note.author_id,
                func.count(Note.id),
                func.sum(case((Note.created_at >= week_lo, 1), else_=0)),
                func.max(Note.created_at),
            ).group_by(Note.author_id)
        ).all()
    }
    notes_by_recruiter = []
    for user in _recruiters(db):
        total, week, last = stats.get(user.id, (0, 0, None))
        notes_by_recruiter.append(
            {
                "id": user.id,
                "name": user.name,
                "dailyQuota": user.daily_quota,
                "totalNotes": total,
                "notesLast7Days": week,
                "lastNoteAt": last,
            }
        )
    notes_by_recruiter.sort(key=lambda r: (-r["totalNotes"], r["name"]))

    pending_apps = db.execute(
        select(Application)
        .where(Application.is_approved.is_(False))
        .where(
            ((Application.application_date >= start) & (Application.application_date <= end))
            | ((Application.created_at >= lo) & (Application.created_at < hi))
        )
        .order_by(Application.created_at.desc())
        .limit(15)
    ).scalars().all()
    pending_interviews = db.execute(
        select(Interview)
        .where(Interview.is_approved.is_(False))
        .where(
            (
                (Interview.scheduled_date >= datetime.combine(start, time.min))
                & (Interview.scheduled_date < datetime.combine(end + timedelta(days=1), time.min))
            )
            | ((Interview.created_at >= lo) & (Interview.created_at < hi))
        )
        .order_by(Interview.created_at.desc())
        .limit(15)
    ).scalars().all()
    pending_assessments = db.execute(
        select(Assessment)
        .where(Assessment.is_approved.is_(False))
        .where(
            ((Assessment.due_date >= start) & (Assessment.due_date <= end))
            | ((Assessment.created_at >= lo) & (Assessment.created_at < hi))
        )
        .order_by(Assessment.created_at.desc())
        .limit(15)
    ).scalars().all()

    decisions = db.execute(
        select(AuditLog)
        .where(AuditLog.table_name.in_(("applications", "interviews", "assessments")))
        .where(AuditLog.action.in_(("UPDATE", "DELETE")))
        .where(AuditLog.created_at >= lo, AuditLog.created_at < hi)
        .order_by(AuditLog.created_at.desc(), AuditLog.id.desc())
        .limit(200)
    ).scalars().all()
    recent_approvals = []
    for entry in decisions:
        payload = audit_payload(entry)
        new_values = payload["newValues"] if isinstance(payload["newValues"], dict) else {}
        old_values = payload["oldValues"] if isinstance(payload["oldValues"], dict) else {}
        decision = _approval_decision(entry.table_name, entry.action, old_values, new_values)
        if decision is None:
            continue
        recruiter_id = new_values.get("recruiter_id") or old_values.get("recruiter_id")
        candidate_id = new_values.get("candidate_id") or old_values.get("candidate_id")
        recent_approvals.append(
            {
                "id": entry.id,
                "entity": _ENTITY_LABELS.get(entry.table_name, entry.table_name),
                "decision": decision,
                "actor": {"id": entry.user_id, "name": user_names.get(entry.user_id) or "System"},
                "recruiter": _ref(recruiter_id, user_names),
                "candidate": _ref(candidate_id, candidates),
                "createdAt": entry.created_at,
                "recordId": entry.record_id,
            }
        )
        if len(recent_approvals) == 20:
            break

    return {
        "recentNotes": [_note_row(n, users, candidates) for n in recent_notes],
        "upcomingReminders": [
            {
                "id": r.id,
                "title": r.title,
                "description": r.description,
                "dueDate": r.due_date,
                "status": r.reminder_status,
                "priority": r.priority,
                "owner": _ref(r.recruiter_id, user_names),
                "candidate": _ref(r.candidate_id, candidates),
            }
            for r in reminders
        ],
        "recruiterNotes": [_note_row(n, users, candidates) for n in recruiter_notes],
        "notesByRecruiter": notes_by_recruiter,
        "pendingApprovals": {
            "applications": [
                {
                    "id": a.id,
                    "companyName": a.company_name,
                    "jobTitle": a.job_title,
                    "applicationsCount": a.applications_count,
                    "applicationDate": a.application_date.isoformat(),
                    "createdAt": a.created_at,
                    "candidate": _ref(a.candidate_id, candidates),
                    "recruiter": _ref(a.recruiter_id, user_names),
                }
                for a in pending_apps
            ],
            "interviews": [
                {
                    "id": i.id,
                    "companyName": i.company_name,
                    "interviewType": i.interview_type,
                    "scheduledDate": i.scheduled_date.isoformat(),
                    "status": i.status,
                    "createdAt": i.created_at,
                    "candidate": _ref(i.candidate_id, candidates),
                    "recruiter": _ref(i.recruiter_id, user_names),
                }
                for i in pending_interviews
            ],
            "assessments": [
                {
                    "id": s.id,
                    "assessmentPlatform": s.assessment_platform,
                    "assessmentType": s.assessment_type,
                    "dueDate": s.due_date.isoformat() if s.due_date else None,
                    "status": s.status,
                    "createdAt": s.created_at,
                    "candidate": _ref(s.candidate_id, candidates),
                    "recruiter": _ref(s.recruiter_id, user_names),
                }
                for s in pending_assessments
            ],
        },
        "recentApprovals": recent_approvals,
        "range": {"dateFrom": start.isoformat(), "dateTo": end.isoformat()},
    }
