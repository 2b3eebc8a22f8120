from __future__ import annotations

import logging
import threading
import time
from datetime import date, datetime, timedelta
from typing import Callable

from sqlalchemy import and_, func, select

from portal.models import Alert, Assessment, Candidate, DailyActivity, Interview, Reminder, User
from portal.utils.datetime import iso_utc_now, utc_today

log = logging.getLogger("portal.automation")

ALERT_QUOTA_BREACH = "quota_breach"
ALERT_ASSESSMENT_DUE = "assessment_due"
ALERT_SUBMISSION_REJECTED = "submission_rejected"


def _created_on(column, day: date):
    # created_at columns hold ISO-8601 UTC strings, so a date prefix selects the day.
    return column.like(f"{day.isoformat()}%")


def check_daily_quotas(db, *, today: date | None = None) -> int:
    """Open one quota_breach alert per recruiter per day while today's applications are below quota."""
    today = today or utc_today()
    rows = db.execute(
        select(User.id, User.daily_quota, func.coalesce(DailyActivity.applications_count, 0))
        .select_from(User)
        .outerjoin(DailyActivity, and_(DailyActivity.user_id == User.id, DailyActivity.activity_date == today))
        .where(User.role == "Recruiter")
        .where(User.is_active.is_(True))
    ).all()

    created = 0
    for user_id, quota, today_apps in rows:
        if int(today_apps or 0) >= int(quota or 0):
            continue
        existing = db.execute(
            select(Alert.id)
            .where(Alert.user_id == user_id)
            .where(Alert.alert_type == ALERT_QUOTA_BREACH)
            .where(_created_on(Alert.created_at, today))
        ).first()
        if existing:
            continue
        db.add(
            Alert(
                user_id=user_id,
                alert_type=ALERT_QUOTA_BREACH,
                title="Daily Quota Not Met",
                message=f"You have only {int(today_apps or 0)} applications today. Target: {quota}",
                status="open",
                priority=2,
                created_at=iso_utc_now(),
            )
        )
        created += 1
    db.flush()
    return created


def check_assessment_deadlines(db, *, today: date | None = None) -> int:
    """Alert the owning recruiter once for each assigned assessment due tomorrow."""
    today = today or utc_today()
    rows = db.execute(
        select(Assessment, Candidate.name)
        .join(Candidate, Candidate.id == Assessment.candidate_id)
        .where(Assessment.status == "assigned")
        .where(Assessment.recruiter_id.is_not(None))
        .where(Assessment.due_date > today)
        .where(Assessment.due_date <= today + timedelta(days=1))
    ).all()

    created = 0
    for assessment, candidate_name in rows:
        existing = db.execute(
            select(Alert.id)
            .where(Alert.alert_type == ALERT_ASSESSMENT_DUE)
            .where(Alert.assessment_id == assessment.id)
        ).first()
        if existing:
            continue
        db.add(
            Alert(
                user_id=assessment.recruiter_id,
                alert_type=ALERT_ASSESSMENT_DUE,
                title="Assessment Due Soon",
                message=f"Assessment for {candidate_name} is due on {assessment.due_date.isoformat()}",
                status="open",
                priority=1,
                candidate_id=assessment.candidate_id,
                assessment_id=assessment.id,
                created_at=iso_utc_now(),
            )
        )
        created += 1
    db.flush()
    return created


def check_interview_reminders(db, *, today: date | None = None) -> int:
    """One 'Interview Today' reminder per scheduled interview on the day it happens."""
    today = today or utc_today()
    day_start = datetime.combine(today, datetime.min.time())
    day_end = day_start + timedelta(days=1)
    rows = db.execute(
        select(Interview, Candidate.name)
        .join(Candidate, Candidate.id == Interview.candidate_id)
        .where(Interview.status == "scheduled")
        .where(Interview.recruiter_id.is_not(None))
        .where(Interview.scheduled_date >= day_start)
        .where(Interview.scheduled_date < day_end)
    ).all()

    created = 0
    for interview, candidate_name in rows:
        existing = db.execute(
            select(Reminder.id)
            .where(Reminder.interview_id == interview.id)
            .where(_created_on(Reminder.created_at, today))
        ).first()
        if existing:
            continue
        now = iso_utc_now()
        db.add(
            Reminder(
                recruiter_id=interview.recruiter_id,
                candidate_id=interview.candidate_id,
                interview_id=interview.id,
                title="Interview Today",
                description=f"Interview with {candidate_name} is scheduled for today",
                due_date=interview.scheduled_date.isoformat(),
                reminder_status="pending",
                priority=1,
                created_at=now,
                updated_at=now,
            )
        )
        created += 1
    db.flush()
    return created


AUTOMATION_CHECKS: dict[str, Callable[..., int]] = {
    "daily_quotas": check_daily_quotas,
    "assessment_deadlines": check_assessment_deadlines,
    "interview_reminders": check_interview_reminders,
}


_last_runs: dict[str, dict] = {}
_last_runs_lock = threading.Lock()


def _remember(name: str, *, ok: bool, created: int) -> None:
    with _last_runs_lock:
        _last_runs[name] = {"at": iso_utc_now(), "ok": ok, "created": created}


def last_runs() -> dict[str, dict]:
    with _last_runs_lock:
        return {name: dict(run) for name, run in _last_runs.items()}


def run_check(name: str) -> int:
    from portal.db import SessionLocal

    db = SessionLocal()
    try:
        created = AUTOMATION_CHECKS[name](db)
        db.commit()
        if created:
            log.info("automation check=%s created=%s", name, created)
        _remember(name, ok=True, created=created)
        return created
    except Exception:
        db.rollback()
        log.exception("automation check=%s failed", name)
        _remember(name, ok=False, created=0)
        return 0
    finally:
        db.close()


def start_automation(cfg) -> list[threading.Thread]:
    """
    In-process interval timers for the alert checks.

    Enable with ENABLE_AUTOMATION=1. With several gunicorn workers every worker
    runs its own timers; each check is idempotent per day.
    """

    if not cfg.ENABLE_AUTOMATION:
        return []

    schedule = {
        "daily_quotas": cfg.AUTOMATION_QUOTA_INTERVAL_MINUTES,
        "assessment_deadlines": cfg.AUTOMATION_ASSESSMENT_INTERVAL_MINUTES,
        "interview_reminders": cfg.AUTOMATION_INTERVIEW_INTERVAL_MINUTES,
    }

    threads = []
    for name, minutes in schedule.items():

        def _loop(check_name: str = name, interval: int = minutes) -> None:
            while True:
                run_check(check_name)
                time.sleep(max(60, interval * 60))

        t = threading.Thread(target=_loop, name=f"automation-{name}", daemon=True)
        t.start()
        threads.append(t)

    log.info("automation scheduled %s", ",".join(f"{k}={v}m" for k, v in schedule.items()))
    return threads
