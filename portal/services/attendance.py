from __future__ import annotations

import csv
import io
from datetime import date
from typing import Any

from sqlalchemy import select
from sqlalchemy.orm import aliased

from portal.models import APPROVAL_STATUSES, ATTENDANCE_STATUSES, LEAVE_CATEGORIES, AttendanceEntry, User
from portal.services import attendance_policy as policy
from portal.utils.datetime import format_clock, iso_utc_now


def to_policy_record(entry: AttendanceEntry, approved_by_name: str | None = None) -> policy.AttendanceRecord:
    return policy.AttendanceRecord(
        id=entry.id,
        user_id=entry.user_id,
        attendance_date=entry.attendance_date,
        reported_status=entry.reported_status,
        approval_status=entry.approval_status,
        approved_by=entry.approved_by,
        approved_by_name=approved_by_name,
        approved_at=entry.approved_at or None,
        reviewer_note=entry.reviewer_note or None,
        check_in_time=entry.check_in_time,
        check_out_time=entry.check_out_time,
        break_minutes=entry.break_minutes or 0,
        leave_category=entry.leave_category or None,
        informed_leave=bool(entry.informed_leave),
    )


def record_payload(
    entry: AttendanceEntry,
    *,
    settings: policy.PolicySettings,
    user_name: str | None = None,
    approved_by_name: str | None = None,
) -> dict[str, Any]:
    rec = to_policy_record(entry, approved_by_name)
    return {
        "id": entry.id,
        "userId": entry.user_id,
        "userName": user_name,
        "date": entry.attendance_date.isoformat(),
        "reportedStatus": entry.reported_status,
        "approvalStatus": entry.approval_status,
        "effectiveStatus": policy.effective_status(entry.reported_status, entry.approval_status),
        "approvedBy": entry.approved_by,
        "approvedByName": approved_by_name,
        "approvedAt": entry.approved_at or None,
        "reviewerNote": entry.reviewer_note or None,
        "checkInTime": format_clock(entry.check_in_time),
        "checkOutTime": format_clock(entry.check_out_time),
        "breakMinutes": entry.break_minutes or 0,
        "leaveCategory": entry.leave_category or None,
        "informedLeave": bool(entry.informed_leave),
        "policyImpact": policy.evaluate_policy_impact(rec, settings).to_dict(),
        "createdAt": entry.created_at,
        "updatedAt": entry.updated_at,
    }


def load_entries(db, user_ids: list[int], start: date, end: date):
    """(entry, user name, approver name) tuples ordered by date then user name."""
    if not user_ids:
        return []
    approver = aliased(User)
    return db.execute(
        select(AttendanceEntry, User.name, approver.name)
        .join(User, User.id == AttendanceEntry.user_id)
        .outerjoin(approver, approver.id == AttendanceEntry.approved_by)
        .where(AttendanceEntry.user_id.in_(user_ids))
        .where(AttendanceEntry.attendance_date >= start)
        .where(AttendanceEntry.attendance_date <= end)
        .order_by(AttendanceEntry.attendance_date.asc(), User.name.asc())
    ).all()


def build_report(
    db,
    users: list[User],
    start: date,
    end: date,
    *,
    settings: policy.PolicySettings,
    pending_only: bool = False,
) -> dict[str, Any]:
    rows = load_entries(db, [u.id for u in users], start, end)
    policy_records = [to_policy_record(entry, approver_name) for entry, _, approver_name in rows]

    days: list[dict[str, Any]] = []
    for user in users:
        days.extend(policy.build_day_grid(user.id, user.name, start, end, policy_records, settings))

    records = [
        record_payload(entry, settings=settings, user_name=user_name, approved_by_name=approver_name)
        for entry, user_name, approver_name in rows
    ]
    if pending_only:
        records = [r for r in records if r["approvalStatus"] == policy.APPROVAL_PENDING]

    summary: dict[str, Any] = policy.summarize_days(days)
    summary["policy"] = policy.summarize_policy(policy_records, settings)

    return {
        "range": {"dateFrom": start.isoformat(), "dateTo": end.isoformat(), "days": (end - start).days + 1},
        "users": [{"id": u.id, "name": u.name, "email": u.email} for u in users],
        "days": days,
        "records": records,
        "summary": summary,
        "metadata": {
            "statuses": list(ATTENDANCE_STATUSES),
            "approvalStatuses": list(APPROVAL_STATUSES),
            "leaveCategories": list(LEAVE_CATEGORIES),
            "halfDayReasons": dict(policy.HALF_DAY_REASON_LABELS),
            "policy": settings.describe(),
        },
    }


def apply_approval(entry: AttendanceEntry, approval_status: str, actor_id: int | None) -> None:
    entry.approval_status = approval_status
    if approval_status == policy.APPROVAL_APPROVED:
        entry.approved_by = actor_id
        entry.approved_at = iso_utc_now()
    else:
        entry.approved_by = None
        entry.approved_at = ""


def upsert_entry(db, *, user_id: int, attendance_date: date, fields: dict[str, Any]) -> tuple[AttendanceEntry, bool]:
    """Insert or overwrite the (user, date) row; returns (entry, created)."""
    entry = (
        db.execute(
            select(AttendanceEntry)
            .where(AttendanceEntry.user_id == user_id)
            .where(AttendanceEntry.attendance_date == attendance_date)
        )
        .scalars()
        .first()
    )
    now = iso_utc_now()
    created = entry is None
    if created:
        entry = AttendanceEntry(user_id=user_id, attendance_date=attendance_date, created_at=now)
        db.add(entry)
    for key, value in fields.items():
        setattr(entry, key, value)
    entry.updated_at = now
    db.flush()
    return entry, created


REPORT_CSV_HEADERS = [
    "date",
    "weekday",
    "user_id",
    "user_name",
    "reported_status",
    "approval_status",
    "effective_status",
    "source",
    "sandwich_applied",
    "half_day_reasons",
    "uninformed_leave",
    "reviewer_note",
]


def report_csv(report: dict[str, Any]) -> str:
    out = io.StringIO()
    writer = csv.writer(out)
    writer.writerow(REPORT_CSV_HEADERS)
    for d in report["days"]:
        impact = d.get("policyImpact") or {}
        writer.writerow(
            [
                d["date"],
                d["weekday"],
                d["userId"],
                d["userName"],
                d["reportedStatus"] or "",
                d["approvalStatus"] or "",
                d["effectiveStatus"],
                d["source"],
                "yes" if d["sandwichApplied"] else "no",
                ";".join(impact.get("halfDayReasons") or []),
                "yes" if impact.get("uninformedLeave") else "no",
                d["reviewerNote"] or "",
            ]
        )
    return out.getvalue()
