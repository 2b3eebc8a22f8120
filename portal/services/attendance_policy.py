"""
Attendance policy evaluation.

Everything here is pure: callers load rows, convert them into
``AttendanceRecord`` snapshots and get plain dicts back for the API.

Rules:
- effective status derives from the recruiter-reported status and the admin
  approval status.
- Saturdays and Sundays without a record are auto-present, unless the weekend
  is bracketed by an absent Friday and an absent Monday (sandwich leave).
- A present/half-day record can be downgraded to a half-day by shift timing
  (late login, early logout, break overage); two half-days make one deduction
  day, and every uninformed absence is a full deduction day.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import date, time, timedelta
from typing import Any, Iterable

MINUTES_PER_DAY = 24 * 60

STATUS_PRESENT = "present"
STATUS_HALF_DAY = "half-day"
STATUS_ABSENT = "absent"
STATUS_LEAVE = "leave"
STATUS_PENDING = "pending"
STATUS_REJECTED = "rejected"
STATUS_UNMARKED = "unmarked"

APPROVAL_PENDING = "pending"
APPROVAL_APPROVED = "approved"
APPROVAL_REJECTED = "rejected"
APPROVAL_AUTO = "auto"
APPROVAL_SANDWICH = "sandwich"

SOURCE_RECORD = "record"
SOURCE_AUTO_WEEKEND = "auto-weekend"
SOURCE_NONE = "none"

REASON_LATE_LOGIN = "late-login"
REASON_EARLY_LOGOUT = "early-logout"
REASON_BREAK_OVERAGE = "break-overage"
REASON_REPORTED_HALF_DAY = "reported-half-day"

HALF_DAY_REASON_LABELS = {
    REASON_LATE_LOGIN: "Late login past cutoff",
    REASON_EARLY_LOGOUT: "Early logout before shift end",
    REASON_BREAK_OVERAGE: "Break over allowance",
    REASON_REPORTED_HALF_DAY: "Half-day reported",
}

SATURDAY = 5
SUNDAY = 6


@dataclass(frozen=True)
class PolicySettings:
    shift_start: time = time(19, 0)
    shift_end: time = time(4, 0)
    late_login_cutoff: time = time(20, 0)
    early_logout_minutes: int = 120
    break_allowance_minutes: int = 45

    @classmethod
    def from_config(cls, cfg) -> "PolicySettings":
        return cls(
            shift_start=_clock(cfg.ATTENDANCE_SHIFT_START, cls.shift_start),
            shift_end=_clock(cfg.ATTENDANCE_SHIFT_END, cls.shift_end),
            late_login_cutoff=_clock(cfg.ATTENDANCE_LATE_LOGIN_CUTOFF, cls.late_login_cutoff),
            early_logout_minutes=int(cfg.ATTENDANCE_EARLY_LOGOUT_MINUTES),
            break_allowance_minutes=int(cfg.ATTENDANCE_BREAK_ALLOWANCE_MINUTES),
        )

    @property
    def shift_length(self) -> int:
        length = (_minute_of_day(self.shift_end) - _minute_of_day(self.shift_start)) % MINUTES_PER_DAY
        return length or MINUTES_PER_DAY

    def describe(self) -> dict[str, Any]:
        return {
            "shiftStart": self.shift_start.strftime("%H:%M"),
            "shiftEnd": self.shift_end.strftime("%H:%M"),
            "lateLoginCutoff": self.late_login_cutoff.strftime("%H:%M"),
            "earlyLogoutThresholdMinutes": self.early_logout_minutes,
            "breakAllowanceMinutes": self.break_allowance_minutes,
        }


@dataclass(frozen=True)
class AttendanceRecord:
    id: int
    user_id: int
    attendance_date: date
    reported_status: str
    approval_status: str
    approved_by: int | None = None
    approved_by_name: str | None = None
    approved_at: str | None = None
    reviewer_note: str | None = None
    check_in_time: time | None = None
    check_out_time: time | None = None
    break_minutes: int = 0
    leave_category: str | None = None
    informed_leave: bool = False


@dataclass
class PolicyImpact:
    late_login_minutes: int = 0
    early_logout_minutes: int = 0
    break_over_minutes: int = 0
    working_minutes: int | None = None
    half_day_reasons: list[str] = field(default_factory=list)
    uninformed_leave: bool = False

    @property
    def half_day(self) -> bool:
        return bool(self.half_day_reasons)

    def to_dict(self) -> dict[str, Any]:
        return {
            "lateLoginMinutes": self.late_login_minutes,
            "earlyLogoutMinutes": self.early_logout_minutes,
            "breakOverMinutes": self.break_over_minutes,
            "workingMinutes": self.working_minutes,
            "halfDay": self.half_day,
            "halfDayReasons": list(self.half_day_reasons),
            "uninformedLeave": self.uninformed_leave,
        }


def _clock(value: Any, default: time) -> time:
    s = str(value or "").strip()
    try:
        hh, mm = s.split(":", 1)
        return time(int(hh), int(mm[:2]))
    except ValueError:
        return default


def _minute_of_day(t: time) -> int:
    return t.hour * 60 + t.minute


def _shift_offset(t: time, settings: PolicySettings) -> int:
    """Minutes from shift start, negative when the clock time falls before it."""
    raw = (_minute_of_day(t) - _minute_of_day(settings.shift_start)) % MINUTES_PER_DAY
    # Split the off-shift gap in half: the early part belongs to the next shift.
    pivot = settings.shift_length + (MINUTES_PER_DAY - settings.shift_length) // 2
    if raw > pivot:
        return raw - MINUTES_PER_DAY
    return raw


def effective_status(reported_status: str | None, approval_status: str | None) -> str:
    if approval_status == APPROVAL_REJECTED:
        return STATUS_REJECTED
    if approval_status == APPROVAL_APPROVED:
        if reported_status == STATUS_PRESENT:
            return STATUS_PRESENT
        if reported_status == STATUS_HALF_DAY:
            return STATUS_HALF_DAY
        return STATUS_ABSENT
    return STATUS_PENDING


def is_weekend(day: date) -> bool:
    return day.weekday() in (SATURDAY, SUNDAY)


def iter_dates(start: date, end: date) -> Iterable[date]:
    current = start
    while current <= end:
        yield current
        current += timedelta(days=1)


def evaluate_policy_impact(record: AttendanceRecord, settings: PolicySettings | None = None) -> PolicyImpact:
    settings = settings or PolicySettings()
    impact = PolicyImpact()

    if record.reported_status in (STATUS_ABSENT, STATUS_LEAVE):
        impact.uninformed_leave = not record.informed_leave
        return impact

    if record.reported_status not in (STATUS_PRESENT, STATUS_HALF_DAY):
        return impact

    check_in = record.check_in_time
    check_out = record.check_out_time
    break_minutes = max(0, int(record.break_minutes or 0))

    if check_in is not None:
        offset = _shift_offset(check_in, settings)
        impact.late_login_minutes = max(0, offset)
        if offset > _shift_offset(settings.late_login_cutoff, settings):
            impact.half_day_reasons.append(REASON_LATE_LOGIN)

    if check_out is not None:
        offset = _shift_offset(check_out, settings)
        impact.early_logout_minutes = max(0, settings.shift_length - offset)
        if impact.early_logout_minutes > settings.early_logout_minutes:
            impact.half_day_reasons.append(REASON_EARLY_LOGOUT)

    if check_in is not None and check_out is not None:
        span = (_minute_of_day(check_out) - _minute_of_day(check_in)) % MINUTES_PER_DAY
        impact.working_minutes = max(0, span - break_minutes)

    impact.break_over_minutes = max(0, break_minutes - settings.break_allowance_minutes)
    if impact.break_over_minutes > 0:
        impact.half_day_reasons.append(REASON_BREAK_OVERAGE)

    if record.reported_status == STATUS_HALF_DAY:
        impact.half_day_reasons.append(REASON_REPORTED_HALF_DAY)

    return impact


def _record_day(record: AttendanceRecord, user_name: str, settings: PolicySettings) -> dict[str, Any]:
    day = record.attendance_date
    return {
        "userId": record.user_id,
        "userName": user_name,
        "date": day.isoformat(),
        "weekday": day.strftime("%A"),
        "isWeekend": is_weekend(day),
        "recordId": record.id,
        "reportedStatus": record.reported_status,
        "approvalStatus": record.approval_status,
        "approvedBy": record.approved_by,
        "approvedByName": record.approved_by_name,
        "approvedAt": record.approved_at,
        "reviewerNote": record.reviewer_note,
        "effectiveStatus": effective_status(record.reported_status, record.approval_status),
        "source": SOURCE_RECORD,
        "sandwichApplied": False,
        "policyImpact": evaluate_policy_impact(record, settings).to_dict(),
    }


def _empty_day(user_id: int, user_name: str, day: date) -> dict[str, Any]:
    weekend = is_weekend(day)
    return {
        "userId": user_id,
        "userName": user_name,
        "date": day.isoformat(),
        "weekday": day.strftime("%A"),
        "isWeekend": weekend,
        "recordId": None,
        "reportedStatus": STATUS_PRESENT if weekend else None,
        "approvalStatus": APPROVAL_AUTO if weekend else None,
        "approvedBy": None,
        "approvedByName": None,
        "approvedAt": None,
        "reviewerNote": None,
        "effectiveStatus": STATUS_PRESENT if weekend else STATUS_UNMARKED,
        "source": SOURCE_AUTO_WEEKEND if weekend else SOURCE_NONE,
        "sandwichApplied": False,
        "policyImpact": None,
    }


def build_day_grid(
    user_id: int,
    user_name: str,
    start: date,
    end: date,
    records: Iterable[AttendanceRecord],
    settings: PolicySettings | None = None,
) -> list[dict[str, Any]]:
    """One entry per calendar day in [start, end], with sandwich leave applied."""
    settings = settings or PolicySettings()
    by_date = {r.attendance_date: r for r in records if r.user_id == user_id}

    days = []
    for day in iter_dates(start, end):
        record = by_date.get(day)
        if record is not None:
            days.append(_record_day(record, user_name, settings))
        else:
            days.append(_empty_day(user_id, user_name, day))

    apply_sandwich_rule(days)
    return days


def apply_sandwich_rule(days: list[dict[str, Any]]) -> int:
    """
    Convert auto-present weekend days to absent when the Friday before and the
    Monday after are both effectively absent. Both bracketing days must be
    inside the grid. Returns the number of converted days.
    """

    index = {d["date"]: d for d in days}
    converted = 0
    for entry in days:
        saturday = date.fromisoformat(entry["date"])
        if saturday.weekday() != SATURDAY:
            continue
        friday = index.get((saturday - timedelta(days=1)).isoformat())
        monday = index.get((saturday + timedelta(days=2)).isoformat())
        if not friday or not monday:
            continue
        if friday["effectiveStatus"] != STATUS_ABSENT or monday["effectiveStatus"] != STATUS_ABSENT:
            continue

        for offset in (0, 1):
            weekend_day = index.get((saturday + timedelta(days=offset)).isoformat())
            if not weekend_day or weekend_day["source"] != SOURCE_AUTO_WEEKEND:
                continue
            weekend_day["effectiveStatus"] = STATUS_ABSENT
            weekend_day["approvalStatus"] = APPROVAL_SANDWICH
            weekend_day["sandwichApplied"] = True
            converted += 1
    return converted


def summarize_days(days: Iterable[dict[str, Any]]) -> dict[str, int]:
    summary = {
        "present": 0,
        "halfDay": 0,
        "absent": 0,
        "pending": 0,
        "autoPresent": 0,
        "sandwichAbsent": 0,
    }
    for day in days:
        status = day["effectiveStatus"]
        approval = day["approvalStatus"]
        if status == STATUS_PRESENT and approval in (APPROVAL_APPROVED, APPROVAL_AUTO):
            summary["present"] += 1
            if day["source"] == SOURCE_AUTO_WEEKEND:
                summary["autoPresent"] += 1
        elif status == STATUS_HALF_DAY and approval == APPROVAL_APPROVED:
            summary["halfDay"] += 1
        elif status == STATUS_ABSENT:
            summary["absent"] += 1
            if day["sandwichApplied"]:
                summary["sandwichAbsent"] += 1
        elif status in (STATUS_PENDING, STATUS_UNMARKED, STATUS_REJECTED):
            summary["pending"] += 1
    return summary


def summarize_policy(records: Iterable[AttendanceRecord], settings: PolicySettings | None = None) -> dict[str, int]:
    """Deduction totals over approved records only."""
    settings = settings or PolicySettings()
    half_days = 0
    uninformed = 0
    for record in records:
        if record.approval_status != APPROVAL_APPROVED:
            continue
        impact = evaluate_policy_impact(record, settings)
        if impact.half_day:
            half_days += 1
        if impact.uninformed_leave:
            uninformed += 1

    from_half_days = half_days // 2
    return {
        "halfDays": half_days,
        "uninformedLeaves": uninformed,
        "leaveDeductionsFromHalfDays": from_half_days,
        "remainingHalfDays": half_days % 2,
        "totalDeductionDays": from_half_days + uninformed,
    }
