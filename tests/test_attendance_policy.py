from __future__ import annotations

from datetime import date, time

from portal.services.attendance_policy import (
    AttendanceRecord,
    PolicySettings,
    REASON_BREAK_OVERAGE,
    REASON_EARLY_LOGOUT,
    REASON_LATE_LOGIN,
    REASON_REPORTED_HALF_DAY,
    apply_sandwich_rule,
    build_day_grid,
    effective_status,
    evaluate_policy_impact,
    summarize_days,
    summarize_policy,
)

# 2026-03-06 is a Friday.
FRIDAY = date(2026, 3, 6)
SATURDAY = date(2026, 3, 7)
SUNDAY = date(2026, 3, 8)
MONDAY = date(2026, 3, 9)


def _record(day: date, status: str = "present", approval: str = "approved", **kw) -> AttendanceRecord:
    return AttendanceRecord(
        id=kw.pop("id", day.toordinal()),
        user_id=kw.pop("user_id", 1),
        attendance_date=day,
        reported_status=status,
        approval_status=approval,
        **kw,
    )


def test_effective_status_matrix():
    assert effective_status("present", "approved") == "present"
    assert effective_status("half-day", "approved") == "half-day"
    assert effective_status("absent", "approved") == "absent"
    assert effective_status("leave", "approved") == "absent"
    assert effective_status("present", "pending") == "pending"
    assert effective_status("present", "rejected") == "rejected"
    assert effective_status(None, None) == "pending"


def test_on_time_shift_has_no_impact():
    rec = _record(FRIDAY, check_in_time=time(19, 5), check_out_time=time(4, 0), break_minutes=30)
    impact = evaluate_policy_impact(rec)
    assert impact.late_login_minutes == 5
    assert impact.early_logout_minutes == 0
    assert impact.break_over_minutes == 0
    assert impact.working_minutes == 9 * 60 - 5 - 30
    assert impact.half_day is False


def test_late_login_past_cutoff_is_half_day():
    rec = _record(FRIDAY, check_in_time=time(20, 30), check_out_time=time(4, 0))
    impact = evaluate_policy_impact(rec)
    assert impact.late_login_minutes == 90
    assert impact.half_day_reasons == [REASON_LATE_LOGIN]


def test_early_check_in_counts_as_on_time():
    rec = _record(FRIDAY, check_in_time=time(18, 45))
    impact = evaluate_policy_impact(rec)
    assert impact.late_login_minutes == 0
    assert impact.half_day is False


def test_early_logout_beyond_threshold():
    rec = _record(FRIDAY, check_in_time=time(19, 0), check_out_time=time(1, 30))
    impact = evaluate_policy_impact(rec)
    assert impact.early_logout_minutes == 150
    assert REASON_EARLY_LOGOUT in impact.half_day_reasons

    within = evaluate_policy_impact(_record(FRIDAY, check_in_time=time(19, 0), check_out_time=time(2, 30)))
    assert within.early_logout_minutes == 90
    assert within.half_day is False


def test_break_overage_and_reported_half_day_reasons():
    rec = _record(FRIDAY, status="half-day", break_minutes=60)
    impact = evaluate_policy_impact(rec)
    assert impact.break_over_minutes == 15
    assert impact.half_day_reasons == [REASON_BREAK_OVERAGE, REASON_REPORTED_HALF_DAY]


def test_same_check_in_and_out_gives_zero_working_minutes():
    rec = _record(FRIDAY, check_in_time=time(19, 0), check_out_time=time(19, 0))
    assert evaluate_policy_impact(rec).working_minutes == 0


def test_absence_informed_flag():
    assert evaluate_policy_impact(_record(FRIDAY, status="absent")).uninformed_leave is True
    assert evaluate_policy_impact(_record(FRIDAY, status="leave", informed_leave=True)).uninformed_leave is False


def test_custom_day_shift_settings():
    settings = PolicySettings(
        shift_start=time(9, 0), shift_end=time(18, 0), late_login_cutoff=time(9, 30), early_logout_minutes=60
    )
    impact = evaluate_policy_impact(_record(FRIDAY, check_in_time=time(9, 45), check_out_time=time(16, 30)), settings)
    assert impact.late_login_minutes == 45
    assert impact.early_logout_minutes == 90
    assert impact.half_day_reasons == [REASON_LATE_LOGIN, REASON_EARLY_LOGOUT]


def test_day_grid_fills_weekends_and_unmarked_days():
    days = build_day_grid(1, "Riya", FRIDAY, MONDAY, [_record(FRIDAY)])
    assert [d["date"] for d in days] == ["2026-03-06", "2026-03-07", "2026-03-08", "2026-03-09"]
    assert days[0]["source"] == "record"
    assert days[1]["source"] == "auto-weekend"
    assert days[1]["effectiveStatus"] == "present"
    assert days[3]["effectiveStatus"] == "unmarked"

    summary = summarize_days(days)
    assert summary["present"] == 3
    assert summary["autoPresent"] == 2
    assert summary["pending"] == 1


def test_sandwich_leave_converts_weekend():
    records = [_record(FRIDAY, status="absent"), _record(MONDAY, status="leave")]
    days = build_day_grid(1, "Riya", FRIDAY, MONDAY, records)
    weekend = [d for d in days if d["isWeekend"]]
    assert all(d["effectiveStatus"] == "absent" and d["sandwichApplied"] for d in weekend)
    assert all(d["approvalStatus"] == "sandwich" for d in weekend)

    summary = summarize_days(days)
    assert summary["absent"] == 4
    assert summary["sandwichAbsent"] == 2


def test_sandwich_needs_both_sides_in_range():
    days = build_day_grid(1, "Riya", FRIDAY, SUNDAY, [_record(FRIDAY, status="absent")])
    assert apply_sandwich_rule(days) == 0
    assert days[1]["effectiveStatus"] == "present"


def test_sandwich_keeps_recorded_weekend_days():
    records = [
        _record(FRIDAY, status="absent"),
        _record(SATURDAY, status="present"),
        _record(MONDAY, status="absent"),
    ]
    days = build_day_grid(1, "Riya", FRIDAY, MONDAY, records)
    by_date = {d["date"]: d for d in days}
    assert by_date["2026-03-07"]["effectiveStatus"] == "present"
    assert by_date["2026-03-08"]["sandwichApplied"] is True


def test_pending_monday_blocks_sandwich():
    records = [_record(FRIDAY, status="absent"), _record(MONDAY, status="absent", approval="pending")]
    days = build_day_grid(1, "Riya", FRIDAY, MONDAY, records)
    assert not any(d["sandwichApplied"] for d in days)


def test_policy_summary_counts_approved_records_only():
    late = {"check_in_time": time(21, 0)}
    records = [
        _record(date(2026, 3, 2), **late),
        _record(date(2026, 3, 3), **late),
        _record(date(2026, 3, 4), **late),
        _record(date(2026, 3, 5), approval="pending", **late),
        _record(FRIDAY, status="absent"),
        _record(MONDAY, status="leave", informed_leave=True),
    ]
    summary = summarize_policy(records)
    assert summary == {
        "halfDays": 3,
        "uninformedLeaves": 1,
        "leaveDeductionsFromHalfDays": 1,
        "remainingHalfDays": 1,
        "totalDeductionDays": 2,
    }
