from __future__ import annotations

import csv
import io
import logging
from typing import Any

from sqlalchemy import select

from portal.models import APPROVAL_STATUSES, ATTENDANCE_STATUSES, LEAVE_CATEGORIES, MAX_BREAK_MINUTES, User
from portal.services.attendance import apply_approval, upsert_entry
from portal.utils.datetime import parse_clock, parse_iso_date
from portal.utils.errors import ApiError
from portal.utils.validators import parse_bool

log = logging.getLogger("portal")

IMPORT_COLUMNS = (
    "user_email",
    "attendance_date",
    "status",
    "approval_status",
    "check_in_time",
    "check_out_time",
    "break_minutes",
    "leave_category",
    "informed_leave",
    "reviewer_note",
)
REQUIRED_COLUMNS = ("user_email", "attendance_date")
MAX_IMPORT_ROWS = 5000


def _cell_int(value: Any, *, field: str, maximum: int) -> int | None:
    """Whole numbers only (`30`, `1,000`); `2.5`, `inf` and out-of-range values are row errors."""
    s = str(value or "").strip().replace(",", "")
    if not s:
        return None
    try:
        n = int(s)
    except ValueError as e:
        raise ValueError(f"{field} must be a whole number") from e
    if not 0 <= n <= maximum:
        raise ValueError(f"{field} must be between 0 and {maximum}")
    return n


def read_rows(text: str) -> list[dict[str, str]]:
    reader = csv.DictReader(io.StringIO(text.lstrip("\ufeff")))
    headers = [str(h or "").strip().lower() for h in (reader.fieldnames or [])]
    missing = [c for c in REQUIRED_COLUMNS if c not in headers]
    if missing:
        raise ApiError("BAD_REQUEST", "CSV is missing required columns", status=400, details={"missing": missing})

    rows = []
    for raw in reader:
        rows.append({str(k or "").strip().lower(): str(v or "").strip() for k, v in raw.items() if k is not None})
    if len(rows) > MAX_IMPORT_ROWS:
        raise ApiError("BAD_REQUEST", f"CSV has more than {MAX_IMPORT_ROWS} rows", status=400)
    return rows


def _row_fields(row: dict[str, str]) -> dict[str, Any]:
    status = (row.get("status") or "present").lower()
    if status not in ATTENDANCE_STATUSES:
        raise ValueError(f"status must be one of: {', '.join(ATTENDANCE_STATUSES)}")

    approval = (row.get("approval_status") or "approved").lower()
    if approval not in APPROVAL_STATUSES:
        raise ValueError(f"approval_status must be one of: {', '.join(APPROVAL_STATUSES)}")

    leave_category = (row.get("leave_category") or "").lower()
    if leave_category and leave_category not in LEAVE_CATEGORIES:
        raise ValueError(f"leave_category must be one of: {', '.join(LEAVE_CATEGORIES)}")

    break_minutes = _cell_int(row.get("break_minutes"), field="break_minutes", maximum=MAX_BREAK_MINUTES)

    try:
        check_in = parse_clock(row.get("check_in_time"), field="check_in_time")
        check_out = parse_clock(row.get("check_out_time"), field="check_out_time")
    except ApiError as e:
        raise ValueError(e.message) from e

    return {
        "reported_status": status,
        "approval_status": approval,
        "check_in_time": check_in,
        "check_out_time": check_out,
        "break_minutes": break_minutes or 0,
        "leave_category": leave_category,
        "informed_leave": parse_bool(row.get("informed_leave"), default=False),
        "reviewer_note": row.get("reviewer_note") or "",
    }


def import_attendance_csv(db, text: str, *, actor_id: int | None, dry_run: bool = False) -> dict[str, Any]:
    """
    Validate every row first, then upsert the valid ones. Rows with errors are
    reported and skipped; a dry run validates without writing.
    """

    rows = read_rows(text)
    recruiters = {
        u.email.lower(): u
        for u in db.execute(select(User).where(User.role == "Recruiter")).scalars().all()
    }

    errors: list[dict[str, Any]] = []
    valid: list[tuple[int, User, Any, dict[str, Any]]] = []
    seen: set[tuple[int, str]] = set()

    # Row 1 is the header line.
    for row_number, row in enumerate(rows, start=2):
        email = (row.get("user_email") or "").lower()
        user = recruiters.get(email)
        if user is None:
            errors.append({"row": row_number, "message": f"Unknown recruiter email: {email or '(blank)'}"})
            continue
        try:
            day = parse_iso_date(row.get("attendance_date"), field="attendance_date")
        except ApiError as e:
            errors.append({"row": row_number, "message": e.message})
            continue
        key = (user.id, day.isoformat())
        if key in seen:
            errors.append({"row": row_number, "message": "Duplicate user and date in file"})
            continue
        try:
            fields = _row_fields(row)
        except ValueError as e:
            errors.append({"row": row_number, "message": str(e)})
            continue
        seen.add(key)
        valid.append((row_number, user, day, fields))

    imported = created = updated = 0
    if not dry_run:
        for _, user, day, fields in valid:
            approval = fields.pop("approval_status")
            entry, was_created = upsert_entry(db, user_id=user.id, attendance_date=day, fields=fields)
            apply_approval(entry, approval, actor_id)
            imported += 1
            if was_created:
                created += 1
            else:
                updated += 1
        db.flush()

    log.info(
        "attendance import rows=%s valid=%s imported=%s errors=%s dry_run=%s",
        len(rows),
        len(valid),
        imported,
        len(errors),
        dry_run,
    )
    return {
        "processed": len(rows),
        "valid": len(valid),
        "imported": imported,
        "created": created,
        "updated": updated,
        "skipped": len(rows) - len(valid),
        "errors": errors,
        "dryRun": dry_run,
    }
