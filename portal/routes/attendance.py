from __future__ import annotations

import logging
from io import BytesIO

from flask import Blueprint, Response, current_app, jsonify, request, send_file
from sqlalchemy import select

from portal.db import get_session
from portal.models import (
    APPROVAL_STATUSES,
    ATTENDANCE_STATUSES,
    LEAVE_CATEGORIES,
    MAX_BREAK_MINUTES,
    AttendanceEntry,
    User,
)
from portal.services.access import load_recruiter
from portal.services.attendance import apply_approval, build_report, record_payload, report_csv, upsert_entry
from portal.services.attendance_import import import_attendance_csv
from portal.services.attendance_policy import APPROVAL_APPROVED, APPROVAL_PENDING, PolicySettings
from portal.services.audit import model_snapshot, record_audit
from portal.services.pdf_export import attendance_pdf
from portal.utils.auth import ADMIN, RECRUITER, get_current_user, is_admin, require_auth, require_roles
from portal.utils.datetime import iso_utc_now, parse_clock, parse_optional_date, utc_today
from portal.utils.errors import bad_request, forbidden, not_found
from portal.utils.validators import (
    optional_text,
    parse_bool,
    parse_date_range,
    parse_int,
    parse_optional_int,
    require_json,
    validate_choice,
)

log = logging.getLogger("portal.attendance")

attendance_bp = Blueprint("attendance", __name__)


def _settings() -> PolicySettings:
    return PolicySettings.from_config(current_app.config["CFG"])


def _record_response(db, entry: AttendanceEntry) -> dict:
    user_name = db.execute(select(User.name).where(User.id == entry.user_id)).scalar_one_or_none()
    approver_name = None
    if entry.approved_by is not None:
        approver_name = db.execute(select(User.name).where(User.id == entry.approved_by)).scalar_one_or_none()
    return record_payload(entry, settings=_settings(), user_name=user_name, approved_by_name=approver_name)


def _detail_fields(body: dict, fields: dict) -> None:
    """Optional timing / leave fields shared by create and update."""
    for key in ("check_in_time", "check_out_time"):
        if key in body:
            fields[key] = parse_clock(body.get(key), field=key)
    if "break_minutes" in body:
        raw = body.get("break_minutes")
        fields["break_minutes"] = (
            0 if raw in (None, "") else parse_int(raw, field="break_minutes", minimum=0, maximum=MAX_BREAK_MINUTES)
        )
    if "leave_category" in body:
        category = str(body.get("leave_category") or "").strip().lower()
        fields["leave_category"] = validate_choice(category, LEAVE_CATEGORIES, field="leave_category") if category else ""
    if "informed_leave" in body:
        fields["informed_leave"] = parse_bool(body.get("informed_leave"), default=False)


@attendance_bp.get("")
@require_auth
def get_attendance():
    user = get_current_user()
    db = get_session()
    cfg = current_app.config["CFG"]

    today = utc_today()
    start, end = parse_date_range(
        request.args,
        default_start=today.replace(day=1),
        default_end=today,
        max_days=cfg.ATTENDANCE_MAX_RANGE_DAYS,
    )

    raw_user = str(request.args.get("user_id") or "").strip()
    if raw_user.lower() == "self":
        target_id = user["id"]
    else:
        target_id = parse_optional_int(raw_user, field="user_id", minimum=1)

    if is_admin(user):
        if target_id is not None:
            users = [load_recruiter(db, target_id)]
        else:
            users = list(
                db.execute(select(User).where(User.role == RECRUITER).order_by(User.name.asc())).scalars().all()
            )
    elif user["role"] == RECRUITER:
        if target_id is not None and target_id != user["id"]:
            raise forbidden("You can only view your own attendance")
        users = [load_recruiter(db, user["id"])]
    else:
        raise forbidden()

    report = build_report(
        db,
        users,
        start,
        end,
        settings=_settings(),
        pending_only=parse_bool(request.args.get("pending_only"), default=False),
    )

    fmt = str(request.args.get("format") or "json").strip().lower()
    filename = f"attendance_{start.isoformat()}_{end.isoformat()}"
    if fmt == "csv":
        return Response(
            report_csv(report),
            mimetype="text/csv",
            headers={"Content-Disposition": f'attachment; filename="{filename}.csv"'},
        )
    if fmt == "pdf":
        return send_file(
            BytesIO(attendance_pdf(report)),
            as_attachment=True,
            download_name=f"{filename}.pdf",
            mimetype="application/pdf",
        )
    if fmt != "json":
        raise bad_request("format must be json|csv|pdf")
    return jsonify({"success": True, "data": report})


@attendance_bp.post("")
@require_auth
def submit_attendance():
    user = get_current_user()
    body = require_json()
    db = get_session()
    admin = is_admin(user)

    requested = parse_optional_int(body.get("user_id"), field="user_id", minimum=1)
    if not admin and requested is not None and requested != user["id"]:
        raise forbidden("You can only submit attendance for yourself")
    target_id = requested if admin and requested is not None else user["id"]
    load_recruiter(db, target_id)

    day = parse_optional_date(body.get("attendance_date"), field="attendance_date") or utc_today()
    fields = {
        "reported_status": validate_choice(
            str(body.get("status") or "present").strip().lower(), ATTENDANCE_STATUSES, field="status"
        ),
        "reviewer_note": optional_text(body, "reviewer_note") if admin else "",
    }
    _detail_fields(body, fields)

    if admin:
        raw_approval = str(body.get("approval_status") or APPROVAL_APPROVED).strip().lower()
        approval = validate_choice(raw_approval, APPROVAL_STATUSES, field="approval_status")
    else:
        approval = APPROVAL_PENDING

    entry, created = upsert_entry(db, user_id=target_id, attendance_date=day, fields=fields)
    apply_approval(entry, approval, user["id"])
    db.flush()
    record_audit(
        db,
        actor_id=user["id"],
        action="CREATE" if created else "UPDATE",
        table_name="attendance_entries",
        record_id=entry.id,
        new_values=model_snapshot(entry),
    )
    db.commit()
    return jsonify({"success": True, "data": _record_response(db, entry)}), 201


@attendance_bp.put("/<int:entry_id>")
@require_roles([ADMIN])
def update_attendance(entry_id: int):
    user = get_current_user()
    body = require_json()
    db = get_session()

    fields: dict = {}
    if "status" in body:
        fields["reported_status"] = validate_choice(
            str(body.get("status") or "").strip().lower(), ATTENDANCE_STATUSES, field="status"
        )
    if "reviewer_note" in body:
        fields["reviewer_note"] = optional_text(body, "reviewer_note")
    _detail_fields(body, fields)
    approval = None
    if "approval_status" in body:
        approval = validate_choice(
            str(body.get("approval_status") or "").strip().lower(), APPROVAL_STATUSES, field="approval_status"
        )
    if not fields and approval is None:
        raise bad_request("No attendance fields provided for update")

    entry = db.get(AttendanceEntry, entry_id)
    if entry is None:
        raise not_found("Attendance record")

    before = model_snapshot(entry)
    for key, value in fields.items():
        setattr(entry, key, value)
    if approval is not None:
        apply_approval(entry, approval, user["id"])
    entry.updated_at = iso_utc_now()
    record_audit(
        db,
        actor_id=user["id"],
        action="UPDATE",
        table_name="attendance_entries",
        record_id=entry.id,
        old_values=before,
        new_values=model_snapshot(entry),
    )
    db.commit()
    return jsonify({"success": True, "data": _record_response(db, entry)})


@attendance_bp.post("/import")
@require_roles([ADMIN])
def import_attendance():
    user = get_current_user()
    upload = request.files.get("file")
    if upload is None or not upload.filename:
        raise bad_request("CSV file is required (multipart field 'file')")
    try:
        text = upload.read().decode("utf-8-sig")
    except UnicodeDecodeError as e:
        raise bad_request("CSV file must be UTF-8 encoded") from e

    dry_run = parse_bool(request.form.get("dry_run") or request.args.get("dry_run"), default=False)
    db = get_session()
    result = import_attendance_csv(db, text, actor_id=user["id"], dry_run=dry_run)
    if dry_run:
        db.rollback()
    else:
        record_audit(
            db,
            actor_id=user["id"],
            action="IMPORT",
            table_name="attendance_entries",
            new_values={k: v for k, v in result.items() if k != "errors"},
        )
        db.commit()
    log.info("attendance import by user=%s file=%s dry_run=%s", user["id"], upload.filename, dry_run)
    return jsonify({"success": True, "data": result})
