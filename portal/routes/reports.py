from __future__ import annotations

from datetime import timedelta
from io import BytesIO

from flask import Blueprint, current_app, jsonify, request, send_file

from portal.cache import cached_report
from portal.db import get_session
from portal.reports.excel import build_workbook_bytes
from portal.reports.queries import (
    activity_report,
    application_activity_report,
    leaderboard,
    overview_report,
    performance_report,
)
from portal.services.access import recruiter_scope
from portal.utils.auth import ADMIN, RECRUITER, get_current_user, require_auth, require_roles
from portal.utils.datetime import utc_today
from portal.utils.errors import ApiError
from portal.utils.validators import parse_date_range, parse_optional_int

reports_bp = Blueprint("reports", __name__)


def _range(days_back: int):
    today = utc_today()
    return parse_date_range(request.args, default_start=today - timedelta(days=days_back), default_end=today)


@reports_bp.get("/performance")
@require_roles([ADMIN, RECRUITER])
def performance():
    user = get_current_user()
    start, end = _range(6)
    recruiter_id = recruiter_scope(
        user, parse_optional_int(request.args.get("recruiter_id"), field="recruiter_id", minimum=1)
    )

    items = cached_report(
        "performance",
        {"from": start, "to": end, "recruiter_id": recruiter_id},
        lambda: performance_report(get_session(), start, end, recruiter_id=recruiter_id),
    )
    return jsonify(
        {"success": True, "data": {"from": start.isoformat(), "to": end.isoformat(), "items": items}}
    )


@reports_bp.get("/overview")
@require_roles([ADMIN])
def overview():
    start, end = _range(29)
    today = utc_today()
    data = cached_report(
        "overview",
        {"from": start, "to": end, "today": today},
        lambda: overview_report(get_session(), start, end, today=today),
    )
    return jsonify({"success": True, "data": data})


@reports_bp.get("/leaderboard")
@require_auth
def leaderboard_view():
    today = utc_today()
    board = cached_report("leaderboard", {"today": today}, lambda: leaderboard(get_session(), today=today))
    return jsonify({"success": True, "data": {"date": today.isoformat(), "items": board}})


@reports_bp.get("/application-activity")
@require_roles([ADMIN])
def application_activity():
    start, end = _range(29)
    recruiter_id = parse_optional_int(request.args.get("recruiter_id"), field="recruiter_id", minimum=1)
    candidate_id = parse_optional_int(request.args.get("candidate_id"), field="candidate_id", minimum=1)
    data = application_activity_report(
        get_session(), start, end, recruiter_id=recruiter_id, candidate_id=candidate_id
    )
    return jsonify({"success": True, "data": data})


@reports_bp.get("/activity")
@require_roles([ADMIN])
def activity():
    start, end = _range(0)
    data = activity_report(get_session(), start, end, today=utc_today())
    return jsonify({"success": True, "data": data})


@reports_bp.get("/export.xlsx")
@require_roles([ADMIN])
def export_xlsx():
    report_type = str(request.args.get("type") or "").strip().lower() or "overview"
    if report_type not in {"overview", "performance"}:
        raise ApiError("BAD_REQUEST", "type must be overview|performance", status=400)

    db = get_session()
    if report_type == "overview":
        start, end = _range(29)
        payload = {"overview": overview_report(db, start, end, today=utc_today())}
    else:
        start, end = _range(6)
        recruiter_id = parse_optional_int(request.args.get("recruiter_id"), field="recruiter_id", minimum=1)
        payload = {"performance": performance_report(db, start, end, recruiter_id=recruiter_id)}

    from_s, to_s = start.isoformat(), end.isoformat()
    xlsx_bytes = build_workbook_bytes(
        report_type=report_type,
        from_s=from_s,
        to_s=to_s,
        timezone_display=current_app.config["CFG"].TIMEZONE_DISPLAY,
        data=payload,
    )

    filename = f"portal_{report_type}_{from_s}_{to_s}.xlsx"
    return send_file(
        BytesIO(xlsx_bytes),
        as_attachment=True,
        download_name=filename,
        mimetype="application/vnd.openxmlformats-officedocument.spreadsheetml.sheet",
    )
