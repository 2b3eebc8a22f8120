from __future__ import annotations

from datetime import datetime, timezone
from io import BytesIO
from typing import Any

from openpyxl import Workbook
from openpyxl.styles import Alignment, Font
from openpyxl.utils import get_column_letter

from portal.utils.datetime import to_display_tz


def _auto_fit(ws) -> None:
    for col in ws.columns:
        width = max((len(str(cell.value)) for cell in col if cell.value is not None), default=0)
        ws.column_dimensions[get_column_letter(col[0].column)].width = min(max(12, width + 2), 60)


def _write_table(ws, headers: list[str], rows: list[list[Any]]) -> None:
    ws.append(headers)
    for r in rows:
        ws.append(r)

    ws.freeze_panes = "A2"
    ws.auto_filter.ref = ws.dimensions

    header_font = Font(bold=True)
    for cell in ws[1]:
        cell.font = header_font
        cell.alignment = Alignment(horizontal="center")

    _auto_fit(ws)


def build_workbook_bytes(
    *, report_type: str, from_s: str, to_s: str, timezone_display: str, data: dict[str, Any]
) -> bytes:
    wb = Workbook()
    wb.remove(wb.active)

    meta = wb.create_sheet("Meta")
    _write_table(
        meta,
        ["key", "value"],
        [
            ["type", report_type],
            ["from", from_s],
            ["to", to_s],
            ["generatedAt", to_display_tz(datetime.now(timezone.utc), timezone_display)],
        ],
    )

    if report_type == "overview":
        overview = data["overview"]
        stages = wb.create_sheet("Stages")
        _write_table(stages, ["stage", "count"], [[r["stage"], r["count"]] for r in overview["candidates"]["byStage"]])

        prod = wb.create_sheet("Productivity")
        _write_table(
            prod,
            ["recruiter", "daily quota", "applications", "interviews", "assessments", "avg apps (7d)", "avg apps (30d)"],
            [
                [
                    r["name"],
                    r["dailyQuota"],
                    r["applicationsInRange"],
                    r["interviewsInRange"],
                    r["assessmentsInRange"],
                    r["avgAppsLast7"],
                    r["avgAppsLast30"],
                ]
                for r in overview["productivity"]
            ],
        )

        trend = wb.create_sheet("Trend")
        _write_table(
            trend,
            ["date", "applications", "interviews", "assessments"],
            [[r["date"], r["applications"], r["interviews"], r["assessments"]] for r in overview["trend"]],
        )
    else:
        ws = wb.create_sheet("Performance")
        _write_table(
            ws,
            [
                "recruiter",
                "daily quota",
                "candidates",
                "applications",
                "avg apps/day",
                "interviews",
                "assessments",
                "quota %",
            ],
            [
                [
                    r["recruiterName"],
                    r["dailyQuota"],
                    r["totalCandidates"],
                    r["appsTotalPeriod"],
                    r["avgAppsPerDay"],
                    r["interviewsTotalPeriod"],
                    r["assessmentsTotalPeriod"],
                    r["quotaProgress"],
                ]
                for r in data["performance"]
            ],
        )

    with BytesIO() as bio:
        wb.save(bio)
        return bio.getvalue()
