from __future__ import annotations

from datetime import datetime, timezone
from io import BytesIO
from typing import Any, Sequence
from xml.sax.saxutils import escape

from reportlab.lib import colors
from reportlab.lib.pagesizes import A4, landscape
from reportlab.lib.styles import ParagraphStyle, getSampleStyleSheet
from reportlab.lib.units import mm
from reportlab.platypus import LongTable, Paragraph, SimpleDocTemplate, Spacer, TableStyle

MARGIN = 12 * mm
PAGE_SIZE = landscape(A4)
CONTENT_WIDTH = PAGE_SIZE[0] - 2 * MARGIN

PALETTE = {
    "navy": colors.HexColor("#0F172A"),
    "muted": colors.HexColor("#64748B"),
    "grid": colors.HexColor("#E2E8F0"),
    "stripe_even": colors.HexColor("#F8FAFC"),
    "stripe_odd": colors.HexColor("#F1F5F9"),
}

_STYLES = getSampleStyleSheet()
TITLE_STYLE = ParagraphStyle(
    "report-title", parent=_STYLES["Heading2"], fontName="Helvetica-Bold", textColor=PALETTE["navy"]
)
SUBTITLE_STYLE = ParagraphStyle(
    "report-subtitle", parent=_STYLES["BodyText"], fontSize=9, leading=11, textColor=PALETTE["muted"]
)
SECTION_STYLE = ParagraphStyle(
    "section-heading", parent=_STYLES["Heading5"], fontName="Helvetica-Bold", fontSize=11, spaceAfter=4
)
HEADER_CELL_STYLE = ParagraphStyle(
    "table-header", parent=_STYLES["BodyText"], fontName="Helvetica-Bold", fontSize=8, leading=10,
    textColor=colors.white,
)
CELL_STYLE = ParagraphStyle("table-cell", parent=_STYLES["BodyText"], fontSize=8, leading=10)


def _cell(value: Any, style: ParagraphStyle) -> Paragraph:
    text = "-" if value is None or value == "" else str(value)
    return Paragraph(escape(text), style)


def _table(headers: Sequence[str], rows: Sequence[Sequence[Any]]) -> LongTable:
    data: list[list[Any]] = [[_cell(h, HEADER_CELL_STYLE) for h in headers]]
    for row in rows:
        data.append([_cell(v, CELL_STYLE) for v in list(row)[: len(headers)]])
    if len(data) == 1:
        data.append([_cell("No data", CELL_STYLE)] + [_cell("", CELL_STYLE) for _ in headers[1:]])

    col_width = CONTENT_WIDTH / max(1, len(headers))
    table = LongTable(data, colWidths=[col_width] * len(headers), repeatRows=1, hAlign="LEFT")
    commands: list[tuple[Any, ...]] = [
        ("BACKGROUND", (0, 0), (-1, 0), PALETTE["navy"]),
        ("GRID", (0, 0), (-1, -1), 0.4, PALETTE["grid"]),
        ("VALIGN", (0, 0), (-1, -1), "MIDDLE"),
        ("TOPPADDING", (0, 0), (-1, -1), 4),
        ("BOTTOMPADDING", (0, 0), (-1, -1), 4),
    ]
    for i in range(1, len(data)):
        commands.append(("BACKGROUND", (0, i), (-1, i), PALETTE["stripe_even"] if i % 2 else PALETTE["stripe_odd"]))
    table.setStyle(TableStyle(commands))
    return table


def build_table_pdf(
    *,
    title: str,
    subtitle_lines: Sequence[str],
    sections: Sequence[tuple[str, Sequence[str], Sequence[Sequence[Any]]]],
) -> bytes:
    """Render titled tables into a landscape A4 document."""
    generated = datetime.now(timezone.utc).strftime("%Y-%m-%d %H:%M UTC")
    story: list[Any] = [Paragraph(escape(title), TITLE_STYLE)]
    for line in [*subtitle_lines, f"Generated {generated}"]:
        story.append(Paragraph(escape(line), SUBTITLE_STYLE))
    story.append(Spacer(1, 6 * mm))

    for heading, headers, rows in sections:
        if heading:
            story.append(Paragraph(escape(heading), SECTION_STYLE))
        story.append(_table(headers, rows))
        story.append(Spacer(1, 5 * mm))

    buffer = BytesIO()
    doc = SimpleDocTemplate(
        buffer,
        pagesize=PAGE_SIZE,
        leftMargin=MARGIN,
        rightMargin=MARGIN,
        topMargin=MARGIN,
        bottomMargin=MARGIN,
        title=title,
    )
    doc.build(story)
    return buffer.getvalue()


def attendance_pdf(report: dict[str, Any]) -> bytes:
    summary = report["summary"]
    policy = summary.get("policy") or {}
    rng = report["range"]
    summary_rows = [
        ["Present", summary["present"]],
        ["Auto present (weekend)", summary["autoPresent"]],
        ["Half day", summary["halfDay"]],
        ["Absent", summary["absent"]],
        ["Sandwich absent", summary["sandwichAbsent"]],
        ["Pending", summary["pending"]],
        ["Policy half days", policy.get("halfDays", 0)],
        ["Uninformed leaves", policy.get("uninformedLeaves", 0)],
        ["Total deduction days", policy.get("totalDeductionDays", 0)],
    ]
    day_rows = [
        [
            d["date"],
            d["weekday"],
            d["userName"],
            d["reportedStatus"],
            d["approvalStatus"],
            d["effectiveStatus"],
            ", ".join((d.get("policyImpact") or {}).get("halfDayReasons") or []),
        ]
        for d in report["days"]
    ]
    return build_table_pdf(
        title="Attendance Report",
        subtitle_lines=[f"{rng['dateFrom']} to {rng['dateTo']} ({rng['days']} days)"],
        sections=[
            ("Summary", ["Metric", "Value"], summary_rows),
            (
                "Daily detail",
                ["Date", "Weekday", "Recruiter", "Reported", "Approval", "Effective", "Half-day reasons"],
                day_rows,
            ),
        ],
    )


def candidates_pdf(candidates: Sequence[dict[str, Any]], *, filters: Sequence[str] = ()) -> bytes:
    rows = [
        [
            c["name"],
            c.get("email"),
            c.get("visaStatus"),
            c["currentStage"],
            c.get("recruiterName"),
            c.get("marketingStartDate"),
            (c.get("applications") or {}).get("total", 0),
        ]
        for c in candidates
    ]
    return build_table_pdf(
        title="Candidates Report",
        subtitle_lines=[f"{len(rows)} candidates", *filters],
        sections=[("", ["Name", "Email", "Visa", "Stage", "Recruiter", "Marketing since", "Applications"], rows)],
    )


def performance_pdf(items: Sequence[dict[str, Any]], *, date_from: str, date_to: str) -> bytes:
    rows = [
        [
            r["recruiterName"],
            r["dailyQuota"],
            r["totalCandidates"],
            r["appsTotalPeriod"],
            r["avgAppsPerDay"],
            r["interviewsTotalPeriod"],
            r["assessmentsTotalPeriod"],
            f"{r['quotaProgress']}%",
        ]
        for r in items
    ]
    headers = ["Recruiter", "Quota", "Candidates", "Applications", "Avg/day", "Interviews", "Assessments", "Quota %"]
    return build_table_pdf(
        title="Recruiter Performance",
        subtitle_lines=[f"{date_from} to {date_to}"],
        sections=[("", headers, rows)],
    )


def applications_pdf(applications: Sequence[dict[str, Any]], *, date_from: str | None, date_to: str | None) -> bytes:
    rows = [
        [
            a["applicationDate"],
            a.get("candidateName"),
            a.get("recruiterName"),
            a["companyName"],
            a["jobTitle"],
            a["status"],
            a["applicationsCount"],
            "yes" if a["isApproved"] else "no",
        ]
        for a in applications
    ]
    headers = ["Date", "Candidate", "Recruiter", "Company", "Job title", "Status", "Count", "Approved"]
    span = f"{date_from or 'start'} to {date_to or 'today'}"
    return build_table_pdf(title="Applications Report", subtitle_lines=[span], sections=[("", headers, rows)])


def interviews_pdf(interviews: Sequence[dict[str, Any]], *, date_from: str | None, date_to: str | None) -> bytes:
    rows = [
        [
            i["scheduledDate"],
            i.get("candidateName"),
            i.get("recruiterName"),
            i["companyName"],
            i["interviewType"],
            i["roundNumber"],
            i["status"],
            "yes" if i["isApproved"] else "no",
        ]
        for i in interviews
    ]
    headers = ["Scheduled", "Candidate", "Recruiter", "Company", "Type", "Round", "Status", "Approved"]
    span = f"{date_from} to {date_to}" if date_from and date_to else "All time"
    return build_table_pdf(
        title="Interviews Report", subtitle_lines=[span, f"{len(rows)} interviews"], sections=[("", headers, rows)]
    )
