from __future__ import annotations

import io

from conftest import create_recruiter

CSV = (
    "user_email,attendance_date,status,approval_status,check_in_time,check_out_time,break_minutes\n"
    "rec@example.com,2026-03-02,present,approved,19:00,04:00,30\n"
    "rec@example.com,2026-03-03,half-day,pending,,,\n"
    "nobody@example.com,2026-03-03,present,approved,,,\n"
    "rec@example.com,2026-03-02,present,approved,,,\n"
    "rec@example.com,not-a-date,present,approved,,,\n"
    "rec@example.com,2026-03-04,sick,approved,,,\n"
)


def _upload(client, headers, text: str, dry_run: bool = False):
    return client.post(
        "/api/v1/attendance/import",
        data={"file": (io.BytesIO(text.encode("utf-8")), "attendance.csv"), "dry_run": "1" if dry_run else "0"},
        headers=headers,
        content_type="multipart/form-data",
    )


def test_import_skips_bad_rows(app_client, admin_headers):
    _app, client = app_client
    rid, _ = create_recruiter(client, admin_headers)

    res = _upload(client, admin_headers, CSV)
    assert res.status_code == 200
    result = res.get_json()["data"]
    assert result["processed"] == 6
    assert result["imported"] == 2
    assert result["created"] == 2
    assert result["skipped"] == 4
    assert sorted(e["row"] for e in result["errors"]) == [4, 5, 6, 7]

    report = client.get(
        f"/api/v1/attendance?date_from=2026-03-02&date_to=2026-03-03&user_id={rid}", headers=admin_headers
    ).get_json()["data"]
    assert [r["approvalStatus"] for r in report["records"]] == ["approved", "pending"]


def test_dry_run_writes_nothing(app_client, admin_headers):
    _app, client = app_client
    rid, _ = create_recruiter(client, admin_headers)

    res = _upload(client, admin_headers, CSV, dry_run=True)
    assert res.status_code == 200
    result = res.get_json()["data"]
    assert result["dryRun"] is True
    assert result["valid"] == 2
    assert result["imported"] == 0

    report = client.get(
        f"/api/v1/attendance?date_from=2026-03-02&date_to=2026-03-03&user_id={rid}", headers=admin_headers
    ).get_json()["data"]
    assert report["records"] == []


def test_missing_columns_rejected(app_client, admin_headers):
    _app, client = app_client
    res = _upload(client, admin_headers, "email,date\nrec@example.com,2026-03-02\n")
    assert res.status_code == 400
    assert res.get_json()["error"]["details"]["missing"] == ["user_email", "attendance_date"]


def test_upload_requires_file(app_client, admin_headers):
    _app, client = app_client
    res = client.post("/api/v1/attendance/import", data={}, headers=admin_headers, content_type="multipart/form-data")
    assert res.status_code == 400


def test_non_integer_break_minutes_are_row_errors(app_client, admin_headers):
    _app, client = app_client
    create_recruiter(client, admin_headers)

    text = (
        "user_email,attendance_date,status,break_minutes\n"
        "rec@example.com,2026-03-06,present,inf\n"
        "rec@example.com,2026-03-09,present,30\n"
        "rec@example.com,2026-03-10,present,1e30\n"
        "rec@example.com,2026-03-11,present,2.7\n"
        "rec@example.com,2026-03-12,present,\"1,500\"\n"
    )
    res = _upload(client, admin_headers, text)
    assert res.status_code == 200
    result = res.get_json()["data"]
    assert result["imported"] == 1
    assert sorted(e["row"] for e in result["errors"]) == [2, 4, 5, 6]
    assert all("break_minutes" in e["message"] for e in result["errors"])
