from __future__ import annotations

from conftest import create_recruiter

RANGE = "date_from=2026-03-06&date_to=2026-03-09"


def _submit(client, headers, **payload):
    body = {"attendance_date": "2026-03-06", "status": "present"}
    body.update(payload)
    return client.post("/api/v1/attendance", json=body, headers=headers)


def test_recruiter_submission_is_pending_until_approved(app_client, admin_headers):
    _app, client = app_client
    rid, rec_headers = create_recruiter(client, admin_headers)

    res = _submit(client, rec_headers, check_in_time="20:30", check_out_time="04:00", reviewer_note="ignored")
    assert res.status_code == 201
    record = res.get_json()["data"]
    assert record["approvalStatus"] == "pending"
    assert record["effectiveStatus"] == "pending"
    assert record["reviewerNote"] is None
    assert record["policyImpact"]["halfDayReasons"] == ["late-login"]

    res = client.put(
        f"/api/v1/attendance/{record['id']}",
        json={"approval_status": "approved", "reviewer_note": "ok"},
        headers=admin_headers,
    )
    assert res.status_code == 200
    updated = res.get_json()["data"]
    assert updated["approvalStatus"] == "approved"
    assert updated["approvedByName"] == "Administrator"
    assert updated["effectiveStatus"] == "present"

    res = client.get(f"/api/v1/attendance?{RANGE}", headers=rec_headers)
    assert res.status_code == 200
    report = res.get_json()["data"]
    assert [u["id"] for u in report["users"]] == [rid]
    assert len(report["days"]) == 4
    assert report["summary"]["present"] == 3
    assert report["summary"]["pending"] == 1
    assert report["summary"]["policy"]["halfDays"] == 1


def test_resubmission_overwrites_same_day(app_client, admin_headers):
    _app, client = app_client
    _rid, rec_headers = create_recruiter(client, admin_headers)

    first = _submit(client, rec_headers).get_json()["data"]
    second = _submit(client, rec_headers, status="half-day").get_json()["data"]
    assert first["id"] == second["id"]
    assert second["reportedStatus"] == "half-day"


def test_admin_submission_defaults_to_approved(app_client, admin_headers):
    _app, client = app_client
    rid, _ = create_recruiter(client, admin_headers)

    res = _submit(client, admin_headers, user_id=rid, status="absent", informed_leave=True)
    assert res.status_code == 201
    data = res.get_json()["data"]
    assert data["userId"] == rid
    assert data["approvalStatus"] == "approved"
    assert data["policyImpact"]["uninformedLeave"] is False


def test_recruiter_cannot_touch_other_users(app_client, admin_headers):
    _app, client = app_client
    other_id, _ = create_recruiter(client, admin_headers, email="other@example.com")
    _rid, rec_headers = create_recruiter(client, admin_headers)

    assert _submit(client, rec_headers, user_id=other_id).status_code == 403
    assert client.get(f"/api/v1/attendance?user_id={other_id}", headers=rec_headers).status_code == 403


def test_viewer_has_no_attendance_access(app_client, admin_headers):
    _app, client = app_client
    _vid, viewer_headers = create_recruiter(client, admin_headers, email="viewer@example.com", role="Viewer")
    assert client.get("/api/v1/attendance", headers=viewer_headers).status_code == 403


def test_sandwich_weekend_in_report(app_client, admin_headers):
    _app, client = app_client
    rid, _ = create_recruiter(client, admin_headers)
    _submit(client, admin_headers, user_id=rid, status="absent")
    _submit(client, admin_headers, user_id=rid, status="absent", attendance_date="2026-03-09")

    report = client.get(f"/api/v1/attendance?{RANGE}&user_id={rid}", headers=admin_headers).get_json()["data"]
    weekend = [d for d in report["days"] if d["isWeekend"]]
    assert all(d["sandwichApplied"] for d in weekend)
    assert report["summary"]["sandwichAbsent"] == 2
    assert report["summary"]["policy"]["uninformedLeaves"] == 2
    assert report["summary"]["policy"]["totalDeductionDays"] == 2


def test_range_limit_and_bad_format(app_client, admin_headers):
    _app, client = app_client
    res = client.get("/api/v1/attendance?date_from=2025-01-01&date_to=2026-03-01", headers=admin_headers)
    assert res.status_code == 400

    res = client.get(f"/api/v1/attendance?{RANGE}&format=xml", headers=admin_headers)
    assert res.status_code == 400


def test_csv_and_pdf_exports(app_client, admin_headers):
    _app, client = app_client
    rid, _ = create_recruiter(client, admin_headers)
    _submit(client, admin_headers, user_id=rid)

    res = client.get(f"/api/v1/attendance?{RANGE}&format=csv", headers=admin_headers)
    assert res.status_code == 200
    assert res.mimetype == "text/csv"
    lines = res.get_data(as_text=True).strip().splitlines()
    assert lines[0].startswith("date,weekday,user_id")
    assert len(lines) == 5

    res = client.get(f"/api/v1/attendance?{RANGE}&format=pdf", headers=admin_headers)
    assert res.status_code == 200
    assert res.mimetype == "application/pdf"
    assert res.data.startswith(b"%PDF")


def test_update_requires_fields_and_existing_record(app_client, admin_headers):
    _app, client = app_client
    assert client.put("/api/v1/attendance/999", json={"status": "present"}, headers=admin_headers).status_code == 404

    rid, _ = create_recruiter(client, admin_headers)
    record = _submit(client, admin_headers, user_id=rid).get_json()["data"]
    assert client.put(f"/api/v1/attendance/{record['id']}", json={}, headers=admin_headers).status_code == 400


def test_out_of_range_numbers_are_bad_requests(app_client, admin_headers):
    _app, client = app_client
    _rid, rec_headers = create_recruiter(client, admin_headers)

    for minutes in (10**20, 24 * 60 + 1):
        res = _submit(client, rec_headers, break_minutes=minutes)
        assert res.status_code == 400
        assert res.get_json()["error"]["code"] == "BAD_REQUEST"
    assert _submit(client, rec_headers, break_minutes=24 * 60).status_code == 201

    res = client.get(f"/api/v1/attendance?{RANGE}&user_id=99999999999999999999999", headers=admin_headers)
    assert res.status_code == 400
