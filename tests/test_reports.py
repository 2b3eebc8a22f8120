from __future__ import annotations

from datetime import datetime, timedelta, timezone
from io import BytesIO

from openpyxl import load_workbook

from conftest import create_recruiter


def _seed_pipeline(client, admin_headers):
    rid, rec_headers = create_recruiter(client, admin_headers, daily_quota=4)
    cand = client.post(
        "/api/v1/candidates",
        json={"name": "Kiran", "marketing_start_date": "2026-02-01", "current_stage": "marketing"},
        headers=rec_headers,
    ).get_json()["data"]
    client.post(
        "/api/v1/applications",
        json={"candidate_id": cand["id"], "company_name": "Acme", "job_title": "SRE", "applications_count": 2},
        headers=rec_headers,
    )
    return rid, rec_headers, cand


def test_overview_counts_and_cache_invalidation(app_client, admin_headers):
    _app, client = app_client
    rid, rec_headers, _cand = _seed_pipeline(client, admin_headers)

    data = client.get("/api/v1/reports/overview", headers=admin_headers).get_json()["data"]
    assert data["candidates"]["total"] == 1
    assert data["candidates"]["marketing"] == 1
    assert data["applications"] == {"total": 2, "approved": 0, "pending": 2}
    row = next(p for p in data["productivity"] if p["recruiterId"] == rid)
    assert row["todayApplications"] == 2
    assert row["quotaProgressToday"] == 50.0

    client.post("/api/v1/candidates", json={"name": "Second"}, headers=rec_headers)
    data = client.get("/api/v1/reports/overview", headers=admin_headers).get_json()["data"]
    assert data["candidates"]["total"] == 2


def test_performance_is_scoped_for_recruiters(app_client, admin_headers):
    _app, client = app_client
    rid, rec_headers, _cand = _seed_pipeline(client, admin_headers)
    create_recruiter(client, admin_headers, email="other@example.com")

    items = client.get("/api/v1/reports/performance", headers=rec_headers).get_json()["data"]["items"]
    assert [i["recruiterId"] for i in items] == [rid]
    assert items[0]["appsTotalPeriod"] == 2

    items = client.get("/api/v1/reports/performance", headers=admin_headers).get_json()["data"]["items"]
    assert len(items) == 2
    assert items[0]["recruiterId"] == rid


def test_overview_is_admin_only(app_client, admin_headers):
    _app, client = app_client
    _rid, rec_headers = create_recruiter(client, admin_headers)
    assert client.get("/api/v1/reports/overview", headers=rec_headers).status_code == 403


def test_leaderboard_ranks_recruiters(app_client, admin_headers):
    _app, client = app_client
    rid, rec_headers, _cand = _seed_pipeline(client, admin_headers)
    create_recruiter(client, admin_headers, email="other@example.com")

    board = client.get("/api/v1/reports/leaderboard", headers=rec_headers).get_json()["data"]["items"]
    assert board[0]["recruiterId"] == rid
    assert board[0]["rank"] == 1
    assert board[0]["todayApplications"] == 2
    assert board[1]["rank"] == 2


def test_excel_export(app_client, admin_headers):
    _app, client = app_client
    _seed_pipeline(client, admin_headers)

    res = client.get("/api/v1/reports/export.xlsx?type=overview", headers=admin_headers)
    assert res.status_code == 200
    assert "portal_overview_" in res.headers["Content-Disposition"]
    wb = load_workbook(BytesIO(res.data))
    assert "Productivity" in wb.sheetnames

    res = client.get("/api/v1/reports/export.xlsx?type=performance", headers=admin_headers)
    assert res.status_code == 200
    assert "Performance" in load_workbook(BytesIO(res.data)).sheetnames

    assert client.get("/api/v1/reports/export.xlsx?type=nope", headers=admin_headers).status_code == 400


def test_pdf_reports(app_client, admin_headers):
    _app, client = app_client
    _rid, rec_headers, _cand = _seed_pipeline(client, admin_headers)

    for path, headers, body in (
        ("/api/v1/pdf/candidates", rec_headers, {"stage": "marketing"}),
        ("/api/v1/pdf/applications", rec_headers, {}),
        ("/api/v1/pdf/performance", admin_headers, {"period": "weekly"}),
        ("/api/v1/pdf/attendance", admin_headers, {}),
    ):
        res = client.post(path, json=body, headers=headers)
        assert res.status_code == 200, path
        assert res.mimetype == "application/pdf"
        assert res.data.startswith(b"%PDF")

    res = client.post("/api/v1/pdf/performance", json={"period": "yearly"}, headers=admin_headers)
    assert res.status_code == 400
    assert client.post("/api/v1/pdf/attendance", json={}, headers=rec_headers).status_code == 403


def _interview(client, headers, candidate_id, *, day, interview_type="phone", status="scheduled"):
    res = client.post(
        "/api/v1/interviews",
        json={
            "candidate_id": candidate_id,
            "company_name": "Globex",
            "interview_type": interview_type,
            "status": status,
            "scheduled_date": f"{day.isoformat()}T09:00:00Z",
        },
        headers=headers,
    )
    assert res.status_code == 201, res.get_json()
    return res.get_json()["data"]


def test_activity_feed(app_client, admin_headers):
    _app, client = app_client
    rid, rec_headers, cand = _seed_pipeline(client, admin_headers)
    today = datetime.now(timezone.utc).date()
    _interview(client, rec_headers, cand["id"], day=today)
    client.post(
        f"/api/v1/candidates/{cand['id']}/notes",
        json={"content": "Prefers remote roles", "follow_up_date": f"{today.isoformat()}T23:00:00Z"},
        headers=rec_headers,
    )
    app_id = client.get("/api/v1/applications", headers=admin_headers).get_json()["data"][0]["id"]
    client.post(f"/api/v1/applications/{app_id}/approval", json={"approved": True}, headers=admin_headers)

    res = client.get("/api/v1/reports/activity", headers=admin_headers)
    assert res.status_code == 200
    data = res.get_json()["data"]
    assert data["range"] == {"dateFrom": today.isoformat(), "dateTo": today.isoformat()}

    assert [n["content"] for n in data["recentNotes"]] == ["Prefers remote roles"]
    assert data["recentNotes"][0]["author"]["role"] == "Recruiter"
    assert len(data["recruiterNotes"]) == 1
    row = next(r for r in data["notesByRecruiter"] if r["id"] == rid)
    assert (row["totalNotes"], row["notesLast7Days"]) == (1, 1)

    assert [r["owner"]["id"] for r in data["upcomingReminders"]] == [rid]
    assert data["upcomingReminders"][0]["candidate"]["name"] == "Kiran"

    assert data["pendingApprovals"]["applications"] == []
    assert [i["companyName"] for i in data["pendingApprovals"]["interviews"]] == ["Globex"]

    assert len(data["recentApprovals"]) == 1
    decision = data["recentApprovals"][0]
    assert (decision["entity"], decision["decision"], decision["recordId"]) == ("Application", "approved", app_id)
    assert decision["recruiter"]["id"] == rid
    assert decision["candidate"] == {"id": cand["id"], "name": "Kiran"}

    tomorrow, yesterday = today + timedelta(days=1), today - timedelta(days=1)
    res = client.get(
        f"/api/v1/reports/activity?date_from={tomorrow.isoformat()}&date_to={yesterday.isoformat()}",
        headers=admin_headers,
    )
    assert res.get_json()["data"]["range"] == {"dateFrom": yesterday.isoformat(), "dateTo": tomorrow.isoformat()}

    later = f"date_from={tomorrow.isoformat()}&date_to={tomorrow.isoformat()}"
    res = client.get(f"/api/v1/reports/activity?{later}", headers=admin_headers)
    assert res.get_json()["data"]["recentNotes"] == []
    assert client.get("/api/v1/reports/activity", headers=rec_headers).status_code == 403


def test_interviews_pdf_filters_and_scope(app_client, admin_headers, monkeypatch):
    _app, client = app_client
    rid, rec_headers, cand = _seed_pipeline(client, admin_headers)
    other_id, other_headers = create_recruiter(client, admin_headers, email="other@example.com")
    other_cand = client.post("/api/v1/candidates", json={"name": "Meera"}, headers=other_headers).get_json()["data"]

    today = datetime.now(timezone.utc).date()
    _interview(client, rec_headers, cand["id"], day=today, interview_type="video")
    _interview(client, rec_headers, cand["id"], day=today - timedelta(days=10), status="completed")
    _interview(client, other_headers, other_cand["id"], day=today, interview_type="video")

    res = client.post("/api/v1/pdf/interviews", json={}, headers=rec_headers)
    assert res.status_code == 200
    assert res.mimetype == "application/pdf"
    assert res.data.startswith(b"%PDF")
    assert "interviews-report-" in res.headers["Content-Disposition"]

    captured = []

    def fake_pdf(items, *, date_from, date_to):
        captured.append((items, date_from, date_to))
        return b"%PDF-1.4"

    monkeypatch.setattr("portal.routes.pdf.interviews_pdf", fake_pdf)

    client.post("/api/v1/pdf/interviews", json={"recruiterId": other_id}, headers=rec_headers)
    items, _from, _to = captured[-1]
    assert {i["recruiterId"] for i in items} == {rid}
    assert len(items) == 2

    client.post("/api/v1/pdf/interviews", json={"type": "video"}, headers=admin_headers)
    assert sorted(i["candidateName"] for i in captured[-1][0]) == ["Kiran", "Meera"]

    client.post("/api/v1/pdf/interviews", json={"status": "completed"}, headers=admin_headers)
    assert [i["status"] for i in captured[-1][0]] == ["completed"]

    body = {"dateFrom": today.isoformat(), "dateTo": today.isoformat(), "recruiterId": other_id}
    client.post("/api/v1/pdf/interviews", json=body, headers=admin_headers)
    items, date_from, date_to = captured[-1]
    assert [i["recruiterName"] for i in items] == ["Riya Recruiter"]
    assert [i["recruiterId"] for i in items] == [other_id]
    assert (date_from, date_to) == (today.isoformat(), today.isoformat())

    res = client.post("/api/v1/pdf/interviews", json={"type": "carrier-pigeon"}, headers=admin_headers)
    assert res.status_code == 400


def test_analytics_batch_accepted(app_client, admin_headers):
    _app, client = app_client
    res = client.post(
        "/api/v1/analytics",
        json={"events": [{"event": "page_view", "path": "/candidates"}, {"event": "export_clicked"}]},
        headers=admin_headers,
    )
    assert res.status_code == 204
    assert client.post("/api/v1/analytics", json={"events": []}).status_code == 401
