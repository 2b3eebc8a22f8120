from __future__ import annotations

from datetime import timedelta

from conftest import create_recruiter

from portal.utils.datetime import utc_today


def _run(client, headers, check: str = "all"):
    res = client.post("/api/v1/alerts/automation/run", json={"check": check}, headers=headers)
    assert res.status_code == 200, res.get_json()
    return res.get_json()["data"]["created"]


def test_quota_alert_is_raised_once_per_day(app_client, admin_headers):
    _app, client = app_client
    _rid, rec_headers = create_recruiter(client, admin_headers, daily_quota=5)

    assert _run(client, admin_headers, "daily_quotas") == {"daily_quotas": 1}
    assert _run(client, admin_headers, "daily_quotas") == {"daily_quotas": 0}

    alerts = client.get("/api/v1/alerts", headers=rec_headers).get_json()["data"]
    assert len(alerts) == 1
    assert alerts[0]["alertType"] == "quota_breach"
    assert "Target: 5" in alerts[0]["message"]


def test_quota_met_raises_nothing(app_client, admin_headers):
    _app, client = app_client
    _rid, rec_headers = create_recruiter(client, admin_headers, daily_quota=2)
    cand = client.post("/api/v1/candidates", json={"name": "Meera"}, headers=rec_headers).get_json()["data"]
    client.post(
        "/api/v1/applications",
        json={"candidate_id": cand["id"], "company_name": "Acme", "job_title": "QA", "applications_count": 2},
        headers=rec_headers,
    )
    assert _run(client, admin_headers, "daily_quotas") == {"daily_quotas": 0}


def test_due_assessment_and_interview_today(app_client, admin_headers):
    _app, client = app_client
    _rid, rec_headers = create_recruiter(client, admin_headers, daily_quota=1)
    cand = client.post("/api/v1/candidates", json={"name": "Meera"}, headers=rec_headers).get_json()["data"]
    today = utc_today()

    client.post(
        "/api/v1/assessments",
        json={
            "candidate_id": cand["id"],
            "assessment_platform": "Codility",
            "due_date": (today + timedelta(days=1)).isoformat(),
        },
        headers=rec_headers,
    )
    client.post(
        "/api/v1/interviews",
        json={"candidate_id": cand["id"], "company_name": "Acme", "scheduled_date": f"{today.isoformat()}T15:00:00"},
        headers=rec_headers,
    )

    created = _run(client, admin_headers)
    assert created == {"daily_quotas": 1, "assessment_deadlines": 1, "interview_reminders": 1}
    assert _run(client, admin_headers) == {"daily_quotas": 0, "assessment_deadlines": 0, "interview_reminders": 0}

    data = client.get("/api/v1/notifications", headers=rec_headers).get_json()["data"]
    assert [r["title"] for r in data["reminders"]] == ["Interview Today"]
    assert {a["alertType"] for a in data["alerts"]} == {"quota_breach", "assessment_due"}
    assert data["unread"] == 3


def test_unknown_check_rejected(app_client, admin_headers):
    _app, client = app_client
    res = client.post("/api/v1/alerts/automation/run", json={"check": "nope"}, headers=admin_headers)
    assert res.status_code == 400


def test_acknowledge_and_resolve(app_client, admin_headers):
    _app, client = app_client
    _rid, rec_headers = create_recruiter(client, admin_headers)
    _run(client, admin_headers, "daily_quotas")
    alert = client.get("/api/v1/alerts", headers=rec_headers).get_json()["data"][0]

    res = client.patch(f"/api/v1/alerts/{alert['id']}/acknowledge", headers=rec_headers)
    assert res.status_code == 200
    assert res.get_json()["data"]["status"] == "acknowledged"

    res = client.patch(f"/api/v1/alerts/{alert['id']}/resolve", headers=rec_headers)
    assert res.status_code == 200
    assert res.get_json()["data"]["resolvedAt"]

    assert client.patch(f"/api/v1/alerts/{alert['id']}/acknowledge", headers=rec_headers).status_code == 400

    open_alerts = client.get("/api/v1/alerts?status=open", headers=rec_headers).get_json()["data"]
    assert open_alerts == []


def test_alerts_are_private_to_their_owner(app_client, admin_headers):
    _app, client = app_client
    create_recruiter(client, admin_headers)
    _other_id, other_headers = create_recruiter(client, admin_headers, email="other@example.com")
    _run(client, admin_headers, "daily_quotas")

    alerts = client.get("/api/v1/alerts", headers=other_headers).get_json()["data"]
    assert len(alerts) == 1
    mine = alerts[0]["id"]
    foreign = mine - 1 if mine > 1 else mine + 1
    assert client.patch(f"/api/v1/alerts/{foreign}/resolve", headers=other_headers).status_code == 403
