from __future__ import annotations

from conftest import create_recruiter


def test_create_user_defaults(app_client, admin_headers):
    app, client = app_client
    res = client.post(
        "/api/v1/users", json={"name": "Nia", "email": "Nia@Example.com", "password": "password123"}, headers=admin_headers
    )
    assert res.status_code == 201
    user = res.get_json()["data"]
    assert user["email"] == "nia@example.com"
    assert user["role"] == "Recruiter"
    assert user["dailyQuota"] == app.config["CFG"].DEFAULT_DAILY_QUOTA


def test_short_password_rejected(app_client, admin_headers):
    _app, client = app_client
    res = client.post(
        "/api/v1/users", json={"name": "Nia", "email": "nia@example.com", "password": "short"}, headers=admin_headers
    )
    assert res.status_code == 400


def test_activity_listing(app_client, admin_headers):
    _app, client = app_client
    rid, _ = create_recruiter(client, admin_headers)

    res = client.get("/api/v1/users/activity", headers=admin_headers)
    assert res.status_code == 200
    users = {u["id"]: u for u in res.get_json()["data"]["users"]}
    assert users[rid]["isOnline"] is True
    assert users[rid]["todayApplications"] == 0


def test_profile_is_self_or_admin(app_client, admin_headers):
    _app, client = app_client
    rid, rec_headers = create_recruiter(client, admin_headers)
    other_id, _ = create_recruiter(client, admin_headers, email="other@example.com")

    res = client.get(f"/api/v1/users/{rid}/profile?recentApplicationsLimit=5", headers=rec_headers)
    assert res.status_code == 200
    assert client.get(f"/api/v1/users/{other_id}/profile", headers=rec_headers).status_code == 403
    assert client.get(f"/api/v1/users/{other_id}/profile", headers=admin_headers).status_code == 200


def test_delete_user_keeps_candidates(app_client, admin_headers):
    _app, client = app_client
    rid, rec_headers = create_recruiter(client, admin_headers)
    cand = client.post("/api/v1/candidates", json={"name": "Kept"}, headers=rec_headers).get_json()["data"]

    assert client.delete(f"/api/v1/users/{rid}", headers=admin_headers).status_code == 204
    res = client.get(f"/api/v1/candidates/{cand['id']}", headers=admin_headers)
    assert res.status_code == 200
    assert res.get_json()["data"]["assignedRecruiterId"] is None

    me = client.get("/api/v1/auth/me", headers=admin_headers).get_json()["data"]
    assert client.delete(f"/api/v1/users/{me['id']}", headers=admin_headers).status_code == 400


def test_profile_windows_page_and_cap(app_client, admin_headers):
    _app, client = app_client
    rid, rec_headers = create_recruiter(client, admin_headers)
    cand = client.post("/api/v1/candidates", json={"name": "Paged"}, headers=rec_headers).get_json()["data"]
    for n in range(7):
        res = client.post(
            "/api/v1/applications",
            json={"candidate_id": cand["id"], "company_name": f"Co {n}", "job_title": "Dev"},
            headers=rec_headers,
        )
        assert res.status_code == 201

    url = f"/api/v1/users/{rid}/profile"
    first = client.get(f"{url}?recentApplicationsLimit=3", headers=rec_headers).get_json()["data"]
    page = first["recentApplications"]
    assert len(page["items"]) == 3
    assert page["hasMore"] is True
    assert page["nextOffset"] == 3
    assert first["metrics"]["applications"]["total"] == 7

    last = client.get(f"{url}?recentApplicationsLimit=3&recentApplicationsOffset=6", headers=rec_headers)
    page = last.get_json()["data"]["recentApplications"]
    assert len(page["items"]) == 1
    assert page["offset"] == 6
    assert page["hasMore"] is False
    assert page["nextOffset"] is None

    seen = {a["id"] for a in first["recentApplications"]["items"]} | {a["id"] for a in page["items"]}
    assert len(seen) == 4

    capped = client.get(f"{url}?recentApplicationsLimit=500", headers=rec_headers).get_json()["data"]
    assert capped["recentApplications"]["limit"] == 50
    assert len(capped["recentApplications"]["items"]) == 7
    assert capped["recentApplications"]["hasMore"] is False
    assert capped["assignedCandidates"]["limit"] == 6
