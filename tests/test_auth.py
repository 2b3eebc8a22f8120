from __future__ import annotations

from conftest import ADMIN_EMAIL, create_recruiter, login


def test_login_and_me(app_client):
    _app, client = app_client
    headers = login(client)

    res = client.get("/api/v1/auth/me", headers=headers)
    assert res.status_code == 200
    data = res.get_json()["data"]
    assert data["email"] == ADMIN_EMAIL
    assert data["role"] == "Admin"
    assert data["lastLoginAt"]


def test_login_rejects_bad_password(app_client):
    _app, client = app_client
    res = client.post("/api/v1/auth/login", json={"email": ADMIN_EMAIL, "password": "wrong-password"})
    assert res.status_code == 401
    body = res.get_json()
    assert body["success"] is False
    assert body["error"]["code"] == "AUTH_INVALID"


def test_missing_token_is_unauthorized(app_client):
    _app, client = app_client
    res = client.get("/api/v1/auth/me")
    assert res.status_code == 401


def test_recruiter_cannot_use_admin_routes(app_client, admin_headers):
    _app, client = app_client
    _rid, rec_headers = create_recruiter(client, admin_headers)

    res = client.get("/api/v1/users", headers=rec_headers)
    assert res.status_code == 403
    assert res.get_json()["error"]["code"] == "FORBIDDEN"


def test_disabled_user_cannot_login(app_client, admin_headers):
    _app, client = app_client
    rid, _ = create_recruiter(client, admin_headers)

    res = client.put(f"/api/v1/users/{rid}", json={"is_active": False}, headers=admin_headers)
    assert res.status_code == 200

    res = client.post("/api/v1/auth/login", json={"email": "rec@example.com", "password": "password123"})
    assert res.status_code == 403


def test_admin_cannot_deactivate_self(app_client, admin_headers):
    _app, client = app_client
    me = client.get("/api/v1/auth/me", headers=admin_headers).get_json()["data"]
    res = client.put(f"/api/v1/users/{me['id']}", json={"is_active": False}, headers=admin_headers)
    assert res.status_code == 400


def test_duplicate_user_email_conflicts(app_client, admin_headers):
    _app, client = app_client
    create_recruiter(client, admin_headers)
    res = client.post(
        "/api/v1/users",
        json={"name": "Other", "email": "rec@example.com", "password": "password123"},
        headers=admin_headers,
    )
    assert res.status_code == 409


def test_profile_update_requires_changes(app_client, admin_headers):
    _app, client = app_client
    _rid, rec_headers = create_recruiter(client, admin_headers)

    res = client.put("/api/v1/profile", json={}, headers=rec_headers)
    assert res.status_code == 400

    res = client.put("/api/v1/profile", json={"name": "Riya R"}, headers=rec_headers)
    assert res.status_code == 200
    assert res.get_json()["data"]["name"] == "Riya R"

    # quota is admin-managed, so a recruiter sending only a quota changes nothing
    res = client.put("/api/v1/profile", json={"daily_quota": 10}, headers=rec_headers)
    assert res.status_code == 400
