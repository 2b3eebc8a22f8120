from __future__ import annotations

import json

from conftest import create_recruiter

from portal.db import SessionLocal
from portal.models import AuditLog


def test_mutations_are_audited(app_client, admin_headers):
    _app, client = app_client
    rid, _ = create_recruiter(client, admin_headers)

    res = client.get("/api/v1/audit/logs?action=create&resourceType=users", headers=admin_headers)
    assert res.status_code == 200
    data = res.get_json()["data"]
    assert data["pagination"]["total"] == 1
    log = data["logs"][0]
    assert log["recordId"] == rid
    assert log["newValues"]["email"] == "rec@example.com"
    assert "password_hash" not in log["newValues"]


def test_client_log_and_user_activity(app_client, admin_headers):
    _app, client = app_client
    rid, rec_headers = create_recruiter(client, admin_headers)

    res = client.post("/api/v1/audit/log", json={"action": "EXPORT_VIEWED", "tableName": "reports"}, headers=rec_headers)
    assert res.status_code == 201

    res = client.get(f"/api/v1/audit/user/{rid}/activity", headers=admin_headers)
    actions = [a["action"] for a in res.get_json()["data"]["activities"]]
    assert "EXPORT_VIEWED" in actions
    assert "LOGIN" in actions


def test_stats_and_exports(app_client, admin_headers):
    _app, client = app_client
    create_recruiter(client, admin_headers)

    stats = client.get("/api/v1/audit/stats", headers=admin_headers).get_json()["data"]
    actions = {a["action"]: a["count"] for a in stats["actions"]}
    assert actions["LOGIN"] == 2
    assert actions["CREATE"] == 1
    assert stats["topUsers"][0]["userName"] == "Administrator"

    res = client.get("/api/v1/audit/export?format=csv", headers=admin_headers)
    assert res.mimetype == "text/csv"
    assert res.get_data(as_text=True).splitlines()[0].startswith("id,user_id,action")

    res = client.get("/api/v1/audit/export?format=json", headers=admin_headers)
    rows = json.loads(res.get_data(as_text=True))
    assert {r["action"] for r in rows} >= {"LOGIN", "CREATE"}

    assert client.get("/api/v1/audit/export?format=xml", headers=admin_headers).status_code == 400


def test_cleanup_removes_old_rows(app_client, admin_headers):
    _app, client = app_client
    with SessionLocal() as db:
        db.add(AuditLog(action="LOGIN", table_name="users", created_at="2020-01-01T00:00:00Z"))
        db.commit()

    res = client.delete("/api/v1/audit/cleanup", json={"daysToKeep": 30}, headers=admin_headers)
    assert res.status_code == 200
    assert res.get_json()["data"]["deletedCount"] == 1

    res = client.get("/api/v1/audit/logs?action=CLEANUP", headers=admin_headers)
    assert res.get_json()["data"]["pagination"]["total"] == 1


def test_audit_is_admin_only(app_client, admin_headers):
    _app, client = app_client
    _rid, rec_headers = create_recruiter(client, admin_headers)
    assert client.get("/api/v1/audit/logs", headers=rec_headers).status_code == 403


def test_file_sink_only_sees_committed_events(app_client, monkeypatch, tmp_path):
    from portal import create_app
    from portal.services.audit import record_audit

    sink = tmp_path / "audit" / "events.jsonl"
    monkeypatch.setenv("AUDIT_LOG_PATH", str(sink))
    app = create_app()

    with app.app_context():
        with SessionLocal() as db:
            record_audit(db, actor_id=None, action="update", table_name="candidates", record_id=1)
            db.rollback()
            assert not sink.exists()

            record_audit(db, actor_id=None, action="delete", table_name="candidates", record_id=2)
            assert not sink.exists()
            db.commit()

    lines = sink.read_text(encoding="utf-8").splitlines()
    assert len(lines) == 1
    event = json.loads(lines[0])
    assert event["action"] == "DELETE"
    assert event["recordId"] == 2
