from __future__ import annotations

from sqlalchemy import func, select

from conftest import create_recruiter
from portal.db import SessionLocal
from portal.models import Application
from scripts.import_applications import import_rows


def _rows():
    return [
        {
            "recruiter_email": "rec@example.com",
            "candidate_email": "meera@example.com",
            "company_name": "Globex",
            "job_title": "QA Engineer",
            "application_date": "2024-03-04",
            "applications_count": "3",
        },
        {
            "recruiter_email": "rec@example.com",
            "candidate_email": "meera@example.com",
            "company_name": "Initech",
            "job_title": "SDET",
            "application_date": "2024-03-04",
        },
        {"recruiter_email": "rec@example.com", "candidate_email": "meera@example.com", "company_name": "X"},
        {
            "recruiter_email": "ghost@example.com",
            "candidate_email": "meera@example.com",
            "company_name": "Hooli",
            "job_title": "Dev",
            "application_date": "2024-03-04",
        },
        {
            "recruiter_email": "rec@example.com",
            "candidate_email": "meera@example.com",
            "company_name": "Hooli",
            "job_title": "Dev",
            "application_date": "04/03/2024",
        },
    ]


def test_import_rows_skips_bad_lines_and_rebuilds_activity(app_client, admin_headers):
    _app, client = app_client
    rid, _ = create_recruiter(client, admin_headers)
    res = client.post(
        "/api/v1/candidates",
        json={"name": "Meera Candidate", "email": "meera@example.com", "assigned_recruiter_id": rid},
        headers=admin_headers,
    )
    assert res.status_code == 201, res.get_json()

    with SessionLocal() as db:
        created, errors = import_rows(db, _rows())
        db.commit()

    assert created == 2
    assert len(errors) == 3
    assert errors[0].startswith("line 4: missing job_title")
    assert "unknown recruiter" in errors[1]
    assert "YYYY-MM-DD" in errors[2]

    res = client.get(
        "/api/v1/reports/application-activity?date_from=2024-03-01&date_to=2024-03-31", headers=admin_headers
    )
    data = res.get_json()["data"]
    assert data["totals"]["overall"] == 4
    assert data["records"][0]["recruiter"]["id"] == rid


def test_import_rows_rollback_leaves_nothing(app_client, admin_headers):
    _app, client = app_client
    create_recruiter(client, admin_headers)
    client.post("/api/v1/candidates", json={"name": "Meera", "email": "meera@example.com"}, headers=admin_headers)

    with SessionLocal() as db:
        created, _errors = import_rows(db, _rows()[:2])
        db.rollback()
        assert created == 2
        assert db.execute(select(func.count(Application.id))).scalar_one() == 0


def test_import_rows_rejects_fractional_and_huge_counts(app_client, admin_headers):
    _app, client = app_client
    create_recruiter(client, admin_headers)
    client.post("/api/v1/candidates", json={"name": "Meera", "email": "meera@example.com"}, headers=admin_headers)

    base = _rows()[1]
    rows = [dict(base, applications_count=v) for v in ("inf", "2.7", "1e30", "99999999999999999999", "4")]
    with SessionLocal() as db:
        created, errors = import_rows(db, rows)
        db.commit()
        assert created == 1
        assert [e.split(":")[0] for e in errors] == ["line 2", "line 3", "line 4", "line 5"]
        assert db.execute(select(Application.applications_count)).scalar_one() == 4
