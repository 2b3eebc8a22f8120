from __future__ import annotations

import pytest

from portal.db import normalize_database_url
from portal.utils.rate_limiter import InMemoryRateLimiter, parse_limit
from portal.utils.errors import ApiError


@pytest.mark.parametrize(
    "raw",
    [
        "postgres://u:p@host:5432/db",
        "postgresql://u:p@host:5432/db",
        "postgresql+psycopg2://u:p@host:5432/db",
        "postgresql+psycopg://u:p@host:5432/db",
    ],
)
def test_database_url_uses_psycopg(raw):
    assert normalize_database_url(raw) == "postgresql+psycopg://u:p@host:5432/db"


def test_sqlite_url_untouched():
    assert normalize_database_url(" sqlite:///./x.db ") == "sqlite:///./x.db"


def test_production_config_rejects_unsafe_defaults(monkeypatch):
    from portal.config import get_config

    monkeypatch.setenv("APP_ENV", "production")
    monkeypatch.delenv("ENV", raising=False)
    monkeypatch.setenv("DATABASE_URL", "postgresql://u:p@host/db")
    monkeypatch.delenv("JWT_SECRET", raising=False)
    with pytest.raises(RuntimeError, match="JWT_SECRET"):
        get_config()

    monkeypatch.setenv("JWT_SECRET", "a-real-secret")
    monkeypatch.setenv("DATABASE_URL", "sqlite:///./prod.db")
    with pytest.raises(RuntimeError, match="DATABASE_URL"):
        get_config()


def test_rate_limiter_blocks_after_limit():
    limiter = InMemoryRateLimiter()
    limiter.check("ip:LOGIN", "2 per minute")
    limiter.check("ip:LOGIN", "2 per minute")
    with pytest.raises(ApiError) as exc:
        limiter.check("ip:LOGIN", "2 per minute")
    assert exc.value.status == 429
    assert 1 <= exc.value.details["retryAfter"] <= 60

    # Separate window lengths keep separate counters.
    limiter.check("ip:LOGIN", "100 per hour")

    limiter.reset()
    limiter.check("ip:LOGIN", "2 per minute")


@pytest.mark.parametrize(
    "raw,expected",
    [("30 per minute", (30, 60)), ("5/second", (5, 1)), ("1000 per hour", (1000, 3600)), ("lots", (300, 60))],
)
def test_parse_limit(raw, expected):
    assert parse_limit(raw) == expected


def test_login_rate_limit_sets_retry_after(app_client, monkeypatch):
    from portal import create_app

    monkeypatch.setenv("RATE_LIMIT_LOGIN", "1 per minute")
    client = create_app().test_client()
    body = {"email": "nobody@example.com", "password": "wrong-password"}
    assert client.post("/api/v1/auth/login", json=body).status_code == 401
    res = client.post("/api/v1/auth/login", json=body)
    assert res.status_code == 429
    assert int(res.headers["Retry-After"]) >= 1


def test_security_headers(app_client):
    _app, client = app_client
    res = client.get("/api/v1/auth/me")
    assert res.headers["X-Content-Type-Options"] == "nosniff"
    assert res.headers["X-Frame-Options"] == "DENY"
    assert res.headers["Cache-Control"] == "no-store"


def test_unknown_route_uses_error_envelope(app_client):
    _app, client = app_client
    res = client.get("/api/v1/nope")
    assert res.status_code == 404
    body = res.get_json()
    assert body["success"] is False
    assert body["error"]["code"] == "HTTP_404"


def test_path_bucket_collapses_ids():
    from portal.middlewares.rate_limit import path_bucket

    assert path_bucket("/api/v1/candidates/42/notes/7") == "/api/v1/candidates/:id/notes/:id"
    assert path_bucket("/api/v1/reports/export.xlsx") == "/api/v1/reports/export.xlsx"


def test_downloads_are_private(app_client, admin_headers):
    _app, client = app_client
    res = client.get("/api/v1/audit/export?format=csv", headers=admin_headers)
    assert res.status_code == 200
    assert res.headers["Cache-Control"] == "private, no-store"
    assert res.headers["X-Download-Options"] == "noopen"


def test_correlation_id_is_accepted(app_client):
    _app, client = app_client
    res = client.get("/health", headers={"X-Correlation-ID": "dash-77"})
    assert res.headers["X-Request-ID"] == "dash-77"

    res = client.get("/health", headers={"X-Request-ID": "bad id with spaces"})
    assert res.headers["X-Request-ID"] != "bad id with spaces"
