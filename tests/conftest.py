import sys
from pathlib import Path

import pytest


BACKEND_ROOT = Path(__file__).resolve().parents[1]
if str(BACKEND_ROOT) not in sys.path:
    sys.path.insert(0, str(BACKEND_ROOT))

ADMIN_EMAIL = "admin@example.com"
ADMIN_PASSWORD = "AdminPass1!"


@pytest.fixture()
def app_client(tmp_path: Path, monkeypatch: pytest.MonkeyPatch):
    db_path = tmp_path / "test.db"

    monkeypatch.setenv("APP_ENV", "testing")
    monkeypatch.setenv("DATABASE_URL", f"sqlite:///{db_path.as_posix()}")
    monkeypatch.setenv("ADMIN_EMAIL", ADMIN_EMAIL)
    monkeypatch.setenv("ADMIN_PASSWORD", ADMIN_PASSWORD)
    monkeypatch.setenv("LOG_LEVEL", "WARNING")

    # Prevent accidental pollution from any existing env config.
    monkeypatch.delenv("ENV", raising=False)
    monkeypatch.delenv("ENABLE_AUTOMATION", raising=False)
    monkeypatch.delenv("AUDIT_LOG_PATH", raising=False)
    monkeypatch.delenv("AUDIT_WEBHOOK_URL", raising=False)

    from portal import create_app
    from portal.cache import cache_clear
    from portal.middlewares.rate_limit import limiter

    cache_clear()
    limiter.reset()

    app = create_app()
    app.testing = True

    with app.test_client() as client:
        yield app, client


def login(client, email: str = ADMIN_EMAIL, password: str = ADMIN_PASSWORD) -> dict:
    res = client.post("/api/v1/auth/login", json={"email": email, "password": password})
    assert res.status_code == 200, res.get_json()
    return {"Authorization": f"Bearer {res.get_json()['data']['access_token']}"}


def create_recruiter(client, admin_headers: dict, email: str = "rec@example.com", **extra) -> tuple[int, dict]:
    payload = {"name": "Riya Recruiter", "email": email, "password": "password123", "role": "Recruiter"}
    payload.update(extra)
    res = client.post("/api/v1/users", json=payload, headers=admin_headers)
    assert res.status_code == 201, res.get_json()
    user_id = res.get_json()["data"]["id"]
    return user_id, login(client, email, "password123")


@pytest.fixture()
def admin_headers(app_client):
    _app, client = app_client
    return login(client)
