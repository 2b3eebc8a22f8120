import os


def _env_int(name: str, default: int) -> int:
    try:
        return int(str(os.getenv(name, "") or "").strip() or default)
    except ValueError:
        return default


bind = f"0.0.0.0:{_env_int('PORT', 8000)}"
wsgi_app = "wsgi:app"

# Each worker opens its own DB pool and, with ENABLE_AUTOMATION=1, its own alert timers.
workers = max(1, _env_int("WEB_CONCURRENCY", 2))
threads = max(1, _env_int("PYTHON_THREADS", 4))
worker_class = "gthread" if threads > 1 else "sync"

# PDF and Excel exports can take a while on wide date ranges.
timeout = max(30, _env_int("GUNICORN_TIMEOUT", 120))
graceful_timeout = max(5, _env_int("GUNICORN_GRACEFUL_TIMEOUT", 30))
keepalive = max(1, _env_int("GUNICORN_KEEPALIVE", 5))

accesslog = "-"
errorlog = "-"
loglevel = str(os.getenv("LOG_LEVEL", "info") or "info").lower()

max_requests = max(0, _env_int("GUNICORN_MAX_REQUESTS", 0))
max_requests_jitter = max(0, _env_int("GUNICORN_MAX_REQUESTS_JITTER", 0))
