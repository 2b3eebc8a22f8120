from __future__ import annotations

import os
from dataclasses import dataclass


def _csv(value: str) -> list[str]:
    items: list[str] = []
    for part in (value or "").split(","):
        item = part.strip()
        if item:
            items.append(item)
    return items


def _env_bool(name: str, default: bool = False) -> bool:
    raw = str(os.getenv(name, "") or "").strip().lower()
    if not raw:
        return default
    return raw in {"1", "true", "yes", "y", "on"}


def _env_int(name: str, default: int) -> int:
    try:
        return int(os.getenv(name, str(default)))
    except Exception:
        return default


def _env_str(name: str, default: str) -> str:
    return str(os.getenv(name, default) or default)


@dataclass(frozen=True)
class BaseConfig:
    ENV: str = "development"
    DEBUG: bool = False
    TESTING: bool = False

    APP_VERSION: str = "dev"
    TIMEZONE_DISPLAY: str = "Asia/Kolkata"

    DATABASE_URL: str = "sqlite:///./staffing_portal.db"

    JWT_SECRET: str = "dev-secret"
    JWT_EXP_MINUTES: int = 720

    CORS_ORIGINS: list[str] | str = (
        "http://localhost:3000,http://127.0.0.1:3000,http://localhost:5173,http://127.0.0.1:5173"
    )
    CORS_ALLOW_CREDENTIALS: bool = False

    LOG_LEVEL: str = "INFO"

    RATE_LIMIT_GLOBAL: str = "1200 per minute"
    RATE_LIMIT_DEFAULT: str = "300 per minute"
    RATE_LIMIT_LOGIN: str = "30 per minute"
    RATE_LIMIT_EXPORT: str = "20 per minute"

    TRUST_PROXY_HEADERS: bool = True

    DEFAULT_DAILY_QUOTA: int = 60

    # Seed admin created on first start when the users table has no admin.
    ADMIN_EMAIL: str = ""
    ADMIN_PASSWORD: str = ""
    ADMIN_NAME: str = "Administrator"

    ENABLE_AUTOMATION: bool = False
    AUTOMATION_QUOTA_INTERVAL_MINUTES: int = 60
    AUTOMATION_ASSESSMENT_INTERVAL_MINUTES: int = 360
    AUTOMATION_INTERVIEW_INTERVAL_MINUTES: int = 120

    AUDIT_LOG_PATH: str = ""
    AUDIT_WEBHOOK_URL: str = ""
    AUDIT_WEBHOOK_TIMEOUT_SECONDS: int = 5

    ATTENDANCE_SHIFT_START: str = "19:00"
    ATTENDANCE_SHIFT_END: str = "04:00"
    ATTENDANCE_LATE_LOGIN_CUTOFF: str = "20:00"
    ATTENDANCE_EARLY_LOGOUT_MINUTES: int = 120
    ATTENDANCE_BREAK_ALLOWANCE_MINUTES: int = 45
    ATTENDANCE_MAX_RANGE_DAYS: int = 120

    def __post_init__(self) -> None:
        object.__setattr__(self, "APP_VERSION", _env_str("APP_VERSION", self.APP_VERSION))
        object.__setattr__(self, "TIMEZONE_DISPLAY", _env_str("TIMEZONE_DISPLAY", self.TIMEZONE_DISPLAY))

        object.__setattr__(self, "DATABASE_URL", _env_str("DATABASE_URL", self.DATABASE_URL).strip())

        object.__setattr__(self, "JWT_SECRET", _env_str("JWT_SECRET", self.JWT_SECRET))
        object.__setattr__(self, "JWT_EXP_MINUTES", _env_int("JWT_EXP_MINUTES", self.JWT_EXP_MINUTES))

        cors_raw = os.getenv("CORS_ORIGINS")
        if cors_raw is not None:
            cors_raw = str(cors_raw or "").strip()
            if cors_raw == "*":
                object.__setattr__(self, "CORS_ORIGINS", "*")
            else:
                object.__setattr__(self, "CORS_ORIGINS", _csv(cors_raw))
        else:
            object.__setattr__(self, "CORS_ORIGINS", _csv(str(self.CORS_ORIGINS)))

        object.__setattr__(
            self, "CORS_ALLOW_CREDENTIALS", _env_bool("CORS_ALLOW_CREDENTIALS", self.CORS_ALLOW_CREDENTIALS)
        )

        object.__setattr__(self, "LOG_LEVEL", _env_str("LOG_LEVEL", self.LOG_LEVEL).upper())

        object.__setattr__(self, "RATE_LIMIT_GLOBAL", _env_str("RATE_LIMIT_GLOBAL", self.RATE_LIMIT_GLOBAL))
        object.__setattr__(self, "RATE_LIMIT_DEFAULT", _env_str("RATE_LIMIT_DEFAULT", self.RATE_LIMIT_DEFAULT))
        object.__setattr__(self, "RATE_LIMIT_LOGIN", _env_str("RATE_LIMIT_LOGIN", self.RATE_LIMIT_LOGIN))
        object.__setattr__(self, "RATE_LIMIT_EXPORT", _env_str("RATE_LIMIT_EXPORT", self.RATE_LIMIT_EXPORT))

        object.__setattr__(self, "TRUST_PROXY_HEADERS", _env_bool("TRUST_PROXY_HEADERS", self.TRUST_PROXY_HEADERS))

        object.__setattr__(self, "DEFAULT_DAILY_QUOTA", max(1, _env_int("DEFAULT_DAILY_QUOTA", self.DEFAULT_DAILY_QUOTA)))

        object.__setattr__(self, "ADMIN_EMAIL", str(os.getenv("ADMIN_EMAIL", self.ADMIN_EMAIL) or "").strip().lower())
        object.__setattr__(self, "ADMIN_PASSWORD", str(os.getenv("ADMIN_PASSWORD", self.ADMIN_PASSWORD) or ""))
        object.__setattr__(self, "ADMIN_NAME", _env_str("ADMIN_NAME", self.ADMIN_NAME))

        object.__setattr__(self, "ENABLE_AUTOMATION", _env_bool("ENABLE_AUTOMATION", self.ENABLE_AUTOMATION))
        for name in (
            "AUTOMATION_QUOTA_INTERVAL_MINUTES",
            "AUTOMATION_ASSESSMENT_INTERVAL_MINUTES",
            "AUTOMATION_INTERVIEW_INTERVAL_MINUTES",
        ):
            object.__setattr__(self, name, max(1, _env_int(name, getattr(self, name))))

        object.__setattr__(self, "AUDIT_LOG_PATH", str(os.getenv("AUDIT_LOG_PATH", self.AUDIT_LOG_PATH) or "").strip())
        object.__setattr__(
            self, "AUDIT_WEBHOOK_URL", str(os.getenv("AUDIT_WEBHOOK_URL", self.AUDIT_WEBHOOK_URL) or "").strip()
        )
        object.__setattr__(
            self,
            "AUDIT_WEBHOOK_TIMEOUT_SECONDS",
            max(1, _env_int("AUDIT_WEBHOOK_TIMEOUT_SECONDS", self.AUDIT_WEBHOOK_TIMEOUT_SECONDS)),
        )

        object.__setattr__(self, "ATTENDANCE_SHIFT_START", _env_str("ATTENDANCE_SHIFT_START", self.ATTENDANCE_SHIFT_START))
        object.__setattr__(self, "ATTENDANCE_SHIFT_END", _env_str("ATTENDANCE_SHIFT_END", self.ATTENDANCE_SHIFT_END))
        object.__setattr__(
            self,
            "ATTENDANCE_LATE_LOGIN_CUTOFF",
            _env_str("ATTENDANCE_LATE_LOGIN_CUTOFF", self.ATTENDANCE_LATE_LOGIN_CUTOFF),
        )
        for name in (
            "ATTENDANCE_EARLY_LOGOUT_MINUTES",
            "ATTENDANCE_BREAK_ALLOWANCE_MINUTES",
            "ATTENDANCE_MAX_RANGE_DAYS",
        ):
            object.__setattr__(self, name, max(0, _env_int(name, getattr(self, name))))

    @property
    def IS_PRODUCTION(self) -> bool:
        return str(self.ENV or "").lower() == "production"

    def validate(self) -> None:
        if self.IS_PRODUCTION and str(self.JWT_SECRET or "").strip() in {"", "dev-secret"}:
            raise RuntimeError("JWT_SECRET must be set in production")
        if self.IS_PRODUCTION and str(self.DATABASE_URL or "").startswith("sqlite"):
            raise RuntimeError("DATABASE_URL must point at Postgres in production")
        if self.IS_PRODUCTION and self.CORS_ORIGINS == "*":
            raise RuntimeError("CORS_ORIGINS cannot be '*' in production")
        if not str(self.DATABASE_URL or "").strip():
            raise RuntimeError("DATABASE_URL is required")


@dataclass(frozen=True)
class DevelopmentConfig(BaseConfig):
    ENV: str = "development"
    DEBUG: bool = True


@dataclass(frozen=True)
class ProductionConfig(BaseConfig):
    ENV: str = "production"
    DEBUG: bool = False


@dataclass(frozen=True)
class TestingConfig(BaseConfig):
    ENV: str = "testing"
    TESTING: bool = True
    JWT_SECRET: str = "test-secret"


def get_config() -> BaseConfig:
    env = str(os.getenv("ENV") or os.getenv("APP_ENV") or "development").strip().lower()
    if env in {"prod", "production"}:
        cfg: BaseConfig = ProductionConfig()
    elif env in {"test", "testing"}:
        cfg = TestingConfig()
    else:
        cfg = DevelopmentConfig()

    cfg.validate()
    return cfg
