from __future__ import annotations

from datetime import date, datetime, time, timezone
from typing import Any
from zoneinfo import ZoneInfo

from dateutil import parser as dateutil_parser

from portal.utils.errors import ApiError


def iso_utc_now() -> str:
    return datetime.now(timezone.utc).replace(microsecond=0).isoformat().replace("+00:00", "Z")


def utc_today() -> date:
    return datetime.now(timezone.utc).date()


def to_display_tz(dt: datetime, tz_name: str) -> str:
    try:
        tz = ZoneInfo(tz_name)
    except Exception:
        tz = timezone.utc

    if dt.tzinfo is None:
        dt = dt.replace(tzinfo=timezone.utc)
    return dt.astimezone(tz).replace(microsecond=0).isoformat()


def parse_iso_date(value: Any, *, field: str = "date") -> date:
    """Strict YYYY-MM-DD (full ISO timestamps are truncated to their date part)."""
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    s = str(value or "").strip()
    try:
        return date.fromisoformat(s[:10])
    except ValueError as e:
        raise ApiError("BAD_REQUEST", f"{field} must be YYYY-MM-DD", status=400) from e


def parse_optional_date(value: Any, *, field: str = "date") -> date | None:
    if value is None or str(value).strip() == "":
        return None
    return parse_iso_date(value, field=field)


def parse_datetime(value: Any, *, field: str = "datetime") -> datetime:
    """Lenient timestamp parsing; aware values are normalized to naive UTC."""
    if isinstance(value, datetime):
        dt = value
    else:
        s = str(value or "").strip()
        if not s:
            raise ApiError("BAD_REQUEST", f"{field} is required", status=400)
        try:
            dt = dateutil_parser.isoparse(s)
        except (ValueError, OverflowError) as e:
            raise ApiError("BAD_REQUEST", f"{field} must be an ISO-8601 timestamp", status=400) from e
    if dt.tzinfo is not None:
        dt = dt.astimezone(timezone.utc).replace(tzinfo=None)
    return dt


def parse_clock(value: Any, *, field: str = "time") -> time | None:
    """HH:MM (or HH:MM:SS) wall-clock time; blank means not provided."""
    if value is None:
        return None
    if isinstance(value, time):
        return value
    s = str(value).strip()
    if not s:
        return None
    for fmt in ("%H:%M", "%H:%M:%S"):
        try:
            return datetime.strptime(s, fmt).time()
        except ValueError:
            continue
    raise ApiError("BAD_REQUEST", f"{field} must be HH:MM", status=400)


def format_clock(value: time | None) -> str | None:
    if value is None:
        return None
    return value.strftime("%H:%M")
