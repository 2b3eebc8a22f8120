from __future__ import annotations

import re
from datetime import date
from typing import Any, Iterable

from flask import request

from portal.utils.datetime import parse_optional_date
from portal.utils.errors import ApiError

_EMAIL_RE = re.compile(r"^[^@\s]+@[^@\s]+\.[^@\s]+$")
# At least one lowercase, one uppercase, one digit and one symbol.
_PASSWORD_POLICY_RE = re.compile(r"^(?=.*[a-z])(?=.*[A-Z])(?=.*\d)(?=.*[^A-Za-z0-9]).{8,}$")

MAX_PAGE_SIZE = 200


def require_json() -> dict[str, Any]:
    body = request.get_json(silent=True)
    if not isinstance(body, dict):
        raise ApiError("BAD_REQUEST", "JSON body must be an object", status=400)
    return body


def validate_email(value: Any) -> str:
    email = str(value or "").strip().lower()
    if not email or not _EMAIL_RE.match(email):
        raise ApiError("BAD_REQUEST", "Invalid email", status=400)
    return email


def validate_password(value: Any, *, allow_short: bool) -> str:
    password = str(value or "")
    if not password:
        raise ApiError("BAD_REQUEST", "Password required", status=400)
    if not allow_short and len(password) < 8:
        raise ApiError("BAD_REQUEST", "Password must be at least 8 characters", status=400)
    return password


def validate_strong_password(value: Any) -> str:
    password = validate_password(value, allow_short=False)
    if not _PASSWORD_POLICY_RE.match(password):
        raise ApiError(
            "BAD_REQUEST",
            "Password must include upper and lower case letters, a number and a symbol",
            status=400,
        )
    return password


def require_text(body: dict[str, Any], key: str, *, max_len: int = 255) -> str:
    value = str(body.get(key) or "").strip()
    if not value:
        raise ApiError("BAD_REQUEST", f"{key} is required", status=400)
    if len(value) > max_len:
        raise ApiError("BAD_REQUEST", f"{key} is too long", status=400)
    return value


def optional_text(body: dict[str, Any], key: str, default: str = "") -> str:
    value = body.get(key)
    if value is None:
        return default
    return str(value).strip()


def validate_choice(value: Any, allowed: Iterable[str], *, field: str) -> str:
    s = str(value or "").strip()
    options = tuple(allowed)
    if s not in options:
        raise ApiError("BAD_REQUEST", f"{field} must be one of: {', '.join(options)}", status=400)
    return s


INT32_MAX = 2**31 - 1


def parse_int(value: Any, *, field: str, minimum: int | None = None, maximum: int = INT32_MAX) -> int:
    if isinstance(value, bool):
        raise ApiError("BAD_REQUEST", f"{field} must be an integer", status=400)
    try:
        n = int(str(value).strip())
    except (TypeError, ValueError) as e:
        raise ApiError("BAD_REQUEST", f"{field} must be an integer", status=400) from e
    if minimum is not None and n < minimum:
        raise ApiError("BAD_REQUEST", f"{field} must be at least {minimum}", status=400)
    if n > maximum:
        raise ApiError("BAD_REQUEST", f"{field} must be at most {maximum}", status=400)
    return n


def parse_optional_int(
    value: Any, *, field: str, minimum: int | None = None, maximum: int = INT32_MAX
) -> int | None:
    if value is None or str(value).strip() == "":
        return None
    return parse_int(value, field=field, minimum=minimum, maximum=maximum)


def parse_bool(value: Any, default: bool = False) -> bool:
    if value is None:
        return default
    if isinstance(value, bool):
        return value
    s = str(value).strip().lower()
    if not s:
        return default
    return s in {"1", "true", "yes", "y", "on"}


def parse_pagination(args, *, default_limit: int = 50, max_limit: int = MAX_PAGE_SIZE) -> tuple[int, int]:
    limit = parse_optional_int(args.get("limit"), field="limit", minimum=1) or default_limit
    offset = parse_optional_int(args.get("offset"), field="offset", minimum=0) or 0
    return min(limit, max_limit), offset


def parse_date_range(
    args, *, default_start: date, default_end: date, max_days: int | None = None
) -> tuple[date, date]:
    """`date_from` / `date_to` query params; reversed bounds are swapped."""
    start = parse_optional_date(args.get("date_from"), field="date_from") or default_start
    end = parse_optional_date(args.get("date_to"), field="date_to") or default_end
    if start > end:
        start, end = end, start
    if max_days is not None and (end - start).days + 1 > max_days:
        raise ApiError("BAD_REQUEST", f"Date range cannot exceed {max_days} days", status=400)
    return start, end
