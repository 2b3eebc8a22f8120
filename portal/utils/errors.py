from __future__ import annotations

from dataclasses import dataclass
from typing import Any


@dataclass(frozen=True)
class ApiError(Exception):
    code: str
    message: str
    status: int = 400
    details: Any | None = None


def bad_request(message: str, details: Any | None = None) -> ApiError:
    return ApiError("BAD_REQUEST", message, status=400, details=details)


def unauthorized(message: str = "Authentication required") -> ApiError:
    return ApiError("AUTH_INVALID", message, status=401)


def forbidden(message: str = "Access denied") -> ApiError:
    return ApiError("FORBIDDEN", message, status=403)


def not_found(what: str) -> ApiError:
    return ApiError("NOT_FOUND", f"{what} not found", status=404)


def conflict(message: str) -> ApiError:
    return ApiError("CONFLICT", message, status=409)
