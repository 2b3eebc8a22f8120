from __future__ import annotations

import logging
from typing import Any

from flask import Flask, g, jsonify
from sqlalchemy.exc import IntegrityError
from werkzeug.exceptions import HTTPException

from portal.utils.errors import ApiError


def _error_payload(code: str, message: str, details: Any | None = None) -> dict[str, Any]:
    payload: dict[str, Any] = {
        "success": False,
        "error": {"code": code, "message": message, "details": details},
    }
    if getattr(g, "request_id", None):
        payload["request_id"] = g.request_id
    return payload


def _rollback() -> None:
    db = g.get("db_session")
    if db is not None:
        db.rollback()


def init_error_handlers(app: Flask) -> None:
    @app.errorhandler(ApiError)
    def _api_error(err: ApiError):
        _rollback()
        resp = jsonify(_error_payload(err.code, err.message, err.details))
        resp.status_code = err.status
        if err.status == 429 and isinstance(err.details, dict) and err.details.get("retryAfter"):
            resp.headers["Retry-After"] = str(err.details["retryAfter"])
        return resp

    @app.errorhandler(IntegrityError)
    def _integrity_error(err: IntegrityError):
        _rollback()
        logging.getLogger("portal").warning(
            "Integrity error request_id=%s: %s", getattr(g, "request_id", ""), err.orig
        )
        return jsonify(_error_payload("CONFLICT", "Record conflicts with existing data")), 409

    @app.errorhandler(HTTPException)
    def _http_error(err: HTTPException):
        status = int(err.code or 500)
        return jsonify(_error_payload(f"HTTP_{status}", str(err.description or "HTTP error"))), status

    @app.errorhandler(Exception)
    def _unhandled(err: Exception):
        _rollback()
        logging.getLogger("portal").exception(
            "Unhandled exception request_id=%s", getattr(g, "request_id", "")
        )
        return jsonify(_error_payload("INTERNAL", "Unexpected error")), 500
