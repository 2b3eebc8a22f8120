from __future__ import annotations

import logging
import sys

from flask import g, has_request_context

FORMAT = "%(levelname)s %(name)s rid=%(request_id)s %(message)s"


class RequestIdFilter(logging.Filter):
    """Stamps the current request id on every record; background threads log rid=-."""

    def filter(self, record: logging.LogRecord) -> bool:
        rid = ""
        if has_request_context():
            rid = getattr(g, "request_id", "") or ""
        record.request_id = rid or "-"
        return True


def setup_logging(level: str = "INFO") -> None:
    handler = logging.StreamHandler(sys.stdout)
    handler.setLevel(level)
    handler.addFilter(RequestIdFilter())
    handler.setFormatter(logging.Formatter(FORMAT))

    root = logging.getLogger()
    root.setLevel(level)
    root.handlers.clear()
    root.addHandler(handler)

    # portal.request already emits one line per request.
    logging.getLogger("werkzeug").setLevel(logging.WARNING)
    # Cell-level noise from spreadsheet and PDF builders.
    for noisy in ("openpyxl", "reportlab"):
        logging.getLogger(noisy).setLevel(logging.WARNING)
