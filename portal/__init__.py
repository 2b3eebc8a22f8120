from __future__ import annotations

from dotenv import load_dotenv
from flask import Flask
from flask_cors import CORS

from portal.config import get_config
from portal.db import init_db
from portal.middlewares.error_handler import init_error_handlers
from portal.middlewares.logging import init_request_logging
from portal.middlewares.rate_limit import init_rate_limiting
from portal.middlewares.request_id import init_request_id
from portal.middlewares.security_headers import init_security_headers
from portal.routes.alerts import alerts_bp, notifications_bp, reminders_bp
from portal.routes.analytics import analytics_bp
from portal.routes.applications import applications_bp
from portal.routes.approvals import approvals_bp
from portal.routes.assessments import assessments_bp
from portal.routes.attendance import attendance_bp
from portal.routes.audit import audit_bp
from portal.routes.auth import auth_bp
from portal.routes.candidates import candidates_bp
from portal.routes.core import core_bp
from portal.routes.interviews import interviews_bp
from portal.routes.pdf import pdf_bp
from portal.routes.profile import profile_bp
from portal.routes.reports import reports_bp
from portal.routes.users import users_bp
from portal.services.automation import start_automation
from portal.services.bootstrap import ensure_admin
from portal.utils.logging import setup_logging


def create_app() -> Flask:
    load_dotenv()

    cfg = get_config()
    setup_logging(cfg.LOG_LEVEL)

    app = Flask(__name__)
    app.config["CFG"] = cfg

    CORS(
        app,
        origins=cfg.CORS_ORIGINS,
        supports_credentials=cfg.CORS_ALLOW_CREDENTIALS,
        allow_headers=["Content-Type", "Authorization", "X-Request-ID"],
        expose_headers=["X-Request-ID", "Content-Disposition"],
        methods=["GET", "POST", "PUT", "PATCH", "DELETE", "OPTIONS"],
        max_age=3600,
    )

    init_request_id(app)
    init_security_headers(app)
    init_rate_limiting(app)
    init_request_logging(app)
    init_error_handlers(app)

    init_db(app)
    ensure_admin(cfg)

    app.register_blueprint(core_bp)
    app.register_blueprint(auth_bp, url_prefix="/api/v1/auth")
    app.register_blueprint(profile_bp, url_prefix="/api/v1/profile")
    app.register_blueprint(users_bp, url_prefix="/api/v1/users")
    app.register_blueprint(candidates_bp, url_prefix="/api/v1/candidates")
    app.register_blueprint(applications_bp, url_prefix="/api/v1/applications")
    app.register_blueprint(interviews_bp, url_prefix="/api/v1/interviews")
    app.register_blueprint(assessments_bp, url_prefix="/api/v1/assessments")
    app.register_blueprint(approvals_bp, url_prefix="/api/v1/pending-approvals")
    app.register_blueprint(attendance_bp, url_prefix="/api/v1/attendance")
    app.register_blueprint(alerts_bp, url_prefix="/api/v1/alerts")
    app.register_blueprint(notifications_bp, url_prefix="/api/v1/notifications")
    app.register_blueprint(reminders_bp, url_prefix="/api/v1/reminders")
    app.register_blueprint(reports_bp, url_prefix="/api/v1/reports")
    app.register_blueprint(audit_bp, url_prefix="/api/v1/audit")
    app.register_blueprint(analytics_bp, url_prefix="/api/v1/analytics")
    app.register_blueprint(pdf_bp, url_prefix="/api/v1/pdf")

    if not cfg.TESTING:
        start_automation(cfg)

    return app
