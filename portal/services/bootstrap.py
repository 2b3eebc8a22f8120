from __future__ import annotations

import logging

from sqlalchemy import select

from portal.db import SessionLocal
from portal.models import User
from portal.utils.auth import ADMIN, hash_password
from portal.utils.datetime import iso_utc_now

log = logging.getLogger("portal.bootstrap")


def ensure_admin(cfg) -> bool:
    """Create the configured admin account when no admin exists yet."""
    if not cfg.ADMIN_EMAIL or not cfg.ADMIN_PASSWORD:
        return False

    with SessionLocal() as db:
        existing = db.execute(select(User.id).where(User.role == ADMIN).limit(1)).scalar_one_or_none()
        if existing is not None:
            return False
        if db.execute(select(User.id).where(User.email == cfg.ADMIN_EMAIL)).scalar_one_or_none() is not None:
            log.warning("seed admin email=%s already used by a non-admin account", cfg.ADMIN_EMAIL)
            return False

        now = iso_utc_now()
        db.add(
            User(
                name=cfg.ADMIN_NAME,
                email=cfg.ADMIN_EMAIL,
                password_hash=hash_password(cfg.ADMIN_PASSWORD),
                role=ADMIN,
                daily_quota=cfg.DEFAULT_DAILY_QUOTA,
                is_active=True,
                created_at=now,
                updated_at=now,
            )
        )
        db.commit()
    log.info("seeded admin account email=%s", cfg.ADMIN_EMAIL)
    return True
