"""Read-side helpers over the staff credential store."""

from __future__ import annotations

import logging
from uuid import UUID

from sqlalchemy.orm import Session

from staff_auth.core.security import verify_password
from staff_auth.models.staff import Staff

logger = logging.getLogger(__name__)


def get_staff(db: Session, user_id: UUID) -> Staff | None:
    return db.get(Staff, user_id)


def find_staff_by_email(db: Session, email: str) -> Staff | None:
    return db.query(Staff).filter(Staff.email == email.strip().lower()).first()


def authenticate_staff(db: Session, email: str, password: str) -> Staff | None:
    staff = find_staff_by_email(db, email)
    if not staff:
        logger.warning("Login failed: staff not found (%s)", email)
        return None
    if not verify_password(password, staff.password_hash):
        logger.warning("Login failed: invalid password (%s)", staff.email)
        return None
    if not staff.is_active:
        logger.warning("Login failed: account disabled (%s)", staff.email)
        return None
    logger.info("Staff authenticated: %s", staff.email)
    return staff
