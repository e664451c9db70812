"""Session registry: per-device view over live refresh token chains."""

from __future__ import annotations

import datetime as dt
import logging
from dataclasses import dataclass
from uuid import UUID

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from staff_auth.db.base import utcnow
from staff_auth.models.active_session import ActiveSession
from staff_auth.models.refresh_token import RefreshToken
from staff_auth.services.refresh_tokens import revoke_refresh_token

logger = logging.getLogger(__name__)

# Checked in order; several user agents mention more than one family
# (Android agents contain "Linux", iOS agents contain "Mac OS X",
# Edge and Chrome agents both contain "Safari").
_OS_MARKERS: tuple[tuple[str, str], ...] = (
    ("Android", "Android"),
    ("iPhone", "iOS"),
    ("iPad", "iOS"),
    ("Windows", "Windows"),
    ("Mac", "macOS"),
    ("Linux", "Linux"),
)
_BROWSER_MARKERS: tuple[tuple[str, str], ...] = (
    ("Edg", "Edge"),
    ("Firefox", "Firefox"),
    ("Chrome", "Chrome"),
    ("Safari", "Safari"),
)


@dataclass(frozen=True)
class SessionView:
    id: UUID
    device: str
    ip_address: str | None
    user_agent: str | None
    last_activity: dt.datetime
    started_at: dt.datetime
    is_current: bool = False


def describe_user_agent(user_agent: str | None) -> str:
    if not user_agent:
        return "Unknown Device"
    os_name = next((label for marker, label in _OS_MARKERS if marker in user_agent), "Unknown OS")
    browser = next((label for marker, label in _BROWSER_MARKERS if marker in user_agent), "Unknown Browser")
    return f"{browser} on {os_name}"


def list_active_sessions(
    db: Session,
    user_id: UUID,
    *,
    current_session_id: UUID | None = None,
) -> list[SessionView]:
    now = utcnow()
    rows = (
        db.query(ActiveSession, RefreshToken)
        .join(RefreshToken, ActiveSession.refresh_token_id == RefreshToken.id)
        .filter(
            ActiveSession.user_id == user_id,
            ActiveSession.is_active.is_(True),
            RefreshToken.revoked_at.is_(None),
            RefreshToken.expires_at > now,
        )
        .order_by(ActiveSession.last_activity.desc())
        .all()
    )
    return [
        SessionView(
            id=session.id,
            device=describe_user_agent(token.user_agent),
            ip_address=token.ip_address,
            user_agent=token.user_agent,
            last_activity=session.last_activity,
            started_at=session.created_at,
            is_current=current_session_id is not None and session.id == current_session_id,
        )
        for session, token in rows
    ]


def touch_session(db: Session, session_id: UUID) -> bool:
    """Record activity on a session. Best effort: store errors are logged, never raised."""
    try:
        updated = (
            db.query(ActiveSession)
            .filter(ActiveSession.id == session_id, ActiveSession.is_active.is_(True))
            .update({ActiveSession.last_activity: utcnow()}, synchronize_session=False)
        )
        db.commit()
    except SQLAlchemyError:
        logger.exception("Session activity update failed: %s", session_id)
        db.rollback()
        return False
    return updated == 1


def revoke_session(db: Session, user_id: UUID, session_id: UUID) -> bool:
    session = db.get(ActiveSession, session_id)
    if session is None or session.user_id != user_id or not session.is_active:
        return False
    revoke_refresh_token(db, session.refresh_token_id)
    logger.info("Session revoked: user=%s session=%s", user_id, session_id)
    return True
