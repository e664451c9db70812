"""Refresh token ledger and rotation protocol.

Each raw refresh token is random, handed to exactly one client once, and
stored only as its sha256 digest. Rotation retires the presented token and
links it to its successor. Presenting a retired token again is treated as
theft: every live token of the owner is revoked and every session closed.

Retirement is immediate. A retired token has ``revoked_at`` set to the
rotation instant, and any later presentation, including a client retry that
never saw the first response, takes the reuse path.
"""

from __future__ import annotations

import datetime as dt
import enum
import logging
from dataclasses import dataclass
from uuid import UUID, uuid4

from sqlalchemy import select
from sqlalchemy.orm import Session

from staff_auth.core.config import settings
from staff_auth.core.security import create_access_token, generate_refresh_token, hash_refresh_token
from staff_auth.db.base import utcnow
from staff_auth.models.active_session import ActiveSession
from staff_auth.models.enums import AuditAction
from staff_auth.models.refresh_token import RefreshToken
from staff_auth.models.staff import Staff
from staff_auth.services.audit import AuditDispatcher, AuditEvent

logger = logging.getLogger(__name__)

MAX_IP_LEN = 45
MAX_USER_AGENT_LEN = 512


class RefreshFailure(str, enum.Enum):
    invalid_token = "invalid_token"
    expired = "expired"
    reuse_detected = "reuse_detected"
    account_disabled = "account_disabled"


class RefreshTokenError(Exception):
    """Rotation refused. Callers must not reveal ``kind`` to the client."""

    def __init__(self, kind: RefreshFailure, *, user_id: UUID | None = None):
        self.kind = kind
        self.user_id = user_id
        super().__init__(kind.value)


@dataclass(frozen=True)
class IssuedRefreshToken:
    raw_token: str
    record: RefreshToken
    session: ActiveSession


@dataclass(frozen=True)
class RotationResult:
    access_token: str
    refresh_token: str
    expires_at: dt.datetime
    user: Staff
    session_id: UUID


def _utcnow() -> dt.datetime:
    return utcnow()


def _refresh_expiry(now: dt.datetime) -> dt.datetime:
    return now + dt.timedelta(days=settings.REFRESH_TOKEN_EXPIRE_DAYS)


def _clip(value: str | None, limit: int) -> str | None:
    if not value:
        return None
    return value[:limit]


def _emit(audit: AuditDispatcher | None, event: AuditEvent) -> None:
    if audit is not None:
        audit.emit(event)


def _new_ledger_row(
    db: Session,
    user_id: UUID,
    ip_address: str | None,
    user_agent: str | None,
    now: dt.datetime,
) -> tuple[str, RefreshToken]:
    raw_token = generate_refresh_token()
    record = RefreshToken(
        id=uuid4(),
        user_id=user_id,
        token_hash=hash_refresh_token(raw_token),
        expires_at=_refresh_expiry(now),
        ip_address=_clip(ip_address, MAX_IP_LEN),
        user_agent=_clip(user_agent, MAX_USER_AGENT_LEN),
        created_at=now,
    )
    db.add(record)
    db.flush()
    return raw_token, record


def _revoke_all(db: Session, user_id: UUID, now: dt.datetime) -> int:
    revoked = (
        db.query(RefreshToken)
        .filter(RefreshToken.user_id == user_id, RefreshToken.revoked_at.is_(None))
        .update({RefreshToken.revoked_at: now}, synchronize_session=False)
    )
    (
        db.query(ActiveSession)
        .filter(ActiveSession.user_id == user_id, ActiveSession.is_active.is_(True))
        .update({ActiveSession.is_active: False}, synchronize_session=False)
    )
    return revoked


def issue_refresh_token(
    db: Session,
    user_id: UUID,
    *,
    ip_address: str | None = None,
    user_agent: str | None = None,
) -> IssuedRefreshToken:
    now = _utcnow()
    raw_token, record = _new_ledger_row(db, user_id, ip_address, user_agent, now)
    session = ActiveSession(
        id=uuid4(),
        user_id=user_id,
        refresh_token_id=record.id,
        last_activity=now,
        is_active=True,
        created_at=now,
    )
    db.add(session)
    db.commit()
    logger.info("Refresh token issued: user=%s session=%s", user_id, session.id)
    return IssuedRefreshToken(raw_token=raw_token, record=record, session=session)


def _reject(
    audit: AuditDispatcher | None,
    kind: RefreshFailure,
    *,
    user_id: UUID | None,
    ip_address: str | None,
    token_id: UUID | None = None,
) -> RefreshTokenError:
    logger.warning("Refresh rejected: reason=%s user=%s", kind.value, user_id)
    _emit(
        audit,
        AuditEvent(
            actor_id=user_id,
            action=AuditAction.token_refresh_failed,
            details={"reason": kind.value, "token_id": token_id},
            ip_address=ip_address,
            severity="warning",
        ),
    )
    return RefreshTokenError(kind, user_id=user_id)


def _reuse_detected(
    db: Session,
    *,
    user_id: UUID,
    token_id: UUID,
    ip_address: str | None,
    user_agent: str | None,
    audit: AuditDispatcher | None,
) -> RefreshTokenError:
    revoked = _revoke_all(db, user_id, _utcnow())
    db.commit()
    logger.critical(
        "Refresh token reuse detected: user=%s token=%s revoked=%s",
        user_id,
        token_id,
        revoked,
    )
    _emit(
        audit,
        AuditEvent(
            actor_id=user_id,
            action=AuditAction.token_reuse_detected,
            details={
                "token_id": token_id,
                "revoked_tokens": revoked,
                "user_agent": user_agent,
            },
            ip_address=ip_address,
            severity="critical",
        ),
    )
    return RefreshTokenError(RefreshFailure.reuse_detected, user_id=user_id)


def rotate_refresh_token(
    db: Session,
    raw_token: str,
    *,
    ip_address: str | None = None,
    user_agent: str | None = None,
    audit: AuditDispatcher | None = None,
) -> RotationResult:
    token_hash = hash_refresh_token(raw_token or "")
    record = db.query(RefreshToken).filter(RefreshToken.token_hash == token_hash).first()
    if record is None:
        raise _reject(audit, RefreshFailure.invalid_token, user_id=None, ip_address=ip_address)

    user_id = record.user_id
    token_id = record.id
    if record.revoked_at is not None:
        raise _reuse_detected(
            db,
            user_id=user_id,
            token_id=token_id,
            ip_address=ip_address,
            user_agent=user_agent,
            audit=audit,
        )

    now = _utcnow()
    if record.expires_at <= now:
        raise _reject(audit, RefreshFailure.expired, user_id=user_id, ip_address=ip_address, token_id=token_id)

    user = db.get(Staff, user_id)
    if user is None:
        raise _reject(audit, RefreshFailure.invalid_token, user_id=user_id, ip_address=ip_address, token_id=token_id)
    if not user.is_active:
        raise _reject(
            audit,
            RefreshFailure.account_disabled,
            user_id=user_id,
            ip_address=ip_address,
            token_id=token_id,
        )

    # Conditional retire: a concurrent rotation or logout that committed first
    # leaves nothing to update, and this request is then a reuse.
    retired = (
        db.query(RefreshToken)
        .filter(RefreshToken.id == token_id, RefreshToken.revoked_at.is_(None))
        .update({RefreshToken.revoked_at: now}, synchronize_session=False)
    )
    if retired != 1:
        db.rollback()
        raise _reuse_detected(
            db,
            user_id=user_id,
            token_id=token_id,
            ip_address=ip_address,
            user_agent=user_agent,
            audit=audit,
        )

    try:
        new_raw_token, successor = _new_ledger_row(db, user_id, ip_address, user_agent, now)
        (
            db.query(RefreshToken)
            .filter(RefreshToken.id == token_id, RefreshToken.replaced_by.is_(None))
            .update({RefreshToken.replaced_by: successor.id}, synchronize_session=False)
        )
        session = db.query(ActiveSession).filter(ActiveSession.refresh_token_id == token_id).first()
        if session is None:
            session = ActiveSession(id=uuid4(), user_id=user_id, created_at=now)
            db.add(session)
        session.refresh_token_id = successor.id
        session.last_activity = now
        session.is_active = True
        db.flush()
        access_token = create_access_token(user, session_id=session.id)
    except Exception:
        db.rollback()
        raise

    session_id = session.id
    expires_at = successor.expires_at
    db.commit()
    logger.info("Refresh token rotated: user=%s session=%s", user_id, session_id)
    _emit(
        audit,
        AuditEvent(
            actor_id=user_id,
            action=AuditAction.token_refresh,
            details={"session_id": session_id, "replaced_token_id": token_id},
            ip_address=ip_address,
        ),
    )
    return RotationResult(
        access_token=access_token,
        refresh_token=new_raw_token,
        expires_at=expires_at,
        user=user,
        session_id=session_id,
    )


def revoke_refresh_token(db: Session, token_id: UUID) -> bool:
    if db.get(RefreshToken, token_id) is None:
        return False
    now = _utcnow()
    (
        db.query(RefreshToken)
        .filter(RefreshToken.id == token_id, RefreshToken.revoked_at.is_(None))
        .update({RefreshToken.revoked_at: now}, synchronize_session=False)
    )
    (
        db.query(ActiveSession)
        .filter(ActiveSession.refresh_token_id == token_id, ActiveSession.is_active.is_(True))
        .update({ActiveSession.is_active: False}, synchronize_session=False)
    )
    db.commit()
    logger.info("Refresh token revoked: %s", token_id)
    return True


def revoke_presented_refresh_token(db: Session, user_id: UUID, raw_token: str) -> bool:
    record = (
        db.query(RefreshToken)
        .filter(
            RefreshToken.token_hash == hash_refresh_token(raw_token or ""),
            RefreshToken.user_id == user_id,
        )
        .first()
    )
    if record is None:
        return False
    return revoke_refresh_token(db, record.id)


def revoke_all_refresh_tokens(db: Session, user_id: UUID) -> int:
    revoked = _revoke_all(db, user_id, _utcnow())
    db.commit()
    logger.info("All refresh tokens revoked: user=%s count=%s", user_id, revoked)
    return revoked


def invalidate_user_tokens(
    db: Session,
    user_id: UUID,
    *,
    reason: str = "security_update",
    actor_id: UUID | None = None,
    ip_address: str | None = None,
    audit: AuditDispatcher | None = None,
) -> bool:
    """Bump the staff token version and revoke every refresh token.

    Access tokens minted before the bump stay signed and unexpired, but carry
    the old version and are refused by the authorization dependency.
    """
    if db.get(Staff, user_id) is None:
        return False
    (
        db.query(Staff)
        .filter(Staff.id == user_id)
        .update({Staff.token_version: Staff.token_version + 1}, synchronize_session=False)
    )
    revoked = _revoke_all(db, user_id, _utcnow())
    db.commit()
    logger.info("Tokens invalidated: user=%s reason=%s revoked=%s", user_id, reason, revoked)
    _emit(
        audit,
        AuditEvent(
            actor_id=actor_id or user_id,
            action=AuditAction.tokens_invalidated,
            details={"target_user_id": user_id, "reason": reason, "revoked_tokens": revoked},
            ip_address=ip_address,
            severity="warning",
        ),
    )
    return True


def cleanup_expired_refresh_tokens(db: Session, *, retention: dt.timedelta | None = None) -> int:
    if retention is None:
        retention = dt.timedelta(days=settings.TOKEN_RETENTION_DAYS)
    cutoff = _utcnow() - retention
    expired_ids = select(RefreshToken.id).where(RefreshToken.expires_at < cutoff)
    (
        db.query(ActiveSession)
        .filter(ActiveSession.refresh_token_id.in_(expired_ids))
        .delete(synchronize_session=False)
    )
    deleted = (
        db.query(RefreshToken)
        .filter(RefreshToken.expires_at < cutoff)
        .delete(synchronize_session=False)
    )
    db.commit()
    logger.info("Expired refresh tokens removed: %s", deleted)
    return deleted
