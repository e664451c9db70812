"""Common FastAPI dependencies for authentication, authorization and auditing."""

from __future__ import annotations

from fastapi import BackgroundTasks, Depends, Request
from sqlalchemy.orm import Session

from staff_auth.core.exceptions import AuthenticationException, ExpiredTokenError, InsufficientPermissionsError
from staff_auth.core.permissions import Permission, has_permission
from staff_auth.core.security import AccessClaims, AccessFailure, AccessTokenError, verify_access_token
from staff_auth.db.session import SessionLocal, get_db
from staff_auth.services.audit import AuditDispatcher, AuditSink, DatabaseAuditSink
from staff_auth.services.sessions import touch_session
from staff_auth.services.staff import get_staff


def _extract_bearer_token(request: Request) -> str | None:
    authorization = request.headers.get("Authorization", "")
    if not authorization:
        return None
    scheme, _, token = authorization.partition(" ")
    if scheme.lower() != "bearer":
        return None
    cleaned = token.strip()
    return cleaned or None


def _invalid_token() -> AuthenticationException:
    return AuthenticationException("invalid_token", error_code="INVALID_TOKEN", status_code=401)


def client_ip(request: Request) -> str | None:
    return request.client.host if request.client else None


def get_audit_sink() -> AuditSink:
    return DatabaseAuditSink(SessionLocal)


def get_audit(background_tasks: BackgroundTasks, sink: AuditSink = Depends(get_audit_sink)) -> AuditDispatcher:
    return AuditDispatcher(sink, background_tasks)


def get_current_claims(request: Request, db: Session = Depends(get_db)) -> AccessClaims:
    token = _extract_bearer_token(request)
    if not token:
        raise AuthenticationException("not_authenticated", error_code="NOT_AUTHENTICATED", status_code=401)

    try:
        claims = verify_access_token(token)
    except AccessTokenError as exc:
        if exc.kind == AccessFailure.expired:
            raise ExpiredTokenError("access_token_expired")
        raise _invalid_token()

    # Signature and expiry are checked without the store; the version check
    # is what makes a forced invalidation bite before natural expiry.
    staff = get_staff(db, claims.user_id)
    if staff is None or not staff.is_active:
        raise _invalid_token()
    if staff.token_version != claims.token_version:
        raise _invalid_token()

    if claims.session_id is not None:
        touch_session(db, claims.session_id)
    return claims


def require_permission(permission: Permission):
    def _checker(claims: AccessClaims = Depends(get_current_claims)) -> AccessClaims:
        if not has_permission(claims.permissions, permission):
            raise InsufficientPermissionsError("forbidden")
        return claims

    return _checker
