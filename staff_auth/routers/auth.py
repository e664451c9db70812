"""Authentication endpoints (login, refresh, logout, sessions)."""

from __future__ import annotations

import logging
from uuid import UUID

from fastapi import APIRouter, BackgroundTasks, Depends, Request
from fastapi.responses import JSONResponse
from sqlalchemy.orm import Session

from staff_auth.core.deps import client_ip, get_audit, get_current_claims, require_permission
from staff_auth.core.exceptions import AuthenticationException, NotFoundError
from staff_auth.core.permissions import Permission
from staff_auth.core.security import AccessClaims, create_access_token
from staff_auth.db.session import get_db
from staff_auth.models.enums import AuditAction
from staff_auth.schemas.auth import (
    InvalidateRequest,
    LoginRequest,
    LogoutRequest,
    MessageResponse,
    RefreshRequest,
    SessionListResponse,
    SessionOut,
    StaffOut,
    TokenPairResponse,
    VerifyResponse,
)
from staff_auth.services.audit import AuditDispatcher, AuditEvent
from staff_auth.services.refresh_tokens import (
    RefreshTokenError,
    invalidate_user_tokens,
    issue_refresh_token,
    revoke_all_refresh_tokens,
    revoke_presented_refresh_token,
    rotate_refresh_token,
)
from staff_auth.services.sessions import list_active_sessions, revoke_session
from staff_auth.services.staff import authenticate_staff

router = APIRouter()
logger = logging.getLogger(__name__)


def _authentication_failed(background_tasks: BackgroundTasks, message: str = "authentication_failed") -> JSONResponse:
    # Returned rather than raised so queued audit events still run.
    exc = AuthenticationException(message)
    return JSONResponse(
        status_code=exc.status_code,
        content=exc.to_dict(),
        headers=exc.headers,
        background=background_tasks,
    )


@router.post("/login", response_model=TokenPairResponse)
def login(
    payload: LoginRequest,
    request: Request,
    background_tasks: BackgroundTasks,
    db: Session = Depends(get_db),
    audit: AuditDispatcher = Depends(get_audit),
):
    ip_address = client_ip(request)
    staff = authenticate_staff(db, payload.email, payload.password)
    if staff is None:
        audit.emit(
            AuditEvent(
                actor_id=None,
                action=AuditAction.login_failed,
                details={"email": payload.email},
                ip_address=ip_address,
                severity="warning",
            )
        )
        return _authentication_failed(background_tasks, "invalid_credentials")

    issued = issue_refresh_token(
        db,
        staff.id,
        ip_address=ip_address,
        user_agent=request.headers.get("User-Agent"),
    )
    access_token = create_access_token(staff, session_id=issued.session.id)
    audit.emit(
        AuditEvent(
            actor_id=staff.id,
            action=AuditAction.login,
            details={"session_id": issued.session.id},
            ip_address=ip_address,
        )
    )
    return TokenPairResponse(
        access_token=access_token,
        refresh_token=issued.raw_token,
        expires_at=issued.record.expires_at,
        user=StaffOut.model_validate(staff),
    )


@router.post("/refresh", response_model=TokenPairResponse)
def refresh(
    payload: RefreshRequest,
    request: Request,
    background_tasks: BackgroundTasks,
    db: Session = Depends(get_db),
    audit: AuditDispatcher = Depends(get_audit),
):
    try:
        result = rotate_refresh_token(
            db,
            payload.refresh_token,
            ip_address=client_ip(request),
            user_agent=request.headers.get("User-Agent"),
            audit=audit,
        )
    except RefreshTokenError:
        # Every refusal looks the same to the client; the reason is audited.
        return _authentication_failed(background_tasks)

    return TokenPairResponse(
        access_token=result.access_token,
        refresh_token=result.refresh_token,
        expires_at=result.expires_at,
        user=StaffOut.model_validate(result.user),
    )


@router.post("/logout", response_model=MessageResponse)
def logout(
    request: Request,
    payload: LogoutRequest | None = None,
    claims: AccessClaims = Depends(get_current_claims),
    db: Session = Depends(get_db),
    audit: AuditDispatcher = Depends(get_audit),
) -> MessageResponse:
    revoked = False
    if payload is not None and payload.refresh_token:
        revoked = revoke_presented_refresh_token(db, claims.user_id, payload.refresh_token)
    elif claims.session_id is not None:
        revoked = revoke_session(db, claims.user_id, claims.session_id)

    audit.emit(
        AuditEvent(
            actor_id=claims.user_id,
            action=AuditAction.logout,
            details={"method": "single_session", "revoked": revoked},
            ip_address=client_ip(request),
        )
    )
    return MessageResponse(message="logged_out")


@router.post("/logout-all", response_model=MessageResponse)
def logout_all(
    request: Request,
    claims: AccessClaims = Depends(get_current_claims),
    db: Session = Depends(get_db),
    audit: AuditDispatcher = Depends(get_audit),
) -> MessageResponse:
    revoked = revoke_all_refresh_tokens(db, claims.user_id)
    audit.emit(
        AuditEvent(
            actor_id=claims.user_id,
            action=AuditAction.logout_all,
            details={"method": "all_sessions", "revoked_tokens": revoked},
            ip_address=client_ip(request),
        )
    )
    return MessageResponse(message="all_sessions_revoked")


@router.get("/sessions", response_model=SessionListResponse)
def sessions(
    claims: AccessClaims = Depends(get_current_claims),
    db: Session = Depends(get_db),
) -> SessionListResponse:
    views = list_active_sessions(db, claims.user_id, current_session_id=claims.session_id)
    return SessionListResponse(
        sessions=[
            SessionOut(
                id=view.id,
                device=view.device,
                location=view.ip_address,
                last_activity=view.last_activity,
                started_at=view.started_at,
                is_current=view.is_current,
            )
            for view in views
        ]
    )


@router.delete("/sessions/{session_id}", response_model=MessageResponse)
def delete_session(
    session_id: UUID,
    request: Request,
    claims: AccessClaims = Depends(get_current_claims),
    db: Session = Depends(get_db),
    audit: AuditDispatcher = Depends(get_audit),
) -> MessageResponse:
    if not revoke_session(db, claims.user_id, session_id):
        raise NotFoundError("session_not_found", details={"session_id": str(session_id)})

    audit.emit(
        AuditEvent(
            actor_id=claims.user_id,
            action=AuditAction.revoke_session,
            details={"session_id": session_id},
            ip_address=client_ip(request),
        )
    )
    return MessageResponse(message="session_revoked")


@router.get("/verify", response_model=VerifyResponse)
def verify(claims: AccessClaims = Depends(get_current_claims)) -> VerifyResponse:
    return VerifyResponse(
        user_id=claims.user_id,
        email=claims.email,
        role=claims.role,
        permissions=sorted(p.value for p in claims.permissions),
    )


@router.post("/staff/{user_id}/invalidate", response_model=MessageResponse)
def invalidate_staff_tokens(
    user_id: UUID,
    request: Request,
    payload: InvalidateRequest | None = None,
    claims: AccessClaims = Depends(require_permission(Permission.manage_staff)),
    db: Session = Depends(get_db),
    audit: AuditDispatcher = Depends(get_audit),
) -> MessageResponse:
    reason = payload.reason if payload is not None else "security_update"
    if not invalidate_user_tokens(
        db,
        user_id,
        reason=reason,
        actor_id=claims.user_id,
        ip_address=client_ip(request),
        audit=audit,
    ):
        raise NotFoundError("staff_not_found", details={"user_id": str(user_id)})
    return MessageResponse(message="tokens_invalidated")
