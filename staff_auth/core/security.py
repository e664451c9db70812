"""Security helpers for hashing passwords and refresh tokens and issuing JWTs."""

from __future__ import annotations

import datetime as dt
import enum
import hashlib
import secrets
from dataclasses import dataclass
from typing import Any
from uuid import UUID, uuid4

from jose import ExpiredSignatureError, JWTError, jwt
from passlib.context import CryptContext

from staff_auth.core.config import settings
from staff_auth.core.exceptions import SigningKeyUnavailableError
from staff_auth.core.permissions import Permission, parse_permissions, resolve_permissions
from staff_auth.models.enums import StaffRole
from staff_auth.models.staff import Staff

pwd_context = CryptContext(schemes=["pbkdf2_sha256"], deprecated="auto")
ACCESS_TOKEN_TYPE = "access"


class AccessFailure(str, enum.Enum):
    expired = "expired"
    invalid = "invalid"


class AccessTokenError(Exception):
    """Access token rejected; ``kind`` tells callers whether a refresh can help."""

    def __init__(self, kind: AccessFailure):
        self.kind = kind
        super().__init__(kind.value)


@dataclass(frozen=True)
class AccessClaims:
    user_id: UUID
    email: str
    role: StaffRole
    token_version: int
    permissions: frozenset[Permission]
    session_id: UUID | None
    expires_at: dt.datetime


def hash_password(password: str) -> str:
    return pwd_context.hash(password)


def verify_password(password: str, hashed: str) -> bool:
    return pwd_context.verify(password, hashed)


def generate_refresh_token() -> str:
    return secrets.token_hex(settings.REFRESH_TOKEN_BYTES)


def hash_refresh_token(raw_token: str) -> str:
    return hashlib.sha256(raw_token.encode("utf-8")).hexdigest()


def _signing_key() -> str:
    secret = (settings.JWT_SECRET or "").strip()
    if not secret:
        raise SigningKeyUnavailableError("JWT_SECRET is not configured")
    return secret


def create_access_token(
    staff: Staff,
    *,
    session_id: UUID | None = None,
    expires_delta: dt.timedelta | None = None,
) -> str:
    now = dt.datetime.now(dt.timezone.utc)
    expire = now + (expires_delta or dt.timedelta(minutes=settings.ACCESS_TOKEN_EXPIRE_MINUTES))
    role = staff.role if isinstance(staff.role, StaffRole) else StaffRole(staff.role)
    claims: dict[str, Any] = {
        "sub": str(staff.id),
        "email": staff.email,
        "role": role.value,
        "tv": int(staff.token_version or 0),
        "permissions": sorted(p.value for p in resolve_permissions(staff)),
        "sid": str(session_id) if session_id else None,
        "jti": str(uuid4()),
        "type": ACCESS_TOKEN_TYPE,
        "iat": int(now.timestamp()),
        "exp": expire,
    }
    return jwt.encode(claims, _signing_key(), algorithm=settings.JWT_ALGORITHM)


def verify_access_token(token: str) -> AccessClaims:
    try:
        payload = jwt.decode(token, _signing_key(), algorithms=[settings.JWT_ALGORITHM])
    except ExpiredSignatureError as exc:
        raise AccessTokenError(AccessFailure.expired) from exc
    except JWTError as exc:
        raise AccessTokenError(AccessFailure.invalid) from exc

    if payload.get("type") != ACCESS_TOKEN_TYPE:
        raise AccessTokenError(AccessFailure.invalid)
    try:
        session_id = payload.get("sid")
        return AccessClaims(
            user_id=UUID(str(payload["sub"])),
            email=str(payload["email"]),
            role=StaffRole(payload["role"]),
            token_version=int(payload["tv"]),
            permissions=parse_permissions(payload.get("permissions") or []),
            session_id=UUID(str(session_id)) if session_id else None,
            expires_at=dt.datetime.fromtimestamp(int(payload["exp"]), tz=dt.timezone.utc),
        )
    except (KeyError, TypeError, ValueError) as exc:
        raise AccessTokenError(AccessFailure.invalid) from exc
