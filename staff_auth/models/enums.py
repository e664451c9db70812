"""Shared enum values used by the database models and schemas."""

from __future__ import annotations

import enum


class StaffRole(str, enum.Enum):
    admin = "admin"
    manager = "manager"
    staff = "staff"


class AuditAction(str, enum.Enum):
    login = "login"
    login_failed = "login_failed"
    logout = "logout"
    logout_all = "logout_all"
    token_refresh = "token_refresh"
    token_refresh_failed = "token_refresh_failed"
    token_reuse_detected = "token_reuse_detected"
    revoke_session = "revoke_session"
    tokens_invalidated = "tokens_invalidated"
