"""Convenience imports for Alembic metadata discovery."""

from staff_auth.models.staff import Staff
from staff_auth.models.refresh_token import RefreshToken
from staff_auth.models.active_session import ActiveSession
from staff_auth.models.audit_log import AuditLog  # noqa: F401
