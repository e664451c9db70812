"""Custom exceptions for application-specific error handling."""

from __future__ import annotations

from typing import Optional, Dict, Any


class StaffAuthException(Exception):
    """Base exception for all application errors."""

    def __init__(
        self,
        message: str,
        *,
        error_code: Optional[str] = None,
        details: Optional[Dict[str, Any]] = None,
        status_code: int = 400,
        headers: Optional[Dict[str, str]] = None,
    ):
        self.message = message
        self.error_code = error_code
        self.details = details or {}
        self.status_code = status_code
        self.headers = headers
        super().__init__(self.message)

    def to_dict(self) -> Dict[str, Any]:
        """Convert exception to dictionary for API responses."""
        return {
            "error": self.__class__.__name__,
            "message": self.message,
            "error_code": self.error_code,
            "details": self.details,
        }


class NotFoundError(StaffAuthException):
    """Raised when a requested resource is not found."""

    def __init__(self, message: str = "not_found", *, details: Optional[Dict[str, Any]] = None):
        super().__init__(message, error_code="NOT_FOUND", details=details, status_code=404)


# ===== CONFIGURATION EXCEPTIONS =====


class SigningKeyUnavailableError(StaffAuthException):
    """Raised when token signing key material is missing or unusable.

    This is a startup fault: the application factory refuses to build an app
    while it holds, so it never surfaces per request.
    """

    def __init__(self, message: str = "Signing key unavailable"):
        super().__init__(message, error_code="SIGNING_UNAVAILABLE", status_code=500)


# ===== AUTHENTICATION/AUTHORIZATION EXCEPTIONS =====


class AuthenticationException(StaffAuthException):
    """Base exception for authentication errors."""

    def __init__(
        self,
        message: str = "authentication_failed",
        *,
        error_code: str = "AUTHENTICATION_ERROR",
        status_code: int = 401,
        details: Optional[Dict[str, Any]] = None,
    ):
        # RFC 6750: a 401 names the scheme the client must use.
        headers = {"WWW-Authenticate": "Bearer"} if status_code == 401 else None
        super().__init__(message, error_code=error_code, details=details, status_code=status_code, headers=headers)


class ExpiredTokenError(AuthenticationException):
    """Raised when an access token has expired."""

    def __init__(self, message: str = "Token has expired"):
        super().__init__(message, error_code="EXPIRED_TOKEN", status_code=401)


class InsufficientPermissionsError(AuthenticationException):
    """Raised when user lacks required permissions."""

    def __init__(self, message: str = "Insufficient permissions"):
        super().__init__(message, error_code="INSUFFICIENT_PERMISSIONS", status_code=403)
