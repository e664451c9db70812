"""Auth-related schemas (login, refresh, logout, sessions)."""

from __future__ import annotations

import datetime as dt
import unicodedata
from uuid import UUID

from pydantic import BaseModel, ConfigDict, EmailStr, Field, field_validator
from pydantic.alias_generators import to_camel

from staff_auth.core.sanitize import clean_email, clean_token
from staff_auth.models.enums import StaffRole


class CamelModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, from_attributes=True)


class StaffOut(CamelModel):
    id: UUID
    email: EmailStr
    name: str
    role: StaffRole


class LoginRequest(BaseModel):
    email: EmailStr
    password: str = Field(min_length=1, max_length=128)

    @field_validator("email", mode="before")
    @classmethod
    def normalize_email(cls, value: str) -> str:
        return clean_email(value)

    @field_validator("password")
    @classmethod
    def validate_password(cls, value: str) -> str:
        if any(unicodedata.category(ch) == "Cc" for ch in value):
            raise ValueError("password_contains_control_chars")
        if not value.strip():
            raise ValueError("password_required")
        return value


class RefreshRequest(CamelModel):
    refresh_token: str = Field(min_length=1, max_length=512)

    @field_validator("refresh_token", mode="before")
    @classmethod
    def normalize_refresh_token(cls, value: str) -> str:
        return clean_token(value)


class LogoutRequest(CamelModel):
    refresh_token: str | None = Field(default=None, max_length=512)

    @field_validator("refresh_token", mode="before")
    @classmethod
    def normalize_refresh_token(cls, value: str | None) -> str | None:
        if value is None:
            return None
        return clean_token(value) or None


class TokenPairResponse(CamelModel):
    access_token: str
    refresh_token: str
    expires_at: dt.datetime
    token_type: str = "bearer"
    user: StaffOut


class SessionOut(CamelModel):
    id: UUID
    device: str
    location: str | None = None
    last_activity: dt.datetime
    started_at: dt.datetime
    is_current: bool = False


class SessionListResponse(CamelModel):
    sessions: list[SessionOut]


class VerifyResponse(CamelModel):
    valid: bool = True
    user_id: UUID
    email: str
    role: StaffRole
    permissions: list[str]


class InvalidateRequest(CamelModel):
    reason: str = Field(default="security_update", min_length=1, max_length=64)


class MessageResponse(BaseModel):
    message: str
