"""Staff account model owned by the credential store."""

from __future__ import annotations

import datetime as dt
from uuid import UUID, uuid4

from sqlalchemy import Boolean, Enum, Integer, String
from sqlalchemy.orm import Mapped, mapped_column

from staff_auth.db.base import Base, UTCDateTime, utcnow
from staff_auth.models.enums import StaffRole


class Staff(Base):
    __tablename__ = "staff"

    id: Mapped[UUID] = mapped_column(primary_key=True, default=uuid4)
    email: Mapped[str] = mapped_column(String(255), unique=True, index=True, nullable=False)
    name: Mapped[str] = mapped_column(String(255), nullable=False)
    password_hash: Mapped[str] = mapped_column(String(255), nullable=False)
    role: Mapped[StaffRole] = mapped_column(
        Enum(StaffRole, name="staff_role", values_callable=lambda x: [e.value for e in x]),
        default=StaffRole.staff,
        nullable=False,
    )
    is_active: Mapped[bool] = mapped_column(Boolean, default=True, nullable=False)
    token_version: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    can_manage_messages: Mapped[bool] = mapped_column(Boolean, default=True, nullable=False)
    can_manage_consultations: Mapped[bool] = mapped_column(Boolean, default=True, nullable=False)
    can_manage_chats: Mapped[bool] = mapped_column(Boolean, default=True, nullable=False)
    can_view_analytics: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)
    created_at: Mapped[dt.datetime] = mapped_column(UTCDateTime, default=utcnow)
