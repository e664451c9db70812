"""Active session projection over the refresh token ledger."""

from __future__ import annotations

import datetime as dt
from uuid import UUID, uuid4

from sqlalchemy import Boolean, ForeignKey, Index
from sqlalchemy.orm import Mapped, mapped_column

from staff_auth.db.base import Base, UTCDateTime, utcnow


class ActiveSession(Base):
    __tablename__ = "active_sessions"
    __table_args__ = (
        Index("ix_active_sessions_user_id_is_active", "user_id", "is_active"),
    )

    id: Mapped[UUID] = mapped_column(primary_key=True, default=uuid4)
    user_id: Mapped[UUID] = mapped_column(ForeignKey("staff.id", ondelete="CASCADE"), nullable=False)
    # Current link of the rotation chain; repointed on every rotation.
    refresh_token_id: Mapped[UUID] = mapped_column(
        ForeignKey("refresh_tokens.id", ondelete="CASCADE"),
        index=True,
        nullable=False,
    )
    last_activity: Mapped[dt.datetime] = mapped_column(UTCDateTime, default=utcnow, nullable=False)
    is_active: Mapped[bool] = mapped_column(Boolean, default=True, nullable=False)
    created_at: Mapped[dt.datetime] = mapped_column(UTCDateTime, default=utcnow, nullable=False)
