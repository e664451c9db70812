from __future__ import annotations

import os
import sys
from pathlib import Path
from uuid import uuid4

import pytest

BASE_DIR = Path(__file__).resolve().parents[1]
if str(BASE_DIR) not in sys.path:
    sys.path.insert(0, str(BASE_DIR))

os.environ.setdefault("JWT_SECRET", "test-signing-key-0123456789abcdef0123456789abcdef")
os.environ["DATABASE_URL"] = "sqlite://"
os.environ["TOKEN_CLEANUP_ENABLED"] = "false"

from fastapi.testclient import TestClient  # noqa: E402
from sqlalchemy import create_engine  # noqa: E402
from sqlalchemy.orm import sessionmaker  # noqa: E402
from sqlalchemy.pool import StaticPool  # noqa: E402

import staff_auth.models  # noqa: E402,F401
from staff_auth.core.deps import get_audit_sink  # noqa: E402
from staff_auth.core.security import hash_password  # noqa: E402
from staff_auth.db.base import Base  # noqa: E402
from staff_auth.db.session import get_db  # noqa: E402
from staff_auth.models.enums import StaffRole  # noqa: E402
from staff_auth.models.staff import Staff  # noqa: E402
from staff_auth.services.audit import AuditDispatcher, AuditEvent  # noqa: E402

DEFAULT_PASSWORD = "correct horse battery"


class RecordingSink:
    def __init__(self) -> None:
        self.events: list[AuditEvent] = []

    def write(self, event: AuditEvent) -> None:
        self.events.append(event)

    def actions(self) -> list[str]:
        return [event.action.value for event in self.events]


@pytest.fixture()
def engine():
    engine = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    Base.metadata.create_all(engine)
    yield engine
    engine.dispose()


@pytest.fixture()
def session_factory(engine):
    return sessionmaker(bind=engine, autocommit=False, autoflush=False)


@pytest.fixture()
def db(session_factory):
    session = session_factory()
    try:
        yield session
    finally:
        session.close()


@pytest.fixture()
def audit_sink() -> RecordingSink:
    return RecordingSink()


@pytest.fixture()
def audit(audit_sink) -> AuditDispatcher:
    return AuditDispatcher(audit_sink)


@pytest.fixture()
def make_staff(db):
    def _make(
        email: str = "staff@example.com",
        *,
        role: StaffRole = StaffRole.staff,
        password: str = DEFAULT_PASSWORD,
        is_active: bool = True,
        **flags: bool,
    ) -> Staff:
        staff = Staff(
            id=uuid4(),
            email=email,
            name=email.split("@", 1)[0].title(),
            password_hash=hash_password(password),
            role=role,
            is_active=is_active,
            token_version=0,
            can_manage_messages=flags.get("can_manage_messages", True),
            can_manage_consultations=flags.get("can_manage_consultations", True),
            can_manage_chats=flags.get("can_manage_chats", True),
            can_view_analytics=flags.get("can_view_analytics", False),
        )
        db.add(staff)
        db.commit()
        return staff

    return _make


@pytest.fixture()
def client(session_factory, audit_sink):
    from staff_auth.main import create_app

    app = create_app()

    def override_get_db():
        session = session_factory()
        try:
            yield session
        finally:
            session.close()

    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_audit_sink] = lambda: audit_sink
    with TestClient(app) as test_client:
        yield test_client
