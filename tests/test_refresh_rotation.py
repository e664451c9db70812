from __future__ import annotations

import datetime as dt
from uuid import uuid4

import pytest
from sqlalchemy import event

from staff_auth.core.security import hash_refresh_token, verify_access_token
from staff_auth.models.active_session import ActiveSession
from staff_auth.models.refresh_token import RefreshToken
from staff_auth.services import refresh_tokens
from staff_auth.services.refresh_tokens import (
    RefreshFailure,
    RefreshTokenError,
    issue_refresh_token,
    revoke_all_refresh_tokens,
    revoke_presented_refresh_token,
    revoke_refresh_token,
    rotate_refresh_token,
)


def _tokens_for(db, user_id) -> list[RefreshToken]:
    db.expire_all()
    return db.query(RefreshToken).filter(RefreshToken.user_id == user_id).all()


def _sessions_for(db, user_id) -> list[ActiveSession]:
    db.expire_all()
    return db.query(ActiveSession).filter(ActiveSession.user_id == user_id).all()


def _rotate_expecting(db, raw_token: str, kind: RefreshFailure, **kwargs) -> RefreshTokenError:
    with pytest.raises(RefreshTokenError) as exc_info:
        rotate_refresh_token(db, raw_token, **kwargs)
    assert exc_info.value.kind == kind
    return exc_info.value


def test_issue_stores_only_the_hash(db, make_staff) -> None:
    staff = make_staff()

    issued = issue_refresh_token(db, staff.id, ip_address="10.0.0.1", user_agent="pytest")

    row = db.get(RefreshToken, issued.record.id)
    stored_values = [str(getattr(row, column.key)) for column in RefreshToken.__table__.columns]
    assert issued.raw_token not in stored_values
    assert row.token_hash == hash_refresh_token(issued.raw_token)
    assert db.query(RefreshToken).filter(RefreshToken.token_hash == hash_refresh_token(issued.raw_token)).one().id == row.id


def test_issue_opens_a_session_for_the_new_chain(db, make_staff) -> None:
    staff = make_staff()

    issued = issue_refresh_token(db, staff.id, ip_address="10.0.0.1", user_agent="pytest")

    sessions = _sessions_for(db, staff.id)
    assert [s.id for s in sessions] == [issued.session.id]
    assert sessions[0].refresh_token_id == issued.record.id
    assert sessions[0].is_active is True
    assert issued.record.expires_at - issued.record.created_at == dt.timedelta(days=7)


def test_rotation_links_old_token_to_successor(db, make_staff, audit, audit_sink) -> None:
    staff = make_staff()
    issued = issue_refresh_token(db, staff.id)

    result = rotate_refresh_token(db, issued.raw_token, ip_address="10.0.0.2", user_agent="pytest", audit=audit)

    old = db.get(RefreshToken, issued.record.id)
    successor = db.query(RefreshToken).filter(RefreshToken.token_hash == hash_refresh_token(result.refresh_token)).one()
    assert old.revoked_at is not None
    assert old.replaced_by == successor.id
    assert successor.revoked_at is None
    assert successor.replaced_by is None
    assert result.refresh_token != issued.raw_token
    assert result.user.id == staff.id
    assert audit_sink.actions() == ["token_refresh"]

    # The successor is independently usable exactly once.
    again = rotate_refresh_token(db, result.refresh_token)
    assert again.refresh_token not in {issued.raw_token, result.refresh_token}


def test_rotation_keeps_the_session_and_repoints_it(db, make_staff) -> None:
    staff = make_staff()
    issued = issue_refresh_token(db, staff.id)

    result = rotate_refresh_token(db, issued.raw_token)

    sessions = _sessions_for(db, staff.id)
    assert len(sessions) == 1
    assert sessions[0].id == issued.session.id == result.session_id
    successor = db.query(RefreshToken).filter(RefreshToken.token_hash == hash_refresh_token(result.refresh_token)).one()
    assert sessions[0].refresh_token_id == successor.id
    assert sessions[0].is_active is True
    assert verify_access_token(result.access_token).session_id == issued.session.id


def test_second_rotation_of_same_token_is_reuse_and_revokes_everything(db, make_staff, audit, audit_sink) -> None:
    staff = make_staff()
    laptop = issue_refresh_token(db, staff.id, ip_address="10.0.0.1")
    phone = issue_refresh_token(db, staff.id, ip_address="10.0.0.2")
    rotated = rotate_refresh_token(db, laptop.raw_token, audit=audit)

    error = _rotate_expecting(db, laptop.raw_token, RefreshFailure.reuse_detected, audit=audit)

    assert error.user_id == staff.id
    assert all(token.revoked_at is not None for token in _tokens_for(db, staff.id))
    assert all(session.is_active is False for session in _sessions_for(db, staff.id))
    # Neither the fresh successor nor the other device survives the cascade.
    _rotate_expecting(db, rotated.refresh_token, RefreshFailure.reuse_detected)
    _rotate_expecting(db, phone.raw_token, RefreshFailure.reuse_detected)

    reuse_events = [e for e in audit_sink.events if e.action.value == "token_reuse_detected"]
    assert len(reuse_events) == 1
    assert reuse_events[0].severity == "critical"
    assert reuse_events[0].actor_id == staff.id


def test_reuse_cascade_leaves_other_users_alone(db, make_staff) -> None:
    victim = make_staff("victim@example.com")
    bystander = make_staff("bystander@example.com")
    stolen = issue_refresh_token(db, victim.id)
    other = issue_refresh_token(db, bystander.id)
    rotate_refresh_token(db, stolen.raw_token)

    _rotate_expecting(db, stolen.raw_token, RefreshFailure.reuse_detected)

    assert all(token.revoked_at is None for token in _tokens_for(db, bystander.id))
    assert rotate_refresh_token(db, other.raw_token).user.id == bystander.id


def test_rotation_after_logout_is_treated_as_reuse(db, make_staff) -> None:
    staff = make_staff()
    issued = issue_refresh_token(db, staff.id)
    sibling = issue_refresh_token(db, staff.id)
    assert revoke_refresh_token(db, issued.record.id) is True

    _rotate_expecting(db, issued.raw_token, RefreshFailure.reuse_detected)

    assert db.get(RefreshToken, sibling.record.id).revoked_at is not None


def test_token_expiring_exactly_now_is_expired(db, make_staff, monkeypatch) -> None:
    now = dt.datetime(2026, 3, 1, 12, 0, tzinfo=dt.timezone.utc)
    monkeypatch.setattr(refresh_tokens, "_utcnow", lambda: now)
    staff = make_staff()
    issued = issue_refresh_token(db, staff.id)
    record = db.get(RefreshToken, issued.record.id)
    record.expires_at = now
    db.commit()

    _rotate_expecting(db, issued.raw_token, RefreshFailure.expired)


def test_token_expiring_one_second_later_still_rotates(db, make_staff, monkeypatch) -> None:
    now = dt.datetime(2026, 3, 1, 12, 0, tzinfo=dt.timezone.utc)
    monkeypatch.setattr(refresh_tokens, "_utcnow", lambda: now)
    staff = make_staff()
    issued = issue_refresh_token(db, staff.id)
    record = db.get(RefreshToken, issued.record.id)
    record.expires_at = now + dt.timedelta(seconds=1)
    db.commit()

    assert rotate_refresh_token(db, issued.raw_token).user.id == staff.id


def test_expired_token_has_no_side_effects(db, make_staff, audit, audit_sink) -> None:
    staff = make_staff()
    stale = issue_refresh_token(db, staff.id)
    live = issue_refresh_token(db, staff.id)
    record = db.get(RefreshToken, stale.record.id)
    record.expires_at = dt.datetime.now(dt.timezone.utc) - dt.timedelta(seconds=1)
    db.commit()

    _rotate_expecting(db, stale.raw_token, RefreshFailure.expired, audit=audit)

    assert db.get(RefreshToken, stale.record.id).revoked_at is None
    assert db.get(RefreshToken, live.record.id).revoked_at is None
    assert db.get(ActiveSession, live.session.id).is_active is True
    # Presenting it again is still "expired", never escalated to reuse.
    _rotate_expecting(db, stale.raw_token, RefreshFailure.expired)
    assert audit_sink.events[0].details["reason"] == "expired"


def test_unknown_token_is_invalid(db, make_staff, audit, audit_sink) -> None:
    staff = make_staff()
    issue_refresh_token(db, staff.id)

    error = _rotate_expecting(db, "ab" * 64, RefreshFailure.invalid_token, audit=audit)

    assert error.user_id is None
    assert all(token.revoked_at is None for token in _tokens_for(db, staff.id))
    assert audit_sink.events[0].action.value == "token_refresh_failed"


def test_disabled_account_cannot_rotate(db, make_staff) -> None:
    staff = make_staff()
    issued = issue_refresh_token(db, staff.id)
    staff.is_active = False
    db.commit()

    _rotate_expecting(db, issued.raw_token, RefreshFailure.account_disabled)

    assert db.get(RefreshToken, issued.record.id).revoked_at is None


def test_revoke_is_idempotent(db, make_staff) -> None:
    staff = make_staff()
    issued = issue_refresh_token(db, staff.id)

    assert revoke_refresh_token(db, issued.record.id) is True
    first_revoked_at = db.get(RefreshToken, issued.record.id).revoked_at
    assert revoke_refresh_token(db, issued.record.id) is True

    db.expire_all()
    assert db.get(RefreshToken, issued.record.id).revoked_at == first_revoked_at
    assert db.get(ActiveSession, issued.session.id).is_active is False
    assert revoke_refresh_token(db, uuid4()) is False


def test_revoke_all_covers_every_live_token_and_session(db, make_staff) -> None:
    staff = make_staff()
    for ip in ("10.0.0.1", "10.0.0.2", "10.0.0.3"):
        issue_refresh_token(db, staff.id, ip_address=ip)
    already_revoked = issue_refresh_token(db, staff.id)
    revoke_refresh_token(db, already_revoked.record.id)
    original_revoked_at = db.get(RefreshToken, already_revoked.record.id).revoked_at

    assert revoke_all_refresh_tokens(db, staff.id) == 3

    tokens = _tokens_for(db, staff.id)
    assert all(token.revoked_at is not None for token in tokens)
    assert db.get(RefreshToken, already_revoked.record.id).revoked_at == original_revoked_at
    assert all(session.is_active is False for session in _sessions_for(db, staff.id))


def test_presented_token_is_only_revoked_for_its_owner(db, make_staff) -> None:
    owner = make_staff("owner@example.com")
    other = make_staff("other@example.com")
    issued = issue_refresh_token(db, owner.id)

    assert revoke_presented_refresh_token(db, other.id, issued.raw_token) is False
    assert db.get(RefreshToken, issued.record.id).revoked_at is None

    assert revoke_presented_refresh_token(db, owner.id, issued.raw_token) is True
    db.expire_all()
    assert db.get(RefreshToken, issued.record.id).revoked_at is not None


def _when_retire_runs(db, action) -> None:
    """Run ``action`` once, just before ``db`` issues its first ORM UPDATE."""
    fired: list[bool] = []

    @event.listens_for(db, "do_orm_execute")
    def _interleave(orm_execute_state) -> None:
        if orm_execute_state.is_update and not fired:
            fired.append(True)
            action()


def test_rotation_losing_the_race_to_another_rotation_is_reuse(db, session_factory, make_staff) -> None:
    staff = make_staff()
    issued = issue_refresh_token(db, staff.id)
    winners = []

    def rotate_elsewhere() -> None:
        with session_factory() as other:
            winners.append(rotate_refresh_token(other, issued.raw_token))

    _when_retire_runs(db, rotate_elsewhere)

    _rotate_expecting(db, issued.raw_token, RefreshFailure.reuse_detected)

    assert len(winners) == 1
    tokens = _tokens_for(db, staff.id)
    assert len(tokens) == 2
    assert all(token.revoked_at is not None for token in tokens)
    assert all(session.is_active is False for session in _sessions_for(db, staff.id))
    _rotate_expecting(db, winners[0].refresh_token, RefreshFailure.reuse_detected)


def test_rotation_losing_the_race_to_logout_is_reuse(db, session_factory, make_staff) -> None:
    staff = make_staff()
    issued = issue_refresh_token(db, staff.id)
    other_device = issue_refresh_token(db, staff.id)
    token_id = issued.record.id

    def logout_elsewhere() -> None:
        with session_factory() as other:
            assert revoke_refresh_token(other, token_id) is True

    _when_retire_runs(db, logout_elsewhere)

    _rotate_expecting(db, issued.raw_token, RefreshFailure.reuse_detected)

    assert all(token.revoked_at is not None for token in _tokens_for(db, staff.id))
    assert all(session.is_active is False for session in _sessions_for(db, staff.id))
    _rotate_expecting(db, other_device.raw_token, RefreshFailure.reuse_detected)
