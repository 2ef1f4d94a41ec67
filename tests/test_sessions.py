"""
tests/test_sessions.py -- SessionEngine lifecycle with a pinned clock.

Covers:
  - create_session: id is the token digest, expires_at = now + 30 days
  - validate: unknown token, live session, expired session (row deleted)
  - renewal: outside the window untouched, inside the window extended to
    now + 30 days and persisted, failed renewal write keeps the old expiry
  - invalidate_session idempotence, invalidate_user_sessions, purge_expired
"""

from __future__ import annotations

from datetime import timedelta

import pytest

from auth.errors import StoreError
from auth.models import User
from auth.sessions import SessionEngine
from auth.store import SQLSessionStore
from auth.tokens import derive_session_id, generate_session_token, generate_user_id
from conftest import T0, TEST_CONFIG, FixedClock


@pytest.fixture
def user(store: SQLSessionStore) -> User:
    u = User(id=generate_user_id(), username="alice", password_hash="$argon2id$fake")
    store.insert_user(u)
    return u


class _RenewalFailingStore:
    """Delegates to a real store but refuses expiry updates."""

    def __init__(self, inner: SQLSessionStore) -> None:
        self._inner = inner

    def update_session_expiry(self, session_id, new_expiry):
        raise StoreError("write refused")

    def __getattr__(self, name):
        return getattr(self._inner, name)


class TestCreateSession:
    def test_session_id_is_token_digest(self, engine: SessionEngine, user: User) -> None:
        token = generate_session_token()
        session = engine.create_session(token, user.id)
        assert session.id == derive_session_id(token)
        assert session.user_id == user.id
        assert session.expires_at == T0 + timedelta(days=30)

    def test_session_is_persisted(self, engine: SessionEngine, store: SQLSessionStore, user: User) -> None:
        token = generate_session_token()
        session = engine.create_session(token, user.id)
        assert store.find_session_with_user(session.id) is not None


class TestValidateSessionToken:
    def test_unknown_token(self, engine: SessionEngine) -> None:
        result = engine.validate_session_token(generate_session_token())
        assert result.session is None
        assert result.user is None
        assert not result.is_valid

    def test_fresh_session_is_valid_and_not_renewed(
        self, engine: SessionEngine, clock: FixedClock, store: SQLSessionStore, user: User
    ) -> None:
        token = generate_session_token()
        created = engine.create_session(token, user.id)
        clock.advance(days=5)

        result = engine.validate_session_token(token)
        assert result.is_valid
        assert result.user.username == "alice"
        assert result.session.expires_at == created.expires_at
        stored, _ = store.find_session_with_user(created.id)
        assert stored.expires_at == created.expires_at

    def test_expired_session_is_deleted(
        self, engine: SessionEngine, clock: FixedClock, store: SQLSessionStore, user: User
    ) -> None:
        token = generate_session_token()
        session = engine.create_session(token, user.id)
        clock.advance(days=31)

        result = engine.validate_session_token(token)
        assert not result.is_valid
        assert store.find_session_with_user(session.id) is None

    def test_session_expiring_exactly_now_is_expired(self, engine: SessionEngine, clock: FixedClock, user: User) -> None:
        token = generate_session_token()
        engine.create_session(token, user.id)
        clock.advance(days=30)
        assert not engine.validate_session_token(token).is_valid

    def test_session_inside_renewal_window_is_extended(
        self, engine: SessionEngine, clock: FixedClock, store: SQLSessionStore, user: User
    ) -> None:
        """Ten days left (< 15-day threshold): expiry moves to now + 30 days."""
        token = generate_session_token()
        session = engine.create_session(token, user.id)
        clock.advance(days=20)

        result = engine.validate_session_token(token)
        assert result.session.expires_at == clock.now + timedelta(days=30)
        stored, _ = store.find_session_with_user(session.id)
        assert stored.expires_at == clock.now + timedelta(days=30)

    def test_renewal_boundary(self, engine: SessionEngine, clock: FixedClock, user: User) -> None:
        """Exactly 15 days left is inside the window."""
        token = generate_session_token()
        engine.create_session(token, user.id)
        clock.advance(days=15)
        assert engine.validate_session_token(token).session.expires_at == clock.now + timedelta(days=30)

    def test_renewed_session_not_renewed_again_immediately(
        self, engine: SessionEngine, clock: FixedClock, user: User
    ) -> None:
        token = generate_session_token()
        engine.create_session(token, user.id)
        clock.advance(days=20)
        renewed = engine.validate_session_token(token).session.expires_at
        clock.advance(hours=1)
        assert engine.validate_session_token(token).session.expires_at == renewed

    def test_failed_renewal_write_keeps_old_expiry(
        self, store: SQLSessionStore, clock: FixedClock, user: User
    ) -> None:
        engine = SessionEngine(_RenewalFailingStore(store), TEST_CONFIG, clock=clock)
        token = generate_session_token()
        created = engine.create_session(token, user.id)
        clock.advance(days=20)

        result = engine.validate_session_token(token)
        assert result.is_valid
        assert result.session.expires_at == created.expires_at


class TestInvalidate:
    def test_invalidate_session_is_idempotent(self, engine: SessionEngine, user: User) -> None:
        token = generate_session_token()
        session = engine.create_session(token, user.id)
        engine.invalidate_session(session.id)
        engine.invalidate_session(session.id)
        assert not engine.validate_session_token(token).is_valid

    def test_invalidate_user_sessions(self, engine: SessionEngine, user: User) -> None:
        tokens = [generate_session_token() for _ in range(3)]
        for token in tokens:
            engine.create_session(token, user.id)
        assert engine.invalidate_user_sessions(user.id) == 3
        assert not any(engine.validate_session_token(t).is_valid for t in tokens)

    def test_purge_expired(self, engine: SessionEngine, clock: FixedClock, user: User) -> None:
        old = generate_session_token()
        engine.create_session(old, user.id)
        clock.advance(days=10)
        recent = generate_session_token()
        engine.create_session(recent, user.id)
        clock.advance(days=25)

        assert engine.purge_expired() == 1
        assert engine.validate_session_token(recent).is_valid
