"""
auth/store.py -- Session store adapter: interface and SQLAlchemy Core implementation.

Pattern: Repository + Data Mapper.
  SessionStore is the port the engine and service depend on (a Protocol, so
  any backend -- relational, key-value, in-memory test double -- conforms by
  shape). SQLSessionStore is the bundled adapter; _row_to_user /
  _row_to_session are its mappers. Engine and route code never touch SQL.

Consistency:
  Every method is one statement in its own connection and transaction, so
  each call is atomic at the row level. No method holds a lock across calls.
  Username uniqueness is a UNIQUE constraint in the schema -- two concurrent
  registrations race on the INSERT and exactly one gets DuplicateUsername.

Error translation:
  IntegrityError with the username now present -> DuplicateUsername.
  Any other SQLAlchemyError                    -> StoreError (cause chained).
  Raw driver messages never cross this boundary except as __cause__.

Timestamps are stored as fixed-width ISO 8601 UTC strings so that string
comparison in SQL matches chronological order.

Security:
  All queries use bound parameters. The sessions table only ever receives
  the SHA-256 session id, never the plaintext token.

Layer rule: no imports from api/, web/, or core/.
"""

from __future__ import annotations

import logging
from collections.abc import Iterator
from contextlib import contextmanager
from datetime import datetime, timezone
from typing import Protocol

from sqlalchemy import (
    Column,
    ForeignKey,
    MetaData,
    String,
    Table,
    Text,
    UniqueConstraint,
    create_engine,
    event,
    select,
)
from sqlalchemy.engine import Connection, Engine
from sqlalchemy.exc import IntegrityError, SQLAlchemyError

from auth.errors import DuplicateUsername, StoreError
from auth.models import Session, User

logger = logging.getLogger("sessionauth.store")

# ---------------------------------------------------------------------------
# Port
# ---------------------------------------------------------------------------


class SessionStore(Protocol):
    """Persistence operations the auth core needs. Implemented by adapters."""

    def insert_session(self, session: Session) -> None: ...

    def find_session_with_user(self, session_id: str) -> tuple[Session, User] | None: ...

    def update_session_expiry(self, session_id: str, new_expiry: datetime) -> None: ...

    def delete_session(self, session_id: str) -> None: ...

    def delete_user_sessions(self, user_id: str) -> int: ...

    def delete_expired_sessions(self, now: datetime) -> int: ...

    def find_user_by_username(self, username: str) -> User | None: ...

    def insert_user(self, user: User) -> None: ...

    def ping(self) -> bool: ...

    def close(self) -> None: ...


# ---------------------------------------------------------------------------
# Schema
# ---------------------------------------------------------------------------

_metadata = MetaData()

_users = Table(
    "users",
    _metadata,
    Column("id", String(32), primary_key=True),
    Column("username", String(31), nullable=False),
    Column("password_hash", Text, nullable=False),
    UniqueConstraint("username", name="uq_users_username"),
)

_sessions = Table(
    "sessions",
    _metadata,
    Column("id", String(64), primary_key=True),  # SHA-256 hex of the token
    Column("user_id", String(32), ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True),
    Column("expires_at", String(32), nullable=False, index=True),
)


# ---------------------------------------------------------------------------
# SQLite connection setup
# ---------------------------------------------------------------------------


def _configure_sqlite(dbapi_conn, connection_record) -> None:
    """Enable WAL journal mode and foreign key enforcement.

    Set per-connection because SQLite PRAGMAs are not inherited by new
    connections from the pool. foreign_keys=ON makes deleting a user cascade
    to their sessions.
    """
    dbapi_conn.execute("PRAGMA journal_mode=WAL")
    dbapi_conn.execute("PRAGMA foreign_keys=ON")


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


def _to_iso(dt: datetime) -> str:
    # Fixed width (always microseconds, always +00:00) keeps lexical == chronological order.
    return dt.astimezone(timezone.utc).strftime("%Y-%m-%dT%H:%M:%S.%f+00:00")


def _from_iso(value: str) -> datetime:
    return datetime.fromisoformat(value).astimezone(timezone.utc)


# ---------------------------------------------------------------------------
# Repository
# ---------------------------------------------------------------------------


class SQLSessionStore:
    """SQLAlchemy Core implementation of SessionStore.

    Usage:
        store = SQLSessionStore("sqlite:///auth.db")
        store.insert_user(User(id=generate_user_id(), username="alice", password_hash=h))
        found = store.find_session_with_user(derive_session_id(token))
        store.close()
    """

    def __init__(self, db_url: str) -> None:
        connect_args: dict = {}
        if db_url.startswith("sqlite"):
            connect_args["check_same_thread"] = False
        self.engine: Engine = create_engine(db_url, connect_args=connect_args)
        if db_url.startswith("sqlite"):
            event.listen(self.engine, "connect", _configure_sqlite)
        try:
            _metadata.create_all(self.engine)
        except SQLAlchemyError as exc:
            raise StoreError("could not initialise auth schema") from exc

    @contextmanager
    def _connect(self, operation: str) -> Iterator[Connection]:
        """Open a transaction for one store call and translate driver errors."""
        try:
            with self.engine.begin() as conn:
                yield conn
        except StoreError:
            raise
        except SQLAlchemyError as exc:
            logger.error("Store operation %s failed: %s", operation, type(exc).__name__)
            raise StoreError(f"session store failed during {operation}") from exc

    # ------------------------------------------------------------------
    # Sessions
    # ------------------------------------------------------------------

    def insert_session(self, session: Session) -> None:
        with self._connect("insert_session") as conn:
            conn.execute(
                _sessions.insert().values(
                    id=session.id,
                    user_id=session.user_id,
                    expires_at=_to_iso(session.expires_at),
                )
            )

    def find_session_with_user(self, session_id: str) -> tuple[Session, User] | None:
        """Return (session, user) for a session id, joined in one query. None if absent."""
        query = (
            select(
                _sessions.c.id.label("session_id"),
                _sessions.c.user_id,
                _sessions.c.expires_at,
                _users.c.username,
                _users.c.password_hash,
            )
            .select_from(_sessions.join(_users, _sessions.c.user_id == _users.c.id))
            .where(_sessions.c.id == session_id)
        )
        with self._connect("find_session_with_user") as conn:
            row = conn.execute(query).fetchone()
        if row is None:
            return None
        return _row_to_session(row), User(id=row.user_id, username=row.username, password_hash=row.password_hash)

    def update_session_expiry(self, session_id: str, new_expiry: datetime) -> None:
        with self._connect("update_session_expiry") as conn:
            conn.execute(_sessions.update().where(_sessions.c.id == session_id).values(expires_at=_to_iso(new_expiry)))

    def delete_session(self, session_id: str) -> None:
        """Delete one session. Deleting an unknown id is a no-op."""
        with self._connect("delete_session") as conn:
            conn.execute(_sessions.delete().where(_sessions.c.id == session_id))

    def delete_user_sessions(self, user_id: str) -> int:
        """Delete every session belonging to user_id. Returns rows removed."""
        with self._connect("delete_user_sessions") as conn:
            result = conn.execute(_sessions.delete().where(_sessions.c.user_id == user_id))
        return result.rowcount

    def delete_expired_sessions(self, now: datetime) -> int:
        """Delete sessions whose expires_at <= now. Returns rows removed."""
        with self._connect("delete_expired_sessions") as conn:
            result = conn.execute(_sessions.delete().where(_sessions.c.expires_at <= _to_iso(now)))
        return result.rowcount

    # ------------------------------------------------------------------
    # Users
    # ------------------------------------------------------------------

    def find_user_by_username(self, username: str) -> User | None:
        """Look up a user by exact username. Returns None if not found."""
        with self._connect("find_user_by_username") as conn:
            row = conn.execute(_users.select().where(_users.c.username == username)).fetchone()
        return _row_to_user(row) if row is not None else None

    def insert_user(self, user: User) -> None:
        """Insert a new user.

        Raises DuplicateUsername if the username is already taken. The check is
        the uq_users_username constraint itself, not a prior SELECT, so
        concurrent registrations cannot both succeed. Which constraint fired is
        settled by looking the username up again rather than by parsing the
        driver message, whose wording (and whether it names the constraint)
        differs between backends.
        """
        try:
            with self.engine.begin() as conn:
                conn.execute(
                    _users.insert().values(
                        id=user.id,
                        username=user.username,
                        password_hash=user.password_hash,
                    )
                )
        except IntegrityError as exc:
            if self.find_user_by_username(user.username) is not None:
                raise DuplicateUsername(f"username {user.username!r} is already taken") from exc
            raise StoreError("session store failed during insert_user") from exc
        except SQLAlchemyError as exc:
            logger.error("Store operation insert_user failed: %s", type(exc).__name__)
            raise StoreError("session store failed during insert_user") from exc

    def delete_user(self, user_id: str) -> bool:
        """Permanently delete a user (administrative action). Sessions cascade."""
        with self._connect("delete_user") as conn:
            conn.execute(_sessions.delete().where(_sessions.c.user_id == user_id))
            result = conn.execute(_users.delete().where(_users.c.id == user_id))
        return result.rowcount > 0

    def ping(self) -> bool:
        """Return True if the database answers a trivial query. Used by /health."""
        try:
            with self.engine.connect() as conn:
                conn.execute(_users.select().limit(1))
        except SQLAlchemyError:
            return False
        return True

    def close(self) -> None:
        self.engine.dispose()


# ---------------------------------------------------------------------------
# Row mappers (Data Mapper pattern)
# ---------------------------------------------------------------------------


def _row_to_user(row) -> User:
    return User(id=row.id, username=row.username, password_hash=row.password_hash)


def _row_to_session(row) -> Session:
    return Session(id=row.session_id, user_id=row.user_id, expires_at=_from_iso(row.expires_at))
