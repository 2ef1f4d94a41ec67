"""
auth/sessions.py -- Session engine: create, validate/renew, invalidate.

Session lifecycle: absent -> active -> (renewed)* -> expired | invalidated.

  create_session        one insert; expires_at = now + session_duration.
  validate_session_token
                        one lookup (session joined to user), then:
                          unknown            -> (None, None)
                          now >= expires_at  -> delete row, (None, None)
                          inside renewal window
                                             -> expires_at = now + duration,
                                                persisted best-effort
  invalidate_session    idempotent delete.

Expiry is reaped lazily on access; purge_expired() is the periodic sweep for
sessions nobody presents again.

Renewal is a write on the read path, but it only fires once the session is
inside the renewal window. A renewed session sits renewal_threshold days
outside the window again, so a given session is written at most once per
(duration - threshold) period no matter how often it is read.

The renewal write is best-effort: if it raises StoreError the failure is
logged and the validated session is still returned. Validation of the
current request never depends on the renewal write succeeding. Two
concurrent validations may both renew; the last write wins.

The clock is injectable so tests can pin "now".

Layer rule: no imports from api/, web/, or core/.
"""

from __future__ import annotations

import logging
from collections.abc import Callable
from datetime import datetime, timezone

from auth.config import AuthConfig
from auth.errors import StoreError
from auth.models import Session, SessionValidationResult
from auth.store import SessionStore
from auth.tokens import derive_session_id

logger = logging.getLogger("sessionauth.sessions")


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def _short(session_id: str) -> str:
    # Session ids are not secrets, but full ids in logs are still replayable lookups.
    return session_id[:8]


class SessionEngine:
    """Orchestrates session state against a SessionStore.

    Stateless between calls apart from the store; safe to share across
    threads and requests.
    """

    def __init__(
        self,
        store: SessionStore,
        config: AuthConfig,
        clock: Callable[[], datetime] = utcnow,
    ) -> None:
        self.store = store
        self.config = config
        self._clock = clock

    def now(self) -> datetime:
        return self._clock()

    def create_session(self, token: str, user_id: str) -> Session:
        """Persist a new session for token and return it.

        Raises StoreError if the insert fails.
        """
        session = Session(
            id=derive_session_id(token),
            user_id=user_id,
            expires_at=self.now() + self.config.session_duration,
        )
        self.store.insert_session(session)
        logger.info("Session %s created for user %s", _short(session.id), user_id)
        return session

    def validate_session_token(self, token: str) -> SessionValidationResult:
        """Resolve a token to (session, user), reaping or renewing as needed.

        Raises StoreError if the lookup or the expiry delete fails. A failed
        renewal write does not raise.
        """
        session_id = derive_session_id(token)
        found = self.store.find_session_with_user(session_id)
        if found is None:
            return SessionValidationResult()

        session, user = found
        now = self.now()

        if now >= session.expires_at:
            self.store.delete_session(session.id)
            logger.info("Session %s expired; deleted", _short(session.id))
            return SessionValidationResult()

        if now >= session.expires_at - self.config.renewal_threshold:
            renewed = now + self.config.session_duration
            try:
                self.store.update_session_expiry(session.id, renewed)
            except StoreError:
                # Keep the stored expiry so the cookie never outlives the row.
                logger.warning("Session %s renewal write failed; serving unrenewed", _short(session.id), exc_info=True)
            else:
                session.expires_at = renewed
                logger.debug("Session %s renewed until %s", _short(session.id), renewed.isoformat())

        return SessionValidationResult(session=session, user=user)

    def invalidate_session(self, session_id: str) -> None:
        """Delete a session. Unknown ids are not an error."""
        self.store.delete_session(session_id)
        logger.info("Session %s invalidated", _short(session_id))

    def invalidate_user_sessions(self, user_id: str) -> int:
        """Delete every session for user_id (sign out everywhere)."""
        removed = self.store.delete_user_sessions(user_id)
        logger.info("Invalidated %d session(s) for user %s", removed, user_id)
        return removed

    def purge_expired(self) -> int:
        """Delete all sessions already past expiry. Returns rows removed."""
        removed = self.store.delete_expired_sessions(self.now())
        if removed:
            logger.info("Purged %d expired session(s)", removed)
        return removed
