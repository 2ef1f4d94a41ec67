"""
auth/service.py -- Transport-agnostic auth operations: login, register, logout, me.

Every operation takes plain strings and returns a tagged result from
auth.models. Expected failures never raise:

  INVALID_INPUT        username/password fail the shape predicates
  INVALID_CREDENTIALS  unknown username OR wrong password -- deliberately the
                       same kind and message so callers cannot enumerate users
  USERNAME_TAKEN       registration lost the uniqueness race
  STORE_ERROR          the store raised; logged here, generic message out
  HASHING_ERROR        Argon2 failed or a stored hash is malformed

Timing equalization [C1]: login() always runs one Argon2 verification. For
an unknown username it verifies against a dummy hash built with the same
parameters, so a missing account costs the same work as a wrong password.

Hashing is CPU-bound; call these methods from a worker thread when running
inside an event loop.

Layer rule: no imports from api/, web/, or core/.
"""

from __future__ import annotations

import logging
import re

from auth.config import AuthConfig
from auth.errors import AuthErrorKind, DuplicateUsername, HashingError, StoreError
from auth.models import AuthFailure, AuthResult, AuthSuccess, LogoutResult, MeResult, User
from auth.passwords import dummy_hash, hash_password, verify_password
from auth.sessions import SessionEngine
from auth.store import SessionStore, SQLSessionStore
from auth.tokens import generate_session_token, generate_user_id

logger = logging.getLogger("sessionauth.service")

USERNAME_RE = re.compile(r"[a-z0-9_-]{3,31}")
PASSWORD_MIN_LENGTH = 6
PASSWORD_MAX_LENGTH = 255

_MESSAGES: dict[AuthErrorKind, str] = {
    AuthErrorKind.INVALID_INPUT: "Invalid username or password format.",
    AuthErrorKind.INVALID_CREDENTIALS: "Incorrect username or password.",
    AuthErrorKind.USERNAME_TAKEN: "Username is already taken.",
    AuthErrorKind.STORE_ERROR: "An internal error occurred.",
    AuthErrorKind.HASHING_ERROR: "An internal error occurred.",
}


def validate_username(username: object) -> bool:
    """3-31 characters of lowercase letters, digits, '_' or '-'."""
    return isinstance(username, str) and USERNAME_RE.fullmatch(username) is not None


def validate_password(password: object) -> bool:
    """6-255 characters, any content. Strength policy lives outside this core."""
    return isinstance(password, str) and PASSWORD_MIN_LENGTH <= len(password) <= PASSWORD_MAX_LENGTH


def _fail(kind: AuthErrorKind, message: str | None = None) -> AuthFailure:
    return AuthFailure(kind=kind, message=message or _MESSAGES[kind])


def _input_failure(username: object, password: object) -> AuthFailure | None:
    if not validate_username(username):
        return _fail(
            AuthErrorKind.INVALID_INPUT,
            "Invalid username (3-31 characters: lowercase letters, digits, '_' or '-').",
        )
    if not validate_password(password):
        return _fail(
            AuthErrorKind.INVALID_INPUT,
            f"Invalid password ({PASSWORD_MIN_LENGTH}-{PASSWORD_MAX_LENGTH} characters).",
        )
    return None


class AuthService:
    """Login/register/logout/me built on a SessionEngine and a SessionStore."""

    def __init__(self, engine: SessionEngine, store: SessionStore, config: AuthConfig) -> None:
        self.engine = engine
        self.store = store
        self.config = config

    # ------------------------------------------------------------------
    # Operations
    # ------------------------------------------------------------------

    def login(self, username: object, password: object) -> AuthResult:
        if failure := _input_failure(username, password):
            return failure
        try:
            user = self.store.find_user_by_username(username)
            if user is None:
                # Equalize timing -- do NOT return before running Argon2 [C1]
                verify_password(dummy_hash(self.config.hashing), password, self.config.hashing)
                logger.info("Login failed: bad credentials")
                return _fail(AuthErrorKind.INVALID_CREDENTIALS)
            if not verify_password(user.password_hash, password, self.config.hashing):
                logger.info("Login failed: bad credentials")
                return _fail(AuthErrorKind.INVALID_CREDENTIALS)
            return self._issue(user)
        except StoreError:
            logger.exception("Login aborted: session store failure")
            return _fail(AuthErrorKind.STORE_ERROR)
        except HashingError:
            logger.exception("Login aborted: password hashing failure")
            return _fail(AuthErrorKind.HASHING_ERROR)

    def register(self, username: object, password: object) -> AuthResult:
        if failure := _input_failure(username, password):
            return failure
        try:
            user = User(
                id=generate_user_id(),
                username=username,
                password_hash=hash_password(password, self.config.hashing),
            )
            self.store.insert_user(user)
            logger.info("Registered user %s", user.id)
            return self._issue(user)
        except DuplicateUsername:
            logger.info("Registration rejected: username taken")
            return _fail(AuthErrorKind.USERNAME_TAKEN)
        except StoreError:
            logger.exception("Registration aborted: session store failure")
            return _fail(AuthErrorKind.STORE_ERROR)
        except HashingError:
            logger.exception("Registration aborted: password hashing failure")
            return _fail(AuthErrorKind.HASHING_ERROR)

    def logout(self, token: str | None) -> LogoutResult:
        """End the session behind token, if any. Never fails.

        The caller clears the client-held token regardless of the outcome.
        """
        if not token:
            return LogoutResult(invalidated=False)
        try:
            result = self.engine.validate_session_token(token)
            if result.session is None:
                return LogoutResult(invalidated=False)
            self.engine.invalidate_session(result.session.id)
        except StoreError:
            logger.exception("Logout could not reach the session store")
            return LogoutResult(invalidated=False)
        return LogoutResult(invalidated=True)

    def me(self, token: str | None) -> MeResult:
        """Resolve the current user for token.

        A store failure yields an anonymous STORE_ERROR result without
        clear_token: the token may still be good, so the transport must not
        delete it.
        """
        if not token:
            return MeResult()
        try:
            result = self.engine.validate_session_token(token)
        except StoreError:
            logger.exception("Session lookup failed")
            return MeResult(error=AuthErrorKind.STORE_ERROR)
        if not result.is_valid:
            return MeResult(clear_token=True)
        return MeResult(user=result.user, session=result.session)

    def sign_out_everywhere(self, user: User) -> int:
        """Invalidate every session of user. Returns sessions removed."""
        try:
            return self.engine.invalidate_user_sessions(user.id)
        except StoreError:
            logger.exception("Sign-out-everywhere could not reach the session store")
            return 0

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------

    def _issue(self, user: User) -> AuthSuccess:
        token = generate_session_token()
        session = self.engine.create_session(token, user.id)
        return AuthSuccess(token=token, expires_at=session.expires_at, user=user)


def create_auth_service(database_url: str, config: AuthConfig) -> AuthService:
    """Wire SQLSessionStore -> SessionEngine -> AuthService for a database URL.

    Shared by the web app lifespan and the admin CLI.
    """
    store = SQLSessionStore(database_url)
    return AuthService(SessionEngine(store, config), store, config)
