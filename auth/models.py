"""
auth/models.py -- Domain dataclasses for authentication entities and results.

Pattern: Data class (pure data container, zero logic). Dataclasses own domain
shape; the store, engine and service do the work.

Layer rule: no imports from api/, web/, or core/.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from typing import Union

from auth.errors import AuthErrorKind


@dataclass
class User:
    """An identity record.

    id is a lowercase base32 string minted at registration and never changed.
    password_hash is the Argon2id encoded string; it never leaves the auth
    package -- the API models expose only id and username.
    """

    id: str
    username: str
    password_hash: str = field(default="", repr=False)


@dataclass
class Session:
    """Proof of authentication.

    id is the SHA-256 hex digest of the session token, never the token itself.
    expires_at is a timezone-aware UTC datetime.
    """

    id: str
    user_id: str
    expires_at: datetime


@dataclass
class SessionValidationResult:
    """Outcome of SessionEngine.validate_session_token().

    Both fields are None for an unknown or expired token.
    """

    session: Session | None = None
    user: User | None = None

    @property
    def is_valid(self) -> bool:
        return self.session is not None and self.user is not None


# ---------------------------------------------------------------------------
# Tagged operation results (auth.service)
# ---------------------------------------------------------------------------


@dataclass
class AuthSuccess:
    """login()/register() succeeded. token is the only plaintext copy."""

    token: str = field(repr=False)
    expires_at: datetime
    user: User
    ok: bool = field(default=True, init=False)


@dataclass
class AuthFailure:
    """login()/register() failed with one of the taxonomy kinds."""

    kind: AuthErrorKind
    message: str
    ok: bool = field(default=False, init=False)


AuthResult = Union[AuthSuccess, AuthFailure]


@dataclass
class LogoutResult:
    """logout() always succeeds. invalidated tells whether a live session was found."""

    invalidated: bool = False


@dataclass
class MeResult:
    """Outcome of me().

    clear_token is True when the caller presented a token that no longer maps
    to a live session; the transport should delete it. When user is set,
    session carries the (possibly renewed) expiry to re-issue the cookie with.
    """

    user: User | None = None
    session: Session | None = None
    clear_token: bool = False
    error: AuthErrorKind | None = None
