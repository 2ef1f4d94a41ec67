"""
auth/transport.py -- Maps auth results onto the client-held token channel.

The core never touches HTTP. Transports implement TokenTransport:
  get_token()                  -> str | None
  set_token(token, expires_at)
  clear_token()

CookieTransport is the HTTP implementation over Starlette request/response
objects. Cookie attributes:
  httponly=True       JS cannot read the token (XSS mitigation).
  samesite="lax"      not sent on cross-site POST (CSRF mitigation).
  secure              from AuthConfig.secure_cookies (on in production).
  path="/"            one session for the whole site.
  expires / max_age   both equal to the session's expires_at, so the cookie
                      and the server-side row expire together.

Token lookup order on read: the session cookie, then an
"Authorization: Bearer <token>" header for non-browser API clients.

The apply_* helpers encode the transport contract:
  login/register success  -> set the token
  logout                  -> clear the token, whether or not a session existed
  me with a live session  -> re-set the token with the (possibly renewed) expiry
  me with a stale token   -> clear it

Layer rule: may import starlette types; no imports from api/, web/, or core/.
"""

from __future__ import annotations

import math
from collections.abc import Callable
from datetime import datetime
from typing import Protocol

from starlette.requests import Request
from starlette.responses import Response

from auth.config import AuthConfig
from auth.models import AuthResult, AuthSuccess, MeResult
from auth.sessions import utcnow


class TokenTransport(Protocol):
    def get_token(self) -> str | None: ...

    def set_token(self, token: str, expires_at: datetime) -> None: ...

    def clear_token(self) -> None: ...


def read_bearer_token(request: Request) -> str | None:
    """Return the token from an "Authorization: Bearer <token>" header, or None."""
    auth_header = request.headers.get("Authorization", "")
    if auth_header.startswith("Bearer "):
        return auth_header[7:].strip() or None
    return None


def read_token(request: Request, config: AuthConfig) -> str | None:
    """Return the session token from the cookie or a Bearer header, or None."""
    return request.cookies.get(config.session_cookie_name) or read_bearer_token(request)


class CookieTransport:
    """TokenTransport over a Starlette request (read) and response (write).

    clock should be the session engine's clock so Max-Age is measured from the
    same "now" that produced expires_at.
    """

    def __init__(
        self,
        request: Request,
        response: Response,
        config: AuthConfig,
        clock: Callable[[], datetime] = utcnow,
    ) -> None:
        self.request = request
        self.response = response
        self.config = config
        self._clock = clock

    def get_token(self) -> str | None:
        return read_token(self.request, self.config)

    def set_token(self, token: str, expires_at: datetime) -> None:
        remaining = (expires_at - self._clock()).total_seconds()
        self.response.set_cookie(
            self.config.session_cookie_name,
            value=token,
            max_age=max(0, math.ceil(remaining)),
            expires=expires_at,
            path="/",
            httponly=True,
            samesite="lax",
            secure=self.config.secure_cookies,
        )

    def clear_token(self) -> None:
        self.response.delete_cookie(
            self.config.session_cookie_name,
            path="/",
            httponly=True,
            samesite="lax",
            secure=self.config.secure_cookies,
        )


# ---------------------------------------------------------------------------
# Result -> transport
# ---------------------------------------------------------------------------


def apply_auth_result(transport: TokenTransport, result: AuthResult) -> None:
    """Store the new token after a successful login or registration."""
    if isinstance(result, AuthSuccess):
        transport.set_token(result.token, result.expires_at)


def apply_logout(transport: TokenTransport) -> None:
    transport.clear_token()


def apply_me(transport: TokenTransport, result: MeResult, token: str | None) -> None:
    """Refresh or drop the client token after a me()/validation call."""
    if result.session is not None and token:
        transport.set_token(token, result.session.expires_at)
    elif result.clear_token:
        transport.clear_token()
