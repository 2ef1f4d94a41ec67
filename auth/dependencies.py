"""
auth/dependencies.py -- FastAPI Depends() helpers for authentication.

The session token is read from the session cookie first, then from an
"Authorization: Bearer <token>" header (see auth.transport.read_token).

If the session refresh middleware in web/ already validated this request,
its result on request.state is reused instead of hitting the store twice.

try_get_current_user() is the soft variant (returns None on failure).
get_current_user() wraps it and raises HTTP 401 if unauthenticated.

Layer rule: no imports from web/ or core/. May import fastapi because this
module is part of the FastAPI dependency injection system.
"""

from __future__ import annotations

from fastapi import HTTPException, Request

from auth.models import User
from auth.service import AuthService
from auth.transport import read_bearer_token, read_token

_UNSET = object()


def get_auth_service(request: Request) -> AuthService:
    """Return the AuthService wired into app.state at startup."""
    return request.app.state.auth_service


def try_get_current_user(request: Request) -> User | None:
    """Resolve the request's user, or None. Never raises.

    A user cached by the session hook is reused. A cached None only means the
    cookie was dead, so a Bearer header on the same request still gets a lookup.
    """
    cached = getattr(request.state, "user", _UNSET)
    if cached is not _UNSET and cached is not None:
        return cached
    service = get_auth_service(request)
    token = read_bearer_token(request) if cached is None else read_token(request, service.config)
    if not token:
        return None
    return service.me(token).user


def get_current_user(request: Request) -> User:
    """Require authentication. Raises HTTP 401 if the request is not authenticated.

    Use as a FastAPI dependency:
        @router.get("/protected")
        def route(user: User = Depends(get_current_user)): ...
    """
    user = try_get_current_user(request)
    if user is None:
        raise HTTPException(
            status_code=401,
            detail={"code": "unauthorized", "message": "Authentication required."},
        )
    return user
