"""
api/routes/v1/auth.py -- JSON authentication endpoints for single-page apps.

Routes:
  POST /api/v1/auth/register  -- create account; sets session cookie
  POST /api/v1/auth/login     -- password login; sets session cookie
  POST /api/v1/auth/logout    -- ends the session (if any); deletes cookie
  GET  /api/v1/auth/me        -- current user; refreshes or deletes cookie
  POST /api/v1/auth/logout-all -- ends every session of the current user (requires auth)

Auth policy: the first four are public. /me answers 401 with the "unauthorized"
error envelope when there is no live session.

Security:
  [C1] AuthService.login() runs timing equalization -- never inline a
       username lookup + verify here.
  [M5] Cache-Control: no-store on every response that carries a token.
  Invalid credentials and unknown usernames share code and message.

Handlers are plain `def` (not async): Argon2 is CPU-bound and must run in
Starlette's threadpool, not on the event loop.

Status codes:
  invalid_input 400, invalid_credentials 400, username_taken 409,
  store_error / hashing_error 500, unauthenticated /me 401.
"""

from __future__ import annotations

from fastapi import APIRouter, Depends, Request
from fastapi.responses import JSONResponse

from api.models import (
    AuthResponse,
    CredentialsRequest,
    ErrorDetail,
    ErrorResponse,
    LogoutAllResponse,
    LogoutResponse,
    MeResponse,
    UserResponse,
)
from auth.dependencies import get_auth_service, get_current_user
from auth.errors import AuthErrorKind
from auth.models import AuthFailure, AuthResult, User
from auth.service import AuthService
from auth.transport import CookieTransport, apply_auth_result, apply_logout, apply_me, read_token

router = APIRouter()

_STATUS: dict[AuthErrorKind, int] = {
    AuthErrorKind.INVALID_INPUT: 400,
    AuthErrorKind.INVALID_CREDENTIALS: 400,
    AuthErrorKind.USERNAME_TAKEN: 409,
    AuthErrorKind.STORE_ERROR: 500,
    AuthErrorKind.HASHING_ERROR: 500,
}


def _no_store(resp: JSONResponse) -> JSONResponse:
    resp.headers["Cache-Control"] = "no-store"  # [M5]
    return resp


def _error(kind: AuthErrorKind, message: str) -> JSONResponse:
    return JSONResponse(
        status_code=_STATUS[kind],
        content=ErrorResponse(error=ErrorDetail(code=kind.value, message=message)).model_dump(),
    )


def _auth_response(request: Request, service: AuthService, result: AuthResult, status_code: int) -> JSONResponse:
    if isinstance(result, AuthFailure):
        return _no_store(_error(result.kind, result.message))
    resp = JSONResponse(
        status_code=status_code,
        content=AuthResponse(
            user=UserResponse.from_user(result.user),
            token=result.token,
            expires_at=result.expires_at,
        ).model_dump(mode="json"),
    )
    apply_auth_result(CookieTransport(request, resp, service.config, clock=service.engine.now), result)
    return _no_store(resp)


# ---------------------------------------------------------------------------
# Public endpoints
# ---------------------------------------------------------------------------


@router.post("/auth/register", response_model=AuthResponse, status_code=201)
def register(
    request: Request,
    body: CredentialsRequest,
    service: AuthService = Depends(get_auth_service),
) -> JSONResponse:
    """Create an account and start a session for it."""
    result = service.register(body.username, body.password)
    return _auth_response(request, service, result, status_code=201)


@router.post("/auth/login", response_model=AuthResponse)
def login(
    request: Request,
    body: CredentialsRequest,
    service: AuthService = Depends(get_auth_service),
) -> JSONResponse:
    """Authenticate with username and password; set the session cookie."""
    result = service.login(body.username, body.password)
    return _auth_response(request, service, result, status_code=200)


@router.post("/auth/logout", response_model=LogoutResponse)
def logout(request: Request, service: AuthService = Depends(get_auth_service)) -> JSONResponse:
    """End the current session, if any, and delete the cookie. Always 200."""
    resp = JSONResponse(content=LogoutResponse().model_dump())
    transport = CookieTransport(request, resp, service.config, clock=service.engine.now)
    service.logout(transport.get_token())
    apply_logout(transport)
    return _no_store(resp)


@router.get("/auth/me", response_model=MeResponse)
def me(request: Request, service: AuthService = Depends(get_auth_service)) -> JSONResponse:
    """Return the current user, re-issuing the cookie with the current expiry."""
    token = read_token(request, service.config)
    result = service.me(token)

    if result.error is not None:
        return _error(result.error, "An internal error occurred.")

    if result.user is None:
        resp = JSONResponse(
            status_code=401,
            content=ErrorResponse(
                error=ErrorDetail(code="unauthorized", message="Authentication required.")
            ).model_dump(),
        )
    else:
        resp = JSONResponse(
            content=MeResponse(
                user=UserResponse.from_user(result.user),
                expires_at=result.session.expires_at if result.session else None,
            ).model_dump(mode="json")
        )
    apply_me(CookieTransport(request, resp, service.config, clock=service.engine.now), result, token)
    return _no_store(resp)


# ---------------------------------------------------------------------------
# Authenticated endpoints
# ---------------------------------------------------------------------------


@router.post("/auth/logout-all", response_model=LogoutAllResponse)
def logout_all(
    request: Request,
    current_user: User = Depends(get_current_user),
    service: AuthService = Depends(get_auth_service),
) -> JSONResponse:
    """End every session of the current user, including this one."""
    removed = service.sign_out_everywhere(current_user)
    resp = JSONResponse(content=LogoutAllResponse(sessions_ended=removed).model_dump())
    apply_logout(CookieTransport(request, resp, service.config, clock=service.engine.now))
    return _no_store(resp)
