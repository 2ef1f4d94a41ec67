"""
web/routes.py -- Form-post routes for server-rendered apps.

These routes accept application/x-www-form-urlencoded bodies from plain HTML
forms and answer with redirects instead of JSON. They share app.state with
the API routes (same AuthService). Rendering the login/register pages is the
host application's job; this module only handles the POSTs.

Routes:
  POST /login     -- password login; 302 to ?next= or the configured after_login
  POST /register  -- create account; 302 to the configured after_register
  POST /logout    -- end session, delete cookie; 302 to the configured after_logout

Failures redirect back to the form page with a whitelisted ?error=<code>:
  /login?error=invalid_input | invalid_credentials | store_error | hashing_error
  /register?error=invalid_input | username_taken | store_error | hashing_error
Only AuthErrorKind values are ever written into the query string, never raw
user input [M3].

refresh_session_cookie is the per-request session hook: it validates the
session cookie once per request, exposes the result on request.state, and
re-issues or deletes the cookie on the way out. asgi.py registers it.
"""

import logging
from typing import Optional
from urllib.parse import urlencode

from fastapi import APIRouter, Form, Request
from fastapi.responses import RedirectResponse
from starlette.concurrency import run_in_threadpool

from auth.models import AuthFailure, AuthResult
from auth.service import AuthService
from auth.transport import CookieTransport, apply_auth_result, apply_logout, apply_me

logger = logging.getLogger("sessionauth.web")

router = APIRouter()

# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


def _service(request: Request) -> AuthService:
    return request.app.state.auth_service


def _safe_next(next_url: Optional[str], default: str) -> str:
    """Validate a post-login redirect target. Only accept relative paths. [C2]

    Rejects absolute URLs and protocol-relative ones ("//attacker.com"),
    both of which would send the user off-site after login.
    """
    if next_url and next_url.startswith("/") and not next_url.startswith("//"):
        return next_url
    return default


def _form_result(request: Request, result: AuthResult, form_path: str, success_url: str) -> RedirectResponse:
    if isinstance(result, AuthFailure):
        resp = RedirectResponse(f"{form_path}?{urlencode({'error': result.kind.value})}", status_code=302)
    else:
        service = _service(request)
        resp = RedirectResponse(success_url, status_code=302)
        apply_auth_result(CookieTransport(request, resp, service.config, clock=service.engine.now), result)
    resp.headers["Cache-Control"] = "no-store"  # [M5]
    return resp


def _sets_session_cookie(response, cookie_name: str) -> bool:
    prefix = f"{cookie_name}="
    return any(value.startswith(prefix) for value in response.headers.getlist("set-cookie"))


# ---------------------------------------------------------------------------
# Session hook
# ---------------------------------------------------------------------------


async def refresh_session_cookie(request: Request, call_next):
    """Validate the session cookie for every request and keep it in sync.

    When a cookie is present, request.state.user / request.state.session hold
    the outcome (None when the session is gone) so auth.dependencies can skip
    a second lookup. Requests without the cookie are left for the dependencies
    to resolve, which also accept a Bearer header. If the route already wrote
    the session cookie (login, logout, /me) its decision wins. A store failure
    leaves the cookie untouched -- the session may still be live.
    """
    service = _service(request)
    cookie_name = service.config.session_cookie_name
    token = request.cookies.get(cookie_name)
    if not token:
        return await call_next(request)

    result = await run_in_threadpool(service.me, token)
    if result.error is None:
        request.state.user = result.user
        request.state.session = result.session

    response = await call_next(request)

    if not _sets_session_cookie(response, cookie_name):
        apply_me(CookieTransport(request, response, service.config, clock=service.engine.now), result, token)
    return response


# ---------------------------------------------------------------------------
# Form routes
# ---------------------------------------------------------------------------


@router.post("/login")
def login_post(
    request: Request,
    username: str = Form(""),
    password: str = Form(""),
) -> RedirectResponse:
    """Handle the username/password login form."""
    service = _service(request)
    result = service.login(username, password)  # [C1] timing equalization inside
    success_url = _safe_next(request.query_params.get("next"), service.config.redirects.after_login)
    return _form_result(request, result, "/login", success_url)


@router.post("/register")
def register_post(
    request: Request,
    username: str = Form(""),
    password: str = Form(""),
) -> RedirectResponse:
    """Handle the registration form."""
    service = _service(request)
    result = service.register(username, password)
    return _form_result(request, result, "/register", service.config.redirects.after_register)


@router.post("/logout")
def logout_post(request: Request) -> RedirectResponse:
    """End the session behind the cookie (if any), delete the cookie, redirect."""
    service = _service(request)
    resp = RedirectResponse(service.config.redirects.after_logout, status_code=302)
    transport = CookieTransport(request, resp, service.config, clock=service.engine.now)
    result = service.logout(transport.get_token())
    if result.invalidated:
        logger.info("Form logout ended a live session")
    apply_logout(transport)
    return resp
