"""
tests/test_web_forms.py -- Integration tests for the form-post routes and the session hook.

These tests run through the real ASGI stack using the web_client fixture
(follow_redirects=False). We assert on redirect Location headers directly --
following the redirect would hide them.

Coverage:
  - POST /login: success -> 302 after_login with cookie; ?next= honoured for
    relative paths only (open-redirect prevention); failure -> /login?error=
  - POST /register: success -> 302 after_register; taken/invalid -> /register?error=
  - POST /logout: session ended, cookie deleted, 302 to after_logout
  - Session hook: renews the cookie on ordinary requests once the session is
    inside the renewal window, deletes a stale cookie, and leaves requests
    without a cookie alone
"""

from __future__ import annotations

from collections.abc import Generator
from datetime import datetime, timedelta, timezone
from urllib.parse import parse_qs, urlparse

import pytest
from fastapi.testclient import TestClient

from auth.service import AuthService
from auth.tokens import derive_session_id, generate_session_token

COOKIE = "auth-session"


@pytest.fixture
def client(web_client: tuple[TestClient, AuthService]) -> Generator[TestClient, None, None]:
    c, _ = web_client
    c.cookies.clear()
    yield c
    c.cookies.clear()


def _session_cookie_headers(resp) -> list[str]:
    return [h for h in resp.headers.get_list("set-cookie") if h.startswith(f"{COOKIE}=")]


def _error_code(resp) -> str:
    return parse_qs(urlparse(resp.headers["location"]).query)["error"][0]


def _register(client: TestClient, username: str, password: str = "password1"):
    resp = client.post("/register", data={"username": username, "password": password})
    assert resp.status_code == 302, resp.text
    return resp


class TestRegisterForm:
    def test_success_redirects_with_cookie(self, client: TestClient) -> None:
        resp = _register(client, "web_alice")
        assert resp.headers["location"] == "/dashboard"
        assert resp.headers["cache-control"] == "no-store"
        assert client.cookies.get(COOKIE)

    def test_username_taken(self, client: TestClient) -> None:
        _register(client, "web_taken")
        client.cookies.clear()
        resp = client.post("/register", data={"username": "web_taken", "password": "password1"})
        assert resp.status_code == 302
        assert resp.headers["location"].startswith("/register?")
        assert _error_code(resp) == "username_taken"
        assert _session_cookie_headers(resp) == []

    def test_invalid_input(self, client: TestClient) -> None:
        resp = client.post("/register", data={"username": "No Spaces", "password": "password1"})
        assert _error_code(resp) == "invalid_input"

    def test_missing_fields_are_invalid_input(self, client: TestClient) -> None:
        resp = client.post("/register", data={})
        assert resp.status_code == 302
        assert _error_code(resp) == "invalid_input"


class TestLoginForm:
    def test_success_redirects_to_after_login(self, client: TestClient) -> None:
        _register(client, "web_bob")
        client.cookies.clear()
        resp = client.post("/login", data={"username": "web_bob", "password": "password1"})
        assert resp.status_code == 302
        assert resp.headers["location"] == "/dashboard"
        assert client.cookies.get(COOKIE)

    def test_next_relative_path_is_honoured(self, client: TestClient) -> None:
        _register(client, "web_carol")
        client.cookies.clear()
        resp = client.post("/login?next=/settings/profile", data={"username": "web_carol", "password": "password1"})
        assert resp.headers["location"] == "/settings/profile"

    @pytest.mark.parametrize(
        "username,target",
        [
            ("web_next_abs", "https://evil.example"),
            ("web_next_proto", "//evil.example"),
            ("web_next_js", "javascript:alert(1)"),
        ],
    )
    def test_next_offsite_is_ignored(self, client: TestClient, username: str, target: str) -> None:
        _register(client, username)
        client.cookies.clear()
        resp = client.post("/login", params={"next": target}, data={"username": username, "password": "password1"})
        assert resp.headers["location"] == "/dashboard"

    def test_bad_credentials(self, client: TestClient) -> None:
        _register(client, "web_dave")
        client.cookies.clear()
        wrong = client.post("/login", data={"username": "web_dave", "password": "wrong-pass"})
        unknown = client.post("/login", data={"username": "web_ghost", "password": "password1"})
        assert wrong.headers["location"] == unknown.headers["location"] == "/login?error=invalid_credentials"
        assert _session_cookie_headers(wrong) == []


class TestLogoutForm:
    def test_logout_deletes_cookie_and_session(self, client: TestClient, web_client) -> None:
        _, service = web_client
        _register(client, "web_erin")
        token = client.cookies.get(COOKIE)
        resp = client.post("/logout")
        assert resp.status_code == 302
        assert resp.headers["location"] == "/login"
        [header] = _session_cookie_headers(resp)
        assert "max-age=0" in header.lower()
        assert service.store.find_session_with_user(derive_session_id(token)) is None

    def test_logout_without_cookie(self, client: TestClient) -> None:
        resp = client.post("/logout")
        assert resp.status_code == 302
        assert resp.headers["location"] == "/login"


class TestSessionHook:
    def test_no_cookie_no_set_cookie(self, client: TestClient) -> None:
        resp = client.get("/api/v1/health")
        assert _session_cookie_headers(resp) == []

    def test_stale_cookie_deleted_on_any_route(self, client: TestClient) -> None:
        client.cookies.set(COOKIE, generate_session_token())
        resp = client.get("/api/v1/health")
        assert resp.status_code == 200
        [header] = _session_cookie_headers(resp)
        assert "max-age=0" in header.lower()

    def test_live_cookie_reissued(self, client: TestClient) -> None:
        _register(client, "web_frank")
        token = client.cookies.get(COOKIE)
        resp = client.get("/api/v1/health")
        [header] = _session_cookie_headers(resp)
        assert header.startswith(f"{COOKIE}={token};")

    def test_session_near_expiry_is_renewed(self, client: TestClient, web_client) -> None:
        _, service = web_client
        _register(client, "web_grace")
        token = client.cookies.get(COOKIE)
        session_id = derive_session_id(token)
        service.store.update_session_expiry(session_id, datetime.now(timezone.utc) + timedelta(days=10))

        resp = client.get("/api/v1/health")
        [header] = _session_cookie_headers(resp)
        max_age = int(header.lower().split("max-age=")[1].split(";")[0])
        assert max_age > 29 * 86400
        session, _ = service.store.find_session_with_user(session_id)
        assert session.expires_at > datetime.now(timezone.utc) + timedelta(days=29)
