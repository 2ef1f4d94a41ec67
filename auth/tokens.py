"""
auth/tokens.py -- Session token and identifier generation.

Security design decisions:
  Session tokens: 18 bytes from secrets.token_bytes (144 bits), base64url
       without padding. The token is handed to the client and never stored.

  Session ids: SHA-256 of the token, lowercase hex. The store only ever sees
       this digest, so a leaked sessions table cannot be replayed as cookies.
       A fast hash is fine here -- the input already has 144 bits of entropy,
       so the slowness Argon2 provides for low-entropy passwords buys nothing.

  User ids: 15 random bytes base32-encoded and lowercased (24 chars, no
       padding). Opaque and safe to expose in URLs and API payloads.

secrets draws from the OS CSPRNG and is safe to call from any thread; there
is no shared counter or generator state in this module.

Layer rule: stdlib only.
"""

from __future__ import annotations

import base64
import hashlib
import secrets

SESSION_TOKEN_BYTES = 18
USER_ID_BYTES = 15


def generate_session_token() -> str:
    """Return a fresh URL-safe session token (24 chars)."""
    raw = secrets.token_bytes(SESSION_TOKEN_BYTES)
    return base64.urlsafe_b64encode(raw).decode("ascii").rstrip("=")


def generate_user_id() -> str:
    """Return a fresh lowercase base32 user id (24 chars)."""
    raw = secrets.token_bytes(USER_ID_BYTES)
    return base64.b32encode(raw).decode("ascii").lower().rstrip("=")


def derive_session_id(token: str) -> str:
    """Return the lowercase hex SHA-256 digest of the token's UTF-8 bytes."""
    return hashlib.sha256(token.encode("utf-8")).hexdigest()
