"""
auth/errors.py -- Error taxonomy for the authentication core.

Two halves:
  AuthErrorKind -- the tagged failure kinds returned by auth.service. Expected
      failures (bad input, bad credentials, taken username) never raise; they
      come back as AuthFailure(kind=...).
  Exceptions -- raised by the store adapter and the password hasher. The
      service layer catches them at its boundary and converts them into
      STORE_ERROR / HASHING_ERROR results, so raw driver messages never reach
      the transport layer.

Layer rule: stdlib only.
"""

from __future__ import annotations

from enum import Enum


class AuthErrorKind(str, Enum):
    INVALID_INPUT = "invalid_input"
    INVALID_CREDENTIALS = "invalid_credentials"
    USERNAME_TAKEN = "username_taken"
    STORE_ERROR = "store_error"
    HASHING_ERROR = "hashing_error"


class AuthError(Exception):
    """Base class for exceptions raised inside the auth core."""


class StoreError(AuthError):
    """The session store failed (timeout, connection loss, unexpected constraint).

    The underlying driver exception is chained as __cause__ for logs only.
    """


class DuplicateUsername(StoreError):
    """insert_user() hit the username uniqueness constraint."""


class HashingError(AuthError):
    """Argon2 could not hash (resource exhaustion) or the stored hash is malformed."""
