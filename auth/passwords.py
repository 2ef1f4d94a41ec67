"""
auth/passwords.py -- Argon2id password hashing via argon2-cffi.

Argon2id is memory-hard: each guess costs memory_cost KiB as well as CPU,
which is what makes GPU/ASIC brute force of low-entropy passwords expensive.
The encoded output ($argon2id$v=19$m=...,t=...,p=...$salt$hash) carries its
own parameters and random salt, so verify_password() works across parameter
changes and needs_rehash() can spot hashes minted with old settings.

Constant-time comparison of the derived key happens inside libargon2.

Failure contract:
  hash_password   -- HashingError only when the library cannot hash
                     (e.g. memory exhaustion).
  verify_password -- False on mismatch, HashingError on a malformed stored hash.

These calls are CPU-bound and block for roughly time_cost * memory_cost work.
FastAPI routes that reach them are plain `def` handlers so Starlette runs them
in its threadpool instead of on the event loop.

Layer rule: no imports from api/, web/, or core/.
"""

from __future__ import annotations

from functools import lru_cache

from argon2 import PasswordHasher, Type
from argon2.exceptions import HashingError as Argon2HashingError
from argon2.exceptions import InvalidHashError, VerificationError, VerifyMismatchError

from auth.config import HashingParams
from auth.errors import HashingError


@lru_cache(maxsize=8)
def _hasher(params: HashingParams) -> PasswordHasher:
    # HashingParams is frozen and hashable, so one PasswordHasher per parameter set.
    return PasswordHasher(
        time_cost=params.time_cost,
        memory_cost=params.memory_cost,
        parallelism=params.parallelism,
        hash_len=params.hash_length,
        type=Type.ID,
    )


def hash_password(plaintext: str, params: HashingParams) -> str:
    """Return the Argon2id encoded hash of plaintext."""
    try:
        return _hasher(params).hash(plaintext)
    except (Argon2HashingError, MemoryError) as exc:
        raise HashingError("password hashing failed") from exc


def verify_password(encoded_hash: str, plaintext: str, params: HashingParams) -> bool:
    """Return True if plaintext matches encoded_hash.

    The cost parameters used are the ones embedded in encoded_hash; params
    only selects the hasher instance.
    """
    try:
        return _hasher(params).verify(encoded_hash, plaintext)
    except VerifyMismatchError:
        return False
    except (InvalidHashError, VerificationError) as exc:
        raise HashingError("stored password hash is malformed") from exc


def needs_rehash(encoded_hash: str, params: HashingParams) -> bool:
    """Return True if encoded_hash was produced with parameters other than params.

    Helper for host applications that migrate hashes after raising the Argon2
    costs: check it after a successful login and store a fresh hash_password()
    result through their own user management. The auth core never rewrites a
    stored hash itself.
    """
    try:
        return _hasher(params).check_needs_rehash(encoded_hash)
    except InvalidHashError as exc:
        raise HashingError("stored password hash is malformed") from exc


@lru_cache(maxsize=8)
def dummy_hash(params: HashingParams) -> str:
    """Return a throwaway hash for timing equalization.

    Computed once per parameter set so the first login against an unknown
    username is not measurably slower than later ones. Always verify against
    this when the username does not exist -- Argon2's fixed work factor then
    hides whether the account exists.
    """
    return hash_password("sessionauth_timing_dummy", params)
