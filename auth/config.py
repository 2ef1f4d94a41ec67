"""
auth/config.py -- Immutable configuration consumed by the session engine.

Pattern: frozen dataclasses validated in __post_init__. AuthConfig is built
once at startup (core.config.Settings.auth_config() in the app, or directly
in tests) and never mutated afterwards. Defaults mirror the Settings defaults
so AuthConfig() alone is a working configuration.

Layer rule: stdlib only. No imports from api/, web/, or core/.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import timedelta


@dataclass(frozen=True)
class HashingParams:
    """Argon2id cost parameters. memory_cost is in KiB."""

    memory_cost: int = 19456
    time_cost: int = 2
    hash_length: int = 32
    parallelism: int = 1

    def __post_init__(self) -> None:
        for name in ("memory_cost", "time_cost", "hash_length", "parallelism"):
            if getattr(self, name) <= 0:
                raise ValueError(f"{name} must be positive")
        # Argon2 requires at least 8 KiB of memory per lane.
        if self.memory_cost < 8 * self.parallelism:
            raise ValueError("memory_cost must be at least 8 * parallelism KiB")


@dataclass(frozen=True)
class Redirects:
    """Post-action redirect targets for the SSR form routes."""

    after_login: str = "/dashboard"
    after_register: str = "/dashboard"
    after_logout: str = "/login"


@dataclass(frozen=True)
class AuthConfig:
    """Process-wide auth configuration.

    Invariant: 0 <= renewal_threshold_days < session_duration_days.
    """

    session_cookie_name: str = "auth-session"
    session_duration_days: int = 30
    renewal_threshold_days: int = 15
    redirects: Redirects = field(default_factory=Redirects)
    hashing: HashingParams = field(default_factory=HashingParams)
    secure_cookies: bool = False

    def __post_init__(self) -> None:
        if not self.session_cookie_name:
            raise ValueError("session_cookie_name must not be empty")
        if self.session_duration_days <= 0:
            raise ValueError("session_duration_days must be positive")
        if self.renewal_threshold_days < 0:
            raise ValueError("renewal_threshold_days must not be negative")
        if self.renewal_threshold_days >= self.session_duration_days:
            raise ValueError("renewal_threshold_days must be less than session_duration_days")

    @property
    def session_duration(self) -> timedelta:
        return timedelta(days=self.session_duration_days)

    @property
    def renewal_threshold(self) -> timedelta:
        return timedelta(days=self.renewal_threshold_days)
