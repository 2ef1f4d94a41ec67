"""
core/config.py -- Centralized application configuration via pydantic-settings.

All environment variable reads happen here. No module should call os.getenv()
or os.environ.get() directly -- import get_settings() instead.

Design patterns used:
  Singleton via lru_cache: get_settings() instantiates Settings once at first
      call and returns the cached instance on every subsequent call.

  BaseSettings (pydantic-settings): Reads values from environment variables
      and an optional .env file automatically. Field names map to env var names
      (e.g. session_duration_days -> SESSION_DURATION_DAYS).

  @model_validator(mode="after"): Cross-field validation once every field is
      resolved. The renewal window must be shorter than the session lifetime,
      otherwise every validated read would renew the session.

Settings is the loading surface only. The engine itself consumes the frozen
AuthConfig returned by Settings.auth_config() so nothing downstream can
mutate configuration after startup.

Layer rule: core/ is the kernel. This module may not import from api/ or web/.
auth/config.py is imported only for the AuthConfig dataclasses.
"""

import logging
from functools import lru_cache
from pathlib import Path

from pydantic import Field, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from auth.config import AuthConfig, HashingParams, Redirects

logger = logging.getLogger("sessionauth.config")

_DEFAULT_DB_URL = f"sqlite:///{Path(__file__).resolve().parent.parent / 'sessionauth.db'}"


class Settings(BaseSettings):
    """Application settings loaded from environment variables and .env file.

    All fields have defaults so Settings() can be instantiated in test
    environments without a real .env file.
    """

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    # ------------------------------------------------------------------
    # Core
    # ------------------------------------------------------------------

    debug: bool = False
    database_url: str = _DEFAULT_DB_URL
    # JSON lists in the environment, e.g. ALLOWED_HOSTS='["auth.example.com"]'
    allowed_hosts: list[str] = ["*"]
    cors_origins: list[str] = ["http://localhost:3000", "http://localhost:5173"]

    # ------------------------------------------------------------------
    # Sessions
    # ------------------------------------------------------------------

    # Must be true in production so the session cookie is HTTPS-only.
    secure_cookies: bool = False
    session_cookie_name: str = "auth-session"
    session_duration_days: int = Field(default=30, gt=0)
    renewal_threshold_days: int = Field(default=15, ge=0)
    # Expired sessions are reaped lazily on access; the sweep catches the rest.
    purge_interval_seconds: int = Field(default=6 * 60 * 60, gt=0)

    # ------------------------------------------------------------------
    # Redirects (SSR form routes only)
    # ------------------------------------------------------------------

    redirect_after_login: str = "/dashboard"
    redirect_after_register: str = "/dashboard"
    redirect_after_logout: str = "/login"

    # ------------------------------------------------------------------
    # Argon2id cost parameters
    # ------------------------------------------------------------------

    argon2_memory_cost: int = Field(default=19456, gt=0)  # KiB
    argon2_time_cost: int = Field(default=2, gt=0)
    argon2_hash_length: int = Field(default=32, gt=0)
    argon2_parallelism: int = Field(default=1, gt=0)

    # ------------------------------------------------------------------
    # Validators
    # ------------------------------------------------------------------

    @model_validator(mode="after")
    def validate_renewal_window(self) -> "Settings":
        """Reject a renewal threshold that is not strictly inside the session lifetime."""
        if self.renewal_threshold_days >= self.session_duration_days:
            raise ValueError(
                "RENEWAL_THRESHOLD_DAYS must be less than SESSION_DURATION_DAYS "
                f"(got {self.renewal_threshold_days} >= {self.session_duration_days})."
            )
        if not self.secure_cookies and not self.debug:
            logger.warning("SECURE_COOKIES is off -- session cookies will be sent over plain HTTP.")
        return self

    def auth_config(self) -> AuthConfig:
        """Build the immutable AuthConfig consumed by the session engine."""
        return AuthConfig(
            session_cookie_name=self.session_cookie_name,
            session_duration_days=self.session_duration_days,
            renewal_threshold_days=self.renewal_threshold_days,
            redirects=Redirects(
                after_login=self.redirect_after_login,
                after_register=self.redirect_after_register,
                after_logout=self.redirect_after_logout,
            ),
            hashing=HashingParams(
                memory_cost=self.argon2_memory_cost,
                time_cost=self.argon2_time_cost,
                hash_length=self.argon2_hash_length,
                parallelism=self.argon2_parallelism,
            ),
            secure_cookies=self.secure_cookies,
        )


@lru_cache
def get_settings() -> Settings:
    """Return the application Settings singleton.

    In tests: call get_settings.cache_clear() between test cases if you need
    to inject different environment variables.
    """
    return Settings()
