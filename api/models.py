"""
API request and response models for the auth REST endpoints.

These Pydantic v2 models define the HTTP transport contract for the API layer.
They are intentionally separate from the dataclasses in auth/models.py, which
own the internal domain representation. Route handlers map between the two.

Credential fields accept any JSON value and default to None: shape and type
validation belongs to auth.service (validate_username / validate_password),
so a missing, non-string or malformed username is reported as invalid_input
(400) with the same envelope from the JSON API and the form routes alike.
Only a body that is not a JSON object at all fails FastAPI validation (422).

password_hash never appears in any response model.
"""

from datetime import datetime
from typing import Any, Optional

from pydantic import BaseModel, ConfigDict

from auth.models import User

# ---------------------------------------------------------------------------
# Request models
# ---------------------------------------------------------------------------


class CredentialsRequest(BaseModel):
    """Request body for POST /api/v1/auth/login and /api/v1/auth/register."""

    username: Any = None
    password: Any = None


# ---------------------------------------------------------------------------
# Response models
# ---------------------------------------------------------------------------


class UserResponse(BaseModel):
    """Public view of a user."""

    model_config = ConfigDict(frozen=True)

    id: str
    username: str

    @classmethod
    def from_user(cls, user: User) -> "UserResponse":
        return cls(id=user.id, username=user.username)


class AuthResponse(BaseModel):
    """Successful login/register. The token itself travels in the cookie.

    token is included for SPA clients that cannot use cookies and send
    "Authorization: Bearer <token>" instead.
    """

    success: bool = True
    user: UserResponse
    token: str
    expires_at: datetime


class MeResponse(BaseModel):
    user: Optional[UserResponse]
    expires_at: Optional[datetime] = None


class LogoutResponse(BaseModel):
    success: bool = True


class LogoutAllResponse(BaseModel):
    success: bool = True
    sessions_ended: int


class ErrorDetail(BaseModel):
    code: str
    message: str
    detail: Optional[str] = None


class ErrorResponse(BaseModel):
    """Uniform error envelope for every non-2xx API response."""

    error: ErrorDetail


class HealthResponse(BaseModel):
    status: str = "healthy"
    version: str
    components: dict[str, str] = {}
