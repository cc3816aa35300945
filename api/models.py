"""
API request and response models for Gatehouse REST endpoints.

These Pydantic v2 models define the HTTP transport contract. They are
intentionally separate from the dataclasses in auth/models.py, which own the
internal domain representation. Route handlers map between the two.
"""

from typing import Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator

from auth.models import PublicUser

# ---------------------------------------------------------------------------
# Constants
# ---------------------------------------------------------------------------

EMAIL_PATTERN = r"^[^\s@]+@[^\s@]+\.[^\s@]+$"
EMAIL_MAX_LENGTH = 255
PASSWORD_MAX_LENGTH = 128


# ---------------------------------------------------------------------------
# Request models
# ---------------------------------------------------------------------------


class _EmailBody(BaseModel):
    model_config = ConfigDict(str_strip_whitespace=True)

    @field_validator("email", mode="before", check_fields=False)
    @classmethod
    def lowercase_email(cls, value):
        """Trim and lowercase before the pattern check so casing never creates a second account."""
        if isinstance(value, str):
            return value.strip().lower()
        return value


class RegisterRequest(_EmailBody):
    """Request body for POST /api/v1/auth/register.

    Only presence and the length ceiling are checked here; the full strength
    rules run in AuthService so every violated rule is reported together.
    """

    email: str = Field(min_length=1, max_length=EMAIL_MAX_LENGTH, pattern=EMAIL_PATTERN)
    password: str = Field(min_length=1, max_length=PASSWORD_MAX_LENGTH)


class LoginRequest(_EmailBody):
    email: str = Field(min_length=1, max_length=EMAIL_MAX_LENGTH, pattern=EMAIL_PATTERN)
    password: str = Field(min_length=1)


class ProfileUpdate(_EmailBody):
    """Request body for PATCH /api/v1/user/profile."""

    email: Optional[str] = Field(default=None, max_length=EMAIL_MAX_LENGTH, pattern=EMAIL_PATTERN)


# ---------------------------------------------------------------------------
# Response models
# ---------------------------------------------------------------------------


class UserResponse(BaseModel):
    """A sanitized user. There is deliberately no password field."""

    model_config = ConfigDict(frozen=True)

    id: str
    email: str
    created_at: str
    updated_at: str

    @classmethod
    def from_public(cls, user: PublicUser) -> "UserResponse":
        return cls(id=user.id, email=user.email, created_at=user.created_at, updated_at=user.updated_at)


class RegisterResponse(BaseModel):
    model_config = ConfigDict(frozen=True)

    success: bool = True
    message: str
    user: UserResponse


class LoginResponse(BaseModel):
    model_config = ConfigDict(frozen=True)

    success: bool = True
    message: str
    token: str
    token_type: str = "bearer"
    expires_in: int
    user: UserResponse


class MeResponse(BaseModel):
    model_config = ConfigDict(frozen=True)

    user_id: str
    email: str


class ProfileResponse(BaseModel):
    model_config = ConfigDict(frozen=True)

    success: bool = True
    message: Optional[str] = None
    user: UserResponse


class MessageResponse(BaseModel):
    model_config = ConfigDict(frozen=True)

    success: bool = True
    message: str


class ErrorDetail(BaseModel):
    """Machine-readable error payload."""

    model_config = ConfigDict(frozen=True)

    code: str
    message: str
    detail: Optional[str] = None
    errors: Optional[list[str]] = None


class ErrorResponse(BaseModel):
    """Top-level error envelope returned on 4xx/5xx responses."""

    model_config = ConfigDict(frozen=True)

    error: ErrorDetail


class HealthResponse(BaseModel):
    """Response for GET /api/v1/health."""

    model_config = ConfigDict(frozen=True)

    status: str = "ok"
    version: str
