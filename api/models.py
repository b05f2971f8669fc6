"""
API request and response models for Gatekeeper REST endpoints.

These Pydantic v2 models define the HTTP transport contract for the API layer.
They are intentionally separate from the dataclasses in auth/models.py, which
own the internal domain representation. Route handlers map between the two.

JSON uses camelCase (firstName, expiresIn) to match the web client; Python
attributes stay snake_case. Every response shares the envelope

    {"success": bool, "message": str, "data": {...}}      on success
    {"success": false, "message": str, "errors": [...]}  on failure
"""

from typing import Annotated, Optional

from pydantic import BaseModel, ConfigDict, Field, StringConstraints
from pydantic.alias_generators import to_camel

from accounts.service import (
    EMAIL_MAX_LENGTH,
    EMAIL_MIN_LENGTH,
    EMAIL_PATTERN,
    NAME_MAX_LENGTH,
    PASSWORD_MAX_LENGTH,
    PASSWORD_MIN_LENGTH,
)
from auth.models import Gender, UserProfile

_REQUEST_CONFIG = ConfigDict(
    alias_generator=to_camel,
    populate_by_name=True,
)
_RESPONSE_CONFIG = ConfigDict(
    frozen=True,
    alias_generator=to_camel,
    populate_by_name=True,
)


# ---------------------------------------------------------------------------
# Request models
#
# Surrounding whitespace is stripped from emails, names and tokens only.
# Passwords are taken verbatim: leading/trailing spaces are part of the secret.
# ---------------------------------------------------------------------------

EmailField = Annotated[
    str,
    StringConstraints(
        strip_whitespace=True,
        min_length=EMAIL_MIN_LENGTH,
        max_length=EMAIL_MAX_LENGTH,
        pattern=EMAIL_PATTERN,
    ),
]
NameField = Annotated[str, StringConstraints(strip_whitespace=True, min_length=1, max_length=NAME_MAX_LENGTH)]
TokenField = Annotated[str, StringConstraints(strip_whitespace=True, min_length=1, max_length=2048)]
PasswordField = Annotated[
    str,
    StringConstraints(strip_whitespace=False, min_length=PASSWORD_MIN_LENGTH, max_length=PASSWORD_MAX_LENGTH),
]


class RegisterRequest(BaseModel):
    """Request body for POST /api/v1/auth/register."""

    model_config = _REQUEST_CONFIG

    email: EmailField
    password: PasswordField
    first_name: NameField
    last_name: NameField
    gender: Optional[Gender] = None


class LoginRequest(BaseModel):
    """Request body for POST /api/v1/auth/login.

    Only presence and an upper bound are checked here. Format and length rules
    would let a caller probe which part of a bad login was wrong.
    """

    model_config = _REQUEST_CONFIG

    email: Annotated[str, StringConstraints(strip_whitespace=True, min_length=1, max_length=255)]
    password: Annotated[str, StringConstraints(strip_whitespace=False, min_length=1, max_length=255)]


class ActivateRequest(BaseModel):
    model_config = _REQUEST_CONFIG

    token: TokenField


class ForgotPasswordRequest(BaseModel):
    model_config = _REQUEST_CONFIG

    email: EmailField


class ResetPasswordRequest(BaseModel):
    model_config = _REQUEST_CONFIG

    token: TokenField
    password: PasswordField


# ---------------------------------------------------------------------------
# Response payloads
# ---------------------------------------------------------------------------


class UserResponse(BaseModel):
    """Public view of an account. Never carries the password secret."""

    model_config = _RESPONSE_CONFIG

    id: str
    email: str
    first_name: str
    last_name: str
    verified: bool
    avatar_url: Optional[str]
    gender: Optional[Gender]
    created_at: Optional[str]
    updated_at: Optional[str]

    @classmethod
    def from_profile(cls, profile: UserProfile) -> "UserResponse":
        return cls(
            id=profile.id,
            email=profile.email,
            first_name=profile.first_name,
            last_name=profile.last_name,
            verified=profile.verified,
            avatar_url=profile.avatar_url,
            gender=profile.gender,
            created_at=profile.created_at,
            updated_at=profile.updated_at,
        )


class SessionData(BaseModel):
    model_config = _RESPONSE_CONFIG

    token: str
    token_type: str = "bearer"
    expires_in: int


class RegistrationData(SessionData):
    user: UserResponse


# ---------------------------------------------------------------------------
# Envelopes
# ---------------------------------------------------------------------------


class MessageResponse(BaseModel):
    model_config = _RESPONSE_CONFIG

    success: bool = True
    message: str


class RegisterResponse(MessageResponse):
    data: RegistrationData


class LoginResponse(MessageResponse):
    data: SessionData


class ProfileResponse(MessageResponse):
    data: UserResponse


class ErrorResponse(BaseModel):
    """Body of every non-2xx response."""

    model_config = _RESPONSE_CONFIG

    success: bool = False
    message: str
    errors: list[str] = Field(default_factory=list)


class HealthResponse(BaseModel):
    """Response for GET /api/v1/health."""

    model_config = _RESPONSE_CONFIG

    status: str = "healthy"
    version: str
    components: dict[str, str] = Field(default_factory=dict)
