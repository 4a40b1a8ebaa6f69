"""
API request and response models for the account REST endpoints.

These Pydantic v2 models define the HTTP transport contract for the API layer.
They are intentionally separate from the dataclasses in auth/models.py and
account/models.py, which own the internal domain representation. Route
handlers map between the two.

Request models are the explicit schema for structural validation: a body that
fails them never reaches a handler and is answered with a malformed_input
error by api/main.py.
"""

from datetime import datetime
from typing import Annotated, Optional

from pydantic import BaseModel, ConfigDict, Field, StringConstraints

from account.models import User

# bcrypt reads at most 72 bytes; capping here keeps ASCII passwords intact.
_PASSWORD_MAX = 72

# Upper bound of the SQLite INTEGER primary key.
_ID_MAX = 2**63 - 1

# Usernames are trimmed; passwords are taken byte-for-byte.
Username = Annotated[str, StringConstraints(strip_whitespace=True, min_length=3, max_length=20)]

# ---------------------------------------------------------------------------
# Auth request/response models
# ---------------------------------------------------------------------------


class LoginRequest(BaseModel):
    """Request body for POST /account/login."""

    username: str = Field(min_length=1, max_length=64)
    password: str = Field(min_length=1, max_length=_PASSWORD_MAX)


class RefreshTokenRequest(BaseModel):
    """Request body for POST /account/refresh_token."""

    refresh_token: str = Field(min_length=1, max_length=4096)


class TokenPairResponse(BaseModel):
    """Returned by login and refresh: a fresh access/refresh pair."""

    model_config = ConfigDict(frozen=True)

    access_token: str
    refresh_token: str
    token_type: str = "bearer"
    expires_in: int  # access token lifetime in seconds


# ---------------------------------------------------------------------------
# User management models
# ---------------------------------------------------------------------------


class UserCreate(BaseModel):
    """Request body for POST /account/user."""

    username: Username
    password: str = Field(min_length=4, max_length=_PASSWORD_MAX)
    description: str = Field(default="", max_length=255)


class UserUpdate(BaseModel):
    """Request body for PUT /account/user. Only supplied fields are changed."""

    id: int = Field(gt=0, le=_ID_MAX)
    password: Optional[str] = Field(default=None, min_length=4, max_length=_PASSWORD_MAX)
    description: Optional[str] = Field(default=None, max_length=255)


class UserDelete(BaseModel):
    """Request body for DELETE /account/user."""

    id: int = Field(gt=0, le=_ID_MAX)


class UserResponse(BaseModel):
    """One row in the user list."""

    model_config = ConfigDict(frozen=True)

    id: int
    username: str
    description: str
    create_time: str

    @classmethod
    def from_user(cls, user: User) -> "UserResponse":
        create_time = ""
        if user.created_at:
            create_time = datetime.fromisoformat(user.created_at).strftime("%Y-%m-%d %H:%M:%S")
        return cls(
            id=user.id,
            username=user.username,
            description=user.description,
            create_time=create_time,
        )


class UserListResponse(BaseModel):
    """Response for GET /account/user."""

    model_config = ConfigDict(populate_by_name=True)

    total: int
    # Serialized as "list" on the wire.
    items: list[UserResponse] = Field(alias="list")


class UserIdResponse(BaseModel):
    """Response for user create/update/delete."""

    user_id: int


# ---------------------------------------------------------------------------
# Envelopes
# ---------------------------------------------------------------------------


class ErrorDetail(BaseModel):
    """Machine-readable error payload."""

    model_config = ConfigDict(frozen=True)

    code: str
    message: str
    detail: Optional[str] = None


class ErrorResponse(BaseModel):
    """Top-level error envelope returned on 4xx/5xx responses."""

    model_config = ConfigDict(frozen=True)

    error: ErrorDetail


class HealthResponse(BaseModel):
    """Response for GET /health."""

    model_config = ConfigDict(frozen=True)

    status: str = "ok"
    version: str
