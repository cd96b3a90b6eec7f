"""Pydantic schemas for authentication API."""

from datetime import datetime

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel


class CamelModel(BaseModel):
    """Serialises field names as camelCase for the frontend."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class LoginRequest(BaseModel):
    """Request for login."""

    email: str = Field(..., min_length=1, max_length=180)
    password: str = Field(..., min_length=1, max_length=128)


class UserResponse(CamelModel):
    """Account as returned to clients; never includes the password hash."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, from_attributes=True)

    id: int
    name: str
    email: str
    roles: list[str]
    is_active: bool
    avatar_url: str | None = None
    last_login_at: datetime | None = None
    created_at: datetime | None = None
    updated_at: datetime | None = None


class LoginResponse(CamelModel):
    """Access token in the body; the refresh token goes in a cookie."""

    token: str
    user: UserResponse


class RefreshResponse(CamelModel):
    """Response after refresh token rotation."""

    token: str
    expires_in: int = Field(description="Access token lifetime in seconds")


class ProfileResponse(CamelModel):
    data: UserResponse


class MessageResponse(BaseModel):
    """Generic message response."""

    message: str


class ErrorResponse(BaseModel):
    """Error body for authentication failures."""

    detail: str
    code: str
