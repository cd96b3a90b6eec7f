# Pydantic Schemas
from app.schemas.auth import (
    ErrorResponse,
    LoginRequest,
    LoginResponse,
    MessageResponse,
    ProfileResponse,
    RefreshResponse,
    UserResponse,
)

__all__ = [
    "ErrorResponse",
    "LoginRequest",
    "LoginResponse",
    "MessageResponse",
    "ProfileResponse",
    "RefreshResponse",
    "UserResponse",
]
