# Models
from app.models.base import BaseModel
from app.models.token_blacklist import RefreshTokenBlacklist
from app.models.user import User

__all__ = [
    "BaseModel",
    "RefreshTokenBlacklist",
    "User",
]
