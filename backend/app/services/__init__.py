# Token lifecycle services
from app.services.accounts import AccountDirectory, AccountService
from app.services.refresh_coalescer import RefreshCoalescer
from app.services.session import SessionService
from app.services.token_blacklist import ReplayGuard
from app.services.tokens import TokenCodec

__all__ = [
    "AccountDirectory",
    "AccountService",
    "RefreshCoalescer",
    "ReplayGuard",
    "SessionService",
    "TokenCodec",
]
