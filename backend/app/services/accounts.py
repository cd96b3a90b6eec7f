"""Account lookups used by the session protocol."""

from datetime import UTC, datetime
from typing import Protocol

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from app.models.user import User
from app.services.passwords import hash_password


def normalize_email(email: str) -> str:
    return email.strip().lower()


class AccountDirectory(Protocol):
    """Read access to accounts plus the one write the login flow needs."""

    async def find_active_by_id(self, user_id: int) -> User | None: ...

    async def find_active_by_email(self, email: str) -> User | None: ...

    async def record_login(self, user: User) -> None: ...


class AccountService:
    """Account directory backed by the users table."""

    def __init__(self, session: AsyncSession):
        self.session = session

    def _active(self):
        return select(User).where(User.is_active.is_(True), User.deleted_at.is_(None))

    async def find_active_by_id(self, user_id: int) -> User | None:
        """Get an active, non-deleted user by ID."""
        result = await self.session.execute(self._active().where(User.id == user_id))
        return result.scalar_one_or_none()

    async def find_active_by_email(self, email: str) -> User | None:
        """Get an active, non-deleted user by email (case-insensitive)."""
        result = await self.session.execute(
            self._active().where(User.email == normalize_email(email))
        )
        return result.scalar_one_or_none()

    async def record_login(self, user: User) -> None:
        user.last_login_at = datetime.now(UTC)
        await self.session.flush()

    async def create_user(
        self,
        name: str,
        email: str,
        password: str,
        roles: list[str] | None = None,
    ) -> User:
        """Create an account with a hashed password."""
        user = User(
            name=name.strip(),
            email=normalize_email(email),
            password_hash=hash_password(password),
            roles=roles or ["user"],
        )
        self.session.add(user)
        await self.session.flush()
        await self.session.refresh(user)
        return user
