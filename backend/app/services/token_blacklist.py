"""Replay guard for refresh tokens.

Every redeemed (or explicitly revoked) refresh token is recorded here until
the moment it would have expired anyway, which makes refresh tokens
single-use. Entries are keyed by a SHA-256 digest of the token so raw tokens
are never kept at rest.

Two stores share one contract:
- InMemoryBlacklistStore: process-local dict, the default.
- DatabaseBlacklistStore: the refresh_token_blacklist table, for deployments
  with more than one instance.
"""

import hashlib
import threading
import time
from dataclasses import dataclass
from datetime import UTC, datetime
from typing import Protocol

from sqlalchemy import delete, func, select
from sqlalchemy.dialects.postgresql import insert
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from app.core.logging import get_logger
from app.models.token_blacklist import RefreshTokenBlacklist

logger = get_logger("token_blacklist")


@dataclass(frozen=True)
class BlacklistEntry:
    token_id: str
    subject_id: int
    blacklisted_at: float  # epoch seconds
    expires_at: float  # epoch seconds


@dataclass(frozen=True)
class BlacklistStats:
    total_entries: int
    active_entries: int


class BlacklistStore(Protocol):
    """Storage backend for blacklist entries."""

    async def put(self, entry: BlacklistEntry) -> None: ...

    async def get(self, token_id: str) -> BlacklistEntry | None: ...

    async def delete(self, token_id: str) -> None: ...

    async def delete_expired(self, now: float) -> int: ...

    async def count(self, now: float) -> BlacklistStats: ...


class InMemoryBlacklistStore:
    """Process-local store. A restart forgets every entry."""

    def __init__(self) -> None:
        self._entries: dict[str, BlacklistEntry] = {}
        self._lock = threading.Lock()

    async def put(self, entry: BlacklistEntry) -> None:
        with self._lock:
            self._entries[entry.token_id] = entry

    async def get(self, token_id: str) -> BlacklistEntry | None:
        with self._lock:
            return self._entries.get(token_id)

    async def delete(self, token_id: str) -> None:
        with self._lock:
            self._entries.pop(token_id, None)

    async def delete_expired(self, now: float) -> int:
        with self._lock:
            expired = [tid for tid, entry in self._entries.items() if now > entry.expires_at]
            for tid in expired:
                del self._entries[tid]
            return len(expired)

    async def count(self, now: float) -> BlacklistStats:
        with self._lock:
            active = sum(1 for entry in self._entries.values() if now <= entry.expires_at)
            return BlacklistStats(total_entries=len(self._entries), active_entries=active)

    def clear(self) -> None:
        with self._lock:
            self._entries.clear()


def _to_datetime(ts: float) -> datetime:
    return datetime.fromtimestamp(ts, tz=UTC)


class DatabaseBlacklistStore:
    """Store backed by the refresh_token_blacklist table.

    Each call runs in its own short transaction so a blacklist write is
    durable before the caller goes on to issue replacement tokens.
    """

    def __init__(self, session_maker: async_sessionmaker[AsyncSession]) -> None:
        self._session_maker = session_maker

    async def put(self, entry: BlacklistEntry) -> None:
        values = {
            "token_id": entry.token_id,
            "subject_id": entry.subject_id,
            "blacklisted_at": _to_datetime(entry.blacklisted_at),
            "expires_at": _to_datetime(entry.expires_at),
        }
        stmt = insert(RefreshTokenBlacklist).values(**values)
        stmt = stmt.on_conflict_do_update(
            index_elements=[RefreshTokenBlacklist.token_id],
            set_={k: v for k, v in values.items() if k != "token_id"},
        )
        async with self._session_maker() as db:
            await db.execute(stmt)
            await db.commit()

    async def get(self, token_id: str) -> BlacklistEntry | None:
        async with self._session_maker() as db:
            row = await db.get(RefreshTokenBlacklist, token_id)
            if row is None:
                return None
            return BlacklistEntry(
                token_id=row.token_id,
                subject_id=row.subject_id,
                blacklisted_at=row.blacklisted_at.timestamp(),
                expires_at=row.expires_at.timestamp(),
            )

    async def delete(self, token_id: str) -> None:
        async with self._session_maker() as db:
            await db.execute(
                delete(RefreshTokenBlacklist).where(RefreshTokenBlacklist.token_id == token_id)
            )
            await db.commit()

    async def delete_expired(self, now: float) -> int:
        async with self._session_maker() as db:
            result = await db.execute(
                delete(RefreshTokenBlacklist).where(
                    RefreshTokenBlacklist.expires_at < _to_datetime(now)
                )
            )
            await db.commit()
            return result.rowcount or 0

    async def count(self, now: float) -> BlacklistStats:
        async with self._session_maker() as db:
            total = await db.scalar(select(func.count()).select_from(RefreshTokenBlacklist))
            active = await db.scalar(
                select(func.count())
                .select_from(RefreshTokenBlacklist)
                .where(RefreshTokenBlacklist.expires_at >= _to_datetime(now))
            )
            return BlacklistStats(total_entries=total or 0, active_entries=active or 0)


def derive_token_id(token: str) -> str:
    """Return the fixed-length storage key for a raw token."""
    return hashlib.sha256(token.encode("utf-8")).hexdigest()


class ReplayGuard:
    """Single-use enforcement for refresh tokens."""

    def __init__(self, store: BlacklistStore) -> None:
        self.store = store

    async def blacklist(self, token: str, subject_id: int, expires_at: float) -> None:
        """Record a token as consumed until expires_at (epoch seconds).

        Blacklisting the same token twice just overwrites the entry.
        """
        entry = BlacklistEntry(
            token_id=derive_token_id(token),
            subject_id=subject_id,
            blacklisted_at=time.time(),
            expires_at=float(expires_at),
        )
        await self.store.put(entry)
        logger.debug(f"Blacklisted refresh token {entry.token_id[:12]} for subject {subject_id}")

    async def is_blacklisted(self, token: str) -> bool:
        """Check whether a token was already consumed.

        Entries past their expiry count as absent and are removed here.
        """
        token_id = derive_token_id(token)
        entry = await self.store.get(token_id)
        if entry is None:
            return False
        if time.time() > entry.expires_at:
            await self.store.delete(token_id)
            return False
        return True

    async def purge_expired(self) -> int:
        """Remove all expired entries. Returns count removed."""
        return await self.store.delete_expired(time.time())

    async def stats(self) -> BlacklistStats:
        return await self.store.count(time.time())
