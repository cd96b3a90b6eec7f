"""Redeemed or revoked refresh tokens, for the database-backed replay guard."""

from datetime import datetime

from sqlalchemy import DateTime, Integer, String
from sqlalchemy.orm import Mapped, mapped_column

from app.core.database import Base


class RefreshTokenBlacklist(Base):
    """A consumed refresh token identified by the SHA-256 digest of its value.

    The raw token is never stored. Rows are removed once expires_at passes.
    """

    __tablename__ = "refresh_token_blacklist"

    token_id: Mapped[str] = mapped_column(String(64), primary_key=True)
    subject_id: Mapped[int] = mapped_column(Integer, nullable=False, index=True)
    blacklisted_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)
    expires_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, index=True
    )
