"""Login / refresh / logout protocol.

Login turns credentials into an access token (returned in the body) and a
refresh token (delivered only as an HttpOnly cookie). Refresh redeems the
refresh token exactly once: the old token is blacklisted before a new pair
is issued, so a crash in between leaves the user logged out rather than
holding two live refresh tokens.
"""

import asyncio
import logging
from dataclasses import dataclass

from starlette.responses import Response

from app.core.logging import get_logger, log_security_event
from app.models.user import User
from app.services.accounts import AccountDirectory, normalize_email
from app.services.passwords import DUMMY_PASSWORD_HASH, verify_password
from app.services.refresh_coalescer import RefreshCoalescer
from app.services.token_blacklist import ReplayGuard
from app.services.tokens import AccessTokenPayload, TokenCodec, TokenError

logger = get_logger("session")

DEFAULT_REFRESH_COOKIE_NAME = "refreshToken"
DEFAULT_REFRESH_COOKIE_PATH = "/api"


class SessionError(Exception):
    """Base session protocol error.

    code is the machine-readable error code sent to clients; clears_cookie
    tells the transport to drop the refresh cookie.
    """

    code = "SESSION_ERROR"
    clears_cookie = False


class InvalidCredentialsError(SessionError):
    """Unknown account, inactive account or wrong password."""

    code = "INVALID_CREDENTIALS"


class MissingRefreshTokenError(SessionError):
    """No refresh token was presented."""

    code = "MISSING_REFRESH_TOKEN"


class TokenRevokedError(SessionError):
    """Refresh token was already redeemed or revoked."""

    code = "TOKEN_REVOKED"
    clears_cookie = True


class InvalidRefreshTokenError(SessionError):
    """Refresh token is expired, tampered with, or of the wrong kind."""

    code = "INVALID_REFRESH_TOKEN"
    clears_cookie = True


class UserNotFoundError(SessionError):
    """Refresh token subject no longer exists or is inactive."""

    code = "USER_NOT_FOUND"
    clears_cookie = True


@dataclass
class LoginResult:
    access_token: str
    refresh_token: str
    user: User


@dataclass
class RefreshResult:
    access_token: str
    refresh_token: str
    expires_in: int


class SessionService:
    """Orchestrates hashing, token codec, replay guard and coalescer."""

    def __init__(
        self,
        accounts: AccountDirectory,
        tokens: TokenCodec,
        replay_guard: ReplayGuard,
        coalescer: RefreshCoalescer,
    ):
        self.accounts = accounts
        self.tokens = tokens
        self.replay_guard = replay_guard
        self.coalescer = coalescer

    def _issue_pair(self, user: User) -> tuple[str, str]:
        payload = AccessTokenPayload(subject_id=user.id, email=user.email, roles=list(user.roles))
        return self.tokens.issue_access_token(payload), self.tokens.issue_refresh_token(user.id)

    async def login(self, email: str, password: str) -> LoginResult:
        """Authenticate with email and password.

        Raises InvalidCredentialsError for every failure so the response
        never reveals whether the account exists.
        """
        email = normalize_email(email)
        user = await self.accounts.find_active_by_email(email)

        if user is None:
            # Same Argon2 cost as a real check
            await asyncio.to_thread(verify_password, DUMMY_PASSWORD_HASH, password)
            log_security_event(logger, "login_failed", email=email, reason="unknown_or_inactive")
            raise InvalidCredentialsError("Invalid email or password")

        if not await asyncio.to_thread(verify_password, user.password_hash, password):
            log_security_event(logger, "login_failed", email=email, user_id=user.id, reason="bad_password")
            raise InvalidCredentialsError("Invalid email or password")

        await self.accounts.record_login(user)
        access_token, refresh_token = self._issue_pair(user)
        logger.info(f"User logged in: {user.id}")
        return LoginResult(access_token=access_token, refresh_token=refresh_token, user=user)

    async def refresh(self, refresh_token: str | None) -> RefreshResult:
        """Redeem a refresh token for a new access/refresh pair.

        The blacklist check runs inside the coalesced operation. A caller
        that arrives while a rotation for the same subject is in flight
        joins it and never consults the blacklist itself, so it cannot see
        the token the in-flight rotation has just consumed.
        """
        if not refresh_token:
            raise MissingRefreshTokenError("No refresh token provided")

        try:
            claims = self.tokens.verify_refresh_token(refresh_token)
        except TokenError as e:
            # Blacklist entries never outlive exp, so a revoked token still
            # verifies here and is rejected inside the coalesced operation.
            logger.info(f"Rejected refresh token: {type(e).__name__}")
            raise InvalidRefreshTokenError("Invalid or expired refresh token") from e

        async def rotate() -> RefreshResult:
            if await self.replay_guard.is_blacklisted(refresh_token):
                log_security_event(logger, "refresh_token_replayed", user_id=claims.subject_id)
                raise TokenRevokedError("Refresh token has been revoked")

            user = await self.accounts.find_active_by_id(claims.subject_id)
            if user is None:
                raise UserNotFoundError("User not found or inactive")

            # Must complete before the replacement pair exists
            await self.replay_guard.blacklist(refresh_token, claims.subject_id, claims.expires_at)

            access_token, new_refresh_token = self._issue_pair(user)
            return RefreshResult(
                access_token=access_token,
                refresh_token=new_refresh_token,
                expires_in=self.tokens.access_token_lifetime,
            )

        return await self.coalescer.coalesce(claims.subject_id, rotate)

    async def logout(self, refresh_token: str | None) -> None:
        """Revoke the presented refresh token, if it is still valid.

        Missing, invalid and already revoked tokens are ignored.
        """
        if not refresh_token:
            return
        try:
            claims = self.tokens.verify_refresh_token(refresh_token)
        except TokenError:
            return
        await self.replay_guard.blacklist(refresh_token, claims.subject_id, claims.expires_at)
        log_security_event(logger, "logout", level=logging.INFO, user_id=claims.subject_id)


def set_refresh_cookie(
    response: Response,
    refresh_token: str,
    max_age: int,
    secure: bool,
    *,
    name: str = DEFAULT_REFRESH_COOKIE_NAME,
    path: str = DEFAULT_REFRESH_COOKIE_PATH,
) -> None:
    """Deliver a refresh token as an HttpOnly, SameSite=Strict cookie."""
    response.set_cookie(
        name,
        value=refresh_token,
        max_age=max_age,
        path=path,
        secure=secure,
        httponly=True,
        samesite="strict",
    )


def clear_refresh_cookie(
    response: Response,
    secure: bool,
    *,
    name: str = DEFAULT_REFRESH_COOKIE_NAME,
    path: str = DEFAULT_REFRESH_COOKIE_PATH,
) -> None:
    """Expire the refresh cookie (Max-Age=0) with matching attributes."""
    response.delete_cookie(
        name,
        path=path,
        secure=secure,
        httponly=True,
        samesite="strict",
    )
