"""JWT issuance and verification for access and refresh tokens.

Access and refresh tokens are signed with the same key but carry different
audiences, so a token of one kind is never accepted where the other is
expected.
"""

import secrets
from dataclasses import dataclass, field
from datetime import UTC, datetime, timedelta
from typing import Any

import jwt
from jwt.exceptions import (
    ExpiredSignatureError,
    InvalidAudienceError,
    InvalidIssuerError,
    MissingRequiredClaimError,
    PyJWTError,
)

from app.core.config import Settings, settings

ACCESS_AUDIENCE = "user-management-api"
REFRESH_AUDIENCE = "user-management-refresh"


class TokenError(Exception):
    """Base JWT token error."""

    pass


class TokenExpiredError(TokenError):
    """Token is past its expiry."""

    pass


class MalformedTokenError(TokenError):
    """Token signature or structure is invalid."""

    pass


class WrongAudienceError(TokenError):
    """Token audience or issuer does not match the expected kind."""

    pass


@dataclass
class AccessTokenPayload:
    """Identity carried by an access token."""

    subject_id: int
    email: str
    roles: list[str] = field(default_factory=list)


@dataclass(frozen=True)
class RefreshTokenClaims:
    """Verified contents of a refresh token."""

    subject_id: int
    expires_at: int  # epoch seconds
    token_id: str


class TokenCodec:
    """Signs and verifies the two token kinds."""

    def __init__(
        self,
        secret_key: str,
        access_ttl: timedelta,
        refresh_ttl: timedelta,
        issuer: str = "user-management-system",
        algorithm: str = "HS256",
    ) -> None:
        self._secret_key = secret_key
        self._algorithm = algorithm
        self.access_ttl = access_ttl
        self.refresh_ttl = refresh_ttl
        self.issuer = issuer

    @classmethod
    def from_settings(cls, config: Settings = settings) -> "TokenCodec":
        return cls(
            secret_key=config.jwt_secret_key,
            access_ttl=config.access_token_ttl,
            refresh_ttl=config.refresh_token_ttl,
            issuer=config.jwt_issuer,
            algorithm=config.jwt_algorithm,
        )

    @property
    def access_token_lifetime(self) -> int:
        """Access token lifetime in whole seconds."""
        return int(self.access_ttl.total_seconds())

    @property
    def refresh_token_lifetime(self) -> int:
        """Refresh token lifetime in whole seconds."""
        return int(self.refresh_ttl.total_seconds())

    def issue_access_token(self, payload: AccessTokenPayload) -> str:
        """Create a short-lived access token."""
        now = datetime.now(UTC)
        claims = {
            "sub": str(payload.subject_id),
            "email": payload.email,
            "roles": list(payload.roles),
            "iat": now,
            "exp": now + self.access_ttl,
            "aud": ACCESS_AUDIENCE,
            "iss": self.issuer,
        }
        return jwt.encode(claims, self._secret_key, algorithm=self._algorithm)

    def issue_refresh_token(self, subject_id: int) -> str:
        """Create a long-lived refresh token.

        The random jti makes every refresh token unique, even two minted for
        the same subject within the same second.
        """
        now = datetime.now(UTC)
        claims = {
            "sub": str(subject_id),
            "jti": secrets.token_hex(16),
            "iat": now,
            "exp": now + self.refresh_ttl,
            "aud": REFRESH_AUDIENCE,
            "iss": self.issuer,
        }
        return jwt.encode(claims, self._secret_key, algorithm=self._algorithm)

    def verify_access_token(self, token: str) -> AccessTokenPayload:
        """Validate an access token and return its payload."""
        claims = self._decode(token, ACCESS_AUDIENCE, required=["sub", "email", "roles"])
        roles = claims["roles"]
        if not isinstance(roles, list) or not all(isinstance(r, str) for r in roles):
            raise MalformedTokenError("Invalid roles claim")
        return AccessTokenPayload(
            subject_id=self._subject_id(claims),
            email=claims["email"],
            roles=roles,
        )

    def verify_refresh_token(self, token: str) -> RefreshTokenClaims:
        """Validate a refresh token and return its claims."""
        claims = self._decode(token, REFRESH_AUDIENCE, required=["sub", "jti"])
        return RefreshTokenClaims(
            subject_id=self._subject_id(claims),
            expires_at=int(claims["exp"]),
            token_id=str(claims["jti"]),
        )

    def _decode(self, token: str, audience: str, required: list[str]) -> dict[str, Any]:
        try:
            return jwt.decode(
                token,
                self._secret_key,
                algorithms=[self._algorithm],
                audience=audience,
                issuer=self.issuer,
                options={"require": ["exp", "iat", "aud", "iss", *required]},
            )
        except ExpiredSignatureError as e:
            raise TokenExpiredError("Token has expired") from e
        except (InvalidAudienceError, InvalidIssuerError) as e:
            raise WrongAudienceError(f"Token not valid here: {e}") from e
        except MissingRequiredClaimError as e:
            if e.claim in ("aud", "iss"):
                raise WrongAudienceError(f"Token not valid here: {e}") from e
            raise MalformedTokenError(f"Invalid token: {e}") from e
        except PyJWTError as e:
            raise MalformedTokenError(f"Invalid token: {e}") from e

    @staticmethod
    def _subject_id(claims: dict[str, Any]) -> int:
        try:
            return int(claims["sub"])
        except (TypeError, ValueError) as e:
            raise MalformedTokenError("Invalid subject claim") from e
