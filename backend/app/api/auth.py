"""Authentication API endpoints."""

import time
from collections import defaultdict

from fastapi import APIRouter, Depends, HTTPException, Request, Response, status
from fastapi.responses import JSONResponse
from sqlalchemy.ext.asyncio import AsyncSession

from app.core import get_db
from app.core.config import Settings
from app.core.logging import get_logger, log_security_event
from app.schemas.auth import (
    ErrorResponse,
    LoginRequest,
    LoginResponse,
    MessageResponse,
    ProfileResponse,
    RefreshResponse,
    UserResponse,
)
from app.services.accounts import AccountDirectory, AccountService
from app.services.session import (
    SessionError,
    SessionService,
    clear_refresh_cookie,
    set_refresh_cookie,
)
from app.services.tokens import AccessTokenPayload, TokenCodec, TokenError, TokenExpiredError

logger = get_logger("api.auth")

# Failed login attempts per client IP. Only IPs with failures inside the
# window have a key.
_login_failures: dict[str, list[float]] = defaultdict(list)


def _client_ip(request: Request) -> str:
    return request.client.host if request.client else "unknown"


def _check_login_rate_limit(client_ip: str, config: Settings) -> None:
    """Reject the request if the client IP has too many recent failures."""
    now = time.monotonic()
    window = config.login_rate_limit_window_seconds
    recent = [t for t in _login_failures.get(client_ip, ()) if now - t < window]
    if recent:
        _login_failures[client_ip] = recent
    else:
        _login_failures.pop(client_ip, None)
    if len(recent) >= config.login_rate_limit_attempts:
        log_security_event(logger, "login_rate_limited", client_ip=client_ip)
        raise HTTPException(
            status_code=status.HTTP_429_TOO_MANY_REQUESTS,
            detail="Too many login attempts. Please try again later.",
        )


def _record_login_failure(client_ip: str) -> None:
    _login_failures[client_ip].append(time.monotonic())


def prune_login_failures(window_seconds: int) -> int:
    """Drop client IPs whose failures have all left the window.

    Returns the number of IPs removed.
    """
    now = time.monotonic()
    stale = [
        ip
        for ip, attempts in list(_login_failures.items())
        if all(now - t >= window_seconds for t in attempts)
    ]
    for ip in stale:
        _login_failures.pop(ip, None)
    return len(stale)


def _session_error_response(exc: SessionError, config: Settings) -> JSONResponse:
    """401 body for a session error, dropping the refresh cookie if required."""
    response = JSONResponse(
        status_code=status.HTTP_401_UNAUTHORIZED,
        content={"detail": str(exc), "code": exc.code},
    )
    if exc.clears_cookie:
        _clear_cookie(response, config)
    return response


def _set_cookie(response: Response, token: str, max_age: int, config: Settings) -> None:
    set_refresh_cookie(
        response,
        token,
        max_age,
        config.secure_cookies,
        name=config.refresh_cookie_name,
        path=config.refresh_cookie_path,
    )


def _clear_cookie(response: Response, config: Settings) -> None:
    clear_refresh_cookie(
        response,
        config.secure_cookies,
        name=config.refresh_cookie_name,
        path=config.refresh_cookie_path,
    )


router = APIRouter(tags=["auth"])


def get_app_settings(request: Request) -> Settings:
    """Dependency to get the settings the application was created with."""
    return request.app.state.settings


def get_account_directory(db: AsyncSession = Depends(get_db)) -> AccountDirectory:
    """Dependency to get the account directory."""
    return AccountService(db)


def get_token_codec(request: Request) -> TokenCodec:
    return request.app.state.token_codec


def get_session_service(
    request: Request,
    accounts: AccountDirectory = Depends(get_account_directory),
) -> SessionService:
    """Dependency to get the session service wired to the app-wide guard and coalescer."""
    state = request.app.state
    return SessionService(
        accounts=accounts,
        tokens=state.token_codec,
        replay_guard=state.replay_guard,
        coalescer=state.refresh_coalescer,
    )


def get_access_token_payload(
    request: Request,
    tokens: TokenCodec = Depends(get_token_codec),
) -> AccessTokenPayload:
    """Dependency to authenticate the request from its Bearer access token."""
    auth_header = request.headers.get("Authorization", "")

    if not auth_header.startswith("Bearer "):
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Missing or invalid authorization header",
            headers={"WWW-Authenticate": "Bearer"},
        )

    try:
        return tokens.verify_access_token(auth_header[7:])
    except TokenExpiredError as e:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Token has expired",
            headers={"WWW-Authenticate": "Bearer"},
        ) from e
    except TokenError as e:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid token",
            headers={"WWW-Authenticate": "Bearer"},
        ) from e


@router.post(
    "/login",
    response_model=LoginResponse,
    responses={
        status.HTTP_401_UNAUTHORIZED: {"model": ErrorResponse},
        status.HTTP_429_TOO_MANY_REQUESTS: {"description": "Too many failed attempts"},
    },
)
async def login(
    body: LoginRequest,
    request: Request,
    response: Response,
    session_service: SessionService = Depends(get_session_service),
    config: Settings = Depends(get_app_settings),
) -> LoginResponse | JSONResponse:
    """Authenticate with email and password.

    Returns the access token and the account; the refresh token is set as an
    HttpOnly cookie. Repeated failures from one IP are throttled.
    """
    client_ip = _client_ip(request)
    _check_login_rate_limit(client_ip, config)

    try:
        result = await session_service.login(body.email, body.password)
    except SessionError as e:
        _record_login_failure(client_ip)
        return _session_error_response(e, config)

    _login_failures.pop(client_ip, None)
    lifetime = session_service.tokens.refresh_token_lifetime
    _set_cookie(response, result.refresh_token, lifetime, config)
    return LoginResponse(token=result.access_token, user=UserResponse.model_validate(result.user))


@router.post(
    "/refresh",
    response_model=RefreshResponse,
    responses={status.HTTP_401_UNAUTHORIZED: {"model": ErrorResponse}},
)
async def refresh(
    request: Request,
    response: Response,
    session_service: SessionService = Depends(get_session_service),
    config: Settings = Depends(get_app_settings),
) -> RefreshResponse | JSONResponse:
    """Exchange the refresh cookie for a new access token.

    The refresh token is single-use: it is rotated on every call and the old
    value is rejected from then on.
    """
    refresh_token = request.cookies.get(config.refresh_cookie_name)

    try:
        result = await session_service.refresh(refresh_token)
    except SessionError as e:
        return _session_error_response(e, config)

    lifetime = session_service.tokens.refresh_token_lifetime
    _set_cookie(response, result.refresh_token, lifetime, config)
    return RefreshResponse(token=result.access_token, expires_in=result.expires_in)


@router.post("/logout", response_model=MessageResponse)
async def logout(
    request: Request,
    response: Response,
    session_service: SessionService = Depends(get_session_service),
    config: Settings = Depends(get_app_settings),
) -> MessageResponse:
    """Revoke the refresh cookie and clear it."""
    await session_service.logout(request.cookies.get(config.refresh_cookie_name))
    _clear_cookie(response, config)
    return MessageResponse(message="Logged out successfully")


@router.get("/me", response_model=ProfileResponse)
async def get_profile(
    payload: AccessTokenPayload = Depends(get_access_token_payload),
    accounts: AccountDirectory = Depends(get_account_directory),
) -> ProfileResponse:
    """Get the current user's profile."""
    user = await accounts.find_active_by_id(payload.subject_id)
    if user is None:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="User not found or inactive",
        )
    return ProfileResponse(data=UserResponse.model_validate(user))
