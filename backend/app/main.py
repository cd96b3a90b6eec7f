"""User Management API - FastAPI Application Factory."""

import asyncio
from collections.abc import AsyncGenerator
from contextlib import asynccontextmanager, suppress

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from app.api import api_router
from app.api.auth import prune_login_failures
from app.api.health import router as health_router
from app.core import async_session_maker, settings, setup_logging
from app.core.config import Settings
from app.core.logging import get_logger
from app.middleware import SecurityHeadersMiddleware
from app.services.refresh_coalescer import RefreshCoalescer
from app.services.token_blacklist import (
    BlacklistStore,
    DatabaseBlacklistStore,
    InMemoryBlacklistStore,
    ReplayGuard,
)
from app.services.tokens import TokenCodec

logger = get_logger("main")


def task_done_callback(task: asyncio.Task[None]) -> None:
    """Log unhandled exceptions from background tasks."""
    if task.cancelled():
        return
    exc = task.exception()
    if exc is not None:
        logger.error(f"Background task {task.get_name()} failed: {exc}")


async def _periodic_cleanup_loop(
    replay_guard: ReplayGuard,
    interval: int,
    login_window_seconds: int,
) -> None:
    """Periodically purge expired blacklist entries and idle login throttle keys."""
    while True:
        await asyncio.sleep(interval)
        try:
            removed = await replay_guard.purge_expired()
            if removed > 0:
                logger.info(f"Cleaned up {removed} expired token blacklist entries")
        except Exception:
            logger.exception("Error cleaning up token blacklist")

        pruned = prune_login_failures(login_window_seconds)
        if pruned > 0:
            logger.debug(f"Pruned {pruned} idle login throttle entries")


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    """Application lifespan handler for startup/shutdown."""
    config: Settings = app.state.settings
    setup_logging(
        level=config.log_level,
        format_type="structured" if not config.debug else "dev",
    )
    logger.info(f"Starting {config.app_name} v{config.app_version}")

    for warning in config.check_security_configuration():
        logger.warning(f"Security configuration: {warning}")

    cleanup_task = asyncio.create_task(
        _periodic_cleanup_loop(
            app.state.replay_guard,
            config.token_blacklist_cleanup_interval_seconds,
            config.login_rate_limit_window_seconds,
        ),
        name="periodic_cleanup",
    )
    cleanup_task.add_done_callback(task_done_callback)

    yield

    logger.info("Shutting down...")
    cleanup_task.cancel()
    with suppress(asyncio.CancelledError):
        await cleanup_task


def _build_blacklist_store(config: Settings) -> BlacklistStore:
    if config.token_blacklist_backend == "database":
        return DatabaseBlacklistStore(async_session_maker)
    return InMemoryBlacklistStore()


def create_app(config: Settings = settings) -> FastAPI:
    """Create and configure the FastAPI application."""
    app = FastAPI(
        title=config.app_name,
        description="User management API with rotating refresh tokens",
        version=config.app_version,
        lifespan=lifespan,
        docs_url="/docs" if config.debug else None,
        redoc_url="/redoc" if config.debug else None,
        openapi_url="/openapi.json" if config.debug else None,
    )

    # Shared token lifecycle state, handed to request handlers via dependencies
    app.state.settings = config
    app.state.token_codec = TokenCodec.from_settings(config)
    app.state.replay_guard = ReplayGuard(_build_blacklist_store(config))
    app.state.refresh_coalescer = RefreshCoalescer()

    app.add_middleware(SecurityHeadersMiddleware, production=config.is_production)

    # CORS must be outermost (added last) so 401s carry CORS headers too.
    # Credentials are required for the refresh cookie.
    app.add_middleware(
        CORSMiddleware,
        allow_origins=config.cors_origins_list,
        allow_credentials=True,
        allow_methods=["GET", "POST", "PUT", "DELETE", "OPTIONS"],
        allow_headers=["Authorization", "Content-Type"],
        max_age=86400,
    )

    app.include_router(health_router)
    app.include_router(api_router)

    return app


# Application instance
app = create_app()
