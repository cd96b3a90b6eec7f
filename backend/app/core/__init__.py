# Core module
from .config import get_settings, parse_duration, settings
from .database import (
    Base,
    async_session_maker,
    check_db_connection,
    engine,
    get_db,
    session_scope,
)
from .logging import get_logger, log_security_event, setup_logging

__all__ = [
    "settings",
    "get_settings",
    "parse_duration",
    "setup_logging",
    "get_logger",
    "log_security_event",
    "Base",
    "engine",
    "async_session_maker",
    "get_db",
    "check_db_connection",
    "session_scope",
]
