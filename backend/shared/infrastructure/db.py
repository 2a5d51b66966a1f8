"""
Database configuration and session management.
Uses SQLAlchemy 2.0 patterns.
"""

import os
from collections.abc import Generator
from contextlib import contextmanager
from typing import Any

from sqlalchemy import create_engine
from sqlalchemy.engine import Engine
from sqlalchemy.exc import OperationalError
from sqlalchemy.orm import sessionmaker, Session

from shared.config.logging import get_logger
from shared.config.settings import DATABASE_URL, settings
from shared.utils.exceptions import OperationTimeoutError

logger = get_logger(__name__)


def _calculate_pool_size() -> int:
    """(2 * CPU cores) + 1, capped at 20."""
    cores = os.cpu_count() or 4
    return min(cores * 2 + 1, 20)


def _engine_kwargs(url: str) -> dict[str, Any]:
    if url.startswith("sqlite"):
        # busy timeout in seconds; SQLite has no statement timeout
        return {
            "connect_args": {
                "check_same_thread": False,
                "timeout": settings.db_statement_timeout_ms / 1000,
            },
        }

    return {
        "pool_pre_ping": True,
        "pool_size": _calculate_pool_size(),
        "max_overflow": 15,
        "pool_timeout": 30,
        "pool_recycle": 1800,
        "connect_args": {
            "connect_timeout": 10,
            # Every statement and row lock wait is bounded
            "options": (
                f"-c statement_timeout={settings.db_statement_timeout_ms} "
                f"-c lock_timeout={settings.db_statement_timeout_ms}"
            ),
        },
    }


def build_engine(url: str = DATABASE_URL, **overrides: Any) -> Engine:
    """Create an engine with the pool/timeout settings for the given backend."""
    kwargs = _engine_kwargs(url)
    kwargs.update(overrides)
    return create_engine(url, echo=False, **kwargs)


engine = build_engine()

# Session factory
SessionLocal = sessionmaker(
    bind=engine,
    autoflush=False,
    autocommit=False,
)


def get_db() -> Generator[Session, None, None]:
    """
    FastAPI dependency for database sessions.

    Usage:
        @router.get("/items")
        def get_items(db: Session = Depends(get_db)):
            ...

    The session is closed after the request completes.
    """
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()


def safe_commit(db: Session) -> None:
    """
    Commit with automatic rollback on failure.

    Raises the original exception after rolling back.
    """
    try:
        db.commit()
    except Exception:
        db.rollback()
        raise


# Driver messages that mean "we gave up waiting", not "the query is wrong"
_TIMEOUT_MARKERS = (
    "statement timeout",
    "lock timeout",
    "canceling statement",
    "database is locked",
    "could not obtain lock",
)


def is_timeout_error(exc: OperationalError) -> bool:
    message = str(exc.orig if exc.orig is not None else exc).lower()
    return any(marker in message for marker in _TIMEOUT_MARKERS)


@contextmanager
def translate_timeouts(db: Session, operation: str) -> Generator[None, None, None]:
    """
    Turn store-side timeouts into OperationTimeoutError.

    Rolls back the session so no partial write survives. Other
    OperationalErrors propagate unchanged.
    """
    try:
        yield
    except OperationalError as exc:
        if not is_timeout_error(exc):
            raise
        db.rollback()
        raise OperationTimeoutError(operation, error=str(exc.orig)) from exc
