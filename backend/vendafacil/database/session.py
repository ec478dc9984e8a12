"""
Database session management with connection pooling.

The engine and session factory are process-wide singletons created lazily
on first use. Precondition: DATABASE_URL is set before the first session
is requested; otherwise callers get a 503 (FastAPI) or RuntimeError (sync).

Usage:
    from vendafacil.database.session import get_db_session

    @router.get("/items")
    async def get_items(db: Session = Depends(get_db_session)):
        ...
"""

import logging
from threading import Lock
from typing import Generator, Optional

from sqlalchemy import create_engine
from sqlalchemy.engine import Engine
from sqlalchemy.orm import sessionmaker, Session
from fastapi import HTTPException, status

from vendafacil.config.settings import get_settings

logger = logging.getLogger(__name__)

# Module-level engine singleton
_engine: Optional[Engine] = None
_SessionLocal: Optional[sessionmaker] = None
_init_lock = Lock()


def _get_database_url() -> str:
    """
    Get and normalize the database URL from settings.

    Handles the postgres:// URL format by converting to postgresql://.
    """
    database_url = get_settings().database_url
    if not database_url:
        raise ValueError("DATABASE_URL environment variable is not set")

    if database_url.startswith("postgres://"):
        database_url = database_url.replace("postgres://", "postgresql://", 1)

    return database_url


def get_engine() -> Engine:
    """
    Get or create the database engine singleton.

    - pool_pre_ping: Verify connections before use
    - pool_recycle: Recycle connections after 30 minutes
    """
    global _engine
    if _engine is None:
        with _init_lock:
            if _engine is None:
                database_url = _get_database_url()
                kwargs = {"pool_pre_ping": True}
                if not database_url.startswith("sqlite"):
                    kwargs.update(pool_size=5, max_overflow=10, pool_recycle=1800)
                _engine = create_engine(database_url, **kwargs)
                logger.info("Database engine created", extra={
                    "dialect": _engine.dialect.name
                })
    return _engine


def get_session_factory() -> sessionmaker:
    """Get or create the session factory singleton."""
    global _SessionLocal
    if _SessionLocal is None:
        engine = get_engine()
        _SessionLocal = sessionmaker(
            autocommit=False,
            autoflush=False,
            bind=engine
        )
    return _SessionLocal


def reset_engine() -> None:
    """Dispose the engine singleton (for tests only)."""
    global _engine, _SessionLocal
    if _engine is not None:
        _engine.dispose()
    _engine = None
    _SessionLocal = None


def get_db_session() -> Generator[Session, None, None]:
    """
    FastAPI dependency for database sessions.

    Creates a new session for each request and ensures proper cleanup.
    Raises HTTP 503 if the database is not configured.
    """
    try:
        SessionLocal = get_session_factory()
    except ValueError as e:
        logger.error("Database not configured", extra={"error": str(e)})
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail="Database not configured"
        )

    session = SessionLocal()
    try:
        yield session
    finally:
        session.close()
