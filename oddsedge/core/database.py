"""
Database engine and session management.

The engine is created lazily so that importing the application (tests,
the scheduler runner) never opens a connection or loads a DB driver.
"""
import os
from typing import Generator

from sqlalchemy import create_engine
from sqlalchemy.engine import Engine
from sqlalchemy.orm import sessionmaker, Session
from sqlalchemy.pool import QueuePool

_engine = None
_SessionLocal = None


def get_engine() -> Engine:
    """Get or create the database engine."""
    global _engine, _SessionLocal

    if _engine is None:
        from oddsedge.core.config import settings

        engine_kwargs = {
            "pool_pre_ping": True,
            "echo": os.getenv("SQL_ECHO", "false").lower() == "true",
        }
        if not settings.DATABASE_URL.startswith("sqlite"):
            engine_kwargs.update(poolclass=QueuePool, pool_size=10, max_overflow=20)

        _engine = create_engine(settings.DATABASE_URL, **engine_kwargs)
        _SessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=_engine)

    return _engine


def SessionLocal() -> Session:
    """Open a new session bound to the application engine."""
    get_engine()
    return _SessionLocal()


def get_db() -> Generator[Session, None, None]:
    """
    FastAPI dependency that provides a database session.

    Usage:
    ```python
    @router.get("/endpoint")
    def endpoint(db: Session = Depends(get_db)):
        ...
    ```
    """
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()


def init_db():
    """Create tables that don't exist yet."""
    from oddsedge.models import Base
    Base.metadata.create_all(bind=get_engine(), checkfirst=True)
