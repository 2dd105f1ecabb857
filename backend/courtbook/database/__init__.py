"""
Database engine, session factory, and metadata shared across the application.

The engine is built on first use from settings (or explicitly through
``configure_engine``) so tests and workers can bind an isolated store.
Services never open sessions themselves; they receive one from the caller.
"""

from __future__ import annotations

import logging
from typing import Any, Generator, Optional

from sqlalchemy import create_engine, event
from sqlalchemy.engine import Engine
from sqlalchemy.orm import DeclarativeMeta, Session, declarative_base, sessionmaker

from courtbook.core.config import settings

logger = logging.getLogger(__name__)

Base: DeclarativeMeta = declarative_base()

SessionLocal = sessionmaker(autocommit=False, autoflush=False, expire_on_commit=False)

_engine: Optional[Engine] = None


def _build_engine_kwargs(db_url: str) -> dict[str, Any]:
    kwargs: dict[str, Any] = {"echo": settings.database_echo, "future": True}
    if db_url.startswith("sqlite"):
        kwargs["connect_args"] = {"check_same_thread": False}
    else:
        kwargs.update({"pool_size": 5, "max_overflow": 10, "pool_pre_ping": True})
    return kwargs


def create_db_engine(db_url: Optional[str] = None) -> Engine:
    url = db_url or settings.database_url
    engine = create_engine(url, **_build_engine_kwargs(url))

    @event.listens_for(engine, "connect")
    def receive_connect(dbapi_connection: Any, connection_record: Any) -> None:
        logger.debug("Database connection established")

    return engine


def configure_engine(engine: Engine) -> None:
    """Bind the session factory to ``engine``."""
    global _engine
    _engine = engine
    SessionLocal.configure(bind=engine)


def get_engine() -> Engine:
    if _engine is None:
        configure_engine(create_db_engine())
    assert _engine is not None
    return _engine


def get_db() -> Generator[Session, None, None]:
    """Get database session with proper cleanup."""
    get_engine()
    db = SessionLocal()
    try:
        yield db
    except Exception:
        db.rollback()
        raise
    finally:
        db.close()


__all__ = [
    "Base",
    "SessionLocal",
    "configure_engine",
    "create_db_engine",
    "get_db",
    "get_engine",
]
