"""Scoped sessions for code running outside a request (Celery workers, scripts)."""

from __future__ import annotations

from contextlib import contextmanager
from typing import Generator

from sqlalchemy.orm import Session

from . import SessionLocal, get_engine


@contextmanager
def get_worker_session() -> Generator[Session, None, None]:
    get_engine()
    session = SessionLocal()
    try:
        yield session
    except Exception:
        session.rollback()
        raise
    finally:
        session.close()
