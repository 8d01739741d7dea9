from __future__ import annotations

from collections.abc import Generator

from sqlalchemy.orm import Session

from src.db.session import get_session


def db_session() -> Generator[Session, None, None]:
    """One session per request; anything left uncommitted is rolled back on close."""
    session = get_session()
    try:
        yield session
    except Exception:
        session.rollback()
        raise
    finally:
        session.close()
