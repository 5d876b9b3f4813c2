"""SQLModel engine and session management.

This module provides:
- Database engine creation with connection pooling
- Session factory for dependency injection
- Database initialization utilities
"""

from contextlib import contextmanager
from typing import Generator

from sqlmodel import Session, SQLModel, create_engine

from teamspace.config import DATABASE_URL

# pool_pre_ping ensures connections are valid before use
engine = create_engine(
    DATABASE_URL,
    echo=False,
    pool_pre_ping=True,
)


@contextmanager
def get_session() -> Generator[Session, None, None]:
    """Get a database session.

    Usage:
        with get_session() as session:
            invite_service.accept_invite(session, workspace_id, token, ...)

    Yields:
        SQLModel Session instance
    """
    with Session(engine) as session:
        try:
            yield session
        except Exception:
            session.rollback()
            raise


def get_session_dependency() -> Generator[Session, None, None]:
    """FastAPI dependency for database sessions."""
    with Session(engine) as session:
        yield session


def init_db() -> None:
    """Create all tables.

    Development/testing only; use migrations in production.
    """
    from teamspace.db import models  # noqa: F401

    SQLModel.metadata.create_all(engine)
