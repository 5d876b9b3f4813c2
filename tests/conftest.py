"""Shared fixtures for teamspace tests.

Every test gets its own in-memory SQLite database and an in-memory
delivery provider, so nothing leaves the process.
"""

import os

# Set test environment variables before any teamspace imports
os.environ.setdefault("DATABASE_URL", "sqlite://")
os.environ.setdefault("EMAIL_PROVIDER", "memory")
os.environ.setdefault("LOG_LEVEL", "WARNING")

import pytest
from sqlalchemy.pool import StaticPool
from sqlmodel import Session, SQLModel, create_engine

from teamspace.db.models import UserCreate
from teamspace.repositories import UserRepository
from teamspace_api.providers import InMemoryProvider
from teamspace_api.services import (
    InviteService,
    NotificationService,
    ProjectService,
    WorkspaceService,
)


@pytest.fixture
def engine():
    """Create an in-memory SQLite engine for testing."""
    engine = create_engine(
        "sqlite://",
        echo=False,
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    SQLModel.metadata.create_all(engine)
    yield engine
    engine.dispose()


@pytest.fixture
def session(engine):
    """Create a test session."""
    with Session(engine) as session:
        yield session


@pytest.fixture
def make_user(session):
    """Factory for users: make_user("alice") -> alice@example.com."""

    def _make(name: str, email: str | None = None):
        return UserRepository(session).create(
            UserCreate(full_name=name.title(), email=email or f"{name}@example.com")
        )

    return _make


@pytest.fixture
def owner(make_user):
    return make_user("owner")


@pytest.fixture
def provider():
    return InMemoryProvider()


@pytest.fixture
def notification_service(provider):
    return NotificationService(provider=provider, timeout=1.0)


@pytest.fixture
def workspace_service():
    return WorkspaceService()


@pytest.fixture
def invite_service(notification_service):
    return InviteService(notification_service=notification_service)


@pytest.fixture
def project_service():
    return ProjectService()


@pytest.fixture
def workspace(session, workspace_service, owner):
    """Workspace "Acme" owned by ``owner``."""
    return workspace_service.create_workspace(session, "Acme", owner.id)
