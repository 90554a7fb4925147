"""Pytest configuration and fixtures."""

import sys
from pathlib import Path
# Inject sys.path for reliable pytest imports
sys.path.insert(0, str(Path(__file__).resolve().parents[1]))  # => .../apps/api

import os

# Must be set before insight_api.main is imported
os.environ.setdefault("INSIGHT_JSON_LOGS", "false")
os.environ.setdefault("INSIGHT_SESSION_SECRET", "test-session-secret")

from datetime import datetime, timezone
from typing import Optional
from unittest.mock import MagicMock

import pytest
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.orm import Session
from sqlalchemy.pool import StaticPool

from insight_api.db.engine import build_sessionmaker
from insight_api.db.models import Base, Event, Membership, Organization, Project, User
from insight_api.db.redis_client import get_redis
from insight_api.db.session import get_db
from insight_api.main import app
from insight_api.tenancy.credentials import generate_api_key

# In-memory SQLite by default; point TEST_DATABASE_URL at PostgreSQL to run
# the same suite against the production dialect
TEST_DATABASE_URL = os.getenv("TEST_DATABASE_URL") or "sqlite:///:memory:"


class Seed:
    """Row factory for tests. Every helper commits."""

    def __init__(self, db: Session):
        self.db = db

    def _save(self, row):
        self.db.add(row)
        self.db.commit()
        self.db.refresh(row)
        return row

    def user(self, email: str, user_id: Optional[int] = None, name: Optional[str] = None) -> User:
        return self._save(User(id=user_id, email=email, name=name))

    def org(self, name: str, slug: Optional[str] = None, org_id: Optional[int] = None) -> Organization:
        slug = slug or name.lower().replace(" ", "-")
        return self._save(Organization(id=org_id, name=name, slug=slug, plan="free"))

    def member(self, user: User, org: Organization, role: str = "member") -> Membership:
        return self._save(Membership(user_id=user.id, organization_id=org.id, role=role))

    def project(
        self,
        org: Organization,
        name: str = "Marketing Site",
        project_id: Optional[int] = None,
        is_active: bool = True,
    ) -> Project:
        return self._save(
            Project(
                id=project_id,
                organization_id=org.id,
                name=name,
                api_key=generate_api_key(),
                is_active=is_active,
            )
        )

    def event(
        self,
        project: Project,
        event_name: str = "page_view",
        timestamp: Optional[datetime] = None,
    ) -> Event:
        return self._save(
            Event(
                organization_id=project.organization_id,
                project_id=project.id,
                event_name=event_name,
                timestamp=timestamp or datetime.now(timezone.utc),
            )
        )


@pytest.fixture(scope="function")
def db_engine():
    if TEST_DATABASE_URL.startswith("sqlite"):
        engine = create_engine(
            TEST_DATABASE_URL,
            connect_args={"check_same_thread": False},
            poolclass=StaticPool,
        )
    else:
        engine = create_engine(TEST_DATABASE_URL)

    Base.metadata.create_all(engine)
    try:
        yield engine
    finally:
        Base.metadata.drop_all(engine)
        engine.dispose()


@pytest.fixture(scope="function")
def db_session(db_engine) -> Session:
    """Fresh session per test (same settings as the app's sessionmaker)."""
    session = build_sessionmaker(db_engine)()
    try:
        yield session
        session.rollback()
    finally:
        session.close()


@pytest.fixture
def seed(db_session: Session) -> Seed:
    return Seed(db_session)


@pytest.fixture
def two_orgs(seed: Seed) -> dict:
    """User 7 is owner of org 1 and member of org 2; user 8 only belongs to org 2.

    Org 3 exists with no membership for user 7.
    """
    alice = seed.user("alice@example.com", user_id=7)
    bob = seed.user("bob@example.com", user_id=8)
    acme = seed.org("Acme", org_id=1)
    globex = seed.org("Globex", org_id=2)
    initech = seed.org("Initech", org_id=3)
    seed.member(alice, acme, "owner")
    seed.member(alice, globex, "member")
    seed.member(bob, globex, "owner")
    return {"alice": alice, "bob": bob, "acme": acme, "globex": globex, "initech": initech}


@pytest.fixture
def mock_redis() -> MagicMock:
    redis = MagicMock()
    redis.ping.return_value = True
    return redis


@pytest.fixture
def test_client(db_session: Session, mock_redis: MagicMock):
    """TestClient with db_session and Redis dependency overrides."""

    def override_get_db():
        try:
            yield db_session
        finally:
            pass  # Don't close - the db_session fixture handles it

    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_redis] = lambda: mock_redis
    client = TestClient(app, raise_server_exceptions=False)
    yield client
    app.dependency_overrides.clear()
