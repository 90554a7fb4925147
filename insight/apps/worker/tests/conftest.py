"""Pytest configuration for KPI worker tests."""

import sys
from pathlib import Path

# Worker imports the API package for models, gateway and queue
_APPS = Path(__file__).resolve().parents[2]
sys.path.insert(0, str(_APPS / "api"))
sys.path.insert(0, str(_APPS / "worker"))

import os

os.environ.setdefault("INSIGHT_SESSION_SECRET", "test-session-secret")

from datetime import datetime, timezone

import pytest
from sqlalchemy import create_engine
from sqlalchemy.pool import StaticPool

from insight_api.db.engine import build_sessionmaker
from insight_api.db.models import Base, Event, Membership, Organization, Project, User
from insight_api.tenancy.credentials import generate_api_key


@pytest.fixture
def session_factory():
    engine = create_engine(
        "sqlite:///:memory:",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    Base.metadata.create_all(engine)
    try:
        yield build_sessionmaker(engine)
    finally:
        Base.metadata.drop_all(engine)
        engine.dispose()


@pytest.fixture
def acme(session_factory):
    """Org 1 owned by user 7, with two projects and three events on 2024-01-01."""
    db = session_factory()
    try:
        db.add_all([
            User(id=7, email="alice@example.com"),
            Organization(id=1, name="Acme", slug="acme", plan="free"),
        ])
        db.flush()
        db.add(Membership(user_id=7, organization_id=1, role="owner"))
        db.add_all([
            Project(id=10, organization_id=1, name="Web", api_key=generate_api_key()),
            Project(id=11, organization_id=1, name="Mobile", api_key=generate_api_key()),
        ])
        db.flush()
        noon = datetime(2024, 1, 1, 12, tzinfo=timezone.utc)
        db.add_all([
            Event(organization_id=1, project_id=10, event_name="page_view", timestamp=noon),
            Event(organization_id=1, project_id=10, event_name="signup", timestamp=noon),
            Event(organization_id=1, project_id=11, event_name="page_view", timestamp=noon),
            Event(organization_id=1, project_id=11, event_name="page_view", timestamp=datetime(2024, 1, 2, 1, tzinfo=timezone.utc)),
        ])
        db.commit()
    finally:
        db.close()
    return {"org_id": 1, "owner_id": 7}
