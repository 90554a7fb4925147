"""SQLAlchemy ORM Models for Insight.

Tenant boundary: every Project, Event and KpiSnapshot row carries an
organization_id. Application code reaches these tables only through
``insight_api.tenancy.gateway.TenantGateway``.
"""

from datetime import datetime, timezone
from decimal import Decimal
from typing import Optional

from sqlalchemy import (
    BIGINT,
    BOOLEAN,
    INTEGER,
    JSON,
    NUMERIC,
    TEXT,
    TIMESTAMP,
    VARCHAR,
    ForeignKey,
    Index,
    UniqueConstraint,
    text,
)
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column

# BIGINT autoincrement in PostgreSQL; SQLite only autoincrements INTEGER PKs
ID_TYPE = BIGINT().with_variant(INTEGER(), "sqlite")
# Largest id a BIGINT column can hold; larger values never match a row
MAX_ID = 2**63 - 1


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class Base(DeclarativeBase):
    """Base class for all ORM models."""

    pass


class User(Base):
    """User identity, created on first login."""

    __tablename__ = "users"

    id: Mapped[int] = mapped_column(ID_TYPE, primary_key=True, autoincrement=True)
    email: Mapped[str] = mapped_column(VARCHAR(255), nullable=False, unique=True)
    name: Mapped[Optional[str]] = mapped_column(VARCHAR(255), nullable=True)
    avatar: Mapped[Optional[str]] = mapped_column(TEXT, nullable=True)
    email_verified_at: Mapped[Optional[datetime]] = mapped_column(
        TIMESTAMP(timezone=True), nullable=True
    )
    created_at: Mapped[datetime] = mapped_column(
        TIMESTAMP(timezone=True), nullable=False, default=_utcnow
    )
    updated_at: Mapped[datetime] = mapped_column(
        TIMESTAMP(timezone=True), nullable=False, default=_utcnow, onupdate=_utcnow
    )


class Organization(Base):
    """Organization model - the tenant boundary."""

    __tablename__ = "organizations"

    id: Mapped[int] = mapped_column(ID_TYPE, primary_key=True, autoincrement=True)
    name: Mapped[str] = mapped_column(VARCHAR(255), nullable=False)
    slug: Mapped[str] = mapped_column(VARCHAR(100), nullable=False, unique=True)
    plan: Mapped[str] = mapped_column(VARCHAR(50), nullable=False, default="free")
    # free | pro | enterprise
    billing_email: Mapped[Optional[str]] = mapped_column(VARCHAR(255), nullable=True)
    stripe_customer_id: Mapped[Optional[str]] = mapped_column(VARCHAR(255), nullable=True)
    created_at: Mapped[datetime] = mapped_column(
        TIMESTAMP(timezone=True), nullable=False, default=_utcnow
    )
    updated_at: Mapped[datetime] = mapped_column(
        TIMESTAMP(timezone=True), nullable=False, default=_utcnow, onupdate=_utcnow
    )


class Membership(Base):
    """Membership model - (user, organization) -> role.

    Source of truth for every authorization decision. One role per pair.
    """

    __tablename__ = "memberships"

    id: Mapped[int] = mapped_column(ID_TYPE, primary_key=True, autoincrement=True)
    user_id: Mapped[int] = mapped_column(
        ID_TYPE, ForeignKey("users.id", ondelete="CASCADE"), nullable=False
    )
    organization_id: Mapped[int] = mapped_column(
        ID_TYPE, ForeignKey("organizations.id", ondelete="CASCADE"), nullable=False
    )
    role: Mapped[str] = mapped_column(VARCHAR(20), nullable=False, default="member")
    # owner | admin | member
    created_at: Mapped[datetime] = mapped_column(
        TIMESTAMP(timezone=True), nullable=False, default=_utcnow
    )

    __table_args__ = (
        UniqueConstraint("user_id", "organization_id", name="uq_memberships_user_org"),
        Index("idx_memberships_org", "organization_id"),
    )


class Project(Base):
    """Project model - a tracked site/app owned by one organization."""

    __tablename__ = "projects"

    id: Mapped[int] = mapped_column(ID_TYPE, primary_key=True, autoincrement=True)
    organization_id: Mapped[int] = mapped_column(
        ID_TYPE, ForeignKey("organizations.id", ondelete="CASCADE"), nullable=False
    )
    name: Mapped[str] = mapped_column(VARCHAR(255), nullable=False)
    description: Mapped[Optional[str]] = mapped_column(TEXT, nullable=True)
    # Ingestion credential; the unique constraint is the authoritative collision guard
    api_key: Mapped[str] = mapped_column(VARCHAR(64), nullable=False)
    domain: Mapped[Optional[str]] = mapped_column(VARCHAR(255), nullable=True)
    is_active: Mapped[bool] = mapped_column(BOOLEAN, nullable=False, default=True)
    created_at: Mapped[datetime] = mapped_column(
        TIMESTAMP(timezone=True), nullable=False, default=_utcnow
    )
    updated_at: Mapped[datetime] = mapped_column(
        TIMESTAMP(timezone=True), nullable=False, default=_utcnow, onupdate=_utcnow
    )

    __table_args__ = (
        UniqueConstraint("api_key", name="uq_projects_api_key"),
        Index("idx_projects_org", "organization_id"),
    )


class Event(Base):
    """Event model - raw analytics event. Immutable once written."""

    __tablename__ = "events"

    id: Mapped[int] = mapped_column(ID_TYPE, primary_key=True, autoincrement=True)
    organization_id: Mapped[int] = mapped_column(
        ID_TYPE, ForeignKey("organizations.id", ondelete="CASCADE"), nullable=False
    )
    project_id: Mapped[int] = mapped_column(
        ID_TYPE, ForeignKey("projects.id", ondelete="CASCADE"), nullable=False
    )
    event_name: Mapped[str] = mapped_column(VARCHAR(255), nullable=False)
    user_id: Mapped[Optional[str]] = mapped_column(VARCHAR(255), nullable=True)
    session_id: Mapped[Optional[str]] = mapped_column(VARCHAR(255), nullable=True)
    # Renamed attribute: 'metadata' is reserved on declarative classes
    event_metadata: Mapped[Optional[dict]] = mapped_column("metadata", JSON, nullable=True)
    timestamp: Mapped[datetime] = mapped_column(
        TIMESTAMP(timezone=True), nullable=False, default=_utcnow
    )
    ip_address: Mapped[Optional[str]] = mapped_column(VARCHAR(45), nullable=True)
    user_agent: Mapped[Optional[str]] = mapped_column(TEXT, nullable=True)
    created_at: Mapped[datetime] = mapped_column(
        TIMESTAMP(timezone=True), nullable=False, default=_utcnow
    )

    __table_args__ = (
        Index("idx_events_org", "organization_id"),
        Index("idx_events_timestamp", "timestamp"),
        Index("idx_events_name", "event_name"),
        Index("idx_events_org_project_time", "organization_id", "project_id", "timestamp"),
    )


class KpiSnapshot(Base):
    """KpiSnapshot model - precomputed metric for (org, project?, key, period).

    project_id NULL means an org-level aggregate. Uniqueness is enforced by
    two constraints because NULLs compare distinct in a plain unique index:
    - uq_kpi_org_project_key_period covers project-level rows
    - uq_kpi_org_key_period_org_level is partial on project_id IS NULL
    Recomputation upserts against whichever one applies.
    """

    __tablename__ = "kpi_snapshots"

    id: Mapped[int] = mapped_column(ID_TYPE, primary_key=True, autoincrement=True)
    organization_id: Mapped[int] = mapped_column(
        ID_TYPE, ForeignKey("organizations.id", ondelete="CASCADE"), nullable=False
    )
    project_id: Mapped[Optional[int]] = mapped_column(
        ID_TYPE, ForeignKey("projects.id", ondelete="CASCADE"), nullable=True
    )
    key: Mapped[str] = mapped_column(VARCHAR(100), nullable=False)
    # daily_page_views | monthly_revenue | bounce_rate | daily_events ...
    period_start: Mapped[datetime] = mapped_column(TIMESTAMP(timezone=True), nullable=False)
    period_end: Mapped[datetime] = mapped_column(TIMESTAMP(timezone=True), nullable=False)
    value: Mapped[Decimal] = mapped_column(NUMERIC(15, 4), nullable=False)
    snapshot_metadata: Mapped[Optional[dict]] = mapped_column("metadata", JSON, nullable=True)
    created_at: Mapped[datetime] = mapped_column(
        TIMESTAMP(timezone=True), nullable=False, default=_utcnow
    )
    updated_at: Mapped[datetime] = mapped_column(
        TIMESTAMP(timezone=True), nullable=False, default=_utcnow, onupdate=_utcnow
    )

    __table_args__ = (
        UniqueConstraint(
            "organization_id",
            "project_id",
            "key",
            "period_start",
            name="uq_kpi_org_project_key_period",
        ),
        Index(
            "uq_kpi_org_key_period_org_level",
            "organization_id",
            "key",
            "period_start",
            unique=True,
            postgresql_where=text("project_id IS NULL"),
            sqlite_where=text("project_id IS NULL"),
        ),
        Index("idx_kpi_org", "organization_id"),
        Index("idx_kpi_key", "key"),
        Index("idx_kpi_period", "period_start", "period_end"),
    )
