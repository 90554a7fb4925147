"""Tenant-scoped data gateway.

Every read and write of projects, events, KPI snapshots and memberships
goes through a TenantGateway bound to one organization id that the access
guard verified at construction. No method accepts an organization id, so a
query that forgets the tenant filter cannot be written against it.

The binding is verified once: membership changes apply on the next
``TenantGateway.create``, not to gateways already handed out.
"""

import logging
from datetime import datetime, timezone
from decimal import Decimal, InvalidOperation
from typing import Any, Iterable, Optional

from sqlalchemy import func, select
from sqlalchemy.dialects import postgresql, sqlite
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.orm import Session

from insight_api.context import org_id_var
from insight_api.db.models import MAX_ID, Event, KpiSnapshot, Membership, Organization, Project, User
from insight_api.tenancy.credentials import generate_api_key, last4
from insight_api.tenancy.errors import (
    DuplicateCredential,
    InsufficientRole,
    InvalidInput,
    ProjectNotFound,
    StorageFailure,
)
from insight_api.tenancy.guard import authorize, get_membership
from insight_api.tenancy.roles import ANY_ROLE, MANAGER_ROLES, Role, satisfies_any

logger = logging.getLogger(__name__)

DEFAULT_EVENT_LIMIT = 1000
MAX_EVENT_LIMIT = 10_000

_KPI_CONFLICT_PROJECT = ["organization_id", "project_id", "key", "period_start"]
_KPI_CONFLICT_ORG_LEVEL = ["organization_id", "key", "period_start"]

# Only TenantGateway.create may construct a gateway
_CREATE_TOKEN = object()


def _positive_id(value: object, field: str) -> int:
    if isinstance(value, bool) or not isinstance(value, int) or not 0 < value <= MAX_ID:
        raise InvalidInput(f"Invalid {field}")
    return value


def _as_utc(value: object, field: str) -> datetime:
    # Naive datetimes are taken as UTC
    if not isinstance(value, datetime):
        raise InvalidInput(f"{field} must be a datetime")
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


def _clean_optional(value: Optional[str]) -> Optional[str]:
    if value is None:
        return None
    value = value.strip()
    return value or None


def _is_api_key_collision(exc: IntegrityError) -> bool:
    message = str(exc.orig).lower()
    return "uq_projects_api_key" in message or "projects.api_key" in message


class TenantGateway:
    """Data access bound to a verified (organization, caller) pair."""

    __slots__ = ("_db", "_org_id", "_caller_id", "_role")

    def __init__(self, db: Session, org_id: int, caller_id: int, role: Role, _token: object = None):
        if _token is not _CREATE_TOKEN:
            raise TypeError("Use TenantGateway.create() to obtain a gateway")
        self._db = db
        self._org_id = org_id
        self._caller_id = caller_id
        self._role = role

    @classmethod
    def create(cls, db: Session, org_id: object, caller_id: Optional[int]) -> "TenantGateway":
        """Authorize the caller for the organization and bind a gateway to it.

        Any membership suffices to obtain a gateway.

        Raises:
            Unauthenticated, InvalidInput, NotAMember, StorageFailure
        """
        role = authorize(db, caller_id, org_id, ANY_ROLE)
        org_id_var.set(str(org_id))
        return cls(db, org_id, caller_id, role, _token=_CREATE_TOKEN)  # type: ignore[arg-type]

    # ------------------------------------------------------------------
    # Bound state
    # ------------------------------------------------------------------

    @property
    def org_id(self) -> int:
        return self._org_id

    @property
    def caller_id(self) -> int:
        return self._caller_id

    @property
    def role(self) -> Role:
        return self._role

    def ensure_role(self, required_roles: Iterable[Role]) -> Role:
        """Check the role verified at construction against an "any of" set.

        Raises:
            InsufficientRole: If the bound role satisfies none of them
        """
        required = frozenset(Role.parse(r) for r in required_roles)
        if not required:
            raise InvalidInput("required_roles must not be empty")
        if not satisfies_any(self._role, required):
            names = ", ".join(sorted(r.value for r in required))
            logger.warning(
                "gateway.insufficient_role",
                extra={"org_id": self._org_id, "caller_id": self._caller_id, "role": self._role.value},
            )
            raise InsufficientRole(f"Forbidden: Requires one of these roles: {names}")
        return self._role

    def _storage_failure(self, operation: str) -> StorageFailure:
        self._db.rollback()
        logger.error(
            "gateway.storage_failure",
            extra={"operation": operation, "org_id": self._org_id, "caller_id": self._caller_id},
            exc_info=True,
        )
        return StorageFailure(f"{operation} failed")

    # ------------------------------------------------------------------
    # Organization
    # ------------------------------------------------------------------

    def get_organization(self) -> Optional[Organization]:
        """The Organization row for the bound org id."""
        try:
            return self._db.get(Organization, self._org_id)
        except SQLAlchemyError:
            raise self._storage_failure("get_organization") from None

    # ------------------------------------------------------------------
    # Projects
    # ------------------------------------------------------------------

    def list_projects(self) -> list[Project]:
        stmt = (
            select(Project)
            .where(Project.organization_id == self._org_id)
            .order_by(Project.id)
        )
        try:
            return list(self._db.execute(stmt).scalars().all())
        except SQLAlchemyError:
            raise self._storage_failure("list_projects") from None

    def get_project(self, project_id: int) -> Optional[Project]:
        """Project if it exists AND belongs to the bound org, else None.

        Another tenant's project id is indistinguishable from a missing one.
        """
        project_id = _positive_id(project_id, "project ID")
        stmt = select(Project).where(
            Project.id == project_id,
            Project.organization_id == self._org_id,
        )
        try:
            return self._db.execute(stmt).scalar_one_or_none()
        except SQLAlchemyError:
            raise self._storage_failure("get_project") from None

    def create_project(
        self,
        name: str,
        description: Optional[str] = None,
        domain: Optional[str] = None,
    ) -> Project:
        """Create a project with a fresh ingestion credential.

        Raises:
            InvalidInput: Empty name
            DuplicateCredential: Credential collided on insert (retryable)
            StorageFailure: Any other storage error
        """
        if not isinstance(name, str) or not name.strip():
            raise InvalidInput("Project name is required")

        api_key = generate_api_key()
        project = Project(
            organization_id=self._org_id,
            name=name.strip(),
            description=_clean_optional(description),
            domain=_clean_optional(domain),
            api_key=api_key,
            is_active=True,
        )

        try:
            self._db.add(project)
            self._db.commit()
        except IntegrityError as exc:
            self._db.rollback()
            if _is_api_key_collision(exc):
                logger.warning(
                    "gateway.project.credential_collision",
                    extra={"org_id": self._org_id, "caller_id": self._caller_id},
                )
                raise DuplicateCredential("Credential collision, retry the request") from None
            logger.error(
                "gateway.storage_failure",
                extra={"operation": "create_project", "org_id": self._org_id, "caller_id": self._caller_id},
                exc_info=True,
            )
            raise StorageFailure("create_project failed") from None
        except SQLAlchemyError:
            raise self._storage_failure("create_project") from None

        self._db.refresh(project)
        logger.info(
            "gateway.project.created",
            extra={
                "org_id": self._org_id,
                "caller_id": self._caller_id,
                "project_id": project.id,
                "key_last4": last4(api_key),
            },
        )
        return project

    # ------------------------------------------------------------------
    # Events
    # ------------------------------------------------------------------

    def _event_filters(self, project_id: Optional[int]) -> list:
        conditions = [Event.organization_id == self._org_id]
        if project_id is not None:
            conditions.append(Event.project_id == _positive_id(project_id, "project ID"))
        return conditions

    def list_events(self, project_id: Optional[int] = None, limit: int = DEFAULT_EVENT_LIMIT) -> list[Event]:
        """Events for the bound org, oldest first, capped at ``limit``."""
        if isinstance(limit, bool) or not isinstance(limit, int) or not 1 <= limit <= MAX_EVENT_LIMIT:
            raise InvalidInput(f"limit must be between 1 and {MAX_EVENT_LIMIT}")

        stmt = (
            select(Event)
            .where(*self._event_filters(project_id))
            .order_by(Event.timestamp.asc(), Event.id.asc())
            .limit(limit)
        )
        try:
            return list(self._db.execute(stmt).scalars().all())
        except SQLAlchemyError:
            raise self._storage_failure("list_events") from None

    def list_recent_events(self, limit: int = 10, project_id: Optional[int] = None) -> list[Event]:
        """The ``limit`` newest events, returned oldest first."""
        if isinstance(limit, bool) or not isinstance(limit, int) or not 1 <= limit <= MAX_EVENT_LIMIT:
            raise InvalidInput(f"limit must be between 1 and {MAX_EVENT_LIMIT}")

        stmt = (
            select(Event)
            .where(*self._event_filters(project_id))
            .order_by(Event.timestamp.desc(), Event.id.desc())
            .limit(limit)
        )
        try:
            newest_first = list(self._db.execute(stmt).scalars().all())
        except SQLAlchemyError:
            raise self._storage_failure("list_recent_events") from None
        newest_first.reverse()
        return newest_first

    def count_events(
        self,
        project_id: Optional[int] = None,
        since: Optional[datetime] = None,
        until: Optional[datetime] = None,
    ) -> int:
        """Event count for the bound org, optionally within [since, until)."""
        conditions = self._event_filters(project_id)
        if since is not None:
            conditions.append(Event.timestamp >= since)
        if until is not None:
            conditions.append(Event.timestamp < until)
        stmt = select(func.count(Event.id)).where(*conditions)
        try:
            return int(self._db.execute(stmt).scalar_one())
        except SQLAlchemyError:
            raise self._storage_failure("count_events") from None

    def insert_event(
        self,
        project_id: int,
        event_name: str,
        user_id: Optional[str] = None,
        session_id: Optional[str] = None,
        metadata: Optional[dict[str, Any]] = None,
        ip_address: Optional[str] = None,
        user_agent: Optional[str] = None,
        timestamp: Optional[datetime] = None,
    ) -> Event:
        """Record an event against one of the bound org's projects.

        Raises:
            ProjectNotFound: Project missing or owned by another organization
            InvalidInput: Empty event name or non-object metadata
        """
        if not isinstance(event_name, str) or not event_name.strip():
            raise InvalidInput("Event name is required")
        if metadata is not None and not isinstance(metadata, dict):
            raise InvalidInput("Event metadata must be an object")

        project = self.get_project(project_id)
        if project is None:
            raise ProjectNotFound("Project not found or access denied")

        event = Event(
            organization_id=self._org_id,
            project_id=project.id,
            event_name=event_name.strip(),
            user_id=user_id,
            session_id=session_id,
            event_metadata=metadata,
            ip_address=ip_address,
            user_agent=user_agent,
        )
        if timestamp is not None:
            event.timestamp = timestamp

        try:
            self._db.add(event)
            self._db.commit()
        except SQLAlchemyError:
            raise self._storage_failure("insert_event") from None

        self._db.refresh(event)
        return event

    # ------------------------------------------------------------------
    # KPI snapshots
    # ------------------------------------------------------------------

    def list_kpi_snapshots(
        self,
        project_id: Optional[int] = None,
        key: Optional[str] = None,
    ) -> list[KpiSnapshot]:
        conditions = [KpiSnapshot.organization_id == self._org_id]
        if project_id is not None:
            conditions.append(KpiSnapshot.project_id == _positive_id(project_id, "project ID"))
        if key:
            conditions.append(KpiSnapshot.key == key)

        stmt = (
            select(KpiSnapshot)
            .where(*conditions)
            .order_by(KpiSnapshot.period_start.asc(), KpiSnapshot.id.asc())
        )
        try:
            return list(self._db.execute(stmt).scalars().all())
        except SQLAlchemyError:
            raise self._storage_failure("list_kpi_snapshots") from None

    def upsert_kpi_snapshot(
        self,
        key: str,
        period_start: datetime,
        period_end: datetime,
        value: "Decimal | int | float | str",
        project_id: Optional[int] = None,
        metadata: Optional[dict[str, Any]] = None,
    ) -> KpiSnapshot:
        """Insert or replace the snapshot for (org, project, key, period_start).

        The unique constraints are the serialization point for concurrent
        recomputation; the last writer's value wins.

        Raises:
            InvalidInput: Empty key, inverted period, non-numeric value
            ProjectNotFound: project_id not owned by the bound org
        """
        if not isinstance(key, str) or not key.strip():
            raise InvalidInput("KPI key is required")
        key = key.strip()
        period_start = _as_utc(period_start, "period_start")
        period_end = _as_utc(period_end, "period_end")
        if period_end < period_start:
            raise InvalidInput("period_end must not precede period_start")
        try:
            amount = Decimal(str(value))
        except (InvalidOperation, ValueError):
            raise InvalidInput("KPI value must be numeric") from None
        if not amount.is_finite():
            raise InvalidInput("KPI value must be numeric")

        if project_id is not None and self.get_project(project_id) is None:
            raise ProjectNotFound("Project not found or access denied")

        table = KpiSnapshot.__table__
        dialect = self._db.get_bind().dialect.name
        if dialect == "postgresql":
            insert = postgresql.insert
        elif dialect == "sqlite":
            insert = sqlite.insert
        else:
            raise StorageFailure(f"KPI upsert unsupported on dialect {dialect}")

        stmt = insert(table).values(
            organization_id=self._org_id,
            project_id=project_id,
            key=key,
            period_start=period_start,
            period_end=period_end,
            value=amount,
            metadata=metadata,
        )
        if project_id is None:
            stmt = stmt.on_conflict_do_update(
                index_elements=_KPI_CONFLICT_ORG_LEVEL,
                index_where=table.c.project_id.is_(None),
                set_={
                    "period_end": stmt.excluded.period_end,
                    "value": stmt.excluded.value,
                    "metadata": stmt.excluded["metadata"],
                    "updated_at": stmt.excluded.updated_at,
                },
            )
        else:
            stmt = stmt.on_conflict_do_update(
                index_elements=_KPI_CONFLICT_PROJECT,
                set_={
                    "period_end": stmt.excluded.period_end,
                    "value": stmt.excluded.value,
                    "metadata": stmt.excluded["metadata"],
                    "updated_at": stmt.excluded.updated_at,
                },
            )

        lookup = select(KpiSnapshot).where(
            KpiSnapshot.organization_id == self._org_id,
            KpiSnapshot.key == key,
            KpiSnapshot.period_start == period_start,
            KpiSnapshot.project_id.is_(None) if project_id is None else KpiSnapshot.project_id == project_id,
        )
        try:
            self._db.execute(stmt)
            self._db.commit()
            snapshot = self._db.execute(lookup.execution_options(populate_existing=True)).scalar_one()
        except SQLAlchemyError:
            raise self._storage_failure("upsert_kpi_snapshot") from None

        logger.info(
            "gateway.kpi.upserted",
            extra={"org_id": self._org_id, "project_id": project_id, "kpi_key": key},
        )
        return snapshot

    # ------------------------------------------------------------------
    # Memberships
    # ------------------------------------------------------------------

    def find_user(self, email: str) -> Optional[User]:
        """Look up a user by email (users are global, not tenant data)."""
        stmt = select(User).where(User.email == email.strip().lower())
        try:
            return self._db.execute(stmt).scalar_one_or_none()
        except SQLAlchemyError:
            raise self._storage_failure("find_user") from None

    def list_members(self) -> list[Membership]:
        stmt = (
            select(Membership)
            .where(Membership.organization_id == self._org_id)
            .order_by(Membership.id)
        )
        try:
            return list(self._db.execute(stmt).scalars().all())
        except SQLAlchemyError:
            raise self._storage_failure("list_members") from None

    def add_member(self, user_id: int, role: Role) -> Membership:
        """Grant a user a role in the bound org.

        Admins and owners may add members; only owners may grant owner.

        Raises:
            InsufficientRole: Caller may not grant this role
            InvalidInput: User already a member
        """
        role = Role.parse(role)
        user_id = _positive_id(user_id, "user ID")
        self.ensure_role(MANAGER_ROLES)
        if role is Role.OWNER:
            self.ensure_role({Role.OWNER})

        membership = Membership(user_id=user_id, organization_id=self._org_id, role=role.value)
        try:
            self._db.add(membership)
            self._db.commit()
        except IntegrityError:
            self._db.rollback()
            raise InvalidInput("User is already a member of this organization") from None
        except SQLAlchemyError:
            raise self._storage_failure("add_member") from None

        self._db.refresh(membership)
        logger.info(
            "gateway.member.added",
            extra={"org_id": self._org_id, "caller_id": self._caller_id, "member_id": user_id, "role": role.value},
        )
        return membership

    def _locked_owner_ids(self) -> list[int]:
        # FOR UPDATE serializes concurrent owner removals on PostgreSQL
        stmt = (
            select(Membership.user_id)
            .where(
                Membership.organization_id == self._org_id,
                Membership.role == Role.OWNER.value,
            )
            .with_for_update()
        )
        return list(self._db.execute(stmt).scalars().all())

    def _owner_count(self) -> int:
        stmt = select(func.count(Membership.id)).where(
            Membership.organization_id == self._org_id,
            Membership.role == Role.OWNER.value,
        )
        return int(self._db.execute(stmt).scalar_one())

    def remove_member(self, user_id: int) -> None:
        """Remove a user's membership in the bound org.

        Only owners may remove an owner, and the last owner stays. Owner
        rows are locked before the check and the owner count is checked
        again after the delete, inside the same transaction.

        Raises:
            InsufficientRole: Caller may not remove this member
            InvalidInput: Target is not a member, or is the last owner
        """
        user_id = _positive_id(user_id, "user ID")
        self.ensure_role(MANAGER_ROLES)

        try:
            membership = get_membership(self._db, user_id, self._org_id)
        except SQLAlchemyError:
            raise self._storage_failure("remove_member") from None
        if membership is None:
            raise InvalidInput("User is not a member of this organization")

        removing_owner = Role.parse(membership.role) is Role.OWNER
        if removing_owner:
            self.ensure_role({Role.OWNER})

        try:
            if removing_owner and len(self._locked_owner_ids()) <= 1:
                self._db.rollback()
                raise InvalidInput("Cannot remove the last owner of an organization")

            self._db.delete(membership)
            self._db.flush()

            if removing_owner and self._owner_count() < 1:
                self._db.rollback()
                raise InvalidInput("Cannot remove the last owner of an organization")

            self._db.commit()
        except SQLAlchemyError:
            raise self._storage_failure("remove_member") from None

        logger.info(
            "gateway.member.removed",
            extra={"org_id": self._org_id, "caller_id": self._caller_id, "member_id": user_id},
        )
