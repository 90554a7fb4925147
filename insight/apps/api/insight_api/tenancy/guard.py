"""Access guard over the membership store.

FLOW:
1. Caller identity established upstream (session auth) -> caller_id
2. Candidate org id from context extraction -> org_id
3. authorize() looks up Membership(caller_id, org_id) and checks role
4. Returns the caller's Role, or raises a typed AuthzError

SECURITY:
- Fails closed: null caller, malformed org id, lookup error, or an
  unrecognised stored role is never treated as success
- Read-only; safe to call repeatedly
"""

import logging
from typing import Iterable, Optional

from sqlalchemy import select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from insight_api.db.models import MAX_ID, Membership, Organization
from insight_api.tenancy.errors import (
    InsufficientRole,
    InvalidInput,
    NotAMember,
    StorageFailure,
    Unauthenticated,
)
from insight_api.tenancy.roles import Role, satisfies_any

logger = logging.getLogger(__name__)


def _is_positive_int(value: object) -> bool:
    return isinstance(value, int) and not isinstance(value, bool) and 0 < value <= MAX_ID


def require_caller(caller_id: Optional[int]) -> int:
    """Validate an upstream caller id.

    Raises:
        Unauthenticated: If no caller identity is established
    """
    if not _is_positive_int(caller_id):
        raise Unauthenticated("Authentication required")
    return caller_id  # type: ignore[return-value]


def require_org_id(org_id: object) -> int:
    """Validate an organization id.

    Raises:
        InvalidInput: If org_id is missing, not a positive integer, or above MAX_ID
    """
    if not _is_positive_int(org_id):
        raise InvalidInput("Invalid organization ID")
    return org_id  # type: ignore[return-value]


def get_membership(db: Session, user_id: int, org_id: int) -> Optional[Membership]:
    """Fetch the single membership row for (user, organization)."""
    stmt = select(Membership).where(
        Membership.user_id == user_id,
        Membership.organization_id == org_id,
    )
    return db.execute(stmt).scalar_one_or_none()


def authorize(
    db: Session,
    caller_id: Optional[int],
    org_id: object,
    required_roles: Iterable[Role],
) -> Role:
    """Verify the caller's membership and role in an organization.

    Args:
        db: Database session
        caller_id: Authenticated user id (None if unauthenticated)
        org_id: Target organization id
        required_roles: "Any of" set; satisfied if the caller's role ranks
            at or above at least one member

    Returns:
        The caller's Role in the organization

    Raises:
        Unauthenticated: No caller identity
        InvalidInput: Malformed org id, or empty required_roles
        NotAMember: No membership row
        InsufficientRole: Role too low for every required role
        StorageFailure: Lookup failed or stored role is unrecognised
    """
    caller_id = require_caller(caller_id)
    org_id = require_org_id(org_id)

    required = frozenset(Role.parse(role) for role in required_roles)
    if not required:
        raise InvalidInput("required_roles must not be empty")

    try:
        membership = get_membership(db, caller_id, org_id)
    except SQLAlchemyError:
        logger.error(
            "guard.lookup_failed",
            extra={"operation": "authorize", "org_id": org_id, "caller_id": caller_id},
            exc_info=True,
        )
        raise StorageFailure("Membership lookup failed") from None

    if membership is None:
        logger.warning(
            "guard.not_a_member",
            extra={"org_id": org_id, "caller_id": caller_id},
        )
        raise NotAMember("Forbidden: User not a member of this organization")

    try:
        role = Role.parse(membership.role)
    except InvalidInput:
        logger.error(
            "guard.corrupt_role",
            extra={"org_id": org_id, "caller_id": caller_id, "stored_role": membership.role},
        )
        raise StorageFailure("Membership role is unrecognised") from None

    if not satisfies_any(role, required):
        names = ", ".join(sorted(r.value for r in required))
        logger.warning(
            "guard.insufficient_role",
            extra={
                "org_id": org_id,
                "caller_id": caller_id,
                "role": role.value,
                "required_roles": names,
            },
        )
        raise InsufficientRole(f"Forbidden: Requires one of these roles: {names}")

    return role


def list_user_organizations(db: Session, user_id: int) -> list[tuple[Organization, Role]]:
    """All organizations the user belongs to, with the user's role in each."""
    user_id = require_caller(user_id)
    stmt = (
        select(Organization, Membership.role)
        .join(Membership, Membership.organization_id == Organization.id)
        .where(Membership.user_id == user_id)
        .order_by(Organization.id)
    )
    try:
        rows = db.execute(stmt).all()
    except SQLAlchemyError:
        logger.error(
            "guard.list_orgs_failed",
            extra={"operation": "list_user_organizations", "caller_id": user_id},
            exc_info=True,
        )
        raise StorageFailure("Organization lookup failed") from None
    return [(org, Role.parse(role)) for org, role in rows]


def add_membership(db: Session, user_id: int, org_id: int, role: Role) -> Membership:
    """Stage a membership row. The caller owns the transaction."""
    membership = Membership(user_id=user_id, organization_id=org_id, role=Role.parse(role).value)
    db.add(membership)
    return membership
