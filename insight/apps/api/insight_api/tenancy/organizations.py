"""Organization-level operations: switch, create, list, membership changes."""

import logging
import re
from dataclasses import dataclass
from typing import Optional

from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.orm import Session

from insight_api.db.models import Membership, Organization, User
from insight_api.tenancy.bootstrap import build_slug
from insight_api.tenancy.errors import InvalidInput, StorageFailure
from insight_api.tenancy.gateway import TenantGateway
from insight_api.tenancy.guard import add_membership, authorize, list_user_organizations, require_caller
from insight_api.tenancy.roles import ANY_ROLE, MANAGER_ROLES, Role

logger = logging.getLogger(__name__)

PLANS = frozenset({"free", "pro", "enterprise"})
_SLUG_FORMAT = re.compile(r"^[a-z0-9]+(?:-[a-z0-9]+)*$")


@dataclass(frozen=True)
class OrgSummary:
    id: int
    name: str
    slug: str
    role: Role


def switch_organization(db: Session, caller_id: Optional[int], org_id: object) -> OrgSummary:
    """Re-validate membership for the org the client wants to make active.

    Nothing is persisted. The client keeps the active org and sends it on
    each request, where the guard checks it again.

    Raises:
        Unauthenticated, InvalidInput, NotAMember, StorageFailure
    """
    role = authorize(db, caller_id, org_id, ANY_ROLE)
    try:
        org = db.get(Organization, org_id)
    except SQLAlchemyError:
        logger.error("orgs.switch_lookup_failed", extra={"org_id": org_id}, exc_info=True)
        raise StorageFailure("Organization lookup failed") from None
    if org is None:
        # Membership rows cascade with the org; a dangling one is corruption
        raise StorageFailure("Organization missing for membership")

    logger.info("orgs.switched", extra={"org_id": org.id, "caller_id": caller_id})
    return OrgSummary(id=org.id, name=org.name, slug=org.slug, role=role)


def list_organizations(db: Session, caller_id: Optional[int]) -> list[OrgSummary]:
    return [
        OrgSummary(id=org.id, name=org.name, slug=org.slug, role=role)
        for org, role in list_user_organizations(db, caller_id)
    ]


def create_organization(
    db: Session,
    caller_id: Optional[int],
    name: str,
    slug: Optional[str] = None,
    plan: str = "free",
) -> OrgSummary:
    """Create an organization with the caller as owner.

    Raises:
        InvalidInput: Empty name, bad slug or plan, or slug already taken
    """
    caller_id = require_caller(caller_id)
    if not isinstance(name, str) or not name.strip():
        raise InvalidInput("Organization name is required")
    name = name.strip()
    if plan not in PLANS:
        raise InvalidInput(f"Unknown plan: {plan}")

    if slug is None:
        slug = build_slug(name)
    else:
        slug = slug.strip().lower()
        if not _SLUG_FORMAT.match(slug) or len(slug) > 100:
            raise InvalidInput("Slug may contain only lowercase letters, digits and hyphens")

    try:
        caller = db.get(User, caller_id)
        org = Organization(name=name, slug=slug, plan=plan, billing_email=caller.email if caller else None)
        db.add(org)
        db.flush()
        add_membership(db, caller_id, org.id, Role.OWNER)
        db.commit()
    except IntegrityError:
        db.rollback()
        raise InvalidInput("Organization slug is already taken") from None
    except SQLAlchemyError:
        db.rollback()
        logger.error("orgs.create_failed", extra={"caller_id": caller_id}, exc_info=True)
        raise StorageFailure("Organization creation failed") from None

    logger.info("orgs.created", extra={"org_id": org.id, "caller_id": caller_id})
    return OrgSummary(id=org.id, name=org.name, slug=org.slug, role=Role.OWNER)


def add_member(gateway: TenantGateway, user_email: str, role: "Role | str") -> Membership:
    """Invite an existing user into the gateway's organization.

    Raises:
        InvalidInput: Unknown email, unknown role, or already a member
        InsufficientRole: Caller is not admin/owner, or grants owner as admin
    """
    role = Role.parse(role)
    gateway.ensure_role(MANAGER_ROLES)
    if not isinstance(user_email, str) or "@" not in user_email:
        raise InvalidInput("A valid email is required")
    user = gateway.find_user(user_email)
    if user is None:
        raise InvalidInput("No user with that email")
    return gateway.add_member(user.id, role)


def remove_member(gateway: TenantGateway, user_id: int) -> None:
    gateway.remove_member(user_id)
