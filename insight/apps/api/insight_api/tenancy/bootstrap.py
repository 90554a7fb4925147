"""First-login provisioning: user row + personal organization.

Personal org bootstrap is best effort. A failure is rolled back and
logged; the user can still log in and create or join an org later.
"""

import logging
import re
import secrets
from typing import Optional

from sqlalchemy import select
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.orm import Session

from insight_api.db.models import Organization, User
from insight_api.tenancy.errors import InvalidInput, StorageFailure
from insight_api.tenancy.guard import add_membership
from insight_api.tenancy.roles import Role

logger = logging.getLogger(__name__)

SLUG_ATTEMPTS = 3
_SLUG_UNSAFE = re.compile(r"[^a-z0-9]+")


def _local_part(email: str) -> str:
    return email.split("@", 1)[0]


def build_slug(text: str) -> str:
    """URL-safe slug: slugified text plus a random hex suffix."""
    base = _SLUG_UNSAFE.sub("-", text.lower()).strip("-")[:80] or "org"
    return f"{base}-{secrets.token_hex(4)}"


def personal_org_name(email: str, name: Optional[str] = None) -> str:
    display = (name or "").strip() or _local_part(email)
    return f"{display}'s Organization"


def bootstrap_personal_organization(
    db: Session,
    user: User,
    name: Optional[str] = None,
) -> Optional[Organization]:
    """Create the user's personal organization with an owner membership.

    Returns:
        The new Organization, or None if every attempt failed
    """
    for attempt in range(1, SLUG_ATTEMPTS + 1):
        org = Organization(
            name=personal_org_name(user.email, name),
            slug=build_slug(_local_part(user.email)),
            plan="free",
            billing_email=user.email,
        )
        try:
            db.add(org)
            db.flush()
            add_membership(db, user.id, org.id, Role.OWNER)
            db.commit()
        except IntegrityError:
            db.rollback()
            logger.warning(
                "bootstrap.slug_collision",
                extra={"user_id": user.id, "attempt": attempt},
            )
            continue
        except SQLAlchemyError:
            db.rollback()
            logger.error(
                "bootstrap.failed",
                extra={"user_id": user.id},
                exc_info=True,
            )
            return None

        db.refresh(org)
        logger.info(
            "bootstrap.personal_org_created",
            extra={"user_id": user.id, "org_id": org.id},
        )
        return org

    logger.error(
        "bootstrap.failed",
        extra={"user_id": user.id, "reason": "slug_attempts_exhausted"},
    )
    return None


def ensure_user(db: Session, email: str, name: Optional[str] = None) -> tuple[User, bool]:
    """Return ``(user, created)`` for ``email``, provisioning on first sight.

    A newly created user also gets a personal organization.

    Raises:
        InvalidInput: Missing or malformed email
        StorageFailure: User row could not be read or written
    """
    if not isinstance(email, str) or "@" not in email.strip():
        raise InvalidInput("A valid email is required")
    email = email.strip().lower()

    try:
        user = db.execute(select(User).where(User.email == email)).scalar_one_or_none()
    except SQLAlchemyError:
        logger.error("bootstrap.user_lookup_failed", exc_info=True)
        raise StorageFailure("User lookup failed") from None
    if user is not None:
        return user, False

    user = User(email=email, name=(name or "").strip() or None)
    try:
        db.add(user)
        db.commit()
    except IntegrityError:
        # Concurrent first login for the same email; the other request won
        db.rollback()
        existing = db.execute(select(User).where(User.email == email)).scalar_one_or_none()
        if existing is None:
            raise StorageFailure("User provisioning failed") from None
        return existing, False
    except SQLAlchemyError:
        db.rollback()
        logger.error("bootstrap.user_create_failed", exc_info=True)
        raise StorageFailure("User provisioning failed") from None

    db.refresh(user)
    logger.info("bootstrap.user_created", extra={"user_id": user.id})
    bootstrap_personal_organization(db, user, name)
    return user, True
