"""Access guard over the membership store."""

from unittest.mock import MagicMock

import pytest
from sqlalchemy.exc import OperationalError
from sqlalchemy.orm import Session

from insight_api.tenancy.errors import (
    InsufficientRole,
    InvalidInput,
    NotAMember,
    StorageFailure,
    Unauthenticated,
)
from insight_api.tenancy.guard import authorize, list_user_organizations
from insight_api.tenancy.roles import ANY_ROLE, MANAGER_ROLES, Role


def test_member_with_sufficient_role_is_authorized(db_session, two_orgs):
    assert authorize(db_session, 7, 1, {Role.ADMIN}) is Role.OWNER


def test_member_role_too_low_is_rejected(db_session, two_orgs):
    with pytest.raises(InsufficientRole):
        authorize(db_session, 7, 2, MANAGER_ROLES)


def test_any_role_admits_plain_member(db_session, two_orgs):
    assert authorize(db_session, 7, 2, ANY_ROLE) is Role.MEMBER


def test_non_member_is_rejected(db_session, two_orgs):
    with pytest.raises(NotAMember):
        authorize(db_session, 7, 3, ANY_ROLE)


def test_missing_org_is_not_a_member(db_session, two_orgs):
    with pytest.raises(NotAMember):
        authorize(db_session, 7, 999, ANY_ROLE)


@pytest.mark.parametrize("caller_id", [None, 0, -1, "7", True, 2**63])
def test_missing_caller_is_unauthenticated(db_session, two_orgs, caller_id):
    with pytest.raises(Unauthenticated):
        authorize(db_session, caller_id, 1, ANY_ROLE)


@pytest.mark.parametrize("org_id", [None, 0, -5, "1", True, 1.0, 2**63, 10**20])
def test_malformed_org_id_is_invalid_input(db_session, two_orgs, org_id):
    with pytest.raises(InvalidInput):
        authorize(db_session, 7, org_id, ANY_ROLE)


def test_empty_required_roles_is_invalid_input(db_session, two_orgs):
    with pytest.raises(InvalidInput):
        authorize(db_session, 7, 1, set())


def test_or_semantics_over_required_roles(db_session, two_orgs):
    bob_in_globex = authorize(db_session, 8, 2, {Role.OWNER, Role.ADMIN})
    assert bob_in_globex is Role.OWNER


def test_storage_error_fails_closed():
    db = MagicMock(spec=Session)
    db.execute.side_effect = OperationalError("SELECT", {}, Exception("connection refused"))

    with pytest.raises(StorageFailure):
        authorize(db, 7, 1, ANY_ROLE)


def test_corrupt_stored_role_fails_closed(db_session, seed):
    user = seed.user("mallory@example.com")
    org = seed.org("Corrupt Org")
    seed.member(user, org, role="superuser")

    with pytest.raises(StorageFailure):
        authorize(db_session, user.id, org.id, ANY_ROLE)


def test_guard_is_repeatable(db_session, two_orgs):
    first = authorize(db_session, 7, 1, ANY_ROLE)
    second = authorize(db_session, 7, 1, ANY_ROLE)
    assert first is second is Role.OWNER


def test_list_user_organizations_returns_roles(db_session, two_orgs):
    pairs = list_user_organizations(db_session, 7)
    assert [(org.id, role) for org, role in pairs] == [(1, Role.OWNER), (2, Role.MEMBER)]


def test_largest_bigint_org_id_reaches_the_membership_lookup(db_session, two_orgs):
    with pytest.raises(NotAMember):
        authorize(db_session, 7, 2**63 - 1, ANY_ROLE)
