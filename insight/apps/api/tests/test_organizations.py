"""Organization switch, creation and membership management."""

from unittest.mock import patch

import pytest

from insight_api.tenancy import organizations
from insight_api.tenancy.errors import InsufficientRole, InvalidInput, NotAMember
from insight_api.tenancy.gateway import TenantGateway
from insight_api.tenancy.roles import Role


def test_switch_returns_summary_with_role(db_session, two_orgs):
    summary = organizations.switch_organization(db_session, 7, 2)
    assert (summary.id, summary.name, summary.slug, summary.role) == (2, "Globex", "globex", Role.MEMBER)


def test_switch_to_foreign_org_is_rejected(db_session, two_orgs):
    with pytest.raises(NotAMember):
        organizations.switch_organization(db_session, 7, 3)


def test_list_organizations(db_session, two_orgs):
    summaries = organizations.list_organizations(db_session, 8)
    assert [(s.id, s.role) for s in summaries] == [(2, Role.OWNER)]


def test_create_organization_makes_caller_owner(db_session, two_orgs):
    summary = organizations.create_organization(db_session, 8, "  Umbrella  ", slug="umbrella")
    assert summary.name == "Umbrella"
    assert summary.role is Role.OWNER
    assert organizations.switch_organization(db_session, 8, summary.id).role is Role.OWNER


def test_create_organization_generates_slug(db_session, two_orgs):
    summary = organizations.create_organization(db_session, 8, "Wayne Enterprises")
    assert summary.slug.startswith("wayne-enterprises-")


@pytest.mark.parametrize(
    "name,slug,plan",
    [("   ", None, "free"), ("Ok", "Not A Slug", "free"), ("Ok", None, "platinum")],
)
def test_create_organization_validates_input(db_session, two_orgs, name, slug, plan):
    with pytest.raises(InvalidInput):
        organizations.create_organization(db_session, 8, name, slug=slug, plan=plan)


def test_create_organization_rejects_taken_slug(db_session, two_orgs):
    with pytest.raises(InvalidInput):
        organizations.create_organization(db_session, 8, "Acme Two", slug="acme")


def test_admin_can_add_member(db_session, seed, two_orgs):
    seed.user("carol@example.com")
    acme = TenantGateway.create(db_session, 1, 7)

    membership = organizations.add_member(acme, "carol@example.com", "admin")
    assert membership.organization_id == 1
    assert membership.role == "admin"


def test_member_cannot_add_members(db_session, two_orgs):
    globex = TenantGateway.create(db_session, 2, 7)
    with pytest.raises(InsufficientRole):
        organizations.add_member(globex, "alice@example.com", "member")


def test_only_owner_may_grant_owner(db_session, seed, two_orgs):
    carol = seed.user("carol@example.com")
    seed.user("dave@example.com")
    seed.member(carol, two_orgs["acme"], "admin")
    as_admin = TenantGateway.create(db_session, 1, carol.id)

    with pytest.raises(InsufficientRole):
        organizations.add_member(as_admin, "dave@example.com", "owner")
    assert organizations.add_member(as_admin, "dave@example.com", "member").role == "member"


def test_duplicate_membership_is_invalid_input(db_session, two_orgs):
    acme = TenantGateway.create(db_session, 1, 7)
    organizations.add_member(acme, "bob@example.com", "member")
    with pytest.raises(InvalidInput):
        organizations.add_member(acme, "bob@example.com", "admin")


def test_unknown_email_is_invalid_input(db_session, two_orgs):
    acme = TenantGateway.create(db_session, 1, 7)
    with pytest.raises(InvalidInput):
        organizations.add_member(acme, "nobody@example.com", "member")


def test_last_owner_cannot_be_removed(db_session, two_orgs):
    acme = TenantGateway.create(db_session, 1, 7)
    with pytest.raises(InvalidInput):
        organizations.remove_member(acme, 7)


def test_owner_removal_allowed_when_another_owner_remains(db_session, seed, two_orgs):
    acme = TenantGateway.create(db_session, 1, 7)
    organizations.add_member(acme, "bob@example.com", "owner")

    organizations.remove_member(acme, 8)
    assert [m.user_id for m in acme.list_members()] == [7]


def test_admin_cannot_remove_owner(db_session, seed, two_orgs):
    carol = seed.user("carol@example.com")
    seed.member(carol, two_orgs["acme"], "admin")
    as_admin = TenantGateway.create(db_session, 1, carol.id)

    with pytest.raises(InsufficientRole):
        organizations.remove_member(as_admin, 7)


def test_last_owner_survives_a_stale_owner_read(db_session, two_orgs):
    # Another owner's removal committed after the owner rows were read
    acme = TenantGateway.create(db_session, 1, 7)
    with patch.object(TenantGateway, "_locked_owner_ids", return_value=[7, 8]):
        with pytest.raises(InvalidInput):
            organizations.remove_member(acme, 7)

    assert [m.user_id for m in acme.list_members()] == [7]
