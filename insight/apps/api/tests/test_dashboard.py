"""Dashboard aggregation."""

from datetime import datetime, timedelta, timezone

import pytest

from insight_api.services.dashboard import build_dashboard
from insight_api.tenancy.gateway import TenantGateway

T0 = datetime(2024, 3, 1, tzinfo=timezone.utc)


@pytest.fixture
def acme(db_session, seed, two_orgs) -> TenantGateway:
    site = seed.project(two_orgs["acme"], "Acme Site")
    seed.project(two_orgs["acme"], "Legacy", is_active=False)
    for i in range(15):
        seed.event(site, "page_view", T0 + timedelta(minutes=i))
    other = seed.project(two_orgs["globex"], "Globex Site")
    seed.event(other, "signup", T0)
    return TenantGateway.create(db_session, 1, 7)


def test_dashboard_stats(acme):
    dashboard = build_dashboard(acme)

    assert dashboard.organization.name == "Acme"
    assert dashboard.stats.total_projects == 2
    assert dashboard.stats.active_projects == 1
    assert dashboard.stats.total_events == 15
    assert dashboard.stats.recent_events_count == 10


def test_recent_events_are_the_latest_in_ascending_order(acme):
    recent = build_dashboard(acme).recent_events
    minutes = [int((e.timestamp.replace(tzinfo=None) - T0.replace(tzinfo=None)).total_seconds() // 60) for e in recent]
    assert minutes == list(range(5, 15))


def test_dashboard_excludes_other_tenants(acme):
    dashboard = build_dashboard(acme)
    assert {p.organization_id for p in dashboard.projects} == {1}
    assert {e.organization_id for e in dashboard.recent_events} == {1}


def test_empty_org_dashboard(db_session, two_orgs):
    gateway = TenantGateway.create(db_session, 2, 8)
    dashboard = build_dashboard(gateway)
    assert dashboard.stats.total_projects == 0
    assert dashboard.stats.total_events == 0
    assert dashboard.recent_events == []
    assert dashboard.kpi_snapshots == []
