"""Dashboard aggregation for the active organization."""

import logging
from dataclasses import dataclass, field

from insight_api.db.models import Event, KpiSnapshot, Organization, Project
from insight_api.tenancy.gateway import TenantGateway

logger = logging.getLogger(__name__)

RECENT_EVENTS_LIMIT = 10


@dataclass
class DashboardStats:
    total_projects: int
    active_projects: int
    # True event count for the org, not the size of recent_events
    total_events: int
    recent_events_count: int


@dataclass
class Dashboard:
    organization: Organization | None
    projects: list[Project] = field(default_factory=list)
    recent_events: list[Event] = field(default_factory=list)
    kpi_snapshots: list[KpiSnapshot] = field(default_factory=list)
    stats: DashboardStats | None = None


def build_dashboard(gateway: TenantGateway, recent_limit: int = RECENT_EVENTS_LIMIT) -> Dashboard:
    """Collect projects, recent events, KPI snapshots and summary stats.

    All reads share the request's session, so they run one after another.
    Any failure propagates; there is no partial dashboard.
    """
    organization = gateway.get_organization()
    projects = gateway.list_projects()
    recent_events = gateway.list_recent_events(limit=recent_limit)
    kpi_snapshots = gateway.list_kpi_snapshots()
    total_events = gateway.count_events()

    stats = DashboardStats(
        total_projects=len(projects),
        active_projects=sum(1 for p in projects if p.is_active),
        total_events=total_events,
        recent_events_count=len(recent_events),
    )
    logger.debug(
        "dashboard.built",
        extra={"org_id": gateway.org_id, "total_projects": stats.total_projects},
    )
    return Dashboard(
        organization=organization,
        projects=projects,
        recent_events=recent_events,
        kpi_snapshots=kpi_snapshots,
        stats=stats,
    )
