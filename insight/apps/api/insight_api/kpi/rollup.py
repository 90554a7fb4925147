"""Daily KPI rollups computed from raw events.

Each rollup writes through ``TenantGateway.upsert_kpi_snapshot`` so a rerun
for the same day replaces the previous values instead of adding rows.
"""

import logging
from datetime import date, datetime, time, timedelta, timezone

from insight_api.db.models import KpiSnapshot
from insight_api.tenancy.gateway import TenantGateway

logger = logging.getLogger(__name__)

DAILY_EVENTS_KEY = "daily_events"


def day_bounds(day: date) -> tuple[datetime, datetime]:
    """[start, end) of a UTC calendar day."""
    start = datetime.combine(day, time.min, tzinfo=timezone.utc)
    return start, start + timedelta(days=1)


def recompute_daily_event_counts(gateway: TenantGateway, day: date) -> list[KpiSnapshot]:
    """Upsert ``daily_events`` per project plus an org-level total for ``day``.

    Returns:
        Snapshots written, project-level first, org-level last
    """
    start, end = day_bounds(day)

    written = []
    total = 0
    projects = gateway.list_projects()
    for project in projects:
        count = gateway.count_events(project_id=project.id, since=start, until=end)
        total += count
        written.append(
            gateway.upsert_kpi_snapshot(
                key=DAILY_EVENTS_KEY,
                period_start=start,
                period_end=end,
                value=count,
                project_id=project.id,
            )
        )

    written.append(
        gateway.upsert_kpi_snapshot(
            key=DAILY_EVENTS_KEY,
            period_start=start,
            period_end=end,
            value=total,
            metadata={"projects": len(projects)},
        )
    )

    logger.info(
        "kpi.rollup.completed",
        extra={"org_id": gateway.org_id, "day": day.isoformat(), "snapshots": len(written)},
    )
    return written
