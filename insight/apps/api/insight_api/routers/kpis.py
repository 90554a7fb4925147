"""KPI snapshot endpoints: list, upsert, queue recomputation."""

from typing import Optional

from fastapi import APIRouter, Depends, Query, status
from redis import Redis

from insight_api.auth.tenant_context import get_gateway, require_org_role
from insight_api.context import request_id_var
from insight_api.db.models import MAX_ID
from insight_api.db.redis_client import get_redis
from insight_api.kpi.queue import KpiJobQueue
from insight_api.schemas import (
    KpiListResponse,
    KpiRecomputeRequest,
    KpiRecomputeResponse,
    KpiSnapshotResponse,
    KpiUpsertRequest,
)
from insight_api.tenancy.gateway import TenantGateway
from insight_api.tenancy.roles import MANAGER_ROLES

router = APIRouter(prefix="/v1/kpis", tags=["kpis"])

require_manager = require_org_role(*MANAGER_ROLES)


def get_kpi_queue(redis: Redis = Depends(get_redis)) -> KpiJobQueue:
    return KpiJobQueue(redis)


@router.get("", response_model=KpiListResponse)
async def list_kpis(
    project_id: Optional[int] = Query(default=None, gt=0, le=MAX_ID),
    key: Optional[str] = Query(default=None, max_length=100),
    gateway: TenantGateway = Depends(get_gateway),
) -> KpiListResponse:
    snapshots = gateway.list_kpi_snapshots(project_id=project_id, key=key)
    return KpiListResponse(kpi_snapshots=[KpiSnapshotResponse.model_validate(s) for s in snapshots])


@router.put("", response_model=KpiSnapshotResponse)
async def upsert_kpi(
    request: KpiUpsertRequest,
    gateway: TenantGateway = Depends(require_manager),
) -> KpiSnapshotResponse:
    """Insert or replace one snapshot. Requires admin or owner."""
    snapshot = gateway.upsert_kpi_snapshot(
        key=request.key,
        period_start=request.period_start,
        period_end=request.period_end,
        value=request.value,
        project_id=request.project_id,
        metadata=request.metadata,
    )
    return KpiSnapshotResponse.model_validate(snapshot)


@router.post("/recompute", status_code=status.HTTP_202_ACCEPTED, response_model=KpiRecomputeResponse)
async def recompute_kpis(
    request: KpiRecomputeRequest,
    gateway: TenantGateway = Depends(require_manager),
    queue: KpiJobQueue = Depends(get_kpi_queue),
) -> KpiRecomputeResponse:
    """Queue a daily rollup for the org. The worker re-checks membership."""
    queue.enqueue(gateway.org_id, gateway.caller_id, request.day, request_id=request_id_var.get())
    return KpiRecomputeResponse(org_id=gateway.org_id, day=request.day)
