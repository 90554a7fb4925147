"""Dashboard endpoints."""

from fastapi import APIRouter, Depends

from insight_api.auth.tenant_context import get_gateway
from insight_api.schemas import DashboardResponse
from insight_api.services.dashboard import build_dashboard
from insight_api.tenancy.gateway import TenantGateway

router = APIRouter(prefix="/v1", tags=["dashboard"])


@router.get("/dashboard", response_model=DashboardResponse)
async def get_dashboard(gateway: TenantGateway = Depends(get_gateway)) -> DashboardResponse:
    """Dashboard for the org in request context (header or query)."""
    return DashboardResponse.model_validate(build_dashboard(gateway))


@router.get("/org/{org_id}/dashboard", response_model=DashboardResponse)
async def get_org_dashboard(gateway: TenantGateway = Depends(get_gateway)) -> DashboardResponse:
    """Dashboard addressed by path. The x-org-id header still takes priority."""
    return DashboardResponse.model_validate(build_dashboard(gateway))
