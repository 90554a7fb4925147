"""Organization endpoints: list, create, switch, memberships.

AUTHENTICATION:
- Session JWT (see auth.session_auth)
- /v1/orgs and /v1/orgs/switch act on the caller's own memberships
- /v1/orgs/members acts on the org from request context; writes need
  admin or owner
"""

from fastapi import APIRouter, Depends, Path, Response, status
from sqlalchemy.orm import Session

from insight_api.auth.session_auth import CallerIdentity, get_caller
from insight_api.auth.tenant_context import get_gateway, require_org_role
from insight_api.db.models import MAX_ID
from insight_api.db.session import get_db
from insight_api.schemas import (
    MemberAddRequest,
    MemberListResponse,
    MemberResponse,
    OrgCreateRequest,
    OrgListResponse,
    OrgResponse,
    OrgSwitchRequest,
)
from insight_api.tenancy import organizations
from insight_api.tenancy.errors import InvalidInput
from insight_api.tenancy.extraction import parse_org_id
from insight_api.tenancy.gateway import TenantGateway
from insight_api.tenancy.roles import MANAGER_ROLES

router = APIRouter(prefix="/v1/orgs", tags=["organizations"])

require_manager = require_org_role(*MANAGER_ROLES)


def _org_response(summary: organizations.OrgSummary) -> OrgResponse:
    return OrgResponse(id=summary.id, name=summary.name, slug=summary.slug, role=summary.role.value)


@router.get("", response_model=OrgListResponse)
async def list_orgs(
    caller: CallerIdentity = Depends(get_caller),
    db: Session = Depends(get_db),
) -> OrgListResponse:
    """Organizations the caller belongs to, with the caller's role in each."""
    summaries = organizations.list_organizations(db, caller.user_id)
    return OrgListResponse(organizations=[_org_response(s) for s in summaries])


@router.post("", status_code=status.HTTP_201_CREATED, response_model=OrgResponse)
async def create_org(
    request: OrgCreateRequest,
    caller: CallerIdentity = Depends(get_caller),
    db: Session = Depends(get_db),
) -> OrgResponse:
    summary = organizations.create_organization(
        db, caller.user_id, request.name, slug=request.slug, plan=request.plan
    )
    return _org_response(summary)


@router.post("/switch", response_model=OrgResponse)
async def switch_org(
    request: OrgSwitchRequest,
    caller: CallerIdentity = Depends(get_caller),
    db: Session = Depends(get_db),
) -> OrgResponse:
    """Validate that the caller may make ``org_id`` their active org.

    Nothing is stored server side; the client sends the org id on later
    requests (x-org-id header or orgId query parameter).
    """
    org_id = parse_org_id(request.org_id)
    if org_id is None:
        raise InvalidInput("Invalid organization ID")
    return _org_response(organizations.switch_organization(db, caller.user_id, org_id))


@router.get("/members", response_model=MemberListResponse)
async def list_members(gateway: TenantGateway = Depends(get_gateway)) -> MemberListResponse:
    members = gateway.list_members()
    return MemberListResponse(members=[MemberResponse.model_validate(m) for m in members])


@router.post("/members", status_code=status.HTTP_201_CREATED, response_model=MemberResponse)
async def add_member(
    request: MemberAddRequest,
    gateway: TenantGateway = Depends(require_manager),
) -> MemberResponse:
    membership = organizations.add_member(gateway, request.email, request.role)
    return MemberResponse.model_validate(membership)


@router.delete("/members/{user_id}", status_code=status.HTTP_204_NO_CONTENT)
async def remove_member(
    user_id: int = Path(gt=0, le=MAX_ID),
    gateway: TenantGateway = Depends(require_manager),
) -> Response:
    organizations.remove_member(gateway, user_id)
    return Response(status_code=status.HTTP_204_NO_CONTENT)
