"""Project endpoints.

The ingestion credential is returned once, in the creation response.
"""

from fastapi import APIRouter, Depends, Path, status

from insight_api.auth.tenant_context import get_gateway, require_org_role
from insight_api.db.models import MAX_ID
from insight_api.schemas import (
    ProjectCreatedResponse,
    ProjectCreateRequest,
    ProjectListResponse,
    ProjectResponse,
)
from insight_api.tenancy.errors import ProjectNotFound
from insight_api.tenancy.gateway import TenantGateway
from insight_api.tenancy.roles import MANAGER_ROLES

router = APIRouter(prefix="/v1/projects", tags=["projects"])


@router.get("", response_model=ProjectListResponse)
async def list_projects(gateway: TenantGateway = Depends(get_gateway)) -> ProjectListResponse:
    projects = gateway.list_projects()
    return ProjectListResponse(projects=[ProjectResponse.model_validate(p) for p in projects])


@router.post("", status_code=status.HTTP_201_CREATED, response_model=ProjectCreatedResponse)
async def create_project(
    request: ProjectCreateRequest,
    gateway: TenantGateway = Depends(require_org_role(*MANAGER_ROLES)),
) -> ProjectCreatedResponse:
    """Create a project. Requires admin or owner.

    Raises:
        InvalidInput 400: Empty name
        DuplicateCredential 409: Credential collision; retry
    """
    project = gateway.create_project(request.name, description=request.description, domain=request.domain)
    return ProjectCreatedResponse.model_validate(project)


@router.get("/{project_id}", response_model=ProjectResponse)
async def get_project(
    project_id: int = Path(gt=0, le=MAX_ID),
    gateway: TenantGateway = Depends(get_gateway),
) -> ProjectResponse:
    """One project. Another organization's project id is a 404, same as a missing one."""
    project = gateway.get_project(project_id)
    if project is None:
        raise ProjectNotFound("Project not found")
    return ProjectResponse.model_validate(project)
