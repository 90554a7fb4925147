"""Event endpoints: list and record."""

from typing import Optional

from fastapi import APIRouter, Depends, Path, Query, Request, status

from insight_api.auth.tenant_context import get_gateway
from insight_api.db.models import MAX_ID
from insight_api.schemas import EventCreateRequest, EventListResponse, EventResponse
from insight_api.tenancy.gateway import DEFAULT_EVENT_LIMIT, TenantGateway

router = APIRouter(prefix="/v1", tags=["events"])


@router.get("/events", response_model=EventListResponse)
async def list_events(
    project_id: Optional[int] = Query(default=None, gt=0, le=MAX_ID),
    limit: int = Query(default=DEFAULT_EVENT_LIMIT),
    gateway: TenantGateway = Depends(get_gateway),
) -> EventListResponse:
    """Events for the org, oldest first, optionally for one project."""
    events = gateway.list_events(project_id=project_id, limit=limit)
    return EventListResponse(events=[EventResponse.model_validate(e) for e in events])


@router.post(
    "/projects/{project_id}/events",
    status_code=status.HTTP_201_CREATED,
    response_model=EventResponse,
)
async def record_event(
    body: EventCreateRequest,
    request: Request,
    project_id: int = Path(gt=0, le=MAX_ID),
    gateway: TenantGateway = Depends(get_gateway),
) -> EventResponse:
    """Record an event against a project of the org.

    Raises:
        ProjectNotFound 404: Project missing or owned by another org
    """
    event = gateway.insert_event(
        project_id,
        body.event_name,
        user_id=body.user_id,
        session_id=body.session_id,
        metadata=body.metadata,
        ip_address=request.client.host if request.client else None,
        user_agent=request.headers.get("user-agent"),
        timestamp=body.timestamp,
    )
    return EventResponse.model_validate(event)
