"""Pydantic schemas for API requests/responses."""

from datetime import date, datetime
from decimal import Decimal
from typing import Any, Optional

from pydantic import AliasChoices, BaseModel, ConfigDict, Field, field_validator

from insight_api.db.models import MAX_ID


# ============================================================================
# Organizations
# ============================================================================


class OrgResponse(BaseModel):
    """Organization as seen by one of its members."""

    model_config = ConfigDict(from_attributes=True)

    id: int
    name: str
    slug: str
    role: str


class OrgListResponse(BaseModel):
    organizations: list[OrgResponse]


class OrgCreateRequest(BaseModel):
    """Request body for POST /v1/orgs."""

    name: str = Field(..., min_length=1, max_length=255)
    slug: Optional[str] = Field(default=None, max_length=100)
    plan: str = Field(default="free", description="free | pro | enterprise")


class OrgSwitchRequest(BaseModel):
    """Request body for POST /v1/orgs/switch.

    Accepts a JSON number or a digit string; anything else is rejected.
    """

    org_id: Any = Field(..., description="Organization to make active")


class MemberResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    user_id: int
    organization_id: int
    role: str
    created_at: datetime


class MemberListResponse(BaseModel):
    members: list[MemberResponse]


class MemberAddRequest(BaseModel):
    """Request body for POST /v1/orgs/members."""

    email: str = Field(..., min_length=3, max_length=255)
    role: str = Field(default="member", description="member | admin | owner")


# ============================================================================
# Projects
# ============================================================================


class ProjectCreateRequest(BaseModel):
    """Request body for POST /v1/projects."""

    name: str = Field(..., max_length=255)
    description: Optional[str] = None
    domain: Optional[str] = Field(default=None, max_length=255)


class ProjectResponse(BaseModel):
    """Project without its ingestion credential."""

    model_config = ConfigDict(from_attributes=True)

    id: int
    organization_id: int
    name: str
    description: Optional[str] = None
    domain: Optional[str] = None
    is_active: bool
    created_at: datetime


class ProjectCreatedResponse(ProjectResponse):
    """Project as returned once, at creation, with the full credential."""

    api_key: str = Field(..., description="Ingestion credential. Shown only once.")


class ProjectListResponse(BaseModel):
    projects: list[ProjectResponse]


# ============================================================================
# Events
# ============================================================================


class EventCreateRequest(BaseModel):
    """Request body for POST /v1/projects/{project_id}/events."""

    event_name: str = Field(..., max_length=255)
    user_id: Optional[str] = Field(default=None, max_length=255)
    session_id: Optional[str] = Field(default=None, max_length=255)
    metadata: Optional[dict[str, Any]] = None
    timestamp: Optional[datetime] = None


class EventResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    organization_id: int
    project_id: int
    event_name: str
    user_id: Optional[str] = None
    session_id: Optional[str] = None
    metadata: Optional[dict[str, Any]] = Field(default=None, validation_alias=AliasChoices("event_metadata", "metadata"))
    timestamp: datetime


class EventListResponse(BaseModel):
    events: list[EventResponse]


# ============================================================================
# KPI snapshots
# ============================================================================


class KpiUpsertRequest(BaseModel):
    """Request body for PUT /v1/kpis."""

    key: str = Field(..., max_length=100)
    period_start: datetime
    period_end: datetime
    value: Decimal
    project_id: Optional[int] = Field(default=None, gt=0, le=MAX_ID)
    metadata: Optional[dict[str, Any]] = None


class KpiSnapshotResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    organization_id: int
    project_id: Optional[int] = None
    key: str
    period_start: datetime
    period_end: datetime
    value: str
    metadata: Optional[dict[str, Any]] = Field(default=None, validation_alias=AliasChoices("snapshot_metadata", "metadata"))

    @field_validator("value", mode="before")
    @classmethod
    def _decimal_to_str(cls, v: Any) -> str:
        # 4dp string, no float rounding on the wire
        return f"{Decimal(str(v)):.4f}"


class KpiListResponse(BaseModel):
    kpi_snapshots: list[KpiSnapshotResponse]


class KpiRecomputeRequest(BaseModel):
    """Request body for POST /v1/kpis/recompute."""

    day: date


class KpiRecomputeResponse(BaseModel):
    status: str = "queued"
    org_id: int
    day: date


# ============================================================================
# Dashboard
# ============================================================================


class DashboardStatsResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    total_projects: int
    active_projects: int
    total_events: int = Field(..., description="All events recorded for the organization")
    recent_events_count: int = Field(..., description="Number of events in recent_events")


class DashboardOrgResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    name: str
    slug: str
    plan: str


class DashboardResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    organization: Optional[DashboardOrgResponse] = None
    projects: list[ProjectResponse]
    recent_events: list[EventResponse]
    kpi_snapshots: list[KpiSnapshotResponse]
    stats: DashboardStatsResponse


# ============================================================================
# RFC 9457 Problem Details
# ============================================================================


class ProblemDetail(BaseModel):
    """RFC 9457 Problem Details for HTTP APIs."""

    type: str = Field(..., description="URI reference identifying the problem type")
    title: str = Field(..., description="Short, human-readable summary")
    status: int = Field(..., description="HTTP status code")
    detail: Optional[str] = Field(None, description="Human-readable explanation")
    instance: Optional[str] = Field(None, description="Opaque trace identifier")
