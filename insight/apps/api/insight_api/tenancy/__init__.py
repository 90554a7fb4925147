"""Tenant isolation core.

Every tenant-owned read or write goes through ``TenantGateway``, which is
only obtainable after ``authorize`` has verified the caller's membership.
"""

from insight_api.tenancy.errors import (
    AuthzError,
    DuplicateCredential,
    InsightError,
    InsufficientRole,
    InvalidInput,
    NotAMember,
    ProjectNotFound,
    StorageFailure,
    Unauthenticated,
)
from insight_api.tenancy.extraction import extract_org_id, extract_org_id_from_request
from insight_api.tenancy.gateway import TenantGateway
from insight_api.tenancy.guard import authorize
from insight_api.tenancy.roles import ANY_ROLE, MANAGER_ROLES, Role, satisfies

__all__ = [
    "ANY_ROLE",
    "MANAGER_ROLES",
    "AuthzError",
    "DuplicateCredential",
    "InsightError",
    "InsufficientRole",
    "InvalidInput",
    "NotAMember",
    "ProjectNotFound",
    "Role",
    "StorageFailure",
    "TenantGateway",
    "Unauthenticated",
    "authorize",
    "extract_org_id",
    "extract_org_id_from_request",
    "satisfies",
]
