"""FastAPI dependencies that bind a request to a verified organization.

The org id comes from the request (header, query, then path). The caller
comes from the session. Both go to TenantGateway.create, which runs the
access guard; routes only ever see the resulting gateway.
"""

from typing import Callable

from fastapi import Depends, Request
from sqlalchemy.orm import Session

from insight_api.auth.session_auth import CallerIdentity, get_caller
from insight_api.db.session import get_db
from insight_api.tenancy.errors import InvalidInput
from insight_api.tenancy.extraction import extract_org_id_from_request
from insight_api.tenancy.gateway import TenantGateway
from insight_api.tenancy.roles import Role


def get_org_id(request: Request) -> int:
    """Org id for a tenant route.

    Raises:
        InvalidInput: No valid org id in header, query or path
    """
    org_id = extract_org_id_from_request(request)
    if org_id is None:
        raise InvalidInput("Organization context required (x-org-id header or orgId query parameter)")
    return org_id


async def get_gateway(
    caller: CallerIdentity = Depends(get_caller),
    org_id: int = Depends(get_org_id),
    db: Session = Depends(get_db),
) -> TenantGateway:
    """Gateway for any member of the request's organization."""
    return TenantGateway.create(db, org_id, caller.user_id)


def require_org_role(*roles: Role) -> Callable:
    """Dependency factory: gateway whose caller holds one of ``roles``.

    Usage:
        async def handler(gateway: TenantGateway = Depends(require_org_role(Role.ADMIN))):
    """

    async def _dependency(gateway: TenantGateway = Depends(get_gateway)) -> TenantGateway:
        gateway.ensure_role(roles)
        return gateway

    return _dependency
