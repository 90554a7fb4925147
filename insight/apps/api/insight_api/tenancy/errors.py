"""Tenancy error taxonomy.

Each error carries the HTTP status and problem title the API maps it to.
Authorization failures are always raised; only single-row reads
(``get_project``) answer ``None`` for another tenant's ids.
"""

from typing import Optional


class InsightError(Exception):
    """Base class for all tenancy errors."""

    status_code: int = 500
    title: str = "Internal Server Error"
    problem_type: str = "internal-error"

    def __init__(self, detail: Optional[str] = None):
        self.detail = detail or self.title
        super().__init__(self.detail)


class AuthzError(InsightError):
    """Base class for authorization failures."""

    status_code = 403
    title = "Forbidden"
    problem_type = "forbidden"


class Unauthenticated(AuthzError):
    """No verified caller identity."""

    status_code = 401
    title = "Unauthorized"
    problem_type = "unauthenticated"


class NotAMember(AuthzError):
    """Caller has no membership in the organization."""

    title = "Forbidden"
    problem_type = "not-a-member"


class InsufficientRole(AuthzError):
    """Membership exists but its role satisfies none of the required roles."""

    title = "Forbidden"
    problem_type = "insufficient-role"


class ProjectNotFound(InsightError):
    """Project absent, or owned by another organization."""

    status_code = 404
    title = "Not Found"
    problem_type = "project-not-found"


class InvalidInput(InsightError):
    """Malformed id or empty required field."""

    status_code = 400
    title = "Bad Request"
    problem_type = "invalid-input"


class DuplicateCredential(InsightError):
    """Generated ingestion credential collided with an existing one. Retryable."""

    status_code = 409
    title = "Conflict"
    problem_type = "duplicate-credential"


class StorageFailure(InsightError):
    """Opaque lower-layer failure. Detail is never shown to HTTP callers."""

    status_code = 500
    title = "Internal Server Error"
    problem_type = "internal-error"
