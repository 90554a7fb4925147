"""Request context management for observability.

Context variables carry request-scoped identifiers into log records.
They are never consulted for authorization decisions.
"""

from contextvars import ContextVar

# Request ID - unique per HTTP request
request_id_var: ContextVar[str] = ContextVar("request_id", default="")

# Organization ID - tenant context once the guard has verified it
org_id_var: ContextVar[str] = ContextVar("org_id", default="")

# User ID - authenticated caller
user_id_var: ContextVar[str] = ContextVar("user_id", default="")
