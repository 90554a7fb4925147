"""Session authentication for user-facing endpoints.

FLOW:
1. The external login layer issues an HS256 JWT (claims: email, name, exp)
2. Client calls an endpoint with Authorization: Bearer <jwt>
3. get_caller verifies the signature with INSIGHT_SESSION_SECRET
4. The email is resolved to a User row, provisioned on first sight
   (which also bootstraps a personal organization)
5. Returns CallerIdentity(user_id, email)

SECURITY:
- The identity is explicit: routes take it as a dependency, nothing reads
  a global "current user"
- Tokens are never logged
"""

import logging
from datetime import datetime, timedelta, timezone
from typing import Any, Optional

from fastapi import Depends
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from jose import JWTError, jwt
from sqlalchemy.orm import Session

from insight_api.config.env import get_session_secret
from insight_api.context import user_id_var
from insight_api.db.session import get_db
from insight_api.tenancy.bootstrap import ensure_user
from insight_api.tenancy.errors import Unauthenticated

logger = logging.getLogger(__name__)

SESSION_ALGORITHM = "HS256"

# HTTPBearer scheme for session JWT
session_security = HTTPBearer(auto_error=False, description="Session JWT")


class CallerIdentity:
    """Authenticated caller."""

    def __init__(self, user_id: int, email: str):
        self.user_id = user_id
        self.email = email

    def __repr__(self) -> str:
        return f"CallerIdentity(user_id={self.user_id})"


def issue_session_token(email: str, name: Optional[str] = None, expires_minutes: int = 60) -> str:
    """Mint a session JWT (used by the login layer and by tests)."""
    claims: dict[str, Any] = {
        "email": email,
        "exp": datetime.now(timezone.utc) + timedelta(minutes=expires_minutes),
    }
    if name:
        claims["name"] = name
    return jwt.encode(claims, get_session_secret(), algorithm=SESSION_ALGORITHM)


def decode_session_token(token: str) -> dict[str, Any]:
    """Verify signature and expiry and return the claims.

    Raises:
        Unauthenticated: Bad signature, expired, or no email claim
    """
    try:
        claims = jwt.decode(token, get_session_secret(), algorithms=[SESSION_ALGORITHM])
    except JWTError:
        raise Unauthenticated("Invalid or expired session token") from None

    email = claims.get("email")
    if not isinstance(email, str) or "@" not in email:
        raise Unauthenticated("Session token has no email claim")
    return claims


async def get_caller(
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(session_security),
    db: Session = Depends(get_db),
) -> CallerIdentity:
    """Resolve the Bearer session token to a caller identity.

    Raises:
        Unauthenticated: Missing or invalid token
    """
    if not credentials:
        raise Unauthenticated("Missing Authorization header. Please log in first.")

    claims = decode_session_token(credentials.credentials)
    user, created = ensure_user(db, claims["email"], claims.get("name"))

    user_id_var.set(str(user.id))
    logger.info(
        "session.auth.success",
        extra={"user_id": user.id, "provisioned": created},
    )
    return CallerIdentity(user_id=user.id, email=user.email)
