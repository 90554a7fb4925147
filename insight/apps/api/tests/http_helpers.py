"""Shared helpers for HTTP-level tests."""

import re
from typing import Optional

from insight_api.auth.session_auth import issue_session_token


def auth_headers(email: str, org_id: Optional[int] = None, name: Optional[str] = None) -> dict:
    """Bearer session headers, optionally with an x-org-id context header."""
    headers = {"Authorization": f"Bearer {issue_session_token(email, name=name)}"}
    if org_id is not None:
        headers["x-org-id"] = str(org_id)
    return headers


def assert_problem(resp, expected_status: int) -> dict:
    """Assert an RFC 9457 problem+json response and return its body."""
    assert resp.status_code == expected_status
    assert resp.headers["content-type"].startswith("application/problem+json")
    data = resp.json()
    for field in ("type", "title", "status", "detail", "instance"):
        assert field in data, f"Missing required field: {field}"
    assert data["status"] == expected_status
    assert re.match(r"^urn:insight:trace:[A-Za-z0-9-]{8,}$", data["instance"])
    return data
