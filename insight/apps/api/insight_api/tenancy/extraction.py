"""Organization context extraction.

Derives a candidate org id from a request before the guard runs. Sources,
in priority order:
1. ``x-org-id`` header
2. ``orgId`` (or ``org_id``) query parameter
3. ``/org/<digits>`` path segment

A source only counts if it holds a positive integer; an invalid earlier
source falls through to the next one. ``None`` means the route carries no
tenant context, which is not an error by itself.
"""

import re
from typing import Mapping, Optional

from starlette.requests import Request

from insight_api.db.models import MAX_ID

ORG_HEADER = "x-org-id"
ORG_QUERY_PARAMS = ("orgId", "org_id")

_DIGITS = re.compile(r"^[0-9]{1,19}$")
_ORG_PATH = re.compile(r"(?:^|/)org/(\d+)(?:/|$)")


def parse_org_id(value: object) -> Optional[int]:
    """Parse an organization id from a header, query, path or body value.

    Accepts ints and strings of ASCII digits (surrounding whitespace
    ignored) in 1..MAX_ID. Everything else, including bools, yields None.
    """
    if value is None or isinstance(value, bool):
        return None
    if isinstance(value, int):
        return value if 0 < value <= MAX_ID else None
    if not isinstance(value, str):
        return None

    candidate = value.strip()
    if not _DIGITS.match(candidate):
        return None
    parsed = int(candidate)
    return parsed if 0 < parsed <= MAX_ID else None


def extract_org_id(
    headers: Mapping[str, str],
    query_params: Mapping[str, str],
    path: str,
) -> Optional[int]:
    """Return the first valid org id from header, query, then path."""
    header_value = headers.get(ORG_HEADER)
    org_id = parse_org_id(header_value)
    if org_id is not None:
        return org_id

    for name in ORG_QUERY_PARAMS:
        org_id = parse_org_id(query_params.get(name))
        if org_id is not None:
            return org_id

    match = _ORG_PATH.search(path or "")
    if match:
        return parse_org_id(match.group(1))

    return None


def extract_org_id_from_request(request: Request) -> Optional[int]:
    """Starlette adapter for extract_org_id (headers are case-insensitive)."""
    return extract_org_id(request.headers, request.query_params, request.url.path)
