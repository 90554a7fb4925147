"""Secret / PII sanitizer for structured log output.

Two-tier string processing:
 1. > MAX_STR_LOG       -> truncate + sha256, never run regex
 2. <= MAX_STR_LOG      -> regex replacement of bearer tokens and key=value secrets

Dict values under sensitive keys (api keys, tokens, emails, client IPs) are
replaced wholesale. Patterns are pre-compiled and anchored to \\S+.
"""

import hashlib
import re
import traceback
from typing import Any

MAX_STR_LOG: int = 2048
MAX_DEPTH: int = 6

_SENSITIVE_KEYS: frozenset[str] = frozenset({
    "authorization", "token", "access_token", "session_token",
    "api_key", "apikey", "secret", "password",
    "email", "billing_email", "ip_address", "user_agent",
})

_PATTERNS: list[re.Pattern[str]] = [
    re.compile(r"Bearer \S+"),
    re.compile(r"api_key=\S+"),
    re.compile(r"token=\S+"),
]


def sanitize_str(s: str) -> str:
    """Return a redacted / truncated copy of ``s``."""
    if not isinstance(s, str):
        return s  # type: ignore[return-value]

    n = len(s)
    if n > MAX_STR_LOG:
        digest = hashlib.sha256(s.encode("utf-8", errors="replace")).hexdigest()[:16]
        return f"[TRUNCATED len={n} sha256={digest}]"

    result = s
    for pattern in _PATTERNS:
        result = pattern.sub("[REDACTED]", result)
    return result


def sanitize_obj(obj: Any, depth: int = 0) -> Any:
    """Recursively sanitize a log ``extra`` value."""
    if depth >= MAX_DEPTH:
        return "[DEPTH_LIMIT]"

    if isinstance(obj, dict):
        result: dict[str, Any] = {}
        for key, value in obj.items():
            if isinstance(key, str) and key.lower() in _SENSITIVE_KEYS:
                result[key] = "[REDACTED]"
            else:
                result[key] = sanitize_obj(value, depth + 1)
        return result

    if isinstance(obj, (list, tuple)):
        return [sanitize_obj(item, depth + 1) for item in obj]

    if isinstance(obj, str):
        return sanitize_str(obj)

    return obj


def is_sensitive_key(key: str) -> bool:
    """True if a top-level log field must never be emitted verbatim."""
    return key.lower() in _SENSITIVE_KEYS


def sanitize_exc(exc_info: tuple) -> str:
    """Format an exc_info tuple into a sanitized traceback string.

    Locals are not captured so bound parameters never reach the log.
    """
    _type, value, _tb = exc_info
    if value is None:
        return ""
    try:
        te = traceback.TracebackException.from_exception(value, capture_locals=False)
        return sanitize_str("".join(te.format()))
    except Exception:
        return "[TRACEBACK_FORMAT_ERROR]"
