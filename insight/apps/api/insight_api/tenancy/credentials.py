"""Project ingestion credential generation.

SECURITY:
- secrets.choice() draws from the OS CSPRNG
- 32 chars over [A-Za-z0-9] = ~190 bits; collisions are still possible in
  principle, so the projects.api_key unique constraint is the real guard
- Credentials are never logged; log only last4
"""

import secrets
import string

API_KEY_LENGTH = 32
API_KEY_ALPHABET = string.ascii_letters + string.digits


def generate_api_key(length: int = API_KEY_LENGTH) -> str:
    """Generate a fresh ingestion credential."""
    return "".join(secrets.choice(API_KEY_ALPHABET) for _ in range(length))


def last4(api_key: str) -> str:
    """Display-safe suffix of a credential."""
    return api_key[-4:]
