"""Role policy: owner > admin > member."""

from enum import Enum

from insight_api.tenancy.errors import InvalidInput


class Role(str, Enum):
    MEMBER = "member"
    ADMIN = "admin"
    OWNER = "owner"

    @property
    def rank(self) -> int:
        return _RANKS[self]

    @classmethod
    def parse(cls, value: "str | Role") -> "Role":
        """Convert a stored role string; unknown values fail closed."""
        if isinstance(value, Role):
            return value
        try:
            return cls(str(value).strip().lower())
        except ValueError:
            raise InvalidInput(f"Unknown role: {value!r}") from None


_RANKS = {Role.MEMBER: 1, Role.ADMIN: 2, Role.OWNER: 3}

ANY_ROLE = frozenset({Role.MEMBER, Role.ADMIN, Role.OWNER})
MANAGER_ROLES = frozenset({Role.ADMIN, Role.OWNER})


def satisfies(actual: Role, required: Role) -> bool:
    """True iff ``actual`` ranks at or above ``required``."""
    return actual.rank >= required.rank


def satisfies_any(actual: Role, required_roles) -> bool:
    """OR semantics across a required set."""
    return any(satisfies(actual, required) for required in required_roles)
