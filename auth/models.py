"""
auth/models.py -- Domain dataclasses for authentication entities.

Pattern: Data class (pure data container, zero logic beyond trivial role
lookups). Stores and the policy engine do the work.

Layer rule: no imports from api/ or tasks/.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum


class Role(str, Enum):
    """Role labels a user may hold. A user may hold several at once."""

    USER = "USER"
    MANAGER = "MANAGER"
    ADMIN = "ADMIN"


ALL_ROLES = frozenset(r.value for r in Role)

# Accept the "ROLE_" prefix some clients still send (e.g. "ROLE_MANAGER").
_ROLE_PREFIX = "ROLE_"


def normalize_role(label: str) -> str:
    """Return the canonical label for a client-supplied role string.

    Raises ValueError for anything outside USER / MANAGER / ADMIN.
    """
    value = label.strip().upper()
    if value.startswith(_ROLE_PREFIX):
        value = value[len(_ROLE_PREFIX):]
    if value not in ALL_ROLES:
        raise ValueError(f"Unknown role: {label!r}")
    return value


@dataclass
class User:
    """A registered account.

    roles is never empty once persisted -- registration defaults it to
    {"USER"}. hashed_password is a bcrypt hash; the raw password is never
    stored.

    id is None before the record is written to the database.
    """

    username: str
    hashed_password: str
    roles: frozenset[str] = field(default_factory=lambda: frozenset({Role.USER.value}))
    id: int | None = None
    created_at: str = ""  # ISO 8601, set by store on insert

    def has_role(self, role: Role | str) -> bool:
        return Role(role).value in self.roles


@dataclass(frozen=True)
class Identity:
    """The per-request record of who the caller is.

    Established once by the identity-resolution middleware and read-only
    afterwards. Each request gets its own instance on request.state; nothing
    here is cached across requests.
    """

    username: str | None = None
    roles: frozenset[str] = frozenset()
    authenticated: bool = False

    @classmethod
    def anonymous(cls) -> Identity:
        return cls()

    @classmethod
    def for_user(cls, user: User) -> Identity:
        return cls(username=user.username, roles=frozenset(user.roles), authenticated=True)
