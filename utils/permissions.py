"""
Role -> capability mapping. Roles are plain tags; what a role may do is
decided here and nowhere else.
"""
from __future__ import annotations

from models.user import Role

USERS_LIST = "users:list"
USERS_CREATE = "users:create"
USERS_UPDATE = "users:update"
USERS_DELETE = "users:delete"

CAPABILITIES = {
    Role.ADMIN: frozenset({USERS_LIST, USERS_CREATE, USERS_UPDATE, USERS_DELETE}),
    Role.REVIEWER: frozenset(),
    Role.APPLICANT: frozenset(),
}


def has_capability(role, capability: str) -> bool:
    """`role` may be a Role or its string value; unknown roles get nothing."""
    try:
        role = Role(role)
    except ValueError:
        return False
    return capability in CAPABILITIES.get(role, frozenset())
