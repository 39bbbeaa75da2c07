"""
Role policy.

Roles are a closed set with a fixed total order: admin > operator > user > guest.
``authorize`` is an exact allow-list check, ``authorize_min_role`` a hierarchy
check. Unknown roles sit at level 0 and are never allowed.
"""

from enum import Enum
from typing import Iterable

from cms.core.errors import InvalidRole


class Role(str, Enum):
    ADMIN = "admin"
    OPERATOR = "operator"
    USER = "user"
    GUEST = "guest"


ROLE_HIERARCHY: dict[str, int] = {
    Role.ADMIN.value: 4,
    Role.OPERATOR.value: 3,
    Role.USER.value: 2,
    Role.GUEST.value: 1,
}

VALID_ROLES = tuple(r.value for r in Role)


def _value(role) -> str:
    return role.value if isinstance(role, Role) else str(role)


def role_level(role) -> int:
    return ROLE_HIERARCHY.get(_value(role), 0)


def parse_role(value) -> Role:
    """Return the Role for ``value`` or raise InvalidRole."""
    try:
        return Role(_value(value))
    except ValueError as e:
        raise InvalidRole() from e


def authorize(role, allowed_roles: Iterable) -> bool:
    if role_level(role) == 0:
        return False
    return _value(role) in {_value(r) for r in allowed_roles}


def authorize_min_role(role, min_role) -> bool:
    user_level = role_level(role)
    min_level = role_level(min_role)
    if user_level == 0 or min_level == 0:
        return False
    return user_level >= min_level
