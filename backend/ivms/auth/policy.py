"""Role / department authorization as a pure predicate.

``is_allowed(principal, rule)`` has no framework dependency: the FastAPI glue
in :mod:`ivms.dependencies.auth` evaluates it *before* a handler runs and
turns a denial into HTTP 403.
"""

from dataclasses import dataclass
from dataclasses import field
from typing import Any
from typing import FrozenSet
from typing import Iterable
from typing import Optional

from ivms.models.enums import Department
from ivms.models.enums import Role


@dataclass(frozen=True)
class AccessRule:
    """Who may call an endpoint.

    Empty ``roles`` / ``departments`` mean *no restriction* on that axis.
    Super admins always pass the department check.
    """

    roles: FrozenSet[Role] = field(default_factory=frozenset)
    departments: FrozenSet[Department] = field(default_factory=frozenset)

    @classmethod
    def of(cls, roles: Iterable[Role] = (), departments: Iterable[Department] = ()) -> "AccessRule":
        return cls(roles=frozenset(roles), departments=frozenset(departments))


def is_allowed(principal: Optional[Any], rule: AccessRule) -> bool:
    """Return *True* when *principal* satisfies *rule*.

    *principal* is anything exposing ``role``, ``department`` and
    ``is_active`` (the ORM ``User`` in practice).
    """

    if principal is None:
        return False
    if not getattr(principal, "is_active", False):
        return False

    role = getattr(principal, "role", None)
    if rule.roles and role not in rule.roles:
        return False

    if rule.departments:
        if role == Role.SUPER_ADMIN:
            return True
        return getattr(principal, "department", None) in rule.departments

    return True


# ---------------------------------------------------------------------------
# Named rules shared by the routers
# ---------------------------------------------------------------------------

AUTHENTICATED = AccessRule()
SUPER_ADMIN_ONLY = AccessRule.of(roles=[Role.SUPER_ADMIN])

ADMIN_DEPT = AccessRule.of(departments=[Department.ADMIN])
GARAGE_DEPT = AccessRule.of(departments=[Department.GARAGE])
OPERATION_DEPT = AccessRule.of(departments=[Department.OPERATION])
MAINTENANCE_DEPT = AccessRule.of(departments=[Department.MAINTENANCE])

ADMIN_OR_GARAGE = AccessRule.of(departments=[Department.ADMIN, Department.GARAGE])
FLEET_VIEWERS = AccessRule.of(departments=[Department.ADMIN, Department.GARAGE, Department.OPERATION])
MAINTENANCE_VIEWERS = AccessRule.of(departments=[Department.ADMIN, Department.GARAGE, Department.MAINTENANCE])

RENTAL_WRITERS = AccessRule.of(roles=[Role.SUPER_ADMIN], departments=[Department.ADMIN])
RENTAL_READERS = AccessRule.of(
    roles=[Role.SUPER_ADMIN, Role.OPERATOR],
    departments=[Department.ADMIN, Department.GARAGE, Department.OPERATION],
)
