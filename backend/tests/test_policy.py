"""Pure authorization predicate (no FastAPI involved)."""

from dataclasses import FrozenInstanceError
from types import SimpleNamespace

import pytest

from ivms.auth.policy import ADMIN_OR_GARAGE
from ivms.auth.policy import AUTHENTICATED
from ivms.auth.policy import RENTAL_READERS
from ivms.auth.policy import RENTAL_WRITERS
from ivms.auth.policy import SUPER_ADMIN_ONLY
from ivms.auth.policy import AccessRule
from ivms.auth.policy import is_allowed
from ivms.models.enums import Department
from ivms.models.enums import Role


def principal(department: Department, role: Role = Role.OPERATOR, is_active: bool = True):
    return SimpleNamespace(department=department, role=role, is_active=is_active)


SUPER = principal(Department.ADMIN, Role.SUPER_ADMIN)
GARAGE = principal(Department.GARAGE)
OPERATION = principal(Department.OPERATION)
MAINTENANCE = principal(Department.MAINTENANCE)


def test_missing_principal_is_denied():
    assert is_allowed(None, AUTHENTICATED) is False


def test_inactive_principal_is_denied_everything():
    assert is_allowed(principal(Department.GARAGE, is_active=False), AUTHENTICATED) is False


def test_empty_rule_admits_any_active_principal():
    assert is_allowed(MAINTENANCE, AccessRule()) is True


@pytest.mark.parametrize(
    "who, expected",
    [(SUPER, True), (GARAGE, False), (OPERATION, False)],
)
def test_role_rule(who, expected):
    assert is_allowed(who, SUPER_ADMIN_ONLY) is expected


@pytest.mark.parametrize(
    "who, expected",
    [(GARAGE, True), (OPERATION, False), (MAINTENANCE, False), (SUPER, True)],
)
def test_department_rule(who, expected):
    assert is_allowed(who, ADMIN_OR_GARAGE) is expected


def test_super_admin_bypasses_department_lists():
    rule = AccessRule.of(departments=[Department.MAINTENANCE])
    assert is_allowed(SUPER, rule) is True


def test_roles_and_departments_must_both_hold():
    # Operators in GARAGE may read rental companies, never write them.
    assert is_allowed(GARAGE, RENTAL_READERS) is True
    assert is_allowed(GARAGE, RENTAL_WRITERS) is False
    assert is_allowed(MAINTENANCE, RENTAL_READERS) is False
    assert is_allowed(SUPER, RENTAL_WRITERS) is True


def test_rules_are_immutable_values():
    assert AccessRule.of(roles=[Role.SUPER_ADMIN]) == SUPER_ADMIN_ONLY
    with pytest.raises(FrozenInstanceError):
        SUPER_ADMIN_ONLY.roles = frozenset()
