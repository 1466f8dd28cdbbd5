"""
Capability matrix tests.

The role -> capability table is the single source for both the HTTP
decorators and the service-level checks.
"""

import pytest

from laundrypos.constants import StaffRole
from laundrypos.permissions import (
    DEFAULT_ROLE_CAPABILITIES,
    PermissionDeniedError,
    StaffContext,
    allowed_operations,
    check_actor,
    get_all_capability_codes,
    get_capability_definition,
    require_capability,
)


def test_every_role_has_an_entry():
    assert set(DEFAULT_ROLE_CAPABILITIES) == {r.value for r in StaffRole}


def test_admin_holds_every_capability():
    assert allowed_operations("admin") == frozenset(get_all_capability_codes())


@pytest.mark.parametrize(
    "role,capability",
    [
        ("manager", "MANAGE_SETTINGS"),
        ("manager", "MANAGE_COUNTERS"),
        ("manager", "DELETE_INVOICE"),
        ("cashier", "ADJUST_STOCK"),
        ("cashier", "MANAGE_PRODUCTS"),
        ("salesman", "UPDATE_INVOICE"),
        ("salesman", "CLEAR_CACHE"),
    ],
)
def test_denied(role, capability):
    with pytest.raises(PermissionDeniedError) as exc:
        require_capability(role, capability)
    assert exc.value.capability == capability


@pytest.mark.parametrize(
    "role,capability",
    [
        ("manager", "ADJUST_STOCK"),
        ("manager", "MANAGE_PRODUCTS"),
        ("cashier", "UPDATE_INVOICE"),
        ("cashier", "CLEAR_CACHE"),
        ("salesman", "CREATE_INVOICE"),
        (StaffRole.SALESMAN, "VIEW_PRODUCTS"),
    ],
)
def test_allowed(role, capability):
    require_capability(role, capability)


def test_unknown_role_gets_nothing():
    assert allowed_operations("owner") == frozenset()
    assert allowed_operations(None) == frozenset()


def test_check_actor():
    check_actor(None, "MANAGE_SETTINGS")
    check_actor(StaffContext(name="Owner", role="admin"), "MANAGE_SETTINGS")
    with pytest.raises(PermissionDeniedError):
        check_actor(StaffContext(name="Sami", role="salesman"), "MANAGE_SETTINGS")


def test_capability_definitions():
    definition = get_capability_definition("ADJUST_STOCK")
    assert definition["code"] == "ADJUST_STOCK"
    assert definition["category"]
    assert get_capability_definition("LAUNCH_ROCKETS") is None
    assert len(get_all_capability_codes()) == len(set(get_all_capability_codes()))
