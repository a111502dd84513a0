"""
Tests for permission parsing and aggregation across roles
"""
import pytest

from fieldservice.core.errors import ValidationError
from fieldservice.services.permission_service import (
    PERMISSION_ACTIONS,
    FullAccess,
    ModulePermissions,
    aggregate_permissions,
    can_access_module,
    has_permission,
    parse_module_permission,
    validate_permission_map,
)


def test_parse_true_is_full_access():
    assert parse_module_permission(True) == FullAccess()


def test_parse_manage_flag_is_full_access():
    assert parse_module_permission({"manage": True}) == FullAccess()


def test_parse_keeps_only_true_flags():
    parsed = parse_module_permission({"view": True, "edit": False, "bogus": True, "create": "yes"})
    assert parsed == ModulePermissions(granted=frozenset({"view"}))


@pytest.mark.parametrize("value", [False, None, "true", 1, ["view"]])
def test_parse_non_mapping_values_contribute_nothing(value):
    assert parse_module_permission(value) is None


def test_explicit_can_access_false_contributes_nothing():
    assert parse_module_permission({"can_access": False, "view": True, "edit": True}) is None
    effective = aggregate_permissions([{"invoices": {"can_access": False, "view": True}}])
    assert "invoices" not in effective


def test_union_of_two_roles():
    viewer = {"work-orders": {"view": True}}
    editor = {"work-orders": {"edit": True}, "customers": {"view": True}}

    effective = aggregate_permissions([viewer, editor])

    assert has_permission(effective, "work-orders", "view")
    assert has_permission(effective, "work-orders", "edit")
    assert not has_permission(effective, "work-orders", "delete")
    assert has_permission(effective, "customers", "view")


def test_any_granted_flag_implies_can_access():
    effective = aggregate_permissions([{"quotes": {"send": True}}])
    assert effective["quotes"]["can_access"] is True
    assert can_access_module(effective, "quotes")


def test_full_access_sets_every_flag():
    effective = aggregate_permissions([{"invoices": True}])
    assert all(effective["invoices"][action] for action in PERMISSION_ACTIONS)


def test_a_later_role_cannot_revoke_an_earlier_grant():
    granting = {"invoices": True}
    restricting = {"invoices": {"can_access": True, "delete": False}}

    assert has_permission(aggregate_permissions([granting, restricting]), "invoices", "delete")
    assert has_permission(aggregate_permissions([restricting, granting]), "invoices", "delete")


def test_aggregation_is_order_independent():
    roles = [
        {"work-orders": {"view": True}, "equipment": True},
        {"work-orders": {"manage_status": True}},
        {"customers": {"can_access": False, "view": True}, "work-orders": "garbage"},
    ]
    assert aggregate_permissions(roles) == aggregate_permissions(list(reversed(roles)))


def test_roles_without_a_permission_map_are_skipped():
    class Broken:
        permissions = None

    assert aggregate_permissions([Broken(), "not-a-role"]) == {}


def test_module_absent_means_no_access():
    effective = aggregate_permissions([{"work-orders": True}])
    assert not has_permission(effective, "payroll", "view")
    assert not can_access_module(effective, "payroll")


def test_manage_short_circuits_every_action():
    effective = {"reports": {"manage": True}}
    assert has_permission(effective, "reports", "export")


def test_missing_can_access_denies_every_action():
    effective = {"reports": {"can_access": False, "export": True}}
    assert not has_permission(effective, "reports", "export")


def test_validate_permission_map_accepts_bool_and_flags():
    cleaned = validate_permission_map({"work-orders": True, "customers": {"view": True, "edit": False}})
    assert cleaned == {"work-orders": True, "customers": {"view": True, "edit": False}}


@pytest.mark.parametrize(
    "raw",
    [
        ["work-orders"],
        {"work-orders": {"fly": True}},
        {"work-orders": {"view": "yes"}},
        {"work-orders": 3},
        {"": True},
    ],
)
def test_validate_permission_map_rejects_bad_shapes(raw):
    with pytest.raises(ValidationError):
        validate_permission_map(raw)
