# tests/test_role_service.py

"""
Tests for the role/permission store.
"""

import pytest

from estate_access.core.exceptions import (
    ResourceConflictError, ResourceNotFoundError, UnknownReferenceError, ValidationError,
)
from estate_access.models.role import Permission, RolePermission
from estate_access.services.role_service import role_service
from estate_access.services.visibility_service import visibility_service


def test_list_roles_and_permissions(seeded):
    names = {r.name for r in role_service.list_roles(seeded)}
    assert {"super_admin", "admin", "investor", "guest"} <= names
    permissions = {p.name for p in role_service.list_permissions(seeded)}
    assert "properties.manage" in permissions
    assert "menus.manage" in permissions


def test_get_role_permissions_unknown_role(seeded):
    with pytest.raises(ResourceNotFoundError):
        role_service.get_role_permissions(seeded, 9999)


def test_get_role_permissions(seeded, role_named):
    investor = role_named("investor")
    names = [p.name for p in role_service.get_role_permissions(seeded, investor.id)]
    assert names == ["investments.view", "properties.view"]


def test_user_without_roles_has_no_roles(seeded, make_user):
    user = make_user()
    assert role_service.get_user_roles(seeded, user.id) == []


def test_assign_roles_replaces_full_set(seeded, make_user, role_named):
    user = make_user("investor")
    analyst = role_named("analyst")
    kyc = role_named("kyc_reviewer")

    roles = role_service.assign_roles_to_user(seeded, user.id, [analyst.id, kyc.id])

    assert {r.name for r in roles} == {"analyst", "kyc_reviewer"}
    assert "investor" not in {r.name for r in role_service.get_user_roles(seeded, user.id)}


def test_assign_empty_role_set_clears_permissions(seeded, make_user):
    user = make_user("admin", "investor")
    assert visibility_service.effective_permissions(seeded, user.id)

    role_service.assign_roles_to_user(seeded, user.id, [])

    assert role_service.get_user_roles(seeded, user.id) == []
    assert visibility_service.effective_permissions(seeded, user.id) == set()


def test_assign_unknown_role_is_rejected_without_partial_change(seeded, make_user, role_named):
    user = make_user("investor")
    analyst = role_named("analyst")

    with pytest.raises(UnknownReferenceError) as exc_info:
        role_service.assign_roles_to_user(seeded, user.id, [analyst.id, 4242])

    assert isinstance(exc_info.value, ValidationError)
    assert exc_info.value.field == "role_ids"
    assert [r.name for r in role_service.get_user_roles(seeded, user.id)] == ["investor"]


def test_set_role_permissions_replaces_grants(seeded, role_named):
    guest = role_named("guest")
    analytics = seeded.query(Permission).filter(Permission.name == "analytics.view").one()

    permissions = role_service.set_role_permissions(seeded, guest.id, [analytics.id])

    assert [p.name for p in permissions] == ["analytics.view"]
    assert seeded.query(RolePermission).filter(RolePermission.role_id == guest.id).count() == 1


def test_set_role_permissions_unknown_permission(seeded, role_named):
    guest = role_named("guest")
    with pytest.raises(UnknownReferenceError):
        role_service.set_role_permissions(seeded, guest.id, [99999])
    assert [p.name for p in role_service.get_role_permissions(seeded, guest.id)] == ["properties.view"]


def test_deleting_role_cascades_grants(seeded):
    role = role_service.create_role(seeded, "temp_role")
    permission = role_service.get_permission_by_name(seeded, "kyc.view")
    role_service.set_role_permissions(seeded, role.id, [permission.id])

    seeded.delete(role)
    seeded.commit()

    assert seeded.query(RolePermission).filter(RolePermission.role_id == role.id).count() == 0


def test_disabled_role_grants_nothing(seeded, make_user):
    role = role_service.create_role(seeded, "auditor")
    permission = role_service.get_permission_by_name(seeded, "audit.view")
    role_service.set_role_permissions(seeded, role.id, [permission.id])
    user = make_user("auditor")
    assert visibility_service.has_permission(seeded, user.id, "audit.view")

    role_service.deactivate_role(seeded, role.id)

    assert not visibility_service.has_permission(seeded, user.id, "audit.view")
    assert role_service.get_user_roles(seeded, user.id) == []


def test_system_role_cannot_be_disabled(seeded, role_named):
    with pytest.raises(ValidationError):
        role_service.deactivate_role(seeded, role_named("super_admin").id)


def test_create_role_conflict(seeded):
    with pytest.raises(ResourceConflictError):
        role_service.create_role(seeded, "admin")


def test_create_permission_defaults_category(seeded):
    permission = role_service.create_permission(seeded, "reports.schedule")
    assert permission.category == "reports"
    with pytest.raises(ResourceConflictError):
        role_service.create_permission(seeded, "reports.schedule")


def test_grant_permission_is_idempotent(seeded, make_user, role_named):
    user = make_user("guest")
    guest = role_named("guest")
    export = role_service.get_permission_by_name(seeded, "data.export")

    assert role_service.grant_permission(seeded, guest.id, export.id) is True
    assert role_service.grant_permission(seeded, guest.id, export.id) is False

    links = seeded.query(RolePermission).filter(
        RolePermission.role_id == guest.id, RolePermission.permission_id == export.id,
    ).count()
    assert links == 1
    assert "data.export" in visibility_service.effective_permissions(seeded, user.id)


def test_revoke_permission(seeded, make_user, role_named):
    user = make_user("investor")
    investor = role_named("investor")
    view = role_service.get_permission_by_name(seeded, "investments.view")

    assert role_service.revoke_permission(seeded, investor.id, view.id) is True
    assert role_service.revoke_permission(seeded, investor.id, view.id) is False
    assert visibility_service.effective_permissions(seeded, user.id) == {"properties.view"}


def test_grant_unknown_references(seeded, role_named):
    with pytest.raises(ResourceNotFoundError):
        role_service.grant_permission(seeded, 9999, 1)
    with pytest.raises(ResourceNotFoundError):
        role_service.revoke_permission(seeded, role_named("guest").id, 9999)
