# tests/test_admin_service.py

"""
Tests for audited admin mutations: visibility toggles, bulk updates, audit queries.
"""

from datetime import timedelta

import pytest
from sqlalchemy.exc import OperationalError

from estate_access.core.exceptions import (
    AuthorizationError, StoreError, UnknownReferenceError, ValidationError,
)
from estate_access.core.security import Identity
from estate_access.db.base import utcnow
from estate_access.models.audit_log import AuditLog, MenuVisibilityAudit
from estate_access.models.menu import MenuItem, RoleMenuVisibility
from estate_access.services.admin_service import admin_service
from estate_access.services.audit_service import RequestOrigin, audit_service
from estate_access.services.role_service import role_service
from estate_access.services.visibility_service import visibility_service


def _identity(user):
    return Identity(user_id=user.id, email=user.email)


# ---- Single toggle ----


def test_toggle_creates_row_and_audit(seeded, super_admin, role_named, item_keyed):
    investor = role_named("investor")
    properties = item_keyed("properties")
    origin = RequestOrigin(ip_address="10.0.0.7", user_agent="pytest")

    result = admin_service.set_menu_visibility(
        seeded, super_admin.id, investor.id, properties.id, False, origin,
    )

    assert result["previous_value"] is None
    assert result["is_visible"] is False
    entry = seeded.query(MenuVisibilityAudit).filter(MenuVisibilityAudit.id == result["audit_id"]).one()
    assert entry.actor_user_id == super_admin.id
    assert entry.previous_value is None
    assert entry.new_value is False
    assert entry.source_ip == "10.0.0.7"
    assert entry.user_agent == "pytest"


def test_toggle_updates_existing_row(seeded, super_admin, role_named, item_keyed):
    investor = role_named("investor")
    portfolio = item_keyed("portfolio")

    result = admin_service.set_menu_visibility(seeded, super_admin.id, investor.id, portfolio.id, False)

    assert result["previous_value"] is True
    rows = seeded.query(RoleMenuVisibility).filter(
        RoleMenuVisibility.role_id == investor.id,
        RoleMenuVisibility.menu_item_id == portfolio.id,
    ).all()
    assert len(rows) == 1
    assert rows[0].is_visible is False
    assert rows[0].updated_by == super_admin.id


def test_toggle_takes_effect_on_next_resolution(seeded, super_admin, investor, role_named, item_keyed):
    keys = [i.key for i in visibility_service.accessible_menu_items(seeded, investor.id)]
    assert "dashboard" in keys

    admin_service.set_menu_visibility(
        seeded, super_admin.id, role_named("investor").id, item_keyed("dashboard").id, False,
    )

    keys = [i.key for i in visibility_service.accessible_menu_items(seeded, investor.id)]
    assert "dashboard" not in keys


def test_repeated_toggle_is_idempotent_but_audited_twice(seeded, super_admin, role_named, item_keyed):
    role_id = role_named("admin").id
    item_id = item_keyed("portfolio").id

    first = admin_service.set_menu_visibility(seeded, super_admin.id, role_id, item_id, True)
    second = admin_service.set_menu_visibility(seeded, super_admin.id, role_id, item_id, True)

    assert first["previous_value"] is None
    assert second["previous_value"] is True
    assert seeded.query(RoleMenuVisibility).filter(
        RoleMenuVisibility.role_id == role_id, RoleMenuVisibility.menu_item_id == item_id,
    ).count() == 1
    assert seeded.query(MenuVisibilityAudit).filter(
        MenuVisibilityAudit.role_id == role_id, MenuVisibilityAudit.menu_item_id == item_id,
    ).count() == 2


def test_toggle_requires_menu_permission(seeded, admin_user, role_named, item_keyed):
    with pytest.raises(AuthorizationError) as exc_info:
        admin_service.set_menu_visibility(
            seeded, admin_user.id, role_named("investor").id, item_keyed("home").id, False,
        )
    assert exc_info.value.message == "Insufficient permission"
    assert seeded.query(MenuVisibilityAudit).count() == 0


def test_toggle_unknown_references(seeded, super_admin, role_named, item_keyed):
    with pytest.raises(UnknownReferenceError) as exc_info:
        admin_service.set_menu_visibility(seeded, super_admin.id, 9999, item_keyed("home").id, True)
    assert exc_info.value.field == "role_id"

    with pytest.raises(UnknownReferenceError) as exc_info:
        admin_service.set_menu_visibility(seeded, super_admin.id, role_named("guest").id, 9999, True)
    assert exc_info.value.field == "menu_item_id"
    assert seeded.query(MenuVisibilityAudit).count() == 0


def test_toggle_rejects_non_boolean(seeded, super_admin, role_named, item_keyed):
    with pytest.raises(ValidationError):
        admin_service.set_menu_visibility(
            seeded, super_admin.id, role_named("guest").id, item_keyed("home").id, "yes",
        )


# ---- Bulk ----


def test_bulk_partial_success(seeded, super_admin, role_named, item_keyed):
    investor = role_named("investor").id
    changes = [
        {"role_id": investor, "menu_item_id": item_keyed("home").id, "is_visible": True},
        {"role_id": investor, "menu_item_id": item_keyed("properties").id, "is_visible": True},
        {"role_id": investor, "menu_item_id": 99999, "is_visible": True},
        {"role_id": investor, "menu_item_id": item_keyed("dashboard").id, "is_visible": False},
        {"role_id": investor, "menu_item_id": item_keyed("portfolio").id, "is_visible": False},
    ]

    result = admin_service.bulk_set_menu_visibility(seeded, super_admin.id, changes)

    assert result["applied"] == 4
    assert len(result["failed"]) == 1
    failure = result["failed"][0]
    assert failure["index"] == 2
    assert failure["reason"] == "NotFound"
    assert failure["menu_item_id"] == 99999
    assert seeded.query(MenuVisibilityAudit).count() == 4


def test_bulk_reports_invalid_value(seeded, super_admin, role_named, item_keyed):
    changes = [
        {"role_id": role_named("guest").id, "menu_item_id": item_keyed("home").id, "is_visible": "no"},
        {"role_id": role_named("guest").id, "menu_item_id": item_keyed("home").id, "is_visible": False},
    ]
    result = admin_service.bulk_set_menu_visibility(seeded, super_admin.id, changes)
    assert result["applied"] == 1
    assert result["failed"][0]["index"] == 0
    assert result["failed"][0]["reason"] == "ValidationError"


def test_bulk_denied_for_non_manager(seeded, investor, role_named, item_keyed):
    changes = [{"role_id": role_named("guest").id, "menu_item_id": item_keyed("home").id, "is_visible": False}]
    with pytest.raises(AuthorizationError):
        admin_service.bulk_set_menu_visibility(seeded, investor.id, changes)
    assert seeded.query(MenuVisibilityAudit).count() == 0


# ---- Audit log ----


def test_audit_log_newest_first_and_filtered(seeded, super_admin, role_named, item_keyed):
    guest = role_named("guest").id
    investor = role_named("investor").id
    home = item_keyed("home").id
    admin_service.set_menu_visibility(seeded, super_admin.id, guest, home, False)
    admin_service.set_menu_visibility(seeded, super_admin.id, investor, home, True)
    admin_service.set_menu_visibility(seeded, super_admin.id, guest, home, True)

    page = admin_service.get_audit_log(seeded)
    assert page["total"] == 3
    ids = [e.id for e in page["entries"]]
    assert ids == sorted(ids, reverse=True)

    by_role = admin_service.get_audit_log(seeded, role_id=guest)
    assert by_role["total"] == 2
    assert [e.new_value for e in by_role["entries"]] == [True, False]

    by_item = admin_service.get_audit_log(seeded, menu_item_id=item_keyed("portfolio").id)
    assert by_item["total"] == 0


def test_audit_log_date_range_and_paging(seeded, super_admin, role_named, item_keyed):
    guest = role_named("guest").id
    home = item_keyed("home").id
    for visible in (False, True, False):
        admin_service.set_menu_visibility(seeded, super_admin.id, guest, home, visible)

    now = utcnow()
    assert admin_service.get_audit_log(
        seeded, date_from=now - timedelta(hours=1), date_to=now + timedelta(hours=1),
    )["total"] == 3
    assert admin_service.get_audit_log(seeded, date_from=now + timedelta(hours=1))["total"] == 0

    page = admin_service.get_audit_log(seeded, page=2, page_size=2)
    assert page["total"] == 3
    assert len(page["entries"]) == 1


def test_audit_log_rejects_inverted_range(seeded):
    now = utcnow()
    with pytest.raises(ValidationError):
        admin_service.get_audit_log(seeded, date_from=now, date_to=now - timedelta(days=1))


# ---- Matrix and audited role/menu changes ----


def test_visibility_matrix(seeded, role_named):
    matrix = admin_service.visibility_matrix(seeded)
    by_key = {entry["item"].key: entry["role_visibility"] for entry in matrix["menu_items"]}
    assert by_key["portfolio"]["investor"] is True
    assert by_key["portfolio"]["admin"] is None
    assert by_key["home"]["guest"] is None
    assert "super_admin" in {r.name for r in matrix["roles"]}


def test_role_changes_write_general_audit(seeded, super_admin, make_user, role_named):
    actor = _identity(super_admin)
    user = make_user("investor")

    role = admin_service.create_role(seeded, actor, "support", "Customer support")
    admin_service.assign_user_roles(seeded, actor, user.id, [role.id, role_named("investor").id])

    actions = [a.action for a in seeded.query(AuditLog).order_by(AuditLog.id).all()]
    assert actions == ["role.created", "user.roles_assigned"]
    entry = seeded.query(AuditLog).filter(AuditLog.action == "user.roles_assigned").one()
    assert entry.actor_email == super_admin.email
    assert entry.resource_id == str(user.id)


def test_menu_item_changes_write_general_audit(seeded, super_admin):
    actor = _identity(super_admin)
    item = admin_service.create_menu_item(
        seeded, actor,
        {"key": "reports", "label_en": "Reports", "label_ar": "التقارير", "path": "/reports"},
    )
    admin_service.update_menu_item(seeded, actor, item.id, {"label_en": "All reports"})
    admin_service.deactivate_menu_item(seeded, actor, item.id)

    actions = [a.action for a in seeded.query(AuditLog).order_by(AuditLog.id).all()]
    assert actions == ["menu_item.created", "menu_item.updated", "menu_item.disabled"]


def _failing_audit(*args, **kwargs):
    raise OperationalError("INSERT INTO audit_logs", {}, Exception("disk I/O error"))


def test_failed_audit_rolls_back_role_assignment(seeded, super_admin, make_user, role_named, monkeypatch):
    user = make_user("investor")
    monkeypatch.setattr(audit_service, "log", _failing_audit)

    with pytest.raises(StoreError):
        admin_service.assign_user_roles(seeded, _identity(super_admin), user.id, [role_named("analyst").id])

    assert [r.name for r in role_service.get_user_roles(seeded, user.id)] == ["investor"]
    assert seeded.query(AuditLog).count() == 0


def test_failed_audit_rolls_back_menu_item_creation(seeded, super_admin, monkeypatch):
    monkeypatch.setattr(audit_service, "log", _failing_audit)

    with pytest.raises(StoreError):
        admin_service.create_menu_item(
            seeded, _identity(super_admin),
            {"key": "reports", "label_en": "Reports", "label_ar": "التقارير", "path": "/reports"},
        )

    assert seeded.query(MenuItem).filter(MenuItem.key == "reports").count() == 0


def test_single_grant_and_revoke_are_audited_once(seeded, super_admin, role_named):
    actor = _identity(super_admin)
    role_id = role_named("guest").id
    permission_id = role_service.get_permission_by_name(seeded, "investments.view").id

    assert admin_service.grant_permission(seeded, actor, role_id, permission_id) is True
    assert admin_service.grant_permission(seeded, actor, role_id, permission_id) is False
    assert admin_service.revoke_permission(seeded, actor, role_id, permission_id) is True
    assert admin_service.revoke_permission(seeded, actor, role_id, permission_id) is False

    actions = [a.action for a in seeded.query(AuditLog).order_by(AuditLog.id).all()]
    assert actions == ["role.permission_granted", "role.permission_revoked"]
