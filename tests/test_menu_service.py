# tests/test_menu_service.py

"""
Tests for the menu registry: ordering, hierarchy checks and key uniqueness.
"""

import pytest
from sqlalchemy.exc import IntegrityError

from estate_access.core.exceptions import (
    ResourceConflictError, ResourceNotFoundError, UnknownReferenceError, ValidationError,
)
from estate_access.models.menu import MenuItem
from estate_access.services.menu_service import MenuService, menu_service, order_menu_tree


def _item(id, parent_id=None, display_order=0):
    return MenuItem(id=id, key=f"k{id}", label_en=f"Item {id}", path=f"/{id}",
                    parent_id=parent_id, display_order=display_order)


def test_order_menu_tree_parents_before_children():
    items = [
        _item(4, parent_id=2, display_order=1),
        _item(2, display_order=20),
        _item(1, display_order=10),
        _item(3, parent_id=2, display_order=0),
    ]
    assert [i.id for i in order_menu_tree(items)] == [1, 2, 3, 4]


def test_order_menu_tree_ties_broken_by_id():
    items = [_item(7, display_order=5), _item(5, display_order=5)]
    assert [i.id for i in order_menu_tree(items)] == [5, 7]


def test_order_menu_tree_missing_parent_treated_as_root():
    items = [_item(9, parent_id=100, display_order=1), _item(1, display_order=2)]
    assert [i.id for i in order_menu_tree(items)] == [9, 1]


def test_list_menu_items_seeded_order(seeded):
    keys = [i.key for i in menu_service.list_menu_items(seeded)]
    assert keys[:5] == ["home", "properties", "dashboard", "portfolio", "admin"]
    assert keys[5:] == ["admin.properties", "admin.kyc", "admin.users", "admin.menus", "admin.audit"]


def test_get_menu_item_not_found(seeded):
    with pytest.raises(ResourceNotFoundError):
        menu_service.get_menu_item(seeded, 12345)


def test_create_menu_item(seeded, item_keyed):
    admin = item_keyed("admin")
    item = menu_service.create_menu_item(
        seeded, key="admin.fees", label_en="Fees", label_ar="الرسوم", path="/admin/fees",
        parent_id=admin.id, required_permission="fees.manage", display_order=60,
    )
    assert item.id is not None
    assert item.is_active is True
    assert item.is_public is False
    assert menu_service.list_menu_items(seeded)[-1].key == "admin.fees"


def test_create_menu_item_duplicate_key(seeded):
    with pytest.raises(ResourceConflictError):
        menu_service.create_menu_item(seeded, key="home", label_en="Home again", path="/home")


def test_key_can_be_reused_after_disable(seeded, item_keyed):
    menu_service.deactivate_menu_item(seeded, item_keyed("dashboard").id)
    item = menu_service.create_menu_item(
        seeded, key="dashboard", label_en="New dashboard", label_ar="لوحة جديدة", path="/d",
    )
    assert item.key == "dashboard"


def test_create_menu_item_unknown_parent(seeded):
    with pytest.raises(UnknownReferenceError) as exc_info:
        menu_service.create_menu_item(seeded, key="x", label_en="X", path="/x", parent_id=999)
    assert exc_info.value.field == "parent_id"


def test_create_menu_item_unknown_permission(seeded):
    with pytest.raises(UnknownReferenceError) as exc_info:
        menu_service.create_menu_item(
            seeded, key="x", label_en="X", path="/x", required_permission="nope.nothing",
        )
    assert exc_info.value.field == "required_permission"


def test_update_rejects_cycle(seeded, item_keyed):
    admin = item_keyed("admin")
    child = item_keyed("admin.users")
    with pytest.raises(ValidationError):
        menu_service.update_menu_item(seeded, admin.id, parent_id=child.id)


def test_update_rejects_self_parent(seeded, item_keyed):
    home = item_keyed("home")
    with pytest.raises(ValidationError):
        menu_service.update_menu_item(seeded, home.id, parent_id=home.id)


def test_partial_update_keeps_other_fields(seeded, item_keyed):
    portfolio = item_keyed("portfolio")
    updated = menu_service.update_menu_item(seeded, portfolio.id, label_en="My Portfolio")
    assert updated.label_en == "My Portfolio"
    assert updated.required_permission == "investments.view"
    assert updated.path == "/portfolio"


def test_deactivate_hides_from_list(seeded, item_keyed):
    menu_service.deactivate_menu_item(seeded, item_keyed("portfolio").id)
    assert "portfolio" not in [i.key for i in menu_service.list_menu_items(seeded)]


@pytest.mark.parametrize("field", ["key", "label_en", "label_ar", "path", "is_public", "display_order"])
def test_update_rejects_null_required_field(seeded, item_keyed, field):
    with pytest.raises(ValidationError) as exc_info:
        menu_service.update_menu_item(seeded, item_keyed("portfolio").id, **{field: None})
    assert exc_info.value.field == field


def test_update_rejects_blank_label(seeded, item_keyed):
    with pytest.raises(ValidationError) as exc_info:
        menu_service.update_menu_item(seeded, item_keyed("portfolio").id, label_en="  ")
    assert exc_info.value.field == "label_en"


def test_active_key_follows_key_and_activity(seeded, item_keyed):
    item = menu_service.update_menu_item(seeded, item_keyed("portfolio").id, key="holdings")
    assert item.active_key == "holdings"

    item = menu_service.deactivate_menu_item(seeded, item.id)
    assert item.active_key is None
    assert item.key == "holdings"


def test_database_rejects_duplicate_active_key(seeded):
    seeded.add(MenuItem(key="home", label_en="Home", label_ar="الرئيسية", path="/home2"))
    with pytest.raises(IntegrityError):
        seeded.commit()
    seeded.rollback()


def test_lost_key_race_is_a_conflict(seeded, monkeypatch):
    # the pre-check sees no clash, as when another writer commits in between
    monkeypatch.setattr(MenuService, "_check_key", staticmethod(lambda *args, **kwargs: None))
    with pytest.raises(ResourceConflictError):
        menu_service.create_menu_item(
            seeded, key="home", label_en="Home", label_ar="الرئيسية", path="/home2",
        )
    assert seeded.query(MenuItem).filter(MenuItem.key == "home").count() == 1
