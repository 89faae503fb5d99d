"""Menu registry — bilingual menu items arranged in a parent/child hierarchy."""

import logging
from contextlib import contextmanager
from typing import Any, Dict, List, Optional

from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from estate_access.core.exceptions import (
    ResourceConflictError, ResourceNotFoundError, StoreError, UnknownReferenceError,
    ValidationError,
)
from estate_access.db.session import atomic
from estate_access.models.menu import MenuItem
from estate_access.models.role import Permission
from estate_access.services.cache_service import cache_service

logger = logging.getLogger("estate_access.menu")

MENU_FIELDS = (
    "key", "label_en", "label_ar", "path", "icon", "parent_id",
    "required_permission", "is_public", "display_order",
)

# Columns that may not be null or blank
REQUIRED_FIELDS = ("key", "label_en", "label_ar", "path", "is_public", "display_order")


def order_menu_tree(items: List[MenuItem]) -> List[MenuItem]:
    """Pre-order the items: siblings by display_order then id, parents before children.

    Items whose parent is not among ``items`` are treated as roots.
    """
    by_id = {item.id: item for item in items}
    children: Dict[Optional[int], List[MenuItem]] = {}
    for item in items:
        parent_id = item.parent_id if item.parent_id in by_id else None
        children.setdefault(parent_id, []).append(item)
    for siblings in children.values():
        siblings.sort(key=lambda i: (i.display_order, i.id))

    ordered: List[MenuItem] = []
    seen = set()

    def walk(parent_id: Optional[int]) -> None:
        for item in children.get(parent_id, []):
            if item.id in seen:
                continue
            seen.add(item.id)
            ordered.append(item)
            walk(item.id)

    walk(None)
    return ordered


class MenuService:
    """CRUD over menu items with hierarchy and key validation."""

    @staticmethod
    def list_menu_items(db: Session) -> List[MenuItem]:
        """Active menu items, parents before children."""
        items = db.query(MenuItem).filter(MenuItem.is_active.is_(True)).all()
        return order_menu_tree(items)

    @staticmethod
    def get_menu_item(db: Session, menu_item_id: int) -> MenuItem:
        """Get a menu item by id.

        Raises:
            ResourceNotFoundError: If no such item exists.
        """
        item = db.query(MenuItem).filter(MenuItem.id == menu_item_id).first()
        if not item:
            raise ResourceNotFoundError(f"Menu item {menu_item_id} not found")
        return item

    @staticmethod
    def _check_key(db: Session, key: str, exclude_id: Optional[int] = None) -> None:
        query = db.query(MenuItem).filter(MenuItem.key == key, MenuItem.is_active.is_(True))
        if exclude_id is not None:
            query = query.filter(MenuItem.id != exclude_id)
        if query.first():
            raise ResourceConflictError(f"Menu key '{key}' is already in use")

    @staticmethod
    @contextmanager
    def _keyed_write(db: Session, key: str):
        """Unit of work that reports a lost race on the active key as a conflict."""
        try:
            with atomic(db):
                yield
        except StoreError as exc:
            if isinstance(exc.__cause__, IntegrityError):
                raise ResourceConflictError(f"Menu key '{key}' is already in use") from exc
            raise

    @staticmethod
    def _check_parent(db: Session, parent_id: int, item_id: Optional[int] = None) -> None:
        """Reject a missing parent or one whose ancestor chain reaches ``item_id``."""
        seen = set()
        current = db.query(MenuItem).filter(MenuItem.id == parent_id).first()
        if current is None:
            raise UnknownReferenceError(f"Parent menu item {parent_id} not found", field="parent_id")
        while current is not None:
            if item_id is not None and current.id == item_id:
                raise ValidationError("Parent would create a cycle in the menu", field="parent_id")
            if current.id in seen:
                raise ValidationError("Menu hierarchy already contains a cycle", field="parent_id")
            seen.add(current.id)
            if current.parent_id is None:
                break
            current = db.query(MenuItem).filter(MenuItem.id == current.parent_id).first()

    @staticmethod
    def _check_required(fields: Dict[str, Any]) -> None:
        for name in REQUIRED_FIELDS:
            if name not in fields:
                continue
            value = fields[name]
            if value is None or (isinstance(value, str) and not value.strip()):
                raise ValidationError(f"{name} must not be empty", field=name)

    @staticmethod
    def _check_permission(db: Session, name: str) -> None:
        if not db.query(Permission.id).filter(Permission.name == name).first():
            raise UnknownReferenceError(
                f"Permission '{name}' not found", field="required_permission"
            )

    @staticmethod
    def create_menu_item(db: Session, **fields) -> MenuItem:
        MenuService._check_required(fields)
        MenuService._check_key(db, fields["key"])
        if fields.get("parent_id") is not None:
            MenuService._check_parent(db, fields["parent_id"])
        if fields.get("required_permission"):
            MenuService._check_permission(db, fields["required_permission"])

        item = MenuItem(**{k: v for k, v in fields.items() if k in MENU_FIELDS})
        with MenuService._keyed_write(db, item.key):
            db.add(item)
        cache_service.invalidate_access()
        logger.info("Menu item %s (%s) created", item.id, item.key)
        db.refresh(item)
        return item

    @staticmethod
    def update_menu_item(db: Session, menu_item_id: int, **fields) -> MenuItem:
        """Apply a partial update; only keys present in ``fields`` change."""
        item = MenuService.get_menu_item(db, menu_item_id)
        changes = {k: v for k, v in fields.items() if k in MENU_FIELDS}
        MenuService._check_required(changes)

        if "key" in changes and changes["key"] != item.key:
            MenuService._check_key(db, changes["key"], exclude_id=item.id)
        if changes.get("parent_id") is not None:
            MenuService._check_parent(db, changes["parent_id"], item_id=item.id)
        if changes.get("required_permission"):
            MenuService._check_permission(db, changes["required_permission"])

        with MenuService._keyed_write(db, changes.get("key", item.key)):
            for name, value in changes.items():
                setattr(item, name, value)
            if item.is_active and "key" in changes:
                item.active_key = changes["key"]
        cache_service.invalidate_access()
        db.refresh(item)
        return item

    @staticmethod
    def deactivate_menu_item(db: Session, menu_item_id: int) -> MenuItem:
        """Soft-disable an item. Its children drop out of resolved menus with it."""
        item = MenuService.get_menu_item(db, menu_item_id)
        with atomic(db):
            item.is_active = False
            item.active_key = None
        cache_service.invalidate_access()
        logger.info("Menu item %s (%s) disabled", item.id, item.key)
        db.refresh(item)
        return item


menu_service = MenuService()
