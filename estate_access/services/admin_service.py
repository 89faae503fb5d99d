"""Admin mutation service — audited changes to menu visibility, roles and grants.

Menu-visibility toggles are restricted to actors holding the menu-management
permission. Each toggle and its audit entry commit together. Bulk toggles run
one transaction per change so a bad row never blocks the others.
"""

import logging
from datetime import datetime
from typing import Any, Dict, List, Mapping, Optional, Sequence

from sqlalchemy.orm import Session

from estate_access.core.config import settings
from estate_access.core.exceptions import (
    AuthorizationError, ResourceNotFoundError, StoreError, UnknownReferenceError, ValidationError,
)
from estate_access.core.security import Identity
from estate_access.db.base import as_naive_utc
from estate_access.db.session import atomic
from estate_access.models.menu import MenuItem, RoleMenuVisibility
from estate_access.models.role import Role
from estate_access.services.audit_service import RequestOrigin, audit_service
from estate_access.services.cache_service import cache_service
from estate_access.services.menu_service import menu_service
from estate_access.services.role_service import role_service
from estate_access.services.visibility_service import visibility_service

logger = logging.getLogger("estate_access.admin")


class AdminService:

    # ---- Menu visibility ----

    @staticmethod
    def _require_menu_manager(db: Session, actor_user_id: int) -> None:
        if not visibility_service.has_permission(db, actor_user_id, settings.MENU_MANAGE_PERMISSION):
            logger.warning("User %s denied menu visibility change", actor_user_id)
            raise AuthorizationError(f"missing permission {settings.MENU_MANAGE_PERMISSION}")

    @staticmethod
    def _reference_id(value: Any, field: str) -> int:
        if isinstance(value, bool) or not isinstance(value, int):
            raise ValidationError(f"{field} must be an integer id", field=field)
        return value

    @staticmethod
    def _apply_visibility(
        db: Session,
        actor_user_id: int,
        role_id: Any,
        menu_item_id: Any,
        visible: Any,
        origin: Optional[RequestOrigin],
    ) -> Dict[str, Any]:
        role_id = AdminService._reference_id(role_id, "role_id")
        menu_item_id = AdminService._reference_id(menu_item_id, "menu_item_id")
        if not isinstance(visible, bool):
            raise ValidationError("is_visible must be a boolean", field="is_visible")
        if not db.query(Role.id).filter(Role.id == role_id).first():
            raise UnknownReferenceError(f"Role {role_id} not found", field="role_id")
        if not db.query(MenuItem.id).filter(MenuItem.id == menu_item_id).first():
            raise UnknownReferenceError(f"Menu item {menu_item_id} not found", field="menu_item_id")

        with atomic(db):
            row = (
                db.query(RoleMenuVisibility)
                .filter(
                    RoleMenuVisibility.role_id == role_id,
                    RoleMenuVisibility.menu_item_id == menu_item_id,
                )
                .first()
            )
            previous = row.is_visible if row else None
            if row:
                row.is_visible = visible
                row.updated_by = actor_user_id
            else:
                db.add(RoleMenuVisibility(
                    role_id=role_id,
                    menu_item_id=menu_item_id,
                    is_visible=visible,
                    updated_by=actor_user_id,
                ))
            audit_id = audit_service.record_visibility_change(
                db, actor_user_id, role_id, menu_item_id, previous, visible, origin,
            )

        logger.info(
            "User %s set menu item %s visibility for role %s: %s -> %s",
            actor_user_id, menu_item_id, role_id, previous, visible,
        )
        return {
            "role_id": role_id,
            "menu_item_id": menu_item_id,
            "previous_value": previous,
            "is_visible": visible,
            "audit_id": audit_id,
        }

    @staticmethod
    def set_menu_visibility(
        db: Session,
        actor_user_id: int,
        role_id: int,
        menu_item_id: int,
        visible: bool,
        origin: Optional[RequestOrigin] = None,
    ) -> Dict[str, Any]:
        """Upsert one visibility row and append its audit entry atomically.

        Raises:
            AuthorizationError: The actor lacks the menu-management permission.
            UnknownReferenceError: The role or menu item does not exist.
        """
        AdminService._require_menu_manager(db, actor_user_id)
        result = AdminService._apply_visibility(db, actor_user_id, role_id, menu_item_id, visible, origin)
        cache_service.invalidate_access()
        return result

    @staticmethod
    def bulk_set_menu_visibility(
        db: Session,
        actor_user_id: int,
        changes: Sequence[Any],
        origin: Optional[RequestOrigin] = None,
    ) -> Dict[str, Any]:
        """Apply each change independently and report per-change failures.

        Only an actor-level denial aborts the whole call; failures of single
        changes are returned as ``{index, role_id, menu_item_id, reason, message}``.
        """
        AdminService._require_menu_manager(db, actor_user_id)

        applied = 0
        failed: List[Dict[str, Any]] = []
        for index, change in enumerate(changes):
            if not isinstance(change, Mapping):
                failed.append({
                    "index": index,
                    "role_id": None,
                    "menu_item_id": None,
                    "reason": ValidationError.kind,
                    "message": "Each change must be an object",
                })
                continue
            role_id = change.get("role_id")
            menu_item_id = change.get("menu_item_id")
            try:
                AdminService._apply_visibility(
                    db, actor_user_id, role_id, menu_item_id, change.get("is_visible"), origin,
                )
                applied += 1
            except (ResourceNotFoundError, ValidationError, StoreError) as exc:
                failed.append({
                    "index": index,
                    "role_id": role_id,
                    "menu_item_id": menu_item_id,
                    "reason": exc.kind,
                    "message": exc.message,
                })

        if applied:
            cache_service.invalidate_access()
        logger.info(
            "User %s bulk visibility update: %s applied, %s failed",
            actor_user_id, applied, len(failed),
        )
        return {"applied": applied, "failed": failed}

    @staticmethod
    def get_audit_log(
        db: Session,
        role_id: Optional[int] = None,
        menu_item_id: Optional[int] = None,
        date_from: Optional[datetime] = None,
        date_to: Optional[datetime] = None,
        page: int = 1,
        page_size: int = 50,
    ) -> Dict[str, Any]:
        """Menu-visibility audit entries, newest first.

        Aware bounds are converted to UTC; naive bounds are read as UTC.
        """
        date_from = as_naive_utc(date_from)
        date_to = as_naive_utc(date_to)
        if date_from and date_to and date_from > date_to:
            raise ValidationError("date_from must not be after date_to", field="date_from")
        page_size = max(1, min(page_size, settings.AUDIT_PAGE_SIZE_MAX))
        return audit_service.query_visibility_changes(
            db, role_id, menu_item_id, date_from, date_to, max(page, 1), page_size,
        )

    @staticmethod
    def visibility_matrix(db: Session) -> Dict[str, Any]:
        """Every active menu item with each active role's explicit row (or None)."""
        items = menu_service.list_menu_items(db)
        roles = role_service.list_roles(db)
        rows = visibility_service.visibility_rows(db, [r.id for r in roles])
        return {
            "menu_items": [
                {
                    "item": item,
                    "role_visibility": {role.name: rows.get((role.id, item.id)) for role in roles},
                }
                for item in items
            ],
            "roles": roles,
        }

    # ---- Roles, grants and assignments (general audit log) ----
    #
    # Each wrapper runs the store change and its audit entry in one unit of
    # work; cached access is dropped only after that commit.

    @staticmethod
    def _audit(
        db: Session,
        actor: Identity,
        action: str,
        resource_type: str,
        resource_id: Any,
        old_value: Any = None,
        new_value: Any = None,
        origin: Optional[RequestOrigin] = None,
    ) -> None:
        audit_service.log(
            db, actor.user_id, actor.email, action, resource_type,
            resource_id, old_value, new_value, origin,
        )

    @staticmethod
    def assign_user_roles(
        db: Session, actor: Identity, user_id: int, role_ids: Sequence[int],
        origin: Optional[RequestOrigin] = None,
    ) -> List[Role]:
        before = [r.name for r in role_service.get_user_roles(db, user_id)]
        with atomic(db):
            roles = role_service.assign_roles_to_user(db, user_id, role_ids)
            AdminService._audit(
                db, actor, "user.roles_assigned", "user", user_id,
                before, [r.name for r in roles], origin,
            )
        cache_service.invalidate_access()
        return roles

    @staticmethod
    def set_role_permissions(
        db: Session, actor: Identity, role_id: int, permission_ids: Sequence[int],
        origin: Optional[RequestOrigin] = None,
    ) -> list:
        role_service.get_role(db, role_id)
        before = [p.name for p in role_service.get_role_permissions(db, role_id)]
        with atomic(db):
            permissions = role_service.set_role_permissions(db, role_id, permission_ids)
            AdminService._audit(
                db, actor, "role.permissions_set", "role", role_id,
                before, [p.name for p in permissions], origin,
            )
        cache_service.invalidate_access()
        return permissions

    @staticmethod
    def grant_permission(
        db: Session, actor: Identity, role_id: int, permission_id: int,
        origin: Optional[RequestOrigin] = None,
    ) -> bool:
        """Grant one permission; a grant that already exists is not audited again."""
        with atomic(db):
            changed = role_service.grant_permission(db, role_id, permission_id)
            if changed:
                AdminService._audit(
                    db, actor, "role.permission_granted", "role", role_id,
                    None, {"permission_id": permission_id}, origin,
                )
        if changed:
            cache_service.invalidate_access()
        return changed

    @staticmethod
    def revoke_permission(
        db: Session, actor: Identity, role_id: int, permission_id: int,
        origin: Optional[RequestOrigin] = None,
    ) -> bool:
        with atomic(db):
            changed = role_service.revoke_permission(db, role_id, permission_id)
            if changed:
                AdminService._audit(
                    db, actor, "role.permission_revoked", "role", role_id,
                    {"permission_id": permission_id}, None, origin,
                )
        if changed:
            cache_service.invalidate_access()
        return changed

    @staticmethod
    def create_role(
        db: Session, actor: Identity, name: str, description: Optional[str] = None,
        origin: Optional[RequestOrigin] = None,
    ) -> Role:
        with atomic(db):
            role = role_service.create_role(db, name, description)
            AdminService._audit(db, actor, "role.created", "role", role.id, None, {"name": name}, origin)
        return role

    @staticmethod
    def update_role(
        db: Session, actor: Identity, role_id: int, name: Optional[str] = None,
        description: Optional[str] = None, origin: Optional[RequestOrigin] = None,
    ) -> Role:
        before = role_service.get_role(db, role_id)
        old = {"name": before.name, "description": before.description}
        with atomic(db):
            role = role_service.update_role(db, role_id, name, description)
            AdminService._audit(
                db, actor, "role.updated", "role", role_id,
                old, {"name": role.name, "description": role.description}, origin,
            )
        cache_service.invalidate_access()
        return role

    @staticmethod
    def deactivate_role(
        db: Session, actor: Identity, role_id: int, origin: Optional[RequestOrigin] = None,
    ) -> Role:
        with atomic(db):
            role = role_service.deactivate_role(db, role_id)
            AdminService._audit(
                db, actor, "role.disabled", "role", role_id,
                {"is_active": True}, {"is_active": False}, origin,
            )
        cache_service.invalidate_access()
        return role

    @staticmethod
    def create_permission(
        db: Session, actor: Identity, name: str, description: Optional[str] = None,
        category: Optional[str] = None, origin: Optional[RequestOrigin] = None,
    ):
        with atomic(db):
            permission = role_service.create_permission(db, name, description, category)
            AdminService._audit(
                db, actor, "permission.created", "permission", permission.id,
                None, {"name": name, "category": permission.category}, origin,
            )
        return permission

    @staticmethod
    def create_menu_item(
        db: Session, actor: Identity, fields: Dict[str, Any], origin: Optional[RequestOrigin] = None,
    ) -> MenuItem:
        with atomic(db):
            item = menu_service.create_menu_item(db, **fields)
            AdminService._audit(db, actor, "menu_item.created", "menu_item", item.id, None, fields, origin)
        cache_service.invalidate_access()
        return item

    @staticmethod
    def update_menu_item(
        db: Session, actor: Identity, menu_item_id: int, fields: Dict[str, Any],
        origin: Optional[RequestOrigin] = None,
    ) -> MenuItem:
        item = menu_service.get_menu_item(db, menu_item_id)
        old = {name: getattr(item, name) for name in fields}
        with atomic(db):
            item = menu_service.update_menu_item(db, menu_item_id, **fields)
            AdminService._audit(db, actor, "menu_item.updated", "menu_item", item.id, old, fields, origin)
        cache_service.invalidate_access()
        return item

    @staticmethod
    def deactivate_menu_item(
        db: Session, actor: Identity, menu_item_id: int, origin: Optional[RequestOrigin] = None,
    ) -> MenuItem:
        with atomic(db):
            item = menu_service.deactivate_menu_item(db, menu_item_id)
            AdminService._audit(
                db, actor, "menu_item.disabled", "menu_item", item.id,
                {"is_active": True}, {"is_active": False}, origin,
            )
        cache_service.invalidate_access()
        return item


admin_service = AdminService()
