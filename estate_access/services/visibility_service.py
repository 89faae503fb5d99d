"""Visibility resolver — effective permissions and the menu an identity can see.

Every function here is read-only and a pure function of the current store
state. The permission gate is hard: a visibility row can hide an item but can
never reveal an item whose required permission is missing. Non-public items
with no visibility row are hidden.
"""

from typing import Dict, Iterable, List, Optional, Set, Tuple

from sqlalchemy.orm import Session

from estate_access.core.config import settings
from estate_access.models.menu import MenuItem, RoleMenuVisibility
from estate_access.models.role import Permission, Role, RolePermission, UserRole
from estate_access.schemas.schemas import MenuItemOut
from estate_access.services.cache_service import cache_service, menu_key, permissions_key
from estate_access.services.menu_service import menu_service

# (role_id, menu_item_id) -> is_visible
VisibilityRows = Dict[Tuple[int, int], bool]


class VisibilityService:

    @staticmethod
    def effective_permissions(db: Session, user_id: Optional[int]) -> Set[str]:
        """Union of active permissions over the user's active roles.

        Empty for anonymous users and users holding no role.
        """
        if user_id is None:
            return set()
        rows = (
            db.query(Permission.name)
            .join(RolePermission, RolePermission.permission_id == Permission.id)
            .join(Role, Role.id == RolePermission.role_id)
            .join(UserRole, UserRole.role_id == Role.id)
            .filter(
                UserRole.user_id == user_id,
                Role.is_active.is_(True),
                Permission.is_active.is_(True),
            )
            .distinct()
            .all()
        )
        return {name for (name,) in rows}

    @staticmethod
    def effective_roles(db: Session, user_id: Optional[int]) -> List[Role]:
        """Roles menus are resolved against.

        The user's active roles, or the guest role when the user is anonymous
        or holds none.
        """
        roles: List[Role] = []
        if user_id is not None:
            roles = (
                db.query(Role)
                .join(UserRole, UserRole.role_id == Role.id)
                .filter(UserRole.user_id == user_id, Role.is_active.is_(True))
                .order_by(Role.id)
                .all()
            )
        if not roles:
            guest = (
                db.query(Role)
                .filter(Role.name == settings.GUEST_ROLE, Role.is_active.is_(True))
                .first()
            )
            if guest:
                roles = [guest]
        return roles

    @staticmethod
    def visibility_rows(db: Session, role_ids: Iterable[int]) -> VisibilityRows:
        role_ids = list(role_ids)
        if not role_ids:
            return {}
        rows = (
            db.query(RoleMenuVisibility)
            .filter(RoleMenuVisibility.role_id.in_(role_ids))
            .all()
        )
        return {(r.role_id, r.menu_item_id): r.is_visible for r in rows}

    @staticmethod
    def is_menu_item_visible(
        menu_item: MenuItem,
        effective_roles: Iterable[Role],
        effective_permissions: Set[str],
        rows: VisibilityRows,
    ) -> bool:
        """Decide visibility of one item for a set of roles.

        Visible when the required permission (if any) is held and, under at
        least one role, either an explicit row says visible or no row exists
        and the item is public with no required permission.
        """
        required = menu_item.required_permission
        if required and required not in effective_permissions:
            return False
        for role in effective_roles:
            row = rows.get((role.id, menu_item.id))
            if row is True:
                return True
            if row is None and not required and menu_item.is_public:
                return True
        return False

    @staticmethod
    def accessible_menu_items(db: Session, user_id: Optional[int]) -> List[MenuItem]:
        """Visible items forming a sub-tree of the menu: no child without its parent."""
        roles = VisibilityService.effective_roles(db, user_id)
        permissions = VisibilityService.effective_permissions(db, user_id)
        rows = VisibilityService.visibility_rows(db, [r.id for r in roles])

        included = set()
        result: List[MenuItem] = []
        for item in menu_service.list_menu_items(db):
            if item.parent_id is not None and item.parent_id not in included:
                continue
            if VisibilityService.is_menu_item_visible(item, roles, permissions, rows):
                included.add(item.id)
                result.append(item)
        return result

    @staticmethod
    def has_permission(db: Session, user_id: Optional[int], permission_name: str) -> bool:
        return permission_name in VisibilityService.effective_permissions(db, user_id)

    @staticmethod
    def has_any_permission(db: Session, user_id: Optional[int], permission_names: Iterable[str]) -> bool:
        return bool(VisibilityService.effective_permissions(db, user_id) & set(permission_names))

    # ---- Cached read-through variants (HTTP layer) ----

    @staticmethod
    def cached_accessible_menu(db: Session, user_id: Optional[int]) -> List[dict]:
        return cache_service.get_or_set_json(
            menu_key(user_id),
            lambda: [
                MenuItemOut.model_validate(item).model_dump()
                for item in VisibilityService.accessible_menu_items(db, user_id)
            ],
        )

    @staticmethod
    def cached_effective_permissions(db: Session, user_id: int) -> Set[str]:
        names = cache_service.get_or_set_json(
            permissions_key(user_id),
            lambda: sorted(VisibilityService.effective_permissions(db, user_id)),
        )
        return set(names)


visibility_service = VisibilityService()
