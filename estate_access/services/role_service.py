"""Role/Permission store — roles, permissions, grants and user-role assignment."""

import logging
from typing import List, Optional, Sequence

from sqlalchemy.orm import Session

from estate_access.core.exceptions import (
    ResourceConflictError, ResourceNotFoundError, UnknownReferenceError, ValidationError,
)
from estate_access.db.session import atomic
from estate_access.models.role import Permission, Role, RolePermission, UserRole
from estate_access.models.user import User
from estate_access.services.cache_service import cache_service

logger = logging.getLogger("estate_access.roles")


class RoleService:
    """Reads and atomic replacements over roles, permissions and their links."""

    @staticmethod
    def list_roles(db: Session, include_inactive: bool = False) -> List[Role]:
        query = db.query(Role)
        if not include_inactive:
            query = query.filter(Role.is_active.is_(True))
        return query.order_by(Role.id).all()

    @staticmethod
    def list_permissions(db: Session, include_inactive: bool = False) -> List[Permission]:
        query = db.query(Permission)
        if not include_inactive:
            query = query.filter(Permission.is_active.is_(True))
        return query.order_by(Permission.category, Permission.name).all()

    @staticmethod
    def get_role(db: Session, role_id: int) -> Role:
        """Get a role by id.

        Raises:
            ResourceNotFoundError: If the role does not exist.
        """
        role = db.query(Role).filter(Role.id == role_id).first()
        if not role:
            raise ResourceNotFoundError(f"Role {role_id} not found")
        return role

    @staticmethod
    def get_role_by_name(db: Session, name: str) -> Optional[Role]:
        return db.query(Role).filter(Role.name == name).first()

    @staticmethod
    def get_role_permissions(db: Session, role_id: int) -> List[Permission]:
        """Active permissions granted to a role.

        Raises:
            ResourceNotFoundError: If the role does not exist.
        """
        RoleService.get_role(db, role_id)
        return (
            db.query(Permission)
            .join(RolePermission, RolePermission.permission_id == Permission.id)
            .filter(RolePermission.role_id == role_id, Permission.is_active.is_(True))
            .order_by(Permission.name)
            .all()
        )

    @staticmethod
    def get_user_roles(db: Session, user_id: int) -> List[Role]:
        """Active roles held by a user. Empty when the user holds none."""
        return (
            db.query(Role)
            .join(UserRole, UserRole.role_id == Role.id)
            .filter(UserRole.user_id == user_id, Role.is_active.is_(True))
            .order_by(Role.id)
            .all()
        )

    @staticmethod
    def assign_roles_to_user(db: Session, user_id: int, role_ids: Sequence[int]) -> List[Role]:
        """Replace the user's full role set in one transaction.

        Writes no audit entry; audited callers go through the admin service.

        Raises:
            UnknownReferenceError: If the user or any role id does not exist.
        """
        wanted = list(dict.fromkeys(role_ids))
        if not db.query(User.id).filter(User.id == user_id).first():
            raise UnknownReferenceError(f"User {user_id} not found", field="user_id")
        roles = db.query(Role).filter(Role.id.in_(wanted)).all() if wanted else []
        missing = set(wanted) - {r.id for r in roles}
        if missing:
            raise UnknownReferenceError(
                f"Unknown role ids: {sorted(missing)}", field="role_ids"
            )

        with atomic(db):
            db.query(UserRole).filter(UserRole.user_id == user_id).delete(
                synchronize_session=False
            )
            for role_id in wanted:
                db.add(UserRole(user_id=user_id, role_id=role_id))

        db.expire_all()
        cache_service.invalidate_access()
        logger.info("User %s roles set to %s", user_id, wanted)
        return RoleService.get_user_roles(db, user_id)

    @staticmethod
    def set_role_permissions(db: Session, role_id: int, permission_ids: Sequence[int]) -> List[Permission]:
        """Replace a role's permission set in one transaction.

        Raises:
            UnknownReferenceError: If the role or any permission id does not exist.
        """
        wanted = list(dict.fromkeys(permission_ids))
        if not db.query(Role.id).filter(Role.id == role_id).first():
            raise UnknownReferenceError(f"Role {role_id} not found", field="role_id")
        found = (
            {p.id for p in db.query(Permission).filter(Permission.id.in_(wanted)).all()}
            if wanted else set()
        )
        missing = set(wanted) - found
        if missing:
            raise UnknownReferenceError(
                f"Unknown permission ids: {sorted(missing)}", field="permission_ids"
            )

        with atomic(db):
            db.query(RolePermission).filter(RolePermission.role_id == role_id).delete(
                synchronize_session=False
            )
            for permission_id in wanted:
                db.add(RolePermission(role_id=role_id, permission_id=permission_id))

        db.expire_all()
        cache_service.invalidate_access()
        logger.info("Role %s permissions set to %s", role_id, wanted)
        return RoleService.get_role_permissions(db, role_id)

    @staticmethod
    def _grant_row(db: Session, role_id: int, permission_id: int) -> Optional[RolePermission]:
        RoleService.get_role(db, role_id)
        if not db.query(Permission.id).filter(Permission.id == permission_id).first():
            raise ResourceNotFoundError(f"Permission {permission_id} not found")
        return (
            db.query(RolePermission)
            .filter(RolePermission.role_id == role_id, RolePermission.permission_id == permission_id)
            .first()
        )

    @staticmethod
    def grant_permission(db: Session, role_id: int, permission_id: int) -> bool:
        """Add one permission to a role. Returns False if it was already granted.

        Raises:
            ResourceNotFoundError: If the role or permission does not exist.
        """
        if RoleService._grant_row(db, role_id, permission_id):
            return False
        with atomic(db):
            db.add(RolePermission(role_id=role_id, permission_id=permission_id))
        db.expire_all()
        cache_service.invalidate_access()
        logger.info("Role %s granted permission %s", role_id, permission_id)
        return True

    @staticmethod
    def revoke_permission(db: Session, role_id: int, permission_id: int) -> bool:
        """Remove one permission from a role. Returns False if it was not granted.

        Raises:
            ResourceNotFoundError: If the role or permission does not exist.
        """
        row = RoleService._grant_row(db, role_id, permission_id)
        if row is None:
            return False
        with atomic(db):
            db.delete(row)
        db.expire_all()
        cache_service.invalidate_access()
        logger.info("Role %s lost permission %s", role_id, permission_id)
        return True

    @staticmethod
    def create_role(db: Session, name: str, description: Optional[str] = None, is_system: bool = False) -> Role:
        if RoleService.get_role_by_name(db, name):
            raise ResourceConflictError(f"Role '{name}' already exists")
        role = Role(name=name, description=description, is_system=is_system)
        with atomic(db):
            db.add(role)
        db.refresh(role)
        return role

    @staticmethod
    def update_role(db: Session, role_id: int, name: Optional[str] = None, description: Optional[str] = None) -> Role:
        role = RoleService.get_role(db, role_id)
        rename = bool(name) and name != role.name
        if rename:
            if role.is_system:
                raise ValidationError("System roles cannot be renamed", field="name")
            if RoleService.get_role_by_name(db, name):
                raise ResourceConflictError(f"Role '{name}' already exists")
        with atomic(db):
            if rename:
                role.name = name
            if description is not None:
                role.description = description
        cache_service.invalidate_access()
        db.refresh(role)
        return role

    @staticmethod
    def deactivate_role(db: Session, role_id: int) -> Role:
        """Soft-disable a role; its grants and visibility rows stop applying."""
        role = RoleService.get_role(db, role_id)
        if role.is_system:
            raise ValidationError("System roles cannot be disabled", field="role_id")
        with atomic(db):
            role.is_active = False
        cache_service.invalidate_access()
        logger.info("Role %s (%s) disabled", role.id, role.name)
        db.refresh(role)
        return role

    @staticmethod
    def get_permission_by_name(db: Session, name: str) -> Optional[Permission]:
        return db.query(Permission).filter(Permission.name == name).first()

    @staticmethod
    def create_permission(
        db: Session, name: str, description: Optional[str] = None, category: Optional[str] = None,
    ) -> Permission:
        if RoleService.get_permission_by_name(db, name):
            raise ResourceConflictError(f"Permission '{name}' already exists")
        permission = Permission(
            name=name,
            description=description,
            category=category or name.split(".", 1)[0],
        )
        with atomic(db):
            db.add(permission)
        db.refresh(permission)
        return permission


role_service = RoleService()
