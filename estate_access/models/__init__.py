"""Models package — import all models so metadata.create_all can discover them."""

from estate_access.models.role import Role, Permission, RolePermission, UserRole
from estate_access.models.user import User
from estate_access.models.menu import MenuItem, RoleMenuVisibility
from estate_access.models.audit_log import MenuVisibilityAudit, AuditLog

__all__ = [
    "Role", "Permission", "RolePermission", "UserRole", "User",
    "MenuItem", "RoleMenuVisibility",
    "MenuVisibilityAudit", "AuditLog",
]
