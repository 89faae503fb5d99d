"""Audit log models — append-only."""

from sqlalchemy import Column, Integer, String, Text, Boolean, DateTime, ForeignKey
from estate_access.db.base import Base, utcnow


class MenuVisibilityAudit(Base):
    """One row per menu-visibility toggle.

    APPEND-ONLY: never updated or deleted by the application. References are
    not cascaded so entries outlive soft-disabled roles and menu items.
    """
    __tablename__ = "menu_visibility_audit"

    id = Column(Integer, primary_key=True, autoincrement=True)
    actor_user_id = Column(Integer, ForeignKey("users.id"), nullable=False, index=True)
    role_id = Column(Integer, ForeignKey("roles.id"), nullable=False, index=True)
    menu_item_id = Column(Integer, ForeignKey("menu_items.id"), nullable=False, index=True)
    previous_value = Column(Boolean, nullable=True)  # NULL when no row existed
    new_value = Column(Boolean, nullable=False)
    changed_at = Column(DateTime, default=utcnow, nullable=False, index=True)
    source_ip = Column(String(45), nullable=True)
    user_agent = Column(String(500), nullable=True)


class AuditLog(Base):
    """General audit trail for role, permission and role-assignment mutations.

    This table is APPEND-ONLY: no UPDATE or DELETE operations should ever
    be performed on it (enforced at application level).
    """
    __tablename__ = "audit_logs"

    id = Column(Integer, primary_key=True, autoincrement=True)
    actor_id = Column(Integer, ForeignKey("users.id"), nullable=True)
    actor_email = Column(String(255), nullable=True)
    action = Column(String(100), nullable=False, index=True)  # e.g. "role.permissions_set"
    resource_type = Column(String(50), nullable=False, index=True)  # role, permission, user, menu_item
    resource_id = Column(String(100), nullable=True)
    old_value_json = Column(Text, nullable=True)
    new_value_json = Column(Text, nullable=True)
    ip_address = Column(String(45), nullable=True)
    user_agent = Column(String(500), nullable=True)
    created_at = Column(DateTime, default=utcnow, nullable=False, index=True)
