"""MenuItem and RoleMenuVisibility models."""

from sqlalchemy import (
    Column, Integer, String, Boolean, DateTime, ForeignKey, UniqueConstraint, func,
)
from sqlalchemy.orm import relationship
from estate_access.db.base import Base


def _active_key_default(context):
    return context.get_current_parameters()["key"]


class MenuItem(Base):
    """Navigable UI entry with bilingual labels and an optional permission gate.

    ``key`` is unique among active items only. ``active_key`` mirrors it while
    the item is active and is NULL once disabled, so its unique constraint
    enforces that rule in the database.
    """
    __tablename__ = "menu_items"

    id = Column(Integer, primary_key=True, autoincrement=True)
    key = Column(String(100), nullable=False, index=True)
    active_key = Column(String(100), unique=True, nullable=True, default=_active_key_default)
    label_en = Column(String(255), nullable=False)
    label_ar = Column(String(255), nullable=False)
    path = Column(String(255), nullable=False)
    icon = Column(String(50), nullable=True)
    parent_id = Column(Integer, ForeignKey("menu_items.id"), nullable=True, index=True)
    required_permission = Column(String(100), nullable=True)
    is_public = Column(Boolean, default=False, nullable=False)
    display_order = Column(Integer, default=0, nullable=False)
    is_active = Column(Boolean, default=True, nullable=False)
    created_at = Column(DateTime, server_default=func.now(), nullable=False)
    updated_at = Column(DateTime, server_default=func.now(), onupdate=func.now(), nullable=False)

    parent = relationship("MenuItem", remote_side=[id])


class RoleMenuVisibility(Base):
    """Explicit per-(role, menu item) visibility switch; upserted on toggle."""
    __tablename__ = "role_menu_visibility"
    __table_args__ = (
        UniqueConstraint("role_id", "menu_item_id", name="uq_role_menu_item"),
    )

    id = Column(Integer, primary_key=True, autoincrement=True)
    role_id = Column(Integer, ForeignKey("roles.id", ondelete="CASCADE"), nullable=False, index=True)
    menu_item_id = Column(
        Integer, ForeignKey("menu_items.id", ondelete="CASCADE"), nullable=False, index=True
    )
    is_visible = Column(Boolean, nullable=False)
    updated_by = Column(Integer, ForeignKey("users.id"), nullable=True)
    updated_at = Column(DateTime, server_default=func.now(), onupdate=func.now(), nullable=False)
