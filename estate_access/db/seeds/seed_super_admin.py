"""Seed the super-admin user from env vars."""

from sqlalchemy.orm import Session
from estate_access.models.user import User
from estate_access.models.role import Role, UserRole
from estate_access.core.security import hash_password
from estate_access.core.config import settings


def seed_super_admin(db: Session) -> None:
    """Create the super-admin user if not already present."""
    super_admin_role = db.query(Role).filter(Role.name == settings.MENU_ADMIN_ROLE).first()
    if not super_admin_role:
        print(f"⚠️  {settings.MENU_ADMIN_ROLE} role not found. Run seed_roles first.")
        return

    existing = db.query(User).filter(User.email == settings.SUPER_ADMIN_EMAIL).first()
    if existing:
        print(f"ℹ️  Super admin '{settings.SUPER_ADMIN_EMAIL}' already exists, skipping.")
        return

    admin = User(
        email=settings.SUPER_ADMIN_EMAIL,
        hashed_password=hash_password(settings.SUPER_ADMIN_PASSWORD),
        full_name="Super Admin",
        is_active=True,
    )
    db.add(admin)
    db.flush()
    db.add(UserRole(user_id=admin.id, role_id=super_admin_role.id))
    db.commit()
    print(f"✅ Created super admin: {settings.SUPER_ADMIN_EMAIL}")
