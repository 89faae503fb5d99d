"""Seed the default bilingual menu and its role visibility rows."""

from sqlalchemy.orm import Session
from estate_access.models.menu import MenuItem, RoleMenuVisibility
from estate_access.models.role import Role

# key, label_en, label_ar, path, icon, parent key, required permission, public, order
DEFAULT_MENU = [
    ("home", "Home", "الرئيسية", "/", "home", None, None, True, 10),
    ("properties", "Properties", "العقارات", "/properties", "building", None, None, True, 20),
    ("dashboard", "Dashboard", "لوحة التحكم", "/dashboard", "layout-dashboard", None, None, False, 30),
    ("portfolio", "Portfolio", "المحفظة", "/portfolio", "pie-chart", None, "investments.view", False, 40),
    ("admin", "Administration", "الإدارة", "/admin", "shield", None, "users.view", False, 90),
    ("admin.properties", "Manage Properties", "إدارة العقارات", "/admin/properties", "building-2",
     "admin", "properties.manage", False, 10),
    ("admin.kyc", "KYC Review", "مراجعة التحقق", "/admin/kyc", "id-card", "admin", "kyc.view", False, 20),
    ("admin.users", "Users", "المستخدمون", "/admin/users", "users", "admin", "users.view", False, 30),
    ("admin.menus", "Menu Management", "إدارة القوائم", "/admin/menus", "menu",
     "admin", "menus.manage", False, 40),
    ("admin.audit", "Audit Log", "سجل التدقيق", "/admin/audit", "scroll", "admin", "audit.view", False, 50),
]

# role -> menu keys explicitly shown
DEFAULT_VISIBILITY = {
    "super_admin": [
        "dashboard", "portfolio", "admin", "admin.properties", "admin.kyc",
        "admin.users", "admin.menus", "admin.audit",
    ],
    "admin": ["dashboard", "admin", "admin.properties", "admin.kyc", "admin.users", "admin.audit"],
    "investor": ["dashboard", "portfolio"],
}


def seed_menu(db: Session) -> None:
    """Insert default menu items and visibility rows if they don't already exist."""
    items = {}
    for key, label_en, label_ar, path, icon, parent_key, permission, public, order in DEFAULT_MENU:
        item = db.query(MenuItem).filter(MenuItem.key == key, MenuItem.is_active.is_(True)).first()
        if not item:
            item = MenuItem(
                key=key,
                label_en=label_en,
                label_ar=label_ar,
                path=path,
                icon=icon,
                parent_id=items[parent_key].id if parent_key else None,
                required_permission=permission,
                is_public=public,
                display_order=order,
            )
            db.add(item)
            db.flush()
        items[key] = item

    for role_name, keys in DEFAULT_VISIBILITY.items():
        role = db.query(Role).filter(Role.name == role_name).first()
        if not role:
            print(f"⚠️  Role '{role_name}' not found. Run seed_roles first.")
            continue
        for key in keys:
            existing = db.query(RoleMenuVisibility).filter(
                RoleMenuVisibility.role_id == role.id,
                RoleMenuVisibility.menu_item_id == items[key].id,
            ).first()
            if not existing:
                db.add(RoleMenuVisibility(role_id=role.id, menu_item_id=items[key].id, is_visible=True))

    db.commit()
    print(f"✅ Seeded {len(DEFAULT_MENU)} menu items")
