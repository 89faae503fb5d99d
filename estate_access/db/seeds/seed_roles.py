"""Seed default permissions, roles and role grants into the database."""

from sqlalchemy.orm import Session
from estate_access.models.role import Permission, Role, RolePermission

DEFAULT_PERMISSIONS = [
    # (name, description, category)
    ("users.view", "View user list and details", "users"),
    ("users.create", "Create new users", "users"),
    ("users.edit", "Edit existing users", "users"),
    ("users.delete", "Delete users", "users"),
    ("users.change_roles", "Assign roles to users", "users"),
    ("kyc.view", "View KYC submissions", "kyc"),
    ("kyc.approve", "Approve or reject KYC documents", "kyc"),
    ("kyc.manage_settings", "Configure KYC requirements", "kyc"),
    ("properties.view", "View property listings", "properties"),
    ("properties.manage", "Create, edit and delete property listings", "properties"),
    ("properties.documents", "Upload and manage property documents", "properties"),
    ("investments.view", "View investments", "investments"),
    ("investments.manage", "Create and edit investment records", "investments"),
    ("distributions.process", "Process income distributions", "investments"),
    ("analytics.view", "View platform analytics and reports", "analytics"),
    ("data.export", "Export platform data", "analytics"),
    ("settings.manage", "Modify platform settings", "settings"),
    ("fees.manage", "Configure platform fees", "settings"),
    ("audit.view", "View audit logs", "settings"),
    ("roles.view", "View roles and permissions", "roles"),
    ("roles.manage", "Create, edit and disable roles and grants", "roles"),
    ("menus.manage", "Change menu visibility per role", "menus"),
]

DEFAULT_ROLES = [
    {
        "name": "super_admin",
        "description": "Full system access with all permissions",
        "permissions": [p[0] for p in DEFAULT_PERMISSIONS],
    },
    {
        "name": "admin",
        "description": "Standard administrator with most permissions",
        "permissions": [
            "users.view", "users.create", "users.edit", "users.delete",
            "kyc.view", "kyc.approve",
            "properties.view", "properties.manage", "properties.documents",
            "investments.view", "distributions.process",
            "analytics.view", "audit.view",
        ],
    },
    {
        "name": "investor",
        "description": "Verified investor browsing and holding fractional shares",
        "permissions": ["properties.view", "investments.view"],
    },
    {
        "name": "guest",
        "description": "Anonymous or unassigned visitor",
        "permissions": ["properties.view"],
    },
    {
        "name": "kyc_reviewer",
        "description": "Can review and approve KYC submissions",
        "permissions": ["users.view", "kyc.view", "kyc.approve"],
    },
    {
        "name": "property_manager",
        "description": "Can manage property listings",
        "permissions": [
            "properties.view", "properties.manage", "properties.documents", "analytics.view",
        ],
    },
    {
        "name": "analyst",
        "description": "Can view analytics and export data",
        "permissions": [
            "users.view", "properties.view", "investments.view", "analytics.view", "data.export",
        ],
    },
]


def seed_roles(db: Session) -> None:
    """Insert default permissions, roles and grants if they don't already exist."""
    by_name = {}
    for name, description, category in DEFAULT_PERMISSIONS:
        permission = db.query(Permission).filter(Permission.name == name).first()
        if not permission:
            permission = Permission(name=name, description=description, category=category)
            db.add(permission)
        by_name[name] = permission
    db.flush()

    for role_data in DEFAULT_ROLES:
        role = db.query(Role).filter(Role.name == role_data["name"]).first()
        if not role:
            role = Role(name=role_data["name"], description=role_data["description"], is_system=True)
            db.add(role)
            db.flush()
        granted = {
            link.permission_id
            for link in db.query(RolePermission).filter(RolePermission.role_id == role.id).all()
        }
        for permission_name in role_data["permissions"]:
            permission = by_name[permission_name]
            if permission.id not in granted:
                db.add(RolePermission(role_id=role.id, permission_id=permission.id))

    db.commit()
    print(f"✅ Seeded {len(DEFAULT_PERMISSIONS)} permissions and {len(DEFAULT_ROLES)} roles")
