"""Pydantic schemas for API request/response serialization."""

from pydantic import BaseModel, Field
from typing import Optional, List, Dict, Any
from datetime import datetime


# ---- Auth ----
class LoginRequest(BaseModel):
    email: str = Field(..., min_length=4)
    password: str = Field(..., min_length=4)

class TokenResponse(BaseModel):
    access_token: str
    token_type: str = "bearer"
    user: Optional[Dict[str, Any]] = None

class MeOut(BaseModel):
    id: int
    email: str
    full_name: str
    roles: List[str] = []
    is_active: bool = True

class PermissionCheckOut(BaseModel):
    permission: str
    has_permission: bool

class UserPermissionsOut(BaseModel):
    roles: List[str]
    permissions: List[str]


# ---- Role / Permission ----
class PermissionOut(BaseModel):
    id: int
    name: str
    description: Optional[str] = None
    category: Optional[str] = None
    is_active: bool = True

    class Config:
        from_attributes = True

class PermissionCreate(BaseModel):
    name: str = Field(..., min_length=3, max_length=100, pattern=r"^[a-z0-9_]+\.[a-z0-9_]+$")
    description: Optional[str] = None
    category: Optional[str] = None

class RoleOut(BaseModel):
    id: int
    name: str
    description: Optional[str] = None
    is_system: bool = False
    is_active: bool = True

    class Config:
        from_attributes = True

class RoleCreate(BaseModel):
    name: str = Field(..., min_length=2, max_length=50, pattern=r"^[a-z0-9_]+$")
    description: Optional[str] = None

class RoleUpdate(BaseModel):
    name: Optional[str] = Field(None, min_length=2, max_length=50, pattern=r"^[a-z0-9_]+$")
    description: Optional[str] = None

class RolePermissionsSet(BaseModel):
    permission_ids: List[int]

class UserRolesSet(BaseModel):
    role_ids: List[int]


# ---- Menu ----
class MenuItemOut(BaseModel):
    id: int
    key: str
    label_en: str
    label_ar: str
    path: str
    icon: Optional[str] = None
    parent_id: Optional[int] = None
    required_permission: Optional[str] = None
    is_public: bool = False
    display_order: int = 0

    class Config:
        from_attributes = True

class MenuItemCreate(BaseModel):
    key: str = Field(..., min_length=1, max_length=100)
    label_en: str = Field(..., min_length=1)
    label_ar: str = Field(..., min_length=1)
    path: str = Field(..., min_length=1)
    icon: Optional[str] = None
    parent_id: Optional[int] = None
    required_permission: Optional[str] = None
    is_public: bool = False
    display_order: int = 0

class MenuItemUpdate(BaseModel):
    key: Optional[str] = Field(None, min_length=1, max_length=100)
    label_en: Optional[str] = Field(None, min_length=1)
    label_ar: Optional[str] = Field(None, min_length=1)
    path: Optional[str] = Field(None, min_length=1)
    icon: Optional[str] = None
    parent_id: Optional[int] = None
    required_permission: Optional[str] = None
    is_public: Optional[bool] = None
    display_order: Optional[int] = None

class MenuMatrixItem(MenuItemOut):
    role_visibility: Dict[str, Optional[bool]] = {}

class MenuMatrixOut(BaseModel):
    menu_items: List[MenuMatrixItem]
    roles: List[RoleOut]


# ---- Visibility ----
class VisibilityUpdate(BaseModel):
    is_visible: bool

class BulkVisibilityRequest(BaseModel):
    # entries are validated one by one so a bad entry fails alone
    changes: List[Any] = Field(..., min_length=1)

class ChangeError(BaseModel):
    index: int
    role_id: Optional[Any] = None
    menu_item_id: Optional[Any] = None
    reason: str
    message: str

class BulkVisibilityResult(BaseModel):
    applied: int
    failed: List[ChangeError]


# ---- Audit ----
class MenuVisibilityAuditOut(BaseModel):
    id: int
    actor_user_id: int
    role_id: int
    menu_item_id: int
    previous_value: Optional[bool] = None
    new_value: bool
    changed_at: datetime
    source_ip: Optional[str] = None
    user_agent: Optional[str] = None

    class Config:
        from_attributes = True

class MenuVisibilityAuditPage(BaseModel):
    entries: List[MenuVisibilityAuditOut]
    total: int
    page: int
    page_size: int

class AuditLogOut(BaseModel):
    id: int
    actor_id: Optional[int] = None
    actor_email: Optional[str] = None
    action: str
    resource_type: str
    resource_id: Optional[str] = None
    old_value_json: Optional[str] = None
    new_value_json: Optional[str] = None
    ip_address: Optional[str] = None
    created_at: Optional[datetime] = None

    class Config:
        from_attributes = True


# ---- Generic ----
class MessageResponse(BaseModel):
    message: str
