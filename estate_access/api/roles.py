"""Role administration API router — roles, permissions, grants, user roles."""

from typing import List, Optional

from fastapi import APIRouter, Depends, Query, Request
from sqlalchemy.orm import Session

from estate_access.core.security import (
    Identity, require_audit_viewer, require_role_assigner, require_roles_manager,
)
from estate_access.db.session import get_db
from estate_access.schemas.schemas import (
    AuditLogOut, MessageResponse, PermissionCreate, PermissionOut, RoleCreate, RoleOut,
    RolePermissionsSet, RoleUpdate, UserRolesSet,
)
from estate_access.services.admin_service import admin_service
from estate_access.services.audit_service import RequestOrigin, audit_service
from estate_access.services.role_service import role_service

router = APIRouter(prefix="/admin", tags=["roles"])


@router.get("/roles", response_model=List[RoleOut])
async def list_roles(
    include_inactive: bool = Query(False),
    db: Session = Depends(get_db),
    identity: Identity = Depends(require_roles_manager),
):
    return role_service.list_roles(db, include_inactive)


@router.post("/roles", response_model=RoleOut)
async def create_role(
    body: RoleCreate,
    request: Request,
    db: Session = Depends(get_db),
    identity: Identity = Depends(require_roles_manager),
):
    return admin_service.create_role(
        db, identity, body.name, body.description, RequestOrigin.from_request(request),
    )


@router.put("/roles/{role_id}", response_model=RoleOut)
async def update_role(
    role_id: int,
    body: RoleUpdate,
    request: Request,
    db: Session = Depends(get_db),
    identity: Identity = Depends(require_roles_manager),
):
    return admin_service.update_role(
        db, identity, role_id, body.name, body.description, RequestOrigin.from_request(request),
    )


@router.delete("/roles/{role_id}", response_model=MessageResponse)
async def deactivate_role(
    role_id: int,
    request: Request,
    db: Session = Depends(get_db),
    identity: Identity = Depends(require_roles_manager),
):
    """Soft-disable a non-system role."""
    role = admin_service.deactivate_role(db, identity, role_id, RequestOrigin.from_request(request))
    return MessageResponse(message=f"Role '{role.name}' disabled")


@router.get("/roles/{role_id}/permissions", response_model=List[PermissionOut])
async def get_role_permissions(
    role_id: int,
    db: Session = Depends(get_db),
    identity: Identity = Depends(require_roles_manager),
):
    return role_service.get_role_permissions(db, role_id)


@router.put("/roles/{role_id}/permissions", response_model=List[PermissionOut])
async def set_role_permissions(
    role_id: int,
    body: RolePermissionsSet,
    request: Request,
    db: Session = Depends(get_db),
    identity: Identity = Depends(require_roles_manager),
):
    """Replace the role's permission set."""
    return admin_service.set_role_permissions(
        db, identity, role_id, body.permission_ids, RequestOrigin.from_request(request),
    )


@router.post("/roles/{role_id}/permissions/{permission_id}", response_model=MessageResponse)
async def grant_role_permission(
    role_id: int,
    permission_id: int,
    request: Request,
    db: Session = Depends(get_db),
    identity: Identity = Depends(require_roles_manager),
):
    """Grant a single permission to the role. Granting twice is a no-op."""
    changed = admin_service.grant_permission(
        db, identity, role_id, permission_id, RequestOrigin.from_request(request),
    )
    return MessageResponse(message="Permission granted" if changed else "Permission already granted")


@router.delete("/roles/{role_id}/permissions/{permission_id}", response_model=MessageResponse)
async def revoke_role_permission(
    role_id: int,
    permission_id: int,
    request: Request,
    db: Session = Depends(get_db),
    identity: Identity = Depends(require_roles_manager),
):
    changed = admin_service.revoke_permission(
        db, identity, role_id, permission_id, RequestOrigin.from_request(request),
    )
    return MessageResponse(message="Permission revoked" if changed else "Permission was not granted")


@router.get("/permissions", response_model=List[PermissionOut])
async def list_permissions(
    db: Session = Depends(get_db),
    identity: Identity = Depends(require_roles_manager),
):
    return role_service.list_permissions(db)


@router.post("/permissions", response_model=PermissionOut)
async def create_permission(
    body: PermissionCreate,
    request: Request,
    db: Session = Depends(get_db),
    identity: Identity = Depends(require_roles_manager),
):
    return admin_service.create_permission(
        db, identity, body.name, body.description, body.category,
        RequestOrigin.from_request(request),
    )


@router.get("/users/{user_id}/roles", response_model=List[RoleOut])
async def get_user_roles(
    user_id: int,
    db: Session = Depends(get_db),
    identity: Identity = Depends(require_role_assigner),
):
    return role_service.get_user_roles(db, user_id)


@router.put("/users/{user_id}/roles", response_model=List[RoleOut])
async def assign_user_roles(
    user_id: int,
    body: UserRolesSet,
    request: Request,
    db: Session = Depends(get_db),
    identity: Identity = Depends(require_role_assigner),
):
    """Replace the user's role set."""
    return admin_service.assign_user_roles(
        db, identity, user_id, body.role_ids, RequestOrigin.from_request(request),
    )


@router.get("/audit")
async def get_audit_logs(
    action: Optional[str] = Query(None),
    resource_type: Optional[str] = Query(None),
    actor_id: Optional[int] = Query(None),
    page: int = Query(1, ge=1),
    page_size: int = Query(50, ge=1, le=200),
    db: Session = Depends(get_db),
    identity: Identity = Depends(require_audit_viewer),
):
    """Query the general audit log for role and permission changes."""
    result = audit_service.query_logs(db, actor_id, action, resource_type, page, page_size)
    return {
        "logs": [AuditLogOut.model_validate(log) for log in result["logs"]],
        "total": result["total"],
        "page": result["page"],
    }
