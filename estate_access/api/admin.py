"""Admin menu API router — visibility matrix, toggles, menu items and their audit."""

from datetime import datetime
from typing import Optional

from fastapi import APIRouter, Depends, Query, Request
from sqlalchemy.orm import Session

from estate_access.core.security import Identity, require_menu_admin
from estate_access.db.session import get_db
from estate_access.schemas.schemas import (
    BulkVisibilityRequest, BulkVisibilityResult, MenuItemCreate, MenuItemOut, MenuItemUpdate,
    MenuMatrixItem, MenuMatrixOut, MenuVisibilityAuditOut, MenuVisibilityAuditPage,
    MessageResponse, RoleOut, VisibilityUpdate,
)
from estate_access.services.admin_service import admin_service
from estate_access.services.audit_service import RequestOrigin

router = APIRouter(prefix="/admin", tags=["admin"])


@router.get("/menu-items", response_model=MenuMatrixOut)
async def list_menu_matrix(
    db: Session = Depends(get_db),
    identity: Identity = Depends(require_menu_admin),
):
    """All menu items with the role visibility matrix (explicit rows only)."""
    matrix = admin_service.visibility_matrix(db)
    return MenuMatrixOut(
        menu_items=[
            MenuMatrixItem(
                **MenuItemOut.model_validate(entry["item"]).model_dump(),
                role_visibility=entry["role_visibility"],
            )
            for entry in matrix["menu_items"]
        ],
        roles=[RoleOut.model_validate(r) for r in matrix["roles"]],
    )


@router.post("/menu-items", response_model=MenuItemOut)
async def create_menu_item(
    body: MenuItemCreate,
    request: Request,
    db: Session = Depends(get_db),
    identity: Identity = Depends(require_menu_admin),
):
    """Create a menu item."""
    return admin_service.create_menu_item(
        db, identity, body.model_dump(), RequestOrigin.from_request(request),
    )


# Declared before the /{menu_item_id} routes so the literal path wins.
@router.put("/menu-items/bulk-visibility", response_model=BulkVisibilityResult)
async def bulk_update_visibility(
    body: BulkVisibilityRequest,
    request: Request,
    db: Session = Depends(get_db),
    identity: Identity = Depends(require_menu_admin),
):
    """Apply many visibility toggles; each succeeds or fails on its own."""
    return admin_service.bulk_set_menu_visibility(
        db,
        identity.user_id,
        body.changes,
        RequestOrigin.from_request(request),
    )


@router.put("/menu-items/{menu_item_id}", response_model=MenuItemOut)
async def update_menu_item(
    menu_item_id: int,
    body: MenuItemUpdate,
    request: Request,
    db: Session = Depends(get_db),
    identity: Identity = Depends(require_menu_admin),
):
    """Partially update a menu item."""
    return admin_service.update_menu_item(
        db, identity, menu_item_id, body.model_dump(exclude_unset=True),
        RequestOrigin.from_request(request),
    )


@router.delete("/menu-items/{menu_item_id}", response_model=MessageResponse)
async def deactivate_menu_item(
    menu_item_id: int,
    request: Request,
    db: Session = Depends(get_db),
    identity: Identity = Depends(require_menu_admin),
):
    """Soft-disable a menu item."""
    item = admin_service.deactivate_menu_item(
        db, identity, menu_item_id, RequestOrigin.from_request(request),
    )
    return MessageResponse(message=f"Menu item '{item.key}' disabled")


@router.put("/menu-items/{menu_item_id}/roles/{role_id}/visibility")
async def update_visibility(
    menu_item_id: int,
    role_id: int,
    body: VisibilityUpdate,
    request: Request,
    db: Session = Depends(get_db),
    identity: Identity = Depends(require_menu_admin),
):
    """Set one role's visibility of one menu item."""
    return admin_service.set_menu_visibility(
        db, identity.user_id, role_id, menu_item_id, body.is_visible,
        RequestOrigin.from_request(request),
    )


@router.get("/menu-visibility-audit", response_model=MenuVisibilityAuditPage)
async def get_visibility_audit(
    role_id: Optional[int] = Query(None),
    menu_item_id: Optional[int] = Query(None),
    date_from: Optional[datetime] = Query(None),
    date_to: Optional[datetime] = Query(None),
    page: int = Query(1, ge=1),
    page_size: int = Query(50, ge=1, le=200),
    db: Session = Depends(get_db),
    identity: Identity = Depends(require_menu_admin),
):
    """Menu visibility audit trail, newest first."""
    result = admin_service.get_audit_log(
        db, role_id, menu_item_id, date_from, date_to, page, page_size,
    )
    return MenuVisibilityAuditPage(
        entries=[MenuVisibilityAuditOut.model_validate(e) for e in result["entries"]],
        total=result["total"],
        page=result["page"],
        page_size=result["page_size"],
    )
