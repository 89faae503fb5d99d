"""Menu API router — the caller's own navigable menu."""

from typing import List

from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from estate_access.core.security import Identity, get_current_identity
from estate_access.db.session import get_db
from estate_access.schemas.schemas import MenuItemOut
from estate_access.services.visibility_service import visibility_service

router = APIRouter(prefix="/menu-items", tags=["menu"])


@router.get("", response_model=List[MenuItemOut])
async def my_menu_items(
    db: Session = Depends(get_db),
    identity: Identity = Depends(get_current_identity),
):
    """Menu items visible to the caller, parents before children."""
    return visibility_service.cached_accessible_menu(db, identity.user_id)


@router.get("/public", response_model=List[MenuItemOut])
async def public_menu_items(db: Session = Depends(get_db)):
    """Menu items visible to anonymous visitors (guest baseline)."""
    return visibility_service.cached_accessible_menu(db, None)
