"""Auth API router — login, me, own permissions, permission check."""

from fastapi import APIRouter, Depends, Request
from sqlalchemy.orm import Session

from estate_access.core.config import settings
from estate_access.core.rate_limiter import limiter
from estate_access.core.security import Identity, get_current_identity
from estate_access.db.session import get_db
from estate_access.schemas.schemas import (
    LoginRequest, TokenResponse, MeOut, PermissionCheckOut, UserPermissionsOut,
)
from estate_access.services.auth_service import auth_service
from estate_access.services.visibility_service import visibility_service

router = APIRouter(prefix="/auth", tags=["auth"])


@router.post("/login", response_model=TokenResponse)
@limiter.limit(settings.LOGIN_RATE_LIMIT)
async def login(request: Request, body: LoginRequest, db: Session = Depends(get_db)):
    """Authenticate and return a JWT access token."""
    return auth_service.authenticate(db, body.email, body.password)


@router.get("/me", response_model=MeOut)
async def get_me(
    db: Session = Depends(get_db),
    identity: Identity = Depends(get_current_identity),
):
    """Get current user profile."""
    user = auth_service.get_user(db, identity.user_id)
    return MeOut(
        id=user.id,
        email=user.email,
        full_name=user.full_name,
        roles=identity.roles,
        is_active=user.is_active,
    )


@router.get("/permissions", response_model=UserPermissionsOut)
async def get_my_permissions(
    db: Session = Depends(get_db),
    identity: Identity = Depends(get_current_identity),
):
    """Roles held by the caller and the union of their permissions."""
    permissions = visibility_service.cached_effective_permissions(db, identity.user_id)
    return UserPermissionsOut(roles=identity.roles, permissions=sorted(permissions))


@router.get("/check-permission/{permission}", response_model=PermissionCheckOut)
async def check_permission(
    permission: str,
    db: Session = Depends(get_db),
    identity: Identity = Depends(get_current_identity),
):
    """Check whether the caller holds a specific permission."""
    permissions = visibility_service.cached_effective_permissions(db, identity.user_id)
    return PermissionCheckOut(permission=permission, has_permission=permission in permissions)
