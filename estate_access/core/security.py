"""JWT authentication and RBAC authorization helpers.

Per request: Unauthenticated -> (token verified) -> Authenticated ->
(role/permission check) -> Authorized | Rejected. Rejections raise and are
never retried.
"""

import logging
from dataclasses import dataclass, field
from datetime import datetime, timedelta, timezone
from typing import Iterable, List, Optional

import bcrypt
from fastapi import Depends
from fastapi.security import HTTPBearer, HTTPAuthorizationCredentials
from jose import JWTError, jwt
from sqlalchemy.orm import Session

from estate_access.core.config import settings
from estate_access.core.exceptions import AuthenticationError, AuthorizationError
from estate_access.db.session import get_db
from estate_access.models.user import User
from estate_access.services.role_service import role_service
from estate_access.services.visibility_service import visibility_service

logger = logging.getLogger("estate_access.security")

# JWT bearer scheme
security_scheme = HTTPBearer(auto_error=False)


@dataclass
class Identity:
    """An authenticated caller and its active role names."""
    user_id: int
    email: str
    roles: List[str] = field(default_factory=list)
    claims: dict = field(default_factory=dict)


def hash_password(password: str) -> str:
    """Hash a password using bcrypt."""
    pwd_bytes = password.encode("utf-8")
    salt = bcrypt.gensalt()
    hashed = bcrypt.hashpw(pwd_bytes, salt)
    return hashed.decode("utf-8")


def verify_password(plain_password: str, hashed_password: str) -> bool:
    """Verify a password against its hash."""
    pwd_bytes = plain_password.encode("utf-8")
    hashed_bytes = hashed_password.encode("utf-8")
    return bcrypt.checkpw(pwd_bytes, hashed_bytes)


def create_access_token(data: dict, expires_delta: Optional[timedelta] = None) -> str:
    """Create a JWT access token."""
    to_encode = data.copy()
    expire = datetime.now(timezone.utc) + (
        expires_delta or timedelta(minutes=settings.JWT_EXPIRY_MINUTES)
    )
    to_encode.update({"exp": expire, "type": "access"})
    return jwt.encode(to_encode, settings.JWT_SECRET, algorithm=settings.JWT_ALGORITHM)


def decode_token(token: str) -> dict:
    """Decode and validate a JWT token (signature and expiry)."""
    try:
        return jwt.decode(token, settings.JWT_SECRET, algorithms=[settings.JWT_ALGORITHM])
    except JWTError:
        raise AuthenticationError("Invalid or expired token")


def require_auth(db: Session, token: Optional[str]) -> Identity:
    """Verify a bearer token and load the caller's identity.

    Raises:
        AuthenticationError: Token missing, expired, invalid, or the user is
            unknown or deactivated.
    """
    if not token:
        raise AuthenticationError("Not authenticated")
    payload = decode_token(token)
    if payload.get("type") != "access" or payload.get("sub") is None:
        raise AuthenticationError("Invalid token payload")
    try:
        user_id = int(payload["sub"])
    except (TypeError, ValueError):
        raise AuthenticationError("Invalid token payload")

    user = db.query(User).filter(User.id == user_id).first()
    if not user or not user.is_active:
        raise AuthenticationError("User not found or deactivated")

    roles = [r.name for r in role_service.get_user_roles(db, user.id)]
    return Identity(user_id=user.id, email=user.email, roles=roles, claims=payload)


def require_role(identity: Identity, allowed_roles: Iterable[str]) -> Identity:
    allowed = set(allowed_roles)
    if not allowed.intersection(identity.roles):
        logger.warning(
            "User %s denied: roles %s not in %s", identity.user_id, identity.roles, sorted(allowed)
        )
        raise AuthorizationError(f"requires one of roles {sorted(allowed)}")
    return identity


def require_permission(db: Session, identity: Identity, permission_name: str) -> Identity:
    if permission_name not in visibility_service.cached_effective_permissions(db, identity.user_id):
        logger.warning("User %s denied: missing permission %s", identity.user_id, permission_name)
        raise AuthorizationError(f"missing permission {permission_name}")
    return identity


def require_any_permission(db: Session, identity: Identity, permission_names: Iterable[str]) -> Identity:
    wanted = set(permission_names)
    if not wanted & visibility_service.cached_effective_permissions(db, identity.user_id):
        logger.warning(
            "User %s denied: none of permissions %s", identity.user_id, sorted(wanted)
        )
        raise AuthorizationError(f"requires one of permissions {sorted(wanted)}")
    return identity


async def get_current_identity(
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(security_scheme),
    db: Session = Depends(get_db),
) -> Identity:
    """Resolve the caller from the Bearer token."""
    return require_auth(db, credentials.credentials if credentials else None)


async def get_optional_identity(
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(security_scheme),
    db: Session = Depends(get_db),
) -> Optional[Identity]:
    """Like get_current_identity, but anonymous callers yield None."""
    if credentials is None:
        return None
    return require_auth(db, credentials.credentials)


class RequireRole:
    """Dependency that checks the caller holds one of the allowed roles."""

    def __init__(self, *allowed_roles: str):
        self.allowed_roles = allowed_roles

    async def __call__(self, identity: Identity = Depends(get_current_identity)) -> Identity:
        return require_role(identity, self.allowed_roles)


class RequirePermission:
    """Dependency that checks a single permission is effective for the caller."""

    def __init__(self, permission_name: str):
        self.permission_name = permission_name

    async def __call__(
        self,
        identity: Identity = Depends(get_current_identity),
        db: Session = Depends(get_db),
    ) -> Identity:
        return require_permission(db, identity, self.permission_name)


class RequireAnyPermission:
    """Dependency that checks at least one of several permissions is effective."""

    def __init__(self, *permission_names: str):
        self.permission_names = permission_names

    async def __call__(
        self,
        identity: Identity = Depends(get_current_identity),
        db: Session = Depends(get_db),
    ) -> Identity:
        return require_any_permission(db, identity, self.permission_names)


# Convenience dependency factories
require_menu_admin = RequireRole(settings.MENU_ADMIN_ROLE)
require_roles_manager = RequirePermission("roles.manage")
require_role_assigner = RequirePermission("users.change_roles")
require_audit_viewer = RequireAnyPermission("audit.view", settings.MENU_MANAGE_PERMISSION)
