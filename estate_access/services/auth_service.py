"""Auth service — password login, token minting, user lookup."""

from datetime import datetime, timezone
from typing import Dict, Any, Optional, Sequence

from sqlalchemy.orm import Session

from estate_access.core.exceptions import (
    AuthenticationError, ResourceConflictError, ResourceNotFoundError,
)
from estate_access.core.security import hash_password, verify_password, create_access_token
from estate_access.db.session import atomic
from estate_access.models.role import Role, UserRole
from estate_access.models.user import User
from estate_access.services.role_service import role_service


class AuthService:
    """Handles authentication and user management."""

    @staticmethod
    def issue_token(db: Session, user: User) -> str:
        """Mint an access token carrying the user's current role names as claims."""
        roles = [r.name for r in role_service.get_user_roles(db, user.id)]
        return create_access_token({"sub": str(user.id), "email": user.email, "roles": roles})

    @staticmethod
    def authenticate(db: Session, email: str, password: str) -> Dict[str, Any]:
        """Authenticate user and return a JWT access token.

        Raises:
            AuthenticationError: If credentials are invalid.
        """
        user = db.query(User).filter(User.email == email).first()
        if not user or not verify_password(password, user.hashed_password):
            raise AuthenticationError("Invalid email or password")

        if not user.is_active:
            raise AuthenticationError("Account is deactivated")

        with atomic(db):
            user.last_login_at = datetime.now(timezone.utc).replace(tzinfo=None)

        roles = [r.name for r in role_service.get_user_roles(db, user.id)]
        return {
            "access_token": AuthService.issue_token(db, user),
            "token_type": "bearer",
            "user": {
                "id": user.id,
                "email": user.email,
                "full_name": user.full_name,
                "roles": roles,
            },
        }

    @staticmethod
    def create_user(
        db: Session,
        email: str,
        password: str,
        full_name: str,
        role_names: Optional[Sequence[str]] = None,
    ) -> User:
        """Create a new user holding the named roles."""
        existing = db.query(User).filter(User.email == email).first()
        if existing:
            raise ResourceConflictError(f"User with email {email} already exists")

        roles = []
        for name in role_names or []:
            role = db.query(Role).filter(Role.name == name).first()
            if not role:
                raise ResourceNotFoundError(f"Role '{name}' not found")
            roles.append(role)

        user = User(
            email=email,
            hashed_password=hash_password(password),
            full_name=full_name,
            is_active=True,
        )
        with atomic(db):
            db.add(user)
            db.flush()
            for role in roles:
                db.add(UserRole(user_id=user.id, role_id=role.id))
        db.refresh(user)
        return user

    @staticmethod
    def get_user(db: Session, user_id: int) -> User:
        """Get a user by id."""
        user = db.query(User).filter(User.id == user_id).first()
        if not user:
            raise ResourceNotFoundError(f"User {user_id} not found")
        return user

    @staticmethod
    def get_user_by_email(db: Session, email: str) -> User:
        user = db.query(User).filter(User.email == email).first()
        if not user:
            raise ResourceNotFoundError(f"User {email} not found")
        return user


auth_service = AuthService()
