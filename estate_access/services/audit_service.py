"""Audit service — append-only trails for access-control mutations."""

import json
from dataclasses import dataclass
from datetime import datetime
from typing import Optional, Any

from fastapi import Request
from sqlalchemy.orm import Session

from estate_access.models.audit_log import AuditLog, MenuVisibilityAudit


@dataclass
class RequestOrigin:
    """Network origin of the request that triggered a mutation."""
    ip_address: Optional[str] = None
    user_agent: Optional[str] = None

    @classmethod
    def from_request(cls, request: Request) -> "RequestOrigin":
        ip = request.client.host if request.client else None
        ua = request.headers.get("user-agent", "")[:500] or None
        return cls(ip_address=ip, user_agent=ua)


class AuditService:
    """Records immutable audit entries. There is no update or delete API."""

    @staticmethod
    def record_visibility_change(
        db: Session,
        actor_user_id: int,
        role_id: int,
        menu_item_id: int,
        previous_value: Optional[bool],
        new_value: bool,
        origin: Optional[RequestOrigin] = None,
    ) -> int:
        """Append one menu-visibility audit row and return its id.

        The row is flushed, not committed: it belongs to the caller's
        transaction so the toggle and its audit entry land together.
        """
        origin = origin or RequestOrigin()
        entry = MenuVisibilityAudit(
            actor_user_id=actor_user_id,
            role_id=role_id,
            menu_item_id=menu_item_id,
            previous_value=previous_value,
            new_value=new_value,
            source_ip=origin.ip_address,
            user_agent=origin.user_agent,
        )
        db.add(entry)
        db.flush()
        return entry.id

    @staticmethod
    def query_visibility_changes(
        db: Session,
        role_id: Optional[int] = None,
        menu_item_id: Optional[int] = None,
        date_from: Optional[datetime] = None,
        date_to: Optional[datetime] = None,
        page: int = 1,
        page_size: int = 50,
    ):
        """Query menu-visibility audit rows, newest first."""
        query = db.query(MenuVisibilityAudit)

        if role_id is not None:
            query = query.filter(MenuVisibilityAudit.role_id == role_id)
        if menu_item_id is not None:
            query = query.filter(MenuVisibilityAudit.menu_item_id == menu_item_id)
        if date_from is not None:
            query = query.filter(MenuVisibilityAudit.changed_at >= date_from)
        if date_to is not None:
            query = query.filter(MenuVisibilityAudit.changed_at <= date_to)

        total = query.count()
        entries = (
            query.order_by(MenuVisibilityAudit.changed_at.desc(), MenuVisibilityAudit.id.desc())
            .offset((page - 1) * page_size)
            .limit(page_size)
            .all()
        )

        return {
            "entries": entries,
            "total": total,
            "page": page,
            "page_size": page_size,
        }

    @staticmethod
    def log(
        db: Session,
        actor_id: Optional[int],
        actor_email: Optional[str],
        action: str,
        resource_type: str,
        resource_id: Optional[str] = None,
        old_value: Optional[Any] = None,
        new_value: Optional[Any] = None,
        origin: Optional[RequestOrigin] = None,
    ) -> AuditLog:
        """Add a general audit record to the current transaction.

        Args:
            action: e.g. "role.created", "role.permissions_set", "user.roles_assigned"
            resource_type: role, permission, user, menu_item
        """
        origin = origin or RequestOrigin()
        entry = AuditLog(
            actor_id=actor_id,
            actor_email=actor_email,
            action=action,
            resource_type=resource_type,
            resource_id=str(resource_id) if resource_id is not None else None,
            old_value_json=json.dumps(old_value, default=str) if old_value is not None else None,
            new_value_json=json.dumps(new_value, default=str) if new_value is not None else None,
            ip_address=origin.ip_address,
            user_agent=origin.user_agent,
        )
        db.add(entry)
        db.flush()
        return entry

    @staticmethod
    def query_logs(
        db: Session,
        actor_id: Optional[int] = None,
        action: Optional[str] = None,
        resource_type: Optional[str] = None,
        page: int = 1,
        page_size: int = 50,
    ):
        """Query general audit logs with filters and pagination."""
        query = db.query(AuditLog)

        if actor_id:
            query = query.filter(AuditLog.actor_id == actor_id)
        if action:
            query = query.filter(AuditLog.action.ilike(f"%{action}%"))
        if resource_type:
            query = query.filter(AuditLog.resource_type == resource_type)

        total = query.count()
        logs = (
            query.order_by(AuditLog.created_at.desc(), AuditLog.id.desc())
            .offset((page - 1) * page_size)
            .limit(page_size)
            .all()
        )

        return {
            "logs": logs,
            "total": total,
            "page": page,
            "page_size": page_size,
        }


audit_service = AuditService()
