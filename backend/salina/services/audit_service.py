"""
Audit Logging Service
Append-only audit trail with tenant-scoped querying and export
"""
from datetime import datetime, timedelta
from typing import Any, Dict, List, Optional
import json
import logging
import math

from sqlalchemy import desc

from salina.core.tenancy import TenantScope
from salina.models import AuditActionType, AuditLog, User
from salina.schemas import AuditLogEntry, AuditLogFilters, AuditLogPage, AuditUser

logger = logging.getLogger(__name__)


class AuditAction:
    """Constants for audit actions"""
    CREATE = AuditActionType.CREATE.value
    UPDATE = AuditActionType.UPDATE.value
    DELETE = AuditActionType.DELETE.value
    VIEW = AuditActionType.VIEW.value
    APPROVE = AuditActionType.APPROVE.value
    REJECT = AuditActionType.REJECT.value


def _json_safe(values: Optional[Dict]) -> Optional[Dict]:
    if values is None:
        return None
    return json.loads(json.dumps(values, default=str))


def summarize_changes(action_type: str, changes: Optional[Dict]) -> str:
    """Short human-readable description of an audit entry's change set"""
    changes = changes or {}
    before = changes.get("before") or {}
    after = changes.get("after") or {}

    if action_type == AuditAction.CREATE:
        return f"Created with: {', '.join(list(after.keys())[:3])}"
    if action_type == AuditAction.UPDATE:
        changed = [key for key in after if before.get(key) != after.get(key)]
        return f"Changed: {', '.join(changed[:3])}"
    if action_type == AuditAction.DELETE:
        return "Record deleted"
    if action_type == AuditAction.APPROVE:
        return "Approved"
    if action_type == AuditAction.REJECT:
        return "Rejected"
    return action_type


class AuditService:
    """Service for recording and retrieving audit logs"""

    def __init__(self, scope: TenantScope):
        self.scope = scope

    def log(
        self,
        action: str,
        resource_type: str,
        resource_id: Optional[Any] = None,
        before: Optional[Dict] = None,
        after: Optional[Dict] = None,
        user_id: Optional[int] = None,
        details: Optional[Dict] = None,
        status: str = "success"
    ) -> Optional[AuditLog]:
        """
        Append an audit log entry.

        Args:
            action: The action being performed (use AuditAction constants)
            resource_type: Type of resource affected (e.g. 'contact', 'user')
            resource_id: ID of the affected resource
            before: Values before the change
            after: Values after the change
            user_id: Acting user; None for system or API key actions
            details: Free-form metadata (request path, key id, ...)
            status: 'success' or 'failure'

        Returns:
            The created AuditLog, or None if it could not be written
        """
        try:
            changes = None
            if before is not None or after is not None:
                changes = {"before": _json_safe(before), "after": _json_safe(after)}

            entry = AuditLog(
                action_type=action,
                resource_type=resource_type,
                resource_id=str(resource_id) if resource_id is not None else None,
                changes=changes,
                details=_json_safe(details),
                user_id=user_id,
                status=status,
            )
            self.scope.add(entry)
            self.scope.session.flush()

            logger.info(
                f"Audit: {action} {resource_type}(id={resource_id}) by user={user_id} "
                f"tenant={self.scope.tenant_id} status={status}"
            )
            return entry

        except Exception:
            # Audit logging must not break the operation being audited
            logger.exception("Failed to create audit log")
            return None

    def _filtered(self, filters: AuditLogFilters):
        query = self.scope.query(AuditLog)
        if filters.action_type:
            query = query.filter(AuditLog.action_type == filters.action_type)
        if filters.resource_type:
            query = query.filter(AuditLog.resource_type == filters.resource_type)
        if filters.user_id:
            query = query.filter(AuditLog.user_id == filters.user_id)
        if filters.start_date:
            query = query.filter(AuditLog.created_at >= datetime.combine(filters.start_date, datetime.min.time()))
        if filters.end_date:
            end = datetime.combine(filters.end_date, datetime.min.time()) + timedelta(days=1)
            query = query.filter(AuditLog.created_at < end)
        return query

    def _entries(self, query, offset: int = 0, limit: Optional[int] = None) -> List[AuditLogEntry]:
        rows = query.outerjoin(User, User.id == AuditLog.user_id).add_columns(User.email).order_by(
            desc(AuditLog.created_at), desc(AuditLog.id)
        ).offset(offset)
        if limit is not None:
            rows = rows.limit(limit)
        return [
            AuditLogEntry(
                id=entry.id,
                created_at=entry.created_at,
                user_id=entry.user_id,
                user_email=email,
                action_type=entry.action_type,
                resource_type=entry.resource_type,
                resource_id=entry.resource_id,
                changes=entry.changes,
                status=entry.status,
                summary=summarize_changes(entry.action_type, entry.changes),
            )
            for entry, email in rows
        ]

    def get_logs(self, filters: AuditLogFilters) -> AuditLogPage:
        query = self._filtered(filters)
        total = query.count()
        offset = (filters.page - 1) * filters.page_size
        items = self._entries(query, offset, filters.page_size) if total else []
        return AuditLogPage(
            items=items,
            total=total,
            page=filters.page,
            page_size=filters.page_size,
            total_pages=math.ceil(total / filters.page_size),
        )

    def get_all_logs(self, filters: AuditLogFilters) -> List[AuditLogEntry]:
        """Every entry matching ``filters``, ignoring pagination (for export)"""
        return self._entries(self._filtered(filters))

    def get_users(self) -> List[AuditUser]:
        """Distinct users that appear in this tenant's audit log"""
        rows = self.scope.query(AuditLog, User.id, User.email).join(
            User, User.id == AuditLog.user_id
        ).distinct().order_by(User.email).all()
        return [AuditUser(user_id=user_id, email=email) for user_id, email in rows]
