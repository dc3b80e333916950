"""
Audit Log API Routes
"""
from typing import Annotated

from fastapi import APIRouter, Depends, Query

from salina.core.results import report_action
from salina.core.security import PermissionChecker, RequestContext
from salina.schemas import AuditLogFilters
from salina.services.audit_service import AuditService
from salina.services.export_service import audit_log_csv
from salina.services.permission_service import ReportAction

router = APIRouter(prefix="/audit", tags=["Audit"])


@router.get("/logs")
@report_action(failed="Failed to fetch audit logs")
async def get_audit_logs(
    filters: Annotated[AuditLogFilters, Query()],
    ctx: RequestContext = Depends(PermissionChecker(ReportAction.VIEW_AUDIT_LOGS))
):
    return AuditService(ctx.scope).get_logs(filters)


@router.get("/users")
@report_action(failed="Failed to fetch audit log users")
async def get_audit_users(
    ctx: RequestContext = Depends(PermissionChecker(ReportAction.VIEW_AUDIT_USERS))
):
    return AuditService(ctx.scope).get_users()


@router.get("/logs/export")
@report_action(failed="Failed to export audit logs")
async def export_audit_logs(
    filters: Annotated[AuditLogFilters, Query()],
    ctx: RequestContext = Depends(PermissionChecker(ReportAction.EXPORT_AUDIT_LOGS))
):
    return audit_log_csv(AuditService(ctx.scope).get_all_logs(filters))
