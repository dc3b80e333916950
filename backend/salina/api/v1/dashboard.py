"""
Dashboard API Routes
"""
from fastapi import APIRouter, Depends

from salina.core.results import report_action
from salina.core.security import PermissionChecker, RequestContext
from salina.services.dashboard_service import DashboardService
from salina.services.permission_service import ReportAction

router = APIRouter(prefix="/dashboard", tags=["Dashboard"])


@router.get("/finance")
@report_action(failed="Failed to fetch dashboard stats")
async def get_finance_stats(
    ctx: RequestContext = Depends(PermissionChecker(ReportAction.VIEW_DASHBOARD_STATS))
):
    """Revenue trend, outstanding liability and next statement deadline"""
    return DashboardService(ctx.scope).get_finance_stats()


@router.get("/finance/analytics")
@report_action(failed="Failed to fetch finance dashboard")
async def get_finance_dashboard(
    ctx: RequestContext = Depends(PermissionChecker(ReportAction.VIEW_FINANCE_DASHBOARD))
):
    """Twelve-month liability trend, statement deadlines and top authors by royalty owed"""
    return DashboardService(ctx.scope).get_finance_dashboard()


@router.get("/owner")
@report_action(failed="Failed to fetch owner dashboard")
async def get_owner_dashboard(
    ctx: RequestContext = Depends(PermissionChecker(ReportAction.VIEW_OWNER_DASHBOARD))
):
    return DashboardService(ctx.scope).get_owner_dashboard()
