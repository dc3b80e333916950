"""
Reports API Routes - Sales, Revenue, Royalty Liability, ISBN Pool
"""
from datetime import date
from typing import Literal, Optional

from fastapi import APIRouter, Depends, Query

from salina.core.results import report_action
from salina.core.security import PermissionChecker, RequestContext
from salina.schemas import SalesReportFilters
from salina.services.export_service import liability_report_csv, sales_report_csv
from salina.services.isbn_pool_service import IsbnPoolService
from salina.services.liability_service import LiabilityService
from salina.services.permission_service import ReportAction
from salina.services.sales_report_service import SalesReportService

router = APIRouter(prefix="/reports", tags=["Reports"])


@router.post("/sales")
@report_action(failed="Failed to fetch sales report")
async def get_sales_report(
    filters: SalesReportFilters,
    ctx: RequestContext = Depends(PermissionChecker(ReportAction.VIEW_SALES_REPORT))
):
    """Sales grouped by title, format, channel or month"""
    return SalesReportService(ctx.scope).get_sales_report(filters)


@router.post("/sales/export")
@report_action(failed="Failed to export sales report")
async def export_sales_report(
    filters: SalesReportFilters,
    ctx: RequestContext = Depends(PermissionChecker(ReportAction.EXPORT_SALES_REPORT))
):
    report = SalesReportService(ctx.scope).get_sales_report(filters)
    return sales_report_csv(report)


@router.get("/revenue")
@report_action(failed="Failed to fetch revenue metrics")
async def get_revenue_metrics(
    start_date: Optional[date] = None,
    end_date: Optional[date] = None,
    period: Literal["day", "week", "month", "quarter", "year"] = "month",
    ctx: RequestContext = Depends(PermissionChecker(ReportAction.VIEW_REVENUE))
):
    """Revenue totals and breakdowns; defaults to the trailing 12 months"""
    return SalesReportService(ctx.scope).get_revenue_metrics(start_date, end_date, period)


@router.get("/liability")
@report_action(failed="Failed to fetch royalty liability summary")
async def get_liability_summary(
    ctx: RequestContext = Depends(PermissionChecker(ReportAction.VIEW_ROYALTY_LIABILITY))
):
    return LiabilityService(ctx.scope).get_liability_summary()


@router.get("/liability/metrics")
@report_action(failed="Failed to fetch liability metrics")
async def get_liability_metrics(
    ctx: RequestContext = Depends(PermissionChecker(ReportAction.VIEW_LIABILITY))
):
    return LiabilityService(ctx.scope).get_liability_metrics()


@router.get("/liability/export")
@report_action(failed="Failed to export liability report")
async def export_liability_report(
    ctx: RequestContext = Depends(PermissionChecker(ReportAction.EXPORT_LIABILITY))
):
    return liability_report_csv(LiabilityService(ctx.scope).get_liability_summary())


@router.get("/isbn-pool")
@report_action(failed="Failed to fetch ISBN pool metrics")
async def get_isbn_pool_metrics(
    ctx: RequestContext = Depends(PermissionChecker(ReportAction.VIEW_ISBN_POOL))
):
    return IsbnPoolService(ctx.scope).get_pool_metrics()


@router.get("/isbn-pool/prefixes")
@report_action(failed="Failed to fetch ISBN prefix breakdown")
async def get_isbn_prefix_breakdown(
    ctx: RequestContext = Depends(PermissionChecker(ReportAction.VIEW_ISBN_POOL))
):
    return IsbnPoolService(ctx.scope).get_prefix_breakdown()


@router.get("/isbn-pool/history")
@report_action(failed="Failed to fetch ISBN assignment history")
async def get_isbn_assignment_history(
    months: int = Query(6, ge=1, le=24),
    ctx: RequestContext = Depends(PermissionChecker(ReportAction.VIEW_ISBN_POOL))
):
    return IsbnPoolService(ctx.scope).get_assignment_history(months)
