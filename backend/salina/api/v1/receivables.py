"""
Receivables API Routes - AR summary, aging and customer detail
"""
from datetime import datetime
from io import BytesIO

from fastapi import APIRouter, Depends
from fastapi.responses import HTMLResponse, StreamingResponse

from salina.core.results import ActionResult, report_action
from salina.core.security import PermissionChecker, RequestContext
from salina.services.export_service import (
    aging_report_csv, aging_report_html, aging_report_pdf, aging_report_xlsx
)
from salina.services.permission_service import ReportAction
from salina.services.receivables_service import ReceivablesService
from salina.services.tenant_service import TenantService

router = APIRouter(prefix="/receivables", tags=["Receivables"])


def _company_name(ctx: RequestContext) -> str:
    return TenantService(ctx.db).display_name(ctx.scope.tenant_id)


@router.get("/summary")
@report_action(failed="Failed to fetch AR summary")
async def get_ar_summary(
    ctx: RequestContext = Depends(PermissionChecker(ReportAction.VIEW_RECEIVABLES))
):
    return ReceivablesService(ctx.scope).get_ar_summary()


@router.get("/aging")
@report_action(failed="Failed to fetch AR aging report")
async def get_aging_report(
    ctx: RequestContext = Depends(PermissionChecker(ReportAction.VIEW_RECEIVABLES))
):
    return ReceivablesService(ctx.scope).get_aging_report()


@router.get("/aging/export")
@report_action(failed="Failed to export AR aging report")
async def export_aging_report(
    ctx: RequestContext = Depends(PermissionChecker(ReportAction.EXPORT_RECEIVABLES))
):
    return aging_report_csv(ReceivablesService(ctx.scope).get_aging_report())


@router.get("/aging/print")
@report_action(failed="Failed to render AR aging report")
async def print_aging_report(
    ctx: RequestContext = Depends(PermissionChecker(ReportAction.EXPORT_RECEIVABLES))
):
    report = ReceivablesService(ctx.scope).get_aging_report()
    return HTMLResponse(aging_report_html(report, _company_name(ctx)))


@router.get("/aging/pdf")
@report_action(failed="Failed to export AR aging report")
async def export_aging_report_pdf(
    ctx: RequestContext = Depends(PermissionChecker(ReportAction.EXPORT_RECEIVABLES))
):
    report = ReceivablesService(ctx.scope).get_aging_report()
    content = aging_report_pdf(report, _company_name(ctx))
    filename = f"ar_aging_{datetime.now().strftime('%Y%m%d')}.pdf"
    return StreamingResponse(
        BytesIO(content),
        media_type="application/pdf",
        headers={"Content-Disposition": f"attachment; filename={filename}"}
    )


@router.get("/aging/xlsx")
@report_action(failed="Failed to export AR aging report")
async def export_aging_report_xlsx(
    ctx: RequestContext = Depends(PermissionChecker(ReportAction.EXPORT_RECEIVABLES))
):
    report = ReceivablesService(ctx.scope).get_aging_report()
    content = aging_report_xlsx(report, _company_name(ctx))
    filename = f"ar_aging_{datetime.now().strftime('%Y%m%d')}.xlsx"
    return StreamingResponse(
        BytesIO(content),
        media_type="application/vnd.openxmlformats-officedocument.spreadsheetml.sheet",
        headers={"Content-Disposition": f"attachment; filename={filename}"}
    )


@router.get("/customers/{customer_id}")
@report_action(failed="Failed to fetch customer AR detail")
async def get_customer_detail(
    customer_id: int,
    ctx: RequestContext = Depends(PermissionChecker(ReportAction.VIEW_RECEIVABLES))
):
    detail = ReceivablesService(ctx.scope).get_customer_detail(customer_id)
    if detail is None:
        return ActionResult.fail("Customer not found", status_code=404)
    return detail
