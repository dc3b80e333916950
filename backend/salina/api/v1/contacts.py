"""
Contacts API Routes - tax id access, export and author portal access
"""
from typing import Optional

from fastapi import APIRouter, Depends

from salina.core.results import ActionResult, report_action
from salina.core.security import PermissionChecker, RequestContext, get_request_context
from salina.services.contact_service import ContactService
from salina.services.export_service import contacts_csv
from salina.services.permission_service import ReportAction
from salina.services.portal_access_service import PortalAccessService

router = APIRouter(prefix="/contacts", tags=["Contacts"])


def get_portal_access_service(ctx: RequestContext = Depends(get_request_context)) -> PortalAccessService:
    return PortalAccessService(ctx.scope)


@router.get("/export")
@report_action(failed="Failed to export contacts")
async def export_contacts(
    role: Optional[str] = None,
    ctx: RequestContext = Depends(PermissionChecker(ReportAction.EXPORT_CONTACTS))
):
    return contacts_csv(ContactService(ctx.scope).get_export_rows(role))


@router.get("/{contact_id}/tax-id")
@report_action(failed="Failed to load tax information")
async def get_masked_tax_id(
    contact_id: int,
    ctx: RequestContext = Depends(PermissionChecker(ReportAction.VIEW_TAX_ID))
):
    masked = ContactService(ctx.scope).get_masked_tax_id(contact_id)
    if masked is None:
        return ActionResult.fail("Contact not found", status_code=404)
    return masked


@router.post("/{contact_id}/portal-access")
@report_action(failed="Failed to grant portal access. Please try again.")
async def grant_portal_access(
    contact_id: int,
    ctx: RequestContext = Depends(PermissionChecker(ReportAction.MANAGE_PORTAL_ACCESS)),
    service: PortalAccessService = Depends(get_portal_access_service)
):
    result = service.grant_access(contact_id, actor_user_id=ctx.principal.user_id)
    ctx.db.commit()
    return result


@router.delete("/{contact_id}/portal-access")
@report_action(failed="Failed to revoke portal access. Please try again.")
async def revoke_portal_access(
    contact_id: int,
    ctx: RequestContext = Depends(PermissionChecker(ReportAction.MANAGE_PORTAL_ACCESS)),
    service: PortalAccessService = Depends(get_portal_access_service)
):
    result = service.revoke_access(contact_id, actor_user_id=ctx.principal.user_id)
    ctx.db.commit()
    return result
