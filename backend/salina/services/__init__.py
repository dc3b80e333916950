# Services Package
from salina.services.user_service import UserService
from salina.services.tenant_service import TenantService
from salina.services.permission_service import PermissionService, ReportAction
from salina.services.receivables_service import ReceivablesService
from salina.services.isbn_pool_service import IsbnPoolService
from salina.services.liability_service import LiabilityService
from salina.services.sales_report_service import SalesReportService
from salina.services.dashboard_service import DashboardService
from salina.services.audit_service import AuditService, AuditAction
from salina.services.contact_service import ContactService
from salina.services.portal_access_service import PortalAccessService

__all__ = [
    'UserService',
    'TenantService',
    'PermissionService',
    'ReportAction',
    'ReceivablesService',
    'IsbnPoolService',
    'LiabilityService',
    'SalesReportService',
    'DashboardService',
    'AuditService',
    'AuditAction',
    'ContactService',
    'PortalAccessService',
]
