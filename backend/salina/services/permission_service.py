"""
Permission Service - central role policy for report and admin actions
"""
from typing import Dict, FrozenSet, Set
import enum
import logging

from salina.core.exceptions import UnauthorizedError
from salina.models import UserRole

logger = logging.getLogger(__name__)


class ReportAction(str, enum.Enum):
    VIEW_REVENUE = "view_revenue"
    VIEW_LIABILITY = "view_liability"
    VIEW_DASHBOARD_STATS = "view_dashboard_stats"
    VIEW_OWNER_DASHBOARD = "view_owner_dashboard"
    VIEW_FINANCE_DASHBOARD = "view_finance_dashboard"
    VIEW_SALES_REPORT = "view_sales_report"
    EXPORT_SALES_REPORT = "export_sales_report"
    VIEW_ROYALTY_LIABILITY = "view_royalty_liability"
    EXPORT_LIABILITY = "export_liability"
    VIEW_RECEIVABLES = "view_receivables"
    EXPORT_RECEIVABLES = "export_receivables"
    VIEW_ISBN_POOL = "view_isbn_pool"
    VIEW_AUDIT_LOGS = "view_audit_logs"
    VIEW_AUDIT_USERS = "view_audit_users"
    EXPORT_AUDIT_LOGS = "export_audit_logs"
    MANAGE_PORTAL_ACCESS = "manage_portal_access"
    VIEW_TAX_ID = "view_tax_id"
    EXPORT_CONTACTS = "export_contacts"


FINANCE_ROLES = frozenset({UserRole.OWNER.value, UserRole.ADMIN.value, UserRole.FINANCE.value})
REPORTING_ROLES = FINANCE_ROLES | {UserRole.EDITOR.value}
ADMIN_ROLES = frozenset({UserRole.OWNER.value, UserRole.ADMIN.value})


POLICY: Dict[ReportAction, FrozenSet[str]] = {
    ReportAction.VIEW_REVENUE: FINANCE_ROLES,
    ReportAction.VIEW_LIABILITY: FINANCE_ROLES,
    ReportAction.VIEW_DASHBOARD_STATS: FINANCE_ROLES,
    ReportAction.VIEW_OWNER_DASHBOARD: ADMIN_ROLES,
    ReportAction.VIEW_FINANCE_DASHBOARD: FINANCE_ROLES,
    ReportAction.VIEW_SALES_REPORT: REPORTING_ROLES,
    ReportAction.EXPORT_SALES_REPORT: REPORTING_ROLES,
    ReportAction.VIEW_ROYALTY_LIABILITY: FINANCE_ROLES,
    ReportAction.EXPORT_LIABILITY: FINANCE_ROLES,
    ReportAction.VIEW_RECEIVABLES: FINANCE_ROLES,
    ReportAction.EXPORT_RECEIVABLES: FINANCE_ROLES,
    ReportAction.VIEW_ISBN_POOL: REPORTING_ROLES,
    ReportAction.VIEW_AUDIT_LOGS: FINANCE_ROLES,
    ReportAction.VIEW_AUDIT_USERS: FINANCE_ROLES,
    ReportAction.EXPORT_AUDIT_LOGS: FINANCE_ROLES,
    ReportAction.MANAGE_PORTAL_ACCESS: ADMIN_ROLES,
    ReportAction.VIEW_TAX_ID: FINANCE_ROLES,
    ReportAction.EXPORT_CONTACTS: REPORTING_ROLES,
}


DENIAL_MESSAGES: Dict[ReportAction, str] = {
    ReportAction.VIEW_REVENUE: "You do not have permission to view revenue reports",
    ReportAction.VIEW_LIABILITY: "You do not have permission to view liability reports",
    ReportAction.VIEW_DASHBOARD_STATS: "You do not have permission to view dashboard stats",
    ReportAction.VIEW_OWNER_DASHBOARD: "You do not have permission to view the owner dashboard",
    ReportAction.VIEW_FINANCE_DASHBOARD: "You do not have permission to view the finance dashboard",
    ReportAction.VIEW_SALES_REPORT: "You do not have permission to view sales reports",
    ReportAction.EXPORT_SALES_REPORT: "You do not have permission to export sales reports",
    ReportAction.VIEW_ROYALTY_LIABILITY: "You do not have permission to view royalty liability reports",
    ReportAction.EXPORT_LIABILITY: "You do not have permission to export liability reports",
    ReportAction.VIEW_RECEIVABLES: "You do not have permission to view receivables reports",
    ReportAction.EXPORT_RECEIVABLES: "You do not have permission to export receivables reports",
    ReportAction.VIEW_ISBN_POOL: "You do not have permission to view ISBN pool reports",
    ReportAction.VIEW_AUDIT_LOGS: "You do not have permission to view audit logs",
    ReportAction.VIEW_AUDIT_USERS: "You do not have permission to view audit log users",
    ReportAction.EXPORT_AUDIT_LOGS: "You do not have permission to export audit logs",
    ReportAction.MANAGE_PORTAL_ACCESS: "You don't have permission to manage portal access",
    ReportAction.VIEW_TAX_ID: "You do not have permission to view tax information",
    ReportAction.EXPORT_CONTACTS: "You do not have permission to export contacts",
}


class PermissionService:
    """Checks a principal's role against the policy table"""

    @staticmethod
    def allowed_roles(action: ReportAction) -> FrozenSet[str]:
        return POLICY.get(action, frozenset())

    @classmethod
    def has_permission(cls, principal, action: ReportAction) -> bool:
        role = getattr(principal, "role", None)
        return role is not None and role in cls.allowed_roles(action)

    @classmethod
    def require(cls, principal, action: ReportAction) -> None:
        """Raise UnauthorizedError unless the principal's role may perform ``action``"""
        if not cls.has_permission(principal, action):
            role = getattr(principal, "role", None)
            logger.warning(f"Permission denied: role={role} action={action.value}")
            raise UnauthorizedError(action.value, role)

    @classmethod
    def permitted_actions(cls, principal) -> Set[ReportAction]:
        return {action for action in POLICY if cls.has_permission(principal, action)}


def denial_message(action: ReportAction) -> str:
    return DENIAL_MESSAGES[action]
