"""
Pydantic Schemas for request filters and report payloads
"""
from datetime import date, datetime
from decimal import Decimal
from typing import List, Literal, Optional
from pydantic import BaseModel, ConfigDict, Field, model_validator


# ==================== AUTH ====================

class TokenRequest(BaseModel):
    grant_type: Literal["client_credentials"] = "client_credentials"
    client_id: str = Field(..., min_length=1)
    client_secret: str = Field(..., min_length=1)


class TokenResponse(BaseModel):
    access_token: str
    token_type: str = "bearer"
    expires_in: int


# ==================== RECEIVABLES ====================

class AgingRow(BaseModel):
    customer_id: Optional[int] = None
    customer_name: str
    current: Decimal = Decimal("0.00")
    days_1_30: Decimal = Decimal("0.00")
    days_31_60: Decimal = Decimal("0.00")
    days_61_90: Decimal = Decimal("0.00")
    days_over_90: Decimal = Decimal("0.00")
    total: Decimal = Decimal("0.00")


class AgingReport(BaseModel):
    as_of: date
    rows: List[AgingRow]
    totals: AgingRow


class ArSummary(BaseModel):
    total_receivables: Decimal
    current_amount: Decimal
    overdue_amount: Decimal
    open_invoice_count: int
    average_days_to_pay: int


class OpenInvoice(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    invoice_number: str
    invoice_date: date
    due_date: Optional[date] = None
    total: Decimal
    balance_due: Decimal
    status: str
    days_overdue: int = 0


class CustomerArDetail(BaseModel):
    customer_id: int
    customer_name: str
    total_billed: Decimal
    total_paid: Decimal
    current_balance: Decimal
    average_days_to_pay: int
    open_invoices: List[OpenInvoice]


# ==================== ISBN POOL ====================

class IsbnPoolMetrics(BaseModel):
    available: int
    assigned: int
    total: int
    utilization_percent: float
    assigned_last_six_months: int
    burn_rate: float
    months_until_runout: Optional[int] = None
    estimated_runout_date: Optional[date] = None


class IsbnPrefixBreakdown(BaseModel):
    prefix: str
    total: int
    available: int
    assigned: int
    utilization: int


class IsbnAssignmentBucket(BaseModel):
    month: str
    assigned: int


# ==================== ROYALTY LIABILITY ====================

class AuthorLiabilityRow(BaseModel):
    author_id: int
    author_name: str
    title_count: int
    unpaid_statements: int
    total_owed: Decimal
    oldest_statement: Optional[date] = None
    payment_method: Optional[str] = None


class AdvanceBalance(BaseModel):
    contract_id: int
    author_id: int
    author_name: str
    title_id: int
    title_name: str
    advance_amount: Decimal
    advance_recouped: Decimal
    remaining_balance: Decimal


class LiabilitySummary(BaseModel):
    total_unpaid_liability: Decimal
    authors_with_pending_payments: int
    oldest_unpaid_statement: Optional[date] = None
    average_payment_per_author: Decimal
    liability_by_author: List[AuthorLiabilityRow]
    advance_balances: List[AdvanceBalance]


class AuthorLiabilityMetric(BaseModel):
    author_id: int
    author_name: str
    amount: Decimal
    titles_count: int
    unpaid_statements_count: int


class LiabilityMetrics(BaseModel):
    total_liability: Decimal
    paid_amount: Decimal
    unpaid_amount: Decimal
    liability_by_author: List[AuthorLiabilityMetric]


# ==================== SALES & REVENUE ====================

class SalesReportFilters(BaseModel):
    start_date: date
    end_date: date
    title_ids: List[int] = Field(default_factory=list)
    author_ids: List[int] = Field(default_factory=list)
    format: Literal["physical", "ebook", "audiobook", "all"] = "all"
    channel: Literal["retail", "wholesale", "direct", "distributor", "all"] = "all"
    group_by: Literal["title", "format", "channel", "date"] = "title"

    @model_validator(mode="after")
    def check_date_range(self):
        if self.end_date < self.start_date:
            raise ValueError("End date must be on or after start date")
        return self


class SalesReportRow(BaseModel):
    group_key: str
    group_label: str
    total_units: int
    total_revenue: Decimal
    avg_unit_price: Decimal


class SalesReport(BaseModel):
    rows: List[SalesReportRow]
    totals: SalesReportRow


class RevenueBucket(BaseModel):
    period: str
    revenue: Decimal


class RevenueShare(BaseModel):
    key: str
    label: str
    revenue: Decimal
    percentage: float


class RevenueMetrics(BaseModel):
    start_date: date
    end_date: date
    period: str
    total_revenue: Decimal
    revenue_by_period: List[RevenueBucket]
    revenue_by_format: List[RevenueShare]
    revenue_by_channel: List[RevenueShare]


class FinanceDashboardStats(BaseModel):
    current_month_revenue: Decimal
    previous_month_revenue: Decimal
    revenue_trend_percent: Optional[float] = None
    total_liability: Decimal
    next_statement_deadline: date
    days_until_deadline: int


# ==================== ROLE DASHBOARDS ====================

class TopTitle(BaseModel):
    title_id: int
    title: str
    units: int
    revenue: Decimal


class TopAuthor(BaseModel):
    author_id: int
    name: str
    revenue: Decimal


class IsbnUtilizationPoint(BaseModel):
    month: str
    utilization: float


class OwnerDashboard(BaseModel):
    """Owner/admin analytics over the last six calendar months"""
    revenue_trend: List[RevenueBucket]
    top_selling_titles: List[TopTitle]
    author_performance: List[TopAuthor]
    isbn_utilization_trend: List[IsbnUtilizationPoint]


class LiabilityPoint(BaseModel):
    month: str
    liability: Decimal


class StatementDeadline(BaseModel):
    due_date: date
    description: str


class RoyaltyOwed(BaseModel):
    author_id: int
    name: str
    amount: Decimal


class FinanceDashboard(BaseModel):
    liability_trend: List[LiabilityPoint]
    upcoming_deadlines: List[StatementDeadline]
    top_authors_by_royalty: List[RoyaltyOwed]


# ==================== AUDIT ====================

class AuditLogFilters(BaseModel):
    action_type: Optional[Literal["CREATE", "UPDATE", "DELETE", "VIEW", "APPROVE", "REJECT"]] = None
    resource_type: Optional[str] = None
    user_id: Optional[int] = None
    start_date: Optional[date] = None
    end_date: Optional[date] = None
    page: int = Field(default=1, ge=1)
    page_size: int = Field(default=20, ge=1, le=100)


class AuditLogEntry(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    created_at: datetime
    user_id: Optional[int] = None
    user_email: Optional[str] = None
    action_type: str
    resource_type: str
    resource_id: Optional[str] = None
    changes: Optional[dict] = None
    status: str
    summary: str


class AuditLogPage(BaseModel):
    items: List[AuditLogEntry]
    total: int
    page: int
    page_size: int
    total_pages: int


class AuditUser(BaseModel):
    user_id: int
    email: str


# ==================== CONTACTS ====================

class MaskedTaxId(BaseModel):
    contact_id: int
    tin_type: Optional[str] = None
    masked_tax_id: Optional[str] = None


class PortalAccessResult(BaseModel):
    contact_id: int
    user_id: int
    email: str
    is_active: bool
    invitation_id: Optional[str] = None
