"""
Dashboard Service - finance stats and role-specific dashboard analytics
"""
from datetime import date, datetime, timedelta
from typing import List, Optional
import logging

from dateutil.relativedelta import relativedelta
from sqlalchemy import func

from salina.core.money import ZERO, percentage, quantize_money, round_to, safe_divide, to_decimal
from salina.core.tenancy import TenantScope
from salina.models import Contact, Contract, Isbn, Sale, Statement, Title
from salina.schemas import (
    FinanceDashboard, FinanceDashboardStats, IsbnUtilizationPoint, LiabilityPoint,
    OwnerDashboard, RoyaltyOwed, StatementDeadline, TopAuthor, TopTitle
)
from salina.services.isbn_pool_service import IsbnPoolService
from salina.services.liability_service import LiabilityService
from salina.services.sales_report_service import SalesReportService, bucket_revenue

logger = logging.getLogger(__name__)

STATEMENT_DEADLINE_DAYS = 30
OWNER_TREND_MONTHS = 6
LIABILITY_TREND_MONTHS = 12
TOP_N = 5


def quarter_end(day: date) -> date:
    first_month_next = 3 * ((day.month - 1) // 3) + 4
    if first_month_next > 12:
        return date(day.year, 12, 31)
    return date(day.year, first_month_next, 1) - timedelta(days=1)


def next_statement_deadline(today: date) -> date:
    """Statements are due 30 days after the close of the current quarter"""
    return quarter_end(today) + timedelta(days=STATEMENT_DEADLINE_DAYS)


def month_end(day: date) -> date:
    return day.replace(day=1) + relativedelta(months=1) - timedelta(days=1)


def trailing_months(today: date, months: int) -> List[date]:
    """First day of each of the last ``months`` calendar months, oldest first"""
    current = today.replace(day=1)
    return [current - relativedelta(months=offset) for offset in range(months - 1, -1, -1)]


def statement_deadlines(today: date) -> List[StatementDeadline]:
    """Statement generation deadlines for the current and the next quarter"""
    current_end = quarter_end(today)
    return [
        StatementDeadline(
            due_date=end + timedelta(days=STATEMENT_DEADLINE_DAYS),
            description=f"Q{(end.month - 1) // 3 + 1} {end.year} Statement Generation",
        )
        for end in (current_end, quarter_end(current_end + timedelta(days=1)))
    ]


class DashboardService:
    def __init__(self, scope: TenantScope):
        self.scope = scope

    def get_finance_stats(self, today: Optional[date] = None) -> FinanceDashboardStats:
        today = today or date.today()
        month_start = today.replace(day=1)
        previous_start = month_start - relativedelta(months=1)
        previous_end = month_start - timedelta(days=1)

        sales = SalesReportService(self.scope)
        current_revenue = sales.get_period_revenue(month_start, month_end(today))
        previous_revenue = sales.get_period_revenue(previous_start, previous_end)

        change = safe_divide(current_revenue - previous_revenue, previous_revenue)
        trend = round_to(change * 100, 1) if change is not None else None

        deadline = next_statement_deadline(today)

        return FinanceDashboardStats(
            current_month_revenue=current_revenue,
            previous_month_revenue=previous_revenue,
            revenue_trend_percent=trend,
            total_liability=LiabilityService(self.scope).get_total_liability(),
            next_statement_deadline=deadline,
            days_until_deadline=max(0, (deadline - today).days),
        )

    # ---------------------------------------------------------------- owner

    def get_owner_dashboard(self, today: Optional[date] = None) -> OwnerDashboard:
        """
        Revenue trend, best sellers, author performance and ISBN utilization.

        Every figure covers the same window: the six calendar months ending
        with the current one.
        """
        today = today or date.today()
        months = trailing_months(today, OWNER_TREND_MONTHS)
        start, end = months[0], month_end(today)

        return OwnerDashboard(
            revenue_trend=self._monthly_revenue(start, end),
            top_selling_titles=self._top_titles(start, end),
            author_performance=self._top_authors(start, end),
            isbn_utilization_trend=self._isbn_utilization(today),
        )

    def _monthly_revenue(self, start: date, end: date):
        daily = self.scope.query(Sale, Sale.sale_date, func.sum(Sale.total_amount)).filter(
            Sale.sale_date >= start,
            Sale.sale_date <= end
        ).group_by(Sale.sale_date).all()
        return bucket_revenue(daily, start, end, "month")

    def _top_titles(self, start: date, end: date) -> List[TopTitle]:
        revenue = func.sum(Sale.total_amount)
        rows = self.scope.query(
            Sale, Sale.title_id, Title.title, func.sum(Sale.quantity), revenue
        ).join(Title, Title.id == Sale.title_id).filter(
            Sale.sale_date >= start,
            Sale.sale_date <= end
        ).group_by(Sale.title_id, Title.title).order_by(
            revenue.desc(), Title.title.asc()
        ).limit(TOP_N).all()

        return [
            TopTitle(title_id=title_id, title=title, units=int(units or 0), revenue=quantize_money(amount))
            for title_id, title, units, amount in rows
        ]

    def _top_authors(self, start: date, end: date) -> List[TopAuthor]:
        # A title with several contracted authors counts in full for each of them
        revenue = func.sum(Sale.total_amount)
        rows = self.scope.query(Sale, Contract.author_id, revenue).join(
            Contract, Contract.title_id == Sale.title_id
        ).filter(
            Sale.sale_date >= start,
            Sale.sale_date <= end
        ).group_by(Contract.author_id).order_by(
            revenue.desc(), Contract.author_id.asc()
        ).limit(TOP_N).all()

        if not rows:
            return []

        names = {
            contact.id: contact.display_name
            for contact in self.scope.query(Contact).filter(
                Contact.id.in_([author_id for author_id, _ in rows])
            ).all()
        }
        return [
            TopAuthor(
                author_id=author_id,
                name=names.get(author_id, "Unknown Author"),
                revenue=quantize_money(amount),
            )
            for author_id, amount in rows
        ]

    def _isbn_utilization(self, today: date) -> List[IsbnUtilizationPoint]:
        """Share of the whole pool assigned in each month"""
        total = self.scope.query(Isbn, func.count(Isbn.id)).scalar() or 0
        now = datetime(today.year, today.month, today.day)
        history = IsbnPoolService(self.scope).get_assignment_history(OWNER_TREND_MONTHS, now)
        return [
            IsbnUtilizationPoint(month=bucket.month, utilization=percentage(bucket.assigned, total))
            for bucket in history
        ]

    # -------------------------------------------------------------- finance

    def get_finance_dashboard(self, today: Optional[date] = None) -> FinanceDashboard:
        """Liability trend, statement deadlines and the authors owed the most"""
        today = today or date.today()

        top_authors = [
            RoyaltyOwed(author_id=row.author_id, name=row.author_name, amount=row.total_owed)
            for row in LiabilityService(self.scope).get_author_rows()[:TOP_N]
        ]

        return FinanceDashboard(
            liability_trend=self._liability_trend(today),
            upcoming_deadlines=statement_deadlines(today),
            top_authors_by_royalty=top_authors,
        )

    def _liability_trend(self, today: date) -> List[LiabilityPoint]:
        """Net payable of the statements generated in each of the last twelve months"""
        months = trailing_months(today, LIABILITY_TREND_MONTHS)
        generated = self.scope.query(Statement, Statement.created_at, Statement.net_payable).filter(
            Statement.created_at >= datetime(months[0].year, months[0].month, 1)
        ).all()

        sums = {(month.year, month.month): ZERO for month in months}
        for created_at, amount in generated:
            key = (created_at.year, created_at.month)
            if key in sums:
                sums[key] += to_decimal(amount)

        return [
            LiabilityPoint(month=month.strftime("%b %Y"), liability=quantize_money(sums[(month.year, month.month)]))
            for month in months
        ]
