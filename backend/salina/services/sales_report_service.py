"""
Sales Report Service - grouped sales and revenue breakdowns
"""
from collections import OrderedDict
from datetime import date, timedelta
from decimal import Decimal
from typing import Dict, Iterable, List, Optional, Set, Tuple
import logging

from dateutil.relativedelta import relativedelta
from sqlalchemy import func

from salina.core.money import ZERO, percentage, quantize_money, to_decimal
from salina.core.tenancy import TenantScope
from salina.models import Contract, Sale, SaleChannel, SaleFormat, Title
from salina.schemas import (
    RevenueBucket, RevenueMetrics, RevenueShare, SalesReport, SalesReportFilters,
    SalesReportRow
)

logger = logging.getLogger(__name__)

FORMAT_LABELS = {
    SaleFormat.PHYSICAL.value: "Physical",
    SaleFormat.EBOOK.value: "Ebook",
    SaleFormat.AUDIOBOOK.value: "Audiobook",
}

CHANNEL_LABELS = {
    SaleChannel.RETAIL.value: "Retail",
    SaleChannel.WHOLESALE.value: "Wholesale",
    SaleChannel.DIRECT.value: "Direct",
    SaleChannel.DISTRIBUTOR.value: "Distributor",
}

REVENUE_PERIODS = ("day", "week", "month", "quarter", "year")


def average_unit_price(revenue: Decimal, units: int) -> Decimal:
    if not units:
        return quantize_money(ZERO)
    return quantize_money(to_decimal(revenue) / units)


def make_sales_row(key: str, label: str, units: int, revenue: Decimal) -> SalesReportRow:
    return SalesReportRow(
        group_key=key,
        group_label=label,
        total_units=int(units or 0),
        total_revenue=quantize_money(revenue),
        avg_unit_price=average_unit_price(revenue, units),
    )


def empty_sales_report() -> SalesReport:
    return SalesReport(rows=[], totals=make_sales_row("total", "Total", 0, ZERO))


def build_sales_report(groups: Iterable[Tuple[str, str, int, Decimal]]) -> SalesReport:
    """
    Collapse ``(key, label, units, revenue)`` tuples into report rows.

    Tuples sharing a key are summed, so callers may pass finer-grained groups
    (e.g. per day when reporting per month).
    """
    merged: Dict[str, list] = OrderedDict()
    for key, label, units, revenue in groups:
        entry = merged.setdefault(key, [label, 0, ZERO])
        entry[1] += int(units or 0)
        entry[2] += to_decimal(revenue)

    rows = [make_sales_row(key, label, units, revenue) for key, (label, units, revenue) in merged.items()]
    rows.sort(key=lambda row: (-row.total_revenue, row.group_label))

    total_units = sum(row.total_units for row in rows)
    total_revenue = sum((entry[2] for entry in merged.values()), ZERO)
    return SalesReport(rows=rows, totals=make_sales_row("total", "Total", total_units, total_revenue))


def period_start(day: date, period: str) -> date:
    if period == "day":
        return day
    if period == "week":
        return day - timedelta(days=day.weekday())
    if period == "month":
        return day.replace(day=1)
    if period == "quarter":
        return date(day.year, 3 * ((day.month - 1) // 3) + 1, 1)
    return date(day.year, 1, 1)


def period_label(start: date, period: str) -> str:
    if period == "day":
        return start.isoformat()
    if period == "week":
        return f"Week of {start.isoformat()}"
    if period == "month":
        return start.strftime("%b %Y")
    if period == "quarter":
        return f"Q{(start.month - 1) // 3 + 1} {start.year}"
    return str(start.year)


def period_step(period: str):
    return {
        "day": relativedelta(days=1),
        "week": relativedelta(weeks=1),
        "month": relativedelta(months=1),
        "quarter": relativedelta(months=3),
        "year": relativedelta(years=1),
    }[period]


def bucket_revenue(daily: Iterable[Tuple[date, Decimal]], start: date, end: date, period: str) -> List[RevenueBucket]:
    """Sum daily revenue into zero-filled period buckets covering ``start``..``end``"""
    sums: Dict[date, Decimal] = OrderedDict()
    cursor = period_start(start, period)
    while cursor <= end:
        sums[cursor] = ZERO
        cursor = cursor + period_step(period)

    for day, revenue in daily:
        if day < start or day > end:
            continue
        sums[period_start(day, period)] += to_decimal(revenue)

    return [
        RevenueBucket(period=period_label(bucket, period), revenue=quantize_money(amount))
        for bucket, amount in sums.items()
    ]


class SalesReportService:
    def __init__(self, scope: TenantScope):
        self.scope = scope

    def resolve_author_titles(self, author_ids: Iterable[int]) -> Set[int]:
        """Title ids under contract to any of ``author_ids``"""
        rows = self.scope.query(Contract, Contract.title_id).filter(
            Contract.author_id.in_(list(author_ids))
        ).distinct().all()
        return {title_id for (title_id,) in rows}

    def _filtered(self, query, filters: SalesReportFilters, title_ids: Optional[Set[int]]):
        query = query.filter(
            Sale.sale_date >= filters.start_date,
            Sale.sale_date <= filters.end_date
        )
        if title_ids is not None:
            query = query.filter(Sale.title_id.in_(title_ids))
        if filters.format != "all":
            query = query.filter(Sale.format == filters.format)
        if filters.channel != "all":
            query = query.filter(Sale.channel == filters.channel)
        return query

    def get_sales_report(self, filters: SalesReportFilters) -> SalesReport:
        title_ids = set(filters.title_ids) if filters.title_ids else None

        if filters.author_ids:
            author_titles = self.resolve_author_titles(filters.author_ids)
            title_ids = author_titles if title_ids is None else title_ids & author_titles
            if not title_ids:
                logger.info(f"Sales report for tenant {self.scope.tenant_id}: no titles for selected authors")
                return empty_sales_report()

        units = func.sum(Sale.quantity)
        revenue = func.sum(Sale.total_amount)

        if filters.group_by == "title":
            query = self.scope.query(Sale, Sale.title_id, Title.title, units, revenue).join(
                Title, Title.id == Sale.title_id
            ).group_by(Sale.title_id, Title.title)
            groups = (
                (str(title_id), title, qty, amount)
                for title_id, title, qty, amount in self._filtered(query, filters, title_ids).all()
            )
        elif filters.group_by == "format":
            query = self.scope.query(Sale, Sale.format, units, revenue).group_by(Sale.format)
            groups = (
                (fmt, FORMAT_LABELS.get(fmt, fmt), qty, amount)
                for fmt, qty, amount in self._filtered(query, filters, title_ids).all()
            )
        elif filters.group_by == "channel":
            query = self.scope.query(Sale, Sale.channel, units, revenue).group_by(Sale.channel)
            groups = (
                (channel, CHANNEL_LABELS.get(channel, channel), qty, amount)
                for channel, qty, amount in self._filtered(query, filters, title_ids).all()
            )
        else:
            query = self.scope.query(Sale, Sale.sale_date, units, revenue).group_by(Sale.sale_date)
            groups = (
                (day.strftime("%Y-%m"), day.strftime("%b %Y"), qty, amount)
                for day, qty, amount in self._filtered(query, filters, title_ids).all()
            )

        return build_sales_report(groups)

    def get_period_revenue(self, start: date, end: date) -> Decimal:
        total = self.scope.query(Sale, func.sum(Sale.total_amount)).filter(
            Sale.sale_date >= start,
            Sale.sale_date <= end
        ).scalar()
        return quantize_money(total)

    def _shares(self, column, labels: Dict[str, str], start: date, end: date, total: Decimal) -> List[RevenueShare]:
        rows = self.scope.query(Sale, column, func.sum(Sale.total_amount)).filter(
            Sale.sale_date >= start,
            Sale.sale_date <= end
        ).group_by(column).all()
        shares = [
            RevenueShare(
                key=key,
                label=labels.get(key, key),
                revenue=quantize_money(amount),
                percentage=percentage(to_decimal(amount), total),
            )
            for key, amount in rows
        ]
        shares.sort(key=lambda share: -share.revenue)
        return shares

    def get_revenue_metrics(self, start: Optional[date] = None, end: Optional[date] = None,
                            period: str = "month", today: Optional[date] = None) -> RevenueMetrics:
        """Revenue totals with period, format and channel breakdowns (defaults to the last 12 months)"""
        if period not in REVENUE_PERIODS:
            raise ValueError(f"Unsupported period: {period}")
        today = today or date.today()
        end = end or today
        start = start or (end - relativedelta(months=12))
        if end < start:
            raise ValueError("End date must be on or after start date")

        daily = self.scope.query(Sale, Sale.sale_date, func.sum(Sale.total_amount)).filter(
            Sale.sale_date >= start,
            Sale.sale_date <= end
        ).group_by(Sale.sale_date).all()

        total = quantize_money(sum((to_decimal(amount) for _, amount in daily), ZERO))

        return RevenueMetrics(
            start_date=start,
            end_date=end,
            period=period,
            total_revenue=total,
            revenue_by_period=bucket_revenue(daily, start, end, period),
            revenue_by_format=self._shares(Sale.format, FORMAT_LABELS, start, end, total),
            revenue_by_channel=self._shares(Sale.channel, CHANNEL_LABELS, start, end, total),
        )
