"""
ISBN Pool Service - pool utilization, burn rate and runout projection
"""
from dataclasses import dataclass
from datetime import date, datetime
from decimal import Decimal, ROUND_CEILING
from typing import List, Optional
import logging

from dateutil.relativedelta import relativedelta
from sqlalchemy import case, func

from salina.core.money import percentage, round_int, round_to, safe_divide
from salina.core.tenancy import TenantScope
from salina.models import Isbn, IsbnPrefix, IsbnStatus
from salina.schemas import IsbnAssignmentBucket, IsbnPoolMetrics, IsbnPrefixBreakdown

logger = logging.getLogger(__name__)

BURN_RATE_WINDOW_MONTHS = 6
LEGACY_PREFIX_LABEL = "Legacy (Imported)"

ASSIGNED_STATUSES = (IsbnStatus.ASSIGNED.value, IsbnStatus.REGISTERED.value)


@dataclass
class BurnRateEstimate:
    burn_rate: Decimal
    months_until_runout: Optional[int]
    runout_date: Optional[date]


def estimate_burn_rate(assigned_recent: int, available: int, today: date,
                       window_months: int = BURN_RATE_WINDOW_MONTHS) -> BurnRateEstimate:
    """
    Project when the available pool runs out at the trailing assignment rate.

    Args:
        assigned_recent: ISBNs assigned within the trailing window.
        available: ISBNs still available.
        today: Projection start.
        window_months: Length of the trailing window.

    Returns:
        Burn rate per month; runout fields are None when either the rate or
        the available count is zero.
    """
    burn_rate = Decimal(assigned_recent) / Decimal(window_months)
    if burn_rate <= 0 or available <= 0:
        return BurnRateEstimate(burn_rate=burn_rate, months_until_runout=None, runout_date=None)

    months = int((Decimal(available) / burn_rate).to_integral_value(rounding=ROUND_CEILING))
    return BurnRateEstimate(
        burn_rate=burn_rate,
        months_until_runout=months,
        runout_date=today + relativedelta(months=months),
    )


class IsbnPoolService:
    def __init__(self, scope: TenantScope):
        self.scope = scope

    def _status_counts(self):
        rows = self.scope.query(Isbn, Isbn.status, func.count(Isbn.id)).filter(
            Isbn.status != IsbnStatus.RETIRED.value
        ).group_by(Isbn.status).all()
        return {status: count for status, count in rows}

    def get_pool_metrics(self, now: Optional[datetime] = None) -> IsbnPoolMetrics:
        now = now or datetime.utcnow()
        counts = self._status_counts()
        available = counts.get(IsbnStatus.AVAILABLE.value, 0)
        assigned = sum(counts.get(status, 0) for status in ASSIGNED_STATUSES)
        total = available + assigned

        window_start = now - relativedelta(months=BURN_RATE_WINDOW_MONTHS)
        assigned_recent = self.scope.query(Isbn, func.count(Isbn.id)).filter(
            Isbn.assigned_at.isnot(None),
            Isbn.assigned_at >= window_start
        ).scalar() or 0

        estimate = estimate_burn_rate(assigned_recent, available, now.date())

        return IsbnPoolMetrics(
            available=available,
            assigned=assigned,
            total=total,
            utilization_percent=percentage(assigned, total),
            assigned_last_six_months=assigned_recent,
            burn_rate=round_to(estimate.burn_rate, 1),
            months_until_runout=estimate.months_until_runout,
            estimated_runout_date=estimate.runout_date,
        )

    def get_prefix_breakdown(self) -> List[IsbnPrefixBreakdown]:
        """Pool counts per registered prefix; unprefixed ISBNs are grouped as legacy imports"""
        assigned_case = case((Isbn.status.in_(ASSIGNED_STATUSES), 1), else_=0)
        available_case = case((Isbn.status == IsbnStatus.AVAILABLE.value, 1), else_=0)

        rows = self.scope.query(
            Isbn,
            IsbnPrefix.prefix,
            func.count(Isbn.id),
            func.sum(available_case),
            func.sum(assigned_case),
        ).outerjoin(IsbnPrefix, IsbnPrefix.id == Isbn.prefix_id).filter(
            Isbn.status != IsbnStatus.RETIRED.value
        ).group_by(IsbnPrefix.prefix).all()

        breakdown = []
        for prefix, total, available, assigned in rows:
            available = int(available or 0)
            assigned = int(assigned or 0)
            ratio = safe_divide(assigned * 100, total)
            breakdown.append(IsbnPrefixBreakdown(
                prefix=prefix or LEGACY_PREFIX_LABEL,
                total=total,
                available=available,
                assigned=assigned,
                utilization=round_int(ratio) if ratio is not None else 0,
            ))
        breakdown.sort(key=lambda item: item.prefix)
        return breakdown

    def get_assignment_history(self, months: int = 6, now: Optional[datetime] = None) -> List[IsbnAssignmentBucket]:
        """Assignments per calendar month for the last ``months`` months, oldest first"""
        now = now or datetime.utcnow()
        months = max(1, months)
        first_month = (now - relativedelta(months=months - 1)).replace(
            day=1, hour=0, minute=0, second=0, microsecond=0
        )

        timestamps = self.scope.query(Isbn, Isbn.assigned_at).filter(
            Isbn.assigned_at.isnot(None),
            Isbn.assigned_at >= first_month
        ).all()

        counts = {}
        for (assigned_at,) in timestamps:
            key = (assigned_at.year, assigned_at.month)
            counts[key] = counts.get(key, 0) + 1

        history = []
        for offset in range(months):
            month = first_month + relativedelta(months=offset)
            history.append(IsbnAssignmentBucket(
                month=month.strftime("%b %Y"),
                assigned=counts.get((month.year, month.month), 0),
            ))
        return history
