"""
Royalty Liability Service - amounts owed to authors and outstanding advances

Every statement is treated as unpaid: statements carry no payment status yet.
"""
from dataclasses import dataclass
from datetime import date
from decimal import Decimal
from typing import Iterable, List, Optional
import logging

from sqlalchemy import distinct, func

from salina.core.money import ZERO, quantize_money, safe_divide, to_decimal
from salina.core.tenancy import TenantScope
from salina.models import Contact, Contract, Statement, Title
from salina.schemas import (
    AdvanceBalance, AuthorLiabilityMetric, AuthorLiabilityRow, LiabilityMetrics,
    LiabilitySummary
)

logger = logging.getLogger(__name__)


@dataclass
class LiabilityTotals:
    total: Decimal
    author_count: int
    oldest: Optional[date]
    average: Decimal


def summarize_liability(rows: Iterable[AuthorLiabilityRow]) -> LiabilityTotals:
    """Tenant-wide totals derived from the per-author rows"""
    total = ZERO
    authors = set()
    oldest = None
    for row in rows:
        total += to_decimal(row.total_owed)
        authors.add(row.author_id)
        if row.oldest_statement is not None and (oldest is None or row.oldest_statement < oldest):
            oldest = row.oldest_statement

    average = safe_divide(total, len(authors))
    return LiabilityTotals(
        total=quantize_money(total),
        author_count=len(authors),
        oldest=oldest,
        average=quantize_money(average) if average is not None else quantize_money(ZERO),
    )


class LiabilityService:
    def __init__(self, scope: TenantScope):
        self.scope = scope

    def get_author_rows(self) -> List[AuthorLiabilityRow]:
        grouped = self.scope.query(
            Statement,
            Statement.author_id,
            func.count(Statement.id),
            func.sum(Statement.net_payable),
            func.min(Statement.period_end),
        ).group_by(Statement.author_id).all()

        if not grouped:
            return []

        author_ids = [row[0] for row in grouped]
        authors = {
            contact.id: contact
            for contact in self.scope.query(Contact).filter(Contact.id.in_(author_ids)).all()
        }
        title_counts = dict(
            self.scope.query(
                Contract, Contract.author_id, func.count(distinct(Contract.title_id))
            ).filter(Contract.author_id.in_(author_ids)).group_by(Contract.author_id).all()
        )

        rows = []
        for author_id, statement_count, owed, oldest in grouped:
            author = authors.get(author_id)
            rows.append(AuthorLiabilityRow(
                author_id=author_id,
                author_name=author.display_name if author else "Unknown Author",
                title_count=title_counts.get(author_id, 0),
                unpaid_statements=statement_count,
                total_owed=quantize_money(owed),
                oldest_statement=oldest,
                payment_method=author.payment_method if author else None,
            ))
        rows.sort(key=lambda row: (-row.total_owed, row.author_name))
        return rows

    def get_advance_balances(self) -> List[AdvanceBalance]:
        contracts = self.scope.query(
            Contract,
            Contract.id,
            Contract.author_id,
            Contact.first_name,
            Contact.last_name,
            Contract.title_id,
            Title.title,
            Contract.advance_amount,
            Contract.advance_recouped,
        ).join(Contact, Contact.id == Contract.author_id).join(
            Title, Title.id == Contract.title_id
        ).filter(
            Contract.advance_amount > Contract.advance_recouped
        ).all()

        balances = []
        for contract_id, author_id, first, last, title_id, title, amount, recouped in contracts:
            amount = to_decimal(amount)
            recouped = to_decimal(recouped)
            balances.append(AdvanceBalance(
                contract_id=contract_id,
                author_id=author_id,
                author_name=" ".join(part for part in (first, last) if part),
                title_id=title_id,
                title_name=title,
                advance_amount=quantize_money(amount),
                advance_recouped=quantize_money(recouped),
                remaining_balance=quantize_money(amount - recouped),
            ))
        balances.sort(key=lambda item: (-item.remaining_balance, item.contract_id))
        return balances

    def get_liability_summary(self) -> LiabilitySummary:
        rows = self.get_author_rows()
        totals = summarize_liability(rows)
        logger.info(
            f"Royalty liability for tenant {self.scope.tenant_id}: "
            f"{totals.total} across {totals.author_count} authors"
        )
        return LiabilitySummary(
            total_unpaid_liability=totals.total,
            authors_with_pending_payments=totals.author_count,
            oldest_unpaid_statement=totals.oldest,
            average_payment_per_author=totals.average,
            liability_by_author=rows,
            advance_balances=self.get_advance_balances(),
        )

    def get_total_liability(self) -> Decimal:
        return summarize_liability(self.get_author_rows()).total

    def get_liability_metrics(self) -> LiabilityMetrics:
        rows = self.get_author_rows()
        total = summarize_liability(rows).total
        return LiabilityMetrics(
            total_liability=total,
            paid_amount=quantize_money(ZERO),
            unpaid_amount=total,
            liability_by_author=[
                AuthorLiabilityMetric(
                    author_id=row.author_id,
                    author_name=row.author_name,
                    amount=row.total_owed,
                    titles_count=row.title_count,
                    unpaid_statements_count=row.unpaid_statements,
                )
                for row in rows
            ],
        )
