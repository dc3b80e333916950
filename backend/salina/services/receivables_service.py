"""
Receivables Service - AR aging, summary and per-customer detail
"""
from datetime import date
from decimal import Decimal
from typing import Dict, Iterable, List, Optional
import logging

from sqlalchemy import func

from salina.core.money import ZERO, quantize_money, round_int, to_decimal
from salina.core.tenancy import TenantScope
from salina.models import Contact, Invoice, InvoiceStatus, Payment
from salina.schemas import (
    AgingReport, AgingRow, ArSummary, CustomerArDetail, OpenInvoice
)

logger = logging.getLogger(__name__)

RECEIVABLE_STATUSES = (
    InvoiceStatus.SENT.value,
    InvoiceStatus.PARTIALLY_PAID.value,
    InvoiceStatus.OVERDUE.value,
)

UNKNOWN_CUSTOMER = "Unknown Customer"

AGING_BUCKETS = ("current", "days_1_30", "days_31_60", "days_61_90", "days_over_90")


def days_overdue(due_date: Optional[date], today: date) -> int:
    """Whole days past due; a missing due date counts as due today"""
    if due_date is None:
        return 0
    return (today - due_date).days


def classify_aging_bucket(days: int) -> str:
    if days <= 0:
        return "current"
    elif days <= 30:
        return "days_1_30"
    elif days <= 60:
        return "days_31_60"
    elif days <= 90:
        return "days_61_90"
    return "days_over_90"


def build_aging_report(invoices: Iterable, customer_names: Dict[int, str], today: date) -> AgingReport:
    """
    Bucket open invoices per customer.

    Args:
        invoices: Objects with ``customer_id``, ``due_date`` and ``balance_due``.
        customer_names: customer id -> display name.
        today: Reference date for days overdue.

    Returns:
        Rows sorted by total descending plus a tenant-wide totals row.
    """
    by_customer: Dict[int, Dict[str, Decimal]] = {}
    totals = {bucket: ZERO for bucket in AGING_BUCKETS}

    for invoice in invoices:
        balance = to_decimal(invoice.balance_due)
        if balance <= 0:
            continue

        bucket = classify_aging_bucket(days_overdue(invoice.due_date, today))
        amounts = by_customer.setdefault(
            invoice.customer_id, {name: ZERO for name in AGING_BUCKETS}
        )
        amounts[bucket] += balance
        totals[bucket] += balance

    rows = []
    for customer_id, amounts in by_customer.items():
        rows.append(AgingRow(
            customer_id=customer_id,
            customer_name=customer_names.get(customer_id) or UNKNOWN_CUSTOMER,
            total=quantize_money(sum(amounts.values(), ZERO)),
            **{bucket: quantize_money(value) for bucket, value in amounts.items()}
        ))
    rows.sort(key=lambda row: (-row.total, row.customer_name))

    totals_row = AgingRow(
        customer_name="TOTAL",
        total=quantize_money(sum(totals.values(), ZERO)),
        **{bucket: quantize_money(value) for bucket, value in totals.items()}
    )
    return AgingReport(as_of=today, rows=rows, totals=totals_row)


def average_days_to_pay(pairs: Iterable) -> int:
    """Mean of (last payment date - invoice date) in days, ignoring negative spans"""
    spans = []
    for invoice_date, last_payment in pairs:
        if invoice_date is None or last_payment is None:
            continue
        days = (last_payment - invoice_date).days
        if days >= 0:
            spans.append(days)
    if not spans:
        return 0
    return round_int(Decimal(sum(spans)) / len(spans))


class ReceivablesService:
    def __init__(self, scope: TenantScope):
        self.scope = scope

    def _open_invoices_query(self):
        return self.scope.query(Invoice).filter(
            Invoice.status.in_(RECEIVABLE_STATUSES),
            Invoice.balance_due > 0
        )

    def _customer_names(self, customer_ids) -> Dict[int, str]:
        if not customer_ids:
            return {}
        contacts = self.scope.query(Contact).filter(Contact.id.in_(customer_ids)).all()
        return {contact.id: contact.display_name for contact in contacts}

    def _paid_invoice_spans(self, customer_id: Optional[int] = None):
        last_payment = self.scope.query(
            Payment, Payment.invoice_id, func.max(Payment.payment_date).label("last_payment")
        ).group_by(Payment.invoice_id).subquery()

        query = self.scope.query(Invoice, Invoice.invoice_date, last_payment.c.last_payment).join(
            last_payment, last_payment.c.invoice_id == Invoice.id
        ).filter(Invoice.status == InvoiceStatus.PAID.value)
        if customer_id is not None:
            query = query.filter(Invoice.customer_id == customer_id)
        return query.all()

    def get_aging_report(self, today: Optional[date] = None) -> AgingReport:
        today = today or date.today()
        invoices = self._open_invoices_query().all()
        names = self._customer_names({invoice.customer_id for invoice in invoices})
        report = build_aging_report(invoices, names, today)
        logger.info(f"AR aging for tenant {self.scope.tenant_id}: {len(report.rows)} customers")
        return report

    def get_ar_summary(self, today: Optional[date] = None) -> ArSummary:
        """Totals of open balances split into current and overdue"""
        today = today or date.today()
        invoices = self._open_invoices_query().all()

        total_receivables = ZERO
        current_amount = ZERO
        overdue_amount = ZERO
        for invoice in invoices:
            balance = to_decimal(invoice.balance_due)
            total_receivables += balance
            if invoice.due_date is not None and invoice.due_date < today:
                overdue_amount += balance
            else:
                current_amount += balance

        return ArSummary(
            total_receivables=quantize_money(total_receivables),
            current_amount=quantize_money(current_amount),
            overdue_amount=quantize_money(overdue_amount),
            open_invoice_count=len(invoices),
            average_days_to_pay=average_days_to_pay(self._paid_invoice_spans()),
        )

    def get_customer_detail(self, customer_id: int, today: Optional[date] = None) -> Optional[CustomerArDetail]:
        """AR detail for one customer, or None when the customer is not in this tenant"""
        today = today or date.today()
        customer = self.scope.get(Contact, customer_id)
        if customer is None:
            return None

        billed, paid = self.scope.query(
            Invoice,
            func.coalesce(func.sum(Invoice.total), 0),
            func.coalesce(func.sum(Invoice.amount_paid), 0),
        ).filter(Invoice.customer_id == customer_id).one()

        open_invoices = self._open_invoices_query().filter(
            Invoice.customer_id == customer_id
        ).order_by(Invoice.due_date.asc(), Invoice.id.asc()).all()

        items = []
        balance = ZERO
        for invoice in open_invoices:
            item = OpenInvoice.model_validate(invoice)
            item.days_overdue = max(0, days_overdue(invoice.due_date, today))
            items.append(item)
            balance += to_decimal(invoice.balance_due)

        return CustomerArDetail(
            customer_id=customer.id,
            customer_name=customer.display_name,
            total_billed=quantize_money(billed),
            total_paid=quantize_money(paid),
            current_balance=quantize_money(balance),
            average_days_to_pay=average_days_to_pay(self._paid_invoice_spans(customer_id)),
            open_invoices=items,
        )
