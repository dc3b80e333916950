"""
Export Service - CSV, printable HTML, PDF and Excel renderings of reports

Everything here is formatting only: callers pass already-aggregated report
objects and get text or bytes back.
"""
from datetime import date, datetime
from decimal import Decimal
from io import BytesIO, StringIO
from typing import Iterable, List, Optional, Sequence
from xml.sax.saxutils import escape as xml_escape
import csv

from jinja2 import Environment, PackageLoader, select_autoescape

from salina.core.money import to_decimal
from salina.schemas import AgingReport, AuditLogEntry, LiabilitySummary, SalesReport

UTF8_BOM = "\ufeff"

AGING_HEADERS = ["Customer", "Current", "1-30 Days", "31-60 Days", "61-90 Days", "90+ Days", "Total"]
SALES_HEADERS = ["Group", "Total Units", "Total Revenue", "Avg Unit Price"]
AUTHOR_LIABILITY_HEADERS = ["Author", "Titles", "Unpaid Statements", "Total Owed", "Oldest Statement", "Payment Method"]
ADVANCE_HEADERS = ["Author", "Title", "Advance Amount", "Recouped", "Remaining Balance"]
AUDIT_HEADERS = ["Timestamp", "User", "Action Type", "Resource Type", "Resource ID", "Status", "Summary"]
CONTACT_HEADERS = [
    "ID", "First Name", "Last Name", "Email", "Phone", "Roles",
    "Payment Method", "Tax ID Type", "Tax ID Last Four", "Status",
]
CONTACT_FIELDS = [
    "id", "first_name", "last_name", "email", "phone", "roles",
    "payment_method", "tin_type", "tin_last_four", "status",
]

_templates = Environment(
    loader=PackageLoader("salina", "templates"),
    autoescape=select_autoescape(["html", "xml"]),
)


def _cell(value) -> str:
    if value is None:
        return ""
    if isinstance(value, Decimal):
        return f"{value:.2f}"
    if isinstance(value, datetime):
        return value.strftime("%Y-%m-%d %H:%M:%S")
    if isinstance(value, date):
        return value.isoformat()
    return str(value)


def write_csv(rows: Iterable[Sequence], bom: bool = False) -> str:
    """
    Serialize rows with minimal quoting.

    A field containing a comma, quote or line break is wrapped in quotes and
    internal quotes are doubled. An empty sequence writes a blank line.
    """
    buffer = StringIO()
    if bom:
        buffer.write(UTF8_BOM)
    writer = csv.writer(buffer, quoting=csv.QUOTE_MINIMAL, lineterminator="\r\n")
    for row in rows:
        writer.writerow([_cell(value) for value in row])
    return buffer.getvalue()


def _generated_stamp(generated_at: Optional[datetime]) -> str:
    return (generated_at or datetime.now()).strftime("%Y-%m-%d %H:%M:%S")


def format_usd(value) -> str:
    amount = to_decimal(value)
    sign = "-" if amount < 0 else ""
    return f"{sign}${abs(amount):,.2f}"


def _aging_cells(row) -> list:
    return [row.customer_name, row.current, row.days_1_30, row.days_31_60,
            row.days_61_90, row.days_over_90, row.total]


# ==================== CSV ====================

def sales_report_csv(report: SalesReport) -> str:
    rows: List[Sequence] = [SALES_HEADERS]
    for row in report.rows:
        rows.append([row.group_label, row.total_units, row.total_revenue, row.avg_unit_price])
    totals = report.totals
    rows.append([totals.group_label, totals.total_units, totals.total_revenue, totals.avg_unit_price])
    return write_csv(rows)


def liability_report_csv(summary: LiabilitySummary) -> str:
    rows: List[Sequence] = [
        ["ROYALTY LIABILITY SUMMARY"],
        ["Total Unpaid Liability", summary.total_unpaid_liability],
        ["Authors with Pending Payments", summary.authors_with_pending_payments],
        ["Oldest Unpaid Statement", summary.oldest_unpaid_statement or "N/A"],
        ["Average Payment per Author", summary.average_payment_per_author],
        [],
        ["LIABILITY BY AUTHOR"],
        AUTHOR_LIABILITY_HEADERS,
    ]
    for author in summary.liability_by_author:
        rows.append([
            author.author_name,
            author.title_count,
            author.unpaid_statements,
            author.total_owed,
            author.oldest_statement or "",
            author.payment_method or "Not specified",
        ])

    if summary.advance_balances:
        rows.extend([[], ["ACTIVE ADVANCES"], ADVANCE_HEADERS])
        for advance in summary.advance_balances:
            rows.append([
                advance.author_name,
                advance.title_name,
                advance.advance_amount,
                advance.advance_recouped,
                advance.remaining_balance,
            ])
    return write_csv(rows)


def aging_report_csv(report: AgingReport, generated_at: Optional[datetime] = None) -> str:
    rows: List[Sequence] = [
        [f"AR Aging Report - Generated: {_generated_stamp(generated_at)}"],
        [],
        AGING_HEADERS,
    ]
    rows.extend(_aging_cells(row) for row in report.rows)
    rows.append(["TOTAL"] + _aging_cells(report.totals)[1:])
    return write_csv(rows)


def audit_log_csv(entries: Iterable[AuditLogEntry]) -> str:
    rows: List[Sequence] = [AUDIT_HEADERS]
    for entry in entries:
        rows.append([
            entry.created_at,
            entry.user_email or "System",
            entry.action_type,
            entry.resource_type,
            entry.resource_id,
            entry.status,
            entry.summary,
        ])
    return write_csv(rows)


def contacts_csv(contacts: Iterable[dict], generated_at: Optional[datetime] = None) -> str:
    """Contact export; only whitelisted fields are written, never the encrypted tax id"""
    rows: List[Sequence] = [
        [f"Salina ERP Export - Contacts - Generated: {_generated_stamp(generated_at)}"],
        [],
        CONTACT_HEADERS,
    ]
    for contact in contacts:
        rows.append([contact.get(field) for field in CONTACT_FIELDS])
    return write_csv(rows, bom=True)


# ==================== HTML / PDF / EXCEL ====================

def aging_report_html(report: AgingReport, company_name: str) -> str:
    template = _templates.get_template("reports/ar_aging_print.html")
    return template.render(
        company_name=company_name,
        report_date=f"{report.as_of:%B} {report.as_of.day}, {report.as_of.year}",
        headers=AGING_HEADERS,
        rows=report.rows,
        totals=report.totals,
        usd=format_usd,
    )


def aging_report_pdf(report: AgingReport, company_name: str, generated_at: Optional[datetime] = None) -> bytes:
    from reportlab.lib import colors
    from reportlab.lib.enums import TA_CENTER, TA_RIGHT
    from reportlab.lib.pagesizes import A4, landscape
    from reportlab.lib.styles import ParagraphStyle, getSampleStyleSheet
    from reportlab.lib.units import inch
    from reportlab.platypus import Paragraph, SimpleDocTemplate, Spacer, Table, TableStyle

    buffer = BytesIO()
    doc = SimpleDocTemplate(buffer, pagesize=landscape(A4),
                            leftMargin=0.5*inch, rightMargin=0.5*inch,
                            topMargin=0.5*inch, bottomMargin=0.5*inch)

    styles = getSampleStyleSheet()
    title_style = ParagraphStyle('Title', parent=styles['Heading1'], alignment=TA_CENTER, fontSize=16)
    subtitle_style = ParagraphStyle('Subtitle', parent=styles['Normal'], alignment=TA_CENTER, fontSize=10)
    header_style = ParagraphStyle('Header', parent=styles['Normal'], alignment=TA_RIGHT, fontSize=9)

    elements = [
        Paragraph(xml_escape(company_name), title_style),
        Paragraph(f"AR Aging Report - {report.as_of:%B} {report.as_of.day}, {report.as_of.year}", subtitle_style),
        Paragraph(f"Generated: {_generated_stamp(generated_at)}", header_style),
        Spacer(1, 0.3*inch),
    ]

    table_data = [AGING_HEADERS]
    for row in report.rows:
        cells = _aging_cells(row)
        table_data.append([cells[0][:40]] + [format_usd(value) for value in cells[1:]])
    table_data.append(["TOTAL"] + [format_usd(value) for value in _aging_cells(report.totals)[1:]])

    table = Table(table_data, colWidths=[2.8*inch] + [1.1*inch] * 6)
    table.setStyle(TableStyle([
        ('BACKGROUND', (0, 0), (-1, 0), colors.HexColor('#1e40af')),
        ('TEXTCOLOR', (0, 0), (-1, 0), colors.whitesmoke),
        ('ALIGN', (0, 0), (-1, 0), 'CENTER'),
        ('ALIGN', (1, 1), (-1, -1), 'RIGHT'),
        ('FONTNAME', (0, 0), (-1, 0), 'Helvetica-Bold'),
        ('FONTSIZE', (0, 0), (-1, 0), 9),
        ('FONTSIZE', (0, 1), (-1, -1), 8),
        ('BOTTOMPADDING', (0, 0), (-1, 0), 8),
        ('BACKGROUND', (0, -1), (-1, -1), colors.HexColor('#f3f4f6')),
        ('FONTNAME', (0, -1), (-1, -1), 'Helvetica-Bold'),
        ('GRID', (0, 0), (-1, -1), 0.5, colors.grey),
    ]))
    elements.append(table)

    doc.build(elements)
    return buffer.getvalue()


def aging_report_xlsx(report: AgingReport, company_name: str, generated_at: Optional[datetime] = None) -> bytes:
    from openpyxl import Workbook
    from openpyxl.styles import Alignment, Border, Font, PatternFill, Side
    from openpyxl.utils import get_column_letter

    wb = Workbook()
    ws = wb.active
    ws.title = "AR Aging"

    header_font = Font(bold=True, color="FFFFFF", size=11)
    header_fill = PatternFill(start_color="1e40af", end_color="1e40af", fill_type="solid")
    total_font = Font(bold=True, size=10)
    total_fill = PatternFill(start_color="f3f4f6", end_color="f3f4f6", fill_type="solid")
    thin_border = Border(
        left=Side(style='thin'),
        right=Side(style='thin'),
        top=Side(style='thin'),
        bottom=Side(style='thin')
    )

    ws['A1'] = company_name
    ws['A1'].font = Font(bold=True, size=14)
    ws.merge_cells('A1:G1')
    ws['A2'] = f"AR Aging Report - {report.as_of:%B} {report.as_of.day}, {report.as_of.year}"
    ws['A3'] = f"Generated: {_generated_stamp(generated_at)}"

    for col, header in enumerate(AGING_HEADERS, 1):
        cell = ws.cell(row=5, column=col, value=header)
        cell.font = header_font
        cell.fill = header_fill
        cell.alignment = Alignment(horizontal='center')
        cell.border = thin_border

    row_number = 6
    for row in list(report.rows) + [report.totals]:
        cells = _aging_cells(row)
        ws.cell(row=row_number, column=1, value=cells[0]).border = thin_border
        for col, value in enumerate(cells[1:], 2):
            cell = ws.cell(row=row_number, column=col, value=value)
            cell.number_format = '#,##0.00'
            cell.alignment = Alignment(horizontal='right')
            cell.border = thin_border
        row_number += 1

    for col in range(1, len(AGING_HEADERS) + 1):
        ws.cell(row=row_number - 1, column=col).font = total_font
        ws.cell(row=row_number - 1, column=col).fill = total_fill

    for col, width in enumerate([40, 14, 14, 14, 14, 14, 16], 1):
        ws.column_dimensions[get_column_letter(col)].width = width

    buffer = BytesIO()
    wb.save(buffer)
    return buffer.getvalue()
