import csv
from datetime import date, datetime
from decimal import Decimal
from io import BytesIO, StringIO

from openpyxl import load_workbook

from salina.schemas import (
    AdvanceBalance, AgingReport, AgingRow, AuthorLiabilityRow, LiabilitySummary
)
from salina.services import export_service
from salina.services.contact_service import ContactService
from salina.services.sales_report_service import build_sales_report

GENERATED = datetime(2025, 6, 30, 9, 15, 0)


def parse(text):
    return list(csv.reader(StringIO(text)))


def aging_report():
    row = AgingRow(customer_id=1, customer_name='Harbor "Main St", Books', current=Decimal("10.00"),
                   days_1_30=Decimal("20.50"), total=Decimal("30.50"))
    totals = AgingRow(customer_name="Total", current=Decimal("10.00"), days_1_30=Decimal("20.50"),
                      total=Decimal("30.50"))
    return AgingReport(as_of=date(2025, 6, 30), rows=[row], totals=totals)


def test_write_csv_quotes_only_when_needed():
    text = export_service.write_csv([["plain", "a,b", 'say "hi"', "two\nlines", None, Decimal("1.5")]])

    assert text.startswith('plain,"a,b","say ""hi""","two\nlines",,1.50')
    assert text.endswith("\r\n")
    assert parse(text) == [["plain", "a,b", 'say "hi"', "two\nlines", "", "1.50"]]


def test_aging_csv_layout():
    rows = parse(export_service.aging_report_csv(aging_report(), generated_at=GENERATED))

    assert rows[0] == ["AR Aging Report - Generated: 2025-06-30 09:15:00"]
    assert rows[1] == []
    assert rows[2] == export_service.AGING_HEADERS
    assert rows[3] == ['Harbor "Main St", Books', "10.00", "20.50", "0.00", "0.00", "0.00", "30.50"]
    assert rows[4] == ["TOTAL", "10.00", "20.50", "0.00", "0.00", "0.00", "30.50"]


def test_sales_csv_ends_with_totals():
    report = build_sales_report([
        ("1", "The Silent Orchard", 10, Decimal("150.00")),
        ("2", "Analytical Engines", 0, Decimal("0")),
    ])

    rows = parse(export_service.sales_report_csv(report))

    assert rows[0] == export_service.SALES_HEADERS
    assert rows[1] == ["The Silent Orchard", "10", "150.00", "15.00"]
    assert rows[2] == ["Analytical Engines", "0", "0.00", "0.00"]
    assert rows[-1] == ["Total", "10", "150.00", "15.00"]


def test_liability_csv_sections():
    summary = LiabilitySummary(
        total_unpaid_liability=Decimal("300.30"),
        authors_with_pending_payments=1,
        oldest_unpaid_statement=None,
        average_payment_per_author=Decimal("300.30"),
        liability_by_author=[AuthorLiabilityRow(
            author_id=1, author_name="Ada Lovelace", title_count=2,
            unpaid_statements=2, total_owed=Decimal("300.30"),
        )],
        advance_balances=[AdvanceBalance(
            contract_id=1, author_id=1, author_name="Ada Lovelace", title_id=4,
            title_name="Analytical Engines", advance_amount=Decimal("5000"),
            advance_recouped=Decimal("1250.50"), remaining_balance=Decimal("3749.50"),
        )],
    )

    rows = parse(export_service.liability_report_csv(summary))

    assert rows[0] == ["ROYALTY LIABILITY SUMMARY"]
    assert rows[1] == ["Total Unpaid Liability", "300.30"]
    assert rows[3] == ["Oldest Unpaid Statement", "N/A"]
    assert ["LIABILITY BY AUTHOR"] in rows
    assert ["Ada Lovelace", "2", "2", "300.30", "", "Not specified"] in rows
    assert ["ACTIVE ADVANCES"] in rows
    assert rows[-1] == ["Ada Lovelace", "Analytical Engines", "5000.00", "1250.50", "3749.50"]


def test_liability_csv_omits_advances_section_when_empty():
    summary = LiabilitySummary(
        total_unpaid_liability=Decimal("0.00"), authors_with_pending_payments=0,
        average_payment_per_author=Decimal("0.00"), liability_by_author=[], advance_balances=[],
    )

    assert "ACTIVE ADVANCES" not in export_service.liability_report_csv(summary)


def test_contacts_csv_has_bom_and_never_the_encrypted_tax_id(make, scope, tenant):
    make.contact(tenant, first_name="Ada", last_name="Lovelace", tin_encrypted="c2VjcmV0LWNpcGhlcnRleHQ=",
                 tin_type="ssn", tin_last_four="6789", roles=("author", "customer"))

    text = export_service.contacts_csv(ContactService(scope).get_export_rows(), generated_at=GENERATED)

    assert text.startswith(export_service.UTF8_BOM)
    assert "c2VjcmV0LWNpcGhlcnRleHQ=" not in text
    rows = parse(text[len(export_service.UTF8_BOM):])
    assert rows[0] == ["Salina ERP Export - Contacts - Generated: 2025-06-30 09:15:00"]
    assert rows[2] == export_service.CONTACT_HEADERS
    assert rows[3][1:] == [
        "Ada", "Lovelace", "ada@example.com", "", "author, customer", "", "ssn", "6789", "active"
    ]


def test_contact_export_filters_by_role(make, scope, tenant):
    make.contact(tenant, first_name="Ada", roles=("author",))
    make.contact(tenant, first_name="Harbor", roles=("customer",))

    rows = ContactService(scope).get_export_rows(role="customer")

    assert [row["first_name"] for row in rows] == ["Harbor"]


def test_format_usd():
    assert export_service.format_usd(Decimal("1234.5")) == "$1,234.50"
    assert export_service.format_usd(Decimal("-3")) == "-$3.00"
    assert export_service.format_usd(None) == "$0.00"


def test_aging_html_escapes_names():
    report = aging_report()
    report.rows[0].customer_name = "<script>alert(1)</script>"

    html = export_service.aging_report_html(report, company_name="Ink & Quill Press")

    assert "<script>" not in html
    assert "&lt;script&gt;" in html
    assert "Ink &amp; Quill Press" in html
    assert "AR Aging Report - June 30, 2025" in html
    assert "$30.50" in html


def test_aging_pdf_is_a_pdf():
    content = export_service.aging_report_pdf(aging_report(), "Ink & Quill Press", generated_at=GENERATED)

    assert content.startswith(b"%PDF")


def test_aging_xlsx_contains_rows_and_totals():
    content = export_service.aging_report_xlsx(aging_report(), "Ink & Quill Press", generated_at=GENERATED)

    ws = load_workbook(BytesIO(content)).active
    assert ws["A1"].value == "Ink & Quill Press"
    assert [cell.value for cell in ws[5]] == export_service.AGING_HEADERS
    assert ws["A6"].value == 'Harbor "Main St", Books'
    assert ws["A7"].value == "Total"
    assert float(ws["G7"].value) == 30.50
