from datetime import date
from decimal import Decimal

from salina.schemas import AuthorLiabilityRow
from salina.services.liability_service import LiabilityService, summarize_liability


def test_summary_groups_statements_by_author(make, scope, tenant):
    ada = make.contact(tenant, first_name="Ada", last_name="Lovelace", payment_method="direct_deposit")
    mary = make.contact(tenant, first_name="Mary", last_name="Shelley")
    orchard = make.title(tenant, "The Silent Orchard")
    engines = make.title(tenant, "Analytical Engines")
    make.contract(tenant, ada, orchard)
    make.contract(tenant, ada, engines)
    make.contract(tenant, mary, orchard)

    make.statement(tenant, ada, "100.10", date(2024, 12, 31))
    make.statement(tenant, ada, "200.20", date(2025, 3, 31))
    make.statement(tenant, mary, "50.05", date(2024, 9, 30))

    summary = LiabilityService(scope).get_liability_summary()

    assert summary.total_unpaid_liability == Decimal("350.35")
    assert summary.authors_with_pending_payments == 2
    assert summary.oldest_unpaid_statement == date(2024, 9, 30)
    assert summary.average_payment_per_author == Decimal("175.18")

    first, second = summary.liability_by_author
    assert first.author_name == "Ada Lovelace"
    assert first.total_owed == Decimal("300.30")
    assert first.unpaid_statements == 2
    assert first.title_count == 2
    assert first.oldest_statement == date(2024, 12, 31)
    assert first.payment_method == "direct_deposit"
    assert second.author_name == "Mary Shelley"
    assert second.payment_method is None


def test_author_totals_sum_to_tenant_total(make, scope, tenant):
    amounts = ["0.01", "19.99", "333.33", "1000.00", "0.67"]
    for i, amount in enumerate(amounts):
        author = make.contact(tenant, first_name=f"Author{i}")
        make.statement(tenant, author, amount, date(2025, 3, 31))
        make.statement(tenant, author, amount, date(2025, 6, 30))

    summary = LiabilityService(scope).get_liability_summary()

    per_author = sum((row.total_owed for row in summary.liability_by_author), Decimal("0"))
    assert per_author == summary.total_unpaid_liability == Decimal("2708.00")


def test_no_statements_is_zero_safe(scope):
    summary = LiabilityService(scope).get_liability_summary()

    assert summary.total_unpaid_liability == Decimal("0.00")
    assert summary.authors_with_pending_payments == 0
    assert summary.oldest_unpaid_statement is None
    assert summary.average_payment_per_author == Decimal("0.00")
    assert summary.liability_by_author == []


def test_summarize_liability_is_exact_over_many_rows():
    rows = [
        AuthorLiabilityRow(author_id=i, author_name=f"A{i}", title_count=1,
                           unpaid_statements=1, total_owed=Decimal("0.10"))
        for i in range(1000)
    ]

    totals = summarize_liability(rows)

    assert totals.total == Decimal("100.00")
    assert totals.author_count == 1000
    assert totals.average == Decimal("0.10")


def test_advance_balances_sorted_by_remaining(make, scope, tenant):
    ada = make.contact(tenant, first_name="Ada", last_name="Lovelace")
    small = make.title(tenant, "Small Advance")
    big = make.title(tenant, "Big Advance")
    done = make.title(tenant, "Fully Recouped")
    make.contract(tenant, ada, small, advance_amount="1000", advance_recouped="900")
    make.contract(tenant, ada, big, advance_amount="5000", advance_recouped="1250.50")
    make.contract(tenant, ada, done, advance_amount="2000", advance_recouped="2000")

    balances = LiabilityService(scope).get_advance_balances()

    assert [b.title_name for b in balances] == ["Big Advance", "Small Advance"]
    assert balances[0].remaining_balance == Decimal("3749.50")
    assert balances[1].remaining_balance == Decimal("100.00")


def test_statements_of_other_tenants_are_excluded(make, scope, tenant, other_tenant):
    mine = make.contact(tenant)
    theirs = make.contact(other_tenant, first_name="Rival")
    make.statement(tenant, mine, "10.00", date(2025, 3, 31))
    make.statement(other_tenant, theirs, "99999.00", date(2020, 3, 31))

    summary = LiabilityService(scope).get_liability_summary()

    assert summary.total_unpaid_liability == Decimal("10.00")
    assert summary.oldest_unpaid_statement == date(2025, 3, 31)


def test_liability_metrics_treat_everything_as_unpaid(make, scope, tenant):
    ada = make.contact(tenant)
    make.statement(tenant, ada, "75.50", date(2025, 3, 31))

    metrics = LiabilityService(scope).get_liability_metrics()

    assert metrics.total_liability == Decimal("75.50")
    assert metrics.paid_amount == Decimal("0.00")
    assert metrics.unpaid_amount == Decimal("75.50")
    assert metrics.liability_by_author[0].unpaid_statements_count == 1
