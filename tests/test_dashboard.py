from datetime import date, datetime
from decimal import Decimal

import pytest

from salina.services.dashboard_service import (
    DashboardService, next_statement_deadline, quarter_end, statement_deadlines
)


@pytest.mark.parametrize("today, end", [
    (date(2025, 1, 15), date(2025, 3, 31)),
    (date(2025, 6, 30), date(2025, 6, 30)),
    (date(2025, 8, 2), date(2025, 9, 30)),
    (date(2025, 11, 20), date(2025, 12, 31)),
])
def test_quarter_end(today, end):
    assert quarter_end(today) == end


def test_deadline_rolls_into_next_year():
    assert next_statement_deadline(date(2025, 12, 1)) == date(2026, 1, 30)


def test_finance_stats(make, scope, tenant, today):
    title = make.title(tenant)
    author = make.contact(tenant)
    make.sale(tenant, title, quantity=10, unit_price="15.00", sale_date=date(2025, 6, 3))
    make.sale(tenant, title, quantity=8, unit_price="12.50", sale_date=date(2025, 5, 20))
    make.statement(tenant, author, "42.10", date(2025, 3, 31))

    stats = DashboardService(scope).get_finance_stats(today)

    assert stats.current_month_revenue == Decimal("150.00")
    assert stats.previous_month_revenue == Decimal("100.00")
    assert stats.revenue_trend_percent == 50.0
    assert stats.total_liability == Decimal("42.10")
    assert stats.next_statement_deadline == date(2025, 7, 30)
    assert stats.days_until_deadline == 30


def test_trend_is_none_without_previous_revenue(scope, today):
    stats = DashboardService(scope).get_finance_stats(today)

    assert stats.revenue_trend_percent is None
    assert stats.current_month_revenue == Decimal("0.00")


def test_current_month_revenue_runs_to_month_end(make, scope, tenant):
    title = make.title(tenant)
    make.sale(tenant, title, quantity=2, unit_price="20.00", sale_date=date(2025, 6, 25))

    stats = DashboardService(scope).get_finance_stats(date(2025, 6, 15))

    assert stats.current_month_revenue == Decimal("40.00")


def test_statement_deadlines_cover_two_quarters():
    deadlines = statement_deadlines(date(2025, 11, 20))

    assert [(d.due_date, d.description) for d in deadlines] == [
        (date(2026, 1, 30), "Q4 2025 Statement Generation"),
        (date(2026, 4, 30), "Q1 2026 Statement Generation"),
    ]


def test_owner_dashboard(make, scope, tenant, today):
    orchard = make.title(tenant, "The Silent Orchard")
    harbor = make.title(tenant, "Harbor Lights")
    ada = make.contact(tenant)
    grace = make.contact(tenant, first_name="Grace", last_name="Hopper", email="grace@example.com")
    make.contract(tenant, ada, orchard)
    make.contract(tenant, grace, harbor)
    make.sale(tenant, orchard, quantity=10, unit_price="15.00", sale_date=date(2025, 6, 3))
    make.sale(tenant, harbor, quantity=4, unit_price="10.00", sale_date=date(2025, 2, 10))
    make.sale(tenant, orchard, quantity=1, unit_price="99.00", sale_date=date(2024, 12, 31))
    make.isbn(tenant, status="assigned", assigned_at=datetime(2025, 6, 10))
    make.isbn(tenant, status="assigned", assigned_at=datetime(2025, 4, 2))
    make.isbn(tenant)
    make.isbn(tenant)

    dashboard = DashboardService(scope).get_owner_dashboard(today)

    assert [(b.period, b.revenue) for b in dashboard.revenue_trend] == [
        ("Jan 2025", Decimal("0.00")),
        ("Feb 2025", Decimal("40.00")),
        ("Mar 2025", Decimal("0.00")),
        ("Apr 2025", Decimal("0.00")),
        ("May 2025", Decimal("0.00")),
        ("Jun 2025", Decimal("150.00")),
    ]
    assert [(t.title, t.units, t.revenue) for t in dashboard.top_selling_titles] == [
        ("The Silent Orchard", 10, Decimal("150.00")),
        ("Harbor Lights", 4, Decimal("40.00")),
    ]
    assert [(a.name, a.revenue) for a in dashboard.author_performance] == [
        ("Ada Lovelace", Decimal("150.00")),
        ("Grace Hopper", Decimal("40.00")),
    ]
    assert [(p.month, p.utilization) for p in dashboard.isbn_utilization_trend] == [
        ("Jan 2025", 0.0), ("Feb 2025", 0.0), ("Mar 2025", 0.0),
        ("Apr 2025", 25.0), ("May 2025", 0.0), ("Jun 2025", 25.0),
    ]


def test_owner_dashboard_limits_top_titles_to_five(make, scope, tenant, today):
    for n in range(7):
        title = make.title(tenant, f"Title {n}")
        make.sale(tenant, title, quantity=1, unit_price=f"{10 + n}.00", sale_date=date(2025, 5, 1))

    dashboard = DashboardService(scope).get_owner_dashboard(today)

    assert [t.title for t in dashboard.top_selling_titles] == [f"Title {n}" for n in range(6, 1, -1)]


def test_owner_dashboard_without_isbns(scope, today):
    dashboard = DashboardService(scope).get_owner_dashboard(today)

    assert {p.utilization for p in dashboard.isbn_utilization_trend} == {0.0}
    assert dashboard.top_selling_titles == []
    assert dashboard.author_performance == []


def test_finance_dashboard(db, make, scope, tenant, today):
    ada = make.contact(tenant)
    grace = make.contact(tenant, first_name="Grace", last_name="Hopper", email="grace@example.com")
    for author, amount, created_at in [
        (ada, "42.10", datetime(2025, 4, 5)),
        (grace, "100.00", datetime(2025, 6, 1)),
        (ada, "10.00", datetime(2024, 5, 1)),
    ]:
        statement = make.statement(tenant, author, amount, date(2025, 3, 31))
        statement.created_at = created_at
    db.flush()

    dashboard = DashboardService(scope).get_finance_dashboard(today)

    trend = {point.month: point.liability for point in dashboard.liability_trend}
    assert len(dashboard.liability_trend) == 12
    assert dashboard.liability_trend[0].month == "Jul 2024"
    assert dashboard.liability_trend[-1].month == "Jun 2025"
    assert trend["Apr 2025"] == Decimal("42.10")
    assert trend["Jun 2025"] == Decimal("100.00")
    assert sum(trend.values()) == Decimal("142.10")
    assert [d.description for d in dashboard.upcoming_deadlines] == [
        "Q2 2025 Statement Generation",
        "Q3 2025 Statement Generation",
    ]
    assert [(a.name, a.amount) for a in dashboard.top_authors_by_royalty] == [
        ("Grace Hopper", Decimal("100.00")),
        ("Ada Lovelace", Decimal("52.10")),
    ]


def test_dashboard_routes(client, auth_headers, make, tenant):
    make.title(tenant)

    owner = client.get("/api/v1/dashboard/owner", headers=auth_headers("owner"))
    finance = client.get("/api/v1/dashboard/finance/analytics", headers=auth_headers("finance"))

    assert owner.status_code == 200
    assert len(owner.json()["data"]["revenue_trend"]) == 6
    assert finance.status_code == 200
    assert len(finance.json()["data"]["upcoming_deadlines"]) == 2
