from datetime import date, datetime
from decimal import Decimal

import pytest

from mpesa_ledger.core.constants import TransactionType
from mpesa_ledger.schemas.transaction import TransactionRead
from mpesa_ledger.services import analytics

_counter = iter(range(1, 10_000))


def tx(tx_type, amount, when, party="JOHN KAMAU", category="Other"):
    received = tx_type == TransactionType.RECEIVED
    return TransactionRead(
        id=str(next(_counter)),
        type=tx_type,
        amount=Decimal(amount),
        recipient="" if received else party,
        sender=party if received else "",
        balance=Decimal("0"),
        date=when,
        raw_message="",
        category=category,
    )


@pytest.fixture
def ledger():
    return [
        tx(TransactionType.RECEIVED, "10000", datetime(2024, 2, 1, 9), party="EMPLOYER LTD", category="Income"),
        tx(TransactionType.PAYMENT, "3000", datetime(2024, 2, 3, 12), party="NAIVAS", category="Shopping"),
        tx(TransactionType.SENT, "1000", datetime(2024, 2, 10, 18), party="JOHN KAMAU", category="Personal Transfer"),
        tx(TransactionType.SENT, "1000", datetime(2024, 2, 11, 18), party="JOHN KAMAU", category="Personal Transfer"),
        tx(TransactionType.WITHDRAWAL, "2000", datetime(2024, 2, 29, 23, 59), party="AGENT 1", category="Cash Withdrawal"),
        tx(TransactionType.PAYMENT, "500", datetime(2024, 1, 31, 23, 59), party="KFC", category="Food & Dining"),
        tx(TransactionType.RECEIVED, "400", datetime(2024, 3, 1, 0, 0), party="MARY WANJIKU", category="Income"),
    ]


def test_monthly_stats_buckets_by_calendar_month(ledger):
    stats = analytics.calculate_monthly_stats(ledger, 2024, 2)

    assert stats.month == "2024-02"
    assert stats.month_name == "February 2024"
    assert stats.total_received == Decimal("10000")
    assert stats.total_spent == Decimal("7000")
    assert stats.net_flow == Decimal("3000")
    assert stats.transaction_count == 5
    assert stats.category_breakdown == {
        "Shopping": Decimal("3000"),
        "Personal Transfer": Decimal("2000"),
        "Cash Withdrawal": Decimal("2000"),
    }


def test_received_money_is_not_in_category_breakdown(ledger):
    stats = analytics.calculate_monthly_stats(ledger, 2024, 3)

    assert stats.total_received == Decimal("400")
    assert stats.category_breakdown == {}


def test_top_categories_sorted_with_name_tiebreak(ledger):
    stats = analytics.calculate_monthly_stats(ledger, 2024, 2)
    shares = analytics.top_categories(stats, limit=5)

    assert [s.category for s in shares] == ["Shopping", "Cash Withdrawal", "Personal Transfer"]
    assert shares[0].percentage == pytest.approx(3000 / 7000 * 100)
    assert sum(s.percentage for s in shares) == pytest.approx(100.0)
    assert len(analytics.top_categories(stats, limit=1)) == 1


def test_empty_month_is_division_safe(ledger):
    stats = analytics.calculate_monthly_stats(ledger, 2023, 6)

    assert stats.total_spent == 0
    assert analytics.top_categories(stats) == []
    assert analytics.daily_average(stats) == 0


def test_daily_average_uses_days_in_that_month(ledger):
    stats = analytics.calculate_monthly_stats(ledger, 2024, 2)

    assert analytics.daily_average(stats) == Decimal("7000") / 29


def test_compare_with_previous_month(ledger):
    comparison = analytics.compare_with_previous_month(ledger, 2024, 2)

    assert comparison.previous.month == "2024-01"
    assert comparison.spending_change == Decimal("6500")
    assert comparison.spending_change_percentage == pytest.approx(1300.0)


def test_compare_wraps_january_to_december_and_handles_zero(ledger):
    comparison = analytics.compare_with_previous_month(ledger, 2024, 1)

    assert comparison.previous.month == "2023-12"
    assert comparison.spending_change_percentage == 0.0


def test_last_n_months_newest_first(ledger):
    stats = analytics.last_n_months_stats(ledger, 3, today=date(2024, 3, 15))

    assert [s.month for s in stats] == ["2024-03", "2024-02", "2024-01"]


def test_top_contacts_by_amount_and_count(ledger):
    by_amount = analytics.top_contacts(ledger, direction="sent", by="amount")
    assert [(c.name, c.total, c.count) for c in by_amount] == [
        ("NAIVAS", Decimal("3000"), 1),
        ("JOHN KAMAU", Decimal("2000"), 2),
        ("KFC", Decimal("500"), 1),
    ]

    by_count = analytics.top_contacts(ledger, direction="sent", by="count", limit=1)
    assert by_count[0].name == "JOHN KAMAU"

    senders = analytics.top_contacts(ledger, direction="received")
    assert [c.name for c in senders] == ["EMPLOYER LTD", "MARY WANJIKU"]


def test_local_insights(ledger):
    insights = analytics.generate_local_insights(ledger)
    titles = [i.title for i in insights]

    assert insights[0].type == "positive"
    assert "Top Spending Category" in titles
    assert "Cash Withdrawals" in titles
    assert "Biggest Purchase" in titles
    assert analytics.generate_local_insights([]) == []


def test_spending_more_than_income_warns():
    insights = analytics.generate_local_insights([
        tx(TransactionType.SENT, "500", datetime(2024, 2, 1)),
    ])

    assert insights[0].type == "warning"
    assert "Savings Rate" not in [i.title for i in insights]
