"""Pure aggregation over an in-memory list of transactions.

Nothing here touches the database or keeps state between calls; callers
fetch transactions from the store and pass them in.
"""
import calendar
from collections import defaultdict
from datetime import date
from decimal import Decimal
from typing import Dict, Iterable, List, Literal, Optional

from mpesa_ledger.core.constants import OUTFLOW_TYPES, TransactionType
from mpesa_ledger.schemas.report import (
    CategoryShare,
    ContactSummary,
    MonthlyStats,
    PeriodComparison,
    SpendingInsight,
)
from mpesa_ledger.schemas.transaction import TransactionRead

ZERO = Decimal("0")

# Outgoing directions counted as "money sent" to a contact
SENT_CONTACT_TYPES = (TransactionType.SENT, TransactionType.PAYMENT)


def _percentage(part: Decimal, whole: Decimal) -> float:
    if not whole:
        return 0.0
    return float(part / whole * 100)


def _month_key(year: int, month: int) -> str:
    return f"{year}-{month:02d}"


def _prev_month(year: int, month: int) -> tuple[int, int]:
    if month == 1:
        return year - 1, 12
    return year, month - 1


# ==================== MONTHLY BUCKETS ====================

def transactions_for_month(transactions: Iterable[TransactionRead], year: int, month: int) -> List[TransactionRead]:
    """Transactions dated in the calendar month (month is 1-12)."""
    return [t for t in transactions if t.date.year == year and t.date.month == month]


def calculate_monthly_stats(transactions: Iterable[TransactionRead], year: int, month: int) -> MonthlyStats:
    month_transactions = transactions_for_month(transactions, year, month)

    total_spent = ZERO
    total_received = ZERO
    category_breakdown: Dict[str, Decimal] = defaultdict(lambda: ZERO)

    for t in month_transactions:
        if t.type == TransactionType.RECEIVED:
            total_received += t.amount
        else:
            total_spent += t.amount
            category_breakdown[t.category] += t.amount

    return MonthlyStats(
        month=_month_key(year, month),
        month_name=f"{calendar.month_name[month]} {year}",
        total_spent=total_spent,
        total_received=total_received,
        net_flow=total_received - total_spent,
        transaction_count=len(month_transactions),
        category_breakdown=dict(category_breakdown),
        transactions=month_transactions,
    )


def last_n_months_stats(
    transactions: Iterable[TransactionRead],
    n: int,
    today: Optional[date] = None,
) -> List[MonthlyStats]:
    """Stats for the current month and the n-1 before it, newest first."""
    transactions = list(transactions)
    today = today or date.today()
    year, month = today.year, today.month

    stats = []
    for _ in range(n):
        stats.append(calculate_monthly_stats(transactions, year, month))
        year, month = _prev_month(year, month)
    return stats


def top_categories(monthly_stats: MonthlyStats, limit: int = 5) -> List[CategoryShare]:
    total = monthly_stats.total_spent
    shares = [
        CategoryShare(category=category, amount=amount, percentage=_percentage(amount, total))
        for category, amount in monthly_stats.category_breakdown.items()
    ]
    # Ties broken by name so the order does not depend on input order
    shares.sort(key=lambda s: (-s.amount, s.category))
    return shares[:limit]


def daily_average(monthly_stats: MonthlyStats) -> Decimal:
    """Month spend over the number of calendar days in that month."""
    year, month = (int(part) for part in monthly_stats.month.split("-"))
    days_in_month = calendar.monthrange(year, month)[1]
    return monthly_stats.total_spent / days_in_month


def compare_with_previous_month(transactions: Iterable[TransactionRead], year: int, month: int) -> PeriodComparison:
    transactions = list(transactions)
    current = calculate_monthly_stats(transactions, year, month)
    previous = calculate_monthly_stats(transactions, *_prev_month(year, month))

    spending_change = current.total_spent - previous.total_spent
    return PeriodComparison(
        current=current,
        previous=previous,
        spending_change=spending_change,
        spending_change_percentage=_percentage(spending_change, previous.total_spent),
    )


# ==================== CONTACTS ====================

def top_contacts(
    transactions: Iterable[TransactionRead],
    direction: Literal["sent", "received"] = "sent",
    by: Literal["amount", "count"] = "amount",
    limit: int = 10,
) -> List[ContactSummary]:
    """
    Rank counterparties by total amount or by number of transactions.

    "sent" looks at recipients of sent money and payments; "received" at
    senders of received money.
    """
    totals: Dict[str, Decimal] = defaultdict(lambda: ZERO)
    counts: Dict[str, int] = defaultdict(int)

    for t in transactions:
        if direction == "received":
            if t.type != TransactionType.RECEIVED:
                continue
            name = t.sender
        else:
            if t.type not in SENT_CONTACT_TYPES:
                continue
            name = t.recipient
        if not name:
            continue
        totals[name] += t.amount
        counts[name] += 1

    contacts = [ContactSummary(name=name, total=totals[name], count=counts[name]) for name in totals]
    if by == "count":
        contacts.sort(key=lambda c: (-c.count, -c.total, c.name))
    else:
        contacts.sort(key=lambda c: (-c.total, -c.count, c.name))
    return contacts[:limit]


# ==================== LOCAL INSIGHTS ====================

def _money(amount: Decimal) -> str:
    return f"KSh {amount:,.2f}"


def generate_local_insights(transactions: Iterable[TransactionRead]) -> List[SpendingInsight]:
    """Rule-based insight cards that need no remote service."""
    transactions = list(transactions)
    if not transactions:
        return []

    insights = []
    outflows = [t for t in transactions if t.type in OUTFLOW_TYPES]
    spending = sum((t.amount for t in outflows), ZERO)
    income = sum((t.amount for t in transactions if t.type == TransactionType.RECEIVED), ZERO)

    if income > spending:
        insights.append(SpendingInsight(
            type="positive", title="Great Job!", severity="low",
            message=f"Your income ({_money(income)}) exceeds spending ({_money(spending)}).",
        ))
    else:
        insights.append(SpendingInsight(
            type="warning", title="Watch Your Spending", severity="medium",
            message=f"You're spending more ({_money(spending)}) than you're earning ({_money(income)}).",
        ))

    by_category: Dict[str, Decimal] = defaultdict(lambda: ZERO)
    for t in outflows:
        by_category[t.category] += t.amount
    if by_category:
        category, amount = min(by_category.items(), key=lambda kv: (-kv[1], kv[0]))
        insights.append(SpendingInsight(
            type="info", title="Top Spending Category", severity="low",
            message=(
                f"You spend the most on {category} "
                f"({_percentage(amount, spending):.1f}% of total spending), {_money(amount)}."
            ),
        ))

    if outflows:
        average = spending / len(outflows)
        insights.append(SpendingInsight(
            type="info", title="Average Transaction", severity="low",
            message=f"Your average outgoing transaction is {_money(average)}.",
        ))

    senders = top_contacts(transactions, direction="received", by="count", limit=1)
    if senders:
        insights.append(SpendingInsight(
            type="positive", title="Most Frequent Sender", severity="low",
            message=f"{senders[0].name} has sent you money {senders[0].count} times.",
        ))

    recipients = top_contacts(transactions, direction="sent", by="count", limit=1)
    if recipients:
        insights.append(SpendingInsight(
            type="info", title="Most Frequent Recipient", severity="low",
            message=f"You've sent money to {recipients[0].name} {recipients[0].count} times.",
        ))

    withdrawals = [t for t in transactions if t.type == TransactionType.WITHDRAWAL]
    if withdrawals:
        total_withdrawn = sum((t.amount for t in withdrawals), ZERO)
        insights.append(SpendingInsight(
            type="info", title="Cash Withdrawals", severity="low",
            message=f"You've withdrawn {_money(total_withdrawn)} in cash across {len(withdrawals)} transactions.",
        ))

    if income > 0:
        savings_rate = _percentage(income - spending, income)
        if savings_rate > 0:
            advice = "Great work!" if savings_rate >= 20 else "Try to increase your savings rate."
            insights.append(SpendingInsight(
                type="tip", title="Savings Rate", severity="low",
                message=f"You're saving {savings_rate:.1f}% of your income. {advice}",
            ))

    purchases = [t for t in transactions if t.type in SENT_CONTACT_TYPES]
    if purchases:
        biggest = max(purchases, key=lambda t: (t.amount, t.date, t.id))
        insights.append(SpendingInsight(
            type="warning", title="Biggest Purchase", severity="medium",
            message=(
                f"Your biggest spend was {_money(biggest.amount)} to "
                f"{biggest.recipient or 'Unknown'} on {biggest.date:%d %b %Y}."
            ),
        ))

    return insights
