from datetime import date
from typing import List, Literal, Optional
from fastapi import APIRouter, Depends, Query

from mpesa_ledger.core.dependencies import get_store
from mpesa_ledger.schemas.report import (
    ContactSummary,
    MonthlyReport,
    MonthlyStats,
    PeriodComparison,
    SpendingInsight,
)
from mpesa_ledger.services import analytics
from mpesa_ledger.services.transaction_store import TransactionStore

report_router = APIRouter(prefix="/api/v1/stats", tags=["Reports"])


def _resolve_month(year: Optional[int], month: Optional[int]) -> tuple[int, int]:
    today = date.today()
    return year or today.year, month or today.month


@report_router.get("/monthly", response_model=MonthlyReport)
def monthly_report(
    year: Optional[int] = Query(None, ge=2000, le=2100),
    month: Optional[int] = Query(None, ge=1, le=12),
    top: int = Query(5, ge=1, le=20),
    store: TransactionStore = Depends(get_store),
):
    year, month = _resolve_month(year, month)
    stats = analytics.calculate_monthly_stats(store.list_transactions(), year, month)
    return {
        "stats": stats,
        "top_categories": analytics.top_categories(stats, limit=top),
        "daily_average": analytics.daily_average(stats),
    }


@report_router.get("/history", response_model=List[MonthlyStats])
def monthly_history(
    months: int = Query(6, ge=1, le=24),
    store: TransactionStore = Depends(get_store),
):
    stats = analytics.last_n_months_stats(store.list_transactions(), months)
    # Chart series; per-month member lists are left out
    return [s.model_copy(update={"transactions": []}) for s in stats]


@report_router.get("/compare", response_model=PeriodComparison)
def compare_months(
    year: Optional[int] = Query(None, ge=2000, le=2100),
    month: Optional[int] = Query(None, ge=1, le=12),
    store: TransactionStore = Depends(get_store),
):
    year, month = _resolve_month(year, month)
    return analytics.compare_with_previous_month(store.list_transactions(), year, month)


@report_router.get("/contacts", response_model=List[ContactSummary])
def top_contacts(
    direction: Literal["sent", "received"] = "sent",
    by: Literal["amount", "count"] = "amount",
    limit: int = Query(10, ge=1, le=100),
    store: TransactionStore = Depends(get_store),
):
    return analytics.top_contacts(store.list_transactions(), direction=direction, by=by, limit=limit)


@report_router.get("/insights", response_model=List[SpendingInsight])
def local_insights(store: TransactionStore = Depends(get_store)):
    return analytics.generate_local_insights(store.list_transactions())
