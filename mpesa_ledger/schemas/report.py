from decimal import Decimal
from typing import Dict, List, Literal, Optional
from pydantic import BaseModel, Field

from mpesa_ledger.schemas.transaction import TransactionRead


# ------------------- Aggregation -------------------

class MonthlyStats(BaseModel):
    month: str = Field(..., description="YYYY-MM")
    month_name: str = Field(..., description="e.g. January 2024")
    total_spent: Decimal
    total_received: Decimal
    net_flow: Decimal
    transaction_count: int
    category_breakdown: Dict[str, Decimal]
    transactions: List[TransactionRead] = Field(default_factory=list)


class CategoryShare(BaseModel):
    category: str
    amount: Decimal
    percentage: float


class ContactSummary(BaseModel):
    name: str
    total: Decimal
    count: int


class PeriodComparison(BaseModel):
    current: MonthlyStats
    previous: MonthlyStats
    spending_change: Decimal
    spending_change_percentage: float


class MonthlyReport(BaseModel):
    stats: MonthlyStats
    top_categories: List[CategoryShare]
    daily_average: Decimal


# ------------------- Insights -------------------

class SpendingInsight(BaseModel):
    type: Literal["alert", "warning", "tip", "pattern", "positive", "info"]
    title: str = Field(..., min_length=1)
    message: str = Field(..., min_length=1)
    severity: Literal["low", "medium", "high"] = "low"


# ------------------- Sync -------------------

class SyncReport(BaseModel):
    fetched: int = 0
    skipped_invalid: int = 0
    candidates: int = 0
    parsed: int = 0
    inserted: int = 0
    unparsed_ids: List[str] = Field(default_factory=list)
    checkpoint: int = 0


class SyncResponse(BaseModel):
    new_transactions: int
    report: Optional[SyncReport] = None


# ------------------- Assistant -------------------

class ChatRequest(BaseModel):
    message: str = Field(..., min_length=1)


class ChatResponse(BaseModel):
    reply: str


class ApiKeyUpdate(BaseModel):
    api_key: str = Field(..., min_length=10)


class CategorizeResponse(BaseModel):
    categorized: int
