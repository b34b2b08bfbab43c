from datetime import datetime
from typing import Literal, Optional
from pydantic import BaseModel, field_validator

from mpesa_ledger.schemas.transaction import TransactionRead


def normalize_transaction_row(tx: TransactionRead) -> dict:
    return {
        "id": tx.id,
        "date": tx.date,
        "type": tx.type.value,
        "counterparty": tx.counterparty,
        "amount": tx.amount,
        "balance": tx.balance,
        "category": tx.category,
        "transaction_code": tx.transaction_code,
    }


def apply_filters(transactions: list[TransactionRead], filters: "TransactionExportFilters") -> list[TransactionRead]:
    rows = transactions
    if filters.transaction_type:
        rows = [t for t in rows if t.type.value == filters.transaction_type]
    if filters.category:
        rows = [t for t in rows if t.category == filters.category]
    if filters.start_date:
        rows = [t for t in rows if t.date >= filters.start_date]
    if filters.end_date:
        rows = [t for t in rows if t.date <= filters.end_date]
    if filters.year and filters.month:
        rows = [t for t in rows if t.date.year == filters.year and t.date.month == filters.month]
    return rows


ExportType = Literal["sent", "received", "payment", "withdrawal", "airtime", "unknown"]


class TransactionExportFilters(BaseModel):
    transaction_type: Optional[ExportType] = None
    category: Optional[str] = None
    start_date: Optional[datetime] = None
    end_date: Optional[datetime] = None
    year: Optional[int] = None
    month: Optional[int] = None

    @field_validator("month")
    @classmethod
    def check_month(cls, value):
        if value is not None and not 1 <= value <= 12:
            raise ValueError("month must be between 1 and 12")
        return value


TRANSACTION_COLUMNS = [
    ("Message ID", "id"),
    ("Date", "date"),
    ("Type", "type"),
    ("Counterparty", "counterparty"),
    ("Amount", "amount"),
    ("Balance", "balance"),
    ("Category", "category"),
    ("Transaction Code", "transaction_code"),
]
