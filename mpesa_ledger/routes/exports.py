from fastapi import APIRouter, Depends, HTTPException, Query
from fastapi.responses import StreamingResponse
from datetime import datetime

from mpesa_ledger.core.dependencies import get_store
from mpesa_ledger.exports.transaction_normalizer import (
    TransactionExportFilters,
    ExportType,
    apply_filters
)
from mpesa_ledger.exports.transaction_exporter import transactions_to_csv, transactions_to_excel
from mpesa_ledger.services.transaction_store import TransactionStore


export_router = APIRouter(prefix="/api/v1", tags=["Export Reports"])


@export_router.get("/exports/transactions")
def export_transactions(
    format: str = Query("csv", pattern="^(csv|xlsx)$"),
    transaction_type: ExportType | None = None,
    category: str | None = None,
    start_date: datetime | None = None,
    end_date: datetime | None = None,
    year: int | None = None,
    month: int | None = Query(None, ge=1, le=12),
    store: TransactionStore = Depends(get_store),
):
    filters = TransactionExportFilters(
        transaction_type=transaction_type,
        category=category,
        start_date=start_date,
        end_date=end_date,
        year=year,
        month=month,
    )

    transactions = store.list_transactions(start=filters.start_date, end=filters.end_date)
    rows = apply_filters(transactions, filters)

    if not rows:
        raise HTTPException(404, "No data found for given filters")

    if format == "csv":
        file = transactions_to_csv(rows)
        filename = "mpesa_transactions.csv"
        media_type = "text/csv"

    else:
        file = transactions_to_excel(rows)
        filename = "mpesa_transactions.xlsx"
        media_type = (
            "application/vnd.openxmlformats-officedocument."
            "spreadsheetml.sheet"
        )

    return StreamingResponse(
        file,
        media_type=media_type,
        headers={
            "Content-Disposition":
            f"attachment; filename={filename}"
        },
    )
