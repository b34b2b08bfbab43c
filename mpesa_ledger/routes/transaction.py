import logging
from fastapi import APIRouter, Depends, HTTPException, Query, status

from mpesa_ledger.core.dependencies import get_store, get_sync_engine
from mpesa_ledger.core.exceptions import PermissionDeniedError, TransientSyncError
from mpesa_ledger.schemas.report import SyncResponse
from mpesa_ledger.schemas.transaction import CategoryUpdate, TransactionPage, TransactionRead
from mpesa_ledger.services.sync_engine import SyncEngine
from mpesa_ledger.services.transaction_store import TransactionStore

logger = logging.getLogger(__name__)


transaction_router = APIRouter(prefix="/api/v1/transactions", tags=["Transactions"])
sync_router = APIRouter(prefix="/api/v1/sync", tags=["Sync"])


# ==================== TRANSACTION ENDPOINTS ====================

@transaction_router.get("/", response_model=TransactionPage)
def list_transactions(
    limit: int = Query(50, ge=1, le=500, description="Number of records to return"),
    offset: int = Query(0, ge=0, description="Number of records to skip"),
    store: TransactionStore = Depends(get_store),
):
    """
    Transactions, newest first.
    """
    transactions = store.list_page(limit=limit, offset=offset)
    total = store.count()
    return {
        "transactions": transactions,
        "total": total,
        "limit": limit,
        "offset": offset,
        "has_more": (offset + len(transactions)) < total,
    }


@transaction_router.get("/{transaction_id}", response_model=TransactionRead)
def get_transaction(transaction_id: str, store: TransactionStore = Depends(get_store)):
    tx = store.get(transaction_id)
    if not tx:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail=f"Transaction {transaction_id} not found"
        )
    return tx


@transaction_router.patch("/{transaction_id}/category", response_model=TransactionRead)
def update_transaction_category(
    transaction_id: str,
    payload: CategoryUpdate,
    store: TransactionStore = Depends(get_store),
):
    """
    Re-categorise one transaction. This is the only field that can change
    after ingestion.
    """
    if not store.update_category(transaction_id, payload.category):
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail=f"Transaction {transaction_id} not found"
        )
    return store.get(transaction_id)


# ==================== SYNC ENDPOINTS ====================

@sync_router.post("/", response_model=SyncResponse)
async def run_sync(engine: SyncEngine = Depends(get_sync_engine)):
    """
    Ingest new M-PESA messages.

    - 403 when inbox access is not granted (grant access, then retry)
    - 503 when fetching or storing failed (try again)
    """
    try:
        count = await engine.sync()
    except PermissionDeniedError as e:
        logger.warning(f"Sync refused: {e}")
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail=str(e))
    except TransientSyncError as e:
        logger.error(f"Sync failed: {e}")
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail=f"Sync failed, try again: {e}"
        )
    return {"new_transactions": count, "report": engine.last_report}


@sync_router.get("/status")
def sync_status(
    engine: SyncEngine = Depends(get_sync_engine),
    store: TransactionStore = Depends(get_store),
):
    return {
        "in_flight": engine.in_flight,
        "checkpoint": store.get_checkpoint(),
        "last_report": engine.last_report,
    }
