import logging
from typing import List
from fastapi import APIRouter, Depends, HTTPException, Query, status

from mpesa_ledger.core.dependencies import get_assistant, get_key_store, get_store
from mpesa_ledger.core.exceptions import AIServiceError, ApiKeyMissingError
from mpesa_ledger.schemas.report import (
    ApiKeyUpdate,
    CategorizeResponse,
    ChatRequest,
    ChatResponse,
    SpendingInsight,
)
from mpesa_ledger.services.ai_assistant import ApiKeyStore, AssistantService
from mpesa_ledger.services.transaction_store import TransactionStore

logger = logging.getLogger(__name__)


assistant_router = APIRouter(prefix="/api/v1/assistant", tags=["Assistant"])


def _require_key(key_store: ApiKeyStore):
    if not key_store.get():
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Gemini API key is not set. Add one in settings."
        )


@assistant_router.put("/api-key", status_code=status.HTTP_204_NO_CONTENT)
def set_api_key(payload: ApiKeyUpdate, key_store: ApiKeyStore = Depends(get_key_store)):
    key_store.set(payload.api_key)
    logger.info("Gemini API key updated")


@assistant_router.get("/api-key")
def api_key_status(key_store: ApiKeyStore = Depends(get_key_store)):
    return {"configured": bool(key_store.get())}


@assistant_router.post("/chat", response_model=ChatResponse)
def chat(
    payload: ChatRequest,
    assistant: AssistantService = Depends(get_assistant),
    store: TransactionStore = Depends(get_store),
):
    """
    Ask a question about your spending. Recent transactions and the
    3-month averages are sent along as context.
    """
    context = assistant.build_chat_context(store.list_transactions())
    try:
        reply = assistant.chat(payload.message, context)
    except ApiKeyMissingError as e:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(e))
    except AIServiceError as e:
        logger.error(f"Chat request failed: {e}")
        raise HTTPException(status_code=status.HTTP_502_BAD_GATEWAY, detail=str(e))
    return {"reply": reply}


@assistant_router.get("/insights", response_model=List[SpendingInsight])
def ai_insights(
    limit: int = Query(50, ge=1, le=200),
    assistant: AssistantService = Depends(get_assistant),
    key_store: ApiKeyStore = Depends(get_key_store),
    store: TransactionStore = Depends(get_store),
):
    _require_key(key_store)
    return assistant.analyze_spending_patterns(store.list_page(limit=limit, offset=0), limit=limit)


@assistant_router.post("/categorize", response_model=CategorizeResponse)
def categorize_uncategorized(
    limit: int = Query(5, ge=1, le=50),
    assistant: AssistantService = Depends(get_assistant),
    key_store: ApiKeyStore = Depends(get_key_store),
    store: TransactionStore = Depends(get_store),
):
    """
    Ask the model for a category on transactions still labelled Other or
    General. Only answers from the known category list are applied.
    """
    _require_key(key_store)
    return {"categorized": assistant.recategorize_uncategorized(store, limit=limit)}
