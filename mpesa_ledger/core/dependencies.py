from functools import lru_cache

from mpesa_ledger.core.config import settings
from mpesa_ledger.core.database import SessionLocal
from mpesa_ledger.services.ai_assistant import ApiKeyStore, AssistantService, GeminiClient
from mpesa_ledger.services.message_sources import build_message_source
from mpesa_ledger.services.sync_engine import SyncEngine
from mpesa_ledger.services.transaction_store import TransactionStore


# One instance of each per process; the sync engine's in-flight flag and the
# cached API key live on these objects.

@lru_cache()
def get_store() -> TransactionStore:
    return TransactionStore(SessionLocal)


@lru_cache()
def get_sync_engine() -> SyncEngine:
    return SyncEngine(
        source=build_message_source(settings),
        store=get_store(),
        inbox=settings.SMS_INBOX,
        provider_pattern=settings.PROVIDER_PATTERN,
    )


@lru_cache()
def get_key_store() -> ApiKeyStore:
    return ApiKeyStore(get_store(), default=settings.GEMINI_API_KEY)


@lru_cache()
def get_assistant() -> AssistantService:
    client = GeminiClient(
        key_store=get_key_store(),
        model=settings.GEMINI_MODEL,
        base_url=settings.GEMINI_BASE_URL,
        timeout=settings.GEMINI_TIMEOUT,
    )
    return AssistantService(client)
