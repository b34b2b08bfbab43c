import asyncio
import logging

from mpesa_ledger.core.config import settings
from mpesa_ledger.core.dependencies import get_assistant, get_key_store, get_store, get_sync_engine
from mpesa_ledger.core.exceptions import PermissionDeniedError, TransientSyncError
from mpesa_ledger.worker_app import celery_app

logger = logging.getLogger("sms_sync")
logger.setLevel(settings.LOG_LEVEL.upper())
handler = logging.StreamHandler()
formatter = logging.Formatter("[%(asctime)s] [%(levelname)s] %(message)s")
handler.setFormatter(formatter)
logger.addHandler(handler)


@celery_app.task(name="mpesa_ledger.tasks.sms_sync.sync_messages")
def sync_messages() -> int:
    # Failed cycles leave the checkpoint alone; the next beat rescans the window
    try:
        count = asyncio.run(get_sync_engine().sync())
    except PermissionDeniedError as e:
        logger.warning(f"Sync skipped, no inbox access: {e}")
        return 0
    except TransientSyncError as e:
        logger.error(f"Sync failed, will retry on next schedule: {e}")
        return 0

    logger.info(f"Stored {count} new transactions.")
    return count


@celery_app.task(name="mpesa_ledger.tasks.sms_sync.recategorize_transactions")
def recategorize_transactions(batch_size: int = 5) -> int:
    if not get_key_store().get():
        logger.info("No Gemini API key set, skipping AI categorization.")
        return 0
    return get_assistant().recategorize_uncategorized(get_store(), limit=batch_size)
