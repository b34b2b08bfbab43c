from celery import Celery
from datetime import timedelta
from mpesa_ledger.core.config import settings

celery_app = Celery(
    "worker",
    broker=settings.CELERY_BROKER_URL,
    backend=settings.CELERY_RESULT_BACKEND,
)

# Autodiscover task modules
celery_app.autodiscover_tasks(["mpesa_ledger.tasks"])

# Force import so Celery registers tasks
import mpesa_ledger.tasks.sms_sync  # noqa: E402,F401


celery_app.conf.beat_schedule = {

    # --------------------------------------------------------
    # 1. Pull new M-PESA messages into the ledger
    # --------------------------------------------------------
    "sync-mpesa-messages": {
        "task": "mpesa_ledger.tasks.sms_sync.sync_messages",
        "schedule": timedelta(seconds=int(settings.SYNC_INTERVAL)),
    },

    # --------------------------------------------------------
    # 2. AI re-categorisation of Other/General transactions
    # --------------------------------------------------------
    "recategorize-transactions": {
        "task": "mpesa_ledger.tasks.sms_sync.recategorize_transactions",
        "schedule": timedelta(seconds=int(settings.AI_CATEGORIZE_INTERVAL)),
        "args": (settings.AI_CATEGORIZE_BATCH,),
    },

}
