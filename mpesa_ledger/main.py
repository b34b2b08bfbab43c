import logging

from mpesa_ledger.core.config import settings
from mpesa_ledger.core.database import Base, engine
from fastapi import FastAPI

# Register tables on Base.metadata
from mpesa_ledger.models import transaction, sync_state  # noqa: F401
from mpesa_ledger.routes.transaction import transaction_router, sync_router
from mpesa_ledger.routes.reports import report_router
from mpesa_ledger.routes.assistant import assistant_router
from mpesa_ledger.routes.exports import export_router

logging.basicConfig(
    level=settings.LOG_LEVEL.upper(),
    format="[%(asctime)s] [%(levelname)s] %(message)s",
)

app = FastAPI(title="M-PESA Ledger API", version="1.0.0")

Base.metadata.create_all(bind=engine)

# Include all routers
app.include_router(transaction_router)
app.include_router(sync_router)
app.include_router(report_router)
app.include_router(assistant_router)
app.include_router(export_router)


@app.get("/")
def root():
    return {"message": "M-PESA Ledger API is running"}
