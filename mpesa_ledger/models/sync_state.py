from sqlalchemy import Column, String, Text, DateTime, func
from mpesa_ledger.core.database import Base


class SyncState(Base):
    __tablename__ = 'sync_state'

    key = Column(String(64), primary_key=True)
    value = Column(Text, nullable=False)
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now())
