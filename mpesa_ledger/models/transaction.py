from sqlalchemy import Column, String, Text, Numeric, DateTime, Index, func
from mpesa_ledger.core.database import Base


class Transaction(Base):
    __tablename__ = 'transactions'

    # Native SMS id; insert-if-absent key
    id = Column(String(64), primary_key=True)
    type = Column(String(20), nullable=False, index=True)  # sent | received | payment | withdrawal | airtime | unknown
    amount = Column(Numeric(14, 2), nullable=False)
    recipient = Column(String(255), nullable=False, default='')
    sender = Column(String(255), nullable=False, default='')
    balance = Column(Numeric(14, 2), nullable=False, default=0)
    transaction_code = Column(String(32), nullable=False, default='', index=True)
    date = Column(DateTime, nullable=False)
    raw_message = Column(Text, nullable=False)
    category = Column(String(50), nullable=False, default='Other', index=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now())

    __table_args__ = (
        Index('idx_transactions_date', 'date'),
    )
