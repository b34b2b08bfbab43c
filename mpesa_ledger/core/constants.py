from enum import Enum


class TransactionType(str, Enum):
    SENT = 'sent'
    RECEIVED = 'received'
    PAYMENT = 'payment'
    WITHDRAWAL = 'withdrawal'
    AIRTIME = 'airtime'
    UNKNOWN = 'unknown'


# Money leaving the account; everything except RECEIVED
OUTFLOW_TYPES = frozenset({
    TransactionType.SENT,
    TransactionType.PAYMENT,
    TransactionType.WITHDRAWAL,
    TransactionType.AIRTIME,
    TransactionType.UNKNOWN,
})

AIRTIME_COUNTERPARTY = 'Safaricom'


class Category(str, Enum):
    INCOME = 'Income'
    CASH_WITHDRAWAL = 'Cash Withdrawal'
    AIRTIME = 'Airtime'
    SHOPPING = 'Shopping'
    FOOD = 'Food & Dining'
    TRANSPORT = 'Transport'
    HEALTH = 'Health'
    BILLS = 'Bills & Utilities'
    EDUCATION = 'Education'
    PERSONAL_TRANSFER = 'Personal Transfer'
    OTHER = 'Other'


CATEGORIES = [c.value for c in Category]

# Labels treated as "not yet categorised" by the AI pass
UNCATEGORIZED_LABELS = ('', 'Other', 'General')


# Keys in the sync_state table
class SyncStateKey(str, Enum):
    LAST_SCANNED_TIMESTAMP = 'last_scanned_timestamp'
    GEMINI_API_KEY = 'GEMINI_API_KEY'
