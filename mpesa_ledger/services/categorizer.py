import re

from mpesa_ledger.core.constants import TransactionType, Category


# Checked in this order; first hit wins. "safaricom home" must be seen by
# BILLS before TELECOM claims "safaricom".
KEYWORD_RULES = [
    (Category.SHOPPING, [
        "naivas", "carrefour", "quickmart", "quick mart", "chandarana", "tuskys",
        "cleanshelf", "magunas", "jumia", "kilimall", "supermarket", "mini mart",
        "minimart", "shop", "store", "boutique", "mall", "hardware", "wholesale",
    ]),
    (Category.FOOD, [
        "restaurant", "cafe", "coffee", "java house", "artcaffe", "kfc",
        "chicken inn", "pizza", "burger", "butchery", "bakery", "eatery",
        "hotel", "kitchen", "grill", "glovo", "food", "dining",
    ]),
    (Category.TRANSPORT, [
        "uber", "bolt", "little cab", "faras", "sacco", "matatu", "shuttle",
        "petrol", "fuel", "rubis", "shell", "total energies", "totalenergies",
        "parking", "ntsa", "sgr", "kenya railways", "airline", "kenya airways",
    ]),
    (Category.HEALTH, [
        "pharmacy", "chemist", "hospital", "clinic", "medical", "health",
        "dental", "nhif", "laboratory", "optical", "aga khan", "goodlife",
    ]),
    (Category.BILLS, [
        "kplc", "kenya power", "water", "rent", "dstv", "gotv", "zuku",
        "startimes", "showmax", "netflix", "spotify", "internet", "wifi",
        "safaricom home", "faiba", "electricity", "insurance", "nssf",
    ]),
    (Category.EDUCATION, [
        "school", "academy", "college", "university", "helb", "tuition",
        "education", "fees", "bookshop", "text book",
    ]),
    (Category.AIRTIME, [
        "safaricom", "airtel", "telkom", "airtime", "bundles", "data bundle",
    ]),
]

# Keywords only match at the start of a word so that "uber" does not fire
# on HUBERT or "rent" on LAURENT.
_COMPILED_RULES = [
    (category, re.compile(r"\b(?:" + "|".join(re.escape(k) for k in keywords) + r")", re.IGNORECASE))
    for category, keywords in KEYWORD_RULES
]

# One or more capitalised words, no digits: "JOHN KAMAU", "Mary Wanjiku O'Neil"
_PERSONAL_NAME = re.compile(r"^[A-Z][A-Za-z'.\-]*(?:\s+[A-Z][A-Za-z'.\-]*)*$")
# Trailing phone number as in "JOHN KAMAU 0712345678"
_TRAILING_PHONE = re.compile(r"\s+\+?\d[\d\s]*$")


def looks_like_personal_name(name: str) -> bool:
    return bool(_PERSONAL_NAME.match(_TRAILING_PHONE.sub("", name.strip())))


def categorize(transaction_type, counterparty: str) -> str:
    """
    Assign a best-effort spending category.

    Order:
    1. received   -> Income
    2. withdrawal -> Cash Withdrawal
    3. airtime    -> Airtime
    4. counterparty keywords (shopping, food, transport, health, bills,
       education, telecom)
    5. personal-looking name -> Personal Transfer
    6. Other

    Never returns an empty string.
    """
    tx_type = TransactionType(transaction_type)
    name = (counterparty or "").strip()

    if tx_type == TransactionType.RECEIVED:
        return Category.INCOME.value
    if tx_type == TransactionType.WITHDRAWAL:
        return Category.CASH_WITHDRAWAL.value
    if tx_type == TransactionType.AIRTIME:
        return Category.AIRTIME.value

    if not name:
        return Category.OTHER.value

    for category, pattern in _COMPILED_RULES:
        if pattern.search(name):
            return category.value

    if looks_like_personal_name(name):
        return Category.PERSONAL_TRANSFER.value

    return Category.OTHER.value
