import pytest

from mpesa_ledger.core.constants import CATEGORIES, TransactionType
from mpesa_ledger.services.categorizer import categorize, looks_like_personal_name


@pytest.mark.parametrize("tx_type, counterparty, expected", [
    (TransactionType.RECEIVED, "NAIVAS SUPERMARKET", "Income"),
    (TransactionType.WITHDRAWAL, "123456 - JANE AGENCIES", "Cash Withdrawal"),
    (TransactionType.AIRTIME, "Safaricom", "Airtime"),
    (TransactionType.PAYMENT, "NAIVAS SUPERMARKET", "Shopping"),
    (TransactionType.PAYMENT, "Java House Westlands", "Food & Dining"),
    (TransactionType.PAYMENT, "UBER KENYA", "Transport"),
    (TransactionType.PAYMENT, "GOODLIFE PHARMACY", "Health"),
    (TransactionType.PAYMENT, "KPLC PREPAID", "Bills & Utilities"),
    (TransactionType.PAYMENT, "SAFARICOM HOME FIBRE", "Bills & Utilities"),
    (TransactionType.PAYMENT, "SAFARICOM POSTPAID", "Airtime"),
    (TransactionType.PAYMENT, "STRATHMORE UNIVERSITY", "Education"),
    (TransactionType.SENT, "JOHN KAMAU", "Personal Transfer"),
    (TransactionType.SENT, "JOHN KAMAU 0712345678", "Personal Transfer"),
    (TransactionType.SENT, "", "Other"),
    (TransactionType.PAYMENT, "acct 55123-x", "Other"),
])
def test_categorize(tx_type, counterparty, expected):
    assert categorize(tx_type, counterparty) == expected


def test_keywords_only_match_at_word_start():
    # "uber" inside HUBERT and "rent" inside LAURENT are names, not merchants
    assert categorize(TransactionType.SENT, "HUBERT OTIENO") == "Personal Transfer"
    assert categorize(TransactionType.SENT, "LAURENT MWANGI") == "Personal Transfer"


def test_keyword_match_is_case_insensitive():
    assert categorize(TransactionType.PAYMENT, "naivas supermarket") == "Shopping"


def test_accepts_plain_string_types():
    assert categorize("received", "ANYONE") == "Income"


@pytest.mark.parametrize("tx_type", list(TransactionType))
def test_always_returns_a_known_category(tx_type):
    for counterparty in ("", "JOHN KAMAU", "ZZZ 123", "kfc"):
        category = categorize(tx_type, counterparty)
        assert category
        assert category in CATEGORIES


def test_looks_like_personal_name():
    assert looks_like_personal_name("Mary Wanjiku O'Neil")
    assert not looks_like_personal_name("till 123456")
