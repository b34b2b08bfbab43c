from datetime import datetime
from decimal import Decimal

import pytest
from sqlalchemy.exc import OperationalError
from sqlalchemy.orm import Session, sessionmaker

from mpesa_ledger.core.constants import SyncStateKey, TransactionType
from mpesa_ledger.core.exceptions import StoreError
from mpesa_ledger.schemas.transaction import TransactionCreate
from mpesa_ledger.services.transaction_store import TransactionStore


def make_tx(native_id, day=3, amount="100.00", tx_type=TransactionType.SENT, category="Personal Transfer"):
    received = tx_type == TransactionType.RECEIVED
    return TransactionCreate(
        id=native_id,
        type=tx_type,
        amount=Decimal(amount),
        recipient="" if received else "JOHN KAMAU",
        sender="JOHN KAMAU" if received else "",
        balance=Decimal("1000.00"),
        transaction_code=f"CODE{native_id}",
        date=datetime(2024, 1, day, 12, 0),
        raw_message=f"message {native_id}",
        category=category,
    )


def test_insert_if_absent_counts_only_new_rows(store):
    assert store.insert_if_absent([make_tx("1"), make_tx("2")]) == 2
    assert store.insert_if_absent([make_tx("2"), make_tx("3")]) == 1
    assert store.count() == 3


def test_duplicate_ids_in_one_batch_are_stored_once(store):
    assert store.insert_if_absent([make_tx("1"), make_tx("1", amount="999.00")]) == 1
    assert store.get("1").amount == Decimal("100.00")


def test_existing_rows_are_not_overwritten(store):
    store.insert_if_absent([make_tx("1")])
    store.update_category("1", "Family")

    store.insert_if_absent([make_tx("1", category="Other")])

    assert store.get("1").category == "Family"


def test_empty_batch_is_a_noop(store):
    assert store.insert_if_absent([]) == 0


def test_failed_batch_keeps_nothing(engine, store):
    class FailingSession(Session):
        def commit(self):
            raise OperationalError("INSERT", {}, Exception("disk I/O error"))

    failing = TransactionStore(sessionmaker(bind=engine, class_=FailingSession))

    with pytest.raises(StoreError):
        failing.insert_if_absent([make_tx("1"), make_tx("2")])

    assert store.count() == 0


def test_round_trip_preserves_fields(store):
    store.insert_if_absent([make_tx("1", tx_type=TransactionType.RECEIVED, category="Income")])
    tx = store.get("1")

    assert tx.type == TransactionType.RECEIVED
    assert tx.sender == "JOHN KAMAU"
    assert tx.recipient == ""
    assert tx.amount == Decimal("100.00")
    assert tx.date == datetime(2024, 1, 3, 12, 0)


def test_get_missing_returns_none(store):
    assert store.get("nope") is None
    assert store.update_category("nope", "Food") is False


def test_list_transactions_newest_first_with_range(store):
    store.insert_if_absent([make_tx("1", day=1), make_tx("2", day=5), make_tx("3", day=10)])

    assert [t.id for t in store.list_transactions()] == ["3", "2", "1"]
    ranged = store.list_transactions(start=datetime(2024, 1, 2), end=datetime(2024, 1, 9))
    assert [t.id for t in ranged] == ["2"]


def test_list_page(store):
    store.insert_if_absent([make_tx(str(i), day=i) for i in range(1, 6)])

    page = store.list_page(limit=2, offset=1)

    assert [t.id for t in page] == ["4", "3"]


def test_list_uncategorized(store):
    store.insert_if_absent([
        make_tx("1", category="Other"),
        make_tx("2", category="General"),
        make_tx("3", category="Shopping"),
    ])

    assert sorted(t.id for t in store.list_uncategorized(limit=10)) == ["1", "2"]


def test_checkpoint_defaults_to_zero_and_persists(store):
    assert store.get_checkpoint() == 0
    store.set_checkpoint(1704282300000)
    assert store.get_checkpoint() == 1704282300000


def test_corrupt_checkpoint_reads_as_zero(store):
    store.set_state(SyncStateKey.LAST_SCANNED_TIMESTAMP.value, "not-a-number")
    assert store.get_checkpoint() == 0
