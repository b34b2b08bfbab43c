import logging
from datetime import datetime
from typing import Iterable, List, Optional

from sqlalchemy import func, or_
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session, sessionmaker

from mpesa_ledger.core.constants import SyncStateKey, UNCATEGORIZED_LABELS
from mpesa_ledger.core.exceptions import StoreError
from mpesa_ledger.models.sync_state import SyncState
from mpesa_ledger.models.transaction import Transaction
from mpesa_ledger.schemas.transaction import TransactionCreate, TransactionRead

logger = logging.getLogger(__name__)


class TransactionStore:
    """Persistence contract used by the sync engine, analytics and the API."""

    def __init__(self, session_factory: sessionmaker):
        self._session_factory = session_factory

    def _session(self) -> Session:
        return self._session_factory()

    # ==================== TRANSACTIONS ====================

    def insert_if_absent(self, records: Iterable[TransactionCreate]) -> int:
        """
        Insert every record whose id is not stored yet, in one DB transaction.

        Existing rows are left untouched. Returns the number of rows inserted.
        On any failure nothing from the batch is kept and StoreError is raised.
        """
        batch = {}
        for rec in records:
            batch.setdefault(rec.id, rec)
        if not batch:
            return 0

        db = self._session()
        try:
            existing = {
                row_id for (row_id,) in
                db.query(Transaction.id).filter(Transaction.id.in_(list(batch))).all()
            }
            new_rows = []
            for rec in batch.values():
                if rec.id in existing:
                    continue
                data = rec.model_dump()
                data["type"] = rec.type.value
                new_rows.append(Transaction(**data))

            db.add_all(new_rows)
            db.commit()
            logger.info(f"Stored {len(new_rows)} new transactions ({len(existing)} already present)")
            return len(new_rows)
        except SQLAlchemyError as e:
            db.rollback()
            logger.error(f"Bulk insert of {len(batch)} transactions failed: {e}")
            raise StoreError(f"Could not store transactions: {e}") from e
        finally:
            db.close()

    def update_category(self, transaction_id: str, category: str) -> bool:
        db = self._session()
        try:
            tx = db.get(Transaction, transaction_id)
            if not tx:
                return False
            tx.category = category
            db.commit()
            return True
        except SQLAlchemyError as e:
            db.rollback()
            raise StoreError(f"Could not update category of {transaction_id}: {e}") from e
        finally:
            db.close()

    def get(self, transaction_id: str) -> Optional[TransactionRead]:
        db = self._session()
        try:
            tx = db.get(Transaction, transaction_id)
            return TransactionRead.model_validate(tx) if tx else None
        finally:
            db.close()

    def list_transactions(
        self,
        start: Optional[datetime] = None,
        end: Optional[datetime] = None,
    ) -> List[TransactionRead]:
        """All transactions, newest first, optionally limited to [start, end]."""
        db = self._session()
        try:
            q = db.query(Transaction)
            if start:
                q = q.filter(Transaction.date >= start)
            if end:
                q = q.filter(Transaction.date <= end)
            rows = q.order_by(Transaction.date.desc()).all()
            return [TransactionRead.model_validate(r) for r in rows]
        finally:
            db.close()

    def list_page(self, limit: int = 50, offset: int = 0) -> List[TransactionRead]:
        db = self._session()
        try:
            rows = (
                db.query(Transaction)
                .order_by(Transaction.date.desc(), Transaction.id.desc())
                .offset(offset)
                .limit(limit)
                .all()
            )
            return [TransactionRead.model_validate(r) for r in rows]
        finally:
            db.close()

    def list_uncategorized(self, limit: int = 5) -> List[TransactionRead]:
        db = self._session()
        try:
            rows = (
                db.query(Transaction)
                .filter(or_(Transaction.category.is_(None), Transaction.category.in_(UNCATEGORIZED_LABELS)))
                .order_by(Transaction.date.desc())
                .limit(limit)
                .all()
            )
            return [TransactionRead.model_validate(r) for r in rows]
        finally:
            db.close()

    def count(self) -> int:
        db = self._session()
        try:
            return db.query(func.count(Transaction.id)).scalar() or 0
        finally:
            db.close()

    # ==================== SYNC STATE ====================

    def get_state(self, key: str) -> Optional[str]:
        db = self._session()
        try:
            row = db.get(SyncState, key)
            return row.value if row else None
        except SQLAlchemyError as e:
            raise StoreError(f"Could not read {key}: {e}") from e
        finally:
            db.close()

    def set_state(self, key: str, value: str) -> None:
        db = self._session()
        try:
            row = db.get(SyncState, key)
            if row:
                row.value = value
            else:
                db.add(SyncState(key=key, value=value))
            db.commit()
        except SQLAlchemyError as e:
            db.rollback()
            raise StoreError(f"Could not save {key}: {e}") from e
        finally:
            db.close()

    def get_checkpoint(self) -> int:
        value = self.get_state(SyncStateKey.LAST_SCANNED_TIMESTAMP.value)
        try:
            return int(value) if value else 0
        except ValueError:
            logger.warning(f"Ignoring corrupt checkpoint value {value!r}")
            return 0

    def set_checkpoint(self, timestamp: int) -> None:
        self.set_state(SyncStateKey.LAST_SCANNED_TIMESTAMP.value, str(int(timestamp)))
