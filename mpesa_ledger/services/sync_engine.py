import asyncio
import logging
import re
from typing import Optional

from pydantic import ValidationError

from mpesa_ledger.core.exceptions import PermissionDeniedError
from mpesa_ledger.schemas.report import SyncReport
from mpesa_ledger.schemas.sms_message import SmsMessage
from mpesa_ledger.schemas.transaction import TransactionCreate
from mpesa_ledger.services.message_sources import MessageSource
from mpesa_ledger.services.transaction_store import TransactionStore
from mpesa_ledger.utils.parser import is_provider_message, parse_mpesa_message

logger = logging.getLogger(__name__)


class SyncEngine:
    """
    Incremental SMS -> transaction ingestion.

    One cycle: read checkpoint, fetch messages at/after it, parse the
    provider's messages, bulk insert-if-absent, then advance the checkpoint.
    The checkpoint only moves after the insert committed, so a failed cycle
    re-scans the same window on the next call.
    """

    def __init__(
        self,
        source: MessageSource,
        store: TransactionStore,
        inbox: str = "inbox",
        provider_pattern: str = r"m-?pesa",
    ):
        self.source = source
        self.store = store
        self.inbox = inbox
        self.provider_pattern = re.compile(provider_pattern, re.IGNORECASE)
        self.last_report: Optional[SyncReport] = None
        self._in_flight = False

    @property
    def in_flight(self) -> bool:
        return self._in_flight

    async def sync(self) -> int:
        """
        Run one cycle and return how many transactions were newly stored.

        Returns 0 straight away when another cycle is already running. The
        cycle runs as its own task: a caller that stops waiting does not
        stop it from committing.
        """
        if self._in_flight:
            logger.info("Sync already in progress, skipping")
            return 0
        self._in_flight = True

        task = asyncio.ensure_future(self._guarded_cycle())
        return await asyncio.shield(task)

    async def _guarded_cycle(self) -> int:
        try:
            report = await self._run_cycle()
            self.last_report = report
            return report.inserted
        finally:
            self._in_flight = False

    async def _run_cycle(self) -> SyncReport:
        if not await self.source.check_permission():
            raise PermissionDeniedError(
                "SMS permission not granted. Allow SMS access to read M-PESA transactions."
            )

        checkpoint = await asyncio.to_thread(self.store.get_checkpoint)
        logger.info(f"Last scanned timestamp: {checkpoint}")

        raw_messages = await self.source.list_messages(self.inbox, checkpoint or None)
        report = SyncReport(fetched=len(raw_messages), checkpoint=checkpoint)

        max_timestamp = checkpoint
        transactions = []
        for raw in raw_messages:
            try:
                msg = SmsMessage.model_validate(raw)
            except ValidationError as e:
                report.skipped_invalid += 1
                logger.warning(f"Skipping malformed message record: {e.error_count()} validation errors")
                continue

            # Every fetched message moves the high-water mark, parsed or not
            max_timestamp = max(max_timestamp, msg.timestamp)

            if not is_provider_message(msg.address, msg.body, self.provider_pattern):
                continue
            report.candidates += 1

            parsed = parse_mpesa_message(msg.body, msg.timestamp)
            if not parsed:
                report.unparsed_ids.append(msg.native_id)
                logger.info(f"Unrecognised M-PESA message {msg.native_id}: {msg.body[:60]!r}")
                continue
            try:
                transactions.append(TransactionCreate.from_parsed(msg.native_id, parsed))
            except ValidationError as e:
                report.skipped_invalid += 1
                logger.warning(f"Skipping message {msg.native_id}: {e.error_count()} validation errors")

        report.parsed = len(transactions)
        if transactions:
            report.inserted = await asyncio.to_thread(self.store.insert_if_absent, transactions)

        if max_timestamp > checkpoint:
            await asyncio.to_thread(self.store.set_checkpoint, max_timestamp)
        report.checkpoint = max_timestamp

        logger.info(
            f"Sync finished: fetched={report.fetched} candidates={report.candidates} "
            f"parsed={report.parsed} inserted={report.inserted} checkpoint={report.checkpoint}"
        )
        return report
