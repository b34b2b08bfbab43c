"""
Run one sync cycle by hand, outside the Celery beat schedule.

    python -m mpesa_ledger.scripts.run_sync
"""
import asyncio

from mpesa_ledger.core.database import Base, engine
from mpesa_ledger.core.dependencies import get_sync_engine
from mpesa_ledger.models import transaction, sync_state  # noqa: F401


def run_once() -> int:
    Base.metadata.create_all(bind=engine)
    sync_engine = get_sync_engine()
    count = asyncio.run(sync_engine.sync())
    report = sync_engine.last_report
    if report:
        print(
            f"Fetched {report.fetched} messages, {report.candidates} from M-PESA, "
            f"{report.parsed} parsed, {count} new. Checkpoint: {report.checkpoint}"
        )
        for native_id in report.unparsed_ids:
            print(f"  unrecognised: {native_id}")
    return count


if __name__ == "__main__":
    run_once()
