from mpesa_ledger.core.exceptions import MessageSourceError
from mpesa_ledger.services.ai_assistant import ApiKeyStore
from mpesa_ledger.services.sync_engine import SyncEngine
from mpesa_ledger.tasks import sms_sync
from tests.helpers import SENT_SMS, FakeSource, sms


def test_sync_task_runs_one_cycle(store, monkeypatch):
    engine = SyncEngine(FakeSource([sms("1", SENT_SMS, 1704282300000)]), store)
    monkeypatch.setattr(sms_sync, "get_sync_engine", lambda: engine)

    assert sms_sync.sync_messages() == 1
    assert store.count() == 1


def test_sync_task_swallows_failures_for_next_beat(store, monkeypatch):
    denied = SyncEngine(FakeSource(permitted=False), store)
    monkeypatch.setattr(sms_sync, "get_sync_engine", lambda: denied)
    assert sms_sync.sync_messages() == 0

    broken = SyncEngine(FakeSource(error=MessageSourceError("timeout")), store)
    monkeypatch.setattr(sms_sync, "get_sync_engine", lambda: broken)
    assert sms_sync.sync_messages() == 0
    assert store.get_checkpoint() == 0


def test_recategorize_task_skips_without_key(store, monkeypatch):
    monkeypatch.setattr(sms_sync, "get_key_store", lambda: ApiKeyStore(store))

    assert sms_sync.recategorize_transactions() == 0
