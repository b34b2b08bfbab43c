import asyncio
import json

import pytest

from mpesa_ledger.core.config import Settings
from mpesa_ledger.core.exceptions import MessageSourceError
from mpesa_ledger.services.message_sources import (
    GmailMessageSource,
    SmsExportMessageSource,
    build_message_source,
    clean_email_body,
)


@pytest.fixture
def export_file(tmp_path):
    path = tmp_path / "sms.json"
    path.write_text(json.dumps([
        {"_id": "1", "address": "MPESA", "body": "first", "date": 1000, "type": 1},
        {"_id": "2", "address": "MPESA", "body": "second", "date": 2000, "type": 1},
        {"_id": "3", "address": "ME", "body": "outgoing", "date": 3000, "type": 2},
    ]))
    return path


def test_export_source_reads_inbox_records(export_file):
    source = SmsExportMessageSource(str(export_file))
    messages = asyncio.run(source.list_messages("inbox"))

    assert [m["native_id"] for m in messages] == ["1", "2"]
    assert messages[0] == {"native_id": "1", "body": "first", "timestamp": 1000, "address": "MPESA"}


def test_export_source_honours_min_timestamp(export_file):
    source = SmsExportMessageSource(str(export_file))

    assert [m["native_id"] for m in asyncio.run(source.list_messages("inbox", 2000))] == ["2"]


def test_export_source_other_box_returns_everything(export_file):
    source = SmsExportMessageSource(str(export_file))

    assert len(asyncio.run(source.list_messages("all"))) == 3


def test_export_source_bad_json_is_transient(tmp_path):
    path = tmp_path / "sms.json"
    path.write_text("{not json")

    with pytest.raises(MessageSourceError):
        asyncio.run(SmsExportMessageSource(str(path)).list_messages("inbox"))


def test_export_source_missing_file_is_transient(tmp_path):
    with pytest.raises(MessageSourceError):
        asyncio.run(SmsExportMessageSource(str(tmp_path / "missing.json")).list_messages("inbox"))


def test_clean_email_body_keeps_sms_text():
    html = "<html><body><p>QCD7XYZ12 Confirmed.</p>\n<p>Ksh1,500.00 sent to JOHN KAMAU</p></body></html>"

    assert clean_email_body(html) == "QCD7XYZ12 Confirmed. Ksh1,500.00 sent to JOHN KAMAU"


def test_gmail_query_includes_checkpoint_in_seconds():
    source = GmailMessageSource("token.json", query="from:MPESA")

    assert source._build_query("inbox", 1704282300500) == "in:inbox from:MPESA after:1704282299"
    assert source._build_query("inbox", None) == "in:inbox from:MPESA"


def test_gmail_without_token_has_no_permission(tmp_path):
    source = GmailMessageSource(str(tmp_path / "token.json"))

    assert asyncio.run(source.check_permission()) is False


def test_build_message_source_follows_settings():
    assert isinstance(build_message_source(Settings(SMS_SOURCE="export")), SmsExportMessageSource)
    assert isinstance(build_message_source(Settings(SMS_SOURCE="gmail")), GmailMessageSource)
