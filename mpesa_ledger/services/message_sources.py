import asyncio
import base64
import json
import logging
import os
import re
from typing import List, Optional, Protocol

from bs4 import BeautifulSoup
from google.auth.exceptions import GoogleAuthError, RefreshError
from google.auth.transport.requests import Request
from google.oauth2.credentials import Credentials
from googleapiclient.discovery import build
from googleapiclient.errors import HttpError

from mpesa_ledger.core.config import Settings
from mpesa_ledger.core.exceptions import MessageSourceError, PermissionDeniedError

logger = logging.getLogger(__name__)


SCOPES = ['https://www.googleapis.com/auth/gmail.readonly']

# Android content-provider message type for received SMS
INBOX_TYPE = 1


class MessageSource(Protocol):
    """
    Upstream inbox. Records come back as plain dicts shaped
    {native_id, body, timestamp, address}; the sync engine validates them.
    """

    async def check_permission(self) -> bool:
        ...

    async def list_messages(self, inbox: str, min_timestamp: Optional[int] = None) -> List[dict]:
        ...


# =====================================================
# Gmail: SMS forwarded into a mailbox
# =====================================================

def _load_credentials(token_path: str) -> Credentials:
    return Credentials.from_authorized_user_file(token_path, SCOPES)


def build_service_for_token(token_path: str):
    creds = _load_credentials(token_path)
    if not creds.valid and creds.expired and creds.refresh_token:
        creds.refresh(Request())
    return build('gmail', 'v1', credentials=creds, cache_discovery=False)


def _extract_body(payload: dict) -> str:
    if not payload:
        return ""

    if 'body' in payload and payload['body'].get('data'):
        try:
            raw = base64.urlsafe_b64decode(payload['body']['data'].encode('ASCII'))
            return clean_email_body(raw.decode(errors='ignore'))
        except ValueError:
            return ""
    if 'parts' in payload:
        for part in payload['parts']:
            body = _extract_body(part)
            if body:
                return body
    return ""


def clean_email_body(html: str) -> str:
    """Visible text of a forwarded SMS, joined on one line like the original SMS."""
    soup = BeautifulSoup(html, "lxml")
    text = soup.get_text(separator=" ")
    return re.sub(r"\s+", " ", text).strip()


class GmailMessageSource:
    """Reads M-PESA SMS that a phone-side forwarder pushes into Gmail."""

    def __init__(self, token_path: str, query: str = "", page_size: int = 100):
        self.token_path = token_path
        self.query = query
        # Gmail caps maxResults at 500 per page
        self.page_size = max(1, min(page_size, 500))

    async def check_permission(self) -> bool:
        return await asyncio.to_thread(self._has_valid_token)

    def _has_valid_token(self) -> bool:
        if not os.path.exists(self.token_path):
            logger.warning(f"Gmail token not found at {self.token_path}")
            return False
        try:
            creds = _load_credentials(self.token_path)
        except (ValueError, OSError) as e:
            logger.warning(f"Gmail token at {self.token_path} is unreadable: {e}")
            return False
        return creds.valid or bool(creds.refresh_token)

    async def list_messages(self, inbox: str, min_timestamp: Optional[int] = None) -> List[dict]:
        return await asyncio.to_thread(self._fetch, inbox, min_timestamp)

    def _build_query(self, inbox: str, min_timestamp: Optional[int]) -> str:
        parts = [f"in:{inbox}"] if inbox else []
        if self.query:
            parts.append(self.query)
        if min_timestamp:
            # after: is second-granular and exclusive
            parts.append(f"after:{max(min_timestamp // 1000 - 1, 0)}")
        return " ".join(parts)

    def _fetch(self, inbox: str, min_timestamp: Optional[int]) -> List[dict]:
        query = self._build_query(inbox, min_timestamp)
        logger.info(f"Fetching Gmail messages with query: {query!r}")
        try:
            svc = build_service_for_token(self.token_path)
            refs = []
            page_token = None
            # All pages; the checkpoint certifies the whole window
            while True:
                params = {
                    "userId": "me",
                    "maxResults": self.page_size,
                    "q": query,
                }
                if page_token:
                    params["pageToken"] = page_token
                resp = svc.users().messages().list(**params).execute()
                refs.extend(resp.get('messages', []))
                page_token = resp.get('nextPageToken')
                if not page_token:
                    break

            result = []
            for ref in refs:
                msg = svc.users().messages().get(userId='me', id=ref['id'], format='full').execute()
                payload = msg.get('payload', {})
                headers = payload.get('headers', [])
                sender = next((h['value'] for h in headers if h.get('name', '').lower() == 'from'), '')
                result.append({
                    'native_id': msg.get('id'),
                    'body': _extract_body(payload) or msg.get('snippet', ''),
                    'timestamp': int(msg.get('internalDate', 0)),
                    'address': sender,
                })
        except (RefreshError, FileNotFoundError) as e:
            raise PermissionDeniedError(
                "Gmail access is not granted. Re-run the token generator to allow reading the inbox."
            ) from e
        except HttpError as e:
            if e.resp.status in (401, 403):
                raise PermissionDeniedError(f"Gmail denied access to the inbox: {e}") from e
            raise MessageSourceError(f"Gmail API error: {e}") from e
        except (GoogleAuthError, OSError, ValueError) as e:
            raise MessageSourceError(f"Failed to read Gmail messages: {e}") from e

        if min_timestamp:
            result = [m for m in result if m['timestamp'] >= min_timestamp]
        logger.info(f"Fetched {len(result)} Gmail messages")
        return result


# =====================================================
# JSON dump of the phone inbox
# =====================================================

class SmsExportMessageSource:
    """
    Reads a JSON array exported from the Android SMS content provider:
    [{"_id": "123", "address": "MPESA", "body": "...", "date": 1704282300000, "type": 1}, ...]
    """

    def __init__(self, path: str):
        self.path = path

    async def check_permission(self) -> bool:
        if not os.path.exists(self.path):
            return True
        return os.access(self.path, os.R_OK)

    async def list_messages(self, inbox: str, min_timestamp: Optional[int] = None) -> List[dict]:
        return await asyncio.to_thread(self._read, inbox, min_timestamp)

    def _read(self, inbox: str, min_timestamp: Optional[int]) -> List[dict]:
        try:
            with open(self.path, encoding="utf-8") as f:
                records = json.load(f)
        except PermissionError as e:
            raise PermissionDeniedError(f"No permission to read {self.path}") from e
        except (OSError, json.JSONDecodeError) as e:
            raise MessageSourceError(f"Failed to read SMS export {self.path}: {e}") from e

        if not isinstance(records, list):
            raise MessageSourceError(f"SMS export {self.path} is not a JSON array")

        result = []
        for rec in records:
            if not isinstance(rec, dict):
                result.append({})
                continue
            if inbox == "inbox" and str(rec.get("type", INBOX_TYPE)) != str(INBOX_TYPE):
                continue
            timestamp = rec.get("date")
            if min_timestamp and isinstance(timestamp, (int, float)) and timestamp < min_timestamp:
                continue
            result.append({
                "native_id": rec.get("_id"),
                "body": rec.get("body"),
                "timestamp": timestamp,
                "address": rec.get("address"),
            })
        logger.info(f"Read {len(result)} messages from {self.path}")
        return result


def build_message_source(settings: Settings) -> MessageSource:
    if settings.SMS_SOURCE == "gmail":
        return GmailMessageSource(
            token_path=settings.GMAIL_SMS_TOKEN,
            query=settings.GMAIL_SMS_QUERY,
            page_size=settings.GMAIL_PAGE_SIZE,
        )
    return SmsExportMessageSource(settings.SMS_EXPORT_PATH)
