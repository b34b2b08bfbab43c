import logging
import re
from datetime import datetime
from decimal import Decimal, InvalidOperation
from typing import Optional, Union

from mpesa_ledger.core.constants import TransactionType, AIRTIME_COUNTERPARTY
from mpesa_ledger.schemas.transaction import ParsedTransaction
from mpesa_ledger.services.categorizer import categorize

logger = logging.getLogger(__name__)


# -----------------------------------------------------
# Building blocks
# -----------------------------------------------------
# "QCD7XYZ12 Confirmed." is optional; some variants drop it.
_CODE = r"^\s*(?:(?P<code>[A-Z0-9]{6,12})\s+Confirmed\s*[.,]?\s*)?"
_AMOUNT = r"Ksh\s*\.?\s*(?P<amount>\d[\d,]*(?:\.\d+)?)"
# Stops before " on d/m" so a date the time rule cannot read stays out of the name
_PARTY = r"(?P<party>\S(?:(?!\s+on\s+\d{1,2}/).)*?)"
_WHEN = (
    r"(?:[\s.,]*on\s+(?P<date>\d{1,2}/\d{1,2}/\d{2,4})"
    r"(?:\s+at\s+(?P<time>\d{1,2}:\d{2}(?:\s*[AP]\.?M\.?)?))?)?"
)
_BALANCE = (
    r"[\s.,]*New\s+(?:M-?PESA\s+)?balance\s+is\s*"
    r"Ksh\s*\.?\s*(?P<balance>\d[\d,]*(?:\.\d+)?)"
)


def _rule(body: str) -> re.Pattern:
    return re.compile(_CODE + r".*?" + body + _WHEN + _BALANCE, re.IGNORECASE | re.DOTALL)


# -----------------------------------------------------
# Rules, tried top to bottom; the first match wins.
#
# The order is part of the contract: each rule is keyed on its own verb
# phrase ("sent to", "received ... from", "paid to", "withdrawn from",
# "bought ... of airtime") so at most one should match, and when a message
# somehow carries two phrases the earlier rule decides its type.
# -----------------------------------------------------
RULES = [
    (TransactionType.SENT, _rule(_AMOUNT + r"\s+sent\s+to\s+" + _PARTY)),
    (TransactionType.RECEIVED, _rule(r"received\s+" + _AMOUNT + r"\s+from\s+" + _PARTY)),
    (TransactionType.PAYMENT, _rule(_AMOUNT + r"\s+paid\s+to\s+" + _PARTY)),
    (TransactionType.WITHDRAWAL, _rule(_AMOUNT + r"\s+withdrawn\s+from\s+" + _PARTY)),
    (TransactionType.AIRTIME, _rule(r"bought\s+" + _AMOUNT + r"\s+of\s+airtime(?:\s+for\s+\+?\d+)?")),
]


# -----------------------------------------------------
# Field helpers
# -----------------------------------------------------
def parse_amount(text: Optional[str]) -> Optional[Decimal]:
    """'12,345.50' -> Decimal('12345.50'). None when not a number."""
    if not text:
        return None
    try:
        return Decimal(text.replace(",", "").strip())
    except InvalidOperation:
        return None


def clean_party(text: str) -> str:
    """Collapse inner whitespace and drop surrounding punctuation."""
    return re.sub(r"\s+", " ", text).strip(" .,;:-")


def fallback_datetime(timestamp_ms: int) -> datetime:
    try:
        return datetime.fromtimestamp(timestamp_ms / 1000)
    except (OverflowError, OSError, ValueError):
        logger.warning(f"Unusable receipt timestamp {timestamp_ms}, using epoch")
        return datetime.fromtimestamp(0)


def parse_message_datetime(date_str: Optional[str], time_str: Optional[str], fallback_ms: int) -> datetime:
    """
    Convert 'd/m/yy' + 'h:mm AM|PM' to a local datetime.

    Years are read as 2000 + yy. 12 AM is hour 0, 12 PM stays 12, other PM
    hours add 12. Anything missing or out of range falls back to the SMS
    receipt time.
    """
    if not date_str or not time_str:
        return fallback_datetime(fallback_ms)

    try:
        day, month, year = (int(part) for part in date_str.split("/"))
        if year < 100:
            year += 2000

        clock = re.match(r"(\d{1,2}):(\d{2})\s*([AP])", time_str.strip(), re.IGNORECASE)
        if not clock:
            raise ValueError(f"bad time {time_str!r}")
        hours, minutes = int(clock.group(1)), int(clock.group(2))
        period = clock.group(3).upper()
        if hours < 1 or hours > 12:
            raise ValueError(f"bad 12-hour clock value {hours}")

        if period == "P" and hours != 12:
            hours += 12
        if period == "A" and hours == 12:
            hours = 0

        return datetime(year, month, day, hours, minutes)
    except ValueError as e:
        logger.debug(f"Date parsing failed ({e}), using receipt timestamp {fallback_ms}")
        return fallback_datetime(fallback_ms)


# -----------------------------------------------------
# Parser
# -----------------------------------------------------
def parse_mpesa_message(message: str, timestamp: int) -> Optional[ParsedTransaction]:
    """
    Parse one M-PESA SMS into a categorised transaction.

    Returns None when no rule matches (adverts, OTPs, unrelated texts).
    `timestamp` is the receipt time in milliseconds, used when the message
    carries no usable date.
    """
    if not message:
        return None

    for tx_type, pattern in RULES:
        m = pattern.search(message)
        if not m:
            continue

        amount = parse_amount(m.group("amount"))
        balance = parse_amount(m.group("balance"))
        if amount is None or balance is None:
            logger.debug(f"Matched {tx_type.value} but numbers did not parse")
            return None

        if tx_type == TransactionType.AIRTIME:
            party = AIRTIME_COUNTERPARTY
        else:
            party = clean_party(m.group("party"))
            if not party:
                return None

        received = tx_type == TransactionType.RECEIVED
        return ParsedTransaction(
            type=tx_type,
            amount=amount,
            recipient="" if received else party,
            sender=party if received else "",
            balance=balance,
            transaction_code=(m.group("code") or "").upper(),
            date=parse_message_datetime(m.group("date"), m.group("time"), timestamp),
            raw_message=message,
            category=categorize(tx_type, party),
        )

    logger.debug("No M-PESA pattern matched")
    return None


def is_provider_message(
    address: Optional[str],
    body: Optional[str],
    pattern: Union[str, re.Pattern] = r"m-?pesa",
) -> bool:
    """Coarse pre-filter: does the sender or body mention the provider?"""
    provider = pattern if isinstance(pattern, re.Pattern) else re.compile(pattern, re.IGNORECASE)
    return bool(provider.search(address or "") or provider.search(body or ""))
