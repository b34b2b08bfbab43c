import json
import logging
import re
from typing import List, Optional

import requests
from pydantic import ValidationError

from mpesa_ledger.core.constants import CATEGORIES, Category, SyncStateKey
from mpesa_ledger.core.exceptions import AIServiceError, ApiKeyMissingError, StoreError
from mpesa_ledger.schemas.report import SpendingInsight
from mpesa_ledger.schemas.transaction import TransactionRead
from mpesa_ledger.services.analytics import last_n_months_stats
from mpesa_ledger.services.transaction_store import TransactionStore

logger = logging.getLogger(__name__)

_CODE_FENCE = re.compile(r"```(?:json)?", re.IGNORECASE)


class ApiKeyStore:
    """Holds the Gemini API key; cached in memory, persisted in sync_state."""

    def __init__(self, store: TransactionStore, default: str = ""):
        self._store = store
        self._default = default
        self._cached: Optional[str] = None

    def get(self) -> Optional[str]:
        if self._cached:
            return self._cached
        stored = self._store.get_state(SyncStateKey.GEMINI_API_KEY.value)
        self._cached = stored or self._default or None
        return self._cached

    def set(self, key: str) -> None:
        key = key.strip()
        self._store.set_state(SyncStateKey.GEMINI_API_KEY.value, key)
        self._cached = key


class GeminiClient:
    """Plain `generate(prompt) -> text` over the Gemini REST API."""

    def __init__(self, key_store: ApiKeyStore, model: str, base_url: str, timeout: int = 30):
        self.key_store = key_store
        self.model = model
        self.base_url = base_url.rstrip("/")
        self.timeout = timeout

    def generate(self, prompt: str) -> str:
        try:
            api_key = self.key_store.get()
        except StoreError as e:
            raise AIServiceError(f"Could not read the Gemini API key: {e}") from e
        if not api_key:
            raise ApiKeyMissingError("Gemini API key is not set")

        url = f"{self.base_url}/{self.model}:generateContent"
        try:
            response = requests.post(
                url,
                headers={"Content-Type": "application/json", "x-goog-api-key": api_key},
                json={"contents": [{"parts": [{"text": prompt}]}]},
                timeout=self.timeout,
            )
        except requests.RequestException as e:
            raise AIServiceError(f"Gemini request failed: {e}") from e

        if not response.ok:
            try:
                detail = response.json().get("error", {}).get("message")
            except ValueError:
                detail = None
            raise AIServiceError(detail or f"Gemini returned HTTP {response.status_code}")

        try:
            data = response.json()
            return data["candidates"][0]["content"]["parts"][0]["text"]
        except (ValueError, KeyError, IndexError, TypeError) as e:
            raise AIServiceError("Gemini returned no text") from e


def strip_code_fences(text: str) -> str:
    return _CODE_FENCE.sub("", text).strip()


def parse_insights(text: str) -> List[SpendingInsight]:
    """
    Parse the model's JSON array of insights. Malformed output yields [],
    and individual malformed entries are dropped.
    """
    try:
        items = json.loads(strip_code_fences(text))
    except (TypeError, ValueError):
        logger.warning("Insight response was not valid JSON")
        return []
    if not isinstance(items, list):
        logger.warning("Insight response was not a JSON array")
        return []

    insights = []
    for item in items:
        try:
            insights.append(SpendingInsight.model_validate(item))
        except ValidationError:
            logger.debug(f"Dropping malformed insight: {item!r}")
    return insights


def _describe(t: TransactionRead) -> str:
    direction = f"from {t.sender}" if t.sender else f"to {t.recipient}"
    return f"{t.date:%Y-%m-%d}: {t.type.value} {t.amount} {direction} ({t.category or 'Uncategorized'})"


class AssistantService:
    def __init__(self, client: GeminiClient):
        self.client = client

    def chat(self, message: str, context: str = "") -> str:
        prompt = (
            "You are a helpful financial assistant analyzing M-Pesa transactions.\n"
            f"Context: {context}\n\n"
            f"User: {message}\n\n"
            "Response:"
        )
        return self.client.generate(prompt)

    @staticmethod
    def build_chat_context(transactions: List[TransactionRead], recent: int = 10) -> str:
        months = last_n_months_stats(transactions, 3)
        avg_spending = sum(m.total_spent for m in months) / len(months)
        avg_income = sum(m.total_received for m in months) / len(months)
        latest = sorted(transactions, key=lambda t: t.date, reverse=True)[:recent]
        return (
            f"Avg monthly spending (last 3 months): {avg_spending:.2f}. "
            f"Avg monthly income (last 3 months): {avg_income:.2f}. "
            f"Recent transactions: {'; '.join(_describe(t) for t in latest)}."
        )

    def categorize_transaction(self, transaction: TransactionRead) -> str:
        """AI suggestion limited to the known categories; Other when unsure or unavailable."""
        prompt = (
            f"Categorize this M-Pesa transaction into one of: {', '.join(CATEGORIES)}.\n"
            "Return ONLY the category name.\n\n"
            f"Transaction: {transaction.raw_message}\n"
            f"Counterparty: {transaction.counterparty}\n"
            f"Amount: {transaction.amount}"
        )
        try:
            answer = strip_code_fences(self.client.generate(prompt)).strip().strip(".\"'")
        except AIServiceError as e:
            logger.warning(f"AI categorization failed for {transaction.id}: {e}")
            return Category.OTHER.value

        for category in CATEGORIES:
            if answer.lower() == category.lower():
                return category
        logger.info(f"AI suggested unknown category {answer!r} for {transaction.id}")
        return Category.OTHER.value

    def analyze_spending_patterns(self, transactions: List[TransactionRead], limit: int = 50) -> List[SpendingInsight]:
        recent = "\n".join(_describe(t) for t in transactions[:limit])
        prompt = (
            "Analyze these recent M-Pesa transactions and provide 3-5 brief financial insights.\n"
            "Format the output as a JSON array of objects with keys: "
            "type (alert/warning/tip/pattern), title, message, severity (low/medium/high).\n"
            "Do not include markdown formatting. Just the raw JSON.\n\n"
            f"Transactions:\n{recent}"
        )
        try:
            return parse_insights(self.client.generate(prompt))
        except AIServiceError as e:
            logger.warning(f"AI insight generation failed: {e}")
            return []

    def recategorize_uncategorized(self, store: TransactionStore, limit: int = 5) -> int:
        """Ask the model about transactions still labelled Other/General. Returns how many changed."""
        count = 0
        for t in store.list_uncategorized(limit):
            category = self.categorize_transaction(t)
            if category != Category.OTHER.value and category != t.category:
                store.update_category(t.id, category)
                count += 1
        logger.info(f"AI re-categorized {count} transactions")
        return count
