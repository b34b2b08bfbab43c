from pydantic_settings import BaseSettings
from functools import lru_cache
from typing import Literal


class Settings(BaseSettings):
    # -----------------------------
    # Database
    # -----------------------------
    DATABASE_URL: str = "sqlite:///./mpesa_ledger.db"
    SQL_ECHO: bool = False

    # -----------------------------
    # Message source
    # -----------------------------
    SMS_SOURCE: Literal["gmail", "export"] = "export"
    SMS_EXPORT_PATH: str = "data/sms_inbox.json"
    SMS_INBOX: str = "inbox"
    PROVIDER_PATTERN: str = r"m-?pesa"

    # -----------------------------
    # Gmail API Config (SMS forwarded to a mailbox)
    # -----------------------------
    GMAIL_SMS_CREDENTIALS: str = "credentials/sms_credentials.json"
    GMAIL_SMS_TOKEN: str = "credentials/sms_token.json"
    GMAIL_SMS_QUERY: str = "from:MPESA"
    GMAIL_PAGE_SIZE: int = 100

    # -----------------------------
    # Message broker
    # -----------------------------
    CELERY_BROKER_URL: str = "redis://localhost:6379/0"
    CELERY_RESULT_BACKEND: str = "redis://localhost:6379/1"
    SYNC_INTERVAL: int = 300

    # -----------------------------
    # Remote text generation (Gemini)
    # -----------------------------
    GEMINI_API_KEY: str = ""
    GEMINI_MODEL: str = "gemini-2.5-flash"
    GEMINI_BASE_URL: str = "https://generativelanguage.googleapis.com/v1beta/models"
    GEMINI_TIMEOUT: int = 30
    AI_CATEGORIZE_BATCH: int = 5
    AI_CATEGORIZE_INTERVAL: int = 3600

    # -----------------------------
    # App Environment
    # -----------------------------
    ENVIRONMENT: str = "development"
    LOG_LEVEL: str = "info"

    class Config:
        env_file = ".env"
        env_file_encoding = "utf-8"


@lru_cache()
def get_settings() -> Settings:
    """Cached settings instance to avoid reloading .env repeatedly"""
    return Settings()


settings = get_settings()
