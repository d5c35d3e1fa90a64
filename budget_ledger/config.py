"""
Application configuration.

All configuration is loaded from environment variables.
Never hardcode secrets or connection strings in code.
"""

import os
from functools import lru_cache

from dotenv import load_dotenv

# Load .env file into environment variables
load_dotenv()


class Settings:
    """Application settings loaded from environment variables."""

    # Application
    APP_NAME: str = "Budget Ledger"
    APP_VERSION: str = "0.1.0"
    DEBUG: bool = os.getenv("DEBUG", "false").lower() == "true"
    LOG_LEVEL: str = os.getenv("LOG_LEVEL", "INFO").upper()

    # Server
    HOST: str = os.getenv("HOST", "0.0.0.0")
    PORT: int = int(os.getenv("PORT", "8000"))

    # Database
    DATABASE_URL: str = os.getenv(
        "DATABASE_URL",
        "postgresql://localhost:5432/budget_ledger"
    )

    # Environment
    ENVIRONMENT: str = os.getenv("ENVIRONMENT", "development")

    # Posting limits. Amounts are minor currency units (cents).
    MAX_TRANSACTION_AMOUNT: int = int(
        os.getenv("MAX_TRANSACTION_AMOUNT", "100000000")
    )
    TRANSACTION_MAX_FUTURE_DAYS: int = int(
        os.getenv("TRANSACTION_MAX_FUTURE_DAYS", "365")
    )
    TRANSACTION_MAX_PAST_DAYS: int = int(
        os.getenv("TRANSACTION_MAX_PAST_DAYS", "3650")
    )

    # Balance queries
    BALANCE_HISTORY_DEFAULT_LIMIT: int = int(
        os.getenv("BALANCE_HISTORY_DEFAULT_LIMIT", "100")
    )


@lru_cache()
def get_settings() -> Settings:
    """
    Return cached settings instance.

    Using lru_cache means the Settings object is created once
    and reused for all subsequent calls.
    """
    return Settings()
