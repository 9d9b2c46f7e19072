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
    APP_NAME: str = "Retail Ledger"
    APP_VERSION: str = "0.1.0"
    DEBUG: bool = os.getenv("DEBUG", "false").lower() == "true"
    LOG_LEVEL: str = os.getenv("LOG_LEVEL", "INFO")

    # Server
    HOST: str = os.getenv("HOST", "0.0.0.0")
    PORT: int = int(os.getenv("PORT", "8000"))

    # Database
    DATABASE_URL: str = os.getenv(
        "DATABASE_URL",
        "postgresql://localhost:5432/retail_ledger"
    )

    # Locking: how long a posting may wait on a row lock before
    # failing with a retryable ContentionError
    LOCK_TIMEOUT_MS: int = int(os.getenv("LOCK_TIMEOUT_MS", "2000"))
    CONTENTION_RETRY_ATTEMPTS: int = int(
        os.getenv("CONTENTION_RETRY_ATTEMPTS", "3")
    )

    # System accounts used by the posting rules
    CASH_ACCOUNT_CODE: str = os.getenv("CASH_ACCOUNT_CODE", "1101")
    AR_ACCOUNT_CODE: str = os.getenv("AR_ACCOUNT_CODE", "1201")
    INVENTORY_ACCOUNT_CODE: str = os.getenv("INVENTORY_ACCOUNT_CODE", "1301")
    SUPPLIER_ADVANCES_ACCOUNT_CODE: str = os.getenv(
        "SUPPLIER_ADVANCES_ACCOUNT_CODE", "1401"
    )
    AP_ACCOUNT_CODE: str = os.getenv("AP_ACCOUNT_CODE", "2101")
    CUSTOMER_DEPOSITS_ACCOUNT_CODE: str = os.getenv(
        "CUSTOMER_DEPOSITS_ACCOUNT_CODE", "2201"
    )
    SALES_REVENUE_ACCOUNT_CODE: str = os.getenv(
        "SALES_REVENUE_ACCOUNT_CODE", "4101"
    )
    COGS_ACCOUNT_CODE: str = os.getenv("COGS_ACCOUNT_CODE", "5101")

    # Environment
    ENVIRONMENT: str = os.getenv("ENVIRONMENT", "development")


@lru_cache()
def get_settings() -> Settings:
    """
    Return cached settings instance.

    Using lru_cache means the Settings object is created once
    and reused for all subsequent calls. This avoids reading
    environment variables repeatedly.
    """
    return Settings()
