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
    APP_NAME: str = "Hospital Revenue Ledger"
    APP_VERSION: str = "0.1.0"
    DEBUG: bool = os.getenv("DEBUG", "false").lower() == "true"
    LOG_LEVEL: str = os.getenv("LOG_LEVEL", "INFO").upper()

    # Server
    HOST: str = os.getenv("HOST", "0.0.0.0")
    PORT: int = int(os.getenv("PORT", "8000"))

    # Database
    DATABASE_URL: str = os.getenv(
        "DATABASE_URL",
        "sqlite:///./hospital_ledger.db"
    )

    # Ledger
    WALLET_NAME: str = os.getenv("WALLET_NAME", "Hospital Wallet")
    LABORATORY_DEPARTMENT: str = os.getenv(
        "LABORATORY_DEPARTMENT", "Laboratory"
    )

    # Day state lifetimes, in days
    DAY_BOUNDARY_TTL_DAYS: int = int(os.getenv("DAY_BOUNDARY_TTL_DAYS", "365"))
    DAY_ACK_TTL_DAYS: int = int(os.getenv("DAY_ACK_TTL_DAYS", "1"))
    ALL_HISTORY_CACHE_TTL_DAYS: int = int(
        os.getenv("ALL_HISTORY_CACHE_TTL_DAYS", "30")
    )

    # Environment
    ENVIRONMENT: str = os.getenv("ENVIRONMENT", "development")


@lru_cache()
def get_settings() -> Settings:
    """
    Return cached settings instance.

    The Settings object is created once and reused for all
    subsequent calls.
    """
    return Settings()
