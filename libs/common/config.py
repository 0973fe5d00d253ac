from decimal import Decimal
from functools import lru_cache
from typing import Literal, Optional

from pydantic import field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Global application settings."""

    # Application
    ENVIRONMENT: Literal["local", "development", "production", "test"] = "local"
    LOG_LEVEL: str = "INFO"
    ADMIN_EMAIL: str = "orders@lankachemist.lk"
    TIMEZONE: str = "Asia/Colombo"

    # Database
    DATABASE_URL: str
    DB_ECHO: bool = False
    DB_POOL_SIZE: int = 20
    DB_MAX_OVERFLOW: int = 10
    DB_POOL_TIMEOUT: int = 30
    DB_POOL_RECYCLE: int = 1800

    # Auth
    # Placeholder keeps local/test runs from failing; real deployments override via env.
    JWT_SECRET: str = "test-jwt-secret"
    JWT_ALGORITHM: str = "HS256"

    # Collaborators
    COMMUNICATIONS_SERVICE_URL: str = "http://communications-service:8004"
    NOTIFICATIONS_ENABLED: bool = True
    INVOICE_STORAGE_DIR: str = "var/invoices"
    INVOICE_BASE_URL: str = "http://localhost:8000/invoices"

    # Store
    STORE_NAME: str = "Lanka Chemist"
    STORE_ADDRESS: str = "Colombo, Sri Lanka"
    STORE_LATITUDE: Optional[float] = 6.9271
    STORE_LONGITUDE: Optional[float] = 79.8612
    DELIVERY_RATE_PER_KM: Decimal = Decimal("25")
    CURRENCY_PREFIX: str = "Rs"

    # Checkout
    ORDER_NUMBER_PREFIX: str = "LC"
    CHECKOUT_MAX_ATTEMPTS: int = 3
    CHECKOUT_RETRY_BACKOFF_SECONDS: float = 0.05

    # Rate limiting
    RATE_LIMIT_ENABLED: bool = True
    RATE_LIMIT_STORAGE_URI: str = "memory://"
    PLACE_ORDER_RATE_LIMIT: str = "10/minute"

    model_config = SettingsConfigDict(
        env_file=".env", env_file_encoding="utf-8", extra="ignore"
    )

    @field_validator("DATABASE_URL")
    @classmethod
    def assemble_db_connection(cls, v: Optional[str]) -> str:
        if isinstance(v, str):
            if v.startswith("postgresql://"):
                return v.replace("postgresql://", "postgresql+psycopg://", 1)
        return v

    @field_validator("CHECKOUT_MAX_ATTEMPTS")
    @classmethod
    def at_least_one_attempt(cls, v: int) -> int:
        if v < 1:
            raise ValueError("CHECKOUT_MAX_ATTEMPTS must be >= 1")
        return v


@lru_cache
def get_settings() -> Settings:
    """
    Return the global settings instance, cached.
    """
    return Settings()
