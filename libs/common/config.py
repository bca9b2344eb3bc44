from functools import lru_cache
from typing import Literal, Optional

from pydantic import field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Global application settings."""

    # Application
    ENVIRONMENT: Literal["local", "development", "production", "test"] = "local"
    LOG_LEVEL: str = "INFO"
    CURRENCY: str = "INR"

    # Database
    DATABASE_URL: str
    DB_POOL_SIZE: int = 40
    DB_MAX_OVERFLOW: int = 20
    DB_POOL_TIMEOUT: int = 30
    DB_POOL_RECYCLE: int = 1800
    DB_ECHO: bool = False

    # Redis (job locks, arq queue)
    REDIS_URL: str = "redis://localhost:6379/0"

    # Identity collaborator (JWT issuer)
    SUPABASE_JWT_SECRET: str = "test-jwt-secret"

    # Rate limiting
    RATE_LIMIT_ENABLED: bool = True
    RATE_LIMIT_STORAGE_URI: str = "memory://"

    # Razorpay (brand funding + creator payouts)
    RAZORPAY_BASE_URL: str = "https://api.razorpay.com"
    RAZORPAY_KEY_ID: str = ""
    RAZORPAY_KEY_SECRET: str = ""
    RAZORPAY_ACCOUNT_NUMBER: str = ""
    RAZORPAY_WEBHOOK_SECRET: str = ""
    PAYOUT_PROVIDER_TIMEOUT_SECONDS: float = 15.0

    # Social metrics providers
    YOUTUBE_API_KEY: Optional[str] = None
    INSTAGRAM_ACCESS_TOKEN: Optional[str] = None
    METRICS_PROVIDER_TIMEOUT_SECONDS: float = 10.0

    # Batch jobs
    PAYOUT_BATCH_SIZE: int = 20
    FRAUD_SWEEP_PAGE_SIZE: int = 200
    METRICS_PAGE_SIZE: int = 200
    JOB_LOCK_TTL_SECONDS: int = 900

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


@lru_cache
def get_settings() -> Settings:
    """
    Return the global settings instance, cached.
    """
    return Settings()
