"""
Application Settings for Room Chat AI

Centralized configuration using Pydantic Settings with .env support.
All environment variables are validated at startup.
"""

from functools import lru_cache
from typing import Optional
from pydantic import model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """
    Application settings loaded from environment variables.

    The message pipeline reads four options directly:
    - BASIC_TIER_DAILY_PROMPT_LIMIT: prompts per UTC day for BASIC users
    - GEMINI_QUEUE_NAME: Redis list used as the job queue
    - AI_MAX_OUTPUT_TOKENS: output budget for each Gemini reply
    - QUEUE_RETRY_BACKOFF_SECONDS: worker pause after infrastructure errors
    """

    # Application Settings
    environment: str = "development"
    debug: bool = False
    log_level: str = "INFO"
    port: int = 7002

    # Auth
    jwt_secret: str = "change-me"
    jwt_algorithm: str = "HS256"

    # Google AI Configuration (accepts GOOGLE_API_KEY or GEMINI_API_KEY)
    google_api_key: Optional[str] = None
    gemini_api_key: Optional[str] = None
    gemini_model: str = "gemini-2.5-pro"

    # Quota / Pipeline Configuration
    basic_tier_daily_prompt_limit: int = 50
    gemini_queue_name: str = "gemini_message_queue"
    ai_max_output_tokens: int = 2000
    queue_retry_backoff_seconds: float = 1.0
    queue_poll_timeout_seconds: int = 1
    worker_concurrency: int = 1

    # Redis Configuration
    redis_url: str = "redis://localhost:6379/0"
    chatroom_list_cache_ttl_seconds: int = 480

    # Stripe Configuration
    stripe_secret_key: Optional[str] = None
    stripe_webhook_secret: Optional[str] = None
    stripe_pro_price_id: Optional[str] = None
    client_url: str = "http://localhost:5173"

    # Database Configuration (SQLModel/SQLAlchemy)
    database_url: Optional[str] = None
    database_pool_size: int = 5
    database_max_overflow: int = 10
    database_pool_timeout: int = 30
    database_echo: bool = False

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    @model_validator(mode="after")
    def validate_pipeline_options(self) -> "Settings":
        """Normalize API keys and reject unusable pipeline limits."""
        # Normalize gemini_api_key to google_api_key
        if not self.google_api_key and self.gemini_api_key:
            self.google_api_key = self.gemini_api_key

        if self.basic_tier_daily_prompt_limit < 1:
            raise ValueError("BASIC_TIER_DAILY_PROMPT_LIMIT must be at least 1")
        if self.ai_max_output_tokens < 1:
            raise ValueError("AI_MAX_OUTPUT_TOKENS must be at least 1")
        if self.queue_retry_backoff_seconds < 0:
            raise ValueError("QUEUE_RETRY_BACKOFF_SECONDS cannot be negative")
        if self.queue_poll_timeout_seconds < 1:
            raise ValueError("QUEUE_POLL_TIMEOUT_SECONDS must be at least 1")
        if self.worker_concurrency < 1:
            raise ValueError("WORKER_CONCURRENCY must be at least 1")

        return self

    @property
    def is_production(self) -> bool:
        """Check if running in production."""
        return self.environment.lower() == "production"

    @property
    def is_development(self) -> bool:
        """Check if running in development."""
        return self.environment.lower() == "development"

    @property
    def async_database_url(self) -> Optional[str]:
        """DATABASE_URL rewritten for the asyncpg driver."""
        database_url = self.database_url
        if not database_url:
            return None
        if database_url.startswith("postgresql://"):
            database_url = database_url.replace("postgresql://", "postgresql+asyncpg://", 1)
        elif database_url.startswith("postgres://"):
            database_url = database_url.replace("postgres://", "postgresql+asyncpg://", 1)
        return database_url


@lru_cache
def get_settings() -> Settings:
    """Get cached settings instance."""
    return Settings()


# Convenience export for direct import
settings = get_settings()
