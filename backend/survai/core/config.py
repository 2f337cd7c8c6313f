"""
Core configuration for SurvAI tracking.
Uses Pydantic Settings for environment variable management.
"""
from pydantic_settings import BaseSettings, SettingsConfigDict
from functools import lru_cache
from pydantic import model_validator


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    model_config = SettingsConfigDict(
        env_file=".env",
        case_sensitive=True,
    )

    @model_validator(mode="before")
    @classmethod
    def _drop_empty_env_values(cls, data):
        if not isinstance(data, dict):
            return data
        # Hosting platforms sometimes inject empty-string env vars.
        # Treat them as "unset" so typed fields (bool/int/float) don't crash on startup.
        return {key: value for key, value in data.items() if value != ""}

    # Environment
    ENVIRONMENT: str = "development"
    DEBUG: bool = False
    LOG_LEVEL: str = "info"

    # Database
    DATABASE_URL: str = "postgresql://localhost:5432/survai"
    DB_POOL_SIZE: int = 10
    DB_MAX_OVERFLOW: int = 20

    # CORS
    FRONTEND_URL: str = "http://localhost:3000"

    # Tracking
    TRACKING_PIXEL_URL: str = "https://tracking.survai.app/pixel"

    # EPC ranking
    # Look-back window for EPC aggregation in days; 0 aggregates the whole ledger.
    EPC_WINDOW_DAYS: int = 0
    # Per-subject bound on an EPC lookup during ranking. A timeout degrades
    # the whole ranking to static order.
    EPC_TIMEOUT_SECONDS: float = 2.0
    # How many eligible offers a question exposes.
    RANKED_OFFER_LIMIT: int = 5


@lru_cache()
def get_settings() -> Settings:
    """Get cached settings instance."""
    return Settings()


settings = get_settings()
