"""Client configuration using pydantic-settings."""
from functools import lru_cache

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Client settings loaded from environment variables."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
        populate_by_name=True,
    )

    # Backend API - shared with the mobile app (EXPO_PUBLIC_ prefix for Expo exposure)
    api_base_url: str = Field(
        default="http://localhost:5001/api",
        validation_alias="EXPO_PUBLIC_API_URL",
    )

    # Timeouts (seconds)
    api_timeout: float = Field(default=30.0, validation_alias="API_TIMEOUT")
    # Plan generation - backend timeout is 60s, plus buffer
    generation_timeout: float = Field(default=90.0, validation_alias="API_GENERATION_TIMEOUT")
    # AI trainer chat - backend timeout is 30s, plus buffer
    chat_timeout: float = Field(default=35.0, validation_alias="API_CHAT_TIMEOUT")

    # Redis - device-local key-value storage for credentials and cached data
    redis_url: str = Field(default="redis://localhost:6379", validation_alias="REDIS_URL")
    redis_enabled: bool = Field(default=True, validation_alias="REDIS_ENABLED")
    redis_pool_size: int = Field(default=10, validation_alias="REDIS_POOL_SIZE")

    # Staleness thresholds for namespaced cache entries (seconds)
    profile_cache_ttl: int = Field(default=1800, validation_alias="PROFILE_CACHE_TTL")
    plan_cache_ttl: int = Field(default=3600, validation_alias="PLAN_CACHE_TTL")

    @property
    def api_base_url_normalized(self) -> str:
        """API base URL without a trailing slash."""
        return self.api_base_url.rstrip("/")


@lru_cache
def get_settings() -> Settings:
    """Get cached settings instance."""
    return Settings()
