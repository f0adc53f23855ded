"""Application configuration loaded from environment variables."""

from functools import lru_cache
from typing import Literal

from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
    )

    # Environment
    environment: Literal["development", "staging", "production"] = "development"
    log_level: str = "INFO"

    # Redis session store
    redis_url: str = "redis://localhost:6379"
    session_namespace: str = ""
    session_ttl_seconds: int = 7 * 24 * 60 * 60
    # Keep serving sessions from process memory when Redis is unreachable
    session_memory_fallback: bool = True

    # Anthropic (only needed when FF_ENABLE_LLM_GENERATION is on)
    anthropic_api_key: str | None = None

    # LLM Settings
    default_model: str = "claude-sonnet-4-20250514"
    max_tokens: int = 1024
    temperature: float = 0.7

    # Turn generation
    generation_timeout_seconds: float = 45.0
    generation_max_retries: int = 2
    # Recent history messages included in each generation prompt
    generation_history_messages: int = 12

    # API Settings
    api_host: str = "0.0.0.0"
    api_port: int = 8000

    # CORS Settings
    # In production, set CORS_ORIGINS to a comma-separated list of allowed origins
    cors_origins: str = ""

    @property
    def is_development(self) -> bool:
        return self.environment == "development"

    @property
    def is_production(self) -> bool:
        return self.environment == "production"

    @property
    def cors_origins_list(self) -> list[str]:
        """Get CORS origins as a list.

        Returns:
            List of allowed origins. In development, includes localhost.
            In production, only returns explicitly configured origins.
        """
        if self.cors_origins:
            return [origin.strip() for origin in self.cors_origins.split(",") if origin.strip()]
        if self.is_development:
            return [
                "http://localhost:3000",
                "http://localhost:8000",
                "http://127.0.0.1:3000",
                "http://127.0.0.1:8000",
            ]
        return []


@lru_cache
def get_settings() -> Settings:
    """Get cached settings instance."""
    return Settings()
