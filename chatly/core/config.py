"""Application configuration using Pydantic settings."""

from functools import lru_cache
from typing import Literal

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    # Application
    app_env: Literal["development", "staging", "production"] = "development"
    app_debug: bool = False
    app_host: str = "0.0.0.0"
    app_port: int = 8000
    cors_origins: list[str] = Field(
        default_factory=lambda: [
            "http://localhost:3000",
            "http://localhost:3001",
            "http://127.0.0.1:3000",
            "http://127.0.0.1:3001",
        ]
    )

    # LLM Providers
    # Any non-empty key enables the remote model path
    openai_api_key: str = ""
    anthropic_api_key: str = ""
    google_api_key: str = ""

    # LiteLLM
    default_chat_model: str = "gpt-3.5-turbo"
    llm_timeout_seconds: float = 30.0
    llm_max_attempts: int = 2

    # Storage
    storage_backend: Literal["memory", "firestore"] = "memory"
    firestore_emulator_host: str | None = None
    gcp_project_id: str = ""

    # Knowledge crawler
    crawler_timeout_seconds: float = 15.0
    crawler_user_agent: str = "ChatlyBot/0.1 (+https://chatly.example/bot)"

    # Logging
    log_level: str = "INFO"
    log_format: Literal["json", "text"] = "json"

    # Conversation settings
    history_limit: int = 10
    knowledge_context_limit: int = 20

    # Realtime
    realtime_outbox_limit: int = 1000
    shutdown_drain_seconds: float = 5.0

    @property
    def is_development(self) -> bool:
        """Check if running in development mode."""
        return self.app_env == "development"

    @property
    def is_production(self) -> bool:
        """Check if running in production mode."""
        return self.app_env == "production"

    @property
    def has_llm_credentials(self) -> bool:
        """Check if any remote model credential is configured."""
        return bool(self.openai_api_key or self.anthropic_api_key or self.google_api_key)


@lru_cache
def get_settings() -> Settings:
    """Get cached settings instance."""
    return Settings()


settings = get_settings()
