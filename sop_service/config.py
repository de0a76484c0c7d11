"""Application configuration using pydantic-settings."""

from functools import lru_cache
from typing import Optional

from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
    )

    # LLM Provider: "openai" or "openrouter"
    llm_provider: str = "openai"

    # API Keys
    openai_api_key: Optional[str] = None
    openrouter_api_key: Optional[str] = None

    # Optional with defaults
    max_file_size_mb: int = 100
    allowed_origins: str = "http://localhost:3000"
    log_level: str = "INFO"

    # LLM settings
    llm_model: str = "gpt-4o-mini"
    llm_temperature: float = 0.2
    llm_max_tokens: int = 16000

    # Uploaded attachments are tagged for retrieval use by the provider
    file_upload_purpose: str = "assistants"

    # Local schema check on the provider output
    validate_output: bool = True
    schema_retry_limit: int = 1

    @property
    def max_file_size_bytes(self) -> int:
        """Return max file size in bytes."""
        return self.max_file_size_mb * 1024 * 1024

    @property
    def cors_origins(self) -> list[str]:
        """Return list of allowed CORS origins."""
        return [origin.strip() for origin in self.allowed_origins.split(",")]


@lru_cache
def get_settings() -> Settings:
    """Get cached settings instance."""
    return Settings()
