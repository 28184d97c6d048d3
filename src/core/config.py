"""
Application configuration and settings management.
Uses Pydantic Settings for type-safe environment variable handling.

Provider Priority:
  - LLM: OpenRouter (primary) → Groq (fallback)
  - Tools: Open-Meteo forecast API, local python3 interpreter
"""

from functools import lru_cache
from typing import Optional

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    model_config = SettingsConfigDict(
        env_file=".env", env_file_encoding="utf-8", extra="ignore"
    )

    # Application
    app_env: str = Field(default="development", alias="APP_ENV")
    log_level: str = Field(default="INFO", alias="LOG_LEVEL")

    # OpenRouter Configuration (Primary LLM)
    openrouter_api_key: Optional[str] = Field(default=None, alias="OPENROUTER_API_KEY")
    openrouter_base_url: str = Field(
        default="https://openrouter.ai/api/v1", alias="OPENROUTER_BASE_URL"
    )
    openrouter_model: str = Field(
        default="meta-llama/llama-3.3-70b-instruct", alias="OPENROUTER_MODEL"
    )

    # Groq Configuration (Fallback LLM)
    groq_api_key: Optional[str] = Field(default=None, alias="GROQ_API_KEY")
    groq_model: str = Field(default="llama-3.3-70b-versatile", alias="GROQ_MODEL")

    # Open-Meteo
    open_meteo_base_url: str = Field(
        default="https://api.open-meteo.com/v1", alias="OPEN_METEO_BASE_URL"
    )
    weather_timeout_seconds: float = Field(default=8.0, alias="WEATHER_TIMEOUT_SECONDS")

    # Python Execution
    python_executable: str = Field(default="python3", alias="PYTHON_EXECUTABLE")
    python_timeout_seconds: float = Field(default=10.0, alias="PYTHON_TIMEOUT_SECONDS")
    python_max_output_bytes: int = Field(
        default=1024 * 1024, alias="PYTHON_MAX_OUTPUT_BYTES"
    )

    @property
    def llm_configured(self) -> bool:
        """True when at least one chat model provider has a key."""
        return bool(self.openrouter_api_key or self.groq_api_key)


@lru_cache()
def get_settings() -> Settings:
    """Get cached settings instance."""
    return Settings()
