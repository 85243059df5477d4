"""Application configuration loaded from environment variables."""

from functools import lru_cache

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Extraction pipeline settings."""

    model_config = SettingsConfigDict(env_file=".env", env_file_encoding="utf-8", extra="ignore")

    llm_provider: str = "gemini"
    gemini_api_key: str | None = None
    gemini_base_url: str = "https://generativelanguage.googleapis.com/v1beta"
    gemini_model: str = "gemini-2.0-flash"
    mistral_api_key: str | None = None
    mistral_base_url: str = "https://api.mistral.ai/v1"
    mistral_model: str = "mistral-small-latest"
    llm_max_attempts: int = Field(default=3, ge=1)

    request_timeout_seconds: float = Field(default=20.0, gt=0)
    remote_max_bytes: int = Field(default=5 * 1024 * 1024, ge=1024)
    browser_user_agent: str = (
        "Mozilla/5.0 (Windows NT 10.0; Win64; x64) AppleWebKit/537.36 "
        "(KHTML, like Gecko) Chrome/120.0.0.0 Safari/537.36"
    )
    accept_language: str = "en-US,en;q=0.9,th;q=0.8"
    youtube_proxy_url: str | None = None

    interface_language: str = "th"
    caption_secondary_language: str = "en"
    default_language: str = "en"

    min_web_content_chars: int = Field(default=50, ge=1)
    min_paragraph_chars: int = Field(default=20, ge=0)


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    """Return cached settings instance."""

    return Settings()
