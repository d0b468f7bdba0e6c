"""Environment-driven settings for the tutoring backend."""

from functools import lru_cache

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

# Credentials with this prefix are OpenRouter keys; anything else goes to Gemini.
OPENROUTER_KEY_PREFIX = "sk-or-"


class Settings(BaseSettings):
    """Process-wide configuration loaded from env vars and a local env file."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
        populate_by_name=True,
    )

    api_key: str = Field(default="", alias="API_KEY")
    gemini_model: str = Field(default="gemini-2.5-flash", alias="GEMINI_MODEL")
    openrouter_url: str = Field(
        default="https://openrouter.ai/api/v1/chat/completions",
        alias="OPENROUTER_URL",
    )
    openrouter_model: str = Field(default="google/gemini-2.5-flash", alias="OPENROUTER_MODEL")
    openrouter_reasoning_model: str = Field(
        default="google/gemini-2.5-pro",
        alias="OPENROUTER_REASONING_MODEL",
    )
    openrouter_stream: bool = Field(default=True, alias="OPENROUTER_STREAM")
    app_url: str = Field(default="http://localhost:5173", alias="APP_URL")
    app_title: str = Field(default="EduIA", alias="APP_TITLE")
    request_timeout: float = Field(default=90.0, alias="REQUEST_TIMEOUT")
    log_level: str = Field(default="INFO", alias="LOG_LEVEL")

    @field_validator("api_key", mode="before")
    @classmethod
    def _strip_api_key(cls, value: object) -> object:
        return value.strip() if isinstance(value, str) else value

    @field_validator("log_level")
    @classmethod
    def _upper_log_level(cls, value: str) -> str:
        return value.upper()

    @property
    def has_credential(self) -> bool:
        return bool(self.api_key)

    @property
    def uses_openrouter(self) -> bool:
        """Whether the credential routes to the HTTP chat-completions backend."""
        return self.api_key.startswith(OPENROUTER_KEY_PREFIX)


@lru_cache
def get_settings() -> Settings:
    """Get the cached settings instance.

    The credential is read once; call ``get_settings.cache_clear()`` in tests
    to pick up a changed environment.
    """
    return Settings()
