from functools import lru_cache

from pydantic import field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    model_config = SettingsConfigDict(
        env_file=".env", env_file_encoding="utf-8", extra="ignore"
    )

    # OpenRouter settings
    openrouter_api_key: str | None = None
    openrouter_base_url: str = "https://openrouter.ai/api/v1"
    openrouter_model: str = "gpt-4o-mini"

    # Attribution headers sent with every OpenRouter request
    openrouter_referer: str = "https://expense-tacker-backend.netlify.app"
    openrouter_app_title: str = "Expense Tracker"

    # AI Options
    ai_timeout: float | None = 30.0
    ai_debug_logging: bool = False

    # Prompt rendering
    currency_symbol: str = "₹"

    # Service settings
    cors_allow_origins: str = "*"
    host: str = "0.0.0.0"
    port: int = 8000

    @field_validator("openrouter_api_key", mode="before")
    @classmethod
    def normalize_api_key(cls, v: str | None) -> str | None:
        """Strip the API key, treating empty strings as not configured."""
        if v is None:
            return None
        v = str(v).strip()
        return v or None

    @field_validator("openrouter_base_url", mode="before")
    @classmethod
    def normalize_base_url(cls, v: str | None) -> str:
        """Drop trailing slashes, defaulting empty to the public OpenRouter API."""
        if v is None or v == "":
            return "https://openrouter.ai/api/v1"
        return v.rstrip("/")

    @field_validator("ai_timeout", mode="before")
    @classmethod
    def blank_timeout_is_none(cls, v):
        if isinstance(v, str) and not v.strip():
            return None
        return v

    @field_validator("ai_timeout")
    @classmethod
    def non_positive_timeout_disables(cls, v: float | None) -> float | None:
        """AI_TIMEOUT=0 (or blank) means wait indefinitely."""
        if v is not None and v <= 0:
            return None
        return v

    @property
    def has_api_key(self) -> bool:
        return self.openrouter_api_key is not None

    @property
    def cors_origins(self) -> list[str]:
        return [x.strip() for x in self.cors_allow_origins.split(",") if x.strip()]


@lru_cache
def get_settings() -> Settings:
    return Settings()
