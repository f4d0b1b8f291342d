from functools import lru_cache
from typing import Literal, Optional

from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
        protected_namespaces=("settings_",),
    )

    # Gemini
    gemini_api_key: Optional[str] = None
    model_name: str = "gemini-1.5-flash"
    model_temperature: float = 0.7
    model_max_tokens: int = 8000
    model_max_attempts: int = 1

    # Reconciliation
    repair_mode: Literal["lenient", "strict"] = "lenient"
    day_overflow: Literal["roll", "clamp", "reject"] = "roll"

    log_level: str = "INFO"

    @property
    def is_model_configured(self) -> bool:
        return bool(self.gemini_api_key)


@lru_cache
def get_settings() -> Settings:
    return Settings()  # pyright: ignore[reportCallIssue]
