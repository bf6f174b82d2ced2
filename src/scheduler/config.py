from typing import Literal

from pydantic import field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    model_config = SettingsConfigDict(env_file=".env", env_file_encoding="utf-8")

    deepseek_api_key: str = ""
    gemini_api_key: str = ""

    # Remote extraction settings
    llm_provider: Literal["deepseek", "gemini"] = "deepseek"
    llm_model: str = ""
    llm_timeout_seconds: float = 15.0

    user_timezone: str = "UTC"
    data_dir: str = "~/.quick-scheduler"
    log_level: str = "INFO"

    # Sentry error tracking
    sentry_dsn: str = ""
    sentry_environment: str = "production"

    @field_validator("llm_provider", mode="before")
    @classmethod
    def _normalize_provider(cls, value: object) -> object:
        if isinstance(value, str):
            return value.strip().lower()
        return value

    @property
    def has_deepseek(self) -> bool:
        return bool(self.deepseek_api_key)

    @property
    def has_gemini(self) -> bool:
        return bool(self.gemini_api_key)

    @property
    def has_llm(self) -> bool:
        if self.llm_provider == "gemini":
            return self.has_gemini
        return self.has_deepseek

    @property
    def has_sentry(self) -> bool:
        return bool(self.sentry_dsn)


settings = Settings()
