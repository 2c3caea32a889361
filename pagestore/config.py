from functools import lru_cache
from typing import Any, Literal

from pydantic import field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    # Application
    SITE_NAME: str = "pagestore"
    SITE_URL: str = ""
    LOG_LEVEL: Literal["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"] = "INFO"

    # Storage
    DATA_DIR: str = "data"

    # Rate limiting for write routes (slowapi syntax)
    WRITE_RATE_LIMIT: str = "30/minute"

    @field_validator("LOG_LEVEL", mode="before")
    def normalize_log_level(cls, v: Any):
        if isinstance(v, str):
            return v.upper()
        return v

    @field_validator("SITE_URL", mode="before")
    def strip_site_url(cls, v: Any):
        # An empty SITE_URL yields relative page URLs
        if isinstance(v, str):
            return v.strip().rstrip("/")
        return v

    model_config = SettingsConfigDict(env_file=".env", extra="ignore")


@lru_cache
def get_settings() -> Settings:
    return Settings()
