from typing import Optional
from enum import Enum
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

from pydantic import field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class Environment(str, Enum):
    DEVELOPMENT = "development"
    TEST = "test"
    PRODUCTION = "production"


class Settings(BaseSettings):
    model_config = SettingsConfigDict(
        env_prefix="MEDREMINDER_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    ENVIRONMENT: Environment = Environment.DEVELOPMENT

    # Local on-device database
    DATABASE_URL: str = "sqlite:///medicine_reminder.db"
    DB_ECHO: bool = False  # Set to True for SQL logging

    # Timezone used for "today" and trigger computation.
    # Unset means the device's current local zone, re-read on every call.
    TIMEZONE: Optional[str] = None

    LOG_LEVEL: str = "INFO"

    @field_validator("TIMEZONE", mode="before")
    @classmethod
    def blank_timezone_is_device_local(cls, v: Optional[str]) -> Optional[str]:
        if v is None or (isinstance(v, str) and v.strip() == ""):
            return None
        try:
            ZoneInfo(v)
        except (ZoneInfoNotFoundError, ValueError) as e:
            raise ValueError(f"Unknown timezone: {v}") from e
        return v

    @field_validator("LOG_LEVEL")
    @classmethod
    def normalize_log_level(cls, v: str) -> str:
        return v.upper()


settings = Settings()
