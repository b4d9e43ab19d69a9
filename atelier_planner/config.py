import os
from functools import lru_cache
from typing import List, Optional

from pydantic import BaseModel, Field, field_validator

from atelier_planner.models.scheduling_model import Day, WEEK

# ----------------------------
# Default week (user-editable)
# ----------------------------
# Blocks: (label, start, end)
default_blocks = [
    ("P1-2", "08:00", "09:35"),
    ("P3-4", "09:50", "11:25"),
    ("P6-7", "13:30", "15:05"),
]
default_days = list(WEEK)
default_short_day = Day.WEDNESDAY  # no afternoon block

ENV_PREFIX = "ATELIER_"
LOG_LEVELS = {"CRITICAL", "ERROR", "WARNING", "INFO", "DEBUG", "NOTSET"}


class Settings(BaseModel):
    short_day: Day = default_short_day
    enrollment_quota_percent: int = Field(default=100, ge=0, le=100)
    low_enrollment_threshold: int = Field(default=5, ge=0)
    max_occurrences: int = Field(default=0, ge=0)  # 0 = no cap
    host_api_url: str = "http://127.0.0.1:3000/api"
    host_api_token: Optional[str] = None
    log_level: str = "INFO"
    cors_origins: List[str] = Field(default_factory=lambda: ["*"])

    @field_validator("cors_origins", mode="before")
    @classmethod
    def _split_origins(cls, value):
        if isinstance(value, str):
            return [o.strip() for o in value.split(",") if o.strip()]
        return value

    @field_validator("log_level")
    @classmethod
    def _known_level(cls, value: str) -> str:
        value = value.upper()
        if value not in LOG_LEVELS:
            raise ValueError(f"unknown log level {value!r}")
        return value

    @classmethod
    def from_env(cls, environ=None) -> "Settings":
        environ = os.environ if environ is None else environ
        values = {}
        for name in cls.model_fields:
            key = ENV_PREFIX + name.upper()
            if key in environ:
                values[name] = environ[key]
        return cls(**values)


@lru_cache()
def get_settings() -> Settings:
    return Settings.from_env()
