from pathlib import Path
from typing import Literal
import logging

from croniter import croniter
from pydantic import field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from epg_engine.utils.timezone import is_valid_timezone


logger = logging.getLogger(__name__)

JOURNAL_MODES = ("DELETE", "TRUNCATE", "PERSIST", "MEMORY", "WAL", "OFF")


class CustomSettings(BaseSettings):
    """Guide engine settings, read from the environment or a .env file.

    Every field is checked when the settings are built, so a bad value
    stops the service at import time.
    """

    store_backend: Literal["memory", "sqlite"] = "memory"
    database_path: str = "./data/epg.db"
    epg_store_key: str = "app:epg_v1"
    sqlite_journal_mode: str = "WAL"

    guide_timezone: str = "UTC"
    placeholder_start_hour: int = 6
    placeholder_slot_count: int = 12
    placeholder_slot_duration_minutes: int = 60
    generate_placeholder_shells: bool = True

    reminder_lead_minutes: int = 2
    now_next_refresh_cron: str = "* * * * *"
    log_level: str = "INFO"

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    @field_validator("store_backend", mode="before")
    @classmethod
    def lower_store_backend(cls, value):
        return value.lower() if isinstance(value, str) else value

    @field_validator("database_path", "epg_store_key")
    @classmethod
    def require_text(cls, value: str, info) -> str:
        if not value.strip():
            raise ValueError(f"{info.field_name} must not be empty")
        return value

    @field_validator("sqlite_journal_mode")
    @classmethod
    def validate_journal_mode(cls, value: str) -> str:
        mode = value.upper()
        if mode not in JOURNAL_MODES:
            raise ValueError(f"sqlite_journal_mode must be one of {', '.join(JOURNAL_MODES)}")
        return mode

    @field_validator("guide_timezone")
    @classmethod
    def validate_guide_timezone(cls, value: str) -> str:
        """Placeholder hours are read in this zone."""
        if not is_valid_timezone(value):
            raise ValueError(f"guide_timezone must be 'UTC' or a valid IANA timezone: {value}")
        return value

    @field_validator("placeholder_start_hour")
    @classmethod
    def validate_start_hour(cls, value: int) -> int:
        if not 0 <= value <= 23:
            raise ValueError("placeholder_start_hour must be between 0 and 23")
        return value

    @field_validator("placeholder_slot_count", "placeholder_slot_duration_minutes")
    @classmethod
    def validate_slot_settings(cls, value: int, info) -> int:
        if value < 1:
            raise ValueError(f"{info.field_name} must be at least 1")
        return value

    @field_validator("reminder_lead_minutes")
    @classmethod
    def validate_lead_minutes(cls, value: int) -> int:
        if value < 0:
            raise ValueError("reminder_lead_minutes must not be negative")
        return value

    @field_validator("now_next_refresh_cron")
    @classmethod
    def validate_refresh_cron(cls, value: str) -> str:
        """Five-field crontab expression for the now/next refresh."""
        if not croniter.is_valid(value):
            raise ValueError(f"now_next_refresh_cron is not a valid cron expression: '{value}'")
        return value

    @field_validator("log_level")
    @classmethod
    def validate_log_level(cls, value: str) -> str:
        level = value.upper()
        if level not in logging.getLevelNamesMapping():
            raise ValueError(f"Unknown log_level: {value}")
        return level

    def __init__(self, **data):
        super().__init__(**data)

        logger.info(
            "Guide store: %s%s (key %s)",
            self.store_backend,
            f" at {self.database_path}" if self.store_backend == "sqlite" else "",
            self.epg_store_key,
        )
        logger.info(
            "Placeholders: %s x %s min from %02d:00 %s (shells %s)",
            self.placeholder_slot_count,
            self.placeholder_slot_duration_minutes,
            self.placeholder_start_hour,
            self.guide_timezone,
            "on" if self.generate_placeholder_shells else "off",
        )
        logger.info(
            "Reminder lead: %s min, now/next refresh: %s",
            self.reminder_lead_minutes,
            self.now_next_refresh_cron,
        )

    def ensure_database_dir(self) -> None:
        """Create the directory holding the SQLite file."""
        try:
            Path(self.database_path).parent.mkdir(parents=True, exist_ok=True)
        except OSError as exc:
            raise ValueError(f"Cannot create directory for '{self.database_path}': {exc}") from exc


settings = CustomSettings()


def setup_logging() -> None:
    """Configure root logging from settings.log_level."""
    logging.basicConfig(
        level=logging.getLevelNamesMapping()[settings.log_level],
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
        datefmt="%Y-%m-%d %H:%M:%S",
    )
