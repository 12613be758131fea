"""Birthday bot configuration"""

import logging
import re
from datetime import time, timezone, tzinfo
from functools import lru_cache
from pathlib import Path
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

logger = logging.getLogger(__name__)

# === Path Configuration ===
PACKAGE_DIR = Path(__file__).parent.parent
PROJECT_DIR = PACKAGE_DIR.parent

BOT_NAME = "birthday-bot"
BOT_VERSION = "1.0.0"

DEFAULT_MESSAGE = "🎉 **Happy Birthday, {mention}!** 🎂"

_NOTIFY_TIME_RE = re.compile(r"([01][0-9]|2[0-3]):([0-5][0-9])")


class BotSettings(BaseSettings):
    """Birthday bot settings"""

    model_config = SettingsConfigDict(
        env_file=PROJECT_DIR / ".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    # Discord
    bot_token: str = Field(..., min_length=1, description="Discord bot token")
    channel_id: int = Field(..., description="Channel that receives congratulations")
    client_id: int = Field(..., description="Discord application ID")
    guild_id: int = Field(..., description="Guild the bot serves, also the record scope")

    # Storage
    database_path: Path = Field(default=Path("birthdays.db"), description="SQLite file")

    # Health server
    port: int = Field(default=8080, description="Health check HTTP port")

    # Scheduler
    timezone: str = Field(default="UTC", description="Reference timezone for 'today'")
    notify_time: str = Field(default="21:00", description="Daily check time, HH:MM")
    run_on_startup: bool = Field(default=False, description="Run one check after login")
    send_delay: float = Field(default=1.0, ge=0, description="Seconds between messages")
    leap_day_catchup: bool = Field(
        default=True, description="Congratulate 29.02 birthdays on 01.03 in common years"
    )
    birthday_message: str = Field(default=DEFAULT_MESSAGE, description="Message template")

    # Environment
    log_level: str = Field(default="INFO", description="Logging level")

    @field_validator("timezone")
    @classmethod
    def validate_timezone(cls, v: str) -> str:
        """Validate timezone is a known IANA name"""
        if v.upper() == "UTC":
            return "UTC"
        try:
            ZoneInfo(v)
        except (ZoneInfoNotFoundError, ValueError) as e:
            raise ValueError(f"Unknown timezone '{v}'") from e
        return v

    @field_validator("notify_time")
    @classmethod
    def validate_notify_time(cls, v: str) -> str:
        """Validate notify time is HH:MM (24h)"""
        if not _NOTIFY_TIME_RE.fullmatch(v.strip()):
            raise ValueError("NOTIFY_TIME must be HH:MM, e.g. 21:00")
        return v.strip()

    @field_validator("birthday_message")
    @classmethod
    def validate_birthday_message(cls, v: str) -> str:
        """Only {mention} and {name} placeholders are allowed"""
        try:
            v.format(mention="", name="")
        except (KeyError, IndexError, ValueError) as e:
            raise ValueError(f"Invalid BIRTHDAY_MESSAGE template: {e}") from e
        return v

    @field_validator("log_level")
    @classmethod
    def validate_log_level(cls, v: str) -> str:
        """Validate log level is valid"""
        valid_levels = ["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"]
        v_upper = v.upper()
        if v_upper not in valid_levels:
            logger.warning(f"Invalid log level '{v}', defaulting to INFO")
            return "INFO"
        return v_upper

    @property
    def tz(self) -> tzinfo:
        if self.timezone == "UTC":
            return timezone.utc
        return ZoneInfo(self.timezone)

    @property
    def scope_id(self) -> str:
        return str(self.guild_id)

    def get_notify_time(self) -> time:
        """Daily trigger time, aware in the reference timezone"""
        hour, minute = (int(part) for part in self.notify_time.split(":"))
        return time(hour=hour, minute=minute, tzinfo=self.tz)


@lru_cache
def get_settings() -> BotSettings:
    """Get cached settings instance"""
    return BotSettings()  # type: ignore[call-arg]
