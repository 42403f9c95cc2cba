"""
Loads and handles config from config.yml
Secrets (KEY, DISCORD_WEBHOOK_URL, DATABASE_URL) are normally loaded from .env or the environment
"""
import os
from datetime import time
from typing import Any, Dict, List, Literal, Optional
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

import yaml
from dotenv import find_dotenv, load_dotenv
from pydantic import BaseModel, ValidationError, field_validator

from delivery_boy.core.errors import ConfigError

WEEKDAYS = {
    "monday": 0,
    "tuesday": 1,
    "wednesday": 2,
    "thursday": 3,
    "friday": 4,
    "saturday": 5,
    "sunday": 6,
}

# Options read from the environment. YAML keys use the same names, case-insensitive.
ENV_OPTIONS = (
    "DATABASE_URL",
    "DISCORD_WEBHOOK_URL",
    "KEY",
    "HOST",
    "PORT",
    "TIMEZONE",
    "SCHEDULE_WEEKDAY",
    "SCHEDULE_TIME",
    "SCHEDULER_POLL_SECONDS",
    "WEBHOOK_USERNAME",
    "WEBHOOK_TIMEOUT",
    "DELIVERY_MODE",
    "LOG_LEVEL",
    "LOG_FORMAT",
)

DEFAULT_CONFIG_PATH = os.path.join("resources", "config.yml")


class Config(BaseModel):
    # Core
    DATABASE_URL: str
    DISCORD_WEBHOOK_URL: str
    KEY: str

    # Server
    HOST: str = "0.0.0.0"
    PORT: int = 8080

    # Schedule
    TIMEZONE: str = "America/Los_Angeles"
    SCHEDULE_WEEKDAY: str = "saturday"
    SCHEDULE_TIME: str = "10:00"
    SCHEDULER_POLL_SECONDS: float = 1.0

    # Delivery
    WEBHOOK_USERNAME: str = "Delivery Boy"
    WEBHOOK_TIMEOUT: Optional[float] = 30.0
    DELIVERY_MODE: Literal["all_or_nothing", "best_effort"] = "all_or_nothing"

    # Logging
    LOG_LEVEL: str = "INFO"
    LOG_FORMAT: Literal["json", "text"] = "json"

    @field_validator("DATABASE_URL", "DISCORD_WEBHOOK_URL", "KEY")
    @classmethod
    def _not_blank(cls, value: str) -> str:
        if not value or not value.strip():
            raise ValueError("must not be empty")
        return value

    @field_validator("DISCORD_WEBHOOK_URL")
    @classmethod
    def _has_destination(cls, value: str) -> str:
        if not any(url.strip() for url in value.split(",")):
            raise ValueError("must list at least one webhook URL")
        return value

    @field_validator("TIMEZONE")
    @classmethod
    def _known_timezone(cls, value: str) -> str:
        try:
            ZoneInfo(value)
        except (ZoneInfoNotFoundError, ValueError):
            raise ValueError(f"unknown timezone: {value}")
        return value

    @field_validator("SCHEDULE_WEEKDAY")
    @classmethod
    def _known_weekday(cls, value: str) -> str:
        value = value.strip().lower()
        if value not in WEEKDAYS:
            raise ValueError(f"unknown weekday: {value}")
        return value

    @field_validator("SCHEDULE_TIME")
    @classmethod
    def _valid_time(cls, value: str) -> str:
        time.fromisoformat(value.strip())
        return value.strip()

    @field_validator("SCHEDULER_POLL_SECONDS")
    @classmethod
    def _positive_poll(cls, value: float) -> float:
        if value <= 0:
            raise ValueError("must be positive")
        return value

    @property
    def tz(self) -> ZoneInfo:
        return ZoneInfo(self.TIMEZONE)

    @property
    def schedule_weekday(self) -> int:
        return WEEKDAYS[self.SCHEDULE_WEEKDAY]

    @property
    def schedule_time(self) -> time:
        return time.fromisoformat(self.SCHEDULE_TIME)

    @property
    def webhook_urls(self) -> List[str]:
        """Destinations in configured order. Blank pieces (e.g. a trailing comma) are dropped."""
        return [url.strip() for url in self.DISCORD_WEBHOOK_URL.split(",") if url.strip()]

    @property
    def database_path(self) -> str:
        return database_path(self.DATABASE_URL)


def database_path(url: str) -> str:
    """Turn a `sqlite://path`, `sqlite:path` or bare-path location into a file path."""
    for prefix in ("sqlite://", "sqlite:"):
        if url.startswith(prefix):
            url = url[len(prefix):]
            break
    return url.split("?", 1)[0]


def _get_config_path(path: Optional[str], environ: Dict[str, str]) -> Optional[str]:
    """Find the YAML config. It is optional; everything can come from the environment."""
    if path:
        if not os.path.exists(path):
            raise ConfigError(f"Config file not found: {path}")
        return path

    env_path = environ.get("DELIVERY_BOY_CONFIG")
    if env_path:
        if not os.path.exists(env_path):
            raise ConfigError(f"Config file not found: {env_path}")
        return env_path

    if os.path.exists(DEFAULT_CONFIG_PATH):
        return DEFAULT_CONFIG_PATH
    return None


def _read_yaml(path: Optional[str]) -> Dict[str, Any]:
    if path is None:
        return {}
    with open(path, "r", encoding="utf-8") as file:
        data = yaml.safe_load(file) or {}
    if not isinstance(data, dict):
        raise ConfigError(f"{path} must contain a mapping at the top level")
    return {str(key).upper(): value for key, value in data.items()}


def load_config(path: Optional[str] = None, environ: Optional[Dict[str, str]] = None) -> Config:
    """Load configuration from config.yml, with .env and environment variables taking precedence."""
    if environ is None:
        load_dotenv(find_dotenv(usecwd=True))
        environ = dict(os.environ)

    values = _read_yaml(_get_config_path(path, environ))
    for option in ENV_OPTIONS:
        if option in environ:
            values[option] = environ[option]

    # An empty timeout in the environment means "no timeout".
    if values.get("WEBHOOK_TIMEOUT") in ("", "none", "None", "null"):
        values["WEBHOOK_TIMEOUT"] = None

    try:
        return Config(**values)
    except ValidationError as e:
        problems = "; ".join(
            f"{'.'.join(str(part) for part in err['loc'])}: {err['msg']}" for err in e.errors()
        )
        raise ConfigError(f"Invalid configuration: {problems}") from e
