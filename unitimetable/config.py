from functools import lru_cache
from pathlib import Path
import logging
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

from pydantic import field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


logger = logging.getLogger(__name__)


class AppSettings(BaseSettings):
    """Application settings loaded from UNITIMETABLE_* environment variables."""

    settings_path: Path = Path.home() / ".unitimetable" / "settings.json"
    request_timeout_sec: float = 30.0  # Per (source, year) request
    max_workers: int = 8
    host: str = "127.0.0.1"
    port: int = 3001
    public_base_url: str = "http://localhost:3001"  # Used to build webcal:// links
    calendar_filename: str = "unibo-calendar.ics"
    timezone: str = "Europe/Rome"  # Zone of the API's naive timestamps
    log_level: str = "INFO"

    model_config = SettingsConfigDict(
        env_prefix="UNITIMETABLE_",
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    @field_validator("request_timeout_sec")
    @classmethod
    def validate_timeout(cls, value: float) -> float:
        """Every request needs a finite timeout."""
        if value <= 0:
            raise ValueError("request_timeout_sec must be > 0")
        return value

    @field_validator("max_workers", "port")
    @classmethod
    def validate_positive_ints(cls, value: int, info) -> int:
        if value <= 0:
            raise ValueError(f"{info.field_name} must be > 0")
        return value

    @field_validator("public_base_url")
    @classmethod
    def validate_base_url(cls, value: str) -> str:
        """Validate the public base URL is HTTP/HTTPS."""
        if not value.lower().startswith(("http://", "https://")):
            raise ValueError(f"public_base_url must be HTTP/HTTPS: {value}")
        return value.rstrip("/")

    @field_validator("timezone")
    @classmethod
    def validate_timezone(cls, value: str) -> str:
        """The zone must be known to zoneinfo (e.g. Europe/Rome)."""
        try:
            ZoneInfo(value)
        except (ZoneInfoNotFoundError, ValueError) as e:
            raise ValueError(f"Unknown timezone: {value}") from e
        return value

    @property
    def tzinfo(self) -> ZoneInfo:
        """Zone used to read the API's naive timestamps."""
        return ZoneInfo(self.timezone)

    @field_validator("log_level")
    @classmethod
    def validate_log_level(cls, value: str) -> str:
        normalized = value.upper()
        allowed = {"DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"}
        if normalized not in allowed:
            raise ValueError(f"log_level must be one of {sorted(allowed)}")
        return normalized


@lru_cache(maxsize=1)
def get_settings() -> AppSettings:
    settings = AppSettings()
    logger.debug("Configuration loaded:")
    logger.debug("  Settings file: %s", settings.settings_path)
    logger.debug("  Request timeout: %ss", settings.request_timeout_sec)
    logger.debug("  Max workers: %s", settings.max_workers)
    logger.debug("  Public base URL: %s", settings.public_base_url)
    logger.debug("  Timezone: %s", settings.timezone)
    return settings


def setup_logging(level: str = "INFO") -> None:
    """Configure application logging."""
    logging.basicConfig(
        level=getattr(logging, level.upper(), logging.INFO),
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
        datefmt="%Y-%m-%d %H:%M:%S",
    )
