"""
Configuration management using Pydantic Settings.
Handles environment variables and YAML setup file loading.
"""

from functools import lru_cache
from pathlib import Path
from typing import Any, Optional

import yaml
from pydantic import AliasChoices, Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

MIAMI_HOST = "mualmaip11.mcs.miamioh.edu"


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    # Polling cadence
    check_interval_ms: int = Field(default=120_000, alias="SEAT_CHECK_INTERVAL")

    # Browser Configuration
    headless: bool = Field(default=True, alias="HEADLESS")
    slow_mo_ms: int = Field(
        default=0,
        validation_alias=AliasChoices("BROWSER_SLOWMO", "PUPPETEER_SLOWMO"),
    )
    course_list_url: str = Field(
        default="https://www.apps.miamioh.edu/courselist/",
        alias="COURSE_LIST_URL",
    )
    campus: str = Field(default="Oxford", alias="CAMPUS")
    navigation_attempts: int = Field(default=3, alias="NAVIGATION_ATTEMPTS")
    navigation_retry_delay_ms: int = Field(default=2_000, alias="NAVIGATION_RETRY_DELAY")
    navigation_timeout_ms: int = Field(default=45_000, alias="NAVIGATION_TIMEOUT")
    filter_timeout_ms: int = Field(default=60_000, alias="FILTER_TIMEOUT")
    status_timeout_ms: int = Field(default=7_000, alias="STATUS_TIMEOUT")

    # SMTP relay Configuration
    smtp_host: str = Field(default=MIAMI_HOST, alias="SMTP_HOST")
    smtp_port: int = Field(default=587, alias="SMTP_PORT")
    smtp_user: Optional[str] = Field(
        default=None,
        alias="SMTP_USER",
        description="Relay login; defaults to the monitored user's address",
    )
    smtp_password: Optional[str] = Field(default=None, alias="SMTP_PASS")
    smtp_timeout: int = Field(default=30, alias="SMTP_TIMEOUT")
    notification_max_retries: int = Field(default=1, alias="NOTIFICATION_MAX_RETRIES")

    # Network reachability
    connectivity_host: str = Field(default=MIAMI_HOST, alias="CONNECTIVITY_HOST")
    connectivity_timeout: float = Field(default=5.0, alias="CONNECTIVITY_TIMEOUT")
    connectivity_backoff_seconds: float = Field(default=60.0, alias="CONNECTIVITY_BACKOFF")

    # Setup
    email_domain: str = Field(default="@miamioh.edu", alias="EMAIL_DOMAIN")
    setup_config_path: Optional[str] = Field(default=None, alias="SETUP_CONFIG_PATH")

    # Application Settings
    log_level: str = Field(default="INFO", alias="LOG_LEVEL")

    # Logfire Configuration
    logfire_token: Optional[str] = Field(default=None, alias="LOGFIRE_TOKEN")

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
        populate_by_name=True,
        frozen=True,
    )

    @field_validator("log_level")
    @classmethod
    def validate_log_level(cls, v: str) -> str:
        """Validate log level is one of the standard levels."""
        valid_levels = ["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"]
        v = v.upper()
        if v not in valid_levels:
            raise ValueError(f"Log level must be one of {valid_levels}")
        return v

    @field_validator(
        "check_interval_ms",
        "navigation_attempts",
        "navigation_timeout_ms",
        "filter_timeout_ms",
        "status_timeout_ms",
        "notification_max_retries",
    )
    @classmethod
    def validate_positive(cls, v: int) -> int:
        if v <= 0:
            raise ValueError("Value must be greater than zero")
        return v

    @field_validator("navigation_retry_delay_ms", "slow_mo_ms")
    @classmethod
    def validate_non_negative(cls, v: int) -> int:
        if v < 0:
            raise ValueError("Value must not be negative")
        return v

    @field_validator("connectivity_backoff_seconds", "connectivity_timeout")
    @classmethod
    def validate_positive_seconds(cls, v: float) -> float:
        if v <= 0:
            raise ValueError("Value must be greater than zero")
        return v

    @field_validator("email_domain")
    @classmethod
    def validate_email_domain(cls, v: str) -> str:
        if not v.startswith("@"):
            raise ValueError("EMAIL_DOMAIN must start with '@'")
        return v.lower()

    @property
    def check_interval_seconds(self) -> float:
        return self.check_interval_ms / 1000

    def load_setup_config(self, path: Optional[str] = None) -> dict[str, Any]:
        """Load a non-interactive setup document from YAML."""
        path = Path(path or self.setup_config_path or "")
        if not path.is_file():
            raise FileNotFoundError(
                f"Setup configuration file not found: {path.absolute()}"
            )

        with open(path, "r", encoding="utf-8") as f:
            config = yaml.safe_load(f)

        if not isinstance(config, dict):
            raise ValueError(f"Invalid setup configuration: expected a mapping in {path}")

        missing = [key for key in ("email", "year", "term", "crns") if key not in config]
        if missing:
            raise ValueError(
                f"Invalid setup configuration: missing {', '.join(missing)} in {path}"
            )

        return config


@lru_cache()
def get_settings() -> Settings:
    """
    Get application settings singleton.
    Uses lru_cache to ensure single instance across application.
    """
    return Settings()
