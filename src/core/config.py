"""Configuration management for the anti-ban engine.

Runtime settings are loaded from environment variables and/or a .env file.
Every engine component also has its own frozen config dataclass (see the
component modules); ``Settings`` only supplies process-wide defaults for them.
"""
from __future__ import annotations

from functools import lru_cache
from pathlib import Path
from typing import List, Optional

from pydantic import Field, ValidationError, ValidationInfo, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from core.exceptions import ConfigurationError

# Project root detection
PROJECT_ROOT = Path(__file__).resolve().parents[2]
ENV_FILE = PROJECT_ROOT / ".env"

DATABASE_FILE = PROJECT_ROOT / "antiban_state.db"
DEFAULT_DATABASE_URL = f"sqlite:///{DATABASE_FILE.as_posix()}"


class Settings(BaseSettings):
    """
    Runtime configuration powered by environment variables and .env overrides.

    All settings can be configured via:
    1. Environment variables (highest priority)
    2. .env file in project root (loaded automatically)
    3. Default values (lowest priority)
    """

    model_config = SettingsConfigDict(
        env_file=ENV_FILE if ENV_FILE.exists() else None,
        env_file_encoding="utf-8",
        extra="ignore",
        case_sensitive=False,
    )

    # -------------------------------------------------------------------------
    # Pacing limiter
    # -------------------------------------------------------------------------
    max_per_minute: int = Field(default=8, alias="ANTIBAN_MAX_PER_MINUTE", ge=1)
    max_per_hour: int = Field(default=200, alias="ANTIBAN_MAX_PER_HOUR", ge=1)
    max_per_day: int = Field(default=1500, alias="ANTIBAN_MAX_PER_DAY", ge=1)
    min_delay_ms: int = Field(default=1500, alias="ANTIBAN_MIN_DELAY_MS", ge=0)
    max_delay_ms: int = Field(default=5000, alias="ANTIBAN_MAX_DELAY_MS", ge=0)
    new_chat_delay_ms: int = Field(default=3000, alias="ANTIBAN_NEW_CHAT_DELAY_MS", ge=0)
    max_identical_messages: int = Field(default=3, alias="ANTIBAN_MAX_IDENTICAL_MESSAGES", ge=1)
    burst_allowance: int = Field(default=3, alias="ANTIBAN_BURST_ALLOWANCE", ge=0)

    # -------------------------------------------------------------------------
    # Warm-up ramp
    # -------------------------------------------------------------------------
    warm_up_days: int = Field(default=7, alias="ANTIBAN_WARM_UP_DAYS", ge=0)
    day1_limit: int = Field(default=20, alias="ANTIBAN_DAY1_LIMIT", ge=1)
    growth_factor: float = Field(default=1.8, alias="ANTIBAN_GROWTH_FACTOR", gt=0)
    inactivity_threshold_hours: float = Field(
        default=72, alias="ANTIBAN_INACTIVITY_THRESHOLD_HOURS", gt=0
    )

    # -------------------------------------------------------------------------
    # Risk monitor
    # -------------------------------------------------------------------------
    disconnect_warning_threshold: int = Field(
        default=3, alias="ANTIBAN_DISCONNECT_WARNING_THRESHOLD", ge=1
    )
    disconnect_critical_threshold: int = Field(
        default=5, alias="ANTIBAN_DISCONNECT_CRITICAL_THRESHOLD", ge=1
    )
    failed_message_threshold: int = Field(default=5, alias="ANTIBAN_FAILED_MESSAGE_THRESHOLD", ge=1)
    auto_pause_at: str = Field(default="high", alias="ANTIBAN_AUTO_PAUSE_AT")

    # -------------------------------------------------------------------------
    # Schedule
    # -------------------------------------------------------------------------
    schedule_timezone: str = Field(default="UTC", alias="ANTIBAN_TIMEZONE")
    active_hour_start: int = Field(default=8, alias="ANTIBAN_ACTIVE_HOUR_START", ge=0, le=23)
    active_hour_end: int = Field(default=21, alias="ANTIBAN_ACTIVE_HOUR_END", ge=1, le=24)

    # -------------------------------------------------------------------------
    # Queue
    # -------------------------------------------------------------------------
    queue_max_attempts: int = Field(default=3, alias="ANTIBAN_QUEUE_MAX_ATTEMPTS", ge=1)
    queue_retry_base_delay_ms: int = Field(
        default=30000, alias="ANTIBAN_QUEUE_RETRY_BASE_DELAY_MS", ge=0
    )
    queue_max_size: int = Field(default=1000, alias="ANTIBAN_QUEUE_MAX_SIZE", ge=1)

    # -------------------------------------------------------------------------
    # Alerts
    # -------------------------------------------------------------------------
    alert_webhook_urls: List[str] = Field(default_factory=list, alias="ANTIBAN_ALERT_WEBHOOK_URLS")
    alert_min_risk_level: str = Field(default="medium", alias="ANTIBAN_ALERT_MIN_RISK_LEVEL")
    alert_cooldown_ms: int = Field(default=300000, alias="ANTIBAN_ALERT_COOLDOWN_MS", ge=0)
    telegram_bot_token: Optional[str] = Field(default=None, alias="ANTIBAN_TELEGRAM_BOT_TOKEN")
    telegram_chat_id: Optional[str] = Field(default=None, alias="ANTIBAN_TELEGRAM_CHAT_ID")
    discord_webhook_url: Optional[str] = Field(default=None, alias="ANTIBAN_DISCORD_WEBHOOK_URL")

    # -------------------------------------------------------------------------
    # Application
    # -------------------------------------------------------------------------
    database_url: str = Field(default=DEFAULT_DATABASE_URL, alias="DATABASE_URL")
    log_level: str = Field(default="INFO", alias="LOG_LEVEL")
    log_format: str = Field(default="text", alias="LOG_FORMAT")  # "text" or "json"
    environment: str = Field(default="local", alias="ENVIRONMENT")

    @field_validator("log_level")
    @classmethod
    def validate_log_level(cls, v: str) -> str:
        """Ensure log level is valid."""
        valid_levels = {"DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"}
        upper = v.upper()
        if upper not in valid_levels:
            raise ValueError(f"log_level must be one of {valid_levels}")
        return upper

    @field_validator("log_format")
    @classmethod
    def validate_log_format(cls, v: str) -> str:
        """Ensure log format is valid."""
        lower = v.lower()
        if lower not in {"text", "json"}:
            raise ValueError("log_format must be 'text' or 'json'")
        return lower

    @field_validator("auto_pause_at", "alert_min_risk_level")
    @classmethod
    def normalize_risk_level(cls, v: str, info: ValidationInfo) -> str:
        """Unknown risk level names fall back to the field default."""
        lower = v.lower()
        if lower not in {"low", "medium", "high", "critical"}:
            return "medium" if info.field_name == "alert_min_risk_level" else "high"
        return lower

    def is_telegram_enabled(self) -> bool:
        """Check if Telegram alerts are configured."""
        return bool(self.telegram_bot_token and self.telegram_chat_id)

    def is_discord_enabled(self) -> bool:
        """Check if Discord alerts are configured."""
        return bool(self.discord_webhook_url)

    def get_alert_targets(self) -> list[str]:
        """Get list of configured alert targets."""
        targets = []
        if self.alert_webhook_urls:
            targets.append("webhook")
        if self.is_telegram_enabled():
            targets.append("telegram")
        if self.is_discord_enabled():
            targets.append("discord")
        return targets


@lru_cache
def get_settings() -> Settings:
    """
    Get cached settings instance.

    Settings are loaded once and cached. To reload settings,
    call `get_settings.cache_clear()` first.

    Raises:
        ConfigurationError: If an environment value fails validation.
    """
    try:
        return Settings()
    except ValidationError as e:
        fields = ", ".join(str(err["loc"][0]) for err in e.errors() if err.get("loc"))
        raise ConfigurationError(f"Invalid settings: {fields}") from e


def reload_settings() -> Settings:
    """Clear settings cache and reload from environment."""
    get_settings.cache_clear()
    return get_settings()
