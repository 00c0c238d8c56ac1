"""
Application configuration using pydantic-settings.
Loads from environment variables / .env file.
"""

import logging
from functools import lru_cache
from typing import Literal

from pydantic import model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

logger = logging.getLogger(__name__)


def release_window_is_consistent(release_delay_minutes: int, promised_window_hours: int) -> bool:
    """
    Check that the advertised wait covers the actual release delay.

    Logs a warning when users would be promised faster delivery than
    the pipeline releases content.
    """
    if promised_window_hours * 60 >= release_delay_minutes:
        return True
    logger.warning(
        f"Promised window of {promised_window_hours}h is shorter than the "
        f"release delay of {release_delay_minutes}min"
    )
    return False


class Settings(BaseSettings):
    """Application settings loaded from environment."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
    )

    # Application
    app_name: str = "soulsketch"
    app_env: Literal["development", "staging", "production"] = "development"
    debug: bool = False

    # API Server
    host: str = "0.0.0.0"
    port: int = 8000
    public_api_url: str = "http://localhost:8000"
    app_url: str = "http://localhost:5173"

    # Postgres
    database_url: str = ""
    database_ssl: bool = False

    # Redis (Celery broker)
    redis_url: str = "redis://localhost:6379/0"

    # OpenAI
    openai_api_key: str = ""
    openai_model: str = "gpt-4o-mini"
    openai_image_model: str = "gpt-image-1"
    mock_mode: bool = False
    generation_timeout_seconds: float = 120.0
    fallback_image_url_template: str = (
        "https://api.dicebear.com/7.x/{style}/png?seed={seed}"
        "&size=512&radius=40&backgroundType=gradientLinear"
    )

    # Cloudinary (optional, inline storage when unset)
    cloudinary_cloud_name: str = ""
    cloudinary_api_key: str = ""
    cloudinary_api_secret: str = ""
    cloudinary_folder: str = "soulsketch/sketches"

    # Transactional email
    email_api_url: str = "https://api.sendgrid.com/v3/mail/send"
    email_api_key: str = ""
    email_from: str = "no-reply@soulsketch.app"

    # Job queue poller
    job_interval_minutes: int = 5
    job_first_run_delay_seconds: int = 5
    max_error_length: int = 2000
    embedded_scheduler: bool = True

    # Release window
    sketch_release_delay_minutes: int = 600
    sketch_promised_hours: int = 24

    # Notification sweep
    notification_sweep_minutes: int = 5
    notification_batch_size: int = 50

    # Calendar used for daily/tomorrow/monthly period keys
    default_timezone: str = "UTC"

    # Admin
    admin_api_key: str = ""

    @model_validator(mode="after")
    def check_release_window(self) -> "Settings":
        release_window_is_consistent(
            self.sketch_release_delay_minutes,
            self.sketch_promised_hours,
        )
        return self

    @property
    def is_development(self) -> bool:
        return self.app_env == "development"

    @property
    def is_production(self) -> bool:
        return self.app_env == "production"

    @property
    def generation_enabled(self) -> bool:
        """Real generation calls require an API key and mock mode off."""
        return bool(self.openai_api_key) and not self.mock_mode

    @property
    def storage_enabled(self) -> bool:
        return bool(
            self.cloudinary_cloud_name
            and self.cloudinary_api_key
            and self.cloudinary_api_secret
        )


@lru_cache
def get_settings() -> Settings:
    """Get cached settings instance."""
    return Settings()


settings = get_settings()
