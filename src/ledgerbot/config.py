"""Application configuration using pydantic-settings."""

from functools import lru_cache

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    # ======================
    # Telegram
    # ======================
    telegram_bot_token: str = Field(default="", description="Telegram bot token from BotFather")

    # ======================
    # Ledger API
    # ======================
    ledger_api_url: str = Field(
        default="http://localhost:3000/api",
        description="Base URL of the ledger API",
    )
    ledger_api_timeout: float = Field(default=15.0, description="HTTP timeout in seconds")
    platform_url: str = Field(
        default="http://localhost:3000",
        description="Web platform URL (KYC completion link)",
    )
    support_contact: str = Field(default="support@example.com", description="Support contact")

    # ======================
    # Rate limiting (default action class)
    # ======================
    rate_limit_max_requests: int = Field(default=30, description="Requests per window")
    rate_limit_window_seconds: float = Field(default=60.0, description="Window size in seconds")
    rate_limit_max_warnings: int = Field(
        default=3, description="Window violations before a temporary ban"
    )
    rate_limit_ban_minutes: int = Field(default=30, description="Temporary ban duration")

    # ======================
    # Sessions
    # ======================
    session_idle_hours: float = Field(default=24.0, description="Idle session eviction threshold")
    sweep_interval_seconds: float = Field(
        default=3600.0, description="Interval of the periodic cleanup sweep"
    )
    token_refresh_threshold_seconds: float = Field(
        default=300.0, description="Refresh access tokens this long before expiry"
    )

    # ======================
    # Notifications API
    # ======================
    api_host: str = Field(default="0.0.0.0", description="Notifications API bind host")
    api_port: int = Field(default=8000, description="Notifications API port")
    api_enabled: bool = Field(default=True, description="Serve the notifications API next to the bot")
    deposit_webhook_secret: str = Field(
        default="", description="HMAC secret for deposit webhooks (empty disables the check)"
    )

    # ======================
    # Environment
    # ======================
    environment: str = Field(default="development", description="Runtime environment")
    log_level: str = Field(default="INFO", description="Root log level")

    @property
    def is_production(self) -> bool:
        """Check if running in production environment."""
        return self.environment.lower() == "production"

    def get_safe_dict(self) -> dict:
        """Return settings dict with secrets redacted."""
        return {
            "environment": self.environment,
            "log_level": self.log_level,
            "telegram_bot_token": "***" if self.telegram_bot_token else "(not set)",
            "ledger_api_url": self.ledger_api_url,
            "rate_limit": {
                "max_requests": self.rate_limit_max_requests,
                "window_seconds": self.rate_limit_window_seconds,
                "max_warnings": self.rate_limit_max_warnings,
                "ban_minutes": self.rate_limit_ban_minutes,
            },
            "session_idle_hours": self.session_idle_hours,
            "api": f"{self.api_host}:{self.api_port}" if self.api_enabled else "disabled",
            "deposit_webhook_secret": "***" if self.deposit_webhook_secret else "(not set)",
        }


@lru_cache
def get_settings() -> Settings:
    """Get cached settings instance."""
    return Settings()
