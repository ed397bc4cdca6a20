from typing import Literal
from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict
from functools import lru_cache


class Settings(BaseSettings):
    """Application settings."""

    model_config = SettingsConfigDict(env_file=".env", case_sensitive=False, extra="ignore")

    # Database
    database_url: str = Field(default="sqlite+aiosqlite:///./lifeline.db")

    # Field encryption: 64 hex chars (256-bit AES key)
    encryption_key: str = Field(...)

    # Bearer tokens for patient-facing endpoints
    jwt_secret_key: str = Field(default="change-me-in-production")

    # Emergency URL embedded in the QR code
    frontend_url: str = Field(default="http://localhost:5173")
    cors_origins: list[str] = Field(default_factory=lambda: ["http://localhost:5173"])

    # SMS (Twilio)
    twilio_account_sid: str = Field(default="")
    twilio_auth_token: str = Field(default="")
    twilio_phone_number: str = Field(default="")
    twilio_api_url: str = Field(default="https://api.twilio.com")
    sms_timeout_seconds: float = Field(default=10.0, gt=0.0)
    default_country_code: str = Field(default="+52")

    # Email (SMTP)
    smtp_host: str = Field(default="")
    smtp_port: int = Field(default=587)
    smtp_user: str = Field(default="")
    smtp_password: str = Field(default="")
    email_from: str = Field(default="noreply@lifeline.local")
    smtp_timeout_seconds: float = Field(default=15.0, gt=0.0)

    # Panic alert lifecycle
    panic_resolution_policy: Literal["manual", "auto_expire", "both", "none"] = Field(default="manual")
    panic_auto_expire_minutes: int = Field(default=240, gt=0)

    # Logging
    log_level: Literal["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"] = Field(default="INFO")
    log_format: Literal["json", "console"] = Field(default="json")


@lru_cache()
def get_settings() -> Settings:
    """Get cached settings instance."""
    return Settings()
