from typing import List, Optional

from pydantic import Field, field_validator, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


SUPPORTED_CHANNELS = ("email", "sms", "voice")


class DispatchSettings(BaseSettings):
    # Database
    DATABASE_URL: str

    # Scheduling
    POLL_INTERVAL_SECONDS: int = Field(default=10, ge=1)
    SEND_TIMEOUT_SECONDS: float = Field(default=10.0, gt=0)
    DISPATCH_CONCURRENCY: int = Field(default=1, ge=1)
    ENABLED_CHANNELS: str = ",".join(SUPPORTED_CHANNELS)  # comma separated

    # Email (Resend)
    RESEND_API_KEY: Optional[str] = None
    EMAIL_FROM: str = "LaterDate <onboarding@resend.dev>"

    # SMS / voice (Twilio)
    TWILIO_ACCOUNT_SID: Optional[str] = None
    TWILIO_AUTH_TOKEN: Optional[str] = None
    TWILIO_PHONE_NUMBER: Optional[str] = None

    # Trash sweep
    TRASH_RETENTION_DAYS: int = Field(default=30, ge=1)

    # Metrics
    METRICS_ENABLED: bool = False
    METRICS_PORT: int = 9108

    LOG_LEVEL: str = "INFO"

    model_config = SettingsConfigDict(env_prefix="REMINDER_", env_file=".env", extra="ignore")

    @field_validator("ENABLED_CHANNELS")
    @classmethod
    def validate_channels(cls, value: str) -> str:
        channels: List[str] = []
        for raw in value.split(","):
            tag = raw.strip().lower()
            if not tag:
                continue
            if tag not in SUPPORTED_CHANNELS:
                raise ValueError(f"Unsupported channel '{raw.strip()}', expected one of {', '.join(SUPPORTED_CHANNELS)}")
            if tag not in channels:
                channels.append(tag)
        return ",".join(channels)

    @property
    def enabled_channels(self) -> List[str]:
        return [tag for tag in self.ENABLED_CHANNELS.split(",") if tag]

    @model_validator(mode="after")
    def validate_provider_credentials(self):
        """Every enabled channel needs its provider configured"""
        enabled = set(self.enabled_channels)
        if "email" in enabled and not self.RESEND_API_KEY:
            raise ValueError("REMINDER_RESEND_API_KEY is required when the email channel is enabled")
        if enabled & {"sms", "voice"}:
            missing = [
                name
                for name in ("TWILIO_ACCOUNT_SID", "TWILIO_AUTH_TOKEN", "TWILIO_PHONE_NUMBER")
                if not getattr(self, name)
            ]
            if missing:
                raise ValueError(
                    "SMS/voice channels require " + ", ".join(f"REMINDER_{name}" for name in missing)
                )
        return self


def load_settings(**overrides) -> DispatchSettings:
    """Build settings from the environment (and .env), applying explicit overrides."""
    return DispatchSettings(**overrides)
