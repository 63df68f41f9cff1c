"""Application settings loaded from environment variables."""

import os
from pathlib import Path

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


def _env_file() -> str | None:
    if os.getenv("PYTEST_CURRENT_TEST"):
        return None
    return ".env"


class Settings(BaseSettings):
    """AgroTask alert configuration. All values come from environment variables."""

    app_name: str = Field(default="AgroTask")

    # Waapi (WhatsApp gateway)
    waapi_api_url: str = Field(default="https://waapi.app/api/v1")
    waapi_instance_id: str = Field(default="")
    waapi_token: str = Field(default="")
    gateway_timeout_seconds: float = Field(default=15.0)

    # Delivery retries
    send_max_attempts: int = Field(default=3)
    send_retry_base_seconds: float = Field(default=1.0)
    send_retry_max_seconds: float = Field(default=5.0)

    # Phone numbers without a country prefix are assumed domestic
    default_country_code: str = Field(default="55")

    # Database
    database_path: Path = Field(default=Path("data/agrotask.db"))

    # Turso (hosted libSQL); overrides database_path when set
    turso_database_url: str = Field(default="")
    turso_auth_token: str = Field(default="")

    # Business clock (fixed offset, no daylight saving)
    business_utc_offset_hours: int = Field(default=-3)

    # Scheduling cadence
    invocation_period_minutes: int = Field(default=5)
    individual_alert_lookahead_minutes: int = Field(default=15)

    # HTTP invocation
    webhook_port: int = Field(default=8443)
    webhook_secret: str = Field(default="")

    # Logging
    log_level: str = Field(default="INFO")

    model_config = SettingsConfigDict(env_file=_env_file(), env_file_encoding="utf-8")

    @classmethod
    def settings_customise_sources(
        cls,
        settings_cls: type[BaseSettings],
        init_settings,
        env_settings,
        dotenv_settings,
        file_secret_settings,
    ):
        if os.getenv("PYTEST_CURRENT_TEST"):
            return (init_settings,)
        return (init_settings, env_settings, dotenv_settings, file_secret_settings)


settings = Settings()
