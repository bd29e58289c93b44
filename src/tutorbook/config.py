from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        env_prefix="TUTORBOOK_",
        case_sensitive=False,
    )

    # App
    env: str = "development"
    debug: bool = False
    log_level: str = "INFO"

    # Managed backend (REST tables + functions)
    backend_url: str = "http://localhost:54321"
    backend_service_key: str = ""
    backend_timeout_seconds: float = 10.0

    # Payment webhook
    payment_webhook_secret: str = ""
    webhook_tolerance_seconds: int = 300

    # Scheduling
    slot_granularity_minutes: int = 30
    booking_horizon_days: int = 28
    default_hourly_rate: float = 50.0

    # Booking flow
    rate_limit_min_interval_seconds: float = 2.0
    processing_close_delay_seconds: float = 3.0
    reset_delay_seconds: float = 0.3


def get_settings() -> Settings:
    return Settings()
