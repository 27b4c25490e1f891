from pathlib import Path

from pydantic_settings import BaseSettings, SettingsConfigDict

# Resolve .env from the project root so it loads regardless of cwd
_PROJECT_ROOT = Path(__file__).resolve().parent.parent.parent
_ENV_FILE = _PROJECT_ROOT / ".env"


class Settings(BaseSettings):
    model_config = SettingsConfigDict(
        env_file=(str(_ENV_FILE), ".env", "../.env"),
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    # Database
    database_url: str = "sqlite:///./clinic.db"
    database_ssl: bool = False
    db_echo: bool = False
    db_pool_size: int = 5
    db_max_overflow: int = 10
    # Create tables on startup (local development without Alembic)
    auto_create_tables: bool = False

    # JWT
    secret_key: str
    access_token_expire_minutes: int = 60
    algorithm: str = "HS256"

    # CORS
    cors_origins: str = "http://localhost:3000"

    # Availability rules
    schedule_mode: str = "auto"  # auto | weekly | period
    # Step between candidate starts; unset means "same as the requested duration"
    slot_step_minutes: int | None = None
    default_appointment_duration_minutes: int = 30
    alternatives_limit: int = 5
    alternatives_window_minutes: int = 120
    alternatives_days_ahead: int = 3

    # Booking
    booking_max_attempts: int = 3
    booking_retry_backoff_seconds: float = 0.05
    booking_retry_backoff_max_seconds: float = 1.0
    booking_lock_timeout_ms: int = 10_000
    # How long a portal customer may hold a slot while filling in the form
    reservation_hold_seconds: int = 300

    # Boarding urgency thresholds (days remaining, inclusive)
    boarding_red_days: int = 1
    boarding_yellow_days: int = 3

    # Env
    env: str = "development"

    # Email (SMTP). Leave smtp_host empty to disable sending.
    smtp_host: str = ""
    smtp_port: int = 587
    smtp_user: str = ""
    smtp_password: str = ""
    from_email: str = ""
    from_name: str = "Clinic Scheduling"
    # Receives new-booking notifications
    clinic_notification_email: str = ""
    site_name: str = "Clinic"

    @property
    def cors_origins_list(self) -> list[str]:
        return [o.strip() for o in self.cors_origins.split(",") if o.strip()]

    @property
    def email_enabled(self) -> bool:
        return bool(self.smtp_host and self.smtp_user and self.smtp_password and self.from_email)


settings = Settings()
