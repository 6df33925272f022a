from pydantic import field_validator
from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    # App
    APP_ENV: str = "development"
    DEBUG: bool = True
    LOG_LEVEL: str = "INFO"
    ALLOWED_ORIGINS: str = "http://localhost:5173"
    PUBLIC_BASE_URL: str = "http://localhost:8000"

    # Database – SQLite für lokale Entwicklung
    DATABASE_URL: str = "sqlite+aiosqlite:///./worktime.db"

    # Redis (optional – Celery deaktiviert wenn nicht gesetzt)
    REDIS_URL: str = "redis://localhost:6379/0"
    USE_CELERY: bool = False

    # Security
    SECRET_KEY: str = "dev_secret_key_change_in_production_min_32_chars!!"
    ALGORITHM: str = "HS256"
    ACCESS_TOKEN_EXPIRE_MINUTES: int = 60

    # Compliance
    COMPLIANCE_TIMEZONE: str = "Europe/Berlin"
    # Zeitraum für violations_by_type in /compliance/stats
    COMPLIANCE_STATS_HORIZON_DAYS: int = 30
    COMPLIANCE_REPORT_MAX_RANGE_DAYS: int = 366
    COMPLIANCE_CHECK_MAX_RANGE_DAYS: int = 93

    # Report-Ablage (write-once Dateien) und signierte Download-Links
    REPORT_STORAGE_DIR: str = "./var/compliance-reports"
    REPORT_URL_TTL_MINUTES: int = 60

    @field_validator(
        "COMPLIANCE_STATS_HORIZON_DAYS",
        "COMPLIANCE_REPORT_MAX_RANGE_DAYS",
        "COMPLIANCE_CHECK_MAX_RANGE_DAYS",
        "REPORT_URL_TTL_MINUTES",
    )
    @classmethod
    def must_be_positive(cls, v: int) -> int:
        if v <= 0:
            raise ValueError("must be a positive number")
        return v

    @property
    def allowed_origins_list(self) -> list[str]:
        return [o.strip() for o in self.ALLOWED_ORIGINS.split(",")]

    model_config = {"env_file": ".env", "extra": "ignore"}


settings = Settings()
