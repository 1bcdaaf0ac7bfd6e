"""Application configuration with environment variables."""

from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    model_config = SettingsConfigDict(env_file=".env", extra="ignore")

    # Environment
    ENV: str = "dev"

    # App Version (format: a.bc.de - major.feature.patch)
    VERSION: str = "0.01.00"

    # Database
    DATABASE_URL: str

    # Internal scheduled endpoints (cron jobs, admin dashboard backend)
    INTERNAL_SECRET: str = ""  # Secret for /internal/scheduled/*, /workflows/*, /jobs/*

    # CORS
    CORS_ORIGINS: str = "http://localhost:3000"

    # Error Tracking (optional, set in production)
    SENTRY_DSN: str = ""

    # Program calendar
    PROGRAM_TIMEZONE: str = "UTC"  # Day boundary used for elapsed-day math
    FOLLOW_UP_LEAD_DAYS: int = 1  # Follow-up consultation is scheduled this many days out
    FOLLOW_UP_CATCH_UP_DAYS: int = 3  # 0 = exact-day milestone matching only

    # AI content producer (diet/action plan drafts)
    CONTENT_API_KEY: str = ""  # Leave empty to skip generation steps
    CONTENT_MODEL: str = "gpt-4o-mini"
    CONTENT_BASE_URL: str = "https://api.openai.com/v1"
    CONTENT_TIMEOUT_SECONDS: float = 45.0

    # Scheduler worker
    WORKER_POLL_INTERVAL: int = 30

    @property
    def cors_origins_list(self) -> list[str]:
        """Parse CORS_ORIGINS into a list."""
        return [o.strip() for o in self.CORS_ORIGINS.split(",") if o.strip()]

    @property
    def content_producer_enabled(self) -> bool:
        return bool(self.CONTENT_API_KEY)


settings = Settings()
