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
    DATABASE_URL: str = "sqlite:///./matchslot.db"

    # Public web app (share + approval links are built on it)
    PUBLIC_BASE_URL: str = "https://matchslot.app"

    # Workflow policy
    # offer_first: approver signs off every offer before it can be shared
    # slot_only: offers are shareable immediately, every booking needs sign-off
    WORKFLOW_MODE: str = "offer_first"
    REQUIRE_SLOT_APPROVAL: bool = True

    # Hold expiry (used only by the explicit expiry sweep)
    SLOT_HOLD_TIMEOUT_MINUTES: int = 15
    PENDING_APPROVAL_TIMEOUT_MINUTES: int = 0  # 0 = pending requests never expire

    # Share/approval token entropy (bytes fed to secrets.token_urlsafe)
    TOKEN_BYTES: int = 32

    # CORS
    CORS_ORIGINS: str = "http://localhost:8081"

    # Internal scheduled endpoints (cron jobs)
    INTERNAL_SECRET: str = ""

    # Error Tracking (optional, set in production)
    SENTRY_DSN: str = ""

    # Rate Limiting (requests per minute)
    RATE_LIMIT_API: int = 60  # General API
    RATE_LIMIT_BOOKING: int = 10  # Public hold/book endpoints

    LOG_LEVEL: str = "INFO"

    @property
    def cors_origins_list(self) -> list[str]:
        """Parse CORS_ORIGINS into a list."""
        return [o.strip() for o in self.CORS_ORIGINS.split(",") if o.strip()]

    @property
    def public_base_url(self) -> str:
        """PUBLIC_BASE_URL without a trailing slash."""
        return self.PUBLIC_BASE_URL.rstrip("/")


settings = Settings()
