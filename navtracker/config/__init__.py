"""
Application Settings
Load from environment variables
"""

from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application settings from environment"""

    # ======================
    # Application
    # ======================
    LOG_LEVEL: str = "INFO"

    # ======================
    # Timezone
    # ======================
    # Local zone used for calendar boundaries (previous midnight, Jan 1)
    TIMEZONE: str = "America/New_York"

    # ======================
    # Real-time NAV
    # ======================
    NAV_BOUNDARY_MINUTES: int = 5
    NAV_NEAR_BOUNDARY_SECONDS: int = 30
    NAV_STALE_AFTER_SECONDS: int = 300
    NAV_DEFAULT_TIMEFRAME: str = "MAX"
    NAV_EXPORT_PRECISION: int = 4

    # ======================
    # Scheduler
    # ======================
    SCHEDULER_BACKEND: str = "apscheduler"  # apscheduler | asyncio

    # ======================
    # Refresh
    # ======================
    REFRESH_CONCURRENCY: int = 5

    # ======================
    # Pydantic v2 config
    # ======================
    model_config = SettingsConfigDict(
        env_file=".env",
        case_sensitive=True,
        extra="forbid",
    )


settings = Settings()
