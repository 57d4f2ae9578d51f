'''
Holds all the configurations
'''
from typing import Optional

from pydantic_settings import BaseSettings, SettingsConfigDict

class Settings(BaseSettings):
    """
    Manages application configuration using environment variables.
    """
    # Application Metadata
    APP_NAME: str = "Class Scheduler Backend"
    APP_VERSION: str = "0.1.0"
    APP_DESCRIPTION: str = "Recurring class scheduling with instructor and room conflict detection."
    TEST_MODE: bool = False

    # Database URL
    DATABASE_URL_PROD: str = "sqlite+aiosqlite:///./class_scheduler.db"
    DATABASE_URL_TEST: str = "sqlite+aiosqlite:///:memory:"
    AUTO_CREATE_SCHEMA: bool = True
    @property
    def database_url(self) -> str:
        """
        Dynamically returns the correct database URL based on the test_mode flag.
        """
        if self.TEST_MODE:
            return self.DATABASE_URL_TEST
        return self.DATABASE_URL_PROD

    # Scheduling rules
    TIMEZONE: str = "UTC"  # the single civil timezone all time slots are read in
    MIN_SESSION_MINUTES: int = 30
    FUTURE_BUFFER_MINUTES: int = 30

    # Cache (disabled when no URL is given)
    REDIS_URL: Optional[str] = None
    CACHE_TTL_SECONDS: int = 3600

    # Other settings
    BACKEND_CORS_ORIGINS: list[str] = []

    model_config = SettingsConfigDict(env_file=".env", extra="ignore") # automatically loads the .env

# Create a single, importable instance of the settings
settings = Settings()
