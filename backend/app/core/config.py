"""
Configuration settings for the Vaccination Engine
"""

from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    """Application settings"""

    # Database
    # PostgreSQL in production; tests build their own SQLite engine
    DATABASE_URL: str = "postgresql://postgres@localhost:5432/vaccination"
    # Deadline propagated to every PostgreSQL statement (0 disables it)
    DB_STATEMENT_TIMEOUT_MS: int = 10000
    DB_POOL_SIZE: int = 5
    DB_MAX_OVERFLOW: int = 5

    # Application
    APP_NAME: str = "Vaccination Engine"
    APP_VERSION: str = "1.0.0"
    DEBUG: bool = False
    LOG_LEVEL: str = "INFO"

    # Inventory alerts
    NEARING_EXPIRATION_DAYS: int = 30

    # Coverage report: share of active users with a complete course
    COVERAGE_TARGET_PERCENT: float = 95.0

    # Reminders
    REMINDER_WINDOW_HOURS: int = 24

    # Pagination
    DEFAULT_PAGE_SIZE: int = 20
    MAX_PAGE_SIZE: int = 100

    # CORS
    CORS_ORIGINS: str = "*"

    class Config:
        env_file = ".env"
        case_sensitive = True


settings = Settings()
