from pydantic_settings import BaseSettings
from pydantic import field_validator
from functools import lru_cache
import json


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    # Database
    DATABASE_URL: str = "sqlite+aiosqlite:///./guru_erp.db"

    # Database Connection Pool Settings (ignored for SQLite)
    DB_POOL_SIZE: int = 10
    DB_MAX_OVERFLOW: int = 20
    DB_POOL_TIMEOUT: int = 30
    DB_POOL_RECYCLE: int = 1800  # Recycle connections after 30 minutes

    # JWT Settings
    SECRET_KEY: str
    ALGORITHM: str = "HS256"
    ACCESS_TOKEN_EXPIRE_MINUTES: int = 12 * 60

    # App Settings
    APP_NAME: str = "Guru Technologies ERP"
    APP_VERSION: str = "1.0.0"
    DEBUG: bool = False

    # CORS - accepts JSON string, comma-separated, or list
    CORS_ORIGINS: list[str] = [
        "http://localhost:3000",
        "http://localhost:5173",
    ]

    # Service desk
    AMC_EXPIRY_WINDOW_DAYS: int = 30  # Dashboard AMC renewal window
    DEFAULT_AMC_MONTHS: int = 12  # AMC length when no expiry is supplied
    LOW_STOCK_THRESHOLD: int = 5  # Parts at or below this are flagged

    # First-run admin account
    SEED_ADMIN_EMAIL: str = "admin@gurutech.in"
    SEED_ADMIN_PASSWORD: str = "Admin@123"

    # Client synchronization
    CLIENT_API_URL: str = "http://localhost:8000/api/v1"
    CLIENT_REMOTE_TIMEOUT_SECONDS: float = 15.0

    @field_validator('CORS_ORIGINS', mode='before')
    @classmethod
    def parse_cors_origins(cls, v):
        if isinstance(v, str):
            try:
                return json.loads(v)
            except json.JSONDecodeError:
                return [origin.strip() for origin in v.split(',')]
        return v

    class Config:
        env_file = ".env"
        env_file_encoding = "utf-8"
        case_sensitive = True


@lru_cache()
def get_settings() -> Settings:
    """Get cached settings instance."""
    return Settings()


settings = get_settings()
