"""
SalesDesk - Configuration Management

Centralized configuration using Pydantic Settings.
All secrets and connection strings are loaded from environment variables.

Security: No secrets are hardcoded. Use .env for local development.
"""

from pathlib import Path
from typing import List

from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    """
    Application settings loaded from environment variables.

    Attributes:
        DATABASE_URL: SQLAlchemy URL (PostgreSQL in production, SQLite locally)
        SESSION_TTL_MINUTES: Sliding idle window for server-side sessions
        PASSWORD_EXPIRY_DAYS: Lifetime of a password from the moment it is set
        INACTIVITY_RESET_DAYS: Days without sign-in before a forced reset
        RESET_TOKEN_TTL_HOURS: Lifetime of a self-service reset token
        BCRYPT_WORK_FACTOR: bcrypt cost (2^N rounds)
        POLICY_FILE: YAML file with company allow-list and role grants
    """

    # Database
    DATABASE_URL: str = "sqlite:///./salesdesk.db"

    # Sessions
    SESSION_TTL_MINUTES: int = 30
    SESSION_COOKIE_NAME: str = "salesdesk_session"

    # Password policy
    BCRYPT_WORK_FACTOR: int = 12
    MIN_PASSWORD_LENGTH: int = 6
    STRONG_PASSWORD_LENGTH: int = 8
    PASSWORD_EXPIRY_DAYS: int = 30
    INACTIVITY_RESET_DAYS: int = 10

    # Password reset
    RESET_TOKEN_TTL_HOURS: int = 24
    REVOKE_SESSIONS_ON_RESET: bool = True
    RESET_TOKEN_IN_RESPONSE: bool = False  # Development only; no mailer wired

    # Background sweeper
    SWEEPER_ENABLED: bool = True
    SWEEP_INTERVAL_SECONDS: int = 3600

    # Dashboard statistics cache
    STATS_CACHE_TTL_SECONDS: int = 300

    # Authorization policy data
    POLICY_FILE: Path = Path(__file__).parent / "gateway" / "policies.yaml"

    # CORS
    ALLOWED_ORIGINS: List[str] = ["http://localhost:3000"]

    LOG_LEVEL: str = "INFO"

    class Config:
        env_file = ".env"
        env_file_encoding = "utf-8"
        case_sensitive = True


settings = Settings()
