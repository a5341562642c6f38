"""
Configuration management for the account service
"""
from pydantic_settings import BaseSettings, SettingsConfigDict
from typing import List, Optional


class Settings(BaseSettings):
    """Account service configuration loaded from environment variables"""

    LOG_LEVEL: str = "INFO"

    # Database Configuration
    DATABASE_URL: str = "sqlite:///./accounts.db"
    DB_POOL_SIZE: int = 5
    DB_MAX_OVERFLOW: int = 10
    DB_POOL_TIMEOUT_SECONDS: int = 30
    DB_ISOLATION_LEVEL: Optional[str] = None

    # Credentials
    TOKEN_TTL_SECONDS: int = 7 * 24 * 60 * 60
    PASSWORD_SALT_BYTES: int = 16
    PASSWORD_ROUNDS: int = 29000

    # Identity providers
    PROVIDER_TIMEOUT_SECONDS: float = 5.0
    GOOGLE_USERINFO_URL: str = "https://www.googleapis.com/oauth2/v1/userinfo"
    FACEBOOK_PROFILE_URL: str = "https://graph.facebook.com/v2.7/me"

    # Pictures uploaded through the object store are served under this prefix
    PICTURE_BASE_URL: str = "https://pictures.example.com/"

    DEV_MODE: bool = False

    CORS_ORIGINS: List[str] = ["*"]

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=True
    )


# Global settings instance
settings = Settings()
