"""
Configuration settings for the Image Labeler service.

Values come from environment variables, with `.env` support for local
development.
"""

from functools import lru_cache
from typing import List, Optional

from pydantic_settings import BaseSettings


class LabelerSettings(BaseSettings):
    # Google OAuth client
    GOOGLE_OAUTH_CLIENT_ID: Optional[str] = None
    GOOGLE_OAUTH_CLIENT_SECRET: Optional[str] = None
    GOOGLE_OAUTH_REDIRECT_URI: str = "http://localhost:8000/api/oauth2/callback"

    # Scopes requested at login. openid/email are needed for the identity token.
    SCOPES: List[str] = [
        "openid",
        "email",
        "https://www.googleapis.com/auth/drive",
        "https://www.googleapis.com/auth/drive.readonly",
        "https://www.googleapis.com/auth/drive.file",
        "https://www.googleapis.com/auth/drive.photos.readonly",
    ]

    ENVIRONMENT: str = "development"
    LOG_LEVEL: str = "INFO"

    # Where the OAuth callback sends the browser once cookies are set
    DASHBOARD_URL: str = "/"

    # Label ledger
    LABELS_FILE_NAME: str = "image_labels.csv"
    LEDGER_MAX_RETRIES: int = 3

    # Drive API
    DRIVE_PAGE_SIZE: int = 100
    DRIVE_CHUNK_SIZE: int = 1024 * 1024

    # Token cookies (7 days, same as the browser-side cookie lifetime)
    TOKEN_COOKIE_MAX_AGE: int = 7 * 24 * 3600

    CORS_ORIGINS: List[str] = [
        "http://localhost:3000",
        "http://localhost:8000",
        "http://127.0.0.1:8000",
    ]

    @property
    def is_production(self) -> bool:
        return self.ENVIRONMENT.lower() == "production"

    def oauth_configured(self) -> bool:
        return bool(self.GOOGLE_OAUTH_CLIENT_ID and self.GOOGLE_OAUTH_CLIENT_SECRET)

    class Config:
        env_file = ".env"
        extra = "ignore"  # Ignore extra env vars from .env file


@lru_cache()
def get_settings() -> LabelerSettings:
    return LabelerSettings()
