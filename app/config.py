"""
Configuration management for the Menu Crawler.
Handles environment variables and application settings.
"""
import os
from typing import Optional
from dotenv import load_dotenv

load_dotenv()


DEFAULT_USER_AGENT = (
    "Mozilla/5.0 (Windows NT 10.0; Win64; x64) AppleWebKit/537.36 "
    "(KHTML, like Gecko) Chrome/124.0 Safari/537.36"
)


class Config:
    """Application configuration loaded from environment variables."""

    # Server settings
    HOST: str = os.getenv("HOST", "0.0.0.0")
    PORT: int = int(os.getenv("PORT", "8000"))
    DEBUG: bool = os.getenv("DEBUG", "false").lower() == "true"

    # Logging
    LOG_LEVEL: str = os.getenv("LOG_LEVEL", "INFO")
    LOG_FORMAT: str = os.getenv("LOG_FORMAT", "json")  # json or console

    # Request settings
    REQUEST_TIMEOUT: int = int(os.getenv("REQUEST_TIMEOUT", "30"))
    USER_AGENT: str = os.getenv("USER_AGENT", DEFAULT_USER_AGENT)

    # Extraction limits
    MAX_ITEMS: int = int(os.getenv("MAX_ITEMS", "300"))
    MAX_NAME_LENGTH: int = int(os.getenv("MAX_NAME_LENGTH", "120"))
    # Minor-unit prices at or above this are taken as whole major units (e.g. VND)
    MINOR_UNIT_THRESHOLD: int = int(os.getenv("MINOR_UNIT_THRESHOLD", "1000"))

    # Image re-hosting (Supabase Storage)
    IMAGE_CONCURRENCY: int = int(os.getenv("IMAGE_CONCURRENCY", "5"))
    SUPABASE_URL: Optional[str] = os.getenv("SUPABASE_URL") or os.getenv("NEXT_PUBLIC_SUPABASE_URL")
    SUPABASE_SERVICE_ROLE_KEY: Optional[str] = os.getenv("SUPABASE_SERVICE_ROLE_KEY")
    STORAGE_BUCKET: str = os.getenv("STORAGE_BUCKET", "menu-images")

    @classmethod
    def is_storage_configured(cls) -> bool:
        """
        Check if object storage credentials are fully configured.

        Requires ALL of:
        - SUPABASE_URL (or NEXT_PUBLIC_SUPABASE_URL)
        - SUPABASE_SERVICE_ROLE_KEY
        """
        return all([
            cls.SUPABASE_URL,
            cls.SUPABASE_SERVICE_ROLE_KEY,
        ])

    @classmethod
    def get_missing_storage_vars(cls) -> list:
        """Return list of missing storage environment variables."""
        missing = []
        if not cls.SUPABASE_URL:
            missing.append("SUPABASE_URL")
        if not cls.SUPABASE_SERVICE_ROLE_KEY:
            missing.append("SUPABASE_SERVICE_ROLE_KEY")
        return missing


config = Config()
