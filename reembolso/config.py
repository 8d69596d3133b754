"""
Configuration module for the Reembolso data layer.

Loads environment variables (and a local .env file) and validates the two
required Supabase credentials.
"""
import logging
import os
from typing import List

from dotenv import load_dotenv

from reembolso.errors import ConfigurationError

# Load .env file
load_dotenv()

logger = logging.getLogger(__name__)


class Settings:
    """Application settings loaded from environment variables."""

    # Supabase Configuration
    SUPABASE_URL: str = os.getenv("SUPABASE_URL", "")
    # Public (anon) key: every query runs under the signed-in user's RLS scope
    SUPABASE_ANON_KEY: str = os.getenv("SUPABASE_ANON_KEY", "")

    # Sent as x-client-info on every backend request
    CLIENT_INFO: str = os.getenv("CLIENT_INFO", "reembolso-app")

    # Supabase Storage Configuration
    RECEIPTS_BUCKET: str = os.getenv("RECEIPTS_BUCKET", "receipts")
    RECEIPT_URL_TTL_SECONDS: int = int(os.getenv("RECEIPT_URL_TTL_SECONDS", "300"))

    # Wait before checking whether the sign-up trigger created the profile row
    PROFILE_TRIGGER_DELAY_SECONDS: float = float(
        os.getenv("PROFILE_TRIGGER_DELAY_SECONDS", "0.1")
    )

    # Application Settings
    ENVIRONMENT: str = os.getenv("ENVIRONMENT", "development")
    LOG_LEVEL: str = os.getenv("LOG_LEVEL", "INFO")

    # CORS Settings (production only, see main.py)
    CORS_ALLOWED_ORIGINS: List[str] = [
        origin.strip()
        for origin in os.getenv("CORS_ALLOWED_ORIGINS", "").split(",")
        if origin.strip()
    ]

    @classmethod
    def validate(cls) -> None:
        """
        Validate that all required settings are configured.

        Raises:
            ConfigurationError: If SUPABASE_URL or SUPABASE_ANON_KEY is missing.
        """
        required_settings = {
            "SUPABASE_URL": cls.SUPABASE_URL,
            "SUPABASE_ANON_KEY": cls.SUPABASE_ANON_KEY,
        }

        missing = [key for key, value in required_settings.items() if not value]

        if missing:
            raise ConfigurationError(
                f"Missing required environment variables: {', '.join(missing)}. "
                "Please check your .env file."
            )

    @classmethod
    def is_production(cls) -> bool:
        """Check if running in production environment."""
        return cls.ENVIRONMENT.lower() == "production"

    @classmethod
    def is_development(cls) -> bool:
        """Check if running in development environment."""
        return cls.ENVIRONMENT.lower() == "development"


# Create a singleton instance
settings = Settings()

# Validate settings on module import (fail fast if misconfigured).
# Tests set VALIDATE_CONFIG=false; client construction validates again anyway.
if os.getenv("VALIDATE_CONFIG", "true").lower() == "true":
    try:
        settings.validate()
    except ConfigurationError as e:
        if settings.is_development():
            logger.warning(f"{e} The app will not start until the .env file is configured.")
        else:
            raise
