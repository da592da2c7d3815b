"""
Configuration settings for paylink
Handles environment variables and application settings
"""
import os
from typing import List, Optional

from dotenv import load_dotenv
from pydantic_settings import BaseSettings

load_dotenv()


class Settings(BaseSettings):
    """Application settings"""

    # Application
    APP_NAME: str = "paylink"
    APP_VERSION: str = "1.0.0"
    DEBUG: bool = False
    ENVIRONMENT: str = "development"

    # Database
    DATABASE_URL: str = os.getenv("DATABASE_URL", "sqlite:///./paylink.db")

    # Razorpay API (outbound calls)
    RAZORPAY_KEY_ID: Optional[str] = os.getenv("RAZORPAY_KEY_ID")
    RAZORPAY_KEY_SECRET: Optional[str] = os.getenv("RAZORPAY_KEY_SECRET")
    RAZORPAY_API_BASE: str = "https://api.razorpay.com"
    RAZORPAY_TIMEOUT_SECONDS: float = 15.0

    # Razorpay webhooks (separate signing secret)
    RAZORPAY_WEBHOOK_SECRET: Optional[str] = os.getenv("RAZORPAY_WEBHOOK_SECRET")

    # Payment requests
    CURRENCY: str = "INR"
    QR_EXPIRY_SECONDS: int = 300  # single-use QR codes close after 5 minutes

    # CORS, comma separated
    ALLOWED_ORIGINS: str = "*"

    @property
    def cors_origins(self) -> List[str]:
        return [origin.strip() for origin in self.ALLOWED_ORIGINS.split(",") if origin.strip()]

    class Config:
        env_file = ".env"
        case_sensitive = True
        extra = "ignore"  # Ignore extra fields from .env file


# Create settings instance
settings = Settings()


if settings.ENVIRONMENT == "development":
    settings.DEBUG = True


def validate_settings():
    """Validate critical settings"""
    issues = []

    if not settings.RAZORPAY_KEY_ID or not settings.RAZORPAY_KEY_SECRET:
        issues.append("RAZORPAY_KEY_ID and RAZORPAY_KEY_SECRET must be set")
    if not settings.RAZORPAY_WEBHOOK_SECRET:
        issues.append("RAZORPAY_WEBHOOK_SECRET must be set")

    if issues:
        raise ValueError(f"Configuration issues: {', '.join(issues)}")
