from pydantic_settings import BaseSettings
from typing import List, Optional

class Settings(BaseSettings):
    # Database
    DATABASE_URL: str = "sqlite:///./conference.db"

    # Security
    SECRET_KEY: str = "change-me-in-production"
    ALGORITHM: str = "HS256"
    ACCESS_TOKEN_EXPIRE_MINUTES: int = 60 * 24 * 30

    # Application
    PROJECT_NAME: str = "Mission Life Grace Conferences"
    API_PREFIX: str = "/api"
    ENVIRONMENT: str = "development"
    DEBUG: bool = True
    LOG_LEVEL: str = "INFO"
    CORS_ORIGINS: List[str] = ["http://localhost:5173", "http://localhost:3000"]
    PUBLIC_SITE_URL: str = "http://localhost:5173"
    BRAND_NAME: str = "Mission Life Grace"
    CURRENCY: str = "GBP"

    # PayPal
    PAYPAL_CLIENT_ID: Optional[str] = None
    PAYPAL_CLIENT_SECRET: Optional[str] = None
    PAYPAL_BASE_URL: str = "https://api-m.paypal.com"
    PAYPAL_WEBHOOK_ID: str = ""
    PAYPAL_TIMEOUT_SECONDS: float = 15.0
    PAYPAL_MAX_RETRIES: int = 3
    PAYPAL_RETRY_BACKOFF_SECONDS: float = 0.5

    # Email
    EMAIL_PROVIDER: str = "console"
    RESEND_API_KEY: Optional[str] = None
    RESEND_FROM_EMAIL: str = "onboarding@resend.dev"
    ADMIN_NOTIFICATION_EMAIL: Optional[str] = None

    # Accounts
    VERIFICATION_CODE_TTL_HOURS: int = 24
    PASSWORD_RESET_TTL_HOURS: int = 1
    PASSWORD_MIN_LENGTH: int = 6

    # Booking & payments
    STRICT_CLIENT_TOTALS: bool = False
    DEPOSIT20_PERCENTAGE: int = 20

    @property
    def is_sqlite(self) -> bool:
        return self.DATABASE_URL.startswith("sqlite")

    class Config:
        env_file = ".env"
        case_sensitive = True

settings = Settings()
