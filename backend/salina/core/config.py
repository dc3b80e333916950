"""
Application Configuration
"""
from pydantic_settings import BaseSettings
from typing import List, Optional
import warnings


class Settings(BaseSettings):
    """Application settings loaded from environment variables"""

    # Application
    APP_NAME: str = "Salina ERP Reporting API"
    APP_VERSION: str = "1.0.0"
    DEBUG: bool = False
    ENVIRONMENT: str = "development"  # development, staging, production
    LOG_LEVEL: str = "INFO"

    # Database
    DATABASE_URL: str = "sqlite:///./salina.db"

    # Security
    SECRET_KEY: str = "your-super-secret-key-change-in-production-min-32-chars"
    ALGORITHM: str = "HS256"
    ACCESS_TOKEN_EXPIRE_MINUTES: int = 60
    TOKEN_ISSUER: str = "salina-erp"

    # Rate Limiting
    RATE_LIMIT_ENABLED: bool = True
    RATE_LIMIT_REQUESTS: int = 100
    RATE_LIMIT_WINDOW: int = 60  # seconds

    # CORS
    CORS_ORIGINS: str = "http://localhost:3000,http://127.0.0.1:3000"

    # Identity provider (portal invitations)
    INVITATION_PROVIDER_URL: str = "https://api.clerk.com/v1"
    INVITATION_PROVIDER_API_KEY: Optional[str] = None
    INVITATION_REDIRECT_URL: Optional[str] = None
    INVITATION_TIMEOUT_SECONDS: int = 10

    # Sensitive field encryption (base64, 32 bytes)
    TAX_ID_ENCRYPTION_KEY: Optional[str] = None

    @property
    def cors_origins_list(self) -> List[str]:
        return [origin.strip() for origin in self.CORS_ORIGINS.split(",")]

    @property
    def database_url(self) -> str:
        """Get properly formatted database URL"""
        url = self.DATABASE_URL
        if url.startswith("file:"):
            return f"sqlite:///{url[5:]}"
        # Hosted Postgres providers still hand out the legacy scheme
        if url.startswith("postgres://"):
            return "postgresql://" + url[len("postgres://"):]
        return url

    @property
    def is_production(self) -> bool:
        return self.ENVIRONMENT.lower() == "production"

    def validate_security_settings(self):
        """Validate security settings and warn about insecure defaults"""
        default_keys = [
            "your-super-secret-key-change-in-production-min-32-chars",
            "secret-key",
            "change-me",
        ]

        if self.SECRET_KEY in default_keys:
            if self.is_production:
                raise ValueError(
                    "CRITICAL: Default SECRET_KEY detected in production! "
                    "Set the SECRET_KEY environment variable to a secure random value."
                )
            warnings.warn(
                "WARNING: Using default SECRET_KEY. "
                "Set SECRET_KEY environment variable for production.",
                UserWarning
            )

        if len(self.SECRET_KEY) < 32:
            if self.is_production:
                raise ValueError(
                    "CRITICAL: SECRET_KEY is too short for production! "
                    "Use at least 32 characters."
                )
            warnings.warn("WARNING: SECRET_KEY should be at least 32 characters.", UserWarning)

        if self.is_production and self.DEBUG:
            raise ValueError(
                "CRITICAL: DEBUG mode is enabled in production! "
                "Set DEBUG=False for production environment."
            )

        if self.is_production and not self.TAX_ID_ENCRYPTION_KEY:
            raise ValueError("CRITICAL: TAX_ID_ENCRYPTION_KEY must be set in production.")

        if not self.INVITATION_PROVIDER_API_KEY:
            warnings.warn(
                "WARNING: INVITATION_PROVIDER_API_KEY is not set. "
                "Portal invitations will fail.",
                UserWarning
            )

        return True

    class Config:
        env_file = ".env"
        case_sensitive = True


settings = Settings()

# Validate security settings on import (but don't crash in development)
try:
    settings.validate_security_settings()
except ValueError as e:
    if settings.is_production:
        raise
    warnings.warn(str(e), UserWarning)
