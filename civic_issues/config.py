"""
Application configuration using pydantic-settings.
Loads configuration from environment variables and .env file.
"""

from typing import Optional
from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """
    Application settings loaded from environment variables.

    Supports loading from .env file for local development.
    """

    # Database Configuration
    DATABASE_URL: str = Field(
        description="PostgreSQL database URL (use postgresql+asyncpg:// for async)"
    )

    # Redis Configuration (optional)
    REDIS_URL: Optional[str] = Field(
        default=None,
        description="Redis URL for shared rate-limit buckets; in-memory buckets when unset"
    )

    # Authentication
    JWT_SECRET_KEY: str = Field(
        description="Secret used to sign session tokens"
    )
    JWT_ALGORITHM: str = Field(
        default="HS256",
        description="JWT signing algorithm"
    )
    ACCESS_TOKEN_EXPIRE_DAYS: int = Field(
        default=7,
        description="Lifetime of the session cookie token in days"
    )
    AUTH_COOKIE_NAME: str = Field(
        default="token",
        description="Name of the HTTP-only cookie carrying the session token"
    )
    BCRYPT_ROUNDS: int = Field(
        default=12,
        description="bcrypt work factor for password hashes"
    )

    # Email (SMTP)
    SMTP_HOST: str = Field(default="smtp.gmail.com", description="SMTP relay host")
    SMTP_PORT: int = Field(default=587, description="SMTP relay port")
    SMTP_USER: Optional[str] = Field(default=None, description="SMTP username")
    SMTP_PASSWORD: Optional[str] = Field(default=None, description="SMTP password")
    SMTP_USE_TLS: bool = Field(default=True, description="Use STARTTLS for SMTP")
    EMAIL_FROM: str = Field(
        default="noreply@civic-issues.local",
        description="Sender address for notification emails"
    )
    EMAIL_FROM_NAME: str = Field(
        default="Civic Issues",
        description="Sender display name for notification emails"
    )

    # Image host (Cloudinary)
    CLOUDINARY_CLOUD_NAME: Optional[str] = Field(default=None, description="Cloudinary cloud name")
    CLOUDINARY_API_KEY: Optional[str] = Field(default=None, description="Cloudinary API key")
    CLOUDINARY_API_SECRET: Optional[str] = Field(default=None, description="Cloudinary API secret")
    CLOUDINARY_FOLDER: str = Field(
        default="civic-issues",
        description="Cloudinary folder that uploads are stored under"
    )

    # Anthropic API Configuration (optional)
    ANTHROPIC_API_KEY: Optional[str] = Field(
        default=None,
        description="Anthropic API key for AI issue analysis; analysis is skipped when unset"
    )
    AI_ANALYSIS_ENABLED: bool = Field(
        default=True,
        description="Run AI analysis on newly reported issues"
    )

    # CORS Configuration
    CORS_ORIGINS: str = Field(
        default="http://localhost:3000",
        description="Comma-separated list of allowed CORS origins"
    )

    # Rate Limiting Configuration
    AUTH_RATE_LIMIT: int = Field(
        default=5,
        description="Token bucket capacity per minute for authentication endpoints"
    )

    GENERAL_RATE_LIMIT: int = Field(
        default=100,
        description="Token bucket capacity per minute for general API endpoints"
    )

    # Request Size Limits
    MAX_REQUEST_SIZE: int = Field(
        default=10 * 1024 * 1024,  # 10MB
        description="Maximum request body size in bytes"
    )

    # SLA
    SLA_SWEEP_INTERVAL_MINUTES: int = Field(
        default=60,
        description="How often the SLA sweep looks for breached issues"
    )
    SLA_AUTO_ESCALATE: bool = Field(
        default=True,
        description="Escalate breached issues automatically during the sweep"
    )

    # Public caching
    PUBLIC_CACHE_SECONDS: int = Field(
        default=300,
        description="Cache-Control max-age for anonymous public endpoints"
    )

    # Environment
    ENVIRONMENT: str = Field(
        default="development",
        description="Application environment: development, staging, production"
    )

    FRONTEND_URL: str = Field(
        default="http://localhost:3000",
        description="Frontend URL used for links in notification emails"
    )

    # Logging Configuration
    LOG_LEVEL: str = Field(
        default="INFO",
        description="Logging level: DEBUG, INFO, WARNING, ERROR, CRITICAL"
    )

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=True,
        extra="ignore"
    )

    @property
    def database_url_sync(self) -> str:
        """Get synchronous database URL for Alembic migrations."""
        return self.DATABASE_URL.replace("postgresql+asyncpg://", "postgresql://")

    @property
    def cors_origins_list(self) -> list[str]:
        """Get CORS origins as a list."""
        if self.CORS_ORIGINS == "*":
            return ["*"]
        return [origin.strip() for origin in self.CORS_ORIGINS.split(",")]

    @property
    def is_production(self) -> bool:
        return self.ENVIRONMENT == "production"

    @property
    def cloudinary_configured(self) -> bool:
        """True when all three Cloudinary credentials are present."""
        return bool(
            self.CLOUDINARY_CLOUD_NAME
            and self.CLOUDINARY_API_KEY
            and self.CLOUDINARY_API_SECRET
        )

    def __repr__(self) -> str:
        """
        Custom repr that masks sensitive values.

        Prevents accidental exposure of credentials in logs.
        """
        sensitive_fields = {
            "DATABASE_URL",
            "REDIS_URL",
            "JWT_SECRET_KEY",
            "SMTP_PASSWORD",
            "CLOUDINARY_API_SECRET",
            "ANTHROPIC_API_KEY",
        }

        fields = []
        for field_name in type(self).model_fields:
            value = getattr(self, field_name)
            if field_name in sensitive_fields and value:
                # Mask sensitive values
                if isinstance(value, str) and len(value) > 8:
                    masked = value[:4] + "***" + value[-4:]
                else:
                    masked = "***"
                fields.append(f"{field_name}={masked!r}")
            else:
                fields.append(f"{field_name}={value!r}")

        return f"Settings({', '.join(fields)})"


# Create singleton settings instance
settings = Settings()
