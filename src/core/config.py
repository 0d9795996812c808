"""Application configuration management using Pydantic Settings."""

from decimal import Decimal
from functools import lru_cache

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application settings loaded from environment variables.

    All settings can be overridden via environment variables.
    Required settings will raise validation errors if not provided.
    """

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    # Application
    app_name: str = Field(default="printshop-artwork", description="Application name")
    app_env: str = Field(default="development", description="Environment (development/staging/production)")
    debug: bool = Field(default=False, description="Enable debug mode")

    # Server
    host: str = Field(default="0.0.0.0", description="Server host")
    port: int = Field(default=8080, description="Server port")
    max_request_body_size: int = Field(
        default=30 * 1024 * 1024,
        description="Maximum accepted request body in bytes (uploads included)",
    )

    # CORS
    cors_origins: str = Field(
        default="http://localhost:3000,http://localhost:5173",
        description="Comma-separated list of allowed CORS origins",
    )

    # Supabase
    supabase_url: str = Field(..., description="Supabase project URL")
    supabase_secret_key: str = Field(..., description="Supabase secret key for backend operations")
    supabase_signing_key_jwk: str = Field(..., description="Supabase signing key JWK (JSON string) for JWT token verification")

    # Artwork storage
    artwork_bucket: str = Field(default="artwork", description="Supabase Storage bucket for artwork files")
    artwork_max_file_size: int = Field(
        default=25 * 1024 * 1024,
        description="Maximum artwork file size in bytes",
    )
    artwork_allowed_extensions: str = Field(
        default="jpg,jpeg,png,gif,webp,pdf,eps,ai,psd,cdr",
        description="Comma-separated list of accepted artwork file extensions",
    )
    artwork_upload_timeout_seconds: float = Field(
        default=30.0,
        description="Timeout applied to a single artwork storage upload",
    )
    allow_admin_approval: bool = Field(
        default=False,
        description="Allow admins to approve artwork on a customer's behalf (e.g. phone orders)",
    )

    # Pricing
    default_tax_rate: Decimal = Field(
        default=Decimal("0"),
        ge=0,
        le=1,
        description="Tax rate applied to orders, as a fraction",
    )

    # Email (Resend)
    resend_api_key: str = Field(default="", description="Resend API key for sending emails")
    email_from_address: str = Field(
        default="Sticky Banditos <orders@stickybanditos.com>",
        description="From address for transactional emails",
    )
    admin_notification_emails: str = Field(
        default="",
        description="Comma-separated list of admin addresses that receive artwork emails",
    )
    notification_max_attempts: int = Field(
        default=3,
        description="Attempts per notification email before giving up",
    )

    # Frontend
    frontend_url: str = Field(
        default="http://localhost:3000",
        description="Frontend application URL for email links",
    )

    @property
    def cors_origins_list(self) -> list[str]:
        """Parse CORS origins string into a list."""
        return [origin.strip() for origin in self.cors_origins.split(",") if origin.strip()]

    @property
    def allowed_extensions_set(self) -> frozenset[str]:
        """Parse accepted artwork extensions into a lowercase set without dots."""
        return frozenset(
            ext.strip().lower().lstrip(".")
            for ext in self.artwork_allowed_extensions.split(",")
            if ext.strip()
        )

    @property
    def admin_emails_list(self) -> list[str]:
        """Parse admin notification addresses into a list."""
        return [email.strip() for email in self.admin_notification_emails.split(",") if email.strip()]

    @property
    def is_production(self) -> bool:
        """Check if running in production environment."""
        return self.app_env == "production"


@lru_cache
def get_settings() -> Settings:
    """Get cached settings singleton.

    Returns:
        Settings: Application settings instance.

    Note:
        Settings are cached using lru_cache for performance.
        Call get_settings.cache_clear() to reload settings.
    """
    return Settings()
