"""Centralized configuration using pydantic-settings.

All configuration is loaded from environment variables and .env files.
Nested groups use a double underscore: DATABASE__URL=postgresql://...
"""

from enum import Enum
from typing import Any

from pydantic import BaseModel, Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class Environment(str, Enum):
    """Application environment."""

    DEVELOPMENT = "development"
    STAGING = "staging"
    PRODUCTION = "production"
    TEST = "test"


class LogLevel(str, Enum):
    """Log levels."""

    DEBUG = "DEBUG"
    INFO = "INFO"
    WARNING = "WARNING"
    ERROR = "ERROR"
    CRITICAL = "CRITICAL"


class Settings(BaseSettings):
    """Main application settings.

    All settings can be overridden via environment variables.
    For nested settings, use double underscore: EMAIL__BILLING_ADDRESS=billing@example.com
    """

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        env_nested_delimiter="__",
        extra="ignore",
    )

    # ============================================================
    # Core Application Settings
    # ============================================================

    app_name: str = Field("partnerlogic", description="Application name")
    app_version: str = Field("1.0.0", description="Application version")
    environment: Environment = Field(Environment.DEVELOPMENT, description="Deployment environment")
    debug: bool = Field(False, description="Debug mode")
    testing: bool = Field(False, description="Testing mode")

    host: str = Field("0.0.0.0", description="Server host")  # nosec B104
    port: int = Field(8000, description="Server port")
    api_prefix: str = Field("/api/v1", description="Prefix for every API router")

    # ============================================================
    # Database Configuration
    # ============================================================

    class DatabaseSettings(BaseModel):
        """Database configuration."""

        url: str | None = Field(None, description="Full database URL")
        host: str = Field("localhost", description="Database host")
        port: int = Field(5432, description="Database port")
        database: str = Field("partnerlogic", description="Database name")
        username: str = Field("partnerlogic", description="Database username")
        password: str = Field("", description="Database password")

        pool_size: int = Field(10, description="Connection pool size")
        max_overflow: int = Field(20, description="Max overflow connections")
        pool_pre_ping: bool = Field(True, description="Test connections before use")

        echo: bool = Field(False, description="Echo SQL statements")

        @property
        def sqlalchemy_url(self) -> str:
            """Build SQLAlchemy database URL."""
            if self.url:
                return str(self.url)
            return (
                f"postgresql://{self.username}:{self.password}"
                f"@{self.host}:{self.port}/{self.database}"
            )

    database: DatabaseSettings = DatabaseSettings()  # type: ignore[call-arg]

    # ============================================================
    # Identity & hosted auth
    # ============================================================

    class AuthSettings(BaseModel):
        """Hosted authentication configuration.

        Sessions are issued by the hosted auth service. The API only receives
        the authenticated user id through a trusted header set by the gateway.
        """

        user_id_header: str = Field("X-User-ID", description="Header carrying the auth user id")
        admin_api_url: str = Field(
            "http://localhost:54321/auth/v1", description="Hosted auth admin API base URL"
        )
        service_role_key: str = Field("", description="Service role key for the admin API")
        min_password_length: int = Field(6, description="Minimum password length on reset")
        timeout: float = Field(10.0, description="Admin API timeout in seconds")

    auth: AuthSettings = AuthSettings()  # type: ignore[call-arg]

    # ============================================================
    # CORS
    # ============================================================

    class CORSSettings(BaseModel):
        """CORS configuration."""

        enabled: bool = Field(True, description="Enable CORS")
        origins: list[str] = Field(
            default_factory=lambda: [
                "http://localhost:3000",
                "http://localhost:5173",
                "http://127.0.0.1:3000",
            ],
            description="Allowed origins for CORS",
        )
        methods: list[str] = Field(default_factory=lambda: ["*"], description="Allowed methods")
        headers: list[str] = Field(default_factory=lambda: ["*"], description="Allowed headers")
        credentials: bool = Field(True, description="Allow credentials")
        max_age: int = Field(3600, description="Max age for preflight")

    cors: CORSSettings = CORSSettings()  # type: ignore[call-arg]

    # ============================================================
    # Email (hosted edge functions)
    # ============================================================

    class EmailSettings(BaseModel):
        """Email dispatch through hosted functions."""

        enabled: bool = Field(True, description="Enable email dispatch")
        functions_url: str = Field(
            "http://localhost:54321/functions/v1", description="Hosted functions base URL"
        )
        api_key: str = Field("", description="Bearer key for the hosted functions")
        timeout: float = Field(15.0, description="Request timeout in seconds")

        billing_address: str = Field(
            "billing@example.com", description="Recipient of closed-won invoice emails"
        )
        deal_notification_address: str | None = Field(
            None, description="Recipient of new deal registration emails"
        )

    email: EmailSettings = EmailSettings()  # type: ignore[call-arg]

    # ============================================================
    # Observability
    # ============================================================

    class ObservabilitySettings(BaseModel):
        """Logging configuration."""

        log_level: LogLevel = Field(LogLevel.INFO, description="Log level")
        log_format: str = Field("json", description="Log format (json or console)")

    observability: ObservabilitySettings = ObservabilitySettings()  # type: ignore[call-arg]

    # ============================================================
    # Business rules
    # ============================================================

    class BusinessSettings(BaseModel):
        """Partner program defaults."""

        default_currency: str = Field("USD", description="Currency for new deals and orders")
        deal_invoice_prefix: str = Field("INV", description="Prefix for deal invoice numbers")
        referral_invoice_prefix: str = Field(
            "RO", description="Prefix for referral order invoice numbers"
        )
        overdue_reminders: bool = Field(
            True, description="Email partners when an invoice is marked overdue"
        )
        company_name: str = Field("PartnerLogic", description="Name printed on invoices")

    business: BusinessSettings = BusinessSettings()  # type: ignore[call-arg]

    # ============================================================
    # Validation & Helpers
    # ============================================================

    @field_validator("environment", mode="before")
    def validate_environment(cls, v: Any) -> Any:
        """Validate environment."""
        if isinstance(v, str):
            return Environment(v.lower())
        return v

    @property
    def is_production(self) -> bool:
        """Check if running in production."""
        return self.environment == Environment.PRODUCTION

    @property
    def is_development(self) -> bool:
        """Check if running in development."""
        return self.environment == Environment.DEVELOPMENT

    @property
    def is_testing(self) -> bool:
        """Check if running in test mode."""
        return self.testing or self.environment == Environment.TEST


# Global settings instance
_settings: Settings | None = None


def get_settings() -> Settings:
    """Get global settings instance (singleton)."""
    global _settings
    if _settings is None:
        _settings = Settings()  # type: ignore
    return _settings


def reset_settings() -> None:
    """Reset settings (mainly for testing)."""
    global _settings
    _settings = None


# Convenience export
settings = get_settings()
