# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""Application configuration settings using Pydantic Settings.

This module provides centralized configuration management for TutorDesk.
Settings are loaded from environment variables with sensible defaults.

The Settings class is the main entry point and aggregates all subsettings.
A singleton instance is provided via get_settings() for dependency injection.

Example:
    >>> from src.core.config.settings import get_settings
    >>> settings = get_settings()
    >>> print(settings.billing.default_rate)
    45.0
"""

from functools import lru_cache
from typing import Literal, Self

from pydantic import Field, SecretStr, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class DatabaseSettings(BaseSettings):
    """PostgreSQL configuration for the tutoring database.

    Attributes:
        user: PostgreSQL username.
        password: PostgreSQL password.
        host: Database host address.
        port: Database port number.
        database: Database name.
        pool_size: Connection pool size.
        max_overflow: Maximum overflow connections.
    """

    model_config = SettingsConfigDict(
        env_prefix="DB_",
        extra="ignore",
    )

    user: str = "tutordesk"
    password: SecretStr = SecretStr("tutordesk_password")
    host: str = "localhost"
    port: int = 5432
    database: str = "tutordesk"
    pool_size: int = 10
    max_overflow: int = 20

    @property
    def url(self) -> str:
        """Build the async database URL from components."""
        pwd = self.password.get_secret_value()
        return f"postgresql+asyncpg://{self.user}:{pwd}@{self.host}:{self.port}/{self.database}"


class JWTSettings(BaseSettings):
    """JWT authentication configuration.

    Attributes:
        secret_key: Secret key for signing tokens.
        algorithm: JWT signing algorithm.
        access_token_expire_minutes: Access token expiration time.
    """

    model_config = SettingsConfigDict(
        env_prefix="JWT_",
        extra="ignore",
    )

    secret_key: SecretStr = SecretStr("change-this-in-production")
    algorithm: str = "HS256"
    access_token_expire_minutes: int = Field(
        default=60,
        validation_alias="ACCESS_TOKEN_EXPIRE_MINUTES",
    )


class RateLimitSettings(BaseSettings):
    """Rate limiting configuration.

    Attributes:
        requests_per_minute: Default request budget per client.
        reminder_sends_per_minute: Budget for reminder email endpoints.
        invitation_checks_per_minute: Budget for the public invitation endpoints.
    """

    model_config = SettingsConfigDict(
        env_prefix="RATE_LIMIT_",
        extra="ignore",
    )

    requests_per_minute: int = 120
    reminder_sends_per_minute: int = 10
    invitation_checks_per_minute: int = 10


class CORSSettings(BaseSettings):
    """CORS configuration for API.

    Attributes:
        origins: Comma-separated list of allowed origins.
        allow_credentials: Whether to allow credentials.
        allow_methods: Allowed HTTP methods.
        allow_headers: Allowed HTTP headers.
    """

    model_config = SettingsConfigDict(
        env_prefix="CORS_",
        extra="ignore",
    )

    origins: str = "http://localhost:8081,http://localhost:19006"
    allow_credentials: bool = True
    allow_methods: list[str] = ["*"]
    allow_headers: list[str] = ["*"]

    @property
    def origins_list(self) -> list[str]:
        """Parse origins string into a list."""
        return [origin.strip() for origin in self.origins.split(",") if origin.strip()]


class APISettings(BaseSettings):
    """API server configuration.

    Attributes:
        host: Host to bind to.
        port: Port to listen on.
        workers: Number of worker processes.
        reload: Whether to enable auto-reload.
    """

    model_config = SettingsConfigDict(
        env_prefix="API_",
        extra="ignore",
    )

    host: str = "0.0.0.0"
    port: int = 8000
    workers: int = 2
    reload: bool = False


class BillingSettings(BaseSettings):
    """Fallback pricing used when a tutor has not saved a rate table.

    Attributes:
        default_rate: Price charged per base duration.
        default_base_duration: Minutes covered by the default rate.
        combined_session_rate: Flat per-student price for combined sessions.
        prepaid_session_price: Suggested price per prepaid session.
        currency: ISO currency code shown on invoices.
    """

    model_config = SettingsConfigDict(
        env_prefix="BILLING_",
        extra="ignore",
    )

    default_rate: float = 45.0
    default_base_duration: int = 60
    combined_session_rate: float = 40.0
    prepaid_session_price: float = 45.0
    currency: str = "usd"


class ReminderSettings(BaseSettings):
    """Scheduling of the automatic payment reminder job.

    Whether reminders actually go out is controlled per tutor in
    tutor_settings.reminder_settings; this only wires the cron job.

    Attributes:
        scheduler_enabled: Register the daily job on startup.
        cron_hour: UTC hour the job runs.
        cron_minute: Minute the job runs.
    """

    model_config = SettingsConfigDict(
        env_prefix="REMINDER_",
        extra="ignore",
    )

    scheduler_enabled: bool = True
    cron_hour: int = 9
    cron_minute: int = 0


class EmailSettings(BaseSettings):
    """Transactional email provider (Resend) configuration.

    Attributes:
        resend_api_key: API key for the Resend HTTP API.
        api_url: Resend email endpoint.
        from_address: Sender shown on outgoing mail.
        business_name: Name used in email signatures.
        app_url: Public URL of the client app, used in email links.
        timeout: Request timeout in seconds.
    """

    model_config = SettingsConfigDict(
        env_prefix="EMAIL_",
        extra="ignore",
    )

    resend_api_key: SecretStr | None = None
    api_url: str = "https://api.resend.com/emails"
    from_address: str = "TutorDesk <noreply@tutordesk.app>"
    business_name: str = "TutorDesk"
    app_url: str = "https://tutordesk.app"
    timeout: float = 15.0

    @property
    def is_configured(self) -> bool:
        """Check whether an API key has been provided."""
        return bool(self.resend_api_key and self.resend_api_key.get_secret_value())


class StripeSettings(BaseSettings):
    """Stripe subscription billing configuration.

    Attributes:
        secret_key: Stripe secret API key.
        webhook_secret: Signing secret for webhook verification.
        api_base: Stripe API host.
        solo_price_id: Price id for the solo plan.
        pro_price_id: Price id for the pro plan.
        trial_days: Trial period granted on checkout.
        webhook_tolerance_seconds: Maximum accepted webhook timestamp age.
        timeout: Request timeout in seconds.
        max_network_retries: Retries for failed network requests.
    """

    model_config = SettingsConfigDict(
        env_prefix="STRIPE_",
        extra="ignore",
    )

    secret_key: SecretStr = SecretStr("")
    webhook_secret: SecretStr = SecretStr("")
    api_base: str = "https://api.stripe.com"
    solo_price_id: str = ""
    pro_price_id: str = ""
    trial_days: int = 14
    webhook_tolerance_seconds: int = 300
    timeout: float = 30.0
    max_network_retries: int = 2

    def price_id_for(self, plan: str) -> str:
        """Return the configured price id for a plan name."""
        prices = {
            "solo": self.solo_price_id,
            "pro": self.pro_price_id,
        }
        return prices.get(plan, "")


class Settings(BaseSettings):
    """Main application settings aggregating all subsettings.

    Use get_settings() to obtain a cached singleton instance.

    Attributes:
        environment: Current environment (development, staging, production).
        debug: Enable debug mode.
        log_level: Logging level.
        db: Database settings.
        jwt: JWT authentication settings.
        rate_limit: Rate limiting settings.
        cors: CORS settings.
        api: API server settings.
        billing: Default pricing settings.
        reminders: Reminder job scheduling.
        email: Email provider settings.
        stripe: Subscription billing settings.
    """

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
        case_sensitive=False,
    )

    # Environment
    environment: Literal["development", "staging", "production"] = "development"
    debug: bool = True
    log_level: Literal["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"] = "DEBUG"

    # Subsettings - loaded with their own env prefixes
    db: DatabaseSettings = Field(default_factory=DatabaseSettings)
    jwt: JWTSettings = Field(default_factory=JWTSettings)
    rate_limit: RateLimitSettings = Field(default_factory=RateLimitSettings)
    cors: CORSSettings = Field(default_factory=CORSSettings)
    api: APISettings = Field(default_factory=APISettings)
    billing: BillingSettings = Field(default_factory=BillingSettings)
    reminders: ReminderSettings = Field(default_factory=ReminderSettings)
    email: EmailSettings = Field(default_factory=EmailSettings)
    stripe: StripeSettings = Field(default_factory=StripeSettings)

    @model_validator(mode="after")
    def validate_production_settings(self) -> Self:
        """Validate that production settings are properly configured.

        Raises:
            ValueError: If running in production with insecure defaults.
        """
        if self.environment == "production":
            default_jwt_secret = "change-this-in-production"
            if self.jwt.secret_key.get_secret_value() == default_jwt_secret:
                raise ValueError(
                    "JWT secret key must be changed from default in production. "
                    "Set JWT_SECRET_KEY environment variable."
                )
        return self

    @property
    def is_development(self) -> bool:
        """Check if running in development environment."""
        return self.environment == "development"

    @property
    def is_production(self) -> bool:
        """Check if running in production environment."""
        return self.environment == "production"


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    """Get cached settings instance.

    Uses lru_cache to ensure settings are only loaded once.
    Call clear_settings_cache() if you need to reload settings.

    Returns:
        Cached Settings instance.
    """
    return Settings()


def clear_settings_cache() -> None:
    """Clear the settings cache.

    Call this if you need to reload settings from environment.
    Useful for testing or dynamic configuration updates.
    """
    get_settings.cache_clear()
