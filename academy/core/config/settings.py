# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""Application configuration settings using Pydantic Settings.

This module provides centralized configuration management for Academy Core.
Settings are loaded from environment variables with sensible defaults.

The Settings class is the main entry point and aggregates all subsettings.
A cached instance is provided via get_settings(); services also accept
Settings explicitly so tests can pass their own.

Example:
    >>> from academy.core.config.settings import get_settings
    >>> settings = get_settings()
    >>> print(settings.environment)
    'development'
"""

from functools import lru_cache
from typing import Literal, Self

from pydantic import Field, SecretStr, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class DatabaseSettings(BaseSettings):
    """Persistent store configuration.

    Attributes:
        user: PostgreSQL username.
        password: PostgreSQL password.
        host: Database host address.
        port: Database port number.
        database: Database name.
        pool_size: Connection pool size.
        max_overflow: Maximum overflow connections.
        url_override: Full async URL; takes precedence over the components.
    """

    model_config = SettingsConfigDict(
        env_prefix="DB_",
        extra="ignore",
    )

    user: str = "academy"
    password: SecretStr = SecretStr("academy_password")
    host: str = "localhost"
    port: int = 5432
    database: str = "academy"
    pool_size: int = 10
    max_overflow: int = 20
    url_override: str | None = Field(
        default=None,
        validation_alias="DATABASE_URL",
    )

    @property
    def url(self) -> str:
        """Build the async database URL from components."""
        if self.url_override:
            return self.url_override
        pwd = self.password.get_secret_value()
        return f"postgresql+asyncpg://{self.user}:{pwd}@{self.host}:{self.port}/{self.database}"

    @property
    def is_sqlite(self) -> bool:
        """Whether the configured URL targets SQLite."""
        return self.url.startswith("sqlite")


class EnrollmentSettings(BaseSettings):
    """Enrollment and capacity rules.

    Attributes:
        level_mismatch_policy: "advise" returns a LevelMismatch advisory with a
            successful assignment; "block" rejects the assignment.
    """

    model_config = SettingsConfigDict(
        env_prefix="ENROLLMENT_",
        extra="ignore",
    )

    level_mismatch_policy: Literal["advise", "block"] = "advise"


class ScoringSettings(BaseSettings):
    """Assessment scoring configuration.

    Attributes:
        default_passing_percent: Threshold used when a Level has none.
        percent_precision: Decimal places for reported averages, None keeps
            the exact arithmetic mean.
    """

    model_config = SettingsConfigDict(
        env_prefix="SCORING_",
        extra="ignore",
    )

    default_passing_percent: float = Field(default=50.0, ge=0, le=100)
    percent_precision: int | None = Field(default=None, ge=0)


class FeeSettings(BaseSettings):
    """Fee payment workflow configuration.

    Attributes:
        overpayment_policy: "allow" lets approved payments push paid_amount
            above the fee amount (status stays PAID); "reject" refuses the
            approval and leaves the payment PENDING.
        invoice_prefix: Prefix for generated invoice numbers.
    """

    model_config = SettingsConfigDict(
        env_prefix="FEES_",
        extra="ignore",
    )

    overpayment_policy: Literal["allow", "reject"] = "allow"
    invoice_prefix: str = "INV"


class SMTPSettings(BaseSettings):
    """Outbound mail configuration for parent notifications.

    Attributes:
        host: SMTP server hostname.
        port: SMTP server port.
        username: SMTP authentication username.
        password: SMTP authentication password.
        use_tls: Use STARTTLS.
        from_email: Sender email address.
        from_name: Sender display name.
    """

    model_config = SettingsConfigDict(
        env_prefix="SMTP_",
        extra="ignore",
    )

    host: str | None = None
    port: int = 587
    username: str | None = None
    password: SecretStr | None = None
    use_tls: bool = True
    from_email: str | None = None
    from_name: str = "Academy"

    @property
    def is_configured(self) -> bool:
        """Check that every setting required to send mail is present."""
        return all([self.host, self.username, self.password, self.from_email])


class Settings(BaseSettings):
    """Main application settings aggregating all subsettings.

    Attributes:
        environment: Current environment (development, staging, production).
        debug: Enable debug mode.
        log_level: Logging level.
        database: Persistent store settings.
        enrollment: Enrollment rules.
        scoring: Scoring rules.
        fees: Fee workflow rules.
        smtp: Outbound mail settings.
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
    database: DatabaseSettings = Field(default_factory=DatabaseSettings)
    enrollment: EnrollmentSettings = Field(default_factory=EnrollmentSettings)
    scoring: ScoringSettings = Field(default_factory=ScoringSettings)
    fees: FeeSettings = Field(default_factory=FeeSettings)
    smtp: SMTPSettings = Field(default_factory=SMTPSettings)

    @model_validator(mode="after")
    def validate_production_settings(self) -> Self:
        """Validate that production settings are properly configured.

        Raises:
            ValueError: If running in production with debug enabled.
        """
        if self.environment == "production" and self.debug:
            raise ValueError(
                "Debug mode must be disabled in production. Set DEBUG=false."
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


@lru_cache
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

    Useful for testing or dynamic configuration updates.
    """
    get_settings.cache_clear()
