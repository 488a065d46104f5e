"""Shared configuration management for quote extraction and review.

Based on Pydantic Settings v2 best practices:
https://docs.pydantic.dev/latest/concepts/pydantic_settings/
"""

from typing import Literal

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application settings with environment variable support.

    All settings can be overridden via environment variables with the prefix 'APP_'.
    Example: APP_ENFORCE_STATUS_TRANSITIONS=false
    """

    model_config = SettingsConfigDict(
        env_prefix="APP_",
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    # Application
    environment: Literal["development", "staging", "production"] = Field(
        default="development",
        description="Deployment environment",
    )
    log_level: Literal["DEBUG", "INFO", "WARNING", "ERROR"] = Field(
        default="INFO",
        description="Logging level",
    )

    # Service configuration
    service_name: str = Field(
        default="supplier-quote-intelligence",
        description="Service identifier for metrics and logs",
    )
    service_version: str = Field(
        default="0.1.0",
        description="Service version",
    )

    # Extraction behaviour
    report_empty_extraction: bool = Field(
        default=True,
        description=(
            "Report an error (success=False) when no commercial term at all "
            "could be extracted from an email"
        ),
    )

    # Quote store behaviour
    enforce_status_transitions: bool = Field(
        default=True,
        description=(
            "Reject illegal status transitions with InvalidTransitionError. "
            "When false, illegal transitions are logged and applied."
        ),
    )
    default_supplier_name: str = Field(
        default="Unknown Supplier",
        description="Supplier name used when the sender yields none",
    )


def get_settings() -> Settings:
    """Factory function to get settings instance.

    Returns:
        Configured Settings instance
    """
    return Settings()
