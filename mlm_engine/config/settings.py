"""
Application settings.

Loads configuration from environment variables using pydantic-settings.
"""

from pydantic import Field, field_validator, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from mlm_engine.config.constants import (
    APPROVAL_TIMEOUT_SECONDS,
    MAX_TREE_DEPTH,
    PACKAGE_VALIDITY_DAYS,
)


class Settings(BaseSettings):
    """Engine settings loaded from environment variables."""

    # Database
    database_url: str
    database_echo: bool = False

    # Application
    environment: str = "production"
    log_level: str = "INFO"

    # Referral tree traversal
    max_tree_depth: int = Field(
        default=MAX_TREE_DEPTH,
        ge=1,
        le=50,
        description="Depth cap for ancestor chains and downline lines",
    )

    # Approval
    package_validity_days: int = Field(
        default=PACKAGE_VALIDITY_DAYS,
        gt=0,
        description="Validity window assigned to an approved package",
    )
    approval_timeout_seconds: float = Field(
        default=APPROVAL_TIMEOUT_SECONDS,
        gt=0,
        description="Time budget of the atomic approval attempt (seconds)",
    )
    fallback_enabled: bool = Field(
        default=True,
        description=(
            "Re-run the approval without atomicity when the atomic "
            "attempt fails for an infrastructure reason"
        ),
    )

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    @field_validator('database_url')
    @classmethod
    def validate_database_url(cls, v: str) -> str:
        """Validate database URL uses an async driver."""
        if not v.startswith(('postgresql+asyncpg://', 'sqlite+aiosqlite://')):
            raise ValueError(
                'DATABASE_URL must start with postgresql+asyncpg:// '
                'or sqlite+aiosqlite://'
            )
        return v

    @field_validator('log_level')
    @classmethod
    def validate_log_level(cls, v: str) -> str:
        """Normalize log level name."""
        level = v.upper()
        if level not in {"TRACE", "DEBUG", "INFO", "SUCCESS", "WARNING", "ERROR", "CRITICAL"}:
            raise ValueError(f'Invalid log level: {v}')
        return level

    @model_validator(mode='after')
    def validate_production(self) -> 'Settings':
        """Validate production-specific requirements."""
        if self.environment == 'production':
            if self.database_url.startswith('sqlite'):
                raise ValueError(
                    'SQLite is not supported in production. '
                    'Set DATABASE_URL to a postgresql+asyncpg:// URL.'
                )
            if self.approval_timeout_seconds < 60:
                raise ValueError(
                    'APPROVAL_TIMEOUT_SECONDS must be at least 60 in production: '
                    'rank qualification walks whole downlines inside the '
                    'approval transaction.'
                )
        return self


# Global settings instance
settings = Settings()
