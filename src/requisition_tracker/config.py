"""Configuration management for the requisition tracker.

This module provides centralized configuration using pydantic-settings.
All configuration options can be set via environment variables with the
PRT_ prefix, or via a .env file in the project root.

Environment Variables:
    PRT_MAX_FILE_SIZE_MB: Maximum spreadsheet upload size in MB (default: 10)
    PRT_METADATA_WINDOW_ROWS: Leading rows scanned for PR metadata (default: 20)
    PRT_MANUAL_PREVIEW_ROWS: Rows shown for manual header selection (default: 30)
    PRT_MANUAL_PARSE_TTL_MINUTES: Minutes a held manual-parse grid is kept (default: 60)
    PRT_LOG_LEVEL: Logging level (default: INFO)
    PRT_DEBUG: Enable debug mode (default: false)
    PRT_CORS_ORIGINS: Comma-separated CORS origins (default: *)
    PRT_SERVER_HOST: Server bind host (default: 0.0.0.0)
    PRT_SERVER_PORT: Server bind port (default: 8000)
"""

import logging
from typing import Any

from pydantic import field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application settings loaded from environment variables.

    Example .env file:
        PRT_LOG_LEVEL=DEBUG
        PRT_METADATA_WINDOW_ROWS=30
    """

    model_config = SettingsConfigDict(
        env_prefix="PRT_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    # =========================================================================
    # Upload Settings
    # =========================================================================

    max_file_size_mb: int = 10
    """Maximum spreadsheet upload size in megabytes."""

    # =========================================================================
    # Parsing Settings
    # =========================================================================

    metadata_window_rows: int = 20
    """Number of leading rows searched for date / requisition by / approved by."""

    manual_preview_rows: int = 30
    """Number of leading rows returned to an admin for manual configuration."""

    manual_parse_ttl_minutes: int = 60
    """Minutes a grid awaiting manual configuration is held before it expires."""

    # =========================================================================
    # Logging Settings
    # =========================================================================

    log_level: str = "INFO"
    """Logging level: DEBUG, INFO, WARNING, ERROR, or CRITICAL."""

    debug: bool = False
    """Enable debug mode with additional error details."""

    # =========================================================================
    # Server Settings
    # =========================================================================

    cors_origins: str = "*"
    """Comma-separated list of allowed CORS origins, or * for all."""

    server_host: str = "0.0.0.0"
    """Host address for the server to bind to."""

    server_port: int = 8000
    """Port for the server to listen on."""

    # =========================================================================
    # Validators
    # =========================================================================

    @field_validator("log_level")
    @classmethod
    def validate_log_level(cls, v: str) -> str:
        """Validate log level is a valid Python logging level."""
        valid_levels = {"DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"}
        upper_v = v.upper()
        if upper_v not in valid_levels:
            raise ValueError(
                f"Invalid log level: {v}. Must be one of: {', '.join(valid_levels)}"
            )
        return upper_v

    @field_validator("max_file_size_mb")
    @classmethod
    def validate_file_size(cls, v: int) -> int:
        """Validate file size is positive and reasonable."""
        if not 1 <= v <= 500:
            raise ValueError(f"max_file_size_mb must be between 1 and 500, got {v}")
        return v

    @field_validator(
        "metadata_window_rows", "manual_preview_rows", "manual_parse_ttl_minutes"
    )
    @classmethod
    def validate_positive(cls, v: int) -> int:
        if v < 1:
            raise ValueError(f"Value must be at least 1, got {v}")
        return v

    @field_validator("server_port")
    @classmethod
    def validate_port(cls, v: int) -> int:
        """Validate port is in valid range."""
        if not 1 <= v <= 65535:
            raise ValueError(f"server_port must be between 1 and 65535, got {v}")
        return v

    # =========================================================================
    # Computed Properties
    # =========================================================================

    @property
    def max_file_size_bytes(self) -> int:
        """Get max file size in bytes."""
        return self.max_file_size_mb * 1024 * 1024

    @property
    def manual_parse_ttl_seconds(self) -> int:
        return self.manual_parse_ttl_minutes * 60

    @property
    def cors_origins_list(self) -> list[str]:
        """Get CORS origins as a list."""
        if self.cors_origins == "*":
            return ["*"]
        return [origin.strip() for origin in self.cors_origins.split(",")]

    @property
    def log_level_int(self) -> int:
        """Get log level as integer for logging module."""
        level: int = getattr(logging, self.log_level)
        return level

    def to_safe_dict(self) -> dict[str, Any]:
        """Convert settings to a dictionary suitable for logging."""
        return {
            "max_file_size_mb": self.max_file_size_mb,
            "metadata_window_rows": self.metadata_window_rows,
            "manual_preview_rows": self.manual_preview_rows,
            "manual_parse_ttl_minutes": self.manual_parse_ttl_minutes,
            "log_level": self.log_level,
            "debug": self.debug,
            "cors_origins": self.cors_origins,
            "server_host": self.server_host,
            "server_port": self.server_port,
        }


def validate_settings_on_startup(s: Settings) -> None:
    """Log warnings and a summary for the loaded configuration.

    Args:
        s: Settings instance to validate.
    """
    logger = logging.getLogger(__name__)

    if s.cors_origins == "*" and not s.debug:
        logger.warning(
            "CORS is configured to allow all origins (*). "
            "Consider restricting this in production."
        )

    logger.info(
        f"Configuration loaded: log_level={s.log_level}, debug={s.debug}, "
        f"max_file_size_mb={s.max_file_size_mb}, "
        f"metadata_window_rows={s.metadata_window_rows}"
    )


settings = Settings()
