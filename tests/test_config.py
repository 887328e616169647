"""Tests for configuration management module."""

import logging
import os
from unittest.mock import patch

import pytest

from requisition_tracker.config import Settings, validate_settings_on_startup


class TestSettings:
    """Tests for the Settings class."""

    def test_default_values(self) -> None:
        """Test default configuration values."""
        with patch.dict(os.environ, {}, clear=True):
            settings = Settings(_env_file=None)

        # Upload defaults
        assert settings.max_file_size_mb == 10

        # Parsing defaults
        assert settings.metadata_window_rows == 20
        assert settings.manual_preview_rows == 30
        assert settings.manual_parse_ttl_minutes == 60

        # Logging defaults
        assert settings.log_level == "INFO"
        assert settings.debug is False

        # Server defaults
        assert settings.cors_origins == "*"
        assert settings.server_host == "0.0.0.0"
        assert settings.server_port == 8000

    def test_environment_variable_prefix(self) -> None:
        """Test that environment variables use the PRT_ prefix."""
        env_vars = {
            "PRT_MAX_FILE_SIZE_MB": "25",
            "PRT_METADATA_WINDOW_ROWS": "40",
            "PRT_LOG_LEVEL": "DEBUG",
        }
        with patch.dict(os.environ, env_vars, clear=True):
            settings = Settings(_env_file=None)

        assert settings.max_file_size_mb == 25
        assert settings.metadata_window_rows == 40
        assert settings.log_level == "DEBUG"

    def test_unprefixed_variables_are_ignored(self) -> None:
        env_vars = {"METADATA_WINDOW_ROWS": "5"}
        with patch.dict(os.environ, env_vars, clear=True):
            settings = Settings(_env_file=None)

        assert settings.metadata_window_rows == 20

    def test_max_file_size_bytes_property(self) -> None:
        """Test max_file_size_bytes computed property."""
        env_vars = {"PRT_MAX_FILE_SIZE_MB": "10"}
        with patch.dict(os.environ, env_vars, clear=True):
            settings = Settings(_env_file=None)

        assert settings.max_file_size_bytes == 10 * 1024 * 1024

    def test_manual_parse_ttl_seconds_property(self) -> None:
        env_vars = {"PRT_MANUAL_PARSE_TTL_MINUTES": "15"}
        with patch.dict(os.environ, env_vars, clear=True):
            settings = Settings(_env_file=None)

        assert settings.manual_parse_ttl_seconds == 15 * 60

    def test_cors_origins_list_single(self) -> None:
        """Test CORS origins list with single origin."""
        env_vars = {"PRT_CORS_ORIGINS": "https://example.com"}
        with patch.dict(os.environ, env_vars, clear=True):
            settings = Settings(_env_file=None)

        assert settings.cors_origins_list == ["https://example.com"]

    def test_cors_origins_list_multiple(self) -> None:
        """Test CORS origins list with multiple origins."""
        env_vars = {"PRT_CORS_ORIGINS": "https://example.com, https://api.example.com"}
        with patch.dict(os.environ, env_vars, clear=True):
            settings = Settings(_env_file=None)

        assert settings.cors_origins_list == [
            "https://example.com",
            "https://api.example.com",
        ]

    def test_cors_origins_list_wildcard(self) -> None:
        with patch.dict(os.environ, {"PRT_CORS_ORIGINS": "*"}, clear=True):
            settings = Settings(_env_file=None)

        assert settings.cors_origins_list == ["*"]

    def test_log_level_int_property(self) -> None:
        """Test log_level_int computed property."""
        test_cases = [
            ("DEBUG", logging.DEBUG),
            ("INFO", logging.INFO),
            ("WARNING", logging.WARNING),
            ("ERROR", logging.ERROR),
            ("CRITICAL", logging.CRITICAL),
        ]

        for level_str, expected_int in test_cases:
            env_vars = {"PRT_LOG_LEVEL": level_str}
            with patch.dict(os.environ, env_vars, clear=True):
                settings = Settings(_env_file=None)
            assert settings.log_level_int == expected_int, f"Failed for {level_str}"

    def test_to_safe_dict(self) -> None:
        with patch.dict(os.environ, {}, clear=True):
            settings = Settings(_env_file=None)

        safe_dict = settings.to_safe_dict()

        assert safe_dict["max_file_size_mb"] == 10
        assert safe_dict["metadata_window_rows"] == 20
        assert safe_dict["log_level"] == "INFO"
        assert safe_dict["server_port"] == 8000


class TestSettingsValidation:
    """Tests for settings validation."""

    def test_lowercase_log_level_normalized(self) -> None:
        """Test lowercase log levels are normalized to uppercase."""
        env_vars = {"PRT_LOG_LEVEL": "debug"}
        with patch.dict(os.environ, env_vars, clear=True):
            settings = Settings(_env_file=None)
            assert settings.log_level == "DEBUG"

    def test_invalid_log_level_raises_error(self) -> None:
        """Test invalid log level raises validation error."""
        env_vars = {"PRT_LOG_LEVEL": "INVALID"}
        with (
            patch.dict(os.environ, env_vars, clear=True),
            pytest.raises(ValueError, match="Invalid log level"),
        ):
            Settings(_env_file=None)

    def test_file_size_must_be_between_1_and_500(self) -> None:
        """Test file size limits."""
        for value in ("0", "501"):
            env_vars = {"PRT_MAX_FILE_SIZE_MB": value}
            with (
                patch.dict(os.environ, env_vars, clear=True),
                pytest.raises(ValueError, match="between 1 and 500"),
            ):
                Settings(_env_file=None)

    @pytest.mark.parametrize(
        "variable",
        [
            "PRT_METADATA_WINDOW_ROWS",
            "PRT_MANUAL_PREVIEW_ROWS",
            "PRT_MANUAL_PARSE_TTL_MINUTES",
        ],
    )
    def test_row_and_ttl_settings_must_be_positive(self, variable: str) -> None:
        with (
            patch.dict(os.environ, {variable: "0"}, clear=True),
            pytest.raises(ValueError, match="at least 1"),
        ):
            Settings(_env_file=None)

    def test_port_must_be_valid(self) -> None:
        """Test port must be in valid range."""
        env_vars = {"PRT_SERVER_PORT": "70000"}
        with (
            patch.dict(os.environ, env_vars, clear=True),
            pytest.raises(ValueError, match="between 1 and 65535"),
        ):
            Settings(_env_file=None)

    def test_valid_port(self) -> None:
        env_vars = {"PRT_SERVER_PORT": "9000"}
        with patch.dict(os.environ, env_vars, clear=True):
            settings = Settings(_env_file=None)

        assert settings.server_port == 9000


class TestValidateSettingsOnStartup:
    """Tests for the validate_settings_on_startup function."""

    def test_warns_about_permissive_cors_in_production(
        self, caplog: pytest.LogCaptureFixture
    ) -> None:
        """Test warning for permissive CORS when not in debug mode."""
        env_vars = {"PRT_CORS_ORIGINS": "*", "PRT_DEBUG": "false"}
        with patch.dict(os.environ, env_vars, clear=True):
            settings = Settings(_env_file=None)

        with caplog.at_level(logging.WARNING):
            validate_settings_on_startup(settings)

        assert "CORS is configured to allow all origins" in caplog.text

    def test_no_cors_warning_in_debug_mode(
        self, caplog: pytest.LogCaptureFixture
    ) -> None:
        """Test no CORS warning when in debug mode."""
        env_vars = {"PRT_CORS_ORIGINS": "*", "PRT_DEBUG": "true"}
        with patch.dict(os.environ, env_vars, clear=True):
            settings = Settings(_env_file=None)

        with caplog.at_level(logging.WARNING):
            validate_settings_on_startup(settings)

        assert "CORS is configured to allow all origins" not in caplog.text

    def test_no_cors_warning_with_specific_origins(
        self, caplog: pytest.LogCaptureFixture
    ) -> None:
        env_vars = {"PRT_CORS_ORIGINS": "https://example.com"}
        with patch.dict(os.environ, env_vars, clear=True):
            settings = Settings(_env_file=None)

        with caplog.at_level(logging.WARNING):
            validate_settings_on_startup(settings)

        assert "CORS is configured to allow all origins" not in caplog.text

    def test_logs_configuration_summary(self, caplog: pytest.LogCaptureFixture) -> None:
        with patch.dict(os.environ, {}, clear=True):
            settings = Settings(_env_file=None)

        with caplog.at_level(logging.INFO):
            validate_settings_on_startup(settings)

        assert "Configuration loaded" in caplog.text
        assert "metadata_window_rows=20" in caplog.text
