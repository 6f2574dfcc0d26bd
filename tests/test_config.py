"""
Tests for configuration module.
"""

from __future__ import annotations

import os
from pathlib import Path
from unittest.mock import patch

import pytest
from pydantic import ValidationError

from upcache.config import (
    DEFAULT_MAX_AGE_SECONDS,
    Settings,
    StagingConfig,
    get_settings,
    parse_mode,
)


class TestParseMode:
    """Tests for permission mode parsing."""

    @pytest.mark.parametrize("value", ["0644", "0o644", "644", " 0644 ", 0o644])
    def test_octal_forms(self, value: object) -> None:
        """Test that strings are always read as octal."""
        assert parse_mode(value) == 0o644

    @pytest.mark.parametrize("value", [None, ""])
    def test_unset(self, value: object) -> None:
        """Test that empty values mean the filesystem default."""
        assert parse_mode(value) is None

    @pytest.mark.parametrize("value", ["0999", "rwx", 0o10000, -1, True, 1.5])
    def test_invalid(self, value: object) -> None:
        """Test that unparseable or out-of-range modes raise."""
        with pytest.raises(ValueError):
            parse_mode(value)


class TestSettings:
    """Tests for Settings loading."""

    def test_settings_loads_from_env(
        self, mock_env_vars: dict[str, str], temp_dir: Path
    ) -> None:
        """Test that settings correctly loads from environment variables."""
        settings = get_settings()

        assert settings.ROOT == temp_dir
        assert settings.PERMISSIONS == 0o644
        assert settings.DIRECTORY_PERMISSIONS == 0o755
        assert settings.MOVE_TO_CACHE is False
        assert settings.ENSURE_MULTIPART_FORM is True
        assert settings.MAX_AGE_SECONDS == 3600
        assert settings.LOG_LEVEL == "DEBUG"

    def test_cache_root_resolved_against_root(
        self, mock_env_vars: dict[str, str], temp_dir: Path
    ) -> None:
        """Test that a relative cache dir is joined to the root."""
        settings = get_settings()
        assert settings.cache_root == temp_dir / "uploads" / "tmp"

    def test_absolute_cache_dir_ignores_root(
        self, mock_env_vars: dict[str, str], temp_dir: Path
    ) -> None:
        """Test that an absolute cache dir is used as-is."""
        elsewhere = temp_dir / "elsewhere"
        with patch.dict(os.environ, {"UPCACHE_CACHE_DIR": str(elsewhere)}):
            settings = Settings(_env_file=None)
        assert settings.cache_root == elsewhere

    def test_defaults(self) -> None:
        """Test default values with no UPCACHE_* variables set."""
        env = {k: v for k, v in os.environ.items() if not k.startswith("UPCACHE_")}
        with patch.dict(os.environ, env, clear=True):
            settings = Settings(_env_file=None)

        assert settings.CACHE_DIR == Path("uploads/tmp")
        assert settings.PERMISSIONS is None
        assert settings.DIRECTORY_PERMISSIONS is None
        assert settings.MOVE_TO_CACHE is False
        assert settings.ENSURE_MULTIPART_FORM is True
        assert settings.MAX_AGE_SECONDS == DEFAULT_MAX_AGE_SECONDS
        assert settings.cache_root == (Path.cwd() / "uploads" / "tmp")

    def test_invalid_permissions_rejected(self, mock_env_vars: dict[str, str]) -> None:
        """Test that a non-octal mode fails validation."""
        with patch.dict(os.environ, {"UPCACHE_PERMISSIONS": "not-octal"}):
            with pytest.raises(ValidationError):
                Settings(_env_file=None)

    def test_staging_config(self, mock_env_vars: dict[str, str], temp_dir: Path) -> None:
        """Test that settings produce a matching immutable StagingConfig."""
        config = get_settings().staging_config()

        assert config.cache_root == temp_dir / "uploads" / "tmp"
        assert config.permissions == 0o644
        assert config.directory_permissions == 0o755
        assert config.move_to_cache is False
        assert config.ensure_multipart_form is True

    def test_ensure_directories_creates_cache_root(
        self, mock_env_vars: dict[str, str], temp_dir: Path
    ) -> None:
        """Test that ensure_directories creates the cache root."""
        settings = get_settings()
        settings.ensure_directories()
        assert (temp_dir / "uploads" / "tmp").is_dir()

    def test_display_formats_modes(self, mock_env_vars: dict[str, str]) -> None:
        """Test that modes are shown in octal."""
        display = get_settings().display()
        assert display["PERMISSIONS"] == "0o644"
        assert display["DIRECTORY_PERMISSIONS"] == "0o755"

    def test_log_file_unset_by_default(self, mock_env_vars: dict[str, str]) -> None:
        """Test that file logging is off unless configured."""
        settings = get_settings()

        assert settings.LOG_FILE is None
        assert settings.display()["LOG_FILE"] is None

    def test_log_file_from_env(
        self, mock_env_vars: dict[str, str], temp_dir: Path
    ) -> None:
        """Test that UPCACHE_LOG_FILE is read as a path."""
        log_file = temp_dir / "logs" / "upcache.jsonl"
        with patch.dict(os.environ, {"UPCACHE_LOG_FILE": str(log_file)}):
            settings = Settings(_env_file=None)

        assert settings.LOG_FILE == log_file
        assert settings.display()["LOG_FILE"] == str(log_file)


class TestStagingConfig:
    """Tests for StagingConfig."""

    def test_frozen(self, staging_config: StagingConfig) -> None:
        """Test that the config cannot be mutated."""
        with pytest.raises(ValidationError):
            staging_config.move_to_cache = True

    def test_relative_root_made_absolute(self) -> None:
        """Test that a relative cache root is made absolute."""
        config = StagingConfig(cache_root=Path("uploads/tmp"))
        assert config.cache_root.is_absolute()

    def test_mode_strings_parsed(self, cache_root: Path) -> None:
        """Test that octal strings are accepted."""
        config = StagingConfig(cache_root=cache_root, permissions="0600")
        assert config.permissions == 0o600
