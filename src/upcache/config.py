"""
Configuration management using pydantic-settings.

Loads configuration from UPCACHE_* environment variables and .env files.
Settings are read once and turned into an immutable StagingConfig that is
passed explicitly into Stager and Reaper.
"""

from __future__ import annotations

from functools import lru_cache
from pathlib import Path
from typing import Any, Literal

from pydantic import BaseModel, ConfigDict, Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

DEFAULT_CACHE_DIR = Path("uploads/tmp")
DEFAULT_MAX_AGE_SECONDS = 60 * 60 * 24
MAX_MODE = 0o7777


def parse_mode(value: Any) -> int | None:
    """Parse a permission mode.

    Integers are taken as-is. Strings are always read as octal, with or
    without a ``0o`` or leading ``0`` prefix, so "644", "0644" and "0o644"
    all mean 0o644. Empty strings and None mean "use the filesystem default".

    Raises:
        ValueError: If the value cannot be parsed or is out of range.
    """
    if value is None:
        return None
    if isinstance(value, bool):
        raise ValueError(f"Invalid permission mode: {value!r}")
    if isinstance(value, str):
        text = value.strip().lower()
        if not text:
            return None
        if text.startswith("0o"):
            text = text[2:]
        try:
            value = int(text, 8)
        except ValueError as e:
            raise ValueError(f"Invalid octal permission mode: {value!r}") from e
    if not isinstance(value, int):
        raise ValueError(f"Invalid permission mode: {value!r}")
    if not 0 <= value <= MAX_MODE:
        raise ValueError(f"Permission mode out of range: {oct(value)}")
    return value


class StagingConfig(BaseModel):
    """Immutable configuration consumed by Stager and Reaper.

    Attributes:
        cache_root: Absolute directory holding one subdirectory per entry.
        permissions: Mode applied to staged files (None keeps the umask default).
        directory_permissions: Mode applied to entry directories.
        move_to_cache: Move the source file instead of copying it.
        ensure_multipart_form: Reject raw string/path input in cache().
    """

    model_config = ConfigDict(frozen=True)

    cache_root: Path
    permissions: int | None = None
    directory_permissions: int | None = None
    move_to_cache: bool = False
    ensure_multipart_form: bool = True

    @field_validator("permissions", "directory_permissions", mode="before")
    @classmethod
    def validate_mode(cls, v: Any) -> int | None:
        return parse_mode(v)

    @field_validator("cache_root")
    @classmethod
    def validate_cache_root(cls, v: Path) -> Path:
        """Store the cache root as an absolute path."""
        return v.expanduser().absolute()


class Settings(BaseSettings):
    """Application settings loaded from environment variables.

    Optional:
        UPCACHE_ROOT: Base directory the cache dir is resolved against
        UPCACHE_CACHE_DIR: Cache directory, absolute or relative to the root
        UPCACHE_PERMISSIONS: Octal mode for staged files
        UPCACHE_DIRECTORY_PERMISSIONS: Octal mode for entry directories
        UPCACHE_MOVE_TO_CACHE: Move uploads into the cache instead of copying
        UPCACHE_ENSURE_MULTIPART_FORM: Reject raw paths passed to cache()
        UPCACHE_MAX_AGE_SECONDS: Default reaping threshold
        UPCACHE_LOG_LEVEL: Logging level
        UPCACHE_LOG_FILE: Append JSON-lines logs to this file
    """

    model_config = SettingsConfigDict(
        env_prefix="UPCACHE_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    # Directories
    ROOT: Path = Field(default=Path("."), description="Base directory")
    CACHE_DIR: Path = Field(default=DEFAULT_CACHE_DIR, description="Cache directory")

    # Permissions
    PERMISSIONS: int | None = Field(default=None, description="Staged file mode")
    DIRECTORY_PERMISSIONS: int | None = Field(
        default=None, description="Entry directory mode"
    )

    # Behaviour
    MOVE_TO_CACHE: bool = Field(default=False, description="Move instead of copy")
    ENSURE_MULTIPART_FORM: bool = Field(
        default=True, description="Reject raw string/path input"
    )
    MAX_AGE_SECONDS: int = Field(
        default=DEFAULT_MAX_AGE_SECONDS, ge=0, description="Reaping threshold"
    )

    # Logging
    LOG_LEVEL: Literal["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"] = Field(
        default="INFO", description="Logging level"
    )
    LOG_FILE: Path | None = Field(
        default=None, description="JSON-lines log file"
    )

    @field_validator("PERMISSIONS", "DIRECTORY_PERMISSIONS", mode="before")
    @classmethod
    def validate_mode(cls, v: Any) -> int | None:
        """Accept octal strings such as "0644" from the environment."""
        return parse_mode(v)

    @property
    def cache_root(self) -> Path:
        """Get the absolute cache root."""
        if self.CACHE_DIR.is_absolute():
            return self.CACHE_DIR
        return (self.ROOT / self.CACHE_DIR).expanduser().absolute()

    def staging_config(self) -> StagingConfig:
        """Build the immutable config handed to Stager and Reaper."""
        return StagingConfig(
            cache_root=self.cache_root,
            permissions=self.PERMISSIONS,
            directory_permissions=self.DIRECTORY_PERMISSIONS,
            move_to_cache=self.MOVE_TO_CACHE,
            ensure_multipart_form=self.ENSURE_MULTIPART_FORM,
        )

    def ensure_directories(self) -> None:
        """Create the cache root if it doesn't exist."""
        self.cache_root.mkdir(parents=True, exist_ok=True)

    def display(self) -> dict[str, str | int | bool | None]:
        """Return settings formatted for display."""
        def mode(value: int | None) -> str | None:
            return None if value is None else oct(value)

        return {
            "ROOT": str(self.ROOT),
            "CACHE_DIR": str(self.CACHE_DIR),
            "cache_root": str(self.cache_root),
            "PERMISSIONS": mode(self.PERMISSIONS),
            "DIRECTORY_PERMISSIONS": mode(self.DIRECTORY_PERMISSIONS),
            "MOVE_TO_CACHE": self.MOVE_TO_CACHE,
            "ENSURE_MULTIPART_FORM": self.ENSURE_MULTIPART_FORM,
            "MAX_AGE_SECONDS": self.MAX_AGE_SECONDS,
            "LOG_LEVEL": self.LOG_LEVEL,
            "LOG_FILE": str(self.LOG_FILE) if self.LOG_FILE else None,
        }


@lru_cache
def get_settings() -> Settings:
    """Get cached settings singleton.

    Returns:
        Settings instance loaded from environment.

    Raises:
        ValidationError: If settings are invalid.
    """
    return Settings()


def clear_settings_cache() -> None:
    """Clear the settings cache (useful for testing)."""
    get_settings.cache_clear()
