"""
Core types for upload staging.

This module defines:
- StagedReference: frozen handle to one staged file
- ReapReport: outcome of a reaping sweep
- Helper for timezone-aware timestamps
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime, timezone
from pathlib import Path
from typing import IO, Any

from upcache.exceptions import ReapError


def utc_now() -> datetime:
    """Get current UTC time with timezone info."""
    return datetime.now(timezone.utc)


@dataclass(frozen=True)
class StagedReference:
    """Immutable reference to a staged file.

    The file is not opened or checked when the reference is created; a
    missing file surfaces as FileNotFoundError when content is accessed.

    Attributes:
        identifier: Staging identifier naming the entry directory.
        original_filename: Sanitized name of the file on disk.
        filename: Display name (original_filename passed through the stager's
            filename hook).
        path: Absolute path of the staged file.
    """

    identifier: str
    original_filename: str
    filename: str
    path: Path

    @property
    def cache_name(self) -> str:
        """The "<identifier>/<filename>" string handed back to callers."""
        return f"{self.identifier}/{self.original_filename}"

    @property
    def directory(self) -> Path:
        return self.path.parent

    @property
    def size(self) -> int:
        return self.path.stat().st_size

    def exists(self) -> bool:
        return self.path.is_file()

    def open(self, mode: str = "rb") -> IO[Any]:
        """Open the staged file."""
        return self.path.open(mode)

    def read_bytes(self) -> bytes:
        return self.path.read_bytes()

    def to_dict(self) -> dict[str, Any]:
        """Convert to dict."""
        return {
            "identifier": self.identifier,
            "original_filename": self.original_filename,
            "filename": self.filename,
            "cache_name": self.cache_name,
            "path": str(self.path),
        }


@dataclass
class ReapReport:
    """Result of a reaping sweep.

    Attributes:
        cache_root: Directory that was scanned.
        removed: Identifiers whose directories were deleted.
        kept: Identifiers that were younger than the threshold.
        failures: Identifier to error message for entries that could not
            be deleted.
    """

    cache_root: Path
    max_age_seconds: float
    removed: list[str] = field(default_factory=list)
    kept: list[str] = field(default_factory=list)
    failures: dict[str, str] = field(default_factory=dict)

    @property
    def ok(self) -> bool:
        """True when every stale entry was removed."""
        return not self.failures

    def raise_for_failures(self) -> None:
        """Raise ReapError if any entry could not be removed."""
        if self.failures:
            raise ReapError(
                f"Failed to remove {len(self.failures)} cache entries",
                context={
                    "cache_root": str(self.cache_root),
                    "failures": dict(self.failures),
                },
            )

    def to_dict(self) -> dict[str, Any]:
        """Convert to dict."""
        return {
            "cache_root": str(self.cache_root),
            "max_age_seconds": self.max_age_seconds,
            "removed": list(self.removed),
            "kept": list(self.kept),
            "failures": dict(self.failures),
        }
