"""
Pytest configuration and fixtures for upcache tests.
"""

from __future__ import annotations

import os
from pathlib import Path
from typing import Generator
from unittest.mock import patch

import pytest

from upcache.config import StagingConfig, clear_settings_cache

# Small JPEG-ish payload; content only matters for byte comparisons
JPEG_BYTES = b"\xff\xd8\xff\xe0\x00\x10JFIF\x00" + bytes(range(256)) + b"\xff\xd9"


@pytest.fixture
def temp_dir(tmp_path: Path) -> Path:
    """Provide a temporary directory for test outputs."""
    return tmp_path


@pytest.fixture
def cache_root(temp_dir: Path) -> Path:
    """Provide the cache root under the temp directory."""
    return temp_dir / "uploads" / "tmp"


@pytest.fixture
def staging_config(cache_root: Path) -> StagingConfig:
    """Provide a default staging config rooted in the temp directory."""
    return StagingConfig(cache_root=cache_root)


@pytest.fixture
def fixture_file(temp_dir: Path) -> Path:
    """Provide a source file named test.jpg."""
    path = temp_dir / "fixtures" / "test.jpg"
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_bytes(JPEG_BYTES)
    return path


@pytest.fixture
def mock_env_vars(temp_dir: Path) -> Generator[dict[str, str], None, None]:
    """Provide mock environment variables for testing.

    Points the cache at the temp directory.
    """
    env_vars = {
        "UPCACHE_ROOT": str(temp_dir),
        "UPCACHE_CACHE_DIR": "uploads/tmp",
        "UPCACHE_PERMISSIONS": "0644",
        "UPCACHE_DIRECTORY_PERMISSIONS": "0755",
        "UPCACHE_MOVE_TO_CACHE": "false",
        "UPCACHE_ENSURE_MULTIPART_FORM": "true",
        "UPCACHE_MAX_AGE_SECONDS": "3600",
        "UPCACHE_LOG_LEVEL": "DEBUG",
    }

    with patch.dict(os.environ, env_vars, clear=False):
        clear_settings_cache()
        yield env_vars


@pytest.fixture(autouse=True)
def reset_settings_cache() -> Generator[None, None, None]:
    """Automatically reset settings cache before and after each test."""
    clear_settings_cache()
    yield
    clear_settings_cache()
