"""
upcache: temporary staging for uploaded files.

Stage an upload under ``<cache_root>/<identifier>/<filename>``, hand the
``"<identifier>/<filename>"`` cache name back to the caller, resolve it again
later, and reap entries that have gone stale.
"""

from __future__ import annotations

__version__ = "0.1.0"

from upcache.config import Settings, StagingConfig, get_settings
from upcache.exceptions import (
    ConfigurationError,
    FormNotMultipartError,
    InvalidParameterError,
    ReapError,
    UpcacheError,
)
from upcache.reaper import Reaper, clean_cached_files
from upcache.stager import Stager
from upcache.types import ReapReport, StagedReference

__all__ = [
    "__version__",
    "Settings",
    "StagingConfig",
    "get_settings",
    "UpcacheError",
    "ConfigurationError",
    "FormNotMultipartError",
    "InvalidParameterError",
    "ReapError",
    "Reaper",
    "clean_cached_files",
    "Stager",
    "StagedReference",
    "ReapReport",
]
