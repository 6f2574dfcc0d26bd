"""
Filename sanitization for staged uploads.

Reduces an uploaded filename to a single traversal-free path component
made only of allow-listed characters. Anything else is rejected rather
than rewritten, so a cache name always maps back to exactly one file.
"""

from __future__ import annotations

import re

from upcache.exceptions import InvalidParameterError

SAFE_FILENAME_PATTERN = re.compile(r"[A-Za-z0-9._-]+", re.ASCII)

# Names that are valid characters but still refer outside the entry directory
_RESERVED_NAMES = frozenset({".", ".."})


def strip_directories(name: str) -> str:
    """Return the last path component of a client-supplied filename.

    Browsers on Windows may send the full path, so both separators count.
    """
    return re.split(r"[\\/]", name)[-1]


def validate_filename(name: str) -> str:
    """Validate a filename that must already be a single safe component.

    Args:
        name: Candidate filename.

    Returns:
        The same filename.

    Raises:
        InvalidParameterError: If the name is empty, reserved, or has
            characters outside letters, digits, ".", "_" and "-".
    """
    if not name or name in _RESERVED_NAMES:
        raise InvalidParameterError(
            "Invalid filename",
            context={"field": "filename", "value": name},
        )
    if SAFE_FILENAME_PATTERN.fullmatch(name) is None:
        raise InvalidParameterError(
            "Filename contains invalid characters",
            context={"field": "filename", "value": name},
        )
    return name


def sanitize_filename(name: str) -> str:
    """Reduce an uploaded filename to its safe on-disk form.

    Strips directory components and surrounding whitespace, then validates
    what is left.

    Raises:
        InvalidParameterError: If the remaining name is not safe.
    """
    return validate_filename(strip_directories(name).strip())
