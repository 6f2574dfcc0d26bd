"""
Custom exception hierarchy for upload staging.

All exceptions inherit from UpcacheError, which provides optional context
for structured error handling and logging.
"""

from __future__ import annotations

from typing import Any


class UpcacheError(Exception):
    """Base exception for all upload staging errors.

    Attributes:
        message: Human-readable error message.
        context: Optional structured context for logging/debugging.
    """

    def __init__(self, message: str, context: dict[str, Any] | None = None) -> None:
        super().__init__(message)
        self.message = message
        self.context = context or {}

    def __str__(self) -> str:
        if self.context:
            ctx_str = ", ".join(f"{k}={v!r}" for k, v in self.context.items())
            return f"{self.message} ({ctx_str})"
        return self.message

    def __repr__(self) -> str:
        return f"{self.__class__.__name__}({self.message!r}, context={self.context!r})"


class ConfigurationError(UpcacheError):
    """Raised when configuration is invalid.

    Examples:
        - Permission mode outside 0..0o7777
        - Unparseable permission string
    """

    pass


class InvalidParameterError(UpcacheError):
    """Raised when a cache name or filename is malformed.

    Context should include:
        - field: "cache_id" or "filename"
        - value: The rejected value
    """

    pass


class FormNotMultipartError(UpcacheError):
    """Raised when cache() receives a raw path instead of an uploaded file.

    A plain string or path usually means the form was not submitted as
    multipart, so the browser sent the filename instead of the file.

    Context should include:
        - input_type: Type name of the rejected input
    """

    pass


class ReapError(UpcacheError):
    """Raised when one or more cache entries could not be removed.

    Context should include:
        - cache_root: The directory that was scanned
        - failures: Mapping of identifier to error message
    """

    pass
