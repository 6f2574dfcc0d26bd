"""
Stager: places uploaded files into the temporary cache.

Each cache() call creates a brand-new entry directory named by a fresh
staging identifier, so concurrent stagers never touch the same entry and
no locking is needed. retrieve() rebuilds a reference from the
"<identifier>/<filename>" string a caller got back earlier.
"""

from __future__ import annotations

import io
import os
import shutil
from dataclasses import dataclass
from pathlib import Path
from typing import Any, BinaryIO, Callable

from upcache.config import StagingConfig, parse_mode
from upcache.exceptions import (
    ConfigurationError,
    FormNotMultipartError,
    InvalidParameterError,
)
from upcache.identifier import generate_cache_id, is_valid_cache_id
from upcache.logging import get_logger, log_context
from upcache.sanitize import sanitize_filename, validate_filename
from upcache.types import StagedReference

logger = get_logger(__name__)

FilenameHook = Callable[[str], str]

# Attributes that carry the client-side filename, in order of preference
_FILENAME_ATTRS = ("original_filename", "filename", "name")
# Attributes under which upload wrappers keep the underlying byte stream
_STREAM_ATTRS = ("file", "stream")


@dataclass
class _Upload:
    """Normalized view of whatever was passed to cache()."""

    original_filename: str
    stream: BinaryIO | None = None
    path: Path | None = None


def _is_readable(obj: Any) -> bool:
    return callable(getattr(obj, "read", None))


def _backing_path(stream: Any) -> Path | None:
    """Find the file on disk behind an OS-level byte stream, if any.

    A stream's .name only counts when it names the very file the stream's
    descriptor has open. Upload wrappers and in-memory buffers often carry
    the client's filename in .name, which must never be resolved on disk.
    """
    name = getattr(stream, "name", None)
    if not isinstance(name, str):
        return None
    try:
        opened = os.fstat(stream.fileno())
        on_disk = os.stat(name)
    except (AttributeError, OSError, ValueError):
        return None
    if not os.path.samestat(opened, on_disk):
        return None
    return Path(name)


def _byte_stream(file: Any) -> BinaryIO:
    """Pick the synchronous byte stream out of a file handle.

    Upload wrappers (Starlette's UploadFile, Werkzeug's FileStorage) expose
    the real file under .file or .stream; the wrapper's own read() may be
    async.
    """
    stream = file
    for attr in _STREAM_ATTRS:
        inner = getattr(file, attr, None)
        if inner is not None and _is_readable(inner):
            stream = inner
            break
    if isinstance(stream, io.TextIOBase):
        stream = getattr(stream, "buffer", stream)
    return stream


def _copy_stream(stream: BinaryIO, target: Path) -> None:
    seekable = getattr(stream, "seekable", None)
    if callable(seekable) and seekable():
        stream.seek(0)
    with target.open("wb") as out:
        shutil.copyfileobj(stream, out)


class Stager:
    """Stages uploaded files under ``<cache_root>/<identifier>/<filename>``.

    The stager remembers the last reference it produced or retrieved;
    each cache() or retrieve() call replaces it.

    The display filename is computed by filename_for(), which applies the
    optional filename_hook. Subclasses may override filename_for() instead.
    Storage placement always uses the sanitized original filename.
    """

    def __init__(
        self,
        config: StagingConfig,
        filename_hook: FilenameHook | None = None,
    ) -> None:
        """Initialize Stager.

        Args:
            config: Staging configuration (cache root, permissions, modes).
            filename_hook: Optional function mapping the sanitized on-disk
                filename to the display filename.
        """
        self.config = config
        self._filename_hook = filename_hook
        self._reference: StagedReference | None = None

    # ------------------------------------------------------------------
    # Bound reference
    # ------------------------------------------------------------------

    @property
    def reference(self) -> StagedReference | None:
        return self._reference

    @property
    def cached(self) -> bool:
        return self._reference is not None

    @property
    def cache_name(self) -> str | None:
        return self._reference.cache_name if self._reference else None

    @property
    def filename(self) -> str | None:
        return self._reference.filename if self._reference else None

    @property
    def original_filename(self) -> str | None:
        return self._reference.original_filename if self._reference else None

    @property
    def current_path(self) -> Path | None:
        return self._reference.path if self._reference else None

    def filename_for(self, original_filename: str) -> str:
        """Compute the display filename for a sanitized on-disk filename."""
        if self._filename_hook is None:
            return original_filename
        return self._filename_hook(original_filename)

    def path_for(self, cache_id: str, original_filename: str) -> Path:
        return self.config.cache_root / cache_id / original_filename

    def _bind(self, cache_id: str, original_filename: str) -> StagedReference:
        reference = StagedReference(
            identifier=cache_id,
            original_filename=original_filename,
            filename=self.filename_for(original_filename),
            path=self.path_for(cache_id, original_filename),
        )
        self._reference = reference
        return reference

    # ------------------------------------------------------------------
    # cache
    # ------------------------------------------------------------------

    def _normalize(self, new_file: Any) -> _Upload:
        """Turn the cache() argument into an _Upload.

        Raises:
            FormNotMultipartError: For raw paths while ensure_multipart_form
                is on, and for anything that is neither a path nor readable.
            InvalidParameterError: If a handle carries no filename.
        """
        if isinstance(new_file, (str, os.PathLike)):
            if self.config.ensure_multipart_form:
                raise FormNotMultipartError(
                    "Expected an uploaded file but got a path; "
                    "check that the form uses multipart/form-data",
                    context={"input_type": type(new_file).__name__},
                )
            path = Path(new_file)
            return _Upload(original_filename=path.name, path=path)

        if not (_is_readable(new_file) or any(
            _is_readable(getattr(new_file, attr, None)) for attr in _STREAM_ATTRS
        )):
            raise FormNotMultipartError(
                "Expected a file-like object",
                context={"input_type": type(new_file).__name__},
            )

        stream = _byte_stream(new_file)
        original_filename = None
        for candidate in (new_file, stream):
            for attr in _FILENAME_ATTRS:
                value = getattr(candidate, attr, None)
                if isinstance(value, str) and value:
                    original_filename = value
                    break
            if original_filename:
                break
        if original_filename is None:
            raise InvalidParameterError(
                "Uploaded file has no filename",
                context={"field": "filename", "input_type": type(new_file).__name__},
            )

        return _Upload(
            original_filename=original_filename,
            stream=stream,
            path=_backing_path(stream),
        )

    @staticmethod
    def _mode_override(value: Any, default: int | None, name: str) -> int | None:
        if value is None:
            return default
        try:
            return parse_mode(value)
        except ValueError as e:
            raise ConfigurationError(str(e), context={"option": name}) from e

    def cache(
        self,
        new_file: Any,
        *,
        move_to_cache: bool | None = None,
        permissions: int | str | None = None,
        directory_permissions: int | str | None = None,
    ) -> StagedReference | None:
        """Stage an uploaded file in a new cache entry.

        Args:
            new_file: File handle with a filename, or None. A raw str or
                path is accepted only when ensure_multipart_form is off.
            move_to_cache: Override the configured move-vs-copy mode.
            permissions: Override the configured file mode.
            directory_permissions: Override the configured directory mode.

        Returns:
            The new StagedReference, or None when new_file is None.

        Raises:
            FormNotMultipartError: If new_file is a raw path and raw paths
                are not permitted, or is not file-like.
            InvalidParameterError: If the filename cannot be sanitized.
            ConfigurationError: If a permission override is invalid.
            OSError: Filesystem errors propagate unchanged.
        """
        if new_file is None:
            return None

        upload = self._normalize(new_file)
        original_filename = sanitize_filename(upload.original_filename)

        move = self.config.move_to_cache if move_to_cache is None else move_to_cache
        file_mode = self._mode_override(
            permissions, self.config.permissions, "permissions"
        )
        dir_mode = self._mode_override(
            directory_permissions,
            self.config.directory_permissions,
            "directory_permissions",
        )

        cache_id = generate_cache_id()
        with log_context(staging_id=cache_id, operation="cache"):
            target = self.path_for(cache_id, original_filename)
            target.parent.mkdir(parents=True, exist_ok=True)
            try:
                moved = self._place(upload, target, move)
            except BaseException:
                # An entry holds exactly one file or does not exist
                shutil.rmtree(target.parent, ignore_errors=True)
                raise

            if dir_mode is not None:
                os.chmod(target.parent, dir_mode)
            if file_mode is not None:
                os.chmod(target, file_mode)

            reference = self._bind(cache_id, original_filename)
            logger.info(
                "Staged %s",
                reference.cache_name,
                path=str(target),
                moved=moved,
            )
        return reference

    @staticmethod
    def _place(upload: _Upload, target: Path, move: bool) -> bool:
        """Move or copy the upload to target; return True if it was moved."""
        if move and upload.path is not None:
            shutil.move(str(upload.path), str(target))
            return True
        if upload.stream is not None:
            if move:
                logger.debug("Upload has no backing file, copying instead of moving")
            _copy_stream(upload.stream, target)
        else:
            shutil.copyfile(upload.path, target)
        return False

    # ------------------------------------------------------------------
    # retrieve
    # ------------------------------------------------------------------

    def retrieve(self, cache_name: str) -> StagedReference:
        """Bind a reference to a previously staged file.

        The file's existence is not checked here.

        Args:
            cache_name: String of the form "<identifier>/<filename>".

        Returns:
            The bound StagedReference.

        Raises:
            InvalidParameterError: If the identifier or filename is malformed.
                The stager is left unbound.
        """
        self._reference = None

        if not isinstance(cache_name, str):
            raise InvalidParameterError(
                "Cache name must be a string",
                context={"field": "cache_name", "value": cache_name},
            )

        cache_id, _, original_filename = cache_name.partition("/")
        if not is_valid_cache_id(cache_id):
            raise InvalidParameterError(
                "Invalid cache id",
                context={"field": "cache_id", "value": cache_id},
            )
        validate_filename(original_filename)

        with log_context(staging_id=cache_id, operation="retrieve"):
            reference = self._bind(cache_id, original_filename)
            logger.debug("Retrieved %s", reference.cache_name)
        return reference
