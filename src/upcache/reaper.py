"""
Reaper: removes stale entries from the upload cache.

Sweeps are best effort. An entry that cannot be deleted is recorded in
the ReapReport and the sweep moves on; callers decide whether to treat
failures as fatal via ReapReport.raise_for_failures().
"""

from __future__ import annotations

import shutil
import stat
from datetime import datetime
from pathlib import Path

from upcache.config import DEFAULT_MAX_AGE_SECONDS, Settings, StagingConfig, get_settings
from upcache.identifier import is_valid_cache_id
from upcache.logging import get_logger, log_context
from upcache.types import ReapReport, utc_now

logger = get_logger(__name__)


def _timestamp(now: datetime | float | None) -> float:
    if now is None:
        return utc_now().timestamp()
    if isinstance(now, datetime):
        return now.timestamp()
    return float(now)


class Reaper:
    """Deletes cache entries whose directory is older than a threshold.

    Only directories named like a staging identifier are considered, so
    anything else that happens to live under the cache root is left alone.
    """

    def __init__(self, config: StagingConfig) -> None:
        self.config = config

    def reap(
        self,
        cache_root: Path | str | None = None,
        max_age_seconds: float = DEFAULT_MAX_AGE_SECONDS,
        now: datetime | float | None = None,
    ) -> ReapReport:
        """Delete entries older than max_age_seconds.

        Age is measured from each entry directory's modification time.

        Args:
            cache_root: Directory to sweep (defaults to the configured root).
            max_age_seconds: Entries strictly older than this are removed.
            now: Reference instant as datetime or epoch seconds (defaults to
                the current time).

        Returns:
            ReapReport listing removed, kept and failed entries.
        """
        root = Path(cache_root) if cache_root is not None else self.config.cache_root
        report = ReapReport(cache_root=root, max_age_seconds=max_age_seconds)
        cutoff = _timestamp(now) - max_age_seconds

        with log_context(operation="reap"):
            if not root.is_dir():
                logger.debug("Cache root does not exist, nothing to reap", cache_root=str(root))
                return report

            for entry in sorted(root.iterdir()):
                if not is_valid_cache_id(entry.name):
                    continue
                try:
                    info = entry.stat()
                except FileNotFoundError:
                    # Removed by someone else mid-sweep
                    continue
                except OSError as e:
                    self._record_failure(report, entry.name, e)
                    continue

                if not stat.S_ISDIR(info.st_mode):
                    continue
                if info.st_mtime >= cutoff:
                    report.kept.append(entry.name)
                    continue

                try:
                    shutil.rmtree(entry)
                except FileNotFoundError:
                    report.removed.append(entry.name)
                except OSError as e:
                    self._record_failure(report, entry.name, e)
                else:
                    report.removed.append(entry.name)
                    logger.info("Removed stale cache entry %s", entry.name)

            logger.info(
                "Reaped %d entries, kept %d, failed %d",
                len(report.removed),
                len(report.kept),
                len(report.failures),
                cache_root=str(root),
            )
        return report

    @staticmethod
    def _record_failure(report: ReapReport, name: str, error: OSError) -> None:
        report.failures[name] = str(error)
        logger.warning(
            "Failed to reap cache entry %s: %s",
            name,
            error,
            cache_root=str(report.cache_root),
        )


def clean_cached_files(
    max_age_seconds: float | None = None,
    settings: Settings | None = None,
    now: datetime | float | None = None,
) -> ReapReport:
    """Reap the configured cache root.

    Args:
        max_age_seconds: Entries strictly older than this are removed
            (defaults to settings.MAX_AGE_SECONDS).
        settings: Settings to use (defaults to get_settings()).
        now: Reference instant (defaults to the current time).

    Returns:
        ReapReport for the sweep.
    """
    settings = settings or get_settings()
    if max_age_seconds is None:
        max_age_seconds = settings.MAX_AGE_SECONDS
    return Reaper(settings.staging_config()).reap(max_age_seconds=max_age_seconds, now=now)
