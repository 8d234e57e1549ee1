"""Housekeeping for the cache directory, run once at the start of a session."""

import json
import logging
import shutil
from pathlib import Path
from typing import Optional, Union

from pydantic import ValidationError

from intentest.core.test_run import CACHE_FORMAT_VERSION
from intentest.core.types import CacheEntry
from intentest.error_handling import get_error_details

logger = logging.getLogger(__name__)

LEGACY_CACHE_FILENAME = "cache.json"


def _remove_entry(cache_file: Path) -> None:
    cache_file.unlink(missing_ok=True)
    shutil.rmtree(cache_file.with_suffix(""), ignore_errors=True)


def clean_up_cache(
    cache_dir: Union[str, Path],
    force_purge: bool = False,
    project_root: Optional[Union[str, Path]] = None,
) -> int:
    """
    Remove cache entries that can no longer be replayed.

    Drops entries written by an older cache format, entries whose test file no
    longer exists under ``project_root`` and files that fail to parse. With
    ``force_purge`` the whole directory is removed.

    Returns:
        Number of removed entries (0 for a forced purge)
    """
    directory = Path(cache_dir)
    root = Path(project_root) if project_root else Path.cwd()

    if not directory.exists():
        return 0

    if force_purge:
        shutil.rmtree(directory, ignore_errors=True)
        logger.info("Cache directory purged", extra={"cache_dir": str(directory)})
        return 0

    removed = 0
    for cache_file in sorted(directory.glob("*.json")):
        try:
            entry = CacheEntry.model_validate(
                json.loads(cache_file.read_text(encoding="utf-8"))
            )
        except (OSError, json.JSONDecodeError, ValidationError) as exc:
            logger.warning(
                "Removing invalid cache file",
                extra={"cache_file": cache_file.name, **get_error_details(exc)},
            )
            _remove_entry(cache_file)
            removed += 1
            continue

        if entry.metadata.version < CACHE_FORMAT_VERSION:
            reason = "outdated version"
        elif not (root / entry.test.file_path).exists():
            reason = "test file no longer exists"
        else:
            continue

        _remove_entry(cache_file)
        removed += 1
        logger.debug(
            "Cache entry removed",
            extra={"cache_file": cache_file.name, "reason": reason},
        )

    return removed


def purge_legacy_cache(dot_dir: Union[str, Path]) -> bool:
    """Delete the single-file cache written by pre-run-repository releases."""
    legacy_path = Path(dot_dir) / LEGACY_CACHE_FILENAME
    if not legacy_path.exists():
        return False

    logger.warning("Purging legacy cache file", extra={"cache_file": str(legacy_path)})
    legacy_path.unlink(missing_ok=True)
    return True
